"""Recognition of the subset of cargo options this tool needs to know about."""

from __future__ import annotations

import sys
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import semver

from componentcargo.args import Args, ArgumentError


class Color(Enum):
    """When to use colored terminal output."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def parse(cls, value: str) -> Color:
        """Parse a ``--color`` value."""
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(f"`{c.value}`" for c in cls)
            raise ArgumentError(
                f"invalid color `{value}`; expected one of {choices}"
            ) from None


@dataclass(frozen=True)
class CargoPackageSpec:
    """A cargo package specifier: a name with an optional version."""

    name: str
    version: semver.Version | None = None

    @classmethod
    def parse(cls, spec: str) -> CargoPackageSpec:
        """Parse ``name`` or ``name@version``; URL specifiers are rejected."""
        if "://" in spec:
            raise ArgumentError(f"URL package specifier `{spec}` is not supported")

        name, sep, version = spec.partition("@")
        if not sep:
            return cls(spec)
        try:
            parsed = semver.Version.parse(version)
        except (ValueError, TypeError) as exc:
            raise ArgumentError(f"invalid package specified `{spec}`") from exc
        return cls(name, parsed)

    @classmethod
    def find_current_package_spec(
        cls, packages: Iterable[Mapping[str, Any]]
    ) -> CargoPackageSpec | None:
        """Return the spec of the package whose Cargo.toml is in the current directory.

        ``packages`` are the package entries from cargo metadata; the version
        is taken from the first entry with a matching name.
        """
        try:
            with open("Cargo.toml", "rb") as manifest:
                document = tomllib.load(manifest)
        except (OSError, tomllib.TOMLDecodeError):
            return None

        package = document.get("package")
        if not isinstance(package, dict):
            return None
        name = package.get("name")
        if not isinstance(name, str):
            return None

        version = next(
            (
                semver.Version.parse(str(found["version"]))
                for found in packages
                if found.get("name") == name
            ),
            None,
        )
        return cls(name, version)

    def __str__(self) -> str:
        if self.version is None:
            return self.name
        return f"{self.name}@{self.version}"


def _option_table() -> Args:
    return (
        Args()
        .single("--color", "WHEN", "c")
        .single("--manifest-path", "PATH")
        .single("--message-format", "FMT")
        .multiple("--package", "SPEC", "p")
        .multiple("--target", "TRIPLE")
        .flag("--release", "r")
        .flag("--frozen")
        .flag("--locked")
        .flag("--offline")
        .flag("--all")
        .flag("--workspace")
        .counting("--verbose", "v")
        .flag("--quiet", "q")
        .flag("--help", "h")
    )


@dataclass
class CargoArguments:
    """The cargo options that matter to this tool."""

    color: Color | None = None
    verbose: int = 0
    help: bool = False
    quiet: bool = False
    targets: list[str] = field(default_factory=list)
    manifest_path: Path | None = None
    message_format: str | None = None
    frozen: bool = False
    locked: bool = False
    release: bool = False
    offline: bool = False
    workspace: bool = False
    packages: list[CargoPackageSpec] = field(default_factory=list)

    def network_allowed(self) -> bool:
        """Return True if network access is permitted."""
        return not self.frozen and not self.offline

    def lock_update_allowed(self) -> bool:
        """Return True if the lock file may be updated."""
        return not self.frozen and not self.locked

    @classmethod
    def parse(cls, argv: Iterable[str] | None = None) -> CargoArguments:
        """Scan a command line (``sys.argv[1:]`` by default) for known options."""
        if argv is None:
            argv = sys.argv[1:]

        table = _option_table()
        remaining = iter(list(argv))

        first = next(remaining, None)
        pending = [] if first is None or first == "component" else [first]

        def arguments():
            yield from pending
            yield from remaining

        stream = arguments()
        for arg in stream:
            if arg == "--":
                break
            table.parse(arg, stream)

        def present(name: str) -> bool:
            return table.get(name).count() > 0

        color = table.get("--color").take_single()
        manifest_path = table.get("--manifest-path").take_single()
        return cls(
            color=Color.parse(color) if color is not None else None,
            verbose=table.get("--verbose").count(),
            help=present("--help"),
            quiet=present("--quiet"),
            targets=table.get("--target").take_multiple(),
            manifest_path=Path(manifest_path) if manifest_path is not None else None,
            message_format=table.get("--message-format").take_single(),
            frozen=present("--frozen"),
            locked=present("--locked"),
            release=present("--release"),
            offline=present("--offline"),
            workspace=present("--workspace") or present("--all"),
            packages=[
                CargoPackageSpec.parse(spec)
                for spec in table.get("--package").take_multiple()
            ],
        )