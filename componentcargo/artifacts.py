"""Classifying build outputs and naming the components that get run."""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Any

import semver

from componentcargo.arguments import CargoPackageSpec

WASM_MAGIC = b"\x00asm"
_CORE_VERSION = b"\x01\x00\x00\x00"
_COMPONENT_LAYER = b"\x01\x00"
_COMPONENT_TYPE_PREFIX = "component-type"


class CargoCommand(Enum):
    """The cargo subcommand being wrapped, as far as this tool cares."""

    OTHER = "<unknown>"
    HELP = "help"
    BUILD = "build"
    RUN = "run"
    TEST = "test"
    BENCH = "bench"
    SERVE = "serve"

    @classmethod
    def from_name(cls, name: str) -> CargoCommand:
        """Map a subcommand name or alias to a command; unknown names give OTHER."""
        return _COMMAND_NAMES.get(name, cls.OTHER)

    def buildable(self) -> bool:
        """Return True if the command builds wasm outputs."""
        return self in (
            CargoCommand.BUILD,
            CargoCommand.RUN,
            CargoCommand.TEST,
            CargoCommand.BENCH,
            CargoCommand.SERVE,
        )

    def runnable(self) -> bool:
        """Return True if the command runs what it builds."""
        return self in (
            CargoCommand.RUN,
            CargoCommand.TEST,
            CargoCommand.BENCH,
            CargoCommand.SERVE,
        )

    def testable(self) -> bool:
        """Return True if the command builds and runs tests."""
        return self in (CargoCommand.TEST, CargoCommand.BENCH)

    def __str__(self) -> str:
        return self.value


_COMMAND_NAMES = {
    "h": CargoCommand.HELP,
    "help": CargoCommand.HELP,
    "b": CargoCommand.BUILD,
    "build": CargoCommand.BUILD,
    "rustc": CargoCommand.BUILD,
    "r": CargoCommand.RUN,
    "run": CargoCommand.RUN,
    "t": CargoCommand.TEST,
    "test": CargoCommand.TEST,
    "bench": CargoCommand.BENCH,
    "serve": CargoCommand.SERVE,
}


class ArtifactKind(Enum):
    """What a build output turned out to be."""

    MODULE = "module"
    COMPONENTIZABLE = "componentizable"
    COMPONENT = "component"
    OTHER = "other"


@dataclass(frozen=True)
class Artifact:
    """A classified build output; ``data`` holds the module bytes when componentizable."""

    kind: ArtifactKind
    data: bytes | None = None


def is_wasm_target(target: str) -> bool:
    """Return True for the target triples that produce WebAssembly."""
    return target in ("wasm32-wasi", "wasm32-unknown-unknown")


def _read_leb_u32(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    for shift in range(0, 35, 7):
        if pos >= len(data):
            raise ValueError("unexpected end of data while reading an integer")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if result > 0xFFFFFFFF:
                raise ValueError("integer too large")
            return result, pos
    raise ValueError("integer representation too long")


def _custom_section_names(data: bytes) -> Iterator[str]:
    pos = len(WASM_MAGIC) + len(_CORE_VERSION)
    while pos < len(data):
        section_id = data[pos]
        size, pos = _read_leb_u32(data, pos + 1)
        end = pos + size
        if end > len(data):
            raise ValueError("section extends past the end of the module")
        if section_id == 0:
            length, start = _read_leb_u32(data, pos)
            if start + length > end:
                raise ValueError("custom section name extends past the section")
            try:
                yield data[start : start + length].decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ValueError("custom section name is not valid UTF-8") from exc
        pos = end


def read_artifact(path: str | PurePath, componentizable: bool) -> Artifact:
    """Classify a build output by its header and, for core modules, its sections.

    A core module is componentizable if ``componentizable`` is set or if it
    carries a custom section whose name starts with ``component-type``.
    """
    path = Path(path)
    with open(path, "rb") as file:
        header = file.read(8)
        if len(header) < 8:
            return Artifact(ArtifactKind.OTHER)
        if header[:4] == WASM_MAGIC and header[4:] == _CORE_VERSION:
            data = header + file.read()
        elif header[:4] == WASM_MAGIC and header[6:8] == _COMPONENT_LAYER:
            return Artifact(ArtifactKind.COMPONENT)
        else:
            return Artifact(ArtifactKind.OTHER)

    if not componentizable:
        try:
            componentizable = any(
                name.startswith(_COMPONENT_TYPE_PREFIX)
                for name in _custom_section_names(data)
            )
        except ValueError as exc:
            raise ValueError(
                f"failed to parse output WebAssembly module `{path}`: {exc}"
            ) from exc

    if componentizable:
        return Artifact(ArtifactKind.COMPONENTIZABLE, data)
    return Artifact(ArtifactKind.MODULE)


def _relative(path: PurePath, base: PurePath) -> PurePath:
    try:
        return path.relative_to(base)
    except ValueError:
        return path


def output_display_name(
    src_path: str | PurePath,
    workspace_root: str | PurePath,
    is_test_or_bench: bool,
    path: str | PurePath,
    cwd: str | PurePath,
    command: CargoCommand,
    output_args: Sequence[str],
) -> str:
    """Return the name shown when running an output, in cargo's own style.

    ``output_args`` starts with the ``--`` separator, which is not shown.
    """
    short_src = _relative(PurePath(src_path), PurePath(workspace_root))
    shown = _relative(PurePath(path), PurePath(cwd))

    if is_test_or_bench:
        return f"{short_src} ({shown})"
    if command is CargoCommand.TEST:
        return f"unittests {short_src} ({shown})"
    if command is CargoCommand.BENCH:
        return f"benches {short_src} ({shown})"
    words = [str(shown), *(shlex.quote(arg) for arg in output_args[1:])]
    return "`" + " ".join(words) + "`"


def _matches(package: Mapping[str, Any], spec: CargoPackageSpec) -> bool:
    if package.get("name") != spec.name:
        return False
    if spec.version is None:
        return True
    return semver.Version.parse(str(package["version"])) == spec.version


def select_packages(
    packages: Mapping[str, Any],
    specs: Iterable[CargoPackageSpec],
    workspace: bool,
) -> list[Mapping[str, Any]]:
    """Pick the packages to operate on from cargo metadata output.

    ``packages`` is the metadata document, holding ``packages``,
    ``workspace_members`` and optionally ``workspace_default_members``.
    With ``workspace`` every member is chosen; otherwise each spec must match
    a package, and without specs the default members are chosen.
    """
    all_packages = list(packages.get("packages", []))
    members = set(packages.get("workspace_members", []))
    specs = list(specs)

    if workspace:
        return [p for p in all_packages if p.get("id") in members]

    if specs:
        selected = []
        for spec in specs:
            found = next((p for p in all_packages if _matches(p, spec)), None)
            if found is None:
                raise LookupError(
                    f"package ID specification `{spec}` did not match any packages"
                )
            selected.append(found)
        return selected

    defaults = packages.get("workspace_default_members")
    chosen = members if defaults is None else set(defaults)
    return [p for p in all_packages if p.get("id") in chosen]