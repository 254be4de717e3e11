"""Component metadata read from the ``package.metadata.component`` table."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import semver

DEFAULT_WIT_DIR = "wit"

logger = logging.getLogger(__name__)

_KEBAB_WORD = r"[a-z][a-z0-9]*"
_KEBAB = re.compile(rf"^{_KEBAB_WORD}(?:-{_KEBAB_WORD})*$")
_ID_WORD = re.compile(r"^(?:[a-z][a-z0-9]*|[A-Z][A-Z0-9]*)$")
_COMPARATOR = re.compile(
    r"^(?:\*|(?:=|>=|<=|>|<|~|\^)?\s*(?:\d+|\*|x|X)(?:\.(?:\d+|\*|x|X)){0,2}"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)$"
)
_URL = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:\S+$")


class MetadataError(ValueError):
    """Raised when component metadata is malformed."""


class Ownership(Enum):
    """The ownership model for generated binding types."""

    OWNING = "owning"
    BORROWING = "borrowing"
    BORROWING_DUPLICATE_IF_NECESSARY = "borrowing-duplicate-if-necessary"

    @classmethod
    def parse(cls, value: str) -> Ownership:
        """Parse an ownership model from its kebab-case name."""
        try:
            return cls(value)
        except ValueError:
            raise MetadataError(
                f"unrecognized ownership: `{value}`; "
                "expected `owning`, `borrowing`, or `borrowing-duplicate-if-necessary`"
            ) from None


def _expect_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise MetadataError(f"invalid type for `{key}`: expected a boolean")
    return value


def _expect_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise MetadataError(f"invalid type for `{key}`: expected a string")
    return value


def _expect_optional_str(key: str, value: Any) -> str | None:
    return None if value is None else _expect_str(key, value)


def _expect_table(key: str, value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MetadataError(f"invalid type for `{key}`: expected a table")
    return value


def _expect_strings(key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MetadataError(f"invalid type for `{key}`: expected a list of strings")
    return list(value)


def _expect_string_map(key: str, value: Any) -> dict[str, str]:
    table = _expect_table(key, value)
    return {k: _expect_str(f"{key}.{k}", v) for k, v in table.items()}


def _parse_requirement(text: str) -> str:
    requirement = text.strip()
    if not requirement:
        raise MetadataError("empty version requirement")
    for comparator in requirement.split(","):
        if not _COMPARATOR.match(comparator.strip()):
            raise MetadataError(f"invalid version requirement `{text}`")
    return requirement


def validate_package_name(name: str) -> str:
    """Check a registry package name of the form ``namespace:name``."""
    namespace, sep, local = name.partition(":")
    if not sep or not _KEBAB.match(namespace) or not _KEBAB.match(local):
        raise MetadataError(
            f"invalid package name `{name}`: expected format `<namespace>:<name>`"
        )
    return name


def validate_id(name: str) -> str:
    """Check a WIT identifier: kebab-case words, each all lower or all upper case."""
    if not name:
        raise MetadataError("identifier cannot be empty")
    for word in name.split("-"):
        if not word:
            raise MetadataError(f"`{name}` has an empty word in it")
        if not _ID_WORD.match(word):
            raise MetadataError(
                f"`{name}` is not in kebab case: each word must start with a letter "
                "and be entirely lower or upper case"
            )
    return name


_BINDINGS_FIELDS = {
    "format": _expect_bool,
    "ownership": lambda key, value: Ownership.parse(_expect_str(key, value)),
    "derives": _expect_strings,
    "std_feature": _expect_bool,
    "raw_strings": _expect_bool,
    "skip": _expect_strings,
    "stubs": _expect_bool,
    "export_prefix": _expect_optional_str,
    "with": _expect_string_map,
    "type_section_suffix": _expect_optional_str,
    "disable_run_ctors_once_workaround": _expect_bool,
    "default_bindings_module": _expect_optional_str,
    "export_macro_name": _expect_optional_str,
    "pub_export_macro": _expect_bool,
    "generate_unused_types": _expect_bool,
}


@dataclass
class Bindings:
    """Configuration for bindings generation."""

    format: bool = True
    ownership: Ownership = Ownership.OWNING
    derives: list[str] = field(default_factory=list)
    std_feature: bool = False
    raw_strings: bool = False
    skip: list[str] = field(default_factory=list)
    stubs: bool = False
    export_prefix: str | None = None
    with_: dict[str, str] = field(default_factory=dict)
    type_section_suffix: str | None = None
    disable_run_ctors_once_workaround: bool = False
    default_bindings_module: str | None = None
    export_macro_name: str | None = None
    pub_export_macro: bool = False
    generate_unused_types: bool = False

    @classmethod
    def from_value(cls, value: Any) -> Bindings:
        """Build from a table; missing keys take defaults, unknown keys are ignored."""
        table = _expect_table("bindings", value)
        settings = {
            ("with_" if key == "with" else key): convert(key, table[key])
            for key, convert in _BINDINGS_FIELDS.items()
            if key in table
        }
        return cls(**settings)


@dataclass
class RegistryPackage:
    """A dependency on a package from a registry."""

    version: str
    name: str | None = None
    registry: str | None = None


@dataclass
class LocalDependency:
    """A dependency on a local WIT file or directory."""

    path: Path


Dependency = RegistryPackage | LocalDependency


def parse_dependency(value: Any) -> Dependency:
    """Parse a dependency given as a version requirement or a table."""
    if isinstance(value, str):
        return RegistryPackage(version=_parse_requirement(value))
    table = _expect_table("dependency", value)
    if "path" in table:
        extra = sorted(set(table) - {"path"})
        if extra:
            raise MetadataError(
                f"cannot specify both `{extra[0]}` and `path` fields in a dependency entry"
            )
        return LocalDependency(Path(_expect_str("path", table["path"])))
    unknown = sorted(set(table) - {"version", "package", "registry"})
    if unknown:
        raise MetadataError(f"unknown field `{unknown[0]}` in a dependency entry")
    if "version" not in table:
        raise MetadataError("missing field `version`")
    name = table.get("package")
    return RegistryPackage(
        version=_parse_requirement(_expect_str("version", table["version"])),
        name=None if name is None else validate_package_name(_expect_str("package", name)),
        registry=_expect_optional_str("registry", table.get("registry")),
    )


def _parse_dependencies(key: str, value: Any) -> dict[str, Dependency]:
    table = _expect_table(key, value)
    return {validate_package_name(name): parse_dependency(dep) for name, dep in table.items()}


@dataclass
class PackageTarget:
    """A target world taken from a registry package."""

    name: str
    package: RegistryPackage
    world: str | None = None

    def dependencies(self) -> dict[str, Dependency]:
        """Return the target package as the only dependency."""
        return {self.name: self.package}


@dataclass
class LocalTarget:
    """A target world taken from a local WIT document."""

    path: Path | None = None
    world: str | None = None
    dependencies_: dict[str, Dependency] = field(default_factory=dict)

    def dependencies(self) -> dict[str, Dependency]:
        """Return the dependencies of the local WIT document."""
        return dict(self.dependencies_)


Target = PackageTarget | LocalTarget


def parse_target(value: str) -> PackageTarget:
    """Parse a target of the form ``<package-name>[/<world>]@<version>``."""
    name, sep, version = value.partition("@")
    if not sep:
        raise MetadataError("expected target format `<package-name>[/<world>]@<version>`")
    try:
        requirement = _parse_requirement(version)
    except MetadataError as exc:
        raise MetadataError(f"invalid target version `{version}`") from exc

    world = None
    if "/" in name:
        name, world = name.split("/", 1)
        try:
            validate_id(world)
        except MetadataError as exc:
            raise MetadataError(f"invalid target world name `{world}`") from exc

    return PackageTarget(
        name=validate_package_name(name),
        package=RegistryPackage(version=requirement),
        world=world,
    )


_TARGET_FIELDS = {"package", "version", "world", "registry", "path", "dependencies"}


def target_from_value(value: Any) -> Target:
    """Parse a target given as a string or a table."""
    if isinstance(value, str):
        return parse_target(value)
    if not isinstance(value, Mapping):
        raise MetadataError("invalid type for `target`: expected a string or a table")

    unknown = sorted(set(value) - _TARGET_FIELDS)
    if unknown:
        raise MetadataError(f"unknown field `{unknown[0]}` in a target entry")

    package = _expect_optional_str("package", value.get("package"))
    version = value.get("version")
    if version is not None:
        version = _parse_requirement(_expect_str("version", version))
    world = _expect_optional_str("world", value.get("world"))
    registry = _expect_optional_str("registry", value.get("registry"))
    path = _expect_optional_str("path", value.get("path"))
    dependencies = _parse_dependencies("dependencies", value.get("dependencies", {}))

    if path is not None and package is not None:
        raise MetadataError("cannot specify both `path` and `package` fields in a target entry")

    if package is not None:
        if dependencies:
            raise MetadataError(
                "cannot specify both `dependencies` and `package` fields in a target entry"
            )
        if version is None:
            raise MetadataError("missing field `version`")
        return PackageTarget(
            name=validate_package_name(package),
            package=RegistryPackage(version=version, registry=registry),
            world=world,
        )

    for present, name in ((version is not None, "version"), (registry is not None, "registry")):
        if present:
            raise MetadataError(
                f"cannot specify both `{name}` and `path` fields in a target entry"
            )
    return LocalTarget(
        path=None if path is None else Path(path),
        world=world,
        dependencies_=dependencies,
    )


_SECTION_FIELDS = {
    "package",
    "target",
    "adapter",
    "dependencies",
    "registries",
    "bindings",
    "proxy",
}


@dataclass
class ComponentSection:
    """The ``package.metadata.component`` table of a manifest."""

    package: str | None = None
    target: Target = field(default_factory=LocalTarget)
    adapter: Path | None = None
    dependencies: dict[str, Dependency] = field(default_factory=dict)
    registries: dict[str, str] = field(default_factory=dict)
    bindings: Bindings = field(default_factory=Bindings)
    proxy: bool = False

    @classmethod
    def from_value(cls, value: Any) -> ComponentSection:
        """Build from a table; unknown keys are rejected."""
        table = _expect_table("component", value)
        unknown = sorted(set(table) - _SECTION_FIELDS)
        if unknown:
            raise MetadataError(f"unknown field `{unknown[0]}`")

        package = _expect_optional_str("package", table.get("package"))
        adapter = _expect_optional_str("adapter", table.get("adapter"))
        registries = _expect_string_map("registries", table.get("registries", {}))
        for name, url in registries.items():
            if not _URL.match(url):
                raise MetadataError(f"invalid URL `{url}` for registry `{name}`")

        return cls(
            package=None if package is None else validate_package_name(package),
            target=target_from_value(table["target"]) if "target" in table else LocalTarget(),
            adapter=None if adapter is None else Path(adapter),
            dependencies=_parse_dependencies("dependencies", table.get("dependencies", {})),
            registries=registries,
            bindings=Bindings.from_value(table.get("bindings", {})),
            proxy=_expect_bool("proxy", table.get("proxy", False)),
        )


def last_modified_time(path: str | os.PathLike[str]) -> float:
    """Return the modification time of a file as a POSIX timestamp."""
    try:
        return os.stat(path).st_mtime
    except OSError as exc:
        raise MetadataError(f"failed to read file metadata for `{path}`") from exc


def _rebase(base: Path, dependencies: dict[str, Dependency]) -> dict[str, Dependency]:
    return {
        name: LocalDependency(base / dep.path) if isinstance(dep, LocalDependency) else dep
        for name, dep in dependencies.items()
    }


@dataclass
class ComponentMetadata:
    """A cargo package together with its component section."""

    name: str
    version: semver.Version
    manifest_path: Path
    modified_at: float
    section: ComponentSection
    section_present: bool

    @classmethod
    def from_package(cls, package: Mapping[str, Any]) -> ComponentMetadata:
        """Build from a package entry of cargo metadata output.

        Relative paths in the section are resolved against the manifest directory.
        """
        manifest_path = Path(package["manifest_path"])
        logger.debug("searching for component metadata in manifest `%s`", manifest_path)

        metadata = package.get("metadata") or {}
        component = metadata.get("component") if isinstance(metadata, Mapping) else None
        section_present = component is not None
        if section_present:
            try:
                section = ComponentSection.from_value(component)
            except MetadataError as exc:
                raise MetadataError(
                    f"failed to deserialize component metadata from `{manifest_path}`"
                ) from exc
        else:
            logger.debug("manifest `%s` has no component metadata", manifest_path)
            section = ComponentSection()

        manifest_dir = manifest_path.parent
        if manifest_dir == manifest_path:
            raise MetadataError(f"manifest path `{manifest_path}` has no parent directory")
        modified_at = last_modified_time(manifest_path)

        target = section.target
        if isinstance(target, LocalTarget):
            target = replace(
                target,
                path=None if target.path is None else manifest_dir / target.path,
                dependencies_=_rebase(manifest_dir, target.dependencies_),
            )
        section = replace(
            section,
            target=target,
            dependencies=_rebase(manifest_dir, section.dependencies),
            adapter=None if section.adapter is None else manifest_dir / section.adapter,
        )

        return cls(
            name=package["name"],
            version=semver.Version.parse(str(package["version"])),
            manifest_path=manifest_path,
            modified_at=modified_at,
            section=section,
            section_present=section_present,
        )

    def target_package(self) -> str | None:
        """Return the target package name, or None for a local target."""
        target = self.section.target
        return target.name if isinstance(target, PackageTarget) else None

    def target_path(self) -> Path | None:
        """Return the local target path, falling back to an existing ``wit`` directory."""
        target = self.section.target
        if isinstance(target, PackageTarget):
            return None
        if target.path is not None:
            return target.path
        default = self.manifest_path.parent / DEFAULT_WIT_DIR
        return default if default.exists() else None

    def target_world(self) -> str | None:
        """Return the target world, if any."""
        return self.section.target.world