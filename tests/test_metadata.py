import os
from pathlib import Path

import pytest
import semver

from componentcargo.metadata import (
    DEFAULT_WIT_DIR,
    Bindings,
    ComponentMetadata,
    ComponentSection,
    LocalDependency,
    LocalTarget,
    MetadataError,
    Ownership,
    PackageTarget,
    RegistryPackage,
    last_modified_time,
    parse_dependency,
    parse_target,
    target_from_value,
    validate_id,
    validate_package_name,
)


def test_ownership_parse_all_names():
    assert Ownership.parse("owning") is Ownership.OWNING
    assert Ownership.parse("borrowing") is Ownership.BORROWING
    assert (
        Ownership.parse("borrowing-duplicate-if-necessary")
        is Ownership.BORROWING_DUPLICATE_IF_NECESSARY
    )


def test_ownership_parse_rejects_unknown():
    with pytest.raises(MetadataError, match="unrecognized ownership: `shared`"):
        Ownership.parse("shared")


def test_bindings_defaults_from_empty_table():
    bindings = Bindings.from_value({})
    assert bindings.format is True
    assert bindings.ownership is Ownership.OWNING
    assert bindings.derives == []
    assert bindings.with_ == {}


def test_bindings_from_value_reads_fields_and_ignores_unknown():
    bindings = Bindings.from_value(
        {
            "format": False,
            "ownership": "borrowing",
            "derives": ["Clone", "Debug"],
            "with": {"a:b/c": "crate::c"},
            "export_prefix": "prefix",
            "something-else": 1,
        }
    )
    assert bindings.format is False
    assert bindings.ownership is Ownership.BORROWING
    assert bindings.derives == ["Clone", "Debug"]
    assert bindings.with_ == {"a:b/c": "crate::c"}
    assert bindings.export_prefix == "prefix"


def test_bindings_rejects_wrong_type():
    with pytest.raises(MetadataError):
        Bindings.from_value({"format": "yes"})


@pytest.mark.parametrize("name", ["wasi", "a-b-c", "HTTP", "foo-BAR", "x1"])
def test_validate_id_accepts(name):
    assert validate_id(name) == name


@pytest.mark.parametrize("name", ["", "-a", "a--b", "Foo", "1a", "a_b"])
def test_validate_id_rejects(name):
    with pytest.raises(MetadataError):
        validate_id(name)


def test_validate_package_name():
    assert validate_package_name("wasi:http") == "wasi:http"
    for bad in ["wasi", "wasi:", ":http", "Wasi:http"]:
        with pytest.raises(MetadataError):
            validate_package_name(bad)


def test_parse_target_with_world():
    target = parse_target("wasi:http/proxy@0.2.0")
    assert target == PackageTarget(
        name="wasi:http", package=RegistryPackage(version="0.2.0"), world="proxy"
    )
    assert target.dependencies() == {"wasi:http": target.package}


def test_parse_target_without_world():
    target = parse_target("wasi:http@^1.0")
    assert target.world is None
    assert target.package.version == "^1.0"


def test_parse_target_requires_version():
    with pytest.raises(
        MetadataError, match=r"expected target format `<package-name>\[/<world>\]@<version>`"
    ):
        parse_target("wasi:http")


def test_parse_target_invalid_version():
    with pytest.raises(MetadataError, match="invalid target version `nope`"):
        parse_target("wasi:http@nope")


def test_parse_target_invalid_world():
    with pytest.raises(MetadataError, match="invalid target world name `Bad_World`"):
        parse_target("wasi:http/Bad_World@1.0.0")


def test_target_from_value_package_table():
    target = target_from_value(
        {"package": "wasi:http", "version": "1.0.0", "registry": "main", "world": "proxy"}
    )
    assert isinstance(target, PackageTarget)
    assert target.package.registry == "main"
    assert target.world == "proxy"


def test_target_from_value_package_requires_version():
    with pytest.raises(MetadataError, match="missing field `version`"):
        target_from_value({"package": "wasi:http"})


def test_target_from_value_package_with_dependencies():
    with pytest.raises(
        MetadataError,
        match="cannot specify both `dependencies` and `package` fields in a target entry",
    ):
        target_from_value(
            {"package": "wasi:http", "version": "1", "dependencies": {"a:b": "1.0"}}
        )


def test_target_from_value_path_and_package():
    with pytest.raises(
        MetadataError, match="cannot specify both `path` and `package` fields in a target entry"
    ):
        target_from_value({"package": "wasi:http", "path": "wit"})


@pytest.mark.parametrize("key, value", [("version", "1.0"), ("registry", "main")])
def test_target_from_value_path_conflicts(key, value):
    with pytest.raises(
        MetadataError, match=f"cannot specify both `{key}` and `path` fields in a target entry"
    ):
        target_from_value({"path": "wit", key: value})


def test_target_from_value_local():
    target = target_from_value(
        {"path": "wit/world.wit", "world": "example", "dependencies": {"a:b": {"path": "deps"}}}
    )
    assert target == LocalTarget(
        path=Path("wit/world.wit"),
        world="example",
        dependencies_={"a:b": LocalDependency(Path("deps"))},
    )


def test_target_from_value_rejects_unknown_field():
    with pytest.raises(MetadataError):
        target_from_value({"paths": "wit"})


def test_parse_dependency_forms():
    assert parse_dependency("1.2.3") == RegistryPackage(version="1.2.3")
    assert parse_dependency({"path": "x.wit"}) == LocalDependency(Path("x.wit"))
    assert parse_dependency(
        {"version": ">=1.0, <2", "package": "a:b", "registry": "r"}
    ) == RegistryPackage(version=">=1.0, <2", name="a:b", registry="r")


def test_parse_dependency_errors():
    with pytest.raises(MetadataError):
        parse_dependency({"package": "a:b"})
    with pytest.raises(MetadataError):
        parse_dependency("not a version")


def test_section_defaults():
    section = ComponentSection.from_value({})
    assert section.target == LocalTarget()
    assert section.proxy is False
    assert section.adapter is None


def test_section_rejects_unknown_field():
    with pytest.raises(MetadataError, match="unknown field `extra`"):
        ComponentSection.from_value({"extra": True})


def test_section_rejects_bad_registry_url():
    with pytest.raises(MetadataError):
        ComponentSection.from_value({"registries": {"main": "not a url"}})


def _write_manifest(tmp_path):
    manifest = tmp_path / "Cargo.toml"
    manifest.write_text("[package]\nname = \"demo\"\n")
    return manifest


def test_from_package_without_section(tmp_path):
    manifest = _write_manifest(tmp_path)
    metadata = ComponentMetadata.from_package(
        {"name": "demo", "version": "0.1.0", "manifest_path": str(manifest), "metadata": None}
    )
    assert metadata.section_present is False
    assert metadata.version == semver.Version.parse("0.1.0")
    assert metadata.target_path() is None
    (tmp_path / DEFAULT_WIT_DIR).mkdir()
    assert metadata.target_path() == tmp_path / DEFAULT_WIT_DIR
    assert metadata.modified_at == os.stat(manifest).st_mtime


def test_from_package_resolves_relative_paths(tmp_path):
    manifest = _write_manifest(tmp_path)
    metadata = ComponentMetadata.from_package(
        {
            "name": "demo",
            "version": "0.1.0",
            "manifest_path": str(manifest),
            "metadata": {
                "component": {
                    "adapter": "adapter.wasm",
                    "target": {
                        "path": "world.wit",
                        "world": "example",
                        "dependencies": {"a:b": {"path": "deps/b"}},
                    },
                    "dependencies": {"c:d": {"path": "deps/d"}, "e:f": "1.0"},
                }
            },
        }
    )
    assert metadata.section_present is True
    assert metadata.section.adapter == tmp_path / "adapter.wasm"
    assert metadata.target_path() == tmp_path / "world.wit"
    assert metadata.target_world() == "example"
    assert metadata.target_package() is None
    assert metadata.section.target.dependencies() == {
        "a:b": LocalDependency(tmp_path / "deps/b")
    }
    assert metadata.section.dependencies["c:d"] == LocalDependency(tmp_path / "deps/d")
    assert metadata.section.dependencies["e:f"] == RegistryPackage(version="1.0")


def test_from_package_registry_target(tmp_path):
    manifest = _write_manifest(tmp_path)
    metadata = ComponentMetadata.from_package(
        {
            "name": "demo",
            "version": "0.1.0",
            "manifest_path": str(manifest),
            "metadata": {"component": {"target": "wasi:http/proxy@0.2.0"}},
        }
    )
    assert metadata.target_package() == "wasi:http"
    assert metadata.target_world() == "proxy"
    assert metadata.target_path() is None


def test_from_package_wraps_section_errors(tmp_path):
    manifest = _write_manifest(tmp_path)
    with pytest.raises(MetadataError, match="failed to deserialize component metadata") as info:
        ComponentMetadata.from_package(
            {
                "name": "demo",
                "version": "0.1.0",
                "manifest_path": str(manifest),
                "metadata": {"component": {"unknown": 1}},
            }
        )
    assert isinstance(info.value.__cause__, MetadataError)


def test_last_modified_time(tmp_path):
    file = tmp_path / "f"
    file.write_text("x")
    assert last_modified_time(file) == os.stat(file).st_mtime
    with pytest.raises(MetadataError, match="failed to read file metadata"):
        last_modified_time(tmp_path / "missing")