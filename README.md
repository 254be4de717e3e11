# componentcargo

`componentcargo` is a library for tools that wrap `cargo` to build
WebAssembly components. It provides:

- tolerant scanning of `cargo` command lines, picking out only the options
  the wrapper needs and leaving everything else for `cargo` itself;
- reading the `package.metadata.component` table of a package description;
- shared and exclusive locks on the `Cargo-component.lock` file;
- classifying build outputs as core modules, componentizable modules,
  components or something else;
- assembling the `cargo` invocation, reading its JSON artifact messages and
  running built components with a WASI runner;
- installing the `wasm32-wasi` target through `rustup` when it is missing.

## Scanning cargo arguments

Unknown options are skipped rather than rejected, so the same argument list
can be handed on to `cargo` unchanged. A leading `component` word is
skipped, and scanning stops at the first `--`.

```python
from componentcargo.arguments import CargoArguments

args = CargoArguments.parse(
    ["component", "build", "--release", "-p", "app@1.2.3", "-vv", "--offline"]
)
args.release                 # True
args.verbose                 # 2
str(args.packages[0])        # "app@1.2.3"
args.network_allowed()       # False, because of --offline
args.lock_update_allowed()   # True
```

With no argument, `CargoArguments.parse()` reads `sys.argv[1:]`. The options
recognised are `--color`/`-c`, `--manifest-path`, `--message-format`,
`--package`/`-p`, `--target`, `--release`/`-r`, `--frozen`, `--locked`,
`--offline`, `--all`, `--workspace`, `--verbose`/`-v`, `--quiet`/`-q` and
`--help`/`-h`.

Invalid input raises `componentcargo.args.ArgumentError`: a repeated
single-valued or flag option, an option that needs a value but has none, an
unknown `--color` value, a package specifier containing a URL, or an
unparsable version in `name@version`.

`CargoPackageSpec.parse` parses a specifier on its own, and
`CargoPackageSpec.find_current_package_spec(packages)` reads `Cargo.toml` in
the current directory and takes the version from the matching entry of
`packages` (package entries from `cargo metadata`).

The lower-level option table is `componentcargo.args.Args`, built with
`flag`, `single`, `multiple` and `counting` and fed one argument at a time
through `Args.parse(arg, rest)`, which takes a following value from the
`rest` iterator when one is needed.

## Component metadata

```python
from componentcargo.metadata import ComponentSection, parse_target

section = ComponentSection.from_value({
    "target": {"package": "wasi:http", "version": "0.2.0", "world": "proxy"},
    "bindings": {"format": False},
})

target = parse_target("wasi:http/proxy@0.2.0")
target.world           # "proxy"
target.dependencies()  # {"wasi:http": RegistryPackage(version="0.2.0", ...)}
```

A target is either a `PackageTarget` (from a registry package) or a
`LocalTarget` (from a local WIT path, `wit` by default). Dependencies are
`RegistryPackage` or `LocalDependency` values, parsed by `parse_dependency`.
Unknown keys in the component table are rejected; unknown keys under
`bindings` are ignored.

`ComponentMetadata.from_package(package)` takes a package entry from
`cargo metadata` (`name`, `version`, `manifest_path`, `metadata`), resolves
relative paths against the manifest directory and offers
`target_package()`, `target_path()` and `target_world()`. Problems are raised
as `componentcargo.metadata.MetadataError`.

## Build outputs

```python
from componentcargo.artifacts import ArtifactKind, CargoCommand, read_artifact

command = CargoCommand.from_name("t")    # CargoCommand.TEST
command.buildable(), command.testable()  # (True, True)

artifact = read_artifact("target/wasm32-wasi/debug/app.wasm", False)
if artifact.kind is ArtifactKind.COMPONENTIZABLE:
    module_bytes = artifact.data
```

A core module counts as componentizable when asked for, or when it has a
custom section whose name starts with `component-type`. The same module also
provides `is_wasm_target`, `output_display_name` (names in the style `cargo`
uses when running executables) and `select_packages`, which picks packages
from `cargo metadata` output by workspace, by specifier or by default
members, raising `LookupError` when a specifier matches nothing.

## Lock file access

```python
from componentcargo.lock import acquire_lock_file_ro, acquire_lock_file_rw

lock = acquire_lock_file_ro("/path/to/workspace", print)
if lock is not None:
    with lock:
        ...

with acquire_lock_file_rw("/path/to/workspace", True, False, print) as lock:
    lock.file.write(b"...")
```

`acquire_lock_file_ro` returns `None` when the lock file does not exist;
`acquire_lock_file_rw` creates it. When another process holds the lock, the
status callback is called with `"Blocking"` and a message, and the call
waits. Asking for write access when updates are not allowed raises
`componentcargo.lock.LockFileError`, naming `--locked` or `--frozen`.

## Running cargo and the outputs

`componentcargo.invocation` provides:

- `split_spawn_args` – splits a command line at the first `--`;
- `build_cargo_command` – builds the `cargo` argument vector: run and serve
  become `build`, buildable commands get `--target wasm32-wasi` unless a wasm
  target is given and `--message-format json-render-diagnostics`, and test
  and bench get `--no-run`;
- `spawn_cargo` and `parse_artifact_messages` – run `cargo` and collect its
  compiler-artifact messages that name `.wasm` files;
- `find_runner` – finds the runner from `CARGO_TARGET_WASM32_WASI_RUNNER` or
  the `wasm32-wasi` runner in `.cargo/config.toml`, otherwise `wasmtime`;
- `spawn_outputs` – runs each `Output` that has a display name.

A failing `cargo` or runner ends the process with its exit code through
`SystemExit`; other problems raise `InvocationError`.

`componentcargo.target.install_wasm32_wasi(status)` checks the sysroot
reported by `rustc` and runs `rustup target add wasm32-wasi` when the target
is missing, raising `TargetError` on failure.

## What this package does not do

It has no command-line program of its own. It does not generate bindings,
turn core modules into components with a WASI adapter, resolve
dependencies against a component registry, publish packages, or read and
write the contents of the lock file; it only locks that file.