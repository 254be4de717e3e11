"""Running cargo, collecting its wasm artifacts and running the built components."""

from __future__ import annotations

import json
import logging
import os
import shlex
import shutil
import subprocess
import tomllib
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from componentcargo.arguments import CargoArguments
from componentcargo.artifacts import CargoCommand, is_wasm_target

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "wasm32-wasi"
MESSAGE_FORMAT = "json-render-diagnostics"
RUNNER_ENV = "CARGO_TARGET_WASM32_WASI_RUNNER"
DEFAULT_RUNNER = "wasmtime"

StatusCallback = Callable[[str, str], object]


class InvocationError(RuntimeError):
    """Raised when cargo or a runner cannot be invoked as requested."""


@dataclass(frozen=True)
class Runner:
    """The program used to run built components, with its leading arguments."""

    path: str
    args: list[str] = field(default_factory=list)


@dataclass
class Output:
    """A built component; ``display`` is set when it is to be run."""

    path: Path
    display: str | None = None


def split_spawn_args(spawn_args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split a command line at the first ``--``; the separator starts the second part."""
    args = list(spawn_args)
    try:
        position = args.index("--")
    except ValueError:
        return args, []
    return args[:position], args[position:]


def build_cargo_command(
    cargo_path: str | os.PathLike[str],
    command: CargoCommand,
    subcommand: str | None,
    build_args: Sequence[str],
    cargo_args: CargoArguments,
) -> list[str]:
    """Return the argument vector for the cargo invocation.

    Run and serve become builds; buildable commands get an implicit wasm
    target and JSON message output; test commands only build.
    """
    args = list(build_args)
    if args and args[0] == "component":
        args.pop(0)

    argv = [os.fspath(cargo_path)]
    if command in (CargoCommand.RUN, CargoCommand.SERVE):
        argv.append("build")
        if args and args[0] == subcommand:
            args.pop(0)
    argv.extend(args)

    if command.buildable():
        if not any(is_wasm_target(t) for t in cargo_args.targets):
            argv += ["--target", DEFAULT_TARGET]
        fmt = cargo_args.message_format
        if fmt is not None and fmt != MESSAGE_FORMAT:
            raise InvocationError(f"unsupported cargo message format `{fmt}`")
        argv += ["--message-format", MESSAGE_FORMAT]

    needs_runner = "--no-run" not in build_args
    if needs_runner and command.testable():
        argv.append("--no-run")

    return argv


def _config_files(cwd: Path, environ: Mapping[str, str]) -> list[Path]:
    candidates = []
    for directory in (cwd, *cwd.parents):
        candidates += [directory / ".cargo" / "config.toml", directory / ".cargo" / "config"]
    cargo_home = environ.get("CARGO_HOME")
    home = Path(cargo_home) if cargo_home else Path.home() / ".cargo"
    candidates += [home / "config.toml", home / "config"]
    return [path for path in candidates if path.is_file()]


def _configured_runner(cwd: Path, environ: Mapping[str, str]) -> Runner | None:
    value = environ.get(RUNNER_ENV)
    if value is not None:
        words = value.split()
        if words:
            return Runner(words[0], words[1:])

    for config in _config_files(cwd, environ):
        try:
            with open(config, "rb") as file:
                document = tomllib.load(file)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise InvocationError(f"failed to load cargo configuration `{config}`") from exc
        target = document.get("target", {}).get(DEFAULT_TARGET, {})
        runner: Any = target.get("runner") if isinstance(target, dict) else None
        if runner is None:
            continue
        words = runner.split() if isinstance(runner, str) else [str(w) for w in runner]
        if not words:
            continue
        program = words[0]
        if ("/" in program or os.sep in program) and not os.path.isabs(program):
            program = str(config.parent.parent / program)
        return Runner(program, words[1:])
    return None


def find_runner(
    serve: bool,
    environ: Mapping[str, str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
) -> Runner:
    """Find the program that runs components, defaulting to wasmtime.

    An override comes from the runner environment variable or from the
    ``wasm32-wasi`` runner in a cargo configuration file.
    """
    environ = os.environ if environ is None else environ
    cwd = Path.cwd() if cwd is None else Path(cwd)
    search_path = environ.get("PATH", "")

    runner = _configured_runner(cwd, environ)
    if runner is not None:
        if not (Path(runner.path).exists() or shutil.which(runner.path, path=search_path)):
            raise InvocationError(
                f"failed to find `{runner.path}` specified by either the `{RUNNER_ENV}` "
                f"environment variable or as the `{DEFAULT_TARGET}` runner in "
                "`.cargo/config.toml`"
            )
        return runner

    args = (
        ["serve", "-S", "common", "-S", "http"]
        if serve
        else ["-S", "preview2", "-S", "common"]
    )
    if shutil.which(DEFAULT_RUNNER, path=search_path) is None:
        how = (
            "Wasmtime can be installed via a shell script"
            if os.name == "posix"
            else "Wasmtime can be installed via its releases page"
        )
        raise InvocationError(
            f"failed to find `{DEFAULT_RUNNER}` on PATH\n\n"
            "ensure Wasmtime is installed before running this command\n\n"
            f"{how}"
        )
    return Runner(DEFAULT_RUNNER, args)


def parse_artifact_messages(lines: Iterable[str], echo: bool = False) -> list[dict[str, Any]]:
    """Collect compiler-artifact messages that name at least one ``.wasm`` file.

    Lines that are not JSON objects are skipped; with ``echo`` every line is printed.
    """
    artifacts = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if echo:
            print(line)
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(message, dict) or message.get("reason") != "compiler-artifact":
            continue
        filenames = message.get("filenames") or []
        if any(str(name).endswith(".wasm") for name in filenames):
            artifacts.append(message)
    return artifacts


def _exit_code(returncode: int) -> int:
    return returncode if returncode > 0 else 1


def spawn_cargo(
    argv: Sequence[str],
    cargo_args: CargoArguments,
    process_messages: bool,
) -> list[dict[str, Any]]:
    """Run cargo and return its wasm artifacts when messages are processed.

    A failing cargo ends the process with its exit code.
    """
    logger.debug("spawning command %s", shlex.join(argv))
    try:
        process = subprocess.Popen(
            list(argv),
            stdout=subprocess.PIPE if process_messages else None,
            text=True if process_messages else None,
        )
    except OSError as exc:
        raise InvocationError(f"failed to spawn `{argv[0]}`: {exc}") from exc

    artifacts: list[dict[str, Any]] = []
    with process:
        if process_messages:
            assert process.stdout is not None
            artifacts = parse_artifact_messages(
                process.stdout, echo=cargo_args.message_format is not None
            )
        returncode = process.wait()

    if returncode != 0:
        raise SystemExit(_exit_code(returncode))
    return artifacts


def spawn_outputs(
    runner: Runner,
    output_args: Sequence[str],
    outputs: Iterable[Output],
    command: CargoCommand,
    status: StatusCallback | None = None,
) -> None:
    """Run each output that has a display name with the runner.

    ``output_args`` starts with the ``--`` separator, which is not passed on.
    A failing run ends the process with its exit code.
    """
    executables = [(o.display, o.path) for o in outputs if o.display is not None]
    serving = command in (CargoCommand.RUN, CargoCommand.SERVE)

    if serving and len(executables) > 1:
        raise InvocationError(
            f"`cargo component {command}` can run at most one component, "
            "but multiple were specified"
        )
    if not executables:
        kind = "bin" if serving else "test"
        raise InvocationError(
            f"a component {kind} target must be available for `cargo component {command}`"
        )

    for display, executable in executables:
        if status is not None:
            status("Running", display)
        argv = [runner.path, *runner.args, "--", os.fspath(executable), *output_args[1:]]
        logger.debug("spawning command %s", shlex.join(argv))
        try:
            result = subprocess.run(argv, check=False)
        except OSError as exc:
            raise InvocationError(f"failed to spawn `{runner.path}`: {exc}") from exc
        if result.returncode != 0:
            raise SystemExit(_exit_code(result.returncode))