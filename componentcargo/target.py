"""Ensuring the wasm32-wasi compilation target is installed."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable
from pathlib import Path

TARGET = "wasm32-wasi"


class TargetError(RuntimeError):
    """Raised when the compilation target cannot be found or installed."""


def get_sysroot() -> Path:
    """Return the sysroot reported by ``rustc --print sysroot``."""
    try:
        result = subprocess.run(
            ["rustc", "--print", "sysroot"], capture_output=True, check=False
        )
    except OSError as exc:
        raise TargetError(f"failed to execute `rustc --print sysroot`: {exc}") from exc

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise TargetError(
            "failed to execute `rustc --print sysroot`, "
            f"command exited with error: {stderr}"
        )

    try:
        text = result.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TargetError("output of `rustc --print sysroot` is not valid UTF-8") from exc
    return Path(text.strip())


def install_wasm32_wasi(status: Callable[[str, str], object]) -> None:
    """Install the wasm32-wasi target with rustup unless already present.

    ``status`` is called with a label and a message before installing.
    """
    sysroot = get_sysroot()
    if (sysroot / "lib" / "rustlib" / TARGET).exists():
        return

    if os.environ.get("RUSTUP_TOOLCHAIN") is None:
        raise TargetError(
            f"failed to find the `{TARGET}` target "
            "and `rustup` is not available. If you're using rustup "
            "make sure that it's correctly installed; if not, make sure to "
            f"install the `{TARGET}` target before using this command"
        )

    status("Installing", f"{TARGET} target")

    try:
        result = subprocess.run(["rustup", "target", "add", TARGET], check=False)
    except OSError as exc:
        raise TargetError(f"failed to execute `rustup`: {exc}") from exc

    if result.returncode != 0:
        raise TargetError(f"failed to install the `{TARGET}` target")