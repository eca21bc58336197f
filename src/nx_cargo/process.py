from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
from collections.abc import Sequence
from pathlib import Path

from nx_cargo.commands import CARGO_BINARY

logger = logging.getLogger(__name__)

BINARY_ENV_VAR = "NX_CARGO_BINARY"


class CargoSpawnError(RuntimeError):
    """The cargo process could not be started at all."""

    def __init__(self, message: str, *, argv: Sequence[str]) -> None:
        super().__init__(message)
        self.argv = list(argv)


class CargoCommandError(RuntimeError):
    """Cargo ran and exited unsuccessfully."""

    def __init__(self, *, argv: Sequence[str], exit_code: int) -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        self.signal_name = _signal_name(exit_code)
        if self.signal_name is not None:
            message = f"Cargo was terminated by {self.signal_name} (exit code {exit_code})"
        else:
            message = f"Cargo failed with exit code {exit_code}"
        super().__init__(message)


def _signal_name(exit_code: int) -> str | None:
    if exit_code >= 0:
        return None
    try:
        return signal.Signals(-exit_code).name
    except ValueError:
        return f"signal {-exit_code}"


def default_cargo_binary() -> str:
    raw = os.environ.get(BINARY_ENV_VAR)
    if raw is not None and raw.strip():
        return raw.strip()
    return CARGO_BINARY


def _resolve_executable(binary: str) -> str:
    p = Path(binary)
    if p.is_absolute():
        return str(p)

    # Anything with a path separator is an explicit path, not a PATH lookup.
    if any(sep in binary for sep in ("/", "\\")) or (os.name == "nt" and ":" in binary):
        return binary

    resolved = shutil.which(binary)
    return resolved if resolved is not None else binary


def format_command(args: Sequence[str], *, binary: str = CARGO_BINARY) -> str:
    return shlex.join([binary, *args])


def run_cargo(args: Sequence[str], *, cwd: Path | str, binary: str | None = None) -> None:
    """
    Run cargo with `args` in `cwd`, inheriting stdin/stdout/stderr.

    Returns on exit code 0. Raises `CargoCommandError` for any other exit status (negative
    codes are signals) and `CargoSpawnError` when the binary cannot be started.
    """

    binary = binary or default_cargo_binary()
    argv = [_resolve_executable(binary), *args]
    logger.info("> %s", format_command(args, binary=binary))

    if not Path(cwd).is_dir():
        raise CargoSpawnError(f"Working directory does not exist: {cwd}", argv=argv)

    try:
        proc = subprocess.run(argv, cwd=str(cwd), check=False)
    except FileNotFoundError as e:
        raise CargoSpawnError(
            f"Could not launch cargo: binary {binary!r} was not found. "
            f"Install Rust (https://rustup.rs) or set {BINARY_ENV_VAR} to the cargo executable.",
            argv=argv,
        ) from e
    except PermissionError as e:
        raise CargoSpawnError(
            f"Could not launch cargo: permission denied for {binary!r}.", argv=argv
        ) from e
    except OSError as e:
        raise CargoSpawnError(f"Failed to execute {binary!r}: {e}", argv=argv) from e

    if proc.returncode != 0:
        raise CargoCommandError(argv=argv, exit_code=proc.returncode)
