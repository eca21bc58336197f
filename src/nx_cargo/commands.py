from __future__ import annotations

import shlex
from collections.abc import Sequence

CARGO_BINARY = "cargo"

_EXECUTOR_COMMANDS: dict[str, tuple[str, ...]] = {
    "build": ("build",),
    "test": ("test",),
    "lint": ("clippy",),
    "run": ("run",),
    "nextest": ("nextest", "run"),
}


def executor_action(executor: str) -> str:
    """`nx-cargo:build` => `build`. A bare action is returned unchanged."""
    return executor.split(":")[-1]


def get_cargo_command_from_executor(executor: str) -> list[str]:
    """
    Gets the cargo command to run from an executor. Eg: `nx-cargo:nextest` =>
    `['nextest', 'run']`. Unknown executors yield an empty list.
    """
    return list(_EXECUTOR_COMMANDS.get(executor_action(executor), ()))


def wrap_with_cargo_watch(command: Sequence[str], *, quoted: bool = True) -> list[str]:
    """
    Takes a cargo command and wraps it so that it runs under cargo-watch. Eg:
    ['test', '-p', 'core'] => `['watch', '-cqs', '"cargo test -p core"']`.

    With `quoted=False` the shell command is returned without the surrounding quotes, for
    cargo-watch spawned without an intermediate shell. cargo-watch still hands that string to
    a shell, so each argument is shell-quoted.
    """
    if quoted:
        return ["watch", "-cqs", '"' + " ".join([CARGO_BINARY, *command]) + '"']
    return ["watch", "-cqs", shlex.join([CARGO_BINARY, *command])]
