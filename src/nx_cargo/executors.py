from __future__ import annotations

import logging
from dataclasses import dataclass

from nx_cargo.args import CargoArgsError, parse_cargo_args
from nx_cargo.commands import (
    executor_action,
    get_cargo_command_from_executor,
    wrap_with_cargo_watch,
)
from nx_cargo.options import CargoOptions
from nx_cargo.process import CargoCommandError, run_cargo
from nx_cargo.workspace import ExecutorContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutorResult:
    success: bool
    argv: list[str]
    exit_code: int | None = None


def build_executor_command(executor: str, opts: CargoOptions, ctx: ExecutorContext) -> list[str]:
    """Full cargo argument list (without the binary) for an executor invocation."""
    subcommand = get_cargo_command_from_executor(executor)
    if not subcommand:
        raise CargoArgsError(
            f"Unknown executor {executor!r}; expected one of build, test, lint, run, nextest."
        )

    args = parse_cargo_args(opts, ctx)
    # rustup only recognizes `+<toolchain>` as the first argument to cargo.
    if args and args[0].startswith("+"):
        command = [args[0], *subcommand, *args[1:]]
    else:
        command = [*subcommand, *args]
    if opts.args:
        if executor_action(executor) == "run":
            command.extend(["--", *opts.args])
        else:
            logger.warning("Ignoring 'args' for executor %s; it only applies to run.", executor)

    if opts.watch:
        # Spawned without a shell, so cargo-watch gets the command unquoted.
        return wrap_with_cargo_watch(command, quoted=False)
    return command


def run_executor(
    executor: str,
    opts: CargoOptions,
    ctx: ExecutorContext,
    *,
    binary: str | None = None,
    dry_run: bool = False,
) -> ExecutorResult:
    args = build_executor_command(executor, opts, ctx)
    if dry_run:
        return ExecutorResult(success=True, argv=args)

    try:
        run_cargo(args, cwd=ctx.root, binary=binary)
    except CargoCommandError as e:
        logger.error("%s:%s failed: %s", ctx.project_name, ctx.target_name, e)
        return ExecutorResult(success=False, argv=args, exit_code=e.exit_code)
    return ExecutorResult(success=True, argv=args, exit_code=0)
