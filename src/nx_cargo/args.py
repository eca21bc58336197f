from __future__ import annotations

import logging
from collections.abc import Callable

from nx_cargo.options import CargoOptions
from nx_cargo.workspace import ExecutorContext

logger = logging.getLogger(__name__)

NIGHTLY_TOOLCHAIN = "+nightly"
ALL_FEATURES = "all"


class CargoArgsError(ValueError):
    pass


ArgStep = Callable[[list[str], CargoOptions, ExecutorContext], None]


def _toolchain(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.toolchain:
        args.append(f"+{opts.toolchain}")


def _package_selection(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    # `ctx.project_name` is checked in `parse_cargo_args` before any step runs.
    assert ctx.project_name
    if ctx.target_name == "build" and _project_type(ctx) == "application":
        args.append("--bin")
    else:
        args.append("-p")
    args.append(ctx.project_name)


def _features(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if not opts.features:
        return
    if opts.features == ALL_FEATURES:
        args.append("--all-features")
    else:
        args.extend(["--features", opts.features])


def _no_default_features(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.no_default_features:
        args.append("--no-default-features")


def _target(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.target:
        args.extend(["--target", opts.target])


def _release(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.release:
        args.append("--release")


def _target_dir(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.target_dir:
        args.extend(["--target-dir", opts.target_dir])


def _out_dir(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    """`--out-dir` is unstable, so it forces the nightly toolchain."""
    if not opts.out_dir:
        return

    if not args or not args[0].startswith("+"):
        args.insert(0, NIGHTLY_TOOLCHAIN)
    elif args[0] != NIGHTLY_TOOLCHAIN:
        previous = args[0][1:]
        logger.warning(
            "'outDir' option can only be used with 'nightly' toolchain, "
            "but toolchain '%s' was already specified. Overriding '%s' => 'nightly'.",
            previous,
            previous,
            extra={
                "event": "toolchain_override",
                "toolchain": previous,
                "override": "nightly",
                "project": ctx.project_name,
            },
        )
        args[0] = NIGHTLY_TOOLCHAIN

    args.extend(["-Z", "unstable-options", "--out-dir", opts.out_dir])


def _display(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.verbose:
        args.append("-v")
    if opts.very_verbose:
        args.append("-vv")
    if opts.quiet:
        args.append("-q")


def _message_format(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.message_format:
        args.extend(["--message-format", opts.message_format])


def _manifest(args: list[str], opts: CargoOptions, ctx: ExecutorContext) -> None:
    if opts.locked:
        args.append("--locked")
    if opts.frozen:
        args.append("--frozen")
    if opts.offline:
        args.append("--offline")


# New options get a new step; existing entries keep their position.
ARG_STEPS: tuple[ArgStep, ...] = (
    _toolchain,
    _package_selection,
    _features,
    _no_default_features,
    _target,
    _release,
    _target_dir,
    _out_dir,
    _display,
    _message_format,
    _manifest,
)


def _project_type(ctx: ExecutorContext) -> str | None:
    assert ctx.project_name
    project = ctx.projects.get(ctx.project_name)
    if project is None:
        known = ", ".join(sorted(ctx.projects)) or "<none>"
        raise CargoArgsError(
            f"Project {ctx.project_name!r} is not defined in the workspace (known: {known})."
        )
    return project.project_type


def parse_cargo_args(opts: CargoOptions, ctx: ExecutorContext) -> list[str]:
    """
    Translate executor options into cargo arguments for the context's project.

    Raises `CargoArgsError` without producing any tokens when the context has no project name.
    """

    if not ctx.project_name:
        raise CargoArgsError("Expected project name to be non-null")

    args: list[str] = []
    for step in ARG_STEPS:
        step(args, opts, ctx)
    return args
