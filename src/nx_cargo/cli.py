from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from nx_cargo import __version__
from nx_cargo.args import CargoArgsError
from nx_cargo.executors import run_executor
from nx_cargo.generators import (
    GeneratorError,
    application_generator,
    init_generator,
    library_generator,
)
from nx_cargo.manifest import ManifestError
from nx_cargo.options import (
    CargoOptions,
    OptionsError,
    load_options_file,
    parse_set_overrides,
)
from nx_cargo.process import CargoSpawnError, default_cargo_binary, format_command
from nx_cargo.workspace import (
    WorkspaceError,
    build_executor_context,
    find_workspace_root,
    resolve_target_options,
)

LOG_LEVEL_ENV_VAR = "NX_CARGO_LOG_LEVEL"

_DOCTOR_BINARIES: tuple[str, ...] = ("cargo", "cargo-clippy", "cargo-watch", "cargo-nextest")


def _eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nx-cargo",
        description="Run cargo for Nx workspace projects and scaffold Rust crates.",
    )
    parser.add_argument("--version", action="store_true", help="Print package version and exit.")
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Logging level (default: ${LOG_LEVEL_ENV_VAR} or INFO).",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("version", help="Print package version.")

    doctor = subparsers.add_parser("doctor", help="Check cargo and its plugins on PATH.")
    doctor.add_argument("--json", action="store_true", help="Emit machine-readable JSON.")

    exec_p = subparsers.add_parser("exec", help="Run a cargo executor for a project target.")
    exec_p.add_argument("executor", help="Executor id, e.g. nx-cargo:build or test.")
    exec_p.add_argument("--project", required=True, help="Nx project name.")
    exec_p.add_argument(
        "--target",
        default=None,
        help="Nx target name (defaults to the executor action).",
    )
    exec_p.add_argument("--configuration", "-c", default=None, help="Target configuration name.")
    exec_p.add_argument("--options-file", type=Path, default=None, help="YAML file of options.")
    exec_p.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override an option (repeatable).",
    )
    exec_p.add_argument("--strict", action="store_true", help="Reject unknown option keys.")
    exec_p.add_argument("--dry-run", action="store_true", help="Print the cargo command only.")
    exec_p.add_argument("--workspace-root", type=Path, default=None)

    gen = subparsers.add_parser("generate", help="Scaffold the workspace or a new crate.")
    gen.add_argument("generator", choices=["init", "application", "library"])
    gen.add_argument("name", nargs="?", default=None)
    gen.add_argument("--directory", default=None, help="Subdirectory under apps/ or libs/.")
    gen.add_argument("--tags", default=None, help="Comma-separated project tags.")
    gen.add_argument("--edition", type=int, default=None, help="Rust edition (default 2021).")
    gen.add_argument("--workspace-root", type=Path, default=None)
    return parser


def _configure_logging(level_name: str | None) -> None:
    raw = level_name or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO"
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(message)s", stream=sys.stderr)


def _doctor_payload() -> dict[str, Any]:
    binaries = {name: shutil.which(name) for name in _DOCTOR_BINARIES}
    available = [name for name, resolved in binaries.items() if isinstance(resolved, str)]
    missing = [name for name, resolved in binaries.items() if resolved is None]
    return {
        "nx_cargo_version": __version__,
        "binaries": binaries,
        "available": available,
        "missing": missing,
    }


def _print_doctor(payload: dict[str, Any], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    print(f"nx-cargo version: {payload['nx_cargo_version']}")
    binaries = payload.get("binaries")
    if not isinstance(binaries, dict):
        return
    for name in _DOCTOR_BINARIES:
        value = binaries.get(name)
        rendered = value if isinstance(value, str) else "<missing>"
        print(f"{name}: {rendered}")


def _workspace_root(raw: Path | None) -> Path:
    if raw is not None:
        return raw.resolve()
    return find_workspace_root(Path.cwd())


def _cmd_exec(args: argparse.Namespace) -> int:
    root = _workspace_root(args.workspace_root)
    target_name = args.target or args.executor.split(":")[-1]
    ctx = build_executor_context(
        root,
        project_name=args.project,
        target_name=target_name,
        configuration_name=args.configuration,
    )

    raw_options: dict[str, Any] = {}
    project = ctx.projects.get(args.project)
    if project is not None and target_name in project.targets:
        raw_options.update(resolve_target_options(project, target_name, ctx.configuration_name))
    if args.options_file is not None:
        raw_options.update(load_options_file(args.options_file))
    raw_options.update(parse_set_overrides(args.overrides))

    opts = CargoOptions.from_mapping(raw_options, strict=bool(args.strict))
    result = run_executor(args.executor, opts, ctx, dry_run=bool(args.dry_run))
    if args.dry_run:
        print(format_command(result.argv, binary=default_cargo_binary()))
        return 0
    if result.success:
        return 0
    return result.exit_code if result.exit_code and result.exit_code > 0 else 1


def _cmd_generate(args: argparse.Namespace) -> int:
    if args.workspace_root is not None:
        root = args.workspace_root.resolve()
    elif args.generator == "init":
        # A fresh workspace has no root markers yet.
        try:
            root = find_workspace_root(Path.cwd())
        except WorkspaceError:
            root = Path.cwd().resolve()
    else:
        root = find_workspace_root(Path.cwd())
    if args.generator == "init":
        for path in init_generator(root):
            print(f"CREATE {path.relative_to(root).as_posix()}")
        return 0

    if not args.name:
        raise GeneratorError(f"`generate {args.generator}` requires a NAME.")
    generate = application_generator if args.generator == "application" else library_generator
    opts = generate(
        root,
        name=args.name,
        directory=args.directory,
        tags=args.tags,
        edition=args.edition,
    )
    print(f"Created {args.generator} {opts.project_name} at {opts.project_root}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.log_level)

    if args.version or args.command == "version":
        print(__version__)
        return 0

    if args.command == "doctor":
        _print_doctor(_doctor_payload(), as_json=bool(args.json))
        return 0

    try:
        if args.command == "exec":
            return _cmd_exec(args)
        if args.command == "generate":
            return _cmd_generate(args)
    except (
        CargoArgsError,
        OptionsError,
        WorkspaceError,
        ManifestError,
        GeneratorError,
    ) as e:
        _eprint(f"error: {e}")
        return 2
    except CargoSpawnError as e:
        _eprint(f"error: {e}")
        return 127

    parser.print_help()
    return 0
