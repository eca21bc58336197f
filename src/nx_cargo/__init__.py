from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

from nx_cargo.args import CargoArgsError, parse_cargo_args
from nx_cargo.commands import get_cargo_command_from_executor, wrap_with_cargo_watch
from nx_cargo.executors import ExecutorResult, run_executor
from nx_cargo.manifest import ManifestError, update_workspace_members
from nx_cargo.names import Names, cargo_names
from nx_cargo.options import CargoOptions, OptionsError, parse_options
from nx_cargo.process import CargoCommandError, CargoSpawnError, run_cargo
from nx_cargo.workspace import ExecutorContext, ProjectConfiguration


def _resolve_version() -> str:
    for distribution_name in ("nx-cargo", "nx_cargo"):
        try:
            return package_version(distribution_name)
        except PackageNotFoundError:
            continue
    return "0+unknown"


__version__ = _resolve_version()

__all__ = [
    "__version__",
    "CargoArgsError",
    "CargoCommandError",
    "CargoOptions",
    "CargoSpawnError",
    "ExecutorContext",
    "ExecutorResult",
    "ManifestError",
    "Names",
    "OptionsError",
    "ProjectConfiguration",
    "cargo_names",
    "get_cargo_command_from_executor",
    "parse_cargo_args",
    "parse_options",
    "run_cargo",
    "run_executor",
    "update_workspace_members",
    "wrap_with_cargo_watch",
]
