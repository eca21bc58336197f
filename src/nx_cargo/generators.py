from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from nx_cargo.manifest import update_workspace_members
from nx_cargo.names import cargo_names, to_file_name
from nx_cargo.workspace import CARGO_TOML, PROJECT_JSON, get_workspace_layout

logger = logging.getLogger(__name__)

ProjectType = Literal["application", "library"]

EXECUTOR_PREFIX = "nx-cargo"
DEFAULT_EDITION = 2021
_SUPPORTED_EDITIONS: frozenset[int] = frozenset({2015, 2018, 2021, 2024})
_VALID_NAME_RE = re.compile(r"^[-_a-zA-Z0-9]+$")

_WORKSPACE_CARGO_TOML = """\
[workspace]
resolver = "2"
members = []

[profile.release]
lto = true
"""


class GeneratorError(RuntimeError):
    pass


@dataclass(frozen=True)
class GeneratorOptions:
    name: str
    project_name: str
    module_name: str
    project_root: str
    project_directory: str
    parsed_tags: tuple[str, ...]
    edition: int


def normalize_generator_options(
    project_type: ProjectType,
    workspace_root: Path,
    *,
    name: str,
    directory: str | None = None,
    tags: str | None = None,
    edition: int | None = None,
) -> GeneratorOptions:
    if not name or not name.strip():
        raise GeneratorError("A project name is required.")
    if project_type not in ("application", "library"):
        raise GeneratorError(f"Unsupported project type: {project_type!r}")

    layout = get_workspace_layout(workspace_root)
    names = cargo_names(name)

    # Only convert project/file name casing if it's invalid.
    valid = bool(_VALID_NAME_RE.match(name))
    project_name = name if valid else names.snake_name
    file_name = name if valid else names.file_name

    root_dir = layout.apps_dir if project_type == "application" else layout.libs_dir
    project_directory = f"{to_file_name(directory)}/{file_name}" if directory else file_name

    parsed_tags = tuple(t.strip() for t in tags.split(",")) if tags else ()
    resolved_edition = DEFAULT_EDITION if edition is None else edition
    if resolved_edition not in _SUPPORTED_EDITIONS:
        allowed = ", ".join(str(e) for e in sorted(_SUPPORTED_EDITIONS))
        raise GeneratorError(
            f"Unsupported Rust edition {resolved_edition} (allowed: {allowed})."
        )

    return GeneratorOptions(
        name=name,
        project_name=project_name,
        module_name=names.snake_name,
        project_root=f"{root_dir}/{project_directory}",
        project_directory=project_directory,
        parsed_tags=parsed_tags,
        edition=resolved_edition,
    )


def _write_new_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline="\n")
    logger.debug("CREATE %s", path)


def init_generator(workspace_root: Path) -> list[Path]:
    """Create the root Cargo workspace manifest and ignore cargo's build output."""
    created: list[Path] = []

    manifest_path = workspace_root / CARGO_TOML
    if manifest_path.exists():
        logger.info("%s already exists; leaving it unchanged", manifest_path)
    else:
        _write_new_file(manifest_path, _WORKSPACE_CARGO_TOML)
        created.append(manifest_path)

    gitignore_path = workspace_root / ".gitignore"
    existing = gitignore_path.read_text(encoding="utf-8") if gitignore_path.exists() else ""
    if "/target" not in existing.splitlines():
        separator = "" if not existing or existing.endswith("\n") else "\n"
        gitignore_path.write_text(
            existing + separator + "/target\n", encoding="utf-8", newline="\n"
        )
        created.append(gitignore_path)

    return created


def _crate_cargo_toml(opts: GeneratorOptions) -> str:
    return (
        "[package]\n"
        f'name = "{opts.project_name}"\n'
        'version = "0.1.0"\n'
        f"edition = \"{opts.edition}\"\n"
        "\n"
        "[dependencies]\n"
    )


_MAIN_RS = """\
fn main() {
    println!("Hello, world!");
}
"""

_LIB_RS_TEMPLATE = """\
pub fn {module_name}() -> String {{
    "{module_name}".into()
}}

#[cfg(test)]
mod tests {{
    use super::*;

    #[test]
    fn it_works() {{
        let result = {module_name}();
        assert_eq!(result, "{module_name}".to_string());
    }}
}}
"""


def _executor(action: str) -> str:
    return f"{EXECUTOR_PREFIX}:{action}"


def _schema_path(project_root: str) -> str:
    depth = len(Path(project_root).parts)
    return "../" * depth + "node_modules/nx/schemas/project-schema.json"


def _project_json(project_type: ProjectType, opts: GeneratorOptions) -> dict[str, Any]:
    targets: dict[str, Any] = {
        "build": {
            "executor": _executor("build"),
            "outputs": ["{options.target-dir}"],
            "options": {"target-dir": f"dist/target/{opts.project_name}"},
            "configurations": {"production": {"release": True}},
        },
        "test": {
            "executor": _executor("test"),
            "outputs": ["{options.target-dir}"],
            "options": {"target-dir": f"dist/target/{opts.project_name}"},
            "configurations": {"production": {"release": True}},
        },
        "lint": {
            "executor": _executor("lint"),
            "outputs": ["{options.target-dir}"],
            "options": {"target-dir": f"dist/target/{opts.project_name}"},
        },
    }
    if project_type == "application":
        targets["run"] = {
            "executor": _executor("run"),
            "options": {"target-dir": f"dist/target/{opts.project_name}"},
            "configurations": {"production": {"release": True}},
        }

    return {
        "name": opts.project_name,
        "$schema": _schema_path(opts.project_root),
        "projectType": project_type,
        "sourceRoot": f"{opts.project_root}/src",
        "targets": targets,
        "tags": list(opts.parsed_tags),
    }


def _generate_crate(
    project_type: ProjectType,
    workspace_root: Path,
    *,
    name: str,
    directory: str | None,
    tags: str | None,
    edition: int | None,
) -> GeneratorOptions:
    opts = normalize_generator_options(
        project_type,
        workspace_root,
        name=name,
        directory=directory,
        tags=tags,
        edition=edition,
    )

    dest_dir = workspace_root / opts.project_root
    if dest_dir.exists():
        raise GeneratorError(f"Destination already exists: {opts.project_root}")
    if not (workspace_root / CARGO_TOML).exists():
        raise GeneratorError(
            f"No {CARGO_TOML} at {workspace_root}. Run `nx-cargo generate init` first."
        )

    _write_new_file(dest_dir / CARGO_TOML, _crate_cargo_toml(opts))
    if project_type == "application":
        _write_new_file(dest_dir / "src" / "main.rs", _MAIN_RS)
    else:
        _write_new_file(
            dest_dir / "src" / "lib.rs",
            _LIB_RS_TEMPLATE.format(module_name=opts.module_name),
        )
    _write_new_file(
        dest_dir / PROJECT_JSON,
        json.dumps(_project_json(project_type, opts), indent=2) + "\n",
    )

    update_workspace_members(workspace_root, opts.project_root)
    logger.info("Created %s %s at %s", project_type, opts.project_name, opts.project_root)
    return opts


def application_generator(
    workspace_root: Path,
    *,
    name: str,
    directory: str | None = None,
    tags: str | None = None,
    edition: int | None = None,
) -> GeneratorOptions:
    return _generate_crate(
        "application", workspace_root, name=name, directory=directory, tags=tags, edition=edition
    )


def library_generator(
    workspace_root: Path,
    *,
    name: str,
    directory: str | None = None,
    tags: str | None = None,
    edition: int | None = None,
) -> GeneratorOptions:
    return _generate_crate(
        "library", workspace_root, name=name, directory=directory, tags=tags, edition=edition
    )
