from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tomlkit import parse as toml_parse
from tomlkit.exceptions import TOMLKitError

logger = logging.getLogger(__name__)

NX_JSON = "nx.json"
WORKSPACE_JSON = "workspace.json"
PROJECT_JSON = "project.json"
CARGO_TOML = "Cargo.toml"

_DEFAULT_APPS_DIR = "apps"
_DEFAULT_LIBS_DIR = "libs"
_SKIPPED_DIRS: frozenset[str] = frozenset({"node_modules", "target", ".git", "dist", ".nx"})


class WorkspaceError(RuntimeError):
    pass


@dataclass(frozen=True)
class WorkspaceLayout:
    apps_dir: str = _DEFAULT_APPS_DIR
    libs_dir: str = _DEFAULT_LIBS_DIR


@dataclass(frozen=True)
class ProjectConfiguration:
    name: str
    root: str
    project_type: str | None = None
    targets: dict[str, dict[str, Any]] = field(default_factory=dict)
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExecutorContext:
    """What an executor knows about the invocation: where, which project, which target."""

    root: Path
    project_name: str | None = None
    target_name: str | None = None
    configuration_name: str | None = None
    projects: Mapping[str, ProjectConfiguration] = field(default_factory=dict)


def _load_json_object(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise WorkspaceError(f"Failed to read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise WorkspaceError(f"Failed to parse JSON in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise WorkspaceError(f"Expected a JSON object in {path}, got {type(raw).__name__}.")
    return raw


def _has_cargo_workspace(manifest_path: Path) -> bool:
    try:
        doc = toml_parse(manifest_path.read_text(encoding="utf-8"))
    except (OSError, TOMLKitError):
        return False
    return isinstance(doc.get("workspace"), dict)


def find_workspace_root(start: Path) -> Path:
    """
    The nearest ancestor of `start` holding `nx.json`, or failing that the nearest one whose
    `Cargo.toml` declares a `[workspace]` table. Crate manifests never count as a root.
    """

    cur = start.resolve()
    candidates = [cur, *cur.parents]
    for candidate in candidates:
        if (candidate / NX_JSON).is_file():
            return candidate
    for candidate in candidates:
        manifest_path = candidate / CARGO_TOML
        if manifest_path.is_file() and _has_cargo_workspace(manifest_path):
            return candidate
    raise WorkspaceError(
        f"Could not find a workspace root above {start}. "
        "Pass --workspace-root (a directory with nx.json or a [workspace] Cargo.toml)."
    )


def get_workspace_layout(root: Path) -> WorkspaceLayout:
    nx_json_path = root / NX_JSON
    if not nx_json_path.exists():
        return WorkspaceLayout()

    nx_json = _load_json_object(nx_json_path)
    layout = nx_json.get("workspaceLayout")
    if layout is None:
        return WorkspaceLayout()
    if not isinstance(layout, dict):
        raise WorkspaceError(f"Invalid workspaceLayout in {nx_json_path} (expected object).")

    apps_dir = layout.get("appsDir", _DEFAULT_APPS_DIR)
    libs_dir = layout.get("libsDir", _DEFAULT_LIBS_DIR)
    for key, value in (("appsDir", apps_dir), ("libsDir", libs_dir)):
        if not isinstance(value, str) or not value.strip():
            raise WorkspaceError(f"Invalid workspaceLayout.{key} in {nx_json_path}.")
    return WorkspaceLayout(apps_dir=apps_dir.strip("/"), libs_dir=libs_dir.strip("/"))


def _project_from_json(data: dict[str, Any], *, root: str, source: Path) -> ProjectConfiguration:
    name = data.get("name")
    if name is None:
        name = Path(root).name
    if not isinstance(name, str) or not name.strip():
        raise WorkspaceError(f"Invalid project name in {source}.")

    project_type = data.get("projectType")
    if project_type is not None and project_type not in {"application", "library"}:
        raise WorkspaceError(
            f"Unsupported projectType={project_type!r} in {source} "
            "(expected 'application' or 'library')."
        )

    targets = data.get("targets") or {}
    if not isinstance(targets, dict):
        raise WorkspaceError(f"Invalid targets in {source} (expected object).")

    tags = data.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise WorkspaceError(f"Invalid tags in {source} (expected list of strings).")

    return ProjectConfiguration(
        name=name,
        root=root,
        project_type=project_type,
        targets=targets,
        tags=tuple(tags),
    )


def _iter_project_json_files(root: Path) -> list[Path]:
    out: list[Path] = []
    pending = [root]
    while pending:
        cur = pending.pop()
        try:
            children = sorted(cur.iterdir())
        except OSError:
            continue
        for child in children:
            # Symlinked directories are not followed.
            if child.is_symlink() and child.is_dir():
                continue
            if child.is_dir():
                if child.name in _SKIPPED_DIRS:
                    continue
                pending.append(child)
            elif child.name == PROJECT_JSON:
                out.append(child)
    return sorted(out)


def load_projects(root: Path) -> dict[str, ProjectConfiguration]:
    """
    Discover the Nx projects of a workspace.

    `workspace.json` entries are read first (either inline objects or a path to the project
    root); every `project.json` below the root is then added. A name defined twice is an error.
    """

    projects: dict[str, ProjectConfiguration] = {}

    def _add(project: ProjectConfiguration, source: Path) -> None:
        existing = projects.get(project.name)
        if existing is not None and existing.root != project.root:
            raise WorkspaceError(
                f"Duplicate project name {project.name!r}: {existing.root} and {project.root} "
                f"(while reading {source})."
            )
        projects[project.name] = project

    workspace_json_path = root / WORKSPACE_JSON
    if workspace_json_path.exists():
        workspace_json = _load_json_object(workspace_json_path)
        entries = workspace_json.get("projects") or {}
        if not isinstance(entries, dict):
            raise WorkspaceError(f"Invalid projects in {workspace_json_path} (expected object).")
        for name, entry in entries.items():
            if isinstance(entry, str):
                source = root / entry / PROJECT_JSON
                data = _load_json_object(source)
                project_root = entry
            elif isinstance(entry, dict):
                source = workspace_json_path
                data = dict(entry)
                project_root = data.get("root")
                if not isinstance(project_root, str):
                    raise WorkspaceError(f"Missing root for project {name!r} in {source}.")
            else:
                raise WorkspaceError(
                    f"Invalid entry for project {name!r} in {workspace_json_path}."
                )
            data.setdefault("name", name)
            _add(_project_from_json(data, root=project_root, source=source), source)

    known_roots = {project.root for project in projects.values()}
    for project_json_path in _iter_project_json_files(root):
        rel_root = project_json_path.parent.relative_to(root).as_posix()
        if rel_root == ".":
            rel_root = ""
        if rel_root in known_roots:
            continue
        data = _load_json_object(project_json_path)
        _add(_project_from_json(data, root=rel_root, source=project_json_path), project_json_path)

    logger.debug("Discovered %d projects under %s", len(projects), root)
    return projects


def resolve_target_options(
    project: ProjectConfiguration,
    target_name: str,
    configuration_name: str | None = None,
) -> dict[str, Any]:
    """Merge a target's `options` with the selected entry of its `configurations`."""
    target = project.targets.get(target_name)
    if target is None:
        raise WorkspaceError(f"Project {project.name!r} has no target {target_name!r}.")
    if not isinstance(target, dict):
        raise WorkspaceError(f"Invalid target {target_name!r} in project {project.name!r}.")

    options = target.get("options") or {}
    if not isinstance(options, dict):
        raise WorkspaceError(f"Invalid options for {project.name}:{target_name} (expected object).")
    merged = dict(options)

    if configuration_name is None:
        configuration_name = target.get("defaultConfiguration")
    if configuration_name is not None:
        configurations = target.get("configurations") or {}
        if not isinstance(configurations, dict) or configuration_name not in configurations:
            raise WorkspaceError(
                f"Unknown configuration {configuration_name!r} for {project.name}:{target_name}."
            )
        overrides = configurations[configuration_name] or {}
        if not isinstance(overrides, dict):
            raise WorkspaceError(
                f"Invalid configuration {configuration_name!r} for {project.name}:{target_name}."
            )
        merged.update(overrides)
    return merged


def build_executor_context(
    root: Path,
    *,
    project_name: str | None,
    target_name: str | None,
    configuration_name: str | None = None,
    projects: Mapping[str, ProjectConfiguration] | None = None,
) -> ExecutorContext:
    return ExecutorContext(
        root=root,
        project_name=project_name,
        target_name=target_name,
        configuration_name=configuration_name,
        projects=dict(projects) if projects is not None else load_projects(root),
    )
