from __future__ import annotations

import logging
from pathlib import Path

import portalocker
from tomlkit import dumps as toml_dumps
from tomlkit import parse as toml_parse
from tomlkit.exceptions import TOMLKitError

from nx_cargo.workspace import CARGO_TOML

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    pass


def _parse(text: str, *, path: Path):
    try:
        return toml_parse(text)
    except TOMLKitError as e:
        raise ManifestError(f"Failed to parse {path}: {e}") from e


def read_workspace_members(workspace_root: Path) -> list[str]:
    manifest_path = workspace_root / CARGO_TOML
    try:
        doc = _parse(manifest_path.read_text(encoding="utf-8"), path=manifest_path)
    except FileNotFoundError as e:
        raise ManifestError(f"Missing workspace manifest: {manifest_path}") from e

    workspace = doc.get("workspace")
    if workspace is None or not isinstance(workspace, dict):
        raise ManifestError(f"Missing/invalid [workspace] table: {manifest_path}")
    members = workspace.get("members")
    if members is None:
        return []
    if not isinstance(members, list):
        raise ManifestError(f"Invalid [workspace].members (expected array): {manifest_path}")
    return [str(m) for m in members]


def update_workspace_members(workspace_root: Path, project_root: str) -> bool:
    """
    Append `project_root` to `[workspace].members` of the root Cargo.toml.

    The read-modify-write happens under an exclusive lock on the manifest, and everything else
    in the document (comments, ordering, formatting) is written back untouched. Returns True
    when the manifest was changed.
    """

    manifest_path = workspace_root / CARGO_TOML
    if not manifest_path.is_file():
        raise ManifestError(f"Missing workspace manifest: {manifest_path}")

    with open(manifest_path, "r+", encoding="utf-8", newline="") as f:
        portalocker.lock(f, portalocker.LOCK_EX)
        try:
            doc = _parse(f.read(), path=manifest_path)

            workspace = doc.get("workspace")
            if workspace is None or not isinstance(workspace, dict):
                raise ManifestError(f"Missing/invalid [workspace] table: {manifest_path}")

            members = workspace.get("members")
            if members is None:
                logger.warning(
                    "%s has no [workspace].members array; %s was not added.",
                    manifest_path,
                    project_root,
                )
                return False
            if not isinstance(members, list):
                raise ManifestError(
                    f"Invalid [workspace].members (expected array): {manifest_path}"
                )
            if project_root in [str(m) for m in members]:
                logger.debug("%s is already a workspace member", project_root)
                return False

            members.append(project_root)
            f.seek(0)
            f.truncate()
            f.write(toml_dumps(doc))
        finally:
            portalocker.unlock(f)

    logger.info("Added %s to %s workspace members", project_root, manifest_path)
    return True
