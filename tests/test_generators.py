from __future__ import annotations

import json
import tomllib
from pathlib import Path

import pytest

from nx_cargo.generators import (
    GeneratorError,
    application_generator,
    init_generator,
    library_generator,
    normalize_generator_options,
)
from nx_cargo.manifest import read_workspace_members
from nx_cargo.workspace import load_projects


def _init(root: Path) -> None:
    init_generator(root)


def test_normalize_keeps_valid_names(tmp_path: Path) -> None:
    opts = normalize_generator_options("application", tmp_path, name="my-app")
    assert opts.project_name == "my-app"
    assert opts.module_name == "my_app"
    assert opts.project_directory == "my-app"
    assert opts.project_root == "apps/my-app"
    assert opts.parsed_tags == ()
    assert opts.edition == 2021


def test_normalize_converts_invalid_names(tmp_path: Path) -> None:
    opts = normalize_generator_options(
        "library",
        tmp_path,
        name="My Lib",
        directory="Shared Stuff",
        tags="scope:shared, type:lib",
        edition=2018,
    )
    assert opts.project_name == "my_lib"
    assert opts.project_directory == "shared-stuff/my-lib"
    assert opts.project_root == "libs/shared-stuff/my-lib"
    assert opts.parsed_tags == ("scope:shared", "type:lib")
    assert opts.edition == 2018


def test_normalize_uses_workspace_layout(tmp_path: Path) -> None:
    (tmp_path / "nx.json").write_text(
        json.dumps({"workspaceLayout": {"appsDir": "bins", "libsDir": "crates"}}),
        encoding="utf-8",
    )
    assert normalize_generator_options("application", tmp_path, name="a").project_root == "bins/a"
    assert normalize_generator_options("library", tmp_path, name="b").project_root == "crates/b"


def test_normalize_rejects_unknown_edition(tmp_path: Path) -> None:
    with pytest.raises(GeneratorError, match="edition"):
        normalize_generator_options("library", tmp_path, name="x", edition=2019)


def test_init_generator_creates_manifest_and_gitignore(tmp_path: Path) -> None:
    created = init_generator(tmp_path)

    assert tmp_path / "Cargo.toml" in created
    data = tomllib.loads((tmp_path / "Cargo.toml").read_text(encoding="utf-8"))
    assert data["workspace"]["members"] == []
    assert data["profile"]["release"]["lto"] is True
    assert "/target" in (tmp_path / ".gitignore").read_text(encoding="utf-8").splitlines()


def test_init_generator_is_idempotent(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("node_modules", encoding="utf-8")
    init_generator(tmp_path)
    assert init_generator(tmp_path) == []
    assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == "node_modules\n/target\n"


def test_application_generator(tmp_path: Path) -> None:
    _init(tmp_path)

    opts = application_generator(tmp_path, name="api", tags="scope:server")

    crate = tmp_path / "apps" / "api"
    cargo = tomllib.loads((crate / "Cargo.toml").read_text(encoding="utf-8"))
    assert cargo["package"]["name"] == "api"
    assert cargo["package"]["edition"] == "2021"
    assert "fn main()" in (crate / "src" / "main.rs").read_text(encoding="utf-8")

    project = json.loads((crate / "project.json").read_text(encoding="utf-8"))
    assert project["name"] == "api"
    assert project["projectType"] == "application"
    assert project["tags"] == ["scope:server"]
    assert project["targets"]["build"]["executor"] == "nx-cargo:build"
    assert project["targets"]["lint"]["executor"] == "nx-cargo:lint"
    assert project["targets"]["run"]["executor"] == "nx-cargo:run"

    assert read_workspace_members(tmp_path) == [opts.project_root]
    assert load_projects(tmp_path)["api"].project_type == "application"


def test_library_generator(tmp_path: Path) -> None:
    _init(tmp_path)

    library_generator(tmp_path, name="data-model", directory="shared")

    crate = tmp_path / "libs" / "shared" / "data-model"
    lib_rs = (crate / "src" / "lib.rs").read_text(encoding="utf-8")
    assert "pub fn data_model() -> String" in lib_rs
    project = json.loads((crate / "project.json").read_text(encoding="utf-8"))
    assert "run" not in project["targets"]
    assert project["projectType"] == "library"
    assert read_workspace_members(tmp_path) == ["libs/shared/data-model"]


def test_generator_refuses_existing_destination(tmp_path: Path) -> None:
    _init(tmp_path)
    library_generator(tmp_path, name="core")
    with pytest.raises(GeneratorError, match="already exists"):
        library_generator(tmp_path, name="core")


def test_generator_requires_workspace_manifest(tmp_path: Path) -> None:
    with pytest.raises(GeneratorError, match="generate init"):
        application_generator(tmp_path, name="api")
    assert not (tmp_path / "apps").exists()
