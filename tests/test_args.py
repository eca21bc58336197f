from __future__ import annotations

import logging
from pathlib import Path

import pytest

from nx_cargo.args import ARG_STEPS, CargoArgsError, parse_cargo_args
from nx_cargo.options import CargoOptions
from nx_cargo.workspace import ExecutorContext, ProjectConfiguration


def _ctx(
    *,
    project_name: str | None = "core",
    target_name: str = "test",
    project_type: str = "library",
) -> ExecutorContext:
    projects = {}
    if project_name:
        projects[project_name] = ProjectConfiguration(
            name=project_name,
            root=f"libs/{project_name}",
            project_type=project_type,
        )
    return ExecutorContext(
        root=Path("/workspace"),
        project_name=project_name,
        target_name=target_name,
        projects=projects,
    )


def test_defaults_select_package_only() -> None:
    assert parse_cargo_args(CargoOptions(), _ctx()) == ["-p", "core"]


def test_missing_project_name_raises_before_any_token() -> None:
    with pytest.raises(CargoArgsError, match="project name"):
        parse_cargo_args(CargoOptions(toolchain="stable", release=True), _ctx(project_name=None))


def test_empty_project_name_is_rejected() -> None:
    with pytest.raises(CargoArgsError):
        parse_cargo_args(CargoOptions(), _ctx(project_name=""))


def test_toolchain_is_prepended() -> None:
    args = parse_cargo_args(CargoOptions(toolchain="1.75.0"), _ctx())
    assert args == ["+1.75.0", "-p", "core"]


def test_build_application_selects_binary() -> None:
    args = parse_cargo_args(
        CargoOptions(), _ctx(target_name="build", project_type="application")
    )
    assert args == ["--bin", "core"]
    assert "-p" not in args


def test_build_library_selects_package() -> None:
    args = parse_cargo_args(CargoOptions(), _ctx(target_name="build", project_type="library"))
    assert args == ["-p", "core"]


def test_non_build_target_on_application_selects_package() -> None:
    args = parse_cargo_args(CargoOptions(), _ctx(target_name="test", project_type="application"))
    assert args == ["-p", "core"]


def test_build_target_for_unknown_project_is_an_input_error() -> None:
    ctx = ExecutorContext(root=Path("/workspace"), project_name="ghost", target_name="build")
    with pytest.raises(CargoArgsError, match="ghost"):
        parse_cargo_args(CargoOptions(), ctx)


def test_all_features_sentinel() -> None:
    args = parse_cargo_args(CargoOptions(features="all"), _ctx())
    assert args == ["-p", "core", "--all-features"]
    assert "--features" not in args


def test_feature_list_is_passed_literally() -> None:
    args = parse_cargo_args(CargoOptions(features="x,y"), _ctx())
    assert args == ["-p", "core", "--features", "x,y"]
    assert "--all-features" not in args


def test_every_option_in_order() -> None:
    opts = CargoOptions(
        toolchain="nightly",
        features="serde",
        no_default_features=True,
        target="wasm32-unknown-unknown",
        release=True,
        target_dir="dist/target",
        out_dir="dist/out",
        verbose=True,
        very_verbose=True,
        quiet=True,
        message_format="json",
        locked=True,
        frozen=True,
        offline=True,
    )
    assert parse_cargo_args(opts, _ctx()) == [
        "+nightly",
        "-p",
        "core",
        "--features",
        "serde",
        "--no-default-features",
        "--target",
        "wasm32-unknown-unknown",
        "--release",
        "--target-dir",
        "dist/target",
        "-Z",
        "unstable-options",
        "--out-dir",
        "dist/out",
        "-v",
        "-vv",
        "-q",
        "--message-format",
        "json",
        "--locked",
        "--frozen",
        "--offline",
    ]


def test_out_dir_without_toolchain_inserts_nightly_first(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="nx_cargo.args"):
        args = parse_cargo_args(CargoOptions(out_dir="out"), _ctx())
    assert args == ["+nightly", "-p", "core", "-Z", "unstable-options", "--out-dir", "out"]
    assert not caplog.records


def test_out_dir_overrides_other_toolchain_with_one_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="nx_cargo.args"):
        args = parse_cargo_args(CargoOptions(toolchain="stable", out_dir="out"), _ctx())

    assert args[0] == "+nightly"
    assert "+stable" not in args
    assert [a for a in args if a.startswith("+")] == ["+nightly"]

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    record = warnings[0]
    assert record.event == "toolchain_override"
    assert record.toolchain == "stable"
    assert "Overriding 'stable' => 'nightly'" in record.getMessage()


def test_out_dir_with_nightly_toolchain_does_not_warn(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="nx_cargo.args"):
        args = parse_cargo_args(CargoOptions(toolchain="nightly", out_dir="out"), _ctx())
    assert args[:3] == ["+nightly", "-p", "core"]
    assert not caplog.records


@pytest.mark.parametrize(
    "opts",
    [
        CargoOptions(),
        CargoOptions(features="all", release=True, target="x86_64-unknown-linux-gnu"),
        CargoOptions(verbose=True, quiet=True, locked=True, offline=True, target_dir="t"),
    ],
)
def test_no_toolchain_token_without_toolchain_or_out_dir(opts: CargoOptions) -> None:
    args = parse_cargo_args(opts, _ctx(target_name="build", project_type="application"))
    assert not any(a.startswith("+") for a in args)


def test_output_is_deterministic() -> None:
    opts = CargoOptions(toolchain="beta", out_dir="o", features="a,b", verbose=True)
    assert parse_cargo_args(opts, _ctx()) == parse_cargo_args(opts, _ctx())


def test_steps_are_plain_functions_in_rule_order() -> None:
    names = [step.__name__ for step in ARG_STEPS]
    assert names[0] == "_toolchain"
    assert names.index("_target_dir") < names.index("_out_dir") < names.index("_display")
    assert names[-1] == "_manifest"
