from __future__ import annotations

import difflib
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class OptionsError(ValueError):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class CargoOptions:
    """
    Executor options shared by every cargo-backed target.

    Field names are snake_case; `from_mapping` also accepts the camelCase keys used in
    Nx `project.json` target options.
    """

    # Feature selection
    features: str | None = None
    no_default_features: bool = False
    # Compilation
    toolchain: str | None = None
    target: str | None = None
    release: bool = False
    # Output
    target_dir: str | None = None
    out_dir: str | None = None
    # Display
    verbose: bool = False
    very_verbose: bool = False
    quiet: bool = False
    message_format: str | None = None
    # Manifest
    locked: bool = False
    frozen: bool = False
    offline: bool = False
    # Executor behaviour
    watch: bool = False
    args: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, strict: bool = False) -> CargoOptions:
        return parse_options(raw, strict=strict)

    def merged(self, raw: Mapping[str, Any], *, strict: bool = False) -> CargoOptions:
        """Return a copy with the keys present in `raw` overriding this record."""
        values = _coerce_known(raw, strict=strict)
        return replace(self, **values)


_BOOL_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(CargoOptions) if f.type in ("bool", bool)
)
_STR_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(CargoOptions) if f.type in ("str | None",)
)

_CAMEL_ALIASES: dict[str, str] = {
    "noDefaultFeatures": "no_default_features",
    "targetDir": "target_dir",
    "outDir": "out_dir",
    "veryVerbose": "very_verbose",
    "messageFormat": "message_format",
}

KNOWN_OPTION_KEYS: tuple[str, ...] = tuple(
    sorted({f.name for f in fields(CargoOptions)} | set(_CAMEL_ALIASES))
)


def _canonical_key(key: str) -> str | None:
    if key in _CAMEL_ALIASES:
        return _CAMEL_ALIASES[key]
    normalized = key.replace("-", "_")
    if normalized in _BOOL_FIELDS or normalized in _STR_FIELDS or normalized == "args":
        return normalized
    return None


def _coerce_value(name: str, value: Any) -> Any:
    if name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise OptionsError(
            f"Option {name!r} expects a boolean, got {type(value).__name__}.",
            details={"option": name, "value": value},
        )
    if name in _STR_FIELDS:
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value
        raise OptionsError(
            f"Option {name!r} expects a string, got {type(value).__name__}.",
            details={"option": name, "value": value},
        )
    # args
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, Iterable) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise OptionsError(
        "Option 'args' expects a string or a list of strings.",
        details={"option": "args", "value": value},
    )


def _report_unknown(unknown: list[str], *, strict: bool) -> None:
    suggestions: dict[str, str] = {}
    for key in unknown:
        close = difflib.get_close_matches(key, KNOWN_OPTION_KEYS, n=1, cutoff=0.8)
        if close:
            suggestions[key] = close[0]

    if strict:
        rendered = ", ".join(
            f"{key} (did you mean {suggestions[key]!r}?)" if key in suggestions else key
            for key in unknown
        )
        raise OptionsError(
            f"Unknown cargo options: {rendered}.",
            details={"unknown": unknown, "suggestions": suggestions},
        )

    for key, suggestion in suggestions.items():
        logger.warning(
            "Ignoring unknown option %r; did you mean %r?",
            key,
            suggestion,
            extra={"event": "unknown_option", "option": key, "suggestion": suggestion},
        )


def _coerce_known(raw: Mapping[str, Any], *, strict: bool) -> dict[str, Any]:
    values: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in raw.items():
        if not isinstance(key, str):
            raise OptionsError(f"Option keys must be strings, got {type(key).__name__}.")
        name = _canonical_key(key)
        if name is None:
            unknown.append(key)
            continue
        values[name] = _coerce_value(name, value)
    if unknown:
        _report_unknown(sorted(unknown), strict=strict)
    return values


def parse_options(raw: Mapping[str, Any] | None, *, strict: bool = False) -> CargoOptions:
    """
    Build a `CargoOptions` record from a loosely-typed mapping.

    Unrecognized keys are ignored. A key that looks like a misspelling of a known option is
    logged as a warning. With `strict=True` every unrecognized key raises `OptionsError`.
    """

    if raw is None:
        return CargoOptions()
    if not isinstance(raw, Mapping):
        raise OptionsError(f"Expected a mapping of options, got {type(raw).__name__}.")
    return CargoOptions(**_coerce_known(raw, strict=strict))


def load_options_file(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise OptionsError(f"Failed to read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise OptionsError(f"Failed to parse YAML in {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise OptionsError(f"Expected a YAML mapping in {path}, got {type(raw).__name__}.")
    return raw


def parse_set_overrides(items: Iterable[str]) -> dict[str, Any]:
    """Parse `key=value` strings. Boolean options accept `true`/`false`."""
    out: dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise OptionsError(f"Invalid --set value (expected key=value): {item}")
        if key in out:
            raise OptionsError(f"Duplicate --set key: {key}")
        out[key] = value
    return out
