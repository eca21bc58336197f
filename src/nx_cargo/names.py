from __future__ import annotations

import re
from dataclasses import dataclass

_SEPARATOR_RUN_RE = re.compile(r"([^a-zA-Z0-9])+(.)?")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z\d]")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z\d])([A-Z])")
_FILE_SEPARATOR_RE = re.compile(r"(?!^[_])[ _]")
_NON_WORD_RE = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class Names:
    name: str
    class_name: str
    property_name: str
    constant_name: str
    file_name: str
    snake_name: str


def to_property_name(s: str) -> str:
    camel = _SEPARATOR_RUN_RE.sub(lambda m: m.group(2).upper() if m.group(2) else "", s)
    camel = _NON_ALNUM_RE.sub("", camel)
    return camel[:1].lower() + camel[1:] if camel[:1].isupper() else camel


def to_class_name(s: str) -> str:
    prop = to_property_name(s)
    return prop[:1].upper() + prop[1:]


def to_file_name(s: str) -> str:
    kebab = _CAMEL_BOUNDARY_RE.sub(r"\1-\2", s).lower()
    return _FILE_SEPARATOR_RE.sub("-", kebab)


def to_constant_name(s: str) -> str:
    normalized = s.lower() if s.upper() == s else s
    return _NON_WORD_RE.sub("_", to_file_name(to_property_name(normalized))).upper()


def cargo_names(name: str) -> Names:
    """Nx-style name variants plus the snake_case form cargo uses for crate modules."""
    constant_name = to_constant_name(name)
    return Names(
        name=name,
        class_name=to_class_name(name),
        property_name=to_property_name(name),
        constant_name=constant_name,
        file_name=to_file_name(name),
        snake_name=constant_name.lower(),
    )
