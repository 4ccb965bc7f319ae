"""
core/tables.py -- Substitution tables for the transform engine.

A SubstitutionTable maps single characters to replacement glyph sequences.
Several revisions of the product shipped different mappings and none of them
is canonical, so the table is configuration: pick a built-in by name or point
SUBSTITUTION_TABLE at a JSON file.

JSON file formats accepted by load_table():
    {"a": "@", "b": "6"}                                  -- flat mapping
    {"name": "mine", "case_sensitive": false,
     "mapping": {"a": "@", "b": "6"}}                      -- with options

Layer rule: no imports from api/, web/, auth/, or vault/.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType


@dataclass(frozen=True)
class SubstitutionTable:
    """Immutable character -> replacement mapping with identity fallback.

    With case_sensitive=False keys are folded to lower case at construction
    and lookups fold the input character the same way.
    """

    name: str
    mapping: Mapping[str, str] = field(default_factory=dict)
    case_sensitive: bool = True

    def __post_init__(self) -> None:
        folded: dict[str, str] = {}
        for key, value in self.mapping.items():
            if not isinstance(key, str) or len(key) != 1:
                raise ValueError(f"Table {self.name!r}: key {key!r} must be a single character")
            if not isinstance(value, str):
                raise ValueError(f"Table {self.name!r}: replacement for {key!r} must be a string")
            folded[key if self.case_sensitive else key.lower()] = value
        object.__setattr__(self, "mapping", MappingProxyType(folded))

    def lookup(self, char: str) -> str:
        key = char if self.case_sensitive else char.lower()
        return self.mapping.get(key, char)

    def apply(self, text: str) -> str:
        """Replace every character of text in order. Absent keys pass through."""
        return "".join(self.lookup(ch) for ch in text)

    def __len__(self) -> int:
        return len(self.mapping)


# ---------------------------------------------------------------------------
# Built-in tables
# ---------------------------------------------------------------------------

# Table used by the password generator page.
_CLASSIC = {
    "A": "/-\\", "a": "@",
    "B": "I3", "b": "6",
    "C": "(", "c": "^",
    "D": "|)", "d": "-:-",
    "E": "8", "e": "8",
    "F": "1=", "f": "4",
    "G": "(_;",
    "H": "i-!", "h": "#",
    "I": "][",
    "J": "_7",
    "K": "/<",
    "L": "I_", "l": "1",
    "M": "[\\/]", "m": "7+5",
    "N": "!\\i", "n": "9",
    "O": "{}", "o": "o-",
    "P": "\\o", "p": "%",
    "Q": "0_", "q": "o-",
    "R": "|-\\_", "r": "i'",
    "S": "5", "s": "$",
    "T": "|", "t": "-/-",
    "U": "6_9", "u": "_",
    "V": "\\/",
    "W": "\\||",
    "X": "><", "x": "(+)",
    "Y": ">-",
    "Z": '"/_',
    "&": "8",
    " ": "_",
}  # fmt: skip

# Table used by the confidential text converter. Covers both cases fully.
_CONVERTER = {
    "A": "/-|", "a": "@", "B": "I3", "b": "`+", "C": "(", "c": "^", "D": "|)", "d": "-:-",
    "E": "8", "e": "=", "F": "1=", "f": "4", "G": "(_;", "g": " ", "H": "i-!", "h": "#",
    "I": "][", "i": "][", "J": "_7", "K": "/<", "k": "k", "L": "I_", "l": "1", "M": "[|/]",
    "m": "1+6+5", "N": "!/i", "n": "9", "O": "{}", "o": "5", "P": "o/", "p": "%",
    "Q": "0_", "q": "o-", "R": "_/-|", "r": "i`", "S": "/", "s": "$", "T": '"|"',
    "t": "-/-", "U": "|_/", "u": "_", "V": "|/", "v": ";/", "W": "|||", "w": "8",
    "X": "><", "x": "(+)", "Y": ">-", "y": "7", "Z": '"/_', "z": "-|.",
}  # fmt: skip

BUILTIN_TABLES: dict[str, SubstitutionTable] = {
    "classic": SubstitutionTable("classic", _CLASSIC),
    "converter": SubstitutionTable("converter", _CONVERTER),
    # Case-folded variant: upper-case input uses the lower-case glyphs.
    "lowercase": SubstitutionTable(
        "lowercase",
        {k: v for k, v in _CONVERTER.items() if k.islower()},
        case_sensitive=False,
    ),
}


def get_table(name: str) -> SubstitutionTable:
    """Return a built-in table by name. Raises KeyError for unknown names."""
    try:
        return BUILTIN_TABLES[name.strip().lower()]
    except KeyError:
        raise KeyError(f"Unknown substitution table {name!r}. Choose from: {', '.join(BUILTIN_TABLES)}") from None


def table_from_dict(data: Mapping, default_name: str = "custom") -> SubstitutionTable:
    """Build a table from either JSON shape described in the module docstring."""
    if "mapping" in data and isinstance(data["mapping"], Mapping):
        return SubstitutionTable(
            name=str(data.get("name") or default_name),
            mapping=data["mapping"],
            case_sensitive=bool(data.get("case_sensitive", True)),
        )
    return SubstitutionTable(name=default_name, mapping=data)


def load_table(spec: str) -> SubstitutionTable:
    """Resolve a table from a built-in name or a path to a JSON file.

    Built-in names win over same-named files in the working directory.
    Raises KeyError if spec is neither, ValueError if the file is malformed.
    """
    if spec.strip().lower() in BUILTIN_TABLES:
        return get_table(spec)

    path = Path(spec).expanduser()
    if not path.is_file():
        return get_table(spec)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Substitution table file '{spec}' is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Substitution table file '{spec}' must contain a JSON object")
    return table_from_dict(data, default_name=path.stem)
