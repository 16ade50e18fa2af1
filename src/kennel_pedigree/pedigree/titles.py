"""Parsing of the registry's concatenated title strings ("DKCH SECH INTCH")."""
from __future__ import annotations

from dataclasses import dataclass

TITLE_NAMES: dict[str, str] = {
    "DKCH": "Danish Champion",
    "SECH": "Swedish Champion",
    "NOCH": "Norwegian Champion",
    "FINCH": "Finnish Champion",
    "FICH": "Finnish Champion",
    "INTCH": "International Champion",
    "DKJUCH": "Danish Junior Champion",
    "KLBJCH": "Club Junior Champion",
    "KLBCH": "Club Champion",
    "WW": "World Winner",
    "EW": "European Winner",
    "NORDCH": "Nordic Champion",
    "GBCH": "Great Britain Champion",
    "CIB": "International Beauty Champion",
    "DECH": "German Champion",
    "DEVDHCH": "German VDH Champion",
}

# Checked in order; FI must not shadow FIN.
_COUNTRY_PREFIXES: tuple[tuple[str, str], ...] = (
    ("DK", "DK"),
    ("SE", "SE"),
    ("NO", "NO"),
    ("FIN", "FI"),
    ("FI", "FI"),
    ("GB", "GB"),
    ("DE", "DE"),
)

DEFAULT_COUNTRY = "DK"


@dataclass(frozen=True)
class ParsedTitle:
    code: str
    full_name: str | None
    country_code: str


def expand_title_code(code: str) -> str | None:
    return TITLE_NAMES.get(code)


def country_of_title(code: str) -> str:
    for prefix, country in _COUNTRY_PREFIXES:
        if code.startswith(prefix):
            return country
    if "INT" in code:
        return "INT"
    return DEFAULT_COUNTRY


def parse_titles(title_string: str | None) -> list[ParsedTitle]:
    """Split a space separated title string, dropping duplicate codes."""
    if not title_string or not title_string.strip():
        return []
    seen: set[str] = set()
    titles: list[ParsedTitle] = []
    for code in title_string.split():
        if code in seen:
            continue
        seen.add(code)
        titles.append(ParsedTitle(code, expand_title_code(code), country_of_title(code)))
    return titles
