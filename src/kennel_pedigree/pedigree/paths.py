"""Lineage path codec.

A path is a string over {'0', '1'} read left to right from a descendant:
'0' steps to the father, '1' steps to the mother. "01" is therefore the
father's mother. Generation equals path length, and the last character alone
decides SIRE/DAM and the inferred sex of the dog at that position.

Sex inferred from a path is an approximation used only for placeholders; the
registry's own record of a dog's sex always wins when it is known.
"""
from __future__ import annotations

from enum import Enum

from kennel_pedigree.errors import InvalidPathError
from kennel_pedigree.models.dog import Sex
from kennel_pedigree.models.relationship import RelationshipKind

FATHER = "0"
MOTHER = "1"
_BRANCHES = (FATHER, MOTHER)

_LABELS: dict[str, str] = {
    "0": "Father",
    "1": "Mother",
    "00": "Paternal Grandfather",
    "01": "Paternal Grandmother",
    "10": "Maternal Grandfather",
    "11": "Maternal Grandmother",
    "000": "Great-Grandfather (Father's Father's Father)",
    "001": "Great-Grandmother (Father's Father's Mother)",
    "010": "Great-Grandfather (Father's Mother's Father)",
    "011": "Great-Grandmother (Father's Mother's Mother)",
    "100": "Great-Grandfather (Mother's Father's Father)",
    "101": "Great-Grandmother (Mother's Father's Mother)",
    "110": "Great-Grandfather (Mother's Mother's Father)",
    "111": "Great-Grandmother (Mother's Mother's Mother)",
}


class PedigreeSide(str, Enum):
    """Which parent's line a tree is built for."""
    FATHER = "father"
    MOTHER = "mother"

    @classmethod
    def _missing_(cls, value: object) -> PedigreeSide | None:
        aliases = {
            "paternal": cls.FATHER,
            "sire": cls.FATHER,
            FATHER: cls.FATHER,
            "maternal": cls.MOTHER,
            "dam": cls.MOTHER,
            MOTHER: cls.MOTHER,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None

    @property
    def root_path(self) -> str:
        return FATHER if self is PedigreeSide.FATHER else MOTHER


def validate_path(path: str | None) -> str:
    """Return ``path`` unchanged if it is a non-empty binary string."""
    if not path:
        raise InvalidPathError(path, "empty lineage path")
    if any(ch not in _BRANCHES for ch in path):
        raise InvalidPathError(path, "lineage path must contain only '0' and '1'")
    return path


def generation_of(path: str) -> int:
    return len(validate_path(path))


def relationship_kind_of(path: str) -> RelationshipKind:
    return RelationshipKind.SIRE if validate_path(path)[-1] == FATHER else RelationshipKind.DAM


def sex_of(path: str) -> Sex:
    return Sex.MALE if validate_path(path)[-1] == FATHER else Sex.FEMALE


def label_of(path: str) -> str:
    """Human readable relation name for the dog at ``path``.

    Depths 1-3 are named exactly. Deeper positions fall back to
    "{N}th Generation Grandfather/Grandmother", decided by the final
    character only, so distinct branches at the same depth share a label.
    """
    validate_path(path)
    label = _LABELS.get(path)
    if label is not None:
        return label
    parent = "Grandfather" if path[-1] == FATHER else "Grandmother"
    return f"{len(path)}th Generation {parent}"


def child_path(path: str, branch: str) -> str:
    """Extend ``path`` one generation towards the father ('0') or mother ('1')."""
    if branch not in _BRANCHES:
        raise InvalidPathError(branch, "branch must be '0' or '1'")
    if path:
        validate_path(path)
    return path + branch


def parent_path(path: str) -> str:
    """The position one generation closer to the descendant ('' for a parent)."""
    return validate_path(path)[:-1]


def is_ancestor_path(path: str, of_path: str) -> bool:
    """True when the dog at ``path`` is an ancestor of the dog at ``of_path``.

    ``of_path`` may be '' (the descendant itself).
    """
    validate_path(path)
    if of_path:
        validate_path(of_path)
    return len(path) > len(of_path) and path.startswith(of_path)


def side_of(path: str) -> PedigreeSide:
    return PedigreeSide.FATHER if validate_path(path)[0] == FATHER else PedigreeSide.MOTHER


def describe_path(path: str) -> str:
    """Spell a path out as a chain, e.g. "01" -> "father_mother"."""
    if path == "":
        return "self"
    validate_path(path)
    return "_".join("father" if ch == FATHER else "mother" for ch in path)
