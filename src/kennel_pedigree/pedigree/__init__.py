"""Lineage paths, title parsing and ancestor-tree reconstruction."""
from __future__ import annotations

from .paths import (
    PedigreeSide,
    child_path,
    describe_path,
    generation_of,
    is_ancestor_path,
    label_of,
    parent_path,
    relationship_kind_of,
    sex_of,
    side_of,
    validate_path,
)
from .titles import ParsedTitle, parse_titles
from .tree import AncestorCard, TreeBuilder, TreeNode

__all__ = [
    "PedigreeSide",
    "child_path",
    "describe_path",
    "generation_of",
    "is_ancestor_path",
    "label_of",
    "parent_path",
    "relationship_kind_of",
    "sex_of",
    "side_of",
    "validate_path",
    "ParsedTitle",
    "parse_titles",
    "AncestorCard",
    "TreeBuilder",
    "TreeNode",
]
