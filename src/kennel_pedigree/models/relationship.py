"""Ancestry edge model."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, model_validator


class RelationshipKind(str, Enum):
    SIRE = "SIRE"
    DAM = "DAM"


class PedigreeRelationship(BaseModel):
    """Ancestor ``ancestor_id`` occupies lineage position ``path`` of ``descendant_id``.

    ``relationship_type`` and ``generation`` are derived from ``path``; the
    validator rejects rows where they disagree.
    """
    id: int | None = None
    descendant_id: str
    ancestor_id: str
    relationship_type: RelationshipKind
    generation: int
    path: str

    @model_validator(mode="after")
    def _check_path_invariants(self) -> PedigreeRelationship:
        from kennel_pedigree.pedigree.paths import generation_of, relationship_kind_of

        if self.generation != generation_of(self.path):
            raise ValueError(
                f"generation {self.generation} does not match path {self.path!r}"
            )
        if self.relationship_type != relationship_kind_of(self.path):
            raise ValueError(
                f"relationship_type {self.relationship_type.value} does not match path {self.path!r}"
            )
        return self

    @classmethod
    def from_path(cls, descendant_id: str, ancestor_id: str, path: str) -> PedigreeRelationship:
        from kennel_pedigree.pedigree.paths import generation_of, relationship_kind_of

        return cls(
            descendant_id=descendant_id,
            ancestor_id=ancestor_id,
            relationship_type=relationship_kind_of(path),
            generation=generation_of(path),
            path=path,
        )

    @property
    def key(self) -> tuple[str, str, str, int, str]:
        """Storage uniqueness key."""
        return (
            self.descendant_id,
            self.ancestor_id,
            self.relationship_type.value,
            self.generation,
            self.path,
        )
