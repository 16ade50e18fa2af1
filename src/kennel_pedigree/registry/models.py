"""Pydantic models for the registry's pedigree-tree payload.

The registry speaks Norwegian field names; aliases map them onto our names.
Absent string fields arrive as ``null`` and are normalized to "".
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from kennel_pedigree.pedigree.titles import ParsedTitle, parse_titles


class RegistryAncestor(BaseModel):
    """One record of ``hunder``: an ancestor at a registry-native path."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    path: str = Field(default="", alias="sti")
    registry_id: str = Field(default="", alias="hundId")
    name: str = Field(default="", alias="navn")
    titles: str = Field(default="", alias="tittel")
    color: str = Field(default="", alias="farge")

    # Health-test codes, kept as raw strings
    hd: str = ""
    ad: str = ""
    ocd: str = ""
    ryg: str = ""
    foreign_back: str = Field(default="", alias="udlRyg")
    patella: str = ""

    @field_validator(
        "path", "registry_id", "name", "titles", "color",
        "hd", "ad", "ocd", "ryg", "foreign_back", "patella",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @property
    def generation(self) -> int:
        return len(self.path)

    @property
    def is_root(self) -> bool:
        """The record for the dog itself (empty path)."""
        return self.path == ""

    @property
    def parsed_titles(self) -> list[ParsedTitle]:
        return parse_titles(self.titles)


class PedigreeTreePayload(BaseModel):
    """Response body of the pedigree-tree endpoint."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    ancestors: list[RegistryAncestor] = Field(default_factory=list, alias="hunder")
    sire_side: list[RegistryAncestor] = Field(default_factory=list, alias="hunderFarSide")
    dam_side: list[RegistryAncestor] = Field(default_factory=list, alias="hunderMorSide")
    pedigree_generations: int | None = Field(default=None, alias="antallGenerasjonerStamtavle")
    inbreeding_generations: int | None = Field(
        default=None, alias="antallGenerasjonerInnavlsberegning"
    )
    inbreeding_coefficient: float | None = Field(default=None, alias="innavlKoeffisient")
    inbreeding_percent: str | None = Field(default=None, alias="innavlKoeffisientProsent")
    date: str | None = Field(default=None, alias="dato")

    @field_validator("ancestors", "sire_side", "dam_side", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("inbreeding_percent", "date", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    def non_root_ancestors(self) -> list[RegistryAncestor]:
        return [a for a in self.ancestors if not a.is_root]
