"""Dog, title and image models."""
from __future__ import annotations

from datetime import date
from enum import Enum
from urllib.parse import quote, unquote

from pydantic import BaseModel, Field


class Sex(str, Enum):
    MALE = "M"
    FEMALE = "F"


class RecordStatus(str, Enum):
    """Whether a dog record was entered in full or created to satisfy an edge."""
    COMPLETE = "COMPLETE"
    PLACEHOLDER = "PLACEHOLDER"


class Title(BaseModel):
    """A title earned by a dog, e.g. DKCH."""
    dog_id: str
    title_code: str
    title_full_name: str | None = None
    country_code: str | None = None
    year_earned: int | None = None


class DogImage(BaseModel):
    dog_id: str
    image_url: str | None = None
    image_public_id: str | None = None
    is_profile: bool = False
    display_order: int = 0

    @property
    def reference(self) -> str | None:
        """Preferred reference: hosted public id first, then the raw URL."""
        return self.image_public_id or self.image_url


class Dog(BaseModel):
    """Individual dog keyed by its external registration number."""
    id: str
    name: str
    nickname: str | None = None
    sex: Sex
    breed_id: int = 1
    birth_date: date | None = None
    death_date: date | None = None
    is_deceased: bool = False
    color: str | None = None
    record_status: RecordStatus = RecordStatus.COMPLETE
    titles: list[Title] = Field(default_factory=list)

    @property
    def is_placeholder(self) -> bool:
        return self.record_status == RecordStatus.PLACEHOLDER

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.name.split() if part)[:2].upper()


def encode_dog_id(dog_id: str) -> str:
    """URL-safe form of a registration number such as ``02239/2006``."""
    return quote(dog_id, safe="")


def decode_dog_id(encoded: str) -> str:
    return unquote(encoded)


def dog_detail_path(dog_id: str) -> str:
    return f"/dogs/{encode_dog_id(dog_id)}"
