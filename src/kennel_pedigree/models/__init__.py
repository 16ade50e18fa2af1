"""Pydantic data models."""

from .dog import Dog, DogImage, RecordStatus, Sex, Title, decode_dog_id, dog_detail_path, encode_dog_id
from .relationship import PedigreeRelationship, RelationshipKind
from .session import LoginMethod, Session

__all__ = [
    "Dog",
    "DogImage",
    "RecordStatus",
    "Sex",
    "Title",
    "PedigreeRelationship",
    "RelationshipKind",
    "LoginMethod",
    "Session",
    "encode_dog_id",
    "decode_dog_id",
    "dog_detail_path",
]
