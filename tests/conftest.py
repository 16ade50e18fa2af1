from __future__ import annotations

from pathlib import Path

import pytest
import structlog

from kennel_pedigree.models import Dog, Sex
from kennel_pedigree.registry.sessions import SessionManager
from kennel_pedigree.store import DogStore, KennelDatabase, RelationshipStore


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration made by CLI tests (bound to CliRunner's stderr)."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def db(tmp_path: Path) -> KennelDatabase:
    return KennelDatabase(tmp_path / "kennel.db")


@pytest.fixture()
def dogs(db: KennelDatabase) -> DogStore:
    return DogStore(db)


@pytest.fixture()
def relationships(db: KennelDatabase) -> RelationshipStore:
    return RelationshipStore(db)


@pytest.fixture()
def sessions(db: KennelDatabase) -> SessionManager:
    return SessionManager(db, ttl_minutes=30)


def add_dog(dogs: DogStore, dog_id: str, name: str, sex: Sex = Sex.MALE) -> Dog:
    return dogs.create_dog(Dog(id=dog_id, name=name, sex=sex))


@pytest.fixture()
def litter(dogs: DogStore, relationships: RelationshipStore) -> dict[str, str]:
    """Kennel dog X with sire A and dam B recorded at generation 1."""
    add_dog(dogs, "X", "Xena av Kennel", Sex.FEMALE)
    add_dog(dogs, "A", "Anton", Sex.MALE)
    add_dog(dogs, "B", "Bella", Sex.FEMALE)
    relationships.insert_if_absent("X", "A", "0")
    relationships.insert_if_absent("X", "B", "1")
    dogs.add_to_kennel("X")
    return {"dog": "X", "sire": "A", "dam": "B"}
