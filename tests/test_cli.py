"""Tests for the kennel-pedigree command line."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from kennel_pedigree.cli import app
from kennel_pedigree.models import Dog, LoginMethod, Sex
from kennel_pedigree.registry.sessions import SessionManager
from kennel_pedigree.store import DogStore, KennelDatabase, RelationshipStore

runner = CliRunner()


@pytest.fixture()
def db_path(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "cli.db"
    monkeypatch.setenv("KENNEL_DB_PATH", str(path))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("REGISTRY_USERNAME", raising=False)
    monkeypatch.delenv("REGISTRY_PASSWORD", raising=False)
    return path


@pytest.fixture()
def seeded(db_path: Path) -> KennelDatabase:
    db = KennelDatabase(db_path)
    dogs = DogStore(db)
    rels = RelationshipStore(db)
    dogs.create_dog(Dog(id="DK1/2020", name="Kennel Star", sex=Sex.FEMALE))
    dogs.create_placeholder("DK2/2015", "Sir Red", Sex.MALE)
    dogs.create_placeholder("DK3/2012", "Old Red", Sex.MALE)
    rels.insert_if_absent("DK1/2020", "DK2/2015", "0")
    rels.insert_if_absent("DK1/2020", "DK3/2012", "00")
    return db


def test_init_db(db_path: Path):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert db_path.exists()


def test_label():
    result = runner.invoke(app, ["label", "01"])
    assert result.exit_code == 0
    assert "Paternal Grandmother" in result.output


def test_label_rejects_bad_path():
    result = runner.invoke(app, ["label", "012"])
    assert result.exit_code == 1


def test_tree_renders_father_line(seeded):
    result = runner.invoke(app, ["tree", "DK1/2020"])
    assert result.exit_code == 0
    assert "Sir Red" in result.output
    assert "Paternal Grandfather" in result.output
    assert "Mother: unknown" in result.output


def test_tree_json(seeded):
    result = runner.invoke(app, ["tree", "DK1/2020", "--side", "father", "--json"])
    assert result.exit_code == 0
    assert '"dog_id": "DK2/2015"' in result.output
    assert '"path": "00"' in result.output


def test_tree_unknown_dog(db_path: Path):
    result = runner.invoke(app, ["tree", "nope"])
    assert result.exit_code == 1


def test_tree_bad_side(seeded):
    result = runner.invoke(app, ["tree", "DK1/2020", "--side", "uncle"])
    assert result.exit_code == 1


def test_sync_without_session_fails(db_path: Path):
    result = runner.invoke(app, ["sync"])
    assert result.exit_code == 1
    assert "No valid session" in result.output


def test_login_without_credentials(db_path: Path, tmp_path: Path):
    result = runner.invoke(app, ["login", "--credentials-file", str(tmp_path / "none.json")])
    assert result.exit_code == 1


def test_sessions_listing_and_invalidation(db_path: Path):
    sessions = SessionManager(KennelDatabase(db_path))
    live = sessions.save_session("a=1", LoginMethod.CAS)
    sessions.save_session("b=2", LoginMethod.STANDARD, ttl=timedelta(minutes=-1))

    result = runner.invoke(app, ["sessions"])
    assert result.exit_code == 0
    assert "CAS" in result.output

    result = runner.invoke(app, ["expire-sessions"])
    assert result.exit_code == 0
    assert "Invalidated 1" in result.output

    result = runner.invoke(app, ["invalidate-session", live.session_id])
    assert result.exit_code == 0
    result = runner.invoke(app, ["invalidate-session", live.session_id])
    assert result.exit_code == 1
