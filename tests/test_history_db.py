"""Tests for the SQLite history store."""

from pathlib import Path

import pytest

from src.history_db import HistoryDB


@pytest.fixture
def db(tmp_path: Path) -> HistoryDB:
    return HistoryDB(tmp_path / "history.db")


def test_add_and_get_history_newest_first(db):
    first = db.add_history("user-1", "Pho", "Beef noodle soup", None)
    second = db.add_history("user-1", "Banh mi", "Sandwich", "aW1hZ2U=")
    db.add_history("user-2", "Tacos", "Tacos", None)

    rows = db.get_history("user-1")

    assert [row["id"] for row in rows] == [second, first]
    assert rows[0]["original_text"] == "Banh mi"
    assert rows[0]["image_data"] == "aW1hZ2U="
    assert rows[0]["created_at"]


def test_get_history_unknown_user(db):
    assert db.get_history("nobody") == []


def test_upsert_user_updates_existing(db):
    db.upsert_user("google-1", "old@example.com", "Old", None)
    db.upsert_user("google-1", "new@example.com", "New", "https://pic.example/1.png")

    user = db.get_user("google-1")

    assert user == {
        "id": "google-1",
        "email": "new@example.com",
        "name": "New",
        "picture": "https://pic.example/1.png",
    }


def test_schema_creation_is_idempotent(tmp_path: Path):
    path = tmp_path / "history.db"
    HistoryDB(path).add_history("user-1", "Pho", None, None)

    assert len(HistoryDB(path).get_history("user-1")) == 1
