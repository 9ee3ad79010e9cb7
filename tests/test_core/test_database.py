"""Tests for engine construction and the request session dependency."""

from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import build_engine, get_db


def test_sqlite_engine_enforces_foreign_keys():
    engine = build_engine("sqlite://")
    with engine.connect() as conn:
        conn.execute(text("CREATE TABLE parent (id INTEGER PRIMARY KEY)"))
        conn.execute(
            text("CREATE TABLE child (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES parent(id))")
        )
        with pytest.raises(IntegrityError):
            conn.execute(text("INSERT INTO child (id, parent_id) VALUES (1, 99)"))
    engine.dispose()


def test_get_db_yields_a_session_and_closes_it():
    gen = get_db()
    db = next(gen)
    assert isinstance(db, Session)
    with pytest.raises(StopIteration):
        next(gen)
