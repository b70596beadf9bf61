"""Startup schema upgrades for databases created by older releases."""
from __future__ import annotations

from typing import Dict, Set

from sqlalchemy import inspect, text

from .extensions import db

# Columns added after the first release, with the DDL that backfills them.
_LATE_COLUMNS: Dict[str, Dict[str, str]] = {
    "stories": {
        "forked_from_id": "ALTER TABLE stories ADD COLUMN forked_from_id INTEGER REFERENCES stories(id)",
    },
    "chapters": {
        "revision": "ALTER TABLE chapters ADD COLUMN revision INTEGER NOT NULL DEFAULT 0",
    },
}


def _get_column_names(table_name: str) -> Set[str]:
    inspector = inspect(db.engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema() -> None:
    """Create missing tables and add columns that older databases lack.

    Runs on every application start; SQLAlchemy errors propagate so the app
    never starts against a half-upgraded schema.
    """

    from .models import Chapter, Story, User, story_collaborators

    existing = set(inspect(db.engine).get_table_names())
    if not existing:
        db.create_all()
        return

    for table in (User.__table__, Story.__table__, story_collaborators, Chapter.__table__):
        if table.name not in existing:
            table.create(bind=db.engine)

    for table_name, columns in _LATE_COLUMNS.items():
        present = _get_column_names(table_name)
        for column_name, statement in columns.items():
            if column_name not in present:
                with db.engine.begin() as connection:
                    connection.execute(text(statement))
