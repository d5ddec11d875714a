"""
In-process primary key allocation for bulk loads.

Identifiers are handed out by the importer instead of the database so that
related rows can reference each other before anything is written. Once the
run finishes, the allocator pushes its final values back into the database
sequences so records created later by the application do not collide.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from forum_migrator.models import db

from .errors import ImporterError

logger = logging.getLogger(__name__)


class IdAllocator:
    """Per-table monotonic counters seeded from the current maximum identifier."""

    def __init__(self) -> None:
        self._values: dict[str, int] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def seed(self, name: str, value: int | None) -> int:
        """Seed ``name`` with ``value``; counters never move backwards."""

        candidate = max(int(value or 0), 0)
        current = self._values.get(name)
        if current is None or candidate > current:
            self._values[name] = candidate
        return self._values[name]

    def seed_from_table(self, session: Session, table_name: str, column: str = "id") -> int:
        table = db.metadata.tables[table_name]
        highest = session.scalar(select(func.max(table.c[column])))
        return self.seed(table_name, highest)

    def seed_tables(self, session: Session, table_names: Iterable[str]) -> None:
        for table_name in table_names:
            self.seed_from_table(session, table_name)

    def next(self, name: str) -> int:
        if name not in self._values:
            raise ImporterError(f"ID allocator for '{name}' was used before being seeded.")
        self._values[name] += 1
        return self._values[name]

    def current(self, name: str) -> int:
        return self._values.get(name, 0)

    def snapshot(self) -> dict[str, int]:
        return dict(self._values)

    def push_sequences(self, session: Session) -> dict[str, int]:
        """
        Write the final counter values back to the database sequences.

        PostgreSQL sequences are moved with ``setval``; SQLite only keeps a
        counter for AUTOINCREMENT tables, so ``sqlite_sequence`` is updated when
        present. Other dialects are left untouched.
        """

        dialect = session.get_bind().dialect.name
        pushed: dict[str, int] = {}
        for name, value in sorted(self._values.items()):
            if value <= 0:
                continue
            if dialect == "postgresql":
                session.execute(
                    text("SELECT setval(pg_get_serial_sequence(:table_name, 'id'), :value)"),
                    {"table_name": name, "value": value},
                )
            elif dialect == "sqlite":
                if not _has_sqlite_sequence(session):
                    continue
                session.execute(
                    text("UPDATE sqlite_sequence SET seq = :value WHERE name = :table_name AND seq < :value"),
                    {"table_name": name, "value": value},
                )
            else:
                logger.debug("Skipping sequence update for %s on dialect %s", name, dialect)
                continue
            pushed[name] = value
        session.commit()
        if pushed:
            logger.info("Updated primary key sequences for %d tables.", len(pushed))
        return pushed


def _has_sqlite_sequence(session: Session) -> bool:
    found = session.scalar(text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"))
    return found is not None
