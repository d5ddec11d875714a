"""
Bulk-insert channel used by every loader stage.

A channel accepts a target table, an ordered column list and a stream of value
tuples, and writes them in a single executemany round trip followed by a
commit. Failures roll the session back and surface as ``BulkInsertError``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from forum_migrator.models import db

from .errors import BulkInsertError, ImporterError

logger = logging.getLogger(__name__)


class BulkInsertChannel:
    def __init__(self, session: Session | None = None) -> None:
        self.session = session if session is not None else db.session

    def copy(
        self,
        table_name: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        *,
        context_row: Any = None,
    ) -> int:
        """
        Insert ``rows`` into ``table_name`` and commit.

        ``context_row`` is attached to any ``BulkInsertError`` so operators can
        locate the failing source batch; it defaults to the first value tuple.
        """

        table = db.metadata.tables.get(table_name)
        if table is None:
            raise ImporterError(f"Unknown target table '{table_name}'.")

        payload = [dict(zip(columns, values)) for values in rows]
        if not payload:
            return 0

        try:
            self.session.execute(insert(table), payload)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            first_row = context_row if context_row is not None else payload[0]
            raise BulkInsertError(table_name, first_row, exc) from exc

        logger.debug("Inserted %d rows into %s", len(payload), table_name)
        return len(payload)
