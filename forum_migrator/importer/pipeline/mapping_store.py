"""
Durable original-id to target-id mappings.

Every migrated group, user, category, topic, post and upload is recorded in
``migration_mappings`` so that later stages (and later runs) can translate
source identifiers into target identifiers. The store keeps one in-memory map
per entity type and queues new associations until ``flush`` writes them.

Older targets recorded their original ids as ``import_id`` custom fields;
``recover_from_custom_fields`` folds those into the store as well.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from forum_migrator.importer.metrics import record_mappings
from forum_migrator.models import CUSTOM_FIELD_MODELS, db
from forum_migrator.models.importer.schema import MappingType, MigrationMapping

from .channel import BulkInsertChannel
from .errors import DuplicateMappingError

logger = logging.getLogger(__name__)

# Original ids at or above this offset belong to the "private" partition that
# drivers use for private messages imported alongside public topics.
PRIVATE_OFFSET = 2**30

STREAM_BATCH_SIZE = 10_000

CUSTOM_FIELD_OWNERS: dict[MappingType, str] = {
    MappingType.GROUP: "group",
    MappingType.USER: "user",
    MappingType.CATEGORY: "category",
    MappingType.TOPIC: "topic",
    MappingType.POST: "post",
}

MAPPING_COLUMNS = ("original_id", "type", "target_id")


def normalize_original_id(original_id: Any) -> str:
    if original_id is None:
        raise ValueError("Original identifier is required.")
    value = str(original_id).strip()
    if not value:
        raise ValueError("Original identifier is required.")
    return value


class MappingStore:
    def __init__(self, session: Session | None = None, channel: BulkInsertChannel | None = None) -> None:
        self.session = session if session is not None else db.session
        self.channel = channel if channel is not None else BulkInsertChannel(self.session)
        self._maps: dict[MappingType, dict[str, int]] = {entity_type: {} for entity_type in MappingType}
        self._pending: list[tuple[str, int, str]] = []
        self._last_imported: dict[MappingType, int] = {}
        self._last_imported_private: dict[MappingType, int] = {}

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def ensure_table(self) -> None:
        """Create ``migration_mappings`` and its type index when missing."""

        MigrationMapping.__table__.create(bind=self.session.get_bind(), checkfirst=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, entity_type: MappingType, original_id: Any) -> int | None:
        if original_id is None:
            return None
        return self._maps[entity_type].get(str(original_id).strip())

    def contains(self, entity_type: MappingType, original_id: Any) -> bool:
        return self.get(entity_type, original_id) is not None

    def count(self, entity_type: MappingType) -> int:
        return len(self._maps[entity_type])

    def counts(self) -> dict[str, int]:
        return {entity_type.label: len(mapping) for entity_type, mapping in self._maps.items()}

    def last_imported_id(self, entity_type: MappingType) -> int:
        """Highest numeric original id below ``PRIVATE_OFFSET``, or -1."""

        return self._last_imported.get(entity_type, -1)

    def last_imported_private_id(self, entity_type: MappingType) -> int:
        """Highest numeric original id above ``PRIVATE_OFFSET``, or ``PRIVATE_OFFSET - 1``."""

        return self._last_imported_private.get(entity_type, PRIVATE_OFFSET - 1)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def put(self, entity_type: MappingType, original_id: Any, target_id: int) -> None:
        """
        Associate ``original_id`` with ``target_id``.

        Re-recording an identical association is a no-op. Recording a different
        target for an already mapped original id raises ``DuplicateMappingError``.
        """

        key = normalize_original_id(original_id)
        target = int(target_id)
        if self._record(entity_type, key, target):
            self._pending.append((key, int(entity_type), str(target)))

    def checkpoint(self) -> tuple[int, dict[MappingType, int], dict[MappingType, int]]:
        """Mark the queue so associations recorded after this point can be discarded."""

        return len(self._pending), dict(self._last_imported), dict(self._last_imported_private)

    def rollback(self, mark: tuple[int, dict[MappingType, int], dict[MappingType, int]]) -> int:
        """Forget every association queued since ``mark`` was taken."""

        position, last_imported, last_imported_private = mark
        discarded = self._pending[position:]
        del self._pending[position:]
        for key, type_code, _ in discarded:
            self._maps[MappingType(type_code)].pop(key, None)
        self._last_imported = last_imported
        self._last_imported_private = last_imported_private
        return len(discarded)

    def flush(self) -> int:
        """Write queued associations through the bulk-insert channel."""

        if not self._pending:
            return 0
        pending, self._pending = self._pending, []
        written = self.channel.copy(MigrationMapping.__tablename__, MAPPING_COLUMNS, pending)
        for entity_type, count in Counter(type_code for _, type_code, _ in pending).items():
            record_mappings(MappingType(entity_type).label, count)
        logger.debug("Flushed %d migration mappings", written)
        return written

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def bulk_load(self, *, batch_size: int = STREAM_BATCH_SIZE) -> int:
        """Stream every persisted mapping into memory with a single query."""

        loaded = 0
        stmt = select(MigrationMapping.type, MigrationMapping.original_id, MigrationMapping.target_id).execution_options(
            yield_per=batch_size
        )
        for type_code, original_id, target_id in self.session.execute(stmt):
            try:
                entity_type = MappingType(type_code)
            except ValueError:
                logger.warning("Ignoring migration mapping with unknown type %s (original id %s)", type_code, original_id)
                continue
            self._record(entity_type, original_id, int(target_id))
            loaded += 1
        logger.info("Loaded %d migration mappings", loaded)
        return loaded

    def recover_from_custom_fields(self, *, batch_size: int = STREAM_BATCH_SIZE) -> int:
        """
        Fold ``import_id`` custom fields into the store.

        Recovered associations missing from ``migration_mappings`` are queued so
        the next ``flush`` persists them.
        """

        recovered = 0
        for entity_type, owner in CUSTOM_FIELD_OWNERS.items():
            for original_id, target_id in self._stream_import_ids(owner, batch_size):
                key = (original_id or "").strip()
                if not key:
                    continue
                if self._record(entity_type, key, int(target_id)):
                    self._pending.append((key, int(entity_type), str(int(target_id))))
                    recovered += 1
        if recovered:
            logger.info("Recovered %d mappings from import_id custom fields", recovered)
        return recovered

    def _stream_import_ids(self, owner: str, batch_size: int) -> Iterator[tuple[str, int]]:
        model = CUSTOM_FIELD_MODELS[owner]
        owner_column = getattr(model, f"{owner}_id")
        stmt = (
            select(model.value, owner_column)
            .where(model.name == "import_id")
            .order_by(model.id)
            .execution_options(yield_per=batch_size)
        )
        for value, target_id in self.session.execute(stmt):
            yield value, target_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _record(self, entity_type: MappingType, original_id: str, target_id: int) -> bool:
        mapping = self._maps[entity_type]
        existing = mapping.get(original_id)
        if existing is not None:
            if existing == target_id:
                return False
            raise DuplicateMappingError(entity_type.label, original_id, existing, target_id)
        mapping[original_id] = target_id
        self._observe(entity_type, original_id)
        return True

    def _observe(self, entity_type: MappingType, original_id: str) -> None:
        try:
            numeric = int(original_id)
        except ValueError:
            return
        if numeric < PRIVATE_OFFSET:
            if numeric > self._last_imported.get(entity_type, -1):
                self._last_imported[entity_type] = numeric
        elif numeric > PRIVATE_OFFSET:
            if numeric > self._last_imported_private.get(entity_type, PRIVATE_OFFSET - 1):
                self._last_imported_private[entity_type] = numeric
