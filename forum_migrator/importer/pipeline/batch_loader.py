"""
Generic batch loader shared by every entity type.

Source rows are consumed in fixed-size slices. Each row is mapped by the
driver, finalised by the entity's processor and buffered; the buffer is then
written through the bulk-insert channel in one round trip. A failing row is
logged and dropped without affecting its neighbours, while a failing batch
aborts the load with a ``BulkInsertError`` naming the batch's first row.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence

from forum_migrator.importer.metrics import record_batch, record_rows

from .channel import BulkInsertChannel
from .columns import custom_field_columns
from .errors import BulkInsertError, DuplicateMappingError
from .mapping_store import MappingStore
from .sequences import IdAllocator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_PROGRESS_EVERY = 100

Row = dict[str, Any]
RowMapper = Callable[[Any], Mapping[str, Any] | None]


@dataclass(frozen=True)
class EntitySpec:
    """
    How one entity type is loaded.

    ``custom_field_owner`` names the ``<owner>_custom_fields`` table that
    receives ``import_id`` rows after the load; ``resolve_target`` maps an
    original id to its target id for those rows.
    """

    name: str
    table: str
    columns: Sequence[str]
    process: Callable[[Row], Row]
    custom_field_owner: str | None = None
    resolve_target: Callable[[Any], int | None] | None = None


@dataclass
class LoadSummary:
    """Aggregate results from loading one entity type."""

    entity: str
    rows_processed: int = 0
    rows_inserted: int = 0
    rows_skipped: int = 0
    rows_dropped: int = 0
    rows_failed: int = 0
    batches: int = 0
    custom_fields_written: int = 0
    elapsed_seconds: float = 0.0
    imported_ids: list[Any] = field(default_factory=list, repr=False)

    @property
    def rows_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return float(self.rows_processed)
        return self.rows_processed / self.elapsed_seconds


def chunked(rows: Iterable[Any], size: int) -> Iterator[list[Any]]:
    iterator = iter(rows)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class BatchLoader:
    def __init__(
        self,
        channel: BulkInsertChannel,
        allocator: IdAllocator,
        *,
        mappings: MappingStore | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_every: int = DEFAULT_PROGRESS_EVERY,
        clock: Callable[[], datetime] | None = None,
    ):
        self.channel = channel
        self.allocator = allocator
        self.mappings = mappings
        self.batch_size = max(int(batch_size), 1)
        self.progress_every = max(int(progress_every), 1)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self, spec: EntitySpec, rows: Iterable[Any], mapper: RowMapper | None = None) -> LoadSummary:
        summary = LoadSummary(entity=spec.name)
        imported_ids: dict[Any, None] = {}
        started = time.monotonic()

        for raw_batch in chunked(rows, self.batch_size):
            values: list[tuple[Any, ...]] = []
            for raw_row in raw_batch:
                summary.rows_processed += 1
                self._process_row(spec, raw_row, mapper, values, imported_ids, summary)
                if summary.rows_processed % self.progress_every == 0:
                    self._log_progress(summary, started)
            if values:
                self._write_batch(spec, values, raw_batch[0], summary)
            if self.mappings is not None:
                self.mappings.flush()

        summary.elapsed_seconds = time.monotonic() - started
        if summary.rows_processed:
            self._log_progress(summary, started)
        summary.imported_ids = list(imported_ids)

        if spec.custom_field_owner and spec.resolve_target is not None:
            summary.custom_fields_written = self.write_custom_fields(
                spec.custom_field_owner,
                "import_id",
                ((spec.resolve_target(original_id), original_id) for original_id in summary.imported_ids),
            )

        record_rows(spec.name, "inserted", summary.rows_inserted)
        record_rows(spec.name, "skipped", summary.rows_skipped)
        record_rows(spec.name, "dropped", summary.rows_dropped)
        record_rows(spec.name, "failed", summary.rows_failed)
        return summary

    def _process_row(
        self,
        spec: EntitySpec,
        raw_row: Any,
        mapper: RowMapper | None,
        values: list[tuple[Any, ...]],
        imported_ids: dict[Any, None],
        summary: LoadSummary,
    ) -> None:
        original_id = None
        mark = self.mappings.checkpoint() if self.mappings is not None else None
        try:
            mapped = mapper(raw_row) if mapper is not None else raw_row
            if mapped is None:
                summary.rows_dropped += 1
                return
            row = dict(mapped)
            original_id = row.get("imported_id")
            processed = spec.process(row)

            if row.get("imported_id") is not None:
                imported_ids.setdefault(row["imported_id"], None)
            for extra_id in row.get("imported_ids") or ():
                imported_ids.setdefault(extra_id, None)

            if processed.get("skip"):
                summary.rows_skipped += 1
                return
            values.append(tuple(processed.get(column) for column in spec.columns))
        except DuplicateMappingError:
            raise
        except Exception:
            summary.rows_failed += 1
            if mark is not None:
                self.mappings.rollback(mark)
            logger.exception(
                "Failed to import %s row",
                spec.name,
                extra={"importer_entity": spec.name, "importer_original_id": original_id},
            )

    def _write_batch(
        self,
        spec: EntitySpec,
        values: list[tuple[Any, ...]],
        first_row: Any,
        summary: LoadSummary,
    ) -> None:
        started = time.monotonic()
        try:
            written = self.channel.copy(spec.table, spec.columns, values, context_row=first_row)
        except BulkInsertError as exc:
            record_batch(spec.name, status="failure", duration_seconds=time.monotonic() - started)
            logger.error("Batch insert into %s failed. First row: %r", spec.table, exc.first_row)
            raise
        record_batch(spec.name, status="success", duration_seconds=time.monotonic() - started)
        summary.rows_inserted += written
        summary.batches += 1

    def write_custom_fields(self, owner: str, name: str, pairs: Iterable[tuple[int | None, Any]]) -> int:
        """
        Write ``(target_id, value)`` pairs as ``<owner>_custom_fields`` rows named ``name``.

        Pairs without a target id are ignored.
        """

        table = f"{owner}_custom_fields"
        if table not in self.allocator:
            self.allocator.seed_from_table(self.channel.session, table)

        now = self.clock()
        written = 0
        for batch in chunked(((target, value) for target, value in pairs if target is not None), self.batch_size):
            rows = [(self.allocator.next(table), target, name, str(value), now, now) for target, value in batch]
            written += self.channel.copy(table, custom_field_columns(owner), rows)
        if written:
            logger.info("Wrote %d %s custom fields named %s", written, owner, name)
        return written

    def _log_progress(self, summary: LoadSummary, started: float) -> None:
        elapsed = time.monotonic() - started
        rate = summary.rows_processed / elapsed if elapsed > 0 else float(summary.rows_processed)
        logger.info("%s: %7d rows - %6d/sec", summary.entity, summary.rows_processed, rate)
