"""Prometheus metrics helpers for the importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

_rows_counter = Counter(
    "importer_rows_total",
    "Source rows handled by the batch loader, by entity and outcome.",
    ["entity", "outcome"],
)
_batch_counter = Counter(
    "importer_batches_total",
    "Bulk-insert batches written by the batch loader, by entity and status.",
    ["entity", "status"],
)
_batch_duration = Histogram(
    "importer_batch_duration_seconds",
    "Duration of a single bulk-insert batch in seconds.",
    ["entity"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60),
)
_mappings_counter = Counter(
    "importer_mappings_written_total",
    "Migration mappings persisted, by entity type.",
    ["entity"],
)

RowOutcome = Literal["inserted", "skipped", "dropped", "failed"]


def record_rows(entity: str, outcome: RowOutcome, count: int = 1) -> None:
    """Increment the row counter for ``entity``."""

    if count <= 0:
        return
    _rows_counter.labels(entity=entity, outcome=outcome).inc(count)


def record_batch(entity: str, *, status: Literal["success", "failure"], duration_seconds: float) -> None:
    """Capture metrics for one bulk-insert batch."""

    _batch_counter.labels(entity=entity, status=status).inc()
    _batch_duration.labels(entity=entity).observe(duration_seconds)


def record_mappings(entity: str, count: int) -> None:
    if count <= 0:
        return
    _mappings_counter.labels(entity=entity).inc(count)
