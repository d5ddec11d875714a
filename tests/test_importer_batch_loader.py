from datetime import datetime, timezone

import pytest

from forum_migrator.importer.pipeline import (
    BatchLoader,
    BulkInsertChannel,
    BulkInsertError,
    DuplicateMappingError,
    EntitySpec,
    IdAllocator,
    MappingStore,
)
from forum_migrator.importer.pipeline.batch_loader import chunked
from forum_migrator.models import Group, GroupCustomField, MigrationMapping, db
from forum_migrator.models.importer.schema import MappingType

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
COLUMNS = ("id", "name", "created_at", "updated_at")


def _loader(batch_size=2):
    channel = BulkInsertChannel(db.session)
    allocator = IdAllocator()
    allocator.seed_from_table(db.session, "groups")
    mappings = MappingStore(db.session, channel)
    loader = BatchLoader(channel, allocator, mappings=mappings, batch_size=batch_size, clock=lambda: NOW)
    return loader, allocator, mappings


def _group_spec(allocator, mappings, process=None):
    def process_group(row):
        if row.get("fail"):
            raise ValueError("bad row")
        row["id"] = allocator.next("groups")
        mappings.put(MappingType.GROUP, row["imported_id"], row["id"])
        if row.get("late_fail"):
            raise ValueError("failed after mapping")
        row["created_at"] = row["updated_at"] = NOW
        if row.get("existing"):
            row["skip"] = True
        return row

    return EntitySpec(
        "group",
        "groups",
        COLUMNS,
        process or process_group,
        "group",
        lambda original_id: mappings.get(MappingType.GROUP, original_id),
    )


def test_chunked_slices_rows():
    assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(chunked([], 3)) == []


def test_load_inserts_rows_in_batches_and_writes_import_ids():
    loader, allocator, mappings = _loader(batch_size=2)
    spec = _group_spec(allocator, mappings)
    rows = [{"imported_id": i, "name": f"g{i}"} for i in range(1, 4)]

    summary = loader.load(spec, rows)

    assert summary.rows_processed == 3
    assert summary.rows_inserted == 3
    assert summary.batches == 2
    assert summary.imported_ids == [1, 2, 3]
    assert summary.custom_fields_written == 3
    assert db.session.query(Group).count() == 3
    assert db.session.query(MigrationMapping).count() == 3

    fields = db.session.query(GroupCustomField).order_by(GroupCustomField.group_id).all()
    assert [(f.group_id, f.name, f.value) for f in fields] == [
        (1, "import_id", "1"),
        (2, "import_id", "2"),
        (3, "import_id", "3"),
    ]


def test_mapper_dropping_rows_and_skipped_rows_are_counted():
    loader, allocator, mappings = _loader()
    spec = _group_spec(allocator, mappings)
    rows = [
        {"imported_id": 1, "name": "kept"},
        {"imported_id": 2, "name": "dropped"},
        {"imported_id": 3, "name": "already", "existing": True},
    ]

    summary = loader.load(spec, rows, mapper=lambda row: None if row["name"] == "dropped" else row)

    assert summary.rows_inserted == 1
    assert summary.rows_dropped == 1
    assert summary.rows_skipped == 1
    assert summary.imported_ids == [1, 3]
    assert db.session.query(Group).count() == 1


def test_failing_row_is_logged_and_neighbours_survive(caplog):
    loader, allocator, mappings = _loader()
    spec = _group_spec(allocator, mappings)
    rows = [
        {"imported_id": 1, "name": "one"},
        {"imported_id": 2, "name": "two", "fail": True},
        {"imported_id": 3, "name": "three"},
    ]

    with caplog.at_level("ERROR"):
        summary = loader.load(spec, rows)

    assert summary.rows_failed == 1
    assert summary.rows_inserted == 2
    assert "Failed to import group row" in caplog.text
    failed = [record for record in caplog.records if record.getMessage() == "Failed to import group row"]
    assert failed[0].importer_original_id == 2
    assert sorted(g.name for g in db.session.query(Group).all()) == ["one", "three"]


def test_row_failing_after_mapping_leaves_no_mapping_behind():
    loader, allocator, mappings = _loader()
    spec = _group_spec(allocator, mappings)
    rows = [
        {"imported_id": 1, "name": "one"},
        {"imported_id": 2, "name": "two", "late_fail": True},
        {"imported_id": 3, "name": "three"},
    ]

    summary = loader.load(spec, rows)

    assert summary.rows_failed == 1
    assert summary.imported_ids == [1, 3]
    assert mappings.get(MappingType.GROUP, 2) is None
    persisted = {m.original_id for m in db.session.query(MigrationMapping).filter_by(type=int(MappingType.GROUP))}
    assert persisted == {"1", "3"}
    assert db.session.query(GroupCustomField).filter_by(value="2").count() == 0

    retry = loader.load(spec, [{"imported_id": 2, "name": "two"}])

    assert retry.rows_inserted == 1
    assert mappings.get(MappingType.GROUP, 2) is not None


def test_duplicate_mapping_aborts_the_load():
    loader, allocator, mappings = _loader()
    spec = _group_spec(allocator, mappings)
    rows = [{"imported_id": 1, "name": "one"}, {"imported_id": 1, "name": "again"}]

    with pytest.raises(DuplicateMappingError):
        loader.load(spec, rows)


def test_failing_batch_raises_with_first_row():
    db.session.add(Group(id=2, name="taken", created_at=NOW, updated_at=NOW))
    db.session.commit()

    loader, allocator, mappings = _loader(batch_size=10)

    def process_with_fixed_ids(row):
        row["created_at"] = row["updated_at"] = NOW
        return row

    spec = _group_spec(allocator, mappings, process=process_with_fixed_ids)
    rows = [{"id": 1, "name": "first"}, {"id": 2, "name": "clash"}]

    with pytest.raises(BulkInsertError) as excinfo:
        loader.load(spec, rows)

    assert excinfo.value.table == "groups"
    assert excinfo.value.first_row == {"id": 1, "name": "first"}
    assert db.session.query(Group).count() == 1


def test_write_custom_fields_ignores_pairs_without_target():
    loader, _allocator, _mappings = _loader()

    written = loader.write_custom_fields("group", "import_id", [(5, "a"), (None, "b"), (6, "c")])

    assert written == 2
    assert {f.value for f in db.session.query(GroupCustomField).all()} == {"a", "c"}
