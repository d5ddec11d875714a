from datetime import datetime, timezone

import pytest
from sqlalchemy import text

from forum_migrator.importer.pipeline import IdAllocator, ImporterError
from forum_migrator.models import Group, db


def _add_group(group_id: int) -> None:
    now = datetime.now(timezone.utc)
    db.session.add(Group(id=group_id, name=f"group{group_id}", created_at=now, updated_at=now))
    db.session.commit()


def test_next_requires_seed():
    allocator = IdAllocator()
    with pytest.raises(ImporterError):
        allocator.next("posts")


def test_seed_from_empty_table_starts_at_one():
    allocator = IdAllocator()
    assert allocator.seed_from_table(db.session, "groups") == 0
    assert allocator.next("groups") == 1
    assert allocator.next("groups") == 2


def test_seed_from_table_continues_after_max_id():
    _add_group(7)
    _add_group(3)

    allocator = IdAllocator()
    allocator.seed_tables(db.session, ["groups", "users"])

    assert "groups" in allocator
    assert allocator.next("groups") == 8
    assert allocator.next("users") == 1
    assert allocator.snapshot() == {"groups": 8, "users": 1}


def test_seed_never_moves_backwards():
    allocator = IdAllocator()
    allocator.seed("topics", 10)
    allocator.seed("topics", 4)
    allocator.seed("topics", None)

    assert allocator.current("topics") == 10
    assert allocator.seed("topics", 12) == 12


def test_push_sequences_updates_sqlite_sequence_when_present():
    db.session.execute(text("CREATE TABLE autoinc_counter (id INTEGER PRIMARY KEY AUTOINCREMENT, note TEXT)"))
    db.session.execute(text("INSERT INTO autoinc_counter (note) VALUES ('x')"))
    db.session.commit()

    allocator = IdAllocator()
    allocator.seed("autoinc_counter", 40)
    allocator.seed("groups", 0)

    pushed = allocator.push_sequences(db.session)

    assert pushed == {"autoinc_counter": 40}
    seq = db.session.scalar(text("SELECT seq FROM sqlite_sequence WHERE name = 'autoinc_counter'"))
    assert seq == 40
    db.session.execute(text("DROP TABLE autoinc_counter"))
    db.session.commit()


def test_push_sequences_without_sqlite_sequence_is_noop():
    allocator = IdAllocator()
    allocator.seed("groups", 5)

    assert allocator.push_sequences(db.session) == {}
