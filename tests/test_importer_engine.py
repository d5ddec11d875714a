from datetime import datetime, timezone

import pytest

from forum_migrator.importer.pipeline import PRIVATE_OFFSET, DuplicateMappingError, ImporterError, MigrationEngine
from forum_migrator.importer.pipeline.errors import ConverterLoadError
from forum_migrator.models import (
    Category,
    MigrationMapping,
    Post,
    Topic,
    Upload,
    User,
    UserCustomField,
    UserEmail,
    db,
)
from forum_migrator.models.importer.schema import MappingType

CLOCK = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

SOURCE_USERS = [
    {"imported_id": 1, "username": "alice", "email": "Alice@Example.com"},
    {"imported_id": 2, "username": "Alice", "email": "other@example.com"},
    {"imported_id": 3, "username": "alice-again", "email": "alice@example.com"},
    {"imported_id": 4, "username": "carol", "email": None},
]

SOURCE_CATEGORIES = [
    {"imported_id": "c1", "name": "General"},
    {"imported_id": "c2", "name": "general"},
]

SOURCE_TOPICS = [
    {"imported_id": 10, "title": 'Welcome "home"', "user": 1, "category": "c1"},
    {"imported_id": 11, "title": "Second", "user": 2, "category": "c2"},
    {"imported_id": PRIVATE_OFFSET + 5, "title": "Secret", "user": 1, "private": True},
]

SOURCE_POSTS = [
    {"imported_id": 100, "topic": 10, "user": 1, "raw": "Hello [b]world[/b]"},
    {"imported_id": 101, "topic": 10, "user": 2, "raw": "[QUOTE=Alice;100]Hello[/QUOTE]Agreed"},
    {"imported_id": 102, "topic": 11, "user": 4, "raw": "First in second"},
    {"imported_id": 103, "topic": 999, "user": 1, "raw": "Orphan"},
]


class SampleDriver(MigrationEngine):
    """Small in-memory forum exercising every main stage."""

    def __init__(self, *args, resumable=False, **kwargs):
        kwargs.setdefault("clock", lambda: CLOCK)
        super().__init__(*args, **kwargs)
        self.resumable = resumable

    def _fresh(self, lookup):
        if not self.resumable:
            return lambda row: row
        return lambda row: None if lookup(row["imported_id"]) else row

    def _unmapped(self, rows, lookup):
        return [row for row in rows if not (self.resumable and lookup(row["imported_id"]))]

    def execute(self):
        new_users = self._unmapped(SOURCE_USERS, self.user_id_from_imported_id)
        self.create_users(SOURCE_USERS, self._fresh(self.user_id_from_imported_id))
        self.create_user_emails(
            [row for row in new_users if row["imported_id"] != 3],
            lambda row: {"user_id": self.user_id_from_imported_id(row["imported_id"]), "email": row["email"]},
        )
        self.create_categories(SOURCE_CATEGORIES, self._fresh(self.category_id_from_imported_id))
        self.create_topics(self._unmapped(SOURCE_TOPICS, self.topic_id_from_imported_id), self.map_topic)
        self.create_posts(self._unmapped(SOURCE_POSTS, self.post_id_from_imported_id), self.map_post)

    def map_topic(self, row):
        topic = {
            "imported_id": row["imported_id"],
            "title": row["title"],
            "user_id": self.user_id_from_imported_id(row["user"]),
            "category_id": self.category_id_from_imported_id(row.get("category")),
        }
        if row.get("private"):
            topic["archetype"] = self.site_defaults.private_message_archetype
        return topic

    def map_post(self, row):
        return {
            "imported_id": row["imported_id"],
            "topic_id": self.topic_id_from_imported_id(row["topic"]),
            "user_id": self.user_id_from_imported_id(row["user"]),
            "raw": row["raw"],
        }


def test_run_requires_execute():
    with pytest.raises(NotImplementedError):
        MigrationEngine().run()


def test_unknown_entity_is_rejected():
    with pytest.raises(ImporterError):
        MigrationEngine().create_records("badges", [])


def test_converter_flag_without_path_fails():
    with pytest.raises(ConverterLoadError):
        MigrationEngine(bbcode_to_md=True)


def test_unknown_charset_is_rejected():
    with pytest.raises(ValueError):
        MigrationEngine(charset="klingon")


def test_full_run_migrates_users_categories_topics_and_posts():
    engine = SampleDriver()
    summaries = engine.run()

    # users: duplicate email collapses onto the first user
    assert summaries["user"].rows_inserted == 3
    assert summaries["user"].rows_skipped == 1
    alice_id = engine.user_id_from_imported_id(1)
    assert engine.user_id_from_imported_id(3) == alice_id
    assert db.session.query(User).count() == 3

    renamed = db.session.get(User, engine.user_id_from_imported_id(2))
    assert renamed.username == "Alice_1"
    assert renamed.username_lower == "alice_1"
    assert engine.username_for("Alice") == "Alice_1"
    import_username = db.session.query(UserCustomField).filter_by(name="import_username").one()
    assert (import_username.user_id, import_username.value) == (renamed.id, "Alice")

    emails = {row.user_id: row.email for row in db.session.query(UserEmail).all()}
    assert emails[alice_id] == "alice@example.com"
    assert emails[engine.user_id_from_imported_id(4)].endswith("@email.invalid")

    # categories: sibling names are unique, positions assigned in order
    general = db.session.get(Category, engine.category_id_from_imported_id("c1"))
    general_dup = db.session.get(Category, engine.category_id_from_imported_id("c2"))
    assert (general.name, general_dup.name) == ("General", "general1")
    assert general_dup.position == general.position + 1

    # topics: private topics live in their own id partition and have no category
    welcome = db.session.get(Topic, engine.topic_id_from_imported_id(10))
    assert welcome.fancy_title == "Welcome “home”"
    assert welcome.category_id == general.id
    private = db.session.get(Topic, engine.topic_id_from_imported_id(PRIVATE_OFFSET + 5))
    assert private.archetype == "private_message"
    assert private.category_id is None
    assert engine.last_imported_id(MappingType.TOPIC) == 11
    assert engine.last_imported_private_id(MappingType.TOPIC) == PRIVATE_OFFSET + 5

    # posts: numbered per topic, quotes resolved to the target post
    assert summaries["post"].rows_inserted == 3
    assert summaries["post"].rows_failed == 1
    first = db.session.get(Post, engine.post_id_from_imported_id(100))
    reply = db.session.get(Post, engine.post_id_from_imported_id(101))
    other = db.session.get(Post, engine.post_id_from_imported_id(102))
    assert (first.post_number, reply.post_number, other.post_number) == (1, 2, 1)
    assert "<strong>world</strong>" in first.cooked
    assert f'[quote="Alice_1, post:1, topic:{welcome.id}"]' in reply.raw
    assert f'data-post="1" data-topic="{welcome.id}"' in reply.cooked
    assert "/user_avatar/alice_1/45/1.png" in reply.cooked
    assert engine.post_number_from_imported_id(101) == 2
    assert engine.topic_id_from_imported_post_id(101) == welcome.id

    # mappings and highest post numbers persist for later runs
    assert db.session.query(MigrationMapping).filter_by(type=int(MappingType.POST)).count() == 3
    assert engine.fix_highest_post_numbers() == 2
    assert db.session.get(Topic, welcome.id).highest_post_number == 2


def test_rerun_without_filtering_refuses_to_remap():
    SampleDriver().run()

    with pytest.raises(DuplicateMappingError):
        SampleDriver().run()


def test_resumable_rerun_adds_nothing():
    SampleDriver(resumable=True).run()
    counts = (db.session.query(User).count(), db.session.query(Topic).count(), db.session.query(Post).count())

    engine = SampleDriver(resumable=True)
    summaries = engine.run()

    assert summaries["user"].rows_dropped == len(SOURCE_USERS)
    assert summaries["post"].rows_inserted == 0
    assert (db.session.query(User).count(), db.session.query(Topic).count(), db.session.query(Post).count()) == counts
    assert engine.post_number_from_imported_id(101) == 2


def test_uploads_are_deduplicated_by_sha1(tmp_path):
    source = tmp_path / "photo.png"
    source.write_bytes(b"\x89PNG fake image bytes")

    class UploadDriver(MigrationEngine):
        def execute(self):
            handle = self.create_upload(-1, source, "photo.png")
            self.create_uploads([handle.as_row("u1"), handle.as_row("u2")])
            self.markdown = self.html_for_upload(handle)

    engine = UploadDriver()
    summaries = engine.run()

    assert summaries["upload"].rows_inserted == 1
    assert summaries["upload"].rows_skipped == 1
    upload_id = engine.upload_id_from_original_id("u1")
    assert engine.upload_id_from_original_id("u2") == upload_id
    upload = db.session.get(Upload, upload_id)
    assert engine.upload_id_from_sha1(upload.sha1) == upload_id
    assert engine.markdown == f"![photo.png]({upload.url})"


def test_post_failing_charset_conversion_is_not_mapped_or_numbered():
    class Latin1Driver(MigrationEngine):
        def execute(self):
            self.create_topics([{"imported_id": 5, "title": "Prices"}])
            topic_id = self.topic_id_from_imported_id(5)
            self.create_posts(
                [
                    {"imported_id": 1, "topic_id": topic_id, "raw": "plain text"},
                    {"imported_id": 2, "topic_id": topic_id, "raw": "costs 5€"},
                    {"imported_id": 3, "topic_id": topic_id, "raw": "[QUOTE=bob;2]costs[/QUOTE]really?"},
                ]
            )

    engine = Latin1Driver(charset="latin1", clock=lambda: CLOCK)
    summaries = engine.run()

    assert summaries["post"].rows_failed == 1
    assert summaries["post"].rows_inserted == 2
    assert engine.post_id_from_imported_id(2) is None
    persisted = {
        m.original_id for m in db.session.query(MigrationMapping).filter_by(type=int(MappingType.POST)).all()
    }
    assert persisted == {"1", "3"}

    posts = db.session.query(Post).order_by(Post.post_number).all()
    assert [post.post_number for post in posts] == [1, 2]
    assert '[quote="bob"]' in posts[1].raw
    assert "post:" not in posts[1].raw


def test_run_loads_indexes_from_existing_target_data(tmp_path):
    source = tmp_path / "logo.png"
    source.write_bytes(b"\x89PNG logo")

    class SeedDriver(MigrationEngine):
        def execute(self):
            self.create_users([{"imported_id": "u1", "username": "dana", "email": "dana@example.com"}])
            self.create_user_emails(
                [{"user_id": self.user_id_from_imported_id("u1"), "email": "dana@example.com"}]
            )
            self.create_uploads([self.create_upload(-1, source, "logo.png").as_row("f1")])

    class FollowUpDriver(MigrationEngine):
        def execute(self):
            self.create_users([{"imported_id": "u2", "username": "dana", "email": "DANA@example.com"}])
            self.create_uploads([self.create_upload(-1, source, "logo.png").as_row("f2")])

    SeedDriver(clock=lambda: CLOCK).run()
    engine = FollowUpDriver(clock=lambda: CLOCK)
    summaries = engine.run()

    assert summaries["user"].rows_skipped == 1
    assert engine.user_id_from_imported_id("u2") == engine.user_id_from_imported_id("u1")
    assert summaries["upload"].rows_skipped == 1
    assert engine.upload_id_from_original_id("f2") == engine.upload_id_from_original_id("f1")
