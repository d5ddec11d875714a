"""
Migration engine: the base class forum-specific drivers build on.

A driver subclasses ``MigrationEngine`` and implements ``execute`` by calling
the ``create_<entity>`` methods with iterables of source rows (and, usually,
a mapper that turns a source row into a target row using the lookup helpers).
``run`` prepares the target, calls ``execute`` and finalises sequences.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from forum_migrator.importer.site_defaults import SiteDefaults, get_site_defaults
from forum_migrator.importer.uploads import LocalUploadStore, UploadHandle, UploadStore, resolve_upload_directory
from forum_migrator.models import (
    Category,
    Group,
    SingleSignOnRecord,
    Upload,
    User,
    UserCustomField,
    UserEmail,
    db,
)
from forum_migrator.models.importer.schema import MappingType
from forum_migrator.utils.importer import (
    DEFAULT_AVATAR_TEMPLATE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_LOCALE,
    DEFAULT_PROGRESS_EVERY,
    get_avatar_template,
    get_batch_size,
    get_converter_path,
    get_locale,
    get_progress_every,
    get_source_charset,
    is_bbcode_to_md_enabled,
)

from . import columns
from .batch_loader import BatchLoader, EntitySpec, LoadSummary, RowMapper
from .channel import BulkInsertChannel
from .charset import resolve_charset
from .directory import SessionUserDirectory
from .errors import ConverterLoadError, ImporterError
from .mapping_store import MappingStore
from .markup import MarkupConverter, MarkupTransformer, UserDirectory, load_converter
from .names import NameDeduplicator
from .post_numbers import PostNumberIndex, fix_highest_post_numbers
from .processors import ImportIndexes, RecordProcessors
from .sequences import IdAllocator

logger = logging.getLogger(__name__)

ALLOCATED_TABLES = (
    "groups",
    "users",
    "user_emails",
    "single_sign_on_records",
    "user_histories",
    "user_avatars",
    "muted_users",
    "categories",
    "category_groups",
    "topics",
    "posts",
    "post_actions",
    "uploads",
    "user_custom_fields",
    "topic_custom_fields",
    "post_custom_fields",
)


class MigrationEngine:
    """
    Base class for forum migration drivers.

    Subclasses implement ``execute`` (and optionally ``execute_after``).
    Settings not passed explicitly are read from the Flask config.
    """

    def __init__(
        self,
        *,
        session: Session | None = None,
        charset: str | None = None,
        bbcode_to_md: bool | None = None,
        converter: MarkupConverter | None = None,
        site_defaults: SiteDefaults | None = None,
        upload_store: UploadStore | None = None,
        user_directory: UserDirectory | None = None,
        batch_size: int | None = None,
        progress_every: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        app = current_app if has_app_context() else None
        self.session = session if session is not None else db.session
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.locale = get_locale(app) if app else DEFAULT_LOCALE
        self.charset = (charset or (get_source_charset(app) if app else "utf8")).strip().lower()
        self.codec = resolve_charset(self.charset)
        if bbcode_to_md is None:
            bbcode_to_md = is_bbcode_to_md_enabled(app) if app else False
        self.bbcode_to_md = bool(bbcode_to_md or converter is not None)
        if self.bbcode_to_md and converter is None:
            converter = self._load_configured_converter(app)
        self.converter = converter

        self.site_defaults = site_defaults or get_site_defaults()
        self._upload_store = upload_store
        self.users = user_directory or SessionUserDirectory(
            self.session, get_avatar_template(app) if app else DEFAULT_AVATAR_TEMPLATE
        )

        self.channel = BulkInsertChannel(self.session)
        self.allocator = IdAllocator()
        self.mappings = MappingStore(self.session, self.channel)
        self.names = NameDeduplicator()
        self.posts = PostNumberIndex()
        self.indexes = ImportIndexes()
        self.markup = MarkupTransformer(
            codec=self.codec,
            converter=self.converter,
            username_for=self.username_for,
            resolve_post=self._resolve_quoted_post,
            users=self.users,
        )
        self.processors = RecordProcessors(
            allocator=self.allocator,
            mappings=self.mappings,
            names=self.names,
            posts=self.posts,
            markup=self.markup,
            site_defaults=self.site_defaults,
            indexes=self.indexes,
            clock=self.clock,
        )
        self.loader = BatchLoader(
            self.channel,
            self.allocator,
            mappings=self.mappings,
            batch_size=batch_size or (get_batch_size(app) if app else DEFAULT_BATCH_SIZE),
            progress_every=progress_every or (get_progress_every(app) if app else DEFAULT_PROGRESS_EVERY),
            clock=self.clock,
        )
        self.summaries: dict[str, LoadSummary] = {}
        self._specs = self._build_specs()

    @staticmethod
    def _load_configured_converter(app) -> MarkupConverter:
        path = get_converter_path(app) if app else None
        if not path:
            raise ConverterLoadError("IMPORTER_BBCODE_TO_MD is enabled but IMPORTER_BBCODE_CONVERTER is not set.")
        return load_converter(path)

    # ------------------------------------------------------------------
    # Run orchestration
    # ------------------------------------------------------------------
    def run(self) -> dict[str, LoadSummary]:
        started = time.monotonic()
        logger.info(
            "Starting import (charset=%s, bbcode_to_md=%s, locale=%s)", self.charset, self.bbcode_to_md, self.locale
        )

        self.create_migration_mappings_table()
        self.fix_highest_post_numbers()
        self.load_imported_ids()
        self.load_indexes()
        self.execute()
        self.fix_primary_keys()
        self.execute_after()

        minutes = (time.monotonic() - started) / 60
        logger.info("Done (%.1f minutes)", minutes)
        logger.info("Now run a consistency check on the target forum to update counters and derived data.")
        return self.summaries

    def execute(self) -> None:
        raise NotImplementedError

    def execute_after(self) -> None:
        pass

    def create_migration_mappings_table(self) -> None:
        self.mappings.ensure_table()

    def fix_highest_post_numbers(self) -> int:
        logger.info("Fixing highest post numbers...")
        return fix_highest_post_numbers(self.session)

    def load_imported_ids(self) -> None:
        logger.info("Loading imported ids...")
        self.mappings.bulk_load()
        self.mappings.recover_from_custom_fields()
        self.mappings.flush()
        for entity_type in (MappingType.TOPIC, MappingType.POST):
            logger.info(
                "Last imported %s id: %s (private: %s)",
                entity_type.label,
                self.mappings.last_imported_id(entity_type),
                self.mappings.last_imported_private_id(entity_type),
            )

    def load_indexes(self) -> None:
        session = self.session
        logger.info("Loading indexes...")
        self.allocator.seed_tables(session, ALLOCATED_TABLES)

        self.names.seed(session.scalars(select(Group.name)))
        self.names.seed(session.scalars(select(User.username_lower)))
        self.indexes.emails.update(session.execute(select(UserEmail.email, UserEmail.user_id)).tuples().all())
        self.indexes.external_ids.update(
            session.execute(select(SingleSignOnRecord.external_id, SingleSignOnRecord.user_id)).tuples().all()
        )
        self.indexes.mapped_usernames.update(
            session.execute(
                select(UserCustomField.value, User.username)
                .join(User, User.id == UserCustomField.user_id)
                .where(UserCustomField.name == "import_username")
            ).tuples().all()
        )

        self.names.seed_categories(session.execute(select(Category.parent_category_id, Category.name)).tuples())
        self.indexes.highest_category_position = session.scalar(select(func.max(Category.position))) or 0

        self.posts.prime(session)
        self.indexes.uploads_by_sha1.update(
            session.execute(select(Upload.sha1, Upload.id).where(Upload.sha1.is_not(None))).tuples().all()
        )

    def fix_primary_keys(self) -> dict[str, int]:
        logger.info("Updating primary key sequences...")
        return self.allocator.push_sequences(self.session)

    # ------------------------------------------------------------------
    # Entity loads
    # ------------------------------------------------------------------
    def _build_specs(self) -> dict[str, EntitySpec]:
        p = self.processors

        def resolver(entity_type: MappingType) -> Callable[[Any], int | None]:
            return lambda original_id: self.mappings.get(entity_type, original_id)

        specs = (
            EntitySpec("group", "groups", columns.GROUP_COLUMNS, p.process_group, "group", resolver(MappingType.GROUP)),
            EntitySpec("group_user", "group_users", columns.GROUP_USER_COLUMNS, p.process_group_user),
            EntitySpec("user", "users", columns.USER_COLUMNS, p.process_user, "user", resolver(MappingType.USER)),
            EntitySpec("user_email", "user_emails", columns.USER_EMAIL_COLUMNS, p.process_user_email),
            EntitySpec("user_stat", "user_stats", columns.USER_STAT_COLUMNS, p.process_user_stat),
            EntitySpec("user_history", "user_histories", columns.USER_HISTORY_COLUMNS, p.process_user_history),
            EntitySpec("user_avatar", "user_avatars", columns.USER_AVATAR_COLUMNS, p.process_user_avatar),
            EntitySpec("user_profile", "user_profiles", columns.USER_PROFILE_COLUMNS, p.process_user_profile),
            EntitySpec("user_option", "user_options", columns.USER_OPTION_COLUMNS, p.process_user_option),
            EntitySpec(
                "single_sign_on_record",
                "single_sign_on_records",
                columns.SINGLE_SIGN_ON_RECORD_COLUMNS,
                p.process_single_sign_on_record,
            ),
            EntitySpec(
                "user_custom_field",
                "user_custom_fields",
                columns.custom_field_columns("user"),
                p.process_user_custom_field,
            ),
            EntitySpec("muted_user", "muted_users", columns.MUTED_USER_COLUMNS, p.process_muted_user),
            EntitySpec("user_action", "user_actions", columns.USER_ACTION_COLUMNS, p.process_user_action),
            EntitySpec(
                "category",
                "categories",
                columns.CATEGORY_COLUMNS,
                p.process_category,
                "category",
                resolver(MappingType.CATEGORY),
            ),
            EntitySpec("category_group", "category_groups", columns.CATEGORY_GROUP_COLUMNS, p.process_category_group),
            EntitySpec("topic", "topics", columns.TOPIC_COLUMNS, p.process_topic, "topic", resolver(MappingType.TOPIC)),
            EntitySpec(
                "topic_allowed_user",
                "topic_allowed_users",
                columns.TOPIC_ALLOWED_USER_COLUMNS,
                p.process_topic_allowed_user,
            ),
            EntitySpec("topic_tag", "topic_tags", columns.TOPIC_TAG_COLUMNS, p.process_topic_tag),
            EntitySpec(
                "topic_custom_field",
                "topic_custom_fields",
                columns.custom_field_columns("topic"),
                p.process_topic_custom_field,
            ),
            EntitySpec("post", "posts", columns.POST_COLUMNS, p.process_post, "post", resolver(MappingType.POST)),
            EntitySpec("post_action", "post_actions", columns.POST_ACTION_COLUMNS, p.process_post_action),
            EntitySpec(
                "post_custom_field",
                "post_custom_fields",
                columns.custom_field_columns("post"),
                p.process_post_custom_field,
            ),
            EntitySpec("upload", "uploads", columns.UPLOAD_COLUMNS, p.process_upload),
            EntitySpec(
                "upload_reference",
                "upload_references",
                columns.UPLOAD_REFERENCE_COLUMNS,
                p.process_upload_reference,
            ),
            EntitySpec(
                "question_answer_vote",
                "question_answer_votes",
                columns.QUESTION_ANSWER_VOTE_COLUMNS,
                p.process_question_answer_vote,
            ),
        )
        return {spec.name: spec for spec in specs}

    def create_records(self, entity: str, rows: Iterable[Any], mapper: RowMapper | None = None) -> LoadSummary:
        try:
            spec = self._specs[entity]
        except KeyError as exc:
            raise ImporterError(f"Unknown entity '{entity}'.") from exc
        logger.info("Importing %s rows...", entity)
        summary = self.loader.load(spec, rows, mapper)
        self.summaries[entity] = summary
        return summary

    def create_groups(self, rows, mapper=None):
        return self.create_records("group", rows, mapper)

    def create_group_users(self, rows, mapper=None):
        return self.create_records("group_user", rows, mapper)

    def create_users(self, rows, mapper=None):
        self.indexes.imported_usernames = {}
        summary = self.create_records("user", rows, mapper)
        summary.custom_fields_written += self.loader.write_custom_fields(
            "user",
            "import_username",
            ((user_id, username) for username, user_id in self.indexes.imported_usernames.items()),
        )
        if isinstance(self.users, SessionUserDirectory):
            self.users.clear()
        return summary

    def create_user_emails(self, rows, mapper=None):
        return self.create_records("user_email", rows, mapper)

    def create_user_stats(self, rows, mapper=None):
        return self.create_records("user_stat", rows, mapper)

    def create_user_histories(self, rows, mapper=None):
        return self.create_records("user_history", rows, mapper)

    def create_user_avatars(self, rows, mapper=None):
        return self.create_records("user_avatar", rows, mapper)

    def create_user_profiles(self, rows, mapper=None):
        return self.create_records("user_profile", rows, mapper)

    def create_user_options(self, rows, mapper=None):
        return self.create_records("user_option", rows, mapper)

    def create_single_sign_on_records(self, rows, mapper=None):
        return self.create_records("single_sign_on_record", rows, mapper)

    def create_user_custom_fields(self, rows, mapper=None):
        self.allocator.seed_from_table(self.session, "user_custom_fields")
        return self.create_records("user_custom_field", rows, mapper)

    def create_muted_users(self, rows, mapper=None):
        return self.create_records("muted_user", rows, mapper)

    def create_user_actions(self, rows, mapper=None):
        return self.create_records("user_action", rows, mapper)

    def create_categories(self, rows, mapper=None):
        return self.create_records("category", rows, mapper)

    def create_category_groups(self, rows, mapper=None):
        return self.create_records("category_group", rows, mapper)

    def create_topics(self, rows, mapper=None):
        return self.create_records("topic", rows, mapper)

    def create_topic_allowed_users(self, rows, mapper=None):
        return self.create_records("topic_allowed_user", rows, mapper)

    def create_topic_tags(self, rows, mapper=None):
        return self.create_records("topic_tag", rows, mapper)

    def create_topic_custom_fields(self, rows, mapper=None):
        self.allocator.seed_from_table(self.session, "topic_custom_fields")
        return self.create_records("topic_custom_field", rows, mapper)

    def create_posts(self, rows, mapper=None):
        return self.create_records("post", rows, mapper)

    def create_post_actions(self, rows, mapper=None):
        return self.create_records("post_action", rows, mapper)

    def create_post_custom_fields(self, rows, mapper=None):
        self.allocator.seed_from_table(self.session, "post_custom_fields")
        return self.create_records("post_custom_field", rows, mapper)

    def create_uploads(self, rows, mapper=None):
        return self.create_records("upload", rows, mapper)

    def create_upload_references(self, rows, mapper=None):
        return self.create_records("upload_reference", rows, mapper)

    def create_question_answer_votes(self, rows, mapper=None):
        return self.create_records("question_answer_vote", rows, mapper)

    # ------------------------------------------------------------------
    # Lookups for drivers
    # ------------------------------------------------------------------
    def group_id_from_imported_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.GROUP, original_id)

    def user_id_from_imported_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.USER, original_id)

    def category_id_from_imported_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.CATEGORY, original_id)

    def topic_id_from_imported_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.TOPIC, original_id)

    def post_id_from_imported_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.POST, original_id)

    def upload_id_from_original_id(self, original_id) -> int | None:
        return self.mappings.get(MappingType.UPLOAD, original_id)

    def upload_id_from_sha1(self, sha1: str) -> int | None:
        return self.indexes.uploads_by_sha1.get(sha1)

    def post_number_from_imported_id(self, original_id) -> int | None:
        return self.posts.post_number_for(self.post_id_from_imported_id(original_id))

    def topic_id_from_imported_post_id(self, original_id) -> int | None:
        return self.posts.topic_for(self.post_id_from_imported_id(original_id))

    def username_for(self, imported_username: str) -> str:
        return self.indexes.mapped_usernames.get(imported_username, imported_username)

    def last_imported_id(self, entity_type: MappingType) -> int:
        return self.mappings.last_imported_id(entity_type)

    def last_imported_private_id(self, entity_type: MappingType) -> int:
        return self.mappings.last_imported_private_id(entity_type)

    def _resolve_quoted_post(self, original_post_id: str) -> tuple[int, int] | None:
        post_number = self.post_number_from_imported_id(original_post_id)
        topic_id = self.topic_id_from_imported_post_id(original_post_id)
        if post_number and topic_id:
            return post_number, topic_id
        return None

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    @property
    def upload_store(self) -> UploadStore:
        if self._upload_store is None:
            if not has_app_context():
                raise ImporterError("No upload store configured and no application context to resolve one.")
            self._upload_store = LocalUploadStore(resolve_upload_directory(current_app))
        return self._upload_store

    def create_upload(self, user_id: int, path: str | Path, source_filename: str) -> UploadHandle:
        return self.upload_store.create_upload(user_id, path, source_filename)

    def html_for_upload(self, upload: UploadHandle, display_filename: str | None = None) -> str:
        return self.upload_store.html_for_upload(upload, display_filename)
