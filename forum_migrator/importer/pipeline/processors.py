"""
Per-entity row finalizers.

Each ``process_<entity>`` receives a row already mapped by the driver, fills
identifiers and defaults, records mappings and uniqueness reservations, and
returns the row to insert. Setting ``skip`` on the returned row keeps it out of
the insert while still counting its original id as migrated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from forum_migrator.importer.site_defaults import SiteDefaults
from forum_migrator.models.importer.schema import MappingType

from .charset import scrub
from .mapping_store import MappingStore
from .markup import MarkupTransformer, fancy_title
from .names import NameDeduplicator, random_email, slugify
from .post_numbers import PostNumberIndex
from .sequences import IdAllocator

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
SUSPENSION_YEARS = 200
DATE_OF_BIRTH_YEAR = 1904

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Row = dict[str, Any]


@dataclass
class ImportIndexes:
    """Lookups seeded from the target at startup and extended during the run."""

    emails: dict[str, int] = field(default_factory=dict)
    external_ids: dict[str, int] = field(default_factory=dict)
    uploads_by_sha1: dict[str, int] = field(default_factory=dict)
    mapped_usernames: dict[str, str] = field(default_factory=dict)
    imported_usernames: dict[str, int] = field(default_factory=dict)
    highest_category_position: int = 0


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(_EMAIL_PATTERN.match(email))


def clean_text(value: str | None) -> str | None:
    """Scrubbed, stripped text, or ``None`` when nothing is left."""

    if value is None:
        return None
    cleaned = scrub(str(value)).strip()
    return cleaned or None


def _years_from(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


class RecordProcessors:
    def __init__(
        self,
        *,
        allocator: IdAllocator,
        mappings: MappingStore,
        names: NameDeduplicator,
        posts: PostNumberIndex,
        markup: MarkupTransformer,
        site_defaults: SiteDefaults,
        indexes: ImportIndexes,
        clock: Callable[[], datetime] | None = None,
    ):
        self.allocator = allocator
        self.mappings = mappings
        self.names = names
        self.posts = posts
        self.markup = markup
        self.site_defaults = site_defaults
        self.indexes = indexes
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _stamp(self, row: Row, *, created: str = "created_at", updated: str | None = "updated_at") -> None:
        now = self.clock()
        if row.get(created) is None:
            row[created] = now
        if updated and row.get(updated) is None:
            row[updated] = row[created]

    def _put(self, entity_type: MappingType, row: Row, target_id: int) -> None:
        if row.get("imported_id") is not None:
            self.mappings.put(entity_type, row["imported_id"], target_id)

    # ------------------------------------------------------------------
    # Groups and users
    # ------------------------------------------------------------------
    def process_group(self, group: Row) -> Row:
        group["id"] = self.allocator.next("groups")
        self._put(MappingType.GROUP, group, group["id"])

        group["name"] = self.names.reserve(group.get("name"))
        group["title"] = clean_text(group.get("title"))
        group["bio_raw"] = clean_text(group.get("bio_raw"))
        if group["bio_raw"]:
            group["bio_cooked"] = self.markup.cook(group["bio_raw"])

        for level, value in self.site_defaults.group_levels.items():
            if group.get(level) is None:
                group[level] = value

        self._stamp(group)
        return group

    def process_group_user(self, group_user: Row) -> Row:
        now = self.clock()
        group_user["created_at"] = now
        group_user["updated_at"] = now
        return group_user

    def process_user(self, user: Row) -> Row:
        email = user.get("email")
        if email:
            email = email.strip().lower()
            user["email"] = email
            existing_user_id = self.indexes.emails.get(email)
            if existing_user_id is not None:
                self._put(MappingType.USER, user, existing_user_id)
                user["skip"] = True
                return user

        external_id = user.get("external_id")
        if external_id:
            existing_user_id = self.indexes.external_ids.get(str(external_id))
            if existing_user_id is not None:
                self._put(MappingType.USER, user, existing_user_id)
                user["skip"] = True
                return user

        user["id"] = self.allocator.next("users")
        self._put(MappingType.USER, user, user["id"])
        if email:
            self.indexes.emails[email] = user["id"]
        if external_id:
            self.indexes.external_ids[str(external_id)] = user["id"]

        imported_username = user.get("original_username") or user.get("username")
        user["username"] = self.names.reserve(user.get("username"))
        if imported_username and user["username"] != imported_username:
            self.indexes.imported_usernames[imported_username] = user["id"]
            self.indexes.mapped_usernames[imported_username] = user["username"]

        user["username_lower"] = user["username"].lower()
        if user.get("trust_level") is None:
            user["trust_level"] = self.site_defaults.default_trust_level
        if "active" not in user:
            user["active"] = True
        user["admin"] = bool(user.get("admin"))
        user["moderator"] = bool(user.get("moderator"))
        if user.get("last_emailed_at") is None:
            user["last_emailed_at"] = self.clock()
        self._stamp(user)

        if user.get("suspended_at") and user.get("suspended_till") is None:
            user["suspended_till"] = _years_from(self.clock(), SUSPENSION_YEARS)

        date_of_birth = user.get("date_of_birth")
        if isinstance(date_of_birth, date) and not isinstance(date_of_birth, datetime):
            if date_of_birth.year != DATE_OF_BIRTH_YEAR:
                user["date_of_birth"] = date(DATE_OF_BIRTH_YEAR, date_of_birth.month, date_of_birth.day)

        return user

    def process_user_email(self, user_email: Row) -> Row:
        user_email["id"] = self.allocator.next("user_emails")
        user_email["primary"] = True
        self._stamp(user_email)

        owner = user_email.get("user_id")
        email = (user_email.get("email") or "").strip().lower() or random_email()
        while not is_valid_email(email) or self.indexes.emails.get(email, owner) != owner:
            email = random_email()
        user_email["email"] = email
        self.indexes.emails[email] = owner
        return user_email

    def process_user_stat(self, user_stat: Row) -> Row:
        now = self.clock()
        for column in (
            "topics_entered",
            "time_read",
            "days_visited",
            "posts_read_count",
            "likes_given",
            "likes_received",
            "post_count",
            "topic_count",
            "bounce_score",
        ):
            if user_stat.get(column) is None:
                user_stat[column] = 0
        if user_stat.get("new_since") is None:
            user_stat["new_since"] = now
        if user_stat.get("digest_attempted_at") is None:
            user_stat["digest_attempted_at"] = now
        return user_stat

    def process_user_history(self, history: Row) -> Row:
        history["id"] = self.allocator.next("user_histories")
        self._stamp(history)
        return history

    def process_muted_user(self, muted_user: Row) -> Row:
        muted_user["id"] = self.allocator.next("muted_users")
        self._stamp(muted_user)
        return muted_user

    def process_user_profile(self, user_profile: Row) -> Row:
        user_profile["bio_raw"] = clean_text(user_profile.get("bio_raw"))
        if user_profile["bio_raw"]:
            user_profile["bio_cooked"] = self.markup.cook(user_profile["bio_raw"])
        if user_profile.get("views") is None:
            user_profile["views"] = 0
        return user_profile

    def process_user_option(self, user_option: Row) -> Row:
        for key, value in self.site_defaults.user_options.items():
            if user_option.get(key) is None:
                user_option[key] = value
        return user_option

    def process_user_avatar(self, avatar: Row) -> Row:
        avatar["id"] = self.allocator.next("user_avatars")
        self._stamp(avatar)
        return avatar

    def process_single_sign_on_record(self, sso_record: Row) -> Row:
        sso_record["id"] = self.allocator.next("single_sign_on_records")
        if sso_record.get("last_payload") is None:
            sso_record["last_payload"] = ""
        now = self.clock()
        sso_record["created_at"] = now
        sso_record["updated_at"] = now
        if sso_record.get("external_id") is not None:
            sso_record["external_id"] = str(sso_record["external_id"])
            self.indexes.external_ids.setdefault(sso_record["external_id"], sso_record.get("user_id"))
        return sso_record

    def process_user_action(self, user_action: Row) -> Row:
        self._stamp(user_action)
        return user_action

    # ------------------------------------------------------------------
    # Custom fields
    # ------------------------------------------------------------------
    def _process_custom_field(self, table: str, custom_field: Row) -> Row:
        if custom_field.get("id") is None:
            custom_field["id"] = self.allocator.next(table)
        now = self.clock()
        if custom_field.get("created_at") is None:
            custom_field["created_at"] = now
        if custom_field.get("updated_at") is None:
            custom_field["updated_at"] = now
        return custom_field

    def process_user_custom_field(self, custom_field: Row) -> Row:
        return self._process_custom_field("user_custom_fields", custom_field)

    def process_topic_custom_field(self, custom_field: Row) -> Row:
        return self._process_custom_field("topic_custom_fields", custom_field)

    def process_post_custom_field(self, custom_field: Row) -> Row:
        return self._process_custom_field("post_custom_fields", custom_field)

    # ------------------------------------------------------------------
    # Categories and topics
    # ------------------------------------------------------------------
    def process_category(self, category: Row) -> Row:
        existing_id = category.get("existing_id")
        if existing_id:
            self._put(MappingType.CATEGORY, category, existing_id)
            category["skip"] = True
            return category

        if category.get("id") is None:
            category["id"] = self.allocator.next("categories")
        self._put(MappingType.CATEGORY, category, category["id"])

        name = self.names.reserve_category_name(category.get("name"), category.get("parent_category_id"))
        category["name"] = name
        category["name_lower"] = name.lower()
        if not category.get("slug"):
            category["slug"] = slugify(category["name_lower"])
        category["description"] = clean_text(category.get("description"))
        if category.get("user_id") is None:
            category["user_id"] = self.site_defaults.system_user_id
        if category.get("read_restricted") is None:
            category["read_restricted"] = False
        self._stamp(category)

        position = category.get("position")
        if position is not None:
            if position > self.indexes.highest_category_position:
                self.indexes.highest_category_position = position
        else:
            self.indexes.highest_category_position += 1
            category["position"] = self.indexes.highest_category_position
        return category

    def process_category_group(self, category_group: Row) -> Row:
        category_group["id"] = self.allocator.next("category_groups")
        now = self.clock()
        category_group["created_at"] = now
        category_group["updated_at"] = now
        return category_group

    def process_topic(self, topic: Row) -> Row:
        topic["id"] = self.allocator.next("topics")
        self._put(MappingType.TOPIC, topic, topic["id"])

        if not topic.get("archetype"):
            topic["archetype"] = self.site_defaults.default_archetype
        topic["title"] = scrub(topic.get("title") or "")[:MAX_TITLE_LENGTH].strip()
        if not topic.get("fancy_title"):
            topic["fancy_title"] = fancy_title(topic["title"])
        if not topic.get("slug"):
            topic["slug"] = slugify(topic["title"]) or "topic"
        if topic.get("user_id") is None:
            topic["user_id"] = self.site_defaults.system_user_id
        if topic.get("last_post_user_id") is None:
            topic["last_post_user_id"] = topic["user_id"]
        if topic.get("category_id") is None and topic["archetype"] != self.site_defaults.private_message_archetype:
            topic["category_id"] = self.site_defaults.uncategorized_category_id
        if "visible" not in topic:
            topic["visible"] = True
        topic["closed"] = bool(topic.get("closed"))
        if topic.get("views") is None:
            topic["views"] = 0
        self._stamp(topic)
        if topic.get("bumped_at") is None:
            topic["bumped_at"] = topic["created_at"]
        return topic

    def process_topic_allowed_user(self, topic_allowed_user: Row) -> Row:
        now = self.clock()
        topic_allowed_user["created_at"] = now
        topic_allowed_user["updated_at"] = now
        return topic_allowed_user

    def process_topic_tag(self, topic_tag: Row) -> Row:
        now = self.clock()
        topic_tag["created_at"] = now
        topic_tag["updated_at"] = now
        return topic_tag

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    def process_post(self, post: Row) -> Row:
        topic_id = post.get("topic_id")
        if topic_id is None:
            raise ValueError(f"Post {post.get('imported_id')!r} has no target topic id.")

        result = self.markup.transform(post.get("raw"))
        post["raw"] = result.raw
        post["cooked"] = result.cooked
        post["word_count"] = result.word_count

        post["id"] = self.allocator.next("posts")
        self._put(MappingType.POST, post, post["id"])

        if post.get("user_id") is None:
            post["user_id"] = self.site_defaults.system_user_id
        post["last_editor_id"] = post["user_id"]
        post["post_number"] = self.posts.next_post_number(topic_id)
        post["sort_order"] = post["post_number"]
        self.posts.record_post(post["id"], topic_id, post["post_number"])

        if post.get("like_count") is None:
            post["like_count"] = 0
        post["hidden"] = bool(post.get("hidden"))
        self._stamp(post)
        post["last_version_at"] = post["created_at"]

        if "\x00" in post["raw"]:
            logger.warning("Skipping post with original ID %s because raw contains null bytes", post.get("imported_id"))
            post["skip"] = True

        if post.get("reply_to_post_number") == 1:
            post["reply_to_post_number"] = None

        if "\x00" in post["cooked"]:
            logger.warning(
                "Skipping post with original ID %s because cooked contains null bytes", post.get("imported_id")
            )
            post["skip"] = True

        return post

    def process_post_action(self, post_action: Row) -> Row:
        if post_action.get("id") is None:
            post_action["id"] = self.allocator.next("post_actions")
        post_action["staff_took_action"] = bool(post_action.get("staff_took_action"))
        post_action["targets_topic"] = bool(post_action.get("targets_topic"))
        self._stamp(post_action)
        return post_action

    def process_question_answer_vote(self, vote: Row) -> Row:
        self._stamp(vote, updated=None)
        return vote

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    def process_upload(self, upload: Row) -> Row:
        sha1 = upload.get("sha1")
        existing_upload_id = self.indexes.uploads_by_sha1.get(sha1) if sha1 else None
        if existing_upload_id is not None:
            self._put(MappingType.UPLOAD, upload, existing_upload_id)
            upload["skip"] = True
            return upload

        upload["id"] = self.allocator.next("uploads")
        if upload.get("user_id") is None:
            upload["user_id"] = self.site_defaults.system_user_id
        if upload.get("secure") is None:
            upload["secure"] = False
        if upload.get("verification_status") is None:
            upload["verification_status"] = 1
        self._stamp(upload)

        self._put(MappingType.UPLOAD, upload, upload["id"])
        if sha1:
            self.indexes.uploads_by_sha1[sha1] = upload["id"]
        return upload

    def process_upload_reference(self, upload_reference: Row) -> Row:
        self._stamp(upload_reference)
        return upload_reference
