# forum_migrator/models/forum.py

"""
Target forum schema written by the bulk importer.

Primary keys are assigned by the importer's in-process allocator rather than
by the database, so tables declare plain integer keys and no foreign keys:
rows of different entity types arrive out of order and are reconciled through
the migration mappings instead of database constraints.
"""

from sqlalchemy import Index, UniqueConstraint

from .base import BaseModel, db


class Group(BaseModel):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(60), nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    title = db.Column(db.String(255), nullable=True)
    bio_raw = db.Column(db.Text, nullable=True)
    bio_cooked = db.Column(db.Text, nullable=True)
    visibility_level = db.Column(db.Integer, nullable=False, default=0)
    members_visibility_level = db.Column(db.Integer, nullable=False, default=0)
    mentionable_level = db.Column(db.Integer, nullable=False, default=0)
    messageable_level = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class GroupUser(BaseModel):
    __tablename__ = "group_users"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    group_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class User(BaseModel):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(60), nullable=False)
    username_lower = db.Column(db.String(60), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=False)
    trust_level = db.Column(db.Integer, nullable=False, default=0)
    admin = db.Column(db.Boolean, nullable=False, default=False)
    moderator = db.Column(db.Boolean, nullable=False, default=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    registration_ip_address = db.Column(db.String(45), nullable=True)
    primary_group_id = db.Column(db.Integer, nullable=True)
    suspended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    suspended_till = db.Column(db.DateTime(timezone=True), nullable=True)
    last_seen_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_emailed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserEmail(BaseModel):
    __tablename__ = "user_emails"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    email = db.Column(db.String(513), nullable=False, unique=True)
    primary = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserStat(BaseModel):
    __tablename__ = "user_stats"

    user_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    topics_entered = db.Column(db.Integer, nullable=False, default=0)
    time_read = db.Column(db.Integer, nullable=False, default=0)
    days_visited = db.Column(db.Integer, nullable=False, default=0)
    posts_read_count = db.Column(db.Integer, nullable=False, default=0)
    likes_given = db.Column(db.Integer, nullable=False, default=0)
    likes_received = db.Column(db.Integer, nullable=False, default=0)
    new_since = db.Column(db.DateTime(timezone=True), nullable=False)
    read_faq = db.Column(db.DateTime(timezone=True), nullable=True)
    first_post_created_at = db.Column(db.DateTime(timezone=True), nullable=True)
    post_count = db.Column(db.Integer, nullable=False, default=0)
    topic_count = db.Column(db.Integer, nullable=False, default=0)
    bounce_score = db.Column(db.Float, nullable=False, default=0)
    reset_bounce_score_after = db.Column(db.DateTime(timezone=True), nullable=True)
    digest_attempted_at = db.Column(db.DateTime(timezone=True), nullable=True)


class UserHistory(BaseModel):
    __tablename__ = "user_histories"

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.Integer, nullable=False)
    acting_user_id = db.Column(db.Integer, nullable=True)
    target_user_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserAvatar(BaseModel):
    __tablename__ = "user_avatars"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    custom_upload_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserProfile(BaseModel):
    __tablename__ = "user_profiles"

    user_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    location = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    bio_raw = db.Column(db.Text, nullable=True)
    bio_cooked = db.Column(db.Text, nullable=True)
    views = db.Column(db.Integer, nullable=False, default=0)


class SingleSignOnRecord(BaseModel):
    __tablename__ = "single_sign_on_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    external_id = db.Column(db.String(255), nullable=False, unique=True)
    last_payload = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    external_username = db.Column(db.String(255), nullable=True)
    external_email = db.Column(db.String(255), nullable=True)
    external_name = db.Column(db.String(255), nullable=True)
    external_avatar_url = db.Column(db.String(1000), nullable=True)
    external_profile_background_url = db.Column(db.String(1000), nullable=True)
    external_card_background_url = db.Column(db.String(1000), nullable=True)


class UserOption(BaseModel):
    __tablename__ = "user_options"

    user_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    mailing_list_mode = db.Column(db.Boolean, nullable=False, default=False)
    mailing_list_mode_frequency = db.Column(db.Integer, nullable=False, default=1)
    email_level = db.Column(db.Integer, nullable=False, default=1)
    email_messages_level = db.Column(db.Integer, nullable=False, default=0)
    email_previous_replies = db.Column(db.Integer, nullable=False, default=2)
    email_in_reply_to = db.Column(db.Boolean, nullable=False, default=True)
    email_digests = db.Column(db.Boolean, nullable=True)
    digest_after_minutes = db.Column(db.Integer, nullable=True)
    include_tl0_in_digests = db.Column(db.Boolean, nullable=True, default=False)
    automatically_unpin_topics = db.Column(db.Boolean, nullable=False, default=True)
    enable_quoting = db.Column(db.Boolean, nullable=False, default=True)
    external_links_in_new_tab = db.Column(db.Boolean, nullable=False, default=False)
    dynamic_favicon = db.Column(db.Boolean, nullable=False, default=False)
    new_topic_duration_minutes = db.Column(db.Integer, nullable=True)
    auto_track_topics_after_msecs = db.Column(db.Integer, nullable=True)
    notification_level_when_replying = db.Column(db.Integer, nullable=True)
    like_notification_frequency = db.Column(db.Integer, nullable=False, default=1)
    skip_new_user_tips = db.Column(db.Boolean, nullable=False, default=False)
    hide_profile_and_presence = db.Column(db.Boolean, nullable=False, default=False)
    sidebar_link_to_filtered_list = db.Column(db.Boolean, nullable=False, default=False)
    sidebar_show_count_of_new_items = db.Column(db.Boolean, nullable=False, default=False)
    timezone = db.Column(db.String(255), nullable=True)


class MutedUser(BaseModel):
    __tablename__ = "muted_users"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    muted_user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class Category(BaseModel):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    name_lower = db.Column(db.String(50), nullable=False)
    slug = db.Column(db.String(255), nullable=False, default="")
    user_id = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    position = db.Column(db.Integer, nullable=True)
    parent_category_id = db.Column(db.Integer, nullable=True, index=True)
    read_restricted = db.Column(db.Boolean, nullable=False, default=False)
    uploaded_logo_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (UniqueConstraint("parent_category_id", "name", name="uq_categories_parent_name"),)


class CategoryGroup(BaseModel):
    __tablename__ = "category_groups"

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, nullable=False, index=True)
    group_id = db.Column(db.Integer, nullable=False)
    permission_type = db.Column(db.Integer, nullable=True, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class Topic(BaseModel):
    __tablename__ = "topics"

    id = db.Column(db.Integer, primary_key=True)
    archetype = db.Column(db.String(255), nullable=False, default="regular")
    title = db.Column(db.String(255), nullable=False)
    fancy_title = db.Column(db.String(400), nullable=True)
    slug = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    last_post_user_id = db.Column(db.Integer, nullable=False)
    category_id = db.Column(db.Integer, nullable=True, index=True)
    visible = db.Column(db.Boolean, nullable=False, default=True)
    closed = db.Column(db.Boolean, nullable=False, default=False)
    pinned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    views = db.Column(db.Integer, nullable=False, default=0)
    subtype = db.Column(db.String(255), nullable=True)
    highest_post_number = db.Column(db.Integer, nullable=False, default=0)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    bumped_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class TopicAllowedUser(BaseModel):
    __tablename__ = "topic_allowed_users"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    topic_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class TopicTag(BaseModel):
    __tablename__ = "topic_tags"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    topic_id = db.Column(db.Integer, nullable=False, index=True)
    tag_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class Post(BaseModel):
    __tablename__ = "posts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)
    last_editor_id = db.Column(db.Integer, nullable=True)
    topic_id = db.Column(db.Integer, nullable=False)
    post_number = db.Column(db.Integer, nullable=False)
    sort_order = db.Column(db.Integer, nullable=True)
    reply_to_post_number = db.Column(db.Integer, nullable=True)
    like_count = db.Column(db.Integer, nullable=False, default=0)
    raw = db.Column(db.Text, nullable=False)
    cooked = db.Column(db.Text, nullable=False)
    hidden = db.Column(db.Boolean, nullable=False, default=False)
    word_count = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_version_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_posts_topic_post_number", "topic_id", "post_number", unique=True),)


class PostAction(BaseModel):
    __tablename__ = "post_actions"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False)
    post_action_type_id = db.Column(db.Integer, nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deleted_by_id = db.Column(db.Integer, nullable=True)
    related_post_id = db.Column(db.Integer, nullable=True)
    staff_took_action = db.Column(db.Boolean, nullable=False, default=False)
    deferred_by_id = db.Column(db.Integer, nullable=True)
    targets_topic = db.Column(db.Boolean, nullable=False, default=False)
    agreed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    agreed_by_id = db.Column(db.Integer, nullable=True)
    deferred_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disagreed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disagreed_by_id = db.Column(db.Integer, nullable=True)


class Upload(BaseModel):
    __tablename__ = "uploads"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False)
    original_filename = db.Column(db.String(255), nullable=False)
    filesize = db.Column(db.BigInteger, nullable=False)
    width = db.Column(db.Integer, nullable=True)
    height = db.Column(db.Integer, nullable=True)
    url = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    sha1 = db.Column(db.String(40), nullable=True, unique=True)
    origin = db.Column(db.String(1000), nullable=True)
    retain_hours = db.Column(db.Integer, nullable=True)
    extension = db.Column(db.String(10), nullable=True)
    thumbnail_width = db.Column(db.Integer, nullable=True)
    thumbnail_height = db.Column(db.Integer, nullable=True)
    etag = db.Column(db.String(255), nullable=True)
    secure = db.Column(db.Boolean, nullable=False, default=False)
    access_control_post_id = db.Column(db.Integer, nullable=True)
    original_sha1 = db.Column(db.String(255), nullable=True)
    animated = db.Column(db.Boolean, nullable=True)
    verification_status = db.Column(db.Integer, nullable=False, default=1)
    security_last_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    security_last_changed_reason = db.Column(db.String(255), nullable=True)
    dominant_color = db.Column(db.String(6), nullable=True)


class UploadReference(BaseModel):
    __tablename__ = "upload_references"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    upload_id = db.Column(db.Integer, nullable=False, index=True)
    target_type = db.Column(db.String(255), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class QuestionAnswerVote(BaseModel):
    __tablename__ = "question_answer_votes"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, nullable=False)
    votable_type = db.Column(db.String(255), nullable=False)
    votable_id = db.Column(db.Integer, nullable=False)
    direction = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserAction(BaseModel):
    __tablename__ = "user_actions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    action_type = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    target_topic_id = db.Column(db.Integer, nullable=True)
    target_post_id = db.Column(db.Integer, nullable=True)
    target_user_id = db.Column(db.Integer, nullable=True)
    acting_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class GroupCustomField(BaseModel):
    __tablename__ = "group_custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class UserCustomField(BaseModel):
    __tablename__ = "user_custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class CategoryCustomField(BaseModel):
    __tablename__ = "category_custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class TopicCustomField(BaseModel):
    __tablename__ = "topic_custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


class PostCustomField(BaseModel):
    __tablename__ = "post_custom_fields"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)


CUSTOM_FIELD_MODELS = {
    "group": GroupCustomField,
    "user": UserCustomField,
    "category": CategoryCustomField,
    "topic": TopicCustomField,
    "post": PostCustomField,
}
