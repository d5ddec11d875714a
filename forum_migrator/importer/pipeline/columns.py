"""
Ordered column lists written for each target table.

Columns left out of a list fall back to their database defaults (for example
``topics.highest_post_number``), so only columns the processors fill belong
here.
"""

GROUP_COLUMNS = (
    "id",
    "name",
    "full_name",
    "title",
    "bio_raw",
    "bio_cooked",
    "visibility_level",
    "members_visibility_level",
    "mentionable_level",
    "messageable_level",
    "created_at",
    "updated_at",
)

USER_COLUMNS = (
    "id",
    "username",
    "username_lower",
    "name",
    "active",
    "trust_level",
    "admin",
    "moderator",
    "date_of_birth",
    "ip_address",
    "registration_ip_address",
    "primary_group_id",
    "suspended_at",
    "suspended_till",
    "last_seen_at",
    "last_emailed_at",
    "created_at",
    "updated_at",
)

USER_EMAIL_COLUMNS = ("id", "user_id", "email", "primary", "created_at", "updated_at")

USER_STAT_COLUMNS = (
    "user_id",
    "topics_entered",
    "time_read",
    "days_visited",
    "posts_read_count",
    "likes_given",
    "likes_received",
    "new_since",
    "read_faq",
    "first_post_created_at",
    "post_count",
    "topic_count",
    "bounce_score",
    "reset_bounce_score_after",
    "digest_attempted_at",
)

USER_HISTORY_COLUMNS = ("id", "action", "acting_user_id", "target_user_id", "details", "created_at", "updated_at")

USER_AVATAR_COLUMNS = ("id", "user_id", "custom_upload_id", "created_at", "updated_at")

USER_PROFILE_COLUMNS = ("user_id", "location", "website", "bio_raw", "bio_cooked", "views")

SINGLE_SIGN_ON_RECORD_COLUMNS = (
    "id",
    "user_id",
    "external_id",
    "last_payload",
    "created_at",
    "updated_at",
    "external_username",
    "external_email",
    "external_name",
    "external_avatar_url",
    "external_profile_background_url",
    "external_card_background_url",
)

USER_OPTION_COLUMNS = (
    "user_id",
    "mailing_list_mode",
    "mailing_list_mode_frequency",
    "email_level",
    "email_messages_level",
    "email_previous_replies",
    "email_in_reply_to",
    "email_digests",
    "digest_after_minutes",
    "include_tl0_in_digests",
    "automatically_unpin_topics",
    "enable_quoting",
    "external_links_in_new_tab",
    "dynamic_favicon",
    "new_topic_duration_minutes",
    "auto_track_topics_after_msecs",
    "notification_level_when_replying",
    "like_notification_frequency",
    "skip_new_user_tips",
    "hide_profile_and_presence",
    "sidebar_link_to_filtered_list",
    "sidebar_show_count_of_new_items",
    "timezone",
)

GROUP_USER_COLUMNS = ("group_id", "user_id", "created_at", "updated_at")

MUTED_USER_COLUMNS = ("id", "user_id", "muted_user_id", "created_at", "updated_at")

CATEGORY_COLUMNS = (
    "id",
    "name",
    "name_lower",
    "slug",
    "user_id",
    "description",
    "position",
    "parent_category_id",
    "read_restricted",
    "uploaded_logo_id",
    "created_at",
    "updated_at",
)

CATEGORY_GROUP_COLUMNS = ("id", "category_id", "group_id", "permission_type", "created_at", "updated_at")

TOPIC_COLUMNS = (
    "id",
    "archetype",
    "title",
    "fancy_title",
    "slug",
    "user_id",
    "last_post_user_id",
    "category_id",
    "visible",
    "closed",
    "pinned_at",
    "views",
    "subtype",
    "created_at",
    "bumped_at",
    "updated_at",
)

POST_COLUMNS = (
    "id",
    "user_id",
    "last_editor_id",
    "topic_id",
    "post_number",
    "sort_order",
    "reply_to_post_number",
    "like_count",
    "raw",
    "cooked",
    "hidden",
    "word_count",
    "created_at",
    "last_version_at",
    "updated_at",
)

POST_ACTION_COLUMNS = (
    "id",
    "post_id",
    "user_id",
    "post_action_type_id",
    "deleted_at",
    "created_at",
    "updated_at",
    "deleted_by_id",
    "related_post_id",
    "staff_took_action",
    "deferred_by_id",
    "targets_topic",
    "agreed_at",
    "agreed_by_id",
    "deferred_at",
    "disagreed_at",
    "disagreed_by_id",
)

TOPIC_ALLOWED_USER_COLUMNS = ("topic_id", "user_id", "created_at", "updated_at")

TOPIC_TAG_COLUMNS = ("topic_id", "tag_id", "created_at", "updated_at")

UPLOAD_COLUMNS = (
    "id",
    "user_id",
    "original_filename",
    "filesize",
    "width",
    "height",
    "url",
    "created_at",
    "updated_at",
    "sha1",
    "origin",
    "retain_hours",
    "extension",
    "thumbnail_width",
    "thumbnail_height",
    "etag",
    "secure",
    "access_control_post_id",
    "original_sha1",
    "animated",
    "verification_status",
    "security_last_changed_at",
    "security_last_changed_reason",
    "dominant_color",
)

UPLOAD_REFERENCE_COLUMNS = ("upload_id", "target_type", "target_id", "created_at", "updated_at")

QUESTION_ANSWER_VOTE_COLUMNS = ("user_id", "votable_type", "votable_id", "direction", "created_at")

USER_ACTION_COLUMNS = (
    "action_type",
    "user_id",
    "target_topic_id",
    "target_post_id",
    "target_user_id",
    "acting_user_id",
    "created_at",
    "updated_at",
)


def custom_field_columns(owner: str) -> tuple[str, ...]:
    return ("id", f"{owner}_id", "name", "value", "created_at", "updated_at")
