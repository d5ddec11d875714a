# forum_migrator/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .forum import (
    CUSTOM_FIELD_MODELS,
    Category,
    CategoryCustomField,
    CategoryGroup,
    Group,
    GroupCustomField,
    GroupUser,
    MutedUser,
    Post,
    PostAction,
    PostCustomField,
    QuestionAnswerVote,
    SingleSignOnRecord,
    Topic,
    TopicAllowedUser,
    TopicCustomField,
    TopicTag,
    Upload,
    UploadReference,
    User,
    UserAction,
    UserAvatar,
    UserCustomField,
    UserEmail,
    UserHistory,
    UserOption,
    UserProfile,
    UserStat,
)
from .importer import MappingType, MigrationMapping

__all__ = [
    "db",
    "BaseModel",
    "CUSTOM_FIELD_MODELS",
    # Forum schema
    "Group",
    "GroupUser",
    "GroupCustomField",
    "User",
    "UserEmail",
    "UserStat",
    "UserHistory",
    "UserAvatar",
    "UserProfile",
    "UserOption",
    "UserCustomField",
    "UserAction",
    "SingleSignOnRecord",
    "MutedUser",
    "Category",
    "CategoryGroup",
    "CategoryCustomField",
    "Topic",
    "TopicAllowedUser",
    "TopicTag",
    "TopicCustomField",
    "Post",
    "PostAction",
    "PostCustomField",
    "Upload",
    "UploadReference",
    "QuestionAnswerVote",
    # Importer bookkeeping
    "MappingType",
    "MigrationMapping",
]
