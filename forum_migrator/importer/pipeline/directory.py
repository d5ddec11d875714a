"""Username lookups used when rendering quote headers."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from forum_migrator.models import User
from forum_migrator.utils.importer import DEFAULT_AVATAR_TEMPLATE

from .markup import DisplayUser


class SessionUserDirectory:
    """Find target users by username, caching hits and misses for the run."""

    def __init__(self, session: Session, avatar_template: str = DEFAULT_AVATAR_TEMPLATE):
        self.session = session
        self.avatar_template = avatar_template
        self._cache: dict[str, DisplayUser | None] = {}

    def find_by_username(self, username: str) -> DisplayUser | None:
        key = username.lower()
        if key in self._cache:
            return self._cache[key]

        found = self.session.scalar(select(User.username).where(User.username_lower == key))
        user = None
        if found is not None:
            template = self.avatar_template.replace("{username_lower}", key).replace("{username}", found)
            user = DisplayUser(username=found, avatar_template=template)
        self._cache[key] = user
        return user

    def clear(self) -> None:
        self._cache.clear()
