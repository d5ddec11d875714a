"""
Per-topic post numbering.

Posts are numbered 1, 2, 3, ... within their topic in the order they are
imported. The index is primed from the target database so that posts added to
an existing topic continue after its current highest post number.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from forum_migrator.models import Post, Topic

logger = logging.getLogger(__name__)

STREAM_BATCH_SIZE = 10_000


class PostNumberIndex:
    def __init__(self) -> None:
        self._highest_by_topic: dict[int, int] = {}
        self._post_number_by_post: dict[int, int] = {}
        self._topic_by_post: dict[int, int] = {}

    def prime(self, session: Session, *, batch_size: int = STREAM_BATCH_SIZE) -> None:
        """Load highest post numbers and post positions already in the target."""

        topics = select(Topic.id, Topic.highest_post_number).execution_options(yield_per=batch_size)
        for topic_id, highest in session.execute(topics):
            self._highest_by_topic[topic_id] = highest or 0

        posts = select(Post.id, Post.topic_id, Post.post_number).execution_options(yield_per=batch_size)
        for post_id, topic_id, post_number in session.execute(posts):
            self._post_number_by_post[post_id] = post_number
            self._topic_by_post[post_id] = topic_id

        logger.info(
            "Primed post numbers for %d topics and %d posts",
            len(self._highest_by_topic),
            len(self._post_number_by_post),
        )

    def next_post_number(self, topic_id: int) -> int:
        number = self._highest_by_topic.get(topic_id, 0) + 1
        self._highest_by_topic[topic_id] = number
        return number

    def highest_post_number(self, topic_id: int) -> int:
        return self._highest_by_topic.get(topic_id, 0)

    def record_post(self, post_id: int, topic_id: int, post_number: int) -> None:
        self._post_number_by_post[post_id] = post_number
        self._topic_by_post[post_id] = topic_id

    def post_number_for(self, post_id: int | None) -> int | None:
        if post_id is None:
            return None
        return self._post_number_by_post.get(post_id)

    def topic_for(self, post_id: int | None) -> int | None:
        if post_id is None:
            return None
        return self._topic_by_post.get(post_id)


def fix_highest_post_numbers(session: Session) -> int:
    """
    Reconcile ``topics.highest_post_number`` with the live posts of each topic.

    Only topics whose stored value disagrees with the highest non-deleted post
    number are touched. Returns the number of updated topics.
    """

    topics = Topic.__table__
    posts = Post.__table__
    live_posts = (posts.c.topic_id == topics.c.id, posts.c.deleted_at.is_(None))
    highest = select(func.max(posts.c.post_number)).where(*live_posts).scalar_subquery()

    stmt = (
        update(topics)
        .where(select(posts.c.id).where(*live_posts).exists())
        .where(topics.c.highest_post_number != highest)
        .values(highest_post_number=highest)
    )
    result = session.execute(stmt)
    session.commit()
    updated = result.rowcount or 0
    if updated:
        logger.info("Fixed highest post numbers for %d topics", updated)
    return updated
