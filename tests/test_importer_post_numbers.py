from datetime import datetime, timezone

from forum_migrator.importer.pipeline import PostNumberIndex, fix_highest_post_numbers
from forum_migrator.models import Post, Topic, db


def _topic(topic_id: int, highest: int = 0) -> None:
    now = datetime.now(timezone.utc)
    db.session.add(
        Topic(
            id=topic_id,
            title=f"Topic {topic_id}",
            last_post_user_id=1,
            highest_post_number=highest,
            created_at=now,
            bumped_at=now,
            updated_at=now,
        )
    )


def _post(post_id: int, topic_id: int, number: int, deleted: bool = False) -> None:
    now = datetime.now(timezone.utc)
    db.session.add(
        Post(
            id=post_id,
            topic_id=topic_id,
            post_number=number,
            raw="body",
            cooked="<p>body</p>",
            deleted_at=now if deleted else None,
            created_at=now,
            last_version_at=now,
            updated_at=now,
        )
    )


def test_numbers_start_at_one_and_are_per_topic():
    index = PostNumberIndex()

    assert index.next_post_number(1) == 1
    assert index.next_post_number(1) == 2
    assert index.next_post_number(2) == 1
    assert index.highest_post_number(1) == 2
    assert index.highest_post_number(3) == 0


def test_record_post_supports_reverse_lookups():
    index = PostNumberIndex()
    index.record_post(post_id=10, topic_id=4, post_number=3)

    assert index.post_number_for(10) == 3
    assert index.topic_for(10) == 4
    assert index.post_number_for(11) is None
    assert index.topic_for(None) is None


def test_prime_continues_existing_topics():
    _topic(1, highest=5)
    _post(100, 1, 5)
    db.session.commit()

    index = PostNumberIndex()
    index.prime(db.session)

    assert index.post_number_for(100) == 5
    assert index.topic_for(100) == 1
    assert index.next_post_number(1) == 6


def test_fix_highest_post_numbers_ignores_deleted_posts():
    _topic(1, highest=0)
    _post(1, 1, 1)
    _post(2, 1, 2)
    _post(3, 1, 3, deleted=True)
    _topic(2, highest=1)
    _post(4, 2, 1)
    _topic(3, highest=7)
    db.session.commit()

    assert fix_highest_post_numbers(db.session) == 1

    assert db.session.get(Topic, 1).highest_post_number == 2
    assert db.session.get(Topic, 2).highest_post_number == 1
    assert db.session.get(Topic, 3).highest_post_number == 7
