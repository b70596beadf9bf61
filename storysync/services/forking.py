"""Copying a readable story into a new private story owned by the forker."""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Chapter, Story, User
from .chapters import ordered_chapters


class ForkError(RuntimeError):
    """Raised when a story cannot be forked."""


def fork_story(source: Story, user: User) -> Story:
    if not getattr(user, "is_authenticated", False):
        raise ForkError("Please log in to fork a story.")
    if not source.can_view(user):
        raise ForkError("You do not have permission to view this story.")
    if source.author_id == user.id:
        raise ForkError("You cannot fork a story you wrote.")

    now = datetime.utcnow()
    fork = Story(
        title=f"Fork of {source.title}"[:150],
        author_id=user.id,
        author_name=user.public_name,
        is_public=False,
        forked_from_id=source.id,
        created_at=now,
        last_updated_at=now,
    )
    fork.collaborators.append(user)
    db.session.add(fork)

    for chapter in ordered_chapters(source):
        db.session.add(
            Chapter(
                story=fork,
                title=chapter.title,
                content=chapter.content or "",
                author_id=user.id,
                last_updated_by_id=user.id,
                last_updated_by_name=user.public_name,
                revision=0,
                created_at=now,
                updated_at=now,
            )
        )

    db.session.commit()
    current_app.logger.info("User %s forked story %s into %s", user.id, source.id, fork.id)
    return fork
