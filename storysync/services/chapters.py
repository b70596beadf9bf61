"""Chapter creation and last-writer-wins content saves."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

import nh3
from flask import current_app

from ..extensions import change_feed, db
from ..models import Chapter, Story, User


# Tags the chapter editor produces; everything else is stripped on save.
ALLOWED_TAGS = frozenset(
    {"p", "br", "strong", "b", "em", "i", "u", "s", "strike", "h1", "h2", "h3", "ul", "ol", "li", "blockquote"}
)


class ChapterError(RuntimeError):
    """Raised when a chapter cannot be created or saved."""


@dataclass
class ChapterSaveResult:
    chapter: Chapter
    changed: bool


def ordered_chapters(story: Story) -> List[Chapter]:
    return (
        Chapter.query.filter_by(story_id=story.id)
        .order_by(Chapter.created_at.asc(), Chapter.id.asc())
        .all()
    )


def add_chapter(story: Story, user: User, title: str) -> Chapter:
    if not story.can_edit(user):
        raise ChapterError("You do not have permission to edit this story.")

    cleaned_title = (title or "").strip()
    if not cleaned_title:
        raise ChapterError("Give the chapter a title before adding it.")

    now = datetime.utcnow()
    chapter = Chapter(
        story=story,
        title=cleaned_title,
        content="",
        author_id=user.id,
        last_updated_by_id=user.id,
        last_updated_by_name=user.public_name,
        revision=0,
        created_at=now,
        updated_at=now,
    )
    story.last_updated_at = now
    db.session.add(chapter)
    db.session.commit()

    change_feed.publish(story.id, "chapter_added", chapter_summary(chapter))
    current_app.logger.info("User %s added chapter %s to story %s", user.id, chapter.id, story.id)
    return chapter


def sanitize_chapter_html(content: str) -> str:
    return nh3.clean(content, tags=set(ALLOWED_TAGS), attributes={}, url_schemes=set())


def save_chapter_content(chapter: Chapter, user: User, content: Any) -> ChapterSaveResult:
    """Store sanitised ``content`` for ``chapter``; the latest save always wins.

    Every accepted save bumps the revision, including one that repeats the
    stored content.
    """

    story = chapter.story
    if not story.can_edit(user):
        raise ChapterError("You do not have permission to edit this story.")
    if not isinstance(content, str):
        raise ChapterError("Chapter content must be a string.")

    cleaned = sanitize_chapter_html(content)
    changed = cleaned != (chapter.content or "")

    now = datetime.utcnow()
    chapter.content = cleaned
    chapter.last_updated_by_id = user.id
    chapter.last_updated_by_name = user.public_name
    chapter.revision = (chapter.revision or 0) + 1
    chapter.updated_at = now
    story.last_updated_at = now
    db.session.commit()

    change_feed.publish(story.id, "chapter_saved", chapter_snapshot(chapter))
    return ChapterSaveResult(chapter=chapter, changed=changed)


def chapter_summary(chapter: Chapter) -> Dict[str, Any]:
    return {
        "id": chapter.id,
        "title": chapter.title,
        "revision": chapter.revision,
        "created_at": chapter.created_at.isoformat() if chapter.created_at else None,
    }


def chapter_snapshot(chapter: Chapter) -> Dict[str, Any]:
    return {
        "id": chapter.id,
        "story_id": chapter.story_id,
        "title": chapter.title,
        "content": chapter.content or "",
        "revision": chapter.revision,
        "last_updated_by": chapter.last_updated_by_id,
        "last_updated_by_name": chapter.last_updated_by_name or "Unknown",
        "updated_at": chapter.updated_at.isoformat() if chapter.updated_at else None,
    }


def story_snapshot(story: Story) -> Dict[str, Any]:
    return {
        "id": story.id,
        "title": story.title,
        "author_id": story.author_id,
        "author_name": story.author_name,
        "is_public": bool(story.is_public),
        "collaborators": [user.id for user in story.collaborators],
        "last_updated_at": story.last_updated_at.isoformat() if story.last_updated_at else None,
        "chapters": [chapter_summary(chapter) for chapter in ordered_chapters(story)],
    }
