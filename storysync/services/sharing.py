from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from flask import current_app

from ..extensions import change_feed, db
from ..models import Story, User


class SharingError(RuntimeError):
    """Raised when a sharing change is rejected."""


class AlreadyCollaboratorError(SharingError):
    """Raised when the invited user can already edit the story."""


@dataclass
class CollaboratorInfo:
    id: int
    display_name: str
    email: str
    initials: str
    is_author: bool


_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def collaborator_roster(story: Story) -> List[CollaboratorInfo]:
    """Collaborators with the author first, then alphabetically by name."""

    roster = [
        CollaboratorInfo(
            id=user.id,
            display_name=user.public_name,
            email=user.email or "No email",
            initials=user.initials,
            is_author=user.id == story.author_id,
        )
        for user in story.collaborators
    ]
    roster.sort(key=lambda info: (not info.is_author, info.display_name.casefold()))
    return roster


def add_collaborator(story: Story, acting_user: User, email: str) -> User:
    if not story.is_owner(acting_user):
        raise SharingError("Only the story owner can add collaborators.")
    cleaned = (email or "").strip()
    if not cleaned or not _EMAIL_PATTERN.match(cleaned):
        raise SharingError("Please enter a valid email address.")

    normalized = cleaned.lower()
    invitee = User.query.filter_by(email=normalized).first()
    if invitee is None:
        raise SharingError(
            f"No user registered with email {normalized}. Please ensure they have signed up."
        )
    if any(user.id == invitee.id for user in story.collaborators):
        raise AlreadyCollaboratorError(f"{normalized} is already collaborating on this story.")

    story.collaborators.append(invitee)
    story.touch()
    db.session.commit()

    current_app.logger.info("Story %s shared with user %s", story.id, invitee.id)
    _publish_story_update(story)
    return invitee


def remove_collaborator(story: Story, acting_user: User, user_id: int) -> User:
    if not story.is_owner(acting_user):
        raise SharingError("Only the story owner can remove collaborators.")
    if user_id == story.author_id:
        raise SharingError("The story owner cannot be removed.")

    collaborator = next((user for user in story.collaborators if user.id == user_id), None)
    if collaborator is None:
        raise SharingError("That user is not a collaborator on this story.")

    story.collaborators.remove(collaborator)
    story.touch()
    db.session.commit()

    current_app.logger.info("Revoked access to story %s for user %s", story.id, user_id)
    _publish_story_update(story)
    return collaborator


def set_visibility(story: Story, acting_user: User, is_public: bool) -> Story:
    if not story.is_owner(acting_user):
        raise SharingError("Only the story owner can change the public status.")

    story.is_public = bool(is_public)
    story.touch()
    db.session.commit()

    _publish_story_update(story)
    return story


def _publish_story_update(story: Story) -> None:
    change_feed.publish(
        story.id,
        "story_updated",
        {
            "id": story.id,
            "title": story.title,
            "is_public": bool(story.is_public),
            "collaborators": [user.id for user in story.collaborators],
            "last_updated_at": story.last_updated_at.isoformat() if story.last_updated_at else None,
        },
    )
