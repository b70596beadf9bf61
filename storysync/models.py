from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


story_collaborators = db.Table(
    "story_collaborators",
    db.Column("story_id", db.Integer, db.ForeignKey("stories.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("added_at", db.DateTime, default=datetime.utcnow, nullable=False),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    authored_stories = db.relationship("Story", backref="author", lazy=True, foreign_keys="Story.author_id")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def public_name(self) -> str:
        """Name shown to collaborators: display name, email prefix, or ``Anonymous``."""

        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        if self.email:
            return self.email.split("@")[0]
        return "Anonymous"

    @property
    def initials(self) -> str:
        name = (self.display_name or "").strip()
        if name:
            parts = name.split()
            if len(parts) == 1:
                return parts[0][0].upper()
            return parts[0][0].upper() + parts[-1][0].upper()
        if self.email:
            return self.email[0].upper()
        return "?"

    def __repr__(self) -> str:  # pragma: no cover - repr for debugging
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id: str) -> Optional["User"]:
    return db.session.get(User, int(user_id))


class Story(db.Model):
    __tablename__ = "stories"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    author_name = db.Column(db.String(120), nullable=False)
    is_public = db.Column(db.Boolean, nullable=False, default=False, index=True)
    forked_from_id = db.Column(db.Integer, db.ForeignKey("stories.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    collaborators = db.relationship(
        "User",
        secondary=story_collaborators,
        lazy="subquery",
        backref=db.backref("shared_stories", lazy=True),
    )
    chapters = db.relationship(
        "Chapter",
        backref="story",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="[Chapter.created_at, Chapter.id]",
    )
    forked_from = db.relationship("Story", remote_side=[id], lazy=True)

    def is_owner(self, user: object) -> bool:
        return bool(getattr(user, "is_authenticated", False)) and self.author_id == user.id

    def can_edit(self, user: object) -> bool:
        if not getattr(user, "is_authenticated", False):
            return False
        return any(collaborator.id == user.id for collaborator in self.collaborators)

    def can_view(self, user: object) -> bool:
        return bool(self.is_public) or self.can_edit(user)

    def touch(self) -> None:
        self.last_updated_at = datetime.utcnow()

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Story {self.title} ({'public' if self.is_public else 'private'})>"


class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.Integer, primary_key=True)
    story_id = db.Column(db.Integer, db.ForeignKey("stories.id"), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    content = db.Column(db.Text, nullable=False, default="")
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    last_updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    last_updated_by_name = db.Column(db.String(120), nullable=True)
    revision = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Chapter {self.title} (story {self.story_id}, rev {self.revision})>"
