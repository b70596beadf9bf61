import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storysync import create_app
from storysync.config import TestConfig
from storysync.extensions import db
from storysync.models import User


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    app.config["WTF_CSRF_ENABLED"] = False
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture
def user(app_instance):
    user = User(email="writer@example.com", display_name="Ada Writer")
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


def test_register_creates_user_and_signs_in(client):
    response = client.post(
        "/register",
        data={"display_name": "", "email": "New.Person@Example.com", "password": "secret99"},
        follow_redirects=True,
    )

    assert b"Welcome to StorySync!" in response.data
    created = User.query.filter_by(email="new.person@example.com").first()
    assert created is not None
    assert created.display_name == "new.person"
    assert created.check_password("secret99")


def test_register_rejects_duplicate_email(client, user):
    response = client.post(
        "/register",
        data={"display_name": "Other", "email": "WRITER@example.com", "password": "secret99"},
        follow_redirects=True,
    )

    assert b"An account with that email already exists." in response.data
    assert User.query.count() == 1


def test_register_rejects_short_password(client):
    client.post(
        "/register",
        data={"display_name": "Short", "email": "short@example.com", "password": "abc"},
        follow_redirects=True,
    )

    assert User.query.filter_by(email="short@example.com").first() is None


def test_login_with_valid_credentials(client, user):
    response = client.post(
        "/login",
        data={"email": user.email, "password": "password123"},
        follow_redirects=True,
    )

    assert b"Welcome back, Ada Writer!" in response.data


def test_login_with_wrong_password_flashes_error(client, user):
    response = client.post(
        "/login",
        data={"email": user.email, "password": "not-it"},
        follow_redirects=True,
    )

    assert b"Invalid email or password." in response.data


def test_login_ignores_external_next_url(client, user):
    response = client.post(
        "/login?next=https://evil.example.com/",
        data={"email": user.email, "password": "password123"},
    )

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")


def test_profile_updates_display_name(client, user):
    client.post("/login", data={"email": user.email, "password": "password123"})

    response = client.post("/profile", data={"display_name": "  Ada L. "}, follow_redirects=True)

    assert b"Your display name has been updated." in response.data
    assert db.session.get(User, user.id).display_name == "Ada L."


def test_profile_without_changes(client, user):
    client.post("/login", data={"email": user.email, "password": "password123"})

    response = client.post("/profile", data={"display_name": "Ada Writer"}, follow_redirects=True)

    assert b"No changes to save." in response.data


def test_public_name_and_initials_fallbacks(app_instance):
    named = User(email="grace@example.com", display_name="Grace Brewster Hopper")
    unnamed = User(email="linus@example.com", display_name="")

    assert named.public_name == "Grace Brewster Hopper"
    assert named.initials == "GH"
    assert unnamed.public_name == "linus"
    assert unnamed.initials == "L"
