import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storysync import create_app
from storysync.config import TestConfig
from storysync.extensions import change_feed, db
from storysync.models import Chapter, Story, User


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


def _make_user(email, name):
    user = User(email=email, display_name=name)
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def author(app_instance):
    return _make_user("author@example.com", "Author One")


@pytest.fixture
def stranger(app_instance):
    return _make_user("stranger@example.com", "Stranger")


@pytest.fixture
def story(author):
    story = Story(title="The Lighthouse", author_id=author.id, author_name=author.public_name)
    story.collaborators.append(author)
    db.session.add(story)
    db.session.commit()
    return story


@pytest.fixture
def chapter(story, author):
    chapter = Chapter(story=story, title="Arrival", content="<p>It was dark.</p>", author_id=author.id)
    db.session.add(chapter)
    db.session.commit()
    return chapter


def _login(client, user):
    client.post(
        "/login",
        data={"email": user.email, "password": "password123"},
        follow_redirects=True,
    )


def test_create_story_adds_author_as_collaborator(client, author):
    _login(client, author)

    response = client.post("/stories/new", data={"title": "  Winter Tale ", "is_public": "y"}, follow_redirects=True)

    assert b"Story &#34;Winter Tale&#34; has been successfully created." in response.data
    created = Story.query.filter_by(title="Winter Tale").one()
    assert created.is_public
    assert created.author_name == "Author One"
    assert [user.id for user in created.collaborators] == [author.id]
    assert b"Create your first chapter!" in response.data


def test_dashboard_lists_only_collaborations(client, author, stranger, story):
    other = Story(title="Not Mine", author_id=stranger.id, author_name=stranger.public_name)
    other.collaborators.append(stranger)
    db.session.add(other)
    db.session.commit()
    _login(client, author)

    response = client.get("/dashboard")

    assert b"The Lighthouse" in response.data
    assert b"Not Mine" not in response.data


def test_private_story_redirects_anonymous_to_login(client, story):
    response = client.get(f"/stories/{story.id}/edit")

    assert response.status_code == 302
    assert "/login" in response.headers["Location"]


def test_private_story_blocked_for_non_collaborator(client, stranger, story):
    _login(client, stranger)

    response = client.get(f"/stories/{story.id}/edit", follow_redirects=True)

    assert b"You do not have permission to view this private story." in response.data


def test_missing_story_flashes_not_found(client, author):
    _login(client, author)

    response = client.get("/stories/999/edit", follow_redirects=True)

    assert b"Story not found." in response.data


def test_public_story_is_read_only_for_visitors(client, story, chapter):
    story.is_public = True
    db.session.commit()

    response = client.get(f"/stories/{story.id}/edit")

    assert response.status_code == 200
    assert b"It was dark." in response.data
    assert b"Read only" in response.data
    assert b'contenteditable="true"' not in response.data


def test_public_story_without_chapters_for_visitor(client, story):
    story.is_public = True
    db.session.commit()

    response = client.get(f"/stories/{story.id}/edit")

    assert b"This story has no chapters yet." in response.data


def test_add_chapter_selects_new_chapter(client, author, story):
    _login(client, author)

    response = client.post(
        f"/stories/{story.id}/chapters",
        data={"chapter-title": "Chapter One"},
    )

    created = Chapter.query.filter_by(story_id=story.id).one()
    assert response.status_code == 302
    assert f"chapter_id={created.id}" in response.headers["Location"]
    assert created.revision == 0
    assert created.last_updated_by_name == "Author One"


def test_add_chapter_forbidden_for_non_collaborator(client, stranger, story):
    story.is_public = True
    db.session.commit()
    _login(client, stranger)

    response = client.post(f"/stories/{story.id}/chapters", data={"chapter-title": "Sneaky"})

    assert response.status_code == 403
    assert Chapter.query.count() == 0


def test_save_chapter_increments_revision(client, author, story, chapter):
    _login(client, author)

    response = client.put(
        f"/stories/{story.id}/chapters/{chapter.id}",
        json={"content": "<p>It was a dark and stormy night.</p>"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["changed"] is True
    assert payload["revision"] == 1
    assert payload["last_updated_by_name"] == "Author One"
    assert db.session.get(Chapter, chapter.id).content == "<p>It was a dark and stormy night.</p>"


def test_save_unchanged_content_still_bumps_revision(client, author, story, chapter):
    _login(client, author)

    response = client.put(
        f"/stories/{story.id}/chapters/{chapter.id}",
        json={"content": "<p>It was dark.</p>"},
    )

    payload = response.get_json()
    assert payload["changed"] is False
    assert payload["revision"] == 1


def test_saved_script_is_not_served_to_public_readers(client, author, story, chapter):
    story.is_public = True
    db.session.commit()
    _login(client, author)

    response = client.put(
        f"/stories/{story.id}/chapters/{chapter.id}",
        json={
            "content": (
                "<p>Safe <strong>bold</strong></p>"
                "<img src=x onerror=alert(document.cookie)><script>steal()</script>"
                '<p onclick="steal()">Click</p>'
            )
        },
    )
    assert response.status_code == 200
    assert db.session.get(Chapter, chapter.id).content == "<p>Safe <strong>bold</strong></p><p>Click</p>"

    client.get("/logout", follow_redirects=True)
    page = client.get(f"/stories/{story.id}/edit?chapter_id={chapter.id}")

    body = page.get_data(as_text=True)
    assert page.status_code == 200
    assert "<p>Safe <strong>bold</strong></p>" in body
    assert "steal()" not in body
    assert "onerror" not in body


def test_save_chapter_requires_content(client, author, story, chapter):
    _login(client, author)

    response = client.put(f"/stories/{story.id}/chapters/{chapter.id}", json={"text": "oops"})

    assert response.status_code == 400


def test_save_chapter_rejects_non_string_content(client, author, story, chapter):
    _login(client, author)

    response = client.put(f"/stories/{story.id}/chapters/{chapter.id}", json={"content": 42})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Chapter content must be a string."


def test_save_chapter_forbidden_for_reader(client, stranger, story, chapter):
    story.is_public = True
    db.session.commit()
    _login(client, stranger)

    response = client.put(f"/stories/{story.id}/chapters/{chapter.id}", json={"content": "vandalism"})

    assert response.status_code == 403
    assert db.session.get(Chapter, chapter.id).content == "<p>It was dark.</p>"


def test_save_chapter_requires_sign_in(client, story, chapter):
    response = client.put(f"/stories/{story.id}/chapters/{chapter.id}", json={"content": "anon"})

    assert response.status_code == 401


def test_save_publishes_change_event(client, author, story, chapter):
    _login(client, author)
    subscription = change_feed.subscribe(story.id)
    try:
        client.put(f"/stories/{story.id}/chapters/{chapter.id}", json={"content": "<p>New</p>"})
        event = subscription.get(timeout=1)
    finally:
        subscription.close()

    assert event.event == "chapter_saved"
    assert event.payload["content"] == "<p>New</p>"
    assert event.payload["revision"] == 1


def test_get_chapter_snapshot_for_private_story_is_forbidden(client, stranger, story, chapter):
    _login(client, stranger)

    response = client.get(f"/stories/{story.id}/chapters/{chapter.id}")

    assert response.status_code == 403


def test_events_stream_starts_with_snapshot(client, author, story, chapter):
    _login(client, author)

    response = client.get(f"/stories/{story.id}/events")
    try:
        assert response.status_code == 200
        assert response.mimetype == "text/event-stream"
        stream = iter(response.response)
        first = next(stream)
        first = first.decode() if isinstance(first, bytes) else first
        assert first.startswith("event: snapshot\n")
        snapshot = json.loads(first.split("data: ", 1)[1])
        assert snapshot["chapters"][0]["title"] == "Arrival"

        change_feed.publish(story.id, "chapter_added", {"id": 99, "title": "Later"})
        second = next(stream)
        second = second.decode() if isinstance(second, bytes) else second
        assert second.startswith("event: chapter_added\n")
    finally:
        response.close()

    assert change_feed.listener_count(story.id) == 0


def _next_chunk(stream):
    chunk = next(stream)
    return chunk.decode() if isinstance(chunk, bytes) else chunk


def test_events_stream_revokes_access_and_ends(client, author, stranger, story, chapter):
    story.is_public = True
    db.session.commit()
    _login(client, stranger)

    response = client.get(f"/stories/{story.id}/events")
    try:
        stream = iter(response.response)
        assert _next_chunk(stream).startswith("event: snapshot\n")

        change_feed.publish(
            story.id,
            "story_updated",
            {"id": story.id, "is_public": False, "collaborators": [author.id]},
        )

        assert _next_chunk(stream).startswith("event: story_updated\n")
        revoked = _next_chunk(stream)
        assert revoked.startswith("event: access_revoked\n")
        assert json.loads(revoked.split("data: ", 1)[1]) == {"id": story.id}
        with pytest.raises(StopIteration):
            next(stream)
    finally:
        response.close()

    assert change_feed.listener_count(story.id) == 0


def test_events_stream_sends_heartbeat_when_idle(app_instance, client, author, story):
    app_instance.config["CHANGE_FEED_HEARTBEAT_SECONDS"] = 0.01
    _login(client, author)

    response = client.get(f"/stories/{story.id}/events")
    try:
        stream = iter(response.response)
        assert _next_chunk(stream).startswith("event: snapshot\n")
        assert _next_chunk(stream) == ": keep-alive\n\n"
    finally:
        response.close()


def test_events_forbidden_for_private_story(client, stranger, story):
    _login(client, stranger)

    response = client.get(f"/stories/{story.id}/events")

    assert response.status_code == 403


def test_editor_page_offers_toolbar_save_and_assistant_options(client, author, story, chapter):
    _login(client, author)

    response = client.get(f"/stories/{story.id}/edit?chapter_id={chapter.id}")

    body = response.get_data(as_text=True)
    assert 'id="save-button"' in body
    assert 'data-command="bold"' in body
    assert 'data-command="insertOrderedList"' in body
    assert 'data-command="undo"' in body
    for option_id in (
        "prompts-genre",
        "prompts-count",
        "summary-length",
        "paraphrase-tone",
        "paraphrase-count",
        "expand-style",
        "expand-length",
        "translate-language",
    ):
        assert f'id="{option_id}"' in body


def test_reader_page_has_no_editing_controls(client, stranger, story, chapter):
    story.is_public = True
    db.session.commit()
    _login(client, stranger)

    response = client.get(f"/stories/{story.id}/edit?chapter_id={chapter.id}")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert 'id="save-button"' not in body
    assert "data-command=" not in body
    assert 'id="assistant"' not in body
