from __future__ import annotations

from flask import (
    Response,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required

from ..extensions import change_feed, db
from ..models import Chapter, Story
from ..services.change_feed import format_sse, sse_comment
from ..services.chapters import (
    ChapterError,
    add_chapter as create_chapter,
    chapter_snapshot,
    ordered_chapters,
    save_chapter_content,
    story_snapshot,
)
from ..services.forking import ForkError, fork_story
from . import bp
from .forms import ChapterForm, StoryForm


@bp.route("/new", methods=["GET", "POST"])
@login_required
def new():
    form = StoryForm()
    if form.validate_on_submit():
        title = form.title.data.strip()
        if not title:
            flash("Give your story a title.", "danger")
            return render_template("stories/new.html", form=form)

        story = Story(
            title=title,
            author_id=current_user.id,
            author_name=current_user.public_name,
            is_public=bool(form.is_public.data),
        )
        story.collaborators.append(current_user._get_current_object())
        db.session.add(story)
        db.session.commit()
        flash(f'Story "{title}" has been successfully created.', "success")
        return redirect(url_for("stories.edit", story_id=story.id))

    return render_template("stories/new.html", form=form)


@bp.route("/<int:story_id>/edit")
def edit(story_id: int):
    story = db.session.get(Story, story_id)
    if story is None:
        flash("Story not found.", "danger")
        return redirect(url_for("main.dashboard"))

    if not story.can_view(current_user):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        flash("You do not have permission to view this private story.", "danger")
        return redirect(url_for("main.dashboard"))

    can_edit = story.can_edit(current_user)
    chapters = ordered_chapters(story)

    selected_chapter = None
    chapter_query_id = request.args.get("chapter_id", type=int)
    if chapter_query_id:
        selected_chapter = next((c for c in chapters if c.id == chapter_query_id), None)
    if not selected_chapter and chapters:
        selected_chapter = chapters[0]

    editor_config = {
        "storyId": story.id,
        "chapterId": selected_chapter.id if selected_chapter else None,
        "revision": selected_chapter.revision if selected_chapter else 0,
        "canEdit": can_edit,
        "debounceMs": int(current_app.config.get("AUTOSAVE_DEBOUNCE_SECONDS", 2.0) * 1000),
        "chapterUrl": (
            url_for("stories.chapter", story_id=story.id, chapter_id=selected_chapter.id)
            if selected_chapter
            else None
        ),
        "eventsUrl": url_for("stories.events", story_id=story.id),
        "assistantUrl": url_for("assistant.languages", story_id=story.id).rsplit("/", 1)[0],
    }

    return render_template(
        "stories/edit.html",
        story=story,
        chapters=chapters,
        selected_chapter=selected_chapter,
        can_edit=can_edit,
        is_owner=story.is_owner(current_user),
        chapter_form=ChapterForm(prefix="chapter"),
        editor_config=editor_config,
    )


@bp.route("/<int:story_id>/chapters", methods=["POST"])
@login_required
def add_chapter(story_id: int):
    story = db.session.get(Story, story_id)
    if story is None:
        abort(404)
    if not story.can_edit(current_user):
        abort(403)

    form = ChapterForm(prefix="chapter")
    if not form.validate_on_submit():
        flash("Give the chapter a title before adding it.", "danger")
        return redirect(url_for("stories.edit", story_id=story.id))

    try:
        chapter = create_chapter(story, current_user, form.title.data)
    except ChapterError as exc:
        flash(str(exc), "danger")
        return redirect(url_for("stories.edit", story_id=story.id))

    flash(f'Chapter "{chapter.title}" created.', "success")
    return redirect(url_for("stories.edit", story_id=story.id, chapter_id=chapter.id))


@bp.route("/<int:story_id>/chapters/<int:chapter_id>", methods=["GET"])
def chapter(story_id: int, chapter_id: int):
    story, chapter_entry = _load_chapter(story_id, chapter_id)
    if not story.can_view(current_user):
        return jsonify({"error": "You do not have permission to view this story."}), 403
    return jsonify(chapter_snapshot(chapter_entry))


@bp.route("/<int:story_id>/chapters/<int:chapter_id>", methods=["PUT"])
def save_chapter(story_id: int, chapter_id: int):
    if not current_user.is_authenticated:
        return jsonify({"error": "Sign in to save changes."}), 401

    story, chapter_entry = _load_chapter(story_id, chapter_id)
    if not story.can_edit(current_user):
        return jsonify({"error": "You do not have permission to edit this story."}), 403

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or "content" not in payload:
        return jsonify({"error": "Provide the chapter content to save."}), 400

    try:
        result = save_chapter_content(chapter_entry, current_user, payload["content"])
    except ChapterError as exc:
        return jsonify({"error": str(exc)}), 400

    response_payload = chapter_snapshot(result.chapter)
    response_payload["changed"] = result.changed
    return jsonify(response_payload)


@bp.route("/<int:story_id>/events")
def events(story_id: int):
    story = db.session.get(Story, story_id)
    if story is None:
        return jsonify({"error": "Story not found."}), 404
    if not story.can_view(current_user):
        return jsonify({"error": "You do not have permission to view this story."}), 403

    heartbeat = float(current_app.config.get("CHANGE_FEED_HEARTBEAT_SECONDS", 15.0))
    viewer_id = current_user.id if current_user.is_authenticated else None

    subscription = change_feed.subscribe(story.id)
    snapshot = story_snapshot(story)

    def stream():
        yield format_sse("snapshot", snapshot)
        while True:
            change = subscription.get(timeout=heartbeat)
            if change is None:
                yield sse_comment("keep-alive")
                continue
            yield format_sse(change.event, change.payload)
            if change.event == "story_updated" and _access_revoked(change.payload, viewer_id):
                yield format_sse("access_revoked", {"id": story_id})
                return

    response = Response(stream(), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    response.call_on_close(subscription.close)
    return response


@bp.route("/<int:story_id>/fork", methods=["POST"])
@login_required
def fork(story_id: int):
    source = db.session.get(Story, story_id)
    if source is None:
        flash("Story not found.", "danger")
        return redirect(url_for("main.explore"))

    try:
        forked = fork_story(source, current_user._get_current_object())
    except ForkError as exc:
        flash(str(exc), "danger")
        return redirect(url_for("main.explore"))

    flash(f'Successfully forked "{source.title}".', "success")
    return redirect(url_for("stories.edit", story_id=forked.id))


def _load_chapter(story_id: int, chapter_id: int) -> tuple[Story, Chapter]:
    story = db.session.get(Story, story_id)
    if story is None:
        abort(404)
    chapter_entry = Chapter.query.filter_by(id=chapter_id, story_id=story.id).first()
    if chapter_entry is None:
        abort(404)
    return story, chapter_entry


def _access_revoked(payload: dict, viewer_id: int | None) -> bool:
    if payload.get("is_public"):
        return False
    return viewer_id not in (payload.get("collaborators") or [])
