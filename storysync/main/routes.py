from flask import current_app, redirect, render_template, url_for
from flask_login import current_user, login_required

from ..models import Story, story_collaborators
from ..stories.forms import ForkForm
from . import bp


@bp.route("/")
def index():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))
    return render_template("main/landing.html")


@bp.route("/dashboard")
@login_required
def dashboard():
    stories = (
        Story.query.join(story_collaborators, story_collaborators.c.story_id == Story.id)
        .filter(story_collaborators.c.user_id == current_user.id)
        .order_by(Story.last_updated_at.desc())
        .all()
    )
    return render_template("main/dashboard.html", stories=stories)


@bp.route("/explore")
def explore():
    page_size = current_app.config.get("EXPLORE_PAGE_SIZE", 20)
    stories = (
        Story.query.filter_by(is_public=True)
        .order_by(Story.last_updated_at.desc())
        .limit(page_size)
        .all()
    )
    viewer_id = current_user.id if current_user.is_authenticated else None
    return render_template(
        "main/explore.html",
        stories=stories,
        viewer_id=viewer_id,
        fork_form=ForkForm(),
    )
