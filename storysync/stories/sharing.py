"""Share dialog routes: collaborator roster, invitations and public access."""

from flask import abort, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from ..extensions import db
from ..models import Story
from ..services.sharing import (
    AlreadyCollaboratorError,
    SharingError,
    add_collaborator,
    collaborator_roster,
    remove_collaborator,
    set_visibility,
)
from . import bp
from .forms import CollaboratorForm, RemoveCollaboratorForm, VisibilityForm


def _editable_story_or_abort(story_id: int) -> Story:
    story = db.session.get(Story, story_id)
    if story is None:
        abort(404)
    if not story.can_edit(current_user):
        abort(403)
    return story


@bp.route("/<int:story_id>/share")
@login_required
def share(story_id: int):
    story = _editable_story_or_abort(story_id)
    visibility_form = VisibilityForm(prefix="visibility")
    visibility_form.is_public.data = bool(story.is_public)

    return render_template(
        "stories/share.html",
        story=story,
        is_owner=story.is_owner(current_user),
        collaborators=collaborator_roster(story),
        collaborator_form=CollaboratorForm(prefix="invite"),
        remove_form=RemoveCollaboratorForm(prefix="remove"),
        visibility_form=visibility_form,
        story_link=url_for("stories.edit", story_id=story.id, _external=True),
    )


@bp.route("/<int:story_id>/share/collaborators", methods=["POST"])
@login_required
def invite_collaborator(story_id: int):
    story = _editable_story_or_abort(story_id)
    form = CollaboratorForm(prefix="invite")
    if not form.validate_on_submit():
        flash("Please enter a valid email address.", "danger")
        return redirect(url_for("stories.share", story_id=story.id))

    try:
        invitee = add_collaborator(story, current_user, form.email.data)
    except AlreadyCollaboratorError as exc:
        flash(str(exc), "info")
    except SharingError as exc:
        flash(str(exc), "danger")
    else:
        flash(f"{invitee.public_name} can now edit this story.", "success")

    return redirect(url_for("stories.share", story_id=story.id))


@bp.route("/<int:story_id>/share/collaborators/remove", methods=["POST"])
@login_required
def revoke_collaborator(story_id: int):
    story = _editable_story_or_abort(story_id)
    form = RemoveCollaboratorForm(prefix="remove")
    user_id = request.form.get("remove-user_id", type=int)
    if not form.validate_on_submit() or user_id is None:
        flash("Select a collaborator to remove.", "warning")
        return redirect(url_for("stories.share", story_id=story.id))

    try:
        removed = remove_collaborator(story, current_user, user_id)
    except SharingError as exc:
        flash(str(exc), "danger")
    else:
        flash(f"Access for {removed.public_name} has been revoked.", "success")

    return redirect(url_for("stories.share", story_id=story.id))


@bp.route("/<int:story_id>/share/visibility", methods=["POST"])
@login_required
def update_visibility(story_id: int):
    story = _editable_story_or_abort(story_id)
    form = VisibilityForm(prefix="visibility")
    if not form.validate_on_submit():
        flash("We couldn't update the visibility. Please try again.", "danger")
        return redirect(url_for("stories.share", story_id=story.id))

    try:
        set_visibility(story, current_user, bool(form.is_public.data))
    except SharingError as exc:
        flash(str(exc), "danger")
    else:
        flash(f"Story is now {'public' if story.is_public else 'private'}.", "success")

    return redirect(url_for("stories.share", story_id=story.id))
