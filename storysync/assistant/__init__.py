from flask import Blueprint

bp = Blueprint("assistant", __name__, url_prefix="/stories/<int:story_id>/ai")

from . import routes  # noqa: E402,F401
