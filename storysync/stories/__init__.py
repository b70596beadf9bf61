from flask import Blueprint

bp = Blueprint("stories", __name__, url_prefix="/stories")

from . import routes, sharing  # noqa: E402,F401
