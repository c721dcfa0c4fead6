"""API blueprints."""

from flask import Blueprint

api_bp = Blueprint("api", __name__)

from lvlai.api import auth, focus  # noqa: E402, F401
