"""Authentication API endpoints."""

import logging
import re

from flask import current_app, request
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required
from sqlalchemy.exc import IntegrityError

from lvlai import db
from lvlai.api import api_bp
from lvlai.models import User
from lvlai.utils import (
    conflict,
    success_response,
    unauthorized,
    validation_error,
)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _json_object() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _normalize_email(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def _token_response(user: User, status_code: int = 200):
    access_token = create_access_token(identity=str(user.id))
    return success_response(
        {"user": user.to_dict(), "token": access_token}, status_code=status_code
    )


@api_bp.route("/auth/register", methods=["POST"])
def register():
    """
    Create an account with email and password.

    Request body:
    {
        "email": "user@example.com",
        "password": "secret123",
        "username": "focus_fan"  // optional
    }
    """
    data = _json_object()

    email = _normalize_email(data.get("email"))
    password = data.get("password") or ""
    username = data.get("username")

    errors = {}
    if not EMAIL_RE.match(email):
        errors["email"] = "A valid email is required"
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = (
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if username is not None and not isinstance(username, str):
        errors["username"] = "Username must be a string"
    if errors:
        return validation_error(errors)

    if User.query.filter_by(email=email).first():
        return conflict("An account with this email already exists")

    user = User(email=email, username=username or email.split("@")[0])
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.session.rollback()
        return conflict("An account with this email already exists")

    logger.info(f"Registered user {user.id}")
    return _token_response(user, status_code=201)


@api_bp.route("/auth/login", methods=["POST"])
def login():
    """Authenticate with email and password."""
    data = _json_object()

    email = _normalize_email(data.get("email"))
    password = data.get("password")

    user = User.query.filter_by(email=email).first() if email else None
    if not isinstance(password, str) or not user or not user.check_password(password):
        return unauthorized("Invalid email or password")

    return _token_response(user)


@api_bp.route("/auth/me", methods=["GET"])
@jwt_required()
def get_current_user():
    """Get current authenticated user."""
    user_id = int(get_jwt_identity())
    user = db.session.get(User, user_id)

    if not user:
        return unauthorized("User not found")

    return success_response({"user": user.to_dict()})


@api_bp.route("/auth/dev", methods=["POST"])
def dev_authenticate():
    """
    Development-only endpoint for testing without real credentials.
    Creates or gets a test user.

    Request body:
    {
        "telegram_id": 12345,
        "username": "test_user"
    }
    """
    if not current_app.debug:
        return unauthorized("This endpoint is only available in development mode")

    data = _json_object()

    telegram_id = data.get("telegram_id", 12345)
    username = data.get("username", "test_user")

    user = User.query.filter_by(telegram_id=telegram_id).first()

    if not user:
        user = User(
            telegram_id=telegram_id,
            username=username,
            first_name="Test",
            last_name="User",
        )
        db.session.add(user)
        db.session.commit()

    return _token_response(user)
