import re
from datetime import datetime, timedelta, timezone

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from movie_api.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
MIN_PASSWORD_LENGTH = 8
ROLES = {"user", "admin"}
DEFAULT_USERS_PAGE_LIMIT = 10
TOKEN_ALGORITHM = "HS256"


def is_valid_email(email: str):
    """
    Check an email address for a plausible shape.

    Args:
        email (str): Candidate address.

    Returns:
        bool: True when the address looks valid.
    """
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def validate_password(password: str):
    """
    Enforce the minimum password length.

    Raises:
        ValidationError: when the password is too short.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str):
    return generate_password_hash(password)


def password_matches(stored_hash: str | None, password: str):
    if not stored_hash or not password:
        return False
    return check_password_hash(stored_hash, password)


def parse_boolean(value, default: bool = False):
    """
    Parse a value into a boolean.

    Args:
        value (Any): Candidate value.
        default (bool): Fallback when the value is empty.

    Returns:
        bool: Parsed boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if not normalized:
            return default
        return normalized in {"1", "true", "yes", "on"}
    return default if value is None else bool(value)


def normalize_role(value, default: str = "user"):
    """
    Validate a role name.

    Raises:
        ValidationError: when the role is not ``user`` or ``admin``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    role = str(value).strip().lower()
    if role not in ROLES:
        raise ValidationError("Role must be user or admin")
    return role


def build_new_user(name: str, email: str, password: str, role: str = "user", is_active: bool = True):
    """
    Build a user document ready for insertion.

    Args:
        name (str): Display name.
        email (str): Login email.
        password (str): Plain password, hashed here.
        role (str): ``user`` or ``admin``.
        is_active (bool): Whether login is allowed.

    Returns:
        dict: User document.
    """
    if not is_valid_email(email):
        raise ValidationError("Please enter a valid email")
    validate_password(password)
    now = datetime.now(timezone.utc)
    return {
        "name": name,
        "email": email,
        "password": hash_password(password),
        "role": role,
        "is_active": is_active,
        "profile_image": "",
        "created_at": now,
        "updated_at": now,
    }


def serialize_user(document: dict | None):
    """
    Serialize a MongoDB user document to a JSON-friendly dictionary.

    Args:
        document (dict | None): MongoDB document.

    Returns:
        dict: Safe copy with string identifiers and no password field.
    """
    if not document:
        return {}
    payload = dict(document)
    if "_id" in payload and not isinstance(payload["_id"], str):
        payload["_id"] = str(payload["_id"])
    payload.pop("password", None)
    for key in ("created_at", "updated_at"):
        if isinstance(payload.get(key), datetime):
            payload[key] = payload[key].isoformat()
    return payload


def user_summary(document: dict):
    """Short user block returned with login and registration."""
    return {
        "_id": str(document.get("_id")),
        "name": document.get("name"),
        "email": document.get("email"),
        "role": document.get("role", "user"),
    }


def build_user_search_filter(query: str):
    regex = {"$regex": re.escape(query.strip()), "$options": "i"}
    return {"$or": [{"name": regex}, {"email": regex}]}


def create_token(user_id, role: str, secret: str, ttl_days: int = 7):
    """
    Issue a signed access token.

    Args:
        user_id (Any): User identifier, stored as a string claim.
        role (str): Role claim used by the admin check.
        secret (str): HMAC secret.
        ttl_days (int): Token lifetime in days.

    Returns:
        str: Encoded JWT.
    """
    expires = datetime.now(timezone.utc) + timedelta(days=ttl_days)
    return jwt.encode({"id": str(user_id), "role": role, "exp": expires}, secret, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str, secret: str):
    """
    Verify a token and return its claims.

    Raises:
        jwt.InvalidTokenError: when the signature or expiry check fails.
    """
    return jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
