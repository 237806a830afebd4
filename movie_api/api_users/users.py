import logging

from flask import Blueprint, current_app, g, jsonify, request
from pymongo.errors import DuplicateKeyError

from movie_api.api_movies.movies_functions import build_pagination, parse_page_params
from movie_api.api_users.auth import require_admin, require_auth
from movie_api.api_users.users_functions import (
    DEFAULT_USERS_PAGE_LIMIT,
    MIN_PASSWORD_LENGTH,
    build_new_user,
    build_user_search_filter,
    create_token,
    hash_password,
    is_valid_email,
    normalize_role,
    parse_boolean,
    password_matches,
    serialize_user,
    user_summary,
)
from movie_api.db import to_object_id
from movie_api.services import get_services
from movie_api.write_queue.stores import utc_now

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/api/user")

NO_PASSWORD = {"password": 0}


def _json_body():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _issue_token(user: dict):
    return create_token(
        user["_id"],
        user.get("role", "user"),
        current_app.config["JWT_SECRET"],
        current_app.config.get("TOKEN_TTL_DAYS", 7),
    )


def _insert_user(document: dict):
    """Insert a user, returning None when the email is already taken."""
    users = get_services().users
    if users.find_one({"email": document["email"]}, projection={"_id": 1}):
        return None
    try:
        result = users.insert_one(document)
    except DuplicateKeyError:
        return None
    document["_id"] = result.inserted_id
    return document


@users_bp.route("/register", methods=["POST"])
def register_user():
    """
    Handle POST requests that create a regular user account.

    Returns:
        Response: Token and user summary, or an error payload.
    """
    payload = _json_body()
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not name or not email or not password:
        return jsonify({"success": False, "message": "Name, email and password are required"}), 400

    user = _insert_user(build_new_user(name, email, password))
    if not user:
        return jsonify({"success": False, "message": "User already exists"}), 400

    logger.info(f"Registered user {user['_id']}")
    return jsonify({"success": True, "token": _issue_token(user), "user": user_summary(user)}), 201


@users_bp.route("/login", methods=["POST"])
def login_user():
    """
    Handle POST requests for user authentication.

    Returns:
        Response: Token and user summary, or an error payload.
    """
    payload = _json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"success": False, "message": "Email and password are required"}), 400

    user = get_services().users.find_one({"email": email})
    if not user:
        return jsonify({"success": False, "message": "User doesn't exist"}), 404
    if not user.get("is_active", True):
        return jsonify({"success": False, "message": "Account is deactivated"}), 403
    if not password_matches(user.get("password"), password):
        return jsonify({"success": False, "message": "Invalid credentials"}), 401

    return jsonify({"success": True, "token": _issue_token(user), "user": user_summary(user)})


@users_bp.route("/profile", methods=["GET"])
@require_auth
def get_user_profile():
    """
    Handle GET requests for the signed-in user's profile.

    Returns:
        Response: User data without the password hash.
    """
    user = get_services().users.find_one({"_id": to_object_id(g.current_user.get("id"))}, projection=NO_PASSWORD)
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404
    return jsonify({"success": True, "user": serialize_user(user)})


@users_bp.route("/list", methods=["GET"])
@require_auth
@require_admin
def list_users():
    """
    Handle GET requests for the paginated user list, newest first.

    Returns:
        Response: Users and pagination.
    """
    users = get_services().users
    page, limit, skip = parse_page_params(request.args, default_limit=DEFAULT_USERS_PAGE_LIMIT)
    cursor = users.find({}, projection=NO_PASSWORD).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit)
    total = users.count_documents({})
    return jsonify({
        "success": True,
        "data": [serialize_user(doc) for doc in cursor],
        "pagination": build_pagination(page, limit, total),
    })


@users_bp.route("/search", methods=["GET"])
@require_auth
@require_admin
def search_users():
    """
    Handle GET requests searching users by name or email.

    Returns:
        Response: Matching users and pagination.
    """
    query = (request.args.get("query") or "").strip()
    if not query:
        return jsonify({"success": False, "message": "Search query is required"}), 400

    users = get_services().users
    filter_query = build_user_search_filter(query)
    page, limit, skip = parse_page_params(request.args, default_limit=DEFAULT_USERS_PAGE_LIMIT)
    cursor = users.find(filter_query, projection=NO_PASSWORD).sort([("_id", 1)]).skip(skip).limit(limit)
    total = users.count_documents(filter_query)
    return jsonify({
        "success": True,
        "data": [serialize_user(doc) for doc in cursor],
        "pagination": build_pagination(page, limit, total),
    })


@users_bp.route("/add", methods=["POST"])
@require_auth
@require_admin
def add_user():
    """
    Handle POST requests where an admin creates an account.

    Returns:
        Response: Created user, or an error payload.
    """
    payload = _json_body()
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not name or not email or not password:
        return jsonify({"success": False, "message": "Name, email and password are required"}), 400

    document = build_new_user(
        name,
        email,
        password,
        role=normalize_role(payload.get("role")),
        is_active=parse_boolean(payload.get("isActive"), default=True),
    )
    user = _insert_user(document)
    if not user:
        return jsonify({"success": False, "message": "User already exists"}), 400

    logger.info(f"Admin {g.current_user.get('id')} created user {user['_id']}")
    return jsonify({
        "success": True,
        "message": "User created successfully",
        "data": {**user_summary(user), "isActive": user["is_active"]},
    }), 201


@users_bp.route("/<user_id>", methods=["GET"])
@require_auth
@require_admin
def get_user(user_id: str):
    """
    Handle GET requests for a single user record.

    Args:
        user_id (str): Identifier taken from the path segment.

    Returns:
        Response: User data or a 404 payload.
    """
    user = get_services().users.find_one({"_id": to_object_id(user_id)}, projection=NO_PASSWORD)
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404
    return jsonify({"success": True, "data": serialize_user(user)})


@users_bp.route("/<user_id>", methods=["PUT"])
@require_auth
@require_admin
def update_user(user_id: str):
    """
    Handle PUT requests updating a user's details.

    Args:
        user_id (str): Identifier extracted from the path.

    Returns:
        Response: JSON payload indicating success or failure.
    """
    users = get_services().users
    user = users.find_one({"_id": to_object_id(user_id)})
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404

    payload = _json_body()
    updates = {}

    name = (payload.get("name") or "").strip()
    if name:
        updates["name"] = name

    email = (payload.get("email") or "").strip().lower()
    if email and email != user.get("email"):
        if not is_valid_email(email):
            return jsonify({"success": False, "message": "Please enter a valid email"}), 400
        if users.find_one({"email": email}, projection={"_id": 1}):
            return jsonify({"success": False, "message": "Email already in use"}), 400
        updates["email"] = email

    if payload.get("role"):
        updates["role"] = normalize_role(payload.get("role"))
    if "isActive" in payload:
        updates["is_active"] = parse_boolean(payload.get("isActive"), default=user.get("is_active", True))

    password = payload.get("password") or ""
    if len(password) >= MIN_PASSWORD_LENGTH:
        updates["password"] = hash_password(password)

    if updates:
        updates["updated_at"] = utc_now()
        users.update_one({"_id": user["_id"]}, {"$set": updates})

    return jsonify({"success": True, "message": "User updated successfully"})


@users_bp.route("/<user_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_user(user_id: str):
    """
    Handle DELETE requests removing a user account.

    Args:
        user_id (str): Identifier extracted from the path.

    Returns:
        Response: JSON payload indicating success or failure.
    """
    users = get_services().users
    user = users.find_one({"_id": to_object_id(user_id)}, projection={"_id": 1})
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404

    if str(user["_id"]) == str(g.current_user.get("id")):
        return jsonify({"success": False, "message": "Cannot delete your own account"}), 400

    users.delete_one({"_id": user["_id"]})
    logger.info(f"Admin {g.current_user.get('id')} deleted user {user_id}")
    return jsonify({"success": True, "message": "User deleted successfully"})
