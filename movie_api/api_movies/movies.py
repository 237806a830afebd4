from flask import Blueprint, g, jsonify, request

from movie_api.api_movies.movies_functions import (
    MAX_SCENE_IMAGES,
    MOVIES_CACHE_PREFIX,
    build_movie_changes,
    build_movie_record,
    build_pagination,
    build_search_filter,
    parse_page_params,
    resolve_sort_option,
    serialize_document,
)
from movie_api.api_users.auth import require_admin, require_auth
from movie_api.cache import build_cache_key
from movie_api.db import to_object_id
from movie_api.services import get_services
from movie_api.write_queue.models import Operation


movies_bp = Blueprint("movies", __name__, url_prefix="/api/movies")


def _read_request_fields():
    """Form fields for multipart requests, otherwise the JSON body."""
    if request.files or request.form:
        return request.form.to_dict()
    payload = request.get_json(silent=True)
    return dict(payload) if isinstance(payload, dict) else {}


def _store_uploads(data: dict, poster_required: bool):
    """
    Save uploaded poster and scene images and put their URLs into ``data``.

    Returns:
        tuple | None: An error response when the upload is rejected.
    """
    services = get_services()
    poster = request.files.get("image")
    scenes = [item for item in request.files.getlist("sceneImages") if item and item.filename]

    if len(scenes) > MAX_SCENE_IMAGES:
        return jsonify({"success": False, "message": f"Maximum {MAX_SCENE_IMAGES} scene images allowed"}), 400
    if poster_required and not (poster and poster.filename) and not data.get("image"):
        return jsonify({"success": False, "message": "Movie poster is required"}), 400

    if poster and poster.filename:
        data["image"] = services.images.save(poster)
    if scenes:
        data["sceneImages"] = [services.images.save(item) for item in scenes]
    return None


def _paginated_movies(cache_key: str, filter_query: dict, sort: list, page: int, limit: int, skip: int):
    services = get_services()
    if services.cache:
        cached = services.cache.get(cache_key)
        if cached:
            return jsonify(cached)

    cursor = services.movies.find(filter_query).sort(sort).skip(skip).limit(limit)
    total = services.movies.count_documents(filter_query)
    body = {
        "success": True,
        "data": [serialize_document(doc) for doc in cursor],
        "pagination": build_pagination(page, limit, total),
    }
    if services.cache:
        services.cache.set(cache_key, body)
    return jsonify(body)


@movies_bp.route("/list", methods=["GET"])
def list_movies():
    """
    Handle GET requests for the movie list, newest first.

    Returns:
        Response: Flask response with movies and pagination.
    """
    page, limit, skip = parse_page_params(request.args)
    cache_key = build_cache_key(MOVIES_CACHE_PREFIX + "list", page, limit)
    return _paginated_movies(cache_key, {}, resolve_sort_option(None, None), page, limit, skip)


@movies_bp.route("/sorted", methods=["GET"])
def sorted_movies():
    """
    Handle GET requests for the movie list in a caller-chosen order.

    Returns:
        Response: Flask response with movies and pagination.
    """
    sort_by = request.args.get("sortBy")
    order = request.args.get("order")
    page, limit, skip = parse_page_params(request.args)
    cache_key = build_cache_key(MOVIES_CACHE_PREFIX + "sorted", sort_by, order, page, limit)
    return _paginated_movies(cache_key, {}, resolve_sort_option(sort_by, order), page, limit, skip)


@movies_bp.route("/search", methods=["GET"])
def search_movies():
    """
    Handle GET requests searching titles and descriptions.

    Returns:
        Response: Flask response with matches or an error payload.
    """
    query = (request.args.get("query") or "").strip()
    if not query:
        return jsonify({"success": False, "message": "Search query is required"}), 400

    page, limit, skip = parse_page_params(request.args)
    cache_key = build_cache_key(MOVIES_CACHE_PREFIX + "search", query.lower(), page, limit)
    return _paginated_movies(cache_key, build_search_filter(query), [("_id", 1)], page, limit, skip)


@movies_bp.route("/<movie_id>", methods=["GET"])
def get_movie(movie_id: str):
    """
    Handle GET requests for a single movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the movie or a 404 payload.
    """
    services = get_services()
    cache_key = build_cache_key(MOVIES_CACHE_PREFIX + "detail", movie_id)
    if services.cache:
        cached = services.cache.get(cache_key)
        if cached:
            return jsonify({"success": True, "data": cached})

    document = services.movies.find_one({"_id": to_object_id(movie_id)})
    if not document:
        return jsonify({"success": False, "message": "Movie not found"}), 404

    serialized = serialize_document(document)
    if services.cache:
        services.cache.set(cache_key, serialized)
    return jsonify({"success": True, "data": serialized})


@movies_bp.route("/add", methods=["POST"])
@require_auth
@require_admin
def add_movie():
    """
    Handle POST requests that queue a new movie.

    Returns:
        Response: 201 once the insert intent is stored.
    """
    data = _read_request_fields()
    rejected = _store_uploads(data, poster_required=True)
    if rejected:
        return rejected

    record = build_movie_record(data, created_by=g.current_user.get("id"))
    intent_id = get_services().write_queue.enqueue(Operation.INSERT, record)
    return jsonify({"success": True, "message": "Movie added successfully", "intentId": intent_id}), 201


@movies_bp.route("/<movie_id>", methods=["PUT"])
@require_auth
@require_admin
def update_movie(movie_id: str):
    """
    Handle PUT requests that queue changes to an existing movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: JSON payload indicating the update was accepted.
    """
    services = get_services()
    if not services.movies.find_one({"_id": to_object_id(movie_id)}, projection={"_id": 1}):
        return jsonify({"success": False, "message": "Movie not found"}), 404

    data = _read_request_fields()
    rejected = _store_uploads(data, poster_required=False)
    if rejected:
        return rejected

    changes = build_movie_changes(data)
    if not changes:
        return jsonify({"success": False, "message": "No changes provided"}), 400

    intent_id = services.write_queue.enqueue(Operation.UPDATE, {"target_id": movie_id, "changes": changes})
    return jsonify({"success": True, "message": "Movie updated successfully", "intentId": intent_id})


@movies_bp.route("/<movie_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_movie(movie_id: str):
    """
    Handle DELETE requests that queue a movie removal.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: JSON payload indicating the delete was accepted.
    """
    intent_id = get_services().write_queue.enqueue(Operation.DELETE, {"target_id": movie_id})
    return jsonify({"success": True, "message": "Movie deleted successfully", "intentId": intent_id})
