from flask import Blueprint, jsonify, request

from movie_api.api_movies.movies_functions import build_pagination, parse_page_params
from movie_api.api_users.auth import require_admin, require_auth
from movie_api.services import get_services
from movie_api.write_queue.models import IntentStatus
from movie_api.write_queue.stores import NEWEST_FIRST

queue_bp = Blueprint("queue", __name__, url_prefix="/api/queue")

DEFAULT_QUEUE_PAGE_LIMIT = 20


@queue_bp.route("/list", methods=["GET"])
@require_auth
@require_admin
def list_intents():
    """
    Handle GET requests listing queued mutation intents, newest first.

    Returns:
        Response: Intents and pagination, optionally filtered by ``status``.
    """
    raw_status = (request.args.get("status") or "").strip().lower()
    filter_query = {}
    if raw_status:
        try:
            filter_query["status"] = IntentStatus(raw_status).value
        except ValueError:
            allowed = ", ".join(status.value for status in IntentStatus)
            return jsonify({"success": False, "message": f"status must be one of {allowed}"}), 400

    queue_store = get_services().queue_store
    page, limit, skip = parse_page_params(request.args, default_limit=DEFAULT_QUEUE_PAGE_LIMIT)
    intents = queue_store.find(filter_query, limit, NEWEST_FIRST, skip=skip)
    total = queue_store.count(filter_query)
    return jsonify({
        "success": True,
        "data": [intent.to_api() for intent in intents],
        "pagination": build_pagination(page, limit, total),
    })


@queue_bp.route("/stats", methods=["GET"])
@require_auth
@require_admin
def queue_stats():
    """
    Handle GET requests for intent counts per status.

    Returns:
        Response: Mapping of status to count.
    """
    return jsonify({"success": True, "data": get_services().queue_store.count_by_status()})


@queue_bp.route("/<intent_id>", methods=["GET"])
@require_auth
@require_admin
def get_intent(intent_id: str):
    """
    Handle GET requests for one intent.

    Args:
        intent_id (str): Identifier from the path segment.

    Returns:
        Response: The intent or a 404 payload.
    """
    intent = get_services().queue_store.get(intent_id)
    if not intent:
        return jsonify({"success": False, "message": "Intent not found"}), 404
    return jsonify({"success": True, "data": intent.to_api()})
