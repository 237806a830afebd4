import json
import math
import re
from datetime import date, datetime
from urllib.parse import quote_plus

from movie_api.errors import ValidationError

POSTER_PLACEHOLDER_TEMPLATE = (
    "https://ui-avatars.com/api/"
    "?name={name}&background=023047&color=ffffff&size=512&length=2"
)

MOVIES_CACHE_PREFIX = "movies:"
DEFAULT_PAGE_LIMIT = 8
MAX_PAGE_LIMIT = 100
MAX_SCENE_IMAGES = 6

SORT_FIELDS = {
    "name": "title",
    "rating": "rating",
    "releaseDate": "release_date",
    "duration": "duration",
}

TEXT_FIELDS = ("title", "description", "genre", "director")


def build_poster_placeholder(title: str | None = None):
    """
    Build a fallback poster image for movies stored without one.

    Args:
        title (str | None): Title to encode into the placeholder.

    Returns:
        str: URL of the generated placeholder image.
    """
    base_title = (title or "").strip() or "Movie"
    encoded = quote_plus(base_title)
    return POSTER_PLACEHOLDER_TEMPLATE.format(name=encoded)


def safe_float(value, default=0.0):
    """
    Convert arbitrary values into floats while guarding against failures.

    Args:
        value (Any): Raw value to convert.
        default (float): Fallback value when parsing is unsuccessful.

    Returns:
        float: Parsed float or the provided default.
    """
    if value is None:
        return default
    try:
        return float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return default


def safe_int(value, default=0):
    """
    Parse a value into an integer, tolerating strings and floats.

    Args:
        value (Any): Raw value to convert.
        default (int): Fallback value when parsing fails.

    Returns:
        int: Parsed integer or the default.
    """
    if value is None:
        return default
    try:
        return int(float(str(value).split()[0]))
    except (TypeError, ValueError, IndexError):
        return default


def parse_page_params(args: dict, default_limit: int = DEFAULT_PAGE_LIMIT, max_limit: int = MAX_PAGE_LIMIT):
    """
    Read ``page`` and ``limit`` query parameters, clamping to sane bounds.

    Args:
        args (dict): Query string mapping.
        default_limit (int): Fallback page size.
        max_limit (int): Largest page size allowed.

    Returns:
        tuple[int, int, int]: page, limit and the number of documents to skip.
    """
    page = safe_int(args.get("page"), 1)
    if page <= 0:
        page = 1
    limit = safe_int(args.get("limit"), default_limit)
    if limit <= 0:
        limit = default_limit
    limit = min(limit, max_limit)
    return page, limit, (page - 1) * limit


def build_pagination(page: int, limit: int, total: int):
    """
    Build the pagination block returned with list responses.

    Returns:
        dict: page, limit, total and number of pages.
    """
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def resolve_sort_option(sort_by: str | None, order: str | None):
    """
    Translate ``sortBy``/``order`` query values into a MongoDB sort spec.

    Unknown fields fall back to newest first.

    Args:
        sort_by (str | None): One of name, rating, releaseDate, duration.
        order (str | None): ``asc`` or ``desc``.

    Returns:
        list[tuple[str, int]]: Sort specification.
    """
    field = SORT_FIELDS.get((sort_by or "").strip())
    if not field:
        return [("created_at", -1), ("_id", -1)]
    direction = -1 if (order or "").strip().lower() == "desc" else 1
    return [(field, direction), ("_id", direction)]


def build_search_filter(query: str):
    """
    Case-insensitive substring search on title and description.

    Args:
        query (str): Raw search text.

    Returns:
        dict: MongoDB filter.
    """
    regex = {"$regex": re.escape(query.strip()), "$options": "i"}
    return {"$or": [{"title": regex}, {"description": regex}]}


def parse_string_list(raw_value):
    """
    Parse list-like input: a JSON array, a comma separated string or a list.

    Args:
        raw_value (Any): Value from a form field or JSON body.

    Returns:
        list[str]: Trimmed, non-empty entries.
    """
    if raw_value is None:
        return []
    if isinstance(raw_value, str):
        stripped = raw_value.strip()
        if not stripped:
            return []
        if stripped.startswith("["):
            try:
                raw_value = json.loads(stripped)
            except json.JSONDecodeError:
                raise ValidationError("cast must be a JSON array or a comma separated list") from None
        else:
            raw_value = stripped.split(",")
    if not isinstance(raw_value, (list, tuple)):
        raise ValidationError("cast must be a list of names")
    return [str(entry).strip() for entry in raw_value if entry is not None and str(entry).strip()]


def parse_release_date(raw_value):
    """
    Normalize a release date to ``YYYY-MM-DD``.

    Raises:
        ValidationError: when the value is not a recognizable date.
    """
    string_value = str(raw_value).strip()
    for pattern in ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(string_value, pattern).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(string_value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        raise ValidationError(f"Invalid releaseDate: {raw_value}") from None


def _parse_rating(raw_value):
    rating = safe_float(raw_value, None)
    if rating is None or not 0 <= rating <= 10:
        raise ValidationError("rating must be a number between 0 and 10")
    return rating


def _parse_duration(raw_value):
    duration = safe_int(raw_value, None)
    if duration is None or duration < 0:
        raise ValidationError("duration must be a non-negative number of minutes")
    return duration


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def build_movie_changes(data: dict):
    """
    Extract and validate the movie fields present in a request.

    Absent or blank fields are left out, so the result works both for a
    partial update and as the base of a new record.

    Args:
        data (dict): Form fields or JSON body.

    Returns:
        dict: Validated movie fields in storage naming.
    """
    changes = {}
    for key in TEXT_FIELDS:
        value = data.get(key)
        if not _is_blank(value):
            changes[key] = str(value).strip()

    if not _is_blank(data.get("rating")):
        changes["rating"] = _parse_rating(data.get("rating"))
    if not _is_blank(data.get("duration")):
        changes["duration"] = _parse_duration(data.get("duration"))

    release_date = data.get("releaseDate", data.get("release_date"))
    if not _is_blank(release_date):
        changes["release_date"] = parse_release_date(release_date)

    if data.get("cast") is not None:
        changes["cast"] = parse_string_list(data.get("cast"))

    image = data.get("image")
    if isinstance(image, str) and image.strip():
        changes["image"] = image.strip()

    scene_images = data.get("sceneImages", data.get("scene_images"))
    if scene_images is not None:
        scene_list = parse_string_list(scene_images)
        if len(scene_list) > MAX_SCENE_IMAGES:
            raise ValidationError(f"Maximum {MAX_SCENE_IMAGES} scene images allowed")
        changes["scene_images"] = scene_list

    return changes


def build_movie_record(data: dict, created_by: str | None = None):
    """
    Prepare a complete movie record for an insert intent.

    Args:
        data (dict): Submitted fields, with ``image`` already resolved to a URL.
        created_by (str | None): Id of the admin submitting the movie.

    Returns:
        dict: Record ready to enqueue.
    """
    record = build_movie_changes(data)
    if not record.get("title"):
        raise ValidationError("Movie title is required")
    if not record.get("image"):
        raise ValidationError("Movie poster is required")
    record.setdefault("cast", [])
    record.setdefault("scene_images", [])
    record["created_by"] = created_by
    return record


def _json_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_json_value(entry) for entry in value]
    if isinstance(value, dict):
        return {key: _json_value(entry) for key, entry in value.items()}
    if value is not None and not isinstance(value, (str, int, float, bool)):
        return str(value)
    return value


def serialize_document(doc: dict | None):
    """
    Convert a MongoDB movie document into an API-friendly dictionary.

    Args:
        doc (dict | None): MongoDB document.

    Returns:
        dict: Serializable representation with string identifiers and a poster URL.
    """
    if not doc:
        return {}

    serialized = {key: _json_value(value) for key, value in doc.items()}

    poster_value = serialized.get("image")
    if isinstance(poster_value, str):
        trimmed = poster_value.strip()
        if not trimmed or trimmed.lower() in {"none", "n/a", "null"}:
            serialized["image"] = build_poster_placeholder(serialized.get("title"))
        else:
            serialized["image"] = trimmed
    else:
        serialized["image"] = build_poster_placeholder(serialized.get("title"))

    return serialized
