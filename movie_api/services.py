"""Per-application service container shared by the blueprints."""
from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app

EXTENSION_KEY = "movie_api"


@dataclass
class Services:
    movies: Any
    users: Any
    queue_store: Any
    record_store: Any
    write_queue: Any
    processor: Any
    scheduler: Any
    images: Any
    cache: Optional[Any] = None


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
