"""Configuration for the movie catalog API."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(BASE_DIR / "logs")))
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# HTTP server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
DEBUG = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes", "on"}
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")

# MongoDB
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "movie_catalog")

# Redis read cache
REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
REDIS_DB = int(os.environ.get("REDIS_DB", 0))
CACHE_TTL_SECONDS = int(os.environ.get("CACHE_TTL_SECONDS", 600))

# Auth
JWT_SECRET = os.getenv("JWT_SECRET")
TOKEN_TTL_DAYS = int(os.getenv("TOKEN_TTL_DAYS", "7"))

# Write queue
QUEUE_POLL_INTERVAL = int(os.getenv("QUEUE_POLL_INTERVAL", "5"))  # seconds between passes
QUEUE_BATCH_SIZE = int(os.getenv("QUEUE_BATCH_SIZE", "10"))
QUEUE_MAX_RETRIES = int(os.getenv("QUEUE_MAX_RETRIES", "3"))


def as_dict():
    """Return the settings as a flat mapping suitable for ``app.config``."""
    return {
        "LOGS_DIR": LOGS_DIR,
        "UPLOAD_DIR": UPLOAD_DIR,
        "LOG_LEVEL": LOG_LEVEL,
        "PUBLIC_BASE_URL": PUBLIC_BASE_URL,
        "MONGO_URI": MONGO_URI,
        "MONGO_DB": MONGO_DB,
        "REDIS_HOST": REDIS_HOST,
        "REDIS_PORT": REDIS_PORT,
        "REDIS_DB": REDIS_DB,
        "CACHE_TTL_SECONDS": CACHE_TTL_SECONDS,
        "JWT_SECRET": JWT_SECRET,
        "TOKEN_TTL_DAYS": TOKEN_TTL_DAYS,
        "QUEUE_POLL_INTERVAL": QUEUE_POLL_INTERVAL,
        "QUEUE_BATCH_SIZE": QUEUE_BATCH_SIZE,
        "QUEUE_MAX_RETRIES": QUEUE_MAX_RETRIES,
    }


def validate_config(config=None):
    """Validate required configuration."""
    config = config if config is not None else as_dict()
    errors = []

    if not config.get("MONGO_URI"):
        errors.append("MONGO_URI is required")

    if not config.get("JWT_SECRET"):
        errors.append("JWT_SECRET is required")

    if config.get("QUEUE_MAX_RETRIES", 0) < 1:
        errors.append(f"QUEUE_MAX_RETRIES must be at least 1: {config.get('QUEUE_MAX_RETRIES')}")

    if config.get("QUEUE_BATCH_SIZE", 0) < 1:
        errors.append(f"QUEUE_BATCH_SIZE must be at least 1: {config.get('QUEUE_BATCH_SIZE')}")

    if config.get("QUEUE_POLL_INTERVAL", 0) <= 0:
        errors.append(f"QUEUE_POLL_INTERVAL must be positive: {config.get('QUEUE_POLL_INTERVAL')}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
