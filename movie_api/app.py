"""Application factory and entry point."""
import logging
import signal
import sys

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from movie_api import settings
from movie_api.api_movies.movies import movies_bp
from movie_api.api_movies.movies_functions import MOVIES_CACHE_PREFIX
from movie_api.api_queue.queue import queue_bp
from movie_api.api_users.users import users_bp
from movie_api.cache import ReadCache
from movie_api.db import (
    MOVIES_COLLECTION,
    QUEUE_COLLECTION,
    USERS_COLLECTION,
    connect_mongo,
    connect_redis,
    ensure_indexes,
)
from movie_api.errors import ValidationError
from movie_api.images import LocalImageStore
from movie_api.logging_conf import setup_logging
from movie_api.services import EXTENSION_KEY, Services
from movie_api.write_queue import MongoQueueStore, MongoRecordStore, QueueProcessor, QueueScheduler, WriteQueue

logger = logging.getLogger(__name__)


def create_app(overrides=None, database=None, redis_client=None):
    """
    Build the Flask application and wire the write queue.

    Args:
        overrides (dict | None): Config values replacing the environment settings.
        database (Database | None): MongoDB database handle; connects from config when None.
        redis_client (Redis | None): Redis client; connects from config when None,
            disabled when ``CACHE_ENABLED`` is False.

    Returns:
        Flask: Configured application. The scheduler is created but not started.
    """
    app = Flask(__name__)
    app.config.update(settings.as_dict())
    app.config["CACHE_ENABLED"] = True
    app.config["MAX_CONTENT_LENGTH"] = 20 * 1024 * 1024
    app.config.update(overrides or {})
    CORS(app)

    if database is None:
        database = connect_mongo(app.config["MONGO_URI"], app.config["MONGO_DB"])

    cache = None
    if app.config["CACHE_ENABLED"]:
        if redis_client is None:
            redis_client = connect_redis(app.config["REDIS_HOST"], app.config["REDIS_PORT"], app.config["REDIS_DB"])
        cache = ReadCache(redis_client, app.config["CACHE_TTL_SECONDS"])

    queue_store = MongoQueueStore(database[QUEUE_COLLECTION])
    record_store = MongoRecordStore(database[MOVIES_COLLECTION], cache=cache, cache_prefixes=[MOVIES_CACHE_PREFIX])
    processor = QueueProcessor(queue_store, record_store, batch_size=app.config["QUEUE_BATCH_SIZE"])
    scheduler = QueueScheduler(processor, interval=app.config["QUEUE_POLL_INTERVAL"])
    write_queue = WriteQueue(queue_store, trigger=scheduler.trigger, max_retries=app.config["QUEUE_MAX_RETRIES"])
    images = LocalImageStore(app.config["UPLOAD_DIR"], app.config["PUBLIC_BASE_URL"])

    app.extensions[EXTENSION_KEY] = Services(
        movies=database[MOVIES_COLLECTION],
        users=database[USERS_COLLECTION],
        queue_store=queue_store,
        record_store=record_store,
        write_queue=write_queue,
        processor=processor,
        scheduler=scheduler,
        images=images,
        cache=cache,
    )

    app.register_blueprint(movies_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(queue_bp)
    register_routes(app)
    register_error_handlers(app)
    return app


def register_routes(app):
    @app.route("/", methods=["GET"])
    def index():
        return "Movie API is Running"

    @app.route("/images/<path:filename>", methods=["GET"])
    def serve_image(filename):
        return send_from_directory(app.config["UPLOAD_DIR"], filename)


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify({"success": False, "message": str(error)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"success": False, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({"success": False, "message": "Something went wrong!"}), 500


def main():
    """Entry point."""
    setup_logging()
    try:
        settings.validate_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    app = create_app()
    services = app.extensions[EXTENSION_KEY]
    ensure_indexes(services.movies.database)
    scheduler = services.scheduler

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        scheduler.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler.start()
    logger.info(f"Server started on http://{settings.HOST}:{settings.PORT}")
    try:
        app.run(host=settings.HOST, port=settings.PORT, debug=settings.DEBUG, use_reloader=False)
    finally:
        scheduler.stop()


if __name__ == "__main__":
    main()
