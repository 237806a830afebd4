from unittest.mock import MagicMock

import mongomock
import pytest

from movie_api.api_users.users_functions import create_token, hash_password
from movie_api.app import create_app
from movie_api.services import EXTENSION_KEY
from movie_api.write_queue.processor import QueueProcessor
from movie_api.write_queue.service import WriteQueue
from tests.fakes import InMemoryQueueStore, InMemoryRecordStore

JWT_SECRET = "test-secret-with-at-least-32-bytes!!"


@pytest.fixture
def queue_store():
    return InMemoryQueueStore()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def processor(queue_store, record_store):
    return QueueProcessor(queue_store, record_store, batch_size=10)


@pytest.fixture
def write_queue(queue_store):
    return WriteQueue(queue_store, trigger=MagicMock(), max_retries=3)


@pytest.fixture
def database():
    return mongomock.MongoClient()["movie_catalog_test"]


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.get.return_value = None
    client.scan_iter.return_value = iter([])
    return client


@pytest.fixture
def app(database, redis_client, tmp_path):
    app = create_app(
        overrides={
            "TESTING": True,
            "JWT_SECRET": JWT_SECRET,
            "UPLOAD_DIR": tmp_path / "uploads",
            "PUBLIC_BASE_URL": "http://testserver",
            "QUEUE_MAX_RETRIES": 3,
        },
        database=database,
        redis_client=redis_client,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions[EXTENSION_KEY]


def _make_user(database, email, role):
    result = database["users"].insert_one({
        "name": email.split("@")[0],
        "email": email,
        "password": hash_password("password123"),
        "role": role,
        "is_active": True,
    })
    return result.inserted_id


@pytest.fixture
def admin_id(database):
    return _make_user(database, "admin@example.com", "admin")


@pytest.fixture
def admin_headers(admin_id):
    return {"Authorization": f"Bearer {create_token(admin_id, 'admin', JWT_SECRET)}"}


@pytest.fixture
def user_headers(database):
    user_id = _make_user(database, "viewer@example.com", "user")
    return {"token": create_token(user_id, "user", JWT_SECRET)}
