import pytest

from movie_api import settings


def valid_config(**changes):
    config = settings.as_dict()
    config.update({"JWT_SECRET": "secret", "MONGO_URI": "mongodb://db:27017"})
    config.update(changes)
    return config


def test_valid_config_passes():
    settings.validate_config(valid_config())


def test_errors_are_collected():
    with pytest.raises(ValueError) as excinfo:
        settings.validate_config(valid_config(JWT_SECRET=None, QUEUE_MAX_RETRIES=0, QUEUE_BATCH_SIZE=0))

    message = str(excinfo.value)
    assert "JWT_SECRET is required" in message
    assert "QUEUE_MAX_RETRIES" in message
    assert "QUEUE_BATCH_SIZE" in message
