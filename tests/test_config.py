from datetime import timedelta

import pytest
from pydantic import ValidationError

from clockq.config import Settings, get_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("BACKEND", "SQS_QUEUE_URL", "POLL_INTERVAL", "BACKOFF_UNIT", "MEMORY_CAPACITY"):
        monkeypatch.delenv(f"CLOCKQ_{key}", raising=False)
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.backend == "memory"
    assert settings.memory_capacity == 1000
    assert settings.poll_interval_delta == timedelta(seconds=1)
    assert settings.backoff_unit_delta == timedelta(minutes=1)


def test_reads_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOCKQ_BACKEND", "redis")
    monkeypatch.setenv("CLOCKQ_POLL_INTERVAL", "0.25")
    monkeypatch.setenv("CLOCKQ_BACKOFF_UNIT", "2")

    settings = Settings(_env_file=None)
    assert settings.backend == "redis"
    assert settings.poll_interval_delta == timedelta(milliseconds=250)
    assert settings.backoff_unit_delta == timedelta(seconds=2)


def test_sqs_requires_queue_url() -> None:
    with pytest.raises(ValidationError, match="CLOCKQ_SQS_QUEUE_URL"):
        Settings(_env_file=None, backend="sqs")


def test_rejects_unknown_backend() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, backend="kafka")


def test_rejects_zero_capacity() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, memory_capacity=0)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
