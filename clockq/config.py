"""
Settings for the clockq process, read once from CLOCKQ_* environment
variables (and an optional .env file).
"""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Queue backend selection, worker timing and collaborator endpoints."""

    backend: Literal["memory", "redis", "sqs"] = Field(
        default="memory", description="Queue backend (memory, redis, sqs)"
    )

    memory_capacity: int = Field(default=1000, ge=1, description="Ready channel size")

    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="clockq")
    redis_block_timeout: int = Field(
        default=1, ge=1, description="Seconds BRPOP waits before dequeue returns"
    )

    sqs_queue_url: str | None = Field(default=None, description="AWS SQS queue URL")
    aws_region: str = Field(default="us-east-1")
    aws_endpoint_url: str | None = Field(
        default=None, description="Override for SQS-compatible brokers"
    )

    poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds the worker waits between polls"
    )
    backoff_unit: float = Field(
        default=60.0, gt=0, description="Seconds multiplied by attempts² on retry"
    )

    reporting_url: str = Field(default="http://legacy.local/api/labor-cost")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=25)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="CLOCKQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_sqs_url(self) -> "Settings":
        if self.backend == "sqs" and not self.sqs_queue_url:
            raise ValueError("CLOCKQ_SQS_QUEUE_URL is required when backend=sqs")
        return self

    @property
    def poll_interval_delta(self) -> timedelta:
        return timedelta(seconds=self.poll_interval)

    @property
    def backoff_unit_delta(self) -> timedelta:
        return timedelta(seconds=self.backoff_unit)


@lru_cache
def get_settings() -> Settings:
    return Settings()
