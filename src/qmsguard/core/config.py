"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class WorkflowConfig(BaseSettings):
    """Thresholds and offsets used by the workflow policies."""

    model_config = {"env_prefix": "QMSGUARD_WORKFLOW_"}

    escalation_threshold: int = 3
    lockout_threshold: int = 5
    lockout_cache_ttl: int = 300  # seconds a cached lockout decision stays valid
    critical_offset_days: int = 0
    major_offset_days: int = 7
    minor_offset_days: int = 30
    manager_tier_days: int = 7
    senior_tier_days: int = 14
    max_notification_attempts: int = 5


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "QMSGUARD_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration (lockout decisions)."""

    model_config = {"env_prefix": "QMSGUARD_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    namespace: str = "qmsguard"


class NotifierConfig(BaseSettings):
    """Outbound notification request configuration."""

    model_config = {"env_prefix": "QMSGUARD_NOTIFIER_"}

    backend: Literal["log", "sqs"] = "log"
    queue_url: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    timeout: int = 5


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "QMSGUARD_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False
    backend: Literal["memory", "aws"] = "memory"

    workflow: WorkflowConfig = WorkflowConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    notifier: NotifierConfig = NotifierConfig()
