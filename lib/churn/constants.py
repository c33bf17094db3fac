"""Constants and Redis key patterns for the churn harness."""


class RedisKeys:
    """Redis key patterns used by the reference admin service."""

    CONFIGS = "churn:configs"
    COLLECTIONS = "churn:collections"
    COLLECTION_INDEX = "churn:collections:index"

    @classmethod
    def config(cls, config_name: str) -> str:
        return f"{cls.CONFIGS}:{config_name}"

    @classmethod
    def collection(cls, name: str) -> str:
        return f"{cls.COLLECTIONS}:{name}"


class Operation:
    """Lifecycle operation names (used in errors and metrics)."""
    CREATE = "create"
    DELETE = "delete"
    QUERY = "query"


class Outcome:
    """Operation outcome labels."""
    OK = "ok"
    STATUS_FAILURE = "status_failure"
    ERROR = "error"
    EXPECTED_ABSENCE = "expected_absence"


# Substring fallback for clients that cannot raise ResourceNotFoundError.
NOT_FOUND_MARKERS = ("not found", "Can not find")

MATCH_ALL_QUERY = "*:*"


class Defaults:
    """Default configuration values."""
    REDIS_URL = "redis://localhost:6379"
    WORKER_COUNT = 10
    RUN_SECONDS = 30.0
    NUM_SHARDS = 1
    REPLICATION_FACTOR = 1
    RESOURCE_PREFIX = "collection"
    SHARED_CONFIG_NAME = "testconfig"
    START_TIMEOUT_SECONDS = 30.0
