"""Admin client contract and a Redis-backed reference admin service.

Workers only ever talk to an admin client through the methods of
AdminClient. RedisCollectionAdmin implements them on top of Redis so a
run can be driven end-to-end without a real cluster.
"""

import json
import logging
import random
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from .constants import Defaults, MATCH_ALL_QUERY, Operation, RedisKeys
from .errors import ChurnError, ConfigNotFoundError, RedisStartupError, ResourceNotFoundError
from .security import SecureLogger, sanitize

logger = SecureLogger(logging.getLogger(__name__))


@dataclass
class AdminResponse:
    """Result of an admin call that completed without raising."""
    status: int
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == 0


class AdminClient:
    """Capability surface the harness needs from an admin client.

    Implementations must be safe to share between threads when a run
    is configured with a single shared handle.
    """

    def upload_config(self, config_dir: Path, config_name: str) -> None:
        raise NotImplementedError

    def create_collection(
        self,
        name: str,
        config_name: str,
        num_shards: int = Defaults.NUM_SHARDS,
        replication_factor: int = Defaults.REPLICATION_FACTOR
    ) -> AdminResponse:
        raise NotImplementedError

    def delete_collection(self, name: str) -> AdminResponse:
        raise NotImplementedError

    def query(self, name: str, q: str = MATCH_ALL_QUERY) -> Dict[str, Any]:
        raise NotImplementedError

    def close(self) -> None:
        pass


def create_redis_client(
    redis_url: str,
    max_retries: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 30.0
) -> redis.Redis:
    """Create Redis client with exponential backoff retry.

    Args:
        redis_url: Redis connection URL
        max_retries: Maximum connection attempts (default 5)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay cap in seconds

    Returns:
        Connected Redis client

    Raises:
        RedisStartupError: If connection fails after all retries
    """
    last_error = None

    for attempt in range(max_retries):
        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            return client
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            last_error = e
            delay = min(base_delay * (2 ** attempt), max_delay)
            jitter = delay * 0.25 * (2 * random.random() - 1)
            actual_delay = delay + jitter

            print(
                sanitize(f"Redis connection failed (attempt {attempt + 1}/{max_retries}): {e}"),
                file=sys.stderr
            )

            if attempt < max_retries - 1:
                print(f"Retrying in {actual_delay:.1f}s...", file=sys.stderr)
                time.sleep(actual_delay)

    raise RedisStartupError(
        sanitize(f"Failed to connect to Redis at {redis_url} after {max_retries} attempts: {last_error}")
    )


class RedisCollectionAdmin(AdminClient):
    """Collection admin service stored in Redis.

    - Configs are hashes of file name -> file content
    - Collections are JSON documents created with SET NX
    - An index set tracks live collection names

    redis-py clients are thread-safe through their connection pool, so one
    instance may be shared by every worker of a run.
    """

    def __init__(self, redis_client: redis.Redis, owns_client: bool = True):
        self.redis = redis_client
        self._owns_client = owns_client

    def upload_config(self, config_dir: Path, config_name: str) -> None:
        """Store every file of config_dir under config_name."""
        config_dir = Path(config_dir)
        if not config_dir.is_dir():
            raise ChurnError(f"Config directory does not exist: {config_dir}")

        files = {
            path.name: path.read_text(encoding='utf-8', errors='replace')
            for path in sorted(config_dir.iterdir())
            if path.is_file()
        }
        files['_uploaded_at'] = datetime.now(timezone.utc).isoformat()

        key = RedisKeys.config(config_name)
        pipe = self.redis.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping=files)
        pipe.execute()
        logger.debug("Uploaded config %s (%d files)", config_name, len(files) - 1)

    def config_exists(self, config_name: str) -> bool:
        return self.redis.exists(RedisKeys.config(config_name)) > 0

    def get_config_files(self, config_name: str) -> Dict[str, str]:
        data = self.redis.hgetall(RedisKeys.config(config_name))
        if not data:
            raise ConfigNotFoundError(config_name)
        data.pop('_uploaded_at', None)
        return data

    def create_collection(
        self,
        name: str,
        config_name: str,
        num_shards: int = Defaults.NUM_SHARDS,
        replication_factor: int = Defaults.REPLICATION_FACTOR
    ) -> AdminResponse:
        if not self.config_exists(config_name):
            raise ConfigNotFoundError(config_name)

        collection = json.dumps({
            'name': name,
            'config_name': config_name,
            'num_shards': num_shards,
            'replication_factor': replication_factor,
            'created_at': datetime.now(timezone.utc).isoformat()
        })

        created = self.redis.set(RedisKeys.collection(name), collection, nx=True)
        if not created:
            return AdminResponse(status=400, message=f"collection already exists: {name}")

        self.redis.sadd(RedisKeys.COLLECTION_INDEX, name)
        return AdminResponse(status=0, data={'operation': Operation.CREATE, 'collection': name})

    def delete_collection(self, name: str) -> AdminResponse:
        pipe = self.redis.pipeline()
        pipe.delete(RedisKeys.collection(name))
        pipe.srem(RedisKeys.COLLECTION_INDEX, name)
        deleted, _ = pipe.execute()

        if not deleted:
            return AdminResponse(status=404, message=f"Could not find collection : {name}")
        return AdminResponse(status=0, data={'operation': Operation.DELETE, 'collection': name})

    def query(self, name: str, q: str = MATCH_ALL_QUERY) -> Dict[str, Any]:
        data = self.redis.get(RedisKeys.collection(name))
        if data is None:
            raise ResourceNotFoundError(
                f"Collection not found: {name}",
                operation=Operation.QUERY,
                resource=name
            )

        collection = json.loads(data)
        return {
            'collection': collection['name'],
            'q': q,
            'numFound': 0,
            'docs': []
        }

    def list_collections(self) -> List[str]:
        return sorted(self.redis.smembers(RedisKeys.COLLECTION_INDEX))

    def close(self) -> None:
        if self._owns_client:
            self.redis.close()


def redis_admin_factory(redis_url: Optional[str] = None, **retry_kwargs):
    """Return a zero-arg factory producing admin handles for redis_url."""
    url = redis_url or Defaults.REDIS_URL

    def factory() -> RedisCollectionAdmin:
        return RedisCollectionAdmin(create_redis_client(url, **retry_kwargs))

    return factory
