"""Redis-backed progress snapshots so other processes can poll a batch run."""

import json
import os
from functools import lru_cache
from typing import Dict, Any, Optional
import redis
from src.utils.errors import StateManagerError
from src.utils.logging import get_logger

logger = get_logger(__name__)

# In-memory backend (default; single process)
_in_memory_state: Dict[str, Dict[str, Any]] = {}

STATUS_TTL_SECONDS = 86400


def _backend() -> str:
    return os.getenv("STATE_BACKEND", "memory")


def _status_key(run_id: str) -> str:
    return f"spends:{run_id}:status"


@lru_cache(maxsize=1)
def get_redis_client() -> Optional[redis.Redis]:
    """
    Lazily connect to Redis.

    Returns:
        Connected client, or None if Redis is unreachable
    """
    redis_host, redis_port = os.getenv("REDIS_HOST", "localhost:6379").split(':')
    client = redis.Redis(
        host=redis_host,
        port=int(redis_port),
        db=int(os.getenv("REDIS_DB", 0)),
        decode_responses=True,
        socket_keepalive=True,
        socket_connect_timeout=5
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed, progress kept in memory: {e}")
        return None

    logger.info("Connected to Redis", host=redis_host, port=redis_port)
    return client


def save_processing_status(run_id: str, status: Dict[str, Any]) -> None:
    """
    Save the latest progress snapshot of a batch run.

    Args:
        run_id: Batch run ID
        status: Snapshot dictionary

    Raises:
        StateManagerError: If the Redis write fails
    """
    client = get_redis_client() if _backend() == "redis" else None
    if client is None:
        _in_memory_state[run_id] = dict(status)
        logger.debug("Saved processing status (in-memory)", run_id=run_id)
        return

    try:
        client.setex(_status_key(run_id), STATUS_TTL_SECONDS, json.dumps(status, default=str))
        logger.debug("Saved processing status", run_id=run_id)
    except redis.RedisError as e:
        raise StateManagerError(f"Failed to save processing status: {e}")


def restore_processing_status(run_id: str) -> Dict[str, Any]:
    """
    Read the last saved snapshot of a batch run.

    Args:
        run_id: Batch run ID

    Returns:
        Snapshot dictionary, or empty dict if not found
    """
    client = get_redis_client() if _backend() == "redis" else None
    if client is None:
        state = _in_memory_state.get(run_id, {})
        if not state:
            logger.warning(f"No saved status found for {run_id} (in-memory)")
        return dict(state)

    try:
        value = client.get(_status_key(run_id))
    except redis.RedisError as e:
        logger.error(f"Failed to restore processing status: {e}")
        return {}

    if not value:
        logger.warning(f"No saved status found for {run_id}")
        return {}
    return json.loads(value)


def check_redis_health() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if Redis is reachable, False otherwise
    """
    client = get_redis_client()
    if client is None:
        return False

    try:
        return bool(client.ping())
    except redis.RedisError:
        return False
