"""Redis layer: login rate limiting and the hand-off to the backup/export worker.

The worker itself runs outside this service. It pops jobs from the lists
below, and while it runs it keeps the counters and status keys current.
"""
from __future__ import annotations

import json
import logging
import redis
from gws_backup.config import settings

logger = logging.getLogger(__name__)

_redis = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    decode_responses=True,
    socket_connect_timeout=2,
    socket_timeout=5,
)

EXPORT_QUEUE_KEY = "gws:exports:waiting"
EXPORT_COUNTERS_KEY = "gws:exports:counters"
BACKUP_QUEUE_KEY = "gws:backup:requests"
IMAP_QUEUE_KEY = "gws:imap:requests"
BACKUP_STATUS_KEY = "gws:backup:status"
QUEUE_COUNTERS = ("waiting", "active", "completed", "failed")


def ping() -> bool:
    try:
        return _redis.ping()
    except Exception:
        return False


def _push(key: str, job: dict) -> bool:
    try:
        _redis.rpush(key, json.dumps(job, default=str))
        return True
    except Exception as e:
        logger.warning("Redis push to %s failed: %s", key, e)
        return False


def enqueue_export(job: dict) -> bool:
    """Queue an export for the worker. Returns False if Redis is unreachable."""
    return _push(EXPORT_QUEUE_KEY, job)


def enqueue_backup(job: dict) -> bool:
    return _push(BACKUP_QUEUE_KEY, job)


def enqueue_imap(job: dict) -> bool:
    return _push(IMAP_QUEUE_KEY, job)


def get_queue_status() -> dict:
    """Export queue counters, or an unavailable marker when Redis is down."""
    try:
        waiting = _redis.llen(EXPORT_QUEUE_KEY)
        counters = _redis.hgetall(EXPORT_COUNTERS_KEY) or {}
    except Exception as e:
        logger.warning("Queue status unavailable: %s", e)
        return {
            "available": False,
            "message": "Queue unavailable",
            "waiting": 0,
            "active": 0,
            "completed": 0,
            "failed": 0,
            "totalPending": 0,
        }
    status = {"available": True, "waiting": int(waiting)}
    for name in QUEUE_COUNTERS[1:]:
        status[name] = int(counters.get(name, 0) or 0)
    status["totalPending"] = status["waiting"] + status["active"]
    return status


def get_backup_status() -> dict | None:
    try:
        raw = _redis.get(BACKUP_STATUS_KEY)
        return json.loads(raw) if raw else None
    except Exception:
        return None


def set_backup_status(status: dict):
    try:
        _redis.set(BACKUP_STATUS_KEY, json.dumps(status, default=str))
    except Exception as e:
        logger.warning("Redis set_backup_status error: %s", e)


RATE_LIMIT_PREFIX = "ratelimit:"


def check_rate_limit(key: str, max_attempts: int = 5, window: int = 300) -> bool:
    """Return True if the key has exceeded max_attempts within window seconds."""
    try:
        rkey = f"{RATE_LIMIT_PREFIX}{key}"
        count = _redis.incr(rkey)
        if count == 1:
            _redis.expire(rkey, window)
        return count > max_attempts
    except Exception:
        return False


def clear_rate_limit(key: str):
    try:
        _redis.delete(f"{RATE_LIMIT_PREFIX}{key}")
    except Exception as e:
        logger.debug("Redis clear_rate_limit error: %s", e)
