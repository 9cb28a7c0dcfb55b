from __future__ import annotations

from typing import Optional

import fakeredis
from flask import Flask
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

from .config import LOCAL_PROFILES


def _profile(app: Flask) -> str:
    return str(app.config.get("DEPLOY_PROFILE", "")).strip().lower()


def _ensure_fake_redis(app: Flask) -> fakeredis.FakeRedis:
    existing = app.config.get("LOCAL_REDIS")
    if existing is not None:
        return existing
    store = fakeredis.FakeRedis()
    app.logger.info("fakeredis_initialized")
    app.config["LOCAL_REDIS"] = store
    return store


def _should_use_real_redis(app: Flask) -> bool:
    if _profile(app) in LOCAL_PROFILES:
        return False
    return bool((app.config.get("REDIS_URL") or "").strip())


def _connection_healthy(app: Flask, connection) -> bool:
    if connection is None:
        return False
    try:
        connection.ping()
        return True
    except (RedisError, OSError) as exc:
        app.logger.warning("redis_connection_unhealthy", extra={"error": str(exc)})
        return False


def init_task_queue(app: Flask) -> Optional[Queue]:
    """Initialize the export queue when a reachable Redis is configured."""
    profile = _profile(app)
    redis_url = (app.config.get("REDIS_URL") or "").strip()
    connection = None
    if _should_use_real_redis(app):
        try:
            connection = Redis.from_url(redis_url)
        except ValueError as exc:
            app.logger.error("task_queue_connection_failed", extra={"error": str(exc)})
            connection = None
        if connection is not None and _connection_healthy(app, connection):
            app.config["REDIS_CONNECTION"] = connection
        else:
            connection = None
    elif redis_url:
        app.logger.info(
            "task_queue_redis_skipped_for_profile",
            extra={"profile": profile, "redis_url_configured": True},
        )

    if connection is None:
        _ensure_fake_redis(app)
        if not redis_url:
            app.logger.info("task_queue_disabled_missing_url")
        return None

    queue_name = app.config.get("WORK_QUEUE_NAME", "deckcast-exports")
    default_timeout = int(app.config.get("WORK_QUEUE_TIMEOUT", 1800))
    queue = Queue(name=queue_name, connection=connection, default_timeout=default_timeout)
    app.config["TASK_QUEUE"] = queue
    app.logger.info(
        "task_queue_initialized",
        extra={"queue_name": queue_name, "queue_timeout": default_timeout},
    )
    return queue


def get_task_queue(app: Flask) -> Optional[Queue]:
    return app.config.get("TASK_QUEUE")


def get_redis_connection(app: Flask):
    """Live Redis connection, or the process-local fakeredis store."""
    if not _should_use_real_redis(app):
        return _ensure_fake_redis(app)
    queue = app.config.get("TASK_QUEUE")
    if queue is not None:
        conn = getattr(queue, "connection", None)
        if _connection_healthy(app, conn):
            return conn
    existing = app.config.get("REDIS_CONNECTION")
    if existing is not None and _connection_healthy(app, existing):
        return existing
    if existing is not None:
        app.config.pop("REDIS_CONNECTION", None)
    return _ensure_fake_redis(app)


def is_task_queue_healthy(app: Flask) -> bool:
    """Return True only when the configured queue can reach Redis."""
    queue = app.config.get("TASK_QUEUE")
    if not queue:
        return False
    return _connection_healthy(app, getattr(queue, "connection", None))


__all__ = [
    "init_task_queue",
    "get_task_queue",
    "get_redis_connection",
    "is_task_queue_healthy",
]
