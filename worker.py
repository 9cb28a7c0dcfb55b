#!/usr/bin/env python3
"""RQ worker that runs deckcast export jobs against the configured Redis."""
from __future__ import annotations

import sys

from redis import Redis
from rq import Queue, Worker

from deckcast import create_app

DEFAULT_QUEUE = "deckcast-exports"


def parse_queue_names(value: str | None) -> list[str]:
    names = [name.strip() for name in (value or "").split(",") if name.strip()]
    return names or [DEFAULT_QUEUE]


def build_worker(app) -> Worker:
    redis_url = (app.config.get("REDIS_URL") or "").strip()
    if not redis_url:
        raise RuntimeError("REDIS_URL must point at a Redis server to run export workers.")
    connection = Redis.from_url(redis_url)
    queues = [Queue(name, connection=connection) for name in parse_queue_names(app.config.get("WORK_QUEUE_NAME"))]
    return Worker(queues, connection=connection)


def main() -> int:
    app = create_app()
    try:
        worker = build_worker(app)
    except RuntimeError as exc:
        app.logger.error("export_worker_not_started", extra={"error": str(exc)})
        return 1

    with app.app_context():
        app.logger.info("export_worker_started", extra={"queues": worker.queue_names()})
        worker.work(with_scheduler=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
