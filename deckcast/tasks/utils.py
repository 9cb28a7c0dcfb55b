from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask import Flask, current_app, has_app_context


@contextmanager
def export_app_context() -> Iterator[Flask]:
    """Yield the active app, or build one for the duration of an export job.

    RQ workers normally run jobs inside ``worker.py``'s app context; jobs
    executed by a bare ``rq worker`` get a fresh app that is torn down again
    once the job finishes.
    """
    if has_app_context():
        yield current_app._get_current_object()  # type: ignore[attr-defined]
        return

    from .. import create_app

    app = create_app()
    with app.app_context():
        yield app


__all__ = ["export_app_context"]
