"""Named background job handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import Any

from clipsa.errors import JobNotFound

logger = logging.getLogger(__name__)

JobPayload = dict[str, Any]
JobHandler = Callable[[JobPayload], None]


class JobRegistry:
    """Table of job name -> handler.

    The registry offers no per-job mutual exclusion: the same handler may run
    concurrently for different (or duplicate) payloads, so handlers must be
    re-entrant.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, JobHandler] = {}
        self._lock = Lock()

    def register(self, name: str, handler: JobHandler) -> JobHandler:
        if not name:
            raise ValueError("job name is required")
        with self._lock:
            if name in self._handlers:
                logger.warning("registry.overwrite job_name=%s", name)
            self._handlers[name] = handler
        return handler

    def lookup(self, name: str) -> JobHandler:
        with self._lock:
            handler = self._handlers.get(name)
        if handler is None:
            raise JobNotFound(name)
        return handler

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._handlers


__all__ = ["JobHandler", "JobPayload", "JobRegistry"]
