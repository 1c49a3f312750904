"""Job dispatch: durable relay in production, in-process execution otherwise."""

from __future__ import annotations

import copy
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any

from clipsa.adapters.relay.base import JobRelay
from clipsa.core.config import Settings, is_loopback_url
from clipsa.jobs.registry import JobHandler, JobRegistry
from clipsa.schemas.job import DispatchReceipt, JobEnvelope

logger = logging.getLogger(__name__)

JOBS_PATH = "/api/jobs"
LOCAL_MESSAGE_ID = "dev-local"


class Dispatcher:
    """Hands jobs to the relay, or runs them in-process when the relay cannot call back."""

    def __init__(
        self,
        *,
        registry: JobRegistry,
        settings: Settings,
        relay: JobRelay | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._relay = relay
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.local_job_workers,
            thread_name_prefix="clipsa-job",
        )
        self._pending: set[Future] = set()
        self._pending_lock = Lock()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    def destination_url(self) -> str | None:
        base_url = self._settings.public_base_url
        if not base_url:
            return None
        return f"{base_url}{JOBS_PATH}"

    def local_fallback_reason(self, destination_url: str | None) -> str | None:
        """Return why the relay path cannot be used, or None when it can."""
        if self._relay is None:
            return "relay not configured"
        if not destination_url:
            return "public app URL not set"
        if is_loopback_url(destination_url) and not self._relay.uses_loopback:
            return (
                f"destination {destination_url} resolves to loopback "
                "(set CLIPSA_APP_URL to a public URL, or CLIPSA_QSTASH_LOCAL=true for a local relay)"
            )
        return None

    def dispatch(self, job_name: str, payload: dict[str, Any], *, delay: int | None = None) -> DispatchReceipt:
        destination_url = self.destination_url()
        reason = self.local_fallback_reason(destination_url)
        if reason is not None:
            return self._run_locally(job_name, payload, reason=reason)

        envelope = JobEnvelope(job_name=job_name, payload=payload)
        logger.info("job.dispatch job_name=%s mode=relay destination=%s", job_name, destination_url)
        message_id = self._relay.publish_json(
            url=destination_url,
            body=envelope.model_dump(mode="json", by_alias=True),
            delay=delay,
        )
        return DispatchReceipt(message_id=message_id, mode="relay")

    def _run_locally(self, job_name: str, payload: dict[str, Any], *, reason: str) -> DispatchReceipt:
        handler = self._registry.lookup(job_name)
        logger.warning("job.dispatch job_name=%s mode=local reason=%s", job_name, reason)

        future = self._executor.submit(self._execute, job_name, handler, copy.deepcopy(payload))
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return DispatchReceipt(message_id=LOCAL_MESSAGE_ID, mode="local")

    @staticmethod
    def _execute(job_name: str, handler: JobHandler, payload: dict[str, Any]) -> None:
        started = time.monotonic()
        try:
            handler(payload)
        except Exception:
            logger.exception("job.local_failed job_name=%s", job_name)
            return
        logger.info("job.local_completed job_name=%s elapsed_ms=%d", job_name, (time.monotonic() - started) * 1000)

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for in-process jobs, including jobs they dispatch; return False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._pending_lock:
                pending = set(self._pending)
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait(pending, timeout=remaining)

    def shutdown(self, *, wait_for_jobs: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_jobs)


__all__ = ["Dispatcher", "JOBS_PATH", "LOCAL_MESSAGE_ID"]
