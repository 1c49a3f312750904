"""fal.ai queue adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from clipsa.adapters.provider.base import GenerationProvider, SubmissionReceipt
from clipsa.errors import ProviderSubmissionFailure

logger = logging.getLogger(__name__)


class FalQueueProvider(GenerationProvider):
    """Submits requests to the fal.ai queue with a completion webhook."""

    name = "fal"

    def __init__(
        self,
        *,
        api_key: str,
        queue_url: str = "https://queue.fal.run",
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._queue_url = queue_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def submit(self, model: str, *, input: dict[str, Any], webhook_url: str) -> SubmissionReceipt:
        try:
            response = self._client.post(
                f"{self._queue_url}/{model}",
                params={"fal_webhook": webhook_url},
                json=input,
                headers={"Authorization": f"Key {self._api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("provider.rejected provider=fal model=%s status=%s", model, exc.response.status_code)
            raise ProviderSubmissionFailure(
                f"fal rejected {model} request with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("provider.unreachable provider=fal model=%s reason=%s", model, type(exc).__name__)
            raise ProviderSubmissionFailure(f"fal submission for {model} failed: {exc}") from exc

        request_id = response.json().get("request_id")
        if not request_id:
            raise ProviderSubmissionFailure(f"fal response for {model} did not include a request_id")
        return SubmissionReceipt(request_id=str(request_id))

    def close(self) -> None:
        self._client.close()


__all__ = ["FalQueueProvider"]
