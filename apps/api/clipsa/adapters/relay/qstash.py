"""QStash relay adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from clipsa.adapters.relay.base import JobRelay
from clipsa.errors import RelayPublishFailure

logger = logging.getLogger(__name__)

FORWARDED_SECRET_HEADER = "X-Job-Secret"


class QStashRelay(JobRelay):
    """Publishes job envelopes through the QStash HTTP API."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str,
        forward_secret: str | None = None,
        uses_loopback: bool = False,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not token:
            raise ValueError("token is required")
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._forward_secret = forward_secret
        self._uses_loopback = uses_loopback
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def uses_loopback(self) -> bool:
        return self._uses_loopback

    def publish_json(self, *, url: str, body: dict[str, Any], delay: int | None = None) -> str:
        headers = {"Authorization": f"Bearer {self._token}"}
        if delay:
            headers["Upstash-Delay"] = f"{int(delay)}s"
        if self._forward_secret:
            headers[f"Upstash-Forward-{FORWARDED_SECRET_HEADER}"] = self._forward_secret

        try:
            response = self._client.post(f"{self._base_url}/v2/publish/{url}", json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("relay.publish_failed destination=%s reason=%s", url, type(exc).__name__)
            raise RelayPublishFailure(f"Relay rejected publish to {url}") from exc

        message_id = response.json().get("messageId")
        if not message_id:
            raise RelayPublishFailure("Relay response did not include a messageId")
        return str(message_id)

    def close(self) -> None:
        self._client.close()


__all__ = ["FORWARDED_SECRET_HEADER", "QStashRelay"]
