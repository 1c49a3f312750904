"""Application configuration."""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOCAL_APP_URL = "http://localhost:3000"
# Token issued by the relay's local development server.
_LOCAL_RELAY_TOKEN_PREFIX = "eyJVc2VySUQiOiJkZWZhdWx0VXNlciI"
_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "[::1]"})


def is_loopback_url(url: str | None) -> bool:
    """Return True when the URL's host is a loopback name or address."""
    if not url:
        return False
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    if hostname is None:
        return False
    return hostname in _LOOPBACK_HOSTS or f"[{hostname}]" in _LOOPBACK_HOSTS


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    app_url: str | None = None
    public_app_url: str | None = None
    vercel_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLIPSA_VERCEL_URL", "VERCEL_URL"),
    )
    deployment_url: str | None = None

    qstash_token: str | None = None
    qstash_url: str = "https://qstash.upstash.io"
    qstash_local: bool = False
    job_forward_secret: str | None = None

    generation_provider: Literal["fal", "mock"] = "fal"
    fal_key: str | None = None
    fal_queue_url: str = "https://queue.fal.run"
    scene_model: str = "fal-ai/veo3.1"
    audio_model: str = "fal-ai/stable-audio"
    image_model: str = "fal-ai/flux/dev"

    ffmpeg_binary: str = "ffmpeg"
    stitch_tmp_prefix: str = "clipsa-stitch-"
    http_timeout_seconds: float = 60.0
    local_job_workers: int = 8
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="CLIPSA_", extra="ignore", populate_by_name=True)

    @property
    def public_base_url(self) -> str:
        """Callback base address: explicit app URL, then platform URL, then localhost."""
        if self.app_url:
            return self.app_url.rstrip("/")
        if self.public_app_url:
            return self.public_app_url.rstrip("/")
        if self.vercel_url:
            return f"https://{self.vercel_url}".rstrip("/")
        if self.deployment_url:
            return f"https://{self.deployment_url}".rstrip("/")
        return _LOCAL_APP_URL

    @property
    def relay_configured(self) -> bool:
        return bool(self.qstash_token)

    @property
    def relay_uses_loopback(self) -> bool:
        if self.qstash_local:
            return True
        if is_loopback_url(self.qstash_url):
            return True
        return bool(self.qstash_token and self.qstash_token.startswith(_LOCAL_RELAY_TOKEN_PREFIX))

    @property
    def relay_base_url(self) -> str:
        if self.qstash_local and not is_loopback_url(self.qstash_url):
            return "http://127.0.0.1:8080"
        return self.qstash_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
