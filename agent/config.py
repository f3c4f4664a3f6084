"""Configuration settings for the sync agent."""

import os
from dataclasses import dataclass
from typing import Optional

from common.constants import (
    AGENT_PORT,
    DEFAULT_MAX_ATTEMPTS,
    REQUEST_TIMEOUT_SECONDS,
    SYNC_STAGGER_SECONDS,
)


DATABASE_PATH = os.environ.get("SYNC_DATABASE_PATH", "./data/mediasync.db")

API_BASE_URL = os.environ.get("SYNC_API_BASE_URL", "http://localhost:3000/api")

API_AUTH_TOKEN = os.environ.get("SYNC_API_AUTH_TOKEN") or None

HEALTH_URL = os.environ.get("SYNC_HEALTH_URL") or None

STORAGE_QUOTA_BYTES = int(os.environ.get("SYNC_STORAGE_QUOTA_BYTES", str(2 * 1024 ** 3)))

MAX_ATTEMPTS = int(os.environ.get("SYNC_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS)))

STAGGER_SECONDS = float(os.environ.get("SYNC_STAGGER_SECONDS", str(SYNC_STAGGER_SECONDS)))

REQUEST_TIMEOUT = float(os.environ.get("SYNC_REQUEST_TIMEOUT", str(REQUEST_TIMEOUT_SECONDS)))

PROBE_INTERVAL = int(os.environ.get("SYNC_PROBE_INTERVAL", "15"))

WAKE_INTERVAL = int(os.environ.get("SYNC_WAKE_INTERVAL", "300"))

AGENT_HOST = os.environ.get("SYNC_AGENT_HOST", "127.0.0.1")

AGENT_LISTEN_PORT = int(os.environ.get("SYNC_AGENT_PORT", str(AGENT_PORT)))


@dataclass(frozen=True)
class AgentSettings:
    """Settings for one engine instance; defaults come from the SYNC_* environment."""
    database_path: str = DATABASE_PATH
    api_base_url: str = API_BASE_URL
    api_auth_token: Optional[str] = API_AUTH_TOKEN
    health_url: Optional[str] = HEALTH_URL
    storage_quota_bytes: int = STORAGE_QUOTA_BYTES
    max_attempts: int = MAX_ATTEMPTS
    stagger_seconds: float = STAGGER_SECONDS
    request_timeout: float = REQUEST_TIMEOUT
    probe_interval: int = PROBE_INTERVAL
    wake_interval: int = WAKE_INTERVAL

    def resolved_health_url(self) -> str:
        """Health URL probed for reachability; defaults to ``<api_base_url>/health``."""
        return self.health_url or f"{self.api_base_url.rstrip('/')}/health"
