"""Configuration for broadcast subscriptions.

Load from environment using ``BroadcastConfig.from_env()``.
"""

from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

BROKER_SCHEME = "mqtt"
DEFAULT_BROKER_PORT = 1883


class ConnectionParams(BaseModel):
    """Where and as whom a scope or publisher connects to the broadcast broker.

    The password never appears in ``repr()``/``str()``, so the object is safe
    to pass to log calls.
    """

    model_config = ConfigDict(frozen=True)

    hostname: str
    port: int = DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    @property
    def endpoint(self) -> str:
        return f"{self.hostname}:{self.port}"


def parse_broker_url(url: str) -> ConnectionParams:
    """Split ``mqtt://[user:pass@]host[:port]`` into :class:`ConnectionParams`.

    A missing host means localhost and a missing port means 1883. Any other
    scheme is a configuration error (``ValueError``).
    """
    parsed = urlparse(url)
    if parsed.scheme != BROKER_SCHEME:
        raise ValueError(
            f"Invalid broadcast URL scheme {parsed.scheme!r}; "
            f"expected {BROKER_SCHEME}://[user:pass@]host[:port]"
        )
    return ConnectionParams(
        hostname=parsed.hostname or "localhost",
        port=parsed.port or DEFAULT_BROKER_PORT,
        username=parsed.username,
        password=parsed.password,
    )


class BroadcastConfig(BaseModel):
    """Settings shared by subscription scopes, the publisher and the CLI.

    Attributes:
        broadcast_url: Broker URL (mqtt://[user:pass@]host[:port])
        server_url: Base URL of the companion API used for the liveness probe
            (probe is skipped when unset)
        health_path: Path of the health endpoint on ``server_url``
        health_timeout: HTTP timeout for the liveness probe in seconds
        client_id: Broker client id (random per connection when unset)
        keepalive: Broker protocol keepalive interval in seconds
        qos: QoS level used for subscribe and publish
        teardown_timeout: Max seconds to wait for a consume task to stop
        log_level: Root log level for the CLI
    """

    broadcast_url: str = "mqtt://127.0.0.1:1883"
    server_url: Optional[str] = None
    health_path: str = "/health"
    health_timeout: float = Field(default=5.0, gt=0)
    client_id: Optional[str] = None
    keepalive: int = Field(default=60, ge=1, le=3600)
    qos: int = Field(default=0, ge=0, le=2)
    teardown_timeout: float = Field(default=1.0, gt=0)
    log_level: str = "INFO"

    @field_validator("broadcast_url")
    @classmethod
    def validate_broadcast_url(cls, v: str) -> str:
        parse_broker_url(v)
        return v

    @field_validator("server_url")
    @classmethod
    def strip_server_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @field_validator("health_path")
    @classmethod
    def validate_health_path(cls, v: str) -> str:
        if not v.startswith("/"):
            v = "/" + v
        return v

    @property
    def connection(self) -> ConnectionParams:
        return parse_broker_url(self.broadcast_url)

    @property
    def health_url(self) -> Optional[str]:
        if not self.server_url:
            return None
        return f"{self.server_url}{self.health_path}"

    @classmethod
    def from_env(cls) -> BroadcastConfig:
        """Load configuration from environment variables.

        Optional environment variables:
            BROADCAST_URL: Broker URL (default: mqtt://127.0.0.1:1883)
            SERVER_URL: Companion API base URL for the liveness probe
            HEALTH_PATH: Health endpoint path (default: /health)
            HEALTH_TIMEOUT: Probe timeout in seconds (default: 5.0)
            BROADCAST_CLIENT_ID: Broker client id
            BROADCAST_KEEPALIVE: Keepalive interval (default: 60)
            BROADCAST_QOS: QoS level (default: 0)
            BROADCAST_TEARDOWN_TIMEOUT: Consume task join timeout (default: 1.0)
            LOG_LEVEL: Log level (default: INFO)

        Raises:
            ValueError: If validation fails
        """
        return cls(
            broadcast_url=os.getenv("BROADCAST_URL", "mqtt://127.0.0.1:1883"),
            server_url=os.getenv("SERVER_URL") or None,
            health_path=os.getenv("HEALTH_PATH", "/health"),
            health_timeout=float(os.getenv("HEALTH_TIMEOUT", "5.0")),
            client_id=os.getenv("BROADCAST_CLIENT_ID") or None,
            keepalive=int(os.getenv("BROADCAST_KEEPALIVE", "60")),
            qos=int(os.getenv("BROADCAST_QOS", "0")),
            teardown_timeout=float(os.getenv("BROADCAST_TEARDOWN_TIMEOUT", "1.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


__all__ = ["BroadcastConfig", "ConnectionParams", "parse_broker_url"]
