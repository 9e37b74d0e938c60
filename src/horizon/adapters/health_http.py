"""HTTP liveness probe against the companion API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
import orjson

from horizon.config import BroadcastConfig
from horizon.errors import ProbeError

logger = logging.getLogger(__name__)


class HttpHealthProbe:
    """GET ``{server_url}{health_path}`` and return the (opaque) body.

    The body is returned as decoded JSON when possible, else as text.
    """

    def __init__(
        self,
        url: Optional[str],
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: BroadcastConfig) -> HttpHealthProbe:
        return cls(config.health_url, timeout=config.health_timeout)

    async def check(self) -> Any:
        """Run the probe.

        Returns:
            Response body, or None when no health URL is configured

        Raises:
            ProbeError: On transport failure or non-2xx status
        """
        if not self.url:
            logger.debug("Health probe skipped: no server URL configured")
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.url)
                logger.debug("health probe HTTP status=%s", resp.status_code)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProbeError(f"Health probe failed: {exc}") from exc

        try:
            return orjson.loads(resp.content)
        except orjson.JSONDecodeError:
            return resp.text


__all__ = ["HttpHealthProbe"]
