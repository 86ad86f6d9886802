"""Network availability checks.

Resync is skipped, not failed, while offline, so the session asks a
connectivity probe before touching the network. Any HTTP response from the
probe URL counts as online; only transport errors count as offline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from sitemirror.config import NetworkSettings
    from sitemirror.protocols import ConnectivityProtocol

log = structlog.get_logger()


class StaticConnectivity:
    """Fixed answer: used when forced offline or when no probe URL is configured."""

    def __init__(self, online: bool) -> None:
        self.online = online

    async def is_online(self) -> bool:
        return self.online


class HttpConnectivityProbe:
    """Probes a URL with a short HEAD request."""

    def __init__(self, client: httpx.AsyncClient, probe_url: str, timeout_seconds: float) -> None:
        self._client = client
        self._probe_url = probe_url
        self._timeout = timeout_seconds

    async def is_online(self) -> bool:
        try:
            await self._client.head(self._probe_url, timeout=self._timeout)
        except httpx.HTTPError as exc:
            log.info("connectivity_offline", probe_url=self._probe_url, error=str(exc))
            return False
        return True


def build_connectivity(
    client: httpx.AsyncClient,
    settings: NetworkSettings,
    *,
    fallback_probe_url: str | None = None,
) -> ConnectivityProtocol:
    """Pick the connectivity probe for the configuration.

    Without a probe URL (and no fallback, usually the proxy) the network is
    assumed available and fetch failures surface per URL instead.
    """
    if settings.force_offline:
        return StaticConnectivity(False)
    probe_url = settings.probe_url or fallback_probe_url
    if not probe_url:
        return StaticConnectivity(True)
    return HttpConnectivityProbe(client, probe_url, settings.probe_timeout_seconds)
