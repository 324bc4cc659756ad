# app/core/outbound.py
from typing import Any, Iterable
from urllib.parse import urlsplit

import httpx

from app.core.config import settings
from app.core.errors import OutboundHostNotAllowed
from app.core.logging import get_logger

logger = get_logger(__name__)


def is_allowed_host(url: str, allowed_hosts: Iterable[str] | None = None) -> bool:
    """SSRF guard: http(s) only, host must be (a subdomain of) an allowed host."""
    hosts = [h.lower().rstrip(".") for h in (allowed_hosts if allowed_hosts is not None else settings.ALLOWED_OUTBOUND_HOSTS)]
    if not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        # .port lanza ValueError si el puerto es basura
        _ = parts.port
    except (ValueError, TypeError, AttributeError):
        return False
    if parts.scheme not in ("http", "https") or not hostname:
        return False
    hostname = hostname.rstrip(".")
    return any(hostname == h or hostname.endswith(f".{h}") for h in hosts)


class OutboundClient:
    """httpx client that refuses to talk to hosts outside the allow-list."""

    def __init__(
        self,
        allowed_hosts: Iterable[str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.allowed_hosts = list(allowed_hosts) if allowed_hosts is not None else None
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _check(self, url: str) -> None:
        if not is_allowed_host(url, self.allowed_hosts):
            logger.warning("outbound_host_blocked", url=url)
            raise OutboundHostNotAllowed(url)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        self._check(url)
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post_json(self, url: str, payload: dict, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, json=payload, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OutboundClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
