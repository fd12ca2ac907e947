from __future__ import annotations

import asyncio
import logging

import httpx

from freshcheck_core.tools.errors import FetchFailureKind, SourceFetchError
from freshcheck_core.utils.trace import Trace

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/json,text/html,text/plain"


class SourceClient:
    """
    Thin GET client for catalog sources.

    Every failure surfaces as SourceFetchError so the executor can turn it into
    a per-source status tag. No retries.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout_s = float(timeout_s)
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            headers={
                "User-Agent": user_agent,
                "Accept": ACCEPT_HEADER,
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str, *, timeout_s: float | None = None) -> bytes:
        timeout = float(timeout_s if timeout_s is not None else self.timeout_s)
        Trace.event("source.request", {"url": url, "timeout_s": timeout})
        try:
            # wait_for cancels the request outright; the httpx timeout only bounds each I/O phase.
            r = await asyncio.wait_for(self._client.get(url, timeout=timeout), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            Trace.event("source.timeout", {"url": url})
            raise SourceFetchError(f"Timed out after {timeout:.1f}s", FetchFailureKind.TIMEOUT) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(str(e) or type(e).__name__, FetchFailureKind.TRANSPORT) from e

        Trace.event("source.response", {"url": url, "status_code": r.status_code, "bytes": len(r.content)})
        if not r.is_success:
            logger.debug("[SourceClient] HTTP %s", r.status_code)
            raise SourceFetchError(
                f"HTTP {r.status_code}",
                FetchFailureKind.HTTP_STATUS,
                status_code=r.status_code,
            )
        return r.content
