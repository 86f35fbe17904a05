"""Fetch résumé documents referenced by URL."""

import logging

import httpx

from talent_screen.errors import FetchFailed

log = logging.getLogger(__name__)


class DocumentFetcher:
    """Downloads a document with a bounded timeout and size cap."""

    def __init__(self, timeout: float = 20.0, max_bytes: int = 16 * 1024 * 1024, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        log.debug("Fetching document %s", url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self._transport) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code >= 400:
                        raise FetchFailed(url, f"HTTP {response.status_code}")
                    chunks = []
                    size = 0
                    async for chunk in response.aiter_bytes():
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise FetchFailed(url, f"document exceeds {self.max_bytes} bytes")
                        chunks.append(chunk)
        except httpx.HTTPError as e:
            raise FetchFailed(url, f"{type(e).__name__}: {e}") from e
        return b"".join(chunks)
