"""Lazily created, swappable httpx.AsyncClient holder."""

import httpx


class SharedHttpClient:
    """One long-lived AsyncClient per service.

    Apps open it in their lifespan and close it on shutdown; code running
    outside a lifespan (CLI, tests) gets one created on first use.
    """

    def __init__(self, total_timeout: float, connect_timeout: float):
        self._timeout = httpx.Timeout(total_timeout, connect=connect_timeout)
        self._client: httpx.AsyncClient | None = None

    def get(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def set(self, client: httpx.AsyncClient | None) -> None:
        """Install a different client, e.g. one with an ASGI or mock transport."""
        self._client = client

    async def init(self) -> None:
        await self.close()
        self._client = httpx.AsyncClient(timeout=self._timeout)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
