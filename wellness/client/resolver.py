"""Strategies for finding the base URL of the journal service."""

from abc import ABC, abstractmethod
from typing import Iterable

import httpx

from ..errors import UnavailableError
from ..log import get_logger

logger = get_logger(__name__)


class EndpointResolver(ABC):
    """Resolves the base URL requests are sent to."""

    @abstractmethod
    async def resolve(self, http: httpx.AsyncClient) -> str:
        """
        Return the service base URL.

        Raises:
            UnavailableError: If no service can be located.
        """

    def reset(self) -> None:
        """Forget any cached resolution."""


class FixedEndpointResolver(EndpointResolver):
    """Always returns the configured base URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    async def resolve(self, http: httpx.AsyncClient) -> str:
        return self.base_url


class ProbingEndpointResolver(EndpointResolver):
    """
    Tries ``GET /health`` on each candidate in order and caches the first
    one that answers with ``success: true``.

    This is a best-effort heuristic for development networks where the
    service address changes; it guarantees nothing about which instance is
    found.
    """

    def __init__(self, candidates: Iterable[str], probe_timeout: float = 2.0):
        self.candidates = [c.rstrip("/") for c in candidates]
        self.probe_timeout = probe_timeout
        self._resolved: str | None = None

    async def _healthy(self, http: httpx.AsyncClient, base_url: str) -> bool:
        try:
            response = await http.get(f"{base_url}/health", timeout=self.probe_timeout)
            return response.status_code == 200 and response.json().get("success") is True
        except (httpx.HTTPError, ValueError, AttributeError):
            return False

    async def resolve(self, http: httpx.AsyncClient) -> str:
        if self._resolved is not None:
            return self._resolved
        for base_url in self.candidates:
            if await self._healthy(http, base_url):
                logger.info("Journal service found at %s", base_url)
                self._resolved = base_url
                return base_url
        raise UnavailableError("No journal service answered on any candidate URL")

    def reset(self) -> None:
        self._resolved = None
