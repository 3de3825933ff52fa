"""
Fetches segment bytes over HTTP with retries and byte-range support.
"""

import asyncio
import logging
from typing import Optional, Sequence

import aiohttp

log = logging.getLogger(__name__)


class HttpSegmentFetcher:
    """
    The default segment fetcher: an aiohttp session with retry logic.

    Every attempt walks the URI list in order; network errors are retried with
    exponential backoff and the last one is re-raised unchanged.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_connections: int = 8,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            max_attempts: How many passes over the URI list before giving up.
            base_delay: Seconds to wait after the first failed pass; doubles after
            each further one.
            max_connections: Connection pool size per host.
            session: An existing session to use instead of creating one.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_connections = max_connections
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=600,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            self._owns_session = True
            log.debug(f"Created segment fetch pool with limit_per_host={self.max_connections}")
        return self._session

    async def close(self) -> None:
        """Closes the session if this fetcher created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Segment fetch pool closed.")
        self._session = None

    @staticmethod
    def _range_header(start_byte: int, end_byte: Optional[int]) -> dict[str, str]:
        if start_byte == 0 and end_byte is None:
            return {}
        end = "" if end_byte is None else str(end_byte)
        return {"Range": f"bytes={start_byte}-{end}"}

    async def fetch(
        self, uris: Sequence[str], start_byte: int = 0, end_byte: Optional[int] = None
    ) -> bytes:
        """Downloads one segment and returns its bytes."""
        if not uris:
            raise ValueError("A segment reference must carry at least one URI.")

        headers = self._range_header(start_byte, end_byte)
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            for uri in uris:
                try:
                    session = await self._get_session()
                    async with session.get(uri, headers=headers) as response:
                        response.raise_for_status()
                        return await response.read()
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    last_exception = e
                    log.debug(
                        f"Fetch attempt {attempt}/{self.max_attempts} for '{uri}' "
                        f"failed: {e}"
                    )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise last_exception
