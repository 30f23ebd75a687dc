import aiohttp
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 10


@dataclass
class HttpStatus:
    code: int
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.code == 200

    def __str__(self):
        return f"{self.code} {self.reason}" if self.reason else str(self.code)

    @classmethod
    def from_response(cls, response) -> "HttpStatus":
        return cls(response.status, response.reason)


class FroggiClient:
    """HTTP access to the froggi service.

    Transport errors (aiohttp.ClientError, asyncio.TimeoutError) are not
    handled here; each caller decides whether they are fatal.
    """

    def __init__(self, froggi_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.froggi_url = froggi_url
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("FroggiClient used outside of its session context")
        return self._session

    async def probe(self, url: Optional[str] = None) -> HttpStatus:
        """HEAD the froggi base URL with a short timeout"""
        target = url or self.froggi_url
        logger.debug(f"Probing {target}")
        async with self.session.head(
                target,
                allow_redirects=True,
                timeout=aiohttp.ClientTimeout(total=PROBE_TIMEOUT_SECONDS)
        ) as response:
            return HttpStatus.from_response(response)

    async def check_api_key(self, api_key: str) -> HttpStatus:
        """Ask froggi whether an API key is valid"""
        async with self.session.post(
                f"{self.froggi_url}/api/key/check/{api_key}",
                timeout=aiohttp.ClientTimeout(total=None)
        ) as response:
            return HttpStatus.from_response(response)

    async def relay_ocr(self, body: str, api_key: str) -> HttpStatus:
        """Forward an OCR payload verbatim to froggi"""
        async with self.session.post(
                f"{self.froggi_url}/ocr",
                data=body,
                headers={'api-key': api_key},
                timeout=aiohttp.ClientTimeout(total=None)
        ) as response:
            return HttpStatus.from_response(response)
