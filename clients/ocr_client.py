import aiohttp
import logging
from dataclasses import dataclass
from typing import Optional

from clients.froggi_client import HttpStatus
from errors import OcrBodyError

logger = logging.getLogger(__name__)


@dataclass
class OcrResponse:
    status: HttpStatus
    body: str


class OcrClient:
    def __init__(self, ocr_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.ocr_url = ocr_url
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("OcrClient used outside of its session context")
        return self._session

    async def fetch(self) -> OcrResponse:
        """GET the OCR source and return its body as text.

        Transport errors propagate unchanged. A body that cannot be read as
        text raises OcrBodyError carrying the status already received.
        """
        async with self.session.get(
                self.ocr_url,
                timeout=aiohttp.ClientTimeout(total=None)
        ) as response:
            status = HttpStatus.from_response(response)
            try:
                body = await response.text()
            except (UnicodeDecodeError, aiohttp.ClientError) as e:
                raise OcrBodyError(f"Could not cast ocr response body: {e}", status=status) from e
            logger.debug(f"Fetched {len(body)} characters from {self.ocr_url}")
            return OcrResponse(status, body)
