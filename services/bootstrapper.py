import asyncio
import aiohttp
import logging
import os
import sys
import threading
from enum import Enum
from typing import Optional, TextIO, Tuple

from clients.froggi_client import FroggiClient
from config.config import Config, DEFAULT_CONFIG_PATH, save_config
from errors import BootstrapAborted, BootstrapError

logger = logging.getLogger(__name__)

HTTP_WARNING = (
    "It looks like the url uses http (unencrypted) instead of https (encrypted). "
    "Sending API keys over http is discouraged and a bad security practice. "
    "Unless this is 100% intentional, https should be used.\n"
    "Switch to https? (Y or n)\n"
)


class UrlScheme(Enum):
    HTTPS = "https"
    HTTP = "http"
    MISSING = "missing"


def classify_url(line: str) -> Tuple[UrlScheme, str]:
    """Trim an operator-typed URL and sort it by scheme prefix"""
    url = line.strip()
    if url.startswith("https://"):
        return UrlScheme.HTTPS, url
    if url.startswith("http://"):
        return UrlScheme.HTTP, url
    return UrlScheme.MISSING, f"https://{url}"


def upgrade_to_https(url: str) -> str:
    """Replace the scheme left of the first '://' with https"""
    _, rest = url.split("://", 1)
    return f"https://{rest}"


class StdinLineReader:
    """Reads operator lines without blocking the event loop.

    Each blocking read runs on a daemon thread straight from the file
    descriptor, so a pending read never holds up interpreter exit on Ctrl-C.
    Returns "" at end of input.
    """

    CHUNK_SIZE = 4096

    def __init__(self, fd: Optional[int] = None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self._buffer = b""

    async def _read_chunk(self) -> bytes:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(setter, value):
            if not future.done():
                setter(value)

        def read_chunk():
            try:
                chunk = os.read(self.fd, self.CHUNK_SIZE)
            except OSError as e:
                outcome = (future.set_exception, e)
            else:
                outcome = (future.set_result, chunk)
            try:
                loop.call_soon_threadsafe(deliver, *outcome)
            except RuntimeError:
                # event loop already closed during shutdown
                pass

        threading.Thread(target=read_chunk, daemon=True, name="stdin-reader").start()
        return await future

    async def readline(self) -> str:
        while b"\n" not in self._buffer:
            chunk = await self._read_chunk()
            if not chunk:
                line, self._buffer = self._buffer, b""
                return line.decode("utf-8", errors="replace")
            self._buffer += chunk
        line, _, self._buffer = self._buffer.partition(b"\n")
        return (line + b"\n").decode("utf-8", errors="replace")


class ConfigBootstrapper:
    """Interactive first-run setup: froggi URL, API key, config artifact"""

    def __init__(self, client: FroggiClient, reader=None, out: TextIO = None,
                 config_path: str = DEFAULT_CONFIG_PATH,
                 max_attempts: Optional[int] = None):
        self.client = client
        self.reader = reader or StdinLineReader()
        self.out = out or sys.stdout
        self.config_path = config_path
        self.max_attempts = max_attempts

    def _say(self, message: str):
        print(message, file=self.out, flush=True)

    async def _read_line(self) -> str:
        try:
            line = await self.reader.readline()
        except OSError as e:
            raise BootstrapError(f"Failed to read line from stdin: {e}") from e
        if line == "":
            raise BootstrapError("Input closed before setup finished")
        return line

    def _check_attempts(self, attempts: int, what: str):
        if self.max_attempts is not None and attempts >= self.max_attempts:
            raise BootstrapAborted(f"Gave up on {what} after {attempts} attempts")

    async def _probe(self, url: str) -> bool:
        """Connectivity probe; transport failures only cost this attempt"""
        self._say("Testing connection with froggi...")
        try:
            status = await self.client.probe(url)
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Could not reach froggi at {url}: {e}")
            self._say(f"Could not reach froggi at {url}, try again\n")
            return False

        if status.ok:
            self._say("Connection with froggi successful! Adding to config...\n")
            return True

        logger.info(f"Probe of {url} returned {status}")
        self._say("Connection with froggi unsuccessful, try again\n")
        return False

    async def acquire_url(self) -> str:
        attempts = 0
        while True:
            self._check_attempts(attempts, "froggi URL")
            attempts += 1

            scheme, url = classify_url(await self._read_line())

            if scheme == UrlScheme.HTTP:
                self._say(HTTP_WARNING)
                answer = await self._read_line()
                if answer.strip() == "n":
                    self._say("Using http anyway")
                else:
                    self._say("Using https")
                    url = upgrade_to_https(url)
            elif scheme == UrlScheme.MISSING:
                self._say(f"Using https ({url})")

            if await self._probe(url):
                return url

    async def acquire_api_key(self) -> str:
        self._say("What is the API key for froggi?\n")
        attempts = 0
        while True:
            self._check_attempts(attempts, "API key")
            attempts += 1

            key = (await self._read_line()).strip()
            self._say("Testing API key...")

            try:
                status = await self.client.check_api_key(key)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                raise BootstrapError(f"Could not check api key with froggi: {e}") from e

            if status.ok:
                self._say("API key valid! Adding to config...\n")
                return key

            logger.info(f"Key check returned {status}")
            self._say("API key invalid, try again\n")

    async def run(self) -> Config:
        self._say(
            "It looks like froggi-ocr hasn't been set up yet, starting config process now...\n"
            "Ensure froggi is LAN or WAN accessible and type in its URL\n"
        )

        froggi_url = await self.acquire_url()
        self.client.froggi_url = froggi_url
        api_key = await self.acquire_api_key()

        config = Config(froggi_url=froggi_url, api_key=api_key)

        self._say(f"Writing config to {self.config_path}...")
        save_config(config, self.config_path)
        self._say("Config written successfully!")
        return config
