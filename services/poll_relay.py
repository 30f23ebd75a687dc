import asyncio
import aiohttp
import logging
import sys
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TextIO

from clients.froggi_client import FroggiClient, HttpStatus
from clients.ocr_client import OcrClient
from config.config import Config
from errors import OcrBodyError, RelayError

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    number: int
    started_at: float
    ocr_status: Optional[HttpStatus] = None
    relay_status: Optional[HttpStatus] = None
    error: Optional[str] = None
    elapsed: float = 0.0
    slept: float = 0.0

    @property
    def relayed(self) -> bool:
        return self.relay_status is not None


class CycleOutput:
    """Collects one cycle's status lines and writes them in a single flush"""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self._lines: List[str] = []

    def line(self, text: str):
        self._lines.append(text)

    def flush(self):
        try:
            if self._lines:
                self.stream.write("\n".join(self._lines) + "\n")
                self._lines.clear()
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise RelayError(f"Could not write to stdout: {e}") from e


class PollRelayLoop:
    """Fetches from the OCR source and relays to froggi at a fixed cadence"""

    def __init__(self, config: Config, ocr_client: OcrClient, froggi_client: FroggiClient,
                 out: TextIO = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        self.config = config
        self.ocr_client = ocr_client
        self.froggi_client = froggi_client
        self.output = CycleOutput(out or sys.stdout)
        self.clock = clock
        self.sleep = sleep
        self.cycle_number = 0

    async def _fetch_and_relay(self, report: CycleReport):
        ocr_url = self.config.ocr_url
        relay_url = self.config.relay_url

        try:
            ocr = await self.ocr_client.fetch()
        except OcrBodyError as e:
            report.ocr_status = e.status
            self.output.line(f"{e.status} from {ocr_url}\nSending OCR data to {relay_url}")
            self.output.flush()
            raise
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            # relay skipped for this cycle
            logger.warning(f"OCR fetch from {ocr_url} failed: {e!r}")
            report.error = str(e) or repr(e)
            self.output.line(report.error)
            return

        report.ocr_status = ocr.status
        self.output.line(f"{ocr.status} from {ocr_url}\nSending OCR data to {relay_url}")

        try:
            report.relay_status = await self.froggi_client.relay_ocr(ocr.body, self.config.api_key)
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Relay to {relay_url} failed: {e!r}")
            report.error = str(e) or repr(e)
            self.output.line(report.error)
            return

        self.output.line(f"{report.relay_status} from {relay_url}")

    async def run_cycle(self) -> CycleReport:
        """One fetch-then-relay followed by the wait for the next slot"""
        period = self.config.period
        self.cycle_number += 1
        report = CycleReport(number=self.cycle_number, started_at=self.clock())

        self.output.line(f"\n({report.number})")
        await self._fetch_and_relay(report)
        self.output.flush()

        report.elapsed = self.clock() - report.started_at
        if report.elapsed < period:
            report.slept = period - report.elapsed
            await self.sleep(report.slept)
        return report

    async def run(self, max_cycles: Optional[int] = None) -> List[CycleReport]:
        """Cycle forever, or max_cycles times when given.

        Reports are only kept when max_cycles bounds the run.
        """
        logger.info(
            f"Relaying {self.config.ocr_url} -> {self.config.relay_url} "
            f"at {self.config.updates_per_second} updates per second"
        )
        reports: List[CycleReport] = []
        while max_cycles is None or self.cycle_number < max_cycles:
            report = await self.run_cycle()
            if max_cycles is not None:
                reports.append(report)
        return reports
