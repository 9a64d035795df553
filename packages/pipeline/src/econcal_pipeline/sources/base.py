"""
sources/base.py — Abstract base class, throttles and errors for all provider clients.

Each concrete source must implement:
  extract()      — fetch raw provider rows, return a polars DataFrame of strings
  transform()    — pure mapping of the raw DataFrame to Observation / CalendarEvent
  get_metadata() — return dict with source info for logging

The run() method orchestrates extract → transform and handles timing and
logging. Import pipelines call run() (or a provider convenience method built
on it) rather than the individual steps.

Every source owns its throttle instance; request pacing state is never shared
through module globals.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx
import polars as pl
import structlog

from econcal_shared.config import settings
from econcal_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT")

# Providers mark a missing reading with one of these
MISSING_VALUES: frozenset[str] = frozenset({".", "-", ""})


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() in MISSING_VALUES)


def value_to_str(value: Any) -> str | None:
    """Render a JSON number or string as the provider's numeric string."""
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SourceError(Exception):
    """A provider request failed or returned an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        unit: str | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.unit = unit
        self.source = source


class RateLimitError(SourceError):
    """The provider's request budget is exhausted for the current window."""


class ConfigurationError(SourceError):
    """Required configuration (usually an API key) is missing."""


# ---------------------------------------------------------------------------
# Throttles
# ---------------------------------------------------------------------------


@dataclass
class FixedIntervalThrottle:
    """Enforce a minimum gap between consecutive requests."""

    min_interval: float
    clock: Callable[[], float] = time.monotonic
    _last: float | None = field(default=None, init=False, repr=False)

    async def acquire(self) -> None:
        if self._last is not None and self.min_interval > 0:
            wait = self.min_interval - (self.clock() - self._last)
            if wait > 0:
                await asyncio.sleep(wait)
        self._last = self.clock()


@dataclass
class SlidingWindowThrottle:
    """
    Cap requests per rolling window.

    When the window is full the throttle either sleeps until the oldest
    request leaves the window (plus 100 ms), or raises RateLimitError
    straight away when wait_when_full is False. `gap` additionally spaces
    consecutive requests.
    """

    max_requests: int
    window: float
    wait_when_full: bool = True
    gap: float = 0.0
    limit_message: str = "Rate limit reached ({max_requests} requests per {window:g} s)."
    clock: Callable[[], float] = time.monotonic
    _sent: deque[float] = field(default_factory=deque, init=False, repr=False)

    def _prune(self, now: float) -> None:
        while self._sent and now - self._sent[0] >= self.window:
            self._sent.popleft()

    @property
    def remaining(self) -> int:
        self._prune(self.clock())
        return max(self.max_requests - len(self._sent), 0)

    async def acquire(self) -> None:
        now = self.clock()
        self._prune(now)

        if len(self._sent) >= self.max_requests:
            if not self.wait_when_full:
                raise RateLimitError(
                    self.limit_message.format(
                        max_requests=self.max_requests, window=self.window
                    ),
                    status_code=429,
                )
            wait = self.window - (now - self._sent[0]) + 0.1
            log.info("throttle_window_full", wait_s=round(wait, 2))
            await asyncio.sleep(wait)
            now = self.clock()
            self._prune(now)

        if self.gap > 0 and self._sent:
            wait = self.gap - (now - self._sent[-1])
            if wait > 0:
                await asyncio.sleep(wait)
                now = self.clock()

        self._sent.append(now)


Throttle = FixedIntervalThrottle | SlidingWindowThrottle


# ---------------------------------------------------------------------------
# Base source
# ---------------------------------------------------------------------------


class BaseSource(ABC, Generic[RecordT]):
    """Abstract base for all econcal provider clients."""

    # Override in subclass; used for logging and the indicator source_name
    name: str = "unknown"

    def __init__(self, throttle: Throttle, timeout: float | None = None) -> None:
        self._throttle = throttle
        self._timeout = timeout if timeout is not None else settings.http_timeout
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Fetch raw rows from the provider.

        Returns a polars DataFrame whose columns are all String, holding the
        provider values exactly as received.
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> list[RecordT]:
        """Map raw provider rows to canonical records. Must not do I/O."""
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        ...

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> list[RecordT]:
        """
        Extract + transform in sequence with timing and structured logging.

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                raw_cols=raw.width,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

            t1 = time.monotonic()
            records = self.transform(raw)
            run_log.info(
                "transform_complete",
                records=len(records),
                duration_ms=int((time.monotonic() - t1) * 1000),
            )

            run_log.info(
                "source_run_complete",
                total_duration_ms=int((time.monotonic() - t0) * 1000),
                output_records=len(records),
            )
            return records

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise

    # ------------------------------------------------------------------
    # HTTP helpers available to all subclasses
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(
                method, url, params=params, json=json, headers=headers
            )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        unit: str | None = None,
        ok_statuses: Iterable[int] = (),
    ) -> httpx.Response:
        """
        Throttled request. Non-2xx responses raise SourceError carrying the
        status, unless listed in ok_statuses.
        """
        await self._throttle.acquire()
        response = await self._send(method, url, params=params, json=json, headers=headers)
        if response.is_success or response.status_code in set(ok_statuses):
            return response
        raise SourceError(
            f"{self.name} request failed: {response.status_code} "
            f"{response.reason_phrase} - {response.text[:200]}",
            status_code=response.status_code,
            unit=unit,
            source=self.name,
        )

    async def _get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        unit: str | None = None,
    ) -> Any:
        response = await self._request("GET", url, params=params, headers=headers, unit=unit)
        return self._decode(response, unit)

    def _decode(self, response: httpx.Response, unit: str | None = None) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise SourceError(
                f"{self.name} returned a malformed JSON payload",
                status_code=response.status_code,
                unit=unit,
                source=self.name,
            ) from exc

    @staticmethod
    def _frame(rows: Iterable[Mapping[str, Any]], columns: list[str]) -> pl.DataFrame:
        """Build an all-String DataFrame with a fixed column order."""
        records = [
            {col: value_to_str(row.get(col)) for col in columns}
            for row in rows
        ]
        return pl.DataFrame(records, schema={col: pl.String for col in columns})
