"""HTTP readiness probe for long-running components."""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class ProbeOutcome(Enum):
    """Why a readiness probe stopped polling."""

    READY = "ready"
    PROCESS_EXITED = "process_exited"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProbeResult:
    """Result of waiting for a component to become ready.

    Attributes:
        outcome: Why polling stopped.
        attempts: Number of health requests issued.
        elapsed_seconds: Time spent polling.
        status_code: Status of the last response received, if any.
        last_error: Description of the last failed attempt, if any.
    """

    outcome: ProbeOutcome
    attempts: int
    elapsed_seconds: float
    status_code: Optional[int] = None
    last_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.outcome is ProbeOutcome.READY

    def describe(self) -> str:
        """Human-readable explanation for reports."""
        if self.outcome is ProbeOutcome.READY:
            return f"healthy after {self.attempts} attempt(s)"
        if self.outcome is ProbeOutcome.PROCESS_EXITED:
            return "process exited before becoming ready"
        if self.outcome is ProbeOutcome.CANCELLED:
            return "readiness probe cancelled"
        detail = self.last_error or (
            f"last status {self.status_code}" if self.status_code else "no response"
        )
        return (
            f"not ready after {self.elapsed_seconds:.1f}s "
            f"({self.attempts} attempt(s), {detail})"
        )


class ReadinessProbe:
    """Polls an HTTP health endpoint until it answers 2xx.

    A healthy response within the deadline means the component is serving,
    even though its process never exits. Polling stops early when the
    liveness callback reports the process is gone, so a crash is never
    mistaken for a slow start, and a deadline without a healthy response is
    always a failure.

    Example usage:
        probe = ReadinessProbe(interval=0.5)
        result = probe.wait_until_ready(
            "http://127.0.0.1:4000/health",
            timeout=30,
            is_alive=lambda: backend.is_running(handle),
        )
        if result.ready:
            ...
    """

    DEFAULT_INTERVAL = 0.5
    DEFAULT_REQUEST_TIMEOUT = 2.0

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        interval: float = DEFAULT_INTERVAL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the probe.

        Args:
            client: httpx client to issue requests with (for testing).
                Defaults to a client created on first use.
            interval: Seconds to wait between attempts.
            request_timeout: Per-request timeout in seconds.
            clock: Monotonic clock (for testing).
        """
        self._client = client
        self._interval = interval
        self._request_timeout = request_timeout
        self._clock = clock

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._request_timeout)
        return self._client

    def check_once(self, url: str) -> tuple[Optional[int], Optional[str]]:
        """Issue a single health request.

        Returns:
            (status_code, error) where exactly one is set.
        """
        try:
            response = self._get_client().get(url, timeout=self._request_timeout)
        except httpx.HTTPError as e:
            return None, f"{type(e).__name__}: {e}"
        return response.status_code, None

    def wait_until_ready(
        self,
        url: str,
        timeout: float,
        is_alive: Optional[Callable[[], bool]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProbeResult:
        """Poll url until healthy, the process dies, the deadline passes or cancellation.

        Args:
            url: Health endpoint URL.
            timeout: Overall deadline in seconds.
            is_alive: Liveness callback for the probed process.
            cancel_event: Set externally to abandon polling.

        Returns:
            ProbeResult describing why polling stopped.
        """
        cancel_event = cancel_event or threading.Event()
        start = self._clock()
        deadline = start + timeout
        attempts = 0
        status_code: Optional[int] = None
        last_error: Optional[str] = None

        def result(outcome: ProbeOutcome) -> ProbeResult:
            return ProbeResult(
                outcome=outcome,
                attempts=attempts,
                elapsed_seconds=round(self._clock() - start, 2),
                status_code=status_code,
                last_error=last_error,
            )

        while True:
            if cancel_event.is_set():
                return result(ProbeOutcome.CANCELLED)

            attempts += 1
            status_code, last_error = self.check_once(url)
            if status_code is not None and 200 <= status_code < 300:
                logger.debug("%s healthy after %d attempt(s)", url, attempts)
                return result(ProbeOutcome.READY)

            if is_alive is not None and not is_alive():
                logger.info("Process behind %s exited before becoming ready", url)
                return result(ProbeOutcome.PROCESS_EXITED)

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.info("%s not ready after %d attempt(s)", url, attempts)
                return result(ProbeOutcome.TIMED_OUT)

            cancel_event.wait(min(self._interval, remaining))

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
