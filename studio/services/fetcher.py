"""Remote image fetch over a pooled ``requests`` session.

The fetch runs under its own deadline, independent of the per-socket
timeouts ``requests`` applies: the socket timeouts are clamped to the time
left, and a watchdog thread shuts the socket down once the deadline passes
or the caller cancels, so a server that drips bytes cannot hold a read open.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import requests

from ..errors import PipelineError, failed_precondition


logger = logging.getLogger(__name__)

# Floor for clamped socket timeouts; requests rejects a zero timeout
MIN_SOCKET_TIMEOUT = 0.001


class Deadline:
    def __init__(self, seconds: float, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def clamp(self, timeout: float) -> float:
        return max(MIN_SOCKET_TIMEOUT, min(timeout, self.remaining()))

    def child(self, seconds: float) -> "Deadline":
        """A deadline on the same clock that never outlives this one."""
        return Deadline(round(min(seconds, self.remaining()), 3), clock=self._clock)


@dataclass(frozen=True)
class FetchPolicy:
    user_agent: str = "TheSocialStudio/1.0"
    connect_timeout: float = 10.0
    read_timeout: float = 20.0
    deadline_seconds: float = 40.0
    max_redirects: int = 10
    chunk_size: int = 8192
    watch_interval: float = 0.05

    @classmethod
    def from_config(cls, config) -> "FetchPolicy":
        return cls(
            user_agent=config["FETCH_USER_AGENT"],
            connect_timeout=float(config["FETCH_CONNECT_TIMEOUT"]),
            read_timeout=float(config["FETCH_READ_TIMEOUT"]),
            deadline_seconds=float(config["FETCH_DEADLINE_SECONDS"]),
            max_redirects=int(config["FETCH_MAX_REDIRECTS"]),
        )


class FetchWatchdog:
    """Interrupts a streaming response once its deadline passes or the import is cancelled.

    Runs on a daemon thread polling every ``interval`` seconds. The interrupt
    shuts the socket down for reading, which wakes a read blocked in another
    thread; the reader then sees a short or failed read and reports the
    deadline or the cancellation rather than the transport error.
    """

    def __init__(self, response, deadline: Deadline, cancel_event: threading.Event | None = None, interval: float = 0.05):
        self.response = response
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.interval = interval
        self.fired = threading.Event()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._watch, name="fetch-watchdog", daemon=True)

    def start(self) -> "FetchWatchdog":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def _tripped(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline.expired

    def _watch(self) -> None:
        while not self._stopped.wait(self.interval):
            if self._tripped():
                self.fired.set()
                interrupt_response(self.response)
                return


def interrupt_response(response) -> None:
    """Wake any thread blocked reading ``response``."""
    raw = response.raw
    shutdown = getattr(raw, "shutdown", None)
    if shutdown is not None:
        try:
            shutdown()
            return
        except (ValueError, RuntimeError, OSError) as exc:
            # Connection already released or never had a socket
            logger.debug("socket shutdown unavailable", extra={"error": str(exc)})
    response.close()


class RemoteFetcher:
    def __init__(self, policy: FetchPolicy, session=None):
        self.policy = policy
        self.session = session if session is not None else requests.Session()
        self.session.max_redirects = policy.max_redirects

    def start_deadline(self, parent: Deadline | None = None) -> Deadline:
        if parent is not None:
            return parent.child(self.policy.deadline_seconds)
        return Deadline(self.policy.deadline_seconds)

    def watch(self, response, deadline: Deadline, cancel_event: threading.Event | None = None) -> FetchWatchdog:
        return FetchWatchdog(response, deadline, cancel_event, interval=self.policy.watch_interval).start()

    def open(self, url: str, deadline: Deadline) -> requests.Response | PipelineError:
        """GET ``url`` with redirects followed; only the headers are read.

        The caller owns the returned response and must close it.
        """
        if deadline.expired:
            return failed_precondition(f"Could not fetch URL: deadline of {deadline.seconds:g}s exceeded")
        timeout = (deadline.clamp(self.policy.connect_timeout), deadline.clamp(self.policy.read_timeout))
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": self.policy.user_agent},
                allow_redirects=True,
                stream=True,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            logger.warning("remote fetch failed", extra={"stage": "fetch", "error": str(exc)})
            if deadline.expired:
                return failed_precondition(f"Could not fetch URL: deadline of {deadline.seconds:g}s exceeded")
            return failed_precondition(f"Could not fetch URL: {exc}")

        if not 200 <= response.status_code < 300:
            response.close()
            logger.warning("remote fetch rejected", extra={"stage": "fetch", "status": response.status_code})
            return failed_precondition(f"Server returned HTTP {response.status_code} {response.reason or ''}".rstrip())
        return response

    def read_body(
        self,
        response: requests.Response,
        limit: int,
        deadline: Deadline,
        cancel_event: threading.Event | None = None,
    ) -> bytes | PipelineError:
        """Read the body, stopping once it is one byte past ``limit``.

        A watchdog interrupt surfaces here as an early end of stream or a
        read error; either way the cancellation or deadline is reported.
        """
        buffer = bytearray()
        try:
            for chunk in response.iter_content(chunk_size=self.policy.chunk_size):
                interrupted = self._interrupted(deadline, cancel_event)
                if interrupted is not None:
                    return interrupted
                if not chunk:
                    continue
                buffer.extend(chunk)
                if len(buffer) > limit:
                    break
        except (requests.RequestException, OSError, ValueError) as exc:
            # ValueError: the body was closed under us
            interrupted = self._interrupted(deadline, cancel_event)
            if interrupted is not None:
                return interrupted
            logger.warning("body read failed", extra={"stage": "download", "error": str(exc)})
            return failed_precondition(f"Failed to download: {exc}")
        if len(buffer) <= limit:
            interrupted = self._interrupted(deadline, cancel_event)
            if interrupted is not None:
                return interrupted
        return bytes(buffer)

    @staticmethod
    def _interrupted(deadline: Deadline, cancel_event: threading.Event | None) -> PipelineError | None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("import cancelled during download", extra={"stage": "download"})
            return failed_precondition("Import cancelled")
        if deadline.expired:
            logger.warning("download deadline exceeded", extra={"stage": "download", "deadline": deadline.seconds})
            return failed_precondition(f"Failed to download: deadline of {deadline.seconds:g}s exceeded")
        return None

    def close(self) -> None:
        self.session.close()
