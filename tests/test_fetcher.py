import io
import threading
import time

import pytest
import requests

from conftest import BrokenBody, FakeHTTPSession, IMAGE_URL, make_response
from studio.errors import ErrorKind, PipelineError
from studio.services.fetcher import Deadline, FetchPolicy, RemoteFetcher


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def http():
    return FakeHTTPSession()


@pytest.fixture
def fetcher(http):
    return RemoteFetcher(FetchPolicy(user_agent="TestAgent/1.0", connect_timeout=5, read_timeout=15, deadline_seconds=30, max_redirects=4), session=http)


def test_session_gets_redirect_cap(fetcher, http):
    assert http.max_redirects == 4


def test_open_streams_with_user_agent_and_redirects(fetcher, http):
    http.add(IMAGE_URL, make_response(body=b"abc", headers={"Content-Type": "image/png"}))
    response = fetcher.open(IMAGE_URL, Deadline(30))
    assert response.status_code == 200
    url, kwargs = http.calls[0]
    assert url == IMAGE_URL
    assert kwargs["stream"] is True
    assert kwargs["allow_redirects"] is True
    assert kwargs["headers"] == {"User-Agent": "TestAgent/1.0"}
    connect, read = kwargs["timeout"]
    assert 0 < connect <= 5
    assert 0 < read <= 15


def test_socket_timeouts_clamped_to_deadline(fetcher, http):
    clock = FakeClock()
    deadline = Deadline(30, clock=clock)
    clock.now += 28
    http.add(IMAGE_URL, make_response(body=b"abc"))
    fetcher.open(IMAGE_URL, deadline)
    assert http.calls[0][1]["timeout"] == (2.0, 2.0)


def test_open_after_deadline_makes_no_call(fetcher, http):
    clock = FakeClock()
    deadline = Deadline(1, clock=clock)
    clock.now += 5
    result = fetcher.open(IMAGE_URL, deadline)
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert http.calls == []


@pytest.mark.parametrize(
    "error",
    [
        requests.ConnectionError("Name or service not known"),
        requests.Timeout("read timed out"),
        requests.exceptions.SSLError("certificate verify failed"),
        requests.TooManyRedirects("Exceeded 4 redirects."),
    ],
)
def test_transport_errors_are_failed_precondition(fetcher, http, error):
    http.add(IMAGE_URL, error=error)
    result = fetcher.open(IMAGE_URL, Deadline(30))
    assert isinstance(result, PipelineError)
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert result.message.startswith("Could not fetch URL: ")
    assert str(error) in result.message


@pytest.mark.parametrize("status,reason", [(404, "Not Found"), (500, "Internal Server Error"), (304, "Not Modified")])
def test_non_2xx_status_is_failed_precondition(fetcher, http, status, reason):
    response = http.add(IMAGE_URL, make_response(status=status, reason=reason, body=b"nope"))
    result = fetcher.open(IMAGE_URL, Deadline(30))
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert result.message == f"Server returned HTTP {status} {reason}"
    assert response.raw.closed
    assert response.raw.reads == 0


def test_read_body_returns_all_bytes(fetcher):
    body = bytes(range(256)) * 100
    response = make_response(body=body)
    assert fetcher.read_body(response, len(body), Deadline(30)) == body


def test_read_body_stops_one_byte_past_limit(fetcher):
    response = make_response(body=b"x" * 100_000)
    data = fetcher.read_body(response, 10_000, Deadline(30))
    assert len(data) > 10_000
    assert len(data) <= 10_000 + fetcher.policy.chunk_size
    assert response.raw.tell() < 100_000


def test_read_body_stream_error_is_failed_precondition(fetcher):
    response = make_response(raw=BrokenBody(b"partial"))
    result = fetcher.read_body(response, 1024, Deadline(30))
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert "Failed to download" in result.message
    assert "connection reset" in result.message


def test_read_body_honours_deadline(fetcher):
    clock = FakeClock()
    deadline = Deadline(10, clock=clock)
    clock.now += 11
    result = fetcher.read_body(make_response(body=b"abc"), 1024, deadline)
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert "deadline" in result.message


def test_read_body_honours_cancellation(fetcher):
    cancel = threading.Event()
    cancel.set()
    result = fetcher.read_body(make_response(body=b"abc"), 1024, Deadline(30), cancel)
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert result.message == "Import cancelled"


def test_policy_from_config(app):
    policy = FetchPolicy.from_config(app.config)
    assert policy.user_agent == "TheSocialStudio/1.0"
    assert policy.deadline_seconds < app.config["IMPORT_BUDGET_SECONDS"]


def test_close_closes_session(fetcher, http):
    fetcher.close()
    assert http.closed


class StallingBody(io.RawIOBase):
    """Body whose reads block until the socket is shut down."""

    def __init__(self):
        self.released = threading.Event()
        self.shutdowns = 0

    def readable(self):
        return True

    def read(self, size=-1):
        self.released.wait(5)
        return b""

    def shutdown(self):
        self.shutdowns += 1
        self.released.set()


def test_child_deadline_never_outlives_parent():
    clock = FakeClock()
    parent = Deadline(60, clock=clock)
    clock.now += 45
    child = parent.child(40)
    assert child.seconds == 15
    clock.now += 15
    assert child.expired and parent.expired


def test_child_deadline_keeps_its_own_limit_when_shorter():
    clock = FakeClock()
    child = Deadline(60, clock=clock).child(40)
    assert child.seconds == 40
    assert child.remaining() == 40


def test_start_deadline_is_carved_from_budget(fetcher):
    clock = FakeClock()
    budget = Deadline(60, clock=clock)
    clock.now += 50
    assert fetcher.start_deadline(budget).seconds == 10
    assert fetcher.start_deadline().seconds == 30


def test_watchdog_interrupts_stalled_read_at_deadline(fetcher):
    body = StallingBody()
    response = make_response(raw=body)
    deadline = Deadline(0.2)
    started = time.monotonic()
    watchdog = fetcher.watch(response, deadline)
    try:
        result = fetcher.read_body(response, 1024, deadline)
    finally:
        watchdog.stop()
    assert time.monotonic() - started < 2
    assert body.shutdowns == 1
    assert watchdog.fired.is_set()
    assert result.kind is ErrorKind.FAILED_PRECONDITION
    assert "deadline of 0.2s exceeded" in result.message


def test_watchdog_interrupts_stalled_read_on_cancel(fetcher):
    body = StallingBody()
    response = make_response(raw=body)
    cancel = threading.Event()
    deadline = Deadline(30)
    watchdog = fetcher.watch(response, deadline, cancel)
    timer = threading.Timer(0.1, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        result = fetcher.read_body(response, 1024, deadline, cancel)
    finally:
        watchdog.stop()
        timer.cancel()
    assert time.monotonic() - started < 2
    assert body.shutdowns == 1
    assert result.message == "Import cancelled"


def test_stopped_watchdog_never_fires(fetcher):
    body = StallingBody()
    watchdog = fetcher.watch(make_response(raw=body), Deadline(0.1))
    watchdog.stop()
    time.sleep(0.2)
    assert not watchdog.fired.is_set()
    assert body.shutdowns == 0
