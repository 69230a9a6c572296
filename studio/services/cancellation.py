"""Cancel an in-flight import when the HTTP client goes away.

Sync WSGI servers expose the client socket in the environ (``gunicorn.socket``
under gunicorn, ``werkzeug.socket`` under the Werkzeug server). While the
import runs, a daemon thread polls that socket; once the peer has closed
its end, the import's cancel event is set and the fetch watchdog
interrupts the download.
"""

from __future__ import annotations

import logging
import select
import socket
import threading


logger = logging.getLogger(__name__)

SOCKET_ENVIRON_KEYS = ("gunicorn.socket", "werkzeug.socket")


def client_socket(environ):
    for key in SOCKET_ENVIRON_KEYS:
        sock = environ.get(key)
        if sock is not None:
            return sock
    return None


def peer_closed(sock) -> bool:
    """True once the peer has shut down its side of ``sock``."""
    try:
        readable, _, _ = select.select([sock], [], [], 0)
        if not readable:
            return False
        # Readable with nothing to peek at means EOF
        return sock.recv(1, socket.MSG_PEEK) == b""
    except (OSError, ValueError):
        return True


class ClientDisconnectMonitor:
    def __init__(self, environ, interval: float = 0.25):
        self.sock = client_socket(environ)
        self.interval = interval
        self.cancel_event = threading.Event()
        self._stopped = threading.Event()
        self._thread = None

    def __enter__(self) -> threading.Event:
        if self.sock is not None:
            self._thread = threading.Thread(target=self._watch, name="client-disconnect", daemon=True)
            self._thread.start()
        return self.cancel_event

    def __exit__(self, *exc_info):
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
        return False

    def _watch(self):
        while not self._stopped.wait(self.interval):
            if peer_closed(self.sock):
                logger.info("client disconnected, cancelling import", extra={"stage": "request"})
                self.cancel_event.set()
                return
