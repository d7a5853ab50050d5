"""Streaming reader for the logd ``logdr`` socket."""

from __future__ import annotations

import errno
import socket
import threading

from logdclient.control import (
    DEFAULT_SOCKET_DIR,
    LogdError,
    LoggerList,
    LogMode,
    connect_local,
)

LOGGER_ENTRY_MAX_LEN = 5 * 1024
WRAP_DEFAULT_TIMEOUT = 7200
_REQUEST_MAX = 255


def build_request(logger_list):
    """Return the request line sent to logdr for this logger list."""
    parts = ["dumpAndClose" if logger_list.mode & LogMode.NONBLOCK else "stream", " lids"]
    ids = logger_list.selected_ids()
    if ids:
        parts.append("=" + ",".join(str(log_id) for log_id in ids))
    if logger_list.tail:
        parts.append(f" tail={logger_list.tail}")
    sec, nsec = logger_list.start
    if sec or nsec:
        if logger_list.mode & LogMode.WRAP:
            parts.append(f" timeout={WRAP_DEFAULT_TIMEOUT}")
        parts.append(f" start={sec}.{nsec:09d}")
    if logger_list.pid:
        parts.append(f" pid={logger_list.pid}")
    return "".join(parts).encode()[:_REQUEST_MAX]


class LogdReader:
    """Reads raw log entries, one per packet, from logd."""

    def __init__(self, logger_list: LoggerList, socket_dir=DEFAULT_SOCKET_DIR):
        self.logger_list = logger_list
        self.socket_dir = socket_dir
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    def open(self):
        """Connect and send the request, unless already connected; return the socket."""
        with self._lock:
            if self._sock is not None:
                return self._sock
        sock = connect_local("logdr", socket.SOCK_SEQPACKET, self.socket_dir)
        try:
            sent = sock.send(build_request(self.logger_list))
        except OSError as exc:
            sock.close()
            raise LogdError(exc.errno, exc.strerror) from exc
        if sent == 0:
            sock.close()
            raise LogdError(errno.EIO, "logd accepted no request")
        with self._lock:
            previous, self._sock = self._sock, sock
        if previous is not None and previous is not sock:
            previous.close()
        return sock

    def read(self):
        """Return the next entry; raise EAGAIN once a non-blocking dump is drained."""
        sock = self.open()
        try:
            entry = sock.recv(LOGGER_ENTRY_MAX_LEN)
        except OSError as exc:
            raise LogdError(exc.errno, exc.strerror) from exc
        if not entry and self.logger_list.mode & LogMode.NONBLOCK:
            raise LogdError(errno.EAGAIN, "no more log entries")
        return entry

    def close(self):
        """Drop the connection; a later read reconnects."""
        with self._lock:
            sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __iter__(self):
        while True:
            try:
                entry = self.read()
            except LogdError as exc:
                if exc.errno == errno.EAGAIN:
                    return
                raise
            if not entry:
                return
            yield entry