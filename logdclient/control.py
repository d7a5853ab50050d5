"""Control-channel client for the logd daemon: buffer sizes, statistics, prune lists."""

from __future__ import annotations

import errno
import mmap
import os
import re
import select
import socket
from dataclasses import dataclass, field
from enum import IntFlag

DEFAULT_SOCKET_DIR = "/dev/socket"
LOG_ID_MAX = 8
LOG_VERSION = 4
PAGE_SIZE = mmap.PAGESIZE
CONTROL_BUF_SIZE = 512
STATISTICS_BUF_SIZE = 64 * 1024
# Room in sockaddr_un.sun_path, terminating NUL included.
_SUN_PATH_MAX = 108
_REFILL_WAIT = 0.020


class LogdError(OSError):
    """Raised when logd cannot be reached or rejects a request."""


class LogMode(IntFlag):
    """Open flags for a reader of the log buffers."""

    RDONLY = 0
    NONBLOCK = 0x00000800
    WRAP = 0x40000000
    PSTORE = 0x80000000


@dataclass
class LoggerList:
    """The set of log buffers to read, and how to read them."""

    log_ids: frozenset = field(default_factory=frozenset)
    mode: LogMode = LogMode.RDONLY
    tail: int = 0
    start: tuple = (0, 0)
    pid: int = 0

    def __post_init__(self) -> None:
        self.log_ids = frozenset(self.log_ids)
        self.mode = LogMode(self.mode)

    def selected_ids(self) -> list[int]:
        """Buffer ids in ascending order, limited to known buffers."""
        return [log_id for log_id in range(LOG_ID_MAX) if log_id in self.log_ids]


def connect_local(name, sock_type, socket_dir=DEFAULT_SOCKET_DIR):
    """Connect to the local socket ``<socket_dir>/<name>`` and return it."""
    path = os.path.join(socket_dir, name)
    if len(os.fsencode(path)) + 1 > _SUN_PATH_MAX:
        raise LogdError(errno.ENAMETOOLONG, "socket path too long", path)
    try:
        sock = socket.socket(socket.AF_UNIX, sock_type)
    except OSError as exc:
        raise LogdError(exc.errno, exc.strerror, path) from exc
    try:
        sock.connect(path)
    except OSError as exc:
        sock.close()
        raise LogdError(exc.errno, exc.strerror, path) from exc
    return sock


def send_control_message(command, buf_size=CONTROL_BUF_SIZE, socket_dir=DEFAULT_SOCKET_DIR):
    """Send one command to logd and return the raw reply, at most ``buf_size`` bytes."""
    payload = command.encode() if isinstance(command, str) else bytes(command)
    chunks: list[bytes] = []
    with connect_local("logd", socket.SOCK_STREAM, socket_dir) as sock:
        try:
            sock.sendall(payload + b"\0")
            remaining = buf_size
            while remaining > 0:
                chunk = sock.recv(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
                if remaining == 0 or buf_size < PAGE_SIZE:
                    break
                # Give the other side a moment to refill the pipe.
                readable, _, _ = select.select([sock], [], [], _REFILL_WAIT)
                if not readable:
                    break
        except OSError as exc:
            raise LogdError(exc.errno, exc.strerror) from exc
    return b"".join(chunks)


def _text(response: bytes) -> str:
    return response.split(b"\0", 1)[0].decode("utf-8", "replace")


def _check_success(response: bytes) -> None:
    if not response.startswith(b"success"):
        raise LogdError(errno.EINVAL, f"logd refused the request: {_text(response)!r}")


def _parse_size(response: bytes) -> int:
    match = re.match(r"[0-9]+", _text(response))
    if match is None:
        raise LogdError(errno.EINVAL, f"unexpected reply from logd: {_text(response)!r}")
    return int(match.group())


def _check_log_id(log_id: int) -> int:
    if not 0 <= log_id < LOG_ID_MAX:
        raise LogdError(errno.EINVAL, f"not a logd buffer: {log_id}")
    return log_id


def _check_not_pstore(logger_list: LoggerList) -> None:
    if logger_list.mode & LogMode.PSTORE:
        raise LogdError(errno.EINVAL, "not supported for pstore readers")


def clear(log_id, socket_dir=DEFAULT_SOCKET_DIR):
    """Empty the given log buffer."""
    _check_log_id(log_id)
    _check_success(send_control_message(f"clear {log_id}", CONTROL_BUF_SIZE, socket_dir))


def get_log_size(log_id, socket_dir=DEFAULT_SOCKET_DIR):
    """Return the total size of the buffer's ring."""
    _check_log_id(log_id)
    return _parse_size(send_control_message(f"getLogSize {log_id}", CONTROL_BUF_SIZE, socket_dir))


def set_log_size(log_id, size, socket_dir=DEFAULT_SOCKET_DIR):
    """Resize the buffer's ring."""
    _check_log_id(log_id)
    if size < 0:
        raise ValueError("log size must not be negative")
    _check_success(
        send_control_message(f"setLogSize {log_id} {size}", CONTROL_BUF_SIZE, socket_dir)
    )


def get_log_readable_size(log_id, socket_dir=DEFAULT_SOCKET_DIR):
    """Return how much of the buffer's ring is in use."""
    _check_log_id(log_id)
    return _parse_size(
        send_control_message(f"getLogSizeUsed {log_id}", CONTROL_BUF_SIZE, socket_dir)
    )


def get_log_version(log_id):
    """Return the version of the log protocol spoken by logd."""
    return LOG_VERSION


def get_statistics(logger_list, buf_size=STATISTICS_BUF_SIZE, socket_dir=DEFAULT_SOCKET_DIR):
    """Return logd's statistics text for the selected buffers."""
    _check_not_pstore(logger_list)
    command = "getStatistics" + "".join(f" {log_id}" for log_id in logger_list.selected_ids())
    if logger_list.pid:
        command += f" pid={logger_list.pid}"
    payload = command.encode()[: max(buf_size - 1, 0)]
    return _text(send_control_message(payload, buf_size, socket_dir))


def get_prune_list(logger_list, buf_size=CONTROL_BUF_SIZE, socket_dir=DEFAULT_SOCKET_DIR):
    """Return logd's current prune list."""
    _check_not_pstore(logger_list)
    return _text(send_control_message("getPruneList", buf_size, socket_dir))


def set_prune_list(logger_list, prune_list, socket_dir=DEFAULT_SOCKET_DIR):
    """Replace logd's prune list."""
    _check_not_pstore(logger_list)
    command = ("setPruneList " + prune_list).encode()
    _check_success(send_control_message(command, len(command), socket_dir))