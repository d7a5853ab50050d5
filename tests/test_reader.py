import errno
import os
import shutil
import socket
import tempfile
import threading
import time

import pytest

from logdclient.control import LogdError, LoggerList, LogMode
from logdclient.reader import LogdReader, build_request


class _PacketServer:
    def __init__(self, directory, entries, connections=1, delay=0.0):
        self.listener = socket.socket(socket.AF_UNIX, socket.SOCK_SEQPACKET)
        self.listener.bind(os.path.join(directory, "logdr"))
        self.listener.listen(4)
        self.entries = entries
        self.connections = connections
        self.delay = delay
        self.requests = []
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

    def _run(self):
        for _ in range(self.connections):
            conn, _ = self.listener.accept()
            with conn:
                self.requests.append(conn.recv(256))
                time.sleep(self.delay)
                for entry in self.entries:
                    conn.send(entry)

    def join(self):
        self.thread.join(5)
        self.listener.close()


@pytest.fixture
def socket_dir():
    path = tempfile.mkdtemp(prefix="ldr", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


def test_request_nonblocking():
    logger_list = LoggerList(log_ids={0}, mode=LogMode.NONBLOCK, tail=1000, pid=123)
    assert build_request(logger_list) == b"dumpAndClose lids=0 tail=1000 pid=123"


def test_request_stream_multiple_ids():
    assert build_request(LoggerList(log_ids={3, 0, 2})) == b"stream lids=0,2,3"


def test_request_no_ids():
    assert build_request(LoggerList()) == b"stream lids"


def test_request_wrap_with_start():
    logger_list = LoggerList(
        log_ids={0}, mode=LogMode.NONBLOCK | LogMode.WRAP, start=(1000, 999)
    )
    assert build_request(logger_list) == b"dumpAndClose lids=0 timeout=7200 start=1000.000000999"


def test_request_wrap_without_start_has_no_timeout():
    logger_list = LoggerList(log_ids={0}, mode=LogMode.WRAP)
    assert build_request(logger_list) == b"stream lids=0"


def test_nonblocking_dump(socket_dir):
    server = _PacketServer(socket_dir, [b"first", b"second"])
    logger_list = LoggerList(log_ids={0}, mode=LogMode.NONBLOCK, tail=1000, pid=7)
    with LogdReader(logger_list, socket_dir) as reader:
        assert list(reader) == [b"first", b"second"]
        with pytest.raises(LogdError) as info:
            reader.read()
        assert info.value.errno == errno.EAGAIN
    server.join()
    assert server.requests == [b"dumpAndClose lids=0 tail=1000 pid=7"]


def test_blocking_read_ends_on_close(socket_dir):
    server = _PacketServer(socket_dir, [b"entry"])
    reader = LogdReader(LoggerList(log_ids={2}), socket_dir)
    assert reader.read() == b"entry"
    assert reader.read() == b""
    reader.close()
    server.join()
    assert server.requests == [b"stream lids=2"]


def test_wrap_read_blocks_until_data(socket_dir):
    server = _PacketServer(socket_dir, [b"late"], delay=0.3)
    logger_list = LoggerList(log_ids={0}, mode=LogMode.WRAP, start=(5, 1))
    began = time.monotonic()
    with LogdReader(logger_list, socket_dir) as reader:
        assert reader.read() == b"late"
    assert time.monotonic() - began >= 0.25
    server.join()
    assert server.requests == [b"stream lids=0 timeout=7200 start=5.000000001"]


def test_open_is_idempotent_and_reconnects(socket_dir):
    server = _PacketServer(socket_dir, [b"a"], connections=2)
    reader = LogdReader(LoggerList(log_ids={0}, mode=LogMode.NONBLOCK), socket_dir)
    first = reader.open()
    assert reader.open() is first
    assert list(reader) == [b"a"]
    reader.close()
    assert list(reader) == [b"a"]
    reader.close()
    server.join()
    assert len(server.requests) == 2


def test_read_without_daemon(socket_dir):
    reader = LogdReader(LoggerList(log_ids={0}), socket_dir)
    with pytest.raises(LogdError):
        reader.read()