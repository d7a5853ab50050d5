# logdclient

A small client for a log daemon that listens on local Unix sockets
(by default under `/dev/socket`). It covers the two sides of the daemon:

- **control** (`logd`, a stream socket): clear a buffer, query or set its size,
  fetch statistics and the prune list.
- **reader** (`logdr`, a sequenced-packet socket): stream log entries, or dump
  what is there and stop.

## Installation

```
pip install logdclient
```

## Control requests

```python
from logdclient.control import clear, get_log_size, set_log_size, get_log_readable_size

print(get_log_size(0))            # total ring buffer size of log id 0
print(get_log_readable_size(0))   # bytes currently in use
set_log_size(0, 256 * 1024)
clear(0)
```

Log ids run from 0 to 7; any other id raises `LogdError` with `errno.EINVAL`,
as does a reply from the daemon that is not a number (for the size queries) or
does not start with `success` (for `clear`, `set_log_size` and
`set_prune_list`). A negative size for `set_log_size` raises `ValueError`.
Socket failures are raised as `LogdError` carrying the socket's `errno`.
`get_log_version` always returns 4.

Every function takes a `socket_dir` argument, which is handy when testing
against a stand-in server. The lower-level `connect_local(name, sock_type,
socket_dir)` and `send_control_message(command, buf_size, socket_dir)` are
available too; the latter sends a NUL-terminated command and returns the raw
reply bytes, at most `buf_size` of them.

Statistics and prune lists take a `LoggerList`, which describes the selected
log ids, the `LogMode` flags, a tail count, a start time `(sec, nsec)` and a
pid filter:

```python
from logdclient.control import LoggerList, get_statistics, get_prune_list, set_prune_list

selection = LoggerList(log_ids={0, 1}, pid=1234)
print(get_statistics(selection))
print(get_prune_list(selection))
set_prune_list(selection, "~1000/!")
```

A `LoggerList` opened with `LogMode.PSTORE` is rejected by these three
functions with `errno.EINVAL`.

## Reading entries

```python
from logdclient.control import LoggerList, LogMode
from logdclient.reader import LogdReader

selection = LoggerList(log_ids={0}, mode=LogMode.NONBLOCK, tail=100)
with LogdReader(selection) as reader:
    for packet in reader:
        print(len(packet))
```

Each entry is returned as the raw bytes of one packet, up to 5 KiB. With
`LogMode.NONBLOCK`, `read()` raises `LogdError` with `errno.EAGAIN` once the
daemon has sent everything it holds, and iteration simply ends; without it,
reading waits for new entries. `close()` drops the connection and a later
`read()` connects again.

`build_request(logger_list)` returns the exact request bytes a `LoggerList`
produces, for example `b"dumpAndClose lids=0 tail=100"` for the selection
above. With `LogMode.WRAP` and a start time, a `timeout=7200` field is added.

## What it does not do

The package does not decode log entries: readers get the packet bytes as the
daemon sent them, headers included. It does not write log messages, filter or
format them, and has no command-line tool.