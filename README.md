# srtlive

Building blocks for SRT live streaming, as a plain Python library with no
third-party dependencies.

| Module | What it holds |
| --- | --- |
| `srtlive.recycle_array` | `RecycleArray`, a fixed-size ring buffer filled by one writer and read by many, each through its own `ReadCursor` |
| `srtlive.ts` | MPEG-TS inspection: `TsInfo`, `parse_ts_packet`, `parse_pes_pts`, `parse_sps_pps`, `null_udp_packet` |
| `srtlive.ts_file_reader` | `TSFileTimeReader`, which indexes a `.ts` file into a timestamped `.rts` file and plays it back in 1316-byte payloads |
| `srtlive.sync_clock` | `SyncClock`, which paces playback so stream time does not run ahead of wall time |
| `srtlive.conf` | the nested `name { key value; }` configuration format and `-name value` command-line options |
| `srtlive.hls` | `HlsRecorder`, which writes TS segments and a `vod.m3u8` playlist |
| `srtlive.role` | `Role` and `RoleState`, one stream endpoint moving data between a connection and a stream store |
| `srtlive.role_list` | `RoleList`, a thread-safe first-in first-out queue of roles |
| `srtlive.pidfile` | `read_pid`, `write_pid`, `remove_pid` and `send_cmd` |
| `srtlive.util` | time helpers, `hash_key`, `remove_marks`, `mkdir_p`, `split_string`, `find_string`, `resolve_host` |

## Ring buffer

```python
from srtlive.recycle_array import ReadCursor, RecycleArray

ring = RecycleArray()              # 1024 * 1316 bytes by default
cursor = ReadCursor()

ring.get(1316, cursor)             # first call only positions the cursor, returns b""
ring.put(b"\x47" * 1316)
chunk = ring.get(1316 * 10, cursor, 1316)   # 1316 bytes, rounded down to a multiple of 1316
```

A reader only sees data written after its first `get`. Old data is
overwritten; a reader that falls a full lap behind loses it. `count()` is the
total number of bytes ever written.

## MPEG-TS

`parse_ts_packet(packet, info)` takes one 188-byte packet that starts a unit
and updates a `TsInfo`: it keeps the PAT and PMT packets, learns the PMT pid,
and reads PTS/DTS from PES headers. With `info.need_spspps` set it also finds
H.264 SPS and PPS units and, once PAT, PMT, SPS and PPS are all known, lays
them out as a 1316-byte header in `info.ts_data`. It returns `False` for
packets that carry nothing usable.

## Timed playback of a TS file

```python
from srtlive.sync_clock import SyncClock
from srtlive.ts_file_reader import TSFileTimeReader

clock = SyncClock()
with TSFileTimeReader() as reader:
    reader.open("movie.ts", loop=False)
    while True:
        try:
            payload, tm_ms = reader.get(1316)
        except EOFError:
            break
        clock.wait(tm_ms)
        ...  # send payload
```

`open` writes `movie.ts.rts` next to the input unless it already exists. Each
record is an 8-byte little-endian timestamp on the 90 kHz clock followed by
1316 bytes; `get` returns the time in milliseconds. With `loop=True` the file
starts over at its end. `SyncClock.wait` returns the milliseconds it slept; a
gap of `jitter` ms (1000 by default) resets its reference instead.

## Configuration

```python
from srtlive.conf import ConfOption, ConfRegistry, OptionKind, load_conf

registry = ConfRegistry()
registry.register("srt", [ConfOption("worker_threads", OptionKind.INT, "threads", 1, 100)])
registry.register("server", [ConfOption("listen", OptionKind.INT, "port", 1, 65535)])

root = load_conf("sls.conf", registry)
print(root["worker_threads"])
for server in root.children():
    print(server["listen"])
```

`parse_conf` does the same for an iterable of lines. `#` starts a comment.
Unknown block or option names, values out of range (for strings, their
length), bad booleans, lines that end in neither `;`, `{` nor `}`, and
unbalanced braces raise `ConfError`. Numbers are read leniently from the
start of the text, so text that is not a number reads as zero.

`parse_argv(argv, options)` turns `-name value` pairs (without the program
name) into a dict keyed by each option's `key`; a lone `-h` raises
`ConfError` carrying the help text.

## HLS recording

`HlsRecorder(path="./vod", segment_duration=10)` writes `record(data)` into
`<seconds>.ts` files, starting a new one every `segment_duration` seconds and
listing finished segments in an `.extinfo` file. `close()` wraps that list
into `vod.m3u8` and returns its path, or `None` if no segment was finished.

## Roles

A `Role` works with any connection object that has `read(size)`,
`write(data)`, `close()`, `is_broken()` and `peer_address()`, and a stream
store with `put(key, data)` and `get(key, size, cursor, aligned)`.
`handler_read_data` moves one payload from the connection into the store;
`handler_write_data` sends whole 1316-byte payloads the other way.
`get_state` turns the role `RoleState.INVALID` after `idle_streams_timeout`
seconds without traffic (`-1` for never) or when the connection is broken.
With `record_hls` set, read data is also recorded through `role.hls`.

## Pid file

`write_pid()` stores this process's pid in `/tmp/sls/pid.txt` by default;
`send_cmd("reload")` sends SIGHUP and `send_cmd("stop")` SIGINT to the pid
found there.

## What this package does not do

It has no SRT socket layer, no server or client command, and no code that
pulls streams from or pushes them to upstream servers. `Role.event_url` only
builds the HTTP notification URL; nothing here sends HTTP requests or posts
statistics.

## Running the tests

```
pip install -e ".[test]"
pytest
```