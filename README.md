# dperf

The configuration and packet-level core of a high-rate network load
generator. It reads the keyword-style configuration file that describes a
client or server test, fills in defaults and checks the file as a whole, and
provides helpers for Ethernet and ARP frames, Internet checksums (full and
incremental), per-worker CPU load accounting and client launch scheduling.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## The configuration file

One keyword per line, followed by its arguments separated by blanks. A line
whose first word starts with `#` is a comment; blank lines are skipped.

```
mode        client
cpu         0-3
port        0000:01:00.0 192.0.2.10 192.0.2.1
duration    2m
cps         10k
client      192.0.2.100 50
server      198.51.100.1 4
listen      80 1
protocol    tcp
keepalive   1ms
cc          100k
```

Counts accept `k` and `m` suffixes (`1.5m` is 1,500,000); durations accept
`m`, `h` and `d` suffixes; keepalive intervals are written with `us`, `ms`
or `s`. `dperf -m` prints every keyword with a short description of its
arguments.

## Command line

```
dperf -c test.conf        # load and check a configuration
dperf -t -c test.conf     # check the file and print "Config file OK"
dperf -m                  # list every keyword with its arguments
dperf -v                  # print the version
dperf -h                  # short help
```

The long forms `--conf`, `--test`, `--manual`, `--version` and `--help` are
accepted too, as are unambiguous prefixes of them. Run without arguments, the
command prints the short help and exits with status 1. A bad configuration is
printed as `Error: ...`, with the file name and, for problems on a line, the
line number; the exit status is then 1.

## Library use

```python
from dperf.cli import load_config
from dperf.eth import parse_eth_addr
from dperf.arp import build_request, build_reply, parse_frame
from dperf.csum import raw_checksum, csum_update_u32, check_ip_packet

cfg = load_config("test.conf")          # parsed and fully checked Config

mac = parse_eth_addr("02:00:00:00:00:01")
frame = build_request(mac, "192.0.2.10", "192.0.2.1")   # who has 192.0.2.1?
eth, arp = parse_frame(frame)           # EthHeader and ArpHeader
```

- `dperf.options` holds the `Config` data class, `IpRange`, `NetifPort`,
  `Vxlan`, the `Flow` enum, the limits and defaults, and `ConfigError`.
- `dperf.handlers.keywords()` returns the table of configuration keywords;
  `dperf.config_keyword.parse_file` / `parse_lines` apply such a table to an
  object, raising `ConfigSyntaxError` with the line number on a bad line.
  `load_config` reports those as `ConfigError`.
- `dperf.checks.finalize(cfg)` fills in defaults and runs the whole-file
  checks; the module also has `port_get`, `total_socket_num`, `set_tsc` and
  `make_payload`.
- `dperf.values` parses single values: numbers with suffixes, durations,
  keepalive intervals, hexadecimal numbers, bond specifications and IP ranges.
- `dperf.csum` computes ones' complement sums over bytes, IPv4 and IPv6
  pseudo headers, IPv4 header and TCP/UDP checksums, and updates a checksum
  after a 16-, 32- or 128-bit field has changed; `check_ip_packet` returns
  the layer 4 protocol or raises `ChecksumError` when a checksum is wrong.
- `dperf.cpuload.CpuLoad` accumulates busy time in tick units and reports
  usage as a percentage.
- `dperf.client.client_init` splits the connection-rate and concurrency
  targets over the workers and works out how often each worker launches new
  connections.

## What it does not do

This package does not send or receive any traffic. It does not drive network
interfaces, bonds, VLANs or VXLAN tunnels, keeps no TCP or UDP connection
state, builds no HTTP requests or responses, and prints no live statistics.
The command line stops after the configuration has been loaded and checked.