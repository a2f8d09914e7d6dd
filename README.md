# madcat

Monitors that accept whatever mass scanners and attackers send to a host
and record each event as one JSON object per line on standard output.

Two monitors are included:

- **`madcat-icmp-mon`** listens on a raw IPv4/ICMP socket. It decodes the
  IP header and its options, the ICMP header, and, for "destination
  unreachable" messages, the embedded IP header together with the TCP or
  UDP header it contains. Data that was not decoded into the event is
  written to a file in the data directory, and events that could not be
  decoded completely are marked `"tainted": true`.
- **`madcat-raw-mon`** captures whole frames on a network interface and
  logs each one with a hex dump, a hex string and a SHA-1 of its layer-3
  content (everything after the 14-byte Ethernet header).

Both monitors need root rights to open their sockets. Once the socket is
open, they switch to the unprivileged user named in the configuration.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Configuration files

Configuration files consist of simple assignments such as
`name = "value"`, `name = 10` or `name = true`, with `--` comments.
Numbers are accepted wherever a string is expected. A file that cannot be
read or parsed makes the monitor exit with status 1; a missing mandatory
setting prints the usage message and exits with status -1.

## ICMP monitor

```
madcat-icmp-mon path_to_config_file
```

An example configuration file:

```
hostaddress = "127.1.1.1"
user = "nobody"
path_to_save_icmp_data = "./ipm/"   --must end with "/", otherwise it is used as a file-name prefix
--bufsize = "1024"                  --optional, defaults to 9000 bytes
loglevel = 0                        --optional: 0 standard, 1 debug
```

The older positional form still works:

```
madcat-icmp-mon hostaddress path_to_save_icmp_data user [buffer_size]
```

A negative buffer size is rejected with exit status -2.

Only packets addressed to `hostaddress` are logged; with `0.0.0.0`
packets to any address are logged. Packets that are too short or are not
well-formed IPv4/ICMP are dumped in hex to standard error and skipped. At
log level 0, source addresses are masked in the messages on standard
error; the JSON events always contain them.

A file of leftover data is named
`<data_path><timestamp>_<dest_ip>_<src_ip>-<type>_<code>.ipm`.

## Raw monitor

```
madcat-raw-mon path_to_config_file
```

The configuration file accepts these keys:

- `interface` (required)
- `user` (required)
- `raw_pcap_filter_exp` (optional): copied into each event under
  `"RAW": {"pcap_filter": ...}`
- `max_file_size` (optional): if positive, only that many bytes of each
  frame's layer-3 data are dumped and hashed; `"bytes_toserver"` still
  counts all of them
- `loglevel` (optional)

Each event carries `"event_type": "RAW"`. Its `"proto"` is `"IPv4"`,
`"IPv6"`, or the version nibble as a number when the frame is not IP.

## Version

Given the single argument `version`, either command prints its banner
to standard output and exits:

```
madcat-icmp-mon version
```

## What is not included

- `raw_pcap_filter_exp` is only recorded in the events; it is not applied.
  The raw monitor reports every frame seen on the interface, using a
  Linux packet socket.
- The raw monitor writes no data files; everything goes into the events.
- There are no TCP or UDP port monitors and no proxying of connections.

## Library use

The building blocks can be used on their own.

`madcat.helpers`:

- `now()` and `Timestamp` for the time formats used in events
- `hex_string`, `hex_dump` and `print_hex` for rendering bytes
- `inttoa` for turning an IPv4 address into text
- `JsonBuffer`, which builds an event piece by piece
- `User`, `get_user_ids` and `drop_privileges`

`madcat.config`: `load_config`, `get_config_opt` and `ConfigError`.

`madcat.options`: header sizes, `IpOption`, `TcpOption`, `ip_option_name`
and `tcp_option_spec`.

`madcat.parser` appends header descriptions to a `JsonBuffer`:

- `analyze_ip_header` returns whether the header is tainted
- `analyze_udp_header` returns the number of payload bytes, or -1
- `analyze_tcp_header` returns the number of bytes after the TCP header,
  or -1, and leaves the `"TCP"` object open for the caller to close
- `parse_ipopt` records a single IP option

`madcat.worker.worker_icmp` handles one received ICMP datagram from start
to finish. It returns the number of ICMP data bytes, returns `None` for
packets to other addresses, and raises `ValueError` for malformed packets.
`madcat.worker.IcmpType` lists the ICMP types it recognises.

`madcat.icmp_cli.parse_arguments` and `madcat.raw_cli.parse_arguments`
turn command-line arguments into `IcmpSettings` and `RawSettings`.
`madcat.raw_cli.build_raw_event` turns one captured frame into its JSON
event.