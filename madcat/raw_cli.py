"""Command line front end of the raw packet monitor.

Every frame seen on a network interface is reported as one JSON record,
holding the layer 3 data (everything after the Ethernet header) as a hex
dump, a hex string and its SHA1.
"""

from __future__ import annotations

import hashlib
import json as _json
import os
import re
import signal
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .config import ConfigError, get_config_opt, load_config
from .helpers import User, drop_privileges, hex_dump, hex_string, now
from .options import ETHERNET_HEADER_LEN

BANNER = "MADCAT - Mass Attack Detecion Connection Acceptance Tool\nRAW Monitor\n"

_ETH_P_ALL = 0x0003
_MAX_FRAME = 65535


class UsageError(Exception):
    """Raised when the command line or configuration file is incomplete."""


@dataclass
class RawSettings:
    """Settings the raw monitor runs with."""

    interface: str
    user: str
    filter_exp: str = ""
    max_file_size: int = -1
    loglevel: int = 0


class _Shutdown(Exception):
    def __init__(self, signo: int) -> None:
        super().__init__(signo)
        self.signo = signo


_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Read a leading integer the lenient way, 0 if there is none."""
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _json_text(text: str) -> str:
    """Escape text for use inside a JSON string literal."""
    return _json.dumps(text)[1:-1]


def print_help_raw(progname: str) -> None:
    """Write the usage message to stderr."""
    sys.stderr.write(
        f"SYNTAX:\n    {progname} path_to_config_file\n"
        "        Sample content of a config file:\n\n"
        '            \tinterface = "enp0s8"\n'
        '            \tuser = "hf"\n'
        '            \traw_pcap_filter_exp = "not tcp and not udp" --optional\n'
        '            \tmax_file_size = "1024" --optional: maximum bytes of a frame to report\n'
        "            \tloglevel = 0 --optional: loglevel (0: Standard, 1: Debug)\n\n"
        "        Must be run as root, but the priviliges will be droped to user "
        "after the capture has been opened.\n"
    )


def _from_config(path: str) -> RawSettings:
    config = load_config(path)
    log_time = now().readable
    sys.stderr.write(f"{log_time} [PID {os.getpid()}] Parsing config file: {path}\n")

    interface = get_config_opt(config, "interface")[:63]
    sys.stderr.write(f"\tInterface: {interface}\n")
    user = get_config_opt(config, "user")
    sys.stderr.write(f"\tuser: {user}\n")
    filter_exp = get_config_opt(config, "raw_pcap_filter_exp")
    sys.stderr.write(f"\tPCAP Filter expression: {filter_exp}\n")

    if not interface or not user:
        raise UsageError(f"{log_time} [PID {os.getpid()}] Error in config file: {path}")

    max_file_size = -1
    value = get_config_opt(config, "max_file_size")
    if value:
        max_file_size = _atoi(value)
    sys.stderr.write(f"\tmax_file_size: {max_file_size}\n")

    loglevel = 0
    value = get_config_opt(config, "loglevel")
    if value:
        loglevel = _atoi(value)
    sys.stderr.write(f"\tloglevel: {loglevel}\n")
    sys.stderr.flush()

    return RawSettings(interface, user, filter_exp, max_file_size, loglevel)


def parse_arguments(argv: Sequence[str]) -> RawSettings:
    """Build settings from the single config file argument.

    ``argv`` excludes the program name. Raises UsageError for a wrong number
    of arguments or missing mandatory settings and ConfigError for an
    unreadable configuration file.
    """
    args = list(argv)
    if len(args) != 1:
        raise UsageError("wrong number of arguments")
    return _from_config(args[0])


def build_raw_event(packet: bytes, filter_exp: str = "", max_file_size: int = -1) -> str:
    """Return the JSON record describing one captured Ethernet frame.

    Only the first ``max_file_size`` bytes of layer 3 data are dumped and
    hashed if that limit is positive; "bytes_toserver" always counts all of
    them. Raises ValueError if the frame is not longer than an Ethernet header.
    """
    packet = bytes(packet)
    if len(packet) <= ETHERNET_HEADER_LEN:
        raise ValueError(f"frame of {len(packet)} bytes holds no layer 3 data")
    start = now()

    layer3 = packet[ETHERNET_HEADER_LEN:]
    packet_len = len(layer3)
    if 0 < max_file_size < packet_len:
        layer3 = layer3[:max_file_size]

    payload_sha1 = hashlib.sha1(layer3).hexdigest()
    payload_hd = hex_dump(layer3, True)
    payload_str = hex_string(layer3)

    version = packet[ETHERNET_HEADER_LEN] >> 4
    proto = {4: "IPv4", 6: "IPv6"}.get(version, str(version))

    stop = now()
    duration = stop.value - start.value
    return (
        "{"
        '"origin":"MADCAT", '
        f'"timestamp":"{start.readable}", '
        f'"proto":"{proto}", '
        '"event_type":"RAW", '
        f'"unixtime": {start.unix}, '
        '"FLOW": { '
        f'"start":"{start.readable}",'
        f'"end":"{stop.readable}", '
        f'"duration":{duration:.6f},  '
        '"state":"closed", '
        '"reason":"closed", '
        f'"bytes_toserver": {packet_len},'
        f'"payload_hd":"{payload_hd}",'
        f'"payload_str":"{payload_str}",'
        f'"payload_sha1":"{payload_sha1}"'
        "},"
        '"RAW": {'
        f'"pcap_filter":"{_json_text(filter_exp)}"'
        "}}"
    )


def _on_signal(signo: int, _frame: object) -> None:
    raise _Shutdown(signo)


def _open_capture(interface: str) -> socket.socket:
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise OSError("packet capture on interfaces is not supported on this platform")
    sniffer = socket.socket(family, socket.SOCK_RAW, socket.htons(_ETH_P_ALL))
    try:
        sniffer.bind((interface, 0))
    except OSError:
        sniffer.close()
        raise
    return sniffer


def _serve(sniffer: socket.socket, settings: RawSettings) -> None:
    while True:
        frame = sniffer.recv(_MAX_FRAME)
        try:
            event = build_raw_event(frame, settings.filter_exp, settings.max_file_size)
        except ValueError:
            continue
        sys.stderr.write(f"{now().readable} [PID {os.getpid()}] RAW Packet received\n")
        sys.stdout.write(event + "\n")
        sys.stdout.flush()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the raw monitor; return the process exit status."""
    if argv is None:
        progname = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "raw_mon"
        argv = sys.argv[1:]
    else:
        progname = "raw_mon"
    argv = list(argv)

    if argv == ["version"]:
        sys.stdout.write(f"\n{BANNER}\n")
        return 0
    sys.stderr.write(f"\n{BANNER}\n")
    log_time = now().readable

    try:
        settings = parse_arguments(argv)
    except UsageError as exc:
        if str(exc) != "wrong number of arguments":
            sys.stderr.write(f"{exc}\n")
        print_help_raw(progname)
        return -1
    except ConfigError as exc:
        sys.stderr.write(
            f"{log_time} [PID {os.getpid()}] Error parsing config file: {exc}\n"
            "\tRun without command line arguments for help.\n"
        )
        return 1

    sys.stderr.write(
        f"{log_time} [PID {os.getpid()}] Starting on interface {settings.interface}\n"
    )

    try:
        sniffer = _open_capture(settings.interface)
    except OSError as exc:
        sys.stderr.write(
            f"{log_time} [PID {os.getpid()}] ERROR: cannot capture on "
            f"{settings.interface}: {exc}\n"
        )
        return 1

    with sniffer:
        if os.getuid() == 0:
            sys.stderr.write(
                f"{log_time} [PID {os.getpid()}] Sniffer droping priviliges "
                f"to user {settings.user}..."
            )
            try:
                dropped = drop_privileges(User(settings.user))
            except (LookupError, OSError) as exc:
                sys.stderr.write(f"FAILED: {exc}\n")
                return 1
            if dropped:
                sys.stderr.write(f"SUCCESS. UID: {os.getuid()}\n")
            else:
                sys.stderr.write("...nothing to drop. WARNING: Running as root!\n")
            sys.stderr.flush()

        sys.stderr.write(f"{log_time} [PID {os.getpid()}] Sniffing...\n")
        previous = {
            signo: signal.signal(signo, _on_signal)
            for signo in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            _serve(sniffer, settings)
        except _Shutdown as stop:
            sys.stderr.write(
                f"\n{now().readable} Received Signal {signal.strsignal(stop.signo)}, "
                "shutting down...\n"
            )
            return stop.signo
        except OSError as exc:
            sys.stderr.write(f"{now().readable} ERROR: capture failed: {exc}\n")
            return 1
        finally:
            for signo, handler in previous.items():
                signal.signal(signo, handler)
    return 0