"""Command line front end of the ICMP monitor."""

from __future__ import annotations

import os
import re
import signal
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .config import ConfigError, get_config_opt, load_config
from .helpers import JsonBuffer, User, drop_privileges, now
from .options import DEFAULT_BUFSIZE
from .worker import worker_icmp

BANNER = "MADCAT - Mass Attack Detecion Connection Acceptance Tool\nICMP Monitor\n"


class UsageError(Exception):
    """Raised when the command line or configuration file is incomplete."""


class OutOfRangeError(ValueError):
    """Raised when a numeric setting is outside its allowed range."""


@dataclass
class IcmpSettings:
    """Settings the ICMP monitor runs with."""

    hostaddr: str
    data_path: str
    user: str
    bufsize: int = DEFAULT_BUFSIZE
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


def print_help_icmp(progname: str) -> None:
    """Write the usage message to stderr."""
    sys.stderr.write(
        f"SYNTAX:\n    {progname} path_to_config_file\n"
        "        Sample content of a config file:\n\n"
        '            \thostaddress = "127.1.1.1"\n'
        '            \tuser = "hf"\n'
        '            \tpath_to_save_icmp_data = "./ipm/" --Must end with trailing "/", '
        "will be handled as prefix otherwise\n"
        '            \t--bufsize = "1024" --optional\n'
        "            \tloglevel = 0 --optional: loglevel (0: Standard, 1: Debug)\n"
        "        "
    )
    sys.stderr.write(
        f"\nLEGACY SYNTAX (pre v1.1.5): {progname} hostaddress path_to_save_icmp-data "
        f"user [buffer_size]\n\tBuffer Size defaults to {DEFAULT_BUFSIZE} Bytes.\n "
        '\tPath to directory MUST end with a trailing slash, e.g.  "/path/to/my/dir/"\n\n '
        "\tMust be run as root, but the priviliges will be droped to user after "
        "the socket has been opened.\n"
    )


def _from_config(path: str) -> IcmpSettings:
    config = load_config(path)
    log_time = now().readable
    sys.stderr.write(f"{log_time} Parsing config file: {path}\n")

    hostaddr = get_config_opt(config, "hostaddress")
    sys.stderr.write(f"\tHostaddress: {hostaddr}\n")
    user = get_config_opt(config, "user")
    sys.stderr.write(f"\tuser: {user}\n")
    data_path = get_config_opt(config, "path_to_save_icmp_data")
    sys.stderr.write(f"\tpath_to_save_icmp_data: {data_path}\n")

    if not hostaddr or not user or not data_path:
        raise UsageError(f"{log_time} [PID {os.getpid()}] Error in config file: {path}")

    bufsize = DEFAULT_BUFSIZE
    value = get_config_opt(config, "bufsize")
    if value:
        bufsize = _atoi(value)
    sys.stderr.write(f"\tbufsize: {bufsize}\n")

    loglevel = 0
    value = get_config_opt(config, "loglevel")
    if value:
        loglevel = _atoi(value)
    sys.stderr.write(f"\tloglevel: {loglevel}\n")
    sys.stderr.flush()

    return IcmpSettings(hostaddr, data_path, user, bufsize, loglevel)


def parse_arguments(argv: Sequence[str]) -> IcmpSettings:
    """Build settings from a config file path or the legacy positional arguments.

    ``argv`` excludes the program name. Raises UsageError for a wrong number
    of arguments or missing mandatory settings, ConfigError for an unreadable
    configuration file and OutOfRangeError for a negative buffer size.
    """
    args = list(argv)
    if len(args) not in (1, 3, 4):
        raise UsageError("wrong number of arguments")

    if len(args) == 1:
        settings = _from_config(args[0])
    else:
        settings = IcmpSettings(hostaddr=args[0], data_path=args[1], user=args[2])
        if len(args) == 4:
            settings.bufsize = _atoi(args[3])

    if settings.bufsize < 0:
        raise OutOfRangeError(f"Bufsize {settings.bufsize} out of range.")
    return settings


def _on_signal(signo: int, _frame: object) -> None:
    raise _Shutdown(signo)


def _serve(listener: socket.socket, settings: IcmpSettings) -> None:
    json = JsonBuffer()
    while True:
        data, _addr = listener.recvfrom(settings.bufsize)
        json.reset()
        try:
            worker_icmp(data, len(data), settings.hostaddr, settings.data_path,
                        json, settings.loglevel)
        except ValueError:
            pass  # already reported on stderr by the worker
        if len(json) > 2:
            sys.stdout.write(json.getvalue() + "\n")
            sys.stdout.flush()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the ICMP monitor; return the process exit status."""
    if argv is None:
        progname = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "icmp_mon"
        argv = sys.argv[1:]
    else:
        progname = "icmp_mon"
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
        print_help_icmp(progname)
        return -1
    except ConfigError as exc:
        sys.stderr.write(
            f"{log_time} [PID {os.getpid()}] Error parsing config file: {exc}\n"
            "\tRun without command line arguments for help.\n"
        )
        return 1
    except OutOfRangeError as exc:
        sys.stderr.write(f"{exc}\n")
        return -2

    sys.stderr.write(
        f"{log_time} Starting with PID {os.getpid()}, hostaddress {settings.hostaddr}, "
        f"bufsize is {settings.bufsize} Byte...\n"
    )

    try:
        listener = socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)
    except OSError as exc:
        sys.stderr.write(f"{log_time} ERROR: cannot open raw ICMP socket: {exc}\n")
        return 1

    with listener:
        if os.getuid() == 0:
            sys.stderr.write(f"{log_time} Droping priviliges to user {settings.user}...")
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

        try:
            socket.inet_aton(settings.hostaddr)
        except OSError:
            sys.stderr.write(f"{log_time} ERROR: invalid host address {settings.hostaddr}\n")
            return 1

        previous = {
            signo: signal.signal(signo, _on_signal)
            for signo in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            _serve(listener, settings)
        except _Shutdown as stop:
            sys.stderr.write(
                f"\n{now().readable} Received Signal {signal.strsignal(stop.signo)}, "
                "shutting down...\n"
            )
            return stop.signo
        except OSError as exc:
            sys.stderr.write(f"{now().readable} ERROR: receiving failed: {exc}\n")
            return 1
        finally:
            for signo, handler in previous.items():
                signal.signal(signo, handler)
    return 0