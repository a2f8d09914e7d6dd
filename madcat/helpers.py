"""Shared helpers: timestamps, hex output, address formatting, JSON assembly, users."""

from __future__ import annotations

import datetime as _dt
import os
import pwd
import time
from dataclasses import dataclass
from typing import Iterable, Optional, TextIO


@dataclass(frozen=True)
class Timestamp:
    """A point in time in the three forms used by the monitors."""

    readable: str  # e.g. "2018-08-17T05:51:53.835934+0200"
    unix: str  # seconds and microseconds joined by a dot, microseconds unpadded
    value: float  # seconds since the epoch

    @classmethod
    def at(cls, seconds: int, microseconds: int = 0) -> "Timestamp":
        """Build a timestamp for the given epoch seconds and microseconds."""
        local = _dt.datetime.fromtimestamp(seconds).astimezone()
        readable = (
            local.strftime("%Y-%m-%dT%H:%M:%S")
            + f".{microseconds:06d}"
            + local.strftime("%z")
        )
        return cls(
            readable=readable,
            unix=f"{seconds}.{microseconds}",
            value=seconds + microseconds * 1e-6,
        )


def now() -> Timestamp:
    """Return the current time as a Timestamp."""
    seconds, microseconds = divmod(time.time_ns() // 1000, 1_000_000)
    return Timestamp.at(seconds, microseconds)


def hex_string(data: bytes) -> str:
    """Return the bytes as a lower-case hex string without separators."""
    return bytes(data).hex()


def _printable(byte: int, json: bool) -> str:
    if byte < 0x20 or byte > 0x7E:
        return "."
    if json and byte == 0x22:
        return "'"
    if json and byte == 0x5C:
        return "/"
    return chr(byte)


def hex_dump(data: bytes, json: bool = False) -> str:
    """Return a hexdump-like rendering of the data.

    Each line holds an offset, 16 hex bytes and their printable characters.
    In JSON mode lines are joined by an escaped newline and characters that
    would break a JSON string are replaced.
    """
    data = bytes(data)
    if not data:
        return ""
    lines = []
    for offset in range(0, len(data), 16):
        chunk = data[offset:offset + 16]
        parts = [f"{offset:08x} "]
        for column, byte in enumerate(chunk):
            if column == 8:
                parts.append(" ")
            parts.append(f" {byte:02x}")
        for column in range(len(chunk), 16):
            parts.append("   ")
            if column % 8 == 0:
                parts.append(" ")
        text = "".join(_printable(byte, json) for byte in chunk)
        parts.append(f"  |{text}|")
        lines.append("".join(parts))
    return ("\\n" if json else "\n").join(lines)


def print_hex(output: TextIO, data: Iterable[int]) -> None:
    """Write a plain hex listing of the data to a text stream."""
    output.write("00000000 ")
    offset = 16
    for byte in data:
        output.write(f"{byte:02x} ")
        offset += 1
        if offset % 16 == 0:
            output.write(f"\n{offset:08x} ")
        elif offset % 8 == 0:
            output.write("\t")
    output.write("\n\n")


def inttoa(addr: int) -> str:
    """Format an IPv4 address read as a little-endian 32-bit integer."""
    return ".".join(str((addr >> shift) & 0xFF) for shift in (0, 8, 16, 24))


class JsonBuffer:
    """Accumulates the text of one JSON record."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def reset(self, text: str = "") -> str:
        """Discard the collected text, start again with text and return it."""
        self._parts = [text] if text else []
        return self.getvalue()

    def append(self, text: str) -> str:
        """Append text and return the whole buffer."""
        if text:
            self._parts.append(text)
        return self.getvalue()

    def getvalue(self) -> str:
        """Return the collected text."""
        if len(self._parts) > 1:
            self._parts = ["".join(self._parts)]
        return self._parts[0] if self._parts else ""

    def __str__(self) -> str:
        return self.getvalue()

    def __len__(self) -> int:
        return len(self.getvalue())


@dataclass
class User:
    """A system account to run as."""

    name: str
    uid: Optional[int] = None
    gid: Optional[int] = None


def get_user_ids(name: str) -> User:
    """Look up the uid and gid of a user name; raise LookupError if unknown."""
    try:
        entry = pwd.getpwnam(name)
    except KeyError:
        raise LookupError(f"unknown user: {name}") from None
    return User(name=name, uid=entry.pw_uid, gid=entry.pw_gid)


def drop_privileges(user: User) -> bool:
    """Switch to the given user if running as root.

    Returns True if the process no longer runs as root afterwards, False if
    there was nothing to drop. Failures of setgid/setuid raise OSError.
    """
    if os.getuid() != 0:
        return False
    if user.uid is None or user.gid is None:
        resolved = get_user_ids(user.name)
        user.uid, user.gid = resolved.uid, resolved.gid
    os.setgid(user.gid)  # group first, while still permitted
    os.setuid(user.uid)
    return not (os.getuid() == 0 or os.getgid() == 0)