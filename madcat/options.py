"""Header sizes and IP/TCP option codes understood by the parsers."""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple, Optional

UDP_HEADER_LEN = 8
IP_OR_TCP_HEADER_MINLEN = 20  # minimum length of an IP or a TCP header
DEFAULT_BUFSIZE = 9000  # Ethernet jumbo frame limit
ETHERNET_HEADER_LEN = 14

IPOPT_COPY = 0x80
IPOPT_CONTROL = 0x00
IPOPT_RESERVED1 = 0x20
IPOPT_MEASUREMENT = 0x40
IPOPT_RESERVED2 = 0x60


class IpOption(IntEnum):
    """IPv4 option types (copy flag, class and number combined)."""

    EOOL = 0 | IPOPT_CONTROL
    NOP = 1 | IPOPT_CONTROL
    SEC = 2 | IPOPT_COPY | IPOPT_CONTROL
    LSR = 3 | IPOPT_COPY | IPOPT_CONTROL
    TS = 4 | IPOPT_MEASUREMENT
    ESEC = 5 | IPOPT_COPY | IPOPT_CONTROL
    CIPSO = 6 | IPOPT_COPY | IPOPT_CONTROL
    RR = 7 | IPOPT_CONTROL
    SID = 8 | IPOPT_COPY | IPOPT_CONTROL
    SSR = 9 | IPOPT_COPY | IPOPT_CONTROL
    ZSU = 10 | IPOPT_CONTROL
    MTUP = 11 | IPOPT_CONTROL
    MTUR = 12 | IPOPT_CONTROL
    FINN = 13 | IPOPT_COPY | IPOPT_MEASUREMENT
    VISA = 14 | IPOPT_COPY | IPOPT_CONTROL
    ENCODE = 15 | IPOPT_CONTROL
    IMITD = 16 | IPOPT_COPY | IPOPT_CONTROL
    EIP = 17 | IPOPT_COPY | IPOPT_CONTROL
    TR = 18 | IPOPT_MEASUREMENT
    ADDEXT = 19 | IPOPT_COPY | IPOPT_CONTROL
    RTRALT = 20 | IPOPT_COPY | IPOPT_CONTROL
    SDB = 21 | IPOPT_COPY | IPOPT_CONTROL
    UN = 22 | IPOPT_COPY | IPOPT_CONTROL
    DPS = 23 | IPOPT_COPY | IPOPT_CONTROL
    UMP = 24 | IPOPT_COPY | IPOPT_CONTROL
    QS = 25 | IPOPT_CONTROL
    EXP = 30 | IPOPT_CONTROL


_IP_OPTION_NAMES = {
    IpOption.EOOL: "EOL",
    IpOption.NOP: "NOP",
    IpOption.SEC: "sec",
    IpOption.LSR: "lsr",
    IpOption.TS: "ts",
    IpOption.ESEC: "esec",
    IpOption.CIPSO: "cipso",
    IpOption.RR: "rr",
    IpOption.SID: "sid",
    IpOption.SSR: "ssr",
    IpOption.ZSU: "zsu",
    IpOption.MTUP: "mtup",
    IpOption.MTUR: "mtur",
    IpOption.FINN: "finn",
    IpOption.VISA: "visa",
    IpOption.ENCODE: "encode",
    IpOption.IMITD: "IMITD",
    IpOption.EIP: "eip",
    IpOption.TR: "tr",
    IpOption.ADDEXT: "addext",
    IpOption.RTRALT: "rtralt",
    IpOption.SDB: "sdb",
    IpOption.UN: "un",
    IpOption.DPS: "dps",
    IpOption.UMP: "ump",
    IpOption.QS: "qs",
    IpOption.EXP: "exp",
}


def ip_option_name(code: int) -> Optional[str]:
    """Return the JSON name of an IPv4 option type, or None if unknown."""
    try:
        return _IP_OPTION_NAMES[IpOption(code)]
    except ValueError:
        return None


class TcpOption(IntEnum):
    """TCP option kinds."""

    EOL = 0
    NOP = 1
    MSS = 2
    WINDOW = 3
    SACK_PERM = 4
    ECHO = 6
    ECHOREPLY = 7
    TIMESTAMP = 8
    CC = 11
    CCNEW = 12
    CCECHO = 13
    MD5 = 19
    SCPS = 20
    SNACK = 21
    RECBOUND = 22
    CORREXP = 23
    QS = 27
    USER_TO = 28


class TcpOptionSpec(NamedTuple):
    """JSON name and fixed total length of a TCP option."""

    name: str
    length: int


_TCP_OPTION_SPECS = {
    TcpOption.EOL: TcpOptionSpec("EOL", 1),
    TcpOption.NOP: TcpOptionSpec("NOP", 1),
    TcpOption.MSS: TcpOptionSpec("mss", 4),
    TcpOption.WINDOW: TcpOptionSpec("window", 3),
    TcpOption.SACK_PERM: TcpOptionSpec("sack_perm", 2),
    TcpOption.ECHO: TcpOptionSpec("echo", 6),
    TcpOption.ECHOREPLY: TcpOptionSpec("echo_reply", 6),
    TcpOption.TIMESTAMP: TcpOptionSpec("timestamp", 10),
    TcpOption.CC: TcpOptionSpec("cc", 6),
    TcpOption.CCNEW: TcpOptionSpec("ccnew", 6),
    TcpOption.CCECHO: TcpOptionSpec("ccecho", 6),
    TcpOption.MD5: TcpOptionSpec("md5", 18),
    TcpOption.SCPS: TcpOptionSpec("scps", 4),
    TcpOption.SNACK: TcpOptionSpec("snack", 6),
    TcpOption.RECBOUND: TcpOptionSpec("recbound", 2),
    TcpOption.CORREXP: TcpOptionSpec("correxp", 2),
    TcpOption.QS: TcpOptionSpec("qs", 8),
    TcpOption.USER_TO: TcpOptionSpec("user_TO", 4),
}


def tcp_option_spec(code: int) -> Optional[TcpOptionSpec]:
    """Return name and length of a TCP option kind, or None if unknown."""
    try:
        return _TCP_OPTION_SPECS[TcpOption(code)]
    except ValueError:
        return None