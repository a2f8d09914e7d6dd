"""Handling of datagrams received on a raw IPv4/ICMP socket."""

from __future__ import annotations

import hashlib
import sys
from enum import IntEnum
from typing import Optional

from .helpers import JsonBuffer, hex_dump, hex_string, inttoa, now, print_hex
from .parser import analyze_ip_header, analyze_tcp_header, analyze_udp_header

ICMP_HEADER_LEN = 8
_MIN_PACKET_LEN = 24  # 20 byte IPv4 header plus the first 4 bytes of ICMP
_MASKED = "<masked by default loglevel>"


class IcmpType(IntEnum):
    """ICMP message types that are recognised."""

    ECHOREPLY = 0
    UNREACH = 3
    SOURCEQUENCH = 4
    REDIRECT = 5
    ALTHOST = 6
    ECHO = 8
    RTRADVERT = 9
    RTRSOLICIT = 10
    TIMXCEED = 11
    PARAMPROB = 12
    TSTAMP = 13
    TSTAMPREPLY = 14
    IREQ = 15
    IREQREPLY = 16
    MASKREQ = 17
    MASKREPLY = 18
    PHOTURIS = 40
    EXTECHO = 42
    EXTECHOREPLY = 43

    @property
    def label(self) -> str:
        """Name used as "type_str" in the JSON record."""
        return self.name.lower()


_UNREACH_CODES = {
    0: "net_unreach",
    1: "host_unreach",
    2: "prot_unreach",
    3: "port_unreach",
    4: "frag_needed",
    5: "sr_failed",
    6: "net_unknown",
    7: "host_unknown",
    8: "host_isolated",
    9: "net_ano",
    10: "host_ano",
    11: "net_unr_tos",
    12: "host_unr_tos",
    13: "pkt_filtered",
    14: "prec_vioalation",
    15: "prec_cutoff",
}


def _alert(message: str, buffer: bytes) -> ValueError:
    sys.stderr.write(message + "\n")
    print_hex(sys.stderr, buffer)
    return ValueError(message)


def _analyze_unreach(code: int, data: bytes, recv_len: int,
                     json: JsonBuffer) -> tuple[bool, int]:
    """Describe a destination-unreachable message and the packet it quotes.

    Returns the tainted status and the number of leading data bytes that
    have been described in the record.
    """
    tainted = False
    code_str = _UNREACH_CODES.get(code)
    if code_str is None:
        code_str = "tainted/unkown"
        tainted = True
    json.append(f', "code_str":"{code_str}"')

    if analyze_ip_header(data, recv_len, json):
        return True, 0

    data_len = len(data)
    inner_proto = data[9]
    if inner_proto == 6:
        before = len(json)
        data_bytes = analyze_tcp_header(data, data_len, json)
        if len(json) > before:
            json.append("}")  # the TCP object is left open by the parser
        if data_bytes < 0:
            return True, 0
        return tainted, data_len - data_bytes
    if inner_proto == 17:
        data_bytes = analyze_udp_header(data, data_len, json)
        if data_bytes < 0:
            return True, 0
        return tainted, data_len - data_bytes
    return True, 0


def _save_payload(payload: bytes, data_path: str, log_time: str, dest: str,
                  src: str, icmp_type: int, icmp_code: int, loglevel: int) -> None:
    file_name = f"{data_path}{log_time}_{dest}_{src}-{icmp_type}_{icmp_code}.ipm"
    shown = file_name if loglevel > 0 else (
        f"{data_path}{log_time}_{dest}_{_MASKED}-{icmp_type}_{icmp_code}.ipm"
    )
    try:
        with open(file_name, "wb") as file:
            file.write(payload)
    except OSError:
        sys.stderr.write(f"{log_time} ERROR: Could not write to file {shown}\n")
        return
    sys.stderr.write(f"{log_time} FILENAME: {shown}\n")


def worker_icmp(buffer: bytes, recv_len: int, hostaddress: str, data_path: str,
                json: JsonBuffer, loglevel: int = 0) -> Optional[int]:
    """Describe one IPv4/ICMP packet in ``json`` and save undescribed data.

    Returns the number of ICMP data bytes, or None if the packet was not
    addressed to ``hostaddress`` (any address is accepted for "0.0.0.0").
    Raises ValueError, after dumping the packet to stderr, if the packet is
    too short or malformed.
    """
    buffer = bytes(buffer)
    recv_len = max(0, min(recv_len, len(buffer)))
    start = now()
    log_time = start.readable

    if recv_len < _MIN_PACKET_LEN:
        raise _alert(
            f"{log_time} ALERT: Paket to short for ICMP over IPv4, "
            f"dumping {recv_len} Bytes of data:",
            buffer[:recv_len],
        )

    version = buffer[0] >> 4
    ihl = (buffer[0] & 0x0F) * 4
    proto = buffer[9]
    src = inttoa(int.from_bytes(buffer[12:16], "little"))
    dest = inttoa(int.from_bytes(buffer[16:20], "little"))

    if dest != hostaddress and hostaddress != "0.0.0.0":
        return None

    if (version != 4 or ihl < 20 or ihl > 60
            or ihl + ICMP_HEADER_LEN > recv_len or proto != 1):
        raise _alert(
            f"{log_time} ALERT: Malformed Paket. Dumping {recv_len} Bytes of data:",
            buffer[:recv_len],
        )

    icmp = buffer[ihl:recv_len]
    icmp_type = icmp[0]
    icmp_code = icmp[1]
    icmp_check = int.from_bytes(icmp[2:4], "big")
    data = buffer[ihl + ICMP_HEADER_LEN:recv_len]
    data_len = len(data)

    shown_src = src if loglevel > 0 else _MASKED
    sys.stderr.write(
        f"{log_time} Received packet from {shown_src} to {dest}, type {icmp_type}, "
        f"code {icmp_code}, with {data_len} Bytes of DATA.\n"
    )

    payload_sha1 = hashlib.sha1(data).hexdigest()
    payload_hd = hex_dump(data, True)
    payload_str = hex_string(data)

    json.append(
        "{"
        '"origin":"MADCAT", '
        f'"timestamp":"{log_time}", '
        f'"unixtime": {start.unix}, '
        f'"src_ip":"{src}", '
        f'"dest_ip":"{dest}", '
        f'"icmp_type": {icmp_type}, '
        f'"icmp_code": {icmp_code}, '
        '"proto":"ICMP", '
        '"event_type":"flow"'
    )
    analyze_ip_header(buffer, recv_len, json)
    json.append(
        ', "ICMP":{'
        f'"type": {icmp_type}, '
        f'"code": {icmp_code}, '
        f'"checksum":"0x{icmp_check:04x}"'
    )

    tainted = False
    data_offset = 0
    try:
        known: Optional[IcmpType] = IcmpType(icmp_type)
    except ValueError:
        known = None

    if known in (IcmpType.ECHOREPLY, IcmpType.ECHO):
        ident = int.from_bytes(icmp[4:6], "big")
        seq = int.from_bytes(icmp[6:8], "big")
        json.append(f', "type_str":"{known.label}", "id":"0x{ident:04x}", "seq": {seq}')
    elif known is IcmpType.UNREACH:
        unused = int.from_bytes(icmp[4:8], "little")
        json.append(f', "type_str":"unreach", "unused":"{unused:08x}"')
        tainted, data_offset = _analyze_unreach(icmp_code, data, recv_len, json)
    elif known is not None:
        json.append(f', "type_str":"{known.label}"')
    else:
        json.append(', "type_str":"tainted/unknown"')
        tainted = True

    if data_len - data_offset > 0 or tainted:
        _save_payload(data[data_offset:], data_path, log_time, dest, src,
                      icmp_type, icmp_code, loglevel)

    stop = now()
    duration = stop.value - start.value
    json.append(
        f', "tainted": {"true" if tainted else "false"}}}, '
        '"FLOW":{'
        f'"start":"{log_time}", '
        f'"end":"{stop.readable}", '
        f'"duration":{duration:.6f},  '
        f'"bytes_toserver": {data_len}, '
        f'"payload_hd":"{payload_hd}",'
        f'"payload_str":"{payload_str}",'
        f'"payload_sha1":"{payload_sha1}"'
        "}}"
    )
    return data_len