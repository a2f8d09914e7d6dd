"""Parsers for IPv4, UDP and TCP headers that append their fields to a JSON record.

All functions take a packet that begins with the IPv4 header. The number of
bytes that are to be trusted is given by ``recv_len``; it is never taken to be
larger than the data actually handed in.
"""

from __future__ import annotations

from typing import Optional

from .helpers import JsonBuffer, hex_string, inttoa
from .options import (
    IP_OR_TCP_HEADER_MINLEN,
    UDP_HEADER_LEN,
    IpOption,
    TcpOption,
    ip_option_name,
    tcp_option_spec,
)


def _bool(flag: object) -> str:
    return "true" if flag else "false"


def _u16(packet: bytes, pos: int) -> int:
    return int.from_bytes(packet[pos:pos + 2], "big")


def _u32(packet: bytes, pos: int) -> int:
    return int.from_bytes(packet[pos:pos + 4], "big")


def _usable_length(packet: bytes, recv_len: int) -> int:
    return max(0, min(recv_len, len(packet)))


def parse_ipopt(name: str, packet: bytes, pos: int, end: int, json: JsonBuffer) -> Optional[int]:
    """Record the IP option starting at ``pos`` under ``name``.

    The option's length byte follows its type byte. Returns the position of
    the next option, or None if the option is malformed (tainted), in which
    case nothing is recorded.
    """
    if pos + 1 >= end:
        return None
    opt_len = packet[pos + 1]
    if opt_len < 2 or pos + opt_len > end:
        return None
    json.append(f'"{name}":"{hex_string(packet[pos + 2:pos + opt_len])}", ')
    return pos + opt_len


def _parse_tcpopt(name: str, length: int, packet: bytes, pos: int, end: int,
                  json: JsonBuffer) -> Optional[int]:
    if pos + 1 >= end or packet[pos + 1] != length or pos + length > end:
        return None
    json.append(f'"{name}":"{hex_string(packet[pos + 2:pos + length])}", ')
    return pos + length


def analyze_ip_header(packet: bytes, recv_len: int, json: JsonBuffer) -> bool:
    """Append an "IP" object describing the IPv4 header and its options.

    Returns True if the header is tainted: too short to hold an IPv4 header
    (nothing is appended then), or its options could not be parsed.
    """
    packet = bytes(packet)
    recv_len = _usable_length(packet, recv_len)
    if recv_len - IP_OR_TCP_HEADER_MINLEN <= 0:
        return True
    tainted = False

    ihl = packet[0] & 0x0F
    version = packet[0] >> 4
    src = inttoa(int.from_bytes(packet[12:16], "little"))
    dst = inttoa(int.from_bytes(packet[16:20], "little"))
    json.append(
        ', "IP":{'
        f'"hdr_len": {ihl * 4}, '
        f'"version": {version}, '
        f'"tos":"0x{packet[1]:02x}", '
        f'"tot_len": {_u16(packet, 2)}, '
        f'"id":"0x{_u16(packet, 4):04x}", '
        f'"flags":"0x{_u16(packet, 6):04x}", '
        f'"ttl": {packet[8]}, '
        f'"protocol": {packet[9]}, '
        f'"checksum":"0x{_u16(packet, 10):04x}", '
        f'"src_addr":"{src}", '
        f'"dest_addr":"{dst}"'
    )

    if ihl > 5:
        header_end = ihl * 4
        end = header_end
        if end > recv_len:
            end = recv_len
            tainted = True
        pos = IP_OR_TCP_HEADER_MINLEN
        eol = False
        json.append(', "ip_options": {')
        while not tainted and not eol and pos < header_end:
            code = packet[pos]
            if code == IpOption.EOOL:
                json.append('"EOL":"", ')
                pos += 1
                eol = True
            elif code == IpOption.NOP:
                json.append('"NOP":"" , ')
                pos += 1
            else:
                name = ip_option_name(code)
                next_pos = parse_ipopt(name, packet, pos, end, json) if name else None
                if next_pos is None:
                    tainted = True
                else:
                    pos = next_pos
        padding = hex_string(packet[pos:end])
        json.append(f'"tainted": {_bool(tainted)}, "padding_hex":"{padding}"}}')
    json.append("}")
    return tainted


def analyze_udp_header(packet: bytes, recv_len: int, json: JsonBuffer) -> int:
    """Append a "UDP" object and return the number of payload bytes.

    The count is taken from ``recv_len``, not from the UDP length field.
    Returns -1, appending nothing, if no payload byte follows the header.
    """
    packet = bytes(packet)
    recv_len = _usable_length(packet, recv_len)
    if recv_len == 0:
        return -1
    ihl = packet[0] & 0x0F
    header_end = ihl * 4 + UDP_HEADER_LEN
    if recv_len - header_end <= 0:
        return -1
    udp = ihl * 4
    json.append(
        ', "UDP":{'
        f'"src_port": {_u16(packet, udp)} ,'
        f'"dest_port": {_u16(packet, udp + 2)} ,'
        f'"len": {_u16(packet, udp + 4)} ,'
        f'"checksum":"0x{_u16(packet, udp + 6):04x}"'
        "}"
    )
    return recv_len - header_end


def analyze_tcp_header(packet: bytes, recv_len: int, json: JsonBuffer) -> int:
    """Append a "TCP" object and return the number of bytes after the TCP header.

    The "TCP" object is left open so the caller can add to it and close it.
    Returns -1, appending nothing, if the packet cannot hold a minimal TCP
    header; the returned count may be negative if the header claims to be
    longer than the data received.
    """
    packet = bytes(packet)
    recv_len = _usable_length(packet, recv_len)
    if recv_len == 0:
        return -1
    ihl = packet[0] & 0x0F
    tcp = ihl * 4
    if recv_len - (tcp + IP_OR_TCP_HEADER_MINLEN) < 0:
        return -1

    res1 = packet[tcp + 12] & 0x0F
    doff = packet[tcp + 12] >> 4
    flags = packet[tcp + 13]
    res2 = flags >> 6
    data_bytes = recv_len - (tcp + doff * 4)

    json.append(
        ', "TCP":{'
        f'"src_port": {_u16(packet, tcp)}, '
        f'"dest_port": {_u16(packet, tcp + 2)}, '
        f'"seq": {_u32(packet, tcp + 4)}, '
        f'"ack_seq": {_u32(packet, tcp + 8)}, '
        f'"hdr_len": {doff * 4}, '
        f'"res1": {res1:x}, '
        f'"ecn": {_bool(res2 & 0b001)}, '
        f'"cwr": {_bool(res2 & 0b010)}, '
        f'"non": {_bool(res2 & 0b100)}, '
        f'"urg": {_bool(flags & 0x20)}, '
        f'"ack": {_bool(flags & 0x10)}, '
        f'"psh": {_bool(flags & 0x08)}, '
        f'"rst": {_bool(flags & 0x04)}, '
        f'"syn": {_bool(flags & 0x02)}, '
        f'"fin": {_bool(flags & 0x01)}, '
        f'"tcp_flags":"{(res1 << 10) | flags:x}", '
        f'"window": {_u16(packet, tcp + 14)}, '
        f'"checksum":"0x{_u16(packet, tcp + 16):02x}", '
        f'"urg_ptr":"0x{_u16(packet, tcp + 18):04x}"'
    )

    if doff > 5:
        header_end = tcp + doff * 4
        end = header_end
        tainted = False
        if end > recv_len:
            end = recv_len
            tainted = True
        pos = tcp + IP_OR_TCP_HEADER_MINLEN
        eol = False
        json.append(', "tcp_options": {')
        while not tainted and not eol and pos < header_end:
            code = packet[pos]
            if code == TcpOption.NOP:
                json.append('"NOP":"", ')
                pos += 1
            elif code == TcpOption.EOL:
                json.append('"EOL":"", ')
                pos += 1
                eol = True
            else:
                spec = tcp_option_spec(code)
                next_pos = (
                    _parse_tcpopt(spec.name, spec.length, packet, pos, end, json)
                    if spec else None
                )
                if next_pos is None:
                    tainted = True
                else:
                    pos = next_pos
        padding = hex_string(packet[pos:end])
        json.append(f'"tainted": {_bool(tainted)}, "padding_hex":"{padding}"}}')
    return data_bytes