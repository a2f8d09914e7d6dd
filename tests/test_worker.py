import hashlib
import json as jsonlib
import socket

import pytest

from madcat.helpers import JsonBuffer
from madcat.worker import IcmpType, worker_icmp

HOST = "192.0.2.1"
PEER = "198.51.100.7"


def ipv4(src, dst, proto, payload, ihl=5, options=b""):
    total = ihl * 4 + len(payload)
    header = bytes([0x40 | ihl, 0]) + total.to_bytes(2, "big")
    header += b"\x00\x01\x00\x00" + bytes([64, proto]) + b"\x00\x00"
    header += socket.inet_aton(src) + socket.inet_aton(dst) + options
    return header + payload


def icmp(type_, code, rest=b"\x00\x00\x00\x00", data=b""):
    return bytes([type_, code, 0x12, 0x34]) + rest + data


def udp(sport, dport, payload):
    length = 8 + len(payload)
    return (sport.to_bytes(2, "big") + dport.to_bytes(2, "big")
            + length.to_bytes(2, "big") + b"\x00\x00" + payload)


def tcp(sport, dport, payload, flags=0x02):
    return (sport.to_bytes(2, "big") + dport.to_bytes(2, "big")
            + (1000).to_bytes(4, "big") + (0).to_bytes(4, "big")
            + bytes([5 << 4, flags]) + (512).to_bytes(2, "big")
            + b"\x00\x00\x00\x00" + payload)


def run(packet, tmp_path, host=HOST, loglevel=0):
    buf = JsonBuffer()
    result = worker_icmp(packet, len(packet), host, str(tmp_path) + "/", buf, loglevel)
    return result, buf


def test_echo_request_record(tmp_path):
    payload = b"ping-data"
    packet = ipv4(PEER, HOST, 1, icmp(8, 0, b"\x12\x34\x00\x07", payload))
    result, buf = run(packet, tmp_path)
    assert result == len(payload)
    record = jsonlib.loads(buf.getvalue())
    assert record["src_ip"] == PEER
    assert record["dest_ip"] == HOST
    assert record["icmp_type"] == IcmpType.ECHO
    assert record["ICMP"]["type_str"] == "echo"
    assert record["ICMP"]["id"] == "0x1234"
    assert record["ICMP"]["seq"] == 7
    assert record["ICMP"]["tainted"] is False
    assert record["FLOW"]["bytes_toserver"] == len(payload)
    assert record["FLOW"]["payload_sha1"] == hashlib.sha1(payload).hexdigest()
    assert record["FLOW"]["payload_str"] == payload.hex()
    assert record["IP"]["src_addr"] == PEER


def test_echo_payload_saved_to_file(tmp_path):
    payload = b"abcdef"
    packet = ipv4(PEER, HOST, 1, icmp(0, 0, b"\x00\x01\x00\x02", payload))
    run(packet, tmp_path)
    files = list(tmp_path.glob("*.ipm"))
    assert len(files) == 1
    assert files[0].read_bytes() == payload
    assert files[0].name.endswith(f"_{HOST}_{PEER}-0_0.ipm")


def test_echo_without_payload_writes_no_file(tmp_path):
    packet = ipv4(PEER, HOST, 1, icmp(8, 0))
    result, buf = run(packet, tmp_path)
    assert result == 0
    assert list(tmp_path.glob("*.ipm")) == []
    assert jsonlib.loads(buf.getvalue())["ICMP"]["type_str"] == "echo"


def test_packet_for_other_host_is_ignored(tmp_path):
    packet = ipv4(PEER, "203.0.113.9", 1, icmp(8, 0, data=b"x"))
    result, buf = run(packet, tmp_path)
    assert result is None
    assert buf.getvalue() == ""


def test_any_address_accepts_all(tmp_path):
    packet = ipv4(PEER, "203.0.113.9", 1, icmp(8, 0))
    result, buf = run(packet, tmp_path, host="0.0.0.0")
    assert result == 0
    assert jsonlib.loads(buf.getvalue())["dest_ip"] == "203.0.113.9"


def test_too_short_packet_raises(tmp_path, capsys):
    with pytest.raises(ValueError):
        run(b"\x45" + b"\x00" * 10, tmp_path)
    assert "ALERT" in capsys.readouterr().err


def test_wrong_protocol_raises(tmp_path):
    packet = ipv4(PEER, HOST, 17, icmp(8, 0))
    with pytest.raises(ValueError):
        run(packet, tmp_path)


def test_wrong_version_raises(tmp_path):
    packet = bytearray(ipv4(PEER, HOST, 1, icmp(8, 0)))
    packet[0] = 0x65
    with pytest.raises(ValueError):
        run(bytes(packet), tmp_path)


def test_port_unreachable_with_inner_udp(tmp_path):
    inner = ipv4(HOST, PEER, 17, udp(5353, 53, b"hello"))
    packet = ipv4(PEER, HOST, 1, icmp(3, 3, data=inner))
    result, buf = run(packet, tmp_path)
    assert result == len(inner)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["type_str"] == "unreach"
    assert record["ICMP"]["code_str"] == "port_unreach"
    assert record["ICMP"]["UDP"]["src_port"] == 5353
    assert record["ICMP"]["UDP"]["dest_port"] == 53
    assert record["ICMP"]["IP"]["dest_addr"] == PEER
    assert record["ICMP"]["tainted"] is False
    files = list(tmp_path.glob("*.ipm"))
    assert [f.read_bytes() for f in files] == [b"hello"]


def test_unreachable_with_inner_tcp_is_valid_json(tmp_path):
    inner = ipv4(HOST, PEER, 6, tcp(40000, 443, b"xy"))
    packet = ipv4(PEER, HOST, 1, icmp(3, 1, data=inner))
    _, buf = run(packet, tmp_path)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["code_str"] == "host_unreach"
    assert record["ICMP"]["TCP"]["syn"] is True
    assert record["ICMP"]["TCP"]["dest_port"] == 443
    assert record["ICMP"]["tainted"] is False
    assert [f.read_bytes() for f in tmp_path.glob("*.ipm")] == [b"xy"]


def test_unreachable_with_short_inner_packet_is_tainted(tmp_path):
    inner = b"\x45\x00\x00\x10"
    packet = ipv4(PEER, HOST, 1, icmp(3, 0, data=inner))
    _, buf = run(packet, tmp_path)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["tainted"] is True
    assert [f.read_bytes() for f in tmp_path.glob("*.ipm")] == [inner]


def test_unknown_unreach_code_is_tainted(tmp_path):
    inner = ipv4(HOST, PEER, 17, udp(1, 2, b"z"))
    packet = ipv4(PEER, HOST, 1, icmp(3, 99, data=inner))
    _, buf = run(packet, tmp_path)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["code_str"] == "tainted/unkown"
    assert record["ICMP"]["tainted"] is True


def test_unknown_type_is_tainted_and_saved(tmp_path):
    packet = ipv4(PEER, HOST, 1, icmp(200, 0, data=b"\x01\x02"))
    _, buf = run(packet, tmp_path)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["type_str"] == "tainted/unknown"
    assert record["ICMP"]["tainted"] is True
    assert [f.read_bytes() for f in tmp_path.glob("*.ipm")] == [b"\x01\x02"]


@pytest.mark.parametrize("member", [IcmpType.TIMXCEED, IcmpType.REDIRECT, IcmpType.EXTECHOREPLY])
def test_known_types_use_lowercase_label(tmp_path, member):
    packet = ipv4(PEER, HOST, 1, icmp(int(member), 0))
    _, buf = run(packet, tmp_path)
    record = jsonlib.loads(buf.getvalue())
    assert record["ICMP"]["type_str"] == member.name.lower()
    assert record["ICMP"]["tainted"] is False


def test_source_masked_at_default_loglevel(tmp_path, capsys):
    packet = ipv4(PEER, HOST, 1, icmp(8, 0, data=b"q"))
    run(packet, tmp_path, loglevel=0)
    err = capsys.readouterr().err
    assert "<masked by default loglevel>" in err
    assert PEER not in err


def test_source_shown_at_debug_loglevel(tmp_path, capsys):
    packet = ipv4(PEER, HOST, 1, icmp(8, 0, data=b"q"))
    run(packet, tmp_path, loglevel=1)
    err = capsys.readouterr().err
    assert PEER in err
    assert "FILENAME" in err


def test_unwritable_path_is_reported(tmp_path, capsys):
    packet = ipv4(PEER, HOST, 1, icmp(8, 0, data=b"data"))
    buf = JsonBuffer()
    result = worker_icmp(packet, len(packet), HOST, str(tmp_path / "missing") + "/", buf, 0)
    assert result == 4
    assert "Could not write to file" in capsys.readouterr().err
    assert jsonlib.loads(buf.getvalue())["FLOW"]["bytes_toserver"] == 4