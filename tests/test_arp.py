import ipaddress

import pytest

from dperf.arp import ArpHeader, ArpOp, build_reply, build_request, parse_frame
from dperf.eth import ETH_ADDR_BROADCAST, ETH_ADDR_ZERO, EthAddr

LOCAL_MAC = EthAddr(bytes([0x02, 0, 0, 0, 0, 0x01]))
PEER_MAC = EthAddr(bytes([0x02, 0, 0, 0, 0, 0x02]))


def test_header_wire_prefix():
    header = ArpHeader(ArpOp.REQUEST, LOCAL_MAC, "10.0.0.1", ETH_ADDR_ZERO, "10.0.0.2")
    data = header.pack()
    assert len(data) == 28
    assert data[:8] == b"\x00\x01\x08\x00\x06\x04\x00\x01"
    assert data[14:18] == ipaddress.IPv4Address("10.0.0.1").packed


def test_header_round_trip():
    header = ArpHeader(ArpOp.REPLY, LOCAL_MAC, "192.168.1.3", PEER_MAC, "192.168.1.1")
    assert ArpHeader.unpack(header.pack()) == header


def test_unpack_truncated():
    with pytest.raises(ValueError):
        ArpHeader.unpack(b"\x00" * 10)


def test_build_request():
    frame = build_request(LOCAL_MAC, "192.168.1.3", "192.168.1.1")
    assert len(frame) == 42
    assert frame[:6] == ETH_ADDR_BROADCAST.octets
    assert frame[12:14] == b"\x08\x06"
    eth, arp = parse_frame(frame)
    assert eth.s_addr == LOCAL_MAC
    assert arp.op == ArpOp.REQUEST
    assert arp.sha == LOCAL_MAC
    assert arp.tha.is_zero()
    assert arp.sip == ipaddress.IPv4Address("192.168.1.3")
    assert arp.tip == ipaddress.IPv4Address("192.168.1.1")


def test_build_reply_swaps_addresses():
    request = build_request(PEER_MAC, "10.1.1.9", "10.1.1.1")
    reply = build_reply(request + b"\x00" * 18, LOCAL_MAC)
    assert len(reply) == 60
    eth, arp = parse_frame(reply)
    assert eth.d_addr == PEER_MAC
    assert eth.s_addr == LOCAL_MAC
    assert arp.op == ArpOp.REPLY
    assert arp.sha == LOCAL_MAC
    assert arp.tha == PEER_MAC
    assert arp.sip == ipaddress.IPv4Address("10.1.1.1")
    assert arp.tip == ipaddress.IPv4Address("10.1.1.9")


def test_reply_to_reply_is_rejected():
    request = build_request(PEER_MAC, "10.1.1.9", "10.1.1.1")
    reply = build_reply(request, LOCAL_MAC)
    with pytest.raises(ValueError):
        build_reply(reply, PEER_MAC)


def test_parse_frame_rejects_other_ether_type():
    frame = bytearray(build_request(LOCAL_MAC, "10.0.0.1", "10.0.0.2"))
    frame[12:14] = b"\x08\x00"
    with pytest.raises(ValueError):
        parse_frame(bytes(frame))


def test_unknown_op_is_kept():
    header = ArpHeader(9, LOCAL_MAC, "10.0.0.1", PEER_MAC, "10.0.0.2")
    assert ArpHeader.unpack(header.pack()).op == 9