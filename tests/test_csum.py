import ipaddress
import struct

import pytest

from dperf.csum import (
    IPPROTO_TCP,
    IPPROTO_UDP,
    ChecksumError,
    check_ip_packet,
    csum_update_u16,
    csum_update_u32,
    csum_update_u128,
    ipv4_header_checksum,
    l4_checksum_ipv4,
    l4_checksum_ipv6,
    pseudo_ipv4,
    pseudo_ipv6,
    raw_checksum,
)

SAMPLE_HEADER = bytes.fromhex("450000730000400040110000c0a80001c0a800c7")


def _tcp(payload):
    return struct.pack("!HHIIBBHHH", 40000, 80, 1, 0, 0x50, 0x18, 65535, 0, 0) + payload


def _udp(payload):
    return struct.pack("!HHHH", 40000, 53, 8 + len(payload), 0) + payload


def _ipv4_packet(proto, l4):
    header = bytearray(
        struct.pack(
            "!BBHHHBBH4s4s", 0x45, 0, 20 + len(l4), 1, 0, 64, proto, 0,
            bytes([10, 0, 0, 1]), bytes([10, 0, 0, 2]),
        )
    )
    struct.pack_into("!H", header, 10, ipv4_header_checksum(header))
    l4 = bytearray(l4)
    offset = 16 if proto == IPPROTO_TCP else 6
    struct.pack_into("!H", l4, offset, l4_checksum_ipv4(header, l4))
    return bytearray(header + l4)


def _ipv6_packet(proto, l4):
    header = struct.pack(
        "!IHBB16s16s", 0x60000000, len(l4), proto, 64,
        ipaddress.IPv6Address("fd00::1").packed, ipaddress.IPv6Address("fd00::2").packed,
    )
    l4 = bytearray(l4)
    offset = 16 if proto == IPPROTO_TCP else 6
    struct.pack_into("!H", l4, offset, l4_checksum_ipv6(header, l4))
    return bytearray(header + l4)


def test_ipv4_header_checksum_worked_example():
    assert ipv4_header_checksum(SAMPLE_HEADER) == 0xB861


def test_ipv4_header_checksum_ignores_stored_field():
    stored = bytearray(SAMPLE_HEADER)
    stored[10:12] = b"\x12\x34"
    assert ipv4_header_checksum(stored) == ipv4_header_checksum(SAMPLE_HEADER)


def test_header_with_checksum_sums_to_all_ones():
    header = bytearray(SAMPLE_HEADER)
    struct.pack_into("!H", header, 10, ipv4_header_checksum(header))
    assert raw_checksum(header) == 0xFFFF


def test_raw_checksum_empty():
    assert raw_checksum(b"") == 0


def test_raw_checksum_pads_odd_length():
    assert raw_checksum(b"\x12\x34\x56") == raw_checksum(b"\x12\x34\x56\x00")


def test_raw_checksum_word_order_does_not_matter():
    a, b = b"\xde\xad\xbe\xef", b"\x01\x02\xff\xfe"
    assert raw_checksum(a + b) == raw_checksum(b + a)


def test_update_u16_matches_recomputation():
    header = bytearray(SAMPLE_HEADER)
    old_csum = ipv4_header_checksum(header)
    (old_word,) = struct.unpack_from("!H", header, 8)
    header[8] = 32
    (new_word,) = struct.unpack_from("!H", header, 8)
    assert csum_update_u16(old_csum, old_word, new_word) == ipv4_header_checksum(header)


@pytest.mark.parametrize("csum", [0x0001, 0x1234, 0xBEEF])
def test_update_u32_with_zero_words_keeps_checksum(csum):
    assert csum_update_u32(csum, 0, 0) == csum
    assert csum_update_u128(csum, [0, 0, 0, 0], bytes(16)) == csum


def test_update_u32_is_symmetric():
    assert csum_update_u32(0x4321, 0x0A000001, 0xC0A80002) == csum_update_u32(0x4321, 0xC0A80002, 0x0A000001)


def test_update_u128_single_word_matches_u32():
    assert csum_update_u128(0x1111, [0x0A000001, 0, 0, 0], [0xC0A80001, 0, 0, 0]) == csum_update_u32(
        0x1111, 0x0A000001, 0xC0A80001
    )


def test_update_u128_needs_four_words():
    with pytest.raises(ValueError):
        csum_update_u128(0, [1, 2, 3], [1, 2, 3])
    with pytest.raises(ValueError):
        csum_update_u128(0, b"\x00" * 8, b"\x00" * 8)


def test_pseudo_ipv4_matches_packed_header():
    src, dst = "10.0.0.1", "192.168.1.200"
    packed = (
        ipaddress.IPv4Address(src).packed + ipaddress.IPv4Address(dst).packed
        + bytes((0, IPPROTO_TCP)) + struct.pack("!H", 1500)
    )
    assert pseudo_ipv4(IPPROTO_TCP, src, dst, 1500) == raw_checksum(packed)


def test_pseudo_ipv6_accepts_text_and_bytes():
    src = ipaddress.IPv6Address("fd00::1")
    dst = ipaddress.IPv6Address("fd00::2")
    assert pseudo_ipv6(IPPROTO_UDP, "fd00::1", "fd00::2", 100) == pseudo_ipv6(
        IPPROTO_UDP, src.packed, dst.packed, 100
    )


@pytest.mark.parametrize("payload", [b"", b"GET / HTTP/1.1\r\n", b"odd"])
def test_ipv4_tcp_round_trip(payload):
    assert check_ip_packet(_ipv4_packet(IPPROTO_TCP, _tcp(payload))) == IPPROTO_TCP


@pytest.mark.parametrize("payload", [b"", b"x", b"abcdefgh"])
def test_ipv4_udp_round_trip(payload):
    assert check_ip_packet(_ipv4_packet(IPPROTO_UDP, _udp(payload))) == IPPROTO_UDP


def test_ipv6_round_trips():
    assert check_ip_packet(_ipv6_packet(IPPROTO_UDP, _udp(b"hello"))) == IPPROTO_UDP
    assert check_ip_packet(_ipv6_packet(IPPROTO_TCP, _tcp(b"world!"))) == IPPROTO_TCP


def test_corrupt_ip_header_detected():
    packet = _ipv4_packet(IPPROTO_TCP, _tcp(b"data"))
    packet[8] ^= 0x01
    with pytest.raises(ChecksumError, match="csum ip error"):
        check_ip_packet(packet)


def test_corrupt_tcp_payload_detected():
    packet = _ipv4_packet(IPPROTO_TCP, _tcp(b"data"))
    packet[-1] ^= 0xFF
    with pytest.raises(ChecksumError, match="csum tcp error"):
        check_ip_packet(packet)


def test_corrupt_udp_payload_detected():
    packet = _ipv6_packet(IPPROTO_UDP, _udp(b"data"))
    packet[-2] ^= 0x10
    with pytest.raises(ChecksumError, match="csum udp error"):
        check_ip_packet(packet)


def test_udp_checksum_is_never_zero():
    for payload in (b"", b"\x00", b"\xff\xff", b"abc"):
        header = _ipv4_packet(IPPROTO_UDP, _udp(payload))[:20]
        assert l4_checksum_ipv4(header, _udp(payload)) != 0 or False
        assert 0 < l4_checksum_ipv4(header, _udp(payload)) <= 0xFFFF


def test_short_l4_data_rejected():
    packet = _ipv4_packet(IPPROTO_TCP, _tcp(b"payload"))
    with pytest.raises(ValueError):
        l4_checksum_ipv4(packet[:20], packet[20:30])


def test_empty_packet_rejected():
    with pytest.raises(ValueError):
        check_ip_packet(b"")