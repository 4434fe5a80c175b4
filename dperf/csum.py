"""Internet checksums for IPv4, IPv6, TCP and UDP.

All 16-bit values are in network interpretation: packing a result with
``struct.pack("!H", value)`` gives the bytes that go on the wire.
"""

from __future__ import annotations

import ipaddress
import struct
from typing import Iterable, Union

IPPROTO_TCP = 6
IPPROTO_UDP = 17

IPV4_HDR_LEN = 20
IPV6_HDR_LEN = 40

_TCP_CSUM_OFFSET = 16
_UDP_CSUM_OFFSET = 6
_IPV4_CSUM_OFFSET = 10

Words128 = Union[bytes, bytearray, memoryview, Iterable[int]]


class ChecksumError(ValueError):
    """A packet carries a wrong checksum."""


def _fold(value: int) -> int:
    while value >> 16:
        value = (value & 0xFFFF) + (value >> 16)
    return value


def raw_checksum(data) -> int:
    """Ones' complement sum of ``data`` as 16-bit words, folded, not inverted."""
    data = bytes(data)
    if len(data) % 2:
        data += b"\x00"
    return _fold(sum(struct.unpack(f"!{len(data) // 2}H", data)))


def csum_update_u16(ocsum: int, oval: int, nval: int) -> int:
    """Adjust a checksum for a 16-bit field that changed from ``oval`` to ``nval``."""
    csum = (~ocsum & 0xFFFF) + (~oval & 0xFFFF) + (nval & 0xFFFF)
    csum = (csum >> 16) + (csum & 0xFFFF)
    csum += csum >> 16
    return ~csum & 0xFFFF


def _complement_halves(value: int) -> int:
    value &= 0xFFFFFFFF
    return (~(value >> 16) & 0xFFFF) + (~value & 0xFFFF)


def csum_update_u32(ocsum: int, oval: int, nval: int) -> int:
    """Fold the complemented halves of two 32-bit words into ``ocsum``."""
    return _fold(_complement_halves(oval) + _complement_halves(nval) + (ocsum & 0xFFFF))


def _words128(value: Words128):
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != 16:
            raise ValueError("a 128-bit value has 16 bytes")
        return struct.unpack("!4I", raw)
    words = tuple(value)
    if len(words) != 4:
        raise ValueError("a 128-bit value has four 32-bit words")
    return words


def csum_update_u128(ocsum: int, oval: Words128, nval: Words128) -> int:
    """Apply :func:`csum_update_u32` to each of four 32-bit word pairs."""
    csum = ocsum & 0xFFFF
    for old, new in zip(_words128(oval), _words128(nval)):
        csum = csum_update_u32(csum, old, new)
    return csum


def pseudo_ipv4(proto: int, sip, dip, length: int) -> int:
    """Folded sum of the IPv4 pseudo header; addresses as int, str or 4 bytes."""
    src = int(ipaddress.IPv4Address(sip))
    dst = int(ipaddress.IPv4Address(dip))
    total = (
        (src & 0xFFFF) + (src >> 16)
        + (dst & 0xFFFF) + (dst >> 16)
        + (proto & 0xFF)
        + (length & 0xFFFF)
    )
    return _fold(total)


def pseudo_ipv6(proto: int, saddr, daddr, length: int) -> int:
    """Folded sum of the IPv6 pseudo header; addresses as int, str or 16 bytes."""
    src = ipaddress.IPv6Address(saddr).packed
    dst = ipaddress.IPv6Address(daddr).packed
    return raw_checksum(src + dst + bytes((0, proto & 0xFF)) + struct.pack("!H", length & 0xFFFF))


def _ipv4_header_len(header: bytes) -> int:
    if len(header) < IPV4_HDR_LEN:
        raise ValueError("truncated IPv4 header")
    ihl = (header[0] & 0x0F) * 4
    if ihl < IPV4_HDR_LEN or len(header) < ihl:
        raise ValueError("bad IPv4 header length")
    return ihl


def ipv4_header_checksum(header) -> int:
    """Checksum to store in an IPv4 header; the stored checksum field is ignored."""
    header = bytes(header)
    ihl = _ipv4_header_len(header)
    data = header[:_IPV4_CSUM_OFFSET] + b"\x00\x00" + header[_IPV4_CSUM_OFFSET + 2:ihl]
    return ~raw_checksum(data) & 0xFFFF


def _l4_csum_offset(proto: int) -> int:
    return _TCP_CSUM_OFFSET if proto == IPPROTO_TCP else _UDP_CSUM_OFFSET


def _l4_segment(l4, length: int, proto: int) -> bytes:
    segment = bytes(l4)
    if length < 0 or len(segment) < length:
        raise ValueError("layer 4 data shorter than the IP header says")
    segment = segment[:length]
    offset = _l4_csum_offset(proto)
    if len(segment) < offset + 2:
        raise ValueError("truncated layer 4 header")
    return segment[:offset] + b"\x00\x00" + segment[offset + 2:]


def _finish(total: int, proto: int) -> int:
    csum = ~_fold(total) & 0xFFFF
    if csum == 0 and proto == IPPROTO_UDP:
        return 0xFFFF
    return csum


def l4_checksum_ipv4(ip_header, l4) -> int:
    """TCP/UDP checksum for an IPv4 packet; the stored checksum field is ignored."""
    header = bytes(ip_header)
    ihl = _ipv4_header_len(header)
    (total_len,) = struct.unpack_from("!H", header, 2)
    length = total_len - ihl
    proto = header[9]
    segment = _l4_segment(l4, length, proto)
    total = raw_checksum(segment) + pseudo_ipv4(proto, header[12:16], header[16:20], length)
    return _finish(total, proto)


def l4_checksum_ipv6(ip_header, l4) -> int:
    """TCP/UDP checksum for an IPv6 packet; the stored checksum field is ignored."""
    header = bytes(ip_header)
    if len(header) < IPV6_HDR_LEN:
        raise ValueError("truncated IPv6 header")
    (length,) = struct.unpack_from("!H", header, 4)
    proto = header[6]
    segment = _l4_segment(l4, length, proto)
    total = raw_checksum(segment) + pseudo_ipv6(proto, header[8:24], header[24:40], length)
    return _finish(total, proto)


def check_ip_packet(packet) -> int:
    """Verify the checksums of an IP packet and return its layer 4 protocol.

    Anything that is not TCP is checked as UDP.
    """
    packet = bytes(packet)
    if not packet:
        raise ValueError("empty packet")

    if packet[0] >> 4 == 4:
        ihl = _ipv4_header_len(packet)
        (stored_ip,) = struct.unpack_from("!H", packet, _IPV4_CSUM_OFFSET)
        if stored_ip != ipv4_header_checksum(packet):
            raise ChecksumError("csum ip error")
        proto = packet[9]
        l4 = packet[ihl:]
        expected = l4_checksum_ipv4(packet, l4)
    else:
        if len(packet) < IPV6_HDR_LEN:
            raise ValueError("truncated IPv6 header")
        proto = packet[6]
        l4 = packet[IPV6_HDR_LEN:]
        expected = l4_checksum_ipv6(packet, l4)

    (stored_l4,) = struct.unpack_from("!H", l4, _l4_csum_offset(proto))
    if stored_l4 != expected:
        name = "tcp" if proto == IPPROTO_TCP else "udp"
        raise ChecksumError(f"csum {name} error")
    return proto