"""ARP packets: building gateway requests and answering requests."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple, Union

from dperf.eth import (
    ETH_ADDR_BROADCAST,
    ETH_ADDR_LEN,
    ETH_ADDR_ZERO,
    ETH_HDR_LEN,
    ETHER_TYPE_ARP,
    ETHER_TYPE_IPV4,
    EthAddr,
    EthHeader,
)

ARP_HDR_LEN = 28
ARP_HRD_ETHER = 1

_ARP = struct.Struct("!HHBBH6s4s6s4s")

Ipv4Like = Union[ipaddress.IPv4Address, str, int, bytes]


class ArpOp(IntEnum):
    """ARP operation codes."""

    REQUEST = 1
    REPLY = 2


def _op(value: int) -> int:
    try:
        return ArpOp(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class ArpHeader:
    """An ARP header for IPv4 over Ethernet."""

    op: int
    sha: EthAddr
    sip: ipaddress.IPv4Address
    tha: EthAddr
    tip: ipaddress.IPv4Address
    hrd: int = ARP_HRD_ETHER
    pro: int = ETHER_TYPE_IPV4
    hln: int = ETH_ADDR_LEN
    pln: int = 4

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", _op(self.op))
        object.__setattr__(self, "sip", ipaddress.IPv4Address(self.sip))
        object.__setattr__(self, "tip", ipaddress.IPv4Address(self.tip))

    def pack(self) -> bytes:
        """Return the 28 header bytes in wire order."""
        return _ARP.pack(
            self.hrd,
            self.pro,
            self.hln,
            self.pln,
            int(self.op),
            self.sha.octets,
            self.sip.packed,
            self.tha.octets,
            self.tip.packed,
        )

    @staticmethod
    def unpack(data: bytes) -> "ArpHeader":
        """Read a header from the start of ``data``."""
        if len(data) < ARP_HDR_LEN:
            raise ValueError("truncated arp header")
        hrd, pro, hln, pln, op, sha, sip, tha, tip = _ARP.unpack_from(bytes(data[:ARP_HDR_LEN]))
        return ArpHeader(op, EthAddr(sha), sip, EthAddr(tha), tip, hrd, pro, hln, pln)


def parse_frame(frame: bytes) -> Tuple[EthHeader, ArpHeader]:
    """Split an Ethernet frame carrying ARP into its two headers."""
    eth = EthHeader.unpack(frame)
    if eth.ether_type != ETHER_TYPE_ARP:
        raise ValueError(f"not an arp frame: ether type 0x{eth.ether_type:04x}")
    return eth, ArpHeader.unpack(bytes(frame[ETH_HDR_LEN:]))


def build_request(smac: EthAddr, sip: Ipv4Like, dip: Ipv4Like) -> bytes:
    """Return a broadcast frame asking who has ``dip``, sent from ``sip``/``smac``."""
    eth = EthHeader(ETH_ADDR_BROADCAST, smac, ETHER_TYPE_ARP)
    arp = ArpHeader(ArpOp.REQUEST, smac, sip, ETH_ADDR_ZERO, dip)
    return eth.pack() + arp.pack()


def build_reply(frame: bytes, local_mac: EthAddr) -> bytes:
    """Turn a received request frame into the reply announcing ``local_mac``.

    Bytes after the ARP header (frame padding) are kept as they were.
    """
    eth, request = parse_frame(frame)
    if request.op != ArpOp.REQUEST:
        raise ValueError("only an arp request can be answered")
    dmac = eth.s_addr
    reply_eth = EthHeader(dmac, local_mac, ETHER_TYPE_ARP)
    reply = ArpHeader(ArpOp.REPLY, local_mac, request.tip, dmac, request.sip)
    return reply_eth.pack() + reply.pack() + bytes(frame[ETH_HDR_LEN + ARP_HDR_LEN:])