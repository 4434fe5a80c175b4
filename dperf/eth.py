"""Ethernet addresses and Ethernet II headers."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass

ETH_ADDR_LEN = 6
ETH_ADDR_STR_LEN = 17
ETH_HDR_LEN = 14

ETHER_TYPE_IPV4 = 0x0800
ETHER_TYPE_ARP = 0x0806
ETHER_TYPE_IPV6 = 0x86DD

_HEX_FIELD = r"\s*(?:0[xX])?([0-9a-fA-F]+)"
_MAC_RE = re.compile(":".join([_HEX_FIELD] * ETH_ADDR_LEN))
_HEADER = struct.Struct("!6s6sH")


@dataclass(frozen=True)
class EthAddr:
    """A six-byte hardware address."""

    octets: bytes

    def __post_init__(self) -> None:
        octets = bytes(self.octets)
        if len(octets) != ETH_ADDR_LEN:
            raise ValueError(f"an ethernet address has {ETH_ADDR_LEN} bytes, got {len(octets)}")
        object.__setattr__(self, "octets", octets)

    def is_zero(self) -> bool:
        """True when every byte of the address is zero."""
        return not any(self.octets)

    def __str__(self) -> str:
        return ":".join(f"{octet:x}" for octet in self.octets)

    def __bytes__(self) -> bytes:
        return self.octets


ETH_ADDR_ZERO = EthAddr(bytes(ETH_ADDR_LEN))
ETH_ADDR_BROADCAST = EthAddr(b"\xff" * ETH_ADDR_LEN)


def parse_eth_addr(text: str) -> EthAddr:
    """Parse an address written as six colon-separated hex numbers (17 characters)."""
    if len(text) != ETH_ADDR_STR_LEN:
        raise ValueError(f"bad mac {text!r}")
    match = _MAC_RE.match(text)
    if match is None:
        raise ValueError(f"bad mac {text!r}")
    values = [int(group, 16) for group in match.groups()]
    if any(value > 0xFF for value in values):
        raise ValueError(f"bad mac {text!r}")
    return EthAddr(bytes(values))


@dataclass(frozen=True)
class EthHeader:
    """An Ethernet II header: destination, source and ether type."""

    d_addr: EthAddr
    s_addr: EthAddr
    ether_type: int

    def pack(self) -> bytes:
        """Return the 14 header bytes in wire order."""
        return _HEADER.pack(self.d_addr.octets, self.s_addr.octets, self.ether_type & 0xFFFF)

    @staticmethod
    def unpack(data: bytes) -> "EthHeader":
        """Read a header from the start of ``data``."""
        if len(data) < ETH_HDR_LEN:
            raise ValueError("truncated ethernet header")
        d_addr, s_addr, ether_type = _HEADER.unpack_from(bytes(data[:ETH_HDR_LEN]))
        return EthHeader(EthAddr(d_addr), EthAddr(s_addr), ether_type)

    def swapped(self) -> "EthHeader":
        """Return the header with source and destination exchanged."""
        return EthHeader(self.s_addr, self.d_addr, self.ether_type)