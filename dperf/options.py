"""Configuration model: limits, defaults and the data a configuration holds."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, List, Optional, Union

from dperf.eth import ETH_ADDR_ZERO, EthAddr

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

RTE_ARG_LEN = 64
CACHE_ALIGN_SIZE = 64
TCP_WIN = 1460 * 40
NETWORK_PORT_NUM = 65536

PACKET_SIZE_MAX = 1514
DEFAULT_CPS = 1000
DEFAULT_INTERVAL = 1
DEFAULT_DURATION = 60
DEFAULT_TTL = 64
ND_TTL = 255
DEFAULT_LAUNCH_MAX = 10
DEFAULT_LAUNCH_MIN = 4
DEFAULT_LAUNCH = 4
DELAY_SEC = 4
NEIGH_SEC = 60
WAIT_DEFAULT = 3
SLOW_START_DEFAULT = 30
SLOW_START_MIN = 10
SLOW_START_MAX = 600
KEEPALIVE_REQ_NUM = 32767

ETHER_CRC_LEN = 4
JUMBO_MTU_MIN = 9000
JUMBO_MTU_MAX = 9710
JUMBO_MTU_DEFAULT = JUMBO_MTU_MAX
JUMBO_MBUF_SIZE = 1024 * 11
MBUF_DATA_SIZE = 1024 * 10

MSS_IPV4 = PACKET_SIZE_MAX - 14 - 20 - 20
MSS_IPV6 = PACKET_SIZE_MAX - 14 - 40 - 20

DEFAULT_WSCALE = 13

LOG_DIR = "/var/log/dperf"

HTTP_HOST_MAX = 128
HTTP_PATH_MAX = 256
PAYLOAD_SIZE_MAX = 1024 * 1024 * 1024
PAYLOAD_PATH_MAX = 256
SEND_WINDOW_MAX = 16
SEND_WINDOW_MIN = 2
SEND_WINDOW_DEFAULT = 4

HTTP_HOST_DEFAULT = "dperf"
HTTP_PATH_DEFAULT = "/"

HTTP_METH_GET = 0
HTTP_METH_POST = 1

TCP_ACK_DELAY_MAX = 1024

KNI_NAMESIZE = 10

VLAN_ID_MIN = 1
VLAN_ID_MAX = 4094

PIPELINE_MIN = 0
PIPELINE_MAX = 100
PIPELINE_DEFAULT = 0

LOG_LEVEL_DEFAULT = 4
LOG_LEVEL_ERR = 4
LOG_LEVEL_WARN = 5
LOG_LEVEL_INFO = 7
LOG_LEVEL_DEBUG = 8

RTO_DEFAULT = 2
RTO_MIN = 2
RTO_MAX = 300

# Lengths fixed by formats and by the documented keyword ranges.
PCI_LEN = len("0000:00:00.0")
VNI_MAX = 0xFFFFFF
TX_BURST_MAX = 1024


class ConfigError(ValueError):
    """A configuration value or combination of values is not acceptable."""


class Flow(IntEnum):
    """How received traffic is spread over a port's queues."""

    NONE = 0
    FDIR = 1
    RSS = 2


def parse_ip(text: str) -> IpAddress:
    """Parse an IPv4 or IPv6 address written as text."""
    try:
        return ipaddress.ip_address(str(text))
    except ValueError:
        raise ConfigError(f"bad ip address {text!r}") from None


def _address(value) -> IpAddress:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    if isinstance(value, str):
        return parse_ip(value)
    return ipaddress.ip_address(value)


@dataclass(frozen=True)
class IpRange:
    """``num`` consecutive addresses starting at ``start``."""

    start: IpAddress
    num: int

    def __post_init__(self) -> None:
        start = _address(self.start)
        object.__setattr__(self, "start", start)
        if self.num < 1:
            raise ConfigError(f"bad ip range {start} {self.num}")
        try:
            start + (self.num - 1)
        except ipaddress.AddressValueError:
            raise ConfigError(f"bad ip range {start} {self.num}") from None

    def _end(self) -> IpAddress:
        return self.start + (self.num - 1)

    def __len__(self) -> int:
        return self.num

    def __iter__(self) -> Iterator[IpAddress]:
        return (self.start + offset for offset in range(self.num))

    def get(self, index: int) -> IpAddress:
        """Return the address at position ``index``."""
        if not 0 <= index < self.num:
            raise IndexError(f"ip range index {index} out of range")
        return self.start + index

    def contains(self, addr) -> bool:
        """True when ``addr`` is one of the range's addresses."""
        addr = _address(addr)
        if addr.version != self.start.version:
            return False
        return self.start <= addr <= self._end()

    def overlaps(self, other: "IpRange") -> bool:
        """True when the two ranges share an address."""
        if other.start.version != self.start.version:
            return False
        return self.start <= other._end() and other.start <= self._end()


@dataclass
class Vxlan:
    """A VXLAN tunnel: inner MAC addresses and the local and remote VTEPs."""

    vni: int
    inner_smac: EthAddr
    inner_dmac: EthAddr
    vtep_local: IpRange
    vtep_remote: IpRange


@dataclass
class NetifPort:
    """A network port, either one PCI device or a bond of several."""

    pci_list: List[str] = field(default_factory=list)
    bond: bool = False
    bond_mode: int = 0
    bond_policy: int = 0
    bond_name: str = ""
    local_ip: Optional[IpAddress] = None
    gateway_ip: Optional[IpAddress] = None
    gateway_mac: EthAddr = ETH_ADDR_ZERO
    ipv6: bool = False
    id: int = -1
    queue_num: int = 0
    local_ip_range: Optional[IpRange] = None
    client_ip_range: Optional[IpRange] = None
    server_ip_range: Optional[IpRange] = None
    vxlan: Optional[Vxlan] = None

    @property
    def pci_num(self) -> int:
        return len(self.pci_list)


@dataclass
class Config:
    """Everything a configuration file sets, plus values derived from it.

    ``af`` holds the IP version (4 or 6) of the client and server
    addresses, or 0 while none has been seen.
    """

    server: bool = False
    keepalive: bool = False
    ipv6: bool = False
    vxlan: bool = False
    kni: bool = False
    daemon: bool = False
    flood: bool = False
    jumbo: bool = False
    payload_random: bool = False
    client_hop: bool = False
    simd512: bool = False
    fast_close: bool = False
    clear_screen: bool = False
    disable_ack: bool = False
    log_level: int = 0
    flow: Flow = Flow.NONE
    quiet: bool = False
    tcp_rst: bool = True
    neigh_ignore: bool = False
    http: bool = False
    stats_http: bool = False
    http_method: int = HTTP_METH_GET
    tos: int = 0
    pipeline: int = 0
    tx_burst: int = 0
    send_window: int = 0
    protocol: int = 0
    vlan_id: int = 0
    jumbo_mtu: int = 0

    ticks_per_sec: int = 0

    lport_min: int = 0
    lport_max: int = 0

    kni_ifname: str = ""
    af: int = 0

    retransmit_timeout_sec: int = 0
    retransmit_timeout: int = 0
    keepalive_request_interval_us: int = 0
    keepalive_request_interval: int = 0
    keepalive_request_num: int = 0

    http_host: str = ""
    http_path: str = ""

    payload_path: str = ""
    payload_size: int = 0
    payload: bytes = b""
    mss: int = 0

    wait: int = 0
    slow_start: int = 0
    launch_num: int = 0
    duration: int = 0
    cps: int = 0
    cc: int = 0

    cpus: List[int] = field(default_factory=list)
    socket_mem: str = ""

    ports: List[NetifPort] = field(default_factory=list)
    vxlans: List[Vxlan] = field(default_factory=list)

    listen: int = 0
    listen_num: int = 0

    client_ip_group: List[IpRange] = field(default_factory=list)
    server_ip_group: List[IpRange] = field(default_factory=list)
    dip_list: List[IpAddress] = field(default_factory=list)

    @property
    def cpu_num(self) -> int:
        return len(self.cpus)

    @property
    def port_num(self) -> int:
        return len(self.ports)

    @property
    def vxlan_num(self) -> int:
        return len(self.vxlans)