"""Defaults and consistency checks applied to a parsed configuration."""

from __future__ import annotations

import os
import random
import string
from typing import List, Optional, Tuple

from dperf.csum import IPPROTO_TCP, IPPROTO_UDP
from dperf.eth import ETH_HDR_LEN
from dperf.options import (
    DEFAULT_CPS,
    DEFAULT_DURATION,
    HTTP_HOST_DEFAULT,
    HTTP_METH_GET,
    HTTP_PATH_DEFAULT,
    LOG_DIR,
    LOG_LEVEL_DEFAULT,
    MBUF_DATA_SIZE,
    MSS_IPV4,
    MSS_IPV6,
    NETWORK_PORT_NUM,
    PACKET_SIZE_MAX,
    PAYLOAD_SIZE_MAX,
    RTO_DEFAULT,
    SEND_WINDOW_DEFAULT,
    SLOW_START_DEFAULT,
    WAIT_DEFAULT,
    Config,
    ConfigError,
    Flow,
    IpRange,
    NetifPort,
)

# Outer Ethernet, IPv4, UDP and VXLAN headers in front of an inner frame.
VXLAN_HEADERS_SIZE = 14 + 20 + 8 + 8
IPV4_HDR_SIZE = 20
IPV6_HDR_SIZE = 40
TCP_HDR_SIZE = 20
UDP_HDR_SIZE = 8

# Smallest payload that can still hold an HTTP message.
HTTP_DATA_MIN_SIZE = 70
TX_BURST_DEFAULT = 8
TICKS_PER_SEC_DEFAULT = 1000

_UINT32_MASK = 0xFFFFFFFF


def _queue_num(cfg: Config) -> int:
    return cfg.cpu_num // cfg.port_num


def port_get(cfg: Config, thread_id: int) -> Tuple[NetifPort, int]:
    """Return the port worker ``thread_id`` runs on and its queue on that port."""
    queue_num = _queue_num(cfg)
    return cfg.ports[thread_id // queue_num], thread_id % queue_num


def _range_socket_num(cfg: Config, ip_range: IpRange) -> int:
    return ip_range.num * cfg.listen_num * (cfg.lport_max - cfg.lport_min + 1)


def total_socket_num(cfg: Config, worker_id: int) -> int:
    """Return how many distinct connections worker ``worker_id`` can use."""
    port, _ = port_get(cfg, worker_id)
    if cfg.server:
        # the device under test may connect to every server
        num = sum(_range_socket_num(cfg, ip_range) for ip_range in cfg.client_ip_group)
    else:
        num = _range_socket_num(cfg, port.client_ip_range)
    num &= _UINT32_MASK

    if cfg.flow == Flow.FDIR:
        return num
    return (num * port.server_ip_range.num) & _UINT32_MASK


def set_tsc(cfg: Config, hz: int) -> None:
    """Convert the keepalive interval and retransmit timeout into ticks of ``hz``."""
    us = cfg.keepalive_request_interval_us
    if us % 1000 == 0:
        tsc = (us // 1000) * (hz // 1000)
    else:
        tsc = (us * (hz // 1000)) // 1000
    cfg.keepalive_request_interval = tsc
    cfg.retransmit_timeout = hz * cfg.retransmit_timeout_sec


def make_payload(cfg: Config, length: int, new_line: bool) -> bytes:
    """Return ``length`` bytes of filler, random letters if ``cfg.payload_random``."""
    if length <= 0:
        return b""
    if cfg.payload_random:
        rng = random.Random()
        chars = [rng.choice(string.ascii_lowercase) for _ in range(length)]
    else:
        chars = ["a"] * length
    if length > 1 and new_line:
        chars[-1] = "\n"
    return "".join(chars).encode("ascii")


def _check_mss(cfg: Config) -> None:
    if cfg.ipv6:
        mss_max = cfg.jumbo_mtu - 40 - 20 if cfg.jumbo else MSS_IPV6
    else:
        mss_max = cfg.jumbo_mtu - 20 - 20 if cfg.jumbo else MSS_IPV4
    if cfg.mss > mss_max:
        raise ConfigError(f"bad mss {cfg.mss}")
    if cfg.mss == 0:
        cfg.mss = mss_max


def _check_keepalive(cfg: Config) -> None:
    if cfg.server:
        cfg.keepalive_request_num = 0
        return

    if cfg.cc and not cfg.keepalive:
        raise ConfigError("'cc' requires 'keepalive'")
    if not cfg.keepalive:
        return
    interval = cfg.keepalive_request_interval_us
    if cfg.flood and interval == 0:
        raise ConfigError("'flood' requires a positive keepalive request interval")

    if interval == 1:
        ticks = 1000 * 1000 * 2
    elif interval == 2:
        ticks = 1000 * 1000
    elif interval < 10:
        ticks = 1000 * 500
    elif interval < 50:
        ticks = 1000 * 100 * 2
    elif interval < 100:
        ticks = 1000 * 100
    elif interval < 500:
        ticks = 1000 * 10 * 2
    elif interval < 1000:
        ticks = 1000 * 10
    else:
        ticks = TICKS_PER_SEC_DEFAULT
    cfg.ticks_per_sec = ticks


def _check_pipeline(cfg: Config) -> None:
    if cfg.pipeline == 0:
        return
    if cfg.server:
        raise ConfigError("'pipeline' cannot set in server mode")
    if cfg.protocol == IPPROTO_TCP:
        raise ConfigError("'pipeline' cannot support tcp")
    if not cfg.keepalive:
        raise ConfigError("'pipeline' requires 'keepalive'")
    if not cfg.flood and cfg.keepalive_request_interval_us:
        raise ConfigError("'pipeline' requires zero keepalive interval")


def _check_http(cfg: Config) -> None:
    http_host = bool(cfg.http_host)
    http_path = bool(cfg.http_path)

    if (cfg.payload_size or cfg.payload_path) and not cfg.server and cfg.http:
        if cfg.http_method == HTTP_METH_GET and http_path:
            raise ConfigError(
                "The HTTP path cannot be set with payload_path or payload_size for HTTP GET."
            )
    if cfg.server and (http_host or http_path):
        raise ConfigError("the HTTP host/path cannot be set in server mode.")
    if not cfg.http and (http_host or http_path):
        raise ConfigError("The HTTP host/path cannot be set in udp or tcp protocol.")

    if not http_host:
        cfg.http_host = HTTP_HOST_DEFAULT
    if not http_path:
        cfg.http_path = HTTP_PATH_DEFAULT
    if cfg.http:
        cfg.stats_http = True


def _check_wait(cfg: Config) -> None:
    if cfg.server:
        if cfg.wait != 0:
            raise ConfigError("wait in server config")
        return
    if cfg.wait == 0:
        cfg.wait = WAIT_DEFAULT


def _check_slow_start(cfg: Config) -> None:
    if cfg.server:
        if cfg.slow_start != 0:
            raise ConfigError("slow_start in server config")
        return
    if cfg.slow_start == 0:
        cfg.slow_start = SLOW_START_DEFAULT


def _check_client_addr(cfg: Config) -> None:
    seen = set()
    for ip_range in cfg.client_ip_group:
        low = int(ip_range.get(0)) & 0xFFFF
        for offset in range(ip_range.num):
            if low + offset in seen:
                raise ConfigError("duplicate client ip address's last 2 byte")
            seen.add(low + offset)


def _check_server_addr(cfg: Config) -> None:
    group = cfg.server_ip_group
    for i, range0 in enumerate(group):
        for j, range1 in enumerate(group):
            if i != j and range0.overlaps(range1):
                raise ConfigError("duplicate server ip address")


def _port_conflicts(cfg: Config, group: List[IpRange], local: bool) -> bool:
    for port in cfg.ports:
        addr = port.local_ip if local else port.gateway_ip
        if any(ip_range.contains(addr) for ip_range in group):
            return True
    return False


def _check_address_conflict(cfg: Config) -> None:
    clients = cfg.client_ip_group
    servers = cfg.server_ip_group
    for range0 in clients:
        for range1 in servers:
            if range0.overlaps(range1):
                raise ConfigError("client and server address conflict")

    if cfg.server:
        if _port_conflicts(cfg, clients, True):
            raise ConfigError("local ip conflict with client address")
        if _port_conflicts(cfg, servers, False):
            raise ConfigError("gateway ip conflict with server address")
    else:
        if _port_conflicts(cfg, servers, True):
            raise ConfigError("local ip conflict with server address")
        if _port_conflicts(cfg, clients, False):
            raise ConfigError("gateway ip conflict with client address")


def _check_local_addr(cfg: Config) -> None:
    for i, port0 in enumerate(cfg.ports):
        for j, port1 in enumerate(cfg.ports):
            if i != j and port0.local_ip == port1.local_ip:
                raise ConfigError("duplicate port ip")


def _packet_header_size(cfg: Config) -> int:
    size = VXLAN_HEADERS_SIZE if cfg.vxlan else 0
    size += ETH_HDR_LEN
    size += IPV6_HDR_SIZE if cfg.ipv6 else IPV4_HDR_SIZE
    size += TCP_HDR_SIZE if cfg.protocol == IPPROTO_TCP else UDP_HDR_SIZE
    return size


def _packet_payload_size(cfg: Config) -> int:
    packet_size_max = cfg.jumbo_mtu + 14 if cfg.jumbo else PACKET_SIZE_MAX
    return packet_size_max - _packet_header_size(cfg)


def _read_payload_file(path: str) -> bytes:
    try:
        with open(path, "rb") as fp:
            return fp.read(MBUF_DATA_SIZE)
    except OSError:
        raise ConfigError(f"cannot open file: {path}") from None


def _byte_at(data: bytes, index: int) -> int:
    return data[index] if index < len(data) else 0


def _check_payload(cfg: Config) -> None:
    packet_payload_size = _packet_payload_size(cfg)
    payload: Optional[bytes] = None

    if cfg.payload_path:
        if cfg.payload_size:
            raise ConfigError("both 'payload_size' and 'payload_file' are set")
        payload = _read_payload_file(cfg.payload_path)
        if len(payload) > packet_payload_size:
            raise ConfigError("large payload file, please use 'jumbo' to increase the MTU.")
        cfg.payload_size = len(payload)
        cfg.payload = payload

    if cfg.payload_size > PAYLOAD_SIZE_MAX:
        raise ConfigError(f"'payload_size' is larger than {PAYLOAD_SIZE_MAX}")

    if cfg.protocol == IPPROTO_UDP or not cfg.server:
        if cfg.payload_size > packet_payload_size:
            raise ConfigError("large 'payload_size', please use 'jumbo' to increase the MTU.")

    if cfg.protocol == IPPROTO_TCP and cfg.server and cfg.payload_size > cfg.mss:
        cfg.payload_size = -(-cfg.payload_size // cfg.mss) * cfg.mss
        if cfg.send_window == 0:
            cfg.send_window = SEND_WINDOW_DEFAULT

    if cfg.payload_size <= cfg.mss:
        cfg.send_window = 0

    if cfg.protocol == IPPROTO_TCP:
        if cfg.payload_size == 0 or cfg.payload_size >= HTTP_DATA_MIN_SIZE:
            if payload is None:
                cfg.stats_http = True
            elif cfg.server:
                if _byte_at(payload, 9) == ord("2"):
                    cfg.stats_http = True
            elif _byte_at(payload, 0) == ord("G") or _byte_at(payload, 1) == ord("O"):
                cfg.stats_http = True


def _check_port(cfg: Config) -> None:
    if cfg.cpu_num == 0:
        raise ConfigError("not found cpu")
    if cfg.port_num == 0:
        raise ConfigError("no found port")
    if cfg.cpu_num % cfg.port_num != 0:
        raise ConfigError(
            f"the number of CPUs({cfg.cpu_num}) is not a multiple of "
            f"the number of ports({cfg.port_num})"
        )
    for i, port0 in enumerate(cfg.ports):
        for j, port1 in enumerate(cfg.ports):
            if i != j and set(port0.pci_list) & set(port1.pci_list):
                raise ConfigError("duplicate pci")
    for port in cfg.ports:
        port.queue_num = _queue_num(cfg)


def _check_vxlan(cfg: Config) -> None:
    if cfg.vxlan_num == 0:
        return
    if cfg.vxlan_num != cfg.port_num:
        raise ConfigError("The number of 'vxlan' and 'port' are not equal.")
    for port, vxlan in zip(cfg.ports, cfg.vxlans):
        if vxlan.vtep_local.num != port.queue_num:
            raise ConfigError("The number of vtep_local and queue_num are not equal.")
        if vxlan.vtep_remote.num > 1 and vxlan.vtep_remote.num != port.queue_num:
            raise ConfigError("Bad vtep_remote num.")
        port.vxlan = vxlan
    cfg.vxlan = True


def _check_vlan(cfg: Config) -> None:
    if cfg.vlan_id == 0:
        return
    if cfg.vxlan_num:
        raise ConfigError("Cannot enable vlan and vxlan at the same time")
    if any(port.bond for port in cfg.ports):
        raise ConfigError("Cannot enable vlan and bond at the same time")


def _check_af(cfg: Config) -> None:
    for port in cfg.ports:
        if cfg.vxlan:
            if port.ipv6:
                raise ConfigError("Underlay address not support IPV6.")
        elif cfg.ipv6 != port.ipv6:
            raise ConfigError("Bad port address.")


def _set_port_ip_range(cfg: Config) -> None:
    clients = cfg.client_ip_group
    servers = cfg.server_ip_group
    if cfg.port_num == 0:
        raise ConfigError("no port")
    if not clients:
        raise ConfigError("no client_ip_range")
    if not servers:
        raise ConfigError("no server_ip_range")
    if cfg.port_num != len(servers):
        raise ConfigError(f"port num ({cfg.port_num}) != server_ip_range ({len(servers)})")
    if not cfg.server and len(clients) != cfg.port_num:
        raise ConfigError(f"port num ({cfg.port_num}) != client_ip_range ({len(clients)})")

    for i, port in enumerate(cfg.ports):
        client_range = clients[i] if i < len(clients) else None
        port.local_ip_range = servers[i] if cfg.server else client_range
        port.client_ip_range = client_range
        port.server_ip_range = servers[i]


def _check_flow(cfg: Config) -> None:
    if cfg.cpu_num == cfg.port_num:
        cfg.flow = Flow.NONE
        return
    if cfg.flow == Flow.RSS and cfg.vxlan:
        raise ConfigError("rss is not supported for vxlan.")

    rss = any(port.queue_num != port.server_ip_range.num for port in cfg.ports)
    if rss:
        if cfg.flow != Flow.RSS:
            raise ConfigError("'rss' is required if cpu num is not equal to server ip num")
    elif cfg.flow != Flow.RSS:
        cfg.flow = Flow.FDIR


def _check_change_dip(cfg: Config) -> None:
    dips = cfg.dip_list
    if not dips:
        return
    if cfg.server:
        raise ConfigError("'change_dip' only support client mode")
    if not cfg.flood:
        raise ConfigError("'change_dip' only support flood mode")
    if cfg.vxlan:
        raise ConfigError("'change_dip' not support vxlan")
    if (dips[0].version == 6) != cfg.ipv6:
        raise ConfigError("bad ip address family of 'change_dip'")
    if len(dips) < cfg.cpu_num:
        raise ConfigError("number of 'change_dip' is less than cpu number")


def _check_logdir(cfg: Config) -> None:
    if cfg.daemon and not os.path.isdir(LOG_DIR):
        raise ConfigError(f"{LOG_DIR} not exist")


def _check_lport_range(cfg: Config) -> None:
    if cfg.lport_min == 0:
        cfg.lport_min = 1
    if cfg.lport_max == 0:
        cfg.lport_max = NETWORK_PORT_NUM - 1


def _check_target(cfg: Config) -> None:
    if cfg.server:
        cfg.cc = 0
        cfg.cps = 0
        cfg.flood = False
    else:
        if cfg.cps == 0 and cfg.cc == 0:
            raise ConfigError("no targets")
        if cfg.cps == 0:
            cfg.cps = DEFAULT_CPS

    cps_cc = (cfg.cps // cfg.cpu_num) * cfg.retransmit_timeout_sec
    cc = cfg.cc // cfg.cpu_num
    hint = "Please increase the IP number of 'client' or port number of 'listen'"
    for worker in range(cfg.cpu_num):
        sockets = total_socket_num(cfg, worker)
        if sockets < cc:
            raise ConfigError(
                f"insufficient sockets. worker={worker} (sockets={sockets} < cc={cc}). {hint}"
            )
        if sockets < cps_cc:
            raise ConfigError(
                f"insufficient sockets. worker={worker} "
                f"(sockets={sockets} < cps's cc={cps_cc}). {hint}"
            )


def _check_fast_close(cfg: Config) -> None:
    if not cfg.fast_close:
        return
    if cfg.server:
        raise ConfigError("'fast_close' dose not support server mode")
    if cfg.protocol == IPPROTO_UDP:
        raise ConfigError("'fast_close' dose not support UDP")


def finalize(cfg: Config) -> Config:
    """Fill in defaults and check the configuration as a whole; raise ConfigError if bad."""
    if cfg.retransmit_timeout_sec == 0:
        cfg.retransmit_timeout_sec = RTO_DEFAULT
    if cfg.log_level == 0:
        cfg.log_level = LOG_LEVEL_DEFAULT
    if cfg.protocol == 0:
        cfg.protocol = IPPROTO_TCP
    if cfg.duration == 0:
        cfg.duration = DEFAULT_DURATION

    _check_mss(cfg)
    if cfg.listen == 0 or cfg.listen_num == 0:
        cfg.listen = 80
        cfg.listen_num = 1

    _check_keepalive(cfg)
    _check_pipeline(cfg)
    _check_http(cfg)
    _check_wait(cfg)
    _check_slow_start(cfg)
    _check_client_addr(cfg)
    _check_server_addr(cfg)
    _check_address_conflict(cfg)
    _check_local_addr(cfg)
    _check_payload(cfg)
    _check_port(cfg)
    _check_vxlan(cfg)
    _check_vlan(cfg)
    _check_af(cfg)
    _set_port_ip_range(cfg)
    _check_flow(cfg)
    _check_change_dip(cfg)
    if cfg.tx_burst == 0:
        cfg.tx_burst = TX_BURST_DEFAULT
    _check_logdir(cfg)
    _check_lport_range(cfg)
    _check_target(cfg)
    _check_fast_close(cfg)
    return cfg