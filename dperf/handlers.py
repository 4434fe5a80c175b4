"""Handlers for each configuration keyword, and the keyword table they form."""

from __future__ import annotations

import ipaddress
import logging
import re
from typing import List, Tuple

from dperf.config_keyword import Keyword, format_help
from dperf.csum import IPPROTO_TCP, IPPROTO_UDP
from dperf.eth import parse_eth_addr
from dperf.options import (
    DEFAULT_LAUNCH_MAX,
    DEFAULT_LAUNCH_MIN,
    HTTP_HOST_DEFAULT,
    HTTP_HOST_MAX,
    HTTP_METH_GET,
    HTTP_METH_POST,
    HTTP_PATH_DEFAULT,
    HTTP_PATH_MAX,
    JUMBO_MTU_DEFAULT,
    JUMBO_MTU_MAX,
    JUMBO_MTU_MIN,
    KEEPALIVE_REQ_NUM,
    KNI_NAMESIZE,
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_ERR,
    LOG_LEVEL_INFO,
    LOG_LEVEL_WARN,
    NETWORK_PORT_NUM,
    PAYLOAD_PATH_MAX,
    PCI_LEN,
    PIPELINE_DEFAULT,
    PIPELINE_MAX,
    PIPELINE_MIN,
    RTE_ARG_LEN,
    RTO_DEFAULT,
    RTO_MAX,
    RTO_MIN,
    SEND_WINDOW_DEFAULT,
    SEND_WINDOW_MAX,
    SEND_WINDOW_MIN,
    SLOW_START_DEFAULT,
    SLOW_START_MAX,
    SLOW_START_MIN,
    TX_BURST_MAX,
    VLAN_ID_MAX,
    VLAN_ID_MIN,
    VNI_MAX,
    WAIT_DEFAULT,
    Config,
    ConfigError,
    Flow,
    IpRange,
    NetifPort,
    Vxlan,
    parse_ip,
)
from dperf.values import (
    parse_bond,
    parse_duration,
    parse_hex,
    parse_ip_range,
    parse_keepalive_interval,
    parse_number,
)

log = logging.getLogger(__name__)

KNI_NAME_DEFAULT = "vEth"

_ATOI = re.compile(r"\s*([+-]?\d+)")
_CPU_RANGE = re.compile(r"\s*([+-]?\d+)-\s*([+-]?\d+)")

_LOG_LEVELS = {
    "error": LOG_LEVEL_ERR,
    "warn": LOG_LEVEL_WARN,
    "info": LOG_LEVEL_INFO,
    "debug": LOG_LEVEL_DEBUG,
}


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _expect_args(argv: List[str], low: int, high: int = None) -> None:
    high = low if high is None else high
    if not low <= len(argv) <= high:
        raise ConfigError(f"bad number of arguments for '{argv[0]}'")


def _flag(name: str):
    def handler(argv: List[str], cfg: Config) -> None:
        _expect_args(argv, 1)
        setattr(cfg, name, True)

    return handler


def _daemon(argv: List[str], cfg: Config) -> None:
    cfg.daemon = True


def _keepalive(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2, 3)
    if cfg.keepalive:
        raise ConfigError("duplicate 'keepalive'")

    cfg.keepalive_request_interval_us = parse_keepalive_interval(argv[1])
    if len(argv) == 3:
        num = parse_number(argv[2], True, True)
        if num > KEEPALIVE_REQ_NUM:
            raise ConfigError(f"keepalive request number above {KEEPALIVE_REQ_NUM}")
        cfg.keepalive_request_num = num

    if cfg.keepalive_request_interval_us == 0 and cfg.keepalive_request_num != 0:
        raise ConfigError("keepalive requests need a positive interval")
    cfg.keepalive = True


def _pipeline(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    value = _atoi(argv[1])
    if not PIPELINE_MIN <= value <= PIPELINE_MAX:
        raise ConfigError(f"bad pipeline {argv[1]}")
    cfg.pipeline = value


def _mode(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if argv[1] == "client":
        cfg.server = False
    elif argv[1] == "server":
        cfg.server = True
    else:
        raise ConfigError(f"unknown mode {argv[1]}")


def _cpu(argv: List[str], cfg: Config) -> None:
    if len(argv) <= 1:
        raise ConfigError("no cpu given")

    cpus: List[int] = []
    for word in argv[1:]:
        if "-" in word:
            match = _CPU_RANGE.match(word)
            if match is None:
                raise ConfigError(f"bad cpu number {word}")
            cpu_min, cpu_max = int(match.group(1)), int(match.group(2))
        else:
            try:
                cpu_min = cpu_max = parse_number(word, False, False)
            except ConfigError:
                raise ConfigError(f"bad cpu number {word}") from None

        if cpu_min < 0 or cpu_max < 0 or cpu_min > cpu_max:
            raise ConfigError(f"bad cpu number {word}")
        cpus.extend(range(cpu_min, cpu_max + 1))

    if len(set(cpus)) != len(cpus):
        raise ConfigError("duplicate cpu")
    cfg.cpus = cpus


def _socket_mem(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if len(argv[1]) >= RTE_ARG_LEN:
        raise ConfigError("socket_mem too long")
    cfg.socket_mem = argv[1]


def _set_af(cfg: Config, version: int) -> None:
    if cfg.af not in (0, version):
        raise ConfigError("client and server addresses of different families")
    cfg.af = version
    cfg.ipv6 = version == 6


def _port(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 4, 5)

    name = argv[1]
    if name.startswith("b"):
        port = parse_bond(name)
    elif len(name) == PCI_LEN:
        port = NetifPort(pci_list=[name])
    else:
        raise ConfigError(f"bad pci {name}")

    local_ip = parse_ip(argv[2])
    gateway_ip = parse_ip(argv[3])
    if local_ip.version != gateway_ip.version:
        raise ConfigError("local and gateway addresses of different families")
    port.local_ip = local_ip
    port.gateway_ip = gateway_ip
    port.ipv6 = local_ip.version == 6

    if len(argv) == 5:
        port.gateway_mac = parse_eth_addr(argv[4])

    if local_ip == gateway_ip:
        raise ConfigError("local address equals gateway address")

    port.bond_name = f"net_bonding{cfg.port_num}"
    port.id = -1
    cfg.ports.append(port)


def _listen(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 3)
    listen = parse_number(argv[1], False, False)
    listen_num = parse_number(argv[2], False, False)
    if listen <= 0 or listen_num <= 0:
        raise ConfigError("bad listen port")
    if listen + listen_num >= NETWORK_PORT_NUM - 1:
        raise ConfigError("listen ports out of range")
    cfg.listen = listen
    cfg.listen_num = listen_num


def _ip_range(argv: List[str]) -> IpRange:
    if len(argv) != 3:
        raise ConfigError("an ip range needs an address and a number")
    return parse_ip_range(argv[1:3])


def _ip_group(group_name: str):
    def handler(argv: List[str], cfg: Config) -> None:
        ip_range = _ip_range(argv)
        _set_af(cfg, ip_range.start.version)
        getattr(cfg, group_name).append(ip_range)

    return handler


def _change_dip(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 4)
    start = parse_ip(argv[1])

    step = _atoi(argv[2])
    if step <= 0:
        return
    num = _atoi(argv[3])
    if num < 0:
        return

    if cfg.dip_list and cfg.dip_list[0].version != start.version:
        raise ConfigError("change_dip addresses of different families")
    try:
        cfg.dip_list.extend(start + index * step for index in range(num))
    except ipaddress.AddressValueError:
        raise ConfigError("change_dip addresses out of range") from None


def _duration(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    cfg.duration = parse_duration(argv[1])


def _cps(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    cfg.cps = parse_number(argv[1], True, True)


def _cc(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    cc = parse_number(argv[1], True, True)
    if cc <= 0:
        raise ConfigError("cc must be positive")
    cfg.cc = cc


def _launch_num(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    cfg.launch_num = parse_number(argv[1], False, False)


def _bounded(name: str, low: int, high: int):
    def handler(argv: List[str], cfg: Config) -> None:
        _expect_args(argv, 2)
        value = parse_number(argv[1], False, False)
        if not low <= value <= high:
            raise ConfigError(f"{name} not in [{low}, {high}]")
        setattr(cfg, name, value)

    return handler


def _wait(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    value = parse_number(argv[1], False, False)
    if value <= 0:
        raise ConfigError("wait must be positive")
    cfg.wait = value


def _payload_size(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.payload_size > 0:
        raise ConfigError("duplicate payload_size")
    size = parse_number(argv[1], True, True)
    if size <= 0:
        raise ConfigError("payload_size must be positive")
    cfg.payload_size = size


def _payload_file(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.payload_path:
        raise ConfigError("duplicate payload_path")
    if len(argv[1]) >= PAYLOAD_PATH_MAX:
        raise ConfigError("large payload_path")
    cfg.payload_path = argv[1]


def _send_window(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    window = parse_number(argv[1], True, True)
    if not SEND_WINDOW_MIN <= window <= SEND_WINDOW_MAX:
        raise ConfigError(f"send_window not in [{SEND_WINDOW_MIN}, {SEND_WINDOW_MAX}]")
    cfg.send_window = window


def _packet_size(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    log.warning("'packet_size' is deprecated.")


def _mss(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    mss = parse_number(argv[1], False, False)
    if mss <= 0:
        raise ConfigError("mss must be positive")
    cfg.mss = mss


def _protocol(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if argv[1] == "tcp":
        cfg.protocol = IPPROTO_TCP
    elif argv[1] == "udp":
        cfg.protocol = IPPROTO_UDP
    elif argv[1] == "http":
        cfg.protocol = IPPROTO_TCP
        cfg.http = True
    else:
        raise ConfigError(f"unknown protocol {argv[1]}")


def _vxlan(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 8)
    vni = _atoi(argv[1])
    if not 0 < vni <= VNI_MAX:
        raise ConfigError(f"bad vni {argv[1]}")
    inner_smac = parse_eth_addr(argv[2])
    inner_dmac = parse_eth_addr(argv[3])

    vtep_local = _ip_range(argv[3:6])
    vtep_remote = _ip_range(argv[5:8])
    if vtep_local.start.version != 4 or vtep_remote.start.version != 4:
        raise ConfigError("vtep addresses must be IPv4")

    cfg.vxlans.append(Vxlan(vni, inner_smac, inner_dmac, vtep_local, vtep_remote))


def _vlan(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.vlan_id != 0:
        raise ConfigError("duplicate vlan")
    vlan_id = _atoi(argv[1])
    if not VLAN_ID_MIN <= vlan_id <= VLAN_ID_MAX:
        raise ConfigError(f"bad vlan id {argv[1]}")
    cfg.vlan_id = vlan_id


def _tos(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.tos != 0:
        raise ConfigError("duplicate tos")
    try:
        tos = parse_hex(argv[1], 0, 0xFF)
    except ConfigError:
        log.warning("invalid tos %s", argv[1])
        tos = 0
    cfg.tos = tos


def _kni(argv: List[str], cfg: Config) -> None:
    if len(argv) > 2:
        raise ConfigError("bad number of arguments for 'kni'")
    if cfg.kni:
        raise ConfigError("duplicate kni")

    ifname = argv[1] if len(argv) == 2 else KNI_NAME_DEFAULT
    if len(ifname) >= KNI_NAMESIZE:
        raise ConfigError("long kni name")
    if not (ifname[0].isascii() and ifname[0].isalpha()):
        raise ConfigError("invalid kni name")

    cfg.kni_ifname = ifname
    cfg.kni = True


def _jumbo(argv: List[str], cfg: Config) -> None:
    if len(argv) > 2:
        raise ConfigError("bad number of arguments for 'jumbo'")
    if len(argv) == 2:
        mtu = _atoi(argv[1])
        if not JUMBO_MTU_MIN <= mtu <= JUMBO_MTU_MAX:
            raise ConfigError(f"bad jumbo mtu [{JUMBO_MTU_MIN} - {JUMBO_MTU_MAX}]")
    else:
        mtu = JUMBO_MTU_DEFAULT
    cfg.jumbo_mtu = mtu
    cfg.jumbo = True


def _rss(argv: List[str], cfg: Config) -> None:
    cfg.flow = Flow.RSS
    if len(argv) >= 2:
        log.warning("The 'rss' parameters are deprecated.")


def _quiet(argv: List[str], cfg: Config) -> None:
    if len(argv) > 1:
        raise ConfigError("bad number of arguments for 'quiet'")
    if cfg.quiet:
        raise ConfigError("duplicate quiet")
    cfg.quiet = True


def _tcp_rst(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    value = _atoi(argv[1])
    if value not in (0, 1):
        raise ConfigError("tcp_rst must be 0 or 1")
    cfg.tcp_rst = bool(value)


def _http_host(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.http_host:
        raise ConfigError("duplicate http_host")
    if len(argv[1]) >= HTTP_HOST_MAX:
        raise ConfigError("http_host too long")
    cfg.http_host = argv[1]


def _http_path(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if cfg.http_path:
        raise ConfigError("duplicate http_path")
    path = argv[1]
    if len(path) >= HTTP_PATH_MAX:
        raise ConfigError("http_path too long")
    if not path.startswith("/"):
        raise ConfigError("http_path must start with '/'")
    cfg.http_path = path


def _http_method(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    if argv[1] == "GET":
        cfg.http_method = HTTP_METH_GET
    elif argv[1] == "POST":
        cfg.http_method = HTTP_METH_POST
    else:
        raise ConfigError(f"unknown http method {argv[1]}")


def _client_port_range(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2, 3)
    if cfg.lport_min != 0 or cfg.lport_max != 0:
        raise ConfigError("duplicate client port range")

    lport_min = _atoi(argv[1])
    if not 0 < lport_min < NETWORK_PORT_NUM:
        raise ConfigError(f"bad port {argv[1]}")

    lport_max = NETWORK_PORT_NUM - 1
    if len(argv) == 3:
        lport_max = _atoi(argv[2])
        if not 0 < lport_max < NETWORK_PORT_NUM:
            raise ConfigError(f"bad port {argv[2]}")

    if lport_min > lport_max:
        raise ConfigError("client port range is empty")
    cfg.lport_min = lport_min
    cfg.lport_max = lport_max


def _lport_range(argv: List[str], cfg: Config) -> None:
    log.warning("'lport_range' is deprecated. Please use 'client_port_range'.")
    _client_port_range(argv, cfg)


def _log_level(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    level = _LOG_LEVELS.get(argv[1])
    if level is None:
        raise ConfigError(f"unknown log level {argv[1]}")
    cfg.log_level = level


def _retransmit_timeout(argv: List[str], cfg: Config) -> None:
    _expect_args(argv, 2)
    value = _atoi(argv[1])
    if not RTO_MIN <= value <= RTO_MAX:
        raise ConfigError(f"retransmit_timeout not in [{RTO_MIN}, {RTO_MAX}]")
    cfg.retransmit_timeout_sec = value


def keywords() -> Tuple[Keyword, ...]:
    """Return every configuration keyword, in manual order."""
    return (
        Keyword("daemon", _daemon, ""),
        Keyword("keepalive", _keepalive,
                f"Interval(Timeout) [Number[0-{KEEPALIVE_REQ_NUM}]], eg 1ms/10us/1s"),
        Keyword("pipeline", _pipeline,
                f"Number[{PIPELINE_MIN}-{PIPELINE_MAX}], default {PIPELINE_DEFAULT}"),
        Keyword("mode", _mode, "client/server"),
        Keyword("cpu", _cpu, "n0 n1 n2-n3..., eg 0-4 7 8 9 10"),
        Keyword("socket_mem", _socket_mem, "n0,n1,n2..."),
        Keyword("port", _port,
                "PCI/bondMode:Policy(PCI0,PCI1,...) IPAddress Gateway [Gateway-Mac], "
                "eg 0000:13:00.0 192.168.1.3 192.168.1.1"),
        Keyword("duration", _duration, "Time, eg 1.5d, 2h, 3.5m, 100s, 100"),
        Keyword("cps", _cps, "Number, eg 1m, 1.5m, 2k, 100"),
        Keyword("cc", _cc, "Number, eg 100m, 1.5m, 2k, 100"),
        Keyword("flood", _flag("flood"), ""),
        Keyword("launch_num", _launch_num,
                f"Number, default {DEFAULT_LAUNCH_MIN}-{DEFAULT_LAUNCH_MAX}"),
        Keyword("client", _ip_group("client_ip_group"), "IPAddress Number"),
        Keyword("server", _ip_group("server_ip_group"), "IPAddress Number"),
        Keyword("change_dip", _change_dip, "IPAddress Step Number"),
        Keyword("listen", _listen, "Port Number, default 80 1"),
        Keyword("payload_random", _flag("payload_random"), ""),
        Keyword("payload_size", _payload_size, "Number"),
        Keyword("payload_file", _payload_file, "Path"),
        Keyword("send_window", _send_window,
                f"Number[{SEND_WINDOW_MIN}-{SEND_WINDOW_MAX}] default {SEND_WINDOW_DEFAULT}"),
        Keyword("packet_size", _packet_size, "Number"),
        Keyword("mss", _mss, "Number, default 1460"),
        Keyword("protocol", _protocol, "http/tcp/udp, default tcp"),
        Keyword("tx_burst", _bounded("tx_burst", 1, TX_BURST_MAX), "Number[1-1024]"),
        Keyword("slow_start", _bounded("slow_start", SLOW_START_MIN, SLOW_START_MAX),
                f"Number[{SLOW_START_MIN}-{SLOW_START_MAX}], default {SLOW_START_DEFAULT}"),
        Keyword("wait", _wait, f"Number, default {WAIT_DEFAULT}"),
        Keyword("vxlan", _vxlan, "vni inner-smac inner-dmac vtep-local num vtep-remote num"),
        Keyword("vlan", _vlan, f"vlanID[{VLAN_ID_MIN}-{VLAN_ID_MAX}]"),
        Keyword("kni", _kni, f"[ifName], default {KNI_NAME_DEFAULT}"),
        Keyword("tos", _tos, "Number[0x00-0xff], default 0, eg 0x01 or 1"),
        Keyword("jumbo", _jumbo, f"[MTU], default {JUMBO_MTU_DEFAULT}"),
        Keyword("rss", _rss, ""),
        Keyword("quiet", _quiet, ""),
        Keyword("tcp_rst", _tcp_rst, "Number[0-1], default 1"),
        Keyword("http_host", _http_host, f"String, default {HTTP_HOST_DEFAULT}"),
        Keyword("http_path", _http_path, f"String, default {HTTP_PATH_DEFAULT}"),
        Keyword("http_method", _http_method, "GET|POST, default GET"),
        Keyword("lport_range", _lport_range, "Number [Number], default 1 65535"),
        Keyword("client_port_range", _client_port_range, "Number [Number], default 1 65535"),
        Keyword("client_hop", _flag("client_hop"), ""),
        Keyword("simd512", _flag("simd512"), ""),
        Keyword("fast_close", _flag("fast_close"), ""),
        Keyword("clear_screen", _flag("clear_screen"), ""),
        Keyword("log_level", _log_level, "error|warn|info|debug, default error"),
        Keyword("disable_ack", _flag("disable_ack"), ""),
        Keyword("retransmit_timeout", _retransmit_timeout,
                f"Seconds[{RTO_MIN}-{RTO_MAX}], default {RTO_DEFAULT}"),
        Keyword("neigh_ignore", _flag("neigh_ignore"), ""),
    )


def manual() -> str:
    """Return the keyword manual, one line per keyword."""
    return format_help(keywords())