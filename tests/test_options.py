import ipaddress

import pytest

from dperf.options import (
    PCI_LEN,
    Config,
    ConfigError,
    Flow,
    IpRange,
    NetifPort,
    parse_ip,
)


def test_parse_ip_versions():
    assert parse_ip("192.168.1.3") == ipaddress.IPv4Address("192.168.1.3")
    assert parse_ip("2001:db8::1").version == 6


@pytest.mark.parametrize("text", ["", "1.2.3", "300.1.1.1", "abc"])
def test_parse_ip_rejects_bad(text):
    with pytest.raises(ConfigError):
        parse_ip(text)


def test_ip_range_get_and_iter():
    rng = IpRange("10.0.0.250", 10)
    assert rng.get(0) == ipaddress.IPv4Address("10.0.0.250")
    assert rng.get(6) == ipaddress.IPv4Address("10.0.1.0")
    assert list(rng) == [rng.get(i) for i in range(len(rng))]


def test_ip_range_get_out_of_range():
    rng = IpRange("10.0.0.1", 2)
    with pytest.raises(IndexError):
        rng.get(2)
    with pytest.raises(IndexError):
        rng.get(-1)


def test_ip_range_contains():
    rng = IpRange("10.0.0.1", 4)
    assert rng.contains("10.0.0.1")
    assert rng.contains("10.0.0.4")
    assert not rng.contains("10.0.0.5")
    assert not rng.contains("::1")


def test_ip_range_overlaps():
    a = IpRange("10.0.0.1", 4)
    assert a.overlaps(IpRange("10.0.0.4", 2))
    assert IpRange("10.0.0.4", 2).overlaps(a)
    assert not a.overlaps(IpRange("10.0.0.5", 3))
    assert not a.overlaps(IpRange("::a00:1", 4))


def test_ip_range_rejects_bad_count_and_overflow():
    with pytest.raises(ConfigError):
        IpRange("10.0.0.1", 0)
    with pytest.raises(ConfigError):
        IpRange("255.255.255.255", 2)


def test_config_counts_and_defaults():
    cfg = Config(cpus=[0, 1, 2], ports=[NetifPort(pci_list=["0000:13:00.0"])])
    assert cfg.cpu_num == 3
    assert cfg.port_num == 1
    assert cfg.vxlan_num == 0
    assert cfg.tcp_rst is True
    assert cfg.flow == Flow.NONE
    assert cfg.ports[0].pci_num == 1
    assert cfg.ports[0].id == -1
    assert len(cfg.ports[0].pci_list[0]) == PCI_LEN


def test_config_instances_do_not_share_lists():
    a = Config()
    b = Config()
    a.cpus.append(1)
    assert b.cpus == []