import pytest

from dperf.eth import (
    ETH_ADDR_BROADCAST,
    ETH_ADDR_ZERO,
    ETH_HDR_LEN,
    ETHER_TYPE_ARP,
    EthAddr,
    EthHeader,
    parse_eth_addr,
)


def test_parse_valid_address():
    addr = parse_eth_addr("00:1a:2b:3c:4d:5e")
    assert addr.octets == bytes.fromhex("001a2b3c4d5e")


def test_str_is_unpadded_hex():
    assert str(parse_eth_addr("00:1a:2b:3c:4d:5e")) == "0:1a:2b:3c:4d:5e"


def test_round_trip_when_every_octet_has_two_digits():
    text = "12:34:56:78:9a:bc"
    assert str(parse_eth_addr(text)) == text


def test_uppercase_equals_lowercase():
    assert parse_eth_addr("AA:BB:CC:DD:EE:0F") == parse_eth_addr("aa:bb:cc:dd:ee:0f")


@pytest.mark.parametrize(
    "text",
    [
        "00:1a:2b:3c:4d",
        "00:1a:2b:3c:4d:5e:",
        "zz:1a:2b:3c:4d:5e",
        "1:2:3:4:5:1ffffff",
        "00-1a-2b-3c-4d-5e",
        "",
    ],
)
def test_parse_rejects_bad_text(text):
    with pytest.raises(ValueError):
        parse_eth_addr(text)


def test_address_needs_six_bytes():
    with pytest.raises(ValueError):
        EthAddr(b"\x01\x02\x03")


def test_is_zero():
    assert ETH_ADDR_ZERO.is_zero()
    assert not ETH_ADDR_BROADCAST.is_zero()
    assert not parse_eth_addr("00:00:00:00:00:01").is_zero()


def test_header_pack_layout():
    dst = ETH_ADDR_BROADCAST
    src = parse_eth_addr("02:00:00:00:00:01")
    raw = EthHeader(dst, src, ETHER_TYPE_ARP).pack()
    assert len(raw) == ETH_HDR_LEN
    assert raw[0:6] == dst.octets
    assert raw[6:12] == src.octets
    assert raw[12:14] == b"\x08\x06"


def test_header_round_trip_ignores_trailing_bytes():
    header = EthHeader(parse_eth_addr("02:00:00:00:00:02"), parse_eth_addr("02:00:00:00:00:03"), 0x86DD)
    assert EthHeader.unpack(header.pack() + b"payload") == header


def test_header_unpack_short_data():
    with pytest.raises(ValueError):
        EthHeader.unpack(b"\x00" * (ETH_HDR_LEN - 1))


def test_swapped_exchanges_addresses():
    a = parse_eth_addr("02:00:00:00:00:0a")
    b = parse_eth_addr("02:00:00:00:00:0b")
    header = EthHeader(a, b, 0x0800)
    swapped = header.swapped()
    assert swapped.d_addr == b
    assert swapped.s_addr == a
    assert swapped.ether_type == header.ether_type
    assert swapped.swapped() == header