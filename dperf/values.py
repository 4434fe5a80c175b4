"""Parsers for the values written after configuration keywords."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from dperf.options import PCI_LEN, ConfigError, IpRange, NetifPort, parse_ip

INT_MAX = 2**31 - 1

# Highest bonding mode accepted (adaptive load balancing).
BONDING_MODE_ALB = 6
BOND_POLICY_MAX = 3
# Most devices a bond may hold.
PCI_NUM_MAX = 4

BOND_STR_BASE = 9
BOND_STR_MIN = BOND_STR_BASE + PCI_LEN
BOND_STR_MAX = BOND_STR_BASE + (PCI_LEN + 1) * PCI_NUM_MAX - 1

_ATOI = re.compile(r"\s*([+-]?\d+)")
_ATOF = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

_RATES = {"k": 1000, "K": 1000, "m": 1000000, "M": 1000000}
_INTERVAL_UNITS = {"us": 1, "ms": 1000, "s": 1000 * 1000}
_DURATION_UNITS = {"m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _ATOF.match(text)
    return float(match.group(1)) if match else 0.0


def find_nondigit(text: str, float_enable: bool) -> Optional[int]:
    """Return the index of the first character that is not part of the number.

    With ``float_enable`` a decimal point is part of the number; a second
    point ends the scan as if the whole text were numeric, giving None.
    None also means every character is a digit.
    """
    points = 0
    for index, ch in enumerate(text):
        if "0" <= ch <= "9":
            continue
        if float_enable and ch == ".":
            points += 1
            if points > 1:
                return None
            continue
        return index
    return None


def parse_number(text: str, float_enable: bool, rate_enable: bool) -> int:
    """Parse a non-negative count such as ``100``, ``2k`` or ``1.5m``.

    A ``k``/``K`` suffix multiplies by a thousand and ``m``/``M`` by a
    million, when ``rate_enable`` allows a suffix at all.
    """
    rate = 1
    index = find_nondigit(text, float_enable)
    if index is not None:
        suffix = text[index:]
        if not rate_enable or len(suffix) != 1 or suffix not in _RATES:
            raise ConfigError(f"bad number {text!r}")
        rate = _RATES[suffix]
        if index == 0:
            raise ConfigError(f"bad number {text!r}")

    if float_enable:
        value = int(_atof(text) * rate)
    else:
        value = _atoi(text) * rate

    if value < 0 or value > INT_MAX:
        raise ConfigError(f"bad number {text!r}")
    return value


def parse_keepalive_interval(text: str) -> int:
    """Parse a keepalive request interval such as ``10us``, ``1ms`` or ``1s`` into microseconds."""
    index = find_nondigit(text, False)
    if index is None:
        raise ConfigError(f"bad keepalive interval {text!r}")
    rate = _INTERVAL_UNITS.get(text[index:])
    if rate is None:
        raise ConfigError(f"bad keepalive interval {text!r}")

    value = _atoi(text)
    if rate == 1:
        if value >= 10 and value % 10 != 0:
            raise ConfigError("keepalive request interval must be a multiple of 10us")
        if 1 < value < 10 and value % 2 != 0:
            raise ConfigError("keepalive request interval must be a multiple of 2us")
        if value >= 1000 and value % 1000 != 0:
            raise ConfigError(
                "microseconds can only be used if the interval is less than 1 millisecond"
            )

    value *= rate
    if value > INT_MAX:
        raise ConfigError(f"bad keepalive interval {text!r}")
    return value


def parse_hex(text: str, minimum: int, maximum: int) -> int:
    """Parse a decimal or ``0x``-prefixed hexadecimal number within [minimum, maximum]."""
    if len(text) > 2 and text[0] == "0" and text[1] in "xX":
        digits = text[2:]
        if not re.fullmatch(r"[0-9a-fA-F]+", digits):
            raise ConfigError(f"bad number {text!r}")
        value = int(digits, 16)
    else:
        value = _atoi(text)

    if minimum <= value <= maximum:
        return value
    raise ConfigError(f"number {text!r} not in [{minimum}, {maximum}]")


def parse_duration(text: str) -> int:
    """Parse a duration such as ``100``, ``100s``, ``3.5m``, ``2h`` or ``1.5d`` into seconds."""
    if not text:
        raise ConfigError("empty duration")
    rate = _DURATION_UNITS.get(text[-1], 1)
    value = _atof(text)
    if value < 0:
        raise ConfigError(f"bad duration {text!r}")
    duration = int(value * rate)
    if duration <= 0 or duration > INT_MAX:
        raise ConfigError(f"bad duration {text!r}")
    return duration


def parse_bond(text: str) -> NetifPort:
    """Parse ``bond<mode>:<policy>(<pci>,<pci>,...)`` into a bonded port."""
    bad = ConfigError(f'bad bond "{text}"')
    if not BOND_STR_MIN <= len(text) <= BOND_STR_MAX:
        raise bad
    pci_num = (len(text) - BOND_STR_BASE + 1) // (PCI_LEN + 1)

    if not text.startswith("bond"):
        raise bad
    pos = 4

    mode_ch = text[pos]
    if not "0" <= mode_ch <= "9":
        raise bad
    mode = int(mode_ch)
    if mode > BONDING_MODE_ALB:
        raise bad
    pos += 1

    if text[pos] != ":":
        raise bad
    pos += 1

    policy_ch = text[pos]
    if not "0" <= policy_ch <= str(BOND_POLICY_MAX):
        raise bad
    policy = int(policy_ch)
    pos += 1

    if text[pos] != "(":
        raise bad
    pos += 1

    pci_list: List[str] = []
    for i in range(pci_num):
        pci_list.append(text[pos:pos + PCI_LEN])
        pos += PCI_LEN
        expected = ")" if i == pci_num - 1 else ","
        if pos >= len(text) or text[pos] != expected:
            raise bad
        pos += 1

    if len(set(pci_list)) != len(pci_list):
        raise ConfigError("duplicate pci")

    return NetifPort(pci_list=pci_list, bond=True, bond_mode=mode, bond_policy=policy)


def parse_ip_range(args: Sequence[str]) -> IpRange:
    """Parse an address and a count into a range; ``args`` holds exactly those two words."""
    if len(args) != 2:
        raise ConfigError("an ip range needs an address and a number")
    address_text, num_text = args
    start = parse_ip(address_text)
    if int(start) == 0:
        raise ConfigError(f"bad ip address {address_text!r}")

    try:
        num = parse_number(num_text, False, False)
        return IpRange(start, num)
    except ValueError:
        raise ConfigError(f"bad client ip range {address_text} {num_text}") from None