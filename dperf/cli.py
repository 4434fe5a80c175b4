"""Command line entry point: read configuration files and check them."""

from __future__ import annotations

import sys
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from dperf.checks import finalize
from dperf.config_keyword import ConfigSyntaxError, parse_file
from dperf.handlers import keywords, manual
from dperf.options import Config, ConfigError

VERSION = "1.0.0"

_HELP = (
    "-h --help\n"
    "-v --version\n"
    "-t --test       Test configure file and exit\n"
    "-c --conf file  Run with conf file\n"
    "-m --manual     Show manual"
)

# long name -> (short letter, takes an argument)
_LONG_OPTIONS: Dict[str, Tuple[str, bool]] = {
    "help": ("h", False),
    "version": ("v", False),
    "test": ("t", False),
    "conf": ("c", True),
    "manual": ("m", False),
}
_SHORT_OPTIONS: Dict[str, bool] = {short: takes for short, takes in _LONG_OPTIONS.values()}


class _UsageError(Exception):
    """A command line option is unknown or lacks its argument."""


def _read_into(cfg: Config, path: str) -> None:
    try:
        parse_file(path, keywords(), cfg)
    except ConfigError:
        raise
    except (ConfigSyntaxError, ValueError, OSError) as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def load_config(path: str) -> Config:
    """Read one configuration file, fill in defaults and check it; raise ConfigError if bad."""
    cfg = Config()
    _read_into(cfg, path)
    return finalize(cfg)


def _match_long(name: str) -> Optional[str]:
    if name in _LONG_OPTIONS:
        return name
    candidates = [option for option in _LONG_OPTIONS if option.startswith(name)]
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        raise _UsageError(f"option '{name}' is ambiguous")
    return None


def _options(argv: Sequence[str]):
    """Yield (letter, argument) pairs; single-dash words may name long options too."""
    args = list(argv)
    index = 0
    while index < len(args):
        word = args[index]
        index += 1
        if word == "--":
            return
        if not word.startswith("-") or word == "-":
            continue

        double = word.startswith("--")
        body = word[2:] if double else word[1:]
        name, eq, inline = body.partition("=")

        long_name = _match_long(name) if name else None
        if long_name is not None:
            letter, takes = _LONG_OPTIONS[long_name]
            if takes:
                if eq:
                    value = inline
                elif index < len(args):
                    value = args[index]
                    index += 1
                else:
                    raise _UsageError(f"option '{word}' requires an argument")
                yield letter, value
            elif eq:
                raise _UsageError(f"option '{word}' doesn't allow an argument")
            else:
                yield letter, None
            continue

        if double or body[0] not in _SHORT_OPTIONS:
            raise _UsageError(f"unrecognized option '{word}'")
        letter = body[0]
        if _SHORT_OPTIONS[letter]:
            rest = body[1:]
            if rest:
                value = rest
            elif index < len(args):
                value = args[index]
                index += 1
            else:
                raise _UsageError(f"option requires an argument -- '{letter}'")
            yield letter, value
        else:
            if len(body) > 1:
                raise _UsageError(f"unrecognized option '{word}'")
            yield letter, None


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse the command line, load and check the configuration; return the exit status."""
    args: List[str] = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(_HELP)
        return 1

    cfg = Config()
    conf = False
    test = False
    actions: Dict[str, Callable[[], None]] = {
        "h": lambda: print(_HELP),
        "v": lambda: print(VERSION),
        "m": lambda: print(manual()),
    }

    try:
        for letter, value in _options(args):
            if letter == "c":
                _read_into(cfg, value)
                conf = True
            elif letter == "t":
                test = True
            else:
                actions[letter]()
                return 0
    except _UsageError as exc:
        print(exc)
        return 1
    except ConfigError as exc:
        print(f"Error: {exc}")
        return 1

    if not conf:
        print("No configuration file")
        return 1

    try:
        finalize(cfg)
    except ConfigError as exc:
        print(f"Error: {exc}")
        return 1

    if test:
        print("Config file OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())