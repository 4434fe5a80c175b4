"""A line-oriented configuration parser: ``keyword arg1 arg2 ...`` per line."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional

CONFIG_ARG_NUM_MAX = 32
CONFIG_LINE_MAX = 2048

# Longest piece of a line read in one go; longer lines continue on the next line number.
_READ_CHUNK = CONFIG_LINE_MAX - 2

_ALLOWED_CHARS = frozenset(chr(code) for code in range(0x20, 0x7F)) | frozenset(" \t\n\v\f\r")

Handler = Callable[[List[str], Any], None]


class ConfigSyntaxError(ValueError):
    """A configuration line could not be accepted."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message if line is None else f"line {line}: {message}")
        self.reason = message
        self.line = line


@dataclass(frozen=True)
class Keyword:
    """A configuration keyword.

    The handler receives the whole argument list, keyword first, and the
    target object; it raises ValueError when the arguments are wrong.
    """

    name: str
    handler: Optional[Handler] = None
    help: Optional[str] = None


def split_line(line: str) -> List[str]:
    """Split a line into at most 32 words; comments and blank lines give []."""
    if any(ch not in _ALLOWED_CHARS for ch in line):
        raise ConfigSyntaxError("invalid character")
    args = line.split()[:CONFIG_ARG_NUM_MAX]
    if args and args[0].startswith("#"):
        return []
    return args


def parse_lines(lines: Iterable[str], keywords: Iterable[Keyword], data: Any) -> None:
    """Apply each line's keyword handler to ``data``, stopping at the first error."""
    table = {}
    for keyword in keywords:
        table.setdefault(keyword.name, keyword)

    for line_num, line in enumerate(lines, start=1):
        try:
            argv = split_line(line)
        except ConfigSyntaxError as exc:
            raise ConfigSyntaxError(exc.reason, line_num) from None
        if not argv:
            continue

        keyword = table.get(argv[0])
        if keyword is None:
            raise ConfigSyntaxError(f'unknown config keyword("{argv[0]}")', line_num)
        if keyword.handler is None:
            continue
        try:
            keyword.handler(argv, data)
        except ValueError as exc:
            detail = str(exc)
            message = f"error: {detail}" if detail else "error"
            raise ConfigSyntaxError(message, line_num) from exc


def _read_lines(raw: Iterable[bytes]) -> Iterator[str]:
    for line in raw:
        text = line.decode("latin-1")
        while len(text) > _READ_CHUNK:
            yield text[:_READ_CHUNK]
            text = text[_READ_CHUNK:]
        yield text


def parse_file(path, keywords: Iterable[Keyword], data: Any) -> None:
    """Parse the configuration file at ``path`` into ``data``."""
    try:
        fp = open(path, "rb")
    except OSError as exc:
        raise ConfigSyntaxError(f"config file open error: {path}") from exc
    with fp:
        parse_lines(_read_lines(fp), keywords, data)


def format_help(keywords: Iterable[Keyword]) -> str:
    """Return the manual: one line per keyword with its usage text."""
    return "".join(
        f"{keyword.name} {keyword.help}\n" if keyword.help is not None else f"{keyword.name}\n"
        for keyword in keywords
    )