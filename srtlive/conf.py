"""Configuration files and command-line options.

A configuration file is a tree of named blocks holding ``name value;``
lines. Every block name is registered with the options it accepts::

    srt {
        worker_threads 1;
        server {
            listen 8080;
            app {
                app_player live;
            }
        }
    }

A block is linked to the one after it as a sibling and to the first
block inside it as a child.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Iterator, Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .util import remove_marks

OUT_OF_RANGE = "out of range"
WRONG_TYPE = "wrong type"

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ConfError(Exception):
    """Raised when a configuration or an option cannot be used."""


class OptionKind(enum.Enum):
    INT = "int"
    STRING = "string"
    DOUBLE = "double"
    BOOL = "bool"

    @property
    def default(self) -> Any:
        return _DEFAULTS[self]


_DEFAULTS: dict[OptionKind, Any] = {
    OptionKind.INT: 0,
    OptionKind.STRING: "",
    OptionKind.DOUBLE: 0.0,
    OptionKind.BOOL: False,
}


@dataclass(frozen=True)
class ConfOption:
    """One settable option: its name, type and allowed range.

    For strings the range bounds the length. ``attr`` is the key the
    value is stored under; it defaults to ``name``.
    """

    name: str
    kind: OptionKind
    mark: str = ""
    min: float = 0
    max: float = 0
    attr: str | None = None

    @property
    def key(self) -> str:
        return self.attr or self.name


@dataclass(eq=False)
class ConfBlock:
    """A configuration block with its values and its links."""

    name: str
    options: tuple[ConfOption, ...] = ()
    values: dict[str, Any] = field(default_factory=dict)
    sibling: ConfBlock | None = None
    child: ConfBlock | None = None

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.values[key] = value

    def siblings(self) -> Iterator[ConfBlock]:
        """Yield this block and every sibling after it."""
        block: ConfBlock | None = self
        while block is not None:
            yield block
            block = block.sibling

    def children(self) -> Iterator[ConfBlock]:
        """Yield the blocks nested directly inside this one."""
        if self.child is not None:
            yield from self.child.siblings()

    def count_siblings(self) -> int:
        """Count this block and the siblings after it."""
        return sum(1 for _ in self.siblings())


class ConfRegistry:
    """Known block names and the options each accepts."""

    def __init__(self) -> None:
        self._blocks: dict[str, tuple[ConfOption, ...]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._blocks

    def register(self, name: str, options: Iterable[ConfOption]) -> None:
        self._blocks[name] = tuple(options)

    def create_block(self, name: str) -> ConfBlock:
        """Make an empty block of kind ``name`` with default values."""
        try:
            options = self._blocks[name]
        except KeyError:
            raise ConfError(f"name='{name}' not found") from None
        values = {option.key: option.kind.default for option in options}
        return ConfBlock(name=name, options=options, values=values)


def find_option(name: str, options: Iterable[ConfOption]) -> ConfOption | None:
    """Return the option called ``name``, or None."""
    return next((option for option in options if option.name == name), None)


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


def _convert(option: ConfOption, value: str) -> Any:
    kind = option.kind
    if kind is OptionKind.BOOL:
        if value == "true":
            return True
        if value == "false":
            return False
        raise ConfError(WRONG_TYPE)
    if kind is OptionKind.STRING:
        if not option.min <= len(value) <= option.max:
            raise ConfError(OUT_OF_RANGE)
        return value
    number: int | float = _atoi(value) if kind is OptionKind.INT else _atof(value)
    if not option.min <= number <= option.max:
        raise ConfError(OUT_OF_RANGE)
    return number


def set_option(option: ConfOption, value: str, target: Any) -> Any:
    """Convert ``value`` for ``option``, store it in ``target`` and return it.

    Numbers are read leniently from the start of the text, so text that
    is not a number reads as zero. ``target`` is a mapping, a block or
    any object with an attribute named by the option's key.
    """
    converted = _convert(option, value)
    if isinstance(target, (MutableMapping, ConfBlock)):
        target[option.key] = converted
    else:
        setattr(target, option.key, converted)
    return converted


def split_conf_string(text: str, delim: str) -> list[str]:
    """Split ``text`` on any character of ``delim``, dropping empty pieces."""
    if not text:
        return []
    if not delim:
        return [text]
    pattern = "[" + re.escape(delim) + "]+"
    return [piece for piece in re.split(pattern, text) if piece]


def _clean(text: str) -> str:
    return text.replace("\t", "").strip(" ")


class _Parser:
    def __init__(self, lines: Iterable[str], registry: ConfRegistry) -> None:
        self._lines = iter(lines)
        self._registry = registry
        self.root = ConfBlock(name="")
        self.line_no = 0
        self._child = True

    def _error(self, message: str) -> ConfError:
        return ConfError(f"line {self.line_no}: {message}")

    def parse_block(self, block: ConfBlock) -> bool:
        """Parse until the closing brace; True when the block is complete."""
        ok = False
        last = ""
        for raw in self._lines:
            self.line_no += 1
            text = _clean(raw.rstrip("\n").split("#", 1)[0])
            if not text:
                continue
            flag = text[-1]
            if flag == ";":
                if block is self.root:
                    raise self._error(f"'{text}', not found block")
                text = _clean(text[:-1])
                name, sep, value = text.partition(" ")
                if not sep:
                    raise self._error(f"'{text}', no space separator")
                option = find_option(name, block.options)
                if option is None:
                    raise self._error(f"'{text}', wrong name='{name}'")
                try:
                    set_option(option, value.strip(" "), block)
                except ConfError as exc:
                    raise self._error(
                        f"set failed, {exc}, name='{name}', value='{value.strip(' ')}'"
                    ) from None
            elif flag == "{":
                text = _clean(text[:-1])
                name = text
                if not name:
                    if not last:
                        raise self._error("no name found")
                    name = last
                    last = ""
                try:
                    new_block = self._registry.create_block(name)
                except ConfError as exc:
                    raise self._error(str(exc)) from None
                if self._child:
                    block.child = new_block
                else:
                    block.sibling = new_block
                block = new_block
                self._child = True
                if not self.parse_block(block):
                    raise self._error(
                        f"parse block='{name}' failed, "
                        "please check count of '{' and '}'"
                    )
                ok = True
            elif flag == "}":
                if text != "}":
                    raise self._error(f"'{text}', end indicator '}}' with more info")
                self._child = False
                return True
            else:
                raise self._error(
                    f"'{text}', invalid end flag, expect ';', '{{', '}}'"
                )
            last = text
        return ok


def parse_conf(lines: Iterable[str], registry: ConfRegistry) -> ConfBlock | None:
    """Parse configuration lines and return the first top-level block."""
    parser = _Parser(lines, registry)
    if not parser.parse_block(parser.root):
        raise ConfError("parse conf failed")
    return parser.root.child


def load_conf(path: str, registry: ConfRegistry) -> ConfBlock | None:
    """Read and parse the configuration file at ``path``."""
    try:
        with open(path, encoding="utf-8") as conf_file:
            lines = conf_file.read().splitlines()
    except OSError as exc:
        raise ConfError(f"open conf file='{path}' failed: {exc}") from exc
    try:
        return parse_conf(lines, registry)
    except ConfError as exc:
        raise ConfError(f"parse conf file='{path}' failed, {exc}") from exc


def _help_text(options: Sequence[ConfOption]) -> str:
    lines = ["option help info:"]
    lines.extend(
        f"-{option.name}, {option.mark}, range: {option.min:.0f}-{option.max:.0f}."
        for option in options
    )
    return "\n".join(lines)


def parse_argv(argv: Sequence[str], options: Sequence[ConfOption]) -> dict[str, Any]:
    """Parse ``-name value`` pairs (program name excluded) into a dict.

    A lone ``-h`` raises :class:`ConfError` carrying the help text.
    """
    result: Mapping[str, Any] = {option.key: option.kind.default for option in options}
    values = dict(result)
    if len(argv) == 1:
        if remove_marks(argv[0]) == "-h":
            raise ConfError(_help_text(options))
        raise ConfError(f"wrong parameter, '{argv[0]}'")

    args = iter(argv)
    for arg in args:
        if not arg:
            raise ConfError("wrong parameter, is ''")
        flag = remove_marks(arg)
        if not flag.startswith("-"):
            raise ConfError(
                f"wrong parameter '{arg}', the first character must be '-'"
            )
        name = flag[1:]
        option = find_option(name, options)
        if option is None:
            raise ConfError(f"wrong parameter '{arg}'")
        try:
            value = remove_marks(next(args))
        except StopIteration:
            raise ConfError(f"parameter '{arg}' has no value") from None
        try:
            set_option(option, value, values)
        except ConfError as exc:
            raise ConfError(
                f"parameter set failed, {exc}, name='{name}', value='{value}'"
            ) from None
    return values