"""Reading monitor configuration files.

Configuration files are Lua-style assignments of globals, for example::

    hostaddress = "127.1.1.1"
    user = "hf"
    bufsize = "1024" --optional
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


_LEXEME_RE = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<comment>--(?:\[(?P<ceq>=*)\[.*?\](?P=ceq)\]|[^\n]*))
    |(?P<long>\[(?P<leq>=*)\[.*?\](?P=leq)\])
    |(?P<number>0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>[=,;{}\[\]\-])
    """,
    re.VERBOSE | re.DOTALL,
)

_KINDS = ("ws", "comment", "long", "number", "string", "name", "op")
_KEYWORDS = {"true", "false", "nil", "local"}
_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "a": "\a", "b": "\b",
    "f": "\f", "v": "\v", "\\": "\\", '"': '"', "'": "'", "\n": "\n",
}

Value = Union[str, int, float, bool, dict, None]


@dataclass(frozen=True)
class _Lexeme:
    kind: str
    text: str
    pos: int


def _line_of(source: str, pos: int) -> int:
    return source.count("\n", 0, pos) + 1


def _lex(source: str) -> list[_Lexeme]:
    lexemes = []
    pos = 0
    while pos < len(source):
        match = _LEXEME_RE.match(source, pos)
        if match is None:
            raise ConfigError(
                f"line {_line_of(source, pos)}: unexpected character {source[pos]!r}"
            )
        kind = next(k for k in _KINDS if match.group(k) is not None)
        if kind not in ("ws", "comment"):
            lexemes.append(_Lexeme(kind, match.group(kind), pos))
        pos = match.end()
    return lexemes


def _unescape(body: str) -> str:
    def replace(match: re.Match) -> str:
        code = match.group(1)
        if code.isdigit():
            return chr(int(code))
        return _ESCAPES.get(code, code)

    return re.sub(r"\\(\d{1,3}|.)", replace, body, flags=re.DOTALL)


def _long_string(text: str) -> str:
    level = text.index("[", 1) + 1
    body = text[level:-level]
    if body.startswith("\r\n"):
        return body[2:]
    if body.startswith("\n"):
        return body[1:]
    return body


def _number(text: str) -> Union[int, float]:
    if text[:2].lower() == "0x":
        return int(text, 16)
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


class _Parser:
    def __init__(self, source: str) -> None:
        self._source = source
        self._lexemes = _lex(source)
        self._index = 0

    def _error(self, message: str, at: Optional[_Lexeme] = None) -> ConfigError:
        if at is None:
            return ConfigError(f"unexpected end of file: {message}")
        return ConfigError(f"line {_line_of(self._source, at.pos)}: {message}")

    def _peek(self, offset: int = 0) -> Optional[_Lexeme]:
        index = self._index + offset
        return self._lexemes[index] if index < len(self._lexemes) else None

    def _next(self, expected: str = "symbol") -> _Lexeme:
        lexeme = self._peek()
        if lexeme is None:
            raise self._error(f"expected {expected}")
        self._index += 1
        return lexeme

    def _is_op(self, text: str, offset: int = 0) -> bool:
        lexeme = self._peek(offset)
        return lexeme is not None and lexeme.kind == "op" and lexeme.text == text

    def _expect(self, text: str) -> None:
        lexeme = self._next(repr(text))
        if lexeme.kind != "op" or lexeme.text != text:
            raise self._error(f"expected {text!r}, found {lexeme.text!r}", lexeme)

    def parse_chunk(self) -> dict[str, Value]:
        result: dict[str, Value] = {}
        while self._peek() is not None:
            target = self._next()
            if target.kind == "op" and target.text == ";":
                continue
            if target.kind == "name" and target.text == "local":
                target = self._next("name")
            if target.kind != "name" or target.text in _KEYWORDS:
                raise self._error(f"expected assignment, found {target.text!r}", target)
            self._expect("=")
            value = self._expression()
            if value is None:
                result.pop(target.text, None)
            else:
                result[target.text] = value
        return result

    def _expression(self) -> Value:
        lexeme = self._next("value")
        if lexeme.kind == "number":
            return _number(lexeme.text)
        if lexeme.kind == "string":
            return _unescape(lexeme.text[1:-1])
        if lexeme.kind == "long":
            return _long_string(lexeme.text)
        if lexeme.kind == "name":
            if lexeme.text == "true":
                return True
            if lexeme.text == "false":
                return False
            if lexeme.text == "nil":
                return None
        if lexeme.kind == "op":
            if lexeme.text == "-":
                operand = self._next("number")
                if operand.kind != "number":
                    raise self._error("expected number after '-'", operand)
                return -_number(operand.text)
            if lexeme.text == "{":
                return self._table()
        raise self._error(f"unsupported value {lexeme.text!r}", lexeme)

    def _table(self) -> dict:
        table: dict[Any, Value] = {}
        position = 1
        while not self._is_op("}"):
            upcoming = self._peek()
            if self._is_op("["):
                self._next()
                key = self._expression()
                self._expect("]")
                self._expect("=")
                value = self._expression()
                if key is None:
                    raise self._error("table index is nil", self._peek())
                table[key] = value
            elif (
                upcoming is not None
                and upcoming.kind == "name"
                and upcoming.text not in _KEYWORDS
                and self._is_op("=", 1)
            ):
                key = self._next().text
                self._next()
                table[key] = self._expression()
            else:
                table[position] = self._expression()
                position += 1
            if self._is_op(",") or self._is_op(";"):
                self._next()
            else:
                break
        self._expect("}")
        return {key: value for key, value in table.items() if value is not None}


def load_config(path: Union[str, Path]) -> dict[str, Value]:
    """Read a configuration file and return its global assignments."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if text.startswith("#"):
        newline = text.find("\n")
        text = text[newline:] if newline >= 0 else ""
    try:
        return _Parser(text).parse_chunk()
    except ConfigError as exc:
        raise ConfigError(f"{path}: {exc}") from None


def get_config_opt(config: Mapping[str, Value], name: str) -> str:
    """Return a configuration item as a string, or "" if absent or not a string or number."""
    value = config.get(name)
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format(value, ".14g")
    if isinstance(value, str):
        return value
    return ""