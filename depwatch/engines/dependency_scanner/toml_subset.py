"""Minimal TOML reader for pyproject.toml and uv.lock.

Recursive descent over characters. Supports bare, quoted and dotted keys,
``[table]`` / ``[[array.of.tables]]`` headers, inline tables, multi-line
arrays with comments and trailing commas, basic/literal strings (and their
triple-quoted forms), integers, floats and booleans. Dates and times are
kept as raw strings.

:func:`parse_toml` never raises; it returns whatever was parsed before the
first structural error. :func:`loads` is the strict variant.
"""

from __future__ import annotations

import re
from typing import Any

from depwatch.core.exceptions import TomlDecodeError

_BARE_KEY_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-")
_INT_RE = re.compile(r"^[+-]?(0|[1-9](_?\d)*)$")
_PREFIXED_INT_RE = re.compile(
    r"^0(x[0-9A-Fa-f](_?[0-9A-Fa-f])*|o[0-7](_?[0-7])*|b[01](_?[01])*)$"
)
_DATETIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}|\d{2}:\d{2}:\d{2})")
_FLOAT_RE = re.compile(r"^[+-]?(0|[1-9](_?\d)*)(\.\d(_?\d)*)?([eE][+-]?\d(_?\d)*)?$")
_SPECIAL_FLOATS = {"inf": float("inf"), "+inf": float("inf"), "-inf": float("-inf"),
                   "nan": float("nan"), "+nan": float("nan"), "-nan": float("nan")}
_ESCAPES = {"b": "\b", "t": "\t", "n": "\n", "f": "\f", "r": "\r", '"': '"', "\\": "\\"}
_SCALAR_STOP = frozenset(",]}#\n\r")


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text.replace("\r\n", "\n")
        self.pos = 0
        self.result: dict[str, Any] = {}
        self.current: dict[str, Any] = self.result

    # ── cursor helpers ──────────────────────────────────────────────────

    @property
    def line(self) -> int:
        return self.text.count("\n", 0, self.pos) + 1

    def error(self, message: str) -> TomlDecodeError:
        return TomlDecodeError(message, self.line)

    def peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else ""

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def skip_ws(self) -> None:
        while self.peek() in (" ", "\t"):
            self.pos += 1

    def skip_comment(self) -> None:
        if self.peek() == "#":
            while not self.at_end() and self.peek() != "\n":
                self.pos += 1

    def skip_ws_comments_newlines(self) -> None:
        while not self.at_end():
            ch = self.peek()
            if ch in (" ", "\t", "\n"):
                self.pos += 1
            elif ch == "#":
                self.skip_comment()
            else:
                return

    def expect_line_end(self) -> None:
        self.skip_ws()
        self.skip_comment()
        if self.at_end():
            return
        if self.peek() != "\n":
            raise self.error(f"unexpected character {self.peek()!r} after value")
        self.pos += 1

    # ── document ────────────────────────────────────────────────────────

    def parse(self) -> dict[str, Any]:
        while True:
            self.skip_ws_comments_newlines()
            if self.at_end():
                return self.result
            if self.peek() == "[":
                self.parse_header()
            else:
                self.parse_key_value(self.current)
                self.expect_line_end()

    def parse_header(self) -> None:
        is_array = self.peek(1) == "["
        self.pos += 2 if is_array else 1
        self.skip_ws()
        keys = self.parse_key()
        self.skip_ws()
        closing = "]]" if is_array else "]"
        if self.text[self.pos : self.pos + len(closing)] != closing:
            raise self.error("unterminated table header")
        self.pos += len(closing)
        self.expect_line_end()

        table = self.result
        for key in keys[:-1]:
            table = self.descend(table, key)
        last = keys[-1]
        if is_array:
            array = table.setdefault(last, [])
            if not isinstance(array, list):
                raise self.error(f"key {last!r} is not an array of tables")
            new_table: dict[str, Any] = {}
            array.append(new_table)
            self.current = new_table
        else:
            existing = table.setdefault(last, {})
            if isinstance(existing, list) and existing and isinstance(existing[-1], dict):
                existing = existing[-1]
            if not isinstance(existing, dict):
                raise self.error(f"key {last!r} is not a table")
            self.current = existing

    def descend(self, table: dict[str, Any], key: str) -> dict[str, Any]:
        """Walk into *key*, creating it; arrays of tables resolve to their last element."""
        node = table.setdefault(key, {})
        if isinstance(node, list):
            if not node or not isinstance(node[-1], dict):
                raise self.error(f"key {key!r} is not a table")
            return node[-1]
        if not isinstance(node, dict):
            raise self.error(f"key {key!r} is not a table")
        return node

    def parse_key_value(self, table: dict[str, Any]) -> None:
        keys = self.parse_key()
        self.skip_ws()
        if self.peek() != "=":
            raise self.error("expected '=' after key")
        self.pos += 1
        self.skip_ws()
        value = self.parse_value()
        target = table
        for key in keys[:-1]:
            target = self.descend(target, key)
        if keys[-1] in target:
            raise self.error(f"duplicate key {keys[-1]!r}")
        target[keys[-1]] = value

    # ── keys ────────────────────────────────────────────────────────────

    def parse_key(self) -> list[str]:
        keys = [self.parse_simple_key()]
        while True:
            self.skip_ws()
            if self.peek() != ".":
                return keys
            self.pos += 1
            self.skip_ws()
            keys.append(self.parse_simple_key())

    def parse_simple_key(self) -> str:
        ch = self.peek()
        if ch == '"':
            return self.parse_basic_string()
        if ch == "'":
            return self.parse_literal_string()
        start = self.pos
        while self.peek() and self.peek() in _BARE_KEY_CHARS:
            self.pos += 1
        if start == self.pos:
            raise self.error("expected a key")
        return self.text[start : self.pos]

    # ── values ──────────────────────────────────────────────────────────

    def parse_value(self) -> Any:
        ch = self.peek()
        if ch == '"':
            if self.text.startswith('"""', self.pos):
                return self.parse_multiline_basic_string()
            return self.parse_basic_string()
        if ch == "'":
            if self.text.startswith("'''", self.pos):
                return self.parse_multiline_literal_string()
            return self.parse_literal_string()
        if ch == "[":
            return self.parse_array()
        if ch == "{":
            return self.parse_inline_table()
        if not ch or ch == "\n":
            raise self.error("missing value")
        return self.parse_scalar()

    def parse_scalar(self) -> Any:
        start = self.pos
        while not self.at_end() and self.peek() not in _SCALAR_STOP:
            self.pos += 1
        raw = self.text[start : self.pos].rstrip()
        # keep the cursor right after the token so trailing spaces are skipped normally
        self.pos = start + len(raw)
        if raw == "true":
            return True
        if raw == "false":
            return False
        try:
            if _INT_RE.match(raw):
                return int(raw.replace("_", ""))
            if _PREFIXED_INT_RE.match(raw):
                return int(raw.replace("_", ""), 0)
            if raw in _SPECIAL_FLOATS:
                return _SPECIAL_FLOATS[raw]
            if _FLOAT_RE.match(raw):
                return float(raw.replace("_", ""))
        except ValueError as exc:
            # int() refuses decimals past sys.get_int_max_str_digits()
            raise self.error(f"invalid number {raw[:20]!r}: {exc}") from exc
        if _DATETIME_RE.match(raw):
            # dates, times and datetimes stay as text
            return raw
        raise self.error(f"invalid value {raw!r}")

    def parse_basic_string(self) -> str:
        self.pos += 1
        out: list[str] = []
        while True:
            ch = self.peek()
            if not ch or ch == "\n":
                raise self.error("unterminated string")
            self.pos += 1
            if ch == '"':
                return "".join(out)
            if ch == "\\":
                out.append(self.parse_escape())
            else:
                out.append(ch)

    def parse_escape(self) -> str:
        ch = self.peek()
        self.pos += 1
        if ch in _ESCAPES:
            return _ESCAPES[ch]
        if ch in ("u", "U"):
            width = 4 if ch == "u" else 8
            digits = self.text[self.pos : self.pos + width]
            if len(digits) != width:
                raise self.error("truncated unicode escape")
            self.pos += width
            try:
                return chr(int(digits, 16))
            except ValueError:
                raise self.error(f"invalid unicode escape {digits!r}") from None
        raise self.error(f"invalid escape \\{ch}")

    def parse_literal_string(self) -> str:
        self.pos += 1
        end = self.text.find("'", self.pos)
        newline = self.text.find("\n", self.pos)
        if end == -1 or (newline != -1 and newline < end):
            raise self.error("unterminated literal string")
        value = self.text[self.pos : end]
        self.pos = end + 1
        return value

    def parse_multiline_basic_string(self) -> str:
        self.pos += 3
        if self.peek() == "\n":
            self.pos += 1
        out: list[str] = []
        while True:
            if self.at_end():
                raise self.error("unterminated multi-line string")
            if self.text.startswith('"""', self.pos):
                run = 3
                while self.peek(run) == '"':
                    run += 1
                # up to two quotes may directly precede the closing delimiter
                out.append('"' * min(run - 3, 2))
                self.pos += run
                return "".join(out)
            ch = self.peek()
            self.pos += 1
            if ch != "\\":
                out.append(ch)
                continue
            if self.peek() in (" ", "\t", "\n"):
                # line-ending backslash trims the following whitespace
                save = self.pos
                while self.peek() in (" ", "\t"):
                    self.pos += 1
                if self.peek() != "\n":
                    self.pos = save
                    raise self.error("invalid escape in multi-line string")
                while self.peek() in (" ", "\t", "\n"):
                    self.pos += 1
                continue
            out.append(self.parse_escape())

    def parse_multiline_literal_string(self) -> str:
        self.pos += 3
        if self.peek() == "\n":
            self.pos += 1
        end = self.text.find("'''", self.pos)
        if end == -1:
            raise self.error("unterminated multi-line literal string")
        while self.text.startswith("''''", end):
            end += 1
        value = self.text[self.pos : end]
        self.pos = end + 3
        return value

    def parse_array(self) -> list[Any]:
        self.pos += 1
        items: list[Any] = []
        while True:
            self.skip_ws_comments_newlines()
            if self.at_end():
                raise self.error("unterminated array")
            if self.peek() == "]":
                self.pos += 1
                return items
            items.append(self.parse_value())
            self.skip_ws_comments_newlines()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.error("expected ',' or ']' in array")

    def parse_inline_table(self) -> dict[str, Any]:
        self.pos += 1
        table: dict[str, Any] = {}
        self.skip_ws()
        if self.peek() == "}":
            self.pos += 1
            return table
        while True:
            self.skip_ws()
            self.parse_key_value(table)
            self.skip_ws()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
                continue
            if ch == "}":
                self.pos += 1
                return table
            raise self.error("expected ',' or '}' in inline table")


def loads(text: str) -> dict[str, Any]:
    """Parse *text*, raising :class:`TomlDecodeError` on the first error."""
    return _Parser(text).parse()


def parse_toml(text: str) -> dict[str, Any]:
    """Parse *text*, returning the partial document on error instead of raising."""
    parser = _Parser(text)
    try:
        return parser.parse()
    except (TomlDecodeError, RecursionError):
        return parser.result
