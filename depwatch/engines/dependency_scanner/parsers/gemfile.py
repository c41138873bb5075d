"""Parser for Bundler Gemfiles.

Block nesting is tracked with a statement stack (``... do`` / ``if`` /
``end``), so indentation never matters. A gem is a development dependency
when any enclosing ``group`` block, or its own ``group:``/``groups:``
option, names ``:development`` or ``:test``.
"""

from __future__ import annotations

import re

from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    DEV_DEPENDENCIES_GROUP,
    ManifestEntry,
)

_DEV_GROUPS = frozenset({"development", "test"})
_GEM_RE = re.compile(r"^gem[\s(]")
_GROUP_RE = re.compile(r"^group[\s(]")
_BLOCK_OPENER_RE = re.compile(r"\bdo(\s*\|[^|]*\|)?\s*$")
_KEYWORD_OPENER_RE = re.compile(r"^(if|unless|case|while|until|begin|def|class|module)\b")
_INLINE_END_RE = re.compile(r"[\s;]end$")
_MODIFIER_RE = re.compile(r"\s+(?:if|unless)\s+")
_SYMBOL_RE = re.compile(r""":(\w+)|["'](\w+)["']""")
_PERCENT_LIST_RE = re.compile(r"%[iIwW][\[(]([^\])]*)[\])]")
_OPTION_RE = re.compile(r"^:?(\w+)\s*(?::|=>)\s*(.*)$", re.DOTALL)


def _strip_comment(line: str) -> str:
    quote = ""
    for idx, ch in enumerate(line):
        if quote:
            if ch == quote:
                quote = ""
        elif ch in "\"'":
            quote = ch
        elif ch == "#":
            return line[:idx]
    return line


def _split_args(text: str) -> list[str]:
    """Split on top-level commas, respecting quotes and brackets."""
    args: list[str] = []
    depth = 0
    quote = ""
    start = 0
    for idx, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = ""
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(text[start:idx].strip())
            start = idx + 1
    tail = text[start:].strip()
    if tail:
        args.append(tail)
    return args


def _unquote(arg: str) -> str | None:
    arg = arg.strip()
    if len(arg) >= 2 and arg[0] == arg[-1] and arg[0] in "\"'" and arg[0] not in arg[1:-1]:
        return arg[1:-1]
    return None


def _group_names(text: str) -> set[str]:
    names = {a or b for a, b in _SYMBOL_RE.findall(text)}
    for match in _PERCENT_LIST_RE.finditer(text):
        names.update(match.group(1).split())
    return names


def _call_arguments(statement: str, keyword: str) -> str:
    rest = statement[len(keyword) :].strip()
    rest = _BLOCK_OPENER_RE.sub("", rest).strip()
    if rest.startswith("(") and rest.endswith(")"):
        rest = rest[1:-1]
    return rest


def _parse_gem(statement: str, in_dev_group: bool) -> ManifestEntry | None:
    statement = _MODIFIER_RE.split(statement, 1)[0]
    args = _split_args(_call_arguments(statement, "gem"))
    if not args:
        return None
    name = _unquote(args[0])
    if not name:
        return None
    constraints: list[str] = []
    dev = in_dev_group
    for arg in args[1:]:
        value = _unquote(arg)
        if value is not None:
            constraints.append(value.strip())
            continue
        option = _OPTION_RE.match(arg)
        if option and option.group(1) in ("group", "groups"):
            if _group_names(option.group(2)) & _DEV_GROUPS:
                dev = True
    return ManifestEntry(
        name=name,
        specifier=", ".join(constraints) if constraints else "*",
        group=DEV_DEPENDENCIES_GROUP if dev else DEPENDENCIES_GROUP,
    )


def parse_gemfile(content: str) -> list[ManifestEntry]:
    entries: list[ManifestEntry] = []
    # each open block records whether it is a development/test group
    stack: list[bool] = []
    for raw in content.splitlines():
        statement = _strip_comment(raw).strip()
        if not statement:
            continue
        if statement == "end" or statement.startswith("end ") or statement.startswith("end."):
            if stack:
                stack.pop()
            continue
        if _GROUP_RE.match(statement) and _BLOCK_OPENER_RE.search(statement):
            names = _group_names(_call_arguments(statement, "group"))
            stack.append(bool(names & _DEV_GROUPS))
            continue
        if _GEM_RE.match(statement):
            entry = _parse_gem(statement, any(stack))
            if entry is not None:
                entries.append(entry)
            if _BLOCK_OPENER_RE.search(statement):
                stack.append(False)
            continue
        opens = _BLOCK_OPENER_RE.search(statement) or _KEYWORD_OPENER_RE.match(statement)
        if opens and not _INLINE_END_RE.search(statement):
            stack.append(False)
    return entries
