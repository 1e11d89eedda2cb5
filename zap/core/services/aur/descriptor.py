"""
Build descriptor parser — dependency arrays out of a PKGBUILD.

A PKGBUILD is a bash script; we do not evaluate it. We only collect the
tokens assigned to the recognised dependency keys, with just enough
shell quoting rules to get multi-line arrays and quoted tokens right.

States::

    IDLE ──key=(──▶ ARRAY_OPEN ──no ')' on line──▶ ARRAY_CONTINUATION
      │                 │  ▲                            │  ▲
      │                 ▼  │ quote closes                ▼  │
      │            IN_QUOTED_TOKEN ◀─────── quote opens ─┘  │
      │                                                     │
      └──key=value──▶ SCALAR_ASSIGNMENT ──end of line──▶ IDLE ◀── ')' ──┘

Outside quotes, unescaped whitespace ends a token and ``#`` at the start
of a token comments out the rest of the line. Blank and ``#`` lines are
skipped unless they sit inside a quoted token.
"""

from __future__ import annotations

import re
from enum import StrEnum

from zap.core.errors import ParseError

DEPENDENCY_KEYS: tuple[str, ...] = ("depends", "makedepends", "checkdepends")

_VERSION_OPERATOR = re.compile(r"[<>=]")
_QUOTES = ("'", '"')
# Characters a backslash escapes inside double quotes
_DQUOTE_ESCAPABLE = '"\\$`'


class ParserState(StrEnum):
    IDLE = "idle"
    SCALAR_ASSIGNMENT = "scalar_assignment"
    ARRAY_OPEN = "array_open"
    ARRAY_CONTINUATION = "array_continuation"
    IN_QUOTED_TOKEN = "in_quoted_token"


class DescriptorParser:
    """State-machine tokenizer for dependency declarations.

    ``parse`` returns raw tokens, version constraints included. Use
    ``parse_dependencies`` for cleaned names.
    """

    def __init__(self, keys: tuple[str, ...] = DEPENDENCY_KEYS):
        self.keys = keys
        alternatives = "|".join(re.escape(k) for k in keys)
        self._key_re = re.compile(rf"^(?:{alternatives})\s*\+?=(?P<rest>.*)$")
        self._reset()

    def _reset(self) -> None:
        self.state = ParserState.IDLE
        self._tokens: list[str] = []
        self._current: list[str] = []
        self._in_token = False
        self._quote = ""
        self._resume = ParserState.IDLE

    def parse(self, text: str) -> list[str]:
        """Collect raw dependency tokens from every recognised declaration.

        Raises:
            ParseError: If an array or quoted token is still open at the
                end of the text.
        """
        self._reset()
        for line in text.splitlines():
            self._feed_line(line)

        if self.state == ParserState.IN_QUOTED_TOKEN:
            raise ParseError("Unterminated quoted token in dependency array")
        if self.state != ParserState.IDLE:
            raise ParseError("Unterminated dependency array")
        return list(self._tokens)

    # ── Line dispatch ───────────────────────────────────────────

    def _feed_line(self, line: str) -> None:
        if self.state == ParserState.IN_QUOTED_TOKEN:
            self._scan(line)
            return

        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return

        if self.state == ParserState.ARRAY_CONTINUATION:
            if stripped == ")":
                self._end_token()
                self.state = ParserState.IDLE
                return
            self._scan(stripped)
            return

        match = self._key_re.match(stripped)
        if not match:
            return

        rest = match.group("rest").lstrip()
        if rest.startswith("("):
            self.state = ParserState.ARRAY_OPEN
            self._scan(rest[1:])
        else:
            self.state = ParserState.SCALAR_ASSIGNMENT
            self._scan(rest)

    # ── Character scanner ───────────────────────────────────────

    def _scan(self, text: str) -> None:
        i = 0
        while i < len(text):
            ch = text[i]

            if self.state == ParserState.IN_QUOTED_TOKEN:
                if ch == self._quote:
                    self.state = self._resume
                    self._quote = ""
                elif (
                    ch == "\\"
                    and self._quote == '"'
                    and i + 1 < len(text)
                    and text[i + 1] in _DQUOTE_ESCAPABLE
                ):
                    i += 1
                    self._current.append(text[i])
                else:
                    self._current.append(ch)
                i += 1
                continue

            if ch in _QUOTES:
                self._resume = self.state
                self.state = ParserState.IN_QUOTED_TOKEN
                self._quote = ch
                self._in_token = True
            elif ch == "\\":
                # A trailing backslash is a line continuation
                if i + 1 < len(text):
                    i += 1
                    self._current.append(text[i])
                    self._in_token = True
            elif ch.isspace():
                self._end_token()
                if self.state == ParserState.SCALAR_ASSIGNMENT:
                    self.state = ParserState.IDLE
                    return
            elif ch == "#" and not self._in_token:
                break
            elif ch == ")" and self.state in (
                ParserState.ARRAY_OPEN,
                ParserState.ARRAY_CONTINUATION,
            ):
                self._end_token()
                self.state = ParserState.IDLE
                return
            else:
                self._current.append(ch)
                self._in_token = True
            i += 1

        self._end_of_line()

    def _end_of_line(self) -> None:
        if self.state == ParserState.IN_QUOTED_TOKEN:
            self._current.append("\n")
            if self._resume == ParserState.ARRAY_OPEN:
                self._resume = ParserState.ARRAY_CONTINUATION
            return

        self._end_token()
        if self.state == ParserState.SCALAR_ASSIGNMENT:
            self.state = ParserState.IDLE
        elif self.state == ParserState.ARRAY_OPEN:
            self.state = ParserState.ARRAY_CONTINUATION

    def _end_token(self) -> None:
        if self._in_token:
            self._tokens.append("".join(self._current))
        self._current.clear()
        self._in_token = False


def clean_dependency(token: str) -> str:
    """Strip a version constraint: ``'glibc>=2.38'`` → ``'glibc'``."""
    parts = token.split()
    if not parts:
        return ""
    return _VERSION_OPERATOR.split(parts[0], maxsplit=1)[0]


def clean_dependencies(tokens: list[str]) -> list[str]:
    """Normalise raw tokens into unique bare names, in first-seen order."""
    names: list[str] = []
    for token in tokens:
        name = clean_dependency(token)
        if not name.strip("()"):
            continue
        if name not in names:
            names.append(name)
    return names


def parse_dependencies(text: str) -> list[str]:
    """Parse a PKGBUILD and return bare dependency names.

    Raises:
        ParseError: On an unterminated array or quote.
    """
    return clean_dependencies(DescriptorParser().parse(text))
