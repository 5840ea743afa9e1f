# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the character lexer, which converts a buffer of C/C++ source into
a stream of raw tokens: line splices are removed, comments are replaced
with whitespace, and literals and punctuators are recognized.
"""
from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Callable, Iterator

from cxxpp.errors import TokenError
from cxxpp.tokens import (
    KEYWORDS,
    PUNCTUATORS,
    CharacterConstant,
    EndOfFile,
    Identifier,
    Keyword,
    NumericalConstant,
    Punctuator,
    StringConstant,
    Token,
    Unknown,
)

log = logging.getLogger(__name__)

# Longest first: "u8R" must be tried before "u8" and "R".
_ENCODING_PREFIXES = ["u8", "u", "U", "L", ""]
_RAW_PREFIXES = ["u8R", "uR", "UR", "LR", "R"]

_RAW_DELIMITER_MAX = 16

_WHITESPACE = " \t\v\f"


def splice_lines(
    string: str,
    filename: str = "Unknown",
) -> tuple[str, list[int]]:
    """
    Normalize line endings and remove backslash-newline sequences.

    Returns
    -------
    tuple[str, list[int]]
        The logical text, and the offset in the logical text at which
        each physical line starts.
    """
    string = string.replace("\r\n", "\n").replace("\r", "\n")
    physical_lines = string.split("\n")

    parts = []
    line_starts = []
    length = 0
    last = len(physical_lines) - 1
    for index, line in enumerate(physical_lines):
        line_starts.append(length)
        if line.endswith("\\"):
            line = line[:-1]
            if index == last:
                log.warning(f"{filename}: backslash-newline at end of file")
        elif index != last:
            line += "\n"
        parts.append(line)
        length += len(line)

    return ("".join(parts), line_starts)


class Lexer:
    """
    A lexer for C/C++ preprocessing tokens.
    """

    def __init__(self, string: str, filename: str = "Unknown") -> None:
        self.filename = filename
        self.string, self._line_starts = splice_lines(string, filename)
        self.pos = 0
        self.prev_white = False
        self.bol = True
        self.eof: EndOfFile | None = None

    def read(self, n: int = 1) -> str:
        """
        Return the next n characters in the string.
        """
        return self.string[self.pos : self.pos + n]

    def eos(self) -> bool:
        """
        Return True when the end of the string is reached.
        """
        return self.pos >= len(self.string)

    def location(self, pos: int) -> tuple[int, int]:
        """
        Return the (1-based) physical line and (0-based) column of a
        position in the logical text.
        """
        index = bisect_right(self._line_starts, pos) - 1
        return (index + 1, pos - self._line_starts[index])

    def _make(self, token_type: Callable[..., Token], start: int) -> Token:
        line, col = self.location(start)
        token = token_type(
            self.filename,
            line,
            col,
            self.prev_white,
            self.string[start : self.pos],
            bol=self.bol,
        )
        self.prev_white = False
        self.bol = False
        return token

    def whitespace(self) -> None:
        """
        Consume whitespace and comments, and advance position.
        Comments are treated as a single space.
        """
        while not self.eos():
            char = self.read()
            if char in _WHITESPACE:
                self.pos += 1
                self.prev_white = True
            elif char == "\n":
                self.pos += 1
                self.prev_white = True
                self.bol = True
            elif self.read(2) == "//":
                end = self.string.find("\n", self.pos)
                self.pos = len(self.string) if end == -1 else end
                self.prev_white = True
            elif self.read(2) == "/*":
                end = self.string.find("*/", self.pos + 2)
                if end == -1:
                    line, _ = self.location(self.pos)
                    log.warning(
                        f"{self.filename}:{line}: unterminated comment",
                    )
                    self.pos = len(self.string)
                else:
                    self.pos = end + 2
                self.prev_white = True
            else:
                break

    def rest_of_line(self, start: int) -> Token:
        """
        Construct an Unknown token from `start` to the end of the physical
        line, and resynchronize at the next line.
        """
        end = self.string.find("\n", start)
        self.pos = len(self.string) if end == -1 else end
        return self._make(Unknown, start)

    def number(self) -> Token:
        """
        Construct a NumericalConstant by parsing a string.
        Return a NumericalConstant and advance position.

        <exponent> := ['e'|'E'|'p'|'P']['+'|'-']
        <number> := .?<digit>[<alpha>|<digit>|'_'|'.'|'''|<exponent>]*
        """
        start = self.pos

        # Match optional period
        if self.read() == ".":
            self.pos += 1

        # Match required decimal digit
        if not self.read().isdigit():
            self.pos = start
            raise TokenError("Invalid preprocessing number.")
        self.pos += 1

        # Match any sequence of letters, digits, underscores, periods,
        # exponents and digit separators
        exponents = ["e+", "e-", "E+", "E-", "p+", "p-", "P+", "P-"]
        while not self.eos():
            if self.read(2) in exponents:
                self.pos += 2
            elif self.read().isalnum() or self.read() in ["_", "."]:
                self.pos += 1
            elif self.read() == "'" and self.read(2)[1:].isalnum():
                self.pos += 2
            else:
                break

        return self._make(NumericalConstant, start)

    def _quoted(self, quote: str) -> int:
        """
        Scan a quoted literal whose opening quote is at the current
        position. Return the position after the closing quote.
        """
        pos = self.pos + 1
        while pos < len(self.string):
            char = self.string[pos]
            if char == "\\":
                if self.string[pos + 1 : pos + 2] in ["", "\n"]:
                    break
                pos += 2
            elif char == quote:
                return pos + 1
            elif char == "\n":
                break
            else:
                pos += 1
        raise TokenError("Unterminated literal.")

    def raw_string(self) -> Token:
        """
        Construct a raw StringConstant.

        <raw-string> := <prefix>'R"'<delimiter>'('.*')'<delimiter>'"'
        """
        start = self.pos
        for prefix in _RAW_PREFIXES:
            if self.read(len(prefix) + 1) == prefix + '"':
                break
        else:
            raise TokenError("Not a raw string.")

        open_quote = self.pos + len(prefix)
        paren = self.string.find("(", open_quote + 1)
        delimiter = self.string[open_quote + 1 : paren]
        if (
            paren == -1
            or len(delimiter) > _RAW_DELIMITER_MAX
            or any(c in delimiter for c in ' ()\\\t\v\f\n"')
        ):
            return self.rest_of_line(start)

        terminator = ")" + delimiter + '"'
        end = self.string.find(terminator, paren + 1)
        if end == -1:
            line, _ = self.location(start)
            log.warning(f"{self.filename}:{line}: unterminated raw string")
            return self.rest_of_line(start)

        self.pos = end + len(terminator)
        return self._make(StringConstant, start)

    def literal(self) -> Token:
        """
        Construct a StringConstant or CharacterConstant, with an optional
        encoding prefix. An unterminated literal becomes an Unknown token
        covering the rest of the line.

        <string-constant> := <prefix>?'"'.*'"'
        <character-constant> := <prefix>?'''.*'''
        """
        start = self.pos
        for prefix in _ENCODING_PREFIXES:
            quote = self.read(len(prefix) + 1)[len(prefix) :]
            if self.read(len(prefix)) == prefix and quote in ['"', "'"]:
                break
        else:
            raise TokenError("Not a string or character constant.")

        self.pos += len(prefix)
        try:
            self.pos = self._quoted(quote)
        except TokenError:
            line, _ = self.location(start)
            log.debug(f"{self.filename}:{line}: unterminated literal")
            return self.rest_of_line(start)

        if quote == '"':
            return self._make(StringConstant, start)
        return self._make(CharacterConstant, start)

    @staticmethod
    def stringify(tokens: list[Token], origin: Token) -> StringConstant:
        """
        Return a tokenized string version of an input series of tokens,
        located at `origin`. Whitespace between tokens becomes one space.
        """
        parts = ['"']
        for p in tokens:
            if p.prev_white and len(parts) > 1:
                parts.append(" ")
            parts.append(p.sanitized_str())
        parts.append('"')
        return StringConstant(
            origin.file,
            origin.line,
            origin.col,
            origin.prev_white,
            "".join(parts),
            expanded_from=origin.expanded_from,
        )

    def identifier(self) -> Token:
        """
        Construct an Identifier (or Keyword) by parsing a string.
        Return an Identifier and advance position.

        <identifier> := [<alpha>|'_'][<alpha>|<digit>|'_']*
        """
        start = self.pos

        # First character of an identifier cannot be a digit
        if self.read().isdigit():
            raise TokenError("Identifiers cannot start with a digit.")

        while not self.eos() and (self.read().isalnum() or self.read() == "_"):
            self.pos += 1

        if self.pos == start:
            raise TokenError("Invalid identifier.")

        if self.string[start : self.pos] in KEYWORDS:
            return self._make(Keyword, start)
        return self._make(Identifier, start)

    def punctuator(self) -> Token:
        """
        Construct a Punctuator using the longest matching spelling.
        """
        start = self.pos
        for spelling in PUNCTUATORS:
            if self.read(len(spelling)) == spelling:
                # "<::" is "<" "::" unless followed by ":" or ">"
                if spelling == "<:" and self.read(3) == "<::":
                    if self.read(4)[3:] not in [":", ">"]:
                        spelling = "<"
                self.pos += len(spelling)
                return self._make(Punctuator, start)
        raise TokenError("Invalid punctuator.")

    def tokenize_one(self) -> Token | None:
        """
        Consume and return next token. Returns None if not possible.
        """
        candidates = [
            self.raw_string,
            self.literal,
            self.number,
            self.identifier,
            self.punctuator,
        ]
        for f in candidates:
            start = self.pos
            try:
                return f()
            except TokenError:
                self.pos = start
        return None

    def tokenize(self) -> Iterator[Token]:
        """
        Yield all tokens in the string, followed by a single EndOfFile.
        """
        while True:
            self.whitespace()
            if self.eos():
                break

            # Treat unmatched single characters as unknown tokens
            token = self.tokenize_one()
            if token is None:
                start = self.pos
                self.pos += 1
                token = self._make(Unknown, start)
            yield token

        line, col = self.location(len(self.string))
        self.eof = EndOfFile(self.filename, line, col, self.prev_white, "")
        yield self.eof

    def lines(self) -> Iterator[list[Token]]:
        """
        Yield the tokens of each non-empty logical line.
        The EndOfFile token is available as `self.eof` afterwards.
        """
        line: list[Token] = []
        for token in self.tokenize():
            if isinstance(token, EndOfFile):
                break
            if token.bol and line:
                yield line
                line = []
            line.append(token)
        if line:
            yield line


def relex(string: str) -> list[Token]:
    """
    Return the tokens of `string`, without the EndOfFile token.
    """
    tokens = Lexer(string).tokenize()
    return [t for t in tokens if not isinstance(t, EndOfFile)]
