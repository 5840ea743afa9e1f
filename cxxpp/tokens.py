# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the token classes produced by lexing C/C++ source, and the fixed
keyword and punctuator sets used by the lexer.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    CHARACTER = "character"
    PUNCTUATOR = "punctuator"
    UNKNOWN = "unknown"
    EOF = "eof"


KEYWORDS = frozenset(
    [
        "alignas",
        "alignof",
        "asm",
        "auto",
        "bool",
        "break",
        "case",
        "catch",
        "char",
        "char8_t",
        "char16_t",
        "char32_t",
        "class",
        "concept",
        "const",
        "consteval",
        "constexpr",
        "constinit",
        "const_cast",
        "continue",
        "co_await",
        "co_return",
        "co_yield",
        "decltype",
        "default",
        "delete",
        "do",
        "double",
        "dynamic_cast",
        "else",
        "enum",
        "explicit",
        "export",
        "extern",
        "false",
        "float",
        "for",
        "friend",
        "goto",
        "if",
        "inline",
        "int",
        "long",
        "mutable",
        "namespace",
        "new",
        "noexcept",
        "nullptr",
        "operator",
        "private",
        "protected",
        "public",
        "register",
        "reinterpret_cast",
        "requires",
        "return",
        "short",
        "signed",
        "sizeof",
        "static",
        "static_assert",
        "static_cast",
        "struct",
        "switch",
        "template",
        "this",
        "thread_local",
        "throw",
        "true",
        "try",
        "typedef",
        "typeid",
        "typename",
        "union",
        "unsigned",
        "using",
        "virtual",
        "void",
        "volatile",
        "wchar_t",
        "while",
    ],
)

# Longest first, so that the first match is the maximal munch.
PUNCTUATORS = sorted(
    [
        "%:%:",
        "...",
        "<<=",
        ">>=",
        "->*",
        "<=>",
        "::",
        ".*",
        "->",
        "++",
        "--",
        "<<",
        ">>",
        "<=",
        ">=",
        "==",
        "!=",
        "&&",
        "||",
        "*=",
        "/=",
        "%=",
        "+=",
        "-=",
        "&=",
        "^=",
        "|=",
        "##",
        "<:",
        ":>",
        "<%",
        "%>",
        "%:",
        "{",
        "}",
        "[",
        "]",
        "(",
        ")",
        ";",
        ":",
        "?",
        ".",
        "+",
        "-",
        "*",
        "/",
        "%",
        "^",
        "&",
        "|",
        "~",
        "!",
        "=",
        "<",
        ">",
        ",",
        "#",
    ],
    key=len,
    reverse=True,
)

# Digraph spellings of the two preprocessor operators.
HASH = ("#", "%:")
HASH_HASH = ("##", "%:%:")


@dataclass(frozen=True)
class Token:
    """
    Represents a token constructed by the lexer.

    Tokens are immutable: macro expansion produces new tokens, located at
    the invocation site, rather than modifying the tokens of a definition.
    """

    kind: ClassVar[TokenKind] = TokenKind.UNKNOWN

    file: str
    line: int
    col: int
    prev_white: bool
    value: str

    # True for the first token of a logical line.
    bol: bool = field(default=False, compare=False)

    # Name of the outermost macro whose expansion produced this token.
    expanded_from: str | None = field(default=None, compare=False)

    def __str__(self) -> str:
        return "\n".join(self.spelling())

    def spelling(self) -> list[str]:
        """
        Return the string representation of this token in the input code.
        Useful primarily for debugging and generating error messages.
        """
        return [str(self.value)]

    def sanitized_str(self) -> str:
        """
        Return the spelling of this token as it appears inside the result
        of the # operator. Overloaded for string and character constants.
        """
        return str(self)

    def with_white(self, prev_white: bool) -> Token:
        if self.prev_white == prev_white:
            return self
        return replace(self, prev_white=prev_white)

    def relocate(self, origin: Token, macro: str) -> Token:
        """
        Return a copy of this token attributed to the location of `origin`,
        the identifier whose expansion produced it.
        """
        return replace(
            self,
            file=origin.file,
            line=origin.line,
            col=origin.col,
            bol=False,
            expanded_from=origin.expanded_from or macro,
        )


@dataclass(frozen=True)
class Identifier(Token):
    """
    Represents a C identifier.
    """

    kind: ClassVar[TokenKind] = TokenKind.IDENTIFIER

    # False once the token has been painted during macro expansion.
    expandable: bool = field(default=True, compare=False)

    def paint(self) -> Identifier:
        if not self.expandable:
            return self
        return replace(self, expandable=False)


@dataclass(frozen=True)
class Keyword(Identifier):
    """
    Represents a reserved C++ keyword. Keywords remain identifiers for the
    purposes of macro definition and expansion.
    """

    kind: ClassVar[TokenKind] = TokenKind.KEYWORD


@dataclass(frozen=True)
class NumericalConstant(Token):
    """
    Represents a 'preprocessing number'.
    These cannot necessarily be evaluated by the preprocessor (and may
    not be valid syntax).
    """

    kind: ClassVar[TokenKind] = TokenKind.NUMBER


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


@dataclass(frozen=True)
class CharacterConstant(Token):
    """
    Represents a character constant, including its quotes and prefix.
    """

    kind: ClassVar[TokenKind] = TokenKind.CHARACTER

    def sanitized_str(self) -> str:
        return _escape(self.value)


@dataclass(frozen=True)
class StringConstant(Token):
    """
    Represents a string constant, including its quotes and prefix.
    """

    kind: ClassVar[TokenKind] = TokenKind.STRING

    def sanitized_str(self) -> str:
        """
        Return this string quoted for stringification.
        """
        return _escape(self.value)

    @property
    def prefix(self) -> str:
        """
        The encoding prefix (e.g. L, u8, R) preceding the opening quote.
        """
        return self.value[: self.value.index('"')]

    @property
    def is_raw(self) -> bool:
        return self.prefix.endswith("R")

    @property
    def content(self) -> str:
        """
        The characters between the quotes of a non-raw string.
        """
        return self.value[len(self.prefix) + 1 : -1]


@dataclass(frozen=True)
class Punctuator(Token):
    """
    Represents a punctuator or operator (e.g. parentheses, ##).
    """

    kind: ClassVar[TokenKind] = TokenKind.PUNCTUATOR


@dataclass(frozen=True)
class Unknown(Token):
    """
    Represents an unknown character or an unterminated literal.
    """

    kind: ClassVar[TokenKind] = TokenKind.UNKNOWN


@dataclass(frozen=True)
class EndOfFile(Token):
    """
    Represents the end of the token stream.
    """

    kind: ClassVar[TokenKind] = TokenKind.EOF


def is_punctuator(token: Token | None, *values: str) -> bool:
    """
    Return True if `token` is a punctuator spelled as one of `values`.
    """
    return isinstance(token, Punctuator) and token.value in values
