# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Directive records, one per kind of preprocessor directive
- A generic token parser, and the directive parser built on it
"""
from __future__ import annotations

import logging
import typing
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar

from cxxpp.errors import ParseError
from cxxpp.lexer import Lexer
from cxxpp.macros import Macro, _representation_string, make_macro
from cxxpp.tokens import (
    HASH,
    EndOfFile,
    Identifier,
    Punctuator,
    StringConstant,
    Token,
    is_punctuator,
)

log = logging.getLogger(__name__)


class DirectiveKind(Enum):
    DEFINE = "define"
    UNDEF = "undef"
    IF = "if"
    IFDEF = "ifdef"
    IFNDEF = "ifndef"
    ELIF = "elif"
    ELIFDEF = "elifdef"
    ELIFNDEF = "elifndef"
    ELSE = "else"
    ENDIF = "endif"
    INCLUDE = "include"
    PRAGMA = "pragma"
    OTHER = "other"


CONDITIONAL_KINDS = frozenset(
    [
        DirectiveKind.IF,
        DirectiveKind.IFDEF,
        DirectiveKind.IFNDEF,
        DirectiveKind.ELIF,
        DirectiveKind.ELIFDEF,
        DirectiveKind.ELIFNDEF,
        DirectiveKind.ELSE,
        DirectiveKind.ENDIF,
    ],
)


@dataclass(eq=False)
class DirectiveNode:
    """
    Represents a C preprocessor directive.
    We need to track all of the tokens for this directive, so that it can
    be located and reported.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.OTHER

    tokens: list[Token]

    @property
    def filename(self) -> str:
        return self.tokens[0].file

    @property
    def line(self) -> int:
        return self.tokens[0].line

    def spelling(self) -> list[str]:
        """
        Recover the original spelling of this directive in the input code.
        Useful primarily for debugging and generating error messages.

        Returns
        -------
        list[str]
            The string representation of this directive in the input code.
        """
        out = []
        for token in self.tokens:
            if token.prev_white and out:
                out.append(" ")
            out.append(str(token))
        return ["".join(out)]


@dataclass(eq=False)
class UnrecognizedDirectiveNode(DirectiveNode):
    """
    Represents an unrecognized or null preprocessor directive.
    """


@dataclass(eq=False)
class PragmaNode(DirectiveNode):
    """
    Represents a #pragma directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.PRAGMA

    expr: list[Token]

    def is_once(self) -> bool:
        return len(self.expr) > 0 and self.expr[0].value == "once"


@dataclass(eq=False)
class DefineNode(DirectiveNode):
    """
    Represents a #define directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.DEFINE

    identifier: Identifier
    args: list[Identifier] | None = None
    value: list[Token] | None = None

    def macro(self) -> Macro:
        """
        Return the macro defined by this directive.
        """
        if self.value is None:
            raise RuntimeError("Cannot expand macro to None")
        return make_macro(self.identifier, self.args, self.value)


@dataclass(eq=False)
class UndefNode(DirectiveNode):
    """
    Represents an #undef directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.UNDEF

    identifier: Identifier


class IncludePath:
    """
    Represents an include path enclosed by "" or <>
    """

    def __init__(self, path: str, system: bool):
        self.path = path
        self.system = system

    def __repr__(self) -> str:
        return _representation_string(self)

    def spelling(self) -> list[str]:
        """
        Return the string representation of this path in the input code.
        Useful primarily for debugging and generating error messages.
        """
        if self.system:
            return [f"<{self.path!s}>"]
        return [f'"{self.path!s}"']

    def is_system_path(self) -> bool:
        return self.system


@dataclass(eq=False)
class IncludeNode(DirectiveNode):
    """
    Represents an #include, #include_next or #import directive.
    Its value is an IncludePath or, for computed includes, a list of tokens
    to be expanded.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.INCLUDE

    value: IncludePath | list[Token]
    once: bool = False


@dataclass(eq=False)
class IfNode(DirectiveNode):
    """
    Represents an #if directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.IF

    expr: list[Token]


@dataclass(eq=False)
class ElIfNode(IfNode):
    """
    Represents an #elif directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.ELIF


@dataclass(eq=False)
class IfDefNode(DirectiveNode):
    """
    Represents an #ifdef directive. The identifier is None if the
    directive names no macro.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.IFDEF

    identifier: Identifier | None

    def test(self, is_defined: typing.Callable[[str], bool]) -> bool:
        if self.identifier is None:
            return False
        return is_defined(self.identifier.value)


@dataclass(eq=False)
class IfNDefNode(IfDefNode):
    """
    Represents an #ifndef directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.IFNDEF

    def test(self, is_defined: typing.Callable[[str], bool]) -> bool:
        if self.identifier is None:
            return False
        return not is_defined(self.identifier.value)


@dataclass(eq=False)
class ElIfDefNode(IfDefNode):
    """
    Represents an #elifdef directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.ELIFDEF


@dataclass(eq=False)
class ElIfNDefNode(IfNDefNode):
    """
    Represents an #elifndef directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.ELIFNDEF


@dataclass(eq=False)
class ElseNode(DirectiveNode):
    """
    Represents an #else directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.ELSE


@dataclass(eq=False)
class EndIfNode(DirectiveNode):
    """
    Represents an #endif directive.
    """

    kind: ClassVar[DirectiveKind] = DirectiveKind.ENDIF


class Parser:
    """
    A generic token parser for matching tokens from a list.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def cursor(self) -> Token:
        """
        Return the current token in the list.
        """
        try:
            return self.tokens[self.pos]
        except IndexError:
            raise ParseError("No tokens left for cursor to traverse")

    def eol(self) -> bool:
        """
        Return True when the end of the list is reached.
        """
        return self.pos == len(self.tokens)

    def match_type(self, token_type: type) -> Token:
        """
        Match a token of the specified type and advance position.
        """
        if isinstance(self.cursor(), token_type):
            token = self.cursor()
            self.pos += 1
        else:
            raise ParseError(f"Expected {token_type!s}.")
        return token

    def match_value(self, token_type: type, token_value: Any) -> Token:
        """
        Match a token of the specified type and value, and advance
        position. A tuple of values matches any of its members.
        """
        if isinstance(token_value, tuple):
            values = token_value
        else:
            values = (token_value,)
        if (
            isinstance(self.cursor(), token_type)
            and self.cursor().value in values
        ):
            token = self.cursor()
            self.pos += 1
        else:
            raise ParseError(f"Expected {token_value!s}.")
        return token


class DirectiveParser(Parser):
    """
    A specialized token parser for recognizing directives.
    """

    def __arg(self) -> Identifier:
        """
        Match an Identifier, Identifier... or ...

        <arg> := <identifier>?'...'
        """
        arg = None

        # Match optional identifier
        initial_pos = self.pos
        try:
            arg = typing.cast(Identifier, self.match_type(Identifier))
        except ParseError:
            self.pos = initial_pos

        # Match optional '...'
        ellipsis_pos = self.pos
        try:
            punc = self.match_value(Punctuator, "...")
            if arg is None:
                arg = Identifier(
                    punc.file,
                    punc.line,
                    punc.col,
                    punc.prev_white,
                    "...",
                )
            else:
                arg = replace(arg, value=arg.value + "...")
        except ParseError:
            self.pos = ellipsis_pos

        if arg is not None:
            return arg
        raise ParseError("Invalid argument")

    def __arg_list(self) -> list[Identifier]:
        """
        Match a comma-separated list of arguments.
        Return a list of the Identifier(s) and advance position.

        <arg-list> := [<arg>[','<arg>]*]?
        """
        args = []
        try:
            arg = self.__arg()
            args.append(arg)
            if arg.value.endswith("..."):
                return args

            while True:
                self.match_value(Punctuator, ",")

                arg = self.__arg()
                args.append(arg)
                if arg.value.endswith("..."):
                    return args

        except ParseError:
            return args

    def macro_definition(self) -> tuple[Identifier, list[Identifier] | None]:
        """
        Match a macro definition.
        Return a tuple of the Identifier and argument list (or None).
        """
        identifier = typing.cast(Identifier, self.match_type(Identifier))

        # Match function-like macro definitions
        arg_pos = self.pos
        try:
            # Read a list of arguments between parentheses.
            # whitespace is NOT permitted before the opening paren.
            punctuator = self.match_value(Punctuator, "(")
            if punctuator.prev_white:
                raise ParseError("Not a function-like macro.")
            args = self.__arg_list()
            punctuator = self.match_value(Punctuator, ")")
        except ParseError:
            args = None
            self.pos = arg_pos

        return (identifier, args)

    def define(self) -> DefineNode:
        """
        Match a define directive.
        Return a DefineNode.

        <define-macro>    := 'define'<identifier><token-list>?
        <define-function> := 'define'<identifier>
                             '('<identifier-list>?')'
                             <token-list>?
        <identifier-list> := [<identifier>][','<identifier>]*
        <define>          := [<define-macro>|<define-function>]
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "define")
            (identifier, args) = self.macro_definition()

            # Any remaining tokens are the macro expansion
            if not self.eol():
                expansion = self.tokens[self.pos :]
                self.pos = len(self.tokens)
            else:
                expansion = []

            return DefineNode(self.tokens, identifier, args, expansion)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid define directive.")

    def undef(self) -> UndefNode:
        """
        Match an #undef directive.
        Return an UndefNode.

        <undef> := 'undef'<identifier>
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "undef")
            identifier = typing.cast(
                Identifier,
                self.match_type(Identifier),
            )
            return UndefNode(self.tokens, identifier)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid undef directive.")

    def include(self) -> IncludeNode:
        """
        Match an #include directive.
        Return an IncludeNode.

        <include> := ['include'|'include_next'|'import']<token-list>
        """
        initial_pos = self.pos

        try:
            keyword = self.match_value(
                Identifier,
                ("include", "include_next", "import"),
            )
            once = keyword.value == "import"

            path_pos = self.pos

            # Match system or local include path
            include_payload: IncludePath | list[Token]
            try:
                include_payload = self.include_path()
            except ParseError:
                self.pos = path_pos
                if self.eol():
                    raise
                include_payload = self.tokens[path_pos:]
                self.pos = len(self.tokens)

            return IncludeNode(self.tokens, include_payload, once)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid include directive.")

    def __path(
        self,
        marker_type: type = Punctuator,
        initiator_value: str = '"',
        terminator_value: str = '"',
    ) -> list[Token]:
        """
        Match a path enclosed between the specified initiator and
        terminator values.
        """
        path = []
        self.match_value(marker_type, initiator_value)
        while not self.eol() and not (
            isinstance(self.cursor(), marker_type)
            and self.cursor().value == terminator_value
        ):
            path.append(self.cursor())
            self.pos += 1
        self.match_value(marker_type, terminator_value)
        return path

    def include_path(self) -> IncludePath:
        """
        Match an include path.
        <include-path> := ['<'<path>'>'|'\"'<path>'\"']
        """
        initial_pos = self.pos

        # Match system include
        try:
            path_tokens = self.__path(Punctuator, "<", ">")
            parts = []
            for t in path_tokens:
                if t.prev_white and parts:
                    parts.append(" ")
                parts.append(str(t))
            path_str = "".join(parts)
            if path_str:
                return IncludePath(path_str, system=True)
        except ParseError:
            self.pos = initial_pos

        # Match local include
        try:
            path_token = typing.cast(
                StringConstant,
                self.match_type(StringConstant),
            )
            if path_token.prefix == "" and path_token.content:
                return IncludePath(path_token.content, system=False)
        except ParseError:
            pass
        self.pos = initial_pos

        raise ParseError("Invalid path.")

    def pragma(self) -> PragmaNode:
        """
        Match a #pragma directive.
        Return a PragmaNode.

        <pragma> := 'pragma'<token-list>
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "pragma")
            expr = self.tokens[self.pos :]
            self.pos = len(self.tokens)

            return PragmaNode(self.tokens, expr)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid pragma directive.")

    def if_(self) -> IfNode:
        """
        Match an #if directive.
        Return an IfNode.

        <if> := 'if'<token-list>
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "if")
            expr = self.tokens[self.pos :]
            self.pos = len(self.tokens)

            return IfNode(self.tokens, expr)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid if directive.")

    def __defined_test(
        self,
        name: str,
        node_type: type[IfDefNode],
    ) -> IfDefNode:
        """
        Match a directive of the form <name><identifier>.

        <ifdef> := 'ifdef'<identifier>
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, name)
            try:
                identifier = typing.cast(
                    Identifier,
                    self.match_type(Identifier),
                )
            except ParseError:
                log.warning(
                    f"{self.tokens[0].file}:{self.tokens[0].line}: "
                    + f"no macro name given in #{name} directive",
                )
                return node_type(self.tokens, None)
            return node_type(self.tokens, identifier)
        except ParseError:
            self.pos = initial_pos
            raise ParseError(f"Invalid {name} directive")

    def ifdef(self) -> IfDefNode:
        return self.__defined_test("ifdef", IfDefNode)

    def ifndef(self) -> IfDefNode:
        return self.__defined_test("ifndef", IfNDefNode)

    def elifdef(self) -> IfDefNode:
        return self.__defined_test("elifdef", ElIfDefNode)

    def elifndef(self) -> IfDefNode:
        return self.__defined_test("elifndef", ElIfNDefNode)

    def elif_(self) -> ElIfNode:
        """
        Match an #elif directive.
        Return an ElIfNode.

        <elif> := 'elif'<token-list>
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "elif")
            expr = self.tokens[self.pos :]
            self.pos = len(self.tokens)

            return ElIfNode(self.tokens, expr)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid elif directive.")

    def else_(self) -> ElseNode:
        """
        Match an #else directive.
        Return an ElseNode.

        <else> := 'else'
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "else")
            return ElseNode(self.tokens)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid else directive.")

    def endif(self) -> EndIfNode:
        """
        Match an #endif directive.
        Return an EndIfNode.

        <endif> := 'endif'
        """
        initial_pos = self.pos
        try:
            self.match_value(Identifier, "endif")
            return EndIfNode(self.tokens)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid endif directive.")

    def parse(self, conditional_only: bool = False) -> DirectiveNode:
        """
        Parse a preprocessor directive.
        Return a DirectiveNode.

        If conditional_only is True, only conditional directives are
        recognized; any other directive is an UnrecognizedDirectiveNode.

        <directive> := '#'[<define>|<undef>|<include>|<ifdef>|<ifndef>|
                           <elifdef>|<elifndef>|<if>|<elif>|<else>|
                           <endif>|<pragma>]?
        """
        try:
            self.match_value(Punctuator, HASH)

            # Check for a match against known directives
            candidates = [
                self.ifdef,
                self.ifndef,
                self.elifdef,
                self.elifndef,
                self.if_,
                self.elif_,
                self.else_,
                self.endif,
            ]
            if not conditional_only:
                candidates += [
                    self.define,
                    self.undef,
                    self.include,
                    self.pragma,
                ]
            for f in candidates:
                try:
                    directive = f()
                    if not self.eol():
                        chars = "".join(str(x) for x in self.tokens)
                        log.warning(
                            f"Additional tokens at end of directive: {chars}",
                        )
                    return directive
                except ParseError:
                    pass

            return UnrecognizedDirectiveNode(self.tokens)
        except ParseError:
            raise ParseError("Not a directive.")


def macro_from_definition_string(string: str) -> Macro:
    """
    Construct a Macro or MacroFunction by parsing a string of the form
    NAME, NAME value, NAME(params) value or NAME=value.
    """
    tokens = [
        t
        for t in Lexer(string, "<command line>").tokenize()
        if not isinstance(t, EndOfFile)
    ]
    parser = DirectiveParser(tokens)

    (identifier, args) = parser.macro_definition()

    # An "=" directly after the name (or parameters) separates the body
    if not parser.eol():
        separator = parser.cursor()
        if is_punctuator(separator, "=") and not separator.prev_white:
            parser.pos += 1

    expansion = parser.tokens[parser.pos :]
    parser.pos = len(parser.tokens)

    return make_macro(identifier, args, expansion)
