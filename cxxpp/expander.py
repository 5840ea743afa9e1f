# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the macro expander, which rescans a list of tokens and replaces
macro invocations using the definitions in a MacroTable.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from itertools import islice

from cxxpp.errors import MacroExpansionError
from cxxpp.macros import Argument, Macro, MacroTable
from cxxpp.tokens import (
    Identifier,
    NumericalConstant,
    Token,
    is_punctuator,
)

log = logging.getLogger(__name__)


class ExpanderFrame:
    """
    A stream of tokens being rescanned. While the frame is live, the name
    of the macro that produced it is painted: identifiers read from it (or
    from frames above it) with that name are not expanded.
    """

    def __init__(self, tokens: list[Token], macro: str | None = None):
        self.tokens = tokens
        self.pos = 0
        self.macro = macro

    def eol(self) -> bool:
        """
        Returns boolean value of the read point being past end of stream.
        """
        return self.pos >= len(self.tokens)

    def __repr__(self) -> str:
        return f"ExpanderFrame(macro={self.macro!r}, pos={self.pos})"


class MacroExpander:
    """
    A specialized token parser for recognizing and expanding macros.

    Prevent infinite recursion. CPP standard requires the nesting limit be
    at least 15, but cpp has been implemented to handle 200.
    """

    def __init__(
        self,
        macros: MacroTable,
        *,
        max_depth: int = 200,
        max_tokens: int = 1_000_000,
        condition: bool = False,
        _depth: int = 0,
    ) -> None:
        self.macros = macros
        self.max_depth = max_depth
        self.max_tokens = max_tokens
        self.condition = condition
        self._depth = _depth
        self.stack: list[ExpanderFrame] = []
        self.produced = 0

    def painted(self, level: int) -> set[str]:
        """
        Return the names painted for tokens read from stack[level].
        """
        return {
            f.macro for f in self.stack[1 : level + 1] if f.macro is not None
        }

    def _paint(self, tok: Token, level: int) -> Token:
        if (
            isinstance(tok, Identifier)
            and tok.expandable
            and tok.value in self.painted(level)
        ):
            return tok.paint()
        return tok

    def pop(self) -> None:
        """
        Pop exhausted frames off the top of the stack, down to the base.
        """
        while len(self.stack) > 1 and self.stack[-1].eol():
            self.stack.pop()

    def push(self, tokens: list[Token], macro: str) -> None:
        """
        Push a new frame for the replacement of `macro`.

        Exhausted frames below are not popped: their names stay painted
        while the new frame is rescanned.
        """
        if len(self.stack) + self._depth >= self.max_depth:
            raise MacroExpansionError(
                f"Maximum macro expansion depth ({self.max_depth}) exceeded "
                + f"while expanding {macro}",
            )
        self.produced += len(tokens)
        if self.produced > self.max_tokens:
            raise MacroExpansionError(
                f"Maximum macro expansion length ({self.max_tokens}) "
                + f"exceeded while expanding {macro}",
            )
        self.stack.append(ExpanderFrame(tokens, macro))

    def consume_tok(self) -> Token | None:
        """
        Consume and return the next token, possibly popping to get where
        that can be done. Returns None once the input is exhausted.
        """
        self.pop()
        frame = self.stack[-1]
        if frame.eol():
            return None
        tok = self._paint(frame.tokens[frame.pos], len(self.stack) - 1)
        frame.pos += 1
        return tok

    def lookahead(self) -> Iterator[Token]:
        """
        Yield the tokens that follow the read point, looking 'down' through
        the stack, without consuming them.
        """
        for level in range(len(self.stack) - 1, -1, -1):
            frame = self.stack[level]
            for tok in frame.tokens[frame.pos :]:
                yield self._paint(tok, level)

    def skip(self, n: int) -> None:
        """
        Consume n tokens previously returned by lookahead().
        """
        for _ in range(n):
            self.consume_tok()

    def peek_tok(self) -> Token | None:
        """
        Return the next logical token, or None if exhausted.
        """
        return next(self.lookahead(), None)

    def collect_args(self, macro: Macro) -> list[list[Token]] | None:
        """
        Split the parenthesized argument list that follows the read point
        into arguments, and consume it. Returns None, consuming nothing, if
        the argument list is unbalanced or has the wrong number of
        arguments.
        """
        # The variadic parameter receives the remaining commas
        max_split = len(macro.parameters) if macro.variadic else -1

        args: list[list[Token]] = []
        current_arg: list[Token] = []
        open_paren_count = 0
        count = 0
        for tok in self.lookahead():
            count += 1
            if count == 1:
                open_paren_count = 1
                continue

            if (
                is_punctuator(tok, ",")
                and open_paren_count == 1
                and len(args) + 1 != max_split
            ):
                args.append(current_arg)
                current_arg = []
                continue

            if is_punctuator(tok, "("):
                open_paren_count += 1
            elif is_punctuator(tok, ")"):
                open_paren_count -= 1
                if open_paren_count == 0:
                    args.append(current_arg)
                    break

            current_arg.append(tok)
        else:
            log.debug(f"Unterminated argument list for macro {macro.name}")
            return None

        if len(macro.parameters) == 0 and args == [[]]:
            args = []
        if not macro.accepts(len(args)):
            log.debug(
                f"Macro {macro.name} expects {len(macro.parameters)} "
                + f"argument(s) but was given {len(args)}",
            )
            return None

        self.skip(count)
        return args

    def defined(self, identifier: Identifier) -> Token:
        """
        Expand a call to defined(X) or defined X, if it is well-formed.
        """
        tokens = list(islice(self.lookahead(), 3))
        name = None
        if len(tokens) > 0 and isinstance(tokens[0], Identifier):
            name = tokens[0]
            self.skip(1)
        elif (
            len(tokens) == 3
            and is_punctuator(tokens[0], "(")
            and isinstance(tokens[1], Identifier)
            and is_punctuator(tokens[2], ")")
        ):
            name = tokens[1]
            self.skip(3)

        if name is None:
            log.debug("Expected identifier after 'defined'")
            return identifier

        value = "1" if self.macros.is_defined(name.value) else "0"
        return NumericalConstant(
            identifier.file,
            identifier.line,
            identifier.col,
            identifier.prev_white,
            value,
            expanded_from=identifier.expanded_from,
        )

    def pre_expand(
        self,
        args: list[list[Token]],
        macro: Macro,
    ) -> list[Argument]:
        """
        Fully expand the arguments of an invocation that are substituted
        outside of # and ## operands.
        """
        pre_expanded = []
        for i, arg in enumerate(args):
            if (
                i >= len(macro.arg_needs_expansion)
                or macro.arg_needs_expansion[i]
            ):
                expander = MacroExpander(
                    self.macros,
                    max_depth=self.max_depth,
                    max_tokens=self.max_tokens - self.produced,
                    condition=self.condition,
                    _depth=self._depth + len(self.stack),
                )
                pre_expanded.append((arg, expander.expand(arg)))
                self.produced += expander.produced
            else:
                pre_expanded.append((arg, []))
        return pre_expanded

    def expand(self, tokens: list[Token]) -> list[Token]:
        """
        Expand a list of input tokens using the specified definitions.
        Return a list of new tokens, representing the result of macro
        expansion.
        """
        self.stack = [ExpanderFrame(list(tokens))]
        res_tokens: list[Token] = []

        while True:
            ctok = self.consume_tok()
            if ctok is None:
                break

            if not isinstance(ctok, Identifier) or not ctok.expandable:
                res_tokens.append(ctok)
                continue

            if self.condition and ctok.value == "defined":
                res_tokens.append(self.defined(ctok))
                continue

            macro = self.macros.lookup(ctok.value)
            if macro is None:
                res_tokens.append(ctok)
                continue

            args: list[Argument] = []
            if macro.is_function_like:
                paren = self.peek_tok()
                if not is_punctuator(paren, "(") or paren.prev_white:
                    res_tokens.append(ctok)
                    continue
                raw_args = self.collect_args(macro)
                if raw_args is None:
                    res_tokens.append(ctok)
                    continue
                args = self.pre_expand(raw_args, macro)

            replacement = [
                t.relocate(ctok, macro.name)
                for t in macro.replace(args, ctok)
            ]
            if replacement:
                replacement[0] = replacement[0].with_white(ctok.prev_white)
            self.push(replacement, macro.name)

        return res_tokens
