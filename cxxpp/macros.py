# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Macro definitions (object-like, function-like and built-in)
- The macro table owned by a single preprocessing run
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from cxxpp.lexer import Lexer, relex
from cxxpp.tokens import (
    HASH,
    HASH_HASH,
    Identifier,
    NumericalConstant,
    StringConstant,
    Token,
    is_punctuator,
)

log = logging.getLogger(__name__)

# A pair of (raw, pre-expanded) tokens for each argument of an invocation.
Argument = tuple[list[Token], list[Token]]

_MONTHS = [
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
]


def _representation_string(
    obj: Any,
    *,
    name: str | None = None,
    attrs: list[str] | None = None,
) -> str:
    """
    Helper function to build representation strings of the form:
    Name(attribute={attribute!r},...)
    """
    if not name:
        name = obj.__class__.__name__
    if not attrs:
        attrs = obj.__dict__
    properties = ",".join(f"{a}={getattr(obj, a)!r}" for a in attrs)
    return f"{name}({properties})"


def paste(left: Token, right: Token) -> list[Token]:
    """
    Concatenate two tokens and re-lex the result as a single token.
    If the result is not a single valid token, both operands are returned.
    """
    text = left.value + right.value
    tokens = relex(text)
    if len(tokens) != 1 or tokens[0].value != text:
        log.debug(f"Invalid concatenation: {text}")
        return [left, right]
    return [
        replace(
            tokens[0],
            file=left.file,
            line=left.line,
            col=left.col,
            prev_white=left.prev_white,
            bol=False,
            expanded_from=left.expanded_from,
        ),
    ]


def make_macro(
    identifier: Identifier,
    args: list[Identifier] | None,
    expansion: list[Token],
) -> Macro:
    """
    Return a Macro or MacroFunction based on the contents of args.
    """
    if args is None:
        return Macro(identifier, expansion)
    else:
        return MacroFunction(identifier, args, expansion)


class Macro:
    """
    Represents an object-like macro definition.
    """

    def __init__(self, name: Identifier, replacement: list[Token]) -> None:
        self.name = name.value
        if not hasattr(self, "parameters"):
            self.parameters: list[str] = []
            self.variadic = False
        self.arg_needs_expansion = [False for _ in self.parameters]
        self.replacement = self.preproc_replacement(list(replacement))

    @property
    def is_function_like(self) -> bool:
        return False

    def which_arg(self, tok: Token) -> int:
        """
        Returns index of the parameter named by `tok`. -1 if not found.
        """
        return -1

    def _is_stringize(self, body: Sequence[Token], idx: int) -> bool:
        """
        Return True if body[idx] is a # operator applied to a parameter.
        """
        return (
            self.is_function_like
            and is_punctuator(body[idx], *HASH)
            and idx + 1 < len(body)
            and self.which_arg(body[idx + 1]) != -1
        )

    def preproc_replacement(self, body: list[Token]) -> list[Token]:
        """
        Normalize a replacement list: collapse runs of ##, drop ## without
        an operand, and concatenate ## operands that are not parameters.
        """
        collapsed: list[Token] = []
        for tok in body:
            if is_punctuator(tok, *HASH_HASH) and collapsed:
                if is_punctuator(collapsed[-1], *HASH_HASH):
                    continue
            collapsed.append(tok)

        while collapsed and is_punctuator(collapsed[0], *HASH_HASH):
            log.debug(f"{self.name}: ## at start of replacement")
            collapsed.pop(0)
        while collapsed and is_punctuator(collapsed[-1], *HASH_HASH):
            log.debug(f"{self.name}: ## at end of replacement")
            collapsed.pop()

        if collapsed:
            collapsed[0] = collapsed[0].with_white(False)

        res_tokens: list[Token] = []
        idx = 0
        while idx < len(collapsed):
            tok = collapsed[idx]
            if is_punctuator(tok, *HASH_HASH):
                last = res_tokens[-1]
                nexttok = collapsed[idx + 1]
                if (
                    self.which_arg(last) != -1
                    or self.which_arg(nexttok) != -1
                    or self._is_stringize(collapsed, idx + 1)
                ):
                    res_tokens.append(tok)
                    idx += 1
                    continue
                res_tokens.pop()
                res_tokens.extend(paste(last, nexttok))
                idx += 2
                continue

            if self._is_stringize(collapsed, idx):
                res_tokens.extend(collapsed[idx : idx + 2])
                idx += 2
                continue

            arg_idx = self.which_arg(tok)
            if arg_idx != -1:
                pasted = (
                    idx + 1 < len(collapsed)
                    and is_punctuator(collapsed[idx + 1], *HASH_HASH)
                ) or (
                    idx > 0 and is_punctuator(collapsed[idx - 1], *HASH_HASH)
                )
                if not pasted:
                    self.arg_needs_expansion[arg_idx] = True
            res_tokens.append(tok)
            idx += 1
        return res_tokens

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["name", "replacement"],
        )

    def spelling(self) -> list[str]:
        """
        Return (a list containing) a string with a lexable representation of
        this Macro.
        """
        replacement_str = " ".join([str(t) for t in self.replacement])
        return [f"{self.name!s} {replacement_str!s}".rstrip()]

    def accepts(self, count: int) -> bool:
        """
        Return True if this macro can be invoked with `count` arguments.
        """
        return count == 0

    def replace(
        self,
        input_args: Sequence[Argument] = (),
        invocation: Identifier | None = None,
    ) -> list[Token]:
        """
        Return the expansion list for this Macro.
        """
        return list(self.replacement)


class MacroFunction(Macro):
    """
    Represents a function-like macro definition.
    """

    def __init__(
        self,
        name: Identifier,
        args: list[Identifier],
        replacement: list[Token],
    ) -> None:
        self.parameters = [x.value for x in args]
        if len(self.parameters) > 0:
            self.variadic = self.parameters[-1].endswith("...")
        else:
            self.variadic = False
        if self.variadic:
            if self.parameters[-1] == "...":
                # An unnamed variable argument replaces __VA_ARGS__
                self.parameters[-1] = "__VA_ARGS__"
            else:
                # Strip '...' from argument name
                self.parameters[-1] = self.parameters[-1][:-3]
        super().__init__(name, replacement)

    @property
    def is_function_like(self) -> bool:
        return True

    def which_arg(self, tok: Token) -> int:
        """
        Returns index of the parameter named by `tok`. -1 if not found.
        """
        if not isinstance(tok, Identifier):
            return -1
        try:
            return self.parameters.index(tok.value)
        except ValueError:
            return -1

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["name", "parameters", "replacement"],
        )

    def spelling(self) -> list[str]:
        """
        Return the string representation of this macro in the input code.
        Useful primarily for debugging and generating error messages.
        """
        replacement_str = " ".join([str(t) for t in self.replacement])
        params = list(self.parameters)
        if self.variadic:
            if params[-1] == "__VA_ARGS__":
                params[-1] = "..."
            else:
                params[-1] += "..."
        arg_str = ",".join(params)
        return [f"{self.name!s}({arg_str!s}) {replacement_str!s}".rstrip()]

    def accepts(self, count: int) -> bool:
        if self.variadic:
            return count >= len(self.parameters) - 1
        return count == len(self.parameters)

    def _operand(
        self,
        idx: int,
        input_args: Sequence[Argument],
    ) -> tuple[list[Token], int]:
        """
        Return the tokens of the ## operand at replacement[idx], and the
        index following it.
        """
        tok = self.replacement[idx]
        if self._is_stringize(self.replacement, idx):
            raw = input_args[self.which_arg(self.replacement[idx + 1])][0]
            return ([Lexer.stringify(raw, tok)], idx + 2)
        arg_idx = self.which_arg(tok)
        if arg_idx != -1:
            raw = input_args[arg_idx][0]
            if raw:
                raw = [raw[0].with_white(tok.prev_white)] + raw[1:]
            return (raw, idx + 1)
        return ([tok], idx + 1)

    def replace(
        self,
        input_args: Sequence[Argument] = (),
        invocation: Identifier | None = None,
    ) -> list[Token]:
        """
        Return the substituted replacement for this macro.
        input_args is expected to be a list of (original,
        pre-expanded) arguments passed to this.
        """
        input_args = list(input_args)
        if self.variadic and len(input_args) == len(self.parameters) - 1:
            input_args.append(([], []))

        # None marks an empty ## operand (a placemarker).
        res_tokens: list[Token | None] = []
        idx = 0
        while idx < len(self.replacement):
            tok = self.replacement[idx]
            if is_punctuator(tok, *HASH_HASH):
                if not res_tokens or idx + 1 == len(self.replacement):
                    log.debug(f"{self.name}: ## without operand dropped")
                    idx += 1
                    continue
                last = res_tokens.pop()
                right, idx = self._operand(idx + 1, input_args)
                if last is None:
                    res_tokens.extend(right if right else [None])
                elif not right:
                    res_tokens.append(last)
                else:
                    res_tokens.extend(paste(last, right[0]))
                    res_tokens.extend(right[1:])
                continue

            if self._is_stringize(self.replacement, idx):
                operand, idx = self._operand(idx, input_args)
                res_tokens.extend(operand)
                continue

            arg_idx = self.which_arg(tok)
            if arg_idx == -1:
                res_tokens.append(tok)
                idx += 1
                continue

            # Operands of ## use the raw argument, others the expanded one
            if idx + 1 < len(self.replacement) and is_punctuator(
                self.replacement[idx + 1],
                *HASH_HASH,
            ):
                substitution, idx = self._operand(idx, input_args)
                res_tokens.extend(substitution if substitution else [None])
                continue

            substitution = input_args[arg_idx][1]
            if substitution:
                res_tokens.append(substitution[0].with_white(tok.prev_white))
                res_tokens.extend(substitution[1:])
            idx += 1

        return [t for t in res_tokens if t is not None]


class BuiltinMacro(Macro):
    """
    Represents a predefined object-like macro whose replacement is
    computed at each use, from the identifier being expanded.
    """

    def __init__(
        self,
        name: str,
        handler: Callable[[Identifier], list[Token]],
    ) -> None:
        super().__init__(Identifier("<built-in>", 0, 0, False, name), [])
        self.handler = handler

    def __repr__(self) -> str:
        return _representation_string(self, attrs=["name"])

    def spelling(self) -> list[str]:
        return [f"{self.name!s} <built-in>"]

    def replace(
        self,
        input_args: Sequence[Argument] = (),
        invocation: Identifier | None = None,
    ) -> list[Token]:
        if invocation is None:
            invocation = Identifier("<built-in>", 0, 0, False, self.name)
        return self.handler(invocation)


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def builtin_macros(now: datetime | None = None) -> list[Macro]:
    """
    Return the predefined macros, in the order they are seeded.

    __DATE__ and __TIME__ report the start of the run; __LINE__ and __FILE__
    report the location of each use; __COUNTER__ counts uses.
    """
    if now is None:
        now = datetime.now()
    date = _quote(f"{_MONTHS[now.month - 1]} {now.day:2d} {now.year}")
    time = _quote(now.strftime("%H:%M:%S"))
    counter = itertools.count()

    def number(value: str) -> Callable[[Identifier], list[Token]]:
        return lambda ident: [
            NumericalConstant(ident.file, ident.line, ident.col, False, value),
        ]

    def string(value: str) -> Callable[[Identifier], list[Token]]:
        return lambda ident: [
            StringConstant(ident.file, ident.line, ident.col, False, value),
        ]

    def static(name: str, value: str) -> Macro:
        identifier = Identifier("<built-in>", 0, 0, False, name)
        token = NumericalConstant("<built-in>", 0, 0, True, value)
        return Macro(identifier, [token])

    return [
        BuiltinMacro(
            "__LINE__",
            lambda ident: number(str(ident.line))(ident),
        ),
        BuiltinMacro(
            "__FILE__",
            lambda ident: string(_quote(ident.file))(ident),
        ),
        BuiltinMacro("__DATE__", string(date)),
        BuiltinMacro("__TIME__", string(time)),
        BuiltinMacro(
            "__COUNTER__",
            lambda ident: number(str(next(counter)))(ident),
        ),
        static("__STDC__", "1"),
        static("__STDC_HOSTED__", "1"),
        static("__cplusplus", "201103L"),
    ]


class MacroTable:
    """
    Represents the macro definitions of a single preprocessing run.
    Later definitions of a name replace earlier ones.
    """

    def __init__(self, builtins: bool = True) -> None:
        self._definitions: dict[str, Macro] = {}
        if builtins:
            for macro in builtin_macros():
                self.define(macro)

    def define(self, macro: Macro) -> None:
        """
        Define a macro, as if the preprocessor encountered #define.
        If the macro is already defined, the new definition wins.

        Parameters
        ----------
        macro: Macro
            The macro to define.
        """
        self._definitions[macro.name] = macro

    def undefine(self, name: str) -> None:
        """
        Undefine a previously defined macro. Has no effect for unknown
        names.

        Parameters
        ----------
        name: str
            The name of the macro.
        """
        self._definitions.pop(name, None)

    def lookup(self, name: str) -> Macro | None:
        """
        Returns
        -------
        Macro | None
            The macro associated with `name`, or None.
        """
        return self._definitions.get(name)

    def is_defined(self, name: str) -> bool:
        """
        Returns
        -------
        bool
            True if `name` is defined and False otherwise.
        """
        return name in self._definitions

    def names(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[Macro]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
