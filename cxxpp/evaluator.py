# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the evaluator for #if and #elif expressions, and the handling of
the defined and __has_include operators that must be resolved before the
expression is macro-expanded.
"""
from __future__ import annotations

import collections
import logging
import typing
from collections.abc import Callable

import numpy as np

from cxxpp.directives import DirectiveParser, IncludePath, Parser
from cxxpp.errors import ParseError
from cxxpp.tokens import (
    CharacterConstant,
    Identifier,
    NumericalConstant,
    Punctuator,
    Token,
    is_punctuator,
)

log = logging.getLogger(__name__)

_MASK = (1 << 64) - 1
_INT64_MAX = (1 << 63) - 1

_SIMPLE_ESCAPES = {
    "n": 10,
    "t": 9,
    "r": 13,
    "a": 7,
    "b": 8,
    "f": 12,
    "v": 11,
    "\\": 92,
    "'": 39,
    '"': 34,
    "?": 63,
    "e": 27,
}


def _wrap(value: int, unsigned: bool) -> np.integer:
    """
    Convert a Python integer to a 64-bit integer with C wraparound.
    """
    wrapped = np.uint64(value & _MASK)
    if unsigned:
        return wrapped
    return wrapped.astype(np.int64)


def _is_unsigned(value: np.integer) -> bool:
    return value.dtype == np.uint64


def _bool(value: bool) -> np.integer:
    return np.int64(1 if value else 0)


def parse_integer(spelling: str) -> np.integer:
    """
    Convert a C integer literal to a 64-bit integer. Raises ParseError if
    the spelling is not an integer literal.
    """
    value = spelling.replace("'", "")

    # Strip suffix (if present)
    unsigned = False
    lowered = value.lower()
    for s in ["ull", "llu", "ul", "lu", "ll", "u", "l"]:
        if lowered.endswith(s):
            unsigned = "u" in s
            value = value[: -len(s)]
            break

    # Use prefix (if present) to determine base
    base = 10
    bases = {"0x": 16, "0X": 16, "0b": 2, "0B": 2}
    if value[0:2] in bases:
        base = bases[value[0:2]]
        value = value[2:]
    elif len(value) > 1 and value.startswith("0"):
        base = 8

    try:
        int_value = int(value, base)
    except ValueError:
        raise ParseError(f"Invalid integer constant: {spelling}")
    if int_value > _MASK:
        raise ParseError(f"Integer constant is too large: {spelling}")

    # Preprocessor always uses 64-bit arithmetic!
    if int_value > _INT64_MAX:
        unsigned = True
    return _wrap(int_value, unsigned)


def parse_character(spelling: str) -> np.integer:
    """
    Convert a C character constant (with optional encoding prefix) to its
    integer value. Multi-character constants combine their characters
    from left to right, 8 bits at a time.
    """
    prefix = spelling[: spelling.index("'")]
    body = spelling[len(prefix) + 1 : -1]
    if not body:
        raise ParseError("Empty character constant.")

    codes = []
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char != "\\":
            codes.append(ord(char))
            pos += 1
            continue
        pos += 1
        escape = body[pos : pos + 1]
        if escape in _SIMPLE_ESCAPES:
            codes.append(_SIMPLE_ESCAPES[escape])
            pos += 1
        elif escape in ["x", "X"]:
            end = pos + 1
            while end < len(body) and body[end] in "0123456789abcdefABCDEF":
                end += 1
            if end == pos + 1:
                raise ParseError("Invalid hexadecimal escape.")
            codes.append(int(body[pos + 1 : end], 16))
            pos = end
        elif escape and escape in "01234567":
            end = pos
            while end < min(pos + 3, len(body)) and body[end] in "01234567":
                end += 1
            codes.append(int(body[pos:end], 8))
            pos = end
        else:
            raise ParseError(f"Invalid escape sequence: \\{escape}")

    if len(codes) == 1:
        code = codes[0]
        # Plain char is signed
        if prefix == "" and 128 <= code < 256:
            code -= 256
        return np.int64(code)

    value = 0
    for code in codes:
        value = (value << 8) | (code & 0xFF)
    return _wrap(value, unsigned=False)


class ExpressionEvaluator(Parser):
    """
    A specialized token parser for recognizing/evaluating expressions.

    Operands that are not evaluated (the right-hand side of a
    short-circuited && or ||, and the unselected branch of ?:) are still
    parsed, but cannot fail due to division by zero or invalid shifts.
    """

    # Operator precedence, associativity and Python equivalent
    # Lower numbers = higher precedence
    # Based on:
    # https://en.cppreference.com/w/cpp/language/operator_precedence
    OpInfo = collections.namedtuple("OpInfo", ["prec", "assoc"])
    UnaryOperators = {
        "-": OpInfo(12, "RIGHT"),
        "+": OpInfo(12, "RIGHT"),
        "!": OpInfo(12, "RIGHT"),
        "~": OpInfo(12, "RIGHT"),
    }
    BinaryOperators = {
        "?": OpInfo(1, "RIGHT"),
        "||": OpInfo(2, "LEFT"),
        "&&": OpInfo(3, "LEFT"),
        "|": OpInfo(4, "LEFT"),
        "^": OpInfo(5, "LEFT"),
        "&": OpInfo(6, "LEFT"),
        "==": OpInfo(7, "LEFT"),
        "!=": OpInfo(7, "LEFT"),
        "<": OpInfo(8, "LEFT"),
        "<=": OpInfo(8, "LEFT"),
        ">": OpInfo(8, "LEFT"),
        ">=": OpInfo(8, "LEFT"),
        "<<": OpInfo(9, "LEFT"),
        ">>": OpInfo(9, "LEFT"),
        "+": OpInfo(10, "LEFT"),
        "-": OpInfo(10, "LEFT"),
        "*": OpInfo(11, "LEFT"),
        "/": OpInfo(11, "LEFT"),
        "%": OpInfo(11, "LEFT"),
    }

    def __init__(self, tokens: list[Token]) -> None:
        super().__init__(tokens)
        self.skip = 0

    def _skipping(self, skip: bool, *args: typing.Any) -> np.integer:
        """
        Match an expression, not evaluated if `skip` is True.
        """
        if skip:
            self.skip += 1
        try:
            return self.expression(*args)
        finally:
            if skip:
                self.skip -= 1

    def call(self) -> np.integer:
        """
        Match a built-in call or function-like macro and return 0.

        <call> := <identifier>'('<expression-list>?')'
        """
        initial_pos = self.pos
        try:
            self.match_type(Identifier)

            # Read a list of arguments
            self.match_value(Punctuator, "(")
            self.skip += 1
            try:
                self.__expression_list()
            finally:
                self.skip -= 1
            self.match_value(Punctuator, ")")

            # Any function call that still exists after substitution
            # evaluates to false
            return np.int64(0)
        except ParseError:
            self.pos = initial_pos
            raise ParseError("Invalid function call.")

    def term(self) -> np.integer:
        """
        Match a constant, function call or identifier and convert it to
        a 64-bit integer.

        <term> := [<integer-constant>|<character-constant>|<call>|
                   <identifier>]
        """
        initial_pos = self.pos

        # Match an integer constant.
        try:
            numerical_constant = typing.cast(
                NumericalConstant,
                self.match_type(NumericalConstant),
            )
            return parse_integer(numerical_constant.value)
        except ParseError:
            self.pos = initial_pos

        # Match a character constant.
        try:
            char_constant = typing.cast(
                CharacterConstant,
                self.match_type(CharacterConstant),
            )
            return parse_character(char_constant.value)
        except ParseError:
            self.pos = initial_pos

        # Match a function call.
        try:
            return self.call()
        except ParseError:
            self.pos = initial_pos

        # Match an identifier.
        # Any identifier that still exists after substitution evaluates
        # to false, except for the boolean literals.
        try:
            identifier = self.match_type(Identifier)
            return np.int64(1 if identifier.value == "true" else 0)
        except ParseError:
            self.pos = initial_pos

        raise ParseError(
            "Expected integer constant, character constant, identifier or "
            + "function call.",
        )

    def primary(self) -> np.integer:
        """
        Match a simple expression
        <primary> := [<unary-op><expression>|'('<expression>')'|<term>]
        """
        initial_pos = self.pos

        # Match <unary-op><expression>
        if (
            not self.eol()
            and isinstance(self.cursor(), Punctuator)
            and self.cursor().value in ExpressionEvaluator.UnaryOperators
        ):
            operator = self.match_type(Punctuator)
            (prec, assoc) = ExpressionEvaluator.UnaryOperators[operator.value]
            expr = self.expression(prec)
            return self.__apply_unary_op(operator.value, expr)

        # Match '('<expression>')'
        try:
            self.match_value(Punctuator, "(")
            expr = self.expression()
            self.match_value(Punctuator, ")")
            return expr
        except ParseError:
            self.pos = initial_pos

        # Match <term>
        try:
            term = self.term()
            return term
        except ParseError:
            self.pos = initial_pos

        raise ParseError(
            "Expected unary expression, expression in parens, or "
            + "identifier/constant.",
        )

    def expression(self, min_precedence: int = 0) -> np.integer:
        """
        Match a preprocessor expression.
        Minimum precedence used to match operators during precedence
        climbing.

        <expression> := <primary>[<binary-op><expression>]?
        """
        expr = self.primary()

        # Recursion is terminated based on operator precedence
        while (
            not self.eol()
            and isinstance(self.cursor(), Punctuator)
            and (self.cursor().value in ExpressionEvaluator.BinaryOperators)
            and (
                ExpressionEvaluator.BinaryOperators[self.cursor().value].prec
                >= min_precedence
            )
        ):
            operator = self.match_type(Punctuator)
            (prec, assoc) = ExpressionEvaluator.BinaryOperators[operator.value]

            # The ternary conditional operator is treated as a
            # special-case of a binary operator:
            # lhs "?"<expression>":" rhs
            if operator.value == "?":
                condition = expr != 0
                true_result = self._skipping(not condition)
                self.match_value(Punctuator, ":")
                false_result = self._skipping(condition, prec)
                true_result, false_result = self.__convert(
                    true_result,
                    false_result,
                )
                expr = true_result if condition else false_result
                continue

            # Minimum precedence for right-hand side depends on
            # associativity
            if assoc == "LEFT":
                rhs_precedence = prec + 1
            elif assoc == "RIGHT":
                rhs_precedence = prec
            else:
                raise ValueError(
                    "Encountered a BinaryOperator with no associativity.",
                )

            if operator.value == "&&":
                short_circuit = expr == 0
                rhs = self._skipping(short_circuit, rhs_precedence)
                expr = _bool(not short_circuit and rhs != 0)
            elif operator.value == "||":
                short_circuit = expr != 0
                rhs = self._skipping(short_circuit, rhs_precedence)
                expr = _bool(short_circuit or rhs != 0)
            else:
                rhs = self.expression(rhs_precedence)
                expr = self.__apply_binary_op(operator.value, expr, rhs)

        return expr

    def __expression_list(self) -> list[np.integer]:
        """
        Match a comma-separated list of expressions.
        Return an empty list or the expressions.

        <expression-list> := [<expression>][','<expression-list>]*
        """
        exprs = []
        initial_pos = self.pos
        try:
            expr = self.expression()
            exprs.append(expr)

            while True:
                initial_pos = self.pos
                self.match_value(Punctuator, ",")
                expr = self.expression()
                exprs.append(expr)
        except ParseError:
            self.pos = initial_pos
            return exprs

    @staticmethod
    def __convert(
        lhs: np.integer,
        rhs: np.integer,
    ) -> tuple[np.integer, np.integer]:
        """
        Apply the usual arithmetic conversions: if either operand is
        unsigned, both are converted to unsigned.
        """
        if _is_unsigned(lhs) or _is_unsigned(rhs):
            return (lhs.astype(np.uint64), rhs.astype(np.uint64))
        return (lhs, rhs)

    @staticmethod
    def __apply_unary_op(
        op: str,
        operand: np.integer,
    ) -> np.integer:
        """
        Apply the specified unary operator: op operand
        """
        if op == "-":
            return _wrap(-int(operand), _is_unsigned(operand))
        elif op == "+":
            return +operand
        elif op == "!":
            return _bool(operand == 0)
        elif op == "~":
            return ~operand
        else:
            raise ValueError("Not a valid unary operator.")

    def __apply_binary_op(
        self,
        op: str,
        lhs: np.integer,
        rhs: np.integer,
    ) -> np.integer:
        """
        Apply the specified binary operator: lhs op rhs
        """
        # Shifts take the type of the left operand
        if op in ["<<", ">>"]:
            unsigned = _is_unsigned(lhs)
            count = int(rhs)
            if count < 0:
                if self.skip:
                    return np.int64(0)
                raise ValueError("Negative shift count.")
            if op == "<<":
                return _wrap(int(lhs) << min(count, 64), unsigned)
            return _wrap(int(lhs) >> min(count, 64), unsigned)

        lhs, rhs = self.__convert(lhs, rhs)
        unsigned = _is_unsigned(lhs)
        if op == "|":
            return lhs | rhs
        elif op == "^":
            return lhs ^ rhs
        elif op == "&":
            return lhs & rhs
        elif op == "==":
            return _bool(lhs == rhs)
        elif op == "!=":
            return _bool(lhs != rhs)
        elif op == "<":
            return _bool(lhs < rhs)
        elif op == "<=":
            return _bool(lhs <= rhs)
        elif op == ">":
            return _bool(lhs > rhs)
        elif op == ">=":
            return _bool(lhs >= rhs)
        elif op == "+":
            return _wrap(int(lhs) + int(rhs), unsigned)
        elif op == "-":
            return _wrap(int(lhs) - int(rhs), unsigned)
        elif op == "*":
            return _wrap(int(lhs) * int(rhs), unsigned)
        elif op in ["/", "%"]:
            if rhs == 0:
                if self.skip:
                    return np.int64(0)
                raise ValueError("Division by zero.")
            # C division truncates towards zero
            quotient = abs(int(lhs)) // abs(int(rhs))
            if (int(lhs) < 0) != (int(rhs) < 0):
                quotient = -quotient
            if op == "/":
                return _wrap(quotient, unsigned)
            return _wrap(int(lhs) - quotient * int(rhs), unsigned)
        else:
            raise ValueError("Not a binary operator.")

    def evaluate(self) -> bool:
        """
        Evaluate a preprocessor expression.
        Return True/False or raises an exception if the expression is
        not recognized.
        """
        try:
            test_val = self.expression()
            if not self.eol():
                raise ParseError("Unexpected tokens after expression.")
            return bool(test_val != 0)
        except ValueError:
            raise ParseError("Could not evaluate expression.")


def replace_defined(
    tokens: list[Token],
    is_defined: Callable[[str], bool],
    has_include: Callable[[IncludePath], bool],
) -> list[Token]:
    """
    Replace defined NAME, defined(NAME), __has_include(<h>) and
    __has_include("h") with 1 or 0, so that the operands are not
    macro-expanded.
    """
    res_tokens: list[Token] = []
    pos = 0
    while pos < len(tokens):
        tok = tokens[pos]
        if not isinstance(tok, Identifier) or tok.value not in [
            "defined",
            "__has_include",
        ]:
            res_tokens.append(tok)
            pos += 1
            continue

        value = None
        if tok.value == "defined":
            rest = tokens[pos + 1 : pos + 4]
            if len(rest) > 0 and isinstance(rest[0], Identifier):
                value = is_defined(rest[0].value)
                pos += 2
            elif (
                len(rest) == 3
                and is_punctuator(rest[0], "(")
                and isinstance(rest[1], Identifier)
                and is_punctuator(rest[2], ")")
            ):
                value = is_defined(rest[1].value)
                pos += 4
        else:
            opening = tokens[pos + 1] if pos + 1 < len(tokens) else None
            end = pos + 1
            while end < len(tokens) and not is_punctuator(tokens[end], ")"):
                end += 1
            if is_punctuator(opening, "(") and end < len(tokens):
                parser = DirectiveParser(tokens[pos + 2 : end])
                try:
                    path = parser.include_path()
                    if parser.eol():
                        value = has_include(path)
                        pos = end + 1
                except ParseError:
                    log.debug("Invalid path in __has_include")

        if value is None:
            log.debug(f"Malformed use of '{tok.value}'")
            res_tokens.append(tok)
            pos += 1
            continue

        res_tokens.append(
            NumericalConstant(
                tok.file,
                tok.line,
                tok.col,
                tok.prev_white,
                "1" if value else "0",
            ),
        )
    return res_tokens


def evaluate(tokens: list[Token]) -> bool:
    """
    Evaluate a macro-expanded #if expression. Expressions that cannot be
    evaluated are assumed to be true.
    """
    try:
        return ExpressionEvaluator(tokens).evaluate()
    except (ParseError, RecursionError):
        spelling = " ".join(str(t) for t in tokens)
        log.debug(f"Could not evaluate '{spelling}', assuming true")
        return True
