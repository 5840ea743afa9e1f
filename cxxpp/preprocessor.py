# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the Preprocessor class, which owns the state of a single
preprocessing run and turns a source file into a stream of expanded tokens.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Generator, Iterable, Iterator
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from cxxpp.conditional import ConditionalStack
from cxxpp.config import Configuration
from cxxpp.directives import (
    CONDITIONAL_KINDS,
    DefineNode,
    DirectiveKind,
    DirectiveNode,
    DirectiveParser,
    IfDefNode,
    IfNode,
    IncludeNode,
    IncludePath,
    PragmaNode,
    UndefNode,
    macro_from_definition_string,
)
from cxxpp.errors import (
    IncludeNotFoundError,
    MacroExpansionError,
    ParseError,
    UnbalancedConditionalError,
)
from cxxpp.evaluator import evaluate, replace_defined
from cxxpp.expander import MacroExpander
from cxxpp.include import IncludeResolver
from cxxpp.lexer import Lexer
from cxxpp.macros import MacroTable
from cxxpp.tokens import (
    HASH,
    EndOfFile,
    StringConstant,
    Token,
    is_punctuator,
)

log = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    CONDITIONAL = "conditional"
    INCLUDE = "include"
    EXPANSION = "expansion"


@dataclass(frozen=True)
class Diagnostic:
    """
    Represents a problem found in the input that did not stop
    preprocessing.
    """

    kind: DiagnosticKind
    filename: str
    line: int
    message: str

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}: {self.message}"


def _join(strings: list[StringConstant]) -> StringConstant:
    """
    Join adjacent string literals into one. The first non-empty encoding
    prefix is used for the result.
    """
    if len(strings) == 1:
        return strings[0]
    prefix = next((s.prefix for s in strings if s.prefix), "")
    content = "".join(s.content for s in strings)
    return replace(strings[0], value=f'{prefix}"{content}"')


def join_strings(tokens: Iterable[Token]) -> Iterator[Token]:
    """
    Yield `tokens`, with runs of adjacent (non-raw) string literals joined.
    """
    pending: list[StringConstant] = []
    for tok in tokens:
        if isinstance(tok, StringConstant) and not tok.is_raw:
            pending.append(tok)
            continue
        if pending:
            yield _join(pending)
            pending = []
        yield tok
    if pending:
        yield _join(pending)


class Preprocessor:
    """
    Represents a specific instance of a preprocessor, including:
    - Active macro definitions
    - Open conditional groups
    - Includes that should only be processed once
    - Diagnostics reported while preprocessing

    A Preprocessor processes a single file (and the files it includes).
    """

    @dataclass
    class FileInfo:
        """
        Stores information the Preprocessor knows about a file.
        """

        is_include_once: bool = False

    def __init__(self, config: Configuration | None = None) -> None:
        if config is None:
            config = Configuration()
        elif not isinstance(config, Configuration):
            raise TypeError("'config' must be a Configuration.")
        self.config = config

        # Seeding order: built-ins, then global defines, then project
        # defines; later definitions win.
        self.macros = MacroTable()
        for definition in config.global_defines + config.defines:
            try:
                macro = macro_from_definition_string(definition)
            except ParseError:
                log.warning(f"Ignoring invalid definition: {definition!r}")
                continue
            self.macros.define(macro)

        self.resolver = IncludeResolver(config.include_paths, config.charset)
        self.conditionals = ConditionalStack()
        self.diagnostics: list[Diagnostic] = []

        self._file_info: dict[str, Preprocessor.FileInfo] = {}
        self._file_depths: list[int] = []
        self._started = False

        self._handlers: dict[
            DirectiveKind,
            Callable[[Any], Iterable[Token]],
        ] = {
            DirectiveKind.DEFINE: self._define,
            DirectiveKind.UNDEF: self._undef,
            DirectiveKind.IF: self._if,
            DirectiveKind.IFDEF: self._ifdef,
            DirectiveKind.IFNDEF: self._ifdef,
            DirectiveKind.ELIF: self._elif,
            DirectiveKind.ELIFDEF: self._elifdef,
            DirectiveKind.ELIFNDEF: self._elifdef,
            DirectiveKind.ELSE: self._else,
            DirectiveKind.ENDIF: self._endif,
            DirectiveKind.INCLUDE: self._include,
            DirectiveKind.PRAGMA: self._pragma,
            DirectiveKind.OTHER: self._other,
        }

    def get_file_info(self, filename: str) -> Preprocessor.FileInfo:
        """
        Access information the preprocessor has about `filename`.

        Parameters
        ----------
        filename: str
            The name of the filename of interest.

        Returns
        -------
        FileInfo
            The `FileInfo` associated with this file.
        """
        filename = os.path.realpath(filename)
        if filename not in self._file_info:
            self._file_info[filename] = Preprocessor.FileInfo()
        return self._file_info[filename]

    def tokens(self, filename: str | os.PathLike[str]) -> Iterator[Token]:
        """
        Preprocess the file `filename`.

        Returns
        -------
        Iterator[Token]
            The expanded tokens of the file, ending with a single
            EndOfFile token.
        """
        text = self.resolver.read(filename)
        return self._run(text, str(filename))

    def tokens_from_string(
        self,
        text: str,
        filename: str = "snippet.cpp",
    ) -> Iterator[Token]:
        """
        Preprocess `text` as if it were the contents of `filename`.

        Returns
        -------
        Iterator[Token]
            The expanded tokens of the text, ending with a single
            EndOfFile token.
        """
        return self._run(text, filename)

    def _run(self, text: str, filename: str) -> Iterator[Token]:
        if self._started:
            raise RuntimeError("A Preprocessor can only process one file.")
        self._started = True
        yield from join_strings(self._main(text, filename))

    def _main(self, text: str, filename: str) -> Iterator[Token]:
        this_dir = Path(filename).parent
        for include in self.config.force_includes:
            include_file = self.resolver.find(str(include), this_dir)
            if include_file is None:
                path = IncludePath(str(include), system=False)
                spelling = f"-include {include}"
                self._missing_include(filename, 0, path, spelling)
                continue
            yield from self._include_file(include_file, filename, 0)

        eof = yield from self._process(text, filename)
        yield eof

    def _process(
        self,
        text: str,
        filename: str,
    ) -> Generator[Token, None, EndOfFile]:
        """
        Yield the expanded tokens of one file, and return its EndOfFile
        token.
        """
        self._file_depths.append(self.conditionals.depth)
        lexer = Lexer(text, filename)

        # Non-directive lines are expanded together, so that macro
        # invocations can span lines.
        pending: list[Token] = []
        for line in lexer.lines():
            if is_punctuator(line[0], *HASH):
                if pending:
                    yield from self._expand(pending)
                    pending = []
                yield from self._directive(line)
            elif self.conditionals.active:
                pending.extend(line)
        if pending:
            yield from self._expand(pending)

        unclosed = self.conditionals.truncate(self._file_depths.pop())
        if lexer.eof is None:
            raise RuntimeError("Lexer did not reach end of file.")
        if unclosed:
            self._unbalanced(
                filename,
                lexer.eof.line,
                f"{unclosed} unterminated conditional directive(s)",
            )
        return lexer.eof

    def _expand(
        self,
        tokens: list[Token],
        condition: bool = False,
    ) -> list[Token]:
        expander = MacroExpander(
            self.macros,
            max_depth=self.config.max_expansion_depth,
            max_tokens=self.config.max_expansion_tokens,
            condition=condition,
        )
        try:
            return expander.expand(tokens)
        except MacroExpansionError as e:
            self._report(
                DiagnosticKind.EXPANSION,
                tokens[0].file,
                tokens[0].line,
                str(e),
            )
            raise

    def _directive(self, line: list[Token]) -> Iterable[Token]:
        """
        Parse and apply a directive line. Only conditional directives are
        recognized inside skipped groups.
        """
        conditional_only = not self.conditionals.active
        try:
            node = DirectiveParser(line).parse(conditional_only)
        except ParseError:
            log.debug(f"{line[0].file}:{line[0].line}: not a directive")
            return ()
        if conditional_only and node.kind not in CONDITIONAL_KINDS:
            return ()
        return self._handlers[node.kind](node)

    def _report(
        self,
        kind: DiagnosticKind,
        filename: str,
        line: int,
        message: str,
    ) -> None:
        self.diagnostics.append(Diagnostic(kind, filename, line, message))

    def _unbalanced(self, filename: str, line: int, message: str) -> None:
        log.warning(f"{filename}:{line}: {message}")
        self._report(DiagnosticKind.CONDITIONAL, filename, line, message)
        if not self.config.error_recovery:
            raise UnbalancedConditionalError(f"{filename}:{line}: {message}")

    def _missing_include(
        self,
        filename: str,
        line: int,
        path: IncludePath,
        spelling: str,
    ) -> None:
        kind = "system include" if path.is_system_path() else "user include"
        message = f"{kind} '{path.path}' not found"
        log.warning(
            f"{filename}:{line}: {message}\n" + f"{line:>5} | {spelling}",
        )
        self._report(DiagnosticKind.INCLUDE, filename, line, message)
        if not self.config.error_recovery:
            raise IncludeNotFoundError(f"{filename}:{line}: {message}")

    def _condition(self, node: IfNode) -> Callable[[], bool]:
        """
        Return a callable evaluating the expression of an #if or #elif.
        """
        this_dir = Path(node.filename).parent

        def has_include(path: IncludePath) -> bool:
            found = self.resolver.find(path.path, this_dir, path.system)
            return found is not None

        def condition() -> bool:
            tokens = replace_defined(
                node.expr,
                self.macros.is_defined,
                has_include,
            )
            return evaluate(self._expand(tokens, condition=True))

        return condition

    def _closes_group(self, node: DirectiveNode) -> bool:
        """
        Return True if the innermost open group was opened in the file
        containing `node`.
        """
        if self.conditionals.depth > self._file_depths[-1]:
            return True
        self._unbalanced(
            node.filename,
            node.line,
            f"#{node.kind.value} without #if",
        )
        return False

    def _define(self, node: DefineNode) -> Iterable[Token]:
        self.macros.define(node.macro())
        return ()

    def _undef(self, node: UndefNode) -> Iterable[Token]:
        self.macros.undefine(node.identifier.value)
        return ()

    def _if(self, node: IfNode) -> Iterable[Token]:
        self.conditionals.if_(self._condition(node))
        return ()

    def _ifdef(self, node: IfDefNode) -> Iterable[Token]:
        self.conditionals.if_(lambda: node.test(self.macros.is_defined))
        return ()

    def _elif(self, node: IfNode) -> Iterable[Token]:
        if self._closes_group(node):
            self.conditionals.elif_(self._condition(node))
        return ()

    def _elifdef(self, node: IfDefNode) -> Iterable[Token]:
        if self._closes_group(node):
            self.conditionals.elif_(lambda: node.test(self.macros.is_defined))
        return ()

    def _else(self, node: DirectiveNode) -> Iterable[Token]:
        if self._closes_group(node):
            self.conditionals.else_()
        return ()

    def _endif(self, node: DirectiveNode) -> Iterable[Token]:
        if self._closes_group(node):
            self.conditionals.endif()
        return ()

    def _pragma(self, node: PragmaNode) -> Iterable[Token]:
        if node.is_once():
            self.get_file_info(node.filename).is_include_once = True
        return ()

    def _other(self, node: DirectiveNode) -> Iterable[Token]:
        log.debug(f"Ignoring directive: {node.spelling()[0]}")
        return ()

    def _include(self, node: IncludeNode) -> Iterable[Token]:
        """
        Extract the filename from the #include. This cannot happen when
        parsing because of "computed includes" like #include FOO. After
        the filename is extracted, process the include file.
        """
        if isinstance(node.value, IncludePath):
            path = node.value
        else:
            expansion = self._expand(node.value)
            try:
                path = DirectiveParser(expansion).include_path()
            except ParseError:
                log.warning(
                    f"{node.filename}:{node.line}: invalid include "
                    + f"directive: {node.spelling()[0]}",
                )
                return ()

        this_dir = Path(node.filename).parent
        include_file = self.resolver.find(path.path, this_dir, path.system)
        if include_file is None:
            self._missing_include(
                node.filename,
                node.line,
                path,
                node.spelling()[0],
            )
            return ()
        return self._include_file(
            include_file,
            node.filename,
            node.line,
            once=node.once,
        )

    def _include_file(
        self,
        include_file: Path,
        filename: str,
        line: int,
        once: bool = False,
    ) -> Iterator[Token]:
        """
        Yield the tokens of an included file, unless it should only be
        included once and has already been processed.
        """
        info = self.get_file_info(str(include_file))
        if info.is_include_once:
            return
        if once:
            info.is_include_once = True

        if len(self._file_depths) >= self.config.max_include_depth:
            limit = self.config.max_include_depth
            message = f"#include nested too deeply ({limit})"
            log.warning(f"{filename}:{line}: {message}")
            self._report(DiagnosticKind.INCLUDE, filename, line, message)
            return
        try:
            text = self.resolver.read(include_file)
        except OSError as e:
            message = f"cannot read '{include_file}': {e}"
            log.warning(f"{filename}:{line}: {message}")
            self._report(DiagnosticKind.INCLUDE, filename, line, message)
            return
        yield from self._process(text, str(include_file))
