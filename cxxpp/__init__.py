# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
A lexer and preprocessor for C/C++ source code.
"""
from cxxpp.config import Configuration
from cxxpp.errors import (
    IncludeNotFoundError,
    MacroExpansionError,
    PreprocessorError,
    UnbalancedConditionalError,
)
from cxxpp.preprocessor import Diagnostic, DiagnosticKind, Preprocessor

__all__ = [
    "Configuration",
    "Diagnostic",
    "DiagnosticKind",
    "IncludeNotFoundError",
    "MacroExpansionError",
    "Preprocessor",
    "PreprocessorError",
    "UnbalancedConditionalError",
]
