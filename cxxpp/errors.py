# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the exception types shared by the lexer, the directive parser, the
macro expander and the preprocessor driver.
"""


class TokenError(ValueError):
    """
    Represents an error encountered during tokenization.
    """


class ParseError(ValueError):
    """
    Represents an error encountered during parsing.
    """


class PreprocessorError(RuntimeError):
    """
    Represents a failure that ends preprocessing of a file.
    """


class MacroExpansionError(PreprocessorError):
    """
    Represents MacroExpander overflow: the configured maximum expansion
    depth or expansion length was exceeded.
    """


class UnbalancedConditionalError(PreprocessorError):
    """
    Represents an #if/#endif imbalance detected in strict mode.
    """


class IncludeNotFoundError(PreprocessorError):
    """
    Represents an include file that could not be found in strict mode.
    """
