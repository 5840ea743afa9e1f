# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains functions for preprocessing several independent source files.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from tqdm import tqdm

from cxxpp.config import Configuration
from cxxpp.errors import PreprocessorError
from cxxpp.preprocessor import Diagnostic, Preprocessor
from cxxpp.tokens import Token

log = logging.getLogger(__name__)


@dataclass
class FileResult:
    """
    Stores the outcome of preprocessing one file.
    """

    filename: str
    tokens: list[Token] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def preprocess_file(
    filename: str | os.PathLike[str],
    config: Configuration | None = None,
) -> FileResult:
    """
    Preprocess a single file with a fresh Preprocessor.
    A failure is recorded in the result rather than raised.
    """
    result = FileResult(str(filename))
    preprocessor = None
    try:
        preprocessor = Preprocessor(config)
        result.tokens = list(preprocessor.tokens(filename))
    except (PreprocessorError, OSError) as e:
        log.error(f"{filename}: {e}")
        result.error = e
    if preprocessor is not None:
        result.diagnostics = preprocessor.diagnostics
    return result


def preprocess_files(
    filenames: Iterable[str | os.PathLike[str]],
    config: Configuration | None = None,
    *,
    show_progress: bool = False,
) -> list[FileResult]:
    """
    Preprocess each file independently. Files never share macro
    definitions, and a failure in one file does not stop the others.
    """
    results = []
    for f in tqdm(
        list(filenames),
        desc="Preprocessing",
        unit=" file",
        leave=False,
        disable=not show_progress,
    ):
        log.debug(f"Preprocessing {f}")
        results.append(preprocess_file(f, config))
    return results
