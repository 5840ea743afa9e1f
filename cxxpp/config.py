# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the Configuration class, which holds the settings read by a
preprocessing run.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any


def _paths(value: Any, name: str) -> tuple[Path, ...]:
    if isinstance(value, (str, os.PathLike)) or not all(
        [isinstance(p, (str, os.PathLike)) for p in value],
    ):
        raise TypeError(f"Each path in '{name}' must be PathLike.")
    return tuple(Path(p) for p in value)


def _strings(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, str) or not all([isinstance(d, str) for d in value]):
        raise TypeError(f"'{name}' must be a list of strings.")
    return tuple(value)


def _positive(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise TypeError(f"'{name}' must be a positive integer.")
    return value


@dataclass(frozen=True)
class Configuration:
    """
    Represents the settings of a preprocessing run.

    Parameters
    ----------
    charset: str, default: "utf-8"
        The encoding used to read source files.

    include_paths: list[str | os.PathLike[str]]
        Directories searched for included files.

    global_defines: list[str]
        Macro definitions applied before project defines.

    defines: list[str]
        Project-level macro definitions. A definition has the form NAME,
        NAME value, NAME(params) value or NAME=value.

    force_includes: list[str | os.PathLike[str]]
        Files processed before the main file, as if included by it.

    error_recovery: bool, default: True
        If False, unbalanced conditionals and missing include files raise
        exceptions instead of being reported as diagnostics.

    max_expansion_depth: int, default: 200
        The maximum nesting of macro expansions.

    max_expansion_tokens: int, default: 1000000
        The maximum number of tokens produced by one expansion.

    max_include_depth: int, default: 200
        The maximum nesting of included files.
    """

    charset: str = "utf-8"
    include_paths: tuple[Path, ...] = ()
    global_defines: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    force_includes: tuple[Path, ...] = ()
    error_recovery: bool = True
    max_expansion_depth: int = 200
    max_expansion_tokens: int = 1_000_000
    max_include_depth: int = 200

    def __post_init__(self) -> None:
        if not isinstance(self.charset, str):
            raise TypeError("'charset' must be a string.")
        if not isinstance(self.error_recovery, bool):
            raise TypeError("'error_recovery' must be a boolean.")

        # Normalize sequences so that configurations can be shared
        normalized = {
            "include_paths": _paths(self.include_paths, "include_paths"),
            "global_defines": _strings(self.global_defines, "global_defines"),
            "defines": _strings(self.defines, "defines"),
            "force_includes": _paths(self.force_includes, "force_includes"),
        }
        for name in [
            "max_expansion_depth",
            "max_expansion_tokens",
            "max_include_depth",
        ]:
            normalized[name] = _positive(getattr(self, name), name)
        for name, value in normalized.items():
            object.__setattr__(self, name, value)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> Configuration:
        """
        Construct a Configuration from a mapping, such as one loaded from a
        configuration file. Unknown keys raise a ValueError.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**values)
