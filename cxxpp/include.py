# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the include resolver, which maps the target of an #include
directive to a file on disk and reads it.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

log = logging.getLogger(__name__)


class IncludeResolver:
    """
    Resolves include targets against the directory of the including file
    and a list of include paths.
    """

    def __init__(
        self,
        include_paths: Iterable[str | os.PathLike[str]] = (),
        charset: str = "utf-8",
    ) -> None:
        self.include_paths = [Path(p) for p in include_paths]
        self.charset = charset
        self._found_incl: dict[tuple[str, str, bool], Path | None] = {}

    def find(
        self,
        target: str,
        this_dir: str | os.PathLike[str],
        is_angle_form: bool = False,
    ) -> Path | None:
        """
        Determine and return the full path to `target`.

        Parameters
        ----------
        target: str
            The name of the include file to find.

        this_dir: str | os.PathLike[str]
            The directory containing the file that includes `target`.

        is_angle_form: bool, default: False
            Whether the include file was named with <> or not.

        Returns
        -------
        Path | None
            The full path to `target` if it was found and `None` otherwise.
        """
        key = (target, str(this_dir), is_angle_form)
        if key in self._found_incl:
            return self._found_incl[key]

        local_paths = []
        if not is_angle_form:
            local_paths += [Path(this_dir)]

        found = None
        for path in local_paths + self.include_paths:
            test_path = Path(os.path.abspath(path / target))
            if test_path.is_file():
                found = test_path
                break

        self._found_incl[key] = found
        return found

    def read(self, path: str | os.PathLike[str]) -> str:
        """
        Return the contents of `path`, decoded with the configured charset.
        Undecodable bytes are replaced rather than rejected.
        """
        with open(
            path,
            encoding=self.charset,
            errors="replace",
            newline="",
        ) as f:
            return f.read()
