# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Command line front end: preprocess C/C++ files and print the resulting
tokens.
"""
from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterable

from cxxpp.batch import preprocess_files
from cxxpp.config import Configuration
from cxxpp.tokens import EndOfFile, Token

log = logging.getLogger("cxxpp")


def _format(tokens: Iterable[Token]) -> str:
    """
    Return the spelling of a token stream, breaking lines where the
    location of the tokens moves to another line.
    """
    out = []
    location = None
    for token in tokens:
        if isinstance(token, EndOfFile):
            break
        if location is not None and location != (token.file, token.line):
            out.append("\n")
        elif token.prev_white and out:
            out.append(" ")
        out.append(str(token))
        location = (token.file, token.line)
    if out:
        out.append("\n")
    return "".join(out)


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cxxpp",
        description="Preprocess C/C++ source files and print the tokens.",
    )
    add = parser.add_argument
    add("inputs", metavar="input", nargs="+", help="Files to preprocess")
    add(
        "-D",
        dest="defines",
        metavar="MACRO[=VAL]",
        action="append",
        default=[],
        help="Predefine MACRO as a macro with value VAL.",
    )
    add(
        "-I",
        dest="include_paths",
        metavar="path",
        action="append",
        default=[],
        help="Add a directory to the include search path.",
    )
    add(
        "--include",
        dest="force_includes",
        metavar="file",
        action="append",
        default=[],
        help="Process file before the first line of each input.",
    )
    add(
        "--charset",
        default="utf-8",
        help="Encoding of the source files (default: utf-8).",
    )
    add(
        "--strict",
        action="store_true",
        help="Fail on unbalanced conditionals and missing includes.",
    )
    add(
        "--progress",
        action="store_true",
        help="Display a progress bar.",
    )
    add(
        "-v",
        "--verbose",
        dest="verbose",
        action="count",
        default=0,
        help="Increase verbosity level.",
    )
    add(
        "-q",
        "--quiet",
        dest="quiet",
        action="count",
        default=0,
        help="Decrease verbosity level.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = make_parser().parse_args(argv)

    # Default verbosity shows warnings; each -v/-q moves one level.
    level = logging.WARNING + 10 * (args.quiet - args.verbose)
    level = max(logging.DEBUG, min(logging.CRITICAL, level))
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    config = Configuration(
        charset=args.charset,
        include_paths=args.include_paths,
        defines=args.defines,
        force_includes=args.force_includes,
        error_recovery=not args.strict,
    )
    results = preprocess_files(
        args.inputs,
        config,
        show_progress=args.progress,
    )

    status = 0
    for result in results:
        if not result.ok:
            status = 1
            continue
        sys.stdout.write(_format(result.tokens))
    return status


if __name__ == "__main__":
    sys.exit(main())
