# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import tempfile
import unittest
from pathlib import Path

from cxxpp import (
    Configuration,
    Diagnostic,
    DiagnosticKind,
    IncludeNotFoundError,
    MacroExpansionError,
    Preprocessor,
    UnbalancedConditionalError,
)
from cxxpp.directives import macro_from_definition_string
from cxxpp.tokens import EndOfFile


class TestPreprocessor(unittest.TestCase):
    """
    Test Preprocessor class.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_constructor(self):
        """Check arguments are handled correctly"""
        preprocessor = Preprocessor(
            Configuration(
                include_paths=["/path/to/include"],
                defines=["MACRO"],
            ),
        )
        self.assertCountEqual(
            preprocessor.resolver.include_paths,
            [Path("/path/to/include")],
        )
        self.assertTrue(preprocessor.macros.is_defined("MACRO"))
        self.assertEqual(preprocessor.macros.lookup("MACRO").replacement, [])
        self.assertTrue(preprocessor.macros.is_defined("__LINE__"))

    def test_constructor_validation(self):
        """Check arguments are valid"""

        with self.assertRaises(TypeError):
            Preprocessor({"defines": ["MACRO"]})

        with self.assertRaises(TypeError):
            Preprocessor(config="/not/a/config")

    def test_define_order(self):
        """Check project defines override global defines"""
        preprocessor = Preprocessor(
            Configuration(global_defines=["A 1"], defines=["A=2"]),
        )
        macro = preprocessor.macros.lookup("A")
        self.assertEqual([t.value for t in macro.replacement], ["2"])

    def test_invalid_defines(self):
        """Check invalid define strings are skipped"""
        preprocessor = Preprocessor(
            Configuration(global_defines=["123", ""], defines=["A 1", "+"]),
        )
        self.assertTrue(preprocessor.macros.is_defined("A"))
        self.assertFalse(preprocessor.macros.is_defined("123"))
        tokens = list(preprocessor.tokens_from_string("A 123"))
        self.assertEqual([t.value for t in tokens], ["1", "123", ""])

    def test_define(self):
        """Check implementation of define"""
        macro = macro_from_definition_string("MACRO=x")

        preprocessor = Preprocessor()
        self.assertFalse(preprocessor.macros.is_defined("MACRO"))
        self.assertIsNone(preprocessor.macros.lookup("MACRO"))

        preprocessor.macros.define(macro)
        self.assertTrue(preprocessor.macros.is_defined("MACRO"))
        self.assertEqual(preprocessor.macros.lookup("MACRO"), macro)

    def test_undefine(self):
        """Check implementation of undefine"""
        macro = macro_from_definition_string("MACRO=x")

        preprocessor = Preprocessor()
        preprocessor.macros.define(macro)
        preprocessor.macros.undefine("MACRO")

        self.assertFalse(preprocessor.macros.is_defined("MACRO"))
        self.assertIsNone(preprocessor.macros.lookup("MACRO"))

    def test_get_file_info(self):
        """Check implementation of get_file_info"""
        preprocessor = Preprocessor()

        info = preprocessor.get_file_info("filename")
        self.assertFalse(info.is_include_once)

        preprocessor.get_file_info("filename").is_include_once = True
        info = preprocessor.get_file_info("./filename")
        self.assertTrue(info.is_include_once)

    def test_single_use(self):
        """Check a Preprocessor only processes one file"""
        preprocessor = Preprocessor()
        tokens = list(preprocessor.tokens_from_string("a b"))
        self.assertEqual([t.value for t in tokens], ["a", "b", ""])
        self.assertIsInstance(tokens[-1], EndOfFile)

        with self.assertRaises(RuntimeError):
            list(preprocessor.tokens_from_string("a b"))

    def test_tokens(self):
        """Check preprocessing of a file on disk"""
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "main.cpp"
            path.write_text("#define A 1\nA\n")
            tokens = list(Preprocessor().tokens(path))
        self.assertEqual([t.value for t in tokens], ["1", ""])
        self.assertEqual(tokens[0].file, str(path))
        self.assertEqual(tokens[0].line, 2)

    def test_diagnostic(self):
        """Check diagnostics are printable"""
        diagnostic = Diagnostic(DiagnosticKind.INCLUDE, "f.c", 3, "oops")
        self.assertEqual(str(diagnostic), "f.c:3: oops")


class TestErrorRecovery(unittest.TestCase):
    """
    Test the reporting of problems in the input.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_unbalanced_endif(self):
        """Check #endif without #if is reported"""
        preprocessor = Preprocessor()
        tokens = list(preprocessor.tokens_from_string("a\n#endif\nb\n"))
        self.assertEqual([t.value for t in tokens], ["a", "b", ""])

        (diagnostic,) = preprocessor.diagnostics
        self.assertEqual(diagnostic.kind, DiagnosticKind.CONDITIONAL)
        self.assertEqual(diagnostic.line, 2)

        for text in ["#else\n", "#elif 1\n", "#elifdef A\n"]:
            preprocessor = Preprocessor()
            list(preprocessor.tokens_from_string(text))
            self.assertEqual(len(preprocessor.diagnostics), 1)

    def test_unterminated_if(self):
        """Check unterminated groups are reported at end of file"""
        preprocessor = Preprocessor()
        tokens = list(preprocessor.tokens_from_string("#if 1\na\n#if 0\n"))
        self.assertEqual([t.value for t in tokens], ["a", ""])

        (diagnostic,) = preprocessor.diagnostics
        self.assertEqual(diagnostic.kind, DiagnosticKind.CONDITIONAL)
        self.assertEqual(diagnostic.line, 4)
        self.assertIn("2 unterminated", diagnostic.message)

    def test_missing_include(self):
        """Check missing include files are reported"""
        with tempfile.TemporaryDirectory() as tmp:
            filename = str(Path(tmp) / "main.cpp")
            preprocessor = Preprocessor()
            tokens = list(
                preprocessor.tokens_from_string(
                    '#include "missing.h"\n#include <missing.h>\na\n',
                    filename,
                ),
            )
        self.assertEqual([t.value for t in tokens], ["a", ""])
        self.assertEqual(
            [d.kind for d in preprocessor.diagnostics],
            [DiagnosticKind.INCLUDE, DiagnosticKind.INCLUDE],
        )
        self.assertIn("user include", preprocessor.diagnostics[0].message)
        self.assertIn("system include", preprocessor.diagnostics[1].message)

    def test_strict(self):
        """Check problems raise exceptions without error recovery"""
        config = Configuration(error_recovery=False)

        with self.assertRaises(UnbalancedConditionalError):
            list(Preprocessor(config).tokens_from_string("#endif\n"))

        with self.assertRaises(UnbalancedConditionalError):
            list(Preprocessor(config).tokens_from_string("#ifdef A\n"))

        with tempfile.TemporaryDirectory() as tmp:
            filename = str(Path(tmp) / "main.cpp")
            with self.assertRaises(IncludeNotFoundError):
                list(
                    Preprocessor(config).tokens_from_string(
                        '#include "missing.h"\n',
                        filename,
                    ),
                )

    def test_expansion_limit(self):
        """Check expansion limits end preprocessing of the file"""
        config = Configuration(max_expansion_depth=3)
        preprocessor = Preprocessor(config)
        text = (
            "#define A B x\n#define B C x\n"
            + "#define C D x\n#define D E x\nA\n"
        )
        with self.assertRaises(MacroExpansionError):
            list(preprocessor.tokens_from_string(text))

        (diagnostic,) = preprocessor.diagnostics
        self.assertEqual(diagnostic.kind, DiagnosticKind.EXPANSION)
        self.assertEqual(diagnostic.line, 5)

    def test_ifdef_without_name(self):
        """Check #ifdef without a macro name is false"""
        tokens = list(
            Preprocessor().tokens_from_string("#ifdef\na\n#else\nb\n#endif"),
        )
        self.assertEqual([t.value for t in tokens], ["b", ""])

    def test_else_after_else(self):
        """Check only one branch is taken after a second #else"""
        text = "#if 0\na\n#else\nb\n#else\nc\n#elif 1\nd\n#endif\ne\n"
        tokens = list(Preprocessor().tokens_from_string(text))
        self.assertEqual([t.value for t in tokens], ["b", "e", ""])


if __name__ == "__main__":
    unittest.main()
