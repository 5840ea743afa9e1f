# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import contextlib
import io
import logging
import tempfile
import unittest
from pathlib import Path

from cxxpp import Configuration, DiagnosticKind, UnbalancedConditionalError
from cxxpp.__main__ import _format, main
from cxxpp.batch import preprocess_file, preprocess_files
from cxxpp.lexer import Lexer
from cxxpp.tokens import EndOfFile


class TestBatch(unittest.TestCase):
    """
    Test preprocessing of several files.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        (self.root / "a.cpp").write_text("#define A 1\nA\n")
        (self.root / "b.cpp").write_text("A\n#endif\n")
        (self.root / "c.cpp").write_text("#if 1\nc\n")

    def tearDown(self):
        self.tmp.cleanup()

    def test_preprocess_file(self):
        """Check preprocessing of a single file"""
        result = preprocess_file(self.root / "a.cpp")
        self.assertTrue(result.ok)
        self.assertEqual(result.filename, str(self.root / "a.cpp"))
        self.assertEqual([t.value for t in result.tokens], ["1", ""])
        self.assertIsInstance(result.tokens[-1], EndOfFile)
        self.assertEqual(result.diagnostics, [])

    def test_missing_file(self):
        """Check unreadable files are recorded as failures"""
        result = preprocess_file(self.root / "missing.cpp")
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, OSError)
        self.assertEqual(result.tokens, [])

    def test_strict(self):
        """Check strict mode failures are recorded"""
        config = Configuration(error_recovery=False)
        result = preprocess_file(self.root / "c.cpp", config)
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, UnbalancedConditionalError)
        self.assertEqual(len(result.diagnostics), 1)

        result = preprocess_file(self.root / "c.cpp")
        self.assertTrue(result.ok)
        self.assertEqual([t.value for t in result.tokens], ["c", ""])
        self.assertEqual(
            result.diagnostics[0].kind,
            DiagnosticKind.CONDITIONAL,
        )

    def test_preprocess_files(self):
        """Check files are preprocessed independently"""
        filenames = [self.root / f for f in ["a.cpp", "b.cpp", "c.cpp"]]
        results = preprocess_files(filenames)
        self.assertEqual(len(results), 3)
        self.assertTrue(all(r.ok for r in results))

        # Definitions in a.cpp are not visible in b.cpp
        self.assertEqual([t.value for t in results[1].tokens], ["A", ""])
        self.assertEqual(len(results[1].diagnostics), 1)

        config = Configuration(error_recovery=False)
        results = preprocess_files(filenames, config, show_progress=False)
        self.assertEqual([r.ok for r in results], [True, False, False])

    def test_invalid_defines(self):
        """Check invalid define strings do not fail the batch"""
        config = Configuration(defines=["123", "A 2"])
        (result,) = preprocess_files([self.root / "a.cpp"], config)
        self.assertTrue(result.ok)
        self.assertEqual([t.value for t in result.tokens], ["1", ""])


class TestMain(unittest.TestCase):
    """
    Test the command line interface.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        (self.root / "include").mkdir()
        (self.root / "include" / "lib.h").write_text("#define LIB lib\n")
        (self.root / "main.cpp").write_text(
            "#include <lib.h>\nLIB VALUE\nint x;\n",
        )
        (self.root / "bad.cpp").write_text("#endif\n")

    def tearDown(self):
        self.tmp.cleanup()

    def run_main(self, argv):
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            status = main(argv)
        return status, stdout.getvalue()

    def test_main(self):
        """Check command line options"""
        status, output = self.run_main(
            [
                "-q",
                "-I",
                str(self.root / "include"),
                "-D",
                "VALUE=2",
                str(self.root / "main.cpp"),
            ],
        )
        self.assertEqual(status, 0)
        self.assertEqual(output, "lib 2\nint x;\n")

        status, output = self.run_main(
            ["-q", "-D", "123", str(self.root / "bad.cpp")],
        )
        self.assertEqual(status, 0)

    def test_strict(self):
        """Check failures set the exit status"""
        status, output = self.run_main(
            ["-q", "--strict", str(self.root / "bad.cpp")],
        )
        self.assertEqual(status, 1)
        self.assertEqual(output, "")

        status, output = self.run_main(["-q", str(self.root / "bad.cpp")])
        self.assertEqual(status, 0)

    def test_format(self):
        """Check tokens are printed line by line"""
        tokens = list(Lexer("a  b\n\n  c(d)\n").tokenize())
        self.assertEqual(_format(tokens), "a b\nc(d)\n")
        self.assertEqual(_format(tokens[-1:]), "")


if __name__ == "__main__":
    unittest.main()
