# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import dataclasses
import logging
import unittest
from pathlib import Path

from cxxpp.config import Configuration


class TestConfiguration(unittest.TestCase):
    """
    Test Configuration class.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_defaults(self):
        """Check default settings"""
        config = Configuration()
        self.assertEqual(config.charset, "utf-8")
        self.assertEqual(config.include_paths, ())
        self.assertEqual(config.defines, ())
        self.assertTrue(config.error_recovery)
        self.assertEqual(config.max_expansion_depth, 200)

    def test_constructor(self):
        """Check arguments are normalized"""
        config = Configuration(
            include_paths=["/path/to/include"],
            global_defines=["A 1"],
            defines=["MACRO"],
            force_includes=[Path("force.h")],
        )
        self.assertEqual(config.include_paths, (Path("/path/to/include"),))
        self.assertEqual(config.global_defines, ("A 1",))
        self.assertEqual(config.defines, ("MACRO",))
        self.assertEqual(config.force_includes, (Path("force.h"),))

    def test_constructor_validation(self):
        """Check arguments are valid"""

        with self.assertRaises(TypeError):
            Configuration(charset=1)

        with self.assertRaises(TypeError):
            Configuration(include_paths="/not/a/list")

        with self.assertRaises(TypeError):
            Configuration(include_paths=[1])

        with self.assertRaises(TypeError):
            Configuration(defines="/not/a/list")

        with self.assertRaises(TypeError):
            Configuration(global_defines=[None])

        with self.assertRaises(TypeError):
            Configuration(error_recovery="no")

        with self.assertRaises(TypeError):
            Configuration(max_expansion_depth=0)

        with self.assertRaises(TypeError):
            Configuration(max_include_depth=True)

    def test_immutable(self):
        """Check configurations cannot be modified"""
        config = Configuration()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            config.charset = "latin-1"

    def test_from_dict(self):
        """Check construction from a mapping"""
        config = Configuration.from_dict(
            {"defines": ["A=1"], "error_recovery": False},
        )
        self.assertEqual(config.defines, ("A=1",))
        self.assertFalse(config.error_recovery)

        with self.assertRaises(ValueError):
            Configuration.from_dict({"platform": "cpu"})


if __name__ == "__main__":
    unittest.main()
