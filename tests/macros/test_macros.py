# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import unittest
from datetime import datetime

from cxxpp.directives import macro_from_definition_string
from cxxpp.lexer import relex
from cxxpp.macros import (
    BuiltinMacro,
    Macro,
    MacroFunction,
    MacroTable,
    builtin_macros,
    paste,
)
from cxxpp.tokens import (
    Identifier,
    NumericalConstant,
    Punctuator,
    StringConstant,
)


def replacement(definition):
    macro = macro_from_definition_string(definition)
    return [t.value for t in macro.replacement]


class TestMacro(unittest.TestCase):
    """
    Test Macro and MacroFunction classes.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_definition_strings(self):
        """Check the accepted forms of definition strings"""
        macro = macro_from_definition_string("MACRO")
        self.assertIsInstance(macro, Macro)
        self.assertFalse(macro.is_function_like)
        self.assertEqual(macro.name, "MACRO")
        self.assertEqual(macro.replacement, [])

        self.assertEqual(replacement("MACRO=x"), ["x"])
        self.assertEqual(replacement("M body"), ["body"])
        self.assertEqual(replacement("M=a=b"), ["a", "=", "b"])

        macro = macro_from_definition_string("minus(a, b) a - b")
        self.assertIsInstance(macro, MacroFunction)
        self.assertEqual(macro.parameters, ["a", "b"])
        self.assertEqual([str(t) for t in macro.replacement], ["a", "-", "b"])

        macro = macro_from_definition_string("F(x)=x")
        self.assertEqual(macro.parameters, ["x"])
        self.assertEqual([str(t) for t in macro.replacement], ["x"])

    def test_object_like_parenthesis(self):
        """Check whitespace before ( makes a macro object-like"""
        macro = macro_from_definition_string("macro ()")
        self.assertFalse(macro.is_function_like)
        self.assertEqual(replacement("macro ()"), ["(", ")"])

    def test_variadic(self):
        """Check variadic parameter lists"""
        macro = macro_from_definition_string("F(...) __VA_ARGS__")
        self.assertTrue(macro.variadic)
        self.assertEqual(macro.parameters, ["__VA_ARGS__"])
        self.assertEqual(macro.spelling(), ["F(...) __VA_ARGS__"])

        macro = macro_from_definition_string("F(a, args...) args")
        self.assertTrue(macro.variadic)
        self.assertEqual(macro.parameters, ["a", "args"])
        self.assertEqual(macro.spelling(), ["F(a,args...) args"])

    def test_accepts(self):
        """Check argument counts"""
        self.assertTrue(macro_from_definition_string("M").accepts(0))
        self.assertFalse(macro_from_definition_string("M").accepts(1))

        macro = macro_from_definition_string("F(a,b) a")
        self.assertTrue(macro.accepts(2))
        self.assertFalse(macro.accepts(1))

        macro = macro_from_definition_string("F(a,...) a")
        self.assertFalse(macro.accepts(0))
        self.assertTrue(macro.accepts(1))
        self.assertTrue(macro.accepts(5))

    def test_hash_hash_normalization(self):
        """Check ## sequences are normalized when a macro is defined"""
        self.assertEqual(replacement("hashhash c ## c"), ["cc"])
        self.assertEqual(replacement("M c ## c ## c ## c"), ["cccc"])
        self.assertEqual(replacement("F(a,b) a ## ## ## b"), ["a", "##", "b"])
        self.assertEqual(replacement("M ## a ##"), ["a"])
        self.assertEqual(replacement("M + ## -"), ["+", "-"])

    def test_arg_needs_expansion(self):
        """Check which parameters are pre-expanded"""
        macro = macro_from_definition_string("F(a,b) a ## b")
        self.assertEqual(macro.arg_needs_expansion, [False, False])

        macro = macro_from_definition_string("F(a,b) a + #b")
        self.assertEqual(macro.arg_needs_expansion, [True, False])

        macro = macro_from_definition_string("F(a,b) #a b ## a")
        self.assertEqual(macro.arg_needs_expansion, [False, False])

    def test_spelling(self):
        """Check spelling of macros"""
        macro = macro_from_definition_string("F(a,b) a + b")
        self.assertEqual(macro.spelling(), ["F(a,b) a + b"])
        self.assertEqual(macro_from_definition_string("M").spelling(), ["M"])

    def test_replace_stringize(self):
        """Check # produces a string from the raw argument"""
        macro = macro_from_definition_string("str(a) # a")
        arg = relex('"x"  y')
        (result,) = macro.replace([(arg, arg)])
        self.assertIsInstance(result, StringConstant)
        self.assertEqual(result.value, '"\\"x\\" y"')

    def test_replace_placemarkers(self):
        """Check empty ## operands"""
        macro = macro_from_definition_string("F(a,b) a ## b")
        x = relex("x")
        result = macro.replace([(x, x), ([], [])])
        self.assertEqual([t.value for t in result], ["x"])
        self.assertEqual(macro.replace([([], []), ([], [])]), [])

        macro = macro_from_definition_string("F(a,...) a ## __VA_ARGS__")
        self.assertEqual([t.value for t in macro.replace([(x, x)])], ["x"])

    def test_replace_uses_expanded_arguments(self):
        """Check parameters outside # and ## use the pre-expanded argument"""
        macro = macro_from_definition_string("F(a) [a]")
        raw = relex("A")
        expanded = relex("1 + 2")
        result = macro.replace([(raw, expanded)])
        self.assertEqual([t.value for t in result], ["[", "1", "+", "2", "]"])


class TestPaste(unittest.TestCase):
    """
    Test token concatenation.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_valid(self):
        """Check valid concatenations produce a single token"""
        (result,) = paste(*relex("a b"))
        self.assertIsInstance(result, Identifier)
        self.assertEqual(result.value, "ab")
        self.assertEqual(result.col, 0)

        (result,) = paste(*relex("+ ="))
        self.assertIsInstance(result, Punctuator)
        self.assertEqual(result.value, "+=")

        (result,) = paste(*relex("0x cf"))
        self.assertIsInstance(result, NumericalConstant)
        self.assertEqual(result.value, "0xcf")

    def test_invalid(self):
        """Check invalid concatenations keep both operands"""
        left, right = relex("+ -")
        self.assertEqual(paste(left, right), [left, right])

        left, right = relex('"a" "b"')
        self.assertEqual(paste(left, right), [left, right])


class TestBuiltins(unittest.TestCase):
    """
    Test predefined macros.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        now = datetime(2024, 3, 5, 14, 7, 9)
        self.builtins = {m.name: m for m in builtin_macros(now)}

    def test_names(self):
        """Check the predefined macro names"""
        self.assertCountEqual(
            self.builtins,
            [
                "__LINE__",
                "__FILE__",
                "__DATE__",
                "__TIME__",
                "__COUNTER__",
                "__STDC__",
                "__STDC_HOSTED__",
                "__cplusplus",
            ],
        )

    def test_date_time(self):
        """Check __DATE__ and __TIME__"""
        (date,) = self.builtins["__DATE__"].replace()
        self.assertEqual(date.value, '"Mar  5 2024"')
        (time,) = self.builtins["__TIME__"].replace()
        self.assertEqual(time.value, '"14:07:09"')

    def test_location(self):
        """Check __LINE__ and __FILE__ report the invocation"""
        ident = Identifier("dir\\file.c", 7, 3, False, "__LINE__")
        (line,) = self.builtins["__LINE__"].replace((), ident)
        self.assertIsInstance(line, NumericalConstant)
        self.assertEqual((line.value, line.line, line.col), ("7", 7, 3))

        (file,) = self.builtins["__FILE__"].replace((), ident)
        self.assertIsInstance(file, StringConstant)
        self.assertEqual(file.value, '"dir\\\\file.c"')

    def test_counter(self):
        """Check __COUNTER__ increments on each use"""
        counter = self.builtins["__COUNTER__"]
        self.assertIsInstance(counter, BuiltinMacro)
        values = [counter.replace()[0].value for _ in range(3)]
        self.assertEqual(values, ["0", "1", "2"])

    def test_static(self):
        """Check constant predefined macros"""
        self.assertEqual(
            [t.value for t in self.builtins["__cplusplus"].replacement],
            ["201103L"],
        )
        self.assertEqual(
            [t.value for t in self.builtins["__STDC__"].replacement],
            ["1"],
        )


class TestMacroTable(unittest.TestCase):
    """
    Test MacroTable class.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_define(self):
        """Check implementation of define"""
        macro = macro_from_definition_string("MACRO=x")

        table = MacroTable(builtins=False)
        self.assertFalse(table.is_defined("MACRO"))
        self.assertIsNone(table.lookup("MACRO"))

        table.define(macro)
        self.assertTrue(table.is_defined("MACRO"))
        self.assertIn("MACRO", table)
        self.assertEqual(table.lookup("MACRO"), macro)
        self.assertEqual(len(table), 1)

    def test_redefine(self):
        """Check the last definition wins"""
        table = MacroTable(builtins=False)
        table.define(macro_from_definition_string("M=1"))
        second = macro_from_definition_string("M(x)=x")
        table.define(second)
        self.assertIs(table.lookup("M"), second)
        self.assertEqual(table.names(), ["M"])

    def test_undefine(self):
        """Check implementation of undefine"""
        table = MacroTable(builtins=False)
        table.define(macro_from_definition_string("MACRO=x"))
        table.undefine("MACRO")
        self.assertFalse(table.is_defined("MACRO"))
        self.assertIsNone(table.lookup("MACRO"))

        # Unknown names are ignored
        table.undefine("MACRO")

    def test_builtins(self):
        """Check predefined macros are seeded"""
        table = MacroTable()
        self.assertTrue(table.is_defined("__LINE__"))
        self.assertTrue(table.is_defined("__cplusplus"))
        self.assertEqual(len(list(table)), len(table))

        table.undefine("__LINE__")
        self.assertFalse(table.is_defined("__LINE__"))


if __name__ == "__main__":
    unittest.main()
