"""Tests for the column list text form."""

import pytest

from schema_catalog.catalog.schema_text import (
    SchemaTextError,
    bracket_name_if_necessary,
    format_columns,
    get_bracketed_name,
    normalize_parameter_list,
    parse_columns,
)
from schema_catalog.catalog.types import Column


class TestParseColumns:
    def test_simple(self):
        assert parse_columns("(a:long, b: string)") == (Column("a", "long"), Column("b", "string"))

    def test_without_parens(self):
        assert parse_columns("a:long") == (Column("a", "long"),)

    def test_bracketed_names(self):
        columns = parse_columns("(['my col']: string, [\"x:y\"]: int, ['it\\'s']: real)")
        assert [c.name for c in columns] == ["my col", "x:y", "it's"]

    def test_nested_types(self):
        columns = parse_columns("(a: decimal(10, 2), b: dynamic)")
        assert columns == (Column("a", "decimal(10, 2)"), Column("b", "dynamic"))

    @pytest.mark.parametrize("text", [None, "", "()", "(*)"])
    def test_empty(self, text):
        assert parse_columns(text) == ()

    @pytest.mark.parametrize("text", ["(a)", "(a: long", "(['a: long)", "(: long)"])
    def test_invalid(self, text):
        with pytest.raises(SchemaTextError):
            parse_columns(text)

    def test_error_is_value_error(self):
        assert issubclass(SchemaTextError, ValueError)


class TestFormatColumns:
    def test_format(self):
        columns = (Column("a", "long"), Column("b c", "string"))
        assert format_columns(columns) == "(a: long, ['b c']: string)"
        assert parse_columns(format_columns(columns)) == columns

    def test_empty(self):
        assert format_columns(()) == "()"


class TestNames:
    def test_bracket_if_necessary(self):
        assert bracket_name_if_necessary("StormEvents") == "StormEvents"
        assert bracket_name_if_necessary("Storm Events") == "['Storm Events']"

    def test_always_bracketed(self):
        assert get_bracketed_name("Samples") == "['Samples']"
        assert get_bracketed_name("it's") == "['it\\'s']"

    def test_parameter_list(self):
        assert normalize_parameter_list(None) == "()"
        assert normalize_parameter_list("x: long") == "(x: long)"
        assert normalize_parameter_list("(x: long)") == "(x: long)"
