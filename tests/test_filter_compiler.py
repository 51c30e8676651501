"""Tests for the filter expression compiler."""

import pytest
from sqlalchemy import JSON, Column, Integer, MetaData, Table
from sqlalchemy.dialects import sqlite

from metastore.errors import InvalidArgument
from metastore.filtering.compiler import FilterCompiler, tokenize

documents = Table(
    "documents",
    MetaData(),
    Column("id", Integer, primary_key=True),
    Column("data", JSON),
)


def _compile(expression):
    clause = FilterCompiler().compile(expression, documents.c.data)
    return clause.compile(dialect=sqlite.dialect())


def test_tokenize_recognizes_uppercase_keywords():
    kinds = [t.kind for t in tokenize('kind = "A" AND NOT x.y != 3 OR z = true')]
    assert kinds == [
        "ident", "op", "string", "AND", "NOT", "ident", "op", "number", "OR", "ident", "op", "ident",
    ]


def test_lowercase_keywords_are_field_names():
    kinds = [t.kind for t in tokenize('and = "x" AND or.not = 1')]
    assert kinds == ["ident", "op", "string", "AND", "ident", "op", "number"]

    compiled = _compile('and = "x" AND or.not = 1')
    assert "x" in compiled.params.values()
    assert 1.0 in compiled.params.values()


def test_string_value_is_bound_parameter():
    compiled = _compile('kind = "VULNERABILITY"')

    assert "VULNERABILITY" not in str(compiled)
    assert "VULNERABILITY" in compiled.params.values()


def test_injection_text_stays_in_parameters():
    payload = "x' OR 1=1; DROP TABLE documents; --"
    compiled = _compile('kind = "' + payload + '"')

    assert "DROP TABLE" not in str(compiled)
    assert payload in compiled.params.values()


def test_escaped_quotes_are_unescaped():
    compiled = _compile(r'short_description = "say \"hi\""')
    assert 'say "hi"' in compiled.params.values()


def test_nested_path_and_boolean_logic():
    compiled = _compile('resource.uri = "u" AND (rank >= 2 OR NOT active = false)')
    sql = str(compiled)

    assert " AND " in sql
    assert " OR " in sql
    assert "NOT" in sql or "!=" in sql
    assert 2.0 in compiled.params.values()


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "   ",
        "kind",
        "kind =",
        'kind = "a" AND',
        '(kind = "a"',
        'kind = "a")',
        "kind = VULNERABILITY",
        "active > true",
        "kind ~ 1",
        'kind = "unterminated',
    ],
)
def test_invalid_expressions_raise_invalid_argument(expression):
    with pytest.raises(InvalidArgument):
        FilterCompiler().compile(expression, documents.c.data)
