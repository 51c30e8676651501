"""Filter expression compiler.

Translates list filter strings into SQLAlchemy predicates over a JSON payload
column. Every literal becomes a bound parameter; caller text never reaches the
SQL string.

Grammar:
    expr       := and_expr ("OR" and_expr)*
    and_expr   := not_expr ("AND" not_expr)*
    not_expr   := "NOT" not_expr | "(" expr ")" | comparison
    comparison := path op value
    op         := "=" | "!=" | "<" | "<=" | ">" | ">="
    path       := ident ("." ident)*
    value      := "quoted string" | number | true | false

Keywords are uppercase only; lowercase `and`, `or` and `not` are field names.

Example:
    kind = "VULNERABILITY" AND (resource.uri = "https://x/y" OR NOT remediation = "none")
"""

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from sqlalchemy import and_, not_, or_
from sqlalchemy.sql.elements import ColumnElement

from metastore.errors import InvalidArgument

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<op><=|>=|!=|=|<|>)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    """,
    re.VERBOSE,
)

KEYWORDS = {"AND", "OR", "NOT"}

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass
class Token:
    kind: str
    text: str
    pos: int


def tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if not match:
            raise InvalidArgument(f"Unexpected character {expression[pos]!r} at position {pos} in filter")
        kind = match.lastgroup
        text = match.group()
        if kind != "ws":
            if kind == "ident" and text in KEYWORDS:
                kind = text
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    return tokens


def _unquote(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text[1:-1])


class _Parser:
    def __init__(self, tokens: List[Token], column):
        self.tokens = tokens
        self.index = 0
        self.column = column

    def peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def take(self, *kinds: str) -> Token:
        token = self.peek()
        if token is None:
            raise InvalidArgument(f"Unexpected end of filter, expected {' or '.join(kinds)}")
        if token.kind not in kinds:
            raise InvalidArgument(f"Unexpected {token.text!r} at position {token.pos} in filter")
        self.index += 1
        return token

    def parse(self) -> ColumnElement:
        predicate = self.expr()
        trailing = self.peek()
        if trailing is not None:
            raise InvalidArgument(f"Unexpected {trailing.text!r} at position {trailing.pos} in filter")
        return predicate

    def expr(self) -> ColumnElement:
        terms = [self.and_expr()]
        while self.peek() is not None and self.peek().kind == "OR":
            self.index += 1
            terms.append(self.and_expr())
        return terms[0] if len(terms) == 1 else or_(*terms)

    def and_expr(self) -> ColumnElement:
        terms = [self.not_expr()]
        while self.peek() is not None and self.peek().kind == "AND":
            self.index += 1
            terms.append(self.not_expr())
        return terms[0] if len(terms) == 1 else and_(*terms)

    def not_expr(self) -> ColumnElement:
        token = self.peek()
        if token is not None and token.kind == "NOT":
            self.index += 1
            return not_(self.not_expr())
        if token is not None and token.kind == "lparen":
            self.index += 1
            inner = self.expr()
            self.take("rparen")
            return inner
        return self.comparison()

    def comparison(self) -> ColumnElement:
        path = self.take("ident").text
        op = self.take("op").text
        value_token = self.take("string", "number", "ident")
        element = self.column[tuple(path.split("."))]

        if value_token.kind == "string":
            return OPERATORS[op](element.as_string(), _unquote(value_token.text))
        if value_token.kind == "number":
            return OPERATORS[op](element.as_float(), float(value_token.text))

        literal = value_token.text.lower()
        if literal not in ("true", "false"):
            raise InvalidArgument(
                f"Unquoted value {value_token.text!r} at position {value_token.pos}; quote string values"
            )
        if op not in ("=", "!="):
            raise InvalidArgument(f"Operator {op!r} is not supported for boolean values")
        return OPERATORS[op](element.as_boolean(), literal == "true")


class FilterCompiler:
    """Compiles filter expressions into predicates over a JSON column."""

    def compile(self, expression: str, payload_column) -> ColumnElement:
        """
        Compile ``expression`` into a predicate over ``payload_column``.

        Args:
            expression: Filter string (must be non-empty)
            payload_column: SQLAlchemy JSON column or ORM attribute

        Returns:
            SQLAlchemy boolean clause with bound parameters

        Raises:
            InvalidArgument: If the expression cannot be parsed
        """
        tokens = tokenize(expression)
        if not tokens:
            raise InvalidArgument("Empty filter expression")
        return _Parser(tokens, payload_column).parse()
