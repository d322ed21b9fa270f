"""
procsql - Procedural SQL statement builder
Copyright © 2025-2026 Ilona Tag

This file is part of procsql.

procsql is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as
published by the Free Software Foundation, either version 3 of
the License, or (at your option) any later version.

procsql is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with procsql. If not, see <https://www.gnu.org/licenses/>.

Contact: <https://github.com/elevata-labs>.
"""

from __future__ import annotations

from typing import Iterable, Optional

from procsql.errors import QueryBuildError
from procsql.rendering.expr import (
  And,
  ArithmeticOp,
  BinaryOp,
  ColumnRef,
  Compare,
  CompareOp,
  Condition,
  Exists,
  FuncCall,
  IsTrue,
  Literal,
  Not,
  Or,
  RawSql,
  SubqueryExpr,
  VariableRef,
  as_column,
)


# ---------------------------------------------------------------------------
# Basic DSL helpers that create Expr nodes from expr.py
# ---------------------------------------------------------------------------

def col(name: str, table: Optional[str] = None) -> ColumnRef:
  """
  Convenience helper for a column reference, optionally qualified with a table alias.

  Example:
      col("id")          -> ColumnRef(None, "id")
      col("id", "t")     -> ColumnRef("t", "id")
  """
  return ColumnRef(table_alias=table, column_name=name)


def var(name: str) -> VariableRef:
  """Reference a declared procedure variable, a parameter or an @session variable."""
  return VariableRef(name=name)


def lit(value) -> Literal:
  """Create a literal expression."""
  return Literal(value)


def raw(sql: str) -> RawSql:
  """
  Convenience helper for a raw SQL fragment.

  Use sparingly: raw SQL bypasses quoting and validation.
  """
  return RawSql(sql=sql)


def func(name: str, *args) -> FuncCall:
  """Generic function call; plain Python arguments become literals."""
  return FuncCall(name=name, args=tuple(args))


def subquery(query) -> SubqueryExpr:
  """Wrap a SelectQuery (or a SelectBuilder) as a parenthesized expression."""
  return SubqueryExpr(query=_as_query(query))


def _as_query(query):
  build = getattr(query, "build", None)
  return build() if callable(build) else query


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------

def _operand(value):
  return as_column(value) if isinstance(value, str) else value


def add(left, right) -> BinaryOp:
  """`left + right`; a string on the left names a column or variable."""
  return BinaryOp(_operand(left), ArithmeticOp.ADD, right)


def sub(left, right) -> BinaryOp:
  return BinaryOp(_operand(left), ArithmeticOp.SUB, right)


def mul(left, right) -> BinaryOp:
  return BinaryOp(_operand(left), ArithmeticOp.MUL, right)


# ---------------------------------------------------------------------------
# Comparisons
#
# The left operand is a column name or an expression, the right operand is
# a value (wrapped as literal) or an expression.
# ---------------------------------------------------------------------------

def eq(left, right) -> Compare:
  """`left = right`; comparing against None renders as IS NULL."""
  if right is None:
    return Compare(left, CompareOp.IS_NULL)
  return Compare(left, CompareOp.EQ, right)


def ne(left, right) -> Compare:
  """`left <> right`; comparing against None renders as IS NOT NULL."""
  if right is None:
    return Compare(left, CompareOp.IS_NOT_NULL)
  return Compare(left, CompareOp.NE, right)


def lt(left, right) -> Compare:
  return Compare(left, CompareOp.LT, right)


def le(left, right) -> Compare:
  return Compare(left, CompareOp.LE, right)


def gt(left, right) -> Compare:
  return Compare(left, CompareOp.GT, right)


def ge(left, right) -> Compare:
  return Compare(left, CompareOp.GE, right)


def like(left, pattern) -> Compare:
  return Compare(left, CompareOp.LIKE, pattern)


def in_(left, values) -> Compare:
  """`left IN (...)`; `values` is a non-empty iterable or a sub-select."""
  if not isinstance(values, (SubqueryExpr, list, tuple, set, frozenset)) and hasattr(values, "build"):
    values = SubqueryExpr(_as_query(values))
  return Compare(left, CompareOp.IN, values)


def not_in(left, values) -> Not:
  return Not(in_(left, values))


def is_null(left) -> Compare:
  return Compare(left, CompareOp.IS_NULL)


def is_not_null(left) -> Compare:
  return Compare(left, CompareOp.IS_NOT_NULL)


def between(left, low, high) -> Compare:
  return Compare(left, CompareOp.BETWEEN, (low, high))


def is_true(value) -> IsTrue:
  """
  A bare boolean operand. Strings name a variable, so `is_true("done")`
  renders as `done` inside IF/WHILE/UNTIL.
  """
  if isinstance(value, str):
    value = VariableRef(value)
  return IsTrue(value)


def exists(query) -> Exists:
  return Exists(_as_query(query))


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------

def and_(*conditions: Condition) -> And:
  """Conjunction; with no arguments this is the identity (no filter)."""
  return And(tuple(conditions))


def or_(*conditions: Condition) -> Or:
  if not conditions:
    raise QueryBuildError("or_() needs at least one condition")
  return Or(tuple(conditions))


def not_(condition: Condition) -> Not:
  return Not(condition)


def any_of(conditions: Iterable[Condition]) -> Or:
  return or_(*tuple(conditions))
