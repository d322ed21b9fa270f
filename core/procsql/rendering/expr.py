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

import datetime
import math
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from procsql.errors import EscapingError, QueryBuildError, UnsupportedTypeError


_FUNC_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Python types that have a literal form in every shipped dialect.
LITERAL_TYPES = (
  type(None),
  bool,
  int,
  float,
  Decimal,
  str,
  bytes,
  datetime.date,
  datetime.time,
  uuid.UUID,
)


class Expr:
  """Marker base class for all logical SQL expression nodes."""
  pass


@dataclass(frozen=True)
class ColumnRef(Expr):
  """Reference to a column, optionally qualified by a table alias (or schema.table)."""
  table_alias: Optional[str]
  column_name: str


@dataclass(frozen=True)
class VariableRef(Expr):
  """
  Reference to a procedure variable or parameter.

  Names starting with '@' are session variables and are never checked
  against declarations.
  """
  name: str

  @property
  def is_session(self) -> bool:
    return self.name.startswith("@")


@dataclass(frozen=True)
class Literal(Expr):
  """Literal value: str, number, bool, None, bytes, temporal or UUID."""
  value: object

  def __post_init__(self):
    value = self.value
    if isinstance(value, (bytearray, memoryview)):
      value = bytes(value)
      object.__setattr__(self, "value", value)

    if not isinstance(value, LITERAL_TYPES):
      raise UnsupportedTypeError(
        f"Unsupported literal type: {type(value).__name__}"
      )
    if isinstance(value, float) and not math.isfinite(value):
      raise UnsupportedTypeError(f"Non-finite float has no SQL literal: {value!r}")
    if isinstance(value, Decimal) and not value.is_finite():
      raise UnsupportedTypeError(f"Non-finite decimal has no SQL literal: {value!r}")


@dataclass(frozen=True)
class FuncCall(Expr):
  """Generic function call expression, e.g. UPPER(col), COALESCE(a, b), COUNT(*)."""
  name: str
  args: Tuple[Expr, ...] = ()

  def __post_init__(self):
    if not _FUNC_NAME_RE.match(self.name or ""):
      raise EscapingError(f"Invalid function name: {self.name!r}")
    object.__setattr__(self, "args", tuple(as_expr(a) for a in self.args))


class ArithmeticOp(str, Enum):
  ADD = "+"
  SUB = "-"
  MUL = "*"
  DIV = "/"
  INT_DIV = "DIV"
  MOD = "%"


@dataclass(frozen=True)
class BinaryOp(Expr):
  """Arithmetic between two expressions, e.g. `i + 1` in a SET statement."""
  left: Expr
  op: ArithmeticOp
  right: Expr

  def __post_init__(self):
    object.__setattr__(self, "op", ArithmeticOp(self.op))
    object.__setattr__(self, "left", as_expr(self.left))
    object.__setattr__(self, "right", as_expr(self.right))


@dataclass(frozen=True)
class RawSql(Expr):
  """
  Raw SQL fragment rendered verbatim.
  Use sparingly: raw SQL bypasses quoting and validation.
  """
  sql: str


@dataclass(frozen=True)
class SubqueryExpr(Expr):
  """A parenthesized scalar or row sub-select used as an expression."""
  query: "SelectQuery"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

class Condition(Expr):
  """
  Base class for boolean predicate nodes.

  Conditions are immutable; every combinator returns a new value.
  """

  def and_(self, *others: "Condition") -> "And":
    return And((self,) + tuple(others))

  def or_(self, *others: "Condition") -> "Or":
    return Or((self,) + tuple(others))

  def not_(self) -> "Not":
    return Not(self)

  def __and__(self, other: "Condition") -> "And":
    return self.and_(other)

  def __or__(self, other: "Condition") -> "Or":
    return self.or_(other)

  def __invert__(self) -> "Not":
    return self.not_()


class CompareOp(str, Enum):
  EQ = "="
  NE = "<>"
  LT = "<"
  LE = "<="
  GT = ">"
  GE = ">="
  LIKE = "LIKE"
  IN = "IN"
  IS_NULL = "IS NULL"
  IS_NOT_NULL = "IS NOT NULL"
  BETWEEN = "BETWEEN"


_UNARY_OPS = (CompareOp.IS_NULL, CompareOp.IS_NOT_NULL)


@dataclass(frozen=True)
class Compare(Condition):
  """
  A single comparison.

  `right` is an Expr for binary operators, a tuple of Exprs (or a
  SubqueryExpr) for IN, a (low, high) pair for BETWEEN and None for the
  IS [NOT] NULL operators.
  """
  left: Expr
  op: CompareOp
  right: object = None

  def __post_init__(self):
    op = CompareOp(self.op)
    object.__setattr__(self, "op", op)
    object.__setattr__(self, "left", as_column(self.left))

    right = self.right
    if op in _UNARY_OPS:
      if right is not None:
        raise QueryBuildError(f"{op.value} takes no right-hand operand")
    elif op is CompareOp.IN:
      if isinstance(right, SubqueryExpr):
        pass
      else:
        if isinstance(right, (str, bytes)) or not hasattr(right, "__iter__"):
          raise QueryBuildError("IN expects a sequence of values or a sub-select")
        right = tuple(as_expr(v) for v in right)
        if not right:
          raise QueryBuildError("IN requires at least one value")
    elif op is CompareOp.BETWEEN:
      if isinstance(right, (str, bytes)) or not hasattr(right, "__iter__"):
        raise QueryBuildError("BETWEEN expects a (low, high) pair")
      right = tuple(right)
      if len(right) != 2:
        raise QueryBuildError("BETWEEN expects exactly two bounds")
      right = (as_expr(right[0]), as_expr(right[1]))
    else:
      right = as_expr(right)
    object.__setattr__(self, "right", right)


def _flatten(kind: type, children) -> Tuple[Condition, ...]:
  flat = []
  for child in children:
    if not isinstance(child, Condition):
      raise QueryBuildError(
        f"{kind.__name__} expects conditions, got {type(child).__name__}"
      )
    if type(child) is kind:
      flat.extend(child.children)
    else:
      flat.append(child)
  return tuple(flat)


@dataclass(frozen=True)
class And(Condition):
  """Conjunction. An empty And is the logical identity (no filter)."""
  children: Tuple[Condition, ...] = ()

  def __post_init__(self):
    object.__setattr__(self, "children", _flatten(And, self.children))

  @property
  def is_identity(self) -> bool:
    return all(isinstance(c, And) and c.is_identity for c in self.children)


@dataclass(frozen=True)
class Or(Condition):
  """Disjunction. Must have at least one child."""
  children: Tuple[Condition, ...]

  def __post_init__(self):
    children = _flatten(Or, self.children)
    if not children:
      raise QueryBuildError("An OR of no conditions has no safe default")
    object.__setattr__(self, "children", children)


@dataclass(frozen=True)
class Not(Condition):
  child: Condition

  def __post_init__(self):
    if not isinstance(self.child, Condition):
      raise QueryBuildError(f"NOT expects a condition, got {type(self.child).__name__}")


@dataclass(frozen=True)
class IsTrue(Condition):
  """A bare boolean operand, e.g. the `done` in `IF done THEN`."""
  expr: Expr

  def __post_init__(self):
    object.__setattr__(self, "expr", as_expr(self.expr))


@dataclass(frozen=True)
class Exists(Condition):
  query: "SelectQuery"


TRUE = And()


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def as_expr(value: object) -> Expr:
  """Pass Expr values through, wrap everything else as a Literal."""
  if isinstance(value, Expr):
    return value
  return Literal(value)


def as_column(value: object) -> Expr:
  """
  Interpret a plain string as a column reference:

      "id"          -> ColumnRef(None, "id")
      "t.id"        -> ColumnRef("t", "id")
      "db.t.id"     -> ColumnRef("db.t", "id")
  """
  if isinstance(value, Expr):
    return value
  if isinstance(value, str):
    alias, sep, name = value.rpartition(".")
    return ColumnRef(table_alias=alias if sep else None, column_name=name)
  raise QueryBuildError(f"Expected a column name or expression, got {type(value).__name__}")
