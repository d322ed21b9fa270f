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

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from procsql.errors import QueryBuildError
from procsql.rendering.expr import (
  ColumnRef,
  Condition,
  Expr,
  VariableRef,
  as_column,
  as_expr,
)


@dataclass(frozen=True)
class SourceTable:
  """
  Logical representation of a source table in a FROM or JOIN clause.
  """
  schema: Optional[str]
  name: str
  alias: Optional[str] = None


@dataclass(frozen=True)
class SubquerySource:
  """
  Logical representation of a sub-select in a FROM or JOIN clause.
  Example:
    FROM (SELECT ...) AS u
  """
  select: "SelectQuery"
  alias: str

  def __post_init__(self):
    if not self.alias:
      raise QueryBuildError("A sub-select used as a source needs an alias")


Source = Union[SourceTable, SubquerySource]


@dataclass(frozen=True)
class SelectItem:
  expr: Expr
  alias: Optional[str] = None


class JoinType(str, Enum):
  INNER = "INNER"
  LEFT = "LEFT"
  RIGHT = "RIGHT"
  FULL = "FULL"
  CROSS = "CROSS"


@dataclass(frozen=True)
class Join:
  """
  A join against another source.

  Every join type except CROSS needs either an ON condition or USING
  columns; CROSS joins take neither.
  """
  join_type: JoinType
  right: Source
  on: Optional[Condition] = None
  using: Tuple[str, ...] = ()

  def __post_init__(self):
    join_type = JoinType(self.join_type)
    object.__setattr__(self, "join_type", join_type)
    object.__setattr__(self, "using", tuple(self.using))

    if self.on is not None and self.using:
      raise QueryBuildError("A join takes either an ON condition or USING columns, not both")
    if join_type is JoinType.CROSS:
      if self.on is not None or self.using:
        raise QueryBuildError("CROSS joins take no ON condition or USING columns")
    elif self.on is None and not self.using:
      raise QueryBuildError(
        f"{join_type.value} join needs an ON condition; use cross_join() for a cartesian product"
      )


@dataclass(frozen=True)
class GroupBy:
  """GROUP BY columns with an optional HAVING condition, independent of WHERE."""
  columns: Tuple[Expr, ...]
  having: Optional[Condition] = None
  with_rollup: bool = False

  def __post_init__(self):
    columns = tuple(as_column(c) for c in self.columns)
    if not columns:
      raise QueryBuildError("GROUP BY needs at least one column")
    object.__setattr__(self, "columns", columns)


class SortDirection(str, Enum):
  ASC = "ASC"
  DESC = "DESC"


@dataclass(frozen=True)
class SortKey:
  expr: Expr
  direction: SortDirection = SortDirection.ASC

  def __post_init__(self):
    object.__setattr__(self, "expr", as_column(self.expr))
    object.__setattr__(self, "direction", SortDirection(self.direction.upper()))


LimitValue = Union[int, VariableRef]


def _check_limit_value(name: str, value) -> None:
  if isinstance(value, VariableRef):
    return
  if isinstance(value, bool) or not isinstance(value, int):
    raise QueryBuildError(f"LIMIT {name} must be an integer or a variable, got {value!r}")
  if value < 0:
    raise QueryBuildError(f"LIMIT {name} must not be negative, got {value}")


@dataclass(frozen=True)
class QueryLimit:
  """
  Maximum number of rows to return, optionally starting at an offset.
  Inside stored programs both values may be procedure variables.
  """
  count: LimitValue
  offset: Optional[LimitValue] = None

  def __post_init__(self):
    _check_limit_value("count", self.count)
    if self.offset is not None:
      _check_limit_value("offset", self.offset)


@dataclass(frozen=True)
class SelectQuery:
  """
  Vendor-neutral SELECT statement value.

  Field order here has no influence on rendering: dialects always emit the
  clauses in canonical order.
  """
  items: Tuple[SelectItem, ...]
  source: Optional[Source] = None
  joins: Tuple[Join, ...] = ()
  where: Optional[Condition] = None
  group_by: Optional[GroupBy] = None
  order_by: Tuple[SortKey, ...] = ()
  limit: Optional[QueryLimit] = None
  distinct: bool = False
  into: Tuple[str, ...] = ()

  def __post_init__(self):
    if not self.items:
      raise QueryBuildError("Cannot build a query without any columns to select")
    if self.joins and self.source is None:
      raise QueryBuildError("Joins need a FROM source")


def _is_star(expr: Expr) -> bool:
  return isinstance(expr, ColumnRef) and expr.column_name == "*"


class InsertMode(str, Enum):
  INSERT = "INSERT"
  INSERT_IGNORE = "INSERT IGNORE"
  REPLACE = "REPLACE"


@dataclass(frozen=True)
class InsertQuery:
  """
  INSERT statement value. Exactly one of `rows` and `select` is populated.
  """
  table: SourceTable
  columns: Tuple[str, ...]
  rows: Tuple[Tuple[Expr, ...], ...] = ()
  select: Optional[SelectQuery] = None
  mode: InsertMode = InsertMode.INSERT
  on_duplicate: Tuple[Tuple[str, Expr], ...] = ()

  def __post_init__(self):
    object.__setattr__(self, "columns", tuple(self.columns))
    object.__setattr__(
      self, "rows", tuple(tuple(as_expr(v) for v in row) for row in self.rows)
    )
    if self.rows and self.select is not None:
      raise QueryBuildError("An INSERT takes either value rows or a sub-select, not both")
    if not self.rows and self.select is None:
      raise QueryBuildError("No values were specified")
    width = len(self.columns)
    for row in self.rows:
      if width and len(row) != width:
        raise QueryBuildError(
          f"Row has {len(row)} values but {width} columns are being filled"
        )
    if (
      self.select is not None
      and width
      and not any(_is_star(item.expr) for item in self.select.items)
      and len(self.select.items) != width
    ):
      raise QueryBuildError(
        f"Sub-select returns {len(self.select.items)} columns but {width} columns are being filled"
      )
    if self.on_duplicate and self.mode is InsertMode.REPLACE:
      raise QueryBuildError("REPLACE cannot be combined with ON DUPLICATE KEY UPDATE")
    object.__setattr__(
      self, "on_duplicate", tuple((c, as_expr(v)) for c, v in self.on_duplicate)
    )
