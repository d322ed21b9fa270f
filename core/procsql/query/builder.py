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

"""
Persistent builders for SELECT and INSERT statements.

Every builder method returns a new builder; the receiver is never modified,
so a partially configured builder can be shared and extended in several
directions without one branch leaking into another:

    base = SelectBuilder.create("test.t1").select("id", "data")
    small = base.where(lt("id", 10))
    large = base.where(ge("id", 10)).order_by("id", "DESC")

`build()` validates the accumulated clauses and returns the frozen query
value that dialects render.
"""

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from procsql.errors import QueryBuildError
from procsql.query.clauses import (
  GroupBy,
  InsertMode,
  InsertQuery,
  Join,
  JoinType,
  QueryLimit,
  SelectItem,
  SelectQuery,
  SortDirection,
  SortKey,
  SourceTable,
  SubquerySource,
)
from procsql.rendering.expr import And, Condition, Expr, VariableRef, as_column, as_expr


def table(name: str, schema: Optional[str] = None, alias: Optional[str] = None) -> SourceTable:
  """
  Build a table reference. A dotted name without explicit schema is split
  at the first dot:

      table("test.t1")          -> SourceTable("test", "t1")
      table("t1", alias="a")    -> SourceTable(None, "t1", "a")
  """
  if schema is None and "." in name:
    schema, name = name.split(".", 1)
  return SourceTable(schema=schema, name=name, alias=alias)


def _as_source(source, alias: Optional[str]):
  if isinstance(source, SelectBuilder):
    source = source.build()
  if isinstance(source, SelectQuery):
    if not alias:
      raise QueryBuildError("A sub-select used as a source needs an alias")
    return SubquerySource(select=source, alias=alias)
  if isinstance(source, SubquerySource):
    return source
  if isinstance(source, SourceTable):
    if alias:
      return SourceTable(schema=source.schema, name=source.name, alias=alias)
    return source
  if isinstance(source, str):
    return table(source, alias=alias)
  raise QueryBuildError(f"Unsupported query source: {type(source).__name__}")


def _merge_condition(existing: Optional[Condition], condition: Condition) -> Condition:
  if not isinstance(condition, Condition):
    raise QueryBuildError(f"Expected a condition, got {type(condition).__name__}")
  if existing is None:
    return condition
  return And((existing, condition))


class SelectBuilder:
  """Accumulates SELECT clauses in any call order."""

  __slots__ = ("_parts",)

  _DEFAULTS = {
    "items": (),
    "source": None,
    "joins": (),
    "where": None,
    "group_by": None,
    "order_by": (),
    "limit": None,
    "distinct": False,
    "into": (),
  }

  def __init__(self, **parts: Any):
    unknown = set(parts) - set(self._DEFAULTS)
    if unknown:
      raise TypeError(f"Unknown SELECT parts: {', '.join(sorted(unknown))}")
    self._parts: Mapping[str, Any] = MappingProxyType({**self._DEFAULTS, **parts})

  @classmethod
  def create(cls, source=None, alias: Optional[str] = None) -> "SelectBuilder":
    """Start a SELECT from a table name, table reference or aliased sub-select."""
    if source is None:
      return cls()
    return cls(source=_as_source(source, alias))

  def _with(self, **changes: Any) -> "SelectBuilder":
    return SelectBuilder(**{**self._parts, **changes})

  # ---------------------------------------------------------------------------
  # Clauses
  # ---------------------------------------------------------------------------
  def select(self, *columns: Union[str, Expr]) -> "SelectBuilder":
    """Select columns (strings become column references, '*' selects all) or expressions."""
    items = tuple(SelectItem(expr=as_column(c)) for c in columns)
    return self._with(items=self._parts["items"] + items)

  def select_as(self, column: Union[str, Expr], alias: str) -> "SelectBuilder":
    item = SelectItem(expr=as_column(column), alias=alias)
    return self._with(items=self._parts["items"] + (item,))

  def distinct(self, flag: bool = True) -> "SelectBuilder":
    return self._with(distinct=bool(flag))

  def from_(self, source, alias: Optional[str] = None) -> "SelectBuilder":
    return self._with(source=_as_source(source, alias))

  def alias(self, alias: str) -> "SelectBuilder":
    """Set the alias of the table selected from."""
    source = self._parts["source"]
    if source is None:
      raise QueryBuildError("Cannot alias a SELECT without a FROM source")
    return self._with(source=_as_source(source, alias))

  def join(
    self,
    source,
    on: Optional[Condition] = None,
    join_type: Union[JoinType, str] = JoinType.INNER,
    *,
    using: Iterable[str] = (),
    alias: Optional[str] = None,
  ) -> "SelectBuilder":
    join_type = JoinType(str(join_type).upper() if not isinstance(join_type, JoinType) else join_type)
    if join_type is JoinType.CROSS:
      raise QueryBuildError("Use cross_join() for CROSS joins")
    new_join = Join(
      join_type=join_type,
      right=_as_source(source, alias),
      on=on,
      using=tuple(using),
    )
    return self._with(joins=self._parts["joins"] + (new_join,))

  def left_join(self, source, on: Optional[Condition] = None, **kwargs) -> "SelectBuilder":
    return self.join(source, on, JoinType.LEFT, **kwargs)

  def right_join(self, source, on: Optional[Condition] = None, **kwargs) -> "SelectBuilder":
    return self.join(source, on, JoinType.RIGHT, **kwargs)

  def full_join(self, source, on: Optional[Condition] = None, **kwargs) -> "SelectBuilder":
    return self.join(source, on, JoinType.FULL, **kwargs)

  def cross_join(self, source, alias: Optional[str] = None) -> "SelectBuilder":
    """Explicit cartesian product; the only join without an ON condition."""
    new_join = Join(join_type=JoinType.CROSS, right=_as_source(source, alias))
    return self._with(joins=self._parts["joins"] + (new_join,))

  def where(self, condition: Condition) -> "SelectBuilder":
    """Add a filter. Repeated calls are combined with AND."""
    return self._with(where=_merge_condition(self._parts["where"], condition))

  def group_by(
    self,
    *columns: Union[str, Expr],
    having: Optional[Condition] = None,
    with_rollup: bool = False,
  ) -> "SelectBuilder":
    return self._with(group_by=GroupBy(columns=tuple(columns), having=having, with_rollup=with_rollup))

  def having(self, condition: Condition) -> "SelectBuilder":
    group_by = self._parts["group_by"]
    if group_by is None:
      raise QueryBuildError("HAVING needs a GROUP BY")
    return self._with(
      group_by=GroupBy(
        columns=group_by.columns,
        having=_merge_condition(group_by.having, condition),
        with_rollup=group_by.with_rollup,
      )
    )

  def order_by(
    self,
    column: Union[str, Expr],
    direction: Union[SortDirection, str] = SortDirection.ASC,
  ) -> "SelectBuilder":
    """Append a sort key; keys are applied in the order they were added."""
    key = SortKey(expr=column, direction=direction)
    return self._with(order_by=self._parts["order_by"] + (key,))

  def limit(self, count: Union[int, VariableRef], offset: Union[int, VariableRef, None] = None) -> "SelectBuilder":
    return self._with(limit=QueryLimit(count=count, offset=offset))

  def into(self, *variables: str) -> "SelectBuilder":
    """Store the selected row into procedure variables (SELECT ... INTO a, b)."""
    if not variables:
      raise QueryBuildError("INTO needs at least one target variable")
    return self._with(into=tuple(variables))

  # ---------------------------------------------------------------------------
  # Terminal operations
  # ---------------------------------------------------------------------------
  def build(self) -> SelectQuery:
    query = SelectQuery(**self._parts)
    if query.into and len(query.into) != len(query.items):
      raise QueryBuildError(
        f"SELECT ... INTO has {len(query.into)} targets for {len(query.items)} columns"
      )
    return query

  def to_sql(self, dialect) -> str:
    return dialect.render_select(self.build())


class InsertBuilder:
  """Accumulates an INSERT with either value rows or a sub-select."""

  __slots__ = ("_parts",)

  _DEFAULTS = {
    "table": None,
    "columns": (),
    "rows": (),
    "select": None,
    "mode": InsertMode.INSERT,
    "on_duplicate": (),
  }

  def __init__(self, **parts: Any):
    unknown = set(parts) - set(self._DEFAULTS)
    if unknown:
      raise TypeError(f"Unknown INSERT parts: {', '.join(sorted(unknown))}")
    self._parts: Mapping[str, Any] = MappingProxyType({**self._DEFAULTS, **parts})

  @classmethod
  def create(cls, target, *columns: str) -> "InsertBuilder":
    if isinstance(target, str):
      target = table(target)
    if not isinstance(target, SourceTable):
      raise QueryBuildError(f"INSERT target must be a table, got {type(target).__name__}")
    return cls(table=target, columns=tuple(columns))

  def _with(self, **changes: Any) -> "InsertBuilder":
    return InsertBuilder(**{**self._parts, **changes})

  def values(self, *values: Any) -> "InsertBuilder":
    """Append one row of values. Plain Python values become literals."""
    if self._parts["select"] is not None:
      raise QueryBuildError("An INSERT takes either value rows or a sub-select, not both")
    columns = self._parts["columns"]
    if columns and len(values) != len(columns):
      raise QueryBuildError(
        f"Amount of values passed ({len(values)}) not equal to columns being filled ({len(columns)})"
      )
    row = tuple(as_expr(v) for v in values)
    return self._with(rows=self._parts["rows"] + (row,))

  def rows(self, rows: Iterable[Iterable[Any]]) -> "InsertBuilder":
    builder = self
    for row in rows:
      builder = builder.values(*row)
    return builder

  def from_select(self, select) -> "InsertBuilder":
    if self._parts["rows"]:
      raise QueryBuildError("An INSERT takes either value rows or a sub-select, not both")
    if isinstance(select, SelectBuilder):
      select = select.build()
    if not isinstance(select, SelectQuery):
      raise QueryBuildError(f"Expected a SELECT, got {type(select).__name__}")
    return self._with(select=select)

  def ignore(self) -> "InsertBuilder":
    return self._with(mode=InsertMode.INSERT_IGNORE)

  def replace(self) -> "InsertBuilder":
    return self._with(mode=InsertMode.REPLACE)

  def on_duplicate_update(self, assignments: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "InsertBuilder":
    """ON DUPLICATE KEY UPDATE col = value, ...; assignments keep insertion order."""
    merged = dict(assignments or {})
    merged.update(kwargs)
    pairs = tuple((c, as_expr(v)) for c, v in merged.items())
    return self._with(on_duplicate=self._parts["on_duplicate"] + pairs)

  def build(self) -> InsertQuery:
    if self._parts["table"] is None:
      raise QueryBuildError("INSERT needs a target table")
    return InsertQuery(**self._parts)

  def to_sql(self, dialect) -> str:
    return dialect.render_insert(self.build())
