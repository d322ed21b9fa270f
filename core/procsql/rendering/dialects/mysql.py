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
import logging
import math
import uuid
from decimal import Decimal
from typing import List, Sequence

from procsql.errors import BlockStructureError, EscapingError, UnsupportedTypeError
from procsql.procedure.statements import (
  Block,
  CallStmt,
  CaseBlock,
  CloseCursor,
  ConditionKind,
  ConditionValue,
  DeclareCondition,
  DeclareCursor,
  DeclareHandler,
  DeclareVariable,
  DelimiterStmt,
  EmptyStmt,
  FetchCursor,
  IfBlock,
  InsertStmt,
  IterateStmt,
  LeaveStmt,
  LoopStmt,
  OpenCursor,
  Procedure,
  RawStmt,
  RepeatStmt,
  SelectStmt,
  SetStmt,
  SignalStmt,
  Statement,
  Trigger,
  WhileStmt,
)
from procsql.query.clauses import (
  InsertQuery,
  Join,
  JoinType,
  SelectQuery,
  SourceTable,
  SubquerySource,
)
from procsql.rendering.dialects.base import SqlDialect, is_plain_identifier
from procsql.rendering.expr import (
  BinaryOp,
  ColumnRef,
  Condition,
  Exists,
  Expr,
  FuncCall,
  IsTrue,
  Literal,
  RawSql,
  SubqueryExpr,
  VariableRef,
)
from procsql.table.columns import ColumnAttribute, ColumnDefault, ColumnStructure, TypeParams
from procsql.table.structure import IndexKind, TableStructure

logger = logging.getLogger(__name__)


class MySqlDialect(SqlDialect):
  """
  MySQL SQL dialect implementation.

  Assumptions:
  - Identifiers are quoted with backticks, only when needed.
  - String literals use single quotes; backslashes are escaped because the
    default sql_mode treats them as escape characters.
  - Stored programs are wrapped in DELIMITER directives so the client does
    not split the body at the inner semicolons.
  - FULL OUTER JOIN is not available.
  """

  DIALECT_NAME = "mysql"

  # Tried in order when the configured delimiter occurs in the body text.
  DELIMITER_CANDIDATES = ("$$", "//", "$$$", "@@", "##", "%%", "|||")

  # ---------------------------------------------------------------------------
  # Capabilities
  # ---------------------------------------------------------------------------
  @property
  def supports_full_join(self) -> bool:
    return False

  @property
  def supports_delimiter_switch(self) -> bool:
    return True

  # ---------------------------------------------------------------------------
  # Identifier quoting
  # ---------------------------------------------------------------------------
  def quote_ident(self, name: str) -> str:
    """
    Quote an identifier using MySQL's backtick style.
    Internal backticks are escaped by doubling them. Names that no quoting
    can carry (empty, NUL, trailing spaces, characters outside the BMP) are
    rejected.
    """
    if not isinstance(name, str) or not name:
      raise EscapingError("Empty identifiers cannot be quoted")
    if "\x00" in name:
      raise EscapingError(f"Identifier contains a NUL character: {name!r}")
    if name.endswith(" "):
      raise EscapingError(f"Identifiers cannot end with a space: {name!r}")
    if any(ord(c) > 0xFFFF for c in name):
      raise EscapingError(f"Identifier contains characters outside the Basic Multilingual Plane: {name!r}")
    escaped = name.replace("`", "``")
    return f"`{escaped}`"

  def render_variable(self, name: str) -> str:
    """
    Render a variable reference or assignment target:
    local variables and parameters, @session variables and NEW.col/OLD.col.
    """
    if name.startswith("@"):
      rest = name[1:]
      if is_plain_identifier(rest.replace(".", "_")):
        return name
      return "@" + self.quote_ident(rest)
    if "." in name:
      return self.render_qualified_name(name)
    return self.render_identifier(name)

  # ---------------------------------------------------------------------------
  # Literals
  # ---------------------------------------------------------------------------
  @staticmethod
  def escape_string(value: str) -> str:
    value = value.replace("\\", "\\\\")
    value = value.replace("'", "''")
    value = value.replace("\x00", "\\0")
    value = value.replace("\x1a", "\\Z")
    return value

  def render_literal(self, value) -> str:
    if value is None:
      return "NULL"

    if isinstance(value, bool):
      return "TRUE" if value else "FALSE"

    if isinstance(value, int):
      return str(value)

    if isinstance(value, float):
      if not math.isfinite(value):
        raise UnsupportedTypeError(f"Non-finite float has no SQL literal: {value!r}")
      return repr(value)

    if isinstance(value, Decimal):
      if not value.is_finite():
        raise UnsupportedTypeError(f"Non-finite decimal has no SQL literal: {value!r}")
      return format(value, "f")

    if isinstance(value, str):
      return f"'{self.escape_string(value)}'"

    if isinstance(value, (bytes, bytearray, memoryview)):
      return f"X'{bytes(value).hex().upper()}'"

    # datetime must be checked before date (subclass)
    if isinstance(value, datetime.datetime):
      if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
      return f"TIMESTAMP '{value.isoformat(sep=' ')}'"

    if isinstance(value, datetime.date):
      return f"DATE '{value.isoformat()}'"

    if isinstance(value, datetime.time):
      return f"TIME '{value.replace(tzinfo=None).isoformat()}'"

    if isinstance(value, uuid.UUID):
      return f"'{value}'"

    raise UnsupportedTypeError(f"Unsupported literal type: {type(value).__name__}")

  # ---------------------------------------------------------------------------
  # Expression rendering
  # ---------------------------------------------------------------------------
  def render_expr(self, expr: Expr) -> str:
    if isinstance(expr, ColumnRef):
      column_sql = "*" if expr.column_name == "*" else self.render_identifier(expr.column_name)
      if expr.table_alias:
        return f"{self.render_qualified_name(expr.table_alias)}.{column_sql}"
      return column_sql

    if isinstance(expr, VariableRef):
      return self.render_variable(expr.name)

    if isinstance(expr, Literal):
      return self.render_literal(expr.value)

    if isinstance(expr, FuncCall):
      args_sql = ", ".join(self.render_expr(a) for a in expr.args)
      return f"{expr.name.upper()}({args_sql})"

    if isinstance(expr, BinaryOp):
      return f"{self._render_operand(expr.left)} {expr.op.value} {self._render_operand(expr.right)}"

    if isinstance(expr, RawSql):
      return expr.sql

    if isinstance(expr, SubqueryExpr):
      return f"({self.render_select(expr.query)})"

    if isinstance(expr, (IsTrue, Exists)):
      return self.render_condition(expr)

    if isinstance(expr, Condition):
      return f"({self.render_condition(expr)})"

    raise TypeError(f"Unsupported expression type: {type(expr).__name__}")

  def _render_operand(self, expr: Expr) -> str:
    sql = self.render_expr(expr)
    if isinstance(expr, BinaryOp):
      return f"({sql})"
    return sql

  # ---------------------------------------------------------------------------
  # SELECT / INSERT
  # ---------------------------------------------------------------------------
  def _render_source(self, source) -> str:
    if isinstance(source, SourceTable):
      return self.render_table_alias(source.schema, source.name, source.alias)
    if isinstance(source, SubquerySource):
      inner = self.render_select(source.select)
      return f"({inner}) AS {self.render_identifier(source.alias)}"
    raise TypeError(f"Unsupported source type: {type(source).__name__}")

  def _render_join(self, join: Join) -> str:
    right_sql = self._render_source(join.right)
    if join.join_type is JoinType.FULL and not self.supports_full_join:
      raise NotImplementedError("MySQL does not support FULL OUTER JOIN")
    if join.join_type is JoinType.CROSS:
      return f"CROSS JOIN {right_sql}"
    if join.using:
      return f"{join.join_type.value} JOIN {right_sql} USING ({self.render_column_list(join.using)})"
    return f"{join.join_type.value} JOIN {right_sql} ON {self.render_condition(join.on)}"

  def render_select(self, select: SelectQuery) -> str:
    """
    Render a SELECT on one line, clauses in canonical order regardless of
    the order they were added in.
    """
    parts: List[str] = ["SELECT"]
    if select.distinct:
      parts.append("DISTINCT")

    items = []
    for item in select.items:
      sql = self.render_expr(item.expr)
      if item.alias:
        sql = f"{sql} AS {self.render_identifier(item.alias)}"
      items.append(sql)
    parts.append(", ".join(items))

    if select.source is not None:
      parts.append("FROM " + self._render_source(select.source))
    for join in select.joins:
      parts.append(self._render_join(join))

    if not self.is_empty_condition(select.where):
      parts.append("WHERE " + self.render_condition(select.where))

    if select.group_by is not None:
      group_sql = ", ".join(self.render_expr(c) for c in select.group_by.columns)
      parts.append("GROUP BY " + group_sql)
      if select.group_by.with_rollup:
        parts.append("WITH ROLLUP")
      if not self.is_empty_condition(select.group_by.having):
        parts.append("HAVING " + self.render_condition(select.group_by.having))

    if select.order_by:
      keys = ", ".join(f"{self.render_expr(k.expr)} {k.direction.value}" for k in select.order_by)
      parts.append("ORDER BY " + keys)

    if select.limit is not None:
      parts.append("LIMIT " + self._render_limit_value(select.limit.count))
      if select.limit.offset is not None:
        parts.append("OFFSET " + self._render_limit_value(select.limit.offset))

    if select.into:
      parts.append("INTO " + ", ".join(self.render_variable(v) for v in select.into))

    return " ".join(parts)

  def _render_limit_value(self, value) -> str:
    if isinstance(value, VariableRef):
      return self.render_variable(value.name)
    return str(value)

  def render_insert(self, insert: InsertQuery) -> str:
    table_sql = self.render_table_identifier(insert.table.schema, insert.table.name)
    sql = f"{insert.mode.value} INTO {table_sql}"
    if insert.columns:
      sql += f" ({self.render_column_list(insert.columns)})"
    if insert.select is not None:
      sql += " " + self.render_select(insert.select)
    else:
      rows = ", ".join(
        "(" + ", ".join(self.render_expr(v) for v in row) + ")" for row in insert.rows
      )
      sql += " VALUES " + rows
    if insert.on_duplicate:
      assignments = ", ".join(
        f"{self.render_identifier(c)} = {self.render_expr(v)}" for c, v in insert.on_duplicate
      )
      sql += " ON DUPLICATE KEY UPDATE " + assignments
    return sql

  # ---------------------------------------------------------------------------
  # Column types and tables
  # ---------------------------------------------------------------------------
  def render_column_type(self, column: ColumnStructure) -> str:
    column_type = column.type
    sql = column_type.sql_name
    params = column_type.params
    if params is TypeParams.VALUES:
      sql += "(" + ",".join(self.render_literal(v) for v in column.values) + ")"
    elif column.length is not None:
      if column.scale is not None:
        sql += f"({column.length},{column.scale})"
      else:
        sql += f"({column.length})"
    if column.attribute is not None and column.attribute is not ColumnAttribute.ON_UPDATE_CURRENT_TIMESTAMP:
      sql += " " + column.attribute.value
    return sql

  def _render_default(self, default) -> str:
    if isinstance(default, ColumnDefault):
      return default.value
    return self.render_literal(default)

  def render_column_definition(self, name: str, column: ColumnStructure) -> str:
    parts = [self.render_identifier(name), self.render_column_type(column)]
    parts.append("NULL" if column.nullable else "NOT NULL")
    if column.default is not None:
      parts.append("DEFAULT " + self._render_default(column.default))
    if column.attribute is ColumnAttribute.ON_UPDATE_CURRENT_TIMESTAMP:
      parts.append(column.attribute.value)
    if column.auto_increment:
      parts.append("AUTO_INCREMENT")
    if column.unique:
      parts.append("UNIQUE")
    if column.primary:
      parts.append("PRIMARY KEY")
    if column.comment is not None:
      parts.append("COMMENT " + self.render_literal(column.comment))
    return " ".join(parts)

  def render_create_table(self, table: TableStructure, if_not_exists: bool = True, terminator: str = ";") -> str:
    pad = " " * self.indent
    entries = [pad + self.render_column_definition(n, c) for n, c in table.columns]
    if table.primary_key:
      entries.append(f"{pad}PRIMARY KEY ({self.render_column_list(table.primary_key)})")
    for index in table.indexes:
      keyword = "INDEX" if index.kind is IndexKind.INDEX else f"{index.kind.value} INDEX"
      name_sql = f" {self.render_identifier(index.name)}" if index.name else ""
      entries.append(f"{pad}{keyword}{name_sql} ({self.render_column_list(index.columns)})")
    for fk in table.foreign_keys:
      prefix = f"CONSTRAINT {self.render_identifier(fk.name)} " if fk.name else ""
      entries.append(
        f"{pad}{prefix}FOREIGN KEY ({self.render_column_list(fk.columns)}) "
        f"REFERENCES {self.render_qualified_name(fk.reference_table)} "
        f"({self.render_column_list(fk.reference_columns)}) "
        f"ON DELETE {fk.on_delete.value} ON UPDATE {fk.on_update.value}"
      )

    head = "CREATE TABLE IF NOT EXISTS" if if_not_exists else "CREATE TABLE"
    table_sql = self.render_table_identifier(table.schema, table.name)
    tail = ")"
    if table.comment is not None:
      tail += " COMMENT = " + self.render_literal(table.comment)
    return f"{head} {table_sql} (\n" + ",\n".join(entries) + f"\n{tail}{terminator}"

  # ---------------------------------------------------------------------------
  # Statements
  # ---------------------------------------------------------------------------
  def render_condition_value(self, value: ConditionValue) -> str:
    if value.kind is ConditionKind.SQL_ERROR:
      return str(value.value)
    if value.kind is ConditionKind.SQL_STATE:
      return "SQLSTATE " + self.render_literal(value.value)
    if value.kind is ConditionKind.CONDITION:
      return self.render_identifier(value.value)
    return value.kind.value

  def render_call(self, name: str, args: Sequence = (), terminator: str = ";") -> str:
    args_sql = ", ".join(self.render_expr(a) for a in args)
    return f"CALL {self.render_qualified_name(name)}({args_sql}){terminator}"

  def render_statement(self, stmt: Statement, depth: int = 0) -> str:
    """Render a single statement (and its children) with `;` terminators."""
    return "\n".join(self._lines(stmt, depth))

  def _pad(self, depth: int) -> str:
    return " " * (self.indent * depth)

  def _body(self, statements, depth: int) -> List[str]:
    lines: List[str] = []
    for stmt in statements:
      lines.extend(self._lines(stmt, depth))
    return lines

  def _labeled(self, label, keyword: str) -> str:
    if label:
      return f"{self.render_label(label)}: {keyword}"
    return keyword

  def _block_lines(self, block: Block, depth: int, terminator: str) -> List[str]:
    pad = self._pad(depth)
    lines = [pad + self._labeled(block.label, "BEGIN")]
    lines.extend(self._body(block.statements, depth + 1))
    lines.append(f"{pad}END{terminator}")
    return lines

  def _lines(self, stmt: Statement, depth: int) -> List[str]:
    pad = self._pad(depth)

    if isinstance(stmt, Block):
      return self._block_lines(stmt, depth, ";")

    if isinstance(stmt, DeclareVariable):
      names = ", ".join(self.render_identifier(n) for n in stmt.names)
      sql = f"{pad}DECLARE {names} {self.render_column_type(stmt.column_type)}"
      if stmt.default is not None:
        sql += " DEFAULT " + self.render_expr(stmt.default)
      return [sql + ";"]

    if isinstance(stmt, DeclareCondition):
      return [
        f"{pad}DECLARE {self.render_identifier(stmt.name)} CONDITION FOR "
        f"{self.render_condition_value(stmt.value)};"
      ]

    if isinstance(stmt, DeclareCursor):
      return [f"{pad}DECLARE {self.render_identifier(stmt.name)} CURSOR FOR {self.render_select(stmt.query)};"]

    if isinstance(stmt, DeclareHandler):
      conditions = ", ".join(self.render_condition_value(c) for c in stmt.conditions)
      header = f"{pad}DECLARE {stmt.action.value} HANDLER FOR {conditions}"
      body = self._lines(stmt.body, depth + 1)
      if len(body) == 1:
        return [f"{header} {body[0].lstrip()}"]
      return [header] + body

    if isinstance(stmt, IfBlock):
      lines = []
      for i, branch in enumerate(stmt.branches):
        keyword = "IF" if i == 0 else "ELSEIF"
        lines.append(f"{pad}{keyword} {self.render_condition(branch.condition)} THEN")
        lines.extend(self._body(branch.statements, depth + 1))
      if stmt.else_statements is not None:
        lines.append(f"{pad}ELSE")
        lines.extend(self._body(stmt.else_statements, depth + 1))
      lines.append(f"{pad}END IF;")
      return lines

    if isinstance(stmt, CaseBlock):
      inner = self._pad(depth + 1)
      head = f"{pad}CASE" if stmt.is_searched else f"{pad}CASE {self.render_expr(stmt.operand)}"
      lines = [head]
      for when in stmt.whens:
        when_sql = (
          self.render_condition(when.when) if stmt.is_searched else self.render_expr(when.when)
        )
        lines.append(f"{inner}WHEN {when_sql} THEN")
        lines.extend(self._body(when.statements, depth + 2))
      if stmt.else_statements is not None:
        lines.append(f"{inner}ELSE")
        lines.extend(self._body(stmt.else_statements, depth + 2))
      lines.append(f"{pad}END CASE;")
      return lines

    if isinstance(stmt, LoopStmt):
      return (
        [pad + self._labeled(stmt.label, "LOOP")]
        + self._body(stmt.statements, depth + 1)
        + [f"{pad}END LOOP;"]
      )

    if isinstance(stmt, WhileStmt):
      head = self._labeled(stmt.label, f"WHILE {self.render_condition(stmt.condition)} DO")
      return [pad + head] + self._body(stmt.statements, depth + 1) + [f"{pad}END WHILE;"]

    if isinstance(stmt, RepeatStmt):
      return (
        [pad + self._labeled(stmt.label, "REPEAT")]
        + self._body(stmt.statements, depth + 1)
        + [f"{pad}UNTIL {self.render_condition(stmt.until)} END REPEAT;"]
      )

    if isinstance(stmt, IterateStmt):
      return [f"{pad}ITERATE {self.render_label(stmt.label)};"]

    if isinstance(stmt, LeaveStmt):
      return [f"{pad}LEAVE {self.render_label(stmt.label)};"]

    if isinstance(stmt, OpenCursor):
      return [f"{pad}OPEN {self.render_identifier(stmt.name)};"]

    if isinstance(stmt, FetchCursor):
      targets = ", ".join(self.render_variable(v) for v in stmt.variables)
      return [f"{pad}FETCH {self.render_identifier(stmt.name)} INTO {targets};"]

    if isinstance(stmt, CloseCursor):
      return [f"{pad}CLOSE {self.render_identifier(stmt.name)};"]

    if isinstance(stmt, SelectStmt):
      return [f"{pad}{self.render_select(stmt.query)};"]

    if isinstance(stmt, InsertStmt):
      return [f"{pad}{self.render_insert(stmt.query)};"]

    if isinstance(stmt, SetStmt):
      assignments = ", ".join(
        f"{self.render_variable(target)} = {self.render_expr(value)}"
        for target, value in stmt.assignments
      )
      return [f"{pad}SET {assignments};"]

    if isinstance(stmt, RawStmt):
      sql = stmt.sql.rstrip()
      if not sql.endswith(";"):
        sql += ";"
      return [pad + line if line else line for line in sql.split("\n")]

    if isinstance(stmt, EmptyStmt):
      return [""]

    if isinstance(stmt, CallStmt):
      return [pad + self.render_call(stmt.name, stmt.args)]

    if isinstance(stmt, SignalStmt):
      sql = f"{pad}SIGNAL {self.render_condition_value(stmt.condition)}"
      items = []
      if stmt.message_text is not None:
        items.append(f"MESSAGE_TEXT = {self.render_expr(stmt.message_text)}")
      if stmt.mysql_errno is not None:
        items.append(f"MYSQL_ERRNO = {stmt.mysql_errno}")
      if items:
        sql += " SET " + ", ".join(items)
      return [sql + ";"]

    if isinstance(stmt, DelimiterStmt):
      if depth > 0:
        raise BlockStructureError("DELIMITER directives cannot appear inside a compound statement")
      return [f"DELIMITER {stmt.delimiter}"]

    raise TypeError(f"Unsupported statement type: {type(stmt).__name__}")

  # ---------------------------------------------------------------------------
  # Blocks, procedures and triggers
  # ---------------------------------------------------------------------------
  def render_block(self, block: Block, terminator: str = ";") -> str:
    """Render a BEGIN ... END block; `terminator` closes the outermost END."""
    return "\n".join(self._block_lines(block, 0, terminator))

  def choose_delimiter(self, text: str) -> str:
    """
    Return the configured delimiter, or the first candidate that does not
    occur in `text`.
    """
    candidates = [self.delimiter] + [c for c in self.DELIMITER_CANDIDATES if c != self.delimiter]
    for candidate in candidates:
      if candidate not in text:
        if candidate != self.delimiter:
          logger.info(
            "Delimiter %r occurs in the program body; using %r instead",
            self.delimiter,
            candidate,
          )
        return candidate
    raise EscapingError("No statement delimiter is free of collisions with the program body")

  def _wrap_program(self, drop_sql: str | None, header: List[str], block: Block) -> str:
    body_lines = self._block_lines(block, 0, "")
    delimiter = self.choose_delimiter("\n".join(header + body_lines))
    body_lines[-1] += delimiter

    lines: List[str] = []
    if drop_sql:
      lines.append(drop_sql)
    lines.append(f"DELIMITER {delimiter}")
    lines.extend(header)
    lines.extend(body_lines)
    lines.append("DELIMITER ;")
    return "\n".join(lines)

  def render_parameter(self, parameter) -> str:
    return (
      f"{parameter.mode.value} {self.render_identifier(parameter.name)} "
      f"{self.render_column_type(parameter.column_type)}"
    )

  def render_procedure(self, procedure: Procedure, drop_existing: bool = False) -> str:
    """
    Render CREATE PROCEDURE wrapped in a delimiter switch:

      DELIMITER $$
      CREATE PROCEDURE p(IN a INT)
      BEGIN
        ...
      END$$
      DELIMITER ;
    """
    name_sql = self.render_qualified_name(procedure.name)
    params_sql = ", ".join(self.render_parameter(p) for p in procedure.parameters)
    header = [f"CREATE PROCEDURE {name_sql}({params_sql})"]
    if procedure.comment is not None:
      header.append("COMMENT " + self.render_literal(procedure.comment))
    if procedure.deterministic:
      header.append("DETERMINISTIC")
    drop_sql = f"DROP PROCEDURE IF EXISTS {name_sql};" if drop_existing else None
    return self._wrap_program(drop_sql, header, procedure.body)

  def render_trigger(self, trigger: Trigger, drop_existing: bool = False) -> str:
    name_sql = self.render_qualified_name(trigger.name)
    table_sql = self.render_table_identifier(trigger.table.schema, trigger.table.name)
    header = [
      f"CREATE TRIGGER {name_sql} {trigger.timing.value} {trigger.event.value} "
      f"ON {table_sql} FOR EACH ROW"
    ]
    drop_sql = f"DROP TRIGGER IF EXISTS {name_sql};" if drop_existing else None
    return self._wrap_program(drop_sql, header, trigger.body)
