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

import re
from abc import ABC, abstractmethod
from typing import Sequence

from procsql.errors import EscapingError
from procsql.rendering.expr import (
  And,
  BinaryOp,
  Compare,
  CompareOp,
  Condition,
  Exists,
  IsTrue,
  Not,
  Or,
  SubqueryExpr,
)


_PLAIN_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Words that cannot appear unquoted as identifiers (and never as labels).
RESERVED_KEYWORDS = frozenset("""
  ACCESSIBLE ADD ALL ALTER ANALYZE AND AS ASC ASENSITIVE BEFORE BETWEEN BIGINT
  BINARY BLOB BOTH BY CALL CASCADE CASE CHANGE CHAR CHARACTER CHECK COLLATE
  COLUMN CONDITION CONSTRAINT CONTINUE CONVERT CREATE CROSS CUBE CURRENT_DATE
  CURRENT_TIME CURRENT_TIMESTAMP CURRENT_USER CURSOR DATABASE DATABASES
  DAY_HOUR DAY_MICROSECOND DAY_MINUTE DAY_SECOND DEC DECIMAL DECLARE DEFAULT
  DELAYED DELETE DESC DESCRIBE DETERMINISTIC DISTINCT DISTINCTROW DIV DOUBLE
  DROP DUAL EACH ELSE ELSEIF ENCLOSED ESCAPED EXCEPT EXISTS EXIT EXPLAIN FALSE
  FETCH FLOAT FLOAT4 FLOAT8 FOR FORCE FOREIGN FROM FULLTEXT FUNCTION GENERATED
  GET GRANT GROUP GROUPING GROUPS HAVING HIGH_PRIORITY HOUR_MICROSECOND
  HOUR_MINUTE HOUR_SECOND IF IGNORE IN INDEX INFILE INNER INOUT INSENSITIVE
  INSERT INT INT1 INT2 INT3 INT4 INT8 INTEGER INTERSECT INTERVAL INTO IS ITERATE
  JOIN KEY KEYS KILL LATERAL LEADING LEAVE LEFT LIKE LIMIT LINEAR LINES LOAD
  LOCALTIME LOCALTIMESTAMP LOCK LONG LONGBLOB LONGTEXT LOOP LOW_PRIORITY MATCH
  MAXVALUE MEDIUMBLOB MEDIUMINT MEDIUMTEXT MIDDLEINT MINUTE_MICROSECOND
  MINUTE_SECOND MOD MODIFIES NATURAL NOT NO_WRITE_TO_BINLOG NULL NUMERIC OF ON
  OPTIMIZE OPTION OPTIONALLY OR ORDER OUT OUTER OUTFILE OVER PARTITION PRECISION
  PRIMARY PROCEDURE PURGE RANGE READ READS READ_WRITE REAL RECURSIVE REFERENCES
  REGEXP RELEASE RENAME REPEAT REPLACE REQUIRE RESIGNAL RESTRICT RETURN REVOKE
  RIGHT RLIKE ROW ROWS SCHEMA SCHEMAS SECOND_MICROSECOND SELECT SENSITIVE
  SEPARATOR SET SHOW SIGNAL SMALLINT SPATIAL SPECIFIC SQL SQLEXCEPTION SQLSTATE
  SQLWARNING SQL_BIG_RESULT SQL_CALC_FOUND_ROWS SQL_SMALL_RESULT SSL STARTING
  STORED STRAIGHT_JOIN TABLE TERMINATED THEN TINYBLOB TINYINT TINYTEXT TO
  TRAILING TRIGGER TRUE UNDO UNION UNIQUE UNLOCK UNSIGNED UPDATE USAGE USE USING
  UTC_DATE UTC_TIME UTC_TIMESTAMP VALUES VARBINARY VARCHAR VARCHARACTER VARYING
  VIRTUAL WHEN WHERE WHILE WINDOW WITH WRITE XOR YEAR_MONTH ZEROFILL
""".split())


def is_plain_identifier(name: str) -> bool:
  return bool(name) and _PLAIN_IDENT_RE.match(name) is not None


def check_label(name: str) -> str:
  """
  Labels have no quoted form in procedural syntax, so they must be plain,
  non-reserved identifiers.
  """
  if not isinstance(name, str) or not is_plain_identifier(name):
    raise EscapingError(f"Label {name!r} is not a plain identifier")
  if name.upper() in RESERVED_KEYWORDS:
    raise EscapingError(f"Label {name!r} is a reserved word")
  return name


class SqlDialect(ABC):
  """
  Base interface for SQL dialects.
  Implementations translate expressions, queries and statement trees into
  final SQL strings.
  """

  DIALECT_NAME = "base"

  def __init__(self, indent: int = 2, delimiter: str = "$$"):
    if indent < 0:
      raise ValueError(f"indent must not be negative, got {indent}")
    self.indent = indent
    self.delimiter = delimiter

  @abstractmethod
  def quote_ident(self, name: str) -> str:
    """
    Quote an identifier (schema, table, column, variable) according to the dialect.
    """
    raise NotImplementedError


  def should_quote(self, name: str) -> bool:
    """
    Decide whether identifier must be quoted.
    Rules:
      - empty or None → quote
      - characters outside [A-Za-z0-9_$] → quote
      - starts with digit → quote
      - reserved keyword (any case) → quote
    """
    if not name:
      return True
    if not is_plain_identifier(name):
      return True
    if name.upper() in RESERVED_KEYWORDS:
      return True
    return False


  @abstractmethod
  def render_expr(self, expr) -> str:
    raise NotImplementedError

  @abstractmethod
  def render_select(self, select) -> str:
    raise NotImplementedError

  @abstractmethod
  def render_insert(self, insert) -> str:
    raise NotImplementedError

  # ---------------------------------------------------------------------------
  # Literal Rendering
  # ---------------------------------------------------------------------------
  @abstractmethod
  def render_literal(self, value) -> str:
    """
    Render a Python value as a SQL literal.
    Must handle None, bool, int, float, Decimal, str, bytes, date, datetime, time, UUID.
    """

  # ---------------------------------------------------------------------------
  # Stored programs
  # ---------------------------------------------------------------------------
  @abstractmethod
  def render_block(self, block, terminator: str = ";") -> str:
    raise NotImplementedError

  def render_procedure(self, procedure, drop_existing: bool = False) -> str:
    raise NotImplementedError(f"{self.__class__.__name__} does not implement render_procedure()")

  def render_trigger(self, trigger, drop_existing: bool = False) -> str:
    raise NotImplementedError(f"{self.__class__.__name__} does not implement render_trigger()")

  def render_call(self, name: str, args: Sequence = (), terminator: str = ";") -> str:
    raise NotImplementedError(f"{self.__class__.__name__} does not implement render_call()")

  def render_create_table(self, table, if_not_exists: bool = True, terminator: str = ";") -> str:
    raise NotImplementedError(f"{self.__class__.__name__} does not implement render_create_table()")

  # ---------------------------------------------------------------------------
  # Capabilities (can be overridden by concrete dialects)
  # ---------------------------------------------------------------------------

  @property
  def supports_full_join(self) -> bool:
    """Whether FULL [OUTER] JOIN can be rendered."""
    # Dialects must explicitly opt in by overriding this property.
    return False

  @property
  def supports_delimiter_switch(self) -> bool:
    """Whether stored programs are wrapped in client DELIMITER directives."""
    return False


  # -------------------------------------------------------------------------
  # Generic helpers built on top of quote_ident
  # -------------------------------------------------------------------------

  def render_identifier(self, name: str) -> str:
    """
    Apply quoting only when necessary.
    """
    if self.should_quote(name):
      return self.quote_ident(name)
    return name


  def render_table_identifier(self, schema: str | None, name: str) -> str:
    """
    Render a table identifier with optional schema.

      render_table_identifier("test", "t1")  -> test.t1 (quoted as needed)
      render_table_identifier(None, "t1")    -> t1 (quoted as needed)
    """
    name_sql = self.render_identifier(name)
    if schema:
      schema_sql = self.render_identifier(schema)
      return f"{schema_sql}.{name_sql}"
    return name_sql


  def render_qualified_name(self, name: str) -> str:
    """Render a dotted name (db.proc, t.col) part by part."""
    return ".".join(self.render_identifier(part) for part in name.split("."))


  def render_table_alias(
    self,
    schema: str | None,
    name: str,
    alias: str | None,
  ) -> str:
    """
    Render a table reference including optional alias, e.g.:

      render_table_alias("test", "t1", "a")
      -> test.t1 AS a
    """
    base = self.render_table_identifier(schema, name)
    if alias:
      return f"{base} AS {self.render_identifier(alias)}"
    return base

  def render_column_list(self, columns: Sequence[str] | None) -> str:
    """
    Render a comma-separated list of column identifiers, with quoting as needed.
    If columns is None or empty, '*' is returned.
    """
    if not columns:
      return "*"
    return ", ".join(self.render_identifier(c) for c in columns)

  def render_label(self, name: str) -> str:
    return check_label(name)

  # ---------------------------------------------------------------------------
  # Conditions
  # ---------------------------------------------------------------------------

  @staticmethod
  def _unwrap(cond: Condition) -> Condition:
    """
    Collapse single-child AND/OR nodes and drop identity children of AND,
    so precedence decisions are made on what actually gets printed.
    """
    while True:
      if isinstance(cond, And):
        children = [c for c in cond.children if not (isinstance(c, And) and c.is_identity)]
        if len(children) == 1:
          cond = children[0]
          continue
        if len(children) != len(cond.children):
          return And(tuple(children))
        return cond
      if isinstance(cond, Or) and len(cond.children) == 1:
        cond = cond.children[0]
        continue
      return cond

  def is_empty_condition(self, cond: Condition | None) -> bool:
    """True when the condition is absent or an AND of nothing (no filter)."""
    if cond is None:
      return True
    cond = self._unwrap(cond)
    return isinstance(cond, And) and not cond.children

  def render_condition(self, cond: Condition) -> str:
    """
    Render a predicate tree, adding parentheses only where precedence
    requires them: an OR operand of AND, and any compound operand of NOT.
    """
    cond = self._unwrap(cond)

    if isinstance(cond, And):
      if not cond.children:
        return "TRUE"
      parts = []
      for child in cond.children:
        child = self._unwrap(child)
        sql = self.render_condition(child)
        if isinstance(child, Or):
          sql = f"({sql})"
        parts.append(sql)
      return " AND ".join(parts)

    if isinstance(cond, Or):
      return " OR ".join(self.render_condition(c) for c in cond.children)

    if isinstance(cond, Not):
      child = self._unwrap(cond.child)
      sql = self.render_condition(child)
      if (
        isinstance(child, Compare)
        or (isinstance(child, (And, Or)) and child.children)
        or (isinstance(child, IsTrue) and isinstance(child.expr, BinaryOp))
      ):
        sql = f"({sql})"
      return f"NOT {sql}"

    if isinstance(cond, Compare):
      return self.render_compare(cond)

    if isinstance(cond, IsTrue):
      return self.render_expr(cond.expr)

    if isinstance(cond, Exists):
      return f"EXISTS ({self.render_select(cond.query)})"

    raise TypeError(f"Unsupported condition type: {type(cond).__name__}")

  def render_compare(self, cmp: Compare) -> str:
    left = self.render_expr(cmp.left)
    op = cmp.op

    if op in (CompareOp.IS_NULL, CompareOp.IS_NOT_NULL):
      return f"{left} {op.value}"

    if op is CompareOp.IN:
      if isinstance(cmp.right, SubqueryExpr):
        return f"{left} IN ({self.render_select(cmp.right.query)})"
      values = ", ".join(self.render_expr(v) for v in cmp.right)
      return f"{left} IN ({values})"

    if op is CompareOp.BETWEEN:
      low, high = cmp.right
      return f"{left} BETWEEN {self.render_expr(low)} AND {self.render_expr(high)}"

    return f"{left} {op.value} {self.render_expr(cmp.right)}"
