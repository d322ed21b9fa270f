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
Statement tree for stored-program bodies.

Every node is a frozen dataclass that owns its children as tuples. Each node
class carries a `category` so renderers and validators can dispatch on the
closed set of statement kinds. Trees are normally assembled through
BlockBuilder, which validates labels, declarations and cursor states while
the statements arrive; constructing nodes directly only performs the local
checks below.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Tuple, Union

from procsql.errors import BlockStructureError, ValidationError
from procsql.query.clauses import InsertQuery, SelectQuery, SourceTable
from procsql.rendering.expr import Condition, Expr, as_expr
from procsql.table.columns import ColumnStructure


_SQLSTATE_RE = re.compile(r"^[0-9A-Z]{5}$")


def _require_body(statements, what: str) -> None:
  # MySQL rejects empty statement lists everywhere except BEGIN ... END
  if not any(not isinstance(s, EmptyStmt) for s in statements):
    raise BlockStructureError(f"{what} needs at least one statement")


class StatementCategory(str, Enum):
  DECLARING = "declaring"
  BLOCK = "block"
  CONDITIONAL = "conditional"
  LOOP = "loop"
  CURSOR = "cursor"
  QUERY = "query"
  MISC = "misc"


class Statement:
  """Marker base class for all statement nodes."""
  category: ClassVar[StatementCategory]


# ---------------------------------------------------------------------------
# Condition values (handlers, DECLARE ... CONDITION, SIGNAL)
# ---------------------------------------------------------------------------

class ConditionKind(str, Enum):
  SQL_ERROR = "SQL_ERROR"
  SQL_STATE = "SQL_STATE"
  CONDITION = "CONDITION"
  SQL_WARNING = "SQLWARNING"
  NOT_FOUND = "NOT FOUND"
  SQL_EXCEPTION = "SQLEXCEPTION"


def _check_sqlstate(state: str) -> str:
  if not isinstance(state, str) or not _SQLSTATE_RE.match(state):
    raise ValidationError(f"SQLSTATE must be five digits or uppercase letters, got {state!r}")
  if state.startswith("00"):
    raise ValidationError(f"SQLSTATE class '00' means success and cannot be used here: {state!r}")
  return state


@dataclass(frozen=True)
class ConditionValue:
  """What a handler reacts to, or what a named condition stands for."""
  kind: ConditionKind
  value: Union[int, str, None] = None

  def __post_init__(self):
    kind = ConditionKind(self.kind)
    object.__setattr__(self, "kind", kind)
    if kind is ConditionKind.SQL_ERROR:
      if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value <= 0:
        raise ValidationError(f"MySQL error codes are positive integers, got {self.value!r}")
    elif kind is ConditionKind.SQL_STATE:
      _check_sqlstate(self.value)
    elif kind is ConditionKind.CONDITION:
      if not isinstance(self.value, str) or not self.value:
        raise ValidationError("A named condition needs a name")
    elif self.value is not None:
      raise ValidationError(f"{kind.value} takes no value")

  @classmethod
  def sql_error(cls, code: int) -> "ConditionValue":
    return cls(ConditionKind.SQL_ERROR, code)

  @classmethod
  def sql_state(cls, state: str) -> "ConditionValue":
    return cls(ConditionKind.SQL_STATE, state)

  @classmethod
  def condition(cls, name: str) -> "ConditionValue":
    return cls(ConditionKind.CONDITION, name)

  @classmethod
  def sql_warning(cls) -> "ConditionValue":
    return cls(ConditionKind.SQL_WARNING)

  @classmethod
  def not_found(cls) -> "ConditionValue":
    return cls(ConditionKind.NOT_FOUND)

  @classmethod
  def sql_exception(cls) -> "ConditionValue":
    return cls(ConditionKind.SQL_EXCEPTION)


class HandlerAction(str, Enum):
  CONTINUE = "CONTINUE"
  EXIT = "EXIT"
  UNDO = "UNDO"


# ---------------------------------------------------------------------------
# Declaring statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeclareVariable(Statement):
  """DECLARE a, b INT DEFAULT 0"""
  category: ClassVar[StatementCategory] = StatementCategory.DECLARING

  names: Tuple[str, ...]
  column_type: ColumnStructure
  default: Optional[Expr] = None

  def __post_init__(self):
    names = (self.names,) if isinstance(self.names, str) else tuple(self.names)
    if not names:
      raise ValidationError("DECLARE needs at least one variable name")
    if len(set(n.lower() for n in names)) != len(names):
      raise ValidationError(f"Variable names repeat within one DECLARE: {', '.join(names)}")
    for name in names:
      if name.startswith("@"):
        raise ValidationError(f"Session variable '{name}' cannot be declared")
    object.__setattr__(self, "names", names)
    if self.default is not None:
      object.__setattr__(self, "default", as_expr(self.default))


@dataclass(frozen=True)
class DeclareCondition(Statement):
  """DECLARE name CONDITION FOR {error code | SQLSTATE 'xxxxx'}"""
  category: ClassVar[StatementCategory] = StatementCategory.DECLARING

  name: str
  value: ConditionValue

  def __post_init__(self):
    if self.value.kind not in (ConditionKind.SQL_ERROR, ConditionKind.SQL_STATE):
      raise ValidationError(
        f"A condition can only be declared for an error code or a SQLSTATE, not {self.value.kind.value}"
      )


@dataclass(frozen=True)
class DeclareCursor(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.DECLARING

  name: str
  query: SelectQuery

  def __post_init__(self):
    if self.query.into:
      raise ValidationError(f"Cursor '{self.name}' query cannot use SELECT ... INTO")


@dataclass(frozen=True)
class DeclareHandler(Statement):
  """
  DECLARE {CONTINUE | EXIT} HANDLER FOR condition[, ...] body

  The body is a single statement, usually a SET or a BEGIN ... END block.
  """
  category: ClassVar[StatementCategory] = StatementCategory.DECLARING

  action: HandlerAction
  conditions: Tuple[ConditionValue, ...]
  body: Statement

  def __post_init__(self):
    action = HandlerAction(self.action)
    if action is HandlerAction.UNDO:
      raise ValidationError("UNDO handlers are not supported by MySQL")
    object.__setattr__(self, "action", action)
    conditions = (
      (self.conditions,) if isinstance(self.conditions, ConditionValue) else tuple(self.conditions)
    )
    if not conditions:
      raise ValidationError("A handler needs at least one condition value")
    object.__setattr__(self, "conditions", conditions)
    if not isinstance(self.body, Statement) or self.body.category is StatementCategory.DECLARING:
      raise BlockStructureError("A handler body must be an executable statement")
    # the body is rendered on the handler line and must produce a terminated statement
    if isinstance(self.body, (EmptyStmt, DelimiterStmt)) or (
      isinstance(self.body, RawStmt) and not self.body.sql.strip()
    ):
      raise BlockStructureError(
        f"A handler body must be an executable statement, got {type(self.body).__name__}"
      )


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Block(Statement):
  """
  BEGIN ... END compound statement.

  `scope` is the validation scope that was active when the block started
  (visible labels and variables). It is informational and does not take
  part in equality.
  """
  category: ClassVar[StatementCategory] = StatementCategory.BLOCK

  statements: Tuple[Statement, ...] = ()
  label: Optional[str] = None
  scope: Any = field(default=None, compare=False, repr=False)

  def __post_init__(self):
    object.__setattr__(self, "statements", tuple(self.statements))


# ---------------------------------------------------------------------------
# Conditionals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IfBranch:
  condition: Condition
  statements: Tuple[Statement, ...]

  def __post_init__(self):
    if not isinstance(self.condition, Condition):
      raise ValidationError(f"IF expects a condition, got {type(self.condition).__name__}")
    object.__setattr__(self, "statements", tuple(self.statements))
    _require_body(self.statements, "IF branch")


@dataclass(frozen=True)
class IfBlock(Statement):
  """IF ... [ELSEIF ...]* [ELSE ...] END IF"""
  category: ClassVar[StatementCategory] = StatementCategory.CONDITIONAL

  branches: Tuple[IfBranch, ...]
  else_statements: Optional[Tuple[Statement, ...]] = None

  def __post_init__(self):
    branches = tuple(self.branches)
    if not branches:
      raise BlockStructureError("IF needs at least one branch")
    object.__setattr__(self, "branches", branches)
    if self.else_statements is not None:
      object.__setattr__(self, "else_statements", tuple(self.else_statements))
      _require_body(self.else_statements, "ELSE")


@dataclass(frozen=True)
class CaseWhen:
  """A WHEN arm: a value for a simple CASE, a condition for a searched CASE."""
  when: Union[Expr, Condition]
  statements: Tuple[Statement, ...]

  def __post_init__(self):
    object.__setattr__(self, "when", as_expr(self.when))
    object.__setattr__(self, "statements", tuple(self.statements))
    _require_body(self.statements, "WHEN")


@dataclass(frozen=True)
class CaseBlock(Statement):
  """
  Simple CASE (with operand, WHEN values) or searched CASE (no operand,
  WHEN conditions).
  """
  category: ClassVar[StatementCategory] = StatementCategory.CONDITIONAL

  whens: Tuple[CaseWhen, ...]
  operand: Optional[Expr] = None
  else_statements: Optional[Tuple[Statement, ...]] = None

  def __post_init__(self):
    whens = tuple(self.whens)
    if not whens:
      raise BlockStructureError("CASE needs at least one WHEN")
    if self.operand is None:
      for w in whens:
        if not isinstance(w.when, Condition):
          raise ValidationError("A searched CASE takes conditions in its WHEN arms")
    else:
      object.__setattr__(self, "operand", as_expr(self.operand))
    object.__setattr__(self, "whens", whens)
    if self.else_statements is not None:
      object.__setattr__(self, "else_statements", tuple(self.else_statements))
      _require_body(self.else_statements, "ELSE")

  @property
  def is_searched(self) -> bool:
    return self.operand is None


# ---------------------------------------------------------------------------
# Loops
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoopStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.LOOP

  label: Optional[str]
  statements: Tuple[Statement, ...]

  def __post_init__(self):
    object.__setattr__(self, "statements", tuple(self.statements))
    _require_body(self.statements, "LOOP")


@dataclass(frozen=True)
class WhileStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.LOOP

  label: Optional[str]
  condition: Condition
  statements: Tuple[Statement, ...]

  def __post_init__(self):
    if not isinstance(self.condition, Condition):
      raise ValidationError(f"WHILE expects a condition, got {type(self.condition).__name__}")
    object.__setattr__(self, "statements", tuple(self.statements))
    _require_body(self.statements, "WHILE")


@dataclass(frozen=True)
class RepeatStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.LOOP

  label: Optional[str]
  until: Condition
  statements: Tuple[Statement, ...]

  def __post_init__(self):
    if not isinstance(self.until, Condition):
      raise ValidationError(f"UNTIL expects a condition, got {type(self.until).__name__}")
    object.__setattr__(self, "statements", tuple(self.statements))
    _require_body(self.statements, "REPEAT")


LOOP_TYPES = (LoopStmt, WhileStmt, RepeatStmt)


@dataclass(frozen=True)
class IterateStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.LOOP
  label: str


@dataclass(frozen=True)
class LeaveStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.LOOP
  label: str


# ---------------------------------------------------------------------------
# Cursors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OpenCursor(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.CURSOR
  name: str


@dataclass(frozen=True)
class FetchCursor(Statement):
  """FETCH name INTO a, b; all targets are assigned from the same row."""
  category: ClassVar[StatementCategory] = StatementCategory.CURSOR

  name: str
  variables: Tuple[str, ...]

  def __post_init__(self):
    variables = (self.variables,) if isinstance(self.variables, str) else tuple(self.variables)
    if not variables:
      raise ValidationError(f"FETCH from '{self.name}' needs at least one target variable")
    object.__setattr__(self, "variables", variables)


@dataclass(frozen=True)
class CloseCursor(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.CURSOR
  name: str


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelectStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.QUERY
  query: SelectQuery


@dataclass(frozen=True)
class InsertStmt(Statement):
  category: ClassVar[StatementCategory] = StatementCategory.QUERY
  query: InsertQuery


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SetStmt(Statement):
  """SET a = expr[, b = expr]"""
  category: ClassVar[StatementCategory] = StatementCategory.MISC

  assignments: Tuple[Tuple[str, Expr], ...]

  def __post_init__(self):
    assignments = tuple((target, as_expr(value)) for target, value in self.assignments)
    if not assignments:
      raise ValidationError("SET needs at least one assignment")
    object.__setattr__(self, "assignments", assignments)


@dataclass(frozen=True)
class RawStmt(Statement):
  """
  Verbatim SQL. The statement terminator is appended when rendering unless
  the text already ends with it.
  """
  category: ClassVar[StatementCategory] = StatementCategory.MISC
  sql: str


@dataclass(frozen=True)
class EmptyStmt(Statement):
  """Renders as a blank line; used to group statements visually."""
  category: ClassVar[StatementCategory] = StatementCategory.MISC


@dataclass(frozen=True)
class DelimiterStmt(Statement):
  """
  A client-side DELIMITER directive. Only meaningful at script level; the
  block builder refuses it inside compound bodies.
  """
  category: ClassVar[StatementCategory] = StatementCategory.MISC
  delimiter: str

  def __post_init__(self):
    if not self.delimiter or any(c.isspace() for c in self.delimiter) or "\\" in self.delimiter:
      raise ValidationError(f"Invalid delimiter: {self.delimiter!r}")


@dataclass(frozen=True)
class CallStmt(Statement):
  """CALL name(args)"""
  category: ClassVar[StatementCategory] = StatementCategory.MISC

  name: str
  args: Tuple[Expr, ...] = ()

  def __post_init__(self):
    object.__setattr__(self, "args", tuple(as_expr(a) for a in self.args))


@dataclass(frozen=True)
class SignalStmt(Statement):
  """
  SIGNAL {SQLSTATE 'xxxxx' | condition_name}
    [SET MESSAGE_TEXT = ..., MYSQL_ERRNO = ...]
  """
  category: ClassVar[StatementCategory] = StatementCategory.MISC

  condition: ConditionValue
  message_text: Optional[Expr] = None
  mysql_errno: Optional[int] = None

  def __post_init__(self):
    if self.condition.kind not in (ConditionKind.SQL_STATE, ConditionKind.CONDITION):
      raise ValidationError("SIGNAL takes a SQLSTATE or a named condition")
    if self.message_text is not None:
      object.__setattr__(self, "message_text", as_expr(self.message_text))
    if self.mysql_errno is not None and (
      isinstance(self.mysql_errno, bool) or not isinstance(self.mysql_errno, int) or self.mysql_errno <= 0
    ):
      raise ValidationError(f"MYSQL_ERRNO must be a positive integer, got {self.mysql_errno!r}")


# ---------------------------------------------------------------------------
# Stored programs
# ---------------------------------------------------------------------------

class ParameterMode(str, Enum):
  IN = "IN"
  OUT = "OUT"
  INOUT = "INOUT"


@dataclass(frozen=True)
class ProcedureParameter:
  name: str
  column_type: ColumnStructure
  mode: ParameterMode = ParameterMode.IN

  def __post_init__(self):
    object.__setattr__(self, "mode", ParameterMode(self.mode))


@dataclass(frozen=True)
class Procedure:
  name: str
  body: Block
  parameters: Tuple[ProcedureParameter, ...] = ()
  comment: Optional[str] = None
  deterministic: bool = False

  def __post_init__(self):
    object.__setattr__(self, "parameters", tuple(self.parameters))
    seen = set()
    for p in self.parameters:
      key = p.name.lower()
      if key in seen:
        raise ValidationError(f"Parameter '{p.name}' is declared twice")
      seen.add(key)


class TriggerTiming(str, Enum):
  BEFORE = "BEFORE"
  AFTER = "AFTER"


class TriggerEvent(str, Enum):
  INSERT = "INSERT"
  UPDATE = "UPDATE"
  DELETE = "DELETE"


@dataclass(frozen=True)
class Trigger:
  name: str
  table: SourceTable
  timing: TriggerTiming
  event: TriggerEvent
  body: Block

  def __post_init__(self):
    object.__setattr__(self, "timing", TriggerTiming(self.timing))
    object.__setattr__(self, "event", TriggerEvent(self.event))
