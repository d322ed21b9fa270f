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
Scoped, validating assembly of stored-program bodies.

A BlockBuilder keeps a stack of open constructs (frames). Statements always
go to the innermost frame; closing a frame turns it into an immutable node
and appends that node to the frame below. Every statement is validated the
moment it arrives, against the scope of the frame that receives it:

    b = BlockBuilder()
    b.declare("done", ColumnType.INT.structure(), default=False)
    b.declare_cursor("cur1", SelectBuilder.create("test.t1").select("id"))
    b.declare_handler("CONTINUE", ConditionValue.not_found(), body=SetStmt((("done", True),)))
    b.open_cursor("cur1")
    with b.loop("read_loop"):
      b.fetch("cur1", "a")
      with b.if_(is_true("done")):
        b.leave("read_loop")
    b.close_cursor("cur1")
    block = b.build()

Nothing is rendered here; a dialect renders the built tree.
"""

import dataclasses
import logging
from typing import Any, Iterable, List, Optional, Union

from procsql.config.profiles import Profile
from procsql.errors import BlockStructureError, UnresolvedLabelError, ValidationError
from procsql.procedure.scope import Scope, ScopeKind, iter_variable_refs
from procsql.procedure.statements import (
  Block,
  CallStmt,
  CaseBlock,
  CaseWhen,
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
  HandlerAction,
  IfBlock,
  IfBranch,
  InsertStmt,
  IterateStmt,
  LeaveStmt,
  LoopStmt,
  OpenCursor,
  Procedure,
  ProcedureParameter,
  RawStmt,
  RepeatStmt,
  SelectStmt,
  SetStmt,
  SignalStmt,
  Statement,
  StatementCategory,
  Trigger,
  TriggerEvent,
  TriggerTiming,
  WhileStmt,
)
from procsql.query.builder import InsertBuilder, SelectBuilder, table as table_ref
from procsql.query.clauses import InsertQuery, SelectQuery, SourceTable
from procsql.rendering.expr import Condition
from procsql.table.columns import ColumnStructure

logger = logging.getLogger(__name__)

DEFAULT_LABEL_PREFIX = "loop"

_ROW_ALIASES = {
  TriggerEvent.INSERT: frozenset({"NEW"}),
  TriggerEvent.UPDATE: frozenset({"NEW", "OLD"}),
  TriggerEvent.DELETE: frozenset({"OLD"}),
}


class _Frame:
  """One open construct on the builder stack."""

  def __init__(self, kind: str, scope: Optional[Scope], parent_scope: Optional[Scope] = None, **extra: Any):
    self.kind = kind
    self.scope = scope
    self.parent_scope = parent_scope
    self.statements: List[Statement] = []
    self.extra = extra

  def describe(self) -> str:
    label = self.extra.get("label")
    name = self.kind.upper()
    return f"{name} '{label}'" if label else name


def _as_select(query) -> SelectQuery:
  if isinstance(query, SelectBuilder):
    return query.build()
  if isinstance(query, SelectQuery):
    return query
  raise ValidationError(f"Expected a SELECT, got {type(query).__name__}")


def _as_insert(query) -> InsertQuery:
  if isinstance(query, InsertBuilder):
    return query.build()
  if isinstance(query, InsertQuery):
    return query
  raise ValidationError(f"Expected an INSERT, got {type(query).__name__}")


def _as_conditions(conditions) -> tuple:
  if isinstance(conditions, ConditionValue):
    return (conditions,)
  return tuple(conditions)


class BlockBuilder:
  """
  Builds one BEGIN ... END block. The builder is owned by a single caller
  and consumed by build(); any call afterwards raises BlockStructureError.
  """

  def __init__(
    self,
    label: Optional[str] = None,
    *,
    label_prefix: Optional[str] = None,
    profile: Optional[Profile] = None,
    program_scope: Optional[Scope] = None,
  ):
    if label_prefix is None:
      label_prefix = profile.label_prefix if profile is not None else DEFAULT_LABEL_PREFIX
    self._label_prefix = label_prefix
    self._label_counter = 0
    self._auto_labels = 0
    self._consumed = False
    self._just_opened: Optional[_Frame] = None
    self._with_frames: List[Optional[_Frame]] = []

    self._program_scope = program_scope or Scope(ScopeKind.PROGRAM)
    root_scope = self._program_scope.child(ScopeKind.BLOCK, label)
    self._frames: List[_Frame] = [
      _Frame("block", root_scope, self._program_scope, label=label, snapshot=root_scope.describe())
    ]

  # ---------------------------------------------------------------------------
  # Context manager: `with b.loop(): ...` closes the construct opened by the call
  # ---------------------------------------------------------------------------
  def __enter__(self) -> "BlockBuilder":
    # None: `with BlockBuilder() as b:` only scopes the builder itself
    self._with_frames.append(self._just_opened)
    self._just_opened = None
    return self

  def __exit__(self, exc_type, exc, tb) -> bool:
    frame = self._with_frames.pop()
    if exc_type is not None or frame is None:
      return False
    if self._top is not frame:
      if frame in self._frames:
        raise BlockStructureError(f"{self._top.describe()} is still open at the end of the with-block")
      raise BlockStructureError(f"{frame.describe()} was already closed inside its with-block")
    self._close_innermost()
    return False

  # ---------------------------------------------------------------------------
  # Internals
  # ---------------------------------------------------------------------------
  def _live(self) -> None:
    if self._consumed:
      raise BlockStructureError("This builder was consumed by build() and cannot be reused")

  @property
  def _top(self) -> _Frame:
    return self._frames[-1]

  @property
  def _scope(self) -> Scope:
    frame = self._top
    if frame.scope is None:
      raise BlockStructureError(f"Statements inside {frame.describe()} must follow a WHEN")
    return frame.scope

  def _add(self, stmt: Statement) -> "BlockBuilder":
    self._live()
    self._just_opened = None
    checked = self._check(stmt, self._scope)
    self._top.statements.append(checked)
    return self

  def _push(self, frame: _Frame) -> "BlockBuilder":
    self._frames.append(frame)
    self._just_opened = frame
    return self

  def _pop(self, *kinds: str) -> _Frame:
    self._live()
    frame = self._top
    if len(self._frames) == 1:
      raise BlockStructureError("No open construct to end; use build() to finish the block")
    if kinds and frame.kind not in kinds:
      raise BlockStructureError(
        f"Cannot end {'/'.join(k.upper() for k in kinds)}: innermost open construct is {frame.describe()}"
      )
    self._frames.pop()
    return frame

  def _next_label(self, scope: Scope) -> str:
    open_labels = {l.lower() for l in scope.open_labels()}
    while True:
      self._label_counter += 1
      candidate = f"{self._label_prefix}_{self._label_counter}"
      if candidate.lower() not in open_labels:
        self._auto_labels += 1
        return candidate

  # ---------------------------------------------------------------------------
  # Validation
  # ---------------------------------------------------------------------------
  def _check_expr(self, node, scope: Scope) -> None:
    for ref in iter_variable_refs(node):
      scope.resolve_variable(ref.name)

  def _check_body(self, statements, scope: Scope) -> tuple:
    return tuple(self._check(s, scope) for s in statements)

  def _check_handler(self, stmt: DeclareHandler, scope: Scope) -> DeclareHandler:
    scope.declare_handler()
    for value in stmt.conditions:
      if value.kind is ConditionKind.CONDITION:
        scope.resolve_condition(value.value)
    snapshot = scope.cursor_snapshot()
    handler_scope = scope.child(ScopeKind.HANDLER)
    handler_scope.mark_cursors_indeterminate()
    try:
      body = self._check(stmt.body, handler_scope)
    finally:
      Scope.restore(snapshot)
    return dataclasses.replace(stmt, body=body)

  def _check_arms(self, scope: Scope, arms, test_field: str, else_statements):
    """
    Validate IF branches or CASE arms. Every arm starts from the cursor
    state before the statement; afterwards the outcomes are merged (a
    missing ELSE counts as an arm that changes nothing).
    """
    snapshot = scope.cursor_snapshot()
    outcomes = []
    checked = []
    for arm in arms:
      Scope.restore(snapshot)
      self._check_expr(getattr(arm, test_field), scope)
      body = self._check_body(arm.statements, scope.child(ScopeKind.BRANCH))
      checked.append(dataclasses.replace(arm, statements=body))
      outcomes.append(scope.cursor_snapshot())
    if else_statements is not None:
      Scope.restore(snapshot)
      else_statements = self._check_body(else_statements, scope.child(ScopeKind.BRANCH))
      outcomes.append(scope.cursor_snapshot())
    else:
      outcomes.append(dict(snapshot))
    Scope.merge(snapshot, outcomes)
    return tuple(checked), else_statements

  def _check(self, stmt: Statement, scope: Scope) -> Statement:
    """
    Validate a statement (recursively for compound nodes) against `scope`
    and return it, with auto labels assigned to unlabeled loops.
    """
    if not isinstance(stmt, Statement):
      raise TypeError(f"Expected a statement, got {type(stmt).__name__}")

    if isinstance(stmt, DelimiterStmt):
      raise BlockStructureError("DELIMITER directives cannot appear inside a compound statement")

    if isinstance(stmt, EmptyStmt):
      return stmt

    if stmt.category is StatementCategory.DECLARING:
      if isinstance(stmt, DeclareVariable):
        if stmt.default is not None:
          self._check_expr(stmt.default, scope)
        for name in stmt.names:
          scope.declare_variable(name)
      elif isinstance(stmt, DeclareCondition):
        scope.declare_condition(stmt.name)
      elif isinstance(stmt, DeclareCursor):
        self._check_expr(stmt.query, scope)
        scope.declare_cursor(stmt.name, stmt.query)
      elif isinstance(stmt, DeclareHandler):
        return self._check_handler(stmt, scope)
      return stmt

    scope.note_statement()

    if isinstance(stmt, Block):
      child = scope.child(ScopeKind.BLOCK, stmt.label)
      snapshot = child.describe()
      return dataclasses.replace(stmt, statements=self._check_body(stmt.statements, child), scope=snapshot)

    if isinstance(stmt, (LoopStmt, WhileStmt, RepeatStmt)):
      label = stmt.label or self._next_label(scope)
      if isinstance(stmt, WhileStmt):
        self._check_expr(stmt.condition, scope)
      child = scope.child(ScopeKind.LOOP, label)
      statements = self._check_body(stmt.statements, child)
      if isinstance(stmt, RepeatStmt):
        self._check_expr(stmt.until, child)
      return dataclasses.replace(stmt, label=label, statements=statements)

    if isinstance(stmt, IfBlock):
      branches, else_statements = self._check_arms(
        scope, stmt.branches, "condition", stmt.else_statements
      )
      return dataclasses.replace(stmt, branches=branches, else_statements=else_statements)

    if isinstance(stmt, CaseBlock):
      if stmt.operand is not None:
        self._check_expr(stmt.operand, scope)
      whens, else_statements = self._check_arms(scope, stmt.whens, "when", stmt.else_statements)
      return dataclasses.replace(stmt, whens=whens, else_statements=else_statements)

    if isinstance(stmt, IterateStmt):
      target = scope.find_label(stmt.label)
      if target is None:
        raise UnresolvedLabelError(stmt.label)
      if target.kind is not ScopeKind.LOOP:
        raise UnresolvedLabelError(
          stmt.label, f"ITERATE needs a loop label; '{stmt.label}' labels a BEGIN ... END block."
        )
      return stmt

    if isinstance(stmt, LeaveStmt):
      if scope.find_label(stmt.label) is None:
        raise UnresolvedLabelError(stmt.label)
      return stmt

    if isinstance(stmt, OpenCursor):
      scope.cursor(stmt.name).open()
      return stmt

    if isinstance(stmt, FetchCursor):
      entry = scope.cursor(stmt.name)
      for variable in stmt.variables:
        scope.resolve_target(variable)
      entry.fetch()
      return stmt

    if isinstance(stmt, CloseCursor):
      scope.cursor(stmt.name).close()
      return stmt

    if isinstance(stmt, SelectStmt):
      self._check_expr(stmt.query, scope)
      for variable in stmt.query.into:
        scope.resolve_target(variable)
      return stmt

    if isinstance(stmt, InsertStmt):
      self._check_expr(stmt.query, scope)
      return stmt

    if isinstance(stmt, SetStmt):
      for target, value in stmt.assignments:
        self._check_expr(value, scope)
        scope.resolve_target(target)
      return stmt

    if isinstance(stmt, CallStmt):
      self._check_expr(stmt.args, scope)
      return stmt

    if isinstance(stmt, SignalStmt):
      if stmt.condition.kind is ConditionKind.CONDITION:
        scope.resolve_condition(stmt.condition.value)
      if stmt.message_text is not None:
        self._check_expr(stmt.message_text, scope)
      return stmt

    if isinstance(stmt, RawStmt):
      if stmt.sql.lstrip().upper().startswith("DELIMITER"):
        raise BlockStructureError("DELIMITER directives cannot appear inside a compound statement")
      return stmt

    raise TypeError(f"Unsupported statement type: {type(stmt).__name__}")

  # ---------------------------------------------------------------------------
  # Declarations
  # ---------------------------------------------------------------------------
  def declare(
    self,
    names: Union[str, Iterable[str]],
    column_type: ColumnStructure,
    default: Any = None,
  ) -> "BlockBuilder":
    """DECLARE one or more variables of the same type."""
    return self._add(DeclareVariable(names, column_type, default))

  def declare_condition(self, name: str, value: ConditionValue) -> "BlockBuilder":
    return self._add(DeclareCondition(name, value))

  def declare_cursor(self, name: str, query) -> "BlockBuilder":
    return self._add(DeclareCursor(name, _as_select(query)))

  def declare_handler(
    self,
    action: Union[HandlerAction, str],
    conditions: Union[ConditionValue, Iterable[ConditionValue]],
    body: Optional[Statement] = None,
  ) -> "BlockBuilder":
    """
    DECLARE a handler. With `body`, the handler is complete. Without it a
    BEGIN ... END handler body is opened; close it with end_handler().
    """
    if body is not None:
      return self._add(DeclareHandler(action, _as_conditions(conditions), body))

    self._live()
    # placeholder body until end_handler() supplies the real block
    pending = DeclareHandler(action, _as_conditions(conditions), Block())
    scope = self._scope
    scope.declare_handler()
    for value in pending.conditions:
      if value.kind is ConditionKind.CONDITION:
        scope.resolve_condition(value.value)
    snapshot = scope.cursor_snapshot()
    handler_scope = scope.child(ScopeKind.HANDLER)
    handler_scope.mark_cursors_indeterminate()
    body_scope = handler_scope.child(ScopeKind.BLOCK)
    return self._push(_Frame("handler", body_scope, scope, pending=pending, snapshot=snapshot))

  def end_handler(self) -> "BlockBuilder":
    frame = self._pop("handler")
    Scope.restore(frame.extra["snapshot"])
    body = Block(tuple(frame.statements), scope=frame.scope.describe())
    node = dataclasses.replace(frame.extra["pending"], body=body)
    self._top.statements.append(node)
    return self

  # ---------------------------------------------------------------------------
  # Blocks
  # ---------------------------------------------------------------------------
  def begin(self, label: Optional[str] = None) -> "BlockBuilder":
    """Open a nested BEGIN ... END block; names declared in it may shadow outer ones."""
    self._live()
    parent = self._scope
    parent.note_statement()
    scope = parent.child(ScopeKind.BLOCK, label)
    return self._push(_Frame("block", scope, parent, label=label, snapshot=scope.describe()))

  def end_block(self) -> "BlockBuilder":
    frame = self._pop("block")
    node = Block(tuple(frame.statements), label=frame.extra["label"], scope=frame.extra["snapshot"])
    self._top.statements.append(node)
    return self

  def end(self) -> "BlockBuilder":
    """Close the innermost open construct, whatever it is (REPEAT needs until())."""
    self._live()
    return self._close_innermost()

  def _close_innermost(self) -> "BlockBuilder":
    kind = self._top.kind
    closers = {
      "block": self.end_block,
      "handler": self.end_handler,
      "if": self.end_if,
      "case": self.end_case,
      "loop": self.end_loop,
      "while": self.end_while,
    }
    if len(self._frames) == 1:
      raise BlockStructureError("No open construct to end; use build() to finish the block")
    if kind == "repeat":
      raise BlockStructureError("REPEAT is closed with until(condition)")
    return closers[kind]()

  # ---------------------------------------------------------------------------
  # Conditionals
  # ---------------------------------------------------------------------------
  def _open_branch(self, frame: _Frame) -> None:
    Scope.restore(frame.extra["snapshot"])
    frame.scope = frame.parent_scope.child(ScopeKind.BRANCH)
    frame.statements = []

  def _finish_branch(self, frame: _Frame) -> None:
    frame.extra["outcomes"].append(frame.parent_scope.cursor_snapshot())

  def if_(self, condition: Condition) -> "BlockBuilder":
    self._live()
    parent = self._scope
    parent.note_statement()
    self._check_expr(condition, parent)
    frame = _Frame(
      "if", None, parent,
      snapshot=parent.cursor_snapshot(), outcomes=[], branches=[],
      current=condition, else_open=False,
    )
    self._open_branch(frame)
    return self._push(frame)

  def _close_if_branch(self, frame: _Frame) -> None:
    if frame.extra["else_open"]:
      frame.extra["else_statements"] = tuple(frame.statements)
    else:
      frame.extra["branches"].append(IfBranch(frame.extra["current"], tuple(frame.statements)))
    self._finish_branch(frame)

  def elseif(self, condition: Condition) -> "BlockBuilder":
    self._live()
    frame = self._top
    if frame.kind != "if":
      raise BlockStructureError("ELSEIF without an open IF")
    if frame.extra["else_open"]:
      raise BlockStructureError("ELSEIF cannot follow ELSE")
    self._close_if_branch(frame)
    self._open_branch(frame)
    self._check_expr(condition, frame.parent_scope)
    frame.extra["current"] = condition
    return self

  def else_(self) -> "BlockBuilder":
    """ELSE branch of the innermost IF or CASE."""
    self._live()
    frame = self._top
    if frame.kind == "if":
      if frame.extra["else_open"]:
        raise BlockStructureError("IF already has an ELSE branch")
      self._close_if_branch(frame)
      self._open_branch(frame)
      frame.extra["else_open"] = True
      return self
    if frame.kind == "case":
      if frame.extra["else_open"]:
        raise BlockStructureError("CASE already has an ELSE branch")
      if not self._close_case_arm(frame):
        raise BlockStructureError("CASE needs a WHEN before ELSE")
      self._open_branch(frame)
      frame.extra["else_open"] = True
      return self
    raise BlockStructureError("ELSE without an open IF or CASE")

  def end_if(self) -> "BlockBuilder":
    frame = self._pop("if")
    self._close_if_branch(frame)
    outcomes = frame.extra["outcomes"]
    if not frame.extra["else_open"]:
      outcomes.append(dict(frame.extra["snapshot"]))
    Scope.merge(frame.extra["snapshot"], outcomes)
    node = IfBlock(tuple(frame.extra["branches"]), frame.extra.get("else_statements"))
    self._top.statements.append(node)
    return self

  def case(self, operand: Any = None) -> "BlockBuilder":
    """
    Open a CASE statement: with an operand WHEN arms take values, without
    one they take conditions.
    """
    self._live()
    parent = self._scope
    parent.note_statement()
    if operand is not None:
      self._check_expr(operand, parent)
    frame = _Frame(
      "case", None, parent,
      snapshot=parent.cursor_snapshot(), outcomes=[], whens=[],
      operand=operand, current=None, else_open=False,
    )
    return self._push(frame)

  def _close_case_arm(self, frame: _Frame) -> bool:
    if frame.extra["else_open"]:
      frame.extra["else_statements"] = tuple(frame.statements)
    elif frame.extra["current"] is not None:
      frame.extra["whens"].append(CaseWhen(frame.extra["current"], tuple(frame.statements)))
    else:
      return False
    self._finish_branch(frame)
    return True

  def when(self, value: Any) -> "BlockBuilder":
    self._live()
    frame = self._top
    if frame.kind != "case":
      raise BlockStructureError("WHEN without an open CASE")
    if frame.extra["else_open"]:
      raise BlockStructureError("WHEN cannot follow ELSE")
    if frame.extra["operand"] is None and not isinstance(value, Condition):
      raise ValidationError("A searched CASE takes conditions in its WHEN arms")
    self._close_case_arm(frame)
    self._open_branch(frame)
    self._check_expr(value, frame.parent_scope)
    frame.extra["current"] = value
    return self

  def end_case(self) -> "BlockBuilder":
    frame = self._pop("case")
    self._close_case_arm(frame)
    outcomes = frame.extra["outcomes"]
    if not frame.extra["else_open"]:
      outcomes.append(dict(frame.extra["snapshot"]))
    Scope.merge(frame.extra["snapshot"], outcomes)
    node = CaseBlock(
      tuple(frame.extra["whens"]),
      operand=frame.extra["operand"],
      else_statements=frame.extra.get("else_statements"),
    )
    self._top.statements.append(node)
    return self

  # ---------------------------------------------------------------------------
  # Loops
  # ---------------------------------------------------------------------------
  def _open_loop(self, kind: str, label: Optional[str], **extra: Any) -> "BlockBuilder":
    self._live()
    parent = self._scope
    parent.note_statement()
    label = label or self._next_label(parent)
    scope = parent.child(ScopeKind.LOOP, label)
    return self._push(_Frame(kind, scope, parent, label=label, **extra))

  def loop(self, label: Optional[str] = None) -> "BlockBuilder":
    """LOOP; without a label a unique one (<prefix>_<n>) is generated."""
    return self._open_loop("loop", label)

  def end_loop(self) -> "BlockBuilder":
    frame = self._pop("loop")
    self._top.statements.append(LoopStmt(frame.extra["label"], tuple(frame.statements)))
    return self

  def while_(self, condition: Condition, label: Optional[str] = None) -> "BlockBuilder":
    self._live()
    self._check_expr(condition, self._scope)
    return self._open_loop("while", label, condition=condition)

  def end_while(self) -> "BlockBuilder":
    frame = self._pop("while")
    node = WhileStmt(frame.extra["label"], frame.extra["condition"], tuple(frame.statements))
    self._top.statements.append(node)
    return self

  def repeat(self, label: Optional[str] = None) -> "BlockBuilder":
    return self._open_loop("repeat", label)

  def until(self, condition: Condition) -> "BlockBuilder":
    """Close the innermost REPEAT with its UNTIL condition."""
    self._live()
    if self._top.kind != "repeat":
      raise BlockStructureError(f"UNTIL needs an open REPEAT, innermost construct is {self._top.describe()}")
    self._check_expr(condition, self._top.scope)
    frame = self._pop("repeat")
    node = RepeatStmt(frame.extra["label"], condition, tuple(frame.statements))
    self._top.statements.append(node)
    return self

  def iterate(self, label: str) -> "BlockBuilder":
    return self._add(IterateStmt(label))

  def leave(self, label: str) -> "BlockBuilder":
    return self._add(LeaveStmt(label))

  @property
  def current_label(self) -> Optional[str]:
    """Label of the innermost open labeled construct."""
    labels = self._frames[-1].scope.open_labels() if self._frames[-1].scope else []
    return labels[0] if labels else None

  # ---------------------------------------------------------------------------
  # Cursors
  # ---------------------------------------------------------------------------
  def open_cursor(self, name: str) -> "BlockBuilder":
    return self._add(OpenCursor(name))

  def fetch(self, name: str, *variables: str) -> "BlockBuilder":
    """FETCH name INTO variables; every target must resolve before anything is recorded."""
    return self._add(FetchCursor(name, variables))

  def close_cursor(self, name: str) -> "BlockBuilder":
    return self._add(CloseCursor(name))

  # ---------------------------------------------------------------------------
  # Queries and misc statements
  # ---------------------------------------------------------------------------
  def select(self, query) -> "BlockBuilder":
    return self._add(SelectStmt(_as_select(query)))

  def insert(self, query) -> "BlockBuilder":
    return self._add(InsertStmt(_as_insert(query)))

  def set(self, target: str, value: Any, **more: Any) -> "BlockBuilder":
    """SET target = value; keyword arguments add further assignments."""
    return self._add(SetStmt(((target, value),) + tuple(more.items())))

  def call(self, name: str, *args: Any) -> "BlockBuilder":
    return self._add(CallStmt(name, args))

  def signal(
    self,
    condition: Union[ConditionValue, str],
    message: Any = None,
    errno: Optional[int] = None,
  ) -> "BlockBuilder":
    """SIGNAL a SQLSTATE (given as a string) or a declared condition."""
    if isinstance(condition, str):
      condition = ConditionValue.sql_state(condition)
    return self._add(SignalStmt(condition, message, errno))

  def raw(self, sql: str) -> "BlockBuilder":
    return self._add(RawStmt(sql))

  def empty(self) -> "BlockBuilder":
    return self._add(EmptyStmt())

  def stmt(self, *statements: Statement) -> "BlockBuilder":
    """Append pre-built statement nodes, validated recursively against the current scope."""
    for statement in statements:
      self._add(statement)
    return self

  # ---------------------------------------------------------------------------
  # Build
  # ---------------------------------------------------------------------------
  def _build_block(self) -> Block:
    self._live()
    if len(self._frames) > 1:
      still_open = ", ".join(f.describe() for f in reversed(self._frames[1:]))
      raise BlockStructureError(f"Cannot build: {still_open} still open")
    root = self._frames[0]
    self._consumed = True
    block = Block(tuple(root.statements), label=root.extra["label"], scope=root.extra["snapshot"])
    logger.debug(
      "Built block with %d top-level statements (%d auto labels)",
      len(block.statements),
      self._auto_labels,
    )
    return block

  def build(self) -> Block:
    return self._build_block()


def parameter(
  name: str,
  column_type: ColumnStructure,
  mode: str = "IN",
) -> ProcedureParameter:
  return ProcedureParameter(name, column_type, mode)


class ProcedureBuilder(BlockBuilder):
  """Builds a stored procedure; parameters are visible as variables in the body."""

  def __init__(
    self,
    name: str,
    *parameters: ProcedureParameter,
    comment: Optional[str] = None,
    deterministic: bool = False,
    label: Optional[str] = None,
    label_prefix: Optional[str] = None,
    profile: Optional[Profile] = None,
  ):
    program_scope = Scope(ScopeKind.PROGRAM)
    for p in parameters:
      program_scope.declare_parameter(p.name)
    super().__init__(label, label_prefix=label_prefix, profile=profile, program_scope=program_scope)
    self._name = name
    self._parameters = tuple(parameters)
    self._comment = comment
    self._deterministic = deterministic

  def build(self) -> Procedure:
    return Procedure(
      name=self._name,
      body=self._build_block(),
      parameters=self._parameters,
      comment=self._comment,
      deterministic=self._deterministic,
    )


class TriggerBuilder(BlockBuilder):
  """Builds a row trigger; NEW.col / OLD.col are available as the event allows."""

  def __init__(
    self,
    name: str,
    on_table: Union[str, SourceTable],
    timing: Union[TriggerTiming, str],
    event: Union[TriggerEvent, str],
    *,
    label: Optional[str] = None,
    label_prefix: Optional[str] = None,
    profile: Optional[Profile] = None,
  ):
    self._event = TriggerEvent(event)
    self._timing = TriggerTiming(timing)
    self._table = table_ref(on_table) if isinstance(on_table, str) else on_table
    self._name = name
    row_aliases = _ROW_ALIASES[self._event]
    # only BEFORE triggers may assign NEW.col
    writable = row_aliases & {"NEW"} if self._timing is TriggerTiming.BEFORE else frozenset()
    program_scope = Scope(ScopeKind.PROGRAM, row_aliases=row_aliases, writable_rows=writable)
    super().__init__(label, label_prefix=label_prefix, profile=profile, program_scope=program_scope)

  def build(self) -> Trigger:
    return Trigger(
      name=self._name,
      table=self._table,
      timing=self._timing,
      event=self._event,
      body=self._build_block(),
    )
