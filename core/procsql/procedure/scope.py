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
Validation scopes for stored-program bodies.

One Scope exists per open construct (program, BEGIN block, loop, IF/CASE
branch, handler body). Scopes form a parent chain:

  - declarations live on the compound (BEGIN) scope that made them and are
    visible to every scope below it
  - labels live on the scope of the construct they name; lookups for
    LEAVE/ITERATE stop at the nearest handler body
  - cursor lifecycle state lives on the cursor entry, so branches can
    snapshot, restore and merge it
"""

import logging
from dataclasses import fields, is_dataclass
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Iterator, List, Optional

from procsql.errors import (
  BlockStructureError,
  DuplicateDeclarationError,
  DuplicateLabelError,
  InvalidCursorStateError,
  UndeclaredConditionError,
  UndeclaredCursorError,
  UndeclaredVariableError,
  ValidationError,
)
from procsql.rendering.dialects.base import check_label
from procsql.rendering.expr import VariableRef

logger = logging.getLogger(__name__)


class ScopeKind(str, Enum):
  PROGRAM = "program"   # procedure parameters / trigger row aliases
  BLOCK = "block"       # BEGIN ... END, the only place DECLARE is legal
  LOOP = "loop"
  BRANCH = "branch"     # IF / ELSEIF / ELSE / WHEN arm
  HANDLER = "handler"   # handler body; label lookups stop here


class DeclarationPhase(IntEnum):
  """MySQL order: variables and conditions, then cursors, then handlers, then code."""
  VARIABLES = 0
  CURSORS = 1
  HANDLERS = 2
  BODY = 3


class CursorState(str, Enum):
  DECLARED = "DECLARED"
  OPEN = "OPEN"
  CLOSED = "CLOSED"
  # branches disagreed, or the cursor is touched from a handler body
  INDETERMINATE = "INDETERMINATE"


class CursorEntry:
  """A declared cursor and its lifecycle state at the current build position."""

  __slots__ = ("name", "query", "state")

  def __init__(self, name: str, query):
    self.name = name
    self.query = query
    self.state = CursorState.DECLARED

  def _fail(self, operation: str):
    raise InvalidCursorStateError(self.name, self.state.value, operation)

  def open(self) -> None:
    if self.state is CursorState.OPEN:
      self._fail("open")
    self.state = CursorState.OPEN

  def fetch(self) -> None:
    if self.state in (CursorState.DECLARED, CursorState.CLOSED):
      self._fail("fetch")

  def close(self) -> None:
    if self.state in (CursorState.DECLARED, CursorState.CLOSED):
      self._fail("close")
    self.state = CursorState.CLOSED

  def __repr__(self) -> str:
    return f"CursorEntry({self.name!r}, {self.state.value})"


CursorSnapshot = Dict[CursorEntry, CursorState]


class Scope:
  def __init__(
    self,
    kind: ScopeKind,
    parent: Optional["Scope"] = None,
    label: Optional[str] = None,
    row_aliases: FrozenSet[str] = frozenset(),
    writable_rows: FrozenSet[str] = frozenset(),
  ):
    self.kind = ScopeKind(kind)
    self.parent = parent
    self.label = label
    self.row_aliases = parent.row_aliases if parent is not None else frozenset(a.upper() for a in row_aliases)
    self.writable_rows = parent.writable_rows if parent is not None else frozenset(a.upper() for a in writable_rows)
    self._variables: Dict[str, str] = {}
    self._conditions: Dict[str, str] = {}
    self._cursors: Dict[str, CursorEntry] = {}
    self._phase = DeclarationPhase.VARIABLES

  def __repr__(self) -> str:
    return f"Scope({self.kind.value}, label={self.label!r})"

  def chain(self) -> Iterator["Scope"]:
    scope: Optional[Scope] = self
    while scope is not None:
      yield scope
      scope = scope.parent

  def child(self, kind: ScopeKind, label: Optional[str] = None) -> "Scope":
    if label is not None:
      check_label(label)
      if label.lower() in (l.lower() for l in self.open_labels()):
        raise DuplicateLabelError(label)
    return Scope(kind, parent=self, label=label)

  # ---------------------------------------------------------------------------
  # Labels
  # ---------------------------------------------------------------------------
  def open_labels(self) -> List[str]:
    """All labels of enclosing constructs, innermost first."""
    return [s.label for s in self.chain() if s.label is not None]

  def find_label(self, label: str) -> Optional["Scope"]:
    """Resolve a LEAVE/ITERATE target; handler bodies cannot reach outer labels."""
    key = label.lower()
    for scope in self.chain():
      if scope.label is not None and scope.label.lower() == key:
        return scope
      if scope.kind is ScopeKind.HANDLER:
        return None
    return None

  # ---------------------------------------------------------------------------
  # Declarations
  # ---------------------------------------------------------------------------
  def _enter_phase(self, phase: DeclarationPhase, what: str) -> None:
    if self.kind is not ScopeKind.BLOCK:
      raise BlockStructureError(f"{what} is only allowed at the start of a BEGIN ... END block")
    if self._phase is DeclarationPhase.BODY:
      raise BlockStructureError(f"{what} must come before the first executable statement of its block")
    if self._phase > phase:
      raise BlockStructureError(
        f"{what} must come before {self._phase.name.lower().rstrip('s')} declarations"
      )
    self._phase = phase

  def note_statement(self) -> None:
    """An executable statement arrived; no further declarations in this block."""
    if self.kind is ScopeKind.BLOCK:
      self._phase = DeclarationPhase.BODY

  def declare_parameter(self, name: str) -> None:
    key = name.lower()
    if key in self._variables:
      raise DuplicateDeclarationError(name, kind="parameter")
    self._variables[key] = name

  def declare_variable(self, name: str) -> None:
    self._enter_phase(DeclarationPhase.VARIABLES, f"DECLARE {name}")
    key = name.lower()
    if key in self._variables:
      raise DuplicateDeclarationError(name, kind="variable")
    self._variables[key] = name

  def declare_condition(self, name: str) -> None:
    self._enter_phase(DeclarationPhase.VARIABLES, f"DECLARE {name} CONDITION")
    key = name.lower()
    if key in self._conditions:
      raise DuplicateDeclarationError(name, kind="condition")
    self._conditions[key] = name

  def declare_cursor(self, name: str, query) -> CursorEntry:
    self._enter_phase(DeclarationPhase.CURSORS, f"DECLARE {name} CURSOR")
    key = name.lower()
    if key in self._cursors:
      raise DuplicateDeclarationError(name, kind="cursor")
    entry = CursorEntry(name, query)
    self._cursors[key] = entry
    return entry

  def declare_handler(self) -> None:
    self._enter_phase(DeclarationPhase.HANDLERS, "DECLARE ... HANDLER")

  # ---------------------------------------------------------------------------
  # Resolution
  # ---------------------------------------------------------------------------
  def resolve_variable(self, name: str) -> None:
    if name.startswith("@"):
      return
    if "." in name:
      prefix = name.split(".", 1)[0]
      if prefix.upper() in self.row_aliases:
        return
      raise UndeclaredVariableError(name)
    key = name.lower()
    for scope in self.chain():
      if key in scope._variables:
        return
    raise UndeclaredVariableError(name)

  def resolve_target(self, name: str) -> None:
    """Resolve an assignment target (SET, FETCH ... INTO, SELECT ... INTO)."""
    if "." in name and not name.startswith("@"):
      prefix = name.split(".", 1)[0].upper()
      if prefix in self.row_aliases and prefix not in self.writable_rows:
        raise ValidationError(f"{name} is read-only in this trigger")
    self.resolve_variable(name)

  def resolve_condition(self, name: str) -> None:
    key = name.lower()
    for scope in self.chain():
      if key in scope._conditions:
        return
    raise UndeclaredConditionError(name)

  def cursor(self, name: str) -> CursorEntry:
    key = name.lower()
    for scope in self.chain():
      entry = scope._cursors.get(key)
      if entry is not None:
        return entry
    raise UndeclaredCursorError(name)

  def visible_variables(self) -> List[str]:
    seen: Dict[str, str] = {}
    for scope in self.chain():
      for key, name in scope._variables.items():
        seen.setdefault(key, name)
    return sorted(seen.values(), key=str.lower)

  # ---------------------------------------------------------------------------
  # Cursor state across branches and handlers
  # ---------------------------------------------------------------------------
  def cursor_snapshot(self) -> CursorSnapshot:
    snapshot: CursorSnapshot = {}
    for scope in self.chain():
      for entry in scope._cursors.values():
        snapshot[entry] = entry.state
    return snapshot

  @staticmethod
  def restore(snapshot: CursorSnapshot) -> None:
    for entry, state in snapshot.items():
      entry.state = state

  @staticmethod
  def merge(snapshot: CursorSnapshot, outcomes: List[CursorSnapshot]) -> None:
    """
    Set every cursor to the state all branch outcomes agree on, or to
    INDETERMINATE when they differ.
    """
    for entry in snapshot:
      states = {outcome.get(entry, snapshot[entry]) for outcome in outcomes}
      if len(states) == 1:
        entry.state = states.pop()
      else:
        logger.debug("Cursor %s is indeterminate after branches: %s", entry.name, sorted(s.value for s in states))
        entry.state = CursorState.INDETERMINATE

  def mark_cursors_indeterminate(self) -> None:
    for entry in self.cursor_snapshot():
      entry.state = CursorState.INDETERMINATE

  def describe(self) -> Dict[str, List[str]]:
    """Visible labels and variables, the snapshot stored on built blocks."""
    return {
      "labels": list(reversed(self.open_labels())),
      "variables": self.visible_variables(),
    }


def iter_variable_refs(node) -> Iterator[VariableRef]:
  """Yield every VariableRef inside an expression, condition or query value."""
  if isinstance(node, VariableRef):
    yield node
  elif isinstance(node, (tuple, list)):
    for item in node:
      yield from iter_variable_refs(item)
  elif is_dataclass(node) and not isinstance(node, type):
    for f in fields(node):
      yield from iter_variable_refs(getattr(node, f.name))
