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
Error types raised by procsql builders and dialects.

Structural problems (labels, declarations, cursor lifecycle, malformed
queries) are raised while a tree is being built. Rendering a built tree only
fails when a value has no literal form or an identifier cannot be quoted.
"""


class ProcSqlError(Exception):
  """Root of all procsql errors."""


class ValidationError(ProcSqlError, ValueError):
  """A statement tree or query refers to something it is not allowed to."""


class UnresolvedLabelError(ValidationError):
  """LEAVE/ITERATE names a label that is not currently open."""

  def __init__(self, label: str, message: str | None = None):
    self.label = label
    super().__init__(message or f"Label '{label}' is not open at this point.")


class DuplicateDeclarationError(ValidationError):
  """A name was declared twice in the same scope."""

  def __init__(self, name: str, kind: str = "variable"):
    self.name = name
    self.kind = kind
    super().__init__(f"{kind.capitalize()} '{name}' is already declared in this scope.")


class DuplicateLabelError(DuplicateDeclarationError):
  """A label is reused while a block with the same label is still open."""

  def __init__(self, name: str):
    super().__init__(name, kind="label")


class UndeclaredVariableError(ValidationError):
  """A variable reference does not resolve to any visible declaration."""

  def __init__(self, name: str):
    self.name = name
    super().__init__(f"Variable '{name}' is not declared in this or an enclosing scope.")


class UndeclaredCursorError(ValidationError):
  def __init__(self, name: str):
    self.name = name
    super().__init__(f"Cursor '{name}' is not declared in this or an enclosing scope.")


class UndeclaredConditionError(ValidationError):
  def __init__(self, name: str):
    self.name = name
    super().__init__(f"Condition '{name}' is not declared in this or an enclosing scope.")


class BlockStructureError(ValidationError):
  """Statements were assembled in an order the procedural syntax forbids."""


class QueryBuildError(ValidationError):
  """A SELECT/INSERT/condition value was composed inconsistently."""


class InvalidCursorStateError(ProcSqlError):
  """OPEN/FETCH/CLOSE issued while the cursor is in the wrong lifecycle state."""

  def __init__(self, name: str, state: str, operation: str):
    self.name = name
    self.state = state
    self.operation = operation
    super().__init__(
      f"Cannot {operation} cursor '{name}': cursor is {state.lower()}."
    )


class UnsupportedTypeError(ProcSqlError, TypeError):
  """A Python value has no SQL literal representation."""


class EscapingError(ProcSqlError, ValueError):
  """An identifier cannot be carried safely in its SQL position."""
