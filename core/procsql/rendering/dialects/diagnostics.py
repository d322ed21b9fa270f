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

import datetime as _dt
from dataclasses import dataclass, asdict
from typing import Any, Dict

from procsql.procedure.statements import Block, LeaveStmt, LoopStmt
from procsql.rendering.dialects import get_available_dialect_names, get_dialect
from procsql.rendering.dialects.base import SqlDialect


@dataclass
class DialectDiagnostics:
  """Simple snapshot of a dialect's capabilities and behaviour."""

  name: str
  class_name: str
  supports_full_join: bool
  supports_delimiter_switch: bool

  # Rendering settings
  delimiter: str
  indent: int

  # Literal rendering examples
  literal_true: str
  literal_false: str
  literal_null: str
  literal_sample_date: str
  literal_sample_string: str

  # Identifier and block samples
  sample_identifier: str
  sample_block: str

  def to_dict(self) -> Dict[str, Any]:
    """Return a JSON-serializable representation."""
    return asdict(self)


def collect_dialect_diagnostics(dialect: SqlDialect) -> DialectDiagnostics:
  """Collect a minimal set of diagnostics for a single dialect instance."""
  # Simple fixed sample date to avoid timezone issues
  sample_date = _dt.date(2025, 1, 2)

  # A tiny labeled loop exercises labels, nesting and terminators
  block = Block(statements=(LoopStmt("diag", (LeaveStmt("diag"),)),))

  return DialectDiagnostics(
    name=getattr(dialect, "DIALECT_NAME", dialect.__class__.__name__.lower()),
    class_name=dialect.__class__.__name__,
    supports_full_join=dialect.supports_full_join,
    supports_delimiter_switch=dialect.supports_delimiter_switch,
    delimiter=dialect.delimiter,
    indent=dialect.indent,
    literal_true=dialect.render_literal(True),
    literal_false=dialect.render_literal(False),
    literal_null=dialect.render_literal(None),
    literal_sample_date=dialect.render_literal(sample_date),
    literal_sample_string=dialect.render_literal("it's"),
    sample_identifier=dialect.render_identifier("select"),
    sample_block=dialect.render_block(block),
  )


def snapshot_all_dialects() -> Dict[str, DialectDiagnostics]:
  """
  Build diagnostics for all registered dialects.

  The keys of the result dict are dialect names as returned by
  get_available_dialect_names().
  """
  result: Dict[str, DialectDiagnostics] = {}

  for name in get_available_dialect_names():
    dialect = get_dialect(name)
    result[name] = collect_dialect_diagnostics(dialect)

  return result
