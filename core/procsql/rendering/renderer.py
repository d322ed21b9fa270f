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

from procsql.procedure.statements import Block, Procedure, Statement, Trigger
from procsql.query.builder import InsertBuilder, SelectBuilder
from procsql.query.clauses import InsertQuery, SelectQuery
from procsql.rendering.dialects.base import SqlDialect
from procsql.rendering.expr import Condition, Expr
from procsql.table.structure import TableStructure


def render_sql(obj, dialect: SqlDialect) -> str:
  """
  Render any procsql value into a SQL string: queries (built or still as
  builders), statement trees, procedures, triggers, table structures,
  conditions and expressions.
  """
  if isinstance(obj, (SelectBuilder, InsertBuilder)):
    obj = obj.build()

  if isinstance(obj, SelectQuery):
    return dialect.render_select(obj)

  elif isinstance(obj, InsertQuery):
    return dialect.render_insert(obj)

  elif isinstance(obj, Procedure):
    return dialect.render_procedure(obj)

  elif isinstance(obj, Trigger):
    return dialect.render_trigger(obj)

  elif isinstance(obj, Block):
    return dialect.render_block(obj)

  elif isinstance(obj, Statement):
    return dialect.render_statement(obj)

  elif isinstance(obj, TableStructure):
    return dialect.render_create_table(obj)

  elif isinstance(obj, Condition):
    return dialect.render_condition(obj)

  elif isinstance(obj, Expr):
    return dialect.render_expr(obj)

  else:
    raise TypeError(
      f"Unsupported object type: {type(obj).__name__}. "
      "Expected a query, statement, procedure, trigger, table structure or expression."
    )
