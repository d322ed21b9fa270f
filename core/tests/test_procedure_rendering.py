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

"""
Procedure and trigger rendering: delimiter switching, sentinel fallback,
parameters and NEW/OLD row references.
"""

import logging
from decimal import Decimal

import pytest

from procsql.errors import (
  BlockStructureError,
  DuplicateDeclarationError,
  EscapingError,
  UndeclaredVariableError,
  ValidationError,
)
from procsql.procedure.block_builder import ProcedureBuilder, TriggerBuilder, parameter
from procsql.procedure.statements import DelimiterStmt
from procsql.rendering.dialects.mysql import MySqlDialect
from procsql.rendering.dsl import eq, mul, var
from procsql.table.columns import decimal, int_


def _simple_procedure(*statements: str):
  p = ProcedureBuilder("p")
  for sql in statements:
    p.raw(sql)
  return p.build()


def test_procedure_with_parameters_comment_and_deterministic(dialect):
  p = ProcedureBuilder(
    "calc",
    parameter("n", int_()),
    parameter("total", decimal(10, 2), "OUT"),
    comment="Multiplies n",
    deterministic=True,
  )
  p.set("total", mul(var("n"), Decimal("1.5")))

  assert dialect.render_procedure(p.build()) == "\n".join([
    "DELIMITER $$",
    "CREATE PROCEDURE calc(IN n INT, OUT total DECIMAL(10,2))",
    "COMMENT 'Multiplies n'",
    "DETERMINISTIC",
    "BEGIN",
    "  SET total = n * 1.5;",
    "END$$",
    "DELIMITER ;",
  ])


def test_parameters_are_visible_and_unique():
  p = ProcedureBuilder("p", parameter("n", int_()))
  p.set("n", 1)
  with pytest.raises(UndeclaredVariableError):
    p.set("m", 1)

  with pytest.raises(DuplicateDeclarationError):
    ProcedureBuilder("p", parameter("n", int_()), parameter("N", int_()))


def test_drop_existing_prepends_drop_statement(dialect):
  sql = dialect.render_procedure(_simple_procedure("DO 1"), drop_existing=True)
  assert sql.splitlines()[:3] == [
    "DROP PROCEDURE IF EXISTS p;",
    "DELIMITER $$",
    "CREATE PROCEDURE p()",
  ]


def test_qualified_procedure_name(dialect):
  p = ProcedureBuilder("app.select")
  p.raw("DO 1")
  assert dialect.render_procedure(p.build()).splitlines()[1] == "CREATE PROCEDURE app.`select`()"


def test_configured_delimiter_is_used():
  sql = MySqlDialect(delimiter="//").render_procedure(_simple_procedure("DO 1"))
  assert sql == "DELIMITER //\nCREATE PROCEDURE p()\nBEGIN\n  DO 1;\nEND//\nDELIMITER ;"


def test_sentinel_falls_back_when_body_contains_it(dialect, caplog):
  p = ProcedureBuilder("p")
  p.set("@s", "a$$b")
  with caplog.at_level(logging.INFO, logger="procsql.rendering.dialects.mysql"):
    sql = dialect.render_procedure(p.build())

  assert sql == "\n".join([
    "DELIMITER //",
    "CREATE PROCEDURE p()",
    "BEGIN",
    "  SET @s = 'a$$b';",
    "END//",
    "DELIMITER ;",
  ])
  assert "using '//' instead" in caplog.text


def test_exactly_one_terminated_unit_per_program(dialect):
  sql = dialect.render_procedure(_simple_procedure("DO 1", "DO 2", "DO 3"))
  assert sql.count("$$") == 2
  assert sql.count("END$$") == 1


def test_statement_terminator_inside_literal_stays_in_one_unit(dialect):
  p = ProcedureBuilder("p")
  p.set("@s", "a;b")
  sql = dialect.render_procedure(p.build())

  assert sql == "\n".join([
    "DELIMITER $$",
    "CREATE PROCEDURE p()",
    "BEGIN",
    "  SET @s = 'a;b';",
    "END$$",
    "DELIMITER ;",
  ])
  assert sql.count("END$$") == 1


def test_rendering_a_built_procedure_is_repeatable(dialect):
  p = ProcedureBuilder("p", parameter("n", int_()))
  p.set("@s", "a;b")
  p.set("n", 2)
  procedure = p.build()

  first = dialect.render_procedure(procedure)
  assert dialect.render_procedure(procedure) == first
  assert MySqlDialect().render_procedure(procedure) == first


def test_no_free_sentinel_raises(dialect):
  text = " ".join(MySqlDialect.DELIMITER_CANDIDATES)
  p = ProcedureBuilder("p")
  p.set("@s", text)
  with pytest.raises(EscapingError):
    dialect.render_procedure(p.build())


def test_delimiter_statement_only_renders_at_script_level(dialect):
  assert dialect.render_statement(DelimiterStmt("//")) == "DELIMITER //"
  with pytest.raises(BlockStructureError):
    dialect.render_statement(DelimiterStmt("//"), depth=1)


def test_before_insert_trigger_sets_new_columns(dialect):
  t = TriggerBuilder("trg_total", "test.orders", "BEFORE", "INSERT")
  t.set("NEW.total", mul(var("NEW.qty"), var("NEW.price")))

  assert dialect.render_trigger(t.build()) == "\n".join([
    "DELIMITER $$",
    "CREATE TRIGGER trg_total BEFORE INSERT ON test.orders FOR EACH ROW",
    "BEGIN",
    "  SET NEW.total = NEW.qty * NEW.price;",
    "END$$",
    "DELIMITER ;",
  ])


def test_after_update_trigger_reads_old_and_new(dialect):
  t = TriggerBuilder("trg_audit", "orders", "AFTER", "UPDATE")
  with t.if_(eq(var("OLD.status"), var("NEW.status")).not_()):
    t.call("log_change", var("OLD.id"), var("OLD.status"), var("NEW.status"))

  sql = dialect.render_trigger(t.build(), drop_existing=True)
  assert sql == "\n".join([
    "DROP TRIGGER IF EXISTS trg_audit;",
    "DELIMITER $$",
    "CREATE TRIGGER trg_audit AFTER UPDATE ON orders FOR EACH ROW",
    "BEGIN",
    "  IF NOT (OLD.status = NEW.status) THEN",
    "    CALL log_change(OLD.id, OLD.status, NEW.status);",
    "  END IF;",
    "END$$",
    "DELIMITER ;",
  ])


def test_trigger_row_aliases_follow_the_event():
  t = TriggerBuilder("trg", "orders", "BEFORE", "INSERT")
  with pytest.raises(UndeclaredVariableError):
    t.set("@x", var("OLD.id"))

  t = TriggerBuilder("trg", "orders", "AFTER", "DELETE")
  with pytest.raises(UndeclaredVariableError):
    t.set("@x", var("NEW.id"))


def test_only_before_triggers_assign_new():
  t = TriggerBuilder("trg", "orders", "AFTER", "INSERT")
  with pytest.raises(ValidationError):
    t.set("NEW.total", 0)

  t = TriggerBuilder("trg", "orders", "BEFORE", "UPDATE")
  with pytest.raises(ValidationError):
    t.set("OLD.total", 0)
