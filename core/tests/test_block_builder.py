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
Block builder structure tests: labels, declarations, scoping and the
rendering of compound statements.
"""

import pytest

from procsql.config.profiles import Profile
from procsql.errors import (
  BlockStructureError,
  DuplicateDeclarationError,
  DuplicateLabelError,
  UndeclaredConditionError,
  UndeclaredVariableError,
  UnresolvedLabelError,
  ValidationError,
)
from procsql.procedure.block_builder import BlockBuilder
from procsql.procedure.statements import (
  ConditionValue,
  DelimiterStmt,
  EmptyStmt,
  IfBlock,
  IfBranch,
  LeaveStmt,
  LoopStmt,
  RawStmt,
  SetStmt,
)
from procsql.query.builder import SelectBuilder
from procsql.rendering.dialects.mysql import MySqlDialect
from procsql.rendering.dsl import add, eq, gt, is_true, le, lit, lt, sub, var
from procsql.table.columns import ColumnType, int_


def _select_one():
  return SelectBuilder.create().select(lit(1))


# -------------------------------------------------------------------
# Rendering of compound statements
# -------------------------------------------------------------------
def test_empty_block(dialect):
  assert dialect.render_block(BlockBuilder().build()) == "BEGIN\nEND;"


def test_labeled_block(dialect):
  b = BlockBuilder("main")
  b.raw("DO 1")
  assert dialect.render_block(b.build()) == "main: BEGIN\n  DO 1;\nEND;"


def test_if_elseif_else(dialect):
  b = BlockBuilder()
  b.declare("i", int_(), default=0)
  b.declare("s", ColumnType.VARCHAR.structure(8))
  with b.if_(gt(var("i"), 0)):
    b.set("s", "pos")
    b.elseif(lt(var("i"), 0))
    b.set("s", "neg")
    b.else_()
    b.set("s", "zero")

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE i INT DEFAULT 0;",
    "  DECLARE s VARCHAR(8);",
    "  IF i > 0 THEN",
    "    SET s = 'pos';",
    "  ELSEIF i < 0 THEN",
    "    SET s = 'neg';",
    "  ELSE",
    "    SET s = 'zero';",
    "  END IF;",
    "END;",
  ])


def test_simple_case(dialect):
  b = BlockBuilder()
  b.declare("grade", ColumnType.CHAR.structure(1))
  b.declare("score", int_())
  with b.case(var("grade")):
    b.when("A")
    b.set("score", 100)
    b.when("B")
    b.set("score", 80)
    b.else_()
    b.set("score", 0)

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE grade CHAR(1);",
    "  DECLARE score INT;",
    "  CASE grade",
    "    WHEN 'A' THEN",
    "      SET score = 100;",
    "    WHEN 'B' THEN",
    "      SET score = 80;",
    "    ELSE",
    "      SET score = 0;",
    "  END CASE;",
    "END;",
  ])


def test_searched_case_requires_conditions():
  b = BlockBuilder()
  b.declare("x", int_())
  b.case()
  with pytest.raises(ValidationError):
    b.when(1)
  b.when(eq(var("x"), 1))
  b.set("x", 2)
  b.end_case()
  block = b.build()
  assert block.statements[1].is_searched


def test_statements_before_first_when_are_rejected():
  b = BlockBuilder()
  b.declare("x", int_())
  b.case(var("x"))
  with pytest.raises(BlockStructureError):
    b.set("x", 1)


def test_while_and_repeat(dialect):
  b = BlockBuilder()
  b.declare("i", int_(), default=0)
  with b.while_(lt(var("i"), 10), "w"):
    b.set("i", add(var("i"), 1))
  b.repeat("r")
  b.set("i", sub(var("i"), 1))
  b.until(le(var("i"), 0))

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE i INT DEFAULT 0;",
    "  w: WHILE i < 10 DO",
    "    SET i = i + 1;",
    "  END WHILE;",
    "  r: REPEAT",
    "    SET i = i - 1;",
    "  UNTIL i <= 0 END REPEAT;",
    "END;",
  ])


def test_repeat_is_closed_by_until_only():
  b = BlockBuilder()
  b.repeat()
  b.raw("DO 1")
  with pytest.raises(BlockStructureError):
    b.end()
  with pytest.raises(BlockStructureError):
    b.end_loop()


def test_empty_statement_renders_blank_line(dialect):
  b = BlockBuilder()
  b.raw("DO 1")
  b.empty()
  b.raw("DO 2;")
  assert dialect.render_block(b.build()) == "BEGIN\n  DO 1;\n\n  DO 2;\nEND;"


def test_indent_is_configurable():
  b = BlockBuilder()
  with b.loop("l"):
    b.leave("l")
  sql = MySqlDialect(indent=4).render_block(b.build())
  assert sql == "BEGIN\n    l: LOOP\n        LEAVE l;\n    END LOOP;\nEND;"


def test_mysql_rejects_empty_bodies():
  b = BlockBuilder()
  with pytest.raises(BlockStructureError):
    with b.loop():
      pass

  b = BlockBuilder()
  b.declare("x", int_())
  with pytest.raises(BlockStructureError):
    with b.if_(is_true("x")):
      b.empty()


# -------------------------------------------------------------------
# Labels
# -------------------------------------------------------------------
def test_auto_labels_are_unique_and_deterministic(dialect):
  b = BlockBuilder()
  with b.loop():
    b.leave(b.current_label)
  with b.loop():
    b.iterate(b.current_label)

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  loop_1: LOOP",
    "    LEAVE loop_1;",
    "  END LOOP;",
    "  loop_2: LOOP",
    "    ITERATE loop_2;",
    "  END LOOP;",
    "END;",
  ])


def test_auto_labels_skip_open_labels():
  b = BlockBuilder()
  with b.loop("loop_1"):
    with b.loop():
      assert b.current_label == "loop_2"
      b.leave("loop_1")
  block = b.build()
  assert block.statements[0].statements[0].label == "loop_2"


def test_label_prefix_from_argument_and_profile():
  b = BlockBuilder(label_prefix="blk")
  with b.loop():
    assert b.current_label == "blk_1"
    b.leave("blk_1")

  b = BlockBuilder(profile=Profile(name="deploy", label_prefix="step"))
  with b.loop():
    assert b.current_label == "step_1"
    b.leave("step_1")


def test_nested_duplicate_label_raises():
  b = BlockBuilder()
  b.loop("outer_loop")
  with pytest.raises(DuplicateLabelError):
    b.loop("outer_loop")
  # labels compare case-insensitively
  with pytest.raises(DuplicateLabelError):
    b.loop("OUTER_LOOP")


def test_duplicate_label_is_a_duplicate_declaration():
  b = BlockBuilder("main")
  with pytest.raises(DuplicateDeclarationError):
    b.begin("main")


def test_sibling_loops_may_reuse_a_label():
  b = BlockBuilder()
  for _ in range(2):
    with b.loop("again"):
      b.leave("again")
  assert [s.label for s in b.build().statements] == ["again", "again"]


def test_leave_unknown_label_raises():
  b = BlockBuilder()
  with pytest.raises(UnresolvedLabelError):
    b.leave("nowhere")


def test_leave_after_loop_closed_raises():
  b = BlockBuilder()
  with b.loop("l"):
    b.leave("l")
  with pytest.raises(UnresolvedLabelError):
    b.leave("l")


def test_iterate_needs_a_loop_label():
  b = BlockBuilder()
  with pytest.raises(UnresolvedLabelError):
    with b.begin("blk"):
      b.iterate("blk")


def test_leave_may_target_a_labeled_block(dialect):
  b = BlockBuilder()
  with b.begin("blk"):
    b.leave("blk")
  assert dialect.render_block(b.build()) == "BEGIN\n  blk: BEGIN\n    LEAVE blk;\n  END;\nEND;"


def test_handler_body_cannot_see_outer_labels():
  b = BlockBuilder()
  with b.loop("outer_loop"):
    with b.begin():
      with pytest.raises(UnresolvedLabelError):
        b.declare_handler("EXIT", ConditionValue.sql_exception(), body=LeaveStmt("outer_loop"))
      b.raw("DO 1")
    b.leave("outer_loop")


def test_handler_body_may_use_its_own_labels():
  b = BlockBuilder()
  with b.declare_handler("CONTINUE", ConditionValue.sql_warning()):
    with b.loop("inner_loop"):
      b.leave("inner_loop")
  b.raw("DO 1")
  block = b.build()
  assert block.statements[0].body.statements[0].label == "inner_loop"


# -------------------------------------------------------------------
# Declarations and scoping
# -------------------------------------------------------------------
def test_duplicate_declaration_in_same_block_raises():
  b = BlockBuilder()
  b.declare("x", int_())
  with pytest.raises(DuplicateDeclarationError):
    b.declare("X", int_())


def test_shadowing_in_nested_block_is_allowed():
  b = BlockBuilder()
  b.declare("x", int_())
  with b.begin():
    b.declare("x", ColumnType.VARCHAR.structure(10))
    b.set("x", "inner")
  b.set("x", 1)
  assert len(b.build().statements) == 3


def test_declarations_must_precede_statements():
  b = BlockBuilder()
  b.declare("x", int_())
  b.set("x", 1)
  with pytest.raises(BlockStructureError):
    b.declare("y", int_())


def test_declarations_follow_mysql_order():
  b = BlockBuilder()
  b.declare_cursor("c", _select_one())
  with pytest.raises(BlockStructureError):
    b.declare("x", int_())

  b = BlockBuilder()
  b.declare_handler("CONTINUE", ConditionValue.not_found(), body=RawStmt("DO 0"))
  with pytest.raises(BlockStructureError):
    b.declare_cursor("c", _select_one())


def test_declarations_are_only_allowed_in_blocks():
  b = BlockBuilder()
  with b.loop("l"):
    with pytest.raises(BlockStructureError):
      b.declare("x", int_())
    b.leave("l")


def test_undeclared_variables_raise():
  b = BlockBuilder()
  with pytest.raises(UndeclaredVariableError):
    b.set("y", 1)

  b = BlockBuilder()
  with pytest.raises(UndeclaredVariableError):
    b.declare("x", int_(), default=var("nope"))


def test_variables_of_closed_blocks_are_out_of_scope():
  b = BlockBuilder()
  with b.begin():
    b.declare("inner_only", int_())
  with pytest.raises(UndeclaredVariableError):
    b.set("inner_only", 1)


def test_session_variables_bypass_resolution(dialect):
  b = BlockBuilder()
  b.set("@counter", add(var("@counter"), 1))
  assert dialect.render_block(b.build()) == "BEGIN\n  SET @counter = @counter + 1;\nEND;"


def test_session_variables_cannot_be_declared():
  b = BlockBuilder()
  with pytest.raises(ValidationError):
    b.declare("@x", int_())


def test_conditions_and_signal(dialect):
  b = BlockBuilder()
  b.declare_condition("bad_input", ConditionValue.sql_state("45000"))
  b.declare_handler("EXIT", ConditionValue.condition("bad_input"), body=RawStmt("ROLLBACK"))
  b.signal(ConditionValue.condition("bad_input"))
  b.signal("45000", "Invalid value", errno=1644)

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE bad_input CONDITION FOR SQLSTATE '45000';",
    "  DECLARE EXIT HANDLER FOR bad_input ROLLBACK;",
    "  SIGNAL bad_input;",
    "  SIGNAL SQLSTATE '45000' SET MESSAGE_TEXT = 'Invalid value', MYSQL_ERRNO = 1644;",
    "END;",
  ])


def test_undeclared_condition_raises():
  b = BlockBuilder()
  with pytest.raises(UndeclaredConditionError):
    b.signal(ConditionValue.condition("missing"))

  b = BlockBuilder()
  with pytest.raises(UndeclaredConditionError):
    b.declare_handler("EXIT", ConditionValue.condition("missing"), body=RawStmt("DO 0"))


def test_condition_values_are_validated():
  with pytest.raises(ValidationError):
    ConditionValue.sql_state("00000")
  with pytest.raises(ValidationError):
    ConditionValue.sql_state("4500")
  with pytest.raises(ValidationError):
    ConditionValue.sql_error(0)


def test_undo_handlers_are_rejected():
  b = BlockBuilder()
  with pytest.raises(ValidationError):
    b.declare_handler("UNDO", ConditionValue.sql_exception(), body=RawStmt("DO 0"))


def test_handler_with_block_body(dialect):
  b = BlockBuilder()
  b.declare("err", int_(), default=0)
  with b.declare_handler("EXIT", [ConditionValue.sql_exception(), ConditionValue.sql_error(1062)]):
    b.set("err", 1)
    b.raw("ROLLBACK")
  b.raw("START TRANSACTION")

  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE err INT DEFAULT 0;",
    "  DECLARE EXIT HANDLER FOR SQLEXCEPTION, 1062",
    "    BEGIN",
    "      SET err = 1;",
    "      ROLLBACK;",
    "    END;",
    "  START TRANSACTION;",
    "END;",
  ])


@pytest.mark.parametrize("body", [EmptyStmt(), RawStmt("   "), DelimiterStmt("//")])
def test_handler_body_must_render_a_statement(body):
  b = BlockBuilder()
  with pytest.raises(BlockStructureError):
    b.declare_handler("CONTINUE", ConditionValue.not_found(), body=body)


def test_single_statement_handler_is_terminated(dialect):
  b = BlockBuilder()
  b.declare("done", int_(), default=0)
  b.declare_handler("CONTINUE", ConditionValue.not_found(), body=SetStmt((("done", 1),)))
  b.raw("DO 1")

  assert dialect.render_block(b.build()).splitlines()[2:4] == [
    "  DECLARE CONTINUE HANDLER FOR NOT FOUND SET done = 1;",
    "  DO 1;",
  ]


def test_call_statement(dialect):
  b = BlockBuilder()
  b.declare("n", int_(), default=3)
  b.call("audit.log_event", "start", var("n"))
  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  DECLARE n INT DEFAULT 3;",
    "  CALL audit.log_event('start', n);",
    "END;",
  ])


def test_delimiter_directives_are_rejected_in_bodies():
  b = BlockBuilder()
  with pytest.raises(BlockStructureError):
    b.raw("DELIMITER //")
  with pytest.raises(BlockStructureError):
    b.stmt(DelimiterStmt("//"))


# -------------------------------------------------------------------
# Pre-built nodes
# -------------------------------------------------------------------
def test_prebuilt_nodes_are_validated_against_the_live_scope():
  b = BlockBuilder()
  node = IfBlock((IfBranch(is_true(var("x")), (SetStmt((("x", 0),)),)),))
  with pytest.raises(UndeclaredVariableError):
    b.stmt(node)

  b = BlockBuilder()
  b.declare("x", int_())
  b.stmt(node)
  assert b.build().statements[1] == node


def test_prebuilt_loops_get_auto_labels():
  b = BlockBuilder()
  b.stmt(LoopStmt(None, (RawStmt("DO 1"),)))
  assert b.build().statements[0].label == "loop_1"


def test_prebuilt_leave_outside_loop_raises():
  b = BlockBuilder()
  with pytest.raises(UnresolvedLabelError):
    b.stmt(LoopStmt("a", (LeaveStmt("b"),)))


# -------------------------------------------------------------------
# Builder lifecycle and context manager
# -------------------------------------------------------------------
def test_builder_is_consumed_by_build():
  b = BlockBuilder()
  b.raw("DO 1")
  b.build()
  with pytest.raises(BlockStructureError):
    b.raw("DO 2")
  with pytest.raises(BlockStructureError):
    b.build()


def test_build_with_open_constructs_raises():
  b = BlockBuilder()
  b.loop("l")
  with pytest.raises(BlockStructureError) as excinfo:
    b.build()
  assert "LOOP 'l'" in str(excinfo.value)


def test_end_closes_innermost_construct(dialect):
  b = BlockBuilder()
  b.loop("l")
  b.begin()
  b.leave("l")
  b.end()
  b.end()
  assert dialect.render_block(b.build()) == "\n".join([
    "BEGIN",
    "  l: LOOP",
    "    BEGIN",
    "      LEAVE l;",
    "    END;",
    "  END LOOP;",
    "END;",
  ])


def test_mismatched_end_raises():
  b = BlockBuilder()
  b.loop("l")
  b.leave("l")
  with pytest.raises(BlockStructureError):
    b.end_while()
  with pytest.raises(BlockStructureError):
    BlockBuilder().end()


def test_with_block_detects_manual_close():
  b = BlockBuilder()
  with pytest.raises(BlockStructureError):
    with b.loop("l"):
      b.leave("l")
      b.end_loop()


def test_with_block_detects_unclosed_inner_construct():
  b = BlockBuilder()
  with pytest.raises(BlockStructureError):
    with b.loop("l"):
      b.leave("l")
      b.begin()
      b.raw("DO 1")


def test_built_blocks_carry_a_scope_snapshot():
  b = BlockBuilder()
  b.declare("x", int_())
  with b.loop("outer_loop"):
    with b.begin("inner_block"):
      b.leave("outer_loop")
  block = b.build()
  inner = block.statements[1].statements[0]
  assert inner.scope == {"labels": ["outer_loop", "inner_block"], "variables": ["x"]}
