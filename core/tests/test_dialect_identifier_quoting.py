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
Identifier and label quoting for the MySQL dialect.
"""

import pytest

from procsql.errors import EscapingError
from procsql.procedure.block_builder import BlockBuilder
from procsql.query.builder import SelectBuilder
from procsql.rendering.dialects.base import check_label
from procsql.rendering.dialects.mysql import MySqlDialect
from procsql.rendering.dsl import func


def test_plain_identifiers_stay_unquoted():
  dialect = MySqlDialect()
  assert dialect.render_identifier("user_id") == "user_id"
  assert dialect.render_identifier("Amount$") == "Amount$"


@pytest.mark.parametrize("keyword", ["select", "ORDER", "Group", "key"])
def test_reserved_keywords_are_quoted_in_any_case(keyword):
  dialect = MySqlDialect()
  assert dialect.render_identifier(keyword) == f"`{keyword}`"


def test_special_characters_force_quoting():
  dialect = MySqlDialect()
  assert dialect.render_identifier("my col") == "`my col`"
  assert dialect.render_identifier("1abc") == "`1abc`"
  assert dialect.render_identifier("a-b") == "`a-b`"


def test_embedded_backticks_are_doubled():
  dialect = MySqlDialect()
  assert dialect.quote_ident("a`b") == "`a``b`"
  assert dialect.render_identifier("``") == "``````"


@pytest.mark.parametrize("name", ["", "a\x00b", "emoji\U0001F600", "total ", "t.col "])
def test_unquotable_identifiers_raise(name):
  dialect = MySqlDialect()
  with pytest.raises(EscapingError):
    dialect.render_identifier(name)


def test_qualified_names_are_quoted_per_part():
  dialect = MySqlDialect()
  assert dialect.render_table_identifier("test", "t1") == "test.t1"
  assert dialect.render_table_identifier("my db", "order") == "`my db`.`order`"
  assert dialect.render_qualified_name("db.select") == "db.`select`"


def test_session_variables():
  dialect = MySqlDialect()
  assert dialect.render_variable("@counter") == "@counter"
  assert dialect.render_variable("@my var") == "@`my var`"
  assert dialect.render_variable("NEW.total") == "NEW.total"


def test_reserved_column_name_in_select_is_quoted():
  dialect = MySqlDialect()
  sql = SelectBuilder.create("t").select("select", "id").to_sql(dialect)
  assert sql == "SELECT `select`, id FROM t"


def test_labels_must_be_plain_and_unreserved():
  assert check_label("read_loop") == "read_loop"
  with pytest.raises(EscapingError):
    check_label("my label")
  with pytest.raises(EscapingError):
    check_label("leave")


def test_block_builder_rejects_reserved_loop_label():
  b = BlockBuilder()
  with pytest.raises(EscapingError):
    b.loop("select")


def test_function_names_cannot_carry_sql():
  with pytest.raises(EscapingError):
    func("DROP TABLE x; --")
