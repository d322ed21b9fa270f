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

import datetime
import uuid
from decimal import Decimal

import pytest

from procsql.errors import UnsupportedTypeError
from procsql.rendering.dialects.mysql import MySqlDialect
from procsql.rendering.expr import Literal


def _decode_mysql_string(sql: str) -> str:
  """Minimal reader for the string literals produced by render_literal."""
  assert sql.startswith("'") and sql.endswith("'")
  body = sql[1:-1]
  escapes = {"\\": "\\", "0": "\x00", "Z": "\x1a"}
  out = []
  i = 0
  while i < len(body):
    c = body[i]
    if c == "\\":
      out.append(escapes[body[i + 1]])
      i += 2
    elif c == "'":
      # only doubled quotes may appear inside the literal
      assert body[i + 1] == "'"
      out.append("'")
      i += 2
    else:
      out.append(c)
      i += 1
  return "".join(out)


def test_render_literal_null_and_booleans():
  dialect = MySqlDialect()
  assert dialect.render_literal(None) == "NULL"
  assert dialect.render_literal(True) == "TRUE"
  assert dialect.render_literal(False) == "FALSE"


def test_render_literal_numeric():
  dialect = MySqlDialect()
  assert dialect.render_literal(42) == "42"
  assert dialect.render_literal(-7) == "-7"
  assert dialect.render_literal(3.5) == "3.5"
  assert dialect.render_literal(Decimal("10.25")) == "10.25"
  # no exponent notation for decimals
  assert dialect.render_literal(Decimal("1E+2")) == "100"


def test_render_literal_string_with_quote_escaping():
  dialect = MySqlDialect()
  assert dialect.render_literal("hello") == "'hello'"
  assert dialect.render_literal("O'Malley") == "'O''Malley'"


def test_render_literal_string_escapes_backslash_nul_and_ctrl_z():
  dialect = MySqlDialect()
  assert dialect.render_literal("a\\b") == "'a\\\\b'"
  assert dialect.render_literal("a\x00b") == "'a\\0b'"
  assert dialect.render_literal("\x1a") == "'\\Z'"


@pytest.mark.parametrize(
  "value",
  [
    "",
    "it's",
    "\\'",
    "''\\\\",
    "line\nbreak\ttab",
    "nul\x00in the middle\x1a",
    "ünïcödé €",
    "'; DROP TABLE t1; --",
  ],
)
def test_string_literals_read_back_unchanged(value):
  dialect = MySqlDialect()
  assert _decode_mysql_string(dialect.render_literal(value)) == value


def test_render_literal_bytes_as_hex():
  dialect = MySqlDialect()
  assert dialect.render_literal(b"\x01\xab") == "X'01AB'"
  assert dialect.render_literal(bytearray(b"")) == "X''"


def test_render_literal_date_and_time():
  dialect = MySqlDialect()
  assert dialect.render_literal(datetime.date(2024, 5, 17)) == "DATE '2024-05-17'"
  assert dialect.render_literal(datetime.time(8, 5)) == "TIME '08:05:00'"


def test_render_literal_datetime():
  dialect = MySqlDialect()
  dt = datetime.datetime(2024, 5, 17, 14, 30, 5)
  assert dialect.render_literal(dt) == "TIMESTAMP '2024-05-17 14:30:05'"

  with_micros = datetime.datetime(2024, 5, 17, 14, 30, 5, 120)
  assert dialect.render_literal(with_micros) == "TIMESTAMP '2024-05-17 14:30:05.000120'"


def test_render_literal_aware_datetime_is_converted_to_utc():
  dialect = MySqlDialect()
  tz = datetime.timezone(datetime.timedelta(hours=2))
  dt = datetime.datetime(2024, 5, 17, 14, 30, 5, tzinfo=tz)
  assert dialect.render_literal(dt) == "TIMESTAMP '2024-05-17 12:30:05'"


def test_render_literal_uuid():
  dialect = MySqlDialect()
  value = uuid.UUID("12345678-1234-5678-1234-567812345678")
  assert dialect.render_literal(value) == "'12345678-1234-5678-1234-567812345678'"


def test_render_literal_rejects_unsupported_values():
  dialect = MySqlDialect()
  with pytest.raises(UnsupportedTypeError):
    dialect.render_literal(object())
  with pytest.raises(UnsupportedTypeError):
    dialect.render_literal(float("nan"))
  with pytest.raises(UnsupportedTypeError):
    dialect.render_literal(Decimal("Infinity"))


def test_literal_node_rejects_unsupported_values_at_construction():
  with pytest.raises(UnsupportedTypeError):
    Literal(float("inf"))
  with pytest.raises(UnsupportedTypeError):
    Literal({"a": 1})
  # also a TypeError for callers that do not know procsql's hierarchy
  with pytest.raises(TypeError):
    Literal([1, 2])
