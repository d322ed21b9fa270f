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

from decimal import Decimal

import pytest

from procsql.errors import DuplicateDeclarationError, ValidationError
from procsql.table.columns import (
  ColumnAttribute,
  ColumnDefault,
  ColumnStructure,
  ColumnType,
  decimal,
  int_,
  varchar,
)
from procsql.table.structure import ForeignKey, IndexKind, TableIndex, TableStructure


def test_column_type_strings(dialect):
  assert dialect.render_column_type(varchar(64)) == "VARCHAR(64)"
  assert dialect.render_column_type(decimal(10, 2, attribute="UNSIGNED")) == "DECIMAL(10,2) UNSIGNED"
  assert dialect.render_column_type(ColumnType.INT.structure()) == "INT"
  assert dialect.render_column_type(ColumnType.parse("integer").structure(11)) == "INT(11)"
  enum = ColumnStructure(ColumnType.ENUM, values=("a", "it's"))
  assert dialect.render_column_type(enum) == "ENUM('a','it''s')"


def test_column_structure_validation():
  with pytest.raises(ValidationError):
    ColumnStructure(ColumnType.VARCHAR)
  with pytest.raises(ValidationError):
    ColumnStructure(ColumnType.DECIMAL, scale=2)
  with pytest.raises(ValidationError):
    ColumnStructure(ColumnType.TEXT, length=10)
  with pytest.raises(ValidationError):
    ColumnStructure(ColumnType.ENUM)
  with pytest.raises(ValidationError):
    int_(nullable=False, default=ColumnDefault.NULL)
  with pytest.raises(ValidationError):
    int_(auto_increment=True, default=0)
  with pytest.raises(ValidationError):
    ColumnType.parse("NUMBERISH")


def test_create_table(dialect):
  table = TableStructure(
    name="users",
    schema="app",
    columns={
      "id": int_(attribute="UNSIGNED", nullable=False, auto_increment=True, primary=True),
      "email": varchar(255, nullable=False, unique=True),
      "status": ColumnStructure(ColumnType.ENUM, values=("active", "blocked"), default="active"),
      "balance": decimal(10, 2, default=Decimal("0.00")),
      "updated_at": ColumnStructure(
        ColumnType.TIMESTAMP,
        default=ColumnDefault.CURRENT_TIMESTAMP,
        attribute=ColumnAttribute.ON_UPDATE_CURRENT_TIMESTAMP,
      ),
      "team_id": int_(),
    },
    indexes=(TableIndex(("status",), name="ix_status"),),
    foreign_keys=(
      ForeignKey(("team_id",), "app.teams", ("id",), on_delete="CASCADE", name="fk_team"),
    ),
    comment="Registered users",
  )

  assert dialect.render_create_table(table) == "\n".join([
    "CREATE TABLE IF NOT EXISTS app.users (",
    "  id INT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY,",
    "  email VARCHAR(255) NOT NULL UNIQUE,",
    "  status ENUM('active','blocked') NULL DEFAULT 'active',",
    "  balance DECIMAL(10,2) NULL DEFAULT 0.00,",
    "  updated_at TIMESTAMP NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,",
    "  team_id INT NULL,",
    "  INDEX ix_status (status),",
    "  CONSTRAINT fk_team FOREIGN KEY (team_id) REFERENCES app.teams (id) ON DELETE CASCADE ON UPDATE NO ACTION",
    ") COMMENT = 'Registered users';",
  ])


def test_create_table_with_composite_key_and_quoted_names(dialect):
  table = TableStructure(
    name="order",
    columns=(("key", varchar(10)), ("line", int_()), ("note", ColumnType.TEXT.structure())),
    primary_key=("key", "line"),
    indexes=(TableIndex("note", IndexKind.FULLTEXT),),
  )

  assert dialect.render_create_table(table, if_not_exists=False) == "\n".join([
    "CREATE TABLE `order` (",
    "  `key` VARCHAR(10) NULL,",
    "  line INT NULL,",
    "  note TEXT NULL,",
    "  PRIMARY KEY (`key`, line),",
    "  FULLTEXT INDEX (note)",
    ");",
  ])


def test_table_structure_validation():
  with pytest.raises(DuplicateDeclarationError):
    TableStructure(name="t", columns=(("a", int_()), ("A", int_())))
  with pytest.raises(ValidationError):
    TableStructure(name="t", columns={"a": int_()}, primary_key=("b",))
  with pytest.raises(ValidationError):
    TableStructure(name="t", columns={"a": int_(primary=True)}, primary_key=("a",))
  with pytest.raises(ValidationError):
    ForeignKey(("a", "b"), "other", ("id",))


def test_column_lookup_is_case_insensitive():
  table = TableStructure(name="t", columns={"Amount": decimal(8, 2)})
  assert table.column("amount").scale == 2
  with pytest.raises(KeyError):
    table.column("missing")
