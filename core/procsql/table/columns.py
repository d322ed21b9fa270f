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
Column types and column structures.

A ColumnStructure describes one typed slot: a table column, a DECLAREd
variable or a procedure parameter. Dialects turn it into type text, e.g.
VARCHAR(64), DECIMAL(10,2) UNSIGNED or ENUM('a','b').
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from procsql.errors import ValidationError
from procsql.rendering.expr import LITERAL_TYPES


class TypeParams(str, Enum):
  """Which parameters a column type takes between parentheses."""
  NONE = "none"
  LENGTH = "length"                    # optional length, e.g. INT or INT(11)
  REQUIRED_LENGTH = "required_length"  # VARCHAR(n), VARBINARY(n)
  PRECISION = "precision"              # optional (length[,scale]), e.g. DECIMAL(10,2)
  VALUES = "values"                    # ENUM('a','b'), SET('a','b')


class ColumnType(Enum):
  # Numeric
  TINYINT = ("TINYINT", TypeParams.LENGTH)
  SMALLINT = ("SMALLINT", TypeParams.LENGTH)
  MEDIUMINT = ("MEDIUMINT", TypeParams.LENGTH)
  INT = ("INT", TypeParams.LENGTH)
  BIGINT = ("BIGINT", TypeParams.LENGTH)
  BIT = ("BIT", TypeParams.LENGTH)
  BOOLEAN = ("BOOLEAN", TypeParams.NONE)
  FLOAT = ("FLOAT", TypeParams.PRECISION)
  DOUBLE = ("DOUBLE", TypeParams.PRECISION)
  DECIMAL = ("DECIMAL", TypeParams.PRECISION)
  REAL = ("REAL", TypeParams.PRECISION)

  # Date and time
  DATE = ("DATE", TypeParams.NONE)
  DATETIME = ("DATETIME", TypeParams.LENGTH)
  TIMESTAMP = ("TIMESTAMP", TypeParams.LENGTH)
  TIME = ("TIME", TypeParams.LENGTH)
  YEAR = ("YEAR", TypeParams.NONE)

  # Strings
  CHAR = ("CHAR", TypeParams.LENGTH)
  VARCHAR = ("VARCHAR", TypeParams.REQUIRED_LENGTH)
  TINYTEXT = ("TINYTEXT", TypeParams.NONE)
  TEXT = ("TEXT", TypeParams.NONE)
  MEDIUMTEXT = ("MEDIUMTEXT", TypeParams.NONE)
  LONGTEXT = ("LONGTEXT", TypeParams.NONE)
  BINARY = ("BINARY", TypeParams.LENGTH)
  VARBINARY = ("VARBINARY", TypeParams.REQUIRED_LENGTH)

  # Blobs
  TINYBLOB = ("TINYBLOB", TypeParams.NONE)
  BLOB = ("BLOB", TypeParams.NONE)
  MEDIUMBLOB = ("MEDIUMBLOB", TypeParams.NONE)
  LONGBLOB = ("LONGBLOB", TypeParams.NONE)

  # Enum and set
  ENUM = ("ENUM", TypeParams.VALUES)
  SET = ("SET", TypeParams.VALUES)

  JSON = ("JSON", TypeParams.NONE)

  def __init__(self, sql_name: str, params: TypeParams):
    self.sql_name = sql_name
    self.params = params

  @classmethod
  def parse(cls, name: str) -> "ColumnType":
    """Look a type up by its SQL name, case-insensitively (INTEGER and BOOL are accepted aliases)."""
    key = (name or "").strip().upper()
    key = {"INTEGER": "INT", "BOOL": "BOOLEAN"}.get(key, key)
    try:
      return cls[key]
    except KeyError as exc:
      raise ValidationError(f"Unknown column type: {name!r}") from exc

  def structure(self, length: Optional[int] = None, scale: Optional[int] = None, **kwargs) -> "ColumnStructure":
    """Convenience: ColumnType.VARCHAR.structure(64, nullable=False)."""
    return ColumnStructure(self, length=length, scale=scale, **kwargs)


class ColumnAttribute(str, Enum):
  BINARY = "BINARY"
  UNSIGNED = "UNSIGNED"
  UNSIGNED_ZEROFILL = "UNSIGNED ZEROFILL"
  ON_UPDATE_CURRENT_TIMESTAMP = "ON UPDATE CURRENT_TIMESTAMP"


class ColumnDefault(str, Enum):
  """Default values that are keywords rather than literals."""
  NULL = "NULL"
  CURRENT_TIMESTAMP = "CURRENT_TIMESTAMP"


@dataclass(frozen=True)
class ColumnStructure:
  """
  Type and constraints of a single column, variable or parameter.

  `default` is either a ColumnDefault keyword, a literal value or None for
  "no DEFAULT clause". Constraint fields (nullable, primary, unique,
  auto_increment, comment) only matter for table columns.
  """
  type: ColumnType
  length: Optional[int] = None
  scale: Optional[int] = None
  values: Tuple[str, ...] = ()
  attribute: Optional[ColumnAttribute] = None
  nullable: bool = True
  default: Any = None
  primary: bool = False
  unique: bool = False
  auto_increment: bool = False
  comment: Optional[str] = None

  def __post_init__(self):
    column_type = self.type
    if isinstance(column_type, str):
      column_type = ColumnType.parse(column_type)
      object.__setattr__(self, "type", column_type)
    if self.attribute is not None:
      object.__setattr__(self, "attribute", ColumnAttribute(self.attribute))
    object.__setattr__(self, "values", tuple(self.values))

    params = column_type.params
    for name in ("length", "scale"):
      value = getattr(self, name)
      if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
        raise ValidationError(f"{column_type.sql_name} {name} must be a non-negative integer, got {value!r}")

    if params is TypeParams.REQUIRED_LENGTH and self.length is None:
      raise ValidationError(f"{column_type.sql_name} requires a length")
    if params in (TypeParams.NONE, TypeParams.VALUES) and self.length is not None:
      raise ValidationError(f"{column_type.sql_name} takes no length")
    if self.scale is not None:
      if params is not TypeParams.PRECISION:
        raise ValidationError(f"{column_type.sql_name} takes no scale")
      if self.length is None:
        raise ValidationError("Cannot set a scale without setting a length")
    if params is TypeParams.VALUES:
      if not self.values:
        raise ValidationError(f"{column_type.sql_name} requires at least one value")
      if not all(isinstance(v, str) for v in self.values):
        raise ValidationError(f"{column_type.sql_name} values must be strings")
    elif self.values:
      raise ValidationError(f"{column_type.sql_name} takes no value list")

    default = self.default
    if default is not None and not isinstance(default, (ColumnDefault,) + LITERAL_TYPES):
      raise ValidationError(f"Unsupported column default: {default!r}")
    if default is ColumnDefault.NULL and not self.nullable:
      raise ValidationError("Default value may not be NULL when null is not allowed.")
    if self.auto_increment and default is not None:
      raise ValidationError("An AUTO_INCREMENT column cannot have a default value")


def varchar(length: int, **kwargs) -> ColumnStructure:
  return ColumnStructure(ColumnType.VARCHAR, length=length, **kwargs)


def char(length: int, **kwargs) -> ColumnStructure:
  return ColumnStructure(ColumnType.CHAR, length=length, **kwargs)


def int_(**kwargs) -> ColumnStructure:
  return ColumnStructure(ColumnType.INT, **kwargs)


def decimal(length: int, scale: Optional[int] = None, **kwargs) -> ColumnStructure:
  return ColumnStructure(ColumnType.DECIMAL, length=length, scale=scale, **kwargs)
