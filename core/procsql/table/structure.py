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

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple, Union

from procsql.errors import DuplicateDeclarationError, ValidationError
from procsql.table.columns import ColumnStructure


class IndexKind(str, Enum):
  INDEX = "INDEX"
  UNIQUE = "UNIQUE"
  FULLTEXT = "FULLTEXT"
  SPATIAL = "SPATIAL"


@dataclass(frozen=True)
class TableIndex:
  columns: Tuple[str, ...]
  kind: IndexKind = IndexKind.INDEX
  name: Optional[str] = None

  def __post_init__(self):
    columns = (self.columns,) if isinstance(self.columns, str) else tuple(self.columns)
    if not columns:
      raise ValidationError("An index needs at least one column")
    object.__setattr__(self, "columns", columns)
    object.__setattr__(self, "kind", IndexKind(self.kind))


class ForeignKeyAction(str, Enum):
  NO_ACTION = "NO ACTION"
  RESTRICT = "RESTRICT"
  SET_NULL = "SET NULL"
  CASCADE = "CASCADE"


@dataclass(frozen=True)
class ForeignKey:
  """
  FOREIGN KEY (columns) REFERENCES table (reference_columns)
  with explicit ON DELETE / ON UPDATE actions.
  """
  columns: Tuple[str, ...]
  reference_table: str
  reference_columns: Tuple[str, ...]
  on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION
  on_update: ForeignKeyAction = ForeignKeyAction.NO_ACTION
  name: Optional[str] = None

  def __post_init__(self):
    columns = (self.columns,) if isinstance(self.columns, str) else tuple(self.columns)
    refs = (
      (self.reference_columns,)
      if isinstance(self.reference_columns, str)
      else tuple(self.reference_columns)
    )
    if not columns or len(columns) != len(refs):
      raise ValidationError(
        f"Foreign key maps {len(columns)} columns onto {len(refs)} referenced columns"
      )
    object.__setattr__(self, "columns", columns)
    object.__setattr__(self, "reference_columns", refs)
    object.__setattr__(self, "on_delete", ForeignKeyAction(self.on_delete))
    object.__setattr__(self, "on_update", ForeignKeyAction(self.on_update))


@dataclass(frozen=True)
class TableStructure:
  """
  A table definition rendered as CREATE TABLE by the dialect.

  `columns` keeps definition order; a mapping is accepted and converted.
  """
  name: str
  columns: Tuple[Tuple[str, ColumnStructure], ...]
  schema: Optional[str] = None
  primary_key: Tuple[str, ...] = ()
  indexes: Tuple[TableIndex, ...] = ()
  foreign_keys: Tuple[ForeignKey, ...] = ()
  comment: Optional[str] = None

  def __post_init__(self):
    columns: Union[Mapping, tuple] = self.columns
    if isinstance(columns, Mapping):
      columns = tuple(columns.items())
    columns = tuple((name, structure) for name, structure in columns)
    if not columns:
      raise ValidationError(f"Table '{self.name}' needs at least one column")

    seen = set()
    for name, structure in columns:
      if not isinstance(structure, ColumnStructure):
        raise ValidationError(f"Column '{name}' needs a ColumnStructure, got {type(structure).__name__}")
      key = name.lower()
      if key in seen:
        raise DuplicateDeclarationError(name, kind="column")
      seen.add(key)

    primary_key = (
      (self.primary_key,) if isinstance(self.primary_key, str) else tuple(self.primary_key)
    )
    inline_primary = [name for name, structure in columns if structure.primary]
    if primary_key and inline_primary:
      raise ValidationError("Declare the primary key either on a column or on the table, not both")
    if len(inline_primary) > 1:
      raise ValidationError("Only one column can be marked primary; use primary_key for composite keys")

    def _check(cols, what):
      for c in cols:
        if c.lower() not in seen:
          raise ValidationError(f"{what} refers to unknown column '{c}'")

    _check(primary_key, "PRIMARY KEY")
    for index in self.indexes:
      _check(index.columns, "Index")
    for fk in self.foreign_keys:
      _check(fk.columns, "Foreign key")

    object.__setattr__(self, "columns", columns)
    object.__setattr__(self, "primary_key", primary_key)
    object.__setattr__(self, "indexes", tuple(self.indexes))
    object.__setattr__(self, "foreign_keys", tuple(self.foreign_keys))

  def column(self, name: str) -> ColumnStructure:
    for column_name, structure in self.columns:
      if column_name.lower() == name.lower():
        return structure
    raise KeyError(name)
