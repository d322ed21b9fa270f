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

import pytest

from procsql.rendering.dialects.mysql import MySqlDialect


_PROCSQL_ENV_VARS = (
  "PROCSQL_SQL_DIALECT",
  "PROCSQL_PROFILE",
  "PROCSQL_PROFILES_PATH",
  "PROCSQL_DELIMITER",
  "PROCSQL_INDENT",
)


@pytest.fixture(autouse=True)
def clean_procsql_env(monkeypatch):
  """Keep developer shell settings from leaking into rendering tests."""
  for key in _PROCSQL_ENV_VARS:
    monkeypatch.delenv(key, raising=False)
  yield


@pytest.fixture
def dialect():
  """MySQL dialect with default indentation and delimiter."""
  return MySqlDialect()
