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

import logging
from typing import Optional, Type

import yaml

from procsql.config import profiles
from procsql.rendering.dialects.base import SqlDialect
from procsql.rendering.dialects.mysql import MySqlDialect
from procsql.utils.env import env_str

"""
SQL dialect adapters.

Each dialect implements SqlDialect and knows how to render expressions,
queries and stored-program trees into concrete SQL strings.
"""

logger = logging.getLogger(__name__)

FALLBACK_DIALECT = "mysql"

# Registry of known dialects. Further dialects are added with register_dialect().
_DIALECT_REGISTRY: dict[str, Type[SqlDialect]] = {
  "mysql": MySqlDialect,
}


def register_dialect(dialect_cls: Type[SqlDialect], name: Optional[str] = None) -> None:
  key = (name or dialect_cls.DIALECT_NAME).lower()
  _DIALECT_REGISTRY[key] = dialect_cls


def get_available_dialect_names() -> list[str]:
  return sorted(_DIALECT_REGISTRY)


def _load_profile_quietly(profiles_path: Optional[str] = None):
  try:
    return profiles.load_profile(profiles_path)
  except FileNotFoundError as exc:
    logger.debug("No procsql profile found, using built-in defaults: %s", exc)
  except (KeyError, ValueError, yaml.YAMLError) as exc:
    logger.warning("Ignoring misconfigured procsql profile: %s", exc)
  return None


def _resolve_dialect_name(explicit: Optional[str] = None, profile=None) -> str:
  """
  Resolve a dialect name from (in order):

  1. explicit argument
  2. environment variable PROCSQL_SQL_DIALECT
  3. active profile.default_dialect
  4. hard fallback 'mysql'
  """
  # 1) Explicit argument
  if explicit:
    return explicit.lower()

  # 2) Env override
  env_name = env_str("PROCSQL_SQL_DIALECT")
  if env_name:
    return env_name.lower()

  # 3) Profile.default_dialect
  if profile is not None and profile.default_dialect:
    return profile.default_dialect.lower()

  # 4) Hard fallback
  logger.debug("No dialect configured, falling back to %s", FALLBACK_DIALECT)
  return FALLBACK_DIALECT


def get_dialect(name: str, **options) -> SqlDialect:
  """
  Instantiate a registered dialect by name.

  Raises:
      ValueError: if the name is not registered.
  """
  try:
    dialect_cls = _DIALECT_REGISTRY[name.lower()]
  except KeyError as exc:
    available = ", ".join(get_available_dialect_names())
    raise ValueError(
      f"Unknown SQL dialect: {name!r}. "
      f"Available dialects: {available}."
    ) from exc
  return dialect_cls(**options)


def get_active_dialect(name: Optional[str] = None, profiles_path: Optional[str] = None) -> SqlDialect:
  """
  Return an instance of the active SqlDialect, configured with the
  delimiter and indentation of the active profile (if any).

  Resolution order for the dialect name:
    - `name` argument (if provided)
    - PROCSQL_SQL_DIALECT env var
    - active profile's `default_dialect`
    - hard fallback 'mysql'

  Raises:
      ValueError: if the resolved name is not registered.
  """
  profile = _load_profile_quietly(profiles_path)
  dialect_name = _resolve_dialect_name(name, profile)
  if profile is None:
    return get_dialect(dialect_name)
  return get_dialect(dialect_name, indent=profile.indent, delimiter=profile.delimiter)
