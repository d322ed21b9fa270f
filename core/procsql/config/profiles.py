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
from pathlib import Path
from typing import Optional

import yaml

from procsql.utils.env import env_int, env_str

"""
Profile loading for procsql.

Profiles define rendering defaults for a given environment:
- the default SQL dialect
- the statement delimiter used around stored programs
- indentation width of rendered bodies
- the prefix of auto-generated loop labels

Environment variables PROCSQL_DELIMITER and PROCSQL_INDENT override the
values of the active profile.
"""

PROFILES_FILENAME = "procsql_profiles.yaml"


@dataclass
class Profile:
  name: str

  # Dialect used for SQL generation (unless env override)
  default_dialect: str = "mysql"

  # Sentinel that terminates a stored program while the client delimiter is switched
  delimiter: str = "$$"

  # Spaces per nesting level
  indent: int = 2

  # Auto-generated loop labels are <label_prefix>_<n>
  label_prefix: str = "loop"


def _find_profiles_path(explicit_path: str | None = None) -> Path:
  """
  Locate procsql_profiles.yaml in several common locations:

  1. explicit_path argument (if provided and exists)
  2. PROCSQL_PROFILES_PATH env var (if set and exists)
  3. common fallback locations relative to the package and CWD

  Raises:
      FileNotFoundError: if no suitable file can be found.
  """
  candidates: list[Path] = []

  # 1) explicit argument
  if explicit_path:
    candidates.append(Path(explicit_path))

  # 2) environment
  env_path = env_str("PROCSQL_PROFILES_PATH")
  if env_path:
    candidates.append(Path(env_path))

  # 3) fallbacks
  here = Path(__file__).resolve()
  candidates += [
    here.parents[3] / "config" / PROFILES_FILENAME,
    Path.cwd() / "config" / PROFILES_FILENAME,
    Path("/etc/procsql") / PROFILES_FILENAME,
  ]

  for c in candidates:
    if c and c.exists():
      return c

  searched = ", ".join(str(c) for c in candidates)
  raise FileNotFoundError(
    f"{PROFILES_FILENAME} not found in expected locations ({searched}). "
    "Provide an explicit path or configure PROCSQL_PROFILES_PATH."
  )


def _validate(profile: Profile, path: Path) -> Profile:
  delimiter = profile.delimiter
  if not isinstance(delimiter, str) or not delimiter or delimiter == ";":
    raise ValueError(f"Profile '{profile.name}' in {path}: delimiter must be a non-empty string other than ';'")
  if any(c.isspace() for c in delimiter) or "\\" in delimiter:
    raise ValueError(f"Profile '{profile.name}' in {path}: delimiter {delimiter!r} contains whitespace or a backslash")
  if isinstance(profile.indent, bool) or not isinstance(profile.indent, int) or profile.indent < 0:
    raise ValueError(f"Profile '{profile.name}' in {path}: indent must be a non-negative integer")
  if not str(profile.label_prefix or "").isidentifier():
    raise ValueError(f"Profile '{profile.name}' in {path}: label_prefix must be a plain identifier")
  return profile


def load_profile(profiles_path: Optional[str] = None) -> Profile:
  """
  Load and return the current active profile.

  Resolution order:
    - PROCSQL_PROFILE env var
    - `active_profile` key in procsql_profiles.yaml
    - default 'dev'
  """
  path = _find_profiles_path(profiles_path)

  with open(path, "r") as f:
    data = yaml.safe_load(f) or {}

  active = env_str("PROCSQL_PROFILE", data.get("active_profile", "dev"))
  profiles = data.get("profiles") or {}

  if active not in profiles:
    available = ", ".join(sorted(profiles)) if profiles else "(none)"
    raise KeyError(
      f"Active profile '{active}' not found in {PROFILES_FILENAME} "
      f"at {path}. Available profiles: {available}."
    )

  p = profiles[active] or {}

  profile = Profile(
    name=active,
    default_dialect=p.get("default_dialect", "mysql"),
    delimiter=env_str("PROCSQL_DELIMITER", p.get("delimiter", "$$")),
    indent=env_int("PROCSQL_INDENT", p.get("indent", 2)),
    label_prefix=p.get("label_prefix", "loop"),
  )
  return _validate(profile, path)
