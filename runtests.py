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

import sys
from pathlib import Path

import pytest


def main():
  """Put the package sources on sys.path and run pytest."""
  root = Path(__file__).resolve().parent

  # Ensure core/ is on sys.path so 'procsql' can be imported without installing
  core = root / "core"
  if str(core) not in sys.path:
    sys.path.insert(0, str(core))

  # Run tests in core/tests
  return pytest.main([str(root / "core" / "tests")])


if __name__ == "__main__":
  raise SystemExit(main())
