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
procsql composes MySQL queries and stored-program bodies as immutable
statement trees, validates labels, declarations and cursor usage while the
tree is built, and renders the result with a delimiter switch.

    from procsql.procedure.block_builder import ProcedureBuilder
    from procsql.rendering.dialects.mysql import MySqlDialect
"""

__version__ = "0.3.0"
