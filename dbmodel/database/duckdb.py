"""DuckDB catalog reader."""

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

from dbmodel.database.base import CatalogReader
from dbmodel.database.models import RawColumn, RawForeignKey, RawKeyConstraint
from dbmodel.errors import CatalogConnectionError, CatalogPermissionError

logger = logging.getLogger(__name__)


class DuckDBCatalogReader(CatalogReader):
    """Reads catalog metadata from a DuckDB database."""

    dialect = "duckdb"

    EXCLUDED_SCHEMAS = {'information_schema', 'pg_catalog'}

    def __init__(
        self,
        connection: Any = None,
        database_path: Optional[str] = None,
        read_only: bool = True,
    ):
        """Initialize the reader.

        Args:
            connection: An open duckdb connection owned by the caller
            database_path: Path to .duckdb file (or :memory:), opened lazily
                           when no connection is given
            read_only: Open the file read-only (default True for introspection)
        """
        super().__init__(connection)
        self.database_path = database_path
        self.read_only = read_only

    def get_database_name(self) -> str:
        """Database name derived from the file path."""
        if not self.database_path or self.database_path == ':memory:':
            return 'memory'
        return Path(self.database_path).stem

    def connect(self):
        """Return the connection, opening the database file if needed."""
        if self._connection is not None:
            return self._connection

        try:
            import duckdb
        except ImportError:
            raise ImportError(
                "duckdb is required. "
                "Install it with: pip install duckdb"
            )

        path = self.database_path or ':memory:'
        if path.startswith('duckdb:///'):
            path = path[10:]
        try:
            if path == ':memory:':
                self._connection = duckdb.connect(path)
            else:
                self._connection = duckdb.connect(path, read_only=self.read_only)
        except duckdb.Error as e:
            raise CatalogConnectionError(
                f"Could not open DuckDB database: {e}",
                details={"path": path},
            ) from e
        self._owns_connection = True
        return self._connection

    def _run(self, sql: str, params: Sequence[Any]) -> List[tuple]:
        import duckdb

        conn = self.connect()
        try:
            return conn.execute(sql, list(params)).fetchall()
        except duckdb.PermissionException as e:
            raise CatalogPermissionError(f"Permission denied reading catalog: {e}") from e
        except (duckdb.ConnectionException, duckdb.IOException) as e:
            raise CatalogConnectionError(f"Connection failed while reading catalog: {e}") from e

    def get_schemas(self) -> List[str]:
        """Get all user schemas in the database."""
        rows = self._run("""
            SELECT schema_name
            FROM information_schema.schemata
            WHERE catalog_name = current_database()
            ORDER BY schema_name
        """, ())
        return [row[0] for row in rows if row[0].lower() not in self.EXCLUDED_SCHEMAS]

    def get_tables(self, schema: str) -> List[str]:
        """Get all base tables in a schema."""
        rows = self._run("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = ?
              AND table_catalog = current_database()
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """, (schema,))
        return [row[0] for row in rows]

    def get_columns(self, schema: str) -> List[RawColumn]:
        """Get all columns of all tables in a schema."""
        rows = self._run("""
            SELECT
                c.table_name,
                c.column_name,
                c.data_type,
                c.is_nullable,
                c.column_default,
                c.ordinal_position
            FROM information_schema.columns c
            JOIN information_schema.tables t
              ON t.table_catalog = c.table_catalog
             AND t.table_schema = c.table_schema
             AND t.table_name = c.table_name
            WHERE c.table_schema = ?
              AND c.table_catalog = current_database()
              AND t.table_type = 'BASE TABLE'
            ORDER BY c.table_name, c.ordinal_position
        """, (schema,))

        return [
            RawColumn(
                table=row[0],
                name=row[1],
                data_type=row[2],
                is_nullable=(row[3] == 'YES'),
                default=row[4],
                position=row[5],
            )
            for row in rows
        ]

    def _constraint_rows(self, schema: str, constraint_types: Sequence[str]) -> List[tuple]:
        """Rows from duckdb_constraints() for the given constraint types."""
        placeholders = ", ".join("?" for _ in constraint_types)
        return self._run(f"""
            SELECT
                table_name,
                constraint_name,
                constraint_type,
                constraint_column_names,
                referenced_table,
                referenced_column_names
            FROM duckdb_constraints()
            WHERE schema_name = ?
              AND database_name = current_database()
              AND constraint_type IN ({placeholders})
            ORDER BY table_name, constraint_index
        """, (schema, *constraint_types))

    def get_key_constraints(self, schema: str) -> List[RawKeyConstraint]:
        """Get PRIMARY KEY and UNIQUE constraints of a schema."""
        return [
            RawKeyConstraint(
                table=row[0],
                name=row[1],
                constraint_type=row[2],
                columns=tuple(row[3]),
            )
            for row in self._constraint_rows(schema, ("PRIMARY KEY", "UNIQUE"))
        ]

    def get_foreign_keys(self, schema: str) -> List[RawForeignKey]:
        """Get foreign keys of a schema.

        DuckDB only supports NO ACTION semantics for foreign keys.
        """
        return [
            RawForeignKey(
                table=row[0],
                name=row[1],
                columns=tuple(row[3]),
                referenced_table=row[4],
                referenced_columns=tuple(row[5]),
            )
            for row in self._constraint_rows(schema, ("FOREIGN KEY",))
        ]
