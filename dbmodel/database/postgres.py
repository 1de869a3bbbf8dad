"""PostgreSQL catalog reader."""

import logging
from typing import Any, List, Optional, Sequence

from dbmodel.database.base import CatalogReader
from dbmodel.database.models import RawColumn, RawForeignKey, RawIndex, RawKeyConstraint
from dbmodel.errors import CatalogConnectionError, CatalogPermissionError

logger = logging.getLogger(__name__)

# pg_constraint.confdeltype / confupdtype codes
FK_ACTIONS = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}

INSUFFICIENT_PRIVILEGE = "42501"


class PostgresCatalogReader(CatalogReader):
    """Reads catalog metadata from PostgreSQL through psycopg2."""

    dialect = "postgres"

    EXCLUDED_SCHEMAS = {'information_schema', 'pg_catalog', 'pg_toast'}

    def __init__(self, connection: Any = None, dsn: Optional[str] = None):
        """Initialize the reader.

        Args:
            connection: An open psycopg2 connection owned by the caller
            dsn: Connection string used to open a connection lazily when
                 no connection is given
        """
        super().__init__(connection)
        self.dsn = dsn

    def connect(self):
        """Return the connection, opening one from the DSN if needed."""
        if self._connection is not None:
            return self._connection

        try:
            import psycopg2
        except ImportError:
            raise ImportError(
                "psycopg2 is required for PostgreSQL introspection. "
                "Install it with: pip install psycopg2-binary"
            )

        if not self.dsn:
            raise CatalogConnectionError("No connection or DSN given for PostgreSQL")

        try:
            self._connection = psycopg2.connect(self.dsn)
        except psycopg2.Error as e:
            raise CatalogConnectionError(
                f"Could not connect to PostgreSQL: {e}",
                details={"dsn": self.dsn},
            ) from e
        self._owns_connection = True
        return self._connection

    def _run(self, sql: str, params: Sequence[Any]) -> List[tuple]:
        import psycopg2
        import psycopg2.errors

        conn = self.connect()
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, tuple(params))
                return cursor.fetchall()
            finally:
                cursor.close()
        except psycopg2.Error as e:
            if isinstance(e, psycopg2.errors.InsufficientPrivilege) or \
                    getattr(e, "pgcode", None) == INSUFFICIENT_PRIVILEGE:
                raise CatalogPermissionError(
                    f"Permission denied reading catalog: {e}"
                ) from e
            if isinstance(e, (psycopg2.OperationalError, psycopg2.InterfaceError)):
                raise CatalogConnectionError(
                    f"Connection failed while reading catalog: {e}"
                ) from e
            raise

    def get_schemas(self) -> List[str]:
        """Get all user schemas in the database."""
        rows = self._run("""
            SELECT schema_name
            FROM information_schema.schemata
            ORDER BY schema_name
        """, ())
        return [row[0] for row in rows if row[0].lower() not in self.EXCLUDED_SCHEMAS]

    def get_tables(self, schema: str) -> List[str]:
        """Get all base tables in a schema."""
        rows = self._run("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
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
                c.ordinal_position,
                c.udt_name
            FROM information_schema.columns c
            JOIN information_schema.tables t
              ON t.table_schema = c.table_schema
             AND t.table_name = c.table_name
            WHERE c.table_schema = %s
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
                udt_name=row[6],
            )
            for row in rows
        ]

    def get_key_constraints(self, schema: str) -> List[RawKeyConstraint]:
        """Get PRIMARY KEY and UNIQUE constraints of a schema."""
        rows = self._run("""
            SELECT
                tc.table_name,
                tc.constraint_name,
                tc.constraint_type,
                kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
             AND tc.table_name = kcu.table_name
            WHERE tc.table_schema = %s
              AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
            ORDER BY tc.table_name, tc.constraint_name, kcu.ordinal_position
        """, (schema,))

        return self._group_key_rows(
            rows,
            lambda head, columns: RawKeyConstraint(
                table=head[0], name=head[1], constraint_type=head[2], columns=columns,
            ),
        )

    def get_foreign_keys(self, schema: str) -> List[RawForeignKey]:
        """Get foreign keys with ordered (source, target) column pairs."""
        rows = self._run("""
            SELECT
                src.relname,
                con.conname,
                srcatt.attname,
                tgt.relname,
                tgtatt.attname,
                con.confdeltype,
                con.confupdtype
            FROM pg_constraint con
            JOIN pg_class src ON src.oid = con.conrelid
            JOIN pg_namespace ns ON ns.oid = src.relnamespace
            JOIN pg_class tgt ON tgt.oid = con.confrelid
            CROSS JOIN LATERAL unnest(con.conkey, con.confkey)
                WITH ORDINALITY AS k(src_attnum, tgt_attnum, ord)
            JOIN pg_attribute srcatt
              ON srcatt.attrelid = con.conrelid AND srcatt.attnum = k.src_attnum
            JOIN pg_attribute tgtatt
              ON tgtatt.attrelid = con.confrelid AND tgtatt.attnum = k.tgt_attnum
            WHERE con.contype = 'f'
              AND ns.nspname = %s
            ORDER BY src.relname, con.conname, k.ord
        """, (schema,))

        foreign_keys = []
        current = None
        for table, name, column, ref_table, ref_column, on_delete, on_update in rows:
            if current is None or (current["table"], current["name"]) != (table, name):
                if current is not None:
                    foreign_keys.append(self._make_foreign_key(current))
                current = {
                    "table": table,
                    "name": name,
                    "columns": [],
                    "referenced_table": ref_table,
                    "referenced_columns": [],
                    "on_delete": FK_ACTIONS.get(on_delete, "NO ACTION"),
                    "on_update": FK_ACTIONS.get(on_update, "NO ACTION"),
                }
            current["columns"].append(column)
            current["referenced_columns"].append(ref_column)
        if current is not None:
            foreign_keys.append(self._make_foreign_key(current))
        return foreign_keys

    @staticmethod
    def _make_foreign_key(values: dict) -> RawForeignKey:
        return RawForeignKey(
            table=values["table"],
            name=values["name"],
            columns=tuple(values["columns"]),
            referenced_table=values["referenced_table"],
            referenced_columns=tuple(values["referenced_columns"]),
            on_delete=values["on_delete"],
            on_update=values["on_update"],
        )

    def get_indexes(self, schema: str) -> List[RawIndex]:
        """Get non-primary indexes, including unique indexes without constraints."""
        rows = self._run("""
            SELECT
                t.relname,
                i.relname,
                ix.indisunique,
                a.attname
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace ns ON ns.oid = t.relnamespace
            CROSS JOIN LATERAL unnest(ix.indkey::smallint[]) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE ns.nspname = %s
              AND NOT ix.indisprimary
              AND t.relkind = 'r'
            ORDER BY t.relname, i.relname, k.ord
        """, (schema,))

        return self._group_key_rows(
            rows,
            lambda head, columns: RawIndex(
                table=head[0], name=head[1], is_unique=bool(head[2]), columns=columns,
            ),
        )
