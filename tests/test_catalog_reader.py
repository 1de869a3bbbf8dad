"""Tests for the PostgreSQL and DuckDB catalog readers."""

import pytest

from dbmodel.database.duckdb import DuckDBCatalogReader
from dbmodel.database.models import RawColumn, RawForeignKey, RawIndex, RawKeyConstraint
from dbmodel.database.postgres import PostgresCatalogReader
from dbmodel.errors import (
    CatalogConnectionError,
    CatalogPermissionError,
    SchemaNotFoundError,
)
from .fixtures import MockConnection, create_mock_duckdb_connection, create_mock_postgres_connection


class TestPostgresCatalogReader:
    """Test reading a catalog through psycopg2-style cursors."""

    def test_schemas_exclude_system_schemas(self):
        """System schemas are never reported."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())
        assert reader.get_schemas() == ["public"]

    def test_read_catalog_tables_and_columns(self):
        """Tables and columns come back in catalog order with nullability decoded."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())
        catalog = reader.read_catalog("public")

        assert catalog.schema == "public"
        assert catalog.dialect == "postgres"
        assert catalog.tables == ("post", "user")
        assert catalog.columns[0] == RawColumn(
            table="post", name="id", data_type="integer", is_nullable=False,
            default="nextval('post_id_seq'::regclass)", position=1, udt_name="int4",
        )
        assert catalog.columns[2].is_nullable is True

    def test_key_constraints_grouped(self):
        """Key rows are folded into one constraint each."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())
        constraints = reader.get_key_constraints("public")

        assert RawKeyConstraint("user", "user_email_key", "UNIQUE", ("email",)) in constraints
        assert RawKeyConstraint("post", "post_pkey", "PRIMARY KEY", ("id",)) in constraints
        assert len(constraints) == 3

    def test_composite_key_constraint_keeps_column_order(self):
        """Multi-column constraints keep their ordinal order."""
        conn = MockConnection()
        conn.add_response(r"FROM information_schema\.table_constraints", [
            ("user_tag", "user_tag_pkey", "PRIMARY KEY", "user_id"),
            ("user_tag", "user_tag_pkey", "PRIMARY KEY", "tag_id"),
        ])
        reader = PostgresCatalogReader(connection=conn)

        assert reader.get_key_constraints("public") == [
            RawKeyConstraint("user_tag", "user_tag_pkey", "PRIMARY KEY", ("user_id", "tag_id")),
        ]

    def test_foreign_keys_decode_actions(self):
        """pg_constraint action codes map to SQL action names."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())

        assert reader.get_foreign_keys("public") == [
            RawForeignKey(
                table="post", name="post_author_id_fkey", columns=("author_id",),
                referenced_table="user", referenced_columns=("id",),
                on_delete="CASCADE", on_update="NO ACTION",
            ),
        ]

    def test_composite_foreign_key_pairs(self):
        """Composite foreign keys keep source and target columns paired."""
        conn = MockConnection()
        conn.add_response(r"FROM pg_constraint", [
            ("line", "line_order_fkey", "order_id", "order", "id", "r", "c"),
            ("line", "line_order_fkey", "order_region", "order", "region", "r", "c"),
        ])
        reader = PostgresCatalogReader(connection=conn)
        [foreign_key] = reader.get_foreign_keys("public")

        assert foreign_key.columns == ("order_id", "order_region")
        assert foreign_key.referenced_columns == ("id", "region")
        assert foreign_key.on_delete == "RESTRICT"
        assert foreign_key.on_update == "CASCADE"

    def test_indexes(self):
        """Secondary indexes carry their uniqueness flag."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())

        assert reader.get_indexes("public") == [
            RawIndex("post", "post_title_idx", ("title",), False),
            RawIndex("user", "user_email_key", ("email",), True),
        ]

    def test_queries_are_parameterized(self):
        """The schema name is passed as a parameter, never interpolated."""
        conn = create_mock_postgres_connection()
        PostgresCatalogReader(connection=conn).get_tables("public")

        call = conn.get_call_history()[-1]
        assert call["params"] == ["public"]
        assert "public" not in call["sql"]

    def test_unknown_schema(self):
        """Reading a missing schema raises SchemaNotFoundError."""
        reader = PostgresCatalogReader(connection=create_mock_postgres_connection())

        with pytest.raises(SchemaNotFoundError) as exc_info:
            reader.read_catalog("missing")
        assert exc_info.value.details == {"schema": "missing"}

    def test_empty_schema(self):
        """A schema without tables yields an empty catalog and stops early."""
        conn = MockConnection()
        conn.add_response(r"FROM information_schema\.schemata", [("public",)])
        reader = PostgresCatalogReader(connection=conn)

        catalog = reader.read_catalog("public")
        assert catalog.is_empty
        assert catalog.columns == ()
        assert len(conn.get_call_history()) == 2

    def test_caller_connection_not_closed(self):
        """A connection handed in by the caller stays open."""
        conn = create_mock_postgres_connection()
        with PostgresCatalogReader(connection=conn) as reader:
            reader.get_schemas()
        assert conn.closed is False

    def test_connect_without_dsn(self):
        """Connecting without a DSN or connection fails cleanly."""
        pytest.importorskip("psycopg2")
        with pytest.raises(CatalogConnectionError):
            PostgresCatalogReader().connect()


class TestPostgresErrorTranslation:
    """Test mapping of psycopg2 errors onto dbmodel errors."""

    def test_insufficient_privilege(self):
        psycopg2 = pytest.importorskip("psycopg2")
        import psycopg2.errors

        conn = MockConnection()
        conn.add_error(r"schemata", psycopg2.errors.InsufficientPrivilege("permission denied"))
        reader = PostgresCatalogReader(connection=conn)

        with pytest.raises(CatalogPermissionError) as exc_info:
            reader.get_schemas()
        assert exc_info.value.code == "PERMISSION_ERROR"

    def test_operational_error(self):
        psycopg2 = pytest.importorskip("psycopg2")

        conn = MockConnection()
        conn.add_error(r"schemata", psycopg2.OperationalError("server closed the connection"))
        reader = PostgresCatalogReader(connection=conn)

        with pytest.raises(CatalogConnectionError):
            reader.read_catalog("public")

    def test_other_errors_propagate(self):
        psycopg2 = pytest.importorskip("psycopg2")

        conn = MockConnection()
        conn.add_error(r"schemata", psycopg2.ProgrammingError("syntax error"))
        reader = PostgresCatalogReader(connection=conn)

        with pytest.raises(psycopg2.ProgrammingError):
            reader.get_schemas()


class TestDuckDBCatalogReader:
    """Test reading a catalog through duckdb-style execute()."""

    def test_read_catalog(self):
        """Tables, columns and constraints come from the duckdb catalog."""
        reader = DuckDBCatalogReader(connection=create_mock_duckdb_connection())
        catalog = reader.read_catalog("main")

        assert catalog.dialect == "duckdb"
        assert catalog.tables == ("tag", "user", "user_tag")
        assert RawKeyConstraint(
            "user_tag", "user_tag_user_id_tag_id_pkey", "PRIMARY KEY", ("user_id", "tag_id")
        ) in catalog.key_constraints
        assert catalog.foreign_keys[0] == RawForeignKey(
            table="user_tag", name="user_tag_user_id_fkey", columns=("user_id",),
            referenced_table="user", referenced_columns=("id",),
        )
        assert catalog.indexes == ()

    def test_schemas_exclude_system_schemas(self):
        reader = DuckDBCatalogReader(connection=create_mock_duckdb_connection())
        assert reader.get_schemas() == ["main"]

    def test_constraint_query_parameters(self):
        """Constraint types are passed as parameters after the schema."""
        conn = create_mock_duckdb_connection()
        DuckDBCatalogReader(connection=conn).get_key_constraints("main")

        assert conn.get_call_history()[-1]["params"] == ["main", "PRIMARY KEY", "UNIQUE"]

    def test_database_name(self):
        assert DuckDBCatalogReader(database_path="/data/analytics.duckdb").get_database_name() == "analytics"
        assert DuckDBCatalogReader().get_database_name() == "memory"

    def test_permission_error(self):
        duckdb = pytest.importorskip("duckdb")

        conn = MockConnection()
        conn.add_error(r"schemata", duckdb.PermissionException("not allowed"))

        with pytest.raises(CatalogPermissionError):
            DuckDBCatalogReader(connection=conn).get_schemas()

    def test_io_error(self):
        duckdb = pytest.importorskip("duckdb")

        conn = MockConnection()
        conn.add_error(r"schemata", duckdb.IOException("file vanished"))

        with pytest.raises(CatalogConnectionError):
            DuckDBCatalogReader(connection=conn).read_catalog("main")


class TestDuckDBLiveCatalog:
    """Test the DuckDB reader against an in-memory database."""

    def test_tables_and_columns(self):
        duckdb = pytest.importorskip("duckdb")

        conn = duckdb.connect(":memory:")
        conn.execute("CREATE TABLE author (id INTEGER PRIMARY KEY, name VARCHAR NOT NULL, bio VARCHAR)")
        conn.execute("CREATE TABLE book (id INTEGER PRIMARY KEY, title VARCHAR)")

        reader = DuckDBCatalogReader(connection=conn)
        assert "main" in reader.get_schemas()
        assert reader.get_tables("main") == ["author", "book"]

        columns = [c for c in reader.get_columns("main") if c.table == "author"]
        assert [c.name for c in columns] == ["id", "name", "bio"]
        assert columns[1].is_nullable is False
        assert columns[2].is_nullable is True
        assert columns[0].data_type == "INTEGER"
        conn.close()

    def test_key_constraints(self, live_duckdb_connection):
        """PRIMARY KEY and UNIQUE constraints come from duckdb_constraints()."""
        reader = DuckDBCatalogReader(connection=live_duckdb_connection)
        constraints = reader.get_key_constraints("main")

        assert all(isinstance(c, RawKeyConstraint) for c in constraints)
        assert {(c.table, c.constraint_type, c.columns) for c in constraints} == {
            ("post", "PRIMARY KEY", ("id",)),
            ("tag", "PRIMARY KEY", ("id",)),
            ("user", "PRIMARY KEY", ("id",)),
            ("user", "UNIQUE", ("email",)),
            ("user_tag", "PRIMARY KEY", ("user_id", "tag_id")),
        }

    def test_foreign_keys(self, live_duckdb_connection):
        """Foreign keys are reported once, on the referencing table."""
        reader = DuckDBCatalogReader(connection=live_duckdb_connection)
        foreign_keys = reader.get_foreign_keys("main")

        assert all(isinstance(fk, RawForeignKey) for fk in foreign_keys)
        assert {(fk.table, fk.columns, fk.referenced_table, fk.referenced_columns) for fk in foreign_keys} == {
            ("post", ("author_id",), "user", ("id",)),
            ("user_tag", ("user_id",), "user", ("id",)),
            ("user_tag", ("tag_id",), "tag", ("id",)),
        }
        assert {fk.on_delete for fk in foreign_keys} == {"NO ACTION"}

    def test_read_catalog(self, live_duckdb_connection):
        catalog = DuckDBCatalogReader(connection=live_duckdb_connection).read_catalog("main")

        assert catalog.dialect == "duckdb"
        assert catalog.tables == ("post", "tag", "user", "user_tag")
        published = [c for c in catalog.columns if c.table == "post" and c.name == "published"][0]
        assert published.default is not None
        assert len(catalog.foreign_keys) == 3

    def test_owned_connection_closed(self):
        pytest.importorskip("duckdb")

        reader = DuckDBCatalogReader(database_path=":memory:")
        with reader:
            reader.get_schemas()
            assert reader._owns_connection is True
        assert reader._connection is None
