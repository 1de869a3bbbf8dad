"""Abstract base class for catalog readers."""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from dbmodel.database.models import (
    RawCatalog,
    RawColumn,
    RawForeignKey,
    RawIndex,
    RawKeyConstraint,
)
from dbmodel.errors import SchemaNotFoundError

logger = logging.getLogger(__name__)


class CatalogReader(ABC):
    """Reads raw structural metadata for one schema.

    Subclasses implement the dialect-specific catalog queries and map
    driver exceptions onto the dbmodel error types. The reader never
    interprets what it reads.

    A connection handed to the constructor belongs to the caller and is
    never closed here. A reader that had to open its own connection
    closes it in ``close()``.
    """

    dialect: str = "generic"

    # Override in subclasses to exclude system schemas
    EXCLUDED_SCHEMAS: set = {'information_schema'}

    def __init__(self, connection: Any = None):
        self._connection = connection
        self._owns_connection = False

    @abstractmethod
    def connect(self):
        """Return an open connection, opening one if needed."""
        pass

    @abstractmethod
    def _run(self, sql: str, params: Sequence[Any]) -> List[tuple]:
        """Execute a catalog query and return all rows.

        Implementations translate driver errors into
        ``CatalogConnectionError`` / ``CatalogPermissionError``.
        """
        pass

    @abstractmethod
    def get_schemas(self) -> List[str]:
        """Get all user schemas in the database."""
        pass

    @abstractmethod
    def get_tables(self, schema: str) -> List[str]:
        """Get all base tables in a schema, in catalog order."""
        pass

    @abstractmethod
    def get_columns(self, schema: str) -> List[RawColumn]:
        """Get all columns of all tables in a schema."""
        pass

    @abstractmethod
    def get_key_constraints(self, schema: str) -> List[RawKeyConstraint]:
        """Get PRIMARY KEY and UNIQUE constraints of a schema."""
        pass

    @abstractmethod
    def get_foreign_keys(self, schema: str) -> List[RawForeignKey]:
        """Get foreign keys of a schema with ordered column pairs."""
        pass

    def get_indexes(self, schema: str) -> List[RawIndex]:
        """Get secondary indexes of a schema. Optional per dialect."""
        return []

    def close(self):
        """Close the connection if this reader opened it."""
        if self._connection is not None and self._owns_connection:
            self._connection.close()
        if self._owns_connection:
            self._connection = None
            self._owns_connection = False

    def read_catalog(self, schema: str) -> RawCatalog:
        """Read the raw catalog of a schema.

        Args:
            schema: Schema name

        Returns:
            RawCatalog with rows in database order. A schema without
            tables yields an empty catalog.

        Raises:
            SchemaNotFoundError: If the schema does not exist
            CatalogConnectionError: On transport or authentication failure
            CatalogPermissionError: If metadata may not be read
        """
        if schema not in self.get_schemas():
            raise SchemaNotFoundError(schema)

        tables = self.get_tables(schema)
        if not tables:
            logger.debug("Schema %s has no tables", schema)
            return RawCatalog(schema=schema, dialect=self.dialect)

        catalog = RawCatalog(
            schema=schema,
            dialect=self.dialect,
            tables=tuple(tables),
            columns=tuple(self.get_columns(schema)),
            key_constraints=tuple(self.get_key_constraints(schema)),
            foreign_keys=tuple(self.get_foreign_keys(schema)),
            indexes=tuple(self.get_indexes(schema)),
        )
        logger.debug(
            "Read catalog for %s: %d tables, %d columns, %d foreign keys",
            schema, len(catalog.tables), len(catalog.columns), len(catalog.foreign_keys),
        )
        return catalog

    @staticmethod
    def _group_key_rows(rows: List[tuple], factory) -> list:
        """Fold (table, name, ..., column) rows into one record per constraint.

        Rows must be ordered by table, constraint name and key ordinal.
        ``factory`` receives the leading row values and the column tuple.
        """
        grouped = []
        current_key = None
        current_head: Optional[tuple] = None
        columns: List[str] = []
        for row in rows:
            key = (row[0], row[1])
            if key != current_key:
                if current_head is not None:
                    grouped.append(factory(current_head, tuple(columns)))
                current_key = key
                current_head = tuple(row[:-1])
                columns = []
            columns.append(row[-1])
        if current_head is not None:
            grouped.append(factory(current_head, tuple(columns)))
        return grouped

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
