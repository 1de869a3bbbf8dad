"""Test fixtures package."""

from .catalogs import fk, infer, pk, unique
from .mock_connection import (
    MockConnection,
    create_mock_duckdb_connection,
    create_mock_postgres_connection,
)

__all__ = [
    "MockConnection",
    "create_mock_duckdb_connection",
    "create_mock_postgres_connection",
    "fk",
    "infer",
    "pk",
    "unique",
]
