"""Database introspection module for dbmodel.

This module reads raw catalogs from PostgreSQL and DuckDB, builds the
structural model and infers relations from foreign keys.
"""

from .models import (
    RawCatalog,
    RawColumn,
    RawKeyConstraint,
    RawForeignKey,
    RawIndex,
    Column,
    ForeignKey,
    Index,
    Table,
    StructuralModel,
    Relation,
    Cardinality,
    Confidence,
)
from .base import CatalogReader
from .builder import StructuralModelBuilder
from .relationship import RelationInferencer, InferenceResult
from .type_mappers import TypeMapper, PostgresTypeMapper, DuckDBTypeMapper
from .postgres import PostgresCatalogReader
from .duckdb import DuckDBCatalogReader

__all__ = [
    # Raw catalog
    "RawCatalog",
    "RawColumn",
    "RawKeyConstraint",
    "RawForeignKey",
    "RawIndex",
    # Structural model
    "Column",
    "ForeignKey",
    "Index",
    "Table",
    "StructuralModel",
    "Relation",
    "Cardinality",
    "Confidence",
    # Pipeline stages
    "CatalogReader",
    "StructuralModelBuilder",
    "RelationInferencer",
    "InferenceResult",
    # Type mappers
    "TypeMapper",
    "PostgresTypeMapper",
    "DuckDBTypeMapper",
    # Readers
    "PostgresCatalogReader",
    "DuckDBCatalogReader",
]
