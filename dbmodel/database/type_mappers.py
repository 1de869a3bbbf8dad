"""Database-specific type mapping strategies."""

from abc import ABC, abstractmethod
from typing import Optional


class TypeMapper(ABC):
    """Abstract base class for database type mapping."""

    @abstractmethod
    def to_scalar_type(self, db_type: str) -> str:
        """Convert a database type to a datamodel scalar type."""
        pass

    def element_type(self, data_type: str, udt_name: Optional[str]) -> Optional[str]:
        """Return the element type of an array column, or None."""
        if data_type.upper() == "ARRAY" and udt_name:
            return udt_name.lstrip("_")
        if data_type.endswith("[]"):
            return data_type[:-2]
        return None


class PostgresTypeMapper(TypeMapper):
    """Type mapper for PostgreSQL types (information_schema spelling or udt names)."""

    def to_scalar_type(self, db_type: str) -> str:
        type_lower = db_type.lower()

        # Integer types
        if type_lower in ("integer", "int", "int2", "int4", "int8", "smallint", "bigint",
                          "serial", "bigserial", "smallserial"):
            return "Int"

        # Floating point types
        elif any(t in type_lower for t in ["numeric", "decimal", "real", "double", "float"]):
            return "Float"

        # Boolean
        elif type_lower in ("boolean", "bool"):
            return "Boolean"

        # Date/Time types
        elif "timestamp" in type_lower or type_lower == "date":
            return "DateTime"

        # JSON type
        elif type_lower in ("json", "jsonb"):
            return "Json"

        return "String"


class DuckDBTypeMapper(TypeMapper):
    """Type mapper for DuckDB database types."""

    def to_scalar_type(self, db_type: str) -> str:
        type_upper = db_type.upper()

        # Integer types
        if any(t in type_upper for t in ["BIGINT", "HUGEINT", "INTEGER", "SMALLINT", "TINYINT"]) \
                or type_upper in ("INT", "INT2", "INT4", "INT8"):
            return "Int"

        # Floating point types
        elif any(t in type_upper for t in ["DOUBLE", "FLOAT", "REAL", "NUMERIC", "DECIMAL"]):
            return "Float"

        # Boolean
        elif type_upper in ("BOOLEAN", "BOOL"):
            return "Boolean"

        # Date/Time types
        elif type_upper == "DATE" or "TIMESTAMP" in type_upper:
            return "DateTime"

        # JSON type
        elif "JSON" in type_upper:
            return "Json"

        return "String"


def get_type_mapper(dialect: str) -> TypeMapper:
    """Return the type mapper for a catalog dialect."""
    if dialect == "duckdb":
        return DuckDBTypeMapper()
    return PostgresTypeMapper()
