"""Error types for dbmodel introspection."""

from typing import Optional, Dict, Any


class DbModelError(Exception):
    """Base exception for dbmodel errors."""

    def __init__(self, message: str, code: str = "DBMODEL_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for reporting."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class CatalogConnectionError(DbModelError):
    """Transport or authentication failure while reading the catalog."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONNECTION_ERROR", details=details)


class CatalogPermissionError(DbModelError):
    """The connected role may not read the catalog metadata."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PERMISSION_ERROR", details=details)


class SchemaNotFoundError(DbModelError):
    """Schema does not exist in the connected database."""

    def __init__(self, schema: str):
        super().__init__(
            f"Schema not found: {schema}",
            code="SCHEMA_NOT_FOUND",
            details={"schema": schema}
        )
        self.schema = schema


class MalformedCatalogError(DbModelError):
    """Catalog rows violate basic referential assumptions.

    Usually points at a driver or database-version incompatibility.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        column: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if table is not None:
            error_details["table"] = table
        if column is not None:
            error_details["column"] = column
        super().__init__(message, code="MALFORMED_CATALOG", details=error_details)
        self.table = table
        self.column = column


class AmbiguousRelationError(DbModelError):
    """A foreign-key pattern could not be classified with confidence.

    Recoverable: the inferencer records it and emits a low-confidence
    relation instead of aborting.
    """

    def __init__(self, message: str, table: str, columns: Optional[list] = None):
        super().__init__(
            message,
            code="AMBIGUOUS_RELATION",
            details={"table": table, "columns": list(columns or [])}
        )
        self.table = table
        self.columns = list(columns or [])


class InvariantViolation(DbModelError):
    """A datamodel would be internally inconsistent."""

    def __init__(self, message: str, model: Optional[str] = None, field: Optional[str] = None):
        details = {}
        if model is not None:
            details["model"] = model
        if field is not None:
            details["field"] = field
        super().__init__(message, code="INVARIANT_VIOLATION", details=details)
        self.model = model
        self.field = field


class SchemaParseError(DbModelError):
    """Schema-description text could not be parsed."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(
            message if line is None else f"{message} (line {line})",
            code="SCHEMA_PARSE_ERROR",
            details={"line": line} if line is not None else {}
        )
        self.line = line
