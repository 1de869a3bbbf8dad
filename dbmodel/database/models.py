"""Database data models for schema introspection.

Two layers live here: the raw catalog records returned by a
``CatalogReader`` and the structural model assembled from them by the
``StructuralModelBuilder``. Inferred relations sit on top of the
structural model.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


# Raw catalog records, exactly as reported by the database

@dataclass(frozen=True)
class RawColumn:
    """A column row from the catalog."""
    table: str
    name: str
    data_type: str
    is_nullable: bool = True
    default: Optional[str] = None
    position: int = 0
    udt_name: Optional[str] = None


@dataclass(frozen=True)
class RawKeyConstraint:
    """A PRIMARY KEY or UNIQUE constraint row group."""
    table: str
    name: str
    constraint_type: str  # 'PRIMARY KEY' or 'UNIQUE'
    columns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RawForeignKey:
    """A foreign key constraint with ordered column pairs."""
    table: str
    name: str
    columns: Tuple[str, ...]
    referenced_table: str
    referenced_columns: Tuple[str, ...]
    on_delete: str = "NO ACTION"
    on_update: str = "NO ACTION"


@dataclass(frozen=True)
class RawIndex:
    """An index that is not backing a primary key."""
    table: str
    name: str
    columns: Tuple[str, ...]
    is_unique: bool = False


@dataclass(frozen=True)
class RawCatalog:
    """Unopinionated catalog snapshot for one schema."""
    schema: str
    dialect: str = "postgres"
    tables: Tuple[str, ...] = ()
    columns: Tuple[RawColumn, ...] = ()
    key_constraints: Tuple[RawKeyConstraint, ...] = ()
    foreign_keys: Tuple[RawForeignKey, ...] = ()
    indexes: Tuple[RawIndex, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tables


# Structural model

@dataclass(frozen=True)
class Column:
    """Represents a database column."""
    name: str
    data_type: str
    scalar_type: str = "String"
    is_nullable: bool = True
    default: Optional[str] = None
    position: int = 0
    is_list: bool = False


@dataclass(frozen=True)
class ForeignKey:
    """Represents a foreign key; many-to-one by construction."""
    name: str
    table: str
    columns: Tuple[str, ...]
    referenced_table: str
    referenced_columns: Tuple[str, ...]
    on_delete: str = "NO ACTION"
    on_update: str = "NO ACTION"

    @property
    def is_self_reference(self) -> bool:
        return self.table == self.referenced_table


@dataclass(frozen=True)
class Index:
    """Represents a secondary index."""
    name: str
    columns: Tuple[str, ...]
    is_unique: bool = False


@dataclass(frozen=True)
class Table:
    """Represents a database table."""
    name: str
    schema: str
    columns: Tuple[Column, ...] = ()
    primary_key_columns: Tuple[str, ...] = ()
    unique_constraints: Tuple[Tuple[str, ...], ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()
    indexes: Tuple[Index, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

    def get_column(self, name: str) -> Optional[Column]:
        """Find a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def is_unique(self, columns: Tuple[str, ...]) -> bool:
        """Check if a column set is the primary key or a unique set."""
        wanted = set(columns)
        if self.primary_key_columns and set(self.primary_key_columns) == wanted:
            return True
        return any(set(unique) == wanted for unique in self.unique_constraints)

    def foreign_key_columns(self) -> Tuple[str, ...]:
        """Columns participating in any foreign key, in column order."""
        used = {c for fk in self.foreign_keys for c in fk.columns}
        return tuple(c.name for c in self.columns if c.name in used)


@dataclass(frozen=True)
class StructuralModel:
    """Physical model of one schema with no relational semantics."""
    schema: str
    tables: Tuple[Table, ...] = ()
    _by_name: Dict[str, Table] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_by_name", {t.name: t for t in self.tables})

    def get_table(self, name: str) -> Optional[Table]:
        """Find a table by name."""
        return self._by_name.get(name)

    def table_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tables)

    def referencing_foreign_keys(self, table_name: str) -> Tuple[ForeignKey, ...]:
        """All foreign keys whose target is the given table."""
        return tuple(
            fk for t in self.tables for fk in t.foreign_keys
            if fk.referenced_table == table_name
        )


# Inferred relations

class Cardinality(str, Enum):
    """Cardinality of an inferred relation."""
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


class Confidence(str, Enum):
    """How sure the inferencer is about a relation."""
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class Relation:
    """Represents a logical relationship between two tables.

    For one-to-one and one-to-many relations the source table holds the
    foreign key and the target table is the "one" side. For many-to-many
    relations both tables are reached through ``junction_table``.
    """
    key: str
    cardinality: Cardinality
    source_table: str
    source_columns: Tuple[str, ...]
    target_table: str
    target_columns: Tuple[str, ...]
    foreign_keys: Tuple[ForeignKey, ...]
    junction_table: Optional[str] = None
    confidence: Confidence = Confidence.HIGH
    reason: Optional[str] = None

    @property
    def is_self_relation(self) -> bool:
        return self.source_table == self.target_table

    @property
    def is_many_to_many(self) -> bool:
        return self.cardinality is Cardinality.MANY_TO_MANY

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence is Confidence.LOW

    @property
    def on_delete(self) -> str:
        if self.is_many_to_many:
            return "NO ACTION"
        return self.foreign_keys[0].on_delete
