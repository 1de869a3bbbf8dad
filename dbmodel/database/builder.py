"""Assembles raw catalog rows into a structural model."""

import logging
from collections import OrderedDict
from typing import Dict, List, Tuple

from dbmodel.database.models import (
    Column,
    ForeignKey,
    Index,
    RawCatalog,
    RawColumn,
    StructuralModel,
    Table,
)
from dbmodel.database.type_mappers import TypeMapper, get_type_mapper
from dbmodel.errors import MalformedCatalogError

logger = logging.getLogger(__name__)


class StructuralModelBuilder:
    """Builds a ``StructuralModel`` from a ``RawCatalog``.

    The builder is a pure function of its input. It attaches columns in
    catalog order and keys/foreign keys to their tables, and rejects
    catalogs that are structurally impossible.
    """

    def __init__(self, type_mapper: TypeMapper = None):
        self.type_mapper = type_mapper

    def build(self, catalog: RawCatalog) -> StructuralModel:
        """Build the structural model.

        Raises:
            MalformedCatalogError: On references to unknown tables or
                columns, duplicate names, or mismatched foreign keys
        """
        mapper = self.type_mapper or get_type_mapper(catalog.dialect)

        # Ordered by discovery so table order is the catalog's order
        columns_by_table: "OrderedDict[str, List[RawColumn]]" = OrderedDict()
        for table_name in catalog.tables:
            if table_name in columns_by_table:
                raise MalformedCatalogError(
                    f"Duplicate table '{table_name}' in catalog", table=table_name
                )
            columns_by_table[table_name] = []

        for raw_column in catalog.columns:
            if raw_column.table not in columns_by_table:
                raise MalformedCatalogError(
                    f"Column '{raw_column.name}' belongs to unknown table '{raw_column.table}'",
                    table=raw_column.table,
                    column=raw_column.name,
                )
            columns_by_table[raw_column.table].append(raw_column)

        columns: Dict[str, Tuple[Column, ...]] = {}
        for table_name, raw_columns in columns_by_table.items():
            columns[table_name] = self._build_columns(table_name, raw_columns, mapper)

        primary_keys: Dict[str, Tuple[str, ...]] = {}
        uniques: Dict[str, List[Tuple[str, ...]]] = {name: [] for name in columns}
        for constraint in catalog.key_constraints:
            self._check_columns(columns, constraint.table, constraint.columns, constraint.name)
            if constraint.constraint_type == "PRIMARY KEY":
                if constraint.table in primary_keys:
                    raise MalformedCatalogError(
                        f"Table '{constraint.table}' reports more than one primary key",
                        table=constraint.table,
                    )
                primary_keys[constraint.table] = tuple(constraint.columns)
            elif constraint.constraint_type == "UNIQUE":
                self._add_unique(uniques[constraint.table], tuple(constraint.columns))
            else:
                raise MalformedCatalogError(
                    f"Unexpected key constraint type '{constraint.constraint_type}'",
                    table=constraint.table,
                )

        indexes: Dict[str, List[Index]] = {name: [] for name in columns}
        for raw_index in catalog.indexes:
            self._check_columns(columns, raw_index.table, raw_index.columns, raw_index.name)
            indexes[raw_index.table].append(
                Index(name=raw_index.name, columns=tuple(raw_index.columns), is_unique=raw_index.is_unique)
            )
            if raw_index.is_unique and set(raw_index.columns) != set(primary_keys.get(raw_index.table, ())):
                self._add_unique(uniques[raw_index.table], tuple(raw_index.columns))

        foreign_keys: Dict[str, List[ForeignKey]] = {name: [] for name in columns}
        for raw_fk in catalog.foreign_keys:
            self._check_columns(columns, raw_fk.table, raw_fk.columns, raw_fk.name)
            if raw_fk.referenced_table not in columns:
                raise MalformedCatalogError(
                    f"Foreign key '{raw_fk.name}' on '{raw_fk.table}' references "
                    f"unknown table '{raw_fk.referenced_table}'",
                    table=raw_fk.referenced_table,
                )
            self._check_columns(columns, raw_fk.referenced_table, raw_fk.referenced_columns, raw_fk.name)
            if len(raw_fk.columns) != len(raw_fk.referenced_columns) or not raw_fk.columns:
                raise MalformedCatalogError(
                    f"Foreign key '{raw_fk.name}' on '{raw_fk.table}' has mismatched columns",
                    table=raw_fk.table,
                )
            foreign_keys[raw_fk.table].append(ForeignKey(
                name=raw_fk.name,
                table=raw_fk.table,
                columns=tuple(raw_fk.columns),
                referenced_table=raw_fk.referenced_table,
                referenced_columns=tuple(raw_fk.referenced_columns),
                on_delete=raw_fk.on_delete,
                on_update=raw_fk.on_update,
            ))

        tables = tuple(
            Table(
                name=name,
                schema=catalog.schema,
                columns=columns[name],
                primary_key_columns=primary_keys.get(name, ()),
                unique_constraints=tuple(uniques[name]),
                foreign_keys=tuple(foreign_keys[name]),
                indexes=tuple(indexes[name]),
            )
            for name in columns
        )
        logger.debug("Built structural model for %s with %d tables", catalog.schema, len(tables))
        return StructuralModel(schema=catalog.schema, tables=tables)

    def _build_columns(
        self, table_name: str, raw_columns: List[RawColumn], mapper: TypeMapper
    ) -> Tuple[Column, ...]:
        seen = set()
        built = []
        # sorted() is stable, so ties keep the catalog-reported order
        for raw in sorted(raw_columns, key=lambda c: c.position):
            if raw.name in seen:
                raise MalformedCatalogError(
                    f"Duplicate column '{raw.name}' in table '{table_name}'",
                    table=table_name,
                    column=raw.name,
                )
            seen.add(raw.name)

            element_type = mapper.element_type(raw.data_type, raw.udt_name)
            built.append(Column(
                name=raw.name,
                data_type=raw.data_type,
                scalar_type=mapper.to_scalar_type(element_type or raw.data_type),
                is_nullable=raw.is_nullable,
                default=raw.default,
                position=raw.position,
                is_list=element_type is not None,
            ))
        return tuple(built)

    @staticmethod
    def _check_columns(
        columns: Dict[str, Tuple[Column, ...]], table: str, names: Tuple[str, ...], constraint: str
    ):
        if table not in columns:
            raise MalformedCatalogError(
                f"Constraint '{constraint}' belongs to unknown table '{table}'", table=table
            )
        known = {c.name for c in columns[table]}
        for name in names:
            if name not in known:
                raise MalformedCatalogError(
                    f"Constraint '{constraint}' references unknown column '{table}.{name}'",
                    table=table,
                    column=name,
                )

    @staticmethod
    def _add_unique(uniques: List[Tuple[str, ...]], columns: Tuple[str, ...]):
        if not any(set(existing) == set(columns) for existing in uniques):
            uniques.append(columns)
