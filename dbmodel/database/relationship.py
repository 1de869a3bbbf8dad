"""Relation inference between database tables."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from dbmodel.database.models import (
    Cardinality,
    Confidence,
    ForeignKey,
    Relation,
    StructuralModel,
    Table,
)
from dbmodel.errors import AmbiguousRelationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InferenceResult:
    """Structural model plus the relations inferred from it."""

    structure: StructuralModel
    relations: Tuple[Relation, ...] = ()
    junction_tables: Tuple[str, ...] = ()
    ambiguities: Tuple[AmbiguousRelationError, ...] = ()

    def model_tables(self) -> Tuple[Table, ...]:
        """Tables that become models, i.e. all but elided junctions."""
        return tuple(t for t in self.structure.tables if t.name not in self.junction_tables)

    def relations_for(self, table_name: str) -> Tuple[Relation, ...]:
        """Relations with an endpoint on the given table."""
        return tuple(
            r for r in self.relations
            if table_name in (r.source_table, r.target_table)
        )

    def low_confidence_relations(self) -> Tuple[Relation, ...]:
        return tuple(r for r in self.relations if r.is_low_confidence)


class RelationInferencer:
    """Derives logical relations from foreign keys and junction tables.

    Each foreign key yields one relation whose source (the table holding
    the key) is the "many" side, unless the key columns are themselves
    unique, which makes it one-to-one. A table made of nothing but a
    two-column-group primary key that is exactly two foreign keys to two
    distinct other tables is a junction: it is elided and replaced by one
    many-to-many relation.
    """

    def infer(self, structure: StructuralModel, strict: bool = False) -> InferenceResult:
        """Infer all relations of a structural model.

        Args:
            structure: Structural model from the builder
            strict: Raise the first ``AmbiguousRelationError`` instead of
                    emitting a low-confidence relation

        Returns:
            InferenceResult with relations sorted by their stable key
        """
        ambiguities: List[AmbiguousRelationError] = []
        junctions: Dict[str, Tuple[ForeignKey, ForeignKey]] = {}
        doubtful_tables: Dict[str, str] = {}

        for table in structure.tables:
            pair = self._junction_foreign_keys(table)
            if pair is None:
                continue
            if structure.referencing_foreign_keys(table.name):
                reason = (
                    f"Table '{table.name}' looks like a junction table but is referenced "
                    f"by another foreign key; keeping it as a model"
                )
                self._report(ambiguities, AmbiguousRelationError(reason, table.name), strict)
                doubtful_tables[table.name] = reason
                continue
            junctions[table.name] = pair

        relations = []
        for table in structure.tables:
            if table.name in junctions:
                relations.append(self._many_to_many(table, *junctions[table.name]))
                continue
            for fk in table.foreign_keys:
                relations.append(self._from_foreign_key(
                    structure, table, fk, ambiguities, strict, doubtful_tables.get(table.name)
                ))

        relations.sort(key=lambda r: r.key)
        logger.debug(
            "Inferred %d relations (%d many-to-many, %d low confidence)",
            len(relations),
            sum(1 for r in relations if r.is_many_to_many),
            sum(1 for r in relations if r.is_low_confidence),
        )
        return InferenceResult(
            structure=structure,
            relations=tuple(relations),
            junction_tables=tuple(t.name for t in structure.tables if t.name in junctions),
            ambiguities=tuple(ambiguities),
        )

    def _junction_foreign_keys(self, table: Table) -> Optional[Tuple[ForeignKey, ForeignKey]]:
        """Return the two foreign keys of a pure junction table, or None."""
        if len(table.foreign_keys) != 2 or not table.primary_key_columns:
            return None

        first, second = table.foreign_keys
        targets = {first.referenced_table, second.referenced_table}
        if len(targets) != 2 or table.name in targets:
            return None

        if set(first.columns) & set(second.columns):
            return None
        key_columns = set(first.columns) | set(second.columns)
        if set(table.primary_key_columns) != key_columns:
            return None
        if {c.name for c in table.columns} != key_columns:
            return None

        # Column names, not declaration order, decide which side is first
        return tuple(sorted(table.foreign_keys, key=lambda fk: fk.columns))

    def _from_foreign_key(
        self,
        structure: StructuralModel,
        table: Table,
        fk: ForeignKey,
        ambiguities: List[AmbiguousRelationError],
        strict: bool,
        doubt: Optional[str] = None,
    ) -> Relation:
        target = structure.get_table(fk.referenced_table)
        cardinality = Cardinality.ONE_TO_ONE if table.is_unique(fk.columns) else Cardinality.ONE_TO_MANY

        confidence = Confidence.HIGH
        reason = doubt
        if not target.is_unique(fk.referenced_columns):
            reason = (
                f"Foreign key '{fk.name}' on '{table.name}' targets non-unique columns "
                f"'{target.name}({', '.join(fk.referenced_columns)})'"
            )
            self._report(ambiguities, AmbiguousRelationError(reason, table.name, fk.columns), strict)
        if reason is not None:
            confidence = Confidence.LOW

        return Relation(
            key=self.foreign_key_relation_key(fk),
            cardinality=cardinality,
            source_table=table.name,
            source_columns=fk.columns,
            target_table=fk.referenced_table,
            target_columns=fk.referenced_columns,
            foreign_keys=(fk,),
            confidence=confidence,
            reason=reason,
        )

    def _many_to_many(self, junction: Table, first: ForeignKey, second: ForeignKey) -> Relation:
        return Relation(
            key=junction.name,
            cardinality=Cardinality.MANY_TO_MANY,
            source_table=first.referenced_table,
            source_columns=first.referenced_columns,
            target_table=second.referenced_table,
            target_columns=second.referenced_columns,
            foreign_keys=(first, second),
            junction_table=junction.name,
        )

    @staticmethod
    def foreign_key_relation_key(fk: ForeignKey) -> str:
        """Stable relation key built from the table and key column names."""
        return f"{fk.table}.{'+'.join(fk.columns)}"

    @staticmethod
    def _report(ambiguities: List[AmbiguousRelationError], error: AmbiguousRelationError, strict: bool):
        if strict:
            raise error
        logger.warning("%s", error.message)
        ambiguities.append(error)
