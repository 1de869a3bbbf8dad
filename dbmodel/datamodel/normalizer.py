"""Normalizer: turns the physical + relational model into a canonical datamodel.

Naming and ordering are derived from the database unless a reference
datamodel is given. In that case every model and field the reference
already knows keeps the reference's name and position, relations keep
their reference names, and newly discovered items are appended. The
reference is only read, never modified.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set, Tuple

from dbmodel.database.models import Cardinality, Relation, Table
from dbmodel.database.relationship import InferenceResult
from dbmodel.datamodel.models import (
    Datamodel,
    Field,
    FieldKind,
    Model,
    ModelRelation,
    RelationEndpoint,
    RelationLink,
)
from dbmodel.datamodel.naming import NamingPolicy, PrismaNamingPolicy

logger = logging.getLogger(__name__)

ID_TYPE_ALIAS = "ID"

# Position key for fields without a column; they follow all columns
VIRTUAL_POSITION = float("inf")

# Boolean defaults may come quoted, e.g. CAST('t' AS BOOLEAN)
BOOLEAN_LITERALS = {"t": "true", "true": "true", "f": "false", "false": "false"}


def default_value(expression: Optional[str], scalar_type: str) -> Optional[str]:
    """Extract a literal default from an opaque default expression.

    Returns None for expressions that are not plain literals, such as
    sequences (``nextval(...)``) or function calls (``now()``).
    """
    if expression is None:
        return None
    expr = expression.strip()
    while expr.startswith("(") and expr.endswith(")"):
        expr = expr[1:-1].strip()

    match = re.match(r"^'((?:[^']|'')*)'(?:::[\w\s\".\[\]]+)?$", expr)
    if not match:
        match = re.match(r"^CAST\('((?:[^']|'')*)' AS [\w\s]+\)$", expr, re.IGNORECASE)
    if match:
        literal = match.group(1).replace("''", "'")
        if scalar_type == "Boolean":
            return BOOLEAN_LITERALS.get(literal.lower())
        return literal

    number = re.match(r"^\(?(-?\d+(?:\.\d+)?)\)?(?:::[\w\s]+)?$", expr)
    if number:
        return number.group(1)

    if scalar_type == "Boolean" and expr.lower() in ("true", "false"):
        return expr.lower()

    return None


@dataclass
class _DraftField:
    """Mutable planning record for one field, local to a single normalize call."""
    key: str
    name: str
    from_reference: bool
    position: Tuple[float, int]
    ref_index: Optional[int] = None
    template: Optional[Field] = None
    relation_key: Optional[str] = None


@dataclass
class _DraftModel:
    table: Table
    name: str
    ref_model: Optional[Model] = None
    ref_index: Optional[int] = None
    fields: "OrderedDict[str, _DraftField]" = field(default_factory=OrderedDict)
    claimed_ref_fields: Set[str] = field(default_factory=set)


@dataclass
class _DraftRelation:
    relation: Relation
    name: str
    endpoints: Tuple[Tuple[str, str], Tuple[str, str]]  # ((table, field key), (table, field key))
    ref_index: Optional[int] = None


class _ReferenceIndex:
    """Read-only lookups into a reference datamodel."""

    def __init__(self, reference: Datamodel):
        self.reference = reference
        self.model_index = {m.name: i for i, m in enumerate(reference.models)}
        self.relation_index = {r.name: i for i, r in enumerate(reference.relations)}
        self._by_table: Dict[str, Model] = {}
        self._by_table_folded: Dict[str, Model] = {}
        for model in reference.models:
            self._by_table.setdefault(model.table_name, model)
            self._by_table_folded.setdefault(model.table_name.lower(), model)

    def model_for_table(self, table: str) -> Optional[Model]:
        return self._by_table.get(table) or self._by_table_folded.get(table.lower())

    def relation_by_junction(self, junction: str) -> Optional[ModelRelation]:
        for relation in self.reference.relations:
            if relation.junction_table == junction:
                return relation
        return None

    def relation(self, name: Optional[str]) -> Optional[ModelRelation]:
        if name is None:
            return None
        return self.reference.get_relation(name)


class Normalizer:
    """Builds the canonical ``Datamodel`` from an ``InferenceResult``.

    Example usage:
        normalizer = Normalizer(PrismaNamingPolicy())
        datamodel = normalizer.normalize(inference)
        reconciled = normalizer.normalize(inference, reference=previous)
    """

    def __init__(self, naming: Optional[NamingPolicy] = None):
        self.naming = naming or PrismaNamingPolicy()

    def normalize(self, inference: InferenceResult, reference: Optional[Datamodel] = None) -> Datamodel:
        """Normalize an inference result, optionally reconciled against a reference.

        Args:
            inference: Structural model with inferred relations
            reference: Previously produced datamodel whose names and
                       ordering should be preserved

        Returns:
            An immutable, validated Datamodel
        """
        ref = _ReferenceIndex(reference) if reference is not None else None

        models = self._plan_models(inference, ref)
        if reference is not None:
            matched = {d.ref_model.name for d in models.values() if d.ref_model is not None}
            for model in reference.models:
                if model.name not in matched:
                    logger.warning(
                        "Reference model %s has no table %s in the database; dropping it",
                        model.name, model.table_name,
                    )
        for draft in models.values():
            self._plan_columns(draft, inference)
        relations = self._plan_relations(inference, models, ref)
        for draft in models.values():
            self._resolve_field_names(draft)
        self._resolve_relation_names(relations)

        datamodel = self._assemble(models, relations)
        logger.debug(
            "Normalized %d models and %d relations (%s reference)",
            len(datamodel.models), len(datamodel.relations),
            "with" if reference is not None else "without",
        )
        return datamodel

    # Models

    def _plan_models(
        self, inference: InferenceResult, ref: Optional[_ReferenceIndex]
    ) -> "OrderedDict[str, _DraftModel]":
        models: "OrderedDict[str, _DraftModel]" = OrderedDict()
        taken: Set[str] = set()

        # Reference names are claimed first so derived names never steal them
        for table in inference.model_tables():
            ref_model = ref.model_for_table(table.name) if ref else None
            if ref_model is not None and ref_model.name in taken:
                ref_model = None
            draft = _DraftModel(table=table, name="", ref_model=ref_model)
            if ref_model is not None:
                draft.name = ref_model.name
                draft.ref_index = ref.model_index[ref_model.name]
                taken.add(draft.name)
            models[table.name] = draft

        for draft in models.values():
            if not draft.name:
                draft.name = _unique_name(self.naming.model_name(draft.table.name), taken)
                taken.add(draft.name)
        return models

    # Scalar and inline relation fields

    def _plan_columns(self, draft: _DraftModel, inference: InferenceResult):
        table = draft.table
        primary_key = set(table.primary_key_columns)
        consumed: Set[str] = set()
        for relation in inference.relations:
            if relation.source_table == table.name and not relation.is_many_to_many:
                consumed.update(c for c in relation.source_columns if c not in primary_key)

        single_uniques = {u[0] for u in table.unique_constraints if len(u) == 1}
        single_id = table.primary_key_columns[0] if len(table.primary_key_columns) == 1 else None

        for column in table.columns:
            if column.name in consumed:
                continue
            ref_field = self._claim_column_field(draft, column.name, FieldKind.SCALAR)
            is_id = column.name == single_id
            scalar_type = column.scalar_type
            if is_id and ref_field is not None and ref_field.type == ID_TYPE_ALIAS \
                    and scalar_type in ("Int", "String"):
                scalar_type = ID_TYPE_ALIAS
            template = Field(
                name="",
                type=scalar_type,
                kind=FieldKind.SCALAR,
                is_required=not column.is_nullable and not column.is_list,
                is_list=column.is_list,
                is_id=is_id,
                is_unique=column.name in single_uniques and not is_id,
                default=default_value(column.default, column.scalar_type),
                db_name=column.name,
            )
            self._add_field(
                draft,
                key=f"column:{column.name}",
                derived_name=self.naming.field_name(column.name),
                ref_field=ref_field,
                position=(float(column.position), 0),
                template=template,
            )

    def _claim_column_field(self, draft: _DraftModel, column: str, kind: FieldKind) -> Optional[Field]:
        if draft.ref_model is None:
            return None
        for f in draft.ref_model.fields:
            if f.db_name == column and f.kind is kind and f.name not in draft.claimed_ref_fields:
                draft.claimed_ref_fields.add(f.name)
                return f
        return None

    def _claim_field(self, draft: _DraftModel, predicate) -> Optional[Field]:
        if draft.ref_model is None:
            return None
        for f in draft.ref_model.fields:
            if f.name not in draft.claimed_ref_fields and predicate(f):
                draft.claimed_ref_fields.add(f.name)
                return f
        return None

    def _add_field(
        self,
        draft: _DraftModel,
        key: str,
        derived_name: str,
        ref_field: Optional[Field],
        position: Tuple[float, int],
        template: Field,
        relation_key: Optional[str] = None,
    ) -> _DraftField:
        ref_index = None
        if ref_field is not None:
            ref_index = [f.name for f in draft.ref_model.fields].index(ref_field.name)
        draft_field = _DraftField(
            key=key,
            name=ref_field.name if ref_field is not None else derived_name,
            from_reference=ref_field is not None,
            position=position,
            ref_index=ref_index,
            template=template,
            relation_key=relation_key,
        )
        draft.fields[key] = draft_field
        return draft_field

    # Relations

    def _plan_relations(
        self,
        inference: InferenceResult,
        models: "OrderedDict[str, _DraftModel]",
        ref: Optional[_ReferenceIndex],
    ) -> List[_DraftRelation]:
        pair_counts: Dict[frozenset, int] = {}
        directed_counts: Dict[Tuple[str, str], int] = {}
        for relation in inference.relations:
            pair = frozenset((relation.source_table, relation.target_table))
            pair_counts[pair] = pair_counts.get(pair, 0) + 1
            direction = (relation.source_table, relation.target_table)
            directed_counts[direction] = directed_counts.get(direction, 0) + 1

        planned = []
        for index, relation in enumerate(inference.relations):
            shared_pair = pair_counts[frozenset((relation.source_table, relation.target_table))] > 1
            if relation.is_many_to_many:
                planned.append(self._plan_many_to_many(relation, index, models, ref, shared_pair))
            else:
                repeated = directed_counts[(relation.source_table, relation.target_table)] > 1
                planned.append(self._plan_inline(relation, index, models, ref, shared_pair, repeated))
        return planned

    def _plan_inline(
        self,
        relation: Relation,
        index: int,
        models: "OrderedDict[str, _DraftModel]",
        ref: Optional[_ReferenceIndex],
        shared_pair: bool,
        repeated: bool,
    ) -> _DraftRelation:
        source = models[relation.source_table]
        target = models[relation.target_table]
        fk = relation.foreign_keys[0]
        table = source.table
        is_list = relation.cardinality is Cardinality.ONE_TO_MANY

        # Forward field replaces the key column; it follows key columns kept as scalars
        first_column = table.get_column(fk.columns[0])
        in_primary_key = [c for c in fk.columns if c in table.primary_key_columns]
        if in_primary_key:
            last = max((table.get_column(c) for c in fk.columns), key=lambda c: c.position)
            position = (float(last.position), 1)
        else:
            position = (float(first_column.position), 0)

        ref_forward = self._claim_column_field(source, fk.columns[0], FieldKind.RELATION)
        forward_name = ref_forward.name if ref_forward else self.naming.relation_field_name(fk.columns, target.name)
        forward_key = f"relation:{relation.key}:forward"
        self._add_field(
            source,
            key=forward_key,
            derived_name=forward_name,
            ref_field=ref_forward,
            position=position,
            template=Field(
                name="",
                type=target.name,
                kind=FieldKind.RELATION,
                is_required=all(not table.get_column(c).is_nullable for c in fk.columns),
                db_name=fk.columns[0],
                link=RelationLink.INLINE,
            ),
            relation_key=relation.key,
        )

        ref_relation = ref.relation(ref_forward.relation_name) if (ref and ref_forward) else None
        if ref_relation is not None:
            name = ref_relation.name
        elif shared_pair:
            name = self.naming.disambiguated_relation_name(source.name, forward_name, target.name)
        else:
            name = self.naming.relation_name(source.name, target.name)

        if repeated:
            back_name = self.naming.disambiguated_back_reference_name(source.name, forward_name, is_list)
        else:
            back_name = self.naming.back_reference_name(source.name, is_list)

        ref_back = None
        if ref_relation is not None:
            forward_endpoint = RelationEndpoint(source.ref_model.name, ref_forward.name)
            other = ref_relation.other_endpoint(forward_endpoint)
            if target.ref_model is not None and other.model == target.ref_model.name:
                ref_back = self._claim_field(target, lambda f: f.name == other.field and f.is_relation)
        if ref_back is None and not repeated:
            ref_back = self._claim_unique_virtual(target, source.name, is_list)

        back_key = f"relation:{relation.key}:back"
        self._add_field(
            target,
            key=back_key,
            derived_name=back_name,
            ref_field=ref_back,
            position=(VIRTUAL_POSITION, index),
            template=Field(
                name="",
                type=source.name,
                kind=FieldKind.RELATION,
                is_list=is_list,
            ),
            relation_key=relation.key,
        )

        return _DraftRelation(
            relation=relation,
            name=name,
            endpoints=((relation.source_table, forward_key), (relation.target_table, back_key)),
            ref_index=ref.relation_index.get(name) if ref else None,
        )

    def _plan_many_to_many(
        self,
        relation: Relation,
        index: int,
        models: "OrderedDict[str, _DraftModel]",
        ref: Optional[_ReferenceIndex],
        shared_pair: bool,
    ) -> _DraftRelation:
        first = models[relation.source_table]
        second = models[relation.target_table]
        junction = relation.junction_table

        ref_relation = ref.relation_by_junction(junction) if ref else None
        if ref_relation is not None:
            name = ref_relation.name
        elif shared_pair:
            name = self.naming.junction_relation_name(junction)
        else:
            name = self.naming.relation_name(first.name, second.name)

        keys = []
        for side, other in ((first, second), (second, first)):
            if shared_pair:
                derived = self.naming.junction_field_name(junction)
            else:
                derived = self.naming.many_to_many_field_name(other.name)

            ref_field = None
            if ref_relation is not None and side.ref_model is not None:
                ref_field = self._claim_field(
                    side,
                    lambda f, other=other: f.is_relation and f.relation_name == ref_relation.name
                    and f.type == other.name,
                )
            if ref_field is None and not shared_pair:
                ref_field = self._claim_unique_virtual(side, other.name, True)

            key = f"relation:{relation.key}:{'first' if side is first else 'second'}"
            self._add_field(
                side,
                key=key,
                derived_name=derived,
                ref_field=ref_field,
                position=(VIRTUAL_POSITION, index),
                template=Field(
                    name="",
                    type=other.name,
                    kind=FieldKind.RELATION,
                    is_list=True,
                    link=RelationLink.TABLE,
                ),
                relation_key=relation.key,
            )
            keys.append((side.table.name, key))

        return _DraftRelation(
            relation=relation,
            name=name,
            endpoints=(keys[0], keys[1]),
            ref_index=ref.relation_index.get(name) if ref else None,
        )

    def _claim_unique_virtual(self, draft: _DraftModel, type_name: str, is_list: bool) -> Optional[Field]:
        """Claim the only unclaimed virtual reference field of the given type."""
        if draft.ref_model is None:
            return None
        candidates = [
            f for f in draft.ref_model.fields
            if f.is_relation and f.is_virtual and f.type == type_name
            and f.is_list == is_list and f.name not in draft.claimed_ref_fields
        ]
        if len(candidates) != 1:
            return None
        draft.claimed_ref_fields.add(candidates[0].name)
        return candidates[0]

    # Names and assembly

    def _resolve_field_names(self, draft: _DraftModel):
        taken = {f.name for f in draft.fields.values() if f.from_reference}
        for draft_field in sorted(draft.fields.values(), key=lambda f: f.position):
            if draft_field.from_reference:
                continue
            draft_field.name = _unique_name(draft_field.name, taken)
            taken.add(draft_field.name)

    def _resolve_relation_names(self, relations: List[_DraftRelation]):
        # Names known to the reference are claimed first, in reference order
        taken: Set[str] = set()
        known = sorted((r for r in relations if r.ref_index is not None), key=lambda r: r.ref_index)
        for draft in known + [r for r in relations if r.ref_index is None]:
            if draft.name in taken:
                draft.name = _unique_name(draft.name, taken)
                draft.ref_index = None
            taken.add(draft.name)

    def _assemble(
        self,
        models: "OrderedDict[str, _DraftModel]",
        relations: List[_DraftRelation],
    ) -> Datamodel:
        relation_names = {r.relation.key: r.name for r in relations}

        built_models = []
        for draft in _reference_order(list(models.values())):
            ordered = _reference_order(sorted(draft.fields.values(), key=lambda f: f.position))
            fields = tuple(
                replace(
                    f.template,
                    name=f.name,
                    relation_name=relation_names.get(f.relation_key),
                )
                for f in ordered
            )
            id_fields = ()
            if len(draft.table.primary_key_columns) > 1:
                id_fields = tuple(
                    draft.fields[f"column:{c}"].name for c in draft.table.primary_key_columns
                )
            built_models.append(Model(
                name=draft.name,
                fields=fields,
                db_name=draft.table.name,
                id_fields=id_fields,
            ))

        built_relations = []
        for draft in _reference_order(relations):
            endpoints = tuple(
                RelationEndpoint(models[table].name, models[table].fields[key].name)
                for table, key in draft.endpoints
            )
            built_relations.append(ModelRelation(
                name=draft.name,
                cardinality=draft.relation.cardinality,
                endpoints=endpoints,
                junction_table=draft.relation.junction_table,
                on_delete=draft.relation.on_delete,
                low_confidence=draft.relation.is_low_confidence,
            ))

        return Datamodel.create(built_models, built_relations)


def _reference_order(items: list) -> list:
    """Items known to the reference in reference order, then new items in given order."""
    ordered: "OrderedDict[int, object]" = OrderedDict()
    for position, item in sorted(
        ((i, item) for i, item in enumerate(items) if item.ref_index is not None),
        key=lambda pair: pair[1].ref_index,
    ):
        ordered[position] = item
    for position, item in enumerate(items):
        if item.ref_index is None:
            ordered[position] = item
    return list(ordered.values())


def _unique_name(name: str, taken: Set[str]) -> str:
    if name not in taken:
        return name
    suffix = 2
    while f"{name}{suffix}" in taken:
        suffix += 1
    return f"{name}{suffix}"
