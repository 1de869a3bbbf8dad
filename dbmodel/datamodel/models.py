"""Canonical datamodel: models, fields and relations.

Everything here is immutable. A ``Datamodel`` checks its invariants when
it is constructed and raises ``InvariantViolation`` instead of existing
in an inconsistent state.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from dbmodel.database.models import Cardinality
from dbmodel.errors import InvariantViolation


class FieldKind(str, Enum):
    """Whether a field holds a scalar value or points at another model."""
    SCALAR = "scalar"
    RELATION = "relation"


class RelationLink(str, Enum):
    """How a relation is stored: a column on one side, or a junction table."""
    INLINE = "INLINE"
    TABLE = "TABLE"


@dataclass(frozen=True)
class Field:
    """A model field.

    ``db_name`` is the backing column. Scalar fields and the inline side
    of a relation always have one; back-reference and many-to-many
    fields have none.
    """
    name: str
    type: str
    kind: FieldKind = FieldKind.SCALAR
    is_required: bool = False
    is_list: bool = False
    is_id: bool = False
    is_unique: bool = False
    default: Optional[str] = None
    db_name: Optional[str] = None
    relation_name: Optional[str] = None
    link: Optional[RelationLink] = None

    @property
    def is_relation(self) -> bool:
        return self.kind is FieldKind.RELATION

    @property
    def is_virtual(self) -> bool:
        """True for relation fields without a backing column."""
        return self.db_name is None


@dataclass(frozen=True)
class Model:
    """A logical entity built from exactly one table."""
    name: str
    fields: Tuple[Field, ...] = ()
    db_name: Optional[str] = None
    id_fields: Tuple[str, ...] = ()

    @property
    def table_name(self) -> str:
        """Backing table; the model name when no explicit name is set."""
        return self.db_name or self.name

    def get_field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field_for_column(self, column: str) -> Optional[Field]:
        for f in self.fields:
            if f.db_name == column:
                return f
        return None

    def relation_fields(self) -> Tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_relation)

    def scalar_fields(self) -> Tuple[Field, ...]:
        return tuple(f for f in self.fields if not f.is_relation)


@dataclass(frozen=True)
class RelationEndpoint:
    """One side of a relation: a (model, field) pair."""
    model: str
    field: str


@dataclass(frozen=True)
class ModelRelation:
    """A relation between two models.

    For inline relations the first endpoint holds the foreign key column
    and the second endpoint is the back-reference. Many-to-many relations
    name their junction table.
    """
    name: str
    cardinality: Cardinality
    endpoints: Tuple[RelationEndpoint, RelationEndpoint]
    junction_table: Optional[str] = None
    on_delete: str = "NO ACTION"
    # Not rendered, so not part of equality
    low_confidence: bool = field(default=False, compare=False)

    @property
    def is_self_relation(self) -> bool:
        return self.endpoints[0].model == self.endpoints[1].model

    def other_endpoint(self, endpoint: RelationEndpoint) -> RelationEndpoint:
        first, second = self.endpoints
        return second if endpoint == first else first


@dataclass(frozen=True, eq=False)
class Datamodel:
    """The normalized, renderer-agnostic datamodel.

    Equality ignores relation order and relation confidence, neither of
    which shows in a rendering.
    """
    models: Tuple[Model, ...] = ()
    relations: Tuple[ModelRelation, ...] = ()
    _models_by_name: Dict[str, Model] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "models", tuple(self.models))
        object.__setattr__(self, "relations", tuple(self.relations))
        object.__setattr__(self, "_models_by_name", {m.name: m for m in self.models})
        self._check_invariants()

    @classmethod
    def create(cls, models, relations=()) -> "Datamodel":
        """Build a datamodel, raising InvariantViolation if it is inconsistent."""
        return cls(models=tuple(models), relations=tuple(relations))

    def __eq__(self, other):
        if not isinstance(other, Datamodel):
            return NotImplemented
        return self.models == other.models and set(self.relations) == set(other.relations)

    def __hash__(self):
        return hash((self.models, frozenset(self.relations)))

    def __iter__(self) -> Iterator[Model]:
        return iter(self.models)

    def get_model(self, name: str) -> Optional[Model]:
        return self._models_by_name.get(name)

    def get_model_by_table(self, table: str) -> Optional[Model]:
        for model in self.models:
            if model.table_name == table:
                return model
        return None

    def get_relation(self, name: str) -> Optional[ModelRelation]:
        for relation in self.relations:
            if relation.name == name:
                return relation
        return None

    def model_names(self) -> Tuple[str, ...]:
        return tuple(m.name for m in self.models)

    def low_confidence_relations(self) -> Tuple[ModelRelation, ...]:
        return tuple(r for r in self.relations if r.low_confidence)

    def _check_invariants(self):
        duplicates = [name for name, n in Counter(m.name for m in self.models).items() if n > 1]
        if duplicates:
            raise InvariantViolation(f"Duplicate model name '{duplicates[0]}'", model=duplicates[0])

        for model in self.models:
            names = Counter(f.name for f in model.fields)
            for name, count in names.items():
                if count > 1:
                    raise InvariantViolation(
                        f"Duplicate field '{name}' in model '{model.name}'", model=model.name, field=name
                    )

        relation_names = Counter(r.name for r in self.relations)
        for name, count in relation_names.items():
            if count > 1:
                raise InvariantViolation(f"Duplicate relation name '{name}'")

        owners: Counter = Counter()
        for relation in self.relations:
            first, second = relation.endpoints
            if first == second:
                raise InvariantViolation(
                    f"Relation '{relation.name}' uses the same field for both endpoints",
                    model=first.model, field=first.field,
                )
            for endpoint in relation.endpoints:
                self._check_endpoint(relation, endpoint)
                owners[(endpoint.model, endpoint.field)] += 1

        for model in self.models:
            for f in model.relation_fields():
                if owners[(model.name, f.name)] != 1:
                    raise InvariantViolation(
                        f"Relation field '{model.name}.{f.name}' resolves to "
                        f"{owners[(model.name, f.name)]} relations, expected exactly one",
                        model=model.name, field=f.name,
                    )

    def _check_endpoint(self, relation: ModelRelation, endpoint: RelationEndpoint):
        model = self.get_model(endpoint.model)
        if model is None:
            raise InvariantViolation(
                f"Relation '{relation.name}' references unknown model '{endpoint.model}'",
                model=endpoint.model,
            )
        f = model.get_field(endpoint.field)
        if f is None or not f.is_relation:
            raise InvariantViolation(
                f"Relation '{relation.name}' references missing relation field "
                f"'{endpoint.model}.{endpoint.field}'",
                model=endpoint.model, field=endpoint.field,
            )
        if f.relation_name != relation.name:
            raise InvariantViolation(
                f"Field '{endpoint.model}.{endpoint.field}' names relation "
                f"'{f.relation_name}' but belongs to '{relation.name}'",
                model=endpoint.model, field=endpoint.field,
            )
        other = relation.other_endpoint(endpoint)
        if f.type != other.model:
            raise InvariantViolation(
                f"Field '{endpoint.model}.{endpoint.field}' has type '{f.type}' "
                f"but relation '{relation.name}' points at '{other.model}'",
                model=endpoint.model, field=endpoint.field,
            )
