"""Canonical datamodel and the normalizer that produces it."""

from .models import (
    Datamodel,
    Field,
    FieldKind,
    Model,
    ModelRelation,
    RelationEndpoint,
    RelationLink,
)
from .naming import NamingPolicy, PrismaNamingPolicy, PreservingNamingPolicy, get_naming_policy
from .normalizer import Normalizer

__all__ = [
    "Datamodel",
    "Field",
    "FieldKind",
    "Model",
    "ModelRelation",
    "RelationEndpoint",
    "RelationLink",
    "NamingPolicy",
    "PrismaNamingPolicy",
    "PreservingNamingPolicy",
    "get_naming_policy",
    "Normalizer",
]
