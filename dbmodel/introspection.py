"""Introspection pipeline: catalog → structure → relations → datamodel."""

import logging
from typing import Optional, Tuple

from dbmodel.database.base import CatalogReader
from dbmodel.database.builder import StructuralModelBuilder
from dbmodel.database.models import RawCatalog, StructuralModel
from dbmodel.database.relationship import InferenceResult, RelationInferencer
from dbmodel.datamodel.models import Datamodel
from dbmodel.datamodel.naming import NamingPolicy, PreservingNamingPolicy, PrismaNamingPolicy
from dbmodel.datamodel.normalizer import Normalizer
from dbmodel.errors import AmbiguousRelationError

logger = logging.getLogger(__name__)


class IntrospectionResult:
    """Everything read and inferred for one schema.

    Holds no mutable state; each datamodel accessor builds a fresh
    Datamodel from the same inference result.
    """

    def __init__(self, catalog: RawCatalog, structure: StructuralModel, inference: InferenceResult):
        self.catalog = catalog
        self.structure = structure
        self.inference = inference

    @property
    def ambiguities(self) -> Tuple[AmbiguousRelationError, ...]:
        return self.inference.ambiguities

    def get_datamodel(self) -> Datamodel:
        """Datamodel with database identifiers kept verbatim."""
        return Normalizer(PreservingNamingPolicy()).normalize(self.inference)

    def get_normalized_datamodel(
        self,
        reference: Optional[Datamodel] = None,
        naming: Optional[NamingPolicy] = None,
    ) -> Datamodel:
        """Canonical datamodel, reconciled against ``reference`` when given."""
        return Normalizer(naming or PrismaNamingPolicy()).normalize(self.inference, reference)


class Introspector:
    """Runs the introspection pipeline against a catalog reader.

    Example usage:
        with PostgresCatalogReader(dsn="postgresql://...") as reader:
            result = Introspector(reader).introspect("public")
            datamodel = result.get_normalized_datamodel(reference)
    """

    def __init__(
        self,
        reader: CatalogReader,
        builder: Optional[StructuralModelBuilder] = None,
        inferencer: Optional[RelationInferencer] = None,
        strict: bool = False,
    ):
        self.reader = reader
        self.builder = builder or StructuralModelBuilder()
        self.inferencer = inferencer or RelationInferencer()
        self.strict = strict

    def introspect(self, schema: str) -> IntrospectionResult:
        """Read and analyse one schema.

        Raises:
            CatalogConnectionError, CatalogPermissionError, SchemaNotFoundError:
                From the catalog reader
            MalformedCatalogError: If the catalog is structurally impossible
            AmbiguousRelationError: Only in strict mode
        """
        catalog = self.reader.read_catalog(schema)
        structure = self.builder.build(catalog)
        inference = self.inferencer.infer(structure, strict=self.strict)
        if inference.ambiguities:
            logger.warning(
                "%d relation(s) in %s were inferred with low confidence",
                len(inference.ambiguities), schema,
            )
        return IntrospectionResult(catalog, structure, inference)


def introspect(
    reader: CatalogReader,
    schema: str,
    reference: Optional[Datamodel] = None,
    strict: bool = False,
) -> Datamodel:
    """Introspect a schema and return its normalized datamodel."""
    result = Introspector(reader, strict=strict).introspect(schema)
    return result.get_normalized_datamodel(reference)
