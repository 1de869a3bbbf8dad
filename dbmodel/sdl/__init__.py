"""Schema-description text rendering and parsing."""

from .parser import SchemaParser, parse
from .renderer import DatamodelRenderer, render

__all__ = [
    "SchemaParser",
    "parse",
    "DatamodelRenderer",
    "render",
]
