"""dbmodel - relational schema introspection and normalization."""

__version__ = "0.1.0"
