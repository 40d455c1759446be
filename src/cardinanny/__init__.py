"""Cardinanny: keeps high-cardinality labels out of Prometheus."""

__version__ = "0.1.0"
