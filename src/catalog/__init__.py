"""Catalog of instrument records and their documents."""

__version__ = "0.1.0"
