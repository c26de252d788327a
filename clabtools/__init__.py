"""Clos topology generation, node kind definitions, endpoint and publish parsing, and lab inspection helpers."""

__version__ = "0.1.0"