"""Commune: membership and application lifecycle for multi-tenant communities."""

__version__ = "0.1.0"
