"""Database configuration and utilities."""

from .session import SessionLocal, build_engine, create_tables, drop_tables, get_db
from .transaction import transaction

__all__ = ["build_engine", "create_tables", "drop_tables", "get_db", "SessionLocal", "transaction"]
