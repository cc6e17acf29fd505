"""Persistence for events, rules, alerts, action failures and delivery metrics."""

from .database import Database, get_database, set_database

__all__ = [
    "Database",
    "get_database",
    "set_database",
]
