"""Data layer of the reference service.

This package provides the in-memory store behind the example endpoints.
"""

from src.database.store import InMemoryStore, Record, utc_timestamp

__all__ = ["InMemoryStore", "Record", "utc_timestamp"]
