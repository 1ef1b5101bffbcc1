"""Storage layer: asyncpg pool and schema bootstrap."""

from adoption_tracker.storage.database import Database
from adoption_tracker.storage.schema import create_all_tables

__all__ = ["Database", "create_all_tables"]
