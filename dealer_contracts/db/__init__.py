"""Database modules"""

from dealer_contracts.db.base import DatabaseInterface, StorageInterface
from dealer_contracts.db.supabase import get_database, get_storage

__all__ = [
    "DatabaseInterface",
    "StorageInterface",
    "get_database",
    "get_storage",
]
