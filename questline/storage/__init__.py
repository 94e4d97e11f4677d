# Storage gateway: table contract plus in-memory and file-backed implementations.

from questline.storage.gateway import SINGLETON_KEY, Table
from questline.storage.memory import MemoryTable
from questline.storage.json_store import EventLogTable, JsonTable
from questline.storage.database import Database, memory_database, open_backend, open_database

__all__ = [
    "SINGLETON_KEY",
    "Table",
    "MemoryTable",
    "JsonTable",
    "EventLogTable",
    "Database",
    "memory_database",
    "open_database",
    "open_backend",
]
