"""Password storage for ALLREMOTE modules."""

from .base import MemoryPasswordStore, PasswordStore
from .database import SQLitePasswordStore

__all__ = ["MemoryPasswordStore", "PasswordStore", "SQLitePasswordStore"]
