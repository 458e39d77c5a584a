"""
Adapters layer - Storage backends implementing the service protocols.
"""

from .json_store import JsonFileStore
from .memory_store import InMemoryStore

__all__ = ["InMemoryStore", "JsonFileStore"]
