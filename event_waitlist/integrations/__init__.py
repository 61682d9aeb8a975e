"""
Store Integrations
"""

from .memory_store import InMemoryDatabase, create_memory_stores
from .firestore_client import FirestoreClient, create_firestore_stores

__all__ = [
    "InMemoryDatabase",
    "create_memory_stores",
    "FirestoreClient",
    "create_firestore_stores",
]
