# ==============================================================================
# Cache Abstract Base Class
# ==============================================================================
"""
Abstract interface for JSON key-value storage.

This is NOT a store (which represents domain record collections).
Stores use a Cache for plain reads and bulk deletes.

Implementations: Valkey, Redis, etc.
"""

from abc import ABC, abstractmethod


class Cache(ABC):
    """
    Generic cache interface for key-value storage.

    All values are stored as dicts (JSON-serializable). Implementations
    handle serialization/deserialization internally.
    """

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value as dict, or None if not found
        """
        ...

    @abstractmethod
    def get_many(self, keys: list[str]) -> dict[str, dict]:
        """
        Batch get multiple keys.

        Args:
            keys: List of cache keys to fetch

        Returns:
            Dict mapping key to value (missing keys are omitted)
        """
        ...

    @abstractmethod
    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Pattern to match (e.g., "visitguard:session:*")

        Returns:
            Count of keys deleted
        """
        ...
