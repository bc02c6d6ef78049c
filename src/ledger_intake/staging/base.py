"""
Staging store interface.

A key-value store with per-key expiry holding JSON-serializable values.
Ownership checks are the caller's job; the store only knows keys.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

DEFAULT_TTL_SECONDS = 3600


class StagingStore(ABC):
    """Time-boxed key-value store for staged ingestion sessions."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        """Store a value that becomes unreadable after ttl_seconds.

        Returns:
            True when stored, False when the value could not be stored
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when missing or expired."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns True when the call succeeded."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True when the key is present and not expired."""
        pass

    def close(self) -> None:
        """Release background resources (no-op by default)."""
        pass


def serialize(value: Any) -> str:
    return json.dumps(value)


def deserialize(raw: Any) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)
