# gltfbake/assets/registry.py
import threading
from typing import Any, Dict, Hashable, Optional


class AssetRegistry:
    """
    Stores loaded asset data (CPU side) by key. Safe to share between
    threads; every access goes through one lock.
    """

    def __init__(self) -> None:
        self._storage: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    def store(self, key: Hashable, data: Any) -> None:
        """Register a loaded asset, replacing any previous entry."""
        with self._lock:
            self._storage[key] = data

    def setdefault(self, key: Hashable, data: Any) -> Any:
        """Store data unless the key is taken; return whichever entry wins."""
        with self._lock:
            return self._storage.setdefault(key, data)

    def get(self, key: Hashable) -> Optional[Any]:
        """Retrieve asset data if available."""
        with self._lock:
            return self._storage.get(key)

    def discard(self, key: Hashable) -> None:
        with self._lock:
            self._storage.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._storage

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def clear(self) -> None:
        """Clear all loaded assets (use with caution)."""
        with self._lock:
            self._storage.clear()
