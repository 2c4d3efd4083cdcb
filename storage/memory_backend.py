"""In-process key-value backend for the cache store."""
from typing import Dict, List, Optional


class MemoryBackend:
    """Dictionary-backed storage, used in tests and local runs."""

    def __init__(self):
        self.items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def put_item(self, key: str, value: str, expires_at: Optional[int] = None) -> None:
        # Expiry is enforced by CacheStore on read.
        self.items[key] = value

    def delete_item(self, key: str) -> None:
        self.items.pop(key, None)

    def list_keys(self, prefix: str = '') -> List[str]:
        return [key for key in self.items if key.startswith(prefix)]
