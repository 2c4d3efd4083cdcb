"""Time-bounded cache for calendar snapshots and location preferences."""
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from processor.models import CacheEntry, NormalizedCalendarSnapshot, SavedLocation

logger = logging.getLogger(__name__)


class CacheStore:
    """Cache service over an injectable key-value backend.

    Holds one slot for the current weekly snapshot, a keyed namespace for
    everything else (daily times by date, prefetched weekly snapshots) and
    the saved location preference. Reads never raise: unreadable or
    expired records count as misses.
    """

    WEEKLY_KEY = 'zmanym_zmanim_cache'
    KEYED_PREFIX = 'zmanym_cache_'
    LOCATION_KEY = 'zmanym_location'

    WEEKLY_TTL_SECONDS = 24 * 60 * 60
    KEYED_TTL_SECONDS = 7 * 24 * 60 * 60

    def __init__(
        self,
        backend,
        clock: Callable[[], float] = time.time,
        weekly_ttl: int = WEEKLY_TTL_SECONDS,
        keyed_ttl: int = KEYED_TTL_SECONDS
    ):
        """
        Initialize the cache store.

        Args:
            backend: Storage with get_item/put_item/delete_item/list_keys
            clock: Returns the current time in epoch seconds
            weekly_ttl: Lifetime of the weekly snapshot in seconds
            keyed_ttl: Default lifetime of keyed entries in seconds
        """
        self.backend = backend
        self.clock = clock
        self.weekly_ttl = weekly_ttl
        self.keyed_ttl = keyed_ttl

    # Weekly snapshot slot

    def get_weekly(self, location_id: str) -> Optional[NormalizedCalendarSnapshot]:
        """
        Return the cached weekly snapshot for a location.

        An expired slot is a miss and is removed, whichever location it
        holds. A fresh slot holding another location is a miss and is left
        in place.
        """
        entry = self._read_entry(self.WEEKLY_KEY)
        if entry is None:
            logger.debug("No cached weekly data found")
            return None

        age_ms = self._now_ms() - entry.written_at
        if age_ms > self.weekly_ttl * 1000:
            logger.info(
                f"Cached weekly data is expired (age: {round(age_ms / 3600000)} hours)"
            )
            self.invalidate_weekly()
            return None

        if entry.key != location_id:
            logger.debug("Cached weekly data is for a different location")
            return None

        snapshot = self._load_payload(
            self.WEEKLY_KEY, entry.payload, NormalizedCalendarSnapshot.from_dict
        )
        if snapshot is not None:
            logger.info(
                f"Using cached weekly data for {entry.display_name} "
                f"(age: {round(age_ms / 60000)} minutes)"
            )
        return snapshot

    def set_weekly(
        self,
        location_id: str,
        display_name: str,
        snapshot: NormalizedCalendarSnapshot
    ) -> None:
        """Replace the weekly slot with a snapshot for the given location."""
        written_at = self._now_ms()
        record = {
            'payload': snapshot.to_dict(),
            'writtenAt': written_at,
            'locationId': location_id,
            'displayName': display_name
        }
        if self._write(self.WEEKLY_KEY, record, written_at + self.weekly_ttl * 1000):
            logger.info(f"Saved weekly data for {display_name}")

    def invalidate_weekly(self) -> None:
        self._delete(self.WEEKLY_KEY)

    def has_valid_weekly(self, location_id: str) -> bool:
        return self.get_weekly(location_id) is not None

    def cache_info(self) -> Dict[str, Any]:
        """Describe the weekly slot: presence, age in minutes, display name."""
        entry = self._read_entry(self.WEEKLY_KEY)
        if entry is None:
            return {'has_cache': False}
        return {
            'has_cache': True,
            'age': round((self._now_ms() - entry.written_at) / 60000),
            'location': entry.display_name
        }

    # Keyed namespace

    def get(self, key: str, loader: Optional[Callable[[Dict[str, Any]], Any]] = None) -> Any:
        """
        Return a keyed entry, or None when absent or expired.

        Args:
            key: Logical cache key, e.g. "daily_zmanim_5128581_2024-01-05"
            loader: Optional function rebuilding an object from the payload

        Returns:
            The payload (rebuilt by loader when given) or None
        """
        storage_key = self.KEYED_PREFIX + key
        entry = self._read_entry(storage_key)
        if entry is None:
            return None

        if self._is_expired(entry, self._now_ms()):
            logger.info(f"Removing expired cache entry {key}")
            self._delete(storage_key)
            return None

        if loader is None:
            return entry.payload
        return self._load_payload(storage_key, entry.payload, loader)

    def set(self, key: str, payload: Any, ttl: Optional[int] = None) -> None:
        """
        Store a payload under a key.

        Args:
            key: Logical cache key
            payload: Object with to_dict, or a plain dict
            ttl: Lifetime in seconds (default: keyed_ttl)
        """
        if hasattr(payload, 'to_dict'):
            payload = payload.to_dict()
        ttl = self.keyed_ttl if ttl is None else ttl
        written_at = self._now_ms()
        record = {'payload': payload, 'writtenAt': written_at, 'ttl': ttl}
        self._write(self.KEYED_PREFIX + key, record, written_at + ttl * 1000)

    def invalidate(self, key: str) -> None:
        self._delete(self.KEYED_PREFIX + key)

    def clear(self) -> None:
        """Remove every keyed entry."""
        for storage_key in self._list_keys(self.KEYED_PREFIX):
            self._delete(storage_key)

    def clear_expired(self) -> int:
        """
        Remove expired or unreadable keyed entries.

        Returns:
            Number of entries removed
        """
        removed = 0
        now_ms = self._now_ms()
        for storage_key in self._list_keys(self.KEYED_PREFIX):
            entry = self._read_entry(storage_key)
            if entry is None or self._is_expired(entry, now_ms, inclusive=True):
                self._delete(storage_key)
                removed += 1

        logger.info(f"Cleared {removed} expired cache entries")
        return removed

    # Saved location preference

    def save_location(self, location: SavedLocation) -> None:
        self._write(self.LOCATION_KEY, location.to_dict(), None)

    def get_saved_location(self) -> Optional[SavedLocation]:
        record = self._read_json(self.LOCATION_KEY)
        if record is None:
            return None
        return self._load_payload(self.LOCATION_KEY, record, SavedLocation.from_dict)

    def clear_saved_location(self) -> None:
        self._delete(self.LOCATION_KEY)

    # Backend access

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _is_expired(self, entry: CacheEntry, now_ms: int, inclusive: bool = False) -> bool:
        ttl = self.keyed_ttl if entry.ttl is None else entry.ttl
        age_ms = now_ms - entry.written_at
        if inclusive:
            return age_ms >= ttl * 1000
        return age_ms > ttl * 1000

    def _read_entry(self, storage_key: str) -> Optional[CacheEntry]:
        record = self._read_json(storage_key)
        if record is None:
            return None
        try:
            ttl = record.get('ttl')
            return CacheEntry(
                payload=record['payload'],
                written_at=int(record['writtenAt']),
                key=record.get('locationId'),
                display_name=record.get('displayName'),
                ttl=int(ttl) if ttl is not None else None
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cache record {storage_key}: {e}")
            return None

    def _read_json(self, storage_key: str) -> Optional[Any]:
        try:
            raw = self.backend.get_item(storage_key)
        except Exception as e:
            logger.error(f"Error reading cache key {storage_key}: {e}")
            return None
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt cache record {storage_key}: {e}")
            return None

    def _load_payload(self, storage_key: str, payload: Any, loader: Callable) -> Any:
        try:
            return loader(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache payload {storage_key}: {e}")
            return None

    def _write(self, storage_key: str, record: Dict[str, Any], expires_at_ms: Optional[int]) -> bool:
        expires_at = expires_at_ms // 1000 if expires_at_ms is not None else None
        try:
            self.backend.put_item(storage_key, json.dumps(record), expires_at)
            return True
        except Exception as e:
            logger.error(f"Error saving cache key {storage_key}: {e}")
            return False

    def _delete(self, storage_key: str) -> None:
        try:
            self.backend.delete_item(storage_key)
        except Exception as e:
            logger.error(f"Error deleting cache key {storage_key}: {e}")

    def _list_keys(self, prefix: str):
        try:
            return self.backend.list_keys(prefix)
        except Exception as e:
            logger.error(f"Error listing cache keys: {e}")
            return []
