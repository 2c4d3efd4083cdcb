"""Async facade combining the gateway, normalizer, resolver and cache."""
import asyncio
import logging
from datetime import date as date_cls
from typing import Callable, List, Optional, Set

from processor.calendar_normalizer import CalendarNormalizer
from processor.errors import (
    FetchError,
    MalformedResponseError,
    NetworkError,
    NoLocationFoundError,
    SearchError,
)
from processor.location_resolver import LocationResolver
from processor.models import (
    DailyTimesSnapshot,
    LocationRecord,
    NormalizedCalendarSnapshot,
    SavedLocation,
)

logger = logging.getLogger(__name__)


def daily_cache_key(location_id: str, day: str) -> str:
    return f"daily_zmanim_{location_id}_{day}"


def shabbat_cache_key(location_id: str) -> str:
    return f"shabbat_{location_id}"


class ZmanimClient:
    """Entry point used by callers to get Shabbat and daily times.

    Gateway and cache calls are blocking, so each one runs in a worker
    thread; the event loop is never blocked by network or storage I/O.
    """

    PREFETCH_LIMIT = 3

    def __init__(
        self,
        gateway,
        cache,
        normalizer: Optional[CalendarNormalizer] = None,
        resolver: Optional[LocationResolver] = None,
        today: Callable[[], date_cls] = date_cls.today
    ):
        """
        Initialize the client.

        Args:
            gateway: HebcalGateway instance
            cache: CacheStore instance
            normalizer: CalendarNormalizer (default: new instance)
            resolver: LocationResolver (default: one over the gateway)
            today: Returns the local date used when no date is requested
        """
        self.gateway = gateway
        self.cache = cache
        self.normalizer = normalizer or CalendarNormalizer()
        self.resolver = resolver or LocationResolver(gateway)
        self.today = today
        self._background_tasks: Set[asyncio.Task] = set()

    async def search_location(self, query: str, prefetch: bool = False) -> List[LocationRecord]:
        """
        Search for supported locations.

        Args:
            query: Free-text place query
            prefetch: Warm the weekly cache for the top results in the background

        Returns:
            Matching LocationRecord objects

        Raises:
            SearchError: If the upstream lookup fails
        """
        logger.info(f"Starting location search for: {query}")
        try:
            results = await asyncio.to_thread(self.resolver.search, query)
        except (NetworkError, MalformedResponseError) as e:
            logger.error(f"Error searching location: {e}")
            raise SearchError('Failed to search for location') from e

        if prefetch and results:
            self.prefetch(results)
        return results

    async def get_shabbat_times(
        self,
        location_id: str,
        display_name: Optional[str] = None,
        is_postal_code: bool = False,
        postal_code: Optional[str] = None
    ) -> NormalizedCalendarSnapshot:
        """
        Return the weekly snapshot for a location, from cache when fresh.

        A prefetched snapshot found in the keyed namespace is promoted into
        the weekly slot instead of being fetched again.

        Args:
            location_id: Geoname identifier (or postal code)
            display_name: Name stored alongside the cached snapshot
            is_postal_code: Whether location_id is a postal code
            postal_code: Postal code to query

        Returns:
            NormalizedCalendarSnapshot

        Raises:
            FetchError: If the gateway call fails
        """
        cached = await asyncio.to_thread(self.cache.get_weekly, location_id)
        if cached is not None:
            return cached

        snapshot = await asyncio.to_thread(
            self.cache.get, shabbat_cache_key(location_id), NormalizedCalendarSnapshot.from_dict
        )
        if snapshot is not None:
            logger.info(f"Using prefetched Shabbat times for {location_id}")
        else:
            snapshot = await self._fetch_weekly(location_id, is_postal_code, postal_code)

        await asyncio.to_thread(
            self.cache.set_weekly,
            location_id,
            display_name or snapshot.location,
            snapshot
        )
        return snapshot

    async def get_daily_times(
        self,
        location_id: str,
        date: Optional[str] = None,
        is_postal_code: bool = False,
        postal_code: Optional[str] = None
    ) -> DailyTimesSnapshot:
        """
        Return daily zmanim for a location and date, from cache when fresh.

        Args:
            location_id: Geoname identifier (or postal code)
            date: ISO 8601 date (default: today)
            is_postal_code: Whether location_id is a postal code
            postal_code: Postal code to query

        Returns:
            DailyTimesSnapshot

        Raises:
            FetchError: If the gateway call fails
        """
        day = date or self.today().isoformat()
        key = daily_cache_key(location_id, day)

        cached = await asyncio.to_thread(self.cache.get, key, DailyTimesSnapshot.from_dict)
        if cached is not None:
            logger.info(f"Using cached daily zmanim for {location_id} on {day}")
            return cached

        logger.info(f"Fetching daily zmanim for {location_id} on {day}")
        try:
            payload = await asyncio.to_thread(
                self.gateway.fetch_zmanim, location_id, day, is_postal_code, postal_code
            )
            snapshot = self.normalizer.normalize_daily(payload)
        except (NetworkError, MalformedResponseError) as e:
            logger.error(f"Error fetching daily zmanim for {location_id}: {e}")
            raise FetchError('Failed to fetch daily zmanim') from e

        await asyncio.to_thread(self.cache.set, key, snapshot)
        return snapshot

    async def resolve_from_coordinates(self, latitude: float, longitude: float) -> str:
        """
        Resolve coordinates to a location identifier.

        Falls back to a text search on "lat,lng" when the reverse lookup
        fails or comes back empty.

        Raises:
            NoLocationFoundError: If neither lookup yields a location
        """
        logger.info(f"Getting location for coordinates: {latitude}, {longitude}")
        try:
            return await asyncio.to_thread(
                self.resolver.resolve_from_coordinates, latitude, longitude
            )
        except (NoLocationFoundError, NetworkError, MalformedResponseError) as e:
            logger.warning(f"Reverse lookup failed, trying search fallback: {e}")
            reverse_error = e

        try:
            nearby = await asyncio.to_thread(self.resolver.search, f"{latitude},{longitude}")
        except (NetworkError, MalformedResponseError) as e:
            logger.error(f"Fallback search also failed: {e}")
            nearby = []

        if nearby:
            logger.info(f"Fallback search found {nearby[0].name}")
            return nearby[0].location_id

        raise NoLocationFoundError(
            f"Failed to get location from coordinates {latitude},{longitude}"
        ) from reverse_error

    def prefetch(self, records: List[LocationRecord], limit: int = PREFETCH_LIMIT) -> List[asyncio.Task]:
        """
        Cache weekly snapshots for the first few search results.

        Runs as fire-and-forget tasks on the current event loop; failures
        are logged and discarded.

        Returns:
            The scheduled tasks
        """
        tasks = []
        for record in records[:limit]:
            task = asyncio.create_task(self._prefetch_one(record))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
            tasks.append(task)
        return tasks

    async def _prefetch_one(self, record: LocationRecord) -> None:
        # Prefetched snapshots live in the keyed namespace; the weekly slot
        # stays with the location the caller is actually viewing.
        key = shabbat_cache_key(record.location_id)
        try:
            if await asyncio.to_thread(self.cache.has_valid_weekly, record.location_id):
                return
            if await asyncio.to_thread(self.cache.get, key) is not None:
                return

            logger.info(f"Background pre-fetching data for: {record.name}")
            snapshot = await self._fetch_weekly(
                record.location_id, record.is_postal_code, record.postal_code
            )
            await asyncio.to_thread(self.cache.set, key, snapshot, self.cache.weekly_ttl)
        except Exception as e:
            logger.warning(f"Error background pre-fetching data for {record.name}: {e}")

    async def _fetch_weekly(
        self,
        location_id: str,
        is_postal_code: bool,
        postal_code: Optional[str]
    ) -> NormalizedCalendarSnapshot:
        logger.info(f"Fetching Shabbat times for {location_id}")
        try:
            payload = await asyncio.to_thread(
                self.gateway.fetch_shabbat, location_id, is_postal_code, postal_code
            )
            return self.normalizer.normalize_weekly(payload)
        except (NetworkError, MalformedResponseError) as e:
            logger.error(f"Error fetching Shabbat times for {location_id}: {e}")
            raise FetchError('Failed to fetch Shabbat times') from e

    async def save_location(self, location: SavedLocation) -> None:
        await asyncio.to_thread(self.cache.save_location, location)

    async def get_saved_location(self) -> Optional[SavedLocation]:
        return await asyncio.to_thread(self.cache.get_saved_location)

    async def clear_saved_location(self) -> None:
        await asyncio.to_thread(self.cache.clear_saved_location)
