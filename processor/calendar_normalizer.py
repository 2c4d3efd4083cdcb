"""Normalizer that turns raw Hebcal payloads into stable snapshots."""
import logging
import re
from datetime import datetime
from typing import Any, Callable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.errors import MalformedResponseError
from processor.models import (
    NOT_AVAILABLE,
    DailyLocation,
    DailyTimesSnapshot,
    FieldResult,
    HolidayEntry,
    NormalizedCalendarSnapshot,
    RawCalendarItem,
)

logger = logging.getLogger(__name__)


TWELVE_HOUR_PATTERN = re.compile(r'(\d{1,2}:\d{2}\s*[AP]M)', re.IGNORECASE)
TWENTY_FOUR_HOUR_PATTERN = re.compile(r'(\d{1,2}:\d{2})')
HEBREW_PATTERN = re.compile(r'[\u0590-\u05FF]')
PARSHA_PREFIX_PATTERN = re.compile(r'^parashat\s+', re.IGNORECASE)

ZMANIM_FIELDS = (
    'chatzotNight',
    'alotHaShachar',
    'misheyakir',
    'misheyakirMachmir',
    'dawn',
    'sunrise',
    'sofZmanShma',
    'sofZmanShmaMGA',
    'sofZmanTfilla',
    'sofZmanTfillaMGA',
    'chatzot',
    'minchaGedola',
    'minchaKetana',
    'plagHaMincha',
    'sunset',
    'dusk',
    'beinHaShmashos',
    'tzeit7083deg',
    'tzeit85deg',
    'tzeit42min',
    'tzeit50min',
    'tzeit72min',
)


def extract_time(title: Optional[str]) -> FieldResult:
    """
    Pull a clock time out of a free-text title.

    The 12-hour pattern is tried first so that "7:15pm" keeps its suffix;
    the bare 24-hour pattern is the fallback for ISO-style titles.

    Args:
        title: Item title, e.g. "Candle lighting: 7:15pm"

    Returns:
        FieldResult holding the matched text
    """
    if not title:
        return FieldResult.missing()

    match = TWELVE_HOUR_PATTERN.search(title)
    if match is None:
        match = TWENTY_FOUR_HOUR_PATTERN.search(title)
    if match is None:
        return FieldResult.missing()
    return FieldResult.found(match.group(1))


class CalendarNormalizer:
    """Builds weekly and daily snapshots from raw Hebcal responses."""

    MAX_HOLIDAYS = 10
    HOLIDAY_CATEGORIES = ('holiday', 'major', 'minor')
    HOLIDAY_EXCLUDED_MARKERS = (
        'Parashat',
        'parashat',
        'Torah',
        'Weekly',
        'Candle lighting',
        'Havdalah',
    )
    PARSHA_MARKERS = ('parashat', 'torah')
    PARSHA_FALLBACK_MARKERS = ('parashat', 'torah', 'weekly')

    def normalize_weekly(self, payload: Any) -> NormalizedCalendarSnapshot:
        """
        Normalize a /shabbat response.

        Args:
            payload: Decoded JSON body from the gateway

        Returns:
            NormalizedCalendarSnapshot with sentinels for missing fields

        Raises:
            MalformedResponseError: If the payload has no item list
        """
        items = self.parse_items(payload)
        logger.info(f"Normalizing weekly payload with {len(items)} items")

        candle_item = self._find_item(
            items, lambda item: item.category == 'candles'
            and 'Candle lighting' in item.title
        )
        havdalah_item = self._find_item(
            items, lambda item: item.category == 'havdalah'
            and 'Havdalah' in item.title
        )
        hebrew_item = self._find_item(
            items, lambda item: item.category == 'holiday' and bool(item.hebrew)
        )

        snapshot = NormalizedCalendarSnapshot(
            candle_lighting=self._item_time(candle_item).or_sentinel(),
            havdalah=self._item_time(havdalah_item).or_sentinel(),
            parsha=self.find_parsha(items).or_sentinel(),
            gregorian_date=self._format_gregorian_date(candle_item).or_sentinel(),
            hebrew_date=hebrew_item.hebrew if hebrew_item else NOT_AVAILABLE,
            location=self._format_location(payload.get('location')),
            holidays=self.build_holidays(items)
        )

        logger.info(
            "Normalized weekly snapshot",
            extra={
                'candle_lighting': snapshot.candle_lighting,
                'havdalah': snapshot.havdalah,
                'parsha': snapshot.parsha,
                'holidays': len(snapshot.holidays)
            }
        )
        return snapshot

    def parse_items(self, payload: Any) -> List[RawCalendarItem]:
        """
        Convert the payload's item list into RawCalendarItem objects.

        Entries that are not JSON objects are skipped.
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError("Calendar payload is not an object")

        raw_items = payload.get('items', [])
        if not isinstance(raw_items, list):
            raise MalformedResponseError("Calendar payload 'items' is not a list")

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object calendar item: {raw!r}")
                continue
            items.append(RawCalendarItem.from_dict(raw))
        return items

    def find_parsha(self, items: List[RawCalendarItem]) -> FieldResult:
        """
        Locate the weekly Torah portion name.

        Holiday-category items mentioning the portion win; otherwise any
        item mentioning the portion or a weekly reading is accepted.
        """
        parsha_item = self._find_item(
            items, lambda item: item.category == 'holiday'
            and self._contains_any(item.title, self.PARSHA_MARKERS)
        )
        if parsha_item is None:
            parsha_item = self._find_item(
                items,
                lambda item: self._contains_any(item.title, self.PARSHA_FALLBACK_MARKERS)
            )
        if parsha_item is None:
            return FieldResult.missing()
        return FieldResult.found(PARSHA_PREFIX_PATTERN.sub('', parsha_item.title))

    def build_holidays(self, items: List[RawCalendarItem]) -> List[HolidayEntry]:
        """
        Build the holiday list, keeping upstream order.

        Args:
            items: All items from the payload

        Returns:
            At most MAX_HOLIDAYS HolidayEntry objects
        """
        candle_items = [item for item in items if item.category == 'candles']

        holidays = []
        for item in items:
            if not self._is_holiday(item):
                continue
            candle_item = self._find_item(
                candle_items, lambda candle: bool(candle.memo) and item.title in candle.memo
            )
            if candle_item is None:
                logger.debug(f"No candle lighting found for {item.title}")
            holidays.append(HolidayEntry(
                title=item.title,
                date=item.date,
                category=item.category,
                candle_lighting=self._item_time(candle_item).or_empty()
            ))
            if len(holidays) >= self.MAX_HOLIDAYS:
                break

        return holidays

    def normalize_daily(self, payload: Any) -> DailyTimesSnapshot:
        """
        Normalize a /zmanim response.

        Each time field is formatted independently, so one bad value never
        affects the others. Without a usable timezone every field degrades.

        Args:
            payload: Decoded JSON body from the gateway

        Returns:
            DailyTimesSnapshot with one entry per ZMANIM_FIELDS name

        Raises:
            MalformedResponseError: If the payload is not an object
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError("Zmanim payload is not an object")

        location = DailyLocation.from_dict(payload.get('location'))
        raw_times = payload.get('times')
        if not isinstance(raw_times, dict):
            logger.warning("Zmanim payload has no times object")
            raw_times = {}

        tz = self._load_timezone(location.tzid)
        times = {}
        for name in ZMANIM_FIELDS:
            if tz is None:
                times[name] = NOT_AVAILABLE
            else:
                times[name] = self.format_zman(raw_times.get(name), tz).or_sentinel()

        return DailyTimesSnapshot(
            date=payload.get('date') if isinstance(payload.get('date'), str) else '',
            location=location,
            times=times
        )

    def format_zman(self, value: Any, tz: ZoneInfo) -> FieldResult:
        """
        Format an ISO timestamp as a local 12-hour clock time.

        Args:
            value: ISO 8601 timestamp, e.g. "2024-01-05T06:42:00-05:00"
            tz: Timezone of the location

        Returns:
            FieldResult with text such as "6:42 AM"
        """
        if not value or not isinstance(value, str):
            return FieldResult.missing()

        try:
            moment = datetime.fromisoformat(value)
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=tz)
            local = moment.astimezone(tz)
        except (ValueError, OverflowError) as e:
            logger.warning(f"Error parsing time {value!r}: {e}")
            return FieldResult.missing()

        return FieldResult.found(local.strftime('%I:%M %p').lstrip('0'))

    def _load_timezone(self, tzid: Optional[str]) -> Optional[ZoneInfo]:
        if not tzid:
            logger.warning("Zmanim location has no timezone; all times unavailable")
            return None
        try:
            return ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.warning(f"Unknown timezone {tzid!r}: {e}")
            return None

    def _is_holiday(self, item: RawCalendarItem) -> bool:
        return (
            item.category in self.HOLIDAY_CATEGORIES
            and bool(item.title)
            and not any(marker in item.title for marker in self.HOLIDAY_EXCLUDED_MARKERS)
            and HEBREW_PATTERN.search(item.title) is None
        )

    def _item_time(self, item: Optional[RawCalendarItem]) -> FieldResult:
        if item is None:
            return FieldResult.missing()
        return extract_time(item.title)

    def _format_gregorian_date(self, item: Optional[RawCalendarItem]) -> FieldResult:
        """Format an item's date as e.g. "Friday, January 5, 2024"."""
        if item is None or not item.date:
            return FieldResult.missing()
        try:
            day = datetime.fromisoformat(item.date)
        except ValueError:
            logger.warning(f"Invalid date on candle lighting item: {item.date}")
            return FieldResult.missing()
        return FieldResult.found(f"{day:%A}, {day:%B} {day.day}, {day.year}")

    def _format_location(self, location: Any) -> str:
        if not isinstance(location, dict) or not location:
            return 'Location not available'
        city = location.get('city') or 'Unknown'
        country = location.get('country') or 'Unknown'
        return f"{city}, {country}"

    @staticmethod
    def _contains_any(title: str, markers) -> bool:
        lowered = title.lower()
        return any(marker in lowered for marker in markers)

    @staticmethod
    def _find_item(
        items: List[RawCalendarItem],
        predicate: Callable[[RawCalendarItem], bool]
    ) -> Optional[RawCalendarItem]:
        return next((item for item in items if predicate(item)), None)
