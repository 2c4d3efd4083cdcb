"""Data models for calendar normalization and caching."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


NOT_AVAILABLE = 'Not available'


@dataclass(frozen=True)
class LocationRecord:
    """Resolved place returned by location search."""
    location_id: str
    name: str
    country: str
    admin1: Optional[str] = None
    admin2: Optional[str] = None
    is_postal_code: bool = False
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'geonameid': self.location_id,
            'name': self.name,
            'country': self.country,
            'admin1': self.admin1,
            'admin2': self.admin2,
            'isZipCode': self.is_postal_code,
            'zipCode': self.postal_code,
            'latitude': self.latitude,
            'longitude': self.longitude
        }


@dataclass(frozen=True)
class RawCalendarItem:
    """Calendar item exactly as the upstream API returned it."""
    title: str
    category: str
    date: str
    hebrew: Optional[str] = None
    memo: Optional[str] = None

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> 'RawCalendarItem':
        return cls(
            title=_as_text(item.get('title')),
            category=_as_text(item.get('category')),
            date=_as_text(item.get('date')),
            hebrew=item.get('hebrew') if isinstance(item.get('hebrew'), str) else None,
            memo=item.get('memo') if isinstance(item.get('memo'), str) else None
        )


@dataclass
class FieldResult:
    """Outcome of extracting one field from a raw payload.

    A missing field is a degraded value, not an error. Callers pick the
    fallback that fits the field: the unavailable sentinel for snapshot
    fields, an empty string for holiday candle-lighting associations.
    """
    value: Optional[str] = None
    matched: bool = False

    @classmethod
    def found(cls, value: str) -> 'FieldResult':
        return cls(value=value, matched=True)

    @classmethod
    def missing(cls) -> 'FieldResult':
        return cls()

    def or_sentinel(self) -> str:
        return self.value if self.matched else NOT_AVAILABLE

    def or_empty(self) -> str:
        return self.value if self.matched else ''


@dataclass
class HolidayEntry:
    """Holiday listed in a weekly snapshot."""
    title: str
    date: str
    category: str
    candle_lighting: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'date': self.date,
            'category': self.category,
            'candleLighting': self.candle_lighting
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HolidayEntry':
        return cls(
            title=data['title'],
            date=data['date'],
            category=data['category'],
            candle_lighting=data.get('candleLighting', '')
        )


@dataclass
class NormalizedCalendarSnapshot:
    """Weekly Shabbat data in the internal schema."""
    candle_lighting: str = NOT_AVAILABLE
    havdalah: str = NOT_AVAILABLE
    parsha: str = NOT_AVAILABLE
    gregorian_date: str = NOT_AVAILABLE
    hebrew_date: str = NOT_AVAILABLE
    location: str = NOT_AVAILABLE
    holidays: List[HolidayEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candleLighting': self.candle_lighting,
            'havdalah': self.havdalah,
            'parsha': self.parsha,
            'gregorianDate': self.gregorian_date,
            'hebrewDate': self.hebrew_date,
            'location': self.location,
            'holidays': [holiday.to_dict() for holiday in self.holidays]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedCalendarSnapshot':
        return cls(
            candle_lighting=data['candleLighting'],
            havdalah=data['havdalah'],
            parsha=data['parsha'],
            gregorian_date=data['gregorianDate'],
            hebrew_date=data['hebrewDate'],
            location=data['location'],
            holidays=[HolidayEntry.from_dict(h) for h in data.get('holidays', [])]
        )


@dataclass
class DailyLocation:
    """Location metadata attached to a daily zmanim response."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    il: Optional[bool] = None
    tzid: Optional[str] = None
    name: Optional[str] = None
    cc: Optional[str] = None
    geoid: Optional[Any] = None
    geo: Optional[str] = None
    geonameid: Optional[Any] = None
    asciiname: Optional[str] = None
    admin1: Optional[str] = None
    population: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DailyLocation':
        if not isinstance(data, dict):
            return cls()
        known = cls.__dataclass_fields__.keys()
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class DailyTimesSnapshot:
    """Daily halachic times formatted to the location's timezone."""
    date: str
    location: DailyLocation
    times: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'location': self.location.to_dict(),
            'times': dict(self.times)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyTimesSnapshot':
        return cls(
            date=data['date'],
            location=DailyLocation.from_dict(data.get('location')),
            times=dict(data['times'])
        )


@dataclass
class CacheEntry:
    """Persisted cache record."""
    payload: Dict[str, Any]
    written_at: int
    key: Optional[str] = None
    display_name: Optional[str] = None
    ttl: Optional[int] = None


@dataclass
class SavedLocation:
    """Location the user chose to remember between sessions."""
    display_name: str
    latitude: float
    longitude: float
    location_id: Optional[str] = None
    is_postal_code: bool = False
    postal_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'displayName': self.display_name,
            'coordinates': {
                'latitude': self.latitude,
                'longitude': self.longitude
            },
            'locationId': self.location_id
        }
        if self.is_postal_code:
            data['isPostalCode'] = True
            data['postalCode'] = self.postal_code
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SavedLocation':
        coordinates = data['coordinates']
        return cls(
            display_name=data['displayName'],
            latitude=coordinates['latitude'],
            longitude=coordinates['longitude'],
            location_id=data.get('locationId'),
            is_postal_code=bool(data.get('isPostalCode', False)),
            postal_code=data.get('postalCode')
        )


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ''
