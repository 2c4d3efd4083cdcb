"""Location search and reverse lookup on top of the Hebcal gateway."""
import logging
from typing import Any, Dict, List, Optional, Sequence

from processor.errors import NoLocationFoundError
from processor.models import LocationRecord

logger = logging.getLogger(__name__)


ID_FIELDS = ('id', 'geonameid', 'place_id')
REVERSE_ID_FIELDS = ('geonameid', 'id', 'place_id')
NAME_FIELDS = ('value', 'name', 'title', 'display_name')
ADMIN1_FIELDS = ('admin1', 'state', 'region')
ADMIN2_FIELDS = ('asciiname', 'city', 'town', 'village')

COUNTRY_NAMES = {
    'US': 'United States',
}


def first_present(record: Dict[str, Any], candidates: Sequence[str]) -> Optional[Any]:
    """Return the first non-empty value among candidate field names."""
    for name in candidates:
        value = record.get(name)
        if value not in (None, ''):
            return value
    return None


def extract_records(payload: Any) -> List[Dict[str, Any]]:
    """
    Accept either response shape from the autocomplete endpoint.

    Args:
        payload: A list of records or an object with an "items" list

    Returns:
        List of record dictionaries (non-object entries dropped)
    """
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict) and isinstance(payload.get('items'), list):
        records = payload['items']
    else:
        return []
    return [record for record in records if isinstance(record, dict)]


class LocationResolver:
    """Resolves free-text queries and coordinates to location identifiers."""

    def __init__(self, gateway, supported_country: str = 'US'):
        """
        Initialize the resolver.

        Args:
            gateway: HebcalGateway (or compatible) used for lookups
            supported_country: ISO country code that search results must match
        """
        self.gateway = gateway
        self.supported_country = supported_country

    def search(self, query: str) -> List[LocationRecord]:
        """
        Search for places matching a free-text query.

        Args:
            query: City name, postal code or other place text

        Returns:
            LocationRecord objects in upstream order, limited to the
            supported country
        """
        if not query or not query.strip():
            return []

        payload = self.gateway.complete(query.strip())
        records = extract_records(payload)

        locations = []
        for record in records:
            if not self._is_supported(record):
                continue
            location = self.to_location_record(record)
            if location is None:
                logger.warning(f"Skipping search result without identifier: {record}")
                continue
            locations.append(location)

        logger.info(
            f"Search for '{query}' returned {len(locations)} of "
            f"{len(records)} locations"
        )
        return locations

    def resolve_from_coordinates(self, latitude: float, longitude: float) -> str:
        """
        Find the identifier of the place nearest to a coordinate pair.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees

        Returns:
            Location identifier of the first candidate

        Raises:
            NoLocationFoundError: If the lookup returned no usable candidate
        """
        records = extract_records(self.gateway.reverse(latitude, longitude))
        if not records:
            raise NoLocationFoundError(
                f"No location found for coordinates {latitude},{longitude}"
            )

        location_id = first_present(records[0], REVERSE_ID_FIELDS)
        if location_id is None:
            raise NoLocationFoundError(
                f"No location identifier in lookup for {latitude},{longitude}"
            )

        logger.info(f"Resolved {latitude},{longitude} to {location_id}")
        return str(location_id)

    def to_location_record(self, record: Dict[str, Any]) -> Optional[LocationRecord]:
        """
        Adapt a geoname-style or postal-style record to a LocationRecord.

        Returns:
            LocationRecord, or None when the record carries no identifier
        """
        location_id = first_present(record, ID_FIELDS)
        if location_id is None:
            return None
        location_id = str(location_id)

        is_postal_code = record.get('geo') == 'zip'
        default_country = COUNTRY_NAMES.get(self.supported_country, self.supported_country)

        return LocationRecord(
            location_id=location_id,
            name=str(first_present(record, NAME_FIELDS) or location_id),
            country=record.get('country') or default_country,
            admin1=first_present(record, ADMIN1_FIELDS),
            admin2=first_present(record, ADMIN2_FIELDS),
            is_postal_code=is_postal_code,
            postal_code=location_id if is_postal_code else None,
            latitude=_as_float(record.get('latitude')),
            longitude=_as_float(record.get('longitude'))
        )

    def _is_supported(self, record: Dict[str, Any]) -> bool:
        if record.get('cc') == self.supported_country:
            return True
        country_name = COUNTRY_NAMES.get(self.supported_country)
        return country_name is not None and record.get('country') == country_name


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
