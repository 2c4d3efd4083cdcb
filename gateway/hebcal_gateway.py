"""HTTP gateway for the Hebcal public calendar API."""
import logging
from typing import Any, Dict, Optional

import requests

from processor.errors import GatewayError, MalformedResponseError

logger = logging.getLogger(__name__)


class HebcalGateway:
    """Thin client for the Hebcal REST endpoints.

    Each method issues exactly one request and returns the decoded JSON
    body. Failures surface immediately; there is no retry loop.
    """

    BASE_URL = "https://www.hebcal.com"
    USER_AGENT = "Zmanym/1.0"

    SHABBAT_FLAGS = {
        'maj': 'on',
        'min': 'on',
        'mod': 'on',
        'nx': 'on',
        'year': 'now',
        'month': 'x',
        'ss': 'on',
        'mf': 'on',
        'c': 'on'
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Hebcal base URL (default: https://www.hebcal.com)
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_shabbat(
        self,
        location_id: str,
        is_postal_code: bool = False,
        postal_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch the weekly Shabbat calendar for a location.

        Args:
            location_id: Geoname identifier
            is_postal_code: Whether the location is a postal code
            postal_code: Postal code to query instead of the geoname id

        Returns:
            Decoded JSON body
        """
        params = dict(self.SHABBAT_FLAGS)
        params.update(self._location_params(location_id, is_postal_code, postal_code))
        return self._get_json('/shabbat', params)

    def fetch_zmanim(
        self,
        location_id: str,
        date: str,
        is_postal_code: bool = False,
        postal_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch daily halachic times for a location and date.

        Args:
            location_id: Geoname identifier
            date: ISO 8601 date (YYYY-MM-DD)
            is_postal_code: Whether the location is a postal code
            postal_code: Postal code to query instead of the geoname id

        Returns:
            Decoded JSON body
        """
        params = {'date': date}
        location = self._location_params(location_id, is_postal_code, postal_code)
        location.pop('geo')
        params.update(location)
        return self._get_json('/zmanim', params)

    def complete(self, query: str) -> Any:
        """Autocomplete a free-text place query."""
        return self._get_json('/complete.php', {'q': query, 'geonames': '1'})

    def reverse(self, latitude: float, longitude: float) -> Any:
        """Look up places near a coordinate pair."""
        return self._get_json(
            '/complete.php',
            {'geo': f"{latitude},{longitude}", 'v': '1'}
        )

    def _location_params(
        self,
        location_id: str,
        is_postal_code: bool,
        postal_code: Optional[str]
    ) -> Dict[str, str]:
        if is_postal_code:
            return {'zip': postal_code or location_id, 'geo': 'zip'}
        return {'geonameid': location_id, 'geo': 'geoname'}

    def _get_json(self, path: str, params: Dict[str, str]) -> Any:
        """
        Issue one GET request and decode the JSON body.

        Args:
            path: Endpoint path relative to the base URL
            params: Query string parameters

        Returns:
            Decoded JSON body

        Raises:
            GatewayError: On transport failure or non-2xx status
            MalformedResponseError: If the body is not valid JSON
        """
        url = f"{self.base_url}{path}"
        query = {'cfg': 'json'} if path != '/complete.php' else {}
        query.update(params)

        logger.info(f"Calling Hebcal {path}", extra={'params': query})
        try:
            response = self.session.get(
                url,
                params=query,
                headers={'User-Agent': self.USER_AGENT},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Hebcal request to {path} failed: {e}")
            raise GatewayError(f"Request to {path} failed: {e}") from e

        if not response.ok:
            logger.error(
                f"Hebcal response not OK: {response.status_code} {response.reason}"
            )
            raise GatewayError(
                f"Hebcal {path} returned {response.status_code}",
                status=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Hebcal {path} returned a non-JSON body")
            raise MalformedResponseError(f"Invalid JSON from {path}") from e
