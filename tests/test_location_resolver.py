"""Unit tests for LocationResolver."""
from unittest.mock import Mock

import pytest

from processor.errors import GatewayError, NoLocationFoundError
from processor.location_resolver import LocationResolver, extract_records, first_present


@pytest.fixture
def gateway():
    return Mock()


@pytest.fixture
def resolver(gateway):
    return LocationResolver(gateway, supported_country='US')


class TestSearch:
    """Test cases for location search."""

    def test_filters_to_supported_country(self, resolver, gateway):
        """Query 'Miami zip 33101' keeps US records and drops the Mexican one."""
        gateway.complete.return_value = [
            {'id': '4164138', 'value': 'Miami, Florida, USA', 'cc': 'US', 'admin1': 'Florida',
             'asciiname': 'Miami', 'latitude': 25.77427, 'longitude': -80.19366},
            {'id': '3523272', 'value': 'Miami, Mexico', 'cc': 'MX', 'country': 'Mexico'},
            {'id': '33101', 'value': '33101 Miami, FL', 'geo': 'zip', 'country': 'United States'}
        ]

        results = resolver.search('Miami zip 33101')

        gateway.complete.assert_called_once_with('Miami zip 33101')
        assert [r.location_id for r in results] == ['4164138', '33101']
        assert all(r.country != 'Mexico' for r in results)

    def test_geoname_record_fields(self, resolver, gateway):
        gateway.complete.return_value = [
            {'id': 4164138, 'value': 'Miami, Florida, USA', 'cc': 'US', 'admin1': 'Florida',
             'asciiname': 'Miami', 'latitude': '25.77427', 'longitude': -80.19366}
        ]

        location = resolver.search('Miami')[0]

        assert location.location_id == '4164138'
        assert location.name == 'Miami, Florida, USA'
        assert location.country == 'United States'
        assert location.admin1 == 'Florida'
        assert location.admin2 == 'Miami'
        assert location.is_postal_code is False
        assert location.postal_code is None
        assert location.latitude == pytest.approx(25.77427)

    def test_postal_record_fields(self, resolver, gateway):
        gateway.complete.return_value = {'items': [
            {'geonameid': '33101', 'name': 'Miami, FL 33101', 'geo': 'zip', 'cc': 'US',
             'state': 'FL', 'city': 'Miami'}
        ]}

        location = resolver.search('33101')[0]

        assert location.location_id == '33101'
        assert location.is_postal_code is True
        assert location.postal_code == '33101'
        assert location.admin1 == 'FL'
        assert location.admin2 == 'Miami'

    def test_identifier_precedence(self, resolver, gateway):
        gateway.complete.return_value = [
            {'geonameid': '2', 'place_id': '3', 'cc': 'US', 'title': 'Second'},
            {'place_id': '3', 'cc': 'US', 'display_name': 'Third'},
            {'id': '1', 'geonameid': '2', 'cc': 'US', 'name': 'First'}
        ]

        results = resolver.search('anything')

        assert [(r.location_id, r.name) for r in results] == [
            ('2', 'Second'), ('3', 'Third'), ('1', 'First')
        ]

    def test_records_without_identifier_skipped(self, resolver, gateway):
        gateway.complete.return_value = [{'value': 'Nowhere', 'cc': 'US'}]
        assert resolver.search('Nowhere') == []

    def test_unexpected_shape_returns_empty(self, resolver, gateway):
        gateway.complete.return_value = {'error': 'bad request'}
        assert resolver.search('Miami') == []

    def test_blank_query_skips_gateway(self, resolver, gateway):
        assert resolver.search('   ') == []
        gateway.complete.assert_not_called()

    def test_other_supported_country(self, gateway):
        gateway.complete.return_value = [
            {'id': '293397', 'value': 'Tel Aviv', 'cc': 'IL'},
            {'id': '5128581', 'value': 'New York', 'cc': 'US'}
        ]

        results = LocationResolver(gateway, supported_country='IL').search('Tel')

        assert [r.location_id for r in results] == ['293397']
        assert results[0].country == 'IL'

    def test_gateway_error_propagates(self, resolver, gateway):
        gateway.complete.side_effect = GatewayError('down', status=502)
        with pytest.raises(GatewayError):
            resolver.search('Miami')


class TestResolveFromCoordinates:
    """Test cases for reverse lookup."""

    def test_returns_first_candidate(self, resolver, gateway):
        gateway.reverse.return_value = [
            {'geonameid': 4164138, 'id': 'ignored'},
            {'geonameid': 4167147}
        ]

        assert resolver.resolve_from_coordinates(25.77, -80.19) == '4164138'
        gateway.reverse.assert_called_once_with(25.77, -80.19)

    def test_items_shape(self, resolver, gateway):
        gateway.reverse.return_value = {'items': [{'id': '5128581'}]}
        assert resolver.resolve_from_coordinates(40.7, -74.0) == '5128581'

    def test_empty_result_raises(self, resolver, gateway):
        gateway.reverse.return_value = []
        with pytest.raises(NoLocationFoundError):
            resolver.resolve_from_coordinates(0.0, 0.0)

    def test_candidate_without_identifier_raises(self, resolver, gateway):
        gateway.reverse.return_value = {'items': [{'name': 'Somewhere'}]}
        with pytest.raises(NoLocationFoundError):
            resolver.resolve_from_coordinates(0.0, 0.0)


def test_first_present_skips_empty_values():
    assert first_present({'id': '', 'geonameid': None, 'place_id': 'p'}, ('id', 'geonameid', 'place_id')) == 'p'
    assert first_present({}, ('id',)) is None


def test_extract_records_drops_non_objects():
    assert extract_records([{'id': 1}, 'junk', 3]) == [{'id': 1}]
    assert extract_records(None) == []
