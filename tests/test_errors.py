"""Unit tests for error classification."""
from processor.errors import (
    FetchError,
    GatewayError,
    LocationPermissionError,
    MalformedResponseError,
    NetworkError,
    NoLocationFoundError,
    SearchError,
    UnknownError,
    classify_error,
)


def raised_from(error, cause):
    """Return error chained to cause the way `raise ... from` does."""
    try:
        try:
            raise cause
        except Exception as inner:
            raise error from inner
    except Exception as outer:
        return outer


def test_transport_failure_is_network():
    app_error = classify_error(GatewayError('timed out'), 'search')
    assert app_error.type == 'network'
    assert app_error.retryable is True


def test_upstream_status_is_api():
    app_error = classify_error(GatewayError('bad gateway', status=502), 'shabbat')
    assert app_error.type == 'api'
    assert 'Shabbat times' in app_error.message


def test_facade_error_classified_by_cause():
    error = raised_from(FetchError('Failed to fetch Shabbat times'), NetworkError('offline'))
    assert classify_error(error, 'shabbat').type == 'network'


def test_search_error_with_status_cause():
    error = raised_from(SearchError('Failed to search for location'), GatewayError('x', status=500))
    assert classify_error(error, 'search').type == 'api'


def test_permission_not_retryable():
    app_error = classify_error(LocationPermissionError('denied'), 'coords')
    assert app_error.type == 'permission'
    assert app_error.retryable is False


def test_no_location_found():
    assert classify_error(NoLocationFoundError('empty'), 'coords').type == 'location'


def test_malformed_response_is_api():
    assert classify_error(MalformedResponseError('no items'), 'shabbat').type == 'api'


def test_unknown_keeps_message():
    app_error = classify_error(UnknownError('something odd'), 'zmanim')
    assert app_error.type == 'unknown'
    assert app_error.message == 'something odd'


def test_facade_error_without_cause_is_unknown():
    app_error = classify_error(FetchError('Failed to fetch daily zmanim'), 'zmanim')
    assert app_error.type == 'unknown'
    assert app_error.message == 'Failed to fetch daily zmanim'
