"""Unit tests for CalendarNormalizer."""
import pytest

from processor.calendar_normalizer import ZMANIM_FIELDS, CalendarNormalizer, extract_time
from processor.errors import MalformedResponseError
from processor.models import NOT_AVAILABLE


@pytest.fixture
def normalizer():
    return CalendarNormalizer()


@pytest.fixture
def shabbat_payload():
    """Trimmed /shabbat response for New York around Chanukah."""
    return {
        'title': 'Hebcal New York December 2023',
        'location': {
            'geo': 'geoname',
            'city': 'New York',
            'country': 'United States',
            'tzid': 'America/New_York'
        },
        'items': [
            {
                'title': 'Chanukah: 1 Candle',
                'date': '2023-12-07',
                'category': 'holiday',
                'hebrew': 'חנוכה: א׳ נר'
            },
            {
                'title': 'Candle lighting: 4:12pm',
                'date': '2023-12-08T16:12:00-05:00',
                'category': 'candles',
                'memo': 'Parashat Vayeshev'
            },
            {
                'title': 'Parashat Vayeshev',
                'date': '2023-12-09',
                'category': 'holiday',
                'hebrew': 'פרשת וישב'
            },
            {
                'title': 'Havdalah: 5:16pm',
                'date': '2023-12-09T17:16:00-05:00',
                'category': 'havdalah'
            },
            {
                'title': 'Rosh Chodesh Tevet',
                'date': '2023-12-13',
                'category': 'minor'
            },
            {
                'title': 'Candle lighting: 4:14pm',
                'date': '2023-12-12T16:14:00-05:00',
                'category': 'candles',
                'memo': 'Erev Rosh Chodesh Tevet'
            }
        ]
    }


class TestExtractTime:
    """Test cases for the time extractor."""

    def test_twelve_hour_pattern(self):
        result = extract_time('Candle lighting: 7:15pm')
        assert result.matched
        assert result.value == '7:15pm'

    def test_twelve_hour_with_space_and_uppercase(self):
        assert extract_time('Havdalah: 8:05 PM').value == '8:05 PM'

    def test_twelve_hour_wins_over_earlier_bare_time(self):
        """A suffixed time is preferred even when a bare time appears first."""
        assert extract_time('Fast 5:30 ends, candles 7:15pm').value == '7:15pm'

    def test_twenty_four_hour_fallback(self):
        assert extract_time('Candle lighting: 19:15').value == '19:15'

    def test_no_time(self):
        result = extract_time('Candle lighting')
        assert not result.matched
        assert result.or_sentinel() == NOT_AVAILABLE
        assert result.or_empty() == ''

    def test_empty_title(self):
        assert not extract_time('').matched
        assert not extract_time(None).matched

    def test_idempotent(self):
        first = extract_time('Candle lighting: 7:15pm').value
        assert extract_time(first).value == first


class TestNormalizeWeekly:
    """Test cases for weekly normalization."""

    def test_full_payload(self, normalizer, shabbat_payload):
        snapshot = normalizer.normalize_weekly(shabbat_payload)

        assert snapshot.candle_lighting == '4:12pm'
        assert snapshot.havdalah == '5:16pm'
        assert snapshot.parsha == 'Vayeshev'
        assert snapshot.hebrew_date == 'חנוכה: א׳ נר'
        assert snapshot.gregorian_date == 'Friday, December 8, 2023'
        assert snapshot.location == 'New York, United States'

    def test_missing_candle_lighting_is_sentinel(self, normalizer):
        payload = {'items': [{'title': 'Havdalah: 5:16pm', 'category': 'havdalah', 'date': '2023-12-09'}]}

        snapshot = normalizer.normalize_weekly(payload)

        assert snapshot.candle_lighting == NOT_AVAILABLE
        assert snapshot.gregorian_date == NOT_AVAILABLE
        assert snapshot.havdalah == '5:16pm'

    def test_empty_items_all_sentinels(self, normalizer):
        snapshot = normalizer.normalize_weekly({'items': []})

        assert snapshot.candle_lighting == NOT_AVAILABLE
        assert snapshot.havdalah == NOT_AVAILABLE
        assert snapshot.parsha == NOT_AVAILABLE
        assert snapshot.hebrew_date == NOT_AVAILABLE
        assert snapshot.location == 'Location not available'
        assert snapshot.holidays == []

    def test_candle_item_must_have_candles_category(self, normalizer):
        payload = {'items': [{'title': 'Candle lighting: 4:12pm', 'category': 'holiday', 'date': '2023-12-08'}]}
        assert normalizer.normalize_weekly(payload).candle_lighting == NOT_AVAILABLE

    def test_candle_title_without_time_is_sentinel(self, normalizer):
        payload = {'items': [{'title': 'Candle lighting', 'category': 'candles', 'date': '2023-12-08'}]}
        assert normalizer.normalize_weekly(payload).candle_lighting == NOT_AVAILABLE

    def test_location_defaults_unknown(self, normalizer):
        snapshot = normalizer.normalize_weekly({'items': [], 'location': {'city': 'Miami'}})
        assert snapshot.location == 'Miami, Unknown'

    def test_invalid_candle_date_degrades(self, normalizer):
        payload = {'items': [{'title': 'Candle lighting: 4:12pm', 'category': 'candles', 'date': 'soon'}]}

        snapshot = normalizer.normalize_weekly(payload)

        assert snapshot.candle_lighting == '4:12pm'
        assert snapshot.gregorian_date == NOT_AVAILABLE

    def test_non_object_items_are_skipped(self, normalizer):
        payload = {'items': ['junk', None, {'title': 'Havdalah: 5:16pm', 'category': 'havdalah'}]}
        assert normalizer.normalize_weekly(payload).havdalah == '5:16pm'

    def test_payload_not_object_raises(self, normalizer):
        with pytest.raises(MalformedResponseError):
            normalizer.normalize_weekly(['not', 'an', 'object'])

    def test_items_not_list_raises(self, normalizer):
        with pytest.raises(MalformedResponseError):
            normalizer.normalize_weekly({'items': 'nope'})


class TestFindParsha:
    """Test cases for the two-pass parsha lookup."""

    def test_holiday_category_match_wins(self, normalizer):
        items = normalizer.parse_items({'items': [
            {'title': 'Weekly reading notes', 'category': 'other', 'date': ''},
            {'title': 'Parashat Noach', 'category': 'holiday', 'date': ''}
        ]})
        assert normalizer.find_parsha(items).value == 'Noach'

    def test_case_insensitive_marker(self, normalizer):
        items = normalizer.parse_items({'items': [
            {'title': 'parashat Lech-Lecha', 'category': 'holiday', 'date': ''}
        ]})
        assert normalizer.find_parsha(items).value == 'Lech-Lecha'

    def test_fallback_to_any_category(self, normalizer):
        items = normalizer.parse_items({'items': [
            {'title': 'Parashat Bereshit', 'category': 'parashat', 'date': ''}
        ]})
        assert normalizer.find_parsha(items).value == 'Bereshit'

    def test_fallback_accepts_weekly(self, normalizer):
        items = normalizer.parse_items({'items': [
            {'title': 'Weekly Torah portion', 'category': 'other', 'date': ''}
        ]})
        assert normalizer.find_parsha(items).value == 'Weekly Torah portion'

    def test_missing(self, normalizer):
        items = normalizer.parse_items({'items': [
            {'title': 'Chanukah: 1 Candle', 'category': 'holiday', 'date': ''}
        ]})
        assert normalizer.find_parsha(items).or_sentinel() == NOT_AVAILABLE


class TestBuildHolidays:
    """Test cases for the holiday list."""

    def test_filters_markers_and_keeps_order(self, normalizer, shabbat_payload):
        holidays = normalizer.normalize_weekly(shabbat_payload).holidays

        assert [h.title for h in holidays] == ['Chanukah: 1 Candle', 'Rosh Chodesh Tevet']
        assert holidays[1].category == 'minor'
        assert holidays[1].date == '2023-12-13'

    def test_candle_association_by_memo(self, normalizer, shabbat_payload):
        holidays = normalizer.normalize_weekly(shabbat_payload).holidays

        assert holidays[1].candle_lighting == '4:14pm'
        assert holidays[0].candle_lighting == ''

    def test_hebrew_titles_excluded(self, normalizer):
        payload = {'items': [
            {'title': 'שבת', 'category': 'holiday', 'date': '2023-12-09'},
            {'title': 'Shabbat Shekalim', 'category': 'major', 'date': '2024-03-09'}
        ]}

        holidays = normalizer.normalize_weekly(payload).holidays

        assert [h.title for h in holidays] == ['Shabbat Shekalim']

    def test_excluded_categories(self, normalizer):
        payload = {'items': [
            {'title': 'Yom Kippur', 'category': 'roshchodesh', 'date': '2024-10-12'},
            {'title': 'Tu BiShvat', 'category': 'minor', 'date': '2024-01-25'}
        ]}
        holidays = normalizer.normalize_weekly(payload).holidays
        assert [h.title for h in holidays] == ['Tu BiShvat']

    def test_capped_at_ten(self, normalizer):
        payload = {'items': [
            {'title': f'Holiday {i}', 'category': 'holiday', 'date': f'2024-01-{i + 1:02d}'}
            for i in range(25)
        ]}

        holidays = normalizer.normalize_weekly(payload).holidays

        assert len(holidays) == 10
        assert [h.title for h in holidays] == [f'Holiday {i}' for i in range(10)]


class TestNormalizeDaily:
    """Test cases for daily zmanim normalization."""

    @pytest.fixture
    def zmanim_payload(self):
        return {
            'date': '2024-01-05',
            'location': {
                'latitude': 40.71427,
                'longitude': -74.00597,
                'il': False,
                'tzid': 'America/New_York',
                'name': 'New York',
                'cc': 'US',
                'geonameid': 5128581,
                'population': 8175133
            },
            'times': {
                'sunrise': '2024-01-05T07:20:00-05:00',
                'sunset': '2024-01-05T16:42:00-05:00',
                'chatzot': '2024-01-05T17:01:00Z',
                'dawn': '',
                'dusk': 'not-a-time'
            }
        }

    def test_formats_in_location_timezone(self, normalizer, zmanim_payload):
        snapshot = normalizer.normalize_daily(zmanim_payload)

        assert snapshot.date == '2024-01-05'
        assert snapshot.times['sunrise'] == '7:20 AM'
        assert snapshot.times['sunset'] == '4:42 PM'
        assert snapshot.times['chatzot'] == '12:01 PM'

    def test_every_field_present(self, normalizer, zmanim_payload):
        snapshot = normalizer.normalize_daily(zmanim_payload)

        assert list(snapshot.times) == list(ZMANIM_FIELDS)
        assert len(ZMANIM_FIELDS) == 22

    def test_missing_and_bad_fields_isolated(self, normalizer, zmanim_payload):
        snapshot = normalizer.normalize_daily(zmanim_payload)

        assert snapshot.times['dawn'] == NOT_AVAILABLE
        assert snapshot.times['dusk'] == NOT_AVAILABLE
        assert snapshot.times['tzeit72min'] == NOT_AVAILABLE
        assert snapshot.times['sunrise'] == '7:20 AM'

    def test_location_metadata(self, normalizer, zmanim_payload):
        location = normalizer.normalize_daily(zmanim_payload).location

        assert location.tzid == 'America/New_York'
        assert location.cc == 'US'
        assert location.population == 8175133
        assert location.admin1 is None

    def test_missing_timezone_degrades_all(self, normalizer, zmanim_payload):
        del zmanim_payload['location']['tzid']

        snapshot = normalizer.normalize_daily(zmanim_payload)

        assert set(snapshot.times.values()) == {NOT_AVAILABLE}

    def test_unknown_timezone_degrades_all(self, normalizer, zmanim_payload):
        zmanim_payload['location']['tzid'] = 'Mars/Olympus_Mons'

        snapshot = normalizer.normalize_daily(zmanim_payload)

        assert set(snapshot.times.values()) == {NOT_AVAILABLE}

    def test_missing_times_object(self, normalizer):
        snapshot = normalizer.normalize_daily({'date': '2024-01-05', 'location': {'tzid': 'UTC'}})
        assert set(snapshot.times.values()) == {NOT_AVAILABLE}

    def test_payload_not_object_raises(self, normalizer):
        with pytest.raises(MalformedResponseError):
            normalizer.normalize_daily(None)
