"""
Unit tests for calendarbot_rrule.rrule_parser and the RecurrenceRule model.

Covers:
- split_calendar_value_to_map()
- parse_rrule() happy paths and every rejection path
- RecurrenceRule invariants, immutability and parameter map export
"""

import datetime

import pytest
from pydantic import ValidationError

from calendarbot_rrule.exceptions import InvalidRuleError, MalformedTemporalError
from calendarbot_rrule.rrule_models import Frequency, RecurrenceRule, WeekdayRule
from calendarbot_rrule.rrule_parser import parse_rrule, split_calendar_value_to_map
from calendarbot_rrule.temporal import CalendarDate, TemporalUnit, Weekday, ZonedInstant
from calendarbot_rrule.timezone_utils import UTC

pytestmark = pytest.mark.unit


class TestSplitCalendarValueToMap:
    def test_empty_text_gives_empty_map(self) -> None:
        assert split_calendar_value_to_map("") == {}

    def test_keys_are_upper_cased(self) -> None:
        assert split_calendar_value_to_map("freq=DAILY;Count=3") == {"FREQ": "DAILY", "COUNT": "3"}

    @pytest.mark.parametrize("text", ["FREQ=DAILY;COUNT", "FREQ=DAILY;;COUNT=1", "FREQ=DAILY=WEEKLY", "=DAILY"])
    def test_segment_must_be_single_pair(self, text: str) -> None:
        with pytest.raises(InvalidRuleError):
            split_calendar_value_to_map(text)

    def test_duplicate_key_rejected(self) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            split_calendar_value_to_map("FREQ=DAILY;freq=WEEKLY")
        assert exc_info.value.key == "FREQ"


class TestParseRRule:
    def test_frequency_alone_is_valid(self) -> None:
        rule = parse_rrule("FREQ=DAILY")
        assert rule.frequency is Frequency.DAILY
        assert rule.interval == 1
        assert rule.count is None
        assert rule.until is None
        assert rule.week_start is Weekday.MONDAY
        assert not rule.is_bounded

    def test_frequency_is_case_insensitive(self) -> None:
        assert parse_rrule("freq=weekly").frequency is Frequency.WEEKLY

    def test_full_rule(self) -> None:
        rule = parse_rrule("FREQ=YEARLY;INTERVAL=2;BYMONTH=1;BYDAY=SU;BYHOUR=8,9;BYMINUTE=30")
        assert rule.frequency is Frequency.YEARLY
        assert rule.interval == 2
        assert rule.by_month == (1,)
        assert rule.by_week_day == (WeekdayRule(0, Weekday.SUNDAY),)
        assert rule.by_hour == (8, 9)
        assert rule.by_minute == (30,)
        assert rule.by_second is None
        assert rule.has_time_filters

    def test_until_date_time_parses_to_utc(self) -> None:
        rule = parse_rrule("FREQ=WEEKLY;UNTIL=20190819T134500Z")
        assert rule.until == ZonedInstant(datetime.datetime(2019, 8, 19, 13, 45, tzinfo=UTC))
        assert rule.is_bounded

    def test_until_date(self) -> None:
        assert parse_rrule("FREQ=MONTHLY;UNTIL=20191130").until == CalendarDate.of(2019, 11, 30)

    def test_weekday_ordinals_keep_sign(self) -> None:
        rule = parse_rrule("FREQ=MONTHLY;BYDAY=MO,+2TU,-1SU")
        assert rule.by_week_day == (
            WeekdayRule(0, Weekday.MONDAY),
            WeekdayRule(2, Weekday.TUESDAY),
            WeekdayRule(-1, Weekday.SUNDAY),
        )

    def test_negative_values_keep_sign(self) -> None:
        rule = parse_rrule("FREQ=YEARLY;BYMONTHDAY=-1;BYYEARDAY=-100;BYWEEKNO=-1;BYSETPOS=-2")
        assert rule.by_month_day == (-1,)
        assert rule.by_year_day == (-100,)
        assert rule.by_week_number == (-1,)
        assert rule.by_set_position == (-2,)

    def test_week_start(self) -> None:
        assert parse_rrule("FREQ=WEEKLY;WKST=SU").week_start is Weekday.SUNDAY

    def test_leap_second_allowed(self) -> None:
        assert parse_rrule("FREQ=MINUTELY;BYSECOND=60").by_second == (60,)

    def test_year_day_allowed_with_sub_daily_frequency(self) -> None:
        assert parse_rrule("FREQ=HOURLY;BYYEARDAY=1").by_year_day == (1,)

    def test_classmethod_parse(self) -> None:
        assert RecurrenceRule.parse("FREQ=DAILY;COUNT=3").count == 3

    @pytest.mark.parametrize("text", ["", "   ", "COUNT=10"])
    def test_frequency_required(self, text: str) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            parse_rrule(text)
        assert exc_info.value.key == "FREQ"

    @pytest.mark.parametrize(
        "text,key",
        [
            ("FREQ=DAILY;COUNT=10;UNTIL=20190819T134500Z", None),
            ("FREQ=DAILY;INTERVAL=0", "INTERVAL"),
            ("FREQ=DAILY;INTERVAL=-1", "INTERVAL"),
            ("FREQ=DAILY;COUNT=0", "COUNT"),
            ("FREQ=WEEKLY;BYMONTHDAY=15", "BYMONTHDAY"),
            ("FREQ=MONTHLY;BYWEEKNO=20", "BYWEEKNO"),
            ("FREQ=DAILY;BYYEARDAY=100", "BYYEARDAY"),
            ("FREQ=WEEKLY;BYYEARDAY=100", "BYYEARDAY"),
            ("FREQ=MONTHLY;BYYEARDAY=100", "BYYEARDAY"),
        ],
    )
    def test_contradictory_fields_rejected(self, text: str, key: str) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            parse_rrule(text)
        assert exc_info.value.key == key

    @pytest.mark.parametrize(
        "text,key",
        [
            ("FREQ=DAILY;BYSECOND=61", "BYSECOND"),
            ("FREQ=DAILY;BYMINUTE=60", "BYMINUTE"),
            ("FREQ=DAILY;BYHOUR=24", "BYHOUR"),
            ("FREQ=DAILY;BYHOUR=-1", "BYHOUR"),
            ("FREQ=MONTHLY;BYMONTHDAY=0", "BYMONTHDAY"),
            ("FREQ=MONTHLY;BYMONTHDAY=-32", "BYMONTHDAY"),
            ("FREQ=YEARLY;BYYEARDAY=367", "BYYEARDAY"),
            ("FREQ=YEARLY;BYWEEKNO=54", "BYWEEKNO"),
            ("FREQ=YEARLY;BYMONTH=13", "BYMONTH"),
            ("FREQ=YEARLY;BYMONTH=-1", "BYMONTH"),
            ("FREQ=MONTHLY;BYSETPOS=0", "BYSETPOS"),
            ("FREQ=MONTHLY;BYSETPOS=367", "BYSETPOS"),
            ("FREQ=YEARLY;BYDAY=54MO", "BYDAY"),
        ],
    )
    def test_out_of_range_values_rejected(self, text: str, key: str) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            parse_rrule(text)
        assert exc_info.value.key == key

    @pytest.mark.parametrize(
        "text,key",
        [
            ("FREQ=FORTNIGHTLY", "FREQ"),
            ("FREQ=DAILY;BYHOUR=a", "BYHOUR"),
            ("FREQ=DAILY;BYHOUR=1,,2", "BYHOUR"),
            ("FREQ=DAILY;COUNT=three", "COUNT"),
            ("FREQ=WEEKLY;BYDAY=XX", "BYDAY"),
            ("FREQ=WEEKLY;BYDAY=1", "BYDAY"),
            ("FREQ=WEEKLY;WKST=XX", "WKST"),
            ("FREQ=DAILY;FOO=1", "FOO"),
            ("FREQ=DAILY;FREQ=WEEKLY", "FREQ"),
        ],
    )
    def test_bad_values_rejected(self, text: str, key: str) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            parse_rrule(text)
        assert exc_info.value.key == key

    def test_malformed_until(self) -> None:
        with pytest.raises(MalformedTemporalError):
            parse_rrule("FREQ=DAILY;UNTIL=2019-08-19")

    def test_error_message_names_key_and_value(self) -> None:
        with pytest.raises(InvalidRuleError, match="BYHOUR='24'"):
            parse_rrule("FREQ=DAILY;BYHOUR=24")


class TestRecurrenceRuleModel:
    def test_direct_construction_validates(self) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            RecurrenceRule(frequency=Frequency.DAILY, by_hour=(25,))
        assert exc_info.value.key == "BYHOUR"

    def test_direct_construction_coerces_frequency(self) -> None:
        assert RecurrenceRule(frequency="WEEKLY").frequency is Frequency.WEEKLY

    def test_unknown_frequency_in_constructor(self) -> None:
        with pytest.raises(InvalidRuleError):
            RecurrenceRule(frequency="FORTNIGHTLY")

    def test_empty_list_rejected(self) -> None:
        with pytest.raises(InvalidRuleError):
            RecurrenceRule(frequency=Frequency.DAILY, by_month=())

    def test_rule_is_immutable(self) -> None:
        rule = parse_rrule("FREQ=DAILY")
        with pytest.raises(ValidationError):
            rule.interval = 2

    def test_frequency_units(self) -> None:
        assert Frequency.YEARLY.unit is TemporalUnit.YEARS
        assert Frequency.SECONDLY.unit is TemporalUnit.SECONDS
        assert Frequency.HOURLY.is_time_based
        assert not Frequency.DAILY.is_time_based

    @pytest.mark.parametrize(
        "text",
        [
            "FREQ=MONTHLY;BYDAY=MO,TU,WE,TH,FR;BYSETPOS=1;COUNT=4",
            "FREQ=YEARLY;INTERVAL=2;BYMONTH=1;BYDAY=SU;BYHOUR=8,9;BYMINUTE=30",
            "FREQ=WEEKLY;UNTIL=20190819T134500Z;WKST=SU;BYDAY=TU,TH",
            "FREQ=MONTHLY;BYDAY=+2TU,-1FR;UNTIL=20191130",
            "FREQ=YEARLY;BYWEEKNO=-1,20;BYYEARDAY=-100;BYMONTHDAY=-1;BYSETPOS=-2",
        ],
    )
    def test_parameter_map_round_trip(self, text: str) -> None:
        rule = parse_rrule(text)
        assert rule.as_parameter_map() == split_calendar_value_to_map(text)
        assert parse_rrule(str(rule)) == rule

    def test_parameter_map_omits_defaults(self) -> None:
        assert parse_rrule("FREQ=DAILY;INTERVAL=1;WKST=MO").as_parameter_map() == {"FREQ": "DAILY"}
