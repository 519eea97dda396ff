from datetime import timedelta

import pytest

from cakeday.localtime import LocalTimeResolver
from cakeday.scheduler.evaluator import BirthdayEvaluator, is_announcement_due
from conftest import FixedClock, utc


def evaluator_at(now):
    return BirthdayEvaluator(LocalTimeResolver(FixedClock(now)))


class TestTrigger:
    def test_fires_at_local_announcement_hour(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="America/New_York")

        evaluation = evaluator_at(utc(2025, 3, 15, 13, 0)).evaluate(record, 9, False)

        assert evaluation.trigger
        assert evaluation.local.hour == 9

    def test_fires_late_in_the_hour(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="America/New_York")

        assert evaluator_at(utc(2025, 3, 15, 13, 59)).should_trigger(record, 9, False)

    @pytest.mark.parametrize("hour", [h for h in range(24) if h != 9])
    def test_other_local_hours_do_not_fire(self, birthday_with, hour):
        record = birthday_with(month=3, day=15, timezone="America/New_York")
        # 09:00 EDT is 13:00 UTC
        now = utc(2025, 3, 15, 13, 0) + timedelta(hours=hour - 9)

        assert not evaluator_at(now).should_trigger(record, 9, False)

    def test_wrong_day_does_not_fire(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="America/New_York")

        assert not evaluator_at(utc(2025, 3, 16, 13, 0)).should_trigger(record, 9, False)

    def test_active_assignment_suppresses_trigger(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="America/New_York")

        assert not evaluator_at(utc(2025, 3, 15, 13, 0)).should_trigger(record, 9, True)

    def test_compares_local_date_not_utc_date(self, birthday_with):
        # 2025-03-15 00:30 UTC is still the 14th in New York
        record = birthday_with(month=3, day=14, timezone="America/New_York")

        assert evaluator_at(utc(2025, 3, 15, 0, 30)).should_trigger(record, 20, False)

    def test_sub_hour_zone(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="Asia/Kolkata")

        assert evaluator_at(utc(2025, 3, 15, 3, 30)).should_trigger(record, 9, False)
        assert not evaluator_at(utc(2025, 3, 15, 3, 29)).should_trigger(record, 9, False)


class TestYearRound:
    @pytest.mark.parametrize(
        "zone", ["America/New_York", "Asia/Kolkata", "Pacific/Kiritimati", "UTC"]
    )
    @pytest.mark.parametrize("hour", [0, 9, 23])
    def test_fires_on_exactly_one_hour_per_year(self, birthday_with, zone, hour):
        record = birthday_with(month=3, day=15, timezone=zone)
        clock = FixedClock(utc(2025, 1, 1, 0, 0))
        evaluator = BirthdayEvaluator(LocalTimeResolver(clock))

        fired = []
        for offset in range(365 * 24):
            clock.set(utc(2025, 1, 1, 0, 0) + timedelta(hours=offset))
            evaluation = evaluator.evaluate(record, hour, False)
            if evaluation.trigger:
                fired.append(evaluation.local)

        assert len(fired) == 1
        assert (fired[0].month, fired[0].day, fired[0].hour) == (3, 15, hour)


class TestLeapDay:
    def test_feb_29_does_not_fire_in_non_leap_year(self, birthday_with):
        record = birthday_with(month=2, day=29, timezone="UTC")

        assert not evaluator_at(utc(2025, 2, 28, 9, 0)).should_trigger(record, 9, False)
        assert not evaluator_at(utc(2025, 3, 1, 9, 0)).should_trigger(record, 9, False)

    def test_feb_29_fires_in_leap_year(self, birthday_with):
        record = birthday_with(month=2, day=29, timezone="UTC")

        assert evaluator_at(utc(2024, 2, 29, 9, 0)).should_trigger(record, 9, False)


class TestTimezoneFallback:
    def test_unknown_zone_is_evaluated_as_utc(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="Mars/Olympus_Mons")

        evaluation = evaluator_at(utc(2025, 3, 15, 9, 0)).evaluate(record, 9, False)

        assert evaluation.trigger
        assert evaluation.local.timezone == "UTC"

    def test_blank_zone_uses_guild_default(self, birthday_with):
        record = birthday_with(month=3, day=15, timezone="")
        # 00:00 UTC is 09:00 in Tokyo
        evaluation = evaluator_at(utc(2025, 3, 15, 0, 0)).evaluate(
            record, 9, False, default_timezone="Asia/Tokyo"
        )

        assert evaluation.trigger
        assert evaluation.local.timezone == "Asia/Tokyo"


def test_pure_rule(birthday_with):
    record = birthday_with(month=3, day=15)
    local = LocalTimeResolver(FixedClock(utc(2025, 3, 15, 13, 0))).resolve("America/New_York")

    assert is_announcement_due(record, 9, local, False)
    assert not is_announcement_due(record, 10, local, False)
    assert not is_announcement_due(record, 9, local, True)
