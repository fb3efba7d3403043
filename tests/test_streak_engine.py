"""
Tests for the streak reconciliation engine.

Every test that takes `make_store` runs twice: against the in-memory
record store and against the SQLAlchemy one.

Covered:
  - worked scenarios (7-day windows ending today)
  - spend / earn / today rules
  - carried streak from stored history
  - sticky goal
  - idempotence of repeated calls for the same day
  - ledger bootstrap and repair
  - precondition errors and storage failure
"""
from __future__ import annotations

import random
from datetime import date, datetime, timedelta

import pytest

from stepstreak.core.dates import to_local_day
from stepstreak.core.errors import (
    ClockMovedBackwardError,
    InvalidGoalTargetError,
    ReconciliationFailedError,
)
from stepstreak.services.activity import ActivitySourceError, MappingActivitySource
from stepstreak.services.records import (
    DayRecord,
    InMemoryRecordStore,
    Ledger,
    RecordStoreError,
)
from stepstreak.services.streak_engine import (
    carried_streak,
    reconcile,
    reconciliation_window,
    refresh_streak,
)

TODAY = date(2026, 3, 15)
GOAL = 10_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _start(amounts: list[int], today: date = TODAY) -> date:
    return today - timedelta(days=len(amounts) - 1)


def _window(amounts: list[int], today: date = TODAY) -> dict[date, int]:
    start = _start(amounts, today)
    return {start + timedelta(days=i): a for i, a in enumerate(amounts)}


def _ledger_before(amounts, balance=0, earn_every_n=7, max_balance=3, today=TODAY) -> Ledger:
    return Ledger(
        balance=balance,
        max_balance=max_balance,
        earn_every_n=earn_every_n,
        watermark=_start(amounts, today) - timedelta(days=1),
    )


def _run(make_store, amounts, goal=GOAL, records=None, **ledger_kwargs):
    store = make_store(records=records, ledger=_ledger_before(amounts, **ledger_kwargs))
    result = reconcile(store, TODAY, goal, _window(amounts))
    return store, result


def _set_balance(store, balance: int) -> None:
    ledger = store.get_ledger()
    ledger.balance = balance
    store.put_ledger(ledger)
    store.commit()


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_streak_counts_without_bonus(self, make_store):
        amounts = [5000, 9000, 10000, 12000, 10000, 4000, 11000]
        store, result = _run(make_store, amounts, balance=0)
        assert result.streak == 1
        assert result.ledger.balance == 0
        assert store.get_ledger().balance == 0

    def test_bonus_covers_past_miss_but_not_today(self, make_store):
        amounts = [10000, 9000, 10000, 10000, 10000, 10000, 8000]
        store, result = _run(make_store, amounts, balance=1)
        # Day 2 spends the only bonus; day 7 is today and misses with nothing left.
        assert result.streak == 0
        assert result.ledger.balance == 0
        day2 = store.get_record(_start(amounts) + timedelta(days=1))
        assert day2.bonus_used is True
        assert store.get_record(TODAY).bonus_used is False

    def test_bonus_earned_after_consecutive_days(self, make_store):
        amounts = [11000, 12000, 10000, 9000, 10000, 10000, 10000]
        store, result = _run(make_store, amounts, balance=0, earn_every_n=3, max_balance=2)
        # Earned on day 3, spent on day 4, earned again on day 6.
        assert result.streak == 7
        assert result.ledger.balance == 1
        assert store.get_record(_start(amounts) + timedelta(days=3)).bonus_used is True

    def test_bonus_day_on_boundary_preserves_streak(self, make_store):
        amounts = [10000, 10000, 10000, 10000, 10000, 0, 10000]
        store, result = _run(make_store, amounts, balance=1)
        assert result.streak == 7
        # Spent on day 6, earned back when the streak reached 7.
        assert result.ledger.balance == 1
        assert store.get_record(TODAY - timedelta(days=1)).bonus_used is True
        assert store.get_record(TODAY).bonus_earned is True

    def test_records_are_keyed_by_calendar_day(self, make_store):
        amounts = [12000] * 7
        store, result = _run(make_store, amounts)
        records = store.records_between(_start(amounts), TODAY)
        assert len(records) == 7
        for record in records:
            assert type(record.day) is date
            assert to_local_day(record.day) == record.day
        assert result.streak == 7


# ---------------------------------------------------------------------------
# Spend / earn / today rules
# ---------------------------------------------------------------------------

class TestRules:
    def test_all_achieved_adds_processed_days_to_carried_streak(self, make_store):
        amounts = [10000] * 5
        start = _start(amounts)
        history = [
            DayRecord(day=start - timedelta(days=i), goal=GOAL, actual=GOAL)
            for i in range(1, 4)
        ]
        _, result = _run(make_store, amounts, records=history, balance=2, earn_every_n=0)
        assert result.carried_streak == 3
        assert result.streak == 8
        assert result.ledger.balance == 2

    def test_spend_consumes_exactly_one_unit(self, make_store):
        amounts = [10000, 0, 10000]
        store, result = _run(make_store, amounts, balance=2)
        assert result.streak == 3
        assert result.ledger.balance == 1
        assert store.get_record(TODAY - timedelta(days=1)).bonus_used is True

    def test_earn_on_every_multiple(self, make_store):
        _, result = _run(make_store, [10000] * 6, balance=0, earn_every_n=2, max_balance=10)
        assert result.streak == 6
        assert result.ledger.balance == 3

    def test_earn_is_capped_at_max_balance(self, make_store):
        store, result = _run(make_store, [10000] * 7, balance=3, max_balance=3)
        assert result.ledger.balance == 3
        # The earn still happened; the cap absorbed it.
        assert store.get_record(TODAY).bonus_earned is True

    def test_earn_every_n_zero_never_earns(self, make_store):
        _, result = _run(make_store, [10000] * 14, balance=0, earn_every_n=0)
        assert result.streak == 14
        assert result.ledger.balance == 0

    def test_bonus_covered_day_can_trigger_earn(self, make_store):
        amounts = [10000, 10000, 0, 10000]
        store, result = _run(make_store, amounts, balance=1, earn_every_n=3)
        third = store.get_record(TODAY - timedelta(days=1))
        assert third.bonus_used is True
        assert third.bonus_earned is True
        assert result.streak == 4
        assert result.ledger.balance == 1

    def test_today_is_never_bonus_covered(self, make_store):
        store, result = _run(make_store, [10000, 10000, 0], balance=3)
        assert result.streak == 0
        assert result.ledger.balance == 3
        assert store.get_record(TODAY).bonus_used is False

    def test_meeting_goal_exactly_counts(self, make_store):
        _, result = _run(make_store, [GOAL])
        assert result.streak == 1

    def test_missing_activity_counts_as_zero(self, make_store):
        amounts = [10000, 10000, 10000]
        activity = _window(amounts)
        del activity[TODAY - timedelta(days=1)]
        store = make_store(ledger=_ledger_before(amounts, balance=0))
        result = reconcile(store, TODAY, GOAL, activity)
        assert result.streak == 1
        assert store.get_record(TODAY - timedelta(days=1)).actual == 0

    def test_streak_and_balance_stay_in_range(self):
        rng = random.Random(1234)
        for _ in range(50):
            amounts = [rng.choice([0, 5000, 10000, 15000]) for _ in range(rng.randint(1, 20))]
            max_balance = rng.randint(0, 3)
            ledger = _ledger_before(
                amounts,
                balance=rng.randint(0, max_balance),
                earn_every_n=rng.randint(-1, 5),
                max_balance=max_balance,
            )
            store = InMemoryRecordStore(ledger=ledger)
            result = reconcile(store, TODAY, GOAL, _window(amounts))
            assert result.streak >= 0
            assert 0 <= result.ledger.balance <= max_balance


# ---------------------------------------------------------------------------
# Carried streak
# ---------------------------------------------------------------------------

class _CountingStore(InMemoryRecordStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.single_reads = 0
        self.range_reads = 0

    def get_record(self, day):
        self.single_reads += 1
        return super().get_record(day)

    def records_between(self, start, end):
        self.range_reads += 1
        return super().records_between(start, end)


class TestCarriedStreak:
    def test_counts_credited_days_until_gap(self, make_store):
        end = TODAY - timedelta(days=1)
        store = make_store(records=[
            DayRecord(day=end, goal=GOAL, actual=GOAL),
            DayRecord(day=end - timedelta(days=1), goal=GOAL, actual=0, bonus_used=True),
            # end - 2 missing
            DayRecord(day=end - timedelta(days=3), goal=GOAL, actual=GOAL),
        ])
        assert carried_streak(store, end) == 2

    def test_stops_at_missed_day(self, make_store):
        end = TODAY - timedelta(days=1)
        store = make_store(records=[
            DayRecord(day=end, goal=GOAL, actual=GOAL),
            DayRecord(day=end - timedelta(days=1), goal=GOAL, actual=GOAL - 1),
            DayRecord(day=end - timedelta(days=2), goal=GOAL, actual=GOAL),
        ])
        assert carried_streak(store, end) == 1

    def test_no_history_is_zero(self, make_store):
        assert carried_streak(make_store(), TODAY) == 0

    def test_long_history_is_read_in_pages(self):
        end = TODAY - timedelta(days=1)
        store = _CountingStore(records=[
            DayRecord(day=end - timedelta(days=i), goal=GOAL, actual=GOAL)
            for i in range(100)
        ])
        assert carried_streak(store, end) == 100
        assert store.single_reads == 0
        assert store.range_reads == 2

    def test_window_starts_after_watermark(self):
        ledger = Ledger(balance=0, max_balance=3, earn_every_n=7, watermark=TODAY - timedelta(days=4))
        assert reconciliation_window(ledger, TODAY) == (TODAY - timedelta(days=3), TODAY)

    def test_window_is_today_once_reconciled(self):
        ledger = Ledger(balance=0, max_balance=3, earn_every_n=7, watermark=TODAY)
        assert reconciliation_window(ledger, TODAY) == (TODAY, TODAY)


# ---------------------------------------------------------------------------
# Sticky goal
# ---------------------------------------------------------------------------

class TestStickyGoal:
    def test_existing_goal_survives_goal_change(self, make_store):
        target = TODAY - timedelta(days=3)
        amounts = [8000] * 7
        store, result = _run(
            make_store,
            amounts,
            goal=8000,
            records=[DayRecord(day=target, goal=12000, actual=8000)],
        )
        stored = store.get_record(target)
        assert stored.goal == 12000
        assert stored.actual == 8000
        assert store.get_record(TODAY).goal == 8000
        # The sticky 12000 goal makes that day a miss.
        assert result.streak == 3

    def test_today_keeps_goal_from_first_reconciliation(self, make_store):
        store = make_store()
        reconcile(store, TODAY, 10_000, {TODAY: 9000})
        result = reconcile(store, TODAY, 5_000, {TODAY: 9000})
        assert store.get_record(TODAY).goal == 10_000
        assert result.streak == 0


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

class TestIdempotence:
    def test_repeat_call_gives_same_result(self, make_store):
        amounts = [5000, 9000, 10000, 12000, 10000, 4000, 11000]
        store, first = _run(make_store, amounts)
        second = reconcile(store, TODAY, GOAL, _window(amounts))
        assert (second.streak, second.ledger) == (first.streak, first.ledger)

    def test_repeat_call_does_not_earn_twice_on_today(self, make_store):
        amounts = [12000] * 7
        store, first = _run(make_store, amounts, balance=0)
        assert first.ledger.balance == 1
        second = reconcile(store, TODAY, GOAL, _window(amounts))
        third = reconcile(store, TODAY, GOAL, _window(amounts))
        assert second.streak == third.streak == 7
        assert second.ledger == third.ledger == first.ledger

    def test_balance_set_by_hand_survives_repeat_call(self, make_store):
        amounts = [12000] * 7
        store, first = _run(make_store, amounts, balance=0)
        assert first.ledger.balance == 1
        _set_balance(store, 0)
        second = reconcile(store, TODAY, GOAL, _window(amounts))
        assert second.streak == 7
        assert second.ledger.balance == 0

    def test_balance_lowered_after_capped_earn_is_kept(self, make_store):
        amounts = [10000] * 7
        store, first = _run(make_store, amounts, balance=3, max_balance=3)
        assert first.ledger.balance == 3
        _set_balance(store, 0)
        second = reconcile(store, TODAY, GOAL, _window(amounts))
        assert second.ledger.balance == 0

    def test_earn_reached_after_balance_set_by_hand_still_counts(self, make_store):
        amounts = [12000] * 6 + [4000]
        store, first = _run(make_store, amounts, balance=0)
        assert (first.streak, first.ledger.balance) == (0, 0)
        _set_balance(store, 2)
        second = reconcile(store, TODAY, GOAL, {TODAY: 12000})
        assert second.streak == 7
        assert second.ledger.balance == 3

    def test_lowered_total_takes_back_todays_earn(self, make_store):
        amounts = [12000] * 7
        store, first = _run(make_store, amounts, balance=0)
        assert first.ledger.balance == 1
        second = reconcile(store, TODAY, GOAL, {TODAY: 4000})
        assert second.streak == 0
        assert second.ledger.balance == 0
        assert store.get_record(TODAY).bonus_earned is False

    def test_today_is_rejudged_as_activity_grows(self, make_store):
        amounts = [10000, 10000, 4000]
        store, first = _run(make_store, amounts)
        assert first.streak == 0
        second = reconcile(store, TODAY, GOAL, {TODAY: 11000})
        assert second.carried_streak == 2
        assert second.streak == 3
        assert store.get_record(TODAY).actual == 11000

    def test_next_day_continues_streak(self, make_store):
        amounts = [10000] * 7
        store, first = _run(make_store, amounts)
        tomorrow = TODAY + timedelta(days=1)
        result = reconcile(store, tomorrow, GOAL, {tomorrow: 10000})
        assert result.carried_streak == 7
        assert result.streak == 8
        assert result.ledger.balance == first.ledger.balance
        assert result.ledger.watermark == tomorrow


# ---------------------------------------------------------------------------
# Ledger bootstrap
# ---------------------------------------------------------------------------

class TestLedgerBootstrap:
    def test_missing_ledger_starts_with_defaults(self, make_store):
        store = make_store()
        result = reconcile(store, TODAY, GOAL, {TODAY: GOAL})
        assert [r.day for r in result.processed] == [TODAY]
        assert result.ledger == Ledger(balance=0, max_balance=3, earn_every_n=7, watermark=TODAY)
        assert store.get_ledger() == result.ledger

    def test_balance_above_max_is_clamped(self, make_store):
        store = make_store(ledger=Ledger(
            balance=9, max_balance=3, earn_every_n=7, watermark=TODAY - timedelta(days=1),
        ))
        result = reconcile(store, TODAY, GOAL, {TODAY: 0})
        assert result.ledger.balance == 3

    def test_negative_max_balance_falls_back_to_default(self):
        ledger = Ledger(balance=-2, max_balance=-1, earn_every_n=7, watermark=None)
        repaired = ledger.repaired(TODAY)
        assert repaired.max_balance == 3
        assert repaired.balance == 0
        assert repaired.watermark == TODAY

    def test_explicit_ledger_argument_wins(self, make_store):
        store = make_store(ledger=Ledger(balance=0, max_balance=3, earn_every_n=7, watermark=TODAY))
        given = Ledger(balance=2, max_balance=3, earn_every_n=7, watermark=TODAY - timedelta(days=2))
        result = reconcile(store, TODAY, GOAL, {TODAY - timedelta(days=1): 0, TODAY: GOAL}, ledger=given)
        assert result.streak == 2
        assert result.ledger.balance == 1


# ---------------------------------------------------------------------------
# Long gaps
# ---------------------------------------------------------------------------

class TestLongGap:
    def test_months_without_reconciliation(self, make_store):
        watermark = TODAY - timedelta(days=120)
        store = make_store(ledger=Ledger(balance=2, max_balance=3, earn_every_n=7, watermark=watermark))
        result = reconcile(store, TODAY, GOAL, {})
        assert len(result.processed) == 120
        assert result.streak == 0
        assert result.ledger.balance == 0
        assert len(store.records_between(watermark, TODAY)) == 120


# ---------------------------------------------------------------------------
# Preconditions and failures
# ---------------------------------------------------------------------------

class TestPreconditions:
    @pytest.mark.parametrize("goal", [0, -5])
    def test_non_positive_goal_rejected(self, make_store, goal):
        store = make_store()
        with pytest.raises(InvalidGoalTargetError):
            reconcile(store, TODAY, goal, {TODAY: 100})
        assert store.get_ledger() is None
        assert store.get_record(TODAY) is None

    def test_clock_moved_backward_rejected(self, make_store):
        ledger = Ledger(balance=1, max_balance=3, earn_every_n=7, watermark=TODAY)
        store = make_store(ledger=ledger)
        with pytest.raises(ClockMovedBackwardError) as exc_info:
            reconcile(store, TODAY - timedelta(days=1), GOAL, {})
        assert exc_info.value.details["watermark"] == str(TODAY)
        assert store.get_ledger() == ledger


class _FailingLedgerStore(InMemoryRecordStore):
    def put_ledger(self, ledger):
        raise RecordStoreError("disk full")


class TestStorageFailure:
    def test_failure_commits_nothing(self):
        amounts = [10000] * 3
        ledger = _ledger_before(amounts, balance=1)
        store = _FailingLedgerStore(ledger=ledger)
        with pytest.raises(ReconciliationFailedError) as exc_info:
            reconcile(store, TODAY, GOAL, _window(amounts))
        assert "disk full" in exc_info.value.details["reason"]
        assert store.get_ledger() == ledger
        assert store.records_between(_start(amounts), TODAY) == []


# ---------------------------------------------------------------------------
# Activity source integration
# ---------------------------------------------------------------------------

class TestRefreshStreak:
    def test_reads_only_the_reconciliation_window(self, make_store):
        watermark = TODAY - timedelta(days=3)
        source = MappingActivitySource({
            watermark - timedelta(days=1): 50_000,
            watermark: 50_000,
            TODAY - timedelta(days=2): 10_000,
            TODAY - timedelta(days=1): 10_000,
            TODAY: 10_000,
        })
        store = make_store(ledger=Ledger(balance=0, max_balance=3, earn_every_n=7, watermark=watermark))
        result = refresh_streak(store, source, TODAY, GOAL)
        assert [r.day for r in result.processed] == [
            TODAY - timedelta(days=2), TODAY - timedelta(days=1), TODAY,
        ]
        assert result.streak == 3
        assert store.get_record(watermark) is None

    def test_datetime_keys_fold_into_their_day(self, make_store):
        store = make_store()
        activity = {
            datetime(2026, 3, 15, 8, 0): 6000,
            datetime(2026, 3, 15, 21, 30): 4500,
        }
        result = reconcile(store, TODAY, GOAL, activity)
        assert result.streak == 1
        assert store.get_record(TODAY).actual == 10_500

    def test_unreadable_source_fails_without_saving(self, make_store):
        ledger = Ledger(balance=1, max_balance=3, earn_every_n=7, watermark=TODAY - timedelta(days=2))
        store = make_store(ledger=ledger)
        with pytest.raises(ReconciliationFailedError) as exc_info:
            refresh_streak(store, _UnreadableSource(), TODAY, GOAL)
        assert "timed out" in exc_info.value.details["reason"]
        assert store.get_ledger() == ledger
        assert store.get_record(TODAY) is None


class _UnreadableSource:
    def fetch_daily_amounts(self, start, end):
        raise ActivitySourceError("activity backend timed out")
