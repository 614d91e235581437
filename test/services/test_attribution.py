"""Unit tests for progress-to-task attribution."""

import pytest

from freedview_runner.services.attribution import AttributionTracker

TASK_A = "Soccer/StadiumX/EventY/SetZ/F0001"
TASK_B = "Soccer/StadiumX/EventY/SetZ/F0002"
TASK_C = "Soccer/StadiumX/EventY/SetZ/F0003"


@pytest.fixture
def tracker():
    return AttributionTracker()


def started(tracker, *keys):
    for key in keys:
        tracker.start(key)
    return tracker


class TestStart:
    def test_start_registers_unknown_total(self, tracker):
        tracker.start(TASK_A)

        assert tracker.active() == {TASK_A: 0}
        assert tracker.current_key == TASK_A

    def test_keys_follow_arrival_order(self, tracker):
        started(tracker, TASK_B, TASK_A, TASK_C)
        assert tracker.keys() == [TASK_B, TASK_A, TASK_C]

    def test_restart_moves_task_to_back_and_resets_total(self, tracker):
        started(tracker, TASK_A, TASK_B)
        tracker.resolve(100)

        tracker.start(TASK_A)

        assert tracker.keys() == [TASK_B, TASK_A]
        assert tracker.active()[TASK_A] == 0


class TestResolve:
    def test_exact_total_wins_regardless_of_arrival_order(self, tracker):
        started(tracker, TASK_A, TASK_B)
        assert tracker.resolve(120) == TASK_A
        assert tracker.resolve(240) == TASK_B

        # Both totals known: a 240 line always goes to the 240 task
        assert tracker.resolve(240) == TASK_B
        assert tracker.resolve(120) == TASK_A

    def test_unknown_totals_assigned_oldest_first(self, tracker):
        started(tracker, TASK_A, TASK_B)

        assert tracker.resolve(50) == TASK_A
        assert tracker.active()[TASK_A] == 50

        assert tracker.resolve(80) == TASK_B
        assert tracker.active()[TASK_B] == 80

    def test_shared_total_goes_to_most_recent(self, tracker):
        started(tracker, TASK_A, TASK_B, TASK_C)
        tracker.record_total(TASK_A, 60)
        tracker.record_total(TASK_B, 60)
        tracker.record_total(TASK_C, 90)

        assert tracker.resolve(60) == TASK_B

    def test_shared_total_ignores_arrival_of_non_matching_tasks(self, tracker):
        started(tracker, TASK_A, TASK_B, TASK_C)
        tracker.record_total(TASK_A, 60)
        tracker.record_total(TASK_C, 60)

        assert tracker.resolve(60) == TASK_C
        assert tracker.active()[TASK_B] == 0

    def test_zero_total_is_never_an_exact_match(self, tracker):
        started(tracker, TASK_A)

        # Unknown-total rule applies, not the exact-match rule
        assert tracker.resolve(0) == TASK_A
        assert tracker.active()[TASK_A] == 0

    def test_no_candidates(self, tracker):
        assert tracker.resolve(100) is None

    def test_no_unknown_task_left(self, tracker):
        started(tracker, TASK_A)
        tracker.resolve(100)
        assert tracker.resolve(999) is None
        assert tracker.active()[TASK_A] == 100


class TestComplete:
    def test_complete_removes_task(self, tracker):
        started(tracker, TASK_A, TASK_B)

        assert tracker.complete(TASK_A) == TASK_A
        assert tracker.keys() == [TASK_B]
        assert tracker.current_key == TASK_B

    def test_complete_current_clears_current_key(self, tracker):
        started(tracker, TASK_A, TASK_B)

        assert tracker.complete(TASK_B) == TASK_B
        assert tracker.current_key == ""

    def test_unseen_key_falls_back_to_current(self, tracker):
        started(tracker, TASK_A)

        assert tracker.complete("Other/Set/Never/F9999") == TASK_A
        assert len(tracker) == 0

    def test_empty_key_falls_back_to_current(self, tracker):
        started(tracker, TASK_A, TASK_B)

        assert tracker.complete() == TASK_B
        assert TASK_B not in tracker
        assert TASK_A in tracker

    def test_no_current_key_drops_completion(self, tracker):
        assert tracker.complete("Other/Set/Never/F9999") is None

    def test_clear(self, tracker):
        started(tracker, TASK_A, TASK_B)
        tracker.clear()

        assert len(tracker) == 0
        assert tracker.keys() == []
        assert tracker.current_key == ""
