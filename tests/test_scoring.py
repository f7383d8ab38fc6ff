"""Tests for the Markov, recency/frequency and time weights."""

from datetime import datetime

import pytest

from access_rank.config import AccessRankConfig
from access_rank.engine import AccessRank
from access_rank.item_state import ItemState, ItemVisit
from access_rank.scoring import ScoreCalculator, TransitionHistogram, hour_slot

TUESDAY_9AM = datetime(2024, 6, 18, 9, 30)
TUESDAY_3PM = datetime(2024, 6, 18, 15, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def visit_all(engine, *items):
    for item in items:
        engine.visit_item(item)


class TestMarkovWeight:
    def test_laplace_smoothed_transition_probability(self):
        """Weight is (transitions + 1) / (visits of current + 1)."""
        # Arrange
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, "A", "B", "A", "C", "A")

        # Act
        parts = engine.score_breakdown("B")

        # Assert
        assert parts.markov == pytest.approx(2 / 4)
        assert engine.score_breakdown("Z").markov == pytest.approx(1 / 4)

    def test_no_current_item_history(self):
        """A current item without a record gives every candidate weight 1."""
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        assert engine.score_breakdown("A").markov == 1.0


class TestCombinedScore:
    def test_score_blends_weights_with_stability_exponent(self):
        # Arrange
        engine = AccessRank(list_stability="high", clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, "A", "B", "A")

        # Act
        parts = engine.score_breakdown("B")

        # Assert
        l = 2.5
        expected = parts.markov ** l * parts.crf ** (1 / l) * parts.time
        assert parts.score == pytest.approx(expected)
        assert parts.crf == engine.item_state("B").crf_weight

    def test_unknown_item_scores_zero(self):
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        engine.visit_item("A")
        assert engine.score_breakdown("nowhere").score == 0.0

    def test_breakdown_to_dict_rounds(self):
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, "A", "B")
        payload = engine.score_breakdown("A").to_dict()
        assert set(payload) == {"markov", "crf", "time", "score"}


class TestTimeWeight:
    def test_below_observation_gate_is_neutral(self):
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, "A", "B", "A")
        assert engine.score_breakdown("B").time == 1.0

    def test_disabled_time_weighting_is_neutral(self):
        engine = AccessRank(use_time_weighting=False, clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, *["A", "B"] * 8)
        assert engine.score_breakdown("B").time == 1.0

    def test_frequent_item_at_current_time_is_capped(self):
        """Ratios above the ceiling clamp to 1.25 before damping."""
        # Arrange
        engine = AccessRank(clock=FakeClock(TUESDAY_9AM))
        visit_all(engine, *["A", "B"] * 6)

        # Act
        weight = engine.score_breakdown("B").time

        # Assert
        assert weight == pytest.approx(1.25 ** 0.25)

    def test_item_never_reached_in_current_slot_is_floored(self):
        """An item only reached at other hours clamps to 0.8 before damping."""
        # Arrange
        clock = FakeClock(TUESDAY_3PM)
        engine = AccessRank(clock=clock)
        visit_all(engine, "C")
        clock.now = TUESDAY_9AM
        visit_all(engine, *["A", "B"] * 6)

        # Act
        weight = engine.score_breakdown("C").time

        # Assert
        assert weight == pytest.approx(0.8 ** 0.25)


class TestTransitionHistogram:
    def test_hour_slot_wraps_at_midnight(self):
        assert hour_slot(0) == (23, 0, 1)
        assert hour_slot(23) == (22, 23, 0)
        assert hour_slot(12) == (11, 12, 13)

    def test_counts_by_target_and_slot(self):
        # Arrange
        state = ItemState()
        for hour in (8, 9, 10, 14):
            state.add_visit_to("B", ItemVisit(hour=hour, weekday=3), max_visits=10)
        histogram = TransitionHistogram({"A": state})

        # Act / Assert
        assert histogram.hour_slot_count(9, "B") == 3
        assert histogram.hour_slot_count(9) == 3
        assert histogram.hour_slot_count(9, "missing") == 0
        assert histogram.weekday_count(3, "B") == 4
        assert histogram.weekday_count(4) == 0

    def test_ratio_with_zero_average_is_zero(self):
        state = ItemState()
        for _ in range(10):
            state.add_visit_to("B", ItemVisit(hour=9, weekday=2), max_visits=100)
        histogram = TransitionHistogram({"A": state})
        assert histogram.hour_ratio("C", 9) == 0.0
        assert histogram.weekday_ratio("C", 2) == 0.0


class TestScoreCalculator:
    def test_calculator_reads_items_without_mutating(self):
        items = {"A": ItemState(number_of_visits=1, crf_weight=1.0)}
        calculator = ScoreCalculator(items, "A", AccessRankConfig(), TUESDAY_9AM)
        calculator.score("B")
        assert list(items) == ["A"]
