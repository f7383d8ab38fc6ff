"""Tests for trace replay evaluation."""

from datetime import datetime

import pytest

from access_rank.config import AccessRankConfig
from access_rank.evaluation import PredictionQuality, evaluate_trace


def frozen_clock():
    return datetime(2024, 6, 18, 9, 30)


class TestEvaluateTrace:
    def test_repeating_cycle_is_predicted(self):
        """A stable cycle should be mostly predicted in the top 3."""
        # Arrange
        trace = ["inbox", "drafts", "sent"] * 6

        # Act
        quality = evaluate_trace(trace, k=3, warmup=3, clock=frozen_clock)

        # Assert
        assert quality.total_predictions == len(trace) - 3
        assert quality.hit_rate_at_k == 1.0
        assert 0.5 <= quality.mrr <= 1.0

    def test_unseen_items_are_misses(self):
        quality = evaluate_trace(["a", "b", "c", "d"], k=3, warmup=1, clock=frozen_clock)
        assert quality.total_predictions == 3
        assert quality.hit_rate_at_k == 0.0
        assert quality.mrr == 0.0

    def test_short_trace_returns_empty_metrics(self):
        quality = evaluate_trace(["a", "b"], warmup=2)
        assert quality == PredictionQuality(total_predictions=0, hit_rate_at_k=0.0, mrr=0.0)

    def test_config_is_not_shared_with_replay(self):
        config = AccessRankConfig(max_visits=5)
        evaluate_trace(["a", "b", "a", "b"], config=config, clock=frozen_clock)
        assert config.max_visits == 5

    def test_invalid_k(self):
        with pytest.raises(ValueError, match="Invalid k"):
            evaluate_trace(["a", "b", "c"], k=0)

    def test_invalid_warmup(self):
        with pytest.raises(ValueError, match="Invalid warmup"):
            evaluate_trace(["a", "b", "c"], warmup=0)

    def test_to_dict_rounds(self):
        quality = PredictionQuality(total_predictions=3, hit_rate_at_k=2 / 3, mrr=0.5)
        assert quality.to_dict() == {"total_predictions": 3, "hit_rate_at_k": 0.667, "mrr": 0.5}

    def test_mrr_counts_positions_beyond_k(self):
        """A listed item below the cutoff misses hit@k but still earns 1/position."""
        quality = evaluate_trace(["a", "b", "c", "a"], k=1, warmup=3, clock=frozen_clock)
        assert quality.total_predictions == 1
        assert quality.hit_rate_at_k == 0.0
        assert quality.mrr == pytest.approx(0.5)
