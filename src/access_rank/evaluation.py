"""Offline evaluation of prediction quality on recorded access traces."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Optional

from access_rank.config import AccessRankConfig
from access_rank.engine import AccessRank


@dataclass
class PredictionQuality:
    """Quality metrics for a replayed trace."""

    total_predictions: int
    hit_rate_at_k: float
    mrr: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_predictions": self.total_predictions,
            "hit_rate_at_k": round(self.hit_rate_at_k, 3),
            "mrr": round(self.mrr, 3),
        }


def evaluate_trace(
    trace: list[str],
    k: int = 3,
    warmup: int = 2,
    config: Optional[AccessRankConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> PredictionQuality:
    """Replay a trace and score the predictions made before each access.

    Args:
        trace: Ordered item access sequence.
        k: Top-k cutoff for hit-rate.
        warmup: Number of initial accesses replayed before evaluating.
        config: Engine settings for the replay.
        clock: Time source for the replay engine.

    Returns:
        Hit-rate@k and mean reciprocal rank over the evaluated accesses.
    """
    for name, value in (("k", k), ("warmup", warmup)):
        if value < 1:
            raise ValueError(f"Invalid {name} {value}: must be >= 1")

    engine = AccessRank(replace(config) if config else AccessRankConfig(), clock=clock)
    for item in trace[:warmup]:
        engine.visit_item(item)

    # 1-based position of each access in the list shown just before it, None if absent.
    positions: list[Optional[int]] = []
    for item in trace[warmup:]:
        shown = engine.predictions
        positions.append(shown.index(item) + 1 if item in shown else None)
        engine.visit_item(item)

    if not positions:
        return PredictionQuality(total_predictions=0, hit_rate_at_k=0.0, mrr=0.0)
    found = [p for p in positions if p is not None]
    return PredictionQuality(
        total_predictions=len(positions),
        hit_rate_at_k=sum(1 for p in found if p <= k) / len(positions),
        mrr=sum(1.0 / p for p in found) / len(positions),
    )
