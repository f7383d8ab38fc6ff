"""Combined score for prediction candidates.

score = markov^l * crf^(1/l) * time

  markov — Laplace-smoothed probability of moving from the current item
           to the candidate.
  crf    — decayed recency/frequency weight stored on the candidate.
  time   — damped ratio of how often the candidate is reached at the current
           hour and weekday compared with an average hour/weekday.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from access_rank.config import AccessRankConfig
from access_rank.item_state import ItemState

MIN_SLOT_OBSERVATIONS = 10
TIME_RATIO_FLOOR = 0.8
TIME_RATIO_CEILING = 1.25
TIME_WEIGHT_DAMPING = 0.25

# Slots centred on 1, 4, ..., 22 cover the whole day once.
REFERENCE_HOURS = tuple(range(1, 24, 3))
WEEKDAYS = tuple(range(1, 8))


def hour_slot(hour: int) -> tuple[int, int, int]:
    """The ±1 hour window around ``hour``, wrapping at midnight."""
    return ((hour - 1) % 24, hour, (hour + 1) % 24)


@dataclass
class ScoreBreakdown:
    """The three sub-weights behind a score."""

    markov: float
    crf: float
    time: float
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "markov": round(self.markov, 4),
            "crf": round(self.crf, 4),
            "time": round(self.time, 4),
            "score": round(self.score, 4),
        }


class TransitionHistogram:
    """Transition counts per target, bucketed by hour and by weekday."""

    def __init__(self, items: Mapping[str, ItemState]):
        self._by_hour: dict[str, Counter[int]] = defaultdict(Counter)
        self._by_weekday: dict[str, Counter[int]] = defaultdict(Counter)
        self._all_hours: Counter[int] = Counter()
        self._all_weekdays: Counter[int] = Counter()

        for state in items.values():
            for target, visits in state.next_visits.items():
                for visit in visits:
                    self._by_hour[target][visit.hour] += 1
                    self._by_weekday[target][visit.weekday] += 1
                    self._all_hours[visit.hour] += 1
                    self._all_weekdays[visit.weekday] += 1

    def hour_slot_count(self, hour: int, target: str | None = None) -> int:
        counts = self._all_hours if target is None else self._by_hour.get(target, Counter())
        return sum(counts[h] for h in hour_slot(hour))

    def weekday_count(self, weekday: int, target: str | None = None) -> int:
        counts = self._all_weekdays if target is None else self._by_weekday.get(target, Counter())
        return counts[weekday]

    def hour_ratio(self, target: str, hour: int) -> float:
        if self.hour_slot_count(hour) < MIN_SLOT_OBSERVATIONS:
            return 1.0
        average = sum(self.hour_slot_count(h, target) for h in REFERENCE_HOURS) / len(REFERENCE_HOURS)
        if average == 0:
            return 0.0
        return self.hour_slot_count(hour, target) / average

    def weekday_ratio(self, target: str, weekday: int) -> float:
        if self.weekday_count(weekday) < MIN_SLOT_OBSERVATIONS:
            return 1.0
        average = sum(self.weekday_count(d, target) for d in WEEKDAYS) / len(WEEKDAYS)
        if average == 0:
            return 0.0
        return self.weekday_count(weekday, target) / average


class ScoreCalculator:
    """Scores candidates against the current item for one update pass.

    Build a new calculator for every pass: the time histogram is a
    snapshot of the transition history at construction.
    """

    def __init__(
        self,
        items: Mapping[str, ItemState],
        current_item_id: str,
        config: AccessRankConfig,
        now: datetime,
    ):
        self._items = items
        self._current = items.get(current_item_id)
        self._config = config
        self._hour = now.hour
        self._weekday = now.isoweekday()
        self._histogram = TransitionHistogram(items) if config.use_time_weighting else None

    def markov_weight(self, item_id: str) -> float:
        if self._current is None:
            return 1.0
        transitions = self._current.transitions_to(item_id)
        return (transitions + 1) / (self._current.number_of_visits + 1)

    def crf_weight(self, item_id: str) -> float:
        state = self._items.get(item_id)
        return state.crf_weight if state is not None else 0.0

    def time_weight(self, item_id: str) -> float:
        if self._histogram is None:
            return 1.0
        rh = self._histogram.hour_ratio(item_id, self._hour)
        rd = self._histogram.weekday_ratio(item_id, self._weekday)
        ratio = max(TIME_RATIO_FLOOR, min(TIME_RATIO_CEILING, rh * rd))
        return ratio ** TIME_WEIGHT_DAMPING

    def breakdown(self, item_id: str) -> ScoreBreakdown:
        l = self._config.list_stability.blend_exponent
        markov = self.markov_weight(item_id)
        crf = self.crf_weight(item_id)
        time_weight = self.time_weight(item_id)
        return ScoreBreakdown(
            markov=markov,
            crf=crf,
            time=time_weight,
            score=markov ** l * crf ** (1 / l) * time_weight,
        )

    def score(self, item_id: str) -> float:
        return self.breakdown(item_id).score
