"""Per-item history records owned by the engine."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any

UNRANKED = sys.maxsize

# Halving of the recency/frequency weight every 10 visits.
CRF_DECAY_RATE = 0.1


@dataclass
class ItemVisit:
    """When a transition happened: hour 0-23, ISO weekday 1 (Mon) - 7 (Sun)."""

    hour: int
    weekday: int

    def to_dict(self) -> dict[str, Any]:
        return {"hour": self.hour, "weekday": self.weekday}


@dataclass
class ScoredItem:
    """A prediction list entry."""

    id: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "score": self.score}


@dataclass
class ItemState:
    """Transition history and decayed statistics for one item.

    Attributes:
        next_visits: Transitions observed *from* this item, keyed by target id,
            oldest first.
        number_of_visits: Times the item became the current item.
        time_of_last_visit: POSIX timestamp of the last visit.
        crf_weight: Exponentially decayed recency/frequency accumulator.
        last_visit_number: Engine visit number at the last CRF update.
        rank: Last index in the prediction list.
    """

    next_visits: dict[str, list[ItemVisit]] = field(default_factory=dict)
    number_of_visits: int = 0
    time_of_last_visit: float = 0.0
    crf_weight: float = 0.0
    last_visit_number: int = 0
    rank: int = UNRANKED

    def add_visit_to(self, item_id: str, visit: ItemVisit, max_visits: int) -> None:
        """Record a transition to ``item_id``, keeping the newest ``max_visits``."""
        visits = self.next_visits.setdefault(item_id, [])
        visits.append(visit)
        if len(visits) > max_visits:
            del visits[: len(visits) - max_visits]

    def trim_visits(self, max_visits: int) -> None:
        """Keep only the newest ``max_visits`` transitions per target."""
        for visits in self.next_visits.values():
            if len(visits) > max_visits:
                del visits[: len(visits) - max_visits]

    def remove_visits_to(self, item_id: str) -> None:
        self.next_visits.pop(item_id, None)

    def record_visit(self, visit_number: int, timestamp: float) -> None:
        self.number_of_visits += 1
        self.time_of_last_visit = timestamp
        elapsed = max(0, visit_number - self.last_visit_number)
        self.crf_weight = self.crf_weight * 2.0 ** (-CRF_DECAY_RATE * elapsed) + 1.0
        self.last_visit_number = visit_number

    def transitions_to(self, item_id: str) -> int:
        return len(self.next_visits.get(item_id, ()))

    def markov_description(self) -> str:
        return ", ".join(
            f"{item_id} ({len(visits)})" for item_id, visits in self.next_visits.items()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "next_visits": {
                item_id: [v.to_dict() for v in visits]
                for item_id, visits in self.next_visits.items()
            },
            "number_of_visits": self.number_of_visits,
            "time_of_last_visit": self.time_of_last_visit,
            "crf_weight": self.crf_weight,
            "last_visit_number": self.last_visit_number,
            "rank": self.rank,
        }
