"""AccessRank prediction engine.

Predicts the next item a user is likely to access and keeps a ranked,
flicker-resistant prediction list (AccessRank algorithm by Fitchett and
Cockburn).

Every public operation runs to completion synchronously, observer
notification included. One engine instance serves one user session;
callers serialise access to it.

Usage:
    engine = AccessRank(list_stability="medium")
    engine.observer = menu          # menu.predictions_updated(engine)
    engine.visit_item("inbox")
    engine.visit_item("drafts")
    engine.predictions              # ["inbox"]
"""

from __future__ import annotations

import functools
import weakref
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

import structlog

from access_rank.config import AccessRankConfig, ListStability
from access_rank.item_state import UNRANKED, ItemState, ItemVisit, ScoredItem
from access_rank.scoring import ScoreBreakdown, ScoreCalculator

logger = structlog.get_logger(__name__)

INITIAL_ITEM = "<access_rank_nil>"


@runtime_checkable
class PredictionObserver(Protocol):
    def predictions_updated(self, engine: "AccessRank") -> None: ...


class AccessRank:
    """Markov + recency/frequency + time-of-day next-item predictor."""

    def __init__(
        self,
        config: Optional[AccessRankConfig] = None,
        *,
        list_stability: ListStability | str | None = None,
        use_time_weighting: Optional[bool] = None,
        max_visits: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._clock = clock or datetime.now
        self._items: dict[str, ItemState] = {}
        self._prediction_list: list[ScoredItem] = []
        self._visit_number = 0
        self._most_recent_item_id = INITIAL_ITEM
        self._observer_ref: Optional[Callable[[], Any]] = None

        self.config = config or AccessRankConfig()
        if list_stability is not None:
            self.list_stability = list_stability
        if use_time_weighting is not None:
            self.use_time_weighting = use_time_weighting
        if max_visits is not None:
            self.max_visits = max_visits

    # ── configuration ────────────────────────────────────

    @property
    def list_stability(self) -> ListStability:
        return self.config.list_stability

    @list_stability.setter
    def list_stability(self, value: ListStability | str) -> None:
        self.config.list_stability = ListStability.parse(value)

    @property
    def use_time_weighting(self) -> bool:
        return self.config.use_time_weighting

    @use_time_weighting.setter
    def use_time_weighting(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise ValueError(f"Invalid use_time_weighting {value!r}: must be a bool")
        self.config.use_time_weighting = value

    @property
    def max_visits(self) -> int:
        return self.config.max_visits

    @max_visits.setter
    def max_visits(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"Invalid max_visits {value!r}: must be an int >= 1")
        self.config.max_visits = value
        self._enforce_max_visits()

    def _enforce_max_visits(self) -> None:
        """Cut visit counters, transition histories and the list down to ``max_visits``."""
        cap = self.max_visits
        self._visit_number = min(self._visit_number, cap)
        for state in self._items.values():
            state.last_visit_number = min(state.last_visit_number, cap)
            state.trim_visits(cap)
        if self._trim_prediction_list():
            self._update_ranks()

    # ── observer ─────────────────────────────────────────

    @property
    def observer(self) -> Any:
        """The registered observer, or None if unset or garbage collected."""
        if self._observer_ref is None:
            return None
        return self._observer_ref()

    @observer.setter
    def observer(self, observer: Any) -> None:
        """Register ``observer`` through a weak reference.

        The caller must keep the observer alive. A lambda or a temporary
        bound method such as ``seen.append`` is collected right away and
        never called; the next update logs ``observer_collected``.
        """
        if observer is None:
            self._observer_ref = None
        elif hasattr(observer, "__self__") and hasattr(observer, "__func__"):
            self._observer_ref = weakref.WeakMethod(observer)
        else:
            self._observer_ref = weakref.ref(observer)

    def _notify(self) -> None:
        observer = self.observer
        if observer is None:
            if self._observer_ref is not None:
                logger.warning("observer_collected")
                self._observer_ref = None
            return
        if isinstance(observer, PredictionObserver):
            observer.predictions_updated(self)
        else:
            observer(self)

    # ── read views ───────────────────────────────────────

    @property
    def predictions(self) -> list[str]:
        """Predicted next items, best first, without the current item."""
        return [s.id for s in self._prediction_list if s.id != self._most_recent_item_id]

    @property
    def scored_predictions(self) -> list[ScoredItem]:
        return [
            ScoredItem(id=s.id, score=s.score)
            for s in self._prediction_list
            if s.id != self._most_recent_item_id
        ]

    @property
    def most_recent_item(self) -> Optional[str]:
        if self._most_recent_item_id == INITIAL_ITEM:
            return None
        return self._most_recent_item_id

    @property
    def visit_number(self) -> int:
        return self._visit_number

    def item_state(self, item_id: str) -> Optional[ItemState]:
        return self._items.get(item_id)

    # ── item updates ─────────────────────────────────────

    def visit_item(self, item_id: Optional[str]) -> None:
        """Record an access to ``item_id``; ``None`` clears the current item."""
        if item_id is None:
            self._most_recent_item_id = INITIAL_ITEM
            return
        if item_id == INITIAL_ITEM:
            raise ValueError(f"{INITIAL_ITEM!r} is reserved and cannot be visited")

        self._visit_number = min(self._visit_number + 1, self.max_visits)

        previous = self._most_recent_item_id
        self._most_recent_item_id = item_id

        now = self._clock()
        self._state_for(previous).add_visit_to(
            item_id,
            ItemVisit(hour=now.hour, weekday=now.isoweekday()),
            self.max_visits,
        )
        self._state_for(item_id).record_visit(self._visit_number, now.timestamp())

        logger.debug(
            "item_visited",
            item=item_id,
            previous=None if previous == INITIAL_ITEM else previous,
            visit_number=self._visit_number,
        )
        self._update_prediction_list()

    def remove_items(self, item_ids: Iterable[str]) -> None:
        """Forget items entirely: records, incoming transitions and list entries."""
        if isinstance(item_ids, str):
            raise ValueError(f"Invalid item_ids {item_ids!r}: must be an iterable of ids, not a str")
        to_remove = set(item_ids)
        to_remove.discard(INITIAL_ITEM)

        for item_id in to_remove:
            self._items.pop(item_id, None)
        for state in self._items.values():
            for item_id in to_remove:
                state.remove_visits_to(item_id)
        self._prediction_list = [s for s in self._prediction_list if s.id not in to_remove]

        if self._most_recent_item_id in to_remove:
            self.visit_item(None)

        logger.debug("items_removed", items=sorted(to_remove))
        self._update_prediction_list()

    def _state_for(self, item_id: str) -> ItemState:
        state = self._items.get(item_id)
        if state is None:
            state = self._items[item_id] = ItemState()
        return state

    # ── prediction list ──────────────────────────────────

    def _update_prediction_list(self) -> None:
        self._rescore()
        self._sort_prediction_list()
        self._update_ranks()
        self._admit_current_item()
        self._notify()

    def _calculator(self) -> ScoreCalculator:
        return ScoreCalculator(self._items, self._most_recent_item_id, self.config, self._clock())

    def _rescore(self) -> None:
        calculator = self._calculator()
        self._prediction_list = [
            ScoredItem(id=s.id, score=calculator.score(s.id)) for s in self._prediction_list
        ]

    def _sort_prediction_list(self) -> None:
        bonus = self.list_stability.stability_bonus
        empty = ItemState()

        def compare(a: ScoredItem, b: ScoredItem) -> int:
            state_a = self._items.get(a.id, empty)
            state_b = self._items.get(b.id, empty)
            score_a, score_b = a.score, b.score

            # The previously better ranked item keeps a bonus when overtaken.
            if state_a.rank < state_b.rank and score_b > score_a:
                score_a += bonus
            elif state_a.rank > state_b.rank and score_b < score_a:
                score_b += bonus

            if score_a != score_b:
                return -1 if score_a > score_b else 1
            recency_a = (state_a.time_of_last_visit, state_a.last_visit_number)
            recency_b = (state_b.time_of_last_visit, state_b.last_visit_number)
            if recency_a != recency_b:
                return -1 if recency_a > recency_b else 1
            return 0

        self._prediction_list.sort(key=functools.cmp_to_key(compare))

    def _update_ranks(self) -> None:
        for index, scored in enumerate(self._prediction_list):
            state = self._items.get(scored.id)
            if state is not None:
                state.rank = index

    def _admit_current_item(self) -> None:
        current = self._most_recent_item_id
        if current == INITIAL_ITEM:
            return
        state = self._items.get(current)
        if state is None or state.number_of_visits != 1:
            return
        if any(s.id == current for s in self._prediction_list):
            return

        self._prediction_list.append(ScoredItem(id=current, score=0.0))
        self._trim_prediction_list()
        logger.debug("item_admitted", item=current, list_size=len(self._prediction_list))

    def _trim_prediction_list(self) -> bool:
        """Drop the oldest list entries beyond ``max_visits``; True if any were dropped."""
        overflow = len(self._prediction_list) - self.max_visits
        if overflow <= 0:
            return False
        for dropped in self._prediction_list[:overflow]:
            dropped_state = self._items.get(dropped.id)
            if dropped_state is not None:
                dropped_state.rank = UNRANKED
        del self._prediction_list[:overflow]
        return True

    # ── snapshot ─────────────────────────────────────────

    def to_snapshot(self) -> dict[str, Any]:
        from access_rank.snapshot import encode_snapshot

        return encode_snapshot(self)

    @classmethod
    def from_snapshot(
        cls,
        data: Optional[Any],
        *,
        config: Optional[AccessRankConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "AccessRank":
        from access_rank.snapshot import decode_snapshot

        return decode_snapshot(data, config=config, clock=clock)

    def _restore(
        self,
        items: dict[str, ItemState],
        prediction_list: list[ScoredItem],
        visit_number: int,
        most_recent_item: Optional[str],
    ) -> None:
        self._items = items
        self._prediction_list = prediction_list
        self._visit_number = visit_number
        self._most_recent_item_id = INITIAL_ITEM if most_recent_item is None else most_recent_item
        self._enforce_max_visits()

    # ── debugging ────────────────────────────────────────

    def score_breakdown(self, item_id: str) -> ScoreBreakdown:
        return self._calculator().breakdown(item_id)

    def markov_description(self) -> str:
        return "".join(
            f"{item_id} > {state.markov_description()}\n"
            for item_id, state in self._items.items()
        )

    def score_description(self) -> str:
        calculator = self._calculator()
        lines = []
        for scored in self._prediction_list:
            parts = calculator.breakdown(scored.id)
            lines.append(
                f"{scored.id}: score: {scored.score}, markov: {parts.markov}, "
                f"crf: {parts.crf}, time: {parts.time}\n"
            )
        return "".join(lines)

    def prediction_list_description(self) -> str:
        return "".join(f"{s.id}: {s.score}\n" for s in self._prediction_list)

    def summary(self) -> dict[str, Any]:
        return {
            "tracked_items": len([k for k in self._items if k != INITIAL_ITEM]),
            "prediction_list_size": len(self._prediction_list),
            "visit_number": self._visit_number,
            "most_recent_item": self.most_recent_item,
            **self.config.to_dict(),
        }
