"""Versioned snapshot encoding for engine state.

The snapshot is a plain mapping of JSON/YAML-safe values whose shape is a
contract of its own, independent of the engine's internal types:

    {
      "version": 1,
      "config": {"list_stability": "medium", "use_time_weighting": true,
                 "max_visits": 1000},
      "visit_number": 3,
      "most_recent_item": "C",            # null when there is no current item
      "items": {
        "A": {"next_visits": {"B": [{"hour": 9, "weekday": 2}]},
              "number_of_visits": 1, "time_of_last_visit": 1718870400.0,
              "crf_weight": 1.0, "last_visit_number": 1, "rank": 0},
        ...
      },
      "prediction_list": [{"id": "B", "score": 0.31}, ...]
    }

Decoding validates the whole structure before touching an engine; any
problem surfaces as a single ``SnapshotDecodeError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Literal, NoReturn, Optional, Union

import structlog
from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

from access_rank.config import AccessRankConfig
from access_rank.engine import INITIAL_ITEM, AccessRank
from access_rank.item_state import ItemState, ItemVisit, ScoredItem

logger = structlog.get_logger(__name__)

SNAPSHOT_VERSION = 1

Number = Union[StrictFloat, StrictInt]


class SnapshotDecodeError(ValueError):
    """Raised when a snapshot is structurally invalid."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


# ─────────────────────────────────────────────────────────
# Wire models
# ─────────────────────────────────────────────────────────

class _ItemVisitModel(BaseModel):
    hour: StrictInt = Field(ge=0, le=23)
    weekday: StrictInt = Field(ge=1, le=7)


class _ItemStateModel(BaseModel):
    next_visits: dict[StrictStr, list[_ItemVisitModel]]
    number_of_visits: StrictInt = Field(ge=0)
    time_of_last_visit: Number
    crf_weight: Number
    last_visit_number: StrictInt = Field(ge=0)
    rank: StrictInt = Field(ge=0)


class _ScoredItemModel(BaseModel):
    id: StrictStr
    score: Number


class _ConfigModel(BaseModel):
    list_stability: Literal["low", "medium", "high"]
    use_time_weighting: StrictBool
    max_visits: StrictInt = Field(ge=1)


class _SnapshotModel(BaseModel):
    version: StrictInt
    config: _ConfigModel
    visit_number: StrictInt = Field(ge=0)
    most_recent_item: Optional[StrictStr]
    items: dict[StrictStr, _ItemStateModel]
    prediction_list: list[_ScoredItemModel]


# ─────────────────────────────────────────────────────────
# Encode / decode
# ─────────────────────────────────────────────────────────

def encode_snapshot(engine: AccessRank) -> dict[str, Any]:
    """Serialise the full engine state into a plain mapping."""
    return {
        "version": SNAPSHOT_VERSION,
        "config": engine.config.to_dict(),
        "visit_number": engine.visit_number,
        "most_recent_item": engine.most_recent_item,
        "items": {item_id: state.to_dict() for item_id, state in engine._items.items()},
        "prediction_list": [s.to_dict() for s in engine._prediction_list],
    }


def decode_snapshot(
    data: Optional[Any],
    config: Optional[AccessRankConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> AccessRank:
    """Rebuild an engine from ``encode_snapshot`` output.

    Args:
        data: Snapshot mapping, or None when nothing has been stored yet.
        config: Overrides the configuration stored in the snapshot.
        clock: Time source for the rebuilt engine.

    Raises:
        SnapshotDecodeError: If the snapshot is missing fields, has
            mistyped values, or is internally inconsistent.
    """
    if data is None:
        return AccessRank(config, clock=clock)
    if not isinstance(data, dict):
        _reject(f"snapshot must be a mapping, got {type(data).__name__}")

    version = data.get("version")
    if isinstance(version, int) and not isinstance(version, bool) and version != SNAPSHOT_VERSION:
        _reject(f"unsupported snapshot version {version}: expected {SNAPSHOT_VERSION}")

    try:
        model = _SnapshotModel.model_validate(data)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        _reject("invalid snapshot structure", problems)

    problems = _consistency_problems(model)
    if problems:
        _reject("inconsistent snapshot", problems)

    items = {
        item_id: ItemState(
            next_visits={
                target: [ItemVisit(hour=v.hour, weekday=v.weekday) for v in visits]
                for target, visits in state.next_visits.items()
            },
            number_of_visits=state.number_of_visits,
            time_of_last_visit=float(state.time_of_last_visit),
            crf_weight=float(state.crf_weight),
            last_visit_number=state.last_visit_number,
            rank=state.rank,
        )
        for item_id, state in model.items.items()
    }
    prediction_list = [ScoredItem(id=s.id, score=float(s.score)) for s in model.prediction_list]

    engine = AccessRank(
        config or AccessRankConfig.from_dict(model.config.model_dump()),
        clock=clock,
    )
    engine._restore(items, prediction_list, model.visit_number, model.most_recent_item)
    logger.debug(
        "snapshot_decoded",
        items=len(items),
        prediction_list_size=len(prediction_list),
        visit_number=model.visit_number,
    )
    return engine


def _consistency_problems(model: _SnapshotModel) -> list[str]:
    problems: list[str] = []
    seen: set[str] = set()
    for index, scored in enumerate(model.prediction_list):
        if scored.id == INITIAL_ITEM:
            problems.append(f"prediction_list.{index}: reserved id {INITIAL_ITEM!r}")
        elif scored.id not in model.items:
            problems.append(f"prediction_list.{index}: {scored.id!r} has no item record")
        if scored.id in seen:
            problems.append(f"prediction_list.{index}: duplicate id {scored.id!r}")
        seen.add(scored.id)
    for item_id, state in model.items.items():
        if state.crf_weight < 0:
            problems.append(f"items.{item_id}.crf_weight: must be >= 0")
    if model.most_recent_item == INITIAL_ITEM:
        problems.append(f"most_recent_item: reserved id {INITIAL_ITEM!r}, use null")
    return problems


def _reject(message: str, problems: Optional[list[str]] = None) -> NoReturn:
    logger.warning("snapshot_rejected", reason=message, problems=problems or [])
    raise SnapshotDecodeError(
        message if not problems else f"{message}: {'; '.join(problems)}",
        problems,
    )
