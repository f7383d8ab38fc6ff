"""
AccessRank — next-item prediction with a flicker-resistant ranked list.
"""

from access_rank.config import AccessRankConfig, ListStability
from access_rank.item_state import ItemState, ItemVisit, ScoredItem
from access_rank.scoring import ScoreBreakdown, ScoreCalculator
from access_rank.engine import INITIAL_ITEM, AccessRank, PredictionObserver
from access_rank.snapshot import (
    SNAPSHOT_VERSION,
    SnapshotDecodeError,
    decode_snapshot,
    encode_snapshot,
)
from access_rank.evaluation import PredictionQuality, evaluate_trace

__all__ = [
    # Engine
    "AccessRank",
    "PredictionObserver",
    "INITIAL_ITEM",
    # Configuration
    "AccessRankConfig",
    "ListStability",
    # Records
    "ItemState",
    "ItemVisit",
    "ScoredItem",
    # Scoring
    "ScoreBreakdown",
    "ScoreCalculator",
    # Snapshots
    "SNAPSHOT_VERSION",
    "SnapshotDecodeError",
    "decode_snapshot",
    "encode_snapshot",
    # Evaluation
    "PredictionQuality",
    "evaluate_trace",
]
__version__ = "0.1.0"
