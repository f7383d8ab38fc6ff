"""Engine configuration.

List stability controls how eagerly the prediction list reorders itself.
Each level maps to a blend exponent ``l`` (how strongly the Markov weight
dominates the recency/frequency weight) and a stability bonus ``d`` (the
score an item keeps when a lower-ranked item overtakes it).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

DEFAULT_MAX_VISITS = 1000
ENV_PREFIX = "ACCESSRANK_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ListStability(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def blend_exponent(self) -> float:
        return _STABILITY_VALUES[self][0]

    @property
    def stability_bonus(self) -> float:
        return _STABILITY_VALUES[self][1]

    @classmethod
    def parse(cls, value: "ListStability | str") -> "ListStability":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid list_stability {value!r}: must be one of "
                f"{[s.value for s in cls]}"
            ) from None


_STABILITY_VALUES = {
    ListStability.LOW: (1.65, 0.0),
    ListStability.MEDIUM: (1.65, 0.2),
    ListStability.HIGH: (2.50, 0.5),
}


@dataclass
class AccessRankConfig:
    """Tunable engine settings; mutable after construction."""

    list_stability: ListStability = ListStability.MEDIUM
    use_time_weighting: bool = True
    max_visits: int = DEFAULT_MAX_VISITS

    def __post_init__(self) -> None:
        self.list_stability = ListStability.parse(self.list_stability)
        if not isinstance(self.use_time_weighting, bool):
            raise ValueError(
                f"Invalid use_time_weighting {self.use_time_weighting!r}: must be a bool"
            )
        if isinstance(self.max_visits, bool) or not isinstance(self.max_visits, int):
            raise ValueError(f"Invalid max_visits {self.max_visits!r}: must be an int")
        if self.max_visits < 1:
            raise ValueError(f"Invalid max_visits {self.max_visits}: must be >= 1")

    def to_dict(self) -> dict[str, Any]:
        return {
            "list_stability": self.list_stability.value,
            "use_time_weighting": self.use_time_weighting,
            "max_visits": self.max_visits,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccessRankConfig":
        return cls(
            list_stability=ListStability.parse(data["list_stability"]),
            use_time_weighting=data["use_time_weighting"],
            max_visits=data["max_visits"],
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AccessRankConfig":
        """Build a config from ``ACCESSRANK_*`` environment variables.

        Unset variables fall back to the defaults.
        """
        env = os.environ if environ is None else environ

        stability = env.get(f"{ENV_PREFIX}LIST_STABILITY", ListStability.MEDIUM.value)

        raw_weighting = env.get(f"{ENV_PREFIX}USE_TIME_WEIGHTING", "true").strip().lower()
        if raw_weighting in _TRUE_VALUES:
            use_time_weighting = True
        elif raw_weighting in _FALSE_VALUES:
            use_time_weighting = False
        else:
            raise ValueError(
                f"Invalid {ENV_PREFIX}USE_TIME_WEIGHTING {raw_weighting!r}: must be true/false"
            )

        raw_max = env.get(f"{ENV_PREFIX}MAX_VISITS", str(DEFAULT_MAX_VISITS))
        try:
            max_visits = int(raw_max)
        except ValueError:
            raise ValueError(
                f"Invalid {ENV_PREFIX}MAX_VISITS {raw_max!r}: must be an integer"
            ) from None

        return cls(
            list_stability=ListStability.parse(stability),
            use_time_weighting=use_time_weighting,
            max_visits=max_visits,
        )
