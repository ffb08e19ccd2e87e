"""
Progressive relaxation helper.

Several ranking stages share the same shape: try a strict filter, relax
it once (or a few times), and finally fall back to the unfiltered input.
``degrade_until_min_keep`` runs an ordered list of stages and returns the
first one whose result is large enough.

Usage:
    result = degrade_until_min_keep(
        [
            Stage("strong", lambda: strict(items)),
            Stage("soft", lambda: relaxed(items)),
        ],
        min_keep=6,
        fallback=items,
    )
    result.items, result.stage
"""

from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Stage(Generic[T]):
    """One relaxation level. ``run`` is evaluated lazily."""
    name: str
    run: Callable[[], List[T]]
    min_keep: Optional[int] = None


@dataclass
class DegradeResult(Generic[T]):
    items: List[T]
    stage: str
    # 1-based index of the accepted stage; len(stages) + 1 means fallback
    level: int


def degrade_until_min_keep(
    stages: Sequence[Stage[T]],
    min_keep: int = 1,
    fallback: Optional[List[T]] = None,
    fallback_name: str = "fallback",
) -> DegradeResult[T]:
    """
    Return the first stage producing at least ``min_keep`` items.

    A stage may override ``min_keep``. When no stage qualifies the
    ``fallback`` list is returned (an empty list when none is given).
    """
    for idx, stage in enumerate(stages, start=1):
        threshold = stage.min_keep if stage.min_keep is not None else min_keep
        items = stage.run()
        if len(items) >= threshold:
            return DegradeResult(items=items, stage=stage.name, level=idx)
        logger.debug(
            "Stage below min_keep, relaxing",
            stage=stage.name,
            kept=len(items),
            min_keep=threshold,
        )

    return DegradeResult(
        items=list(fallback or []),
        stage=fallback_name,
        level=len(stages) + 1,
    )
