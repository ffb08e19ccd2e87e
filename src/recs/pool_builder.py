"""
Pool Builder Module

Annotates the filtered catalog with request-scoped scores and splits it
into per-category candidate pools, preferring weather-appropriate items
but never returning an empty pool for a category that has any items.

Tiers (first non-empty wins):
    1: weatherScore >= 0
    2: weatherScore >= -2
    3: everything in the category

Usage:
    from recs.pool_builder import annotate_catalog, build_pools

    annotate_catalog(items, weather, item_scores)
    pools = build_pools(items, ["Tops", "Bottoms", "Shoes"])
    pools["Tops"].pool, pools["Tops"].tier
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.constants import POOL_TIERS
from core.fallback import Stage, degrade_until_min_keep
from core.logging import get_logger
from core.utils import set_field
from scoring.context import WeatherContext
from scoring.item_utils import item_id, numeric_attr, text_attr
from scoring.weather_scorer import WeatherScorer

logger = get_logger(__name__)

DEFAULT_POOL_CATEGORIES = ("Tops", "Bottoms", "Shoes", "Outerwear", "Dresses", "Accessories")


@dataclass
class PoolResult:
    category: str
    pool: List[Any]
    tier: int


def annotate_catalog(
    items: List[Any],
    weather: Optional[WeatherContext] = None,
    item_scores: Optional[Mapping[str, float]] = None,
    scorer: Optional[WeatherScorer] = None,
) -> List[Any]:
    """Set ``weatherScore`` and ``feedbackScore`` on every item in place."""
    scorer = scorer or WeatherScorer()
    item_scores = item_scores or {}
    for item in items:
        set_field(item, "weatherScore", scorer.score(item, weather))
        iid = item_id(item)
        set_field(item, "feedbackScore", int(round(item_scores.get(iid, 0.0))) if iid else 0)
    return items


def _ordered(items: Iterable[Any]) -> List[Any]:
    # Stable: equal scores keep catalog order
    return sorted(
        items,
        key=lambda it: (numeric_attr(it, "weather_score"), numeric_attr(it, "feedback_score")),
        reverse=True,
    )


def build_pool(items: List[Any], category: str) -> PoolResult:
    """Pool for *category* (case-insensitive ``main_category`` match)."""
    wanted = category.strip().lower()
    in_category = [it for it in items if text_attr(it, "main_category") == wanted]

    stages = []
    for tier, floor in POOL_TIERS:
        stages.append(Stage(
            f"tier{tier}",
            lambda floor=floor: [it for it in in_category if numeric_attr(it, "weather_score") >= floor],
        ))

    result = degrade_until_min_keep(stages, min_keep=1, fallback=[], fallback_name="empty")
    tier = min(result.level, len(POOL_TIERS))
    if tier > 1 and in_category:
        logger.debug("Pool relaxed", category=category, tier=tier, size=len(result.items))
    return PoolResult(category=category, pool=_ordered(result.items), tier=tier)


def build_pools(items: List[Any], categories: Iterable[str] = DEFAULT_POOL_CATEGORIES) -> Dict[str, PoolResult]:
    return {category: build_pool(items, category) for category in categories}
