"""
Ranking constants and storage names.

These are values that don't change based on environment but are
referenced across the scoring, filtering and ingestion code.
"""

from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# Preference learning
# =============================================================================

@dataclass(frozen=True)
class PreferenceConfig:
    """Bounds for the preference store and the personalization blend."""

    # Every stored preference score lives in [SCORE_MIN, SCORE_MAX]
    SCORE_MIN: float = -5.0
    SCORE_MAX: float = 5.0

    # A user item score at or below this drops any outfit containing the item
    HARD_BLOCK_THRESHOLD: float = -4.0

    # Personalization boost is clamped to +/- BOOST_CAP
    BOOST_CAP: float = 0.5

    # Subtracted from an exploration variant's final score
    EXPLORATION_PENALTY: float = 0.01

    # Per-item feedback counts double at the user level
    USER_ITEM_MULTIPLIER: float = 2.0

    # Rating 2..5 maps to (rating - NEUTRAL_RATING) * RATING_SCALE
    NEUTRAL_RATING: int = 3
    RATING_SCALE: float = 0.7


DEFAULT_PREFERENCE_CONFIG = PreferenceConfig()


# =============================================================================
# Pool tiers
# =============================================================================

# (tier number, minimum weatherScore). The last tier accepts everything.
POOL_TIERS: Tuple[Tuple[int, float], ...] = (
    (1, 0.0),
    (2, -2.0),
    (3, float("-inf")),
)


# =============================================================================
# Final ranking
# =============================================================================

TIE_BREAK_MODULUS: int = 1000
INTERNAL_FIELD_PREFIX: str = "__"
PUBLIC_ITEM_FIELDS: Tuple[str, ...] = ("id", "name", "imageUrl", "category")
IMAGE_URL_FALLBACKS: Tuple[str, ...] = (
    "touched_up_image_url",
    "processed_image_url",
    "image_url",
    "image",
)
DEFAULT_ITEM_NAME: str = "Item"


# =============================================================================
# Storage
# =============================================================================

@dataclass(frozen=True)
class TableNames:
    """Supabase table names used by the preference store."""

    USER_PREF_FEATURE: str = "user_pref_feature"
    USER_PREF_ITEM: str = "user_pref_item"
    GLOBAL_FEATURE_QUALITY: str = "global_feature_quality"
    GLOBAL_ITEM_QUALITY: str = "global_item_quality"
    FEEDBACK_EVENTS: str = "outfit_feedback_events"
    GENERATIONS: str = "outfit_generations"

    # RPC performing the atomic increment-then-clamp upsert
    INCREMENT_RPC: str = "increment_pref_score"


TABLES = TableNames()
