"""
Personalization & Exploration Module

Re-scores upstream outfit candidates with the learned preference
tables, then optionally swaps one item of the winner for exploration.

Per outfit:
    personal  = mean user feature score over extracted features
    item_bias = mean user item score over item_ids
    diversity = 1 if any item is not in recent_shown_item_ids else 0
    g_item    = mean global item quality
    g_feat    = mean global feature quality

    boost       = clamp(alpha*personal + beta*item_bias + gamma*diversity
                        + delta*g_item + epsilon*g_feat, -0.5, 0.5)
    final_score = base_score + boost

Outfits holding an item the user scored <= -4 are dropped outright.

Usage:
    result = apply_personalization_and_exploration(
        store, user_id, candidates, exploration_rate=0.1, rng=random.Random(7),
    )
    result.rescored[0].final_score, result.chosen
"""

import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from config.constants import DEFAULT_PREFERENCE_CONFIG, PreferenceConfig
from core.logging import get_logger
from core.utils import clamp, mean, unique_in_order
from recs.models import OutfitCandidate
from scoring.features import extract_features

logger = get_logger(__name__)

DEFAULT_EXPLORATION_RATE = 0.1
DEFAULT_EXPLORATION_TOP_N = 10
EXPLORATION_SUFFIX = "#x"


# =============================================================================
# Weights
# =============================================================================

@dataclass(frozen=True)
class PersonalizationWeights:
    alpha: float = 0.2     # user feature affinity
    beta: float = 0.3      # user item affinity
    gamma: float = 0.05    # novelty flag
    delta: float = 0.1     # global item quality
    epsilon: float = 0.05  # global feature quality

    @classmethod
    def resolve(
        cls,
        overrides: Union["PersonalizationWeights", Mapping[str, Optional[float]], None] = None,
        base: Optional["PersonalizationWeights"] = None,
    ) -> "PersonalizationWeights":
        """Merge a partial override mapping onto *base* (defaults when None)."""
        if isinstance(overrides, PersonalizationWeights):
            return overrides
        current = asdict(base or cls())
        for key, value in (overrides or {}).items():
            if key not in current:
                raise ValueError(f"Unknown personalization weight: {key}")
            if value is not None:
                current[key] = float(value)
        return cls(**current)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


# =============================================================================
# Preference snapshot
# =============================================================================

@dataclass
class PreferenceSnapshot:
    """Request-scoped read of the four preference tables."""
    user_features: Dict[str, float] = field(default_factory=dict)
    user_items: Dict[str, float] = field(default_factory=dict)
    global_features: Dict[str, float] = field(default_factory=dict)
    global_items: Dict[str, float] = field(default_factory=dict)


def fetch_preference_snapshot(store: Any, user_id: str, item_ids: Iterable[str]) -> PreferenceSnapshot:
    """
    Read the four maps concurrently.

    The global item query is skipped when there are no candidate ids.
    Store errors propagate to the caller.
    """
    ids = unique_in_order(item_ids)

    with ThreadPoolExecutor(max_workers=4) as executor:
        user_feat_f = executor.submit(store.fetch_user_feature_scores, user_id)
        user_item_f = executor.submit(store.fetch_user_item_scores, user_id)
        global_feat_f = executor.submit(store.fetch_global_feature_scores)
        global_item_f = executor.submit(store.fetch_global_item_scores, ids) if ids else None

        return PreferenceSnapshot(
            user_features=dict(user_feat_f.result() or {}),
            user_items=dict(user_item_f.result() or {}),
            global_features=dict(global_feat_f.result() or {}),
            global_items=dict(global_item_f.result() or {}) if global_item_f else {},
        )


# =============================================================================
# Scoring
# =============================================================================

@dataclass
class PersonalizationResult:
    rescored: List[OutfitCandidate]
    chosen: Optional[OutfitCandidate]
    debug_weights: Dict[str, float]
    context_used: Dict[str, Any]
    blocked: List[str] = field(default_factory=list)


def _as_candidate(outfit: Any) -> OutfitCandidate:
    if isinstance(outfit, OutfitCandidate):
        return outfit
    return OutfitCandidate.model_validate(outfit)


def _avg(keys: Iterable[str], table: Mapping[str, float]) -> float:
    return mean(table.get(k, 0.0) for k in keys)


def outfit_signals(
    outfit: OutfitCandidate,
    snapshot: PreferenceSnapshot,
    recent: Set[str],
) -> Dict[str, float]:
    features = extract_features(outfit)
    return {
        "personal": _avg(features, snapshot.user_features),
        "item_bias": _avg(outfit.item_ids, snapshot.user_items),
        "diversity": 1.0 if any(i not in recent for i in outfit.item_ids) else 0.0,
        "g_item": _avg(outfit.item_ids, snapshot.global_items),
        "g_feat": _avg(features, snapshot.global_features),
    }


def compute_boost(
    signals: Mapping[str, float],
    weights: PersonalizationWeights,
    config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG,
) -> float:
    raw = (
        weights.alpha * signals["personal"]
        + weights.beta * signals["item_bias"]
        + weights.gamma * signals["diversity"]
        + weights.delta * signals["g_item"]
        + weights.epsilon * signals["g_feat"]
    )
    return clamp(raw, -config.BOOST_CAP, config.BOOST_CAP)


def is_hard_blocked(
    outfit: OutfitCandidate,
    user_items: Mapping[str, float],
    config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG,
) -> bool:
    return any(user_items.get(i, 0.0) <= config.HARD_BLOCK_THRESHOLD for i in outfit.item_ids)


def explore_variant(
    rescored: Sequence[OutfitCandidate],
    recent: Set[str],
    rng: random.Random,
    top_n: int = DEFAULT_EXPLORATION_TOP_N,
    config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG,
) -> Optional[OutfitCandidate]:
    """
    Swap one slot of the top outfit for an item seen in the top-N.

    Returns None when there is no eligible swap candidate.
    """
    if not rescored:
        return None
    top = rescored[0]
    if not top.item_ids:
        return None

    head = rescored[:top_n]
    avoid = set(top.item_ids) | recent
    candidates = [i for i in unique_in_order(i for o in head for i in o.item_ids) if i not in avoid]
    if not candidates:
        return None

    slot = rng.randrange(len(top.item_ids))
    swap_in = rng.choice(candidates)

    item_ids = list(top.item_ids)
    swapped_out = item_ids[slot]
    item_ids[slot] = swap_in

    update: Dict[str, Any] = {
        "outfit_id": f"{top.outfit_id}{EXPLORATION_SUFFIX}",
        "item_ids": item_ids,
        "final_score": (top.final_score or 0.0) - config.EXPLORATION_PENALTY,
        "explored": True,
    }
    if top.items:
        by_id = {str(it.get("id")): it for o in head for it in (o.items or []) if it and it.get("id") is not None}
        if all(i in by_id for i in item_ids):
            update["items"] = [by_id[i] for i in item_ids]
        else:
            update["items"] = None

    logger.info(
        "Exploration swap",
        outfit_id=top.outfit_id,
        slot=slot,
        swapped_out=swapped_out,
        swapped_in=swap_in,
    )
    return top.model_copy(update=update)


def apply_personalization_and_exploration(
    store: Any,
    user_id: str,
    base_outfits: Sequence[Any],
    context: Optional[Dict[str, Any]] = None,
    weights: Union[PersonalizationWeights, Mapping[str, Optional[float]], None] = None,
    exploration_rate: float = DEFAULT_EXPLORATION_RATE,
    recent_shown_item_ids: Optional[Iterable[str]] = None,
    rng: Optional[random.Random] = None,
    top_n: int = DEFAULT_EXPLORATION_TOP_N,
    snapshot: Optional[PreferenceSnapshot] = None,
    config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG,
) -> PersonalizationResult:
    """
    Rescore *base_outfits* for *user_id*.

    Args:
        store: PreferenceStore used to read the four preference maps
            (ignored when *snapshot* is given).
        base_outfits: OutfitCandidate models or dicts of the same shape.
        weights: full PersonalizationWeights or a partial mapping.
        exploration_rate: probability in [0, 1] of an exploration swap.
        rng: injectable random source; a fresh unseeded one by default.

    Raises:
        ValueError: exploration_rate outside [0, 1].
    """
    if not 0.0 <= exploration_rate <= 1.0:
        raise ValueError(f"exploration_rate must be within [0, 1], got {exploration_rate}")

    outfits = [_as_candidate(o) for o in base_outfits]
    resolved = PersonalizationWeights.resolve(weights)
    recent = {str(i) for i in (recent_shown_item_ids or [])}
    rng = rng or random.Random()

    if snapshot is None:
        snapshot = fetch_preference_snapshot(store, user_id, (i for o in outfits for i in o.item_ids))

    rescored: List[OutfitCandidate] = []
    blocked: List[str] = []
    for outfit in outfits:
        if is_hard_blocked(outfit, snapshot.user_items, config):
            blocked.append(outfit.outfit_id)
            continue
        boost = compute_boost(outfit_signals(outfit, snapshot, recent), resolved, config)
        rescored.append(outfit.model_copy(update={"boost": boost, "final_score": outfit.base_score + boost}))

    if blocked:
        logger.info("Hard-blocked outfits", user_id=user_id, blocked=blocked)

    rescored.sort(key=lambda o: o.final_score, reverse=True)

    chosen = rescored[0] if rescored else None
    if rescored and rng.random() < exploration_rate:
        chosen = explore_variant(rescored, recent, rng, top_n, config) or chosen

    return PersonalizationResult(
        rescored=rescored,
        chosen=chosen,
        debug_weights=resolved.to_dict(),
        context_used=dict(context or {}),
        blocked=blocked,
    )
