"""
Occasion Filter Module

Removes obviously-irrelevant wardrobe items based on the intent found in
the user's request ("gym tomorrow", "black tie gala", "beach day").

Approach:
1. Intent detectors are independent regexes over the lower-cased query.
2. Matched intents are applied in fixed precedence order
   gym > black-tie > beach > wedding > upscale, each narrowing the
   result of the previous stage.
3. Per stage: adopt the strong allowlist when it keeps at least
   ``min_keep`` items, otherwise remove only the blocklist violations
   from the stage input.
4. Upscale has no allowlist; it only removes ultra-casual items.
5. Safety valve: a non-empty catalog never filters down to nothing.

Usage:
    from recs.occasion_filter import apply_contextual_filters

    catalog = apply_contextual_filters("leg day at the gym", catalog)
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from core.fallback import Stage, degrade_until_min_keep
from core.logging import get_logger
from scoring.item_utils import numeric_attr, text_attr

logger = get_logger(__name__)

DEFAULT_MIN_KEEP = 6

# Black tie wardrobes are small; the allowlist is adopted at min(min_keep, 8)
BLACK_TIE_MAX_KEEP = 8


# =============================================================================
# Intent detectors
# =============================================================================

RX_GYM = re.compile(
    r"\b(gym|work\s?out|training|athletic|exercise|run(ning)?|lift(ing)?|cross[-\s]?fit|hiit)\b",
    re.I,
)
RX_BLACK_TIE = re.compile(r"\b(black\s*tie|tux(ed|edo)?|white\s*tie)\b", re.I)
RX_BEACH = re.compile(r"\b(beach|pool|swim|swimming|resort|vacation|cruise)\b", re.I)
RX_WEDDING = re.compile(r"\b(wedding|ceremony|reception)\b", re.I)
RX_UPSCALE = re.compile(
    r"\b(upscale|smart\s*casual|business\s*casual|business(?!\s*days?)|formal|dressy|rooftop)\b",
    re.I,
)


# =============================================================================
# Garment patterns
# =============================================================================

RX_SNEAKER = re.compile(r"(sneaker|trainer|running|athletic|gym)", re.I)
RX_DRESS_SHOE = re.compile(r"(oxford|derby|monk|dress\s*shoe|loafers?)", re.I)
RX_BOOTS = re.compile(r"boots?", re.I)
RX_SHORTS = re.compile(r"\bshorts?\b", re.I)
RX_JEANS = re.compile(r"\bjeans?\b", re.I)
RX_TROUSERS = re.compile(r"\b(trousers?|chinos?)\b", re.I)
RX_JOGGERS = re.compile(r"\b(joggers?|sweatpants|track\s*pants)\b", re.I)
RX_TSHIRT = re.compile(r"\b(t-?shirts?|tees?|tanks?|jersey|performance|compression)\b", re.I)
RX_HOODIE = re.compile(r"\bhoodies?\b", re.I)
RX_WINDBREAKER = re.compile(r"\b(windbreaker|shell|track\s*top)\b", re.I)
RX_SWIM = re.compile(r"\b(swim|trunks|boardshorts?|bikini|one(-|\s)?piece)\b", re.I)
RX_SANDAL = re.compile(r"\b(sandals?|flip-?flops?|slides?|espadrilles?)\b", re.I)
RX_BLAZER = re.compile(r"\b(blazer|sport\s*coat|suit\s*jacket)\b", re.I)
RX_BELT = re.compile(r"\bbelt\b", re.I)
RX_LIGHT_LAYER = re.compile(r"\b(linen|unstructured|lightweight)\b", re.I)
RX_ULTRA_CASUAL_TOP = re.compile(r"\b(t-?shirts?|tees?|hoodies?|tanks?|graphic\s*tees?|hawaiian)\b", re.I)

ULTRA_CASUAL_DRESS_CODES = {"ultracasual", "casual"}
WEDDING_DRESS_CODES = {"smartcasual", "businesscasual", "business", "blacktie"}
DRESSY_FORMALITY = 6


def _parts(item: Any) -> Tuple[str, str, str]:
    return (
        text_attr(item, "main_category"),
        text_attr(item, "subcategory"),
        text_attr(item, "label"),
    )


def _dress_code(item: Any) -> str:
    return text_attr(item, "dress_code").replace(" ", "").replace("_", "")


# =============================================================================
# Gym
# =============================================================================

def allow_gym(item: Any) -> bool:
    main, sub, label = _parts(item)
    if main == "shoes" and RX_SNEAKER.search(sub):
        return True
    if main == "activewear":
        return True
    if main == "tops" and (RX_TSHIRT.search(sub) or RX_HOODIE.search(sub) or RX_WINDBREAKER.search(sub)):
        return True
    if main == "outerwear" and (RX_WINDBREAKER.search(sub) or RX_HOODIE.search(label)):
        return True
    if main == "bottoms" and (RX_SHORTS.search(sub) or RX_JOGGERS.search(sub)):
        return True
    return False


def block_gym(item: Any) -> bool:
    main, sub, _ = _parts(item)
    if main == "shoes" and (RX_DRESS_SHOE.search(sub) or RX_BOOTS.search(sub)):
        return True
    if main == "bottoms" and (RX_TROUSERS.search(sub) or RX_JEANS.search(sub)):
        return True
    if main == "outerwear" and RX_BLAZER.search(sub):
        return True
    if main == "tops" and re.search(r"\bdress\s*shirt\b", sub):
        return True
    if main == "accessories" and RX_BELT.search(sub):
        return True
    return main == "formalwear"


# =============================================================================
# Black tie
# =============================================================================

def allow_black_tie(item: Any) -> bool:
    main, sub, label = _parts(item)
    if main == "formalwear":
        return True
    if main == "outerwear" and re.search(r"\b(tux|tuxedo|dinner\s*jacket|suit\s*jacket)\b", label):
        return True
    if main == "tops" and re.search(r"\b(dress\s*shirt|tuxedo\s*shirt)\b", label):
        return True
    if main == "accessories" and re.search(r"\b(bow\s*tie|cummerbund|studs?)\b", label):
        return True
    if main == "shoes" and re.search(r"\b(oxford|patent|dress\s*shoe)\b", sub):
        return True
    if main == "bottoms" and re.search(r"\b(tuxedo|dress)\s*(pants|trousers)\b", label):
        return True
    return False


def block_black_tie(item: Any) -> bool:
    main, sub, _ = _parts(item)
    if main == "shoes" and (RX_SNEAKER.search(sub) or RX_BOOTS.search(sub)):
        return True
    if main == "bottoms" and (RX_JEANS.search(sub) or RX_SHORTS.search(sub)):
        return True
    if main == "tops" and (RX_TSHIRT.search(sub) or RX_HOODIE.search(sub)):
        return True
    return False


# =============================================================================
# Beach
# =============================================================================

def allow_beach(item: Any) -> bool:
    main, sub, label = _parts(item)
    if main == "swimwear" or RX_SWIM.search(sub):
        return True
    if main == "bottoms" and (
        RX_SHORTS.search(sub) or re.search(r"\b(trunks|boardshorts?)\b", sub) or re.search(r"\blinen\b", label)
    ):
        return True
    if main == "tops" and (
        re.search(r"\b(hawaiian|camp\s*shirt|resort|tank|linen)\b", sub) or re.search(r"\blinen\b", label)
    ):
        return True
    if main == "shoes" and RX_SANDAL.search(sub):
        return True
    if main == "accessories" and re.search(r"\b(sunglasses|hat|cap)\b", sub):
        return True
    if main == "outerwear" and RX_LIGHT_LAYER.search(label):
        return True
    return False


def block_beach(item: Any) -> bool:
    main, sub, label = _parts(item)
    if main == "bottoms" and (RX_TROUSERS.search(sub) or RX_JEANS.search(sub)):
        return True
    if main == "tops" and (RX_HOODIE.search(sub) or re.search(r"\bsweater\b", sub)):
        return True
    if main == "outerwear" and not RX_LIGHT_LAYER.search(label):
        return True
    if main == "shoes" and (RX_DRESS_SHOE.search(sub) or RX_BOOTS.search(sub)):
        return True
    if main == "accessories" and RX_BELT.search(sub):
        return True
    return main == "formalwear"


# =============================================================================
# Upscale / wedding
# =============================================================================

def is_ultra_casual_for_upscale(item: Any) -> bool:
    """Graphic tees, hoodies, shorts and everyday jeans."""
    main, sub, label = _parts(item)
    if RX_ULTRA_CASUAL_TOP.search(sub) or RX_ULTRA_CASUAL_TOP.search(label):
        return True
    if main == "bottoms" and RX_SHORTS.search(sub):
        return True

    formality = numeric_attr(item, "formality_score", 0.0)
    if RX_JEANS.search(sub) and formality < DRESSY_FORMALITY:
        return True
    if _dress_code(item) in ULTRA_CASUAL_DRESS_CODES and formality < DRESSY_FORMALITY:
        return True
    return False


def allow_wedding(item: Any) -> bool:
    main, sub, _ = _parts(item)
    if _dress_code(item) in WEDDING_DRESS_CODES:
        return True
    if numeric_attr(item, "formality_score", float("nan")) >= DRESSY_FORMALITY:
        return True
    if RX_BLAZER.search(sub):
        return True
    return main == "shoes" and bool(RX_DRESS_SHOE.search(sub))


def block_wedding(item: Any) -> bool:
    if is_ultra_casual_for_upscale(item):
        return True
    main, sub, _ = _parts(item)
    if main == "bottoms" and RX_SHORTS.search(sub):
        return True
    if main == "tops" and RX_HOODIE.search(sub):
        return True
    return main == "shoes" and bool(RX_SNEAKER.search(sub))


# =============================================================================
# Stage table (order == precedence)
# =============================================================================

@dataclass(frozen=True)
class ContextStage:
    intent: str
    detector: Pattern[str]
    block: Callable[[Any], bool]
    allow: Optional[Callable[[Any], bool]] = None
    max_keep: Optional[int] = None

    def threshold(self, min_keep: int) -> int:
        if self.max_keep is None:
            return min_keep
        return min(min_keep, self.max_keep)


CONTEXT_STAGES: Tuple[ContextStage, ...] = (
    ContextStage("gym", RX_GYM, block=block_gym, allow=allow_gym),
    ContextStage("black_tie", RX_BLACK_TIE, block=block_black_tie, allow=allow_black_tie,
                 max_keep=BLACK_TIE_MAX_KEEP),
    ContextStage("beach", RX_BEACH, block=block_beach, allow=allow_beach),
    ContextStage("wedding", RX_WEDDING, block=block_wedding, allow=allow_wedding),
    ContextStage("upscale", RX_UPSCALE, block=is_ultra_casual_for_upscale),
)


def detect_intents(query: Optional[str]) -> List[str]:
    """Matched intents in precedence order."""
    q = (query or "").lower()
    return [stage.intent for stage in CONTEXT_STAGES if stage.detector.search(q)]


def apply_stage(stage: ContextStage, items: List[Any], min_keep: int) -> Tuple[List[Any], str]:
    """Run one stage; returns the kept items and the mode used (allow/block)."""
    soft = [it for it in items if not stage.block(it)]
    if stage.allow is None:
        return soft, "block"

    allow = stage.allow
    result = degrade_until_min_keep(
        [Stage("allow", lambda: [it for it in items if allow(it)])],
        min_keep=stage.threshold(min_keep),
        fallback=soft,
        fallback_name="block",
    )
    return result.items, result.stage


def explain_contextual_filters(
    query: Optional[str],
    catalog: List[Any],
    min_keep: int = DEFAULT_MIN_KEEP,
) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """Filter and return ``(items, trace)``; one trace entry per matched intent."""
    filtered = list(catalog)
    trace: List[Dict[str, Any]] = []
    q = (query or "").lower()

    for stage in CONTEXT_STAGES:
        if not stage.detector.search(q):
            continue
        before = len(filtered)
        filtered, mode = apply_stage(stage, filtered, min_keep)
        trace.append({"intent": stage.intent, "mode": mode, "before": before, "after": len(filtered)})
        if stage.allow is not None and mode == "block":
            logger.info(
                "Occasion allowlist too small, using blocklist",
                intent=stage.intent,
                before=before,
                kept=len(filtered),
                min_keep=stage.threshold(min_keep),
            )

    if not filtered and catalog:
        logger.warning("Occasion filters removed every item, reverting", query=query, intents=[t["intent"] for t in trace])
        trace.append({"intent": "safety_valve", "mode": "revert", "before": 0, "after": len(catalog)})
        return list(catalog), trace

    return filtered, trace


def apply_contextual_filters(
    query: Optional[str],
    catalog: List[Any],
    min_keep: int = DEFAULT_MIN_KEEP,
) -> List[Any]:
    """Filter *catalog* for the intents in *query*; never empties a non-empty catalog."""
    return explain_contextual_filters(query, catalog, min_keep)[0]
