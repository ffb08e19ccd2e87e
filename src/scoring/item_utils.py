"""
Shared item-attribute helpers for scoring and filtering modules.

Wardrobe rows come from several producers (SQL rows, the vector index
metadata, client payloads) and spell the same attribute differently:
``color_family`` / ``colorFamily`` / ``color``, ``main_category`` /
``mainCategory`` and so on. ``attr()`` resolves a canonical attribute
name through its alias list so downstream code reads one name only.
"""

from typing import Any, Dict, Optional, Tuple

from core.utils import lc, pick, to_number


# ── Canonical attribute → accepted field spellings (first hit wins) ──
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "item_id", "itemId"),
    "label": ("label", "name", "ai_title"),
    "main_category": ("main_category", "mainCategory"),
    "subcategory": ("subcategory", "sub_category", "subCategory"),
    "shoe_style": ("shoe_style", "shoeStyle"),
    "color": ("color_family", "colorFamily", "color"),
    "raw_color": ("color", "color_family", "colorFamily"),
    "pattern": ("pattern", "pattern_type", "patternType"),
    "dress_code": ("dress_code", "dressCode"),
    "formality_score": ("formality_score", "formalityScore"),
    "brand": ("brand", "brand_name", "brandName"),
    "material": ("material", "materials", "fabric"),
    "sleeve_length": ("sleeve_length", "sleeveLength"),
    "layering": ("layering", "layer"),
    "waterproof_rating": ("waterproof_rating", "waterproofRating"),
    "rain_ok": ("rain_ok", "rainOk"),
    "temp_band": ("temp_band", "tempBand", "temperature_band"),
    "seasonality": ("seasonality", "season", "seasons"),
    "weather_score": ("weatherScore", "weather_score"),
    "feedback_score": ("feedbackScore", "feedback_score"),
}


def attr(item: Any, name: str) -> Any:
    """Resolve canonical attribute *name* on *item* through its aliases."""
    aliases = FIELD_ALIASES.get(name, (name,))
    value = pick(item, *aliases)
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return ", ".join(parts) if parts else None
    return value


def text_attr(item: Any, name: str) -> str:
    """Lower-cased string form of a canonical attribute ('' when absent)."""
    return lc(attr(item, name))


def item_id(item: Any) -> Optional[str]:
    value = attr(item, "id")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def numeric_attr(item: Any, name: str, default: float = 0.0) -> float:
    value = to_number(attr(item, name))
    return default if value is None else value


# ── Classifiers used by the weather scorer ───────────────────────

def is_outerwear(item: Any) -> bool:
    return text_attr(item, "main_category") == "outerwear" or text_attr(item, "layering") == "outer"


def is_short_sleeve(item: Any) -> bool:
    return "short" in text_attr(item, "sleeve_length")


def is_waterproof(item: Any) -> bool:
    if bool(attr(item, "rain_ok")):
        return True
    rating = to_number(attr(item, "waterproof_rating"))
    return rating is not None and rating > 0


def is_shell_layer(item: Any) -> bool:
    sub = text_attr(item, "subcategory")
    return text_attr(item, "layering") == "outer" or "jacket" in sub or "shell" in sub


def is_shorts(item: Any) -> bool:
    return text_attr(item, "subcategory") == "shorts"
