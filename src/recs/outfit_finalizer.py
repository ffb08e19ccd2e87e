"""
Outfit Finalizer

Last step before outfits leave the service:

1. Anchor: the visually defining pairing (a dress, or top + bottom).
2. Deterministic tie-break from ``hash_string(seed + anchor) % 1000``.
3. Sort by (finalScore desc, tieBreaker desc).
4. Mark the first occurrence of each anchor as unique.
5. Select, preferring unique anchors and filling with duplicates.
6. Number ranks and redact every internal ``__`` field.

Internal fields used on outfit dicts:
    __finalScore, __weatherScore, __anchor, __tieBreaker, __uniqueAnchor
"""

from typing import Any, Callable, Dict, List, Optional

from config.constants import (
    DEFAULT_ITEM_NAME,
    IMAGE_URL_FALLBACKS,
    INTERNAL_FIELD_PREFIX,
    PUBLIC_ITEM_FIELDS,
    TIE_BREAK_MODULUS,
)
from core.utils import get_field, lc, pick

NO_ITEM = "none"

# main_category -> outfit slot
SLOT_BY_MAIN_CATEGORY: Dict[str, str] = {
    "tops": "top",
    "bottoms": "bottom",
    "skirts": "bottom",
    "dresses": "dress",
    "shoes": "shoes",
    "outerwear": "outerwear",
    "accessories": "accessory",
    "bags": "accessory",
    "headwear": "accessory",
    "jewelry": "accessory",
}
SLOTS = {"top", "bottom", "dress", "shoes", "outerwear", "accessory"}


# ── Hashing ─────────────────────────────────────────────────────

def hash_string(s: str) -> int:
    """
    Rolling ``h = (h << 5) - h + code`` hash over UTF-16 code units.

    Wraps to a signed 32-bit integer after every step and returns the
    absolute value, so results match the JavaScript clients that share
    seeds with this service.
    """
    h = 0
    data = s.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
    return abs(h)


def tie_breaker(seed: str, anchor: str) -> int:
    return hash_string(f"{seed}{anchor}") % TIE_BREAK_MODULUS


# ── Anchors ─────────────────────────────────────────────────────

def item_slot(item: Any) -> str:
    category = lc(get_field(item, "category"))
    if category in SLOTS:
        return category
    main = lc(pick(item, "main_category", "mainCategory"))
    return SLOT_BY_MAIN_CATEGORY.get(main, "other")


def compute_anchor(outfit: Any) -> str:
    items = [it for it in (get_field(outfit, "items") or []) if it is not None]

    for it in items:
        if item_slot(it) == "dress":
            return f"dress:{get_field(it, 'id')}"

    top = next((get_field(it, "id") for it in items if item_slot(it) == "top"), None)
    bottom = next((get_field(it, "id") for it in items if item_slot(it) == "bottom"), None)
    return f"{top or NO_ITEM}+{bottom or NO_ITEM}"


def mark_unique_anchors(outfits: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flag the first occurrence of each anchor (in list order) as unique."""
    used = set()
    for outfit in outfits:
        anchor = outfit.get("__anchor") or compute_anchor(outfit)
        outfit["__anchor"] = anchor
        outfit["__uniqueAnchor"] = anchor not in used
        used.add(anchor)
    return outfits


# ── Ranking ─────────────────────────────────────────────────────

def sort_outfits(outfits: List[Dict[str, Any]], seed: str) -> List[Dict[str, Any]]:
    for outfit in outfits:
        outfit.setdefault("__anchor", compute_anchor(outfit))
        outfit["__tieBreaker"] = tie_breaker(seed, outfit["__anchor"])
    return sorted(
        outfits,
        key=lambda o: (float(o.get("__finalScore") or 0.0), o["__tieBreaker"]),
        reverse=True,
    )


def select_outfits(outfits: List[Dict[str, Any]], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Unique anchors first (rank order kept), then duplicates to fill *limit*."""
    unique = [o for o in outfits if o.get("__uniqueAnchor")]
    dupes = [o for o in outfits if not o.get("__uniqueAnchor")]
    ordered = unique + dupes
    return ordered if limit is None else ordered[:limit]


# ── Redaction ───────────────────────────────────────────────────

# public item field -> reader over the raw catalog item
ITEM_FIELD_READERS: Dict[str, Callable[[Any], Any]] = {
    "id": lambda item: get_field(item, "id"),
    "name": lambda item: pick(item, "name", "label") or DEFAULT_ITEM_NAME,
    "imageUrl": lambda item: pick(item, *IMAGE_URL_FALLBACKS),
    "category": lambda item: get_field(item, "category") or item_slot(item),
}


def project_item(item: Any) -> Dict[str, Any]:
    return {field: ITEM_FIELD_READERS[field](item) for field in PUBLIC_ITEM_FIELDS}


def strip_internal_fields(outfit: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in outfit.items() if not k.startswith(INTERNAL_FIELD_PREFIX)}


def redact_outfit(outfit: Dict[str, Any]) -> Dict[str, Any]:
    public = strip_internal_fields(outfit)
    if "items" in public:
        public["items"] = [project_item(it) for it in (public["items"] or []) if it is not None]
    return public


def finalize_outfits(
    outfits: List[Dict[str, Any]],
    seed: str,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Sort, dedupe by anchor, number ranks from 1 and redact."""
    ranked = mark_unique_anchors(sort_outfits(outfits, seed))
    selected = select_outfits(ranked, limit)
    public = []
    for rank, outfit in enumerate(selected, start=1):
        outfit["rank"] = rank
        public.append(redact_outfit(outfit))
    return public
