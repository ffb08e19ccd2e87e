"""
Preference-model feature extraction.

An outfit is described by a set of ``"key:value"`` strings such as
``"color:Blue"`` or ``"occasion:office"``. The same strings key the
``user_pref_feature`` and ``global_feature_quality`` tables, so the
format here is a storage contract: keep key names stable.
"""

from typing import Any, Iterable, Set, Tuple

from core.utils import get_field, pick
from scoring.item_utils import FIELD_ALIASES

# Item-level keys (canonical attribute name == feature key)
ITEM_FEATURE_KEYS: Tuple[str, ...] = (
    "color",
    "pattern",
    "main_category",
    "dress_code",
    "brand",
    "temp_band",
    "seasonality",
)

# Outfit-level keys read from ``outfit.meta``
META_FEATURE_KEYS: Tuple[str, ...] = ("occasion", "style")


def _values(raw: Any) -> Iterable[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set)):
        return [str(v).strip() for v in raw if v is not None and str(v).strip()]
    text = str(raw).strip()
    return [text] if text else []


def extract_features(outfit: Any) -> Set[str]:
    """Return the feature set for *outfit* (dict or object with ``items``/``meta``)."""
    features: Set[str] = set()

    for item in get_field(outfit, "items") or []:
        if item is None:
            continue
        for key in ITEM_FEATURE_KEYS:
            for value in _values(pick(item, *FIELD_ALIASES.get(key, (key,)))):
                features.add(f"{key}:{value}")

    meta = get_field(outfit, "meta") or {}
    for key in META_FEATURE_KEYS:
        for value in _values(get_field(meta, key)):
            features.add(f"{key}:{value}")

    return features
