"""
Core Utility Functions.

Small helpers shared by the scoring, filtering and ingestion modules.
Items arrive either as plain dicts (from the retrieval collaborator) or
as attribute objects (pydantic models, SimpleNamespace in tests), so the
accessors here accept both.
"""

from typing import Any, Iterable, List, Mapping, Optional, Set


def lc(value: Any) -> str:
    """Lower-cased, stripped string form of *value* ('' for None)."""
    if value is None:
        return ""
    return str(value).strip().lower()


def get_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read *key* from a mapping or an attribute object."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def set_field(obj: Any, key: str, value: Any) -> None:
    """Write *key* on a mapping or an attribute object."""
    if isinstance(obj, dict):
        obj[key] = value
    else:
        setattr(obj, key, value)


def pick(obj: Any, *keys: str) -> Any:
    """
    Return the first non-empty value among *keys*.

    Example:
        >>> pick({"colorFamily": "Blue"}, "color_family", "colorFamily", "color")
        'Blue'
    """
    for key in keys:
        value = get_field(obj, key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_number(value: Any) -> Optional[float]:
    """Parse ints, floats and numeric strings; None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0.0 for an empty iterable."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def unique_in_order(values: Iterable[Any]) -> List[Any]:
    """Deduplicate while keeping first-seen order."""
    seen: Set[Any] = set()
    out: List[Any] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out
