"""
Feedback Rules Module

Turns a user's stored feedback rows into exclusion rules and enforces
them at catalog time, before any candidate is built.

Rule kinds:
- ExcludeItemIds: items from disliked outfits (explicit, always honored)
- ExcludeBrand: "ban <brand>" phrasing
- ExcludeColorOnCategory / ExcludeColor: "no black shoes", "avoid red"
- ExcludeSubstring: loafers / sneakers / hoodies keywords, ``label:`` directive

Filtering is conservative: inferred stylistic rules are dropped when
the wardrobe is too small to absorb them, explicit item bans are not.

Usage:
    from recs.feedback_rules import compile_rules, apply_feedback_filters

    rules = compile_rules(store.fetch_feedback_rows(user_id))
    catalog = apply_feedback_filters(catalog, rules, min_keep=6)
"""

import json
import re
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Pattern, Tuple, Union

from core.fallback import Stage, degrade_until_min_keep
from core.logging import get_logger
from core.utils import get_field, lc, unique_in_order
from scoring.item_utils import item_id, text_attr

logger = get_logger(__name__)

DEFAULT_MIN_KEEP = 6


# =============================================================================
# Rule types
# =============================================================================

@dataclass(frozen=True)
class ExcludeItemIds:
    item_ids: Tuple[str, ...]
    kind: ClassVar[str] = "excludeItemIds"
    explicit: ClassVar[bool] = True


@dataclass(frozen=True)
class ExcludeBrand:
    brand: str
    category: Optional[str] = None
    kind: ClassVar[str] = "excludeBrand"
    explicit: ClassVar[bool] = False


@dataclass(frozen=True)
class ExcludeColorOnCategory:
    color: str
    category: str
    kind: ClassVar[str] = "excludeColorOnCategory"
    explicit: ClassVar[bool] = False


@dataclass(frozen=True)
class ExcludeColor:
    color: str
    kind: ClassVar[str] = "excludeColor"
    explicit: ClassVar[bool] = False


@dataclass(frozen=True)
class ExcludeSubstring:
    field: str  # "label" | "subcategory"
    value: str
    category: Optional[str] = None
    kind: ClassVar[str] = "excludeSubstring"
    explicit: ClassVar[bool] = False


FeedbackRule = Union[ExcludeItemIds, ExcludeBrand, ExcludeColorOnCategory, ExcludeColor, ExcludeSubstring]


# =============================================================================
# Vocabulary
# =============================================================================

# Ordered: the first matching alias wins when reading free text
CATEGORY_ALIASES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("shoes", re.compile(r"\b(shoes?|sneakers?|trainers?|loafers?|boots?|heels?|sandals?|slides?|espadrilles?)\b")),
    ("tops", re.compile(r"\b(t-?shirts?|tees?|polos?|shirts?|sweaters?|knits?|hoodies?|henleys?)\b")),
    ("bottoms", re.compile(r"\b(pants|trousers|jeans|chinos|shorts|joggers|sweatpants|track\s*pants)\b")),
    ("outerwear", re.compile(
        r"\b(blazers?|sport\s*coats?|suit\s*jacket|jackets?|coats?|parkas?|trenches|overcoats?|windbreakers?)\b")),
    ("accessories", re.compile(r"\b(belts?|hats?|scarves?|ties?|sunglasses|watches?|bags?|briefcases?)\b")),
    ("formalwear", re.compile(r"\b(tux(ed|edo)?|dinner\s*jacket|gown|cocktail\s*dress)\b")),
    ("activewear", re.compile(r"\b(activewear|athleisure|gym|training|performance)\b")),
    ("swimwear", re.compile(r"\b(swim|trunks|boardshorts?|bikini|one[-\s]?piece)\b")),
    ("dresses", re.compile(r"\b(dress(es)?|gown|jumpsuit|romper)\b")),
    ("skirts", re.compile(r"\b(skirts?)\b")),
    ("bags", re.compile(r"\b(bags?|handbags?|totes?|clutch(es)?|backpacks?|crossbody)\b")),
    ("headwear", re.compile(r"\b(caps?|beanies?|fedoras?|headbands?|sun\s*hats?)\b")),
    ("jewelry", re.compile(r"\b(necklaces?|bracelets?|earrings?|rings?|jewelry)\b")),
    ("undergarments", re.compile(r"\b(underwear|briefs?|boxers?|bras?|socks?|panties|shapewear)\b")),
    ("loungewear", re.compile(r"\b(lounge|sweatshirts?|co-?ords?)\b")),
    ("sleepwear", re.compile(r"\b(pajamas?|nightgowns?|nightshirts?|robes?|sleepwear)\b")),
    ("maternity", re.compile(r"\b(maternity|pregnancy|nursing)\b")),
    ("unisex", re.compile(r"\b(unisex|gender[-\s]?neutral)\b")),
    ("costumes", re.compile(r"\b(costumes?|halloween|cosplay)\b")),
    ("traditionalwear", re.compile(r"\b(kimonos?|sarees?|saris?|abayas?|hanboks?|traditional)\b")),
    ("other", re.compile(r"\b(other|miscellaneous)\b")),
)

# Ordered: "light blue" must be tried before "blue"
COLOR_CANON: Dict[str, Pattern[str]] = {
    "black": re.compile(r"\b(black|charcoal|jet)\b"),
    "white": re.compile(r"\b(white|ivory|off[-\s]?white)\b"),
    "gray": re.compile(r"\b(gray|grey|ash|slate)\b"),
    "navy": re.compile(r"\b(navy)\b"),
    "light-blue": re.compile(r"\b(light\s*blue|sky|baby\s*blue|powder\s*blue)\b"),
    "blue": re.compile(r"\b(blue|cobalt|royal)\b"),
    "green": re.compile(r"\b(green|forest|kelly|emerald|neon\s*green)\b"),
    "olive": re.compile(r"\b(olive)\b"),
    "mint": re.compile(r"\b(mint)\b"),
    "lime": re.compile(r"\b(lime)\b"),
    "emerald": re.compile(r"\b(emerald)\b"),
    "teal": re.compile(r"\b(teal|aqua|turquoise)\b"),
    "red": re.compile(r"\b(red|crimson|scarlet)\b"),
    "burgundy": re.compile(r"\b(burgundy|maroon|oxblood)\b"),
    "pink": re.compile(r"\b(pink|rose|blush|magenta|fuchsia)\b"),
    "orange": re.compile(r"\b(orange|tangerine)\b"),
    "yellow": re.compile(r"\b(yellow|mustard)\b"),
    "beige": re.compile(r"\b(beige|ecru|oatmeal)\b"),
    "tan": re.compile(r"\b(tan|sand|khaki|camel)\b"),
    "brown": re.compile(r"\b(brown|chocolate|espresso)\b"),
    "cognac": re.compile(r"\b(cognac)\b"),
    "purple": re.compile(r"\b(purple|violet|lavender|lilac)\b"),
    "multi": re.compile(r"\b(multi|multi[-\s]?color|multicolor)\b"),
}

# Subcategory keywords used when main_category is missing or generic
_CATEGORY_SUBCATEGORY_RX: Dict[str, Pattern[str]] = {
    "shoes": re.compile(r"\b(sneakers?|trainers?|loafers?|boots?|heels?|sandals?)\b"),
    "tops": re.compile(r"\b(t-?shirt|tee|polo|shirt|sweater|knit|henley|hoodie)\b"),
    "bottoms": re.compile(r"\b(trouser|pants|jeans|chinos|shorts|joggers?|sweatpants?)\b"),
    "outerwear": re.compile(r"\b(blazer|sport\s*coat|jacket|coat|parka|trench|overcoat)\b"),
    "accessories": re.compile(r"\b(belt|hat|scarf|tie|sunglasses|watch|bag|briefcase)\b"),
    "swimwear": re.compile(r"\b(swim|trunks|boardshorts?)\b"),
    "dresses": re.compile(r"\b(dress(es)?|gown|jumpsuit|romper)\b"),
    "skirts": re.compile(r"\bskirts?\b"),
    "bags": re.compile(r"\b(handbag|tote|clutch|backpack|crossbody)\b"),
    "jewelry": re.compile(r"\b(necklace|bracelet|earring|ring)\b"),
}

RX_NEGATION = re.compile(r"\b(no|avoid|without|exclude|ban|don't|do not)\b")
RX_BRAND = re.compile(
    r"(?:\bban\s+(?:brand[:\s]+)?|\b(?:avoid|no)\s+brand[:\s]+)([a-z0-9][a-z0-9 _&'-]*)"
)
RX_BRAND_STOP = re.compile(r"\s+(?:and|or|please|anymore|again)\b.*$")
RX_LABEL = re.compile(r"label:\s*[\"']?([^\"']+)[\"']?")

# (keyword, substring, category scope)
SUBSTRING_KEYWORDS: Tuple[Tuple[Pattern[str], str, str], ...] = (
    (re.compile(r"\bloafers?\b"), "loafer", "shoes"),
    (re.compile(r"\b(sneakers?|trainers?)\b"), "sneaker", "shoes"),
    (re.compile(r"\bhoodies?\b"), "hoodie", "tops"),
)


def normalize_category_text(text: str) -> Optional[str]:
    s = lc(text)
    for category, rx in CATEGORY_ALIASES:
        if rx.search(s):
            return category
    return None


def detect_color_word(text: str) -> Optional[str]:
    s = lc(text)
    for color, rx in COLOR_CANON.items():
        if rx.search(s):
            return color
    return None


# =============================================================================
# Tolerant row normalizers
# =============================================================================

def normalize_rating(raw: Any) -> Optional[str]:
    """'like' / 'dislike' / None from strings, 1 / -1 numbers or their string forms."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        s = raw.strip().lower()
        if s in ("like", "dislike"):
            return s
        if s == "1":
            return "like"
        if s == "-1":
            return "dislike"
        return None
    if isinstance(raw, (int, float)):
        if raw == 1:
            return "like"
        if raw == -1:
            return "dislike"
    return None


def normalize_tags(raw: Any) -> List[str]:
    """Tags from a list or a ``;`` / ``,`` delimited string."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(t).strip() for t in raw if t and str(t).strip()]
    return [t.strip() for t in re.split(r"[;,]", str(raw)) if t.strip()]


def parse_outfit_json(raw: Any) -> Optional[Dict[str, Any]]:
    """Outfit object from a dict or JSON string; None on anything unparseable."""
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text or text in ("null", "undefined"):
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _outfit_item_ids(outfit: Dict[str, Any]) -> List[str]:
    ids: List[str] = []
    for it in outfit.get("items") or []:
        value = get_field(it, "id")
        if isinstance(value, str) and value.strip():
            ids.append(value.strip())
    for value in outfit.get("item_ids") or []:
        if isinstance(value, str) and value.strip():
            ids.append(value.strip())
    return ids


# =============================================================================
# Compilation
# =============================================================================

def _split_brand_category(raw: str) -> Tuple[str, Optional[str], int]:
    """
    Split a captured brand phrase at its first category word.

    Returns ``(brand, category, consumed)`` where ``consumed`` is how much
    of *raw* the brand and its category scope cover.
    """
    first = None
    for category, rx in CATEGORY_ALIASES:
        m = rx.search(raw)
        if m and (first is None or m.start() < first[1].start()):
            first = (category, m)
    if first is None:
        return raw.strip(), None, len(raw)
    category, m = first
    return raw[:m.start()].strip(), category, m.end()


def extract_rules_from_text(text: Optional[str]) -> List[FeedbackRule]:
    """
    Free-text rule extraction for a single tag or note.

    Example:
        >>> extract_rules_from_text("no black shoes")
        [ExcludeColorOnCategory(color='black', category='shoes')]
    """
    s = lc(text)
    if not s:
        return []

    rules: List[FeedbackRule] = []

    brand_match = RX_BRAND.search(s)
    if brand_match:
        raw = RX_BRAND_STOP.sub("", brand_match.group(1))
        brand, category, consumed = _split_brand_category(raw)
        if len(brand) >= 2 and detect_color_word(brand) is None:
            rules.append(ExcludeBrand(brand=brand, category=category))
            # "ban nike sneakers" scopes the brand; the category word is not a rule of its own
            end = brand_match.start(1) + consumed
            s = f"{s[:brand_match.start()]} {s[end:]}".strip()

    if RX_NEGATION.search(s):
        category = normalize_category_text(s)
        color = detect_color_word(s)
        if category and color:
            rules.append(ExcludeColorOnCategory(color=color, category=category))
        elif color:
            rules.append(ExcludeColor(color=color))

        for rx, value, scope in SUBSTRING_KEYWORDS:
            if rx.search(s):
                rules.append(ExcludeSubstring(field="subcategory", value=value, category=scope))

    label_match = RX_LABEL.search(s)
    if label_match and label_match.group(1).strip():
        rules.append(ExcludeSubstring(field="label", value=label_match.group(1).strip()))

    return rules


def compile_rules(rows: Optional[Iterable[Any]]) -> List[FeedbackRule]:
    """
    Compile feedback rows into rules.

    All disliked item ids are coalesced into one deduplicated
    ``ExcludeItemIds`` placed first; text rules follow in row order.
    """
    banned_ids: List[str] = []
    text_rules: List[FeedbackRule] = []

    for row in rows or []:
        if not row:
            continue

        rating = normalize_rating(get_field(row, "rating"))
        for tag in normalize_tags(get_field(row, "tags")):
            text_rules.extend(extract_rules_from_text(tag))

        notes = get_field(row, "notes")
        if isinstance(notes, str) and notes.strip():
            text_rules.extend(extract_rules_from_text(notes))

        if rating == "dislike":
            outfit = parse_outfit_json(get_field(row, "outfit_json"))
            if outfit:
                banned_ids.extend(_outfit_item_ids(outfit))

    rules: List[FeedbackRule] = []
    if banned_ids:
        rules.append(ExcludeItemIds(item_ids=tuple(unique_in_order(banned_ids))))
    rules.extend(text_rules)
    return rules


# =============================================================================
# Matching
# =============================================================================

def item_is_category(item: Any, category: str) -> bool:
    main = text_attr(item, "main_category")
    if main == category:
        return True
    rx = _CATEGORY_SUBCATEGORY_RX.get(category)
    return bool(rx and rx.search(text_attr(item, "subcategory")))


def item_has_color(item: Any, color: str) -> bool:
    rx = COLOR_CANON.get(color)
    if rx is None:
        return False
    fields = (lc(get_field(item, "color")), lc(get_field(item, "color_family")), text_attr(item, "label"))
    return any(rx.search(f) for f in fields if f)


def item_violates_rule(item: Any, rule: FeedbackRule) -> bool:
    if isinstance(rule, ExcludeItemIds):
        iid = item_id(item)
        return iid is not None and iid in rule.item_ids

    if isinstance(rule, ExcludeBrand):
        brand = text_attr(item, "brand")
        if not brand or lc(rule.brand) not in brand:
            return False
        return item_is_category(item, rule.category) if rule.category else True

    if isinstance(rule, ExcludeColorOnCategory):
        return item_is_category(item, rule.category) and item_has_color(item, rule.color)

    if isinstance(rule, ExcludeColor):
        return item_has_color(item, rule.color)

    if isinstance(rule, ExcludeSubstring):
        value = text_attr(item, rule.field)
        if not value:
            return False
        if rule.category and not item_is_category(item, rule.category):
            return False
        return lc(rule.value) in value

    return False


def _without_violations(catalog: List[Any], rules: List[FeedbackRule]) -> List[Any]:
    return [it for it in catalog if not any(item_violates_rule(it, r) for r in rules)]


def apply_feedback_filters(
    catalog: List[Any],
    rules: List[FeedbackRule],
    min_keep: int = DEFAULT_MIN_KEEP,
    soften_when_below: bool = True,
) -> List[Any]:
    """
    Remove items violating *rules*, degrading strong -> soft -> original.

    With ``soften_when_below=False`` the strong result is returned
    whenever it is non-empty, regardless of ``min_keep``.
    """
    if not rules:
        return list(catalog)

    if not soften_when_below:
        strong = _without_violations(catalog, rules)
        return strong if strong else list(catalog)

    explicit = [r for r in rules if r.explicit]
    result = degrade_until_min_keep(
        [
            Stage("strong", lambda: _without_violations(catalog, rules)),
            Stage("soft", lambda: _without_violations(catalog, explicit), min_keep=1),
        ],
        min_keep=min_keep,
        fallback=list(catalog),
        fallback_name="original",
    )
    if result.stage != "strong":
        logger.info(
            "Feedback filter degraded",
            stage=result.stage,
            catalog=len(catalog),
            kept=len(result.items),
            rules=len(rules),
            min_keep=min_keep,
        )
    return result.items


def explain_feedback_blocks(item: Any, rules: List[FeedbackRule]) -> List[str]:
    """Human-readable reasons *item* is blocked (empty when allowed)."""
    reasons: List[str] = []
    for rule in rules:
        if not item_violates_rule(item, rule):
            continue
        if isinstance(rule, ExcludeItemIds):
            reasons.append("Item was in an outfit you disliked")
        elif isinstance(rule, ExcludeBrand):
            scope = f" for {rule.category}" if rule.category else ""
            reasons.append(f"Brand '{rule.brand}' is banned{scope}")
        elif isinstance(rule, ExcludeColorOnCategory):
            reasons.append(f"No {rule.color} {rule.category}")
        elif isinstance(rule, ExcludeColor):
            reasons.append(f"No {rule.color} items")
        elif isinstance(rule, ExcludeSubstring):
            scope = f" in {rule.category}" if rule.category else ""
            reasons.append(f"Excluded {rule.field} containing '{rule.value}'{scope}")
    return reasons
