"""
Unit tests for feedback rule compilation and catalog filtering.

Tests cover:
1. Tolerant row normalizers (rating, tags, outfit_json)
2. Free-text extraction (negation + category/color, brand, keywords, label:)
3. Dislike id coalescing
4. Strong / soft / original degradation
5. Block explanations
"""

import json

import pytest

from recs.feedback_rules import (
    ExcludeBrand,
    ExcludeColor,
    ExcludeColorOnCategory,
    ExcludeItemIds,
    ExcludeSubstring,
    apply_feedback_filters,
    compile_rules,
    explain_feedback_blocks,
    extract_rules_from_text,
    item_violates_rule,
    normalize_rating,
    normalize_tags,
    parse_outfit_json,
)


def _p(item_id: str, main: str = "Tops", sub: str = "Shirt", **kwargs) -> dict:
    item = {"id": item_id, "main_category": main, "subcategory": sub, "label": kwargs.pop("label", sub)}
    item.update(kwargs)
    return item


def _ids(items) -> list:
    return [it["id"] for it in items]


# =============================================================================
# 1. Normalizers
# =============================================================================

class TestNormalizers:

    @pytest.mark.parametrize("raw, expected", [
        ("like", "like"),
        (" Dislike ", "dislike"),
        ("1", "like"),
        ("-1", "dislike"),
        (1, "like"),
        (-1, "dislike"),
        (-1.0, "dislike"),
        (3, None),
        ("meh", None),
        (None, None),
        (True, None),
    ])
    def test_normalize_rating(self, raw, expected):
        assert normalize_rating(raw) == expected

    def test_normalize_tags(self):
        assert normalize_tags(["no red", "", None, "ban zara"]) == ["no red", "ban zara"]
        assert normalize_tags("no red; ban zara, too loud") == ["no red", "ban zara", "too loud"]
        assert normalize_tags(None) == []
        assert normalize_tags("   ") == []

    def test_parse_outfit_json(self):
        outfit = {"items": [{"id": "a"}]}
        assert parse_outfit_json(outfit) is outfit
        assert parse_outfit_json(json.dumps(outfit)) == outfit
        assert parse_outfit_json("{not json") is None
        assert parse_outfit_json("null") is None
        assert parse_outfit_json("[1, 2]") is None
        assert parse_outfit_json(None) is None


# =============================================================================
# 2. Free text
# =============================================================================

class TestExtractRulesFromText:

    def test_color_on_category(self):
        assert extract_rules_from_text("No black shoes please") == [
            ExcludeColorOnCategory(color="black", category="shoes"),
        ]

    def test_color_only(self):
        assert extract_rules_from_text("avoid mustard") == [ExcludeColor(color="yellow")]

    def test_light_blue_before_blue(self):
        assert extract_rules_from_text("no light blue") == [ExcludeColor(color="light-blue")]

    def test_color_without_negation_ignored(self):
        assert extract_rules_from_text("love black shoes") == []

    def test_brand_ban(self):
        assert extract_rules_from_text("ban zara") == [ExcludeBrand(brand="zara")]
        assert extract_rules_from_text("no brand: acme and gap") == [ExcludeBrand(brand="acme")]

    def test_brand_scoped_to_category(self):
        assert extract_rules_from_text("ban nike sneakers") == [ExcludeBrand(brand="nike", category="shoes")]
        assert extract_rules_from_text("ban brand: acme hoodies please") == [ExcludeBrand(brand="acme", category="tops")]

    def test_category_only_ban_is_not_a_brand(self):
        assert extract_rules_from_text("ban sneakers") == [
            ExcludeSubstring(field="subcategory", value="sneaker", category="shoes"),
        ]

    def test_brand_then_separate_clause(self):
        rules = extract_rules_from_text("ban zara and no red shoes")
        assert rules == [ExcludeBrand(brand="zara"), ExcludeColorOnCategory(color="red", category="shoes")]

    def test_brand_guard_against_colors(self):
        rules = extract_rules_from_text("ban green")
        assert ExcludeColor(color="green") in rules
        assert not any(isinstance(r, ExcludeBrand) for r in rules)

    def test_keyword_substrings(self):
        rules = extract_rules_from_text("no loafers or sneakers")
        assert ExcludeSubstring(field="subcategory", value="loafer", category="shoes") in rules
        assert ExcludeSubstring(field="subcategory", value="sneaker", category="shoes") in rules
        assert not any(isinstance(r, ExcludeBrand) for r in rules)

    def test_hoodie_keyword(self):
        rules = extract_rules_from_text("without hoodies")
        assert rules == [ExcludeSubstring(field="subcategory", value="hoodie", category="tops")]

    def test_label_directive(self):
        assert extract_rules_from_text('label: "Festival Tee"') == [
            ExcludeSubstring(field="label", value="festival tee"),
        ]

    def test_empty_text(self):
        assert extract_rules_from_text("") == []
        assert extract_rules_from_text(None) == []


# =============================================================================
# 3. Compilation
# =============================================================================

class TestCompileRules:

    def test_dislike_ids_coalesced_first(self):
        rows = [
            {"rating": "dislike", "outfit_json": json.dumps({"items": [{"id": "a"}, {"id": "b"}]}), "tags": "no red"},
            {"rating": -1, "outfit_json": {"items": [{"id": "b"}, {"id": "c"}, {"id": ""}]}},
            {"rating": "like", "outfit_json": {"items": [{"id": "z"}]}},
        ]
        rules = compile_rules(rows)
        assert rules[0] == ExcludeItemIds(item_ids=("a", "b", "c"))
        assert rules[1:] == [ExcludeColor(color="red")]

    def test_bad_rows_degrade_to_no_rule(self):
        rows = [
            None,
            {"rating": "dislike", "outfit_json": "{broken"},
            {"rating": "???", "tags": None, "notes": 42},
            {"rating": "dislike", "outfit_json": None},
        ]
        assert compile_rules(rows) == []

    def test_notes_are_parsed(self):
        rules = compile_rules([{"rating": None, "notes": "Please avoid brand: Shein"}])
        assert rules == [ExcludeBrand(brand="shein")]

    def test_item_ids_key_also_read(self):
        rules = compile_rules([{"rating": "-1", "outfit_json": {"outfit_id": "o", "item_ids": ["x", "y"]}}])
        assert rules == [ExcludeItemIds(item_ids=("x", "y"))]

    def test_no_rows(self):
        assert compile_rules(None) == []


# =============================================================================
# 4. Filtering
# =============================================================================

class TestApplyFeedbackFilters:

    def _catalog(self):
        return [
            _p("a", color="Red"),
            _p("b", color="Blue"),
            _p("c", color="Red"),
            _p("d", color="Green"),
            _p("e", color="Black", main="Shoes", sub="Loafers"),
            _p("f", color="White", main="Shoes", sub="Sneakers"),
        ]

    def test_no_rules_returns_copy(self):
        catalog = self._catalog()
        result = apply_feedback_filters(catalog, [])
        assert result == catalog and result is not catalog

    def test_strong_pass_when_enough_left(self):
        rules = [ExcludeItemIds(item_ids=("b",)), ExcludeColor(color="red")]
        result = apply_feedback_filters(self._catalog(), rules, min_keep=3)
        assert _ids(result) == ["d", "e", "f"]

    def test_soft_pass_keeps_only_explicit_bans(self):
        rules = [ExcludeItemIds(item_ids=("b",)), ExcludeColor(color="red")]
        result = apply_feedback_filters(self._catalog(), rules, min_keep=6)
        assert _ids(result) == ["a", "c", "d", "e", "f"]

    def test_reverts_to_original_when_soft_empty(self):
        catalog = [_p("a", color="Red")]
        rules = [ExcludeItemIds(item_ids=("a",)), ExcludeColor(color="red")]
        assert _ids(apply_feedback_filters(catalog, rules, min_keep=6)) == ["a"]

    def test_without_softening(self):
        rules = [ExcludeColor(color="red")]
        result = apply_feedback_filters(self._catalog(), rules, min_keep=6, soften_when_below=False)
        assert _ids(result) == ["b", "d", "e", "f"]

    def test_without_softening_reverts_when_empty(self):
        catalog = [_p("a", color="Red")]
        result = apply_feedback_filters(catalog, [ExcludeColor(color="red")], soften_when_below=False)
        assert _ids(result) == ["a"]

    def test_color_on_category_scoped(self):
        rule = ExcludeColorOnCategory(color="black", category="shoes")
        assert item_violates_rule(_p("e", color="Black", main="Shoes", sub="Loafers"), rule)
        assert not item_violates_rule(_p("t", color="Black"), rule)

    def test_category_from_subcategory(self):
        rule = ExcludeSubstring(field="subcategory", value="sneaker", category="shoes")
        assert item_violates_rule(_p("s", main="", sub="White Sneakers"), rule)

    def test_color_read_from_label(self):
        assert item_violates_rule(_p("l", label="Charcoal Wool Sweater"), ExcludeColor(color="black"))

    def test_brand_substring(self):
        rule = ExcludeBrand(brand="zara")
        assert item_violates_rule(_p("z", brand="ZARA Man"), rule)
        assert not item_violates_rule(_p("n", brand=None), rule)

    def test_category_scoped_brand_keeps_other_sneakers(self):
        catalog = [
            _p("nike-run", main="Shoes", sub="Running Sneakers", brand="Nike"),
            _p("nike-tee", sub="T-Shirt", brand="Nike"),
            _p("vans", main="Shoes", sub="Sneakers", brand="Vans"),
            _p("adidas", main="Shoes", sub="Sneakers", brand="Adidas"),
        ]
        rules = compile_rules([{"rating": None, "tags": "ban nike sneakers"}])

        result = apply_feedback_filters(catalog, rules, min_keep=1)

        assert _ids(result) == ["nike-tee", "vans", "adidas"]


# =============================================================================
# 5. Explanations
# =============================================================================

class TestExplain:

    def test_reasons(self):
        item = _p("a", color="Red", brand="Zara")
        rules = [ExcludeItemIds(item_ids=("a",)), ExcludeBrand(brand="zara"), ExcludeColor(color="blue")]
        assert explain_feedback_blocks(item, rules) == [
            "Item was in an outfit you disliked",
            "Brand 'zara' is banned",
        ]

    def test_scoped_brand_reason(self):
        item = _p("s", main="Shoes", sub="Sneakers", brand="Nike")
        rule = ExcludeBrand(brand="nike", category="shoes")
        assert explain_feedback_blocks(item, [rule]) == ["Brand 'nike' is banned for shoes"]

    def test_allowed_item_has_no_reasons(self):
        assert explain_feedback_blocks(_p("ok"), [ExcludeColor(color="red")]) == []
