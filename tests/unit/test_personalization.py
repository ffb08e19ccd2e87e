"""
Unit tests for personalization and exploration.

Tests cover:
1. Boost blend and clamp
2. Hard block on strongly disliked items
3. Novelty flag
4. Exploration swap (seeded RNG)
5. Input validation and weight overrides
6. Concurrent preference fetch
"""

import random
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from recs.personalization import (
    PersonalizationWeights,
    apply_personalization_and_exploration,
    fetch_preference_snapshot,
)

USER = "user-1"


def _outfit(outfit_id: str, item_ids, base_score: float = 1.0, items=None, **extra) -> dict:
    outfit = {"outfit_id": outfit_id, "item_ids": list(item_ids), "base_score": base_score}
    if items is not None:
        outfit["items"] = items
    outfit.update(extra)
    return outfit


def _run(store, outfits, **kwargs):
    kwargs.setdefault("exploration_rate", 0.0)
    return apply_personalization_and_exploration(store, USER, outfits, **kwargs)


# =============================================================================
# 1. Boost
# =============================================================================

class TestBoost:

    def test_cold_user_gets_novelty_only(self, memory_store):
        result = _run(memory_store, [_outfit("o1", ["a", "b"], 1.0)])
        assert result.rescored[0].boost == pytest.approx(0.05)
        assert result.rescored[0].final_score == pytest.approx(1.05)

    def test_feature_affinity(self, memory_store):
        memory_store.increment_user_feature(USER, "color:Blue", 2.0)
        outfit = _outfit("o1", ["a"], 1.0, items=[{"id": "a", "color": "Blue"}])
        result = _run(memory_store, [outfit])
        # alpha * 2 + gamma * 1
        assert result.rescored[0].final_score == pytest.approx(1.45)

    def test_global_signals(self, memory_store):
        memory_store.increment_global_item("a", 1.0)
        memory_store.increment_global_feature("color:Blue", 2.0)
        outfit = _outfit("o1", ["a"], 0.0, items=[{"id": "a", "color": "Blue"}])
        result = _run(memory_store, [outfit])
        # delta * 1 + epsilon * 2 + gamma * 1
        assert result.rescored[0].boost == pytest.approx(0.1 + 0.1 + 0.05)

    def test_boost_clamped(self, memory_store):
        for item in ("a", "b"):
            memory_store.increment_user_item(USER, item, 5.0)
        result = _run(memory_store, [_outfit("o1", ["a", "b"], 1.0)])
        assert result.rescored[0].boost == pytest.approx(0.5)

    def test_negative_boost_clamped(self, memory_store):
        memory_store.increment_user_item(USER, "a", -3.5)
        memory_store.increment_user_feature(USER, "brand:Acme", -5.0)
        outfit = _outfit("o1", ["a"], 1.0, items=[{"id": "a", "brand": "Acme"}])
        result = _run(memory_store, [outfit], recent_shown_item_ids=["a"])
        assert result.rescored[0].boost == pytest.approx(-0.5)

    def test_sorted_by_final_score(self, memory_store):
        memory_store.increment_user_item(USER, "c", 3.0)
        outfits = [_outfit("o1", ["a"], 1.0), _outfit("o2", ["c"], 0.8)]
        result = _run(memory_store, outfits)
        # o2: 0.8 + 0.3*3 (clamped to 0.5) = 1.3 > o1: 1.05
        assert [o.outfit_id for o in result.rescored] == ["o2", "o1"]
        assert result.chosen.outfit_id == "o2"


# =============================================================================
# 2. Hard block / 3. Novelty
# =============================================================================

class TestHardBlockAndNovelty:

    def test_hard_block_at_threshold(self, memory_store):
        memory_store.increment_user_item(USER, "bad", -4.0)
        outfits = [_outfit("o1", ["a", "bad"], 5.0), _outfit("o2", ["c"], 1.0)]
        result = _run(memory_store, outfits)
        assert [o.outfit_id for o in result.rescored] == ["o2"]
        assert result.blocked == ["o1"]

    def test_just_above_threshold_survives(self, memory_store):
        memory_store.increment_user_item(USER, "meh", -3.9)
        result = _run(memory_store, [_outfit("o1", ["meh"], 1.0)])
        assert [o.outfit_id for o in result.rescored] == ["o1"]

    def test_all_blocked(self, memory_store):
        memory_store.increment_user_item(USER, "bad", -5.0)
        result = _run(memory_store, [_outfit("o1", ["bad"])], exploration_rate=1.0)
        assert result.rescored == []
        assert result.chosen is None

    def test_novelty_flag_is_binary(self, memory_store):
        seen = _run(memory_store, [_outfit("o1", ["a", "b"], 1.0)], recent_shown_item_ids=["a", "b"])
        partly = _run(memory_store, [_outfit("o1", ["a", "b"], 1.0)], recent_shown_item_ids=["a"])
        assert seen.rescored[0].boost == pytest.approx(0.0)
        assert partly.rescored[0].boost == pytest.approx(0.05)


# =============================================================================
# 4. Exploration
# =============================================================================

class TestExploration:

    def test_swap_produces_variant(self, memory_store, seeded_rng):
        outfits = [_outfit("o1", ["a", "b"], 2.0), _outfit("o2", ["c", "d"], 1.0)]
        result = _run(memory_store, outfits, exploration_rate=1.0, rng=seeded_rng)

        chosen = result.chosen
        top = result.rescored[0]
        assert chosen.outfit_id == "o1#x"
        assert chosen.explored is True
        assert chosen.final_score == pytest.approx(top.final_score - 0.01)

        changed = [i for i, (old, new) in enumerate(zip(top.item_ids, chosen.item_ids)) if old != new]
        assert len(changed) == 1
        assert chosen.item_ids[changed[0]] in {"c", "d"}

    def test_swap_avoids_recent_items(self, memory_store):
        outfits = [_outfit("o1", ["a", "b"], 2.0), _outfit("o2", ["c", "d"], 1.0)]
        for seed in range(10):
            result = _run(
                memory_store, outfits, exploration_rate=1.0,
                rng=random.Random(seed), recent_shown_item_ids=["c"],
            )
            assert "c" not in result.chosen.item_ids
            assert "d" in result.chosen.item_ids

    def test_same_seed_same_swap(self, memory_store):
        outfits = [_outfit("o1", ["a", "b"], 2.0), _outfit("o2", ["c", "d"], 1.0), _outfit("o3", ["e"], 0.5)]
        first = _run(memory_store, outfits, exploration_rate=1.0, rng=random.Random(99))
        second = _run(memory_store, outfits, exploration_rate=1.0, rng=random.Random(99))
        assert first.chosen.item_ids == second.chosen.item_ids

    def test_no_candidates_keeps_top(self, memory_store):
        result = _run(memory_store, [_outfit("o1", ["a", "b"])], exploration_rate=1.0)
        assert result.chosen.outfit_id == "o1"
        assert result.chosen.explored is False

    def test_zero_rate_never_explores(self, memory_store):
        outfits = [_outfit("o1", ["a"], 2.0), _outfit("o2", ["c"], 1.0)]
        result = _run(memory_store, outfits, exploration_rate=0.0, rng=random.Random(0))
        assert result.chosen.outfit_id == "o1"

    def test_swapped_items_carry_metadata(self, memory_store, seeded_rng):
        outfits = [
            _outfit("o1", ["a"], 2.0, items=[{"id": "a", "category": "top"}]),
            _outfit("o2", ["c"], 1.0, items=[{"id": "c", "category": "top"}]),
        ]
        result = _run(memory_store, outfits, exploration_rate=1.0, rng=seeded_rng)
        assert result.chosen.items == [{"id": "c", "category": "top"}]


# =============================================================================
# 5. Validation / weights
# =============================================================================

class TestValidation:

    @pytest.mark.parametrize("rate", [-0.1, 1.5])
    def test_rate_out_of_range(self, memory_store, rate):
        with pytest.raises(ValueError):
            _run(memory_store, [_outfit("o1", ["a"])], exploration_rate=rate)

    def test_missing_item_ids_fails_fast(self, memory_store):
        with pytest.raises(ValidationError):
            _run(memory_store, [{"outfit_id": "o1", "base_score": 1.0}])

    def test_partial_weight_override(self, memory_store):
        result = _run(memory_store, [_outfit("o1", ["a"], 1.0)], weights={"gamma": 0.2, "beta": None})
        assert result.debug_weights == {"alpha": 0.2, "beta": 0.3, "gamma": 0.2, "delta": 0.1, "epsilon": 0.05}
        assert result.rescored[0].boost == pytest.approx(0.2)

    def test_unknown_weight_rejected(self):
        with pytest.raises(ValueError):
            PersonalizationWeights.resolve({"zeta": 1.0})

    def test_context_echoed(self, memory_store):
        result = _run(memory_store, [_outfit("o1", ["a"])], context={"query": "office"})
        assert result.context_used == {"query": "office"}


# =============================================================================
# 6. Fetch
# =============================================================================

class TestFetchSnapshot:

    def _store(self):
        store = MagicMock()
        store.fetch_user_feature_scores.return_value = {"color:Blue": 1.0}
        store.fetch_user_item_scores.return_value = {"a": -1.0}
        store.fetch_global_feature_scores.return_value = {}
        store.fetch_global_item_scores.return_value = {"a": 2.0}
        return store

    def test_reads_all_four_tables(self):
        store = self._store()
        snapshot = fetch_preference_snapshot(store, USER, ["a", "a", "b"])
        store.fetch_global_item_scores.assert_called_once_with(["a", "b"])
        assert snapshot.user_features == {"color:Blue": 1.0}
        assert snapshot.user_items == {"a": -1.0}
        assert snapshot.global_items == {"a": 2.0}

    def test_global_item_query_skipped_without_ids(self):
        store = self._store()
        snapshot = fetch_preference_snapshot(store, USER, [])
        store.fetch_global_item_scores.assert_not_called()
        assert snapshot.global_items == {}

    def test_store_errors_propagate(self):
        store = self._store()
        store.fetch_user_item_scores.side_effect = RuntimeError("store down")
        with pytest.raises(RuntimeError):
            fetch_preference_snapshot(store, USER, ["a"])
