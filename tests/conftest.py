"""
Pytest configuration and shared fixtures for the outfit ranking tests.
"""
import os
import random
import sys
from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def _make_item(item_id: str = "item-1", **overrides: Any) -> Dict[str, Any]:
    base = {
        "id": item_id,
        "label": f"Test item {item_id}",
        "main_category": "Tops",
        "subcategory": "T-Shirt",
        "color": "Blue",
        "color_family": "Blue",
        "brand": "TestBrand",
        "image_url": f"https://example.com/{item_id}.jpg",
    }
    base.update(overrides)
    return base


@pytest.fixture
def make_item() -> Callable[..., Dict[str, Any]]:
    """Factory for catalog item dicts with sensible defaults."""
    return _make_item


@pytest.fixture
def sample_wardrobe() -> List[Dict[str, Any]]:
    """A small mixed wardrobe covering every main category the pools use."""
    return [
        _make_item("tee-1", subcategory="T-Shirt", sleeve_length="short", category="top"),
        _make_item("oxford-1", subcategory="Dress Shirt", color="White", color_family="White",
                   dress_code="BusinessCasual", formality_score=7, category="top"),
        _make_item("hoodie-1", subcategory="Hoodie", color="Gray", color_family="Gray", category="top"),
        _make_item("jeans-1", main_category="Bottoms", subcategory="Jeans", color="Navy",
                   color_family="Navy", category="bottom"),
        _make_item("chino-1", main_category="Bottoms", subcategory="Chinos", color="Tan",
                   color_family="Tan", formality_score=6, category="bottom"),
        _make_item("shorts-1", main_category="Bottoms", subcategory="Shorts", color="Olive",
                   color_family="Olive", category="bottom"),
        _make_item("sneaker-1", main_category="Shoes", subcategory="Sneakers", color="White",
                   color_family="White", category="shoes"),
        _make_item("loafer-1", main_category="Shoes", subcategory="Loafers", color="Brown",
                   color_family="Brown", material="Suede", category="shoes"),
        _make_item("coat-1", main_category="Outerwear", subcategory="Wool Coat", color="Black",
                   color_family="Black", layering="outer", category="outerwear"),
    ]


@pytest.fixture
def make_outfit() -> Callable[..., Dict[str, Any]]:
    """Factory for upstream outfit candidates."""
    def _make(outfit_id: str, item_ids: List[str], base_score: float = 1.0, **extra: Any) -> Dict[str, Any]:
        outfit = {"outfit_id": outfit_id, "item_ids": list(item_ids), "base_score": base_score}
        outfit.update(extra)
        return outfit
    return _make


# ============================================================================
# Fixtures: Collaborators
# ============================================================================

@pytest.fixture
def memory_store():
    """Fresh in-memory preference store."""
    from services.preference_store import InMemoryPreferenceStore
    return InMemoryPreferenceStore()


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def mock_supabase():
    """Mock Supabase client supporting the chained query builder."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.in_.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table

    mock_rpc = MagicMock()
    mock_rpc.execute.return_value = MagicMock(data=0.0)
    mock_client.rpc.return_value = mock_rpc

    return mock_client

