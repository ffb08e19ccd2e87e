"""
Pydantic models for the outfit ranking core.

Models cover:
- Catalog items materialized per request from the retrieval collaborator
- Outfit candidates produced by the upstream ranker
- Feedback payloads and generation logs (ingestion)
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Catalog
# =============================================================================

class CatalogItem(BaseModel):
    """
    Wardrobe item as seen by the ranking core.

    Unknown producer fields (image URLs, camelCase aliases, similarity
    scores) are kept as extras so the alias-tolerant pickers and the
    redaction step can still see them.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    label: Optional[str] = None

    # Taxonomy
    main_category: Optional[str] = None
    subcategory: Optional[str] = None
    shoe_style: Optional[str] = None
    dress_code: Optional[str] = None
    formality_score: Optional[float] = None

    # Styling attributes
    color: Optional[str] = None
    color_family: Optional[str] = None
    brand: Optional[str] = None
    material: Optional[str] = None
    sleeve_length: Optional[str] = None
    layering: Optional[str] = None
    waterproof_rating: Optional[Union[float, str]] = None
    rain_ok: Optional[bool] = None

    # Engine-computed, request-scoped
    weatherScore: int = 0
    feedbackScore: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None:
            return None
        return str(v)


# =============================================================================
# Outfits
# =============================================================================

class OutfitCandidate(BaseModel):
    """
    Outfit proposed by the upstream ranker.

    ``outfit_id`` and ``item_ids`` are required; everything the ranker
    attaches for presentation (title, summary, reasoning) rides along
    as extras.
    """
    model_config = ConfigDict(extra="allow")

    outfit_id: str
    item_ids: List[str]
    base_score: float = 0.0
    items: Optional[List[Dict[str, Any]]] = None
    meta: Optional[Dict[str, Any]] = None

    # Filled by personalization
    final_score: Optional[float] = None
    boost: Optional[float] = None
    explored: bool = False

    @field_validator("item_ids", mode="before")
    @classmethod
    def coerce_item_ids(cls, v):
        if v is None:
            raise ValueError("item_ids is required")
        return [str(i) for i in v]


# =============================================================================
# Feedback
# =============================================================================

class FeedbackOutfit(BaseModel):
    model_config = ConfigDict(extra="allow")

    outfit_id: str
    item_ids: List[str]
    items: Optional[List[Dict[str, Any]]] = None
    meta: Optional[Dict[str, Any]] = None

    @field_validator("item_ids", mode="before")
    @classmethod
    def coerce_item_ids(cls, v):
        if v is None:
            raise ValueError("item_ids is required")
        return [str(i) for i in v]


class FeedbackPayload(BaseModel):
    """A user's reaction to an outfit (-1 / 1 or a 1..5 star rating)."""
    request_id: Optional[str] = None
    user_id: str
    outfit: FeedbackOutfit
    rating: Union[int, float, str]
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.replace(";", ",").split(",") if t.strip()]
        return v


class GenerationLog(BaseModel):
    """Audit record of one ranking call (candidates + chosen outfit)."""
    request_id: str
    user_id: str
    query: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    weights: Dict[str, Any] = Field(default_factory=dict)
    candidates: List[Dict[str, Any]] = Field(default_factory=list)
    chosen: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
