"""
Feedback ingestion and preference updates.

Rating to delta:
    -1      -> -1
     1      -> +1
    2 .. 5  -> (rating - 3) * 0.7   (3 is neutral)
    other   ->  0

A non-zero delta updates, per extracted feature, the user and global
feature tables by ``delta``; per item, the user item table by
``2 * delta`` and the global item table by ``delta``. The raw event is
always written before any derived score.

Usage:
    service = FeedbackIngestionService(store)
    service.record_feedback_and_update_prefs({
        "user_id": "u1",
        "outfit": {"outfit_id": "o1", "item_ids": ["a", "b"]},
        "rating": -1,
    })
"""

from datetime import datetime
from typing import Any, Dict, Union

from config.constants import DEFAULT_PREFERENCE_CONFIG, PreferenceConfig
from core.logging import LoggerMixin
from core.utils import to_number, unique_in_order
from recs.models import FeedbackPayload, GenerationLog
from scoring.features import extract_features
from services.preference_store import PreferenceStore


def delta_from_rating(rating: Any, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG) -> float:
    """Preference delta for a rating; 0.0 for neutral or unrecognized values."""
    if isinstance(rating, str):
        text = rating.strip().lower()
        if text == "like":
            return 1.0
        if text == "dislike":
            return -1.0
    value = to_number(rating)
    if value is None:
        return 0.0
    if value == -1:
        return -1.0
    if value == 1:
        return 1.0
    if 2 <= value <= 5:
        return (value - config.NEUTRAL_RATING) * config.RATING_SCALE
    return 0.0


class FeedbackIngestionService(LoggerMixin):
    """Writes feedback events and generation logs, then folds feedback into scores."""

    def __init__(self, store: PreferenceStore, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG):
        self.store = store
        self.config = config

    def log_generation(self, data: Union[GenerationLog, Dict[str, Any]]) -> None:
        """Append one generation record for audit/replay."""
        log = data if isinstance(data, GenerationLog) else GenerationLog.model_validate(data)
        self.store.insert_generation(log.model_dump(mode="json"))
        self.logger.debug("Generation logged", request_id=log.request_id, candidates=len(log.candidates))

    def record_feedback_and_update_prefs(self, payload: Union[FeedbackPayload, Dict[str, Any]]) -> None:
        """
        Persist a feedback event and apply its delta to the four tables.

        Raises:
            pydantic.ValidationError: payload missing user_id / outfit ids.
            PreferenceStoreError: store write failed (propagated).
        """
        feedback = payload if isinstance(payload, FeedbackPayload) else FeedbackPayload.model_validate(payload)
        outfit = feedback.outfit.model_dump()

        self.store.insert_feedback_event({
            "request_id": feedback.request_id,
            "user_id": feedback.user_id,
            "outfit_json": outfit,
            "rating": feedback.rating,
            "tags": feedback.tags,
            "notes": feedback.notes,
            "created_at": datetime.utcnow().isoformat(),
        })

        delta = delta_from_rating(feedback.rating, self.config)
        if delta == 0:
            self.logger.info("Neutral feedback, preferences unchanged", user_id=feedback.user_id, rating=feedback.rating)
            return

        features = sorted(extract_features(outfit))
        for feature in features:
            self.store.increment_user_feature(feedback.user_id, feature, delta)
            self.store.increment_global_feature(feature, delta)

        item_ids = unique_in_order(feedback.outfit.item_ids)
        for item_id in item_ids:
            self.store.increment_user_item(feedback.user_id, item_id, delta * self.config.USER_ITEM_MULTIPLIER)
            self.store.increment_global_item(item_id, delta)

        self.logger.info(
            "Preferences updated",
            user_id=feedback.user_id,
            outfit_id=feedback.outfit.outfit_id,
            delta=delta,
            features=len(features),
            items=len(item_ids),
        )
