"""
Services module for stateful collaborators.

Provides the preference store and the feedback ingestion service.
"""

from services.feedback_ingestion import FeedbackIngestionService, delta_from_rating
from services.preference_store import (
    InMemoryPreferenceStore,
    PreferenceStore,
    PreferenceStoreError,
    SupabasePreferenceStore,
    get_preference_store,
)

__all__ = [
    "FeedbackIngestionService",
    "delta_from_rating",
    "InMemoryPreferenceStore",
    "PreferenceStore",
    "PreferenceStoreError",
    "SupabasePreferenceStore",
    "get_preference_store",
]
