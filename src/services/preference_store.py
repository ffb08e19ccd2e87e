"""
Preference store for learned outfit preferences.

Four keyed score tables, each clamped to [-5, 5]:
- user_pref_feature     (user_id, feature) -> score
- user_pref_item        (user_id, item_id) -> score
- global_feature_quality (feature)         -> score
- global_item_quality    (item_id)         -> score

plus two append-only event tables (feedback events, generation logs).

Increments are atomic increment-then-clamp upserts. The Supabase store
delegates to the ``increment_pref_score`` SQL function (see
``sql/preference_store.sql``); the in-memory store serializes on an RLock.

Usage:
    store = get_preference_store()
    store.increment_user_item("user_123", "item_9", -2.0)
    store.fetch_user_item_scores("user_123")  # {"item_9": -2.0}
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config.constants import DEFAULT_PREFERENCE_CONFIG, TABLES, PreferenceConfig
from core.logging import LoggerMixin
from core.utils import clamp, unique_in_order


class PreferenceStoreError(Exception):
    """Raised when the backing store rejects or fails a call."""
    pass


class PreferenceStore(LoggerMixin, ABC):
    """Interface used by personalization (reads) and ingestion (writes)."""

    def __init__(self, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG):
        self.config = config

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    def fetch_user_feature_scores(self, user_id: str) -> Dict[str, float]:
        ...

    @abstractmethod
    def fetch_user_item_scores(self, user_id: str) -> Dict[str, float]:
        ...

    @abstractmethod
    def fetch_global_feature_scores(self, features: Optional[Iterable[str]] = None) -> Dict[str, float]:
        ...

    @abstractmethod
    def fetch_global_item_scores(self, item_ids: Iterable[str]) -> Dict[str, float]:
        ...

    @abstractmethod
    def fetch_feedback_rows(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        """Most recent feedback events for *user_id*, newest first."""
        ...

    # =========================================================================
    # Writes
    # =========================================================================

    @abstractmethod
    def _increment(self, table: str, user_id: Optional[str], key: str, delta: float) -> float:
        """Atomically add *delta* to one score (seeding at *delta*) and clamp."""
        ...

    @abstractmethod
    def insert_feedback_event(self, row: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def insert_generation(self, row: Dict[str, Any]) -> None:
        ...

    def increment_user_feature(self, user_id: str, feature: str, delta: float) -> float:
        return self._increment(TABLES.USER_PREF_FEATURE, user_id, feature, delta)

    def increment_user_item(self, user_id: str, item_id: str, delta: float) -> float:
        return self._increment(TABLES.USER_PREF_ITEM, user_id, item_id, delta)

    def increment_global_feature(self, feature: str, delta: float) -> float:
        return self._increment(TABLES.GLOBAL_FEATURE_QUALITY, None, feature, delta)

    def increment_global_item(self, item_id: str, delta: float) -> float:
        return self._increment(TABLES.GLOBAL_ITEM_QUALITY, None, item_id, delta)


# =============================================================================
# Supabase
# =============================================================================

class SupabasePreferenceStore(PreferenceStore):
    """
    Supabase-backed store.

    Every client failure is logged and re-raised as PreferenceStoreError;
    retries are the caller's concern.
    """

    def __init__(self, client: Any = None, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG):
        super().__init__(config)
        if client is None:
            from config.database import get_supabase_client
            client = get_supabase_client()
        self.supabase = client

    def _select_scores(self, table: str, key_column: str, **filters: Any) -> Dict[str, float]:
        try:
            query = self.supabase.table(table).select(f"{key_column}, score")
            for column, value in filters.items():
                if isinstance(value, list):
                    query = query.in_(column, value)
                else:
                    query = query.eq(column, value)
            result = query.execute()
        except Exception as e:
            self.logger.error("Preference read failed", table=table, error=str(e))
            raise PreferenceStoreError(f"Failed to read {table}: {e}") from e

        return {
            str(row[key_column]): float(row.get("score") or 0.0)
            for row in (result.data or [])
            if row.get(key_column) is not None
        }

    def fetch_user_feature_scores(self, user_id: str) -> Dict[str, float]:
        return self._select_scores(TABLES.USER_PREF_FEATURE, "feature", user_id=user_id)

    def fetch_user_item_scores(self, user_id: str) -> Dict[str, float]:
        return self._select_scores(TABLES.USER_PREF_ITEM, "item_id", user_id=user_id)

    def fetch_global_feature_scores(self, features: Optional[Iterable[str]] = None) -> Dict[str, float]:
        if features is None:
            return self._select_scores(TABLES.GLOBAL_FEATURE_QUALITY, "feature")
        keys = unique_in_order(features)
        if not keys:
            return {}
        return self._select_scores(TABLES.GLOBAL_FEATURE_QUALITY, "feature", feature=keys)

    def fetch_global_item_scores(self, item_ids: Iterable[str]) -> Dict[str, float]:
        ids = unique_in_order(item_ids)
        if not ids:
            return {}
        return self._select_scores(TABLES.GLOBAL_ITEM_QUALITY, "item_id", item_id=ids)

    def fetch_feedback_rows(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        try:
            result = (
                self.supabase.table(TABLES.FEEDBACK_EVENTS)
                .select("id, request_id, user_id, rating, tags, notes, outfit_json, created_at")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            self.logger.error("Feedback read failed", user_id=user_id, error=str(e))
            raise PreferenceStoreError(f"Failed to read feedback rows: {e}") from e
        return list(result.data or [])

    def _increment(self, table: str, user_id: Optional[str], key: str, delta: float) -> float:
        params = {
            "p_table": table,
            "p_user_id": user_id,
            "p_key": key,
            "p_delta": delta,
            "p_min": self.config.SCORE_MIN,
            "p_max": self.config.SCORE_MAX,
        }
        try:
            result = self.supabase.rpc(TABLES.INCREMENT_RPC, params).execute()
        except Exception as e:
            self.logger.error("Preference increment failed", table=table, key=key, error=str(e))
            raise PreferenceStoreError(f"Failed to increment {table}: {e}") from e

        data = result.data
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("score", data.get(TABLES.INCREMENT_RPC))
        return float(data) if data is not None else 0.0

    def _insert(self, table: str, row: Dict[str, Any]) -> None:
        try:
            self.supabase.table(table).insert(row).execute()
        except Exception as e:
            self.logger.error("Insert failed", table=table, error=str(e))
            raise PreferenceStoreError(f"Failed to insert into {table}: {e}") from e

    def insert_feedback_event(self, row: Dict[str, Any]) -> None:
        self._insert(TABLES.FEEDBACK_EVENTS, row)

    def insert_generation(self, row: Dict[str, Any]) -> None:
        self._insert(TABLES.GENERATIONS, row)


# =============================================================================
# In-memory
# =============================================================================

@dataclass
class ScoreRecord:
    score: float
    updated_at: datetime = field(default_factory=datetime.utcnow)


class InMemoryPreferenceStore(PreferenceStore):
    """
    Thread-safe in-memory store with the same clamp-upsert semantics.

    Usage:
        store = InMemoryPreferenceStore()
        store.increment_global_item("item_1", 1.0)
        store.get_score(TABLES.GLOBAL_ITEM_QUALITY, None, "item_1")  # 1.0
    """

    def __init__(self, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG):
        super().__init__(config)
        self._lock = threading.RLock()
        self._scores: Dict[str, Dict[Tuple[Optional[str], str], ScoreRecord]] = {
            TABLES.USER_PREF_FEATURE: {},
            TABLES.USER_PREF_ITEM: {},
            TABLES.GLOBAL_FEATURE_QUALITY: {},
            TABLES.GLOBAL_ITEM_QUALITY: {},
        }
        self.feedback_events: List[Dict[str, Any]] = []
        self.generations: List[Dict[str, Any]] = []

    def get_score(self, table: str, user_id: Optional[str], key: str) -> Optional[float]:
        with self._lock:
            record = self._scores[table].get((user_id, key))
            return record.score if record else None

    def _user_scores(self, table: str, user_id: str) -> Dict[str, float]:
        with self._lock:
            return {k: r.score for (uid, k), r in self._scores[table].items() if uid == user_id}

    def _global_scores(self, table: str, keys: Optional[Iterable[str]]) -> Dict[str, float]:
        with self._lock:
            rows = {k: r.score for (_, k), r in self._scores[table].items()}
        if keys is None:
            return rows
        wanted = set(keys)
        return {k: v for k, v in rows.items() if k in wanted}

    def fetch_user_feature_scores(self, user_id: str) -> Dict[str, float]:
        return self._user_scores(TABLES.USER_PREF_FEATURE, user_id)

    def fetch_user_item_scores(self, user_id: str) -> Dict[str, float]:
        return self._user_scores(TABLES.USER_PREF_ITEM, user_id)

    def fetch_global_feature_scores(self, features: Optional[Iterable[str]] = None) -> Dict[str, float]:
        return self._global_scores(TABLES.GLOBAL_FEATURE_QUALITY, features)

    def fetch_global_item_scores(self, item_ids: Iterable[str]) -> Dict[str, float]:
        return self._global_scores(TABLES.GLOBAL_ITEM_QUALITY, list(item_ids))

    def fetch_feedback_rows(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self.feedback_events if r.get("user_id") == user_id]
        rows.reverse()
        return rows[:limit]

    def _increment(self, table: str, user_id: Optional[str], key: str, delta: float) -> float:
        with self._lock:
            scores = self._scores[table]
            previous = scores[(user_id, key)].score if (user_id, key) in scores else 0.0
            new_score = clamp(previous + delta, self.config.SCORE_MIN, self.config.SCORE_MAX)
            scores[(user_id, key)] = ScoreRecord(score=new_score)
            return new_score

    def insert_feedback_event(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self.feedback_events.append(dict(row))

    def insert_generation(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self.generations.append(dict(row))


def get_preference_store() -> PreferenceStore:
    """Supabase store when a client can be created, in-memory otherwise."""
    from config.database import get_supabase_client_optional
    from core.logging import get_logger

    client = get_supabase_client_optional()
    if client is None:
        get_logger(__name__).warning("Supabase not configured, using in-memory preference store")
        return InMemoryPreferenceStore()
    return SupabasePreferenceStore(client)
