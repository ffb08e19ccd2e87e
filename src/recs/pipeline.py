"""
Outfit Ranking Pipeline

Orchestrates one ranking request in two phases.

prepare_catalog (before candidate generation):
1. Load the user's feedback rows and compile exclusion rules
2. Contextual occasion filter (gym / black tie / beach / wedding / upscale)
3. Feedback filter (strong -> soft -> original)
4. Annotate weatherScore / feedbackScore
5. Per-category tiered pools

rank (after the upstream ranker proposes outfits):
1. Personalization + exploration
2. Weather adjustment (mean item weatherScore); an explored variant
   scores just below its source
3. Anchor dedup + seeded tie-break
4. Rank numbering + redaction
5. Generation log (when a request_id is given)

Usage:
    pipeline = get_ranking_pipeline()
    prepared = pipeline.prepare_catalog("u1", "gym tomorrow", catalog, weather)
    result = pipeline.rank("u1", candidates, catalog=prepared.items, request_id="r1")
    result.outfits  # public payload
"""

import random
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from config.constants import DEFAULT_PREFERENCE_CONFIG
from config.settings import Settings, get_settings
from core.logging import LoggerMixin, request_context
from core.utils import mean
from recs.feedback_rules import FeedbackRule, apply_feedback_filters, compile_rules
from recs.models import CatalogItem, OutfitCandidate
from recs.occasion_filter import explain_contextual_filters
from recs.outfit_finalizer import finalize_outfits
from recs.personalization import PersonalizationWeights, apply_personalization_and_exploration
from recs.pool_builder import DEFAULT_POOL_CATEGORIES, PoolResult, annotate_catalog, build_pools
from scoring.item_utils import item_id, numeric_attr
from scoring.weather_scorer import WeatherInput, WeatherScorer, as_weather_context
from services.feedback_ingestion import FeedbackIngestionService
from services.preference_store import PreferenceStore, get_preference_store

# Candidate fields passed through to the public payload
PUBLIC_OUTFIT_FIELDS = ("title", "summary", "reasoning")


@dataclass
class PreparedCatalog:
    items: List[CatalogItem]
    pools: Dict[str, PoolResult]
    rules: List[FeedbackRule]
    debug: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RankingResult:
    outfits: List[Dict[str, Any]]
    chosen: Optional[Dict[str, Any]]
    debug: Dict[str, Any] = field(default_factory=dict)


def default_seed(user_id: str, on: Optional[date] = None) -> str:
    return f"{user_id}-{(on or date.today()).isoformat()}"


class OutfitRankingPipeline(LoggerMixin):
    """
    Request-scoped ranking over a shared preference store.

    The pipeline holds no per-request state; the preference store is
    read once per phase.
    """

    def __init__(
        self,
        store: PreferenceStore,
        settings: Optional[Settings] = None,
        weather_scorer: Optional[WeatherScorer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.weather_scorer = weather_scorer or WeatherScorer()
        self.rng = rng
        self.ingestion = FeedbackIngestionService(store)

    # =========================================================================
    # Phase 1: catalog
    # =========================================================================

    def prepare_catalog(
        self,
        user_id: str,
        query: Optional[str],
        catalog: Sequence[Any],
        weather: WeatherInput = None,
        categories: Iterable[str] = DEFAULT_POOL_CATEGORIES,
        feedback_rows: Optional[List[Any]] = None,
        request_id: Optional[str] = None,
    ) -> PreparedCatalog:
        weather = as_weather_context(weather)
        with request_context(user_id=user_id, request_id=request_id):
            items = [it if isinstance(it, CatalogItem) else CatalogItem.model_validate(it) for it in catalog]

            if feedback_rows is None:
                feedback_rows = self.store.fetch_feedback_rows(user_id)
            rules = compile_rules(feedback_rows)

            filtered, trace = explain_contextual_filters(query, items, self.settings.context_min_keep)
            filtered = apply_feedback_filters(filtered, rules, self.settings.feedback_min_keep)

            item_scores = self.store.fetch_user_item_scores(user_id)
            annotate_catalog(filtered, weather, item_scores, self.weather_scorer)
            if self.settings.debug:
                for it in filtered:
                    score, reasons = self.weather_scorer.explain(it, weather)
                    if reasons:
                        self.logger.debug("Weather adjustments", item_id=item_id(it), score=score, reasons=reasons)

            pools = build_pools(filtered, categories)

            self.logger.info(
                "Catalog prepared",
                catalog=len(items),
                kept=len(filtered),
                rules=len(rules),
                intents=[t["intent"] for t in trace],
                tiers={c: p.tier for c, p in pools.items()},
            )
            return PreparedCatalog(
                items=filtered,
                pools=pools,
                rules=rules,
                debug={"context_trace": trace, "rule_kinds": [r.kind for r in rules]},
            )

    # =========================================================================
    # Phase 2: outfits
    # =========================================================================

    def _resolve_items(
        self,
        outfit: OutfitCandidate,
        index: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        if outfit.items:
            by_id = {str(it.get("id")): it for it in outfit.items if it}
            resolved = []
            for iid in outfit.item_ids:
                item = index.get(iid) or by_id.get(iid)
                if item is not None:
                    resolved.append(item)
            return [self._as_dict(it) for it in resolved] or list(outfit.items)
        return [self._as_dict(index[iid]) for iid in outfit.item_ids if iid in index]

    @staticmethod
    def _as_dict(item: Any) -> Dict[str, Any]:
        if isinstance(item, CatalogItem):
            return item.model_dump(exclude_none=True)
        return dict(item)

    def _to_ranked_entry(self, outfit: OutfitCandidate, index: Mapping[str, Any]) -> Dict[str, Any]:
        items = self._resolve_items(outfit, index)
        weather_score = mean(numeric_attr(it, "weather_score") for it in items)
        extras = outfit.model_extra or {}

        entry: Dict[str, Any] = {"id": outfit.outfit_id, "outfit_id": outfit.outfit_id}
        for key in PUBLIC_OUTFIT_FIELDS:
            if key in extras:
                entry[key] = extras[key]
        entry["items"] = items
        entry["__weatherScore"] = weather_score
        entry["__finalScore"] = (outfit.final_score or 0.0) + self.settings.weather_score_weight * weather_score
        return entry

    def _explored_entry(
        self,
        variant: OutfitCandidate,
        source: OutfitCandidate,
        entries: Sequence[Dict[str, Any]],
        index: Mapping[str, Any],
    ) -> Dict[str, Any]:
        # The weather term is pinned to the source so the swap can never lift the variant above it
        entry = self._to_ranked_entry(variant, index)
        source_entry = next(e for e in entries if e["outfit_id"] == source.outfit_id)
        entry["__finalScore"] = source_entry["__finalScore"] - DEFAULT_PREFERENCE_CONFIG.EXPLORATION_PENALTY
        return entry

    def rank(
        self,
        user_id: str,
        outfits: Sequence[Any],
        catalog: Optional[Sequence[Any]] = None,
        seed: Optional[str] = None,
        query: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        weights: Optional[Mapping[str, Optional[float]]] = None,
        exploration_rate: Optional[float] = None,
        recent_shown_item_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> RankingResult:
        """
        Personalize, dedupe and redact *outfits*.

        Items are resolved from *catalog* (typically ``PreparedCatalog.items``)
        and fall back to the items carried on each candidate.
        """
        with request_context(user_id=user_id, request_id=request_id):
            resolved_weights = PersonalizationWeights.resolve(
                weights,
                base=PersonalizationWeights.resolve(self.settings.personalization_weights),
            )
            rate = self.settings.exploration_rate if exploration_rate is None else exploration_rate

            result = apply_personalization_and_exploration(
                self.store,
                user_id,
                outfits,
                context=context,
                weights=resolved_weights,
                exploration_rate=rate,
                recent_shown_item_ids=recent_shown_item_ids,
                rng=self.rng,
                top_n=self.settings.exploration_top_n,
            )

            index = {item_id(it): it for it in (catalog or []) if item_id(it)}
            entries = [self._to_ranked_entry(o, index) for o in result.rescored]
            if result.chosen is not None and result.chosen.explored:
                entries.append(self._explored_entry(result.chosen, result.rescored[0], entries, index))

            public = finalize_outfits(entries, seed or default_seed(user_id), limit)

            chosen_public = None
            if result.chosen is not None:
                chosen_public = next((o for o in public if o["outfit_id"] == result.chosen.outfit_id), None)

            if request_id:
                self.ingestion.log_generation({
                    "request_id": request_id,
                    "user_id": user_id,
                    "query": query,
                    "context": result.context_used,
                    "weights": result.debug_weights,
                    "candidates": [o.model_dump(mode="json") for o in result.rescored],
                    "chosen": result.chosen.model_dump(mode="json") if result.chosen else None,
                })

            self.logger.info(
                "Outfits ranked",
                candidates=len(outfits),
                blocked=len(result.blocked),
                returned=len(public),
                explored=bool(result.chosen and result.chosen.explored),
            )
            return RankingResult(
                outfits=public,
                chosen=chosen_public,
                debug={
                    "weights": result.debug_weights,
                    "context": result.context_used,
                    "blocked": result.blocked,
                    "exploration_rate": rate,
                },
            )


def get_ranking_pipeline(settings: Optional[Settings] = None) -> OutfitRankingPipeline:
    """Pipeline over the configured preference store."""
    return OutfitRankingPipeline(get_preference_store(), settings=settings)
