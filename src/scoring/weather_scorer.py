"""
Weather Scoring Engine.

Scores one wardrobe item against the request's weather context. Every
term is additive and independent (no early exit):

1. Heat (tempF >= 78): boost short sleeves, penalize outerwear
2. Cold (tempF <= 55): boost outerwear, penalize short sleeves
3. Rain: boost waterproof items, penalize suede (both may apply)
4. Wind (>= 15 mph): boost outer layers / jackets / shells
5. Shorts cutoff: penalize shorts below 60F

Degrades gracefully:
- No weather context -> 0 (weather is an enhancement, never a requirement)
- No temperature -> 0
- Missing item attributes -> the corresponding term is skipped
"""

from typing import Any, List, Mapping, Optional, Tuple, Union

from core.logging import get_logger
from scoring.context import DEFAULT_WEATHER_WEIGHTS, WeatherContext, WeatherWeights
from scoring.item_utils import (
    attr,
    is_outerwear,
    is_shell_layer,
    is_short_sleeve,
    is_shorts,
    is_waterproof,
    text_attr,
)

logger = get_logger(__name__)

# A WeatherContext or the collaborator payload it is built from (camelCase or snake_case)
WeatherInput = Union[WeatherContext, Mapping[str, Any], None]


def as_weather_context(weather: WeatherInput) -> Optional[WeatherContext]:
    if weather is None or isinstance(weather, WeatherContext):
        return weather
    return WeatherContext.from_dict(weather)


class WeatherScorer:
    """Score items for weather. Stateless; safe to share across requests."""

    def __init__(self, weights: WeatherWeights = DEFAULT_WEATHER_WEIGHTS) -> None:
        self.weights = weights

    def score(self, item: Any, weather: WeatherInput) -> int:
        return self.explain(item, weather)[0]

    def explain(self, item: Any, weather: WeatherInput) -> Tuple[int, List[str]]:
        """
        Compute the score and the human-readable reasons behind it.

        Returns ``(score, reasons)``; reasons look like ``"+6 hot/short-sleeve"``.
        """
        weather = as_weather_context(weather)
        if weather is None or weather.temp_f is None:
            return 0, []

        w = self.weights
        temp = weather.temp_f
        score = 0
        reasons: List[str] = []

        outer = is_outerwear(item)
        short_sleeve = is_short_sleeve(item)

        # ── Temperature ───────────────────────────────────────────
        if temp >= w.hot_temp_f:
            if short_sleeve:
                score += w.hot_boost_short_sleeve
                reasons.append(f"+{w.hot_boost_short_sleeve} hot/short-sleeve")
            if outer:
                score -= w.hot_penalize_outer
                reasons.append(f"-{w.hot_penalize_outer} hot/outer")
        if temp <= w.cold_temp_f:
            if outer:
                score += w.cold_boost_outer
                reasons.append(f"+{w.cold_boost_outer} cold/outer")
            if short_sleeve:
                score -= w.cold_penalize_short_sleeve
                reasons.append(f"-{w.cold_penalize_short_sleeve} cold/short-sleeve")

        # ── Rain ──────────────────────────────────────────────────
        if weather.is_rainy:
            if is_waterproof(item):
                score += w.rain_boost_waterproof
                reasons.append(f"+{w.rain_boost_waterproof} rain/waterproof")
            if "suede" in text_attr(item, "material"):
                score -= w.rain_penalize_suede
                reasons.append(f"-{w.rain_penalize_suede} rain/suede")

        # ── Wind ──────────────────────────────────────────────────
        if (weather.wind_mph or 0) >= w.wind_min_mph and is_shell_layer(item):
            score += w.wind_boost_shell
            reasons.append(f"+{w.wind_boost_shell} wind/shell")

        # ── Shorts cutoff ─────────────────────────────────────────
        if is_shorts(item) and temp < w.shorts_temp_min_f:
            score -= w.shorts_penalty
            reasons.append(f"-{w.shorts_penalty} shorts<{w.shorts_temp_min_f:g}F")

        return int(round(score)), reasons

    def explain_item(self, item: Any, weather: WeatherInput) -> dict:
        """Breakdown for debugging / admin tooling."""
        weather = as_weather_context(weather)
        total, reasons = self.explain(item, weather)
        label = attr(item, "label") or " / ".join(
            p for p in (attr(item, "main_category"), attr(item, "subcategory")) if p
        ) or "Item"
        return {
            "label": label,
            "total": total,
            "reasons": reasons,
            "context": weather.to_dict() if weather else None,
        }


_DEFAULT_SCORER = WeatherScorer()


def score_item_for_weather(
    item: Any,
    weather: WeatherInput,
    weights: Optional[WeatherWeights] = None,
) -> int:
    """Functional entry point; ``weights`` defaults to DEFAULT_WEATHER_WEIGHTS."""
    scorer = _DEFAULT_SCORER if weights is None else WeatherScorer(weights)
    return scorer.score(item, weather)
