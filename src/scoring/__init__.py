"""
Shared Scoring Module.

Weather scoring and preference-feature extraction used by the pool
builder, the personalization scorer and feedback ingestion.

Quick start::

    from scoring import WeatherContext, WeatherScorer, extract_features

    ctx = WeatherContext.from_dict({"tempF": 84, "precipitation": "rain"})
    adj = WeatherScorer().score(item_dict, ctx)
    feats = extract_features(outfit_dict)
"""

from scoring.context import (
    DEFAULT_WEATHER_WEIGHTS,
    Precipitation,
    WeatherContext,
    WeatherWeights,
)
from scoring.features import extract_features
from scoring.weather_scorer import WeatherScorer, score_item_for_weather

__all__ = [
    "DEFAULT_WEATHER_WEIGHTS",
    "Precipitation",
    "WeatherContext",
    "WeatherWeights",
    "WeatherScorer",
    "extract_features",
    "score_item_for_weather",
]
