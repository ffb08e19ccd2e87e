"""
Weather context and weight dataclasses for weather-aware scoring.

``WeatherContext`` is supplied once per request by the weather-fetch
collaborator; ``WeatherWeights`` holds every threshold and magnitude the
WeatherScorer uses so callers can override any of them independently.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from core.utils import pick, to_number


class Precipitation(str, Enum):
    NONE = "none"
    RAIN = "rain"
    SNOW = "snow"


@dataclass(frozen=True)
class WeatherContext:
    """Current weather at the user's location."""
    temp_f: Optional[float] = None
    precipitation: Optional[Precipitation] = None
    wind_mph: Optional[float] = None
    is_indoors: Optional[bool] = None
    location_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["WeatherContext"]:
        """
        Build a context from the collaborator payload.

        Accepts camelCase (``tempF``) or snake_case (``temp_f``) keys and
        numeric strings. Returns None for a missing payload.

        Raises:
            ValueError: for a precipitation value outside none|rain|snow.
        """
        if data is None:
            return None

        raw_precip = pick(data, "precipitation", "precip")
        precipitation = None
        if raw_precip is not None:
            try:
                precipitation = Precipitation(str(raw_precip).strip().lower())
            except ValueError as e:
                raise ValueError(f"Unknown precipitation: {raw_precip!r}") from e

        indoors = pick(data, "isIndoors", "is_indoors")
        return cls(
            temp_f=to_number(pick(data, "tempF", "temp_f")),
            precipitation=precipitation,
            wind_mph=to_number(pick(data, "windMph", "wind_mph")),
            is_indoors=bool(indoors) if indoors is not None else None,
            location_name=pick(data, "locationName", "location_name"),
        )

    @property
    def is_rainy(self) -> bool:
        return self.precipitation == Precipitation.RAIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tempF": self.temp_f,
            "precipitation": self.precipitation.value if self.precipitation else None,
            "windMph": self.wind_mph,
            "isIndoors": self.is_indoors,
            "locationName": self.location_name,
        }


@dataclass(frozen=True)
class WeatherWeights:
    """Thresholds (degrees F / mph) and score magnitudes for weather scoring."""

    # Temperature bands (mutually exclusive: hot >= 78, cold <= 55)
    hot_temp_f: float = 78
    cold_temp_f: float = 55
    hot_boost_short_sleeve: int = 6
    hot_penalize_outer: int = 4
    cold_boost_outer: int = 8
    cold_penalize_short_sleeve: int = 5

    # Rain
    rain_boost_waterproof: int = 8
    rain_penalize_suede: int = 6

    # Wind
    wind_min_mph: float = 15
    wind_boost_shell: int = 4

    # Shorts cutoff
    shorts_temp_min_f: float = 60
    shorts_penalty: int = 8

    def with_overrides(self, **overrides: Any) -> "WeatherWeights":
        """Copy with some fields replaced; unknown names raise TypeError."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown weather weight(s): {sorted(unknown)}")
        return replace(self, **overrides)


DEFAULT_WEATHER_WEIGHTS = WeatherWeights()
