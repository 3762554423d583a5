"""Itinerary records recovered from model output.

The models are deliberately lenient: model output shape varies, so missing
fields fall back to defaults and unknown keys are kept.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Location(_Record):
    name: str = ""
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Activity(_Record):
    id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None  # attraction, shopping, entertainment, other
    location: Optional[Location] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[float] = None
    cost: float = 0
    description: Optional[str] = None
    tips: Optional[str] = None


class Meal(_Record):
    id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None  # breakfast, lunch, dinner, snack
    location: Optional[Location] = None
    time: Optional[str] = None
    cost: float = 0
    cuisine: Optional[str] = None
    description: Optional[str] = None


class DayPlan(_Record):
    day: Optional[int] = None
    date: Optional[str] = None
    activities: List[Activity] = Field(default_factory=list)
    meals: List[Meal] = Field(default_factory=list)
    budget: float = 0


class Accommodation(_Record):
    id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None
    location: Optional[Location] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    nights: Optional[int] = None
    cost: float = 0
    rating: Optional[float] = None
    amenities: List[str] = Field(default_factory=list)


class Transportation(_Record):
    id: Optional[str] = None
    type: Optional[str] = None  # flight, train, bus, car, subway, taxi, other
    from_: Optional[Location] = Field(default=None, alias="from")
    to: Optional[Location] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    cost: float = 0
    description: Optional[str] = None


class ParsedItinerary(_Record):
    days: List[DayPlan] = Field(default_factory=list)
    accommodation: List[Accommodation] = Field(default_factory=list)
    transportation: List[Transportation] = Field(default_factory=list)
    total_budget: float = 0


EXPECTED_SECTIONS = ("days", "accommodation", "transportation", "total_budget")


def coerce_itinerary(value: Any) -> Tuple[Optional[ParsedItinerary], List[str], List[str]]:
    """Best-effort view of a recovered JSON value as an itinerary.

    Returns ``(itinerary, suggestions, issues)``. ``itinerary`` is None when the
    value cannot be read as one at all; ``issues`` lists what was missing or
    invalid. Nothing is raised: deciding what to do with a partial itinerary is
    up to the caller.
    """
    if not isinstance(value, dict):
        return None, [], [f"expected a JSON object, got {type(value).__name__}"]

    suggestions: List[str] = []
    raw_suggestions = value.get("suggestions")
    if isinstance(raw_suggestions, list):
        suggestions = [str(item) for item in raw_suggestions]

    body = value.get("itinerary", value)
    if not isinstance(body, dict):
        return None, suggestions, ["'itinerary' is not a JSON object"]

    issues = [f"missing '{key}'" for key in EXPECTED_SECTIONS if key not in body]
    try:
        itinerary = ParsedItinerary.model_validate(body)
    except ValidationError as e:
        issues.extend(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return None, suggestions, issues
    return itinerary, suggestions, issues
