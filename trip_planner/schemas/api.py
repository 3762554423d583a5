from typing import Any, Literal

from pydantic import BaseModel, Field


class PlanRequest(BaseModel):
    prompt: str = Field(
        min_length=1,
        example="Plan a 3 day trip to Kyoto for 2 people, budget 8000, food and temples.",
        description="Fully formed prompt describing the trip",
    )


class PlanResponse(BaseModel):
    itinerary: dict[str, Any] | None = None
    suggestions: list[str] = []
    schema_issues: list[str] = []


class BudgetAnalysisRequest(BaseModel):
    prompt: str = Field(
        min_length=1,
        description="Fully formed prompt describing the plan whose budget should be analysed",
    )


class BudgetAnalysisResponse(BaseModel):
    breakdown: dict[str, float] = {}
    suggestions: list[str] = []


class ConfigStatusResponse(BaseModel):
    valid: bool
    missing: list[str]


class StreamMessage(BaseModel):
    """One server-sent message relayed to the frontend while a plan streams."""

    type: Literal["chunk", "result", "error"]
    content: str | None = None
    itinerary: dict[str, Any] | None = None
    suggestions: list[str] = []
    schema_issues: list[str] = []
