from __future__ import annotations

import logging
from typing import AsyncIterator

from trip_planner.core.config import BUDGET_SYSTEM_INSTRUCTION, settings
from trip_planner.schemas.api import BudgetAnalysisResponse, PlanResponse, StreamMessage
from trip_planner.schemas.itinerary import coerce_itinerary
from trip_planner.services.llm.client import LLMClient
from trip_planner.services.llm.errors import ParseFailure
from trip_planner.services.llm.recovery import Failed
from trip_planner.services.llm.session import ChunkEvent, CompletedEvent

DONE_LINE = "data: [DONE]\n\n"


def _plan_response(value, logger: logging.Logger) -> PlanResponse:
    itinerary, suggestions, issues = coerce_itinerary(value)
    if issues:
        logger.warning("Recovered itinerary has schema issues: %s", "; ".join(issues))
    return PlanResponse(
        itinerary=itinerary.model_dump(by_alias=True) if itinerary else None,
        suggestions=suggestions,
        schema_issues=issues,
    )


def _sse(message: StreamMessage) -> str:
    return f"data: {message.model_dump_json()}\n\n"


async def generate_plan(client: LLMClient, prompt: str, logger: logging.Logger) -> PlanResponse:
    """Generate a plan with a single non-streaming call.

    Raises TransportError or ParseFailure.
    """
    outcome = await client.complete_json(prompt)
    if isinstance(outcome, Failed):
        raise ParseFailure(outcome.raw_text)
    return _plan_response(outcome.value, logger)


async def stream_plan(client: LLMClient, prompt: str, logger: logging.Logger) -> AsyncIterator[str]:
    """Relay a streamed plan as server-sent events, ending with ``[DONE]``."""
    try:
        async for event in client.stream_events(prompt):
            if isinstance(event, ChunkEvent):
                yield _sse(StreamMessage(type="chunk", content=event.text))
            elif isinstance(event, CompletedEvent):
                plan = _plan_response(event.value, logger)
                yield _sse(StreamMessage(type="result", **plan.model_dump()))
            else:
                yield _sse(StreamMessage(type="error", content=event.message))
        yield DONE_LINE
    finally:
        await client.aclose()


async def analyze_budget(client: LLMClient, prompt: str, logger: logging.Logger) -> BudgetAnalysisResponse:
    """Recover a budget breakdown and suggestions. Raises TransportError or ParseFailure."""
    outcome = await client.complete_json(
        prompt,
        system_instruction=BUDGET_SYSTEM_INSTRUCTION,
        temperature=settings.budget_temperature,
    )
    if isinstance(outcome, Failed):
        raise ParseFailure(outcome.raw_text)
    value = outcome.value if isinstance(outcome.value, dict) else {}
    raw_breakdown = value.get("breakdown")
    if not isinstance(raw_breakdown, dict):
        logger.warning("Budget analysis has no breakdown object")
        raw_breakdown = {}
    breakdown = {}
    for key, amount in raw_breakdown.items():
        try:
            breakdown[key] = float(amount)
        except (TypeError, ValueError):
            logger.warning("Dropping non-numeric budget entry %s=%r", key, amount)
    raw_suggestions = value.get("suggestions")
    suggestions = [str(s) for s in raw_suggestions] if isinstance(raw_suggestions, list) else []
    return BudgetAnalysisResponse(breakdown=breakdown, suggestions=suggestions)
