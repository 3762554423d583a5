from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
import logging
from typing import Callable
from trip_planner.core.config import settings
from trip_planner.schemas.api import (
    BudgetAnalysisRequest,
    BudgetAnalysisResponse,
    ConfigStatusResponse,
    PlanRequest,
    PlanResponse,
)
from trip_planner.services import svc
from trip_planner.services.llm.client import LLMClient
from trip_planner.services.llm.errors import LLMConfigError, ParseFailure, TransportError

logger = logging.getLogger("services")
router = APIRouter()

ClientFactory = Callable[[], LLMClient]


def _build_client() -> LLMClient:
    try:
        return LLMClient.from_settings(settings, logger)
    except LLMConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))


def get_client_factory() -> ClientFactory:
    """FastAPI dependency; handlers build their client only after the request body validated."""
    return _build_client


@router.get("/config/status", response_model=ConfigStatusResponse)
def config_status():
    missing = settings.missing_llm_settings()
    return ConfigStatusResponse(valid=not missing, missing=missing)


@router.post("/plans", response_model=PlanResponse)
async def generate_plan(req: PlanRequest, make_client: ClientFactory = Depends(get_client_factory)):
    client = make_client()
    try:
        return await svc.generate_plan(client, req.prompt, logger)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ParseFailure as e:
        # Raw text stays in the logs only
        logger.warning("Plan generation failed, raw output: %r", e.raw_text)
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await client.aclose()


@router.post("/plans/stream")
async def stream_plan(req: PlanRequest, make_client: ClientFactory = Depends(get_client_factory)):
    client = make_client()
    # The generator closes the client too; the background task covers a stream that never starts
    return StreamingResponse(
        svc.stream_plan(client, req.prompt, logger),
        media_type="text/event-stream",
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no'  # Disable buffering for nginx
        },
        background=BackgroundTask(client.aclose),
    )


@router.post("/budget/analysis", response_model=BudgetAnalysisResponse)
async def analyze_budget(req: BudgetAnalysisRequest, make_client: ClientFactory = Depends(get_client_factory)):
    client = make_client()
    try:
        return await svc.analyze_budget(client, req.prompt, logger)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ParseFailure as e:
        logger.warning("Budget analysis failed, raw output: %r", e.raw_text)
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await client.aclose()
