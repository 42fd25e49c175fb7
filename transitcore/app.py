"""
FastAPI application for transitcore.

Lifespan loads config and builds the arrivals and survey services.
Routes: /v1/arrivals, /v1/surveys, /v1/surveys/next,
/v1/surveys/{survey_id}/{complete,later,dismiss}, /v1/app/launch, /health.
Optional API key authentication on /v1/* endpoints.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, Response, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from transitcore.config import AppConfig, load_config
from transitcore.errors import DanglingRequiredReference, TransitDataError
from transitcore.responses import (
    ArrivalsResponse,
    ErrorResponse,
    SurveySelectionResponse,
    SurveysLoadedResponse,
)
from transitcore.service import ArrivalsService, SurveyService

logger = logging.getLogger(__name__)

# Global references set during lifespan
_arrivals_service: Optional[ArrivalsService] = None
_survey_service: Optional[SurveyService] = None
_config: Optional[AppConfig] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load config, create arrivals and survey services."""
    global _arrivals_service, _survey_service, _config

    log_level = os.environ.get("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _config = load_config()
    logger.info(
        "Loaded config: %d stops, deduplicate_terminals=%s, survey_reminder_interval=%d",
        len(_config.stops),
        _config.deduplicate_terminals,
        _config.survey_reminder_interval,
    )

    _arrivals_service = ArrivalsService(_config)
    _survey_service = SurveyService(_config)
    logger.info("transitcore ready")
    yield

    _arrivals_service = None
    _survey_service = None
    _config = None


app = FastAPI(
    title="transitcore API",
    version="1.0.0",
    description="""
Resolves transit REST payloads into display-ready arrival rows and picks the rider survey to show.

## Features

- **Reference resolution**: routes, stops, trips and alerts attached by ID, with dangling required references rejected
- **Temporal state**: arriving/departing, minutes from now, past/present/future and early/on-time/delayed
- **Terminal de-duplication**: one row per vehicle visit, real-time data preferred
- **Survey selection**: one-time, always-visible and repeatable surveys with "later" reminders

## Authentication

Optional API key via `X-API-Key` header. The `/health` endpoint is always unauthenticated.
    """.strip(),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "arrivals", "description": "Arrival rows for one stop"},
        {"name": "surveys", "description": "Rider survey selection and completion"},
        {"name": "health", "description": "Service health check"},
    ],
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(TransitDataError)
async def transit_data_error_handler(request: Request, exc: TransitDataError):
    code = (
        "dangling_reference"
        if isinstance(exc, DanglingRequiredReference)
        else "malformed_payload"
    )
    logger.warning("Rejected payload on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc), "code": code})


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> None:
    """Check API key if one is configured."""
    if _config is None or _config.api_key is None:
        return  # No auth configured
    if api_key != _config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _require_survey_service() -> SurveyService:
    if _survey_service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return _survey_service


def _require_known_survey(survey_id: int) -> SurveyService:
    service = _require_survey_service()
    if not service.has_survey(survey_id):
        raise HTTPException(status_code=404, detail=f"Survey {survey_id} not found")
    return service


_PAYLOAD_ERRORS = {
    422: {
        "model": ErrorResponse,
        "description": "Payload could not be decoded or references a missing entity",
    }
}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    tags=["health"],
    summary="Health check",
    response_description="Service is healthy",
)
async def health():
    """
    Health check endpoint for monitoring and Docker health checks.

    Always returns HTTP 200. No authentication required.
    """
    return {"status": "healthy"}


@app.post(
    "/v1/arrivals",
    response_model=ArrivalsResponse,
    dependencies=[Depends(verify_api_key)],
    tags=["arrivals"],
    summary="Resolve arrivals for a stop",
    responses={
        **_PAYLOAD_ERRORS,
        404: {"description": "stop_key not found in configuration"},
    },
)
async def post_arrivals(
    payload: Any = Body(...),
    stop_key: Optional[str] = Query(default=None),
):
    """
    Resolve an arrivals-and-departures-for-stop response into display rows.

    The body is the server envelope as-is. Terminal duplicates are collapsed
    (when `deduplicate_terminals` is on) and routes hidden in the stop's
    preferences are dropped. `stop_key` selects configured preferences;
    without it, preferences configured for the payload's stop ID apply.
    """
    if _arrivals_service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    result = _arrivals_service.build_arrivals(payload, stop_key=stop_key)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Stop key '{stop_key}' not found")
    return result


@app.post(
    "/v1/surveys",
    response_model=SurveysLoadedResponse,
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Load survey candidates",
    responses=_PAYLOAD_ERRORS,
)
async def post_surveys(payload: Any = Body(...)):
    """Replace the survey candidates with the `surveys` of a surveys envelope."""
    service = _require_survey_service()
    return SurveysLoadedResponse(count=service.load_surveys(payload))


@app.get(
    "/v1/surveys/next",
    response_model=SurveySelectionResponse,
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Pick the survey to show",
)
async def get_next_survey(
    stop_id: Optional[str] = Query(default=None),
    route_id: list[str] = Query(default=[]),
):
    """
    Return the survey to show, or `{"survey": null}`.

    Pass `stop_id` and/or repeated `route_id` for a stop page; pass neither
    for the map.
    """
    service = _require_survey_service()
    return service.next_survey(stop_id=stop_id, route_ids=route_id)


@app.post(
    "/v1/surveys/{survey_id}/complete",
    status_code=204,
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Mark a survey completed",
)
async def complete_survey(survey_id: int):
    _require_known_survey(survey_id).mark_completed(survey_id)
    return Response(status_code=204)


@app.post(
    "/v1/surveys/{survey_id}/later",
    status_code=204,
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Remind me later",
)
async def later_survey(survey_id: int):
    """Defer a survey; it resurfaces after the configured number of app launches."""
    _require_known_survey(survey_id).mark_for_later(survey_id)
    return Response(status_code=204)


@app.post(
    "/v1/surveys/{survey_id}/dismiss",
    status_code=204,
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Dismiss a survey",
)
async def dismiss_survey(survey_id: int):
    _require_known_survey(survey_id).dismiss(survey_id)
    return Response(status_code=204)


@app.post(
    "/v1/app/launch",
    dependencies=[Depends(verify_api_key)],
    tags=["surveys"],
    summary="Record an app launch",
)
async def app_launch():
    service = _require_survey_service()
    return {"app_launch_count": service.app_launched()}


def main() -> None:
    """Run the API with uvicorn. HOST and PORT come from the environment."""
    uvicorn.run(
        "transitcore.app:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
