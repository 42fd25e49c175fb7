"""
Pydantic response models for the transitcore HTTP API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from transitcore.models import OccupancyStatus
from transitcore.surveys import Survey
from transitcore.temporal import ArrivalDepartureStatus, ScheduleStatus, TemporalState


class ArrivalRow(BaseModel):
    """One arrival or departure, with its temporal state computed."""

    id: str = Field(description="Stable row identity: stop, trip, route and direction")
    route_id: str
    route_short_name: Optional[str] = None
    route_and_headsign: str = Field(description="Display title, e.g. '10 - Downtown'")
    trip_id: str
    trip_headsign: Optional[str] = None
    stop_id: str
    vehicle_id: Optional[str] = None
    status: ArrivalDepartureStatus
    best_date: datetime = Field(description="Predicted time if present, else scheduled")
    scheduled_date: datetime
    minutes_from_now: int = Field(description="Truncated toward zero; negative in the past")
    temporal_state: TemporalState
    schedule_status: ScheduleStatus
    deviation_minutes: int = Field(description="Rounded deviation from scheduled departure")
    predicted: bool
    occupancy_status: OccupancyStatus
    situation_ids: list[str] = Field(default_factory=list)


class AlertSummary(BaseModel):
    """A service alert in force at the stop."""

    id: str
    summary: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[str] = None


class ArrivalsResponse(BaseModel):
    """Top-level response for POST /v1/arrivals."""

    as_of: datetime
    stop_id: str
    stop_name: str
    stop_key: Optional[str] = None
    sort: Literal["time", "route"] = "time"
    hidden_route_ids: list[str] = Field(default_factory=list)
    nearby_stop_ids: list[str] = Field(default_factory=list)
    alerts: list[AlertSummary] = Field(default_factory=list)
    rows: list[ArrivalRow] = Field(default_factory=list)


class SurveysLoadedResponse(BaseModel):
    """Response for POST /v1/surveys."""

    count: int


class SurveySelectionResponse(BaseModel):
    """Response for GET /v1/surveys/next. survey is null when none applies."""

    survey: Optional[Survey] = None
    hero_question_id: Optional[int] = None


class ErrorResponse(BaseModel):
    """Body of a 422 returned when a posted payload cannot be decoded."""

    detail: str
    code: Literal["malformed_payload", "dangling_reference"]
