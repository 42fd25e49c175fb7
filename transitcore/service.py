"""
Services: orchestrate decoding, filtering, temporal classification and
survey selection for the HTTP layer.

ArrivalsService turns a posted arrivals-for-stop payload into display rows.
SurveyService holds the current survey candidates and the rider's
completion state.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from transitcore.config import AppConfig, StopPreferencesConfig
from transitcore.dedup import filter_hidden_routes, filter_terminal_duplicates, group_by_route
from transitcore.envelope import decode_arrivals_for_stop
from transitcore.errors import MalformedPayload
from transitcore.models import ArrivalDeparture, Situation
from transitcore.responses import (
    AlertSummary,
    ArrivalRow,
    ArrivalsResponse,
    SurveySelectionResponse,
)
from transitcore.survey_selection import InMemoryCompletionStore, SurveyContext, SurveySelector
from transitcore.surveys import Survey, SurveysResponse

logger = logging.getLogger(__name__)


def build_row(record: ArrivalDeparture, now: datetime) -> ArrivalRow:
    """Project a resolved arrival onto a display row."""
    classification = record.classify(now)
    return ArrivalRow(
        id=record.id,
        route_id=record.route_id,
        route_short_name=record.route_short_name,
        route_and_headsign=record.route_and_headsign,
        trip_id=record.trip_id,
        trip_headsign=record.trip_headsign,
        stop_id=record.stop_id,
        vehicle_id=record.vehicle_id,
        status=classification.status,
        best_date=classification.best_date,
        scheduled_date=classification.scheduled_date,
        minutes_from_now=classification.minutes_from_now,
        temporal_state=classification.temporal_state,
        schedule_status=classification.schedule_status,
        deviation_minutes=classification.deviation_minutes,
        predicted=record.predicted,
        occupancy_status=record.occupancy_status,
        situation_ids=[alert.id for alert in record.service_alerts],
    )


def _alert_summary(alert: Situation) -> AlertSummary:
    return AlertSummary(
        id=alert.id,
        summary=alert.summary.value if alert.summary else None,
        description=alert.description.value if alert.description else None,
        severity=alert.severity,
    )


def _sort_by_route(records: list[ArrivalDeparture]) -> list[ArrivalDeparture]:
    groups = group_by_route(records)
    groups.sort(key=lambda g: (g.route.name if g.route else g.route_id).casefold())
    return [record for group in groups for record in group.arrivals]


class ArrivalsService:
    """Produces ArrivalsResponse from arrivals-for-stop payloads."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def build_arrivals(
        self,
        payload: Any,
        stop_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ArrivalsResponse]:
        """
        Decode, resolve and classify one arrivals payload.

        Args:
            payload: Parsed JSON envelope.
            stop_key: Configured stop preferences to apply. If None, the
                      preferences configured for the payload's stop, if any.
            now: Reference timestamp; defaults to the current UTC time.

        Returns:
            ArrivalsResponse, or None if stop_key is not configured.

        Raises:
            MalformedPayload, DanglingRequiredReference: the payload is unusable.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        prefs: Optional[StopPreferencesConfig] = None
        if stop_key is not None:
            prefs = self._config.get_stop(stop_key)
            if prefs is None:
                return None

        entry = decode_arrivals_for_stop(payload).entry
        if prefs is None:
            prefs = self._config.preferences_for_stop(entry.stop_id)

        records = list(entry.arrivals_and_departures)
        if self._config.deduplicate_terminals:
            records = filter_terminal_duplicates(records)

        hidden = prefs.hidden_route_ids if prefs else []
        records = filter_hidden_routes(records, hidden)

        sort = prefs.sort if prefs else "time"
        if sort == "route":
            records = _sort_by_route(records)
        else:
            records = sorted(records, key=lambda r: r.arrival_departure_date)

        return ArrivalsResponse(
            as_of=now,
            stop_id=entry.stop_id,
            stop_name=entry.stop.name,
            stop_key=prefs.key if prefs else None,
            sort=sort,
            hidden_route_ids=list(hidden),
            nearby_stop_ids=[stop.id for stop in entry.nearby_stops],
            alerts=[_alert_summary(a) for a in entry.service_alerts if a.is_active(now)],
            rows=[build_row(record, now) for record in records],
        )


class SurveyService:
    """
    Process-wide survey state: current candidates plus completion store.

    The completion store is not thread-safe; every access goes through
    self._lock.
    """

    def __init__(self, config: AppConfig) -> None:
        self._lock = threading.Lock()
        self._store = InMemoryCompletionStore(config.survey_reminder_interval)
        self._selector = SurveySelector(self._store, config.survey_user_id)
        self._surveys: list[Survey] = []

    def load_surveys(self, payload: Any) -> int:
        """Replace the candidate list from a surveys envelope. Returns the count."""
        try:
            parsed = SurveysResponse.model_validate(payload)
        except ValidationError as exc:
            raise MalformedPayload(f"invalid surveys payload: {exc}", entity="Survey") from exc

        with self._lock:
            self._surveys = list(parsed.surveys)
        logger.info("Loaded %d survey(s)", len(parsed.surveys))
        return len(parsed.surveys)

    def app_launched(self) -> int:
        with self._lock:
            return self._store.increment_app_launch_count()

    def next_survey(
        self,
        stop_id: Optional[str] = None,
        route_ids: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> SurveySelectionResponse:
        """Select for a stop page when stop_id or route_ids are given, else for the map."""
        route_ids = list(route_ids)
        if stop_id is None and not route_ids:
            context = SurveyContext.for_map()
        else:
            context = SurveyContext.for_stop(stop_id, route_ids)

        with self._lock:
            survey = self._selector.select(self._surveys, context, now)

        if survey is None:
            return SurveySelectionResponse()
        hero = survey.hero_question
        return SurveySelectionResponse(
            survey=survey, hero_question_id=hero.id if hero else None
        )

    def has_survey(self, survey_id: int) -> bool:
        with self._lock:
            return any(s.id == survey_id for s in self._surveys)

    def mark_completed(self, survey_id: int) -> None:
        with self._lock:
            self._selector.mark_completed(survey_id)

    def mark_for_later(self, survey_id: int) -> None:
        with self._lock:
            self._selector.mark_for_later(survey_id)

    def dismiss(self, survey_id: int) -> None:
        with self._lock:
            self._selector.dismiss(survey_id)
