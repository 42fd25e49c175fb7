"""
Pure temporal-state logic for arrival/departure records.

No I/O and no model dependencies. Given scheduled/predicted timestamps and
a reference "now", derives direction, best timestamp, minutes-from-now,
past/present/future bucket, and early/on-time/delayed status.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

# Deviation thresholds, in minutes. Comparisons are strict.
EARLY_THRESHOLD_MINUTES = -1.5
DELAYED_THRESHOLD_MINUTES = 1.5


class ArrivalDepartureStatus(str, Enum):
    arriving = "arriving"
    departing = "departing"


class TemporalState(str, Enum):
    past = "past"
    present = "present"
    future = "future"


class ScheduleStatus(str, Enum):
    unknown = "unknown"
    early = "early"
    on_time = "on_time"
    delayed = "delayed"


@dataclass(frozen=True)
class TemporalClassification:
    """Everything the UI needs to render the time portion of one arrival row."""

    status: ArrivalDepartureStatus
    best_date: datetime
    scheduled_date: datetime
    minutes_from_now: int
    temporal_state: TemporalState
    schedule_status: ScheduleStatus
    deviation_minutes: int


def arrival_departure_status(stop_sequence: int) -> ArrivalDepartureStatus:
    """The first stop of a trip is a departure; every other stop is an arrival."""
    if stop_sequence == 0:
        return ArrivalDepartureStatus.departing
    return ArrivalDepartureStatus.arriving


def best_date(
    status: ArrivalDepartureStatus,
    scheduled_arrival: datetime,
    scheduled_departure: datetime,
    predicted_arrival: Optional[datetime] = None,
    predicted_departure: Optional[datetime] = None,
) -> datetime:
    """Predicted time for the record's direction if present, else the scheduled one."""
    if status == ArrivalDepartureStatus.departing:
        return predicted_departure or scheduled_departure
    return predicted_arrival or scheduled_arrival


def scheduled_date(
    status: ArrivalDepartureStatus,
    scheduled_arrival: datetime,
    scheduled_departure: datetime,
) -> datetime:
    if status == ArrivalDepartureStatus.departing:
        return scheduled_departure
    return scheduled_arrival


def compute_minutes(when: datetime, as_of: datetime) -> int:
    """
    Compute signed minutes from as_of until when.

    Truncates toward zero: 90 seconds ago is -1, 59 seconds ahead is 0.
    """
    delta_seconds = (when - as_of).total_seconds()
    return int(delta_seconds / 60)


def temporal_state_for(minutes: int) -> TemporalState:
    if minutes < 0:
        return TemporalState.past
    if minutes == 0:
        return TemporalState.present
    return TemporalState.future


def raw_deviation_minutes(best: datetime, scheduled_departure: datetime) -> float:
    """
    Minutes between the best timestamp and the *departure* schedule.

    Arrivals are measured against the departure schedule as well.
    """
    return (best - scheduled_departure).total_seconds() / 60.0


def round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def schedule_status_for(raw_deviation: float, predicted: bool) -> ScheduleStatus:
    if not predicted:
        return ScheduleStatus.unknown
    if raw_deviation < EARLY_THRESHOLD_MINUTES:
        return ScheduleStatus.early
    if raw_deviation < DELAYED_THRESHOLD_MINUTES:
        return ScheduleStatus.on_time
    return ScheduleStatus.delayed


def classify(
    scheduled_arrival: datetime,
    scheduled_departure: datetime,
    predicted_arrival: Optional[datetime],
    predicted_departure: Optional[datetime],
    stop_sequence: int,
    now: datetime,
    predicted: Optional[bool] = None,
) -> TemporalClassification:
    """
    Derive the full temporal classification of one arrival/departure.

    Args:
        scheduled_arrival: Scheduled arrival time (always present).
        scheduled_departure: Scheduled departure time (always present).
        predicted_arrival: Real-time arrival prediction, if any.
        predicted_departure: Real-time departure prediction, if any.
        stop_sequence: Index of the stop within its trip.
        now: Reference timestamp.
        predicted: Whether the record carries real-time data. Defaults to
                   whether either predicted timestamp is present.

    Returns:
        A frozen TemporalClassification.
    """
    if predicted is None:
        predicted = predicted_arrival is not None or predicted_departure is not None

    status = arrival_departure_status(stop_sequence)
    best = best_date(
        status,
        scheduled_arrival,
        scheduled_departure,
        predicted_arrival,
        predicted_departure,
    )
    minutes = compute_minutes(best, now)
    deviation = raw_deviation_minutes(best, scheduled_departure)

    return TemporalClassification(
        status=status,
        best_date=best,
        scheduled_date=scheduled_date(status, scheduled_arrival, scheduled_departure),
        minutes_from_now=minutes,
        temporal_state=temporal_state_for(minutes),
        schedule_status=schedule_status_for(deviation, predicted),
        deviation_minutes=round_half_away_from_zero(deviation),
    )
