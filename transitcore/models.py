"""
Pydantic models for transit REST payloads.

Reference entities (Agency, Route, Stop, Trip, Situation) are leaf values
held by the reference pool. Primary entities (ArrivalDeparture, TripStatus,
StopArrivals) carry foreign keys and get their resolved counterparts filled
in by transitcore.resolver. All models are frozen; resolution produces new
instances.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from transitcore import temporal
from transitcore.temporal import (
    ArrivalDepartureStatus,
    ScheduleStatus,
    TemporalClassification,
    TemporalState,
)

# Epoch-millisecond values below this are "no value" (servers send 0).
EPOCH_CUTOFF_MS = 1000


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _from_timestamp(seconds: float, raw: Any) -> datetime:
    # pydantic only wraps ValueError, so platform range errors are converted here.
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"timestamp out of range: {raw!r}") from None


def epoch_ms_to_datetime(value: Any) -> Any:
    """Convert epoch milliseconds to an aware UTC datetime; pass anything else through."""
    if _is_number(value):
        return _from_timestamp(value / 1000.0, value)
    return value


def optional_epoch_ms(value: Any) -> Any:
    """Like epoch_ms_to_datetime, but near-zero timestamps become None."""
    if _is_number(value) and value < EPOCH_CUTOFF_MS:
        return None
    return epoch_ms_to_datetime(value)


def epoch_seconds_to_datetime(value: Any) -> Any:
    if _is_number(value):
        return _from_timestamp(value, value)
    return value


def nilify_blank(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


EpochMillis = Annotated[datetime, BeforeValidator(epoch_ms_to_datetime)]
OptionalEpochMillis = Annotated[Optional[datetime], BeforeValidator(optional_epoch_ms)]
EpochSeconds = Annotated[datetime, BeforeValidator(epoch_seconds_to_datetime)]
BlankToNone = Annotated[Optional[str], BeforeValidator(nilify_blank)]


class WireModel(BaseModel):
    """Base for models decoded from camelCase server JSON."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RouteType(int, Enum):
    light_rail = 0
    subway = 1
    rail = 2
    bus = 3
    ferry = 4
    cable_car = 5
    gondola = 6
    funicular = 7
    unknown = 999

    @classmethod
    def _missing_(cls, value):
        return cls.unknown


def _coerce_route_type(value: Any) -> Any:
    if isinstance(value, RouteType):
        return value
    try:
        return RouteType(int(value))
    except (TypeError, ValueError):
        raise ValueError(f"route type must be an integer, got {value!r}")


class WheelchairBoarding(str, Enum):
    accessible = "accessible"
    not_accessible = "notAccessible"
    unknown = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.unknown


class StopLocationType(int, Enum):
    stop = 0
    station = 1
    station_entrance = 2
    unknown = 3

    @classmethod
    def _missing_(cls, value):
        return cls.unknown


class Direction(str, Enum):
    n = "n"
    ne = "ne"
    e = "e"
    se = "se"
    s = "s"
    sw = "sw"
    w = "w"
    nw = "nw"
    unknown = "unknown"


class OccupancyStatus(str, Enum):
    """GTFS-realtime occupancy levels. Empty or unrecognised strings are unknown."""

    unknown = "UNKNOWN"
    empty = "EMPTY"
    many_seats_available = "MANY_SEATS_AVAILABLE"
    few_seats_available = "FEW_SEATS_AVAILABLE"
    standing_room_only = "STANDING_ROOM_ONLY"
    crushed_standing_room_only = "CRUSHED_STANDING_ROOM_ONLY"
    full = "FULL"
    not_accepting_passengers = "NOT_ACCEPTING_PASSENGERS"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.unknown


def _coerce_enum(enum_cls):
    def coerce(value: Any) -> Any:
        if value is None:
            return enum_cls("")
        return enum_cls(value)

    return BeforeValidator(coerce)


Occupancy = Annotated[OccupancyStatus, _coerce_enum(OccupancyStatus)]


# ---------------------------------------------------------------------------
# Reference entities
# ---------------------------------------------------------------------------


class Agency(WireModel):
    id: str
    name: str
    url: BlankToNone = None
    timezone: BlankToNone = None
    lang: BlankToNone = None
    phone: BlankToNone = None
    email: BlankToNone = None
    fare_url: BlankToNone = Field(default=None, alias="fareUrl")
    disclaimer: BlankToNone = None
    private_service: bool = Field(default=False, alias="privateService")


class Route(WireModel):
    id: str
    agency_id: str = Field(alias="agencyId")
    short_name: str = Field(alias="shortName")
    long_name: BlankToNone = Field(default=None, alias="longName")
    description: BlankToNone = None
    color: BlankToNone = None
    text_color: BlankToNone = Field(default=None, alias="textColor")
    url: BlankToNone = None
    route_type: Annotated[RouteType, BeforeValidator(_coerce_route_type)] = Field(alias="type")

    # Resolved
    agency: Optional[Agency] = Field(default=None, exclude=True)

    @property
    def name(self) -> str:
        return self.short_name or self.long_name or self.id


# Display priority when a stop is served by several modes.
ROUTE_TYPE_DISPLAY_PRIORITY = (
    RouteType.ferry,
    RouteType.light_rail,
    RouteType.subway,
    RouteType.rail,
    RouteType.bus,
)


class Stop(WireModel):
    id: str
    name: str
    lat: float
    lon: float
    code: str = ""
    direction_code: BlankToNone = Field(default=None, alias="direction")
    location_type: Annotated[StopLocationType, _coerce_enum(StopLocationType)] = Field(
        default=StopLocationType.stop, alias="locationType"
    )
    route_ids: list[str] = Field(default_factory=list, alias="routeIds")
    wheelchair_boarding: Annotated[
        WheelchairBoarding, _coerce_enum(WheelchairBoarding)
    ] = Field(default=WheelchairBoarding.unknown, alias="wheelchairBoarding")

    # Resolved
    routes: Optional[list[Route]] = Field(default=None, exclude=True)

    @property
    def direction(self) -> Direction:
        if self.direction_code is None:
            return Direction.unknown
        try:
            return Direction(self.direction_code.lower())
        except ValueError:
            return Direction.unknown

    @property
    def route_types(self) -> set[RouteType]:
        return {route.route_type for route in self.routes or []}

    @property
    def prioritized_route_type(self) -> RouteType:
        types = self.route_types
        for route_type in ROUTE_TYPE_DISPLAY_PRIORITY:
            if route_type in types:
                return route_type
        return RouteType.unknown


class Trip(WireModel):
    id: str
    route_id: str = Field(alias="routeId")
    service_id: str = Field(alias="serviceId")
    block_id: BlankToNone = Field(default=None, alias="blockId")
    shape_id: BlankToNone = Field(default=None, alias="shapeId")
    direction_id: BlankToNone = Field(default=None, alias="directionId")
    headsign: BlankToNone = Field(default=None, alias="tripHeadsign")
    short_name: BlankToNone = Field(default=None, alias="tripShortName")
    route_short_name: BlankToNone = Field(default=None, alias="routeShortName")
    time_zone: BlankToNone = Field(default=None, alias="timeZone")


class TranslatedString(WireModel):
    lang: str = ""
    value: str = ""


class TimeWindow(WireModel):
    """An alert's active window. Bounds are epoch *seconds*."""

    start: EpochSeconds = Field(alias="from")
    end: EpochSeconds = Field(alias="to")

    def contains(self, when: datetime) -> bool:
        # Servers send to=0 for open-ended windows.
        if self.end < self.start:
            return self.start <= when
        return self.start <= when <= self.end


class AffectedEntity(WireModel):
    agency_id: BlankToNone = Field(default=None, alias="agencyId")
    application_id: BlankToNone = Field(default=None, alias="applicationId")
    direction_id: BlankToNone = Field(default=None, alias="directionId")
    route_id: BlankToNone = Field(default=None, alias="routeId")
    stop_id: BlankToNone = Field(default=None, alias="stopId")
    trip_id: BlankToNone = Field(default=None, alias="tripId")


class Consequence(WireModel):
    condition: str
    condition_details: Optional[dict] = Field(default=None, alias="conditionDetails")

    @property
    def diversion_stop_ids(self) -> list[str]:
        if not self.condition_details:
            return []
        return list(self.condition_details.get("diversionStopIds", []))


class Situation(WireModel):
    """A service alert."""

    id: str
    creation_time: OptionalEpochMillis = Field(default=None, alias="creationTime")
    reason: BlankToNone = None
    severity: BlankToNone = None
    summary: Optional[TranslatedString] = None
    description: Optional[TranslatedString] = None
    url: Optional[TranslatedString] = None
    active_windows: list[TimeWindow] = Field(default_factory=list, alias="activeWindows")
    publication_windows: list[TimeWindow] = Field(
        default_factory=list, alias="publicationWindows"
    )
    affected_entities: list[AffectedEntity] = Field(default_factory=list, alias="allAffects")
    consequences: list[Consequence] = Field(default_factory=list)

    def is_active(self, now: datetime) -> bool:
        """True with no active windows, or when now falls inside one."""
        if not self.active_windows:
            return True
        return any(window.contains(now) for window in self.active_windows)


# ---------------------------------------------------------------------------
# Primary (resolvable) entities
# ---------------------------------------------------------------------------


class TripStatus(WireModel):
    """Real-time status of the vehicle serving a trip."""

    active_trip_id: str = Field(alias="activeTripId")
    closest_stop_id: str = Field(alias="closestStop")
    next_stop_id: BlankToNone = Field(default=None, alias="nextStop")
    block_trip_sequence: int = Field(default=0, alias="blockTripSequence")
    closest_stop_time_offset: int = Field(default=0, alias="closestStopTimeOffset")
    next_stop_time_offset: int = Field(default=0, alias="nextStopTimeOffset")
    distance_along_trip: float = Field(default=0.0, alias="distanceAlongTrip")
    total_distance_along_trip: float = Field(default=0.0, alias="totalDistanceAlongTrip")
    schedule_deviation: float = Field(default=0.0, alias="scheduleDeviation")
    predicted: bool = False
    is_real_time: bool = Field(default=False, alias="isRealTime")
    phase: str = ""
    status: str = ""
    vehicle_id: BlankToNone = Field(default=None, alias="vehicleId")
    last_update_time: OptionalEpochMillis = Field(default=None, alias="lastUpdateTime")
    service_date: OptionalEpochMillis = Field(default=None, alias="serviceDate")
    occupancy_status: Occupancy = Field(
        default=OccupancyStatus.unknown, alias="occupancyStatus"
    )
    situation_ids: list[str] = Field(default_factory=list, alias="situationIds")

    # Resolved
    active_trip: Optional[Trip] = Field(default=None, exclude=True)
    closest_stop: Optional[Stop] = Field(default=None, exclude=True)
    next_stop: Optional[Stop] = Field(default=None, exclude=True)
    service_alerts: list[Situation] = Field(default_factory=list, exclude=True)


VisitKey = tuple[str, str, str]


class ArrivalDeparture(WireModel):
    """One arrival or departure of one trip at one stop."""

    arrival_enabled: bool = Field(alias="arrivalEnabled")
    departure_enabled: bool = Field(alias="departureEnabled")
    predicted: bool
    route_id: str = Field(alias="routeId")
    stop_id: str = Field(alias="stopId")
    trip_id: str = Field(alias="tripId")
    stop_sequence: int = Field(alias="stopSequence")
    scheduled_arrival: EpochMillis = Field(alias="scheduledArrivalTime")
    scheduled_departure: EpochMillis = Field(alias="scheduledDepartureTime")
    predicted_arrival: OptionalEpochMillis = Field(default=None, alias="predictedArrivalTime")
    predicted_departure: OptionalEpochMillis = Field(
        default=None, alias="predictedDepartureTime"
    )
    distance_from_stop: float = Field(default=0.0, alias="distanceFromStop")
    last_updated: OptionalEpochMillis = Field(default=None, alias="lastUpdateTime")
    service_date: OptionalEpochMillis = Field(default=None, alias="serviceDate")
    block_trip_sequence: int = Field(default=0, alias="blockTripSequence")
    number_of_stops_away: int = Field(default=0, alias="numberOfStopsAway")
    total_stops_in_trip: Optional[int] = Field(default=None, alias="totalStopsInTrip")
    status: str = ""
    situation_ids: list[str] = Field(default_factory=list, alias="situationIds")
    vehicle_id: BlankToNone = Field(default=None, alias="vehicleId")
    occupancy_status: Occupancy = Field(
        default=OccupancyStatus.unknown, alias="occupancyStatus"
    )
    historical_occupancy: Occupancy = Field(
        default=OccupancyStatus.unknown, alias="historicalOccupancy"
    )
    predicted_occupancy: Occupancy = Field(
        default=OccupancyStatus.unknown, alias="predictedOccupancy"
    )
    route_short_name_override: BlankToNone = Field(default=None, alias="routeShortName")
    route_long_name_override: BlankToNone = Field(default=None, alias="routeLongName")
    trip_headsign_override: BlankToNone = Field(default=None, alias="tripHeadsign")
    trip_status: Optional[TripStatus] = Field(default=None, alias="tripStatus")

    # Resolved
    route: Optional[Route] = Field(default=None, exclude=True)
    stop: Optional[Stop] = Field(default=None, exclude=True)
    trip: Optional[Trip] = Field(default=None, exclude=True)
    service_alerts: list[Situation] = Field(default_factory=list, exclude=True)

    # -- Identity -----------------------------------------------------------

    @property
    def visit_key(self) -> VisitKey:
        """(stop, trip, route): one vehicle visit at one stop."""
        return (self.stop_id, self.trip_id, self.route_id)

    @property
    def id(self) -> str:
        return (
            f"stop={self.stop_id},trip={self.trip_id},route={self.route_id},"
            f"status={self.arrival_departure_status.value}"
        )

    # -- Names --------------------------------------------------------------

    @property
    def route_short_name(self) -> Optional[str]:
        if self.route_short_name_override:
            return self.route_short_name_override
        return self.route.short_name if self.route else None

    @property
    def route_long_name(self) -> Optional[str]:
        if self.route_long_name_override:
            return self.route_long_name_override
        return self.route.long_name if self.route else None

    @property
    def route_name(self) -> Optional[str]:
        return self.route_long_name or self.route_short_name

    @property
    def trip_headsign(self) -> Optional[str]:
        if self.trip_headsign_override:
            return self.trip_headsign_override
        return self.trip.headsign if self.trip else None

    @property
    def route_and_headsign(self) -> str:
        return " - ".join(p for p in (self.route_name, self.trip_headsign) if p)

    # -- Times and statuses -------------------------------------------------

    @property
    def arrival_departure_status(self) -> ArrivalDepartureStatus:
        return temporal.arrival_departure_status(self.stop_sequence)

    @property
    def arrival_departure_date(self) -> datetime:
        """The single best timestamp to display for this record."""
        return temporal.best_date(
            self.arrival_departure_status,
            self.scheduled_arrival,
            self.scheduled_departure,
            self.predicted_arrival,
            self.predicted_departure,
        )

    @property
    def scheduled_date(self) -> datetime:
        return temporal.scheduled_date(
            self.arrival_departure_status,
            self.scheduled_arrival,
            self.scheduled_departure,
        )

    @property
    def raw_deviation_from_schedule_minutes(self) -> float:
        return temporal.raw_deviation_minutes(
            self.arrival_departure_date, self.scheduled_departure
        )

    @property
    def deviation_from_schedule_minutes(self) -> int:
        return temporal.round_half_away_from_zero(self.raw_deviation_from_schedule_minutes)

    @property
    def schedule_status(self) -> ScheduleStatus:
        return temporal.schedule_status_for(
            self.raw_deviation_from_schedule_minutes, self.predicted
        )

    @property
    def is_last_stop_on_trip(self) -> Optional[bool]:
        if self.total_stops_in_trip is None:
            return None
        return self.stop_sequence == self.total_stops_in_trip - 1

    def minutes_from_now(self, now: datetime) -> int:
        return temporal.compute_minutes(self.arrival_departure_date, now)

    def temporal_state(self, now: datetime) -> TemporalState:
        return temporal.temporal_state_for(self.minutes_from_now(now))

    def classify(self, now: datetime) -> TemporalClassification:
        return temporal.classify(
            scheduled_arrival=self.scheduled_arrival,
            scheduled_departure=self.scheduled_departure,
            predicted_arrival=self.predicted_arrival,
            predicted_departure=self.predicted_departure,
            stop_sequence=self.stop_sequence,
            now=now,
            predicted=self.predicted,
        )


class StopArrivals(WireModel):
    """Entry of an arrivals-and-departures-for-stop response."""

    stop_id: str = Field(alias="stopId")
    arrivals_and_departures: list[ArrivalDeparture] = Field(
        default_factory=list, alias="arrivalsAndDepartures"
    )
    nearby_stop_ids: list[str] = Field(default_factory=list, alias="nearbyStopIds")
    situation_ids: list[str] = Field(default_factory=list, alias="situationIds")

    # Resolved
    stop: Optional[Stop] = Field(default=None, exclude=True)
    nearby_stops: list[Stop] = Field(default_factory=list, exclude=True)
    service_alerts: list[Situation] = Field(default_factory=list, exclude=True)
