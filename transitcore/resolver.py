"""
Entity graph resolver.

Attaches reference-pool entities to the primary entities that point at them
by ID. Resolution is a single flat pass: the attached entities are pool
members and are not themselves resolved, so there are no cycles to detect.
Each call returns a new frozen instance; list-valued resolved fields are
recomputed from their ID lists, which makes resolution idempotent.
"""

from __future__ import annotations

import logging
from functools import singledispatch
from typing import Optional, TypeVar

from transitcore.errors import DanglingRequiredReference
from transitcore.models import ArrivalDeparture, Route, Stop, StopArrivals, TripStatus
from transitcore.references import ReferencePool

logger = logging.getLogger(__name__)

E = TypeVar("E")


def _require(found: Optional[E], entity: str, field: str, ref_id: str) -> E:
    if found is None:
        logger.warning("Dangling required reference %s.%s -> %r", entity, field, ref_id)
        raise DanglingRequiredReference(entity, field, ref_id)
    return found


@singledispatch
def resolve(entity, pool: ReferencePool):
    """
    Return a copy of entity with its references resolved against pool.

    Lists are resolved element-wise.

    Raises:
        DanglingRequiredReference: if a required foreign key is not in the pool.
        TypeError: if entity is not a resolvable type.
    """
    raise TypeError(f"{type(entity).__name__} has no references to resolve")


@resolve.register(list)
def _resolve_list(entities: list, pool: ReferencePool) -> list:
    return [resolve(entity, pool) for entity in entities]


@resolve.register(Route)
def _resolve_route(route: Route, pool: ReferencePool) -> Route:
    return route.model_copy(update={"agency": pool.agency_with_id(route.agency_id)})


@resolve.register(Stop)
def _resolve_stop(stop: Stop, pool: ReferencePool) -> Stop:
    return stop.model_copy(update={"routes": pool.routes_with_ids(stop.route_ids)})


@resolve.register(TripStatus)
def _resolve_trip_status(status: TripStatus, pool: ReferencePool) -> TripStatus:
    return status.model_copy(
        update={
            "active_trip": _require(
                pool.trip_with_id(status.active_trip_id),
                "TripStatus",
                "activeTripId",
                status.active_trip_id,
            ),
            "closest_stop": _require(
                pool.stop_with_id(status.closest_stop_id),
                "TripStatus",
                "closestStop",
                status.closest_stop_id,
            ),
            "next_stop": pool.stop_with_id(status.next_stop_id),
            "service_alerts": pool.situations_with_ids(status.situation_ids),
        }
    )


@resolve.register(ArrivalDeparture)
def _resolve_arrival_departure(
    arrival: ArrivalDeparture, pool: ReferencePool
) -> ArrivalDeparture:
    trip_status = arrival.trip_status
    if trip_status is not None:
        trip_status = resolve(trip_status, pool)

    return arrival.model_copy(
        update={
            "route": _require(
                pool.route_with_id(arrival.route_id),
                "ArrivalDeparture",
                "routeId",
                arrival.route_id,
            ),
            "stop": _require(
                pool.stop_with_id(arrival.stop_id),
                "ArrivalDeparture",
                "stopId",
                arrival.stop_id,
            ),
            "trip": _require(
                pool.trip_with_id(arrival.trip_id),
                "ArrivalDeparture",
                "tripId",
                arrival.trip_id,
            ),
            "service_alerts": pool.situations_with_ids(arrival.situation_ids),
            "trip_status": trip_status,
        }
    )


@resolve.register(StopArrivals)
def _resolve_stop_arrivals(entry: StopArrivals, pool: ReferencePool) -> StopArrivals:
    return entry.model_copy(
        update={
            "stop": _require(
                pool.stop_with_id(entry.stop_id), "StopArrivals", "stopId", entry.stop_id
            ),
            "arrivals_and_departures": resolve(entry.arrivals_and_departures, pool),
            "nearby_stops": pool.stops_with_ids(entry.nearby_stop_ids),
            "service_alerts": pool.situations_with_ids(entry.situation_ids),
        }
    )
