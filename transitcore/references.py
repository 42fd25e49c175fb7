"""
Reference pool: the shared lookup table delivered alongside a primary payload.

Built once per response from the `references` block, read-only afterwards.
Lookups accept None and return None (or an empty list) for missing IDs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from transitcore.errors import MalformedPayload
from transitcore.models import Agency, Route, Situation, Stop, Trip

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class ReferencePool:
    """Immutable ID -> entity lookup over one response's references block."""

    agencies: Mapping[str, Agency] = field(default_factory=_empty)
    routes: Mapping[str, Route] = field(default_factory=_empty)
    stops: Mapping[str, Stop] = field(default_factory=_empty)
    trips: Mapping[str, Trip] = field(default_factory=_empty)
    situations: Mapping[str, Situation] = field(default_factory=_empty)

    def agency_with_id(self, agency_id: Optional[str]) -> Optional[Agency]:
        if agency_id is None:
            return None
        return self.agencies.get(agency_id)

    def route_with_id(self, route_id: Optional[str]) -> Optional[Route]:
        if route_id is None:
            return None
        return self.routes.get(route_id)

    def routes_with_ids(self, route_ids: Iterable[str]) -> list[Route]:
        return _lookup_many(self.routes, route_ids, "route")

    def stop_with_id(self, stop_id: Optional[str]) -> Optional[Stop]:
        if stop_id is None:
            return None
        return self.stops.get(stop_id)

    def stops_with_ids(self, stop_ids: Iterable[str]) -> list[Stop]:
        return _lookup_many(self.stops, stop_ids, "stop")

    def trip_with_id(self, trip_id: Optional[str]) -> Optional[Trip]:
        if trip_id is None:
            return None
        return self.trips.get(trip_id)

    def situation_with_id(self, situation_id: Optional[str]) -> Optional[Situation]:
        if situation_id is None:
            return None
        return self.situations.get(situation_id)

    def situations_with_ids(self, situation_ids: Iterable[str]) -> list[Situation]:
        """
        Look up service alerts by ID.

        Alerts referenced by an entity are sometimes already expired and
        absent from the references block; those IDs are silently dropped.
        """
        return _lookup_many(self.situations, situation_ids, "situation")


def _lookup_many(table: Mapping[str, T], ids: Iterable[str], kind: str) -> list[T]:
    """Resolve ids in order, skipping unknown and repeated ones."""
    found: list[T] = []
    seen: set[str] = set()
    for ref_id in ids:
        if ref_id in seen:
            continue
        seen.add(ref_id)
        entity = table.get(ref_id)
        if entity is None:
            logger.debug("Dropping unknown %s reference %r", kind, ref_id)
            continue
        found.append(entity)
    return found


def _decode_collection(
    raw: Mapping[str, Any], key: str, model: type[T]
) -> Mapping[str, T]:
    items = raw.get(key)
    if items is None:
        return _empty()
    if not isinstance(items, list):
        raise MalformedPayload(
            f"references.{key} must be a list, got {type(items).__name__}",
            entity=key,
        )

    table: dict[str, T] = {}
    for index, item in enumerate(items):
        try:
            entity = model.model_validate(item)
        except ValidationError as exc:
            raise MalformedPayload(
                f"references.{key}[{index}] is not a valid {model.__name__}: {exc}",
                entity=model.__name__,
            ) from exc
        if entity.id in table:
            logger.warning(
                "Duplicate %s id %r in references; keeping first", model.__name__, entity.id
            )
            continue
        table[entity.id] = entity
    return MappingProxyType(table)


def build_pool(raw: Optional[Mapping[str, Any]]) -> ReferencePool:
    """
    Decode a references block into a ReferencePool.

    Args:
        raw: The `references` object of a response. None yields an empty pool.

    Returns:
        An immutable ReferencePool.

    Raises:
        MalformedPayload: if the block or any entity inside it fails to decode.
    """
    if raw is None:
        return ReferencePool()
    if not isinstance(raw, Mapping):
        raise MalformedPayload(
            f"references must be an object, got {type(raw).__name__}",
            entity="references",
        )

    pool = ReferencePool(
        agencies=_decode_collection(raw, "agencies", Agency),
        routes=_decode_collection(raw, "routes", Route),
        stops=_decode_collection(raw, "stops", Stop),
        trips=_decode_collection(raw, "trips", Trip),
        situations=_decode_collection(raw, "situations", Situation),
    )
    logger.debug(
        "Built reference pool: %d agencies, %d routes, %d stops, %d trips, %d situations",
        len(pool.agencies),
        len(pool.routes),
        len(pool.stops),
        len(pool.trips),
        len(pool.situations),
    )
    return pool
