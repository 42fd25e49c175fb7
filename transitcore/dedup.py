"""
List operations over resolved arrivals: terminal-duplicate filtering,
hidden-route filtering and grouping by route.

Terminal and layover stops can make the server emit two rows for one
vehicle visit, one tagged as an arrival and one as a departure. Riders see
them as the same row, so they collapse to one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from transitcore.models import ArrivalDeparture, Route, VisitKey

logger = logging.getLogger(__name__)


def _should_replace(existing: ArrivalDeparture, candidate: ArrivalDeparture) -> bool:
    """Real-time beats scheduled-only; otherwise the first-seen record stays."""
    return not existing.predicted and candidate.predicted


def filter_terminal_duplicates(
    records: Iterable[ArrivalDeparture],
) -> list[ArrivalDeparture]:
    """
    Remove duplicate visits, keyed by (stop_id, trip_id, route_id).

    Single pass. The retained record for a key occupies the position of
    that key's first occurrence. Records on the same vehicle but different
    trips are distinct visits and are all kept.
    """
    seen: dict[VisitKey, int] = {}
    result: list[ArrivalDeparture] = []
    dropped = 0

    for record in records:
        key = record.visit_key
        index = seen.get(key)
        if index is None:
            seen[key] = len(result)
            result.append(record)
            continue

        dropped += 1
        if _should_replace(result[index], record):
            result[index] = record

    if dropped:
        logger.debug("Collapsed %d terminal duplicate(s)", dropped)
    return result


def filter_hidden_routes(
    records: Iterable[ArrivalDeparture], hidden_route_ids: Iterable[str]
) -> list[ArrivalDeparture]:
    """Drop records whose route the rider has hidden for this stop."""
    hidden = set(hidden_route_ids)
    return [record for record in records if record.route_id not in hidden]


@dataclass
class RouteGroup:
    """Arrivals for one route, in input order."""

    route_id: str
    route: Optional[Route]
    arrivals: list[ArrivalDeparture] = field(default_factory=list)


def group_by_route(
    records: Iterable[ArrivalDeparture],
    hidden_route_ids: Iterable[str] = (),
    apply_filter: bool = False,
) -> list[RouteGroup]:
    """
    Group records by route, groups ordered by first appearance.

    Args:
        records: Resolved arrivals.
        hidden_route_ids: Routes hidden by stop preferences.
        apply_filter: Whether hidden routes are left out of the groups.
    """
    hidden = set(hidden_route_ids)
    groups: dict[str, RouteGroup] = {}

    for record in records:
        if apply_filter and record.route_id in hidden:
            continue
        group = groups.get(record.route_id)
        if group is None:
            group = RouteGroup(route_id=record.route_id, route=record.route)
            groups[record.route_id] = group
        group.arrivals.append(record)

    return list(groups.values())
