"""Tests for wire model decoding and derived properties."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conftest import (
    NOW,
    arrival_json,
    ms,
    references_json,
    route_json,
    situation_json,
    stop_json,
)
from transitcore.models import (
    ArrivalDeparture,
    Consequence,
    Direction,
    RouteType,
    Situation,
    StopLocationType,
    TimeWindow,
    WheelchairBoarding,
    optional_epoch_ms,
)
from transitcore.references import build_pool
from transitcore.resolver import resolve
from transitcore.temporal import ScheduleStatus, TemporalState


class TestEpochConversion:
    def test_cutoff(self):
        assert optional_epoch_ms(0) is None
        assert optional_epoch_ms(999) is None
        assert optional_epoch_ms(1000) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    def test_passes_through_non_numbers(self):
        assert optional_epoch_ms(None) is None


class TestStop:
    def test_direction_and_enums(self):
        pool = build_pool(references_json(stops=[stop_json()]))
        stop = pool.stop_with_id("S1")
        assert stop.direction == Direction.n
        assert stop.location_type == StopLocationType.stop
        assert stop.wheelchair_boarding == WheelchairBoarding.accessible

    def test_unknown_direction(self):
        raw = stop_json()
        raw["direction"] = "upstream"
        stop = build_pool(references_json(stops=[raw])).stop_with_id("S1")
        assert stop.direction == Direction.unknown

    def test_prioritized_route_type(self):
        pool = build_pool(
            references_json(
                routes=[route_json("R1", route_type=3), route_json("R2", route_type=4)],
                stops=[stop_json(route_ids=["R1", "R2"])],
            )
        )
        stop = resolve(pool.stop_with_id("S1"), pool)
        assert stop.route_types == {RouteType.bus, RouteType.ferry}
        assert stop.prioritized_route_type == RouteType.ferry

    def test_unresolved_stop_has_unknown_route_type(self):
        stop = build_pool(references_json()).stop_with_id("S1")
        assert stop.prioritized_route_type == RouteType.unknown


class TestSituation:
    def test_open_ended_window(self):
        window = TimeWindow.model_validate({"from": int(NOW.timestamp()) - 60, "to": 0})
        assert window.contains(NOW)
        assert not window.contains(NOW - timedelta(hours=1))

    def test_closed_window(self):
        start = int(NOW.timestamp())
        window = TimeWindow.model_validate({"from": start, "to": start + 600})
        assert window.contains(NOW + timedelta(minutes=5))
        assert not window.contains(NOW + timedelta(minutes=11))

    def test_is_active(self):
        start = int(NOW.timestamp())
        alert = Situation.model_validate(
            situation_json(active_windows=[(start + 3600, start + 7200)])
        )
        assert not alert.is_active(NOW)
        assert alert.is_active(NOW + timedelta(minutes=90))
        assert alert.summary.value == "Detour on Pine St"

    def test_diversion_stop_ids(self):
        consequence = Consequence.model_validate(
            {"condition": "detour", "conditionDetails": {"diversionStopIds": ["S7", "S8"]}}
        )
        assert consequence.diversion_stop_ids == ["S7", "S8"]
        assert Consequence(condition="detour").diversion_stop_ids == []


class TestArrivalDeparture:
    def test_identity(self):
        record = ArrivalDeparture.model_validate(arrival_json(stop_sequence=0))
        assert record.visit_key == ("S1", "T1", "R1")
        assert record.id == "stop=S1,trip=T1,route=R1,status=departing"

    def test_derived_times(self):
        record = ArrivalDeparture.model_validate(
            arrival_json(
                scheduled=NOW + timedelta(minutes=4),
                predicted_time=NOW + timedelta(minutes=3),
            )
        )
        assert record.arrival_departure_date == NOW + timedelta(minutes=3)
        assert record.scheduled_date == NOW + timedelta(minutes=4)
        assert record.minutes_from_now(NOW) == 3
        assert record.temporal_state(NOW) == TemporalState.future
        assert record.deviation_from_schedule_minutes == -1
        assert record.schedule_status == ScheduleStatus.on_time

    def test_predicted_flag_drives_schedule_status(self):
        # Server sent a predicted time but flagged the record as not real-time.
        record = ArrivalDeparture.model_validate(
            arrival_json(predicted_time=NOW + timedelta(minutes=30), predicted=False)
        )
        assert record.schedule_status == ScheduleStatus.unknown
        assert record.classify(NOW).schedule_status == ScheduleStatus.unknown

    def test_last_stop_on_trip(self):
        last = ArrivalDeparture.model_validate(arrival_json(stop_sequence=19))
        assert last.is_last_stop_on_trip is True
        middle = ArrivalDeparture.model_validate(arrival_json(stop_sequence=5))
        assert middle.is_last_stop_on_trip is False
        unknown = ArrivalDeparture.model_validate(arrival_json(totalStopsInTrip=None))
        assert unknown.is_last_stop_on_trip is None

    def test_frozen(self):
        record = ArrivalDeparture.model_validate(arrival_json())
        with pytest.raises(ValidationError):
            record.predicted = True

    def test_last_update_time(self):
        record = ArrivalDeparture.model_validate(
            arrival_json(predicted_time=NOW + timedelta(minutes=1))
        )
        assert record.last_updated == datetime.fromtimestamp(ms(NOW) / 1000, tz=timezone.utc)
