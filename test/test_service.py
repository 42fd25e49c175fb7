"""Tests for ArrivalsService and SurveyService (no HTTP)."""

from datetime import timedelta

import pytest

from conftest import (
    NOW,
    arrival_json,
    envelope_json,
    references_json,
    route_json,
    situation_json,
    stop_arrivals_json,
    stop_json,
    survey_json,
    surveys_envelope_json,
    trip_json,
)
from transitcore.config import AppConfig, StopPreferencesConfig
from transitcore.errors import DanglingRequiredReference, MalformedPayload
from transitcore.service import ArrivalsService, SurveyService
from transitcore.temporal import ArrivalDepartureStatus, ScheduleStatus, TemporalState


def _references():
    return references_json(
        routes=[
            route_json("R1", short_name="10"),
            route_json("R2", short_name="49"),
            route_json("R3", short_name="8"),
        ],
        stops=[stop_json("S1", route_ids=["R1", "R2", "R3"]), stop_json("S2", name="Pike St")],
        trips=[
            trip_json("T1"),
            trip_json("T2", route_id="R2", headsign="U District"),
            trip_json("T3", route_id="R3", headsign="Seattle Center"),
            trip_json("T4"),
        ],
        situations=[
            situation_json("A1", summary="Elevator out"),
            situation_json("A2", summary="Old detour", active_windows=[(1, 2)]),
        ],
    )


def _payload(arrivals, **kwargs):
    return envelope_json(stop_arrivals_json(arrivals, **kwargs), _references())


def _config(**kwargs):
    return AppConfig(survey_user_id="rider-1", **kwargs)


class TestArrivalsService:
    def test_rows_carry_temporal_state(self):
        service = ArrivalsService(_config())
        payload = _payload(
            [
                arrival_json(
                    scheduled=NOW + timedelta(minutes=5),
                    predicted_time=NOW + timedelta(minutes=7),
                )
            ]
        )
        result = service.build_arrivals(payload, now=NOW)
        row = result.rows[0]
        assert result.stop_id == "S1"
        assert result.stop_name == "Pine St & 3rd Ave"
        assert row.status == ArrivalDepartureStatus.arriving
        assert row.minutes_from_now == 7
        assert row.temporal_state == TemporalState.future
        assert row.schedule_status == ScheduleStatus.delayed
        assert row.deviation_minutes == 2
        assert row.route_and_headsign == "10 - Downtown"

    def test_terminal_duplicates_collapsed(self):
        service = ArrivalsService(_config())
        payload = _payload(
            [
                arrival_json(stop_sequence=0, predicted=False),
                arrival_json(stop_sequence=14, predicted_time=NOW + timedelta(minutes=10)),
            ]
        )
        result = service.build_arrivals(payload, now=NOW)
        assert len(result.rows) == 1
        assert result.rows[0].predicted is True

    def test_deduplication_can_be_disabled(self):
        service = ArrivalsService(_config(deduplicate_terminals=False))
        payload = _payload([arrival_json(stop_sequence=0), arrival_json(stop_sequence=14)])
        assert len(service.build_arrivals(payload, now=NOW).rows) == 2

    def test_hidden_routes_from_stop_preferences(self):
        config = _config(stops=[StopPreferencesConfig(key="home", stop_id="S1", hidden_route_ids=["R2"])])
        service = ArrivalsService(config)
        payload = _payload([arrival_json(), arrival_json(route_id="R2", trip_id="T2")])
        result = service.build_arrivals(payload, now=NOW)
        assert [r.route_id for r in result.rows] == ["R1"]
        assert result.stop_key == "home"
        assert result.hidden_route_ids == ["R2"]

    def test_unknown_stop_key(self):
        service = ArrivalsService(_config())
        assert service.build_arrivals(_payload([]), stop_key="nope", now=NOW) is None

    def test_sorted_by_time(self):
        service = ArrivalsService(_config())
        payload = _payload(
            [
                arrival_json(trip_id="T1", scheduled=NOW + timedelta(minutes=20)),
                arrival_json(route_id="R2", trip_id="T2", scheduled=NOW + timedelta(minutes=3)),
            ]
        )
        result = service.build_arrivals(payload, now=NOW)
        assert [r.trip_id for r in result.rows] == ["T2", "T1"]

    def test_sorted_by_route(self):
        config = _config(stops=[StopPreferencesConfig(key="home", stop_id="S1", sort="route")])
        service = ArrivalsService(config)
        payload = _payload(
            [
                arrival_json(route_id="R2", trip_id="T2", scheduled=NOW + timedelta(minutes=1)),
                arrival_json(trip_id="T1", scheduled=NOW + timedelta(minutes=2)),
                arrival_json(route_id="R3", trip_id="T3", scheduled=NOW + timedelta(minutes=3)),
                arrival_json(trip_id="T4", scheduled=NOW + timedelta(minutes=4)),
            ]
        )
        result = service.build_arrivals(payload, stop_key="home", now=NOW)
        assert result.sort == "route"
        assert [r.trip_id for r in result.rows] == ["T1", "T4", "T2", "T3"]

    def test_only_active_alerts(self):
        service = ArrivalsService(_config())
        payload = _payload([], situation_ids=["A1", "A2", "A404"], nearby_stop_ids=["S2"])
        result = service.build_arrivals(payload, now=NOW)
        assert [a.id for a in result.alerts] == ["A1"]
        assert result.alerts[0].summary == "Elevator out"
        assert result.nearby_stop_ids == ["S2"]

    def test_dangling_reference_raises(self):
        service = ArrivalsService(_config())
        with pytest.raises(DanglingRequiredReference):
            service.build_arrivals(_payload([arrival_json(trip_id="T404")]), now=NOW)

    def test_malformed_payload_raises(self):
        service = ArrivalsService(_config())
        with pytest.raises(MalformedPayload):
            service.build_arrivals({"code": 200}, now=NOW)


class TestSurveyService:
    @pytest.fixture()
    def service(self):
        service = SurveyService(_config(survey_reminder_interval=2))
        service.load_surveys(
            surveys_envelope_json(
                [
                    survey_json(1, visible_stop_list=["S1"], show_on_map=False),
                    survey_json(2, show_on_stops=False, show_on_map=True),
                ]
            )
        )
        return service

    def test_load_returns_count(self):
        service = SurveyService(_config())
        assert service.load_surveys(surveys_envelope_json([survey_json(1)])) == 1

    def test_load_rejects_bad_payload(self):
        service = SurveyService(_config())
        with pytest.raises(MalformedPayload):
            service.load_surveys({"surveys": [{"id": "x"}]})

    def test_stop_context(self, service):
        result = service.next_survey(stop_id="S1", now=NOW)
        assert result.survey.id == 1
        assert result.hero_question_id == 1

    def test_map_context(self, service):
        assert service.next_survey(now=NOW).survey.id == 2

    def test_no_survey(self, service):
        assert service.next_survey(stop_id="S9", now=NOW).survey is None

    def test_complete_hides_survey(self, service):
        service.mark_completed(1)
        assert service.next_survey(stop_id="S1", now=NOW).survey is None

    def test_later_resurfaces_after_launches(self, service):
        service.mark_completed(1)
        service.mark_for_later(1)
        service.app_launched()
        assert service.next_survey(stop_id="S1", now=NOW).survey is None
        service.app_launched()
        assert service.next_survey(stop_id="S1", now=NOW).survey.id == 1

    def test_dismiss(self, service):
        service.dismiss(2)
        assert service.next_survey(now=NOW).survey is None

    def test_has_survey(self, service):
        assert service.has_survey(1)
        assert not service.has_survey(99)
