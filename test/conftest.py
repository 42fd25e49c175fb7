"""
Shared test fixtures for transitcore.

Provides:
- Payload builders for references, arrivals and surveys (plain functions,
  importable from tests)
- Temporary config files
"""

from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2026, 2, 13, 12, 0, 0, tzinfo=timezone.utc)


def ms(when: datetime) -> int:
    """Epoch milliseconds for an aware datetime."""
    return int(when.timestamp() * 1000)


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

def agency_json(agency_id="1", name="Metro Transit"):
    return {"id": agency_id, "name": name, "url": "https://metro.example", "timezone": "America/Los_Angeles"}


def route_json(route_id="R1", short_name="10", long_name="", agency_id="1", route_type=3):
    return {
        "id": route_id,
        "agencyId": agency_id,
        "shortName": short_name,
        "longName": long_name,
        "type": route_type,
        "color": "",
        "textColor": "",
    }


def stop_json(stop_id="S1", name="Pine St & 3rd Ave", route_ids=("R1",)):
    return {
        "id": stop_id,
        "name": name,
        "lat": 47.61,
        "lon": -122.34,
        "code": stop_id,
        "direction": "N",
        "locationType": 0,
        "routeIds": list(route_ids),
        "wheelchairBoarding": "accessible",
    }


def trip_json(trip_id="T1", route_id="R1", headsign="Downtown"):
    return {
        "id": trip_id,
        "routeId": route_id,
        "serviceId": "WKD",
        "blockId": "B1",
        "tripHeadsign": headsign,
    }


def situation_json(situation_id="A1", summary="Detour on Pine St", active_windows=()):
    return {
        "id": situation_id,
        "creationTime": ms(NOW - timedelta(days=1)),
        "severity": "noImpact",
        "summary": {"lang": "en", "value": summary},
        "activeWindows": [{"from": start, "to": end} for start, end in active_windows],
        "allAffects": [{"stopId": "S1"}],
        "consequences": [],
    }


def references_json(agencies=None, routes=None, stops=None, trips=None, situations=None):
    return {
        "agencies": [agency_json()] if agencies is None else agencies,
        "routes": [route_json()] if routes is None else routes,
        "stops": [stop_json()] if stops is None else stops,
        "trips": [trip_json()] if trips is None else trips,
        "situations": [] if situations is None else situations,
    }


# ---------------------------------------------------------------------------
# Arrivals
# ---------------------------------------------------------------------------

def arrival_json(
    route_id="R1",
    stop_id="S1",
    trip_id="T1",
    stop_sequence=1,
    scheduled=NOW + timedelta(minutes=10),
    predicted_time=None,
    predicted=None,
    vehicle_id="",
    situation_ids=(),
    **extra,
):
    """
    One arrivalAndDeparture record. Scheduled arrival and departure share
    the same time; predicted_time, if given, fills both predicted fields.
    """
    if predicted is None:
        predicted = predicted_time is not None
    record = {
        "arrivalEnabled": stop_sequence > 0,
        "departureEnabled": True,
        "distanceFromStop": 1200.5,
        "lastUpdateTime": ms(NOW) if predicted else 0,
        "predicted": predicted,
        "predictedArrivalTime": ms(predicted_time) if predicted_time else 0,
        "predictedDepartureTime": ms(predicted_time) if predicted_time else 0,
        "scheduledArrivalTime": ms(scheduled),
        "scheduledDepartureTime": ms(scheduled),
        "routeId": route_id,
        "stopId": stop_id,
        "tripId": trip_id,
        "stopSequence": stop_sequence,
        "totalStopsInTrip": 20,
        "situationIds": list(situation_ids),
        "vehicleId": vehicle_id,
        "occupancyStatus": "",
        "historicalOccupancy": "",
        "status": "default",
    }
    record.update(extra)
    return record


def stop_arrivals_json(arrivals=(), stop_id="S1", nearby_stop_ids=(), situation_ids=()):
    return {
        "stopId": stop_id,
        "arrivalsAndDepartures": list(arrivals),
        "nearbyStopIds": list(nearby_stop_ids),
        "situationIds": list(situation_ids),
    }


def envelope_json(entry, references=None, key="entry"):
    return {
        "code": 200,
        "currentTime": ms(NOW),
        "text": "OK",
        "version": 2,
        "data": {
            key: entry,
            "references": references_json() if references is None else references,
            "limitExceeded": False,
            "outOfRange": False,
        },
    }


# ---------------------------------------------------------------------------
# Surveys
# ---------------------------------------------------------------------------

def question_json(question_id=1, position=1, kind="radio", label="How was your trip?", required=True):
    content = {"type": kind, "label_text": label}
    if kind in ("radio", "checkbox"):
        content["options"] = ["Good", "Okay", "Bad"]
    return {"id": question_id, "position": position, "required": required, "content": content}


def survey_json(
    survey_id=1,
    name="Rider survey",
    questions=None,
    show_on_map=True,
    show_on_stops=True,
    visible_stop_list=None,
    visible_route_list=None,
    always_visible=False,
    allows_multiple_responses=False,
    start_date=None,
    end_date=None,
):
    return {
        "id": survey_id,
        "name": name,
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:00:00Z",
        "start_date": start_date,
        "end_date": end_date,
        "show_on_map": show_on_map,
        "show_on_stops": show_on_stops,
        "visible_stop_list": visible_stop_list,
        "visible_route_list": visible_route_list,
        "allows_multiple_responses": allows_multiple_responses,
        "always_visible": always_visible,
        "study": {"id": 7, "name": "Winter study", "description": "Rider satisfaction"},
        "questions": [question_json()] if questions is None else questions,
    }


def surveys_envelope_json(surveys):
    return {"surveys": list(surveys), "region": {"id": 1, "name": "Puget Sound"}}


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@pytest.fixture()
def config_file(tmp_path):
    """
    Write a temporary config.yaml with one stop that hides route R2.
    Returns the path to the config file.
    """
    config_content = """\
survey_reminder_interval: 3
deduplicate_terminals: true

stops:
  - key: "home"
    stop_id: "S1"
    hidden_route_ids: ["R2"]
    sort: "time"
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return str(config_path)
