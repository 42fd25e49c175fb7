"""
Pure survey selection logic.

No I/O. Takes the candidate surveys, the screen the rider is looking at,
and a completion store, and returns the one survey to show (or None).
Per-user completion state lives in the store and is only read here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from transitcore.surveys import Survey, assume_utc

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_INTERVAL = 3


class SurveyContext(BaseModel):
    """Where the survey would be shown: a stop page or the map."""

    model_config = ConfigDict(frozen=True)

    stop_id: Optional[str] = None
    route_ids: list[str] = Field(default_factory=list)
    on_map: bool = False

    @classmethod
    def for_stop(cls, stop_id: Optional[str], route_ids: Iterable[str] = ()) -> "SurveyContext":
        return cls(stop_id=stop_id, route_ids=list(route_ids), on_map=False)

    @classmethod
    def for_map(cls) -> "SurveyContext":
        return cls(on_map=True)


class CompletionStore(Protocol):
    """Per-user survey state, keyed by (survey_id, user_id)."""

    def is_survey_completed(self, survey_id: int, user_id: str) -> bool: ...

    def should_show_survey_later(self, survey_id: int, user_id: str) -> bool: ...

    def mark_completed(self, survey_id: int, user_id: str) -> None: ...

    def mark_for_later(self, survey_id: int, user_id: str) -> None: ...

    def dismiss(self, survey_id: int, user_id: str) -> None: ...


class InMemoryCompletionStore:
    """
    Completion store held in process memory.

    A survey marked "later" remembers the app-launch count at the time it
    was deferred and resurfaces when the launches since then are a positive
    multiple of reminder_interval. Dismissed surveys count as handled.

    Not thread-safe: callers must serialize reads and writes.
    """

    def __init__(self, reminder_interval: int = DEFAULT_REMINDER_INTERVAL) -> None:
        if reminder_interval < 1:
            raise ValueError("reminder_interval must be at least 1")
        self._reminder_interval = reminder_interval
        self._app_launch_count = 0
        self._completed: set[tuple[int, str]] = set()
        self._skipped: set[tuple[int, str]] = set()
        self._later: dict[tuple[int, str], int] = {}

    @property
    def app_launch_count(self) -> int:
        return self._app_launch_count

    def increment_app_launch_count(self) -> int:
        self._app_launch_count += 1
        return self._app_launch_count

    def is_survey_completed(self, survey_id: int, user_id: str) -> bool:
        key = (survey_id, user_id)
        return key in self._completed or key in self._skipped

    def should_show_survey_later(self, survey_id: int, user_id: str) -> bool:
        marked_at = self._later.get((survey_id, user_id))
        if marked_at is None:
            return False
        since = self._app_launch_count - marked_at
        return since > 0 and since % self._reminder_interval == 0

    def mark_completed(self, survey_id: int, user_id: str) -> None:
        key = (survey_id, user_id)
        self._completed.add(key)
        self._later.pop(key, None)

    def mark_for_later(self, survey_id: int, user_id: str) -> None:
        self._later[(survey_id, user_id)] = self._app_launch_count

    def dismiss(self, survey_id: int, user_id: str) -> None:
        key = (survey_id, user_id)
        self._skipped.add(key)
        self._later.pop(key, None)


def is_visible_in_context(survey: Survey, context: SurveyContext, now: datetime) -> bool:
    """
    Filtering stage: question count, activity window and screen visibility.

    On a stop page the survey needs show_on_stops and either no allow-lists
    at all, the stop in the stop list, or one of the routes in the route list.
    """
    if not survey.questions:
        return False

    if context.on_map:
        return survey.should_show_on_map(now)

    if survey.should_show_on_stop(context.stop_id, now):
        return True
    return any(survey.should_show_on_route(route_id, now) for route_id in context.route_ids)


def select_survey(
    candidates: Iterable[Survey],
    context: SurveyContext,
    completion_store: CompletionStore,
    user_id: str,
    now: Optional[datetime] = None,
) -> Optional[Survey]:
    """
    Pick the survey to show in context, or None.

    Args:
        candidates: Surveys in server order.
        context: Stop page or map.
        completion_store: Read for completed/deferred state; never written.
        user_id: Rider identifier the store is keyed by.
        now: Reference timestamp; defaults to the current UTC time. Naive
            values are taken as UTC.

    Returns:
        A single-response always-visible survey the rider hasn't answered,
        as soon as one is found. Otherwise the first one-time survey that is
        unanswered or due again after "later", else the last repeatable
        always-visible survey, else None.
    """
    now = assume_utc(now) if now is not None else datetime.now(timezone.utc)

    one_time: Optional[Survey] = None
    repeatable: Optional[Survey] = None

    for survey in candidates:
        if not is_visible_in_context(survey, context, now):
            continue

        completed = completion_store.is_survey_completed(survey.id, user_id)

        if not survey.always_visible:
            if one_time is None and (
                not completed or completion_store.should_show_survey_later(survey.id, user_id)
            ):
                one_time = survey
        elif not survey.allows_multiple_responses:
            if not completed:
                logger.debug("Selected always-visible survey %d", survey.id)
                return survey
        else:
            repeatable = survey

    selected = one_time if one_time is not None else repeatable
    if selected is not None:
        logger.debug("Selected survey %d", selected.id)
    return selected


class SurveySelector:
    """Survey selection bound to one completion store and rider."""

    def __init__(self, completion_store: CompletionStore, user_id: str) -> None:
        self._store = completion_store
        self._user_id = user_id

    @property
    def user_id(self) -> str:
        return self._user_id

    def select(
        self,
        candidates: Iterable[Survey],
        context: SurveyContext,
        now: Optional[datetime] = None,
    ) -> Optional[Survey]:
        return select_survey(candidates, context, self._store, self._user_id, now)

    def mark_completed(self, survey_id: int) -> None:
        self._store.mark_completed(survey_id, self._user_id)

    def mark_for_later(self, survey_id: int) -> None:
        self._store.mark_for_later(survey_id, self._user_id)

    def dismiss(self, survey_id: int) -> None:
        self._store.dismiss(survey_id, self._user_id)
