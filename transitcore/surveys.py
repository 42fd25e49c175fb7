"""
Pydantic models for rider surveys.

Wire names are snake_case already. Question content is a discriminated
union on `type`; an unknown type fails validation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field


def assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UTCDatetime = Annotated[datetime, AfterValidator(assume_utc)]
OptionalUTCDatetime = Annotated[Optional[datetime], AfterValidator(assume_utc)]


class LabelContent(BaseModel):
    type: Literal["label"] = "label"
    label_text: str

    @property
    def display_text(self) -> str:
        return self.label_text


class RadioContent(BaseModel):
    type: Literal["radio"] = "radio"
    label_text: str
    options: list[str]

    @property
    def display_text(self) -> str:
        return self.label_text


class CheckboxContent(BaseModel):
    type: Literal["checkbox"] = "checkbox"
    label_text: str
    options: list[str]

    @property
    def display_text(self) -> str:
        return self.label_text


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    label_text: str

    @property
    def display_text(self) -> str:
        return self.label_text


QuestionContent = Annotated[
    Union[LabelContent, RadioContent, CheckboxContent, TextContent],
    Field(discriminator="type"),
]


class SurveyQuestion(BaseModel):
    id: int
    position: int
    required: bool = False
    content: QuestionContent

    @property
    def can_be_skipped(self) -> bool:
        return not self.required


class Study(BaseModel):
    id: int
    name: str
    description: str = ""


class Survey(BaseModel):
    """A rider survey and its visibility policy."""

    id: int
    name: str
    created_at: Optional[UTCDatetime] = None
    updated_at: Optional[UTCDatetime] = None
    start_date: OptionalUTCDatetime = None
    end_date: OptionalUTCDatetime = None
    show_on_map: bool = False
    show_on_stops: bool = False
    visible_stop_list: Optional[list[str]] = None
    visible_route_list: Optional[list[str]] = None
    allows_multiple_responses: bool = False
    always_visible: bool = False
    study: Optional[Study] = None
    questions: list[SurveyQuestion] = Field(default_factory=list)

    @property
    def hero_question(self) -> Optional[SurveyQuestion]:
        """The first question, shown inline before the rest of the survey."""
        return self.questions[0] if self.questions else None

    @property
    def remaining_questions(self) -> list[SurveyQuestion]:
        return self.questions[1:]

    def is_active(self, now: datetime) -> bool:
        if self.start_date is not None and now < self.start_date:
            return False
        if self.end_date is not None and now > self.end_date:
            return False
        return True

    @property
    def is_unrestricted(self) -> bool:
        """True when neither allow-list was sent. An empty list restricts to nothing."""
        return self.visible_stop_list is None and self.visible_route_list is None

    def should_show_on_stop(self, stop_id: Optional[str], now: datetime) -> bool:
        if not self.show_on_stops or not self.is_active(now):
            return False
        if self.is_unrestricted:
            return True
        return stop_id is not None and stop_id in (self.visible_stop_list or ())

    def should_show_on_route(self, route_id: str, now: datetime) -> bool:
        if not self.show_on_stops or not self.is_active(now):
            return False
        if self.is_unrestricted:
            return True
        return route_id in (self.visible_route_list or ())

    def should_show_on_map(self, now: datetime) -> bool:
        return self.show_on_map and self.is_active(now)


class SurveyRegion(BaseModel):
    id: int
    name: str


class SurveysResponse(BaseModel):
    """Envelope of the surveys endpoint."""

    surveys: list[Survey] = Field(default_factory=list)
    region: Optional[SurveyRegion] = None


class SurveyQuestionResponse(BaseModel):
    question_id: int
    question_type: str
    question_label: str
    answer: str

    @classmethod
    def for_question(cls, question: SurveyQuestion, answer: str) -> "SurveyQuestionResponse":
        return cls(
            question_id=question.id,
            question_type=question.content.type,
            question_label=question.content.display_text,
            answer=answer,
        )


class SurveyResponse(BaseModel):
    """A rider's answers, as submitted back to the survey server."""

    user_identifier: str
    survey_id: int
    stop_identifier: Optional[str] = None
    stop_latitude: Optional[float] = None
    stop_longitude: Optional[float] = None
    response: list[SurveyQuestionResponse] = Field(default_factory=list)
