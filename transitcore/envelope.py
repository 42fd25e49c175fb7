"""
Decoding of the REST response envelope.

    {code, currentTime, text, version,
     data: {entry | list, references, limitExceeded, outOfRange}}

The references block is decoded first, then the primary entity (or list of
entities), which is then resolved against the pool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from transitcore.errors import MalformedPayload
from transitcore.models import StopArrivals
from transitcore.references import ReferencePool, build_pool
from transitcore.resolver import resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _EnvelopeHeader(BaseModel):
    code: int
    version: int
    current_time: Optional[int] = Field(default=None, alias="currentTime")
    text: Optional[str] = None


@dataclass(frozen=True)
class RESTResponse(Generic[T]):
    """A decoded, resolved server response."""

    code: int
    version: int
    current_time: Optional[int]
    text: Optional[str]
    entry: T
    references: ReferencePool
    limit_exceeded: Optional[bool] = None
    out_of_range: Optional[bool] = None

    @property
    def list(self) -> T:
        """Alias of entry, for responses that carry a list."""
        return self.entry


def decode_response(
    payload: Any, entity_type: type, many: bool = False
) -> RESTResponse:
    """
    Decode and resolve a REST envelope.

    Args:
        payload: Parsed JSON body.
        entity_type: Model class of the primary entity.
        many: True when data.list / data.entry holds a list of entity_type.

    Returns:
        RESTResponse whose entry has its references resolved.

    Raises:
        MalformedPayload: the envelope, references or entry fail to decode.
        DanglingRequiredReference: the entry points at a missing reference.
    """
    if not isinstance(payload, Mapping):
        raise MalformedPayload("response body must be a JSON object", entity="envelope")

    try:
        header = _EnvelopeHeader.model_validate(payload)
    except ValidationError as exc:
        raise MalformedPayload(f"invalid response envelope: {exc}", entity="envelope") from exc

    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise MalformedPayload("response is missing its data object", entity="envelope")

    pool = build_pool(data.get("references"))

    raw_entry = data.get("entry")
    if raw_entry is None:
        raw_entry = data.get("list")
    if raw_entry is None:
        raise MalformedPayload("response data has neither entry nor list", entity="envelope")

    target = list[entity_type] if many else entity_type
    try:
        decoded = TypeAdapter(target).validate_python(raw_entry)
    except ValidationError as exc:
        raise MalformedPayload(
            f"invalid {entity_type.__name__} payload: {exc}",
            entity=entity_type.__name__,
        ) from exc

    return RESTResponse(
        code=header.code,
        version=header.version,
        current_time=header.current_time,
        text=header.text,
        entry=resolve(decoded, pool),
        references=pool,
        limit_exceeded=data.get("limitExceeded"),
        out_of_range=data.get("outOfRange"),
    )


def decode_arrivals_for_stop(payload: Any) -> RESTResponse[StopArrivals]:
    """Decode an arrivals-and-departures-for-stop response."""
    return decode_response(payload, StopArrivals)
