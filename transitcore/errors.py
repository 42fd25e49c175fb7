"""
Error taxonomy for payload decoding and reference resolution.

Both errors mean the whole server response should be treated as failed.
Missing *optional* references are never errors.
"""

from __future__ import annotations

from typing import Optional


class TransitDataError(Exception):
    """Base class for structurally inconsistent or undecodable transit data."""


class MalformedPayload(TransitDataError):
    """Raised when a payload (or an entity inside it) fails basic decoding."""

    def __init__(self, message: str, entity: Optional[str] = None):
        super().__init__(message)
        self.entity = entity


class DanglingRequiredReference(TransitDataError):
    """Raised when a required foreign key has no matching reference pool entry."""

    def __init__(self, entity: str, field: str, ref_id: Optional[str]):
        super().__init__(
            f"{entity}.{field} references {ref_id!r}, which is not in the references block"
        )
        self.entity = entity
        self.field = field
        self.ref_id = ref_id
