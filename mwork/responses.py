"""Applications of models to castings: entity, errors and API objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .validation import ValidationError, check_length, check_one_of, check_range

UPDATABLE_STATUSES = ("viewed", "accepted", "rejected")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(moment: datetime) -> str:
    """Format a timestamp as RFC 3339 with seconds; naive times are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        return text[:-6] + "Z"
    return text


class ResponseStatus(str, Enum):
    """State of an application to a casting."""

    PENDING = "pending"
    VIEWED = "viewed"
    SHORTLISTED = "shortlisted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


_TRANSITIONS: dict[ResponseStatus, frozenset[ResponseStatus]] = {
    ResponseStatus.PENDING: frozenset({
        ResponseStatus.VIEWED, ResponseStatus.SHORTLISTED,
        ResponseStatus.ACCEPTED, ResponseStatus.REJECTED,
    }),
    ResponseStatus.VIEWED: frozenset({
        ResponseStatus.SHORTLISTED, ResponseStatus.ACCEPTED, ResponseStatus.REJECTED,
    }),
    ResponseStatus.SHORTLISTED: frozenset({ResponseStatus.ACCEPTED, ResponseStatus.REJECTED}),
    ResponseStatus.ACCEPTED: frozenset(),
    ResponseStatus.REJECTED: frozenset(),
}


def _as_status(value) -> Optional[ResponseStatus]:
    try:
        return ResponseStatus(value)
    except ValueError:
        return None


# ---- errors ----

class ResponseError(Exception):
    """Base class for casting response errors."""

    default_message = "response error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class ResponseNotFoundError(ResponseError):
    default_message = "response not found"


class AlreadyAppliedError(ResponseError):
    default_message = "you have already applied to this casting"


class CastingNotFoundError(ResponseError):
    default_message = "casting not found"


class CastingNotActiveError(ResponseError):
    default_message = "casting is not active"


class ProfileRequiredError(ResponseError):
    default_message = "you need to create a profile first"


class OnlyModelsCanApplyError(ResponseError):
    default_message = "only models can apply to castings"


class NotCastingOwnerError(ResponseError):
    default_message = "only the casting owner can manage responses"


class InvalidStatusTransitionError(ResponseError):
    default_message = "invalid status transition"


# ---- entity ----

@dataclass(kw_only=True)
class CastingResponse:
    """An application of a model profile to a casting."""

    casting_id: UUID
    model_id: UUID
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    message: Optional[str] = None
    proposed_rate: Optional[float] = None

    status: ResponseStatus = ResponseStatus.PENDING
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    rating_given: bool = False

    # Joined data, not stored with the response itself.
    casting_title: str = ""
    casting_city: str = ""
    model_name: str = ""

    def is_pending(self) -> bool:
        return self.status == ResponseStatus.PENDING

    def is_accepted(self) -> bool:
        return self.status == ResponseStatus.ACCEPTED

    def is_rejected(self) -> bool:
        return self.status == ResponseStatus.REJECTED

    def can_be_updated_to(self, new_status) -> bool:
        """Whether moving from the current status to ``new_status`` is allowed."""
        current = _as_status(self.status)
        target = _as_status(new_status)
        if current is None or target is None:
            return False
        return target in _TRANSITIONS[current]


# ---- requests ----

@dataclass(kw_only=True)
class ApplyRequest:
    """Body of a request that applies to a casting."""

    message: str = ""
    proposed_rate: Optional[float] = None

    @classmethod
    def from_dict(cls, data):
        """Decode a body; ``None`` stands for an empty body."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError({"body": "must be a JSON object"})
        message = data.get("message")
        if message is None:
            message = ""
        elif not isinstance(message, str):
            raise ValidationError({"message": "must be a string"})
        rate = data.get("proposed_rate")
        if rate is not None:
            if isinstance(rate, bool) or not isinstance(rate, (int, float)):
                raise ValidationError({"proposed_rate": "must be a number"})
            rate = float(rate)
        return cls(message=message, proposed_rate=rate)

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        check_length(errors, "message", self.message or None, None, 2000)
        check_range(errors, "proposed_rate", self.proposed_rate, 0, None)
        if errors:
            raise ValidationError(errors)
        return self


@dataclass(kw_only=True)
class UpdateStatusRequest:
    """Body of a request that changes a response's status."""

    status: str = ""

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, Mapping):
            raise ValidationError({"body": "must be a JSON object"})
        status = data.get("status")
        if status is None:
            status = ""
        elif not isinstance(status, str):
            raise ValidationError({"status": "must be a string"})
        return cls(status=status)

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        if not self.status:
            errors["status"] = "is required"
        else:
            check_one_of(errors, "status", self.status, UPDATABLE_STATUSES)
        if errors:
            raise ValidationError(errors)
        return self


# ---- responses ----

@dataclass(kw_only=True)
class ModelSummary:
    """Short view of a model embedded in a response."""

    id: UUID
    name: Optional[str] = None
    city: Optional[str] = None
    age: Optional[int] = None
    height: Optional[float] = None
    gender: Optional[str] = None
    rating: float = 0.0


@dataclass(kw_only=True)
class CastingSummary:
    """Short view of a casting embedded in a response."""

    id: UUID
    title: str
    city: str
    pay_range: str
    status: str


def _model_summary_dict(summary: ModelSummary) -> dict[str, Any]:
    result: dict[str, Any] = {"id": str(summary.id)}
    for key in ("name", "city", "age", "height", "gender"):
        value = getattr(summary, key)
        if value is not None:
            result[key] = value
    result["rating"] = summary.rating
    return result


@dataclass(kw_only=True)
class ResponseView:
    """A casting response as returned by the API."""

    id: UUID
    casting_id: UUID
    model_id: UUID
    status: str
    created_at: str
    updated_at: str
    message: Optional[str] = None
    proposed_rate: Optional[float] = None
    accepted_at: Optional[str] = None
    rejected_at: Optional[str] = None
    casting_title: str = ""
    casting_city: str = ""
    model_name: str = ""
    model: Optional[ModelSummary] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": str(self.id),
            "casting_id": str(self.casting_id),
            "model_id": str(self.model_id),
            "status": self.status,
        }
        for key in ("message", "proposed_rate", "accepted_at", "rejected_at"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result["created_at"] = self.created_at
        result["updated_at"] = self.updated_at
        for key in ("casting_title", "casting_city", "model_name"):
            value = getattr(self, key)
            if value:
                result[key] = value
        if self.model is not None:
            result["model"] = _model_summary_dict(self.model)
        return result


def response_view(response: CastingResponse) -> ResponseView:
    """Build the API view of a casting response."""
    return ResponseView(
        id=response.id,
        casting_id=response.casting_id,
        model_id=response.model_id,
        status=ResponseStatus(response.status).value,
        message=response.message,
        proposed_rate=response.proposed_rate,
        accepted_at=_rfc3339(response.accepted_at) if response.accepted_at is not None else None,
        rejected_at=_rfc3339(response.rejected_at) if response.rejected_at is not None else None,
        casting_title=response.casting_title,
        casting_city=response.casting_city,
        model_name=response.model_name,
        created_at=_rfc3339(response.created_at),
        updated_at=_rfc3339(response.updated_at),
    )