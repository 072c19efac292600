"""Profile promotion campaigns: entity, errors and API objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .validation import (
    ValidationError,
    check_length,
    check_one_of,
    check_range,
    check_url,
)

TARGET_AUDIENCES = ("employers", "agencies", "all")


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


class PromotionStatus(str, Enum):
    """Lifecycle state of a promotion."""

    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ---- errors ----

class PromotionError(Exception):
    """Base class for promotion errors."""

    default_message = "promotion error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class PromotionNotFoundError(PromotionError):
    default_message = "promotion not found"


class InvalidPromotionStatusError(PromotionError):
    default_message = "invalid promotion status"


class InsufficientBudgetError(PromotionError):
    default_message = "insufficient budget"


class PaymentRequiredError(PromotionError):
    default_message = "payment required to activate"


class AlreadyActiveError(PromotionError):
    default_message = "promotion is already active"


class CannotModifyActiveError(PromotionError):
    default_message = "cannot modify active promotion"


class PlanRequiredError(PromotionError):
    default_message = "subscription plan required for promotions"


# ---- entity ----

@dataclass(kw_only=True)
class PromotionResponse:
    """A promotion as returned by the API."""

    id: str
    profile_id: str
    title: str
    target_audience: str
    budget_amount: int
    duration_days: int
    status: str
    created_at: str
    updated_at: str
    description: str = ""
    photo_url: str = ""
    specialization: str = ""
    target_cities: list[str] = field(default_factory=list)
    daily_budget: Optional[int] = None
    starts_at: str = ""
    ends_at: str = ""
    impressions: int = 0
    clicks: int = 0
    responses: int = 0
    spent_amount: int = 0
    ctr: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "profile_id": self.profile_id,
            "title": self.title,
        }
        if self.description:
            result["description"] = self.description
        if self.photo_url:
            result["photo_url"] = self.photo_url
        if self.specialization:
            result["specialization"] = self.specialization
        result["target_audience"] = self.target_audience
        if self.target_cities:
            result["target_cities"] = list(self.target_cities)
        result["budget_amount"] = self.budget_amount
        if self.daily_budget is not None:
            result["daily_budget"] = self.daily_budget
        result["duration_days"] = self.duration_days
        result["status"] = self.status
        if self.starts_at:
            result["starts_at"] = self.starts_at
        if self.ends_at:
            result["ends_at"] = self.ends_at
        result.update(
            impressions=self.impressions,
            clicks=self.clicks,
            responses=self.responses,
            spent_amount=self.spent_amount,
            ctr=self.ctr,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
        return result


@dataclass(kw_only=True)
class Promotion:
    """An advertising campaign for a profile."""

    profile_id: UUID
    title: str
    id: UUID = field(default_factory=uuid4)

    description: Optional[str] = None
    photo_url: Optional[str] = None
    specialization: Optional[str] = None

    target_audience: str = ""
    target_cities: list[str] = field(default_factory=list)

    budget_amount: int = 0
    daily_budget: Optional[int] = None
    duration_days: int = 0

    status: PromotionStatus = PromotionStatus.DRAFT
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    impressions: int = 0
    clicks: int = 0
    responses: int = 0
    spent_amount: int = 0

    payment_id: Optional[UUID] = None

    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def is_active(self) -> bool:
        """Whether the promotion is currently running."""
        return self.status == PromotionStatus.ACTIVE

    def can_be_activated(self) -> bool:
        """Whether the promotion may move to the active state."""
        return self.status in (PromotionStatus.DRAFT, PromotionStatus.PAUSED)

    def to_response(self) -> PromotionResponse:
        """Build the API view, including the click-through rate in percent."""
        ctr = self.clicks / self.impressions * 100 if self.impressions > 0 else 0.0
        return PromotionResponse(
            id=str(self.id),
            profile_id=str(self.profile_id),
            title=self.title,
            description=self.description or "",
            photo_url=self.photo_url or "",
            specialization=self.specialization or "",
            target_audience=self.target_audience,
            target_cities=list(self.target_cities),
            budget_amount=self.budget_amount,
            daily_budget=self.daily_budget,
            duration_days=self.duration_days,
            status=PromotionStatus(self.status).value,
            starts_at=_rfc3339(self.starts_at) if self.starts_at is not None else "",
            ends_at=_rfc3339(self.ends_at) if self.ends_at is not None else "",
            impressions=self.impressions,
            clicks=self.clicks,
            responses=self.responses,
            spent_amount=self.spent_amount,
            ctr=ctr,
            created_at=_rfc3339(self.created_at),
            updated_at=_rfc3339(self.updated_at),
        )


@dataclass(kw_only=True)
class DailyStats:
    """Per-day counters of a promotion."""

    promotion_id: UUID
    date: datetime
    id: UUID = field(default_factory=uuid4)
    impressions: int = 0
    clicks: int = 0
    responses: int = 0
    spent: int = 0


@dataclass(kw_only=True)
class DailyStatItem:
    """One day of statistics as returned by the API."""

    date: str
    impressions: int = 0
    clicks: int = 0
    responses: int = 0
    spent: int = 0


@dataclass(kw_only=True)
class StatsResponse:
    """Totals and daily breakdown of a promotion's statistics."""

    total_impressions: int = 0
    total_clicks: int = 0
    total_responses: int = 0
    total_spent: int = 0
    ctr: float = 0.0
    conversion_rate: float = 0.0
    daily_stats: list[DailyStatItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_impressions": self.total_impressions,
            "total_clicks": self.total_clicks,
            "total_responses": self.total_responses,
            "total_spent": self.total_spent,
            "ctr": self.ctr,
            "conversion_rate": self.conversion_rate,
            "daily_stats": [asdict(item) for item in self.daily_stats],
        }


# ---- requests ----

def _ensure_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError({"body": "must be a JSON object"})
    return data


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError({key: "must be a string"})
    return value


def _optional_int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({key: "must be an integer"})
    return value


def _string_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError({key: "must be a list of strings"})
    return list(value)


def _check_common(errors: dict[str, str], request) -> None:
    check_length(errors, "description", request.description, None, 2000)
    check_url(errors, "photo_url", request.photo_url or None)
    check_length(errors, "specialization", request.specialization or None, None, 100)
    check_one_of(errors, "target_audience", request.target_audience or None, TARGET_AUDIENCES)
    for position, city in enumerate(request.target_cities):
        check_length(errors, f"target_cities[{position}]", city, 2, 100)


@dataclass(kw_only=True)
class CreatePromotionRequest:
    """Body of a request that creates a promotion."""

    title: str = ""
    description: str = ""
    photo_url: str = ""
    specialization: str = ""
    target_audience: str = ""
    target_cities: list[str] = field(default_factory=list)
    budget_amount: int = 0
    daily_budget: Optional[int] = None
    duration_days: int = 0

    @classmethod
    def from_dict(cls, data):
        data = _ensure_mapping(data)
        return cls(
            title=_string(data, "title"),
            description=_string(data, "description"),
            photo_url=_string(data, "photo_url"),
            specialization=_string(data, "specialization"),
            target_audience=_string(data, "target_audience"),
            target_cities=_string_list(data, "target_cities"),
            budget_amount=_optional_int(data, "budget_amount") or 0,
            daily_budget=_optional_int(data, "daily_budget"),
            duration_days=_optional_int(data, "duration_days") or 0,
        )

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        if not self.title:
            errors["title"] = "is required"
        else:
            check_length(errors, "title", self.title, 5, 255)
        _check_common(errors, self)
        if not self.budget_amount:
            errors["budget_amount"] = "is required"
        else:
            check_range(errors, "budget_amount", self.budget_amount, 1000, None)
        check_range(errors, "daily_budget", self.daily_budget, 500, None)
        if not self.duration_days:
            errors["duration_days"] = "is required"
        else:
            check_range(errors, "duration_days", self.duration_days, 1, 90)
        if errors:
            raise ValidationError(errors)
        return self


@dataclass(kw_only=True)
class UpdatePromotionRequest:
    """Body of a request that updates a promotion's content and targeting."""

    title: str = ""
    description: str = ""
    photo_url: str = ""
    specialization: str = ""
    target_audience: str = ""
    target_cities: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = _ensure_mapping(data)
        return cls(
            title=_string(data, "title"),
            description=_string(data, "description"),
            photo_url=_string(data, "photo_url"),
            specialization=_string(data, "specialization"),
            target_audience=_string(data, "target_audience"),
            target_cities=_string_list(data, "target_cities"),
        )

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        check_length(errors, "title", self.title or None, 5, 255)
        _check_common(errors, self)
        if errors:
            raise ValidationError(errors)
        return self