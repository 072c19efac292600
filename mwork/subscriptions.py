"""Subscription plans and user subscriptions: entities, errors and API objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .validation import ValidationError, check_length, check_one_of

SUBSCRIBABLE_PLANS = ("pro", "agency")
BILLING_PERIODS = ("monthly", "yearly")
UNLIMITED = -1


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _rfc3339(moment: datetime) -> str:
    """Format a timestamp as RFC 3339 with seconds; naive times are taken as UTC."""
    text = _aware(moment).replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        return text[:-6] + "Z"
    return text


class PlanId(str, Enum):
    """Kind of subscription plan."""

    FREE = "free"
    PRO = "pro"
    AGENCY = "agency"


class SubscriptionStatus(str, Enum):
    """State of a subscription."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class BillingPeriod(str, Enum):
    """Billing cycle of a subscription."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


# ---- errors ----

class SubscriptionError(Exception):
    """Base class for subscription errors."""

    default_message = "subscription error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class PlanNotFoundError(SubscriptionError):
    default_message = "plan not found"


class SubscriptionNotFoundError(SubscriptionError):
    default_message = "subscription not found"


class AlreadySubscribedError(SubscriptionError):
    default_message = "user already has active subscription"


class CannotCancelFreeError(SubscriptionError):
    default_message = "cannot cancel free subscription"


class InvalidBillingPeriodError(SubscriptionError):
    default_message = "invalid billing period"


class SubscriptionPaymentRequiredError(SubscriptionError):
    default_message = "payment required for this plan"


class PaymentFailedError(SubscriptionError):
    default_message = "payment failed"


# ---- entities ----

@dataclass(kw_only=True)
class Plan:
    """A subscription plan and the limits it grants."""

    id: PlanId
    name: str = ""
    description: str = ""
    price_monthly: float = 0.0
    price_yearly: Optional[float] = None

    max_photos: int = 0
    max_responses_month: int = 0  # -1 means unlimited
    can_chat: bool = False
    can_see_viewers: bool = False
    priority_search: bool = False
    max_team_members: int = 0

    is_active: bool = True
    created_at: datetime = field(default_factory=_now)


@dataclass(kw_only=True)
class Subscription:
    """A user's subscription to a plan."""

    user_id: UUID
    plan_id: PlanId
    id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_now)
    expires_at: Optional[datetime] = None
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def is_expired(self) -> bool:
        """Whether the expiry time has passed; a subscription without one never expires."""
        if self.expires_at is None:
            return False
        return _now() > _aware(self.expires_at)

    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and not self.is_expired()

    def days_remaining(self) -> int:
        """Whole days until expiry: -1 when unlimited, 0 once expired."""
        if self.expires_at is None:
            return UNLIMITED
        remaining = (_aware(self.expires_at) - _now()).total_seconds()
        if remaining < 0:
            return 0
        return int(remaining / 86400)


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


@dataclass(kw_only=True)
class SubscribeRequest:
    """Body of a request that subscribes to a paid plan."""

    plan_id: str = ""
    billing_period: str = ""

    @classmethod
    def from_dict(cls, data):
        data = _ensure_mapping(data)
        return cls(
            plan_id=_string(data, "plan_id"),
            billing_period=_string(data, "billing_period"),
        )

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        if not self.plan_id:
            errors["plan_id"] = "is required"
        else:
            check_one_of(errors, "plan_id", self.plan_id, SUBSCRIBABLE_PLANS)
        if not self.billing_period:
            errors["billing_period"] = "is required"
        else:
            check_one_of(errors, "billing_period", self.billing_period, BILLING_PERIODS)
        if errors:
            raise ValidationError(errors)
        return self


@dataclass(kw_only=True)
class CancelRequest:
    """Body of a request that cancels a subscription."""

    reason: str = ""

    @classmethod
    def from_dict(cls, data):
        """Decode a body; ``None`` stands for an empty body."""
        if data is None:
            return cls()
        data = _ensure_mapping(data)
        return cls(reason=_string(data, "reason"))

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        check_length(errors, "reason", self.reason, None, 500)
        if errors:
            raise ValidationError(errors)
        return self


# ---- responses ----

@dataclass(kw_only=True)
class PlanResponse:
    """A plan as returned by the API."""

    id: str
    name: str
    description: str
    price_monthly: float
    price_yearly: Optional[float] = None
    max_photos: int = 0
    max_responses: int = 0
    can_chat: bool = False
    can_see_viewers: bool = False
    priority_search: bool = False
    max_team_members: int = 0
    features: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_monthly": self.price_monthly,
        }
        if self.price_yearly is not None:
            result["price_yearly"] = self.price_yearly
        result.update(
            max_photos=self.max_photos,
            max_responses_month=self.max_responses,
            can_chat=self.can_chat,
            can_see_viewers=self.can_see_viewers,
            priority_search=self.priority_search,
            max_team_members=self.max_team_members,
            features=list(self.features),
        )
        return result


def build_feature_list(plan: Plan) -> list[str]:
    """Human-readable list of what a plan offers."""
    features: list[str] = []
    if plan.max_photos > 0:
        if plan.max_photos >= 100:
            features.append("Unlimited photos")
        else:
            features.append("Up to " + chr(ord("0") + plan.max_photos) + " photos")
    if plan.max_responses_month == UNLIMITED:
        features.append("Unlimited applications")
    if plan.can_chat:
        features.append("Chat with employers")
    if plan.can_see_viewers:
        features.append("See who viewed your profile")
    if plan.priority_search:
        features.append("Priority in search results")
    if plan.max_team_members > 0:
        features.append("Team management")
    return features


def plan_response(plan: Plan) -> PlanResponse:
    """Build the API view of a plan."""
    return PlanResponse(
        id=PlanId(plan.id).value,
        name=plan.name,
        description=plan.description,
        price_monthly=plan.price_monthly,
        price_yearly=plan.price_yearly,
        max_photos=plan.max_photos,
        max_responses=plan.max_responses_month,
        can_chat=plan.can_chat,
        can_see_viewers=plan.can_see_viewers,
        priority_search=plan.priority_search,
        max_team_members=plan.max_team_members,
        features=build_feature_list(plan),
    )


@dataclass(kw_only=True)
class SubscriptionResponse:
    """A subscription as returned by the API."""

    id: UUID
    plan_id: str
    status: str
    billing_period: str
    started_at: str
    days_remaining: int
    auto_renew: bool
    plan: Optional[PlanResponse] = None
    expires_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": str(self.id), "plan_id": self.plan_id}
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        result.update(
            status=self.status,
            billing_period=self.billing_period,
            started_at=self.started_at,
        )
        if self.expires_at is not None:
            result["expires_at"] = self.expires_at
        result["days_remaining"] = self.days_remaining
        result["auto_renew"] = self.auto_renew
        return result


def subscription_response(subscription: Subscription, plan: Optional[Plan]) -> SubscriptionResponse:
    """Build the API view of a subscription, embedding its plan when given."""
    plan_id = PlanId(subscription.plan_id)
    status = SubscriptionStatus(subscription.status)
    return SubscriptionResponse(
        id=subscription.id,
        plan_id=plan_id.value,
        status=status.value,
        billing_period=BillingPeriod(subscription.billing_period).value,
        started_at=_rfc3339(subscription.started_at),
        expires_at=_rfc3339(subscription.expires_at) if subscription.expires_at is not None else None,
        days_remaining=subscription.days_remaining(),
        auto_renew=status == SubscriptionStatus.ACTIVE and plan_id != PlanId.FREE,
        plan=plan_response(plan) if plan is not None else None,
    )


@dataclass(kw_only=True)
class LimitsResponse:
    """A user's current limits and usage as returned by the API."""

    plan: str
    max_photos: int = 0
    photos_used: int = 0
    max_responses: int = 0
    responses_used: int = 0
    can_chat: bool = False
    can_see_viewers: bool = False
    priority_search: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan,
            "max_photos": self.max_photos,
            "photos_used": self.photos_used,
            "max_responses_month": self.max_responses,
            "responses_used": self.responses_used,
            "can_chat": self.can_chat,
            "can_see_viewers": self.can_see_viewers,
            "priority_search": self.priority_search,
        }