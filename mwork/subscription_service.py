"""Subscription business rules and plan limit checks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol
from uuid import UUID, uuid4

from .subscriptions import (
    UNLIMITED,
    AlreadySubscribedError,
    BillingPeriod,
    CannotCancelFreeError,
    InvalidBillingPeriodError,
    Plan,
    PlanId,
    PlanNotFoundError,
    SubscribeRequest,
    Subscription,
    SubscriptionError,
    SubscriptionNotFoundError,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_CASTINGS_LIMIT = 3
NIL_UUID = UUID(int=0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, letting an overflowing day roll into the next month."""
    total = moment.month - 1 + months
    year, month = moment.year + total // 12, total % 12 + 1
    first = moment.replace(year=year, month=month, day=1)
    return first + timedelta(days=moment.day - 1)


@dataclass(kw_only=True)
class Profile:
    """The parts of a user profile needed to count resource usage."""

    id: UUID
    user_id: UUID


class _SubscriptionRepository(Protocol):
    def get_plan_by_id(self, plan_id: PlanId) -> Optional[Plan]: ...

    def list_plans(self) -> list[Plan]: ...

    def create(self, subscription: Subscription) -> None: ...

    def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]: ...

    def get_active_by_user_id(self, user_id: UUID) -> Optional[Subscription]: ...

    def update(self, subscription: Subscription) -> None: ...

    def cancel(self, subscription_id: UUID, reason: str) -> None: ...

    def expire_old_subscriptions(self) -> int: ...


class _PhotoRepository(Protocol):
    def count_by_profile_id(self, profile_id: UUID) -> int: ...


class _ResponseRepository(Protocol):
    def count_weekly_by_user_id(self, user_id: UUID) -> int: ...


class _CastingRepository(Protocol):
    def count_active_by_creator_id(self, creator_id: UUID) -> int: ...


class _ProfileRepository(Protocol):
    def get_by_user_id(self, user_id: UUID) -> Optional[Profile]: ...


@dataclass(kw_only=True)
class LimitsUsage:
    """Current usage of a user against the limits of their plan."""

    photos_used: int = 0
    photos_limit: int = 0
    responses_used: int = 0
    responses_limit: int = 0
    castings_used: int = 0
    castings_limit: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _count_or_zero(counter: Callable[[UUID], int], key: UUID, what: str) -> int:
    try:
        return counter(key)
    except Exception as exc:
        logger.warning("failed to count %s: %s", what, exc)
        return 0


class SubscriptionService:
    """Plans, subscriptions and the limits they impose."""

    def __init__(self, repo: _SubscriptionRepository, photo_repo: _PhotoRepository,
                 response_repo: _ResponseRepository, casting_repo: _CastingRepository,
                 profile_repo: _ProfileRepository,
                 clock: Callable[[], datetime] = _now) -> None:
        self._repo = repo
        self._photos = photo_repo
        self._responses = response_repo
        self._castings = casting_repo
        self._profiles = profile_repo
        self._clock = clock

    def _plan_or_none(self, plan_id) -> Optional[Plan]:
        try:
            return self._repo.get_plan_by_id(plan_id)
        except Exception:
            return None

    def get_plans(self) -> list[Plan]:
        """All active plans."""
        return self._repo.list_plans()

    def get_plan(self, plan_id) -> Plan:
        plan = self._plan_or_none(PlanId(plan_id) if plan_id in PlanId._value2member_map_ else plan_id)
        if plan is None:
            raise PlanNotFoundError()
        return plan

    def get_current_subscription(self, user_id) -> tuple[Subscription, Optional[Plan]]:
        """The user's active subscription, or a virtual free one, with its plan."""
        subscription = self._repo.get_active_by_user_id(user_id)
        if subscription is None:
            virtual = Subscription(
                id=NIL_UUID,
                user_id=user_id,
                plan_id=PlanId.FREE,
                status=SubscriptionStatus.ACTIVE,
                billing_period=BillingPeriod.MONTHLY,
                started_at=self._clock(),
            )
            return virtual, self._plan_or_none(PlanId.FREE)
        return subscription, self._plan_or_none(subscription.plan_id)

    def subscribe(self, user_id, request: SubscribeRequest) -> Subscription:
        """Create a pending subscription, cancelling any other active one."""
        try:
            plan_id = PlanId(request.plan_id)
        except ValueError:
            raise PlanNotFoundError() from None
        if self._plan_or_none(plan_id) is None:
            raise PlanNotFoundError()

        existing = self._repo.get_active_by_user_id(user_id)
        if existing is not None and PlanId(existing.plan_id) == plan_id:
            raise AlreadySubscribedError()

        try:
            period = BillingPeriod(request.billing_period)
        except ValueError:
            raise InvalidBillingPeriodError() from None
        now = self._clock()
        months = 1 if period == BillingPeriod.MONTHLY else 12
        expires_at = _add_months(now, months)

        if existing is not None:
            try:
                self._repo.cancel(existing.id, "Upgraded to " + plan_id.value)
            except Exception:
                pass

        subscription = Subscription(
            id=uuid4(),
            user_id=user_id,
            plan_id=plan_id,
            started_at=now,
            expires_at=expires_at,
            status=SubscriptionStatus.PENDING,
            billing_period=period,
            created_at=now,
            updated_at=now,
        )
        self._repo.create(subscription)
        return subscription

    def activate_subscription(self, subscription_id) -> None:
        """Mark a pending subscription active once it has been paid for."""
        try:
            subscription = self._repo.get_by_id(subscription_id)
        except Exception:
            subscription = None
        if subscription is None:
            raise SubscriptionNotFoundError()
        subscription.status = SubscriptionStatus.ACTIVE
        self._repo.update(subscription)

    def cancel(self, user_id, reason: str) -> None:
        try:
            subscription = self._repo.get_active_by_user_id(user_id)
        except Exception:
            subscription = None
        if subscription is None:
            raise SubscriptionNotFoundError()
        if subscription.plan_id == PlanId.FREE:
            raise CannotCancelFreeError()
        self._repo.cancel(subscription.id, reason)

    def get_plan_limits(self, user_id) -> Optional[Plan]:
        """The plan whose limits apply now; the free plan once a subscription expired."""
        subscription, plan = self.get_current_subscription(user_id)
        if subscription.is_expired():
            return self._repo.get_plan_by_id(PlanId.FREE)
        return plan

    def get_limits_with_usage(self, user_id) -> LimitsUsage:
        """Plan limits together with what the user currently uses."""
        try:
            subscription = self._repo.get_active_by_user_id(user_id)
        except Exception:
            subscription = None

        if subscription is None:
            try:
                plan = self._repo.get_plan_by_id(PlanId.FREE)
            except Exception as exc:
                raise SubscriptionError(f"failed to get free plan: {exc}") from exc
        else:
            try:
                plan = self._repo.get_plan_by_id(subscription.plan_id)
            except Exception as exc:
                raise SubscriptionError(f"failed to get plan: {exc}") from exc
        if plan is None:
            raise PlanNotFoundError()

        try:
            profile = self._profiles.get_by_user_id(user_id)
        except Exception as exc:
            raise SubscriptionError(f"failed to get profile: {exc}") from exc

        usage = LimitsUsage(
            photos_limit=plan.max_photos,
            responses_limit=plan.max_responses_month,
            castings_limit=DEFAULT_CASTINGS_LIMIT,
        )
        if profile is None:
            return usage

        usage.photos_used = _count_or_zero(self._photos.count_by_profile_id, profile.id, "photos")
        usage.responses_used = _count_or_zero(self._responses.count_weekly_by_user_id, user_id, "responses")
        usage.castings_used = _count_or_zero(self._castings.count_active_by_creator_id, profile.id, "castings")

        logger.info(
            "limits fetched for %s: photos %d/%d, responses %d/%d, castings %d/%d",
            user_id, usage.photos_used, usage.photos_limit, usage.responses_used,
            usage.responses_limit, usage.castings_used, usage.castings_limit,
        )
        return usage

    def check_limit(self, user_id, limit_type: str, current_usage: int) -> tuple[bool, Plan]:
        """Whether the user stays within the given limit, and the plan that decided it."""
        plan = self.get_plan_limits(user_id)
        if plan is None:
            raise PlanNotFoundError()
        if limit_type == "photos":
            allowed = current_usage < plan.max_photos
        elif limit_type == "responses":
            allowed = plan.max_responses_month == UNLIMITED or current_usage < plan.max_responses_month
        elif limit_type == "chat":
            allowed = plan.can_chat
        else:
            allowed = True
        return allowed, plan

    def expire_old_subscriptions(self) -> int:
        """Expire subscriptions past their expiry date; return how many."""
        return self._repo.expire_old_subscriptions()


# ---- limit checks ----

class LimitError(SubscriptionError):
    """A plan limit was reached; carries what the UI needs to suggest an upgrade."""

    default_message = "plan limit reached"

    def __init__(self, message: Optional[str] = None, *, current: int = 0, limit: int = 0,
                 plan_name: str = "", upgrade_to: str = "") -> None:
        super().__init__(message)
        self.current = current
        self.limit = limit
        self.plan_name = plan_name
        self.upgrade_to = upgrade_to


class PhotoLimitReachedError(LimitError):
    default_message = "photo upload limit reached for your plan"


class ResponseLimitReachedError(LimitError):
    default_message = "monthly response limit reached for your plan"


class ChatNotAllowedError(LimitError):
    default_message = "chat is not available on your current plan"


@dataclass(kw_only=True)
class LimitsStatus:
    """The current plan's limits for display."""

    plan_id: str
    plan_name: str
    max_photos: int = 0
    max_responses_month: int = 0
    can_chat: bool = False
    can_see_viewers: bool = False
    priority_search: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_UPGRADES = {PlanId.FREE: PlanId.PRO.value, PlanId.PRO: PlanId.AGENCY.value}


def _upgrade_for(plan_id) -> str:
    try:
        return _UPGRADES.get(PlanId(plan_id), "")
    except ValueError:
        return ""


def _plan_name(plan: Plan) -> str:
    return PlanId(plan.id).value


class LimitChecker:
    """Convenience checks that raise a ``LimitError`` when a limit is reached."""

    def __init__(self, service: SubscriptionService) -> None:
        self._service = service

    def can_upload_photo(self, user_id, current_photo_count: int) -> None:
        allowed, plan = self._service.check_limit(user_id, "photos", current_photo_count)
        if not allowed:
            raise PhotoLimitReachedError(
                current=current_photo_count, limit=plan.max_photos,
                plan_name=_plan_name(plan), upgrade_to=_upgrade_for(plan.id),
            )

    def can_apply_to_response(self, user_id, monthly_applications: int) -> None:
        allowed, plan = self._service.check_limit(user_id, "responses", monthly_applications)
        if not allowed:
            raise ResponseLimitReachedError(
                current=monthly_applications, limit=plan.max_responses_month,
                plan_name=_plan_name(plan), upgrade_to=_upgrade_for(plan.id),
            )

    def can_use_chat(self, user_id) -> None:
        allowed, plan = self._service.check_limit(user_id, "chat", 0)
        if not allowed:
            raise ChatNotAllowedError(plan_name=_plan_name(plan), upgrade_to=_upgrade_for(plan.id))

    def get_limits_status(self, user_id) -> LimitsStatus:
        _, plan = self._service.get_current_subscription(user_id)
        if plan is None:
            raise PlanNotFoundError()
        return LimitsStatus(
            plan_id=_plan_name(plan),
            plan_name=plan.name,
            max_photos=plan.max_photos,
            max_responses_month=plan.max_responses_month,
            can_chat=plan.can_chat,
            can_see_viewers=plan.can_see_viewers,
            priority_search=plan.priority_search,
        )