from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from mwork.subscription_service import (
    ChatNotAllowedError,
    LimitChecker,
    LimitError,
    PhotoLimitReachedError,
    Profile,
    ResponseLimitReachedError,
    SubscriptionService,
)
from mwork.subscriptions import (
    AlreadySubscribedError,
    BillingPeriod,
    CannotCancelFreeError,
    InvalidBillingPeriodError,
    Plan,
    PlanId,
    PlanNotFoundError,
    SubscribeRequest,
    Subscription,
    SubscriptionNotFoundError,
    SubscriptionStatus,
)

FREE = Plan(id=PlanId.FREE, name="Free", max_photos=5, max_responses_month=10)
PRO = Plan(id=PlanId.PRO, name="Pro", max_photos=50, max_responses_month=-1,
           can_chat=True, can_see_viewers=True)
AGENCY = Plan(id=PlanId.AGENCY, name="Agency", max_photos=200, max_responses_month=-1,
              can_chat=True, priority_search=True, max_team_members=5)


class FakeRepo:
    def __init__(self):
        self.plans = {p.id: p for p in (FREE, PRO, AGENCY)}
        self.subs = []
        self.cancelled = []
        self.updated = []

    def get_plan_by_id(self, plan_id):
        return self.plans.get(plan_id)

    def list_plans(self):
        return sorted(self.plans.values(), key=lambda p: p.price_monthly)

    def create(self, sub):
        self.subs.append(sub)

    def get_by_id(self, sub_id):
        return next((s for s in self.subs if s.id == sub_id), None)

    def get_active_by_user_id(self, user_id):
        active = [s for s in self.subs if s.user_id == user_id and s.status == SubscriptionStatus.ACTIVE]
        return active[-1] if active else None

    def update(self, sub):
        self.updated.append(sub)

    def cancel(self, sub_id, reason):
        self.cancelled.append((sub_id, reason))
        sub = self.get_by_id(sub_id)
        sub.status = SubscriptionStatus.CANCELLED
        sub.cancel_reason = reason

    def expire_old_subscriptions(self):
        return 4


class Counter:
    def __init__(self, value=0, fail=False):
        self.value = value
        self.fail = fail
        self.keys = []

    def _count(self, key):
        self.keys.append(key)
        if self.fail:
            raise RuntimeError("boom")
        return self.value

    count_by_profile_id = _count
    count_weekly_by_user_id = _count
    count_active_by_creator_id = _count


class Profiles:
    def __init__(self, profiles=()):
        self.by_user = {p.user_id: p for p in profiles}

    def get_by_user_id(self, user_id):
        return self.by_user.get(user_id)


def make_service(repo=None, profiles=(), photos=None, responses=None, castings=None, clock=None):
    repo = repo or FakeRepo()
    kwargs = {"clock": clock} if clock else {}
    service = SubscriptionService(
        repo, photos or Counter(), responses or Counter(), castings or Counter(),
        Profiles(profiles), **kwargs,
    )
    return service, repo


def active_sub(repo, user_id, plan_id, expires_at=None):
    sub = Subscription(user_id=user_id, plan_id=plan_id, status=SubscriptionStatus.ACTIVE,
                       expires_at=expires_at)
    repo.subs.append(sub)
    return sub


def test_get_plan_found_and_missing():
    service, _ = make_service()
    assert service.get_plan(PlanId.PRO) is PRO
    with pytest.raises(PlanNotFoundError):
        service.get_plan("platinum")


def test_get_plans_lists_repository_plans():
    service, _ = make_service()
    assert {p.id for p in service.get_plans()} == {PlanId.FREE, PlanId.PRO, PlanId.AGENCY}


def test_current_subscription_defaults_to_virtual_free():
    service, _ = make_service()
    user = uuid4()
    sub, plan = service.get_current_subscription(user)
    assert sub.plan_id == PlanId.FREE
    assert sub.status == SubscriptionStatus.ACTIVE
    assert sub.user_id == user
    assert sub.days_remaining() == -1
    assert plan is FREE


def test_current_subscription_uses_active_one():
    service, repo = make_service()
    user = uuid4()
    sub = active_sub(repo, user, PlanId.PRO)
    got, plan = service.get_current_subscription(user)
    assert got is sub
    assert plan is PRO


def test_subscribe_creates_pending_subscription():
    fixed = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
    service, repo = make_service(clock=lambda: fixed)
    user = uuid4()
    sub = service.subscribe(user, SubscribeRequest(plan_id="pro", billing_period="monthly"))
    assert sub.status == SubscriptionStatus.PENDING
    assert sub.plan_id == PlanId.PRO
    assert sub.billing_period == BillingPeriod.MONTHLY
    assert sub.started_at == fixed
    assert sub.expires_at == fixed.replace(month=6)
    assert repo.subs == [sub]


def test_subscribe_yearly_adds_a_year():
    fixed = datetime(2024, 5, 10, tzinfo=timezone.utc)
    service, _ = make_service(clock=lambda: fixed)
    sub = service.subscribe(uuid4(), SubscribeRequest(plan_id="agency", billing_period="yearly"))
    assert sub.expires_at == fixed.replace(year=2025)


def test_subscribe_month_overflow_rolls_forward():
    fixed = datetime(2024, 1, 31, tzinfo=timezone.utc)
    service, _ = make_service(clock=lambda: fixed)
    sub = service.subscribe(uuid4(), SubscribeRequest(plan_id="pro", billing_period="monthly"))
    assert sub.expires_at == datetime(2024, 3, 2, tzinfo=timezone.utc)


def test_subscribe_same_plan_raises():
    service, repo = make_service()
    user = uuid4()
    active_sub(repo, user, PlanId.PRO)
    with pytest.raises(AlreadySubscribedError):
        service.subscribe(user, SubscribeRequest(plan_id="pro", billing_period="monthly"))


def test_subscribe_upgrade_cancels_existing():
    service, repo = make_service()
    user = uuid4()
    old = active_sub(repo, user, PlanId.PRO)
    new = service.subscribe(user, SubscribeRequest(plan_id="agency", billing_period="monthly"))
    assert repo.cancelled == [(old.id, "Upgraded to agency")]
    assert new.plan_id == PlanId.AGENCY


def test_subscribe_errors():
    service, _ = make_service()
    with pytest.raises(InvalidBillingPeriodError):
        service.subscribe(uuid4(), SubscribeRequest(plan_id="pro", billing_period="weekly"))
    with pytest.raises(PlanNotFoundError):
        service.subscribe(uuid4(), SubscribeRequest(plan_id="gold", billing_period="monthly"))


def test_activate_subscription():
    service, repo = make_service()
    sub = Subscription(user_id=uuid4(), plan_id=PlanId.PRO)
    repo.subs.append(sub)
    service.activate_subscription(sub.id)
    assert sub.status == SubscriptionStatus.ACTIVE
    assert repo.updated == [sub]
    with pytest.raises(SubscriptionNotFoundError):
        service.activate_subscription(uuid4())


def test_cancel_rules():
    service, repo = make_service()
    with pytest.raises(SubscriptionNotFoundError):
        service.cancel(uuid4(), "bye")
    free_user = uuid4()
    active_sub(repo, free_user, PlanId.FREE)
    with pytest.raises(CannotCancelFreeError):
        service.cancel(free_user, "bye")
    pro_user = uuid4()
    sub = active_sub(repo, pro_user, PlanId.PRO)
    service.cancel(pro_user, "too expensive")
    assert repo.cancelled == [(sub.id, "too expensive")]


def test_plan_limits_fall_back_to_free_when_expired():
    service, repo = make_service()
    user = uuid4()
    active_sub(repo, user, PlanId.PRO, expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    assert service.get_plan_limits(user) is FREE
    other = uuid4()
    active_sub(repo, other, PlanId.PRO, expires_at=datetime.now(timezone.utc) + timedelta(days=3))
    assert service.get_plan_limits(other) is PRO


def test_limits_with_usage_without_profile():
    service, _ = make_service()
    usage = service.get_limits_with_usage(uuid4())
    assert usage.photos_limit == FREE.max_photos
    assert usage.responses_limit == FREE.max_responses_month
    assert usage.castings_limit == 3
    assert (usage.photos_used, usage.responses_used, usage.castings_used) == (0, 0, 0)


def test_limits_with_usage_counts_resources():
    user = uuid4()
    profile = Profile(id=uuid4(), user_id=user)
    photos, responses, castings = Counter(4), Counter(7), Counter(2)
    service, repo = make_service(profiles=[profile], photos=photos,
                                 responses=responses, castings=castings)
    active_sub(repo, user, PlanId.PRO)
    usage = service.get_limits_with_usage(user)
    assert usage.to_dict() == {
        "photos_used": 4, "photos_limit": 50,
        "responses_used": 7, "responses_limit": -1,
        "castings_used": 2, "castings_limit": 3,
    }
    assert photos.keys == [profile.id]
    assert responses.keys == [user]
    assert castings.keys == [profile.id]


def test_limits_with_usage_failed_counts_are_zero():
    user = uuid4()
    profile = Profile(id=uuid4(), user_id=user)
    service, _ = make_service(profiles=[profile], photos=Counter(fail=True),
                              responses=Counter(3), castings=Counter(fail=True))
    usage = service.get_limits_with_usage(user)
    assert usage.photos_used == 0
    assert usage.responses_used == 3
    assert usage.castings_used == 0


def test_check_limit():
    service, repo = make_service()
    user = uuid4()
    allowed, plan = service.check_limit(user, "photos", 5)
    assert (allowed, plan) == (False, FREE)
    assert service.check_limit(user, "photos", 4)[0] is True
    assert service.check_limit(user, "chat", 0)[0] is False
    assert service.check_limit(user, "responses", 10)[0] is False
    pro_user = uuid4()
    active_sub(repo, pro_user, PlanId.PRO)
    assert service.check_limit(pro_user, "responses", 10_000)[0] is True
    assert service.check_limit(pro_user, "chat", 0)[0] is True


def test_expire_old_subscriptions_passes_through():
    service, _ = make_service()
    assert service.expire_old_subscriptions() == 4


def test_limit_checker_photo_error_details():
    service, _ = make_service()
    checker = LimitChecker(service)
    with pytest.raises(PhotoLimitReachedError) as info:
        checker.can_upload_photo(uuid4(), 5)
    err = info.value
    assert isinstance(err, LimitError)
    assert (err.current, err.limit, err.plan_name, err.upgrade_to) == (5, 5, "free", "pro")
    assert str(err) == "photo upload limit reached for your plan"
    assert checker.can_upload_photo(uuid4(), 1) is None


def test_limit_checker_responses_and_chat():
    service, repo = make_service()
    checker = LimitChecker(service)
    with pytest.raises(ResponseLimitReachedError) as info:
        checker.can_apply_to_response(uuid4(), 10)
    assert info.value.limit == 10
    with pytest.raises(ChatNotAllowedError) as chat_info:
        checker.can_use_chat(uuid4())
    assert str(chat_info.value) == "chat is not available on your current plan"
    assert chat_info.value.upgrade_to == "pro"


def test_limit_checker_pro_upgrades_to_agency():
    repo = FakeRepo()
    repo.plans[PlanId.PRO] = Plan(id=PlanId.PRO, name="Pro", max_photos=1, max_responses_month=-1)
    service, _ = make_service(repo=repo)
    user = uuid4()
    active_sub(repo, user, PlanId.PRO)
    with pytest.raises(PhotoLimitReachedError) as info:
        LimitChecker(service).can_upload_photo(user, 1)
    assert info.value.upgrade_to == "agency"
    assert info.value.plan_name == "pro"


def test_get_limits_status():
    service, repo = make_service()
    user = uuid4()
    active_sub(repo, user, PlanId.AGENCY)
    status = LimitChecker(service).get_limits_status(user)
    assert status.plan_id == "agency"
    assert status.plan_name == "Agency"
    assert status.max_photos == AGENCY.max_photos
    assert status.priority_search is True
    assert status.to_dict()["max_responses_month"] == -1