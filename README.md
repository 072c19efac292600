# mwork

Domain logic for a casting marketplace where models apply to castings and
promote themselves, and employers review them. The package contains entities,
request validation, API response building and the subscription rules. It has
no web framework and no database driver. Storage is supplied by you as
repository objects.

## Modules

- `mwork.validation`: field checks `check_length`, `check_range`,
  `check_one_of` and `check_url`. Each one records at most one message per
  field in an `errors` dict. Failures are raised as `ValidationError`, whose
  `errors` attribute maps each field to its message.
- `mwork.responses`: `CastingResponse` is an application to a casting.
  - `ResponseStatus` has the values pending, viewed, shortlisted, accepted and
    rejected. `can_be_updated_to` enforces the allowed transitions. Accepted
    and rejected are final.
  - `ApplyRequest` and `UpdateStatusRequest` are request bodies.
    `UpdateStatusRequest` accepts only viewed, accepted or rejected.
  - `response_view()` builds the API view `ResponseView`.
  - Exceptions derive from `ResponseError`, for example
    `InvalidStatusTransitionError` and `AlreadyAppliedError`.
- `mwork.promotions`: `Promotion` is a paid profile campaign.
  - `PromotionStatus` holds its status. `is_active()` and `can_be_activated()`
    test it. Only draft and paused promotions can be activated.
  - `to_response()` computes the click-through rate in percent.
  - `CreatePromotionRequest` requires a budget of at least 1000, an optional
    daily budget of at least 500, and a duration of 1 to 90 days.
    `UpdatePromotionRequest`, `DailyStats` and `StatsResponse` are also here.
- `mwork.reviews`: `Review` holds a rating and `ReviewResponse` is its API
  view. `CreateReviewRequest` requires a rating from 1 to 5 and a profile id
  in UUID form. `ProfileRatingSummary` holds the average, the total and the
  distribution.
- `mwork.subscriptions`: the entities `Plan` and `Subscription`.
  - The enums are `PlanId` (free, pro, agency), `SubscriptionStatus` and
    `BillingPeriod`.
  - `Subscription.days_remaining()` returns -1 when there is no expiry and 0
    once expired.
  - The request bodies are `SubscribeRequest` and `CancelRequest`.
  - The response builders are `plan_response`, `subscription_response` and
    `build_feature_list`.
- `mwork.subscription_service`: `SubscriptionService` handles the following:
  - listing plans;
  - the current subscription, which is a virtual free one when none is active;
  - subscribing, which creates a pending subscription and cancels any other
    active one;
  - activating, cancelling and expiring subscriptions;
  - `check_limit` for "photos", "responses" and "chat";
  - `get_limits_with_usage`, which returns current usage against the plan's
    limits.

  `LimitChecker` raises `PhotoLimitReachedError`, `ResponseLimitReachedError`
  or `ChatNotAllowedError`. These are subclasses of `LimitError` and carry
  `current`, `limit`, `plan_name` and `upgrade_to`. The upgrade path is free
  to pro and pro to agency.
- `mwork.uploads`: `Upload` follows the staged → committed lifecycle. While
  staged, `url()` gives the staging URL. Once committed, it gives the
  permanent URL. `upload_response()` builds the API view and includes the
  expiry only while the upload is staged.

## Installing

```
pip install .
```

Add the `test` extra to get the test runner as well:

```
pip install ".[test]"
```

## Example

```python
from uuid import uuid4

from mwork.responses import CastingResponse, ResponseStatus
from mwork.subscriptions import SubscribeRequest
from mwork.validation import ValidationError

try:
    SubscribeRequest.from_dict({"plan_id": "gold", "billing_period": "monthly"}).validate()
except ValidationError as exc:
    print(exc.errors)  # {'plan_id': 'must be one of: pro agency'}

application = CastingResponse(casting_id=uuid4(), model_id=uuid4())
print(application.can_be_updated_to(ResponseStatus.SHORTLISTED))  # True
```

## Plugging in storage

`SubscriptionService` takes five repository objects. Each one only needs these
methods:

- The subscription repository needs `get_plan_by_id`, `list_plans`, `create`,
  `get_by_id`, `get_active_by_user_id`, `update`, `cancel` and
  `expire_old_subscriptions`.
- The photo repository needs `count_by_profile_id`.
- The response repository needs `count_weekly_by_user_id`.
- The casting repository needs `count_active_by_creator_id`.
- The profile repository needs `get_by_user_id`, returning a
  `subscription_service.Profile` or `None`.

An optional `clock` callable sets the current time.

## What this package does not do

- It serves no HTTP API. Every request and response object has
  `from_dict`/`to_dict`, but routing and handlers are up to you.
- It stores nothing. There are no database repositories.
- It does not take payments. It does not move files between staging and
  permanent storage.
- It has no service layer for casting applications, promotions, reviews or
  uploads. Those modules provide the entities, validation and views, and the
  workflow around them is left to the caller.
- It has no model or employer profile management.

## Running the tests

```
pytest
```