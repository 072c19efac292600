"""Reviews that employers leave on profiles."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from .validation import ValidationError, check_length, check_range

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
)


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


@dataclass(kw_only=True)
class ReviewResponse:
    """A review as returned by the API."""

    id: str
    profile_id: str
    reviewer_id: str
    rating: int
    created_at: str
    reviewer_name: str = ""
    casting_id: Optional[str] = None
    comment: str = ""
    is_verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "profile_id": self.profile_id,
            "reviewer_id": self.reviewer_id,
        }
        if self.reviewer_name:
            result["reviewer_name"] = self.reviewer_name
        if self.casting_id is not None:
            result["casting_id"] = self.casting_id
        result["rating"] = self.rating
        if self.comment:
            result["comment"] = self.comment
        result["is_verified"] = self.is_verified
        result["created_at"] = self.created_at
        return result


@dataclass(kw_only=True)
class Review:
    """A review of a profile by an employer."""

    profile_id: UUID
    reviewer_id: UUID
    rating: int
    id: UUID = field(default_factory=uuid4)
    casting_id: Optional[UUID] = None
    comment: Optional[str] = None
    is_verified: bool = False
    is_public: bool = True
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_response(self) -> ReviewResponse:
        return ReviewResponse(
            id=str(self.id),
            profile_id=str(self.profile_id),
            reviewer_id=str(self.reviewer_id),
            casting_id=str(self.casting_id) if self.casting_id is not None else None,
            rating=self.rating,
            comment=self.comment or "",
            is_verified=self.is_verified,
            created_at=_rfc3339(self.created_at),
        )


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError({key: "must be a string"})
    return value


@dataclass(kw_only=True)
class CreateReviewRequest:
    """Body of a request that reviews a profile."""

    profile_id: str = ""
    casting_id: str = ""
    rating: int = 0
    comment: str = ""

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, Mapping):
            raise ValidationError({"body": "must be a JSON object"})
        rating = data.get("rating")
        if rating is None:
            rating = 0
        elif isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError({"rating": "must be an integer"})
        return cls(
            profile_id=_string(data, "profile_id"),
            casting_id=_string(data, "casting_id"),
            rating=rating,
            comment=_string(data, "comment"),
        )

    def validate(self):
        """Raise ``ValidationError`` if any field is invalid; return self otherwise."""
        errors: dict[str, str] = {}
        if not self.profile_id:
            errors["profile_id"] = "is required"
        elif not _UUID_PATTERN.fullmatch(self.profile_id):
            errors["profile_id"] = "must be a valid UUID"
        if self.casting_id and not _UUID_PATTERN.fullmatch(self.casting_id):
            errors["casting_id"] = "must be a valid UUID"
        if not self.rating:
            errors["rating"] = "is required"
        else:
            check_range(errors, "rating", self.rating, 1, 5)
        check_length(errors, "comment", self.comment, None, 2000)
        if errors:
            raise ValidationError(errors)
        return self


@dataclass(kw_only=True)
class ProfileRatingSummary:
    """Overview of a profile's ratings."""

    average_rating: float = 0.0
    total_reviews: int = 0
    distribution: dict[int, int] = field(default_factory=dict)
    recent_reviews: list[ReviewResponse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "average_rating": self.average_rating,
            "total_reviews": self.total_reviews,
            "distribution": {str(star): count for star, count in sorted(self.distribution.items())},
        }
        if self.recent_reviews:
            result["recent_reviews"] = [review.to_dict() for review in self.recent_reviews]
        return result