"""File uploads: entity, errors and API view."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4


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


class UploadStatus(str, Enum):
    """Lifecycle state of an upload."""

    STAGED = "staged"
    COMMITTED = "committed"
    FAILED = "failed"
    DELETED = "deleted"


class UploadCategory(str, Enum):
    """Kind of uploaded file."""

    AVATAR = "avatar"
    PHOTO = "photo"
    DOCUMENT = "document"


# ---- errors ----

class UploadError(Exception):
    """Base class for upload errors."""

    default_message = "upload error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class UploadNotFoundError(UploadError):
    default_message = "upload not found"


class NotUploadOwnerError(UploadError):
    default_message = "not upload owner"


class AlreadyCommittedError(UploadError):
    default_message = "upload already committed"


class UploadExpiredError(UploadError):
    default_message = "upload has expired"


class InvalidCategoryError(UploadError):
    default_message = "invalid upload category"


# ---- entity ----

@dataclass(kw_only=True)
class Upload:
    """A file upload record."""

    user_id: UUID
    category: UploadCategory
    expires_at: datetime
    id: UUID = field(default_factory=uuid4)
    status: UploadStatus = UploadStatus.STAGED

    original_name: str = ""
    mime_type: str = ""
    size: int = 0

    staging_key: str = ""
    permanent_key: str = ""
    permanent_url: str = ""

    width: int = 0
    height: int = 0

    error_message: str = ""

    created_at: datetime = field(default_factory=_now)
    committed_at: Optional[datetime] = None

    def is_staged(self) -> bool:
        return self.status == UploadStatus.STAGED

    def is_committed(self) -> bool:
        return self.status == UploadStatus.COMMITTED

    def is_expired(self) -> bool:
        """Whether a staged file has passed its expiry time."""
        return self.is_staged() and _now() > _aware(self.expires_at)

    def url(self, staging_base_url: str) -> str:
        """The permanent URL once committed, the staging URL while staged, else empty."""
        if self.is_committed() and self.permanent_url:
            return self.permanent_url
        if self.is_staged() and self.staging_key:
            return staging_base_url + "/" + self.staging_key
        return ""


# ---- response ----

@dataclass(kw_only=True)
class UploadResponse:
    """An upload as returned by the API."""

    id: UUID
    category: str
    status: str
    original_name: str
    mime_type: str
    size: int
    url: str
    created_at: str
    width: int = 0
    height: int = 0
    expires_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": str(self.id),
            "category": self.category,
            "status": self.status,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "url": self.url,
        }
        if self.width:
            result["width"] = self.width
        if self.height:
            result["height"] = self.height
        result["created_at"] = self.created_at
        if self.expires_at is not None:
            result["expires_at"] = self.expires_at
        return result


def upload_response(upload: Upload, staging_base_url: str) -> UploadResponse:
    """Build the API view of an upload; the expiry is shown only while staged."""
    return UploadResponse(
        id=upload.id,
        category=UploadCategory(upload.category).value,
        status=UploadStatus(upload.status).value,
        original_name=upload.original_name,
        mime_type=upload.mime_type,
        size=upload.size,
        url=upload.url(staging_base_url),
        width=upload.width,
        height=upload.height,
        created_at=_rfc3339(upload.created_at),
        expires_at=_rfc3339(upload.expires_at) if upload.is_staged() else None,
    )