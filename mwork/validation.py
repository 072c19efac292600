"""Field checks shared by the request objects.

Each check records at most one message per field in an ``errors`` mapping
and reports whether the field passed. A field that already carries an error
is not checked again, so the first failing rule wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from urllib.parse import urlsplit


class ValidationError(ValueError):
    """Raised when a request fails validation.

    ``errors`` maps each failing field to a human-readable message.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"validation failed: {detail}" if detail else "validation failed")


def _fail(errors: MutableMapping[str, str], field: str, message: str) -> bool:
    errors.setdefault(field, message)
    return False


def check_length(errors, field, value, minimum=None, maximum=None) -> bool:
    """Check the character length of a string; ``None`` is skipped."""
    if field in errors:
        return False
    if value is None:
        return True
    length = len(value)
    if minimum is not None and length < minimum:
        return _fail(errors, field, f"must be at least {minimum} characters")
    if maximum is not None and length > maximum:
        return _fail(errors, field, f"must be at most {maximum} characters")
    return True


def check_range(errors, field, value, minimum=None, maximum=None) -> bool:
    """Check that a number lies within inclusive bounds; ``None`` is skipped."""
    if field in errors:
        return False
    if value is None:
        return True
    if minimum is not None and value < minimum:
        return _fail(errors, field, f"must be greater than or equal to {minimum}")
    if maximum is not None and value > maximum:
        return _fail(errors, field, f"must be less than or equal to {maximum}")
    return True


def check_one_of(errors, field, value, choices: Iterable[str]) -> bool:
    """Check that a value is one of the allowed choices; ``None`` is skipped."""
    if field in errors:
        return False
    if value is None:
        return True
    allowed = tuple(choices)
    if value not in allowed:
        return _fail(errors, field, "must be one of: " + " ".join(allowed))
    return True


def _looks_like_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    opaque = bool(parts.path) and not parts.path.startswith("/")
    return bool(parts.netloc or parts.fragment or opaque)


def check_url(errors, field, value) -> bool:
    """Check that a value is an absolute URL; ``None`` is skipped."""
    if field in errors:
        return False
    if value is None:
        return True
    if not _looks_like_url(value):
        return _fail(errors, field, "must be a valid URL")
    return True