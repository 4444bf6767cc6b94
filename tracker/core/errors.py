"""
Error taxonomy for the tracker.

Every failure the API reports is a TrackerError subclass. Each carries a
stable ``error_code``, a ``details`` dict for logging, and ``is_retryable``
so callers can tell a timing-source outage apart from a user mistake.
"""
from typing import Any, Dict, Optional


class TrackerError(Exception):
    """Base for all tracker errors."""

    DEFAULT_RETRYABLE: bool = False
    HTTP_STATUS: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.is_retryable = is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.error_code,
            "retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class OutOfWindow(TrackerError):
    """Mark attempted outside the prayer's valid interval."""

    def __init__(self, prayer_name: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.prayer_name = prayer_name
        super().__init__(
            "Prayer cannot be marked outside its valid time window",
            details={"prayer": prayer_name, **(details or {})},
            error_code="OUT_OF_WINDOW",
        )


class AlreadyMarked(TrackerError):
    """A mark already exists for this (user, date, prayer)."""

    def __init__(self, user_id: int, date: Any, prayer_name: str) -> None:
        super().__init__(
            "Prayer already marked",
            details={"user_id": user_id, "date": str(date), "prayer": prayer_name},
            error_code="ALREADY_MARKED",
        )


class TransientError(TrackerError):
    """Timing source or storage unavailable. Safe to retry."""

    DEFAULT_RETRYABLE = True
    HTTP_STATUS = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, error_code="TRANSIENT")


class ConfigurationError(TrackerError):
    """Bad input or broken referential integrity (location, unknown group/user). Not retryable."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, not_found: bool = False) -> None:
        super().__init__(message, details=details, error_code="NOT_FOUND" if not_found else "INVALID_INPUT")
        if not_found:
            self.HTTP_STATUS = 404


class AuthenticationError(TrackerError):
    HTTP_STATUS = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, error_code="UNAUTHORIZED")


class UsernameTaken(TrackerError):
    def __init__(self, username: str) -> None:
        super().__init__("Username already exists", details={"username": username}, error_code="USERNAME_TAKEN")
