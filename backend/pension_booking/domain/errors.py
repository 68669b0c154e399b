from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .booking import AvailabilityVerdict, VerdictReason, Violation


class BookingError(Exception):
    """Base class for booking domain errors."""


class RateTableError(BookingError):
    """A selected item has no price in the rate table."""


class LookupFailedError(BookingError):
    """Catalog or reservation lookup could not be completed."""


class RequestValidationError(BookingError):
    def __init__(self, violations: list["Violation"]) -> None:
        super().__init__("; ".join(v.message for v in violations))
        self.violations = violations


class UnavailableError(BookingError):
    def __init__(self, verdict: "AvailabilityVerdict") -> None:
        super().__init__(verdict.message or str(verdict.reason))
        self.verdict = verdict


class ReservationConflictError(BookingError):
    """Raised by the persistence layer when a write-time re-check fails."""

    def __init__(self, reason: "VerdictReason", message: str, **details: object) -> None:
        super().__init__(message)
        self.reason = reason
        self.details = details


class ReservationNotFoundError(BookingError):
    pass


class CancelNotAllowedError(BookingError):
    pass
