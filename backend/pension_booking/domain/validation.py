from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from .booking import BbqOption, ReservationRequest, UnrecognizedOption, Violation


@dataclass(frozen=True)
class ValidationBounds:
    max_bbq_units: int = 6
    max_adults: int = 20
    max_children: int = 20


def validate_request(
    request: ReservationRequest,
    bounds: ValidationBounds = ValidationBounds(),
    *,
    today: Optional[date] = None,
) -> list[Violation]:
    """
    Structural checks on a reservation request. Every problem is reported;
    nothing short-circuits, so callers can show all messages at once.
    Pass `today` to also reject check-in dates in the past.
    """
    violations: list[Violation] = []

    if request.check_out <= request.check_in:
        violations.append(Violation("dates", "checkout must be after checkin"))
    if request.adults < 1:
        violations.append(Violation("adults", "at least one adult required"))
    if request.children < 0:
        violations.append(Violation("children", "children count cannot be negative"))

    for option in request.options:
        if isinstance(option, BbqOption) and not option.tier:
            violations.append(Violation("bbq_tier", "BBQ tier required"))
        if isinstance(option, BbqOption) and option.quantity is not None:
            if option.quantity > bounds.max_bbq_units:
                violations.append(
                    Violation("bbq_quantity", f"at most {bounds.max_bbq_units} BBQ grills can be rented")
                )
            elif option.quantity < 1:
                violations.append(Violation("bbq_quantity", "BBQ quantity must be at least 1"))
    for selection in request.programs:
        if selection.quantity < 1:
            violations.append(
                Violation("program_quantity", f"program {selection.program_id} quantity must be at least 1")
            )

    violations.extend(_unrecognized(request.options))

    if request.adults > bounds.max_adults:
        violations.append(Violation("adults", f"at most {bounds.max_adults} adults per reservation"))
    if request.children > bounds.max_children:
        violations.append(Violation("children", f"at most {bounds.max_children} children per reservation"))
    if not request.wants_room and not request.programs:
        violations.append(Violation("target", "select a room or at least one program"))
    if today is not None and request.check_in < today:
        violations.append(Violation("check_in", "checkin cannot be in the past"))

    return violations


def _unrecognized(options: Iterable[object]) -> list[Violation]:
    return [
        Violation("unrecognized_option", f"unrecognized option: {option.kind}", severity="warning")
        for option in options
        if isinstance(option, UnrecognizedOption)
    ]


def has_errors(violations: Iterable[Violation]) -> bool:
    return any(v.severity == "error" for v in violations)
