from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from .booking import AvailabilityVerdict, VerdictReason


def ranges_overlap(existing_in: date, existing_out: date, requested_in: date, requested_out: date) -> bool:
    """Inclusive overlap: touching ranges (checkout day == checkin day) conflict."""
    return existing_in <= requested_out and existing_out >= requested_in


@dataclass(frozen=True)
class ProgramSnapshot:
    program_id: int
    max_participants: Optional[int]
    stock_quantity: Optional[int]
    booked_quantity: int

    @property
    def has_finite_stock(self) -> bool:
        return bool(self.stock_quantity)


def evaluate_program(snapshot: ProgramSnapshot, *, party_size: int, quantity: int = 1) -> AvailabilityVerdict:
    """
    Pure check of one program against its participant cap and remaining stock.
    Returns an available verdict or the first failing rule.
    """
    if snapshot.max_participants and party_size > snapshot.max_participants:
        return AvailabilityVerdict.fail(
            VerdictReason.CAPACITY_EXCEEDED,
            f"exceeds maximum of {snapshot.max_participants} participants",
            program_id=snapshot.program_id,
            max_participants=snapshot.max_participants,
            requested_participants=party_size,
        )
    if snapshot.has_finite_stock:
        available_stock = int(snapshot.stock_quantity or 0) - snapshot.booked_quantity
        if available_stock < quantity:
            return AvailabilityVerdict.fail(
                VerdictReason.INSUFFICIENT_STOCK,
                "program stock is insufficient",
                program_id=snapshot.program_id,
                available_stock=max(available_stock, 0),
                requested_quantity=quantity,
            )
        return AvailabilityVerdict.ok(program_id=snapshot.program_id, available_stock=available_stock)
    return AvailabilityVerdict.ok(program_id=snapshot.program_id)


def aggregate_program_verdicts(verdicts: Sequence[AvailabilityVerdict]) -> AvailabilityVerdict:
    """Combine per-program verdicts; any failure fails the whole booking."""
    conflicts = [
        {"reason": str(v.reason), "message": v.message, **v.details} for v in verdicts if not v.available
    ]
    if not conflicts:
        return AvailabilityVerdict.ok(programs=[dict(v.details) for v in verdicts])
    first = next(v for v in verdicts if not v.available)
    return AvailabilityVerdict.fail(
        first.reason,
        first.message if len(conflicts) == 1 else f"{len(conflicts)} programs are unavailable",
        **{**first.details, "conflicts": conflicts},
    )
