"""Value types shared by validation, availability checks and pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Literal, Mapping, Optional, Union

from ..models import ProgramUnit


@dataclass(frozen=True)
class BbqOption:
    tier: str
    # None means "one serving unit per 5 guests".
    quantity: Optional[int] = None


@dataclass(frozen=True)
class BreakfastOption:
    pass


@dataclass(frozen=True)
class ShuttleOption:
    pass


@dataclass(frozen=True)
class UnrecognizedOption:
    kind: str


SelectedOption = Union[BbqOption, BreakfastOption, ShuttleOption, UnrecognizedOption]


@dataclass(frozen=True)
class ProgramSelection:
    program_id: int
    quantity: int = 1
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None


@dataclass(frozen=True)
class ReservationRequest:
    check_in: date
    check_out: date
    adults: int
    children: int = 0
    room_type: Optional[str] = None
    room_id: Optional[int] = None
    programs: tuple[ProgramSelection, ...] = ()
    options: tuple[SelectedOption, ...] = ()

    @property
    def party_size(self) -> int:
        return self.adults + self.children

    @property
    def wants_room(self) -> bool:
        return self.room_id is not None or self.room_type is not None

    def scheduled_date_for(self, selection: ProgramSelection) -> date:
        return selection.scheduled_date or self.check_in

    def program_demand(self) -> tuple[ProgramSelection, ...]:
        """
        Selections merged per (program, date, time) with quantities summed,
        so stock is checked against everything one request asks for.
        Dates are resolved; first-seen order is kept.
        """
        demand: dict[tuple[int, date, Optional[str]], int] = {}
        for selection in self.programs:
            key = (selection.program_id, self.scheduled_date_for(selection), selection.scheduled_time)
            demand[key] = demand.get(key, 0) + selection.quantity
        return tuple(
            ProgramSelection(program_id=program_id, quantity=quantity, scheduled_date=day, scheduled_time=time)
            for (program_id, day, time), quantity in demand.items()
        )


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str
    email: Optional[str] = None
    special_requests: Optional[str] = None


Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class Violation:
    code: str
    message: str
    severity: Severity = "error"


@dataclass(frozen=True)
class RoomRate:
    base_price: int
    base_capacity: int
    extra_person_fee: int


@dataclass(frozen=True)
class ProgramRate:
    price: int
    unit: ProgramUnit = ProgramUnit.FIXED


@dataclass(frozen=True)
class AddOnRates:
    bbq_tiers: Mapping[str, int]
    breakfast: Optional[int]
    # None: the shuttle is quoted separately ("price on request").
    shuttle: Optional[int] = None


@dataclass(frozen=True)
class RateTable:
    add_ons: AddOnRates
    room: Optional[RoomRate] = None
    programs: Mapping[int, ProgramRate] = field(default_factory=dict)


@dataclass(frozen=True)
class LineItem:
    code: str
    label: str
    amount: int
    quantity: int = 1
    price_on_request: bool = False
    ref_id: Optional[int] = None


@dataclass(frozen=True)
class PriceBreakdown:
    items: tuple[LineItem, ...]
    nights: int
    total: int

    @property
    def price_on_request(self) -> bool:
        return any(item.price_on_request for item in self.items)

    def amount_for(self, code: str) -> int:
        return sum(item.amount for item in self.items if item.code == code)


class VerdictReason(StrEnum):
    NONE = "none"
    ROOM_UNAVAILABLE = "room_unavailable"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    DATE_CONFLICT = "date_conflict"
    PROGRAM_NOT_FOUND = "program_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    CHECK_ERROR = "check_error"


@dataclass(frozen=True)
class AvailabilityVerdict:
    available: bool
    reason: VerdictReason = VerdictReason.NONE
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "available", **details: Any) -> "AvailabilityVerdict":
        return cls(available=True, reason=VerdictReason.NONE, message=message, details=details)

    @classmethod
    def fail(cls, reason: VerdictReason, message: str, **details: Any) -> "AvailabilityVerdict":
        return cls(available=False, reason=reason, message=message, details=details)
