from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.booking import (
    AvailabilityVerdict,
    BbqOption,
    BreakfastOption,
    CustomerInfo,
    PriceBreakdown,
    ProgramSelection,
    ReservationRequest,
    SelectedOption,
    ShuttleOption,
    UnrecognizedOption,
    VerdictReason,
    Violation,
)
from .models import Reservation, ReservationStatus
from .utils.time import utc_naive_to_kst


class OptionIn(BaseModel):
    """Add-on selection; unknown kinds are kept so validation can warn about them."""

    kind: str
    tier: Optional[str] = None
    quantity: Optional[int] = None

    def to_domain(self) -> SelectedOption:
        if self.kind == "bbq":
            return BbqOption(tier=self.tier or "", quantity=self.quantity)
        if self.kind == "breakfast":
            return BreakfastOption()
        if self.kind in ("shuttle", "bus"):
            return ShuttleOption()
        return UnrecognizedOption(kind=self.kind)


class ProgramSelectionIn(BaseModel):
    program_id: int
    quantity: int = 1
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class ReservationRequestIn(BaseModel):
    check_in: date
    check_out: date
    adults: int
    children: int = 0
    room_type: Optional[str] = None
    room_id: Optional[int] = None
    programs: list[ProgramSelectionIn] = Field(default_factory=list)
    options: list[OptionIn] = Field(default_factory=list)

    def to_domain(self) -> ReservationRequest:
        return ReservationRequest(
            check_in=self.check_in,
            check_out=self.check_out,
            adults=self.adults,
            children=self.children,
            room_type=self.room_type,
            room_id=self.room_id,
            programs=tuple(
                ProgramSelection(
                    program_id=p.program_id,
                    quantity=p.quantity,
                    scheduled_date=p.scheduled_date,
                    scheduled_time=p.scheduled_time,
                )
                for p in self.programs
            ),
            options=tuple(o.to_domain() for o in self.options),
        )


class CustomerIn(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    phone: str = Field(pattern=r"^[0-9-]{10,15}$")
    email: Optional[str] = Field(default=None, max_length=255)


class ReservationCreate(ReservationRequestIn):
    customer: CustomerIn
    special_requests: Optional[str] = Field(default=None, max_length=1000)

    def customer_info(self) -> CustomerInfo:
        return CustomerInfo(
            name=self.customer.name,
            phone=self.customer.phone,
            email=self.customer.email,
            special_requests=self.special_requests,
        )


class ViolationRead(BaseModel):
    code: str
    message: str
    severity: str

    @classmethod
    def from_domain(cls, violation: Violation) -> "ViolationRead":
        return cls(code=violation.code, message=violation.message, severity=violation.severity)


class LineItemRead(BaseModel):
    code: str
    label: str
    amount: int
    quantity: int
    price_on_request: bool


class QuoteRead(BaseModel):
    items: list[LineItemRead]
    nights: int
    total: int
    price_on_request: bool
    warnings: list[ViolationRead] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, breakdown: PriceBreakdown, warnings: list[Violation] | None = None) -> "QuoteRead":
        return cls(
            items=[
                LineItemRead(
                    code=item.code,
                    label=item.label,
                    amount=item.amount,
                    quantity=item.quantity,
                    price_on_request=item.price_on_request,
                )
                for item in breakdown.items
            ],
            nights=breakdown.nights,
            total=breakdown.total,
            price_on_request=breakdown.price_on_request,
            warnings=[ViolationRead.from_domain(v) for v in warnings or []],
        )


class AvailabilityRead(BaseModel):
    available: bool
    reason: VerdictReason
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, verdict: AvailabilityVerdict) -> "AvailabilityRead":
        return cls(
            available=verdict.available,
            reason=verdict.reason,
            message=verdict.message,
            details=dict(verdict.details),
        )


class ProgramTimeRead(BaseModel):
    time: str
    available_stock: Optional[int]
    available: bool


class ProgramAvailabilityRead(BaseModel):
    program_id: int
    scheduled_date: date
    requested_quantity: int
    total_stock: Optional[int]
    max_participants: Optional[int]
    price: int
    times: list[ProgramTimeRead]


class ReservationRead(BaseModel):
    reservation_number: str
    room_id: Optional[int]
    status: ReservationStatus
    check_in: date
    check_out: date
    adults: int
    children: int
    total_price: int
    price_on_request: bool
    program_ids: list[int]
    created_at: datetime
    quote: Optional[QuoteRead] = None

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation, breakdown: Optional[PriceBreakdown] = None) -> "ReservationRead":
        return cls(
            reservation_number=reservation.reservation_number,
            room_id=reservation.room_id,
            status=reservation.status,
            check_in=reservation.check_in_date,
            check_out=reservation.check_out_date,
            adults=reservation.adults,
            children=reservation.children,
            total_price=reservation.total_price,
            price_on_request=reservation.price_on_request,
            program_ids=[p.program_id for p in reservation.programs],
            created_at=utc_naive_to_kst(reservation.created_at),
            quote=QuoteRead.from_domain(breakdown) if breakdown is not None else None,
        )
