from __future__ import annotations

from datetime import date
from typing import Collection, Protocol

from ..models import Program, Reservation, ReservationStatus, Room
from .booking import CustomerInfo, PriceBreakdown, ReservationRequest


class CatalogRepository(Protocol):
    """Rooms and programs. Lookup failures raise LookupFailedError."""

    async def get_rooms_by_type(self, room_type: str) -> list[Room]: ...

    async def get_room_by_id(self, room_id: int) -> Room | None: ...

    async def get_program_by_id(self, program_id: int) -> Program | None: ...


class ReservationRepository(Protocol):
    async def find_overlapping(
        self,
        room_id: int,
        check_in: date,
        check_out: date,
        statuses: Collection[ReservationStatus],
    ) -> list[Reservation]: ...

    async def sum_booked_quantity(
        self,
        program_id: int,
        scheduled_date: date,
        scheduled_time: str | None = None,
    ) -> int: ...

    async def create(
        self,
        *,
        reservation_number: str,
        room_id: int | None,
        request: ReservationRequest,
        breakdown: PriceBreakdown,
        customer: CustomerInfo,
        status: ReservationStatus,
    ) -> Reservation:
        """Persist after re-checking conflicts under lock; raises ReservationConflictError."""
        ...

    async def get_by_number(self, reservation_number: str) -> Reservation | None: ...

    async def get_by_number_for_update(self, reservation_number: str) -> Reservation | None: ...

    async def cancel(self, reservation: Reservation) -> Reservation: ...
