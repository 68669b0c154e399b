from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Collection, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.booking import CustomerInfo, PriceBreakdown, ReservationRequest, VerdictReason
from ..domain.errors import LookupFailedError, ReservationConflictError
from ..domain.repositories import CatalogRepository, ReservationRepository
from ..models import (
    BLOCKING_STATUSES,
    Program,
    Reservation,
    ReservationProgram,
    ReservationStatus,
    Room,
)


class SqlAlchemyCatalogRepository(CatalogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_rooms_by_type(self, room_type: str) -> List[Room]:
        stmt = select(Room).where(Room.type == room_type, Room.is_available.is_(True)).order_by(Room.id)
        try:
            return list((await self.session.scalars(stmt)).all())
        except SQLAlchemyError as exc:
            raise LookupFailedError("room lookup failed") from exc

    async def get_room_by_id(self, room_id: int) -> Room | None:
        try:
            return await self.session.get(Room, room_id)
        except SQLAlchemyError as exc:
            raise LookupFailedError("room lookup failed") from exc

    async def get_program_by_id(self, program_id: int) -> Program | None:
        try:
            return await self.session.get(Program, program_id)
        except SQLAlchemyError as exc:
            raise LookupFailedError("program lookup failed") from exc


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_overlapping(
        self,
        room_id: int,
        check_in: date,
        check_out: date,
        statuses: Collection[ReservationStatus],
    ) -> List[Reservation]:
        try:
            return await self._overlapping(room_id, check_in, check_out, statuses)
        except SQLAlchemyError as exc:
            raise LookupFailedError("reservation lookup failed") from exc

    async def sum_booked_quantity(
        self,
        program_id: int,
        scheduled_date: date,
        scheduled_time: str | None = None,
    ) -> int:
        try:
            return await self._booked_quantity(program_id, scheduled_date, scheduled_time)
        except SQLAlchemyError as exc:
            raise LookupFailedError("program stock lookup failed") from exc

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
        if room_id is not None:
            # Row lock serializes concurrent bookings of the same room.
            await self.session.scalar(select(Room.id).where(Room.id == room_id).with_for_update())
            if await self._overlapping(room_id, request.check_in, request.check_out, BLOCKING_STATUSES):
                raise ReservationConflictError(
                    VerdictReason.DATE_CONFLICT, "room was booked in the meantime", room_id=room_id
                )

        for selection in request.program_demand():
            program = await self.session.scalar(
                select(Program).where(Program.id == selection.program_id).with_for_update()
            )
            if program is None or not program.stock_quantity:
                continue
            booked = await self._booked_quantity(
                program.id, request.scheduled_date_for(selection), selection.scheduled_time
            )
            available_stock = program.stock_quantity - booked
            if available_stock < selection.quantity:
                raise ReservationConflictError(
                    VerdictReason.INSUFFICIENT_STOCK,
                    "program stock ran out in the meantime",
                    program_id=program.id,
                    available_stock=max(available_stock, 0),
                    requested_quantity=selection.quantity,
                )

        now = datetime.now(timezone.utc).replace(tzinfo=None)
        reservation = Reservation(
            reservation_number=reservation_number,
            room_id=room_id,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_email=customer.email,
            check_in_date=request.check_in,
            check_out_date=request.check_out,
            adults=request.adults,
            children=request.children,
            room_price=breakdown.amount_for("stay") + breakdown.amount_for("extra_guests"),
            total_price=breakdown.total,
            price_on_request=breakdown.price_on_request,
            status=status,
            special_requests=customer.special_requests,
            created_at=now,
            updated_at=now,
        )
        # pricing emits one program line per selection, in request order
        program_lines = [item for item in breakdown.items if item.code == "program"]
        reservation.programs = [
            ReservationProgram(
                program_id=selection.program_id,
                quantity=selection.quantity,
                unit_price=line.amount // selection.quantity,
                total_price=line.amount,
                scheduled_date=request.scheduled_date_for(selection),
                scheduled_time=selection.scheduled_time,
            )
            for selection, line in zip(request.programs, program_lines, strict=True)
        ]
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_by_number(self, reservation_number: str) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.programs))
            .where(Reservation.reservation_number == reservation_number)
        )
        try:
            return await self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise LookupFailedError("reservation lookup failed") from exc

    async def get_by_number_for_update(self, reservation_number: str) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.programs))
            .where(Reservation.reservation_number == reservation_number)
            .with_for_update()
        )
        try:
            return await self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise LookupFailedError("reservation lookup failed") from exc

    async def cancel(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def _overlapping(
        self,
        room_id: int,
        check_in: date,
        check_out: date,
        statuses: Collection[ReservationStatus],
    ) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.room_id == room_id,
            Reservation.status.in_(list(statuses)),
            Reservation.check_in_date <= check_out,
            Reservation.check_out_date >= check_in,
        )
        return list((await self.session.scalars(stmt)).all())

    async def _booked_quantity(self, program_id: int, scheduled_date: date, scheduled_time: str | None) -> int:
        stmt = (
            select(func.coalesce(func.sum(ReservationProgram.quantity), 0))
            .join(Reservation, ReservationProgram.reservation_id == Reservation.id)
            .where(
                ReservationProgram.program_id == program_id,
                ReservationProgram.scheduled_date == scheduled_date,
                Reservation.status != ReservationStatus.CANCELLED,
            )
        )
        if scheduled_time is not None:
            stmt = stmt.where(ReservationProgram.scheduled_time == scheduled_time)
        return int(await self.session.scalar(stmt) or 0)
