import logging
import secrets
from datetime import date, datetime, timezone
from typing import Optional

from ..domain.booking import (
    AddOnRates,
    AvailabilityVerdict,
    CustomerInfo,
    PriceBreakdown,
    ProgramRate,
    RateTable,
    ReservationRequest,
    RoomRate,
    Violation,
)
from ..domain.errors import (
    CancelNotAllowedError,
    RateTableError,
    RequestValidationError,
    ReservationConflictError,
    ReservationNotFoundError,
    UnavailableError,
)
from ..domain.pricing import compute_total
from ..domain.repositories import CatalogRepository, ReservationRepository
from ..domain.validation import ValidationBounds, has_errors, validate_request
from ..models import Reservation, ReservationStatus, Room
from .availability import check_availability, check_room_availability

logger = logging.getLogger(__name__)


async def load_rate_table(
    catalog: CatalogRepository,
    request: ReservationRequest,
    add_ons: AddOnRates,
    *,
    room_id: Optional[int] = None,
) -> RateTable:
    """Build rates for the request; `room_id` pins the room picked by the availability check."""
    room_rate: Optional[RoomRate] = None
    if request.wants_room:
        room = await _room_for_rates(catalog, request, room_id)
        if room is None:
            raise RateTableError("no rates for the requested room")
        room_rate = RoomRate(
            base_price=room.base_price,
            base_capacity=room.base_capacity,
            extra_person_fee=room.extra_person_fee,
        )

    programs: dict[int, ProgramRate] = {}
    for selection in request.programs:
        program = await catalog.get_program_by_id(selection.program_id)
        if program is not None:
            programs[program.id] = ProgramRate(price=program.price, unit=program.unit)
    return RateTable(add_ons=add_ons, room=room_rate, programs=programs)


async def quote_reservation(
    catalog: CatalogRepository,
    request: ReservationRequest,
    *,
    add_ons: AddOnRates,
    bounds: ValidationBounds,
    today: Optional[date] = None,
    res_repo: Optional[ReservationRepository] = None,
) -> tuple[PriceBreakdown, list[Violation]]:
    """
    Validate and price. Warnings are returned alongside the breakdown.
    With `res_repo` the room is the one a booking would get right now.
    """
    violations = validate_request(request, bounds, today=today)
    if has_errors(violations):
        raise RequestValidationError(violations)
    room_id: Optional[int] = None
    if res_repo is not None and request.wants_room:
        room_verdict = await check_room_availability(
            catalog,
            res_repo,
            room_type=request.room_type,
            room_id=request.room_id,
            check_in=request.check_in,
            check_out=request.check_out,
            party_size=request.party_size,
        )
        room_id = room_verdict.details.get("room_id")
    rate_table = await load_rate_table(catalog, request, add_ons, room_id=room_id)
    return compute_total(request, rate_table), violations


async def create_reservation(
    catalog: CatalogRepository,
    res_repo: ReservationRepository,
    request: ReservationRequest,
    *,
    customer: CustomerInfo,
    add_ons: AddOnRates,
    bounds: ValidationBounds,
    today: Optional[date] = None,
) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
    violations = validate_request(request, bounds, today=today)
    if has_errors(violations):
        raise RequestValidationError(violations)

    verdict = await check_availability(request, catalog, res_repo)
    if not verdict.available:
        raise UnavailableError(verdict)

    room_id = verdict.details.get("room_id")
    rate_table = await load_rate_table(catalog, request, add_ons, room_id=room_id)
    breakdown = compute_total(request, rate_table)

    try:
        reservation = await res_repo.create(
            reservation_number=generate_reservation_number(),
            room_id=room_id,
            request=request,
            breakdown=breakdown,
            customer=customer,
            status=ReservationStatus.PENDING,
        )
    except ReservationConflictError as exc:
        # another booking won the race after our availability check
        logger.info("write-time conflict reason=%s: %s", exc.reason, exc)
        raise UnavailableError(AvailabilityVerdict.fail(exc.reason, str(exc), **exc.details)) from exc
    return reservation, breakdown, verdict


async def get_reservation(res_repo: ReservationRepository, *, reservation_number: str) -> Reservation:
    reservation = await res_repo.get_by_number(reservation_number)
    if reservation is None:
        raise ReservationNotFoundError(reservation_number)
    return reservation


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_number: str,
) -> tuple[Reservation, ReservationStatus]:
    """Returns the reservation and its status before the call."""
    reservation = await res_repo.get_by_number_for_update(reservation_number)
    if reservation is None:
        raise ReservationNotFoundError(reservation_number)
    previous = reservation.status
    # Idempotent: already cancelled returns as-is
    if previous == ReservationStatus.CANCELLED:
        return reservation, previous
    if previous == ReservationStatus.COMPLETED:
        raise CancelNotAllowedError("completed reservations cannot be cancelled")

    reservation.status = ReservationStatus.CANCELLED
    reservation.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    updated = await res_repo.cancel(reservation)
    return updated, previous


def generate_reservation_number(now: Optional[datetime] = None) -> str:
    """RS + yymmdd + 3 random digits, e.g. RS240701042."""
    now = now or datetime.now(timezone.utc)
    return f"RS{now:%y%m%d}{secrets.randbelow(1000):03d}"


async def _room_for_rates(
    catalog: CatalogRepository,
    request: ReservationRequest,
    room_id: Optional[int],
) -> Optional[Room]:
    pinned = room_id if room_id is not None else request.room_id
    if pinned is not None:
        return await catalog.get_room_by_id(pinned)
    # same candidates the availability check walks, in catalog order
    rooms = await catalog.get_rooms_by_type(request.room_type or "")
    fitting = [room for room in rooms if room.is_available and room.max_guests >= request.party_size]
    return fitting[0] if fitting else None
