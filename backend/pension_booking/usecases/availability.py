import logging
from datetime import date
from typing import Any, Dict, List, Optional

from ..domain.booking import AvailabilityVerdict, ReservationRequest, VerdictReason
from ..domain.errors import LookupFailedError
from ..domain.repositories import CatalogRepository, ReservationRepository
from ..domain.services import ProgramSnapshot, aggregate_program_verdicts, evaluate_program
from ..models import BLOCKING_STATUSES, Room

logger = logging.getLogger(__name__)


async def check_room_availability(
    catalog: CatalogRepository,
    res_repo: ReservationRepository,
    *,
    room_type: Optional[str],
    room_id: Optional[int],
    check_in: date,
    check_out: date,
    party_size: int,
) -> AvailabilityVerdict:
    """
    Pick the first room (catalog order) that fits the party and has no
    pending/confirmed reservation overlapping the stay.
    """
    try:
        rooms = await _resolve_rooms(catalog, room_type=room_type, room_id=room_id)
    except LookupFailedError as exc:
        logger.warning("room lookup failed type=%s id=%s: %s", room_type, room_id, exc)
        return AvailabilityVerdict.fail(VerdictReason.CHECK_ERROR, "room availability could not be checked")

    if not rooms:
        return AvailabilityVerdict.fail(VerdictReason.ROOM_UNAVAILABLE, "room not found")

    candidates = [room for room in rooms if room.max_guests >= party_size]
    if not candidates:
        return AvailabilityVerdict.fail(
            VerdictReason.CAPACITY_EXCEEDED,
            f"no room can accommodate {party_size} guests",
            requested_participants=party_size,
        )

    failed_checks = 0
    for room in candidates:
        try:
            conflicts = await res_repo.find_overlapping(room.id, check_in, check_out, BLOCKING_STATUSES)
        except LookupFailedError as exc:
            # fail closed for this room only
            logger.warning("overlap lookup failed room_id=%s: %s", room.id, exc)
            failed_checks += 1
            continue
        if not conflicts:
            return AvailabilityVerdict.ok("room available", room_id=room.id, room_type=room.type)

    if failed_checks:
        return AvailabilityVerdict.fail(
            VerdictReason.CHECK_ERROR,
            "room availability could not be checked",
            failed_rooms=failed_checks,
        )
    return AvailabilityVerdict.fail(
        VerdictReason.DATE_CONFLICT,
        "no room is available for the selected dates",
        conflicting_rooms=len(candidates),
    )


async def check_program_availability(
    catalog: CatalogRepository,
    res_repo: ReservationRepository,
    *,
    program_id: int,
    scheduled_date: date,
    scheduled_time: Optional[str],
    party_size: int,
    quantity: int = 1,
) -> AvailabilityVerdict:
    try:
        program = await catalog.get_program_by_id(program_id)
        if program is None or not program.is_available:
            return AvailabilityVerdict.fail(
                VerdictReason.PROGRAM_NOT_FOUND, "program not found", program_id=program_id
            )
        booked = 0
        if program.stock_quantity:
            booked = await res_repo.sum_booked_quantity(program_id, scheduled_date, scheduled_time)
    except LookupFailedError as exc:
        logger.warning("program lookup failed program_id=%s: %s", program_id, exc)
        return AvailabilityVerdict.fail(
            VerdictReason.CHECK_ERROR, "program availability could not be checked", program_id=program_id
        )

    snapshot = ProgramSnapshot(
        program_id=program.id,
        max_participants=program.max_participants,
        stock_quantity=program.stock_quantity,
        booked_quantity=booked,
    )
    return evaluate_program(snapshot, party_size=party_size, quantity=quantity)


async def check_availability(
    request: ReservationRequest,
    catalog: CatalogRepository,
    res_repo: ReservationRepository,
) -> AvailabilityVerdict:
    """Room first; programs only when the room passes, with every program conflict reported."""
    room_verdict: Optional[AvailabilityVerdict] = None
    if request.wants_room:
        room_verdict = await check_room_availability(
            catalog,
            res_repo,
            room_type=request.room_type,
            room_id=request.room_id,
            check_in=request.check_in,
            check_out=request.check_out,
            party_size=request.party_size,
        )
        if not room_verdict.available:
            return room_verdict

    if not request.programs:
        return room_verdict or AvailabilityVerdict.ok()

    verdicts = [
        await check_program_availability(
            catalog,
            res_repo,
            program_id=selection.program_id,
            scheduled_date=request.scheduled_date_for(selection),
            scheduled_time=selection.scheduled_time,
            party_size=request.party_size,
            quantity=selection.quantity,
        )
        for selection in request.program_demand()
    ]
    programs_verdict = aggregate_program_verdicts(verdicts)
    if not programs_verdict.available or room_verdict is None:
        return programs_verdict
    return AvailabilityVerdict.ok(
        "available",
        **room_verdict.details,
        programs=programs_verdict.details["programs"],
    )


async def list_program_times(
    catalog: CatalogRepository,
    res_repo: ReservationRepository,
    *,
    program_id: int,
    scheduled_date: date,
    quantity: int = 1,
) -> Optional[Dict[str, Any]]:
    """Remaining stock per configured time slot; None when the program does not exist."""
    program = await catalog.get_program_by_id(program_id)
    if program is None or not program.is_available:
        return None

    slots: List[Dict[str, Any]] = []
    for slot_time in program.available_times or []:
        if program.stock_quantity:
            booked = await res_repo.sum_booked_quantity(program_id, scheduled_date, slot_time)
            remaining: Optional[int] = max(program.stock_quantity - booked, 0)
        else:
            remaining = None
        slots.append(
            {
                "time": slot_time,
                "available_stock": remaining,
                "available": remaining is None or remaining >= quantity,
            }
        )
    return {"program": program, "slots": slots}


async def _resolve_rooms(
    catalog: CatalogRepository,
    *,
    room_type: Optional[str],
    room_id: Optional[int],
) -> list[Room]:
    if room_id is not None:
        room = await catalog.get_room_by_id(room_id)
        rooms = [room] if room is not None else []
    elif room_type is not None:
        rooms = await catalog.get_rooms_by_type(room_type)
    else:
        rooms = []
    return [room for room in rooms if room.is_available]
