from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_add_on_rates, get_session, get_validation_bounds
from ..domain.booking import AddOnRates, VerdictReason
from ..domain.errors import (
    CancelNotAllowedError,
    LookupFailedError,
    RateTableError,
    RequestValidationError,
    ReservationNotFoundError,
    UnavailableError,
)
from ..domain.validation import ValidationBounds, has_errors, validate_request
from ..infrastructure.repositories import SqlAlchemyCatalogRepository, SqlAlchemyReservationRepository
from ..schemas import (
    AvailabilityRead,
    QuoteRead,
    ReservationCreate,
    ReservationRead,
    ReservationRequestIn,
    ViolationRead,
)
from ..usecases import availability as availability_usecase
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import today_kst

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _validation_exception(exc: RequestValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[ViolationRead.from_domain(v).model_dump() for v in exc.violations],
    )


def _unavailable_exception(exc: UnavailableError) -> HTTPException:
    code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if exc.verdict.reason == VerdictReason.CHECK_ERROR
        else status.HTTP_409_CONFLICT
    )
    return HTTPException(status_code=code, detail=AvailabilityRead.from_domain(exc.verdict).model_dump(mode="json"))


@router.post("/check-availability", response_model=AvailabilityRead)
async def check_availability(
    payload: ReservationRequestIn,
    session: AsyncSession = Depends(get_session),
    bounds: ValidationBounds = Depends(get_validation_bounds),
) -> AvailabilityRead:
    request = payload.to_domain()
    violations = validate_request(request, bounds)
    if has_errors(violations):
        raise _validation_exception(RequestValidationError(violations))
    verdict = await availability_usecase.check_availability(
        request,
        SqlAlchemyCatalogRepository(session),
        SqlAlchemyReservationRepository(session),
    )
    return AvailabilityRead.from_domain(verdict)


@router.post("/quote", response_model=QuoteRead)
async def quote_reservation(
    payload: ReservationRequestIn,
    session: AsyncSession = Depends(get_session),
    add_ons: AddOnRates = Depends(get_add_on_rates),
    bounds: ValidationBounds = Depends(get_validation_bounds),
) -> QuoteRead:
    catalog = SqlAlchemyCatalogRepository(session)
    try:
        breakdown, warnings = await reservation_usecase.quote_reservation(
            catalog,
            payload.to_domain(),
            add_ons=add_ons,
            bounds=bounds,
            res_repo=SqlAlchemyReservationRepository(session),
        )
    except RequestValidationError as exc:
        raise _validation_exception(exc)
    except RateTableError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no rates for the selected room or program")
    except LookupFailedError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="catalog unavailable")
    return QuoteRead.from_domain(breakdown, warnings)


@router.post("", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    add_ons: AddOnRates = Depends(get_add_on_rates),
    bounds: ValidationBounds = Depends(get_validation_bounds),
) -> ReservationRead:
    catalog = SqlAlchemyCatalogRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    request = payload.to_domain()
    async with session.begin():
        try:
            reservation, breakdown, _ = await reservation_usecase.create_reservation(
                catalog,
                res_repo,
                request,
                customer=payload.customer_info(),
                add_ons=add_ons,
                bounds=bounds,
                today=today_kst(),
            )
        except RequestValidationError as exc:
            raise _validation_exception(exc)
        except UnavailableError as exc:
            raise _unavailable_exception(exc)
        except RateTableError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no rates for the selected room or program")
        except LookupFailedError:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="catalog unavailable")
        except IntegrityError:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="reservation number already used, retry")

    try:
        emit_audit_log(
            action="reservation.created",
            reservation_number=reservation.reservation_number,
            room_id=reservation.room_id,
            program_ids=[p.program_id for p in request.programs],
            party_size=request.party_size,
            total_price=breakdown.total,
            status_to=reservation.status,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return ReservationRead.from_db(reservation=reservation, breakdown=breakdown)


@router.get("/{reservation_number}", response_model=ReservationRead)
async def get_reservation(
    reservation_number: str = Path(..., min_length=1, max_length=20),
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(res_repo, reservation_number=reservation_number)
    except ReservationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    except LookupFailedError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reservations unavailable")
    return ReservationRead.from_db(reservation=reservation)


@router.post("/{reservation_number}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_number: str = Path(..., min_length=1, max_length=20),
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            updated, previous = await reservation_usecase.cancel_reservation(
                res_repo,
                reservation_number=reservation_number,
            )
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        except CancelNotAllowedError:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="reservation can no longer be cancelled")
        except LookupFailedError:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reservations unavailable")

    if previous != updated.status:
        try:
            emit_audit_log(
                action="reservation.cancelled",
                reservation_number=updated.reservation_number,
                room_id=updated.room_id,
                party_size=updated.adults + updated.children,
                status_from=previous,
                status_to=updated.status,
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return ReservationRead.from_db(reservation=updated)

