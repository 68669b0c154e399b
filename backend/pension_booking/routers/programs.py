from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import LookupFailedError
from ..infrastructure.repositories import SqlAlchemyCatalogRepository, SqlAlchemyReservationRepository
from ..schemas import ProgramAvailabilityRead, ProgramTimeRead
from ..usecases import availability as availability_usecase

router = APIRouter(prefix="/programs", tags=["programs"])


@router.get("/{program_id}/availability", response_model=ProgramAvailabilityRead)
async def program_availability(
    program_id: int,
    scheduled_date: date = Query(..., alias="date", description="KST date (YYYY-MM-DD)"),
    quantity: int = Query(default=1, ge=1),
    session: AsyncSession = Depends(get_session),
) -> ProgramAvailabilityRead:
    try:
        result = await availability_usecase.list_program_times(
            SqlAlchemyCatalogRepository(session),
            SqlAlchemyReservationRepository(session),
            program_id=program_id,
            scheduled_date=scheduled_date,
            quantity=quantity,
        )
    except LookupFailedError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="program stock unavailable")
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="program not found")

    program = result["program"]
    return ProgramAvailabilityRead(
        program_id=program.id,
        scheduled_date=scheduled_date,
        requested_quantity=quantity,
        total_stock=program.stock_quantity,
        max_participants=program.max_participants,
        price=program.price,
        times=[ProgramTimeRead(**slot) for slot in result["slots"]],
    )
