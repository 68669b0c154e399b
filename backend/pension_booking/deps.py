from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.booking import AddOnRates
from .domain.validation import ValidationBounds


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_add_on_rates(settings: Settings = Depends(get_settings)) -> AddOnRates:
    return AddOnRates(
        bbq_tiers={
            "basic": settings.bbq_basic_price,
            "standard": settings.bbq_standard_price,
            "premium": settings.bbq_premium_price,
        },
        breakfast=settings.breakfast_price,
        shuttle=settings.shuttle_fee,
    )


def get_validation_bounds(settings: Settings = Depends(get_settings)) -> ValidationBounds:
    return ValidationBounds(
        max_bbq_units=settings.max_bbq_units,
        max_adults=settings.max_adults,
        max_children=settings.max_children,
    )
