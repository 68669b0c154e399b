from __future__ import annotations

from typing import assert_never

from ..models import ProgramUnit
from .booking import (
    BbqOption,
    BreakfastOption,
    LineItem,
    PriceBreakdown,
    RateTable,
    ReservationRequest,
    ShuttleOption,
    UnrecognizedOption,
)
from .errors import RateTableError

SERVING_UNIT_SIZE = 5


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def count_nights(request: ReservationRequest) -> int:
    # date differences are whole days, so no rounding is needed
    return (request.check_out - request.check_in).days


def bbq_units(option: BbqOption, party_size: int) -> int:
    """Caller-supplied quantity wins; otherwise one serving unit per 5 guests."""
    if option.quantity is not None:
        return option.quantity
    return _ceil_div(party_size, SERVING_UNIT_SIZE)


def compute_total(request: ReservationRequest, rate_table: RateTable) -> PriceBreakdown:
    """
    Itemized quote for a structurally valid request.
    Amounts are integer won; price-on-request lines carry 0 and are not summed.
    Raises RateTableError when a selected item has no configured price.
    """
    party = request.party_size
    nights = count_nights(request)
    items: list[LineItem] = []

    if request.wants_room:
        room = rate_table.room
        if room is None:
            raise RateTableError("room requested but rate table has no room rates")
        label = f"Stay ({nights} night)" if nights == 1 else f"Stay ({nights} nights)"
        items.append(LineItem("stay", label, room.base_price * nights, quantity=nights))

    for selection in request.programs:
        rate = rate_table.programs.get(selection.program_id)
        if rate is None:
            raise RateTableError(f"no rate for program {selection.program_id}")
        per_package = rate.price * party if rate.unit == ProgramUnit.PER_PERSON else rate.price
        items.append(
            LineItem(
                "program",
                f"Program {selection.program_id}",
                per_package * selection.quantity,
                quantity=selection.quantity,
                ref_id=selection.program_id,
            )
        )

    if request.wants_room and rate_table.room is not None:
        extra_guests = max(0, party - rate_table.room.base_capacity)
        if extra_guests > 0:
            items.append(
                LineItem(
                    "extra_guests",
                    f"Extra guests x{extra_guests}",
                    extra_guests * rate_table.room.extra_person_fee,
                    quantity=extra_guests,
                )
            )

    add_ons = rate_table.add_ons
    for option in request.options:
        if isinstance(option, BbqOption):
            unit_price = add_ons.bbq_tiers.get(option.tier)
            if unit_price is None:
                raise RateTableError(f"no price for BBQ tier {option.tier!r}")
            units = bbq_units(option, party)
            items.append(LineItem("bbq", f"BBQ {option.tier} x{units}", unit_price * units, quantity=units))
        elif isinstance(option, BreakfastOption):
            if add_ons.breakfast is None:
                raise RateTableError("no price for breakfast")
            items.append(LineItem("breakfast", f"Breakfast x{party}", add_ons.breakfast * party, quantity=party))
        elif isinstance(option, ShuttleOption):
            if add_ons.shuttle is None:
                items.append(LineItem("shuttle", "Shuttle bus (price on request)", 0, price_on_request=True))
            else:
                items.append(LineItem("shuttle", "Shuttle bus", add_ons.shuttle))
        elif isinstance(option, UnrecognizedOption):
            continue
        else:
            assert_never(option)

    total = sum(item.amount for item in items if not item.price_on_request)
    return PriceBreakdown(items=tuple(items), nights=nights, total=total)
