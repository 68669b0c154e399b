from datetime import date, datetime
from typing import Any, cast

import pytest
from fastapi import HTTPException
from pension_booking.domain.booking import (
    AddOnRates,
    AvailabilityVerdict,
    BbqOption,
    LineItem,
    PriceBreakdown,
    ReservationRequest,
    UnrecognizedOption,
    VerdictReason,
    Violation,
)
from pension_booking.domain.errors import (
    CancelNotAllowedError,
    LookupFailedError,
    RequestValidationError,
    ReservationNotFoundError,
    UnavailableError,
)
from pension_booking.domain.validation import ValidationBounds
from pension_booking.models import Reservation, ReservationStatus
from pension_booking.routers import reservations as router
from pension_booking.schemas import CustomerIn, OptionIn, ReservationCreate, ReservationRequestIn
from sqlalchemy.ext.asyncio import AsyncSession

ADD_ONS = AddOnRates(bbq_tiers={"standard": 60000}, breakfast=10000)
BOUNDS = ValidationBounds()


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


class DummyRepo:
    def __init__(self, session: object) -> None:
        self.session = session


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemyCatalogRepository", DummyRepo)
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", DummyRepo)


def _payload(**overrides: Any) -> ReservationCreate:
    fields: dict[str, Any] = {
        "check_in": date(2099, 7, 1),
        "check_out": date(2099, 7, 3),
        "adults": 3,
        "room_type": "standard",
        "customer": CustomerIn(name="Kim Minji", phone="010-1234-5678"),
    }
    fields.update(overrides)
    return ReservationCreate(**fields)


def _reservation(status: ReservationStatus = ReservationStatus.PENDING) -> Reservation:
    now = datetime(2099, 6, 1)
    return Reservation(
        id=1,
        reservation_number="RS990601123",
        room_id=2,
        customer_name="Kim Minji",
        customer_phone="010-1234-5678",
        check_in_date=date(2099, 7, 1),
        check_out_date=date(2099, 7, 3),
        adults=3,
        children=0,
        total_price=330000,
        price_on_request=False,
        status=status,
        created_at=now,
        updated_at=now,
    )


BREAKDOWN = PriceBreakdown(
    items=(LineItem("stay", "Stay (2 nights)", 300000, quantity=2), LineItem("extra_guests", "Extra guests x1", 30000)),
    nights=2,
    total=330000,
)


def test_option_payload_maps_unknown_kinds() -> None:
    request = ReservationRequestIn(
        check_in=date(2099, 7, 1),
        check_out=date(2099, 7, 2),
        adults=2,
        room_type="standard",
        options=[OptionIn(kind="bbq", tier="premium"), OptionIn(kind="bus"), OptionIn(kind="karaoke")],
    ).to_domain()

    assert [type(o).__name__ for o in request.options] == ["BbqOption", "ShuttleOption", "UnrecognizedOption"]
    assert request.options[2] == UnrecognizedOption(kind="karaoke")


@pytest.mark.asyncio
async def test_check_availability_returns_verdict(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_check(request: ReservationRequest, catalog: object, res_repo: object) -> AvailabilityVerdict:
        assert isinstance(catalog, DummyRepo)
        assert request.party_size == 3
        return AvailabilityVerdict.fail(VerdictReason.DATE_CONFLICT, "no room is available for the selected dates")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.availability_usecase, "check_availability", fake_check)

    result = await router.check_availability(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        bounds=BOUNDS,
    )

    assert result.available is False
    assert result.reason == VerdictReason.DATE_CONFLICT


@pytest.mark.asyncio
async def test_check_availability_rejects_invalid_dates(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_check(*args: object, **kwargs: object) -> AvailabilityVerdict:  # pragma: no cover
        raise AssertionError("availability must not be consulted")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.availability_usecase, "check_availability", fake_check)

    with pytest.raises(HTTPException) as excinfo:
        await router.check_availability(
            payload=_payload(check_out=date(2099, 7, 1)),
            session=cast(AsyncSession, DummySession()),
            bounds=BOUNDS,
        )
    assert excinfo.value.status_code == 422
    assert excinfo.value.detail[0]["message"] == "checkout must be after checkin"


@pytest.mark.asyncio
async def test_quote_returns_line_items(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_quote(*args: object, **kwargs: object) -> tuple[PriceBreakdown, list[Violation]]:
        return BREAKDOWN, [Violation("unrecognized_option", "unrecognized option: karaoke", "warning")]

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "quote_reservation", fake_quote)

    result = await router.quote_reservation(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        add_ons=ADD_ONS,
        bounds=BOUNDS,
    )

    assert result.total == 330000
    assert [item.code for item in result.items] == ["stay", "extra_guests"]
    assert result.warnings[0].severity == "warning"


@pytest.mark.asyncio
async def test_create_reservation_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation()

    async def fake_create(*args: object, **kwargs: object) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
        assert kwargs["customer"].name == "Kim Minji"  # type: ignore[attr-defined]
        return reservation, BREAKDOWN, AvailabilityVerdict.ok(room_id=2)

    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    result = await router.create_reservation(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        add_ons=ADD_ONS,
        bounds=BOUNDS,
    )

    assert result.reservation_number == reservation.reservation_number
    assert result.quote is not None and result.quote.total == 330000
    assert len(calls) == 1
    assert calls[0]["action"] == "reservation.created"
    assert calls[0]["total_price"] == 330000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("reason", "status_code"),
    [
        (VerdictReason.DATE_CONFLICT, 409),
        (VerdictReason.INSUFFICIENT_STOCK, 409),
        (VerdictReason.CHECK_ERROR, 503),
    ],
)
async def test_create_reservation_maps_unavailable(
    monkeypatch: pytest.MonkeyPatch, reason: VerdictReason, status_code: int
) -> None:
    async def fake_create(*args: object, **kwargs: object) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
        raise UnavailableError(AvailabilityVerdict.fail(reason, "unavailable"))

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            add_ons=ADD_ONS,
            bounds=BOUNDS,
        )
    assert excinfo.value.status_code == status_code
    assert excinfo.value.detail["reason"] == reason.value


@pytest.mark.asyncio
async def test_create_reservation_maps_validation_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
        raise RequestValidationError([Violation("check_in", "checkin cannot be in the past")])

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            add_ons=ADD_ONS,
            bounds=BOUNDS,
        )
    assert excinfo.value.status_code == 422


@pytest.mark.asyncio
async def test_create_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
        return _reservation(), BREAKDOWN, AvailabilityVerdict.ok(room_id=2)

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            add_ons=ADD_ONS,
            bounds=BOUNDS,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_get_reservation_404(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_get(*args: object, **kwargs: object) -> Reservation:
        raise ReservationNotFoundError("RS000000000")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "get_reservation", fake_get)

    with pytest.raises(HTTPException) as excinfo:
        await router.get_reservation(reservation_number="RS000000000", session=cast(AsyncSession, DummySession()))
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_reservation_emits_only_on_change(monkeypatch: pytest.MonkeyPatch) -> None:
    cancelled = _reservation(ReservationStatus.CANCELLED)
    previous_status = ReservationStatus.CONFIRMED

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        return cancelled, previous_status

    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    result = await router.cancel_reservation(
        reservation_number=cancelled.reservation_number, session=cast(AsyncSession, DummySession())
    )
    assert result.status == ReservationStatus.CANCELLED
    assert calls[0]["status_from"] == ReservationStatus.CONFIRMED

    previous_status = ReservationStatus.CANCELLED
    await router.cancel_reservation(
        reservation_number=cancelled.reservation_number, session=cast(AsyncSession, DummySession())
    )
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_cancel_reservation_maps_domain_error_to_403(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        raise CancelNotAllowedError("completed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(reservation_number="RS990601123", session=cast(AsyncSession, DummySession()))
    assert excinfo.value.status_code == 403


def test_bbq_option_without_tier_is_kept_for_validation() -> None:
    option = OptionIn(kind="bbq", quantity=2).to_domain()

    assert option == BbqOption(tier="", quantity=2)


@pytest.mark.asyncio
async def test_create_reservation_lookup_failure_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> tuple[Reservation, PriceBreakdown, AvailabilityVerdict]:
        raise LookupFailedError("room lookup failed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            add_ons=ADD_ONS,
            bounds=BOUNDS,
        )
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_get_reservation_lookup_failure_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_get(*args: object, **kwargs: object) -> Reservation:
        raise LookupFailedError("reservation lookup failed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "get_reservation", fake_get)

    with pytest.raises(HTTPException) as excinfo:
        await router.get_reservation(reservation_number="RS990601123", session=cast(AsyncSession, DummySession()))
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_cancel_reservation_lookup_failure_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        raise LookupFailedError("reservation lookup failed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(reservation_number="RS990601123", session=cast(AsyncSession, DummySession()))
    assert excinfo.value.status_code == 503
