from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

KST = ZoneInfo("Asia/Seoul")


def today_kst(now: datetime | None = None) -> date:
    """Business date at the pension; check-in dates are compared against it."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return now.astimezone(KST).date()


def utc_naive_to_kst(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(KST)
