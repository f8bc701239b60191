from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from .config import settings


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(settings.CLINIC_TIMEZONE)


def to_utc_naive(value: datetime) -> datetime:
    """Normalise an incoming datetime to the naive UTC form the store keeps.

    Naive input is taken to be clinic-local time.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=clinic_tz())
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_clinic_local(value: datetime) -> datetime:
    """Stored naive UTC -> aware clinic-local datetime."""
    return value.replace(tzinfo=timezone.utc).astimezone(clinic_tz())


def clinic_today() -> date:
    return datetime.now(clinic_tz()).date()


def format_date_time(value: datetime, time_zone: str = None) -> str:
    """Render like ``Oct 25, 2023, 8:30 AM`` in the given (or clinic) timezone."""
    tz = ZoneInfo(time_zone) if time_zone else clinic_tz()
    local = value.replace(tzinfo=timezone.utc).astimezone(tz)
    hour = local.hour % 12 or 12
    period = "AM" if local.hour < 12 else "PM"
    return f"{local.strftime('%b')} {local.day}, {local.year}, {hour}:{local.minute:02d} {period}"
