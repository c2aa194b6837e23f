"""Civil (Nepal) time normalisation.

Civil time is a fixed offset from UTC with no daylight saving. Civil strings
crossing the API boundary carry no offset and are converted to UTC instants
here; every internal comparison is done on UTC instants.
"""

from datetime import UTC, date, datetime, time, timedelta, timezone

from storefront.core.config import settings
from storefront.core.exceptions import PromotionValidationError
from storefront.models.shared import ensure_utc

NEPAL_OFFSET = timedelta(minutes=settings.LOCAL_UTC_OFFSET_MINUTES)
NEPAL_TZ = timezone(NEPAL_OFFSET, "NPT")

CIVIL_FORMAT = "%Y-%m-%dT%H:%M:%S"
DISPLAY_FORMAT = "%b %d, %Y %H:%M"

_ACCEPTED_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
)


def parse_civil(value: str) -> datetime:
    """Parse a civil timestamp string into a naive datetime.

    Raises:
        PromotionValidationError: If the string matches none of the accepted formats.
    """
    text = (value or "").strip()
    if not text:
        raise PromotionValidationError("Date string is required")
    for fmt in _ACCEPTED_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise PromotionValidationError(
        f"Invalid date '{value}'. Expected format YYYY-MM-DDTHH:mm:ss (Nepal time)"
    )


def civil_to_utc(value: str | datetime) -> datetime:
    """Convert a civil timestamp (string or naive datetime) to a UTC instant."""
    civil = parse_civil(value) if isinstance(value, str) else value
    if civil.tzinfo is not None:
        return civil.astimezone(UTC)
    return civil.replace(tzinfo=NEPAL_TZ).astimezone(UTC)


def utc_to_civil(instant: datetime) -> datetime:
    """Convert a UTC instant to an aware civil datetime."""
    return ensure_utc(instant).astimezone(NEPAL_TZ)


def format_civil(instant: datetime) -> str:
    return utc_to_civil(instant).strftime(CIVIL_FORMAT)


def format_display(instant: datetime) -> str:
    """Human-readable civil timestamp, e.g. ``Jan 05, 2026 14:30 NPT``."""
    return f"{utc_to_civil(instant).strftime(DISPLAY_FORMAT)} NPT"


def civil_date(instant: datetime) -> date:
    return utc_to_civil(instant).date()


def civil_time_of_day(instant: datetime) -> time:
    return utc_to_civil(instant).time().replace(tzinfo=None)


def is_within_slot(moment: time, slot_start: time | None, slot_end: time | None) -> bool:
    """Check a civil time of day against a daily slot.

    Start is inclusive and end exclusive. A slot whose start is after its end
    wraps midnight (22:00-02:00). Equal bounds, or no slot, cover the whole day.
    """
    if slot_start is None or slot_end is None or slot_start == slot_end:
        return True
    if slot_start < slot_end:
        return slot_start <= moment < slot_end
    return moment >= slot_start or moment < slot_end


def is_within_window(now: datetime, start: datetime, end: datetime) -> bool:
    """Inclusive check of an instant against a UTC window."""
    return ensure_utc(start) <= ensure_utc(now) <= ensure_utc(end)


def _humanize(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    days, remainder = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(remainder, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def window_status(start: datetime, end: datetime, now: datetime | None = None) -> str:
    """Describe where ``now`` falls relative to a promotion window."""
    now = ensure_utc(now or datetime.now(UTC))
    start = ensure_utc(start)
    end = ensure_utc(end)
    if now < start:
        return f"Starts in {_humanize(start - now)}"
    if now > end:
        return "Expired"
    return f"Active - Ends in {_humanize(end - now)}"
