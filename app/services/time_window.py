"""
Campaign calling-hours enforcement.

Outbound campaign calls may only be placed inside the campaign's allowed
days and hours, evaluated in the campaign's own timezone. This is a
compliance rule: whenever the window cannot be verified the answer is "no".
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DAY_ORDER = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")  # index == datetime.weekday()
DAY_NAMES = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}
_FULL_NAME_TO_TAG = {name.lower(): tag for tag, name in DAY_NAMES.items()}

FAIL_CLOSED_REASON = "Error checking time window. Calls are blocked for safety."


class TimeWindowConfigError(ValueError):
    """The campaign's window configuration cannot be interpreted."""


@dataclass(frozen=True)
class CallWindowDecision:
    allowed: bool
    reason: Optional[str] = None
    next_window_opens: Optional[str] = None
    next_allowed_day: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "next_window_opens": self.next_window_opens,
            "next_allowed_day": self.next_allowed_day,
        }


def parse_time_of_day(value) -> time:
    """Parse "HH:MM" or "HH:MM:SS" (or pass a time through)."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if not isinstance(value, str):
        raise TimeWindowConfigError(f"Invalid time value: {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise TimeWindowConfigError(f"Invalid time value: {value!r}")
    try:
        return time(*(int(p) for p in parts))
    except ValueError as e:
        raise TimeWindowConfigError(f"Invalid time value: {value!r}") from e


def normalize_days(days: Iterable[str]) -> List[str]:
    """Map day entries ("mon", "Monday", "MON") onto tags in week order."""
    if days is None or isinstance(days, str):
        raise TimeWindowConfigError(f"allowed_days_of_week must be a list of day tags, got {days!r}")
    tags = set()
    for day in days:
        key = str(day).strip().lower()
        if key in DAY_NAMES:
            tags.add(key)
        elif key in _FULL_NAME_TO_TAG:
            tags.add(_FULL_NAME_TO_TAG[key])
        else:
            raise TimeWindowConfigError(f"Unknown day of week: {day!r}")
    if not tags:
        raise TimeWindowConfigError("No calling days configured")
    return [tag for tag in DAY_ORDER if tag in tags]


def find_next_allowed_day(current_day: str, allowed_days: Iterable[str]) -> str:
    """First allowed day strictly after current_day, wrapping around the week.

    Wraps back to current_day only when it is the single allowed day.
    """
    allowed = set(allowed_days)
    start = DAY_ORDER.index(current_day)
    for offset in range(1, 8):
        candidate = DAY_ORDER[(start + offset) % 7]
        if candidate in allowed:
            return candidate
    raise TimeWindowConfigError("No calling days configured")


def resolve_timezone(tz_name) -> ZoneInfo:
    if not tz_name or not isinstance(tz_name, str):
        raise TimeWindowConfigError(f"Invalid timezone: {tz_name!r}")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimeWindowConfigError(f"Unknown timezone: {tz_name!r}") from e


def load_window_config(config) -> Tuple[ZoneInfo, List[str], time, time]:
    """Parse and check a window config. Raises TimeWindowConfigError.

    Overnight windows (start after end) are not supported.
    """
    tz = resolve_timezone(config.timezone)
    allowed_days = normalize_days(config.allowed_days_of_week)
    start = parse_time_of_day(config.allowed_call_start_time)
    end = parse_time_of_day(config.allowed_call_end_time)
    if start >= end:
        raise TimeWindowConfigError(f"Start time {start} is not before end time {end}")
    return tz, allowed_days, start, end


def _evaluate(config, now: Optional[datetime]) -> CallWindowDecision:
    tz, allowed_days, start, end = load_window_config(config)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(tz)

    start_label = start.isoformat()
    current_day = DAY_ORDER[local_now.weekday()]

    if current_day not in allowed_days:
        next_day = find_next_allowed_day(current_day, allowed_days)
        return CallWindowDecision(
            allowed=False,
            reason=f"Calls are not allowed on {DAY_NAMES[current_day]}. Next allowed day: {DAY_NAMES[next_day]}",
            next_window_opens=f"Next {DAY_NAMES[next_day]} at {start_label}",
            next_allowed_day=next_day,
        )

    current_time = local_now.time().replace(microsecond=0)
    current_label = current_time.strftime("%H:%M")

    if current_time < start:
        return CallWindowDecision(
            allowed=False,
            reason=f"Current time ({current_label}) is before allowed start time ({start_label})",
            next_window_opens=f"Today at {start_label}",
            next_allowed_day=current_day,
        )

    # End of window is exclusive
    if current_time >= end:
        next_day = find_next_allowed_day(current_day, allowed_days)
        return CallWindowDecision(
            allowed=False,
            reason=f"Current time ({current_label}) is after allowed end time ({end.isoformat()})",
            next_window_opens=f"Next {DAY_NAMES[next_day]} at {start_label}",
            next_allowed_day=next_day,
        )

    return CallWindowDecision(allowed=True)


def is_within_call_window(config, now: Optional[datetime] = None) -> CallWindowDecision:
    """
    Decide whether an outbound call for this campaign may be placed at `now`.

    `config` is anything exposing timezone, allowed_call_start_time,
    allowed_call_end_time and allowed_days_of_week (a CallCampaign row or a
    CallWindowConfig schema). A naive `now` is taken as UTC.

    Never raises: any failure to read the configuration or resolve the
    timezone denies the call.
    """
    try:
        return _evaluate(config, now)
    except Exception as e:
        logger.warning(
            "Call window check failed for timezone=%r, failing closed: %s",
            getattr(config, "timezone", None),
            e,
        )
        return CallWindowDecision(allowed=False, reason=FAIL_CLOSED_REASON)


def get_time_window_summary(config) -> str:
    """Human-readable summary, e.g. "Calls allowed: Mon, Tue 09:00:00–18:00:00 [America/New_York]"."""
    days = ", ".join(tag.capitalize() for tag in normalize_days(config.allowed_days_of_week))
    start = parse_time_of_day(config.allowed_call_start_time).isoformat()
    end = parse_time_of_day(config.allowed_call_end_time).isoformat()
    return f"Calls allowed: {days} {start}–{end} [{config.timezone}]"
