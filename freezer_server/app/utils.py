# freezer_server/app/utils.py
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from .models import (
    EVENT_CLEAR, EVENT_REFREEZE, EVENT_START, EVENT_STOP,
    STATUS_FREEZING, STATUS_LOADED, STATUS_READY, STD_TIME_COLUMN,
    FreezeLogIn, FreezerRecord,
)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*:\s*(\d{1,2})(?:\s*:\s*(\d{1,2}))?\s*$")

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
)


def parse_duration_to_hours(value: Any) -> float:
    """'HH:MM' -> hours as float ("48:30" -> 48.5). Anything malformed is 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, timedelta):
        return value.total_seconds() / 3600
    if isinstance(value, time):
        return value.hour + value.minute / 60 + value.second / 3600
    m = _DURATION_RE.match(str(value))
    if not m:
        return 0.0
    hours = int(m.group(1)) + int(m.group(2)) / 60
    if m.group(3):
        hours += int(m.group(3)) / 3600
    return hours


def to_local(dt: datetime, tz: str) -> datetime:
    """Aware datetimes are moved into tz and made naive; naive ones are already local."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(tz)).replace(tzinfo=None)


def parse_timestamp(value: Any, tz: str = "UTC") -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local(value, tz)
    if isinstance(value, date):
        return datetime.combine(value, time())
    s = str(value).strip()
    if not s:
        return None
    try:
        iso = s[:-1] + "+00:00" if s.endswith("Z") else s
        return to_local(datetime.fromisoformat(iso), tz)
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None or value == "":
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: int = 0) -> int:
    try:
        if value is None or value == "":
            return default
        return int(float(value))
    except (TypeError, ValueError):
        return default


def now_iso(tz: str) -> str:
    return datetime.now(timezone.utc).astimezone(ZoneInfo(tz)).isoformat(timespec="seconds")


# ---------------------------
# Freezer state transition
# ---------------------------
def apply_freeze_event(freezer: FreezerRecord, log: FreezeLogIn, tz: str = "UTC") -> dict:
    """Return the Freezers columns to write for one history event.

    Unknown events only touch LastEmployee / LastEventTimestamp / Notes.
    """
    updates: dict[str, Any] = {}

    if log.event == EVENT_START:
        updates.update({
            "Status": STATUS_FREEZING,
            "EstimatedCompletion": log.estimated_completion,
            "CurrentMeter": log.meter_start,
            "CurrentStartTimestamp": log.timestamp,
            "TotalFreezeTime": 0,
            "RefreezeCount": 0,
        })
    elif log.event == EVENT_STOP:
        updates["Status"] = STATUS_LOADED
        updates["CurrentMeter"] = log.meter_end
        start = parse_timestamp(freezer.current_start_timestamp, tz)
        end = parse_timestamp(log.timestamp, tz)
        if start is not None and end is not None:
            total = to_float(freezer.total_freeze_time) + hours_between(start, end)
            updates["TotalFreezeTime"] = round(total, 2)
        updates["CurrentStartTimestamp"] = ""
    elif log.event == EVENT_CLEAR:
        updates.update({
            "Status": STATUS_READY,
            "EstimatedCompletion": "",
            "CurrentMeter": "",
            "CurrentStartTimestamp": "",
            "RefreezeCount": 0,
            "TotalFreezeTime": 0,
        })
    elif log.event == EVENT_REFREEZE:
        updates.update({
            "Status": STATUS_FREEZING,
            "EstimatedCompletion": "",
            "CurrentMeter": log.meter_start,
            "CurrentStartTimestamp": log.timestamp,
            "RefreezeCount": to_int(freezer.refreeze_count) + 1,
        })

    updates["LastEmployee"] = log.employee
    updates["LastEventTimestamp"] = log.timestamp
    updates["Notes"] = log.notes or ""
    return updates


# ---------------------------
# Chart aggregation
# ---------------------------
def compute_chart_data(history: list[dict], freezers: list[dict], month: int, year: int,
                       tz: str = "UTC") -> dict:
    avg_times: dict[str, float] = {}
    usage_counts: dict[str, int] = {}
    efficiency: dict[str, float] = {}
    result = {"avgFreezeTimes": avg_times, "usageCounts": usage_counts, "efficiency": efficiency}
    if not history or not freezers:
        return result

    events = []
    for row in history:
        ts = parse_timestamp(row.get("Timestamp"), tz)
        if ts is None or ts.month != month or ts.year != year:
            continue
        events.append((ts, row))
    # by timestamp rather than sheet order, so late-written rows still pair up
    events.sort(key=lambda e: e[0])

    open_sessions: dict[str, datetime] = {}
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for ts, row in events:
        fid = str(row.get("FreezerID", ""))
        event = row.get("Event")
        if event == EVENT_START:
            open_sessions[fid] = ts
        elif event == EVENT_STOP:
            start = open_sessions.pop(fid, None)
            if start is not None:
                totals[fid] = totals.get(fid, 0.0) + hours_between(start, ts)
                counts[fid] = counts.get(fid, 0) + 1
        elif event == EVENT_REFREEZE:
            # Refreeze never counts as a new usage
            open_sessions[fid] = ts
            explicit = row.get("TotalFreezeTime")
            if explicit not in (None, ""):
                try:
                    totals[fid] = float(explicit)
                except (TypeError, ValueError):
                    pass
        elif event == EVENT_CLEAR:
            open_sessions.pop(fid, None)

    for f in freezers:
        fid = "" if f.get("ID") is None else str(f.get("ID"))
        name = "" if f.get("Name") is None else str(f.get("Name"))
        count = counts.get(fid, 0)
        avg = totals.get(fid, 0.0) / count if count else 0.0
        std_hours = parse_duration_to_hours(f.get(STD_TIME_COLUMN))
        avg_times[name] = avg
        usage_counts[name] = count
        efficiency[name] = std_hours - avg if std_hours > 0 else 0
    return result
