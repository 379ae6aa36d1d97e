"""ISO 8601 retention durations.

Durations are written like ``P30D``, ``P1Y6M`` or ``PT12H``. The leading
``P`` may be omitted (``0dT1s`` is read as ``P0DT1S``) and letters are
case-insensitive. Year and month components are applied on the calendar,
everything else as an exact time span.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from ghcr_prune.errors import ConfigurationError

_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T"
    r"(?:(?P<hours>\d+(?:[.,]\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:[.,]\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:[.,]\d+)?)S)?"
    r")?$",
    re.IGNORECASE,
)

_TIME_UNITS = ("hours", "minutes", "seconds")


@dataclass(frozen=True)
class Duration:
    """A signed calendar-aware duration."""

    years: int = 0
    months: int = 0
    days: int = 0
    time: timedelta = timedelta()
    negative: bool = False
    text: str = ""

    def subtract_from(self, instant: datetime) -> datetime:
        """Return ``instant - self``."""
        sign = 1 if self.negative else -1
        calendar_part = relativedelta(
            years=sign * self.years, months=sign * self.months, days=sign * self.days
        )
        return instant + calendar_part + sign * self.time

    def __str__(self) -> str:
        return self.text or "P0D"


def parse_duration(value: str | None) -> Duration | None:
    """Parse a retention duration; empty input means "not configured"."""
    if value is None:
        return None

    text = value.strip()
    if not text:
        return None

    normalized = text if re.match(r"^[Pp+-]", text) else f"P{text}"
    match = _DURATION_RE.match(normalized)

    if not match or not _has_components(match) or normalized.upper().endswith("T"):
        raise ConfigurationError(
            f"Can't parse {value!r} as duration: expected ISO 8601 duration such as P30D or PT12H"
        )

    fractional = [unit for unit in _TIME_UNITS if match[unit] and re.search(r"[.,]", match[unit])]
    if fractional and fractional[-1] != _last_present(match):
        raise ConfigurationError(
            f"Can't parse {value!r} as duration: only the smallest unit may have a fraction"
        )

    time = timedelta(
        hours=_number(match["hours"]),
        minutes=_number(match["minutes"]),
        seconds=_number(match["seconds"]),
    )

    return Duration(
        years=int(match["years"] or 0),
        months=int(match["months"] or 0),
        days=int(match["weeks"] or 0) * 7 + int(match["days"] or 0),
        time=time,
        negative=match["sign"] == "-",
        text=normalized.upper(),
    )


def _has_components(match: re.Match[str]) -> bool:
    return any(
        match[unit] is not None
        for unit in ("years", "months", "weeks", "days", *_TIME_UNITS)
    )


def _last_present(match: re.Match[str]) -> str | None:
    present = [unit for unit in _TIME_UNITS if match[unit] is not None]
    return present[-1] if present else None


def _number(text: str | None) -> float:
    return float(text.replace(",", ".")) if text else 0.0

