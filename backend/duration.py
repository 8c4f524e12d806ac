"""Effort durations written as "1d 2h 30m".

Each component is tri-state: None (not given, not shown), 0 (given as zero and
shown) or a positive count. A day is a working day, so totals convert with
``hours_per_day`` (8 unless configured otherwise).
"""
import re
from dataclasses import dataclass

EFFORT_PATTERN = re.compile(r"^((\d+d\s?)?(\d+h\s?)?(\d+m\s?)?)$")
# Largest value a 32-bit INTEGER column holds
MAX_COMPONENT = 2**31 - 1

_DAYS = re.compile(r"(\d+)d")
_HOURS = re.compile(r"(\d+)h")
_MINUTES = re.compile(r"(\d+)m")


@dataclass(frozen=True)
class Effort:
    days: int | None = None
    hours: int | None = None
    minutes: int | None = None

    @property
    def is_unset(self) -> bool:
        return self.days is None and self.hours is None and self.minutes is None

    def to_minutes(self, hours_per_day: int = 8) -> int:
        """Total minutes, unset components counting as zero."""
        return (
            (self.days or 0) * hours_per_day * 60
            + (self.hours or 0) * 60
            + (self.minutes or 0)
        )


UNSET = Effort()


def is_valid_effort(text: str | None) -> bool:
    """True for blank input, or d/h/m text whose numbers fit a database column."""
    if text is None:
        return True
    if EFFORT_PATTERN.match(text.strip()) is None:
        return False
    effort = parse_effort(text)
    return all(
        value is None or value <= MAX_COMPONENT
        for value in (effort.days, effort.hours, effort.minutes)
    )


def _component(pattern: re.Pattern, text: str) -> int | None:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


def parse_effort(text: str | None) -> Effort:
    """Parse "1d 2h 30m" into an Effort.

    Grammar is checked at the form boundary; this only extracts digits, so a
    missing token stays None and blank input is fully unset.
    """
    if not text or not text.strip():
        return UNSET
    return Effort(
        days=_component(_DAYS, text),
        hours=_component(_HOURS, text),
        minutes=_component(_MINUTES, text),
    )


def format_effort(effort: Effort) -> str:
    parts = []
    if effort.days is not None:
        parts.append(f"{effort.days}d")
    if effort.hours is not None:
        parts.append(f"{effort.hours}h")
    if effort.minutes is not None:
        parts.append(f"{effort.minutes}m")
    return " ".join(parts)


def format_minutes(total_minutes: int, hours_per_day: int = 8) -> str:
    """Render an aggregate (e.g. a day's summed effort) as "1d 2h 30m".

    Zero components are dropped and an empty total reads "0h".
    """
    if total_minutes <= 0:
        return "0h"

    minutes_per_day = hours_per_day * 60
    days, remainder = divmod(total_minutes, minutes_per_day)
    hours, minutes = divmod(remainder, 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts) or "0h"
