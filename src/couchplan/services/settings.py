"""Viewing settings and the time-budget policy derived from them."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from couchplan.models import SchedulingMode, ViewingSettings

logger = logging.getLogger(__name__)

SUNDAY = 0
SATURDAY = 6
WEEKEND = frozenset({SUNDAY, SATURDAY})

# Override columns indexed by weekday (0 = Sunday).
OVERRIDE_FIELDS = (
    "sunday_minutes",
    "monday_minutes",
    "tuesday_minutes",
    "wednesday_minutes",
    "thursday_minutes",
    "friday_minutes",
    "saturday_minutes",
)
SETTINGS_FIELDS = (
    "weekday_minutes",
    "weekend_minutes",
    "scheduling_mode",
    "staggered_start",
    "stagger_episodes",
    *OVERRIDE_FIELDS,
)


def day_of_week(day: date) -> int:
    """Weekday index of ``day`` with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


def _check_weekday(weekday: int) -> None:
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be between 0 and 6, got {weekday}")


def get_viewing_settings(session: Session) -> ViewingSettings:
    """Return the stored settings, or the built-in defaults if none were saved.

    The defaults are never added to the session; reading settings has no side
    effects.
    """
    settings = session.get(ViewingSettings, 1)
    return settings if settings is not None else ViewingSettings.defaults()


def update_viewing_settings(session: Session, **fields: object) -> ViewingSettings:
    """Persist the given fields on the settings singleton, creating it if needed.

    Override fields accept ``None`` to fall back to the weekday/weekend default.
    """
    unknown = set(fields) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValueError(f"Unknown settings fields: {sorted(unknown)}")

    settings = session.get(ViewingSettings, 1)
    if settings is None:
        settings = ViewingSettings.defaults()
        session.add(settings)

    for name, value in fields.items():
        if name == "scheduling_mode":
            value = SchedulingMode(value)
        elif name == "staggered_start":
            value = bool(value)
        elif value is not None and int(value) < 0:
            raise ValueError(f"{name} cannot be negative")
        setattr(settings, name, value)

    session.flush()
    logger.info("Updated viewing settings: %s", settings)
    return settings


def resolve_minutes(settings: ViewingSettings, weekday: int) -> int:
    """Apply the override-then-default resolution for one weekday."""
    _check_weekday(weekday)
    override = getattr(settings, OVERRIDE_FIELDS[weekday])
    if override is not None:
        return override
    if weekday in WEEKEND:
        return settings.weekend_minutes
    return settings.weekday_minutes


def minutes_for_weekday(session: Session, weekday: int) -> int:
    return resolve_minutes(get_viewing_settings(session), weekday)


def minutes_for_date(session: Session, day: date) -> int:
    return minutes_for_weekday(session, day_of_week(day))
