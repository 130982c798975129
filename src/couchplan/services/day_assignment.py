"""Weekday assignments for watched shows, day capacity and best-day selection.

Capacity only counts entries whose status is ``watching``; an assignment left
behind on a queued or finished entry is ignored everywhere in this module.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from couchplan.models import DayAssignment, WatchlistEntry, WatchStatus
from couchplan.services.settings import get_viewing_settings, resolve_minutes

logger = logging.getLogger(__name__)

WEEKDAYS = range(7)
GENRE_VARIETY_BONUS = 30


@dataclass(frozen=True)
class DayCapacity:
    """Minutes budgeted, committed and left on a weekday.

    ``available`` is not clamped: an over-assigned day reports a negative value.
    """

    weekday: int
    total: int
    used: int

    @property
    def available(self) -> int:
        return self.total - self.used


def assign_show_to_day(session: Session, entry: WatchlistEntry, weekday: int) -> DayAssignment:
    """Assign ``entry`` to ``weekday``; assigning twice returns the existing row."""
    if weekday not in WEEKDAYS:
        raise ValueError(f"weekday must be between 0 and 6, got {weekday}")

    for assignment in entry.day_assignments:
        if assignment.weekday == weekday:
            return assignment

    assignment = DayAssignment(weekday=weekday)
    entry.day_assignments.append(assignment)
    session.flush()
    logger.info("Assigned entry %s to weekday %s", entry.id, weekday)
    return assignment


def remove_show_from_day(session: Session, entry: WatchlistEntry, weekday: int) -> bool:
    """Remove one assignment. Returns ``False`` if the entry was not on that day."""
    for assignment in list(entry.day_assignments):
        if assignment.weekday == weekday:
            entry.day_assignments.remove(assignment)
            session.flush()
            logger.info("Removed entry %s from weekday %s", entry.id, weekday)
            return True
    return False


def remove_all_assignments(session: Session, entry: WatchlistEntry) -> int:
    count = len(entry.day_assignments)
    entry.day_assignments.clear()
    session.flush()
    if count:
        logger.info("Cleared %s day assignment(s) for entry %s", count, entry.id)
    return count


def set_show_days(
    session: Session, entry: WatchlistEntry, weekdays: Iterable[int]
) -> list[DayAssignment]:
    """Replace the entry's assignments with exactly ``weekdays``.

    Values outside 0-6 and duplicates are dropped. The entry's status is not
    consulted; this is the manual override path.
    """
    wanted = {day for day in weekdays if isinstance(day, int) and day in WEEKDAYS}

    for assignment in list(entry.day_assignments):
        if assignment.weekday not in wanted:
            entry.day_assignments.remove(assignment)
    existing = {assignment.weekday for assignment in entry.day_assignments}
    for day in sorted(wanted - existing):
        entry.day_assignments.append(DayAssignment(weekday=day))

    session.flush()
    session.refresh(entry, ["day_assignments"])
    logger.info("Set weekdays for entry %s to %s", entry.id, sorted(wanted))
    return list(entry.day_assignments)


def get_shows_for_day(
    session: Session, weekday: int, *, watching_only: bool = False
) -> list[DayAssignment]:
    """Assignments on ``weekday`` with their entries and shows loaded.

    Ordered by entry priority, then entry id.
    """
    stmt = (
        select(DayAssignment)
        .join(DayAssignment.entry)
        .where(DayAssignment.weekday == weekday)
        .options(joinedload(DayAssignment.entry).joinedload(WatchlistEntry.show))
        .order_by(WatchlistEntry.priority, WatchlistEntry.id)
    )
    if watching_only:
        stmt = stmt.where(WatchlistEntry.status == WatchStatus.WATCHING)
    return list(session.scalars(stmt).unique())


def _watching_by_weekday(session: Session) -> dict[int, list[DayAssignment]]:
    stmt = (
        select(DayAssignment)
        .join(DayAssignment.entry)
        .where(WatchlistEntry.status == WatchStatus.WATCHING)
        .options(joinedload(DayAssignment.entry).joinedload(WatchlistEntry.show))
    )
    by_day: dict[int, list[DayAssignment]] = {day: [] for day in WEEKDAYS}
    for assignment in session.scalars(stmt).unique():
        by_day[assignment.weekday].append(assignment)
    return by_day


def _capacity(weekday: int, total: int, assignments: list[DayAssignment]) -> DayCapacity:
    used = sum(a.entry.show.episode_runtime for a in assignments)
    return DayCapacity(weekday=weekday, total=total, used=used)


def _genres(assignments: list[DayAssignment]) -> set[str]:
    return {genre for a in assignments for genre in a.entry.show.genres}


def day_capacity(session: Session, weekday: int) -> DayCapacity:
    settings = get_viewing_settings(session)
    total = resolve_minutes(settings, weekday)
    return _capacity(weekday, total, get_shows_for_day(session, weekday, watching_only=True))


def week_capacity(session: Session) -> list[DayCapacity]:
    """Capacity of all seven weekdays, Sunday first."""
    settings = get_viewing_settings(session)
    by_day = _watching_by_weekday(session)
    return [_capacity(day, resolve_minutes(settings, day), by_day[day]) for day in WEEKDAYS]


def genres_on_day(session: Session, weekday: int) -> set[str]:
    return _genres(get_shows_for_day(session, weekday, watching_only=True))


def best_day_for_show(session: Session, runtime: int, genres: Iterable[str]) -> int:
    """Pick the weekday for a show of ``runtime`` minutes and the given genres.

    Among days with room for one episode, the score is the available minutes
    plus a bonus when the day has none of the show's genres yet. When no day has
    room, the day with the most minutes left wins. Ties go to the lowest weekday.
    """
    show_genres = set(genres)
    settings = get_viewing_settings(session)
    by_day = _watching_by_weekday(session)
    capacities = [_capacity(day, resolve_minutes(settings, day), by_day[day]) for day in WEEKDAYS]

    viable = [cap for cap in capacities if cap.available >= runtime]
    if not viable:
        best = max(capacities, key=lambda cap: (cap.available, -cap.weekday))
        logger.info(
            "No weekday has %s free minutes; placing on weekday %s (%s available)",
            runtime,
            best.weekday,
            best.available,
        )
        return best.weekday

    def score(cap: DayCapacity) -> int:
        overlap = show_genres & _genres(by_day[cap.weekday])
        return cap.available + (0 if overlap else GENRE_VARIETY_BONUS)

    best = max(viable, key=lambda cap: (score(cap), -cap.weekday))
    logger.debug(
        "Best weekday for runtime=%s genres=%s is %s (score=%s)",
        runtime,
        sorted(show_genres),
        best.weekday,
        score(best),
    )
    return best.weekday
