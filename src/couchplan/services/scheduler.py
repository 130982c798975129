"""Turns weekday assignments into a concrete day-by-day episode queue.

The schedule is a derived artifact: the source of truth is each entry's
next-episode position, its day assignments and the viewing settings. Generating
a range first invalidates every scheduled day from the start date onward, which
rewinds each show's position to its earliest still-pending scheduled episode, so
regenerating the same range on unchanged state produces the same rows.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from couchplan.catalog.base import Catalog
from couchplan.errors import ExternalUnavailable, NotFound
from couchplan.models import (
    DayAssignment,
    EpisodeStatus,
    ScheduleDay,
    ScheduledEpisode,
    Show,
    WatchlistEntry,
)
from couchplan.services.day_assignment import get_shows_for_day
from couchplan.services.settings import day_of_week, get_viewing_settings, resolve_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpisodePosition:
    season: int
    episode: int


def normalize_position(show: Show, position: EpisodePosition) -> EpisodePosition:
    """Roll a position past the end of a season into the next known season.

    Without per-season counts from the catalog the position is left alone.
    """
    season, episode = position.season, position.episode
    while True:
        length = show.episodes_in_season(season)
        if length is None or episode <= length or show.episodes_in_season(season + 1) is None:
            return EpisodePosition(season, episode)
        season, episode = season + 1, 1


def next_position(show: Show, position: EpisodePosition) -> EpisodePosition:
    return normalize_position(show, EpisodePosition(position.season, position.episode + 1))


def has_episode(show: Show, position: EpisodePosition) -> bool:
    """Whether ``position`` can exist for ``show`` as far as the catalog knows."""
    if position.episode > show.total_episodes:
        return False
    if show.season_episode_counts:
        length = show.episodes_in_season(position.season)
        return length is not None and position.episode <= length
    return True


def _is_available(catalog: Catalog, show: Show, position: EpisodePosition) -> bool:
    try:
        availability = catalog.is_episode_available(show.tmdb_id, position.season, position.episode)
    except ExternalUnavailable as exc:
        logger.warning(
            "Availability check for '%s' S%sE%s failed, treating as unavailable: %s",
            show.title,
            position.season,
            position.episode,
            exc,
        )
        return False
    return availability.available


def invalidate_schedule(session: Session, from_date: date | None = None) -> int:
    """Delete scheduled days on or after ``from_date`` (all days when ``None``).

    Each show with pending episodes in the deleted days has its watchlist
    position rewound to the earliest of them that comes after its latest
    watched or skipped episode there, so nothing that was only scheduled is
    lost and nothing already checked in is scheduled again. Returns the number
    of days removed.
    """
    stmt = select(ScheduleDay).options(selectinload(ScheduleDay.episodes))
    if from_date is not None:
        stmt = stmt.where(ScheduleDay.date >= from_date)
    days = list(session.scalars(stmt))
    if not days:
        return 0

    pending: dict[int, list[tuple[int, int]]] = {}
    checked_in: dict[int, tuple[int, int]] = {}
    for day in days:
        for scheduled in day.episodes:
            key = (scheduled.season, scheduled.episode)
            if scheduled.status is EpisodeStatus.PENDING:
                pending.setdefault(scheduled.show_id, []).append(key)
            elif key > checked_in.get(scheduled.show_id, (0, 0)):
                checked_in[scheduled.show_id] = key

    # Pending episodes at or before the latest check-in were passed over.
    earliest: dict[int, EpisodePosition] = {}
    for show_id, keys in pending.items():
        floor = checked_in.get(show_id, (0, 0))
        ahead = [key for key in keys if key > floor]
        if ahead:
            earliest[show_id] = EpisodePosition(*min(ahead))

    if earliest:
        entries = session.scalars(
            select(WatchlistEntry).where(WatchlistEntry.show_id.in_(earliest))
        )
        for entry in entries:
            position = earliest[entry.show_id]
            entry.current_season = position.season
            entry.current_episode = position.episode
            logger.debug("Rewound entry %s to S%sE%s", entry.id, position.season, position.episode)

    for day in days:
        session.delete(day)
    session.flush()
    logger.info(
        "Invalidated %s scheduled day(s)%s",
        len(days),
        f" from {from_date.isoformat()}" if from_date else "",
    )
    return len(days)


def clear_schedule(session: Session) -> int:
    return invalidate_schedule(session, None)


def _upsert_day(session: Session, day: date, budget: int) -> ScheduleDay:
    schedule_day = session.scalar(select(ScheduleDay).where(ScheduleDay.date == day))
    if schedule_day is None:
        schedule_day = ScheduleDay(date=day, planned_minutes=budget)
        session.add(schedule_day)
    else:
        schedule_day.planned_minutes = budget
        schedule_day.episodes.clear()
    session.flush()
    return schedule_day


def _fill_day(
    catalog: Catalog,
    schedule_day: ScheduleDay,
    assignments: Sequence[DayAssignment],
    positions: dict[int, EpisodePosition],
    budget: int,
) -> int:
    """Place at most one episode per assigned show. Returns minutes used."""
    remaining = budget
    for assignment in assignments:
        entry = assignment.entry
        show = entry.show
        position = positions.setdefault(
            entry.id,
            normalize_position(show, EpisodePosition(entry.current_season, entry.current_episode)),
        )
        runtime = show.episode_runtime

        if remaining < runtime:
            logger.debug(
                "%s: '%s' needs %s min, only %s left",
                schedule_day.date,
                show.title,
                runtime,
                remaining,
            )
            continue
        if not has_episode(show, position):
            logger.debug(
                "%s: '%s' has no S%sE%s",
                schedule_day.date,
                show.title,
                position.season,
                position.episode,
            )
            continue
        if show.is_ongoing and not _is_available(catalog, show, position):
            logger.debug(
                "%s: '%s' S%sE%s not available yet",
                schedule_day.date,
                show.title,
                position.season,
                position.episode,
            )
            continue

        schedule_day.episodes.append(
            ScheduledEpisode(
                show_id=show.id,
                season=position.season,
                episode=position.episode,
                runtime=runtime,
                order=len(schedule_day.episodes),
                status=EpisodeStatus.PENDING,
            )
        )
        remaining -= runtime
        positions[entry.id] = next_position(show, position)
    return budget - remaining


def generate_schedule(
    session: Session, catalog: Catalog, start_date: date, num_days: int
) -> list[ScheduleDay]:
    """Build ``num_days`` scheduled days starting at ``start_date``.

    Each date is committed before the next one is processed. Shows that do not
    fit the remaining budget, have run out of episodes, or whose next episode
    has not aired are skipped for that day; only storage errors propagate.
    """
    if num_days < 0:
        raise ValueError("num_days cannot be negative")

    settings = get_viewing_settings(session)
    # Both modes place one episode per show per day, so they produce the same queue.
    logger.info(
        "Generating %s day(s) from %s (mode=%s)",
        num_days,
        start_date.isoformat(),
        settings.scheduling_mode.value,
    )
    invalidate_schedule(session, start_date)

    positions: dict[int, EpisodePosition] = {}
    generated: list[ScheduleDay] = []
    for offset in range(num_days):
        day = start_date + timedelta(days=offset)
        weekday = day_of_week(day)
        budget = resolve_minutes(settings, weekday)
        assignments = get_shows_for_day(session, weekday, watching_only=True)

        schedule_day = _upsert_day(session, day, budget)
        used = _fill_day(catalog, schedule_day, assignments, positions, budget)

        for assignment in assignments:
            entry = assignment.entry
            position = positions[entry.id]
            entry.current_season = position.season
            entry.current_episode = position.episode

        session.commit()
        generated.append(schedule_day)
        logger.info(
            "Scheduled %s episode(s) on %s using %s/%s min",
            len(schedule_day.episodes),
            day.isoformat(),
            used,
            budget,
        )
    return generated


def get_schedule_for_day(session: Session, day: date) -> ScheduleDay | None:
    return session.scalar(
        select(ScheduleDay)
        .where(ScheduleDay.date == day)
        .options(selectinload(ScheduleDay.episodes).selectinload(ScheduledEpisode.show))
    )


def set_episode_status(
    session: Session, episode_id: int, status: EpisodeStatus
) -> ScheduledEpisode:
    """Check-in: record whether a scheduled episode was watched or skipped."""
    scheduled = session.get(ScheduledEpisode, episode_id)
    if scheduled is None:
        raise NotFound("Scheduled episode", episode_id)
    scheduled.status = EpisodeStatus(status)
    session.flush()
    logger.info(
        "Episode %s (show %s S%sE%s) marked %s",
        episode_id,
        scheduled.show_id,
        scheduled.season,
        scheduled.episode,
        scheduled.status.value,
    )
    return scheduled
