"""The user's watchlist and the watch-queue state machine.

Statuses move ``queued -> watching -> finished`` (or back to ``queued`` when an
ongoing series runs out of aired episodes), with ``watching -> queued`` as a
manual demotion and ``dropped`` set directly by the user. Every transition
checks its preconditions before touching the entry, so a refused transition
leaves it exactly as it was. Promotion may refresh the cached show metadata
first; that refresh is not undone when the promotion is refused.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from couchplan.catalog.base import Catalog
from couchplan.catalog.cache import cache_show
from couchplan.errors import (
    AlreadyFollowing,
    ExternalUnavailable,
    InvalidTransition,
    NotFound,
    NotYetAvailable,
)
from couchplan.models import SchedulingMode, ScheduledEpisode, Show, WatchlistEntry, WatchStatus
from couchplan.services.day_assignment import (
    assign_show_to_day,
    best_day_for_show,
    remove_all_assignments,
    set_show_days,
)
from couchplan.services.scheduler import EpisodePosition, has_episode

logger = logging.getLogger(__name__)

REPLACEMENT_BASE_SCORE = 100


@dataclass
class FinishResult:
    entry: WatchlistEntry
    moved_to_queue: bool
    promoted: WatchlistEntry | None = None


def add_to_watchlist(
    session: Session,
    show: Show,
    *,
    start_season: int = 1,
    start_episode: int = 1,
    priority: int | None = None,
    mode_override: SchedulingMode | str | None = None,
) -> WatchlistEntry:
    """Follow ``show``. New entries are queued and, without an explicit
    priority, go to the back of the list."""
    if start_season < 1 or start_episode < 1:
        raise ValueError("start season and episode must be positive")

    existing = session.scalar(select(WatchlistEntry).where(WatchlistEntry.show_id == show.id))
    if existing is not None:
        raise AlreadyFollowing(show.id)

    if priority is None:
        highest = session.scalar(select(func.max(WatchlistEntry.priority)))
        priority = 0 if highest is None else highest + 1

    entry = WatchlistEntry(
        show=show,
        priority=priority,
        status=WatchStatus.QUEUED,
        start_season=start_season,
        start_episode=start_episode,
        current_season=start_season,
        current_episode=start_episode,
        mode_override=SchedulingMode(mode_override) if mode_override is not None else None,
    )
    session.add(entry)
    session.flush()
    logger.info(
        "Added '%s' to watchlist as entry %s (S%sE%s, priority %s)",
        show.title,
        entry.id,
        start_season,
        start_episode,
        priority,
    )
    return entry


def get_watchlist_entry(session: Session, entry_id: int) -> WatchlistEntry:
    entry = session.get(
        WatchlistEntry,
        entry_id,
        options=[selectinload(WatchlistEntry.show), selectinload(WatchlistEntry.day_assignments)],
    )
    if entry is None:
        raise NotFound("Watchlist entry", entry_id)
    return entry


def get_watchlist(session: Session, status: WatchStatus | None = None) -> list[WatchlistEntry]:
    stmt = (
        select(WatchlistEntry)
        .options(selectinload(WatchlistEntry.show), selectinload(WatchlistEntry.day_assignments))
        .order_by(WatchlistEntry.priority, WatchlistEntry.id)
    )
    if status is not None:
        stmt = stmt.where(WatchlistEntry.status == status)
    return list(session.scalars(stmt))


def remove_from_watchlist(session: Session, entry_id: int) -> None:
    """Unfollow: the entry, its assignments and its scheduled episodes go away."""
    entry = get_watchlist_entry(session, entry_id)
    session.execute(delete(ScheduledEpisode).where(ScheduledEpisode.show_id == entry.show_id))
    session.delete(entry)
    session.flush()
    logger.info("Removed entry %s ('%s') from watchlist", entry_id, entry.show.title)


def reorder_watchlist(session: Session, ordered_ids: Sequence[int]) -> list[WatchlistEntry]:
    """Set each entry's priority to its position in ``ordered_ids``."""
    entries = {entry.id: entry for entry in get_watchlist(session)}
    missing = [entry_id for entry_id in ordered_ids if entry_id not in entries]
    if missing:
        raise NotFound("Watchlist entry", missing[0])

    for index, entry_id in enumerate(ordered_ids):
        entries[entry_id].priority = index
    session.flush()
    logger.info("Reordered %s watchlist entries", len(ordered_ids))
    return get_watchlist(session)


def set_position(session: Session, entry_id: int, season: int, episode: int) -> WatchlistEntry:
    """Move the entry's next-episode pointer, e.g. after catching up elsewhere."""
    if season < 1 or episode < 1:
        raise ValueError("season and episode must be positive")
    entry = get_watchlist_entry(session, entry_id)
    entry.current_season = season
    entry.current_episode = episode
    session.flush()
    logger.info("Entry %s now continues at S%sE%s", entry_id, season, episode)
    return entry


def _check_next_episode(catalog: Catalog, entry: WatchlistEntry) -> None:
    show = entry.show
    season, episode = entry.current_season, entry.current_episode
    try:
        availability = catalog.is_episode_available(show.tmdb_id, season, episode)
    except ExternalUnavailable:
        logger.warning(
            "Could not confirm S%sE%s of '%s' is available; promotion refused",
            season,
            episode,
            show.title,
        )
        raise
    if not availability.available:
        logger.info(
            "S%sE%s of '%s' has not aired (air date %s)",
            season,
            episode,
            show.title,
            availability.air_date or "unknown",
        )
        raise NotYetAvailable(season, episode, availability.air_date)


def promote(session: Session, catalog: Catalog, entry_id: int) -> WatchlistEntry:
    """Move a queued entry into the watching set and give it a weekday."""
    entry = get_watchlist_entry(session, entry_id)
    if entry.status is not WatchStatus.QUEUED:
        raise InvalidTransition(entry.id, entry.status.value, "promote")

    show = entry.show
    position = EpisodePosition(entry.current_season, entry.current_episode)
    if show.is_ongoing or not has_episode(show, position):
        # Cached episode counts may predate episodes that aired since caching.
        show = cache_show(session, catalog, show.tmdb_id, refresh=True)
    if show.is_ongoing:
        _check_next_episode(catalog, entry)

    weekday = best_day_for_show(session, show.episode_runtime, show.genres)
    entry.status = WatchStatus.WATCHING
    assign_show_to_day(session, entry, weekday)
    logger.info("Promoted entry %s ('%s') to watching on weekday %s", entry.id, show.title, weekday)
    return entry


def demote(session: Session, entry_id: int) -> WatchlistEntry:
    """Send a watching entry back to the queue and free its weekdays."""
    entry = get_watchlist_entry(session, entry_id)
    if entry.status is not WatchStatus.WATCHING:
        raise InvalidTransition(entry.id, entry.status.value, "demote")

    remove_all_assignments(session, entry)
    entry.status = WatchStatus.QUEUED
    session.flush()
    logger.info("Demoted entry %s ('%s') to queued", entry.id, entry.show.title)
    return entry


def drop(session: Session, entry_id: int) -> WatchlistEntry:
    entry = get_watchlist_entry(session, entry_id)
    remove_all_assignments(session, entry)
    entry.status = WatchStatus.DROPPED
    session.flush()
    logger.info("Dropped entry %s ('%s')", entry.id, entry.show.title)
    return entry


def pick_replacement(
    candidates: Iterable[WatchlistEntry], freed_runtime: int
) -> WatchlistEntry | None:
    """Choose the queued entry whose runtime best fills a freed slot.

    Score is ``100 - |runtime difference|``; ties go to the lower priority value,
    then the older entry.
    """
    best: WatchlistEntry | None = None
    best_key: tuple[int, int, int] | None = None
    for candidate in candidates:
        score = REPLACEMENT_BASE_SCORE - abs(candidate.show.episode_runtime - freed_runtime)
        key = (-score, candidate.priority, candidate.id)
        if best_key is None or key < best_key:
            best, best_key = candidate, key
    return best


def finish(
    session: Session, catalog: Catalog, entry_id: int, *, auto_promote: bool = False
) -> FinishResult:
    """Mark an entry as done with, from any status.

    Ongoing series go back to the queue to wait for new episodes; ended series
    are finished. With ``auto_promote`` the best-fitting queued entry is promoted
    into the freed time; a blocked replacement does not undo the finish.
    """
    entry = get_watchlist_entry(session, entry_id)
    show = entry.show

    remove_all_assignments(session, entry)
    moved_to_queue = show.is_ongoing
    entry.status = WatchStatus.QUEUED if moved_to_queue else WatchStatus.FINISHED
    session.flush()
    logger.info(
        "Finished entry %s ('%s'); status now %s", entry.id, show.title, entry.status.value
    )

    result = FinishResult(entry=entry, moved_to_queue=moved_to_queue)
    if not auto_promote:
        return result

    queued = [
        candidate
        for candidate in get_watchlist(session, WatchStatus.QUEUED)
        if candidate.id != entry.id
    ]
    candidate = pick_replacement(queued, show.episode_runtime)
    if candidate is None:
        logger.info("No queued entry to promote after finishing entry %s", entry.id)
        return result

    try:
        result.promoted = promote(session, catalog, candidate.id)
    except (NotYetAvailable, ExternalUnavailable) as exc:
        logger.info("Replacement entry %s not promoted: %s", candidate.id, exc)
    return result


def set_weekdays(session: Session, entry_id: int, weekdays: Iterable[int]) -> WatchlistEntry:
    entry = get_watchlist_entry(session, entry_id)
    set_show_days(session, entry, weekdays)
    return entry
