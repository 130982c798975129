"""Local cache of catalog show metadata."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from couchplan.catalog.base import Catalog, ShowDetails
from couchplan.errors import NotFound
from couchplan.models import Show

logger = logging.getLogger(__name__)


def _apply_details(show: Show, details: ShowDetails) -> None:
    show.title = details.title
    show.overview = details.overview
    show.poster_path = details.poster_path
    show.genres = list(details.genres)
    show.episode_runtime = details.episode_runtime
    show.total_seasons = details.total_seasons
    show.total_episodes = details.total_episodes
    show.lifecycle = details.lifecycle
    show.season_episode_counts = {
        str(season): count for season, count in details.season_episode_counts.items()
    } or None
    show.refreshed_at = datetime.now(timezone.utc)


def get_cached_show(session: Session, tmdb_id: int) -> Show | None:
    return session.scalar(select(Show).where(Show.tmdb_id == tmdb_id))


def cache_show(session: Session, catalog: Catalog, tmdb_id: int, *, refresh: bool = False) -> Show:
    """Return the cached show for ``tmdb_id``, fetching it from the catalog if needed."""

    show = get_cached_show(session, tmdb_id)
    if show is not None and not refresh:
        return show

    details = catalog.get_show(tmdb_id)
    if show is None:
        show = Show(tmdb_id=details.tmdb_id)
        session.add(show)
        logger.info("Caching show tmdb_id=%s title='%s'", tmdb_id, details.title)
    else:
        logger.info("Refreshing show tmdb_id=%s title='%s'", tmdb_id, details.title)

    _apply_details(show, details)
    session.flush()
    return show


def refresh_show(session: Session, catalog: Catalog, show_id: int) -> Show:
    """Re-read a cached show from the catalog."""

    show = session.get(Show, show_id)
    if show is None:
        raise NotFound("Show", show_id)
    return cache_show(session, catalog, show.tmdb_id, refresh=True)
