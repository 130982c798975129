import sys
from collections.abc import Iterator
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from couchplan.catalog import EpisodeAvailability, ShowDetails, ShowSearchResult  # noqa: E402
from couchplan.db import Base  # noqa: E402
from couchplan.errors import ExternalUnavailable  # noqa: E402
from couchplan.models import DayAssignment, Lifecycle, Show, WatchlistEntry, WatchStatus  # noqa: E402


class FakeCatalog:
    """In-memory catalog. Episodes are available unless marked otherwise."""

    def __init__(self) -> None:
        self.shows: dict[int, ShowDetails] = {}
        self.unavailable: dict[tuple[int, int, int], date | None] = {}
        self.availability_calls: list[tuple[int, int, int]] = []
        self.fail = False

    def add_show(self, details: ShowDetails) -> None:
        self.shows[details.tmdb_id] = details

    def mark_unavailable(
        self, tmdb_id: int, season: int, episode: int, air_date: date | None = None
    ) -> None:
        self.unavailable[(tmdb_id, season, episode)] = air_date

    def get_show(self, tmdb_id: int) -> ShowDetails:
        if self.fail:
            raise ExternalUnavailable("catalog offline")
        if tmdb_id not in self.shows:
            raise ExternalUnavailable(f"TMDB API error: 404 for /tv/{tmdb_id}")
        return self.shows[tmdb_id]

    def is_episode_available(self, tmdb_id: int, season: int, episode: int) -> EpisodeAvailability:
        self.availability_calls.append((tmdb_id, season, episode))
        if self.fail:
            raise ExternalUnavailable("catalog offline")
        key = (tmdb_id, season, episode)
        if key in self.unavailable:
            return EpisodeAvailability(available=False, air_date=self.unavailable[key])
        return EpisodeAvailability(available=True, air_date=date(2020, 1, 1))

    def search_shows(self, query: str) -> list[ShowSearchResult]:
        return [
            ShowSearchResult(tmdb_id=details.tmdb_id, title=details.title)
            for details in self.shows.values()
            if query.lower() in details.title.lower()
        ]


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def session(session_factory: sessionmaker) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def make_show(session: Session, catalog: FakeCatalog):
    """Create a cached show that the fake catalog also knows about."""
    counter = iter(range(1000, 100000))

    def _make_show(
        title: str = "Show",
        *,
        runtime: int = 45,
        genres: list[str] | None = None,
        lifecycle: Lifecycle = Lifecycle.ENDED,
        total_seasons: int = 1,
        total_episodes: int = 20,
        season_episode_counts: dict[str, int] | None = None,
    ) -> Show:
        show = Show(
            tmdb_id=next(counter),
            title=title,
            genres=genres if genres is not None else ["Drama"],
            episode_runtime=runtime,
            lifecycle=lifecycle,
            total_seasons=total_seasons,
            total_episodes=total_episodes,
            season_episode_counts=season_episode_counts,
        )
        session.add(show)
        session.flush()
        catalog.add_show(
            ShowDetails(
                tmdb_id=show.tmdb_id,
                title=title,
                genres=show.genres,
                episode_runtime=runtime,
                total_seasons=total_seasons,
                total_episodes=total_episodes,
                lifecycle=lifecycle,
                season_episode_counts=season_episode_counts or {},
            )
        )
        return show

    return _make_show


@pytest.fixture
def make_entry(session: Session):
    def _make_entry(
        show: Show,
        *,
        status: WatchStatus = WatchStatus.QUEUED,
        season: int = 1,
        episode: int = 1,
        priority: int = 0,
        weekdays: list[int] | None = None,
    ) -> WatchlistEntry:
        entry = WatchlistEntry(
            show=show,
            status=status,
            priority=priority,
            start_season=season,
            start_episode=episode,
            current_season=season,
            current_episode=episode,
        )
        for weekday in weekdays or []:
            entry.day_assignments.append(DayAssignment(weekday=weekday))
        session.add(entry)
        session.flush()
        return entry

    return _make_entry
