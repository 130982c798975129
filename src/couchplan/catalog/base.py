"""Interface between the scheduling core and the show catalog."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from pydantic import BaseModel, Field

from couchplan.models import Lifecycle


class ShowDetails(BaseModel):
    """Metadata for one series as reported by the catalog."""

    tmdb_id: int = Field(..., description="Catalog identifier of the series")
    title: str
    overview: str | None = None
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    episode_runtime: int = Field(..., description="Average episode runtime in minutes")
    total_seasons: int = 0
    total_episodes: int = 0
    lifecycle: Lifecycle
    season_episode_counts: dict[int, int] = Field(
        default_factory=dict,
        description="Episode count per regular season; empty when the catalog has none",
    )


class ShowSearchResult(BaseModel):
    tmdb_id: int
    title: str
    overview: str | None = None
    poster_path: str | None = None
    first_air_date: date | None = None
    vote_average: float | None = None


class EpisodeAvailability(BaseModel):
    """Whether an episode has aired, and when it airs if known."""

    available: bool
    air_date: date | None = None


class Catalog(Protocol):
    """Capability the core needs from the external catalog."""

    def get_show(self, tmdb_id: int) -> ShowDetails: ...

    def is_episode_available(
        self, tmdb_id: int, season: int, episode: int
    ) -> EpisodeAvailability: ...

    def search_shows(self, query: str) -> list[ShowSearchResult]: ...
