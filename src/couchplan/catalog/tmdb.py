from __future__ import annotations

import logging
from datetime import date

import httpx

from couchplan.catalog.base import EpisodeAvailability, ShowDetails, ShowSearchResult
from couchplan.config import get_settings
from couchplan.errors import ExternalUnavailable
from couchplan.models import Lifecycle


logger = logging.getLogger(__name__)


TMDB_USER_AGENT = "CouchPlan/0.1"
REQUEST_HEADERS = {"User-Agent": TMDB_USER_AGENT, "Accept": "application/json"}
DEFAULT_RUNTIME_MINUTES = 45
ENDED_STATUSES = {"Ended", "Canceled"}


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        logger.debug("Ignoring malformed TMDB date %r", raw)
        return None


def _average_runtime(runtimes: list[int] | None) -> int:
    if not runtimes:
        return DEFAULT_RUNTIME_MINUTES
    return round(sum(runtimes) / len(runtimes))


def _lifecycle(status: str | None) -> Lifecycle:
    return Lifecycle.ENDED if status in ENDED_STATUSES else Lifecycle.ONGOING


def _season_counts(seasons: list[dict] | None) -> dict[int, int]:
    counts: dict[int, int] = {}
    for season in seasons or []:
        number = season.get("season_number")
        # Season 0 holds specials, which are never scheduled.
        if not number:
            continue
        counts[int(number)] = int(season.get("episode_count") or 0)
    return counts


class TMDBClient:
    """Catalog backed by The Movie Database v3 REST API.

    Every request uses the configured timeout. Transport failures and error
    responses surface as :class:`ExternalUnavailable`; callers decide whether
    that blocks an operation or simply counts as "not available".
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        today: date | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.catalog_timeout_seconds
        self._transport = transport
        self._today = today

    def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        if not self.api_key:
            raise ExternalUnavailable("TMDB_API_KEY environment variable is not set")

        query = {"api_key": self.api_key, **(params or {})}
        logger.debug("TMDB request: %s params=%s", path, params)
        try:
            with httpx.Client(
                base_url=self.base_url,
                headers=REQUEST_HEADERS,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = client.get(path, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request %s failed: %s", path, exc)
            raise ExternalUnavailable(f"TMDB request failed: {exc}") from exc
        logger.debug("TMDB response [%s] for %s", resp.status_code, path)
        return resp

    def _get_json(self, path: str, params: dict | None = None) -> dict:
        resp = self._get(path, params)
        if resp.is_error:
            raise ExternalUnavailable(f"TMDB API error: {resp.status_code} for {path}")
        return resp.json()

    def search_shows(self, query: str) -> list[ShowSearchResult]:
        data = self._get_json("/search/tv", {"query": query})
        return [
            ShowSearchResult(
                tmdb_id=item["id"],
                title=item.get("name", ""),
                overview=item.get("overview"),
                poster_path=item.get("poster_path"),
                first_air_date=_parse_date(item.get("first_air_date")),
                vote_average=item.get("vote_average"),
            )
            for item in data.get("results", [])
        ]

    def get_show(self, tmdb_id: int) -> ShowDetails:
        data = self._get_json(f"/tv/{tmdb_id}")
        return ShowDetails(
            tmdb_id=data["id"],
            title=data.get("name", ""),
            overview=data.get("overview"),
            poster_path=data.get("poster_path"),
            genres=[genre["name"] for genre in data.get("genres", [])],
            episode_runtime=_average_runtime(data.get("episode_run_time")),
            total_seasons=data.get("number_of_seasons") or 0,
            total_episodes=data.get("number_of_episodes") or 0,
            lifecycle=_lifecycle(data.get("status")),
            season_episode_counts=_season_counts(data.get("seasons")),
        )

    def is_episode_available(self, tmdb_id: int, season: int, episode: int) -> EpisodeAvailability:
        resp = self._get(f"/tv/{tmdb_id}/season/{season}/episode/{episode}")
        if resp.status_code == 404:
            # Not announced yet.
            return EpisodeAvailability(available=False, air_date=None)
        if resp.is_error:
            raise ExternalUnavailable(f"TMDB API error: {resp.status_code} for episode lookup")

        air_date = _parse_date(resp.json().get("air_date"))
        today = self._today or date.today()
        return EpisodeAvailability(
            available=air_date is not None and air_date <= today,
            air_date=air_date,
        )


def get_catalog() -> TMDBClient:
    """FastAPI dependency returning the configured catalog client."""

    return TMDBClient()
