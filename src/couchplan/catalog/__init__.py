"""Catalog collaborators: the TMDB client and the local show cache."""

from couchplan.catalog.base import Catalog, EpisodeAvailability, ShowDetails, ShowSearchResult
from couchplan.catalog.cache import cache_show, get_cached_show, refresh_show
from couchplan.catalog.tmdb import TMDBClient, get_catalog

__all__ = [
    "Catalog",
    "EpisodeAvailability",
    "ShowDetails",
    "ShowSearchResult",
    "TMDBClient",
    "cache_show",
    "get_cached_show",
    "get_catalog",
    "refresh_show",
]
