"""Typed failures raised by the watchlist, day-assignment and scheduling services."""

from __future__ import annotations

from datetime import date


class CouchPlanError(Exception):
    """Base exception for all CouchPlan errors."""


class NotFound(CouchPlanError):
    """Raised when a watchlist entry, show or scheduled episode does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class InvalidTransition(CouchPlanError):
    """Raised when a watch-queue transition is not allowed from the current status."""

    def __init__(self, entry_id: int, current: str, action: str) -> None:
        super().__init__(f"Cannot {action} entry {entry_id} while it is {current}")
        self.entry_id = entry_id
        self.current = current
        self.action = action


class AlreadyFollowing(CouchPlanError):
    """Raised when a show already has a watchlist entry."""

    def __init__(self, show_id: int) -> None:
        super().__init__(f"Show {show_id} is already on the watchlist")
        self.show_id = show_id


class NotYetAvailable(CouchPlanError):
    """Raised when promotion is blocked because the next episode has not aired.

    ``air_date`` is ``None`` when the catalog does not know when it will air.
    """

    def __init__(self, season: int, episode: int, air_date: date | None) -> None:
        when = air_date.isoformat() if air_date else "unknown"
        super().__init__(f"S{season:02d}E{episode:02d} is not available yet (airs {when})")
        self.season = season
        self.episode = episode
        self.air_date = air_date


class ExternalUnavailable(CouchPlanError):
    """Raised when the catalog could not be reached or answered with an error."""
