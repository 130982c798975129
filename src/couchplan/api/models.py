from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from couchplan.models import EpisodeStatus, Lifecycle, SchedulingMode, WatchStatus


class ShowOut(BaseModel):
    """A cached catalog show."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tmdb_id: int
    title: str
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    episode_runtime: int = Field(..., description="Average episode runtime in minutes")
    total_seasons: int
    total_episodes: int
    lifecycle: Lifecycle


class WatchlistEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    priority: int
    status: WatchStatus
    start_season: int
    start_episode: int
    current_season: int
    current_episode: int
    mode_override: SchedulingMode | None = None
    weekdays: list[int] = Field(
        default_factory=list, description="Assigned weekdays, 0 = Sunday ... 6 = Saturday"
    )
    show: ShowOut


class AddToWatchlistRequest(BaseModel):
    """Request to follow a show by its catalog identifier."""

    tmdb_id: int = Field(..., description="TMDB identifier of the series")
    start_season: int = Field(1, ge=1)
    start_episode: int = Field(1, ge=1)
    priority: int | None = Field(
        None, description="Position in the queue; appended to the end when omitted"
    )
    mode_override: SchedulingMode | None = Field(
        None, description="Per-show scheduling mode, stored for the client"
    )


class SetWeekdaysRequest(BaseModel):
    days: list[int] = Field(
        ...,
        description="Weekdays to assign (0 = Sunday); invalid values and duplicates are ignored",
    )


class SetPositionRequest(BaseModel):
    season: int = Field(..., ge=1)
    episode: int = Field(..., ge=1)


class ReorderRequest(BaseModel):
    ids: list[int] = Field(..., description="Watchlist entry ids in their new order")


class FinishResponse(BaseModel):
    entry: WatchlistEntryOut
    moved_to_queue: bool = Field(
        ..., description="True when an ongoing series went back to wait for new episodes"
    )
    promoted: WatchlistEntryOut | None = None


class DayCapacityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    weekday: int
    total: int
    used: int
    available: int


class ViewingSettingsModel(BaseModel):
    """Per-weekday time budget. Null overrides fall back to the weekday/weekend default."""

    model_config = ConfigDict(from_attributes=True)

    weekday_minutes: int = Field(120, ge=0)
    weekend_minutes: int = Field(240, ge=0)
    sunday_minutes: int | None = Field(None, ge=0)
    monday_minutes: int | None = Field(None, ge=0)
    tuesday_minutes: int | None = Field(None, ge=0)
    wednesday_minutes: int | None = Field(None, ge=0)
    thursday_minutes: int | None = Field(None, ge=0)
    friday_minutes: int | None = Field(None, ge=0)
    saturday_minutes: int | None = Field(None, ge=0)
    scheduling_mode: SchedulingMode = SchedulingMode.SEQUENTIAL
    staggered_start: bool = False
    stagger_episodes: int = Field(3, ge=1, description="Episodes between staggered show starts")


class ScheduledEpisodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    show_id: int
    show_title: str | None = None
    season: int
    episode: int
    runtime: int
    order: int
    status: EpisodeStatus


class ScheduleDayOut(BaseModel):
    date: dt.date
    planned_minutes: int
    scheduled_minutes: int
    episodes: list[ScheduledEpisodeOut] = Field(default_factory=list)


class GenerateScheduleRequest(BaseModel):
    start_date: dt.date | None = Field(None, description="First day to generate; defaults to today")
    days: int = Field(7, ge=0, le=90, description="How many days to generate")


class GenerateScheduleResponse(BaseModel):
    days: list[ScheduleDayOut] = Field(default_factory=list)


class EpisodeStatusRequest(BaseModel):
    status: EpisodeStatus


class DashboardResponse(BaseModel):
    today: ScheduleDayOut | None = None
    yesterday_pending: list[ScheduledEpisodeOut] = Field(default_factory=list)
    needs_checkin: bool = False

