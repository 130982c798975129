from __future__ import annotations

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from couchplan.api.models import (
    AddToWatchlistRequest,
    DashboardResponse,
    DayCapacityOut,
    EpisodeStatusRequest,
    FinishResponse,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    ReorderRequest,
    ScheduleDayOut,
    ScheduledEpisodeOut,
    SetPositionRequest,
    SetWeekdaysRequest,
    ShowOut,
    ViewingSettingsModel,
    WatchlistEntryOut,
)
from couchplan.catalog import Catalog, ShowSearchResult, cache_show, get_catalog, refresh_show
from couchplan.config import get_settings
from couchplan.db import get_db
from couchplan.errors import NotFound
from couchplan.models import EpisodeStatus, ScheduleDay, ScheduledEpisode, WatchStatus
from couchplan.services import scheduler, watchlist
from couchplan.services.day_assignment import week_capacity
from couchplan.services.settings import get_viewing_settings, update_viewing_settings

router = APIRouter()
logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10


def _episode_out(scheduled: ScheduledEpisode) -> ScheduledEpisodeOut:
    out = ScheduledEpisodeOut.model_validate(scheduled)
    out.show_title = scheduled.show.title if scheduled.show is not None else None
    return out


def _day_out(day: ScheduleDay) -> ScheduleDayOut:
    return ScheduleDayOut(
        date=day.date,
        planned_minutes=day.planned_minutes,
        scheduled_minutes=day.scheduled_minutes,
        episodes=[_episode_out(scheduled) for scheduled in day.episodes],
    )


def _invalidate_upcoming(db: Session) -> None:
    scheduler.invalidate_schedule(db, date.today())


@router.get("/health")
async def health() -> dict[str, str]:
    logger.info("Health check requested")
    return {"status": "ok"}


@router.get("/shows/search", response_model=list[ShowSearchResult])
def search_shows(
    query: str = Query("", description="Series title to look up"),
    catalog: Catalog = Depends(get_catalog),
) -> list[ShowSearchResult]:
    if len(query.strip()) < 2:
        return []
    logger.info("Searching catalog for '%s'", query)
    return catalog.search_shows(query)[:SEARCH_RESULT_LIMIT]


@router.post("/shows/{show_id}/refresh", response_model=ShowOut)
def refresh(
    show_id: int,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> ShowOut:
    logger.info("Refreshing cached show %s from the catalog", show_id)
    _invalidate_upcoming(db)
    return ShowOut.model_validate(refresh_show(db, catalog, show_id))


@router.get("/watchlist", response_model=list[WatchlistEntryOut])
def list_watchlist(
    status: WatchStatus | None = None, db: Session = Depends(get_db)
) -> list[WatchlistEntryOut]:
    entries = watchlist.get_watchlist(db, status)
    return [WatchlistEntryOut.model_validate(entry) for entry in entries]


@router.post("/watchlist", response_model=WatchlistEntryOut, status_code=201)
def follow_show(
    request: AddToWatchlistRequest,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> WatchlistEntryOut:
    logger.info("Following show tmdb_id=%s", request.tmdb_id)
    _invalidate_upcoming(db)
    show = cache_show(db, catalog, request.tmdb_id)
    entry = watchlist.add_to_watchlist(
        db,
        show,
        start_season=request.start_season,
        start_episode=request.start_episode,
        priority=request.priority,
        mode_override=request.mode_override,
    )
    return WatchlistEntryOut.model_validate(entry)


@router.put("/watchlist/order", response_model=list[WatchlistEntryOut])
def reorder(request: ReorderRequest, db: Session = Depends(get_db)) -> list[WatchlistEntryOut]:
    _invalidate_upcoming(db)
    entries = watchlist.reorder_watchlist(db, request.ids)
    return [WatchlistEntryOut.model_validate(entry) for entry in entries]


@router.get("/watchlist/{entry_id}", response_model=WatchlistEntryOut)
def get_entry(entry_id: int, db: Session = Depends(get_db)) -> WatchlistEntryOut:
    return WatchlistEntryOut.model_validate(watchlist.get_watchlist_entry(db, entry_id))


@router.delete("/watchlist/{entry_id}", status_code=204)
def unfollow(entry_id: int, db: Session = Depends(get_db)) -> None:
    _invalidate_upcoming(db)
    watchlist.remove_from_watchlist(db, entry_id)


@router.post("/watchlist/{entry_id}/promote", response_model=WatchlistEntryOut)
def promote(
    entry_id: int,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> WatchlistEntryOut:
    logger.info("Promote requested for entry %s", entry_id)
    _invalidate_upcoming(db)
    entry = watchlist.promote(db, catalog, entry_id)
    return WatchlistEntryOut.model_validate(entry)


@router.post("/watchlist/{entry_id}/demote", response_model=WatchlistEntryOut)
def demote(entry_id: int, db: Session = Depends(get_db)) -> WatchlistEntryOut:
    _invalidate_upcoming(db)
    return WatchlistEntryOut.model_validate(watchlist.demote(db, entry_id))


@router.post("/watchlist/{entry_id}/finish", response_model=FinishResponse)
def finish(
    entry_id: int,
    auto_promote: bool = Query(False, description="Promote the best-fitting queued show"),
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> FinishResponse:
    logger.info("Finish requested for entry %s (auto_promote=%s)", entry_id, auto_promote)
    _invalidate_upcoming(db)
    result = watchlist.finish(db, catalog, entry_id, auto_promote=auto_promote)
    return FinishResponse(
        entry=WatchlistEntryOut.model_validate(result.entry),
        moved_to_queue=result.moved_to_queue,
        promoted=WatchlistEntryOut.model_validate(result.promoted) if result.promoted else None,
    )


@router.post("/watchlist/{entry_id}/drop", response_model=WatchlistEntryOut)
def drop(entry_id: int, db: Session = Depends(get_db)) -> WatchlistEntryOut:
    _invalidate_upcoming(db)
    return WatchlistEntryOut.model_validate(watchlist.drop(db, entry_id))


@router.put("/watchlist/{entry_id}/days", response_model=WatchlistEntryOut)
def set_days(
    entry_id: int, request: SetWeekdaysRequest, db: Session = Depends(get_db)
) -> WatchlistEntryOut:
    _invalidate_upcoming(db)
    entry = watchlist.set_weekdays(db, entry_id, request.days)
    return WatchlistEntryOut.model_validate(entry)


@router.put("/watchlist/{entry_id}/position", response_model=WatchlistEntryOut)
def set_position(
    entry_id: int, request: SetPositionRequest, db: Session = Depends(get_db)
) -> WatchlistEntryOut:
    _invalidate_upcoming(db)
    entry = watchlist.set_position(db, entry_id, request.season, request.episode)
    return WatchlistEntryOut.model_validate(entry)


@router.get("/capacity", response_model=list[DayCapacityOut])
def capacity(db: Session = Depends(get_db)) -> list[DayCapacityOut]:
    return [DayCapacityOut.model_validate(day) for day in week_capacity(db)]


@router.get("/settings", response_model=ViewingSettingsModel)
def read_settings(db: Session = Depends(get_db)) -> ViewingSettingsModel:
    return ViewingSettingsModel.model_validate(get_viewing_settings(db))


@router.put("/settings", response_model=ViewingSettingsModel)
def write_settings(
    request: ViewingSettingsModel, db: Session = Depends(get_db)
) -> ViewingSettingsModel:
    _invalidate_upcoming(db)
    settings = update_viewing_settings(db, **request.model_dump())
    return ViewingSettingsModel.model_validate(settings)


@router.post("/schedule/generate", response_model=GenerateScheduleResponse)
def generate(
    request: GenerateScheduleRequest,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> GenerateScheduleResponse:
    start = request.start_date or date.today()
    logger.info("Schedule generation requested from %s for %s day(s)", start, request.days)
    days = scheduler.generate_schedule(db, catalog, start, request.days)
    return GenerateScheduleResponse(days=[_day_out(day) for day in days])


@router.get("/schedule/{day}", response_model=ScheduleDayOut)
def schedule_for_day(day: date, db: Session = Depends(get_db)) -> ScheduleDayOut:
    schedule_day = scheduler.get_schedule_for_day(db, day)
    if schedule_day is None:
        raise NotFound("Schedule day", day.isoformat())
    return _day_out(schedule_day)


@router.patch("/episodes/{episode_id}", response_model=ScheduledEpisodeOut)
def check_in(
    episode_id: int, request: EpisodeStatusRequest, db: Session = Depends(get_db)
) -> ScheduledEpisodeOut:
    return _episode_out(scheduler.set_episode_status(db, episode_id, request.status))


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    db: Session = Depends(get_db), catalog: Catalog = Depends(get_catalog)
) -> DashboardResponse:
    """Today's queue plus yesterday's unchecked episodes.

    Today's schedule is kept once generated so check-ins made today survive;
    the rest of the window is rebuilt on every request.
    """
    today = date.today()
    window = get_settings().schedule_window_days
    if scheduler.get_schedule_for_day(db, today) is None:
        scheduler.generate_schedule(db, catalog, today, window)
    else:
        tomorrow = today + timedelta(days=1)
        scheduler.generate_schedule(db, catalog, tomorrow, max(window - 1, 0))

    today_schedule = scheduler.get_schedule_for_day(db, today)
    yesterday = scheduler.get_schedule_for_day(db, today - timedelta(days=1))
    pending = [
        scheduled
        for scheduled in (yesterday.episodes if yesterday else [])
        if scheduled.status is EpisodeStatus.PENDING
    ]
    return DashboardResponse(
        today=_day_out(today_schedule) if today_schedule else None,
        yesterday_pending=[_episode_out(scheduled) for scheduled in pending],
        needs_checkin=bool(pending),
    )
