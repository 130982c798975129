"""Relational schema for shows, the watchlist, day assignments and generated schedules."""

from __future__ import annotations

import datetime as dt
import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from couchplan.db import Base


class WatchStatus(str, enum.Enum):
    QUEUED = "queued"
    WATCHING = "watching"
    FINISHED = "finished"
    DROPPED = "dropped"


class EpisodeStatus(str, enum.Enum):
    PENDING = "pending"
    WATCHED = "watched"
    SKIPPED = "skipped"


class Lifecycle(str, enum.Enum):
    """Whether a series is still producing episodes."""

    ONGOING = "ongoing"
    ENDED = "ended"


class SchedulingMode(str, enum.Enum):
    SEQUENTIAL = "sequential"
    ROUND_ROBIN = "roundrobin"


def _enum_column(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    # Persist the lowercase values rather than the member names.
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


class Show(Base):
    """Catalog metadata cached locally; read-only to the scheduling core."""

    __tablename__ = "shows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    genres: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    total_seasons: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_episodes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    episode_runtime: Mapped[int] = mapped_column(Integer, nullable=False)
    lifecycle: Mapped[Lifecycle] = mapped_column(
        _enum_column(Lifecycle, "show_lifecycle"), nullable=False
    )
    # Keys are season numbers as strings (JSON object keys).
    season_episode_counts: Mapped[dict[str, int] | None] = mapped_column(JSON, nullable=True)
    refreshed_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    watchlist_entry: Mapped[WatchlistEntry | None] = relationship(back_populates="show")

    @property
    def is_ongoing(self) -> bool:
        return self.lifecycle is Lifecycle.ONGOING

    def episodes_in_season(self, season: int) -> int | None:
        """Return the episode count of ``season`` when the catalog reported it."""
        if not self.season_episode_counts:
            return None
        count = self.season_episode_counts.get(str(season))
        return int(count) if count is not None else None

    def __repr__(self) -> str:
        return f"<Show(id={self.id}, tmdb_id={self.tmdb_id}, title={self.title!r})>"


class WatchlistEntry(Base):
    """A followed show and its progress through the watch queue."""

    __tablename__ = "watchlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    show_id: Mapped[int] = mapped_column(
        ForeignKey("shows.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[WatchStatus] = mapped_column(
        _enum_column(WatchStatus, "watch_status"), default=WatchStatus.QUEUED, nullable=False
    )
    start_season: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    start_episode: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_season: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_episode: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # Stored with the entry; generation uses the global mode for every show.
    mode_override: Mapped[SchedulingMode | None] = mapped_column(
        _enum_column(SchedulingMode, "entry_scheduling_mode"), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    show: Mapped[Show] = relationship(back_populates="watchlist_entry")
    day_assignments: Mapped[list[DayAssignment]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="DayAssignment.weekday",
    )

    @property
    def weekdays(self) -> list[int]:
        return [assignment.weekday for assignment in self.day_assignments]

    def __repr__(self) -> str:
        return (
            f"<WatchlistEntry(id={self.id}, show_id={self.show_id}, status={self.status.value}, "
            f"position=S{self.current_season}E{self.current_episode})>"
        )


class DayAssignment(Base):
    """Pins a watchlist entry to a weekday (0 = Sunday ... 6 = Saturday)."""

    __tablename__ = "day_assignments"
    __table_args__ = (
        UniqueConstraint("watchlist_entry_id", "weekday", name="uq_day_assignments_entry_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="weekday_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    watchlist_entry_id: Mapped[int] = mapped_column(
        ForeignKey("watchlist_entries.id", ondelete="CASCADE"), nullable=False
    )
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)

    entry: Mapped[WatchlistEntry] = relationship(back_populates="day_assignments")

    def __repr__(self) -> str:
        return f"<DayAssignment(entry={self.watchlist_entry_id}, weekday={self.weekday})>"


class ScheduleDay(Base):
    """One calendar date of the generated schedule. Rebuilt on every generation."""

    __tablename__ = "schedule_days"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, unique=True, nullable=False)
    planned_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    episodes: Mapped[list[ScheduledEpisode]] = relationship(
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="ScheduledEpisode.order",
    )

    @property
    def scheduled_minutes(self) -> int:
        return sum(episode.runtime for episode in self.episodes)

    def __repr__(self) -> str:
        return f"<ScheduleDay(date={self.date}, planned={self.planned_minutes})>"


class ScheduledEpisode(Base):
    __tablename__ = "scheduled_episodes"
    __table_args__ = (
        UniqueConstraint(
            "schedule_day_id", "show_id", "season", "episode", name="uq_scheduled_episodes_slot"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    schedule_day_id: Mapped[int] = mapped_column(
        ForeignKey("schedule_days.id", ondelete="CASCADE"), nullable=False
    )
    show_id: Mapped[int] = mapped_column(ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    episode: Mapped[int] = mapped_column(Integer, nullable=False)
    runtime: Mapped[int] = mapped_column(Integer, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[EpisodeStatus] = mapped_column(
        _enum_column(EpisodeStatus, "episode_status"),
        default=EpisodeStatus.PENDING,
        nullable=False,
    )

    day: Mapped[ScheduleDay] = relationship(back_populates="episodes")
    show: Mapped[Show] = relationship()

    def __repr__(self) -> str:
        return (
            f"<ScheduledEpisode(show={self.show_id}, S{self.season}E{self.episode}, "
            f"order={self.order}, status={self.status.value})>"
        )


class ViewingSettings(Base):
    """Singleton row holding the per-weekday time budget."""

    __tablename__ = "viewing_settings"

    DEFAULT_WEEKDAY_MINUTES = 120
    DEFAULT_WEEKEND_MINUTES = 240
    DEFAULT_STAGGER_EPISODES = 3

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    weekday_minutes: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_WEEKDAY_MINUTES, nullable=False
    )
    weekend_minutes: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_WEEKEND_MINUTES, nullable=False
    )
    sunday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    monday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tuesday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    wednesday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thursday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    friday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    saturday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scheduling_mode: Mapped[SchedulingMode] = mapped_column(
        _enum_column(SchedulingMode, "scheduling_mode"),
        default=SchedulingMode.SEQUENTIAL,
        nullable=False,
    )
    staggered_start: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    stagger_episodes: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_STAGGER_EPISODES, nullable=False
    )

    @classmethod
    def defaults(cls) -> ViewingSettings:
        """Return an unsaved record carrying the built-in budget."""
        return cls(
            id=1,
            weekday_minutes=cls.DEFAULT_WEEKDAY_MINUTES,
            weekend_minutes=cls.DEFAULT_WEEKEND_MINUTES,
            scheduling_mode=SchedulingMode.SEQUENTIAL,
            staggered_start=False,
            stagger_episodes=cls.DEFAULT_STAGGER_EPISODES,
        )

    def __repr__(self) -> str:
        return (
            f"<ViewingSettings(weekday={self.weekday_minutes}, weekend={self.weekend_minutes}, "
            f"mode={self.scheduling_mode.value})>"
        )
