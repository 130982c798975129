"""Tests for schedule generation, invalidation and check-in."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from couchplan.errors import NotFound
from couchplan.models import EpisodeStatus, Lifecycle, WatchStatus
from couchplan.services.scheduler import (
    EpisodePosition,
    clear_schedule,
    generate_schedule,
    get_schedule_for_day,
    has_episode,
    invalidate_schedule,
    next_position,
    set_episode_status,
)
from couchplan.services.settings import update_viewing_settings

MONDAY = date(2026, 2, 2)
TUESDAY = date(2026, 2, 3)
WATCHING = WatchStatus.WATCHING
EVERY_DAY = list(range(7))


def _slots(schedule_day) -> list[tuple[int, int, int, int]]:
    return [(ep.show_id, ep.season, ep.episode, ep.order) for ep in schedule_day.episodes]


@pytest.fixture(autouse=True)
def weekday_budget(session):
    update_viewing_settings(session, weekday_minutes=120)


class TestGenerateSchedule:
    def test_single_show_on_monday(self, session, catalog, make_show, make_entry):
        show = make_show("Breaking Bad", runtime=47)
        entry = make_entry(show, status=WATCHING, weekdays=[1])

        generate_schedule(session, catalog, MONDAY, 1)

        day = get_schedule_for_day(session, MONDAY)
        assert day.planned_minutes == 120
        assert len(day.episodes) == 1
        episode = day.episodes[0]
        assert (episode.show_id, episode.season, episode.episode) == (show.id, 1, 1)
        assert episode.runtime == 47
        assert episode.status is EpisodeStatus.PENDING
        assert (entry.current_season, entry.current_episode) == (1, 2)

    def test_unaired_ongoing_show_is_skipped(self, session, catalog, make_show, make_entry):
        ended = make_show("A", runtime=45, lifecycle=Lifecycle.ENDED)
        ongoing = make_show("B", runtime=30, lifecycle=Lifecycle.ONGOING)
        make_entry(ended, status=WATCHING, weekdays=[1], priority=1)
        waiting = make_entry(
            ongoing, status=WATCHING, weekdays=[1], priority=0, season=2, episode=5
        )
        catalog.mark_unavailable(ongoing.tmdb_id, 2, 5, date(2099, 12, 31))

        generate_schedule(session, catalog, MONDAY, 1)

        day = get_schedule_for_day(session, MONDAY)
        assert [ep.show_id for ep in day.episodes] == [ended.id]
        assert day.episodes[0].order == 0
        assert (waiting.current_season, waiting.current_episode) == (2, 5)

    def test_unavailable_show_does_not_consume_budget(
        self, session, catalog, make_show, make_entry
    ):
        update_viewing_settings(session, weekday_minutes=60)
        ongoing = make_show("Unaired", runtime=45, lifecycle=Lifecycle.ONGOING)
        ended = make_show("Ended", runtime=45)
        make_entry(ongoing, status=WATCHING, weekdays=[1], priority=0)
        make_entry(ended, status=WATCHING, weekdays=[1], priority=1)
        catalog.mark_unavailable(ongoing.tmdb_id, 1, 1)

        days = generate_schedule(session, catalog, MONDAY, 1)

        assert [ep.show_id for ep in days[0].episodes] == [ended.id]

    def test_never_exceeds_budget(self, session, catalog, make_show, make_entry):
        update_viewing_settings(session, weekday_minutes=60)
        for priority, runtime in enumerate([45, 30, 20, 10]):
            make_entry(
                make_show(f"Show {runtime}", runtime=runtime),
                status=WATCHING,
                weekdays=[1],
                priority=priority,
            )

        day = generate_schedule(session, catalog, MONDAY, 1)[0]

        assert [ep.runtime for ep in day.episodes] == [45, 10]
        assert [ep.order for ep in day.episodes] == [0, 1]
        assert day.scheduled_minutes <= day.planned_minutes

    def test_one_episode_per_show_per_day(self, session, catalog, make_show, make_entry):
        make_entry(make_show(runtime=20), status=WATCHING, weekdays=[1])

        day = generate_schedule(session, catalog, MONDAY, 1)[0]

        assert len(day.episodes) == 1

    def test_excludes_stale_assignments(self, session, catalog, make_show, make_entry):
        watched = make_show("Watching")
        queued = make_show("Queued")
        make_entry(watched, status=WATCHING, weekdays=[1])
        make_entry(queued, status=WatchStatus.QUEUED, weekdays=[1])
        make_entry(make_show("Finished"), status=WatchStatus.FINISHED, weekdays=[1])

        day = generate_schedule(session, catalog, MONDAY, 1)[0]

        assert {ep.show_id for ep in day.episodes} == {watched.id}

    def test_day_without_shows_is_empty(self, session, catalog, make_show, make_entry):
        make_entry(make_show(), status=WATCHING, weekdays=[1])

        generate_schedule(session, catalog, TUESDAY, 1)

        day = get_schedule_for_day(session, TUESDAY)
        assert day is not None
        assert day.episodes == []

    def test_continues_across_days(self, session, catalog, make_show, make_entry):
        show = make_show(runtime=45)
        entry = make_entry(show, status=WATCHING, weekdays=[1, 2])

        monday, tuesday = generate_schedule(session, catalog, MONDAY, 2)

        assert _slots(monday) == [(show.id, 1, 1, 0)]
        assert _slots(tuesday) == [(show.id, 1, 2, 0)]
        assert entry.current_episode == 3

    def test_shows_only_on_their_days(self, session, catalog, make_show, make_entry):
        first = make_show("First")
        second = make_show("Second")
        make_entry(first, status=WATCHING, weekdays=[1])
        make_entry(second, status=WATCHING, weekdays=[2])

        monday, tuesday = generate_schedule(session, catalog, MONDAY, 2)

        assert {ep.show_id for ep in monday.episodes} == {first.id}
        assert {ep.show_id for ep in tuesday.episodes} == {second.id}

    def test_stops_after_last_episode(self, session, catalog, make_show, make_entry):
        show = make_show(total_episodes=2)
        make_entry(show, status=WATCHING, weekdays=EVERY_DAY)

        days = generate_schedule(session, catalog, MONDAY, 4)

        assert [len(day.episodes) for day in days] == [1, 1, 0, 0]

    def test_rolls_over_when_season_lengths_known(self, session, catalog, make_show, make_entry):
        show = make_show(
            total_seasons=2, total_episodes=5, season_episode_counts={"1": 2, "2": 3}
        )
        entry = make_entry(show, status=WATCHING, weekdays=EVERY_DAY)

        days = generate_schedule(session, catalog, MONDAY, 6)

        placed = [(ep.season, ep.episode) for day in days for ep in day.episodes]
        assert placed == [(1, 1), (1, 2), (2, 1), (2, 2), (2, 3)]
        assert (entry.current_season, entry.current_episode) == (2, 4)

    def test_naive_increment_without_season_lengths(
        self, session, catalog, make_show, make_entry
    ):
        show = make_show(total_seasons=2, total_episodes=20)
        make_entry(show, status=WATCHING, weekdays=EVERY_DAY, season=1, episode=10)

        days = generate_schedule(session, catalog, MONDAY, 2)

        assert [(ep.season, ep.episode) for day in days for ep in day.episodes] == [
            (1, 10),
            (1, 11),
        ]

    def test_ended_shows_skip_availability_lookup(
        self, session, catalog, make_show, make_entry
    ):
        make_entry(make_show(lifecycle=Lifecycle.ENDED), status=WATCHING, weekdays=[1])

        generate_schedule(session, catalog, MONDAY, 1)

        assert catalog.availability_calls == []

    def test_catalog_outage_skips_ongoing_show(self, session, catalog, make_show, make_entry):
        ongoing = make_show("Ongoing", lifecycle=Lifecycle.ONGOING)
        ended = make_show("Ended")
        make_entry(ongoing, status=WATCHING, weekdays=[1], priority=0)
        make_entry(ended, status=WATCHING, weekdays=[1], priority=1)
        catalog.fail = True

        day = generate_schedule(session, catalog, MONDAY, 1)[0]

        assert [ep.show_id for ep in day.episodes] == [ended.id]

    def test_regeneration_is_idempotent(self, session, catalog, make_show, make_entry):
        update_viewing_settings(session, weekday_minutes=90, weekend_minutes=150)
        first = make_show("A", runtime=45)
        second = make_show("B", runtime=30, lifecycle=Lifecycle.ONGOING)
        make_entry(first, status=WATCHING, weekdays=[1, 3, 6])
        entry = make_entry(second, status=WATCHING, weekdays=[0, 1, 2], priority=1)
        catalog.mark_unavailable(second.tmdb_id, 1, 3)

        before = [
            (day.date, day.planned_minutes, _slots(day))
            for day in generate_schedule(session, catalog, MONDAY, 7)
        ]
        position = (entry.current_season, entry.current_episode)
        after = [
            (day.date, day.planned_minutes, _slots(day))
            for day in generate_schedule(session, catalog, MONDAY, 7)
        ]

        assert before == after
        assert (entry.current_season, entry.current_episode) == position

    def test_regenerating_later_range_continues(self, session, catalog, make_show, make_entry):
        show = make_show()
        make_entry(show, status=WATCHING, weekdays=EVERY_DAY)
        generate_schedule(session, catalog, MONDAY, 3)

        generate_schedule(session, catalog, TUESDAY, 2)

        episodes = [
            get_schedule_for_day(session, MONDAY + timedelta(days=offset)).episodes[0].episode
            for offset in range(3)
        ]
        assert episodes == [1, 2, 3]

    def test_mode_has_no_effect(self, session, catalog, make_show, make_entry):
        for priority, runtime in enumerate([45, 30, 50]):
            make_entry(
                make_show(f"Show {priority}", runtime=runtime),
                status=WATCHING,
                weekdays=[1, 2],
                priority=priority,
            )

        update_viewing_settings(session, scheduling_mode="sequential")
        sequential = [_slots(day) for day in generate_schedule(session, catalog, MONDAY, 2)]
        update_viewing_settings(session, scheduling_mode="roundrobin")
        round_robin = [_slots(day) for day in generate_schedule(session, catalog, MONDAY, 2)]

        assert sequential == round_robin

    def test_rejects_negative_day_count(self, session, catalog):
        with pytest.raises(ValueError):
            generate_schedule(session, catalog, MONDAY, -1)


class TestInvalidation:
    def test_rewinds_to_earliest_pending_episode(self, session, catalog, make_show, make_entry):
        entry = make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        generate_schedule(session, catalog, MONDAY, 3)
        assert entry.current_episode == 4

        removed = invalidate_schedule(session, MONDAY)

        assert removed == 3
        assert entry.current_episode == 1
        assert get_schedule_for_day(session, MONDAY) is None

    def test_watched_episodes_are_not_rescheduled(self, session, catalog, make_show, make_entry):
        entry = make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        monday = generate_schedule(session, catalog, MONDAY, 3)[0]
        set_episode_status(session, monday.episodes[0].id, EpisodeStatus.WATCHED)

        invalidate_schedule(session, MONDAY)

        assert entry.current_episode == 2

    def test_watched_episode_ahead_of_pending_is_not_rescheduled(
        self, session, catalog, make_show, make_entry
    ):
        make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        tuesday = generate_schedule(session, catalog, MONDAY, 3)[1]
        set_episode_status(session, tuesday.episodes[0].id, EpisodeStatus.WATCHED)

        days = generate_schedule(session, catalog, MONDAY, 3)

        assert [(ep.season, ep.episode) for day in days for ep in day.episodes] == [
            (1, 3),
            (1, 4),
            (1, 5),
        ]

    def test_skipped_episode_counts_as_checked_in(self, session, catalog, make_show, make_entry):
        entry = make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        days = generate_schedule(session, catalog, MONDAY, 4)
        set_episode_status(session, days[2].episodes[0].id, EpisodeStatus.SKIPPED)

        invalidate_schedule(session, MONDAY)

        assert entry.current_episode == 4

    def test_no_rewind_when_everything_pending_was_passed(
        self, session, catalog, make_show, make_entry
    ):
        entry = make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        days = generate_schedule(session, catalog, MONDAY, 2)
        set_episode_status(session, days[1].episodes[0].id, EpisodeStatus.WATCHED)

        invalidate_schedule(session, MONDAY)

        assert entry.current_episode == 3

    def test_keeps_days_before_cutoff(self, session, catalog, make_show, make_entry):
        make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        generate_schedule(session, catalog, MONDAY, 3)

        invalidate_schedule(session, TUESDAY)

        assert get_schedule_for_day(session, MONDAY) is not None
        assert get_schedule_for_day(session, TUESDAY) is None

    def test_clear_schedule_removes_everything(self, session, catalog, make_show, make_entry):
        make_entry(make_show(), status=WATCHING, weekdays=EVERY_DAY)
        generate_schedule(session, catalog, MONDAY, 2)

        assert clear_schedule(session) == 2
        assert get_schedule_for_day(session, MONDAY) is None


class TestCheckIn:
    def test_marks_episode(self, session, catalog, make_show, make_entry):
        make_entry(make_show(), status=WATCHING, weekdays=[1])
        day = generate_schedule(session, catalog, MONDAY, 1)[0]

        updated = set_episode_status(session, day.episodes[0].id, EpisodeStatus.SKIPPED)

        assert updated.status is EpisodeStatus.SKIPPED

    def test_unknown_episode(self, session):
        with pytest.raises(NotFound):
            set_episode_status(session, 42, EpisodeStatus.WATCHED)


class TestPositions:
    def test_next_position_without_counts(self, make_show):
        show = make_show(total_episodes=30)
        assert next_position(show, EpisodePosition(1, 12)) == EpisodePosition(1, 13)

    def test_next_position_rolls_into_next_season(self, make_show):
        show = make_show(season_episode_counts={"1": 10, "2": 8})
        assert next_position(show, EpisodePosition(1, 10)) == EpisodePosition(2, 1)

    def test_last_season_does_not_roll(self, make_show):
        show = make_show(total_episodes=18, season_episode_counts={"1": 10, "2": 8})
        position = next_position(show, EpisodePosition(2, 8))

        assert position == EpisodePosition(2, 9)
        assert has_episode(show, position) is False
