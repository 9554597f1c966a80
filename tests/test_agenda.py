"""Unit tests for the agenda projector and its display-window trimming."""

from __future__ import annotations

from datetime import date, timedelta

from src.kiosk.agenda import (
    CURRENT_CONTRIBUTION_MARKER,
    CURRENT_SESSION_MARKER,
    ELLIPSIS_TITLE,
    project,
)
from src.kiosk.models import Presenter
from tests.factories import (
    at,
    back_to_back_contributions,
    back_to_back_sessions,
    contribution,
    session,
    timetable,
)


def _titles(snapshot) -> list[str]:
    return [s.title for s in snapshot.sessions]


def test_off_day_yields_empty_snapshot() -> None:
    table = timetable([session("s", at(9), at(10))])
    snapshot = project(table, at(9, 30, day=date(2016, 10, 2)))

    assert snapshot.is_empty
    assert snapshot.label == "2016-10-02 -- 09:30:00"


def test_label_formats_now() -> None:
    snapshot = project(timetable([]), at(10, 4, 50))
    assert snapshot.label == "2016-09-27 -- 10:04:50"


def test_session_at_exact_boundaries_is_not_active() -> None:
    table = timetable([session("s", at(9), at(10), back_to_back_contributions("c", at(9), 3))])

    for now in (at(9), at(10)):
        view = project(table, now).sessions[0]
        assert not view.active
        assert view.contributions == ()

    assert project(table, at(9, 0, 1)).sessions[0].active


def test_inactive_sessions_show_no_contributions() -> None:
    table = timetable(
        [
            session("past", at(8), at(9), back_to_back_contributions("p", at(8), 3)),
            session("now", at(9), at(10), back_to_back_contributions("n", at(9), 3)),
            session("next", at(10), at(11), back_to_back_contributions("x", at(10), 3)),
        ]
    )
    snapshot = project(table, at(9, 30))

    by_title = {s.title: s for s in snapshot.sessions}
    assert by_title["past"].contributions == ()
    assert by_title["next"].contributions == ()
    assert by_title["now"].active
    assert by_title["now"].contributions


def test_active_session_skips_finished_contributions() -> None:
    table = timetable(
        [
            session(
                "s",
                at(9),
                at(10),
                [
                    contribution("done", at(9), at(9, 20)),
                    contribution("ending", at(9, 20), at(9, 40)),
                    contribution("later", at(9, 40), at(10)),
                ],
            )
        ]
    )
    contributions = project(table, at(9, 40)).sessions[0].contributions

    # "ending" finishes exactly now: kept, but not active
    assert [c.title for c in contributions] == ["ending", "later"]
    assert [c.active for c in contributions] == [False, False]


def test_contribution_views_carry_times_presenters_and_markers() -> None:
    presenters = (
        Presenter(name="Dr Toto", affiliation="Navire Amiral", email="toto@in2p3.fr"),
        Presenter(name="Mr Tata"),
    )
    table = timetable(
        [
            session(
                "Dev-1",
                at(9),
                at(10),
                [contribution("c", at(9), at(9, 20), title="Title-1", presenters=presenters)],
                room="Room-1",
            )
        ]
    )
    view = project(table, at(9, 5)).sessions[0]
    (c,) = view.contributions

    assert (view.title, view.room, view.start, view.stop) == ("Dev-1", "Room-1", "09:00", "10:00")
    assert view.marker == CURRENT_SESSION_MARKER
    assert (c.title, c.start, c.stop) == ("Title-1", "09:00", "09:20")
    assert c.duration == timedelta(minutes=20)
    assert c.marker == CURRENT_CONTRIBUTION_MARKER
    assert [p.name for p in c.presenters] == ["Dr Toto", "Mr Tata"]
    assert c.presenters[0].affiliation == "Navire Amiral"


def test_projection_is_idempotent() -> None:
    table = timetable(back_to_back_sessions(at(8), 8))
    now = at(10, 30)
    assert project(table, now) == project(table, now)


def test_future_sessions_beyond_four_are_merged() -> None:
    # s2 active (k=2) with k+6 = 8 sessions in the day
    table = timetable(back_to_back_sessions(at(8), 8))
    snapshot = project(table, at(10, 30))

    assert _titles(snapshot) == ["s1", "s2", "s3", "s4", "s5", "s6", ELLIPSIS_TITLE]
    merged = snapshot.sessions[-1]
    assert merged.merged
    assert not merged.active
    assert merged.duration is None
    assert merged.contributions == ()
    assert (merged.start, merged.stop) == ("15:00", "16:00")


def test_future_merge_spans_every_collapsed_session() -> None:
    table = timetable(back_to_back_sessions(at(8), 10))
    snapshot = project(table, at(8, 30))

    assert _titles(snapshot) == ["s0", "s1", "s2", "s3", "s4", ELLIPSIS_TITLE]
    merged = snapshot.sessions[-1]
    assert (merged.start, merged.stop) == ("13:00", "18:00")


def test_exactly_four_future_sessions_are_not_merged() -> None:
    table = timetable(back_to_back_sessions(at(8), 5))
    snapshot = project(table, at(8, 30))
    assert _titles(snapshot) == ["s0", "s1", "s2", "s3", "s4"]


def test_past_trim_keeps_one_session_of_context() -> None:
    table = timetable(back_to_back_sessions(at(8), 6))
    snapshot = project(table, at(12, 30))

    assert _titles(snapshot) == ["s3", "s4", "s5"]
    assert [s.active for s in snapshot.sessions] == [False, True, False]


def test_no_active_session_skips_past_trim_and_trims_future_from_start() -> None:
    table = timetable(back_to_back_sessions(at(8), 8))

    before = project(table, at(7))
    assert _titles(before) == ["s0", "s1", "s2", "s3", "s4", ELLIPSIS_TITLE]
    assert not any(s.active for s in before.sessions)

    # exactly on a boundary nothing is active either
    on_boundary = project(table, at(10))
    assert _titles(on_boundary) == ["s0", "s1", "s2", "s3", "s4", ELLIPSIS_TITLE]


def test_parallel_active_sessions_keep_context_before_first() -> None:
    sessions = back_to_back_sessions(at(8), 4) + [
        session("parallel", at(10), at(11), room="Room-2"),
    ]
    table = timetable(sessions)
    snapshot = project(table, at(10, 30))

    assert _titles(snapshot) == ["s1", "parallel", "s2", "s3"]
    assert [s.active for s in snapshot.sessions] == [False, True, True, False]


def test_contributions_after_active_one_are_merged_beyond_three() -> None:
    # seven contributions, index 2 is the last running one
    contributions = [
        contribution("c0", at(9), at(12)),
        contribution("c1", at(9, 5), at(12)),
        contribution("c2", at(9, 40), at(10)),
        *back_to_back_contributions("t", at(10), 4),
    ]
    table = timetable([session("s", at(9), at(12), contributions)])
    views = project(table, at(9, 50)).sessions[0].contributions

    assert [c.title for c in views] == ["c0", "c1", "c2", "t0", "t1", "t2", ELLIPSIS_TITLE]
    assert [c.active for c in views[:3]] == [True, True, True]
    merged = views[-1]
    assert merged.merged
    assert (merged.start, merged.stop) == ("11:00", "11:20")
    assert merged.duration == timedelta(minutes=20)
    assert merged.presenters == ()


def test_merged_contribution_sums_collapsed_durations() -> None:
    table = timetable(
        [session("s", at(9), at(13), back_to_back_contributions("c", at(9), 10))]
    )
    views = project(table, at(9, 10)).sessions[0].contributions

    assert [c.title for c in views] == ["c0", "c1", "c2", "c3", ELLIPSIS_TITLE]
    merged = views[-1]
    assert (merged.start, merged.stop) == ("10:20", "12:20")
    assert merged.duration == timedelta(hours=2)


def test_contribution_trim_counts_from_first_when_none_is_running() -> None:
    # a gap inside the session: nothing running, first upcoming is the anchor
    contributions = back_to_back_contributions("c", at(9, 30), 6)
    table = timetable([session("s", at(9), at(12), contributions)])
    views = project(table, at(9, 10)).sessions[0].contributions

    assert [c.title for c in views] == ["c0", "c1", "c2", "c3", ELLIPSIS_TITLE]
    assert not any(c.active for c in views)


def test_sessions_observed_in_start_end_id_order() -> None:
    table = timetable(
        [
            session("b", at(9), at(10)),
            session("a", at(9), at(10)),
            session("early", at(8), at(9)),
        ]
    )
    assert _titles(project(table, at(7))) == ["early", "a", "b"]
