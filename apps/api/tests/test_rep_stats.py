"""
Tests for summary statistics and their divide-by-zero guards.
"""

from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from models import Office
from services.day_buckets import ReportWindow, total_reps
from services.identity import OfficeCatalog, OfficeEntry
from services.rep_aggregation import SubjectKind, reps_for_subject
from services.rep_stats import calculate_stats, office_stats, team_stats
from services.team_membership import add_membership, remove_membership

WINDOW = ReportWindow(date(2016, 11, 1), date(2016, 11, 4))


class TestCalculateStats:

    def test_office_example(self):
        stats = calculate_stats(head_count=10, total_reps=200, participating=4, window_days=4)

        assert stats.percent_participating == 40
        assert stats.reps_per_person == 20
        assert stats.reps_per_person_participating == 50
        assert stats.reps_per_person_per_day == 5
        assert stats.reps_per_person_participating_per_day == 12

    def test_zero_denominators_are_replaced(self):
        stats = calculate_stats(head_count=0, total_reps=50, participating=0, window_days=5)

        assert stats.percent_participating == 0
        assert stats.reps_per_person == 50
        assert stats.reps_per_person_per_day == 10
        assert stats.reps_per_person_participating == 50
        assert stats.reps_per_person_participating_per_day == 10

    def test_window_days_clamped_to_one(self):
        assert calculate_stats(2, 10, 1, 0).reps_per_person_per_day == 5
        assert calculate_stats(2, 10, 1, -3).reps_per_person_participating_per_day == 10

    def test_floor_division(self):
        stats = calculate_stats(head_count=3, total_reps=10, participating=3, window_days=3)

        assert stats.percent_participating == 100
        assert stats.reps_per_person == 3
        assert stats.reps_per_person_per_day == 1

    def test_to_dict(self):
        data = calculate_stats(1, 1, 1, 1).to_dict()
        assert set(data) == {
            "head_count",
            "total_reps",
            "participating",
            "percent_participating",
            "reps_per_person",
            "reps_per_person_participating",
            "reps_per_person_per_day",
            "reps_per_person_participating_per_day",
        }


class TestOfficeStats:

    def test_office_scenario(self, db_session, catalog, make_user, add_rep):
        users = [make_user(f"oc_{i}@example.com", "OC") for i in range(4)]
        make_user("oc_idle@example.com", "OC")
        # 4 participants, 200 reps spread over the 4-day window
        for i, user in enumerate(users):
            add_rep(user, "pushups", 25, datetime(2016, 11, 1, 9, 0) + timedelta(days=i))
            add_rep(user, "situps", 25, datetime(2016, 11, 4, 18, 0))

        stats = office_stats(db_session, catalog, WINDOW)["OC"]

        assert stats.head_count == 10
        assert stats.total_reps == 200
        assert stats.participating == 4
        assert stats.percent_participating == 40
        assert stats.reps_per_person == 20
        assert stats.reps_per_person_participating == 50
        assert stats.reps_per_person_per_day == 5
        assert stats.reps_per_person_participating_per_day == 12

    def test_reps_outside_window_are_ignored(self, db_session, catalog, make_user, add_rep):
        user = make_user("oc_1@example.com", "OC")
        add_rep(user, "pushups", 40, datetime(2016, 11, 2, 9, 0))
        add_rep(user, "pushups", 1000, datetime(2016, 10, 31, 23, 0))
        add_rep(user, "pushups", 1000, datetime(2016, 11, 5, 0, 0))

        stats = office_stats(db_session, catalog, WINDOW)["OC"]

        assert stats.total_reps == 40
        assert stats.participating == 1

    def test_every_catalog_office_reported(self, db_session, catalog):
        result = office_stats(db_session, catalog, WINDOW)

        assert set(result) == {"OC", "Denver", "London"}
        # London has no head count and no reps
        assert result["London"].total_reps == 0
        assert result["London"].percent_participating == 0

    def test_office_missing_from_store_is_skipped(self, db_session, offices):
        catalog = OfficeCatalog(offices=(OfficeEntry("OC"), OfficeEntry("Atlantis")))

        assert set(office_stats(db_session, catalog, WINDOW)) == {"OC"}

    def test_query_failure_omits_office(self, catalog):
        db = MagicMock()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        assert office_stats(db, catalog, WINDOW) == {}


class TestTeamStats:

    def test_team_participation_equals_head_count(self, db_session, catalog, make_user, add_rep):
        active = make_user("oc_1@example.com", "OC")
        idle = make_user("denver_1@example.com", "Denver")
        add_membership(db_session, "eng", active.id)
        add_membership(db_session, "eng", idle.id)
        add_rep(active, "pushups", 80, datetime(2016, 11, 3, 9, 0))

        stats = team_stats(db_session, catalog, WINDOW)["eng"]

        assert stats.head_count == 2
        assert stats.participating == 2
        assert stats.percent_participating == 100
        assert stats.total_reps == 80
        assert stats.reps_per_person == 40
        assert stats.reps_per_person_per_day == 10

    def test_emptied_team_is_degenerate_not_failing(self, db_session, catalog, make_user):
        user = make_user("oc_1@example.com", "OC")
        add_membership(db_session, "ghost_town", user.id)
        remove_membership(db_session, "ghost_town", user.id)

        stats = team_stats(db_session, catalog, WINDOW)["ghost_town"]

        assert stats.head_count == 1
        assert stats.participating == 0
        assert stats.total_reps == 0

    def test_no_teams(self, db_session, catalog):
        assert team_stats(db_session, catalog, WINDOW) == {}


def test_head_count_is_read_fresh(db_session, catalog):
    """Head counts come from the office row at query time, not from the catalog."""
    db_session.query(Office).filter(Office.name == "Denver").update({"head_count": 8})
    db_session.commit()

    assert office_stats(db_session, catalog, WINDOW)["Denver"].head_count == 8


class TestOffsetWindows:
    """With offsets on, stats count the same submissions the day series show."""

    @staticmethod
    def _seed(make_user, add_rep):
        denver = make_user("denver_1@example.com", "Denver")
        # Shifted into the window (local 00:30 on Nov 1)
        add_rep(denver, "pushups", 30, datetime(2016, 10, 31, 23, 30))
        # Shifted out of it (local 00:15 on Nov 5)
        add_rep(denver, "pushups", 500, datetime(2016, 11, 4, 23, 15))
        add_rep(denver, "pushups", 12, datetime(2016, 11, 2, 9, 0))
        return denver

    def test_office_stats_follow_offset(self, db_session, catalog, make_user, add_rep):
        self._seed(make_user, add_rep)

        shifted = office_stats(db_session, catalog, WINDOW, apply_offset=True)["Denver"]
        stored = office_stats(db_session, catalog, WINDOW, apply_offset=False)["Denver"]

        assert shifted.total_reps == 42
        assert stored.total_reps == 512
        series = reps_for_subject(
            db_session, catalog, SubjectKind.OFFICE, "Denver", WINDOW, apply_offset=True
        )
        assert total_reps(series) == shifted.total_reps

    def test_team_stats_follow_offset(self, db_session, catalog, make_user, add_rep):
        denver = self._seed(make_user, add_rep)
        oc = make_user("oc_1@example.com", "OC")
        add_rep(oc, "situps", 8, datetime(2016, 10, 31, 23, 30))
        add_rep(oc, "situps", 4, datetime(2016, 11, 4, 23, 15))
        add_membership(db_session, "eng", denver.id)
        add_membership(db_session, "eng", oc.id)

        stats = team_stats(db_session, catalog, WINDOW, apply_offset=True)["eng"]

        assert stats.total_reps == 46
        series = reps_for_subject(db_session, catalog, SubjectKind.TEAM, "eng", WINDOW, apply_offset=True)
        assert total_reps(series) == 46
