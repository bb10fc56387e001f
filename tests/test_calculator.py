"""
Unit tests for the ranking aggregator

Tests cover:
1. Rolling window boundaries
2. Competition ranking and tie order
3. Lifetime and national views
4. Expiring points and player summary
5. Rank movement between two dates
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import make_record
from ranking.calculator import (
    assign_competition_ranks,
    compute_rankings,
    current_rankings,
    expiring_points,
    expiry_date,
    is_within_window,
    lifetime_rankings,
    national_rankings,
    parse_category,
    player_ranking_summary,
    print_ranking_summary,
    ranking_changes,
)
from ranking.exceptions import ValidationFailed
from ranking.models import Category, RankingRow


AS_OF = date(2025, 6, 1)


# =============================================================================
# Window Tests
# =============================================================================

class TestWindow:
    """Tests for the inclusive rolling window"""

    def test_window_start_is_inclusive(self):
        assert is_within_window(date(2024, 6, 1), AS_OF, 365)

    def test_day_before_window_excluded(self):
        assert not is_within_window(date(2024, 5, 31), AS_OF, 365)

    def test_as_of_is_inclusive(self):
        assert is_within_window(AS_OF, AS_OF, 365)

    def test_future_results_excluded(self):
        assert not is_within_window(date(2025, 6, 2), AS_OF, 365)

    def test_expiry_date(self):
        """Last counted day is event + window; expiry is the day after"""
        assert expiry_date(date(2024, 6, 1), 365) == date(2025, 6, 2)

    def test_boundary_scenario(self):
        results = [
            make_record("old", 300, date(2024, 5, 1)),
            make_record("recent", 200, date(2024, 6, 2)),
        ]
        rows = current_rankings(results, "mens_singles", AS_OF, 365)

        assert [r.player_id for r in rows] == ["recent"]
        assert rows[0].rank == 1
        assert rows[0].total_points == 200

    def test_zero_day_window(self):
        results = [
            make_record("a", 100, AS_OF),
            make_record("b", 100, date(2025, 5, 31)),
        ]
        rows = compute_rankings(results, Category.MENS_SINGLES, AS_OF, 0)
        assert [r.player_id for r in rows] == ["a"]

    def test_negative_window_rejected(self):
        with pytest.raises(ValidationFailed):
            compute_rankings([], Category.MENS_SINGLES, AS_OF, -1)


# =============================================================================
# Ranking Tests
# =============================================================================

class TestCompetitionRanking:
    """Tests for standard competition ranking"""

    def test_ties_share_rank_and_skip(self):
        rows = [
            RankingRow(player_id="c", total_points=300, player_name="Cy"),
            RankingRow(player_id="a", total_points=500, player_name="Al"),
            RankingRow(player_id="b", total_points=500, player_name="Bo"),
        ]
        ranked = assign_competition_ranks(rows)

        assert [r.rank for r in ranked] == [1, 1, 3]
        assert [r.player_id for r in ranked] == ["a", "b", "c"]

    def test_tie_order_is_case_insensitive_name_then_id(self):
        rows = [
            RankingRow(player_id="2", total_points=100, player_name="ann"),
            RankingRow(player_id="1", total_points=100, player_name="Ann"),
            RankingRow(player_id="3", total_points=100, player_name="Aaron"),
        ]
        ranked = assign_competition_ranks(rows)
        assert [r.player_id for r in ranked] == ["3", "1", "2"]
        assert {r.rank for r in ranked} == {1}

    def test_points_are_summed_per_player(self):
        results = [
            make_record("a", 500, date(2025, 1, 1)),
            make_record("a", 100, date(2025, 2, 1)),
            make_record("b", 550, date(2025, 3, 1)),
        ]
        rows = current_rankings(results, "mens_singles", AS_OF)

        assert rows[0].player_id == "a"
        assert rows[0].total_points == 600
        assert rows[0].events_count == 2
        assert rows[1].rank == 2

    def test_other_categories_ignored(self):
        results = [
            make_record("a", 500, date(2025, 1, 1)),
            make_record("b", 900, date(2025, 1, 1), category=Category.MENS_DOUBLES),
        ]
        rows = current_rankings(results, Category.MENS_SINGLES, AS_OF)
        assert [r.player_id for r in rows] == ["a"]

    def test_zero_point_results_still_ranked(self):
        rows = current_rankings([make_record("a", 0, date(2025, 1, 1))], "mens_singles", AS_OF)
        assert rows[0].total_points == 0
        assert rows[0].rank == 1

    def test_empty_results(self):
        assert current_rankings([], "mens_singles", AS_OF) == []

    def test_unknown_category(self):
        with pytest.raises(ValidationFailed):
            current_rankings([], "mixed", AS_OF)

    def test_lifetime_ignores_window(self):
        results = [
            make_record("a", 500, date(2025, 1, 1)),
            make_record("b", 1000, date(2015, 1, 1)),
        ]
        rows = lifetime_rankings(results, "mens_singles", AS_OF)
        assert [r.player_id for r in rows] == ["b", "a"]


class TestParseCategory:
    """Tests for strict category parsing"""

    def test_known(self):
        assert parse_category("womens_mixed_doubles") == Category.WOMENS_MIXED_DOUBLES

    def test_unknown_lists_allowed_values(self):
        with pytest.raises(ValidationFailed) as exc:
            parse_category("mixed_doubles")
        assert "mens_singles" in str(exc.value)
        assert exc.value.field == "category"


# =============================================================================
# National Ranking Tests
# =============================================================================

class TestNationalRankings:
    """Tests for country filtered rankings"""

    def _rows(self):
        results = [
            make_record("a", 500, date(2025, 1, 1), country="USA"),
            make_record("b", 400, date(2025, 1, 1), country="Canada"),
            make_record("c", 300, date(2025, 1, 1), country="usa"),
        ]
        return current_rankings(results, "mens_singles", AS_OF)

    def test_global_rank_kept(self):
        rows = national_rankings(self._rows(), "USA")
        assert [(r.player_id, r.rank, r.national_rank) for r in rows] == [("a", 1, 1), ("c", 3, 2)]

    def test_no_country_returns_all(self):
        assert len(national_rankings(self._rows(), None)) == 3
        assert len(national_rankings(self._rows(), "all")) == 3

    def test_unknown_country_empty(self):
        assert national_rankings(self._rows(), "Peru") == []

    def test_national_rank_in_dict(self):
        row = national_rankings(self._rows(), "Canada")[0]
        assert row.to_dict()["national_rank"] == 1


# =============================================================================
# Expiring Points Tests
# =============================================================================

class TestExpiringPoints:
    """Tests for points leaving the window"""

    def test_groups_per_player_and_category(self):
        results = [
            make_record("a", 100, date(2024, 6, 5)),
            make_record("a", 50, date(2024, 6, 20)),
            make_record("a", 500, date(2025, 1, 1)),
        ]
        entries = expiring_points(results, AS_OF, within_days=30)

        assert len(entries) == 1
        assert entries[0].expiring_points == 150
        assert entries[0].next_expiry_date == date(2025, 6, 6)
        assert entries[0].days_until_expiry == 5

    def test_already_expired_not_reported(self):
        entries = expiring_points([make_record("a", 100, date(2024, 5, 1))], AS_OF)
        assert entries == []

    def test_player_filter(self):
        results = [
            make_record("a", 100, date(2024, 6, 5)),
            make_record("b", 100, date(2024, 6, 5)),
        ]
        entries = expiring_points(results, AS_OF, player_id="b")
        assert [e.player_id for e in entries] == ["b"]

    def test_sorted_by_expiry(self):
        results = [
            make_record("a", 100, date(2024, 6, 20)),
            make_record("b", 100, date(2024, 6, 3)),
        ]
        entries = expiring_points(results, AS_OF)
        assert [e.player_id for e in entries] == ["b", "a"]


class TestPlayerSummary:
    """Tests for the active vs lifetime summary"""

    def test_summary(self):
        results = [
            make_record("a", 1000, date(2020, 1, 1)),
            make_record("a", 100, date(2024, 6, 10)),
            make_record("b", 500, date(2025, 1, 1)),
        ]
        summary = player_ranking_summary(results, "a", "mens_singles", AS_OF)

        assert summary.active_points == 100
        assert summary.active_rank == 2
        assert summary.lifetime_points == 1100
        assert summary.lifetime_rank == 1
        assert summary.expiring_points == 100
        assert summary.next_expiry_date == date(2025, 6, 11)
        assert len(summary.expiring_results) == 1

    def test_unranked_player(self):
        summary = player_ranking_summary([], "x", "mens_singles", AS_OF)
        assert summary.active_rank is None
        assert summary.lifetime_points == 0


# =============================================================================
# Ranking Movement Tests
# =============================================================================

class TestRankingChanges:
    """Tests for rank movement between two dates"""

    PREVIOUS = date(2025, 3, 1)

    def _results(self):
        return [
            make_record("a", 500, date(2024, 4, 1)),
            make_record("b", 300, date(2024, 12, 1)),
            make_record("b", 400, date(2025, 5, 1)),
            make_record("c", 200, date(2025, 4, 1)),
        ]

    def test_movement(self):
        changes = ranking_changes(self._results(), "mens_singles", self.PREVIOUS, AS_OF)

        assert [c.player_id for c in changes] == ["b", "c", "a"]
        b, c, a = changes
        assert (b.old_rank, b.new_rank, b.rank_change) == (2, 1, 1)
        assert (b.old_points, b.new_points, b.points_change) == (300, 700, 400)
        assert c.old_rank is None and c.new_rank == 2
        assert c.rank_change is None
        assert a.new_rank is None and a.old_rank == 1
        assert a.points_change == -500

    def test_lifetime_ignores_later_results(self):
        changes = ranking_changes(self._results(), "mens_singles", self.PREVIOUS, AS_OF, None)
        by_id = {c.player_id: c for c in changes}

        assert (by_id["a"].old_rank, by_id["a"].new_rank) == (1, 2)
        assert by_id["a"].points_change == 0
        assert by_id["b"].rank_change == 1
        assert by_id["c"].old_rank is None

    def test_same_date_has_no_movement(self):
        changes = ranking_changes(self._results(), "mens_singles", AS_OF, AS_OF)
        assert all(c.rank_change == 0 and c.points_change == 0 for c in changes)

    def test_dates_out_of_order(self):
        with pytest.raises(ValidationFailed):
            ranking_changes(self._results(), "mens_singles", AS_OF, self.PREVIOUS)

    def test_to_dict(self):
        change = ranking_changes(self._results(), "mens_singles", self.PREVIOUS, AS_OF)[0]
        assert change.to_dict()["rank_change"] == 1
        assert change.to_dict()["points_change"] == 400


# =============================================================================
# Output Tests
# =============================================================================

class TestPrintRankingSummary:
    """Tests for the console table"""

    def test_print_summary(self, capsys):
        rows = current_rankings([make_record("a", 500, date(2025, 1, 1), name="Alice")], "mens_singles", AS_OF)
        print_ranking_summary(rows, "Men's Singles")

        out = capsys.readouterr().out
        assert "Men's Singles" in out
        assert "Alice" in out
