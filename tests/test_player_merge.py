"""
Unit tests for the player merge resolver

Tests cover:
1. Preview counts and field diffs
2. Merge transfers results, names and accounts
3. Blocked and invalid merges leave everything unchanged
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import ORG_ID, OTHER_ORG_ID
from app.player_merge import MergeResolver
from ranking.exceptions import BothLinkedToAccounts, InvalidMerge, PlayerNotFound
from ranking.models import Category, FinishingPosition, Gender, Tier


@pytest.fixture
def merge_store(seeded_store):
    """seeded_store plus 'Alice A.' (alice's duplicate) with two results"""
    seeded_store.create_player(ORG_ID, {
        "id": "alice2", "name": "Alice A.", "country": "USA", "gender": Gender.MALE,
        "player_code": "NPL000000099", "external_rating_id": "DUPR-1",
        "date_of_birth": date(1990, 1, 1), "alternate_names": ["A. Adams"],
    })
    fall, _ = seeded_store.get_or_create_event(
        ORG_ID, "Fall Open", date(2025, 9, 1), Category.MENS_SINGLES, Tier.TIER3
    )
    seeded_store.add_result(fall.id, "alice2", FinishingPosition.THIRD, 100)
    doubles, _ = seeded_store.get_or_create_event(
        ORG_ID, "Fall Open", date(2025, 9, 1), Category.MENS_DOUBLES, Tier.TIER3, is_public=False
    )
    seeded_store.add_result(doubles.id, "alice2", FinishingPosition.WINNER, 250)
    return seeded_store


# =============================================================================
# Preview Tests
# =============================================================================

class TestMergePreview:
    """Tests for the write-free merge preview"""

    def test_counts(self, merge_store):
        preview = MergeResolver(merge_store, ORG_ID).preview("alice", "alice2")

        assert preview.events_transferred == 2
        assert preview.points_transferred == 350
        assert preview.by_category == {
            "mens_singles": {"events": 1, "points": 100},
            "mens_doubles": {"events": 1, "points": 250},
        }

    def test_field_updates_only_fill_empty(self, merge_store):
        preview = MergeResolver(merge_store, ORG_ID).preview("alice", "alice2")

        # alice already has an email; the duplicate's values fill the rest
        assert preview.field_updates == {
            "external_rating_id": "DUPR-1",
            "date_of_birth": date(1990, 1, 1),
        }
        assert preview.alternate_names_added == ["Alice A.", "A. Adams"]

    def test_writes_nothing(self, merge_store):
        MergeResolver(merge_store, ORG_ID).preview("alice", "alice2")
        assert merge_store.get_player(ORG_ID, "alice2") is not None
        assert len(merge_store.list_results(ORG_ID, player_id="alice2", public_only=False)) == 2

    def test_blocked_when_both_linked(self, merge_store):
        merge_store.link_account("alice", "user-1")
        merge_store.link_account("alice2", "user-2")

        preview = MergeResolver(merge_store, ORG_ID).preview("alice", "alice2")
        assert preview.blocked
        assert preview.to_dict()["block_reason"]

    def test_to_dict_serializes_dates(self, merge_store):
        data = MergeResolver(merge_store, ORG_ID).preview("alice", "alice2").to_dict()
        assert data["field_updates"]["date_of_birth"] == "1990-01-01"


# =============================================================================
# Merge Tests
# =============================================================================

class TestMerge:
    """Tests for applying a merge"""

    def test_transfers_results(self, merge_store):
        alice_points_before = sum(r.points for r in merge_store.list_results(ORG_ID, player_id="alice", public_only=False))

        outcome = MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")

        assert outcome == {"events_transferred": 2, "points_transferred": 350}
        alice_points = sum(r.points for r in merge_store.list_results(ORG_ID, player_id="alice", public_only=False))
        assert alice_points == alice_points_before + 350
        assert merge_store.get_player(ORG_ID, "alice2") is None

    def test_updates_primary(self, merge_store):
        MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")

        alice = merge_store.get_player(ORG_ID, "alice")
        assert alice.name == "Alice Adams"
        assert alice.email == "alice@example.com"
        assert alice.external_rating_id == "DUPR-1"
        assert alice.alternate_names == ["Alice A.", "A. Adams"]
        assert alice.player_code == "NPL000000001"

    def test_duplicate_name_finds_primary(self, merge_store):
        MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")
        hits = merge_store.find_players_by_name(ORG_ID, "alice a.")
        assert [p.id for p in hits] == ["alice"]

    def test_account_moves_to_primary(self, merge_store):
        merge_store.link_account("alice2", "user-2")
        MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")

        assert merge_store.accounts == {"alice": "user-2"}

    def test_ranking_reflects_merge(self, merge_store):
        from ranking.calculator import current_rankings

        MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")
        rows = current_rankings(
            merge_store.list_results(ORG_ID, category=Category.MENS_SINGLES),
            Category.MENS_SINGLES,
            date(2025, 10, 1),
        )
        alice = [r for r in rows if r.player_id == "alice"][0]
        assert alice.total_points == 600
        assert alice.rank == 1

    def test_both_linked_changes_nothing(self, merge_store):
        merge_store.link_account("alice", "user-1")
        merge_store.link_account("alice2", "user-2")
        results_before = {r.id: r.player_id for r in merge_store.results.values()}

        with pytest.raises(BothLinkedToAccounts):
            MergeResolver(merge_store, ORG_ID).merge("alice", "alice2")

        assert merge_store.get_player(ORG_ID, "alice2") is not None
        assert {r.id: r.player_id for r in merge_store.results.values()} == results_before
        assert merge_store.get_player(ORG_ID, "alice").alternate_names == []

    def test_same_player(self, merge_store):
        with pytest.raises(InvalidMerge):
            MergeResolver(merge_store, ORG_ID).merge("alice", "alice")

    def test_missing_player(self, merge_store):
        with pytest.raises(PlayerNotFound):
            MergeResolver(merge_store, ORG_ID).merge("alice", "ghost")

    def test_other_organization(self, merge_store):
        with pytest.raises(PlayerNotFound):
            MergeResolver(merge_store, OTHER_ORG_ID).merge("alice", "alice2")
