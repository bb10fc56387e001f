"""
Unit tests for CSV value normalization

Tests cover:
1. Field normalizers (gender, category, date, tier, position)
2. Row normalization and collected errors
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_pipeline.normalizer import (
    default_tournament_name,
    is_plain_mixed,
    normalize_category,
    normalize_date,
    normalize_gender,
    normalize_position,
    normalize_row,
    normalize_tier,
)
from ranking.exceptions import ValidationFailed
from ranking.models import Category, FinishingPosition, Gender, Tier


# =============================================================================
# Field Normalizer Tests
# =============================================================================

class TestNormalizeGender:
    """Tests for gender normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("male", Gender.MALE),
        ("M", Gender.MALE),
        (" Female ", Gender.FEMALE),
        ("f", Gender.FEMALE),
        ("woman", Gender.FEMALE),
        ("", None),
        (None, None),
    ])
    def test_values(self, value, expected):
        assert normalize_gender(value) == expected

    def test_unknown(self):
        with pytest.raises(ValidationFailed):
            normalize_gender("x")


class TestNormalizeCategory:
    """Tests for category normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("mens_singles", Category.MENS_SINGLES),
        ("Men's Singles", Category.MENS_SINGLES),
        ("WS", Category.WOMENS_SINGLES),
        ("womens-doubles", Category.WOMENS_DOUBLES),
        ("mens_mixed_doubles", Category.MENS_MIXED_DOUBLES),
    ])
    def test_values(self, value, expected):
        assert normalize_category(value) == expected

    def test_mixed_doubles_uses_gender(self):
        assert normalize_category("mixed_doubles", Gender.MALE) == Category.MENS_MIXED_DOUBLES
        assert normalize_category("Mixed", Gender.FEMALE) == Category.WOMENS_MIXED_DOUBLES

    def test_is_plain_mixed(self):
        assert is_plain_mixed("Mixed")
        assert is_plain_mixed("mixed_doubles")
        assert not is_plain_mixed("mens_mixed_doubles")
        assert not is_plain_mixed("")

    def test_mixed_doubles_without_gender(self):
        with pytest.raises(ValidationFailed):
            normalize_category("mixed_doubles")

    def test_unknown(self):
        with pytest.raises(ValidationFailed) as exc:
            normalize_category("senior_singles")
        assert exc.value.field == "category"

    def test_empty(self):
        assert normalize_category("  ") is None


class TestNormalizeDate:
    """Tests for date normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("2025-06-01", date(2025, 6, 1)),
        ("2025-6-1", date(2025, 6, 1)),
        ("01/06/2025", date(2025, 6, 1)),
        ("1.6.2025", date(2025, 6, 1)),
        ("06/13/2025", date(2025, 6, 13)),
    ])
    def test_values(self, value, expected):
        assert normalize_date(value) == expected

    @pytest.mark.parametrize("value", ["2025-13-01", "31/31/2025", "yesterday", "2025/06/01"])
    def test_invalid(self, value):
        with pytest.raises(ValidationFailed):
            normalize_date(value)

    def test_field_name_in_error(self):
        with pytest.raises(ValidationFailed) as exc:
            normalize_date("bad", "date_of_birth")
        assert exc.value.field == "date_of_birth"


class TestNormalizeTier:
    """Tests for tier normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("tier1", Tier.TIER1),
        ("Tier 2", Tier.TIER2),
        ("3", Tier.TIER3),
        ("HISTORIC", Tier.HISTORIC),
        ("", None),
    ])
    def test_values(self, value, expected):
        assert normalize_tier(value) == expected

    def test_unknown(self):
        with pytest.raises(ValidationFailed):
            normalize_tier("tier5")


class TestNormalizePosition:
    """Tests for finishing position normalization"""

    @pytest.mark.parametrize("value,expected", [
        ("winner", FinishingPosition.WINNER),
        ("1st", FinishingPosition.WINNER),
        ("Runner-up", FinishingPosition.SECOND),
        ("QF", FinishingPosition.QUARTERFINALIST),
        ("round of 16", FinishingPosition.ROUND_OF_16),
        ("event_win", FinishingPosition.POINTS_AWARDED),
        ("participation", FinishingPosition.POINTS_AWARDED),
    ])
    def test_values(self, value, expected):
        assert normalize_position(value) == expected

    def test_unknown(self):
        with pytest.raises(ValidationFailed):
            normalize_position("semifinal")


# =============================================================================
# Row Normalization Tests
# =============================================================================

class TestNormalizeRow:
    """Tests for whole-row normalization"""

    def _raw(self, **overrides):
        raw = {
            "player_name": "John Doe",
            "player_code": "NPL000000001",
            "country": "USA",
            "gender": "male",
            "category": "mens_singles",
            "finishing_position": "winner",
            "points": "",
            "event_date": "2025-03-01",
            "tournament_name": "Spring Open",
            "tier": "tier2",
        }
        raw.update(overrides)
        return raw

    def test_valid_row(self):
        row = normalize_row(self._raw(), 0)

        assert row.is_valid
        assert row.row_key == "row_0"
        assert row.csv_row == 2
        assert row.category == Category.MENS_SINGLES
        assert row.tier == Tier.TIER2
        assert row.event_date == date(2025, 3, 1)

    def test_defaults(self):
        row = normalize_row(self._raw(tier="", finishing_position="", tournament_name=""), 3, "march.csv")

        assert row.tier == Tier.TIER4
        assert row.finishing_position == FinishingPosition.POINTS_AWARDED
        assert row.tournament_name == default_tournament_name("march.csv")
        assert row.tournament_name == "Bulk Import - march.csv"

    def test_dupr_column_maps_to_rating_id(self):
        row = normalize_row(self._raw(dupr_id=" DUPR-9 "), 0)
        assert row.external_rating_id == "DUPR-9"

    def test_collects_every_error(self):
        row = normalize_row(self._raw(gender="x", tier="gold", event_date="someday"), 0)

        assert not row.is_valid
        assert len(row.errors) == 3

    def test_missing_category_and_date(self):
        row = normalize_row(self._raw(category="", event_date=""), 0)
        assert "Missing category" in row.errors
        assert "Missing event_date" in row.errors

    def test_gender_category_mismatch(self):
        row = normalize_row(self._raw(category="womens_singles"), 0)
        assert not row.is_valid
        assert "does not accept" in row.errors[0]

    def test_mixed_doubles_without_gender_is_deferred(self):
        row = normalize_row(self._raw(gender="", category="XD"), 0)

        assert row.is_valid
        assert row.category is None
        assert row.mixed_category

    def test_mixed_doubles_with_gender(self):
        row = normalize_row(self._raw(category="mixed_doubles"), 0)
        assert row.category == Category.MENS_MIXED_DOUBLES
        assert not row.mixed_category

    def test_missing_name_and_code(self):
        row = normalize_row(self._raw(player_name="", player_code=""), 0)
        assert "Player name or player_code is required" in row.errors

    def test_code_without_name_is_valid(self):
        row = normalize_row(self._raw(player_name=""), 0)
        assert row.is_valid

    def test_historic_requires_points(self):
        row = normalize_row(self._raw(tier="historic", points=""), 0)
        assert not row.is_valid

    def test_historic_with_points(self):
        row = normalize_row(self._raw(tier="historic", points="150"), 0)
        assert row.is_valid
        assert row.points == "150"

    def test_missing_player_fields(self):
        row = normalize_row(self._raw(country="", gender=""), 0)
        assert row.is_valid
        assert row.missing_player_fields() == ["country", "gender"]
