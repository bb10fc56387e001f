"""
Ranking domain types

Closed enums for tiers, finishing positions and categories plus the
lightweight records the aggregators work on.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


# =====================================================
# Enums
# =====================================================

class Tier(str, Enum):
    """Tournament tier, ordered by prestige"""
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"
    TIER4 = "tier4"
    HISTORIC = "historic"  # imported points, no display tier

    @property
    def is_historic(self) -> bool:
        return self is Tier.HISTORIC


class FinishingPosition(str, Enum):
    """A player's outcome bucket in an event"""
    WINNER = "winner"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    QUARTERFINALIST = "quarterfinalist"
    ROUND_OF_16 = "round_of_16"
    POINTS_AWARDED = "points_awarded"  # participation


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Category(str, Enum):
    """Competition category. Mixed doubles is split per gender."""
    MENS_SINGLES = "mens_singles"
    WOMENS_SINGLES = "womens_singles"
    MENS_DOUBLES = "mens_doubles"
    WOMENS_DOUBLES = "womens_doubles"
    MENS_MIXED_DOUBLES = "mens_mixed_doubles"
    WOMENS_MIXED_DOUBLES = "womens_mixed_doubles"

    @property
    def gender(self) -> Gender:
        """Gender of the players allowed in this category"""
        if self.value.startswith("womens_"):
            return Gender.FEMALE
        return Gender.MALE

    @property
    def is_doubles(self) -> bool:
        return self.value.endswith("doubles")


class RankingView(str, Enum):
    """current = rolling window, lifetime = all results"""
    CURRENT = "current"
    LIFETIME = "lifetime"


# Display names (UI/CSV)
CATEGORY_LABELS = {
    Category.MENS_SINGLES: "Men's Singles",
    Category.WOMENS_SINGLES: "Women's Singles",
    Category.MENS_DOUBLES: "Men's Doubles",
    Category.WOMENS_DOUBLES: "Women's Doubles",
    Category.MENS_MIXED_DOUBLES: "Men's Mixed Doubles",
    Category.WOMENS_MIXED_DOUBLES: "Women's Mixed Doubles",
}


# =====================================================
# Records
# =====================================================

@dataclass
class ResultRecord:
    """One stored result joined with its event, as the aggregators read it"""
    player_id: str
    category: Category
    points: int
    event_date: date
    player_name: str = ""
    country: str = ""
    event_id: Optional[str] = None
    tournament_name: str = ""
    finishing_position: Optional[FinishingPosition] = None
    tier: Optional[Tier] = None


@dataclass
class RankingRow:
    """Derived ranking line, never persisted"""
    player_id: str
    total_points: int
    rank: int = 0
    player_name: str = ""
    country: str = ""
    events_count: int = 0
    national_rank: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "player_id": self.player_id,
            "name": self.player_name,
            "country": self.country,
            "total_points": self.total_points,
            "rank": self.rank,
            "events_count": self.events_count,
        }
        if self.national_rank is not None:
            data["national_rank"] = self.national_rank
        return data


@dataclass
class CombinedRankingRow(RankingRow):
    """Combined doubles line with both component totals"""
    gendered_doubles_points: int = 0
    mixed_doubles_points: int = 0

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["gendered_doubles_points"] = self.gendered_doubles_points
        data["mixed_doubles_points"] = self.mixed_doubles_points
        return data


@dataclass
class ExpiringPoints:
    """Points about to leave the current window for one player/category"""
    player_id: str
    category: Category
    expiring_points: int
    next_expiry_date: date
    player_name: str = ""
    country: str = ""
    days_until_expiry: int = 0


@dataclass
class PlayerRankingSummary:
    """Active vs lifetime standing of one player in one category"""
    player_id: str
    category: Category
    active_points: int = 0
    active_rank: Optional[int] = None
    lifetime_points: int = 0
    lifetime_rank: Optional[int] = None
    expiring_points: int = 0
    next_expiry_date: Optional[date] = None
    expiring_results: List[ResultRecord] = field(default_factory=list)


@dataclass
class RankingChange:
    """Rank/points movement of one player between two reference dates"""
    player_id: str
    player_name: str = ""
    country: str = ""
    old_rank: Optional[int] = None
    new_rank: Optional[int] = None
    old_points: int = 0
    new_points: int = 0

    @property
    def rank_change(self) -> Optional[int]:
        """Places gained (negative when dropping); None if ranked on only one date"""
        if self.old_rank is None or self.new_rank is None:
            return None
        return self.old_rank - self.new_rank

    @property
    def points_change(self) -> int:
        return self.new_points - self.old_points

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "name": self.player_name,
            "country": self.country,
            "old_rank": self.old_rank,
            "new_rank": self.new_rank,
            "rank_change": self.rank_change,
            "old_points": self.old_points,
            "new_points": self.new_points,
            "points_change": self.points_change,
        }
