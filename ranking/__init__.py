"""
Sports ranking core

Points policy, rolling/lifetime ranking calculation and combined doubles
"""
from .calculator import (
    ranking_changes,
    print_ranking_summary,
    assign_competition_ranks,
    compute_rankings,
    current_rankings,
    lifetime_rankings,
    national_rankings,
    expiring_points,
    player_ranking_summary,
    expiry_date,
    parse_category,
    DEFAULT_WINDOW_DAYS,
    DEFAULT_EXPIRING_WITHIN_DAYS,
)
from .combined import compute_combined, combined_categories, parse_gender
from .exceptions import (
    RankingError,
    ValidationFailed,
    InvalidTierOrPosition,
    InvalidMerge,
    PlayerNotFound,
    ResolutionRequired,
    ConflictError,
    BothLinkedToAccounts,
    StaleResolution,
)
from .models import (
    Tier,
    FinishingPosition,
    Category,
    Gender,
    RankingView,
    ResultRecord,
    RankingRow,
    CombinedRankingRow,
    ExpiringPoints,
    PlayerRankingSummary,
    RankingChange,
    CATEGORY_LABELS,
)
from .points import (
    compute_points,
    points_table,
    parse_tier,
    parse_position,
    TIER_BASE_POINTS,
    POSITION_MULTIPLIERS,
)

__all__ = [
    "ranking_changes",
    "print_ranking_summary",
    "assign_competition_ranks",
    "compute_rankings",
    "current_rankings",
    "lifetime_rankings",
    "national_rankings",
    "expiring_points",
    "player_ranking_summary",
    "expiry_date",
    "parse_category",
    "DEFAULT_WINDOW_DAYS",
    "DEFAULT_EXPIRING_WITHIN_DAYS",
    "compute_combined",
    "combined_categories",
    "parse_gender",
    "RankingError",
    "ValidationFailed",
    "InvalidTierOrPosition",
    "InvalidMerge",
    "PlayerNotFound",
    "ResolutionRequired",
    "ConflictError",
    "BothLinkedToAccounts",
    "StaleResolution",
    "Tier",
    "FinishingPosition",
    "Category",
    "Gender",
    "RankingView",
    "ResultRecord",
    "RankingRow",
    "CombinedRankingRow",
    "ExpiringPoints",
    "PlayerRankingSummary",
    "RankingChange",
    "CATEGORY_LABELS",
    "compute_points",
    "points_table",
    "parse_tier",
    "parse_position",
    "TIER_BASE_POINTS",
    "POSITION_MULTIPLIERS",
]
