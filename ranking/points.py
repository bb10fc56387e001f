"""
Points policy

Awarded points = tier base points × finishing position multiplier, rounded
half-up. Historic events carry their own pre-computed points.

Points are computed once when a result is created and stored; reads never
recompute them from this table.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Union

from .exceptions import InvalidTierOrPosition
from .models import FinishingPosition, Tier


# =====================================================
# Constants
# =====================================================

# Base points per tier
TIER_BASE_POINTS = {
    Tier.TIER1: 1000,
    Tier.TIER2: 500,
    Tier.TIER3: 250,
    Tier.TIER4: 100,
}

# Multiplier per finishing position
POSITION_MULTIPLIERS = {
    FinishingPosition.WINNER: Decimal("1.00"),
    FinishingPosition.SECOND: Decimal("0.60"),
    FinishingPosition.THIRD: Decimal("0.40"),
    FinishingPosition.FOURTH: Decimal("0.30"),
    FinishingPosition.QUARTERFINALIST: Decimal("0.20"),
    FinishingPosition.ROUND_OF_16: Decimal("0.10"),
    FinishingPosition.POINTS_AWARDED: Decimal("0.05"),
}


def parse_tier(value: Union[str, Tier]) -> Tier:
    """Strict tier lookup; raises InvalidTierOrPosition for unknown tags"""
    if isinstance(value, Tier):
        return value
    try:
        return Tier(value)
    except ValueError:
        raise InvalidTierOrPosition(value, None, "unknown tier") from None


def parse_position(value: Union[str, FinishingPosition]) -> FinishingPosition:
    """Strict finishing position lookup"""
    if isinstance(value, FinishingPosition):
        return value
    try:
        return FinishingPosition(value)
    except ValueError:
        raise InvalidTierOrPosition(None, value, "unknown finishing position") from None


def compute_points(
    tier: Union[str, Tier],
    finishing_position: Union[str, FinishingPosition],
    historic_points: Optional[Any] = None,
) -> int:
    """
    Points awarded for one result

    Args:
        tier: tournament tier
        finishing_position: player's outcome bucket
        historic_points: pre-computed points, used only (and required) for
            the historic tier

    Returns:
        non-negative integer points

    Raises:
        InvalidTierOrPosition: unknown tier/position, or unusable historic points
    """
    try:
        tier_enum = parse_tier(tier)
        position = parse_position(finishing_position)
    except InvalidTierOrPosition:
        raise InvalidTierOrPosition(tier, finishing_position) from None

    if tier_enum.is_historic:
        return _historic_points(tier_enum, position, historic_points)

    base = TIER_BASE_POINTS[tier_enum]
    multiplier = POSITION_MULTIPLIERS[position]
    points = (Decimal(base) * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(points)


def _historic_points(tier: Tier, position: FinishingPosition, value: Any) -> int:
    """Historic imports bypass the formula; the literal must be a whole, non-negative number"""
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidTierOrPosition(
            tier.value, position.value, "historic tier requires pre-computed points"
        )
    try:
        number = Decimal(str(value).strip())
    except ArithmeticError:
        raise InvalidTierOrPosition(
            tier.value, position.value, f"historic points {value!r} is not a number"
        ) from None

    if not number.is_finite() or number != number.to_integral_value() or number < 0:
        raise InvalidTierOrPosition(
            tier.value, position.value, f"historic points {value!r} must be a non-negative integer"
        )
    return int(number)


def points_table() -> Dict[str, Dict[str, int]]:
    """Full tier × position grid (historic excluded)"""
    return {
        tier.value: {
            position.value: compute_points(tier, position)
            for position in FinishingPosition
        }
        for tier in TIER_BASE_POINTS
    }
