"""
Ranking calculation

- Category filter, optional rolling window ending at `as_of`
- Sum of stored points per player
- Standard competition ranking (ties share a rank, next rank skips)
- Derived views: national ranks, expiring points, player summary,
  ranking movement between two dates

Rankings are always recomputed from results; nothing here is persisted.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from .exceptions import ValidationFailed
from .models import (
    Category,
    ExpiringPoints,
    PlayerRankingSummary,
    RankingChange,
    RankingRow,
    ResultRecord,
)


# =====================================================
# Constants
# =====================================================

# Rolling window of the current view (12 months)
DEFAULT_WINDOW_DAYS = 365

# Horizon for "points expiring soon" warnings
DEFAULT_EXPIRING_WITHIN_DAYS = 30


def parse_category(value: Union[str, Category]) -> Category:
    """Strict category lookup"""
    if isinstance(value, Category):
        return value
    try:
        return Category(value)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationFailed(
            f"Unknown category {value!r}. Allowed: {allowed}",
            field="category",
            value=value,
        ) from None


def is_within_window(event_date: date, as_of: date, window_days: int) -> bool:
    """Inclusive on both ends: [as_of - window_days, as_of]"""
    return as_of - timedelta(days=window_days) <= event_date <= as_of


def expiry_date(event_date: date, window_days: int = DEFAULT_WINDOW_DAYS) -> date:
    """First day a result no longer counts in the current view"""
    return event_date + timedelta(days=window_days + 1)


def _tie_order_key(row: RankingRow):
    return (-row.total_points, row.player_name.casefold(), row.player_id)


def assign_competition_ranks(rows: List[RankingRow]) -> List[RankingRow]:
    """
    Sort by points and assign standard competition ranks in place

    [500, 500, 300] -> [1, 1, 3]. Equal totals are listed by name, then id.
    """
    rows.sort(key=_tie_order_key)

    previous_points = None
    current_rank = 0
    for position, row in enumerate(rows, 1):
        if row.total_points != previous_points:
            current_rank = position
            previous_points = row.total_points
        row.rank = current_rank

    return rows


def compute_rankings(
    results: Iterable[ResultRecord],
    category: Union[str, Category],
    as_of: date,
    window_days: Optional[int] = None,
) -> List[RankingRow]:
    """
    Rank players of one category

    Args:
        results: stored results joined with their events
        category: category to rank
        as_of: reference date of the computation
        window_days: rolling window (current view); None for lifetime

    Returns:
        ranking rows ordered by rank
    """
    category = parse_category(category)
    if window_days is not None and window_days < 0:
        raise ValidationFailed("window_days must be >= 0", field="window_days", value=window_days)

    totals: Dict[str, RankingRow] = {}
    for record in results:
        if record.category != category:
            continue
        if window_days is not None and not is_within_window(record.event_date, as_of, window_days):
            continue

        row = totals.get(record.player_id)
        if row is None:
            row = RankingRow(
                player_id=record.player_id,
                total_points=0,
                player_name=record.player_name,
                country=record.country,
            )
            totals[record.player_id] = row
        row.total_points += record.points
        row.events_count += 1

    return assign_competition_ranks(list(totals.values()))


def current_rankings(
    results: Iterable[ResultRecord],
    category: Union[str, Category],
    as_of: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> List[RankingRow]:
    """Rolling-window view"""
    return compute_rankings(results, category, as_of, window_days)


def lifetime_rankings(
    results: Iterable[ResultRecord],
    category: Union[str, Category],
    as_of: Optional[date] = None,
) -> List[RankingRow]:
    """All-time view, no window"""
    return compute_rankings(results, category, as_of or date.today(), None)


def national_rankings(rows: Sequence[RankingRow], country: Optional[str]) -> List[RankingRow]:
    """
    Restrict a ranking to one country and re-rank it

    The global rank is kept; `national_rank` holds the rank within the country.
    Without a country (or "all") the rows are returned unchanged.
    """
    if not country or country.lower() == "all":
        return list(rows)

    wanted = country.strip().lower()
    subset = [
        RankingRow(
            player_id=r.player_id,
            total_points=r.total_points,
            rank=r.rank,
            player_name=r.player_name,
            country=r.country,
            events_count=r.events_count,
        )
        for r in rows
        if (r.country or "").strip().lower() == wanted
    ]

    subset.sort(key=_tie_order_key)
    previous_points = None
    national_rank = 0
    for position, row in enumerate(subset, 1):
        if row.total_points != previous_points:
            national_rank = position
            previous_points = row.total_points
        row.national_rank = national_rank

    return subset


def expiring_points(
    results: Iterable[ResultRecord],
    as_of: date,
    within_days: int = DEFAULT_EXPIRING_WITHIN_DAYS,
    window_days: int = DEFAULT_WINDOW_DAYS,
    player_id: Optional[str] = None,
) -> List[ExpiringPoints]:
    """
    Points leaving the current window within the next `within_days` days

    Only results still active at `as_of` are considered. Grouped per
    player/category, soonest expiry first.
    """
    horizon = as_of + timedelta(days=within_days)
    grouped: Dict[tuple, ExpiringPoints] = {}

    for record in results:
        if player_id and record.player_id != player_id:
            continue
        if not is_within_window(record.event_date, as_of, window_days):
            continue

        expires_on = expiry_date(record.event_date, window_days)
        if expires_on > horizon:
            continue

        key = (record.player_id, record.category)
        entry = grouped.get(key)
        if entry is None:
            grouped[key] = ExpiringPoints(
                player_id=record.player_id,
                category=record.category,
                expiring_points=record.points,
                next_expiry_date=expires_on,
                player_name=record.player_name,
                country=record.country,
                days_until_expiry=(expires_on - as_of).days,
            )
        else:
            entry.expiring_points += record.points
            if expires_on < entry.next_expiry_date:
                entry.next_expiry_date = expires_on
                entry.days_until_expiry = (expires_on - as_of).days

    return sorted(grouped.values(), key=lambda e: (e.next_expiry_date, e.player_id, e.category.value))


def player_ranking_summary(
    results: Sequence[ResultRecord],
    player_id: str,
    category: Union[str, Category],
    as_of: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
    within_days: int = DEFAULT_EXPIRING_WITHIN_DAYS,
) -> PlayerRankingSummary:
    """Active and lifetime standing of one player in one category"""
    category = parse_category(category)
    summary = PlayerRankingSummary(player_id=player_id, category=category)

    active = current_rankings(results, category, as_of, window_days)
    lifetime = compute_rankings(results, category, as_of, None)

    for row in active:
        if row.player_id == player_id:
            summary.active_points = row.total_points
            summary.active_rank = row.rank
            break
    for row in lifetime:
        if row.player_id == player_id:
            summary.lifetime_points = row.total_points
            summary.lifetime_rank = row.rank
            break

    own = [r for r in results if r.player_id == player_id and r.category == category]
    for entry in expiring_points(own, as_of, within_days, window_days):
        summary.expiring_points = entry.expiring_points
        summary.next_expiry_date = entry.next_expiry_date

    horizon = as_of + timedelta(days=within_days)
    summary.expiring_results = sorted(
        (
            r for r in own
            if is_within_window(r.event_date, as_of, window_days)
            and expiry_date(r.event_date, window_days) <= horizon
        ),
        key=lambda r: r.event_date,
    )

    logger.debug(
        f"Summary {player_id}/{category.value}: active={summary.active_points} "
        f"lifetime={summary.lifetime_points} expiring={summary.expiring_points}"
    )
    return summary


def ranking_changes(
    results: Sequence[ResultRecord],
    category: Union[str, Category],
    previous_as_of: date,
    as_of: date,
    window_days: Optional[int] = DEFAULT_WINDOW_DAYS,
) -> List[RankingChange]:
    """
    Rank and points movement between two reference dates

    Both rankings are recomputed; players ranked on only one of the dates
    get a None rank on the other. Ordered by the new rank, players who
    dropped out last (by their old rank).
    """
    category = parse_category(category)
    if previous_as_of > as_of:
        raise ValidationFailed(
            "previous_as_of must not be after as_of",
            field="previous_as_of",
            value=previous_as_of.isoformat(),
        )

    # Results dated after a reference date do not count on it, lifetime view included
    before = compute_rankings(
        [r for r in results if r.event_date <= previous_as_of], category, previous_as_of, window_days
    )
    after = compute_rankings([r for r in results if r.event_date <= as_of], category, as_of, window_days)

    changes: Dict[str, RankingChange] = {}
    for row in after:
        changes[row.player_id] = RankingChange(
            player_id=row.player_id,
            player_name=row.player_name,
            country=row.country,
            new_rank=row.rank,
            new_points=row.total_points,
        )
    for row in before:
        change = changes.get(row.player_id)
        if change is None:
            change = changes[row.player_id] = RankingChange(
                player_id=row.player_id,
                player_name=row.player_name,
                country=row.country,
            )
        change.old_rank = row.rank
        change.old_points = row.total_points

    movers = sum(1 for c in changes.values() if c.rank_change)
    logger.debug(f"Ranking changes {category.value} {previous_as_of} -> {as_of}: {movers} moved")

    return sorted(
        changes.values(),
        key=lambda c: (
            c.new_rank is None,
            c.new_rank if c.new_rank is not None else c.old_rank,
            c.player_id,
        ),
    )


# =====================================================
# Output
# =====================================================

def print_ranking_summary(rankings: Sequence[RankingRow], title: str = "", top_n: int = 20):
    """Print a ranking table to stdout"""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")
    print(f"{'Rank':>4} {'Name':<24} {'Country':<14} {'Points':>8} {'Events':>6}")
    print(f"{'-'*60}")

    for r in rankings[:top_n]:
        name = r.player_name or r.player_id
        if len(name) > 22:
            name = name[:22] + ".."
        print(f"{r.rank:>4} {name:<24} {(r.country or '-'):<14} {r.total_points:>8} {r.events_count:>6}")
