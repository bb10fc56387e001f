"""
Combined doubles ranking

Sums a player's gendered doubles total and mixed doubles total, then ranks
the sums with the same competition ranking rule as every other view.
Derived on read only.
"""
from typing import Dict, List, Sequence, Tuple, Union

from .calculator import assign_competition_ranks
from .exceptions import ValidationFailed
from .models import Category, CombinedRankingRow, Gender, RankingRow


COMBINED_DOUBLES_CATEGORIES = {
    Gender.MALE: (Category.MENS_DOUBLES, Category.MENS_MIXED_DOUBLES),
    Gender.FEMALE: (Category.WOMENS_DOUBLES, Category.WOMENS_MIXED_DOUBLES),
}


def parse_gender(value: Union[str, Gender]) -> Gender:
    if isinstance(value, Gender):
        return value
    try:
        return Gender(value)
    except ValueError:
        raise ValidationFailed(
            f"Unknown gender {value!r}. Use 'male' or 'female'.",
            field="gender",
            value=value,
        ) from None


def combined_categories(gender: Union[str, Gender]) -> Tuple[Category, Category]:
    """(gendered doubles, mixed doubles) categories for a gender"""
    return COMBINED_DOUBLES_CATEGORIES[parse_gender(gender)]


def compute_combined(
    gendered_doubles_ranking: Sequence[RankingRow],
    mixed_doubles_ranking: Sequence[RankingRow],
) -> List[CombinedRankingRow]:
    """
    Combine two category rankings into one

    Players absent from a source count 0 there; players whose combined
    total is 0 are left out.
    """
    combined: Dict[str, CombinedRankingRow] = {}

    def _entry(row: RankingRow) -> CombinedRankingRow:
        entry = combined.get(row.player_id)
        if entry is None:
            entry = CombinedRankingRow(
                player_id=row.player_id,
                total_points=0,
                player_name=row.player_name,
                country=row.country,
            )
            combined[row.player_id] = entry
        return entry

    for row in gendered_doubles_ranking:
        entry = _entry(row)
        entry.gendered_doubles_points = row.total_points
        entry.events_count += row.events_count

    for row in mixed_doubles_ranking:
        entry = _entry(row)
        entry.mixed_doubles_points = row.total_points
        entry.events_count += row.events_count

    rows = []
    for entry in combined.values():
        entry.total_points = entry.gendered_doubles_points + entry.mixed_doubles_points
        if entry.total_points > 0:
            rows.append(entry)

    return assign_competition_ranks(rows)
