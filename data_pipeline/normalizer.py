"""
CSV value normalization
- gender, category, date, tier, finishing position
- one raw CSV row -> ImportRow (with per-row validation errors)

Empty values normalize to None; unrecognized non-empty values raise
ValidationFailed.
"""
import re
from datetime import date
from typing import Any, Dict, Optional

from ranking.exceptions import ValidationFailed
from ranking.models import Category, FinishingPosition, Gender, Tier
from ranking.points import compute_points

from .schemas import ImportRow


# =============================================================================
# Normalization maps
# =============================================================================

# Legacy single mixed category; resolved through the row's gender
MIXED_DOUBLES = "mixed_doubles"

CATEGORY_NORMALIZE_MAP = {
    "men": "mens_singles",
    "mens": "mens_singles",
    "men's": "mens_singles",
    "men's_singles": "mens_singles",
    "ms": "mens_singles",
    "women": "womens_singles",
    "womens": "womens_singles",
    "women's": "womens_singles",
    "women's_singles": "womens_singles",
    "ws": "womens_singles",
    "men's_doubles": "mens_doubles",
    "md": "mens_doubles",
    "women's_doubles": "womens_doubles",
    "wd": "womens_doubles",
    "mixed": MIXED_DOUBLES,
    "xd": MIXED_DOUBLES,
    "mx": MIXED_DOUBLES,
    "men's_mixed_doubles": "mens_mixed_doubles",
    "women's_mixed_doubles": "womens_mixed_doubles",
}

POSITION_NORMALIZE_MAP = {
    # legacy tags
    "event_win": "points_awarded",
    "participation": "points_awarded",
    # variants
    "1st": "winner",
    "first": "winner",
    "champion": "winner",
    "2nd": "second",
    "runner_up": "second",
    "3rd": "third",
    "4th": "fourth",
    "qf": "quarterfinalist",
    "quarterfinal": "quarterfinalist",
    "quarter_finalist": "quarterfinalist",
    "r16": "round_of_16",
    "last_16": "round_of_16",
}

_DMY = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def _clean(value: Optional[Any]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _slug(value: str) -> str:
    return re.sub(r"[\s-]+", "_", value.lower())


# =============================================================================
# Field normalizers
# =============================================================================

def normalize_gender(value: Optional[Any]) -> Optional[Gender]:
    """m*/f* -> male/female"""
    text = _clean(value).lower()
    if not text:
        return None
    if text.startswith("m"):
        return Gender.MALE
    if text.startswith("f") or text.startswith("w"):
        return Gender.FEMALE
    raise ValidationFailed(f"Invalid gender {value!r}. Use 'male' or 'female'.", field="gender", value=value)


def normalize_category(value: Optional[Any], gender: Optional[Gender] = None) -> Optional[Category]:
    """
    Category aliases -> Category

    Plain mixed doubles needs the player's gender to pick the men's or
    women's mixed category.
    """
    text = _slug(_clean(value))
    if not text:
        return None
    text = CATEGORY_NORMALIZE_MAP.get(text, text)

    if text == MIXED_DOUBLES:
        if gender is None:
            raise ValidationFailed(
                "Category 'mixed_doubles' needs the player's gender", field="category", value=value
            )
        return Category.MENS_MIXED_DOUBLES if gender == Gender.MALE else Category.WOMENS_MIXED_DOUBLES

    try:
        return Category(text)
    except ValueError:
        allowed = ", ".join([c.value for c in Category] + [MIXED_DOUBLES])
        raise ValidationFailed(
            f"Invalid category {value!r}. Allowed: {allowed}", field="category", value=value
        ) from None


def is_plain_mixed(value: Optional[Any]) -> bool:
    """True for the single mixed doubles category (mixed_doubles, xd, ...)"""
    text = _slug(_clean(value))
    return CATEGORY_NORMALIZE_MAP.get(text, text) == MIXED_DOUBLES


def normalize_date(value: Optional[Any], field: str = "event_date") -> Optional[date]:
    """
    YYYY-MM-DD, or D/M/YYYY (also with '.' or '-')

    A D/M value whose day is <= 12 and month > 12 is read as M/D.
    """
    text = _clean(value)
    if not text:
        return None

    try:
        match = _ISO.match(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

        match = _DMY.match(text)
        if match:
            day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
            if day <= 12 and month > 12:
                day, month = month, day
            return date(year, month, day)
    except ValueError:
        pass

    raise ValidationFailed(f"Invalid {field} {value!r}. Use YYYY-MM-DD.", field=field, value=value)


def normalize_tier(value: Optional[Any]) -> Optional[Tier]:
    """'tier2', 'Tier 2', '2' -> Tier.TIER2"""
    text = _slug(_clean(value)).replace("_", "")
    if not text:
        return None
    if text.isdigit():
        text = f"tier{text}"
    try:
        return Tier(text)
    except ValueError:
        allowed = ", ".join(t.value for t in Tier)
        raise ValidationFailed(f"Invalid tier {value!r}. Allowed: {allowed}", field="tier", value=value) from None


def normalize_position(value: Optional[Any]) -> Optional[FinishingPosition]:
    """Position aliases (incl. legacy event_win/participation) -> FinishingPosition"""
    text = _slug(_clean(value))
    if not text:
        return None
    text = POSITION_NORMALIZE_MAP.get(text, text)
    try:
        return FinishingPosition(text)
    except ValueError:
        allowed = ", ".join(p.value for p in FinishingPosition)
        raise ValidationFailed(
            f"Invalid finishing_position {value!r}. Allowed: {allowed}",
            field="finishing_position",
            value=value,
        ) from None


# =============================================================================
# Row normalization
# =============================================================================

def default_tournament_name(file_name: str) -> str:
    return f"Bulk Import - {file_name}"


def normalize_row(raw: Dict[str, Any], index: int, file_name: str = "upload.csv") -> ImportRow:
    """
    Normalize one parsed CSV row

    Every field is normalized independently so one bad value does not hide
    the others; problems are collected in `errors`.
    """
    row = ImportRow(
        row_key=f"row_{index}",
        csv_row=index + 2,
        player_name=_clean(raw.get("player_name")),
        player_code=_clean(raw.get("player_code")) or None,
        country=_clean(raw.get("country")),
        points=_clean(raw.get("points")) or None,
        tournament_name=_clean(raw.get("tournament_name")) or default_tournament_name(file_name),
        email=_clean(raw.get("email")) or None,
        external_rating_id=_clean(raw.get("dupr_id")) or None,
    )
    errors = []

    def attempt(fn, *args):
        try:
            return fn(*args)
        except ValidationFailed as e:
            errors.append(str(e))
            return None

    row.gender = attempt(normalize_gender, raw.get("gender"))
    if row.gender is None and is_plain_mixed(raw.get("category")):
        # Resolved from the matched player or the operator's completions
        row.mixed_category = True
    else:
        row.category = attempt(normalize_category, raw.get("category"), row.gender)
    row.event_date = attempt(normalize_date, raw.get("event_date"))
    row.date_of_birth = attempt(normalize_date, raw.get("date_of_birth"), "date_of_birth")
    row.tier = attempt(normalize_tier, raw.get("tier")) or Tier.TIER4
    row.finishing_position = attempt(normalize_position, raw.get("finishing_position")) or FinishingPosition.POINTS_AWARDED

    if row.category is None and not _clean(raw.get("category")):
        errors.append("Missing category")
    if row.event_date is None and not _clean(raw.get("event_date")):
        errors.append("Missing event_date")
    if row.category is not None and row.gender is not None and row.category.gender != row.gender:
        errors.append(
            f"Category {row.category.value} does not accept {row.gender.value} players"
        )
    if not row.player_name and not row.player_code:
        errors.append("Player name or player_code is required")
    if row.tier.is_historic:
        attempt(compute_points, row.tier, row.finishing_position, row.points)

    row.errors = errors
    return row
