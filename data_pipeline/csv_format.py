"""
CSV contracts
- import: results / historic points templates and parsing
- export: rank,name,country,points
"""
import csv
import io
from typing import Dict, Iterable, List

from ranking.exceptions import ValidationFailed
from ranking.models import RankingRow


IMPORT_COLUMNS = [
    "player_name",
    "player_code",
    "country",
    "gender",
    "category",
    "finishing_position",
    "points",
    "event_date",
    "tournament_name",
    "tier",
]

OPTIONAL_IMPORT_COLUMNS = ["email", "date_of_birth", "dupr_id"]

EXPORT_COLUMNS = ["rank", "name", "country", "points"]

# Header spellings accepted on import
HEADER_ALIASES = {
    "name": "player_name",
    "player": "player_name",
    "code": "player_code",
    "position": "finishing_position",
    "date": "event_date",
    "tournament": "tournament_name",
    "external_rating_id": "dupr_id",
}

RESULTS_TEMPLATE_ROWS = [
    ["John Doe", "NPL000000001", "USA", "male", "mens_singles", "winner", "", "2024-10-01", "Spring Championship", "tier2"],
    ["Jane Smith", "NPL000000002", "Canada", "female", "womens_singles", "second", "", "2024-10-01", "Spring Championship", "tier2"],
    ["Mike Johnson", "NPL000000003", "USA", "male", "mens_singles", "third", "", "2024-10-01", "Spring Championship", "tier2"],
]

HISTORIC_TEMPLATE_ROWS = [
    ["John Doe", "NPL000000001", "Australia", "male", "mens_singles", "points_awarded", "150", "2023-06-15", "Historic Championship 2023", "historic"],
    ["Jane Smith", "NPL000000002", "USA", "female", "womens_singles", "points_awarded", "200", "2023-07-20", "Summer Classic 2023", "historic"],
    ["Mike Johnson", "", "New Zealand", "male", "mens_doubles", "points_awarded", "100", "2023-08-10", "Winter Open 2023", "historic"],
]


def _normalize_header(name: str) -> str:
    key = (name or "").strip().lower().replace(" ", "_")
    return HEADER_ALIASES.get(key, key)


def parse_import_csv(csv_text: str) -> List[Dict[str, str]]:
    """
    Parse an import file into raw row dicts keyed by canonical column name

    Blank lines are skipped. Raises ValidationFailed when the file has no
    data rows or no player column.
    """
    text = (csv_text or "").lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text))

    header = None
    rows = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        if header is None:
            header = [_normalize_header(v) for v in values]
            continue
        rows.append({
            column: (values[i].strip() if i < len(values) else "")
            for i, column in enumerate(header)
            if column
        })

    if header is None or not rows:
        raise ValidationFailed("File is empty or has no data rows", field="file")
    if "player_name" not in header and "player_code" not in header:
        raise ValidationFailed(
            "Missing player_name column. Expected: " + ",".join(IMPORT_COLUMNS),
            field="header",
            value=header,
        )
    return rows


def _write_csv(header: List[str], rows: Iterable[List]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


def results_template() -> str:
    """Import template for tournament results (points from the tier table)"""
    return _write_csv(IMPORT_COLUMNS, RESULTS_TEMPLATE_ROWS)


def historic_template() -> str:
    """Import template for historic points"""
    return _write_csv(IMPORT_COLUMNS, HISTORIC_TEMPLATE_ROWS)


def export_rankings_csv(rows: Iterable[RankingRow]) -> str:
    """rank,name,country,points"""
    return _write_csv(
        EXPORT_COLUMNS,
        ([r.rank, r.player_name, r.country, r.total_points] for r in rows),
    )
