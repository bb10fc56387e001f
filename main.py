"""
Sports rankings CLI

Runs against Supabase by default, or against a JSON snapshot with
--snapshot (changes are written back to the snapshot).
"""
import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from loguru import logger

from app.config import get_settings, setup_logging
from app.services import RankingService
from database.memory_store import MemoryStore
from database.store import RankingStore
from ranking.calculator import print_ranking_summary
from ranking.exceptions import RankingError
from ranking.models import CATEGORY_LABELS, Category


# Logging setup
setup_logging("rankings")


def open_store(snapshot: Optional[str]) -> RankingStore:
    """MemoryStore over a snapshot file, else Supabase"""
    if snapshot:
        return MemoryStore.from_json(snapshot)

    from database.supabase_client import SupabaseStore
    return SupabaseStore()


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Sports rankings: rankings, CSV import, player merge")
    parser.add_argument(
        "--mode",
        choices=["rankings", "combined", "changes", "export", "expiring", "points", "import", "merge-preview", "merge"],
        default="rankings",
        help="Operation"
    )
    parser.add_argument("--org", help="Organization id (default: DEFAULT_ORGANIZATION_ID)")
    parser.add_argument("--category", choices=[c.value for c in Category], help="Ranking category")
    parser.add_argument("--gender", choices=["male", "female"], help="Combined doubles gender")
    parser.add_argument("--view", choices=["current", "lifetime"], default="current")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--since", type=date.fromisoformat, help="Earlier reference date (changes)")
    parser.add_argument("--country", help="National ranking for one country")
    parser.add_argument("--top", type=int, default=20, help="Rows to print")
    parser.add_argument("--file", help="Import CSV file")
    parser.add_argument("--resolutions", help="JSON file with row resolutions ({\"row_0\": \"new\", ...})")
    parser.add_argument("--commit", action="store_true", help="Commit the import (default: dry run)")
    parser.add_argument("--operator", help="Operator id recorded with the import")
    parser.add_argument("--primary", help="Primary player id (merge)")
    parser.add_argument("--duplicate", help="Duplicate player id (merge)")
    parser.add_argument("--out", help="Output file (export)")
    parser.add_argument("--snapshot", help="JSON snapshot used instead of Supabase")

    args = parser.parse_args()

    settings = get_settings()
    organization_id = args.org or settings.default_organization_id
    store = open_store(args.snapshot)
    service = RankingService(store, settings)

    try:
        if args.mode == "rankings":
            categories = [Category(args.category)] if args.category else list(Category)
            for category in categories:
                if args.view == "lifetime":
                    rows = service.get_lifetime_rankings(organization_id, category, args.country)
                else:
                    rows = service.get_current_rankings(organization_id, category, args.as_of, args.country)
                if rows:
                    title = f"{CATEGORY_LABELS[category]} ({args.view})"
                    print_ranking_summary(rows, title, args.top)

        elif args.mode == "combined":
            if not args.gender:
                parser.error("--gender is required for combined")
            rows = service.get_combined_doubles_rankings(organization_id, args.gender, args.as_of, args.view)
            print_ranking_summary(rows, f"Combined doubles ({args.gender})", args.top)

        elif args.mode == "changes":
            if not args.category or not args.since:
                parser.error("--category and --since are required for changes")
            for change in service.get_ranking_changes(
                organization_id, args.category, args.since, args.as_of, args.view
            )[:args.top]:
                if change.new_rank is None:
                    moved = "out"
                elif change.old_rank is None:
                    moved = "new"
                else:
                    moved = f"{change.rank_change:+d}"
                print(
                    f"{change.new_rank or '-':>4} {change.player_name or change.player_id:<24} "
                    f"{moved:>5} {change.new_points:>8} ({change.points_change:+d})"
                )

        elif args.mode == "export":
            if not args.category:
                parser.error("--category is required for export")
            content = service.export_rankings_csv(
                organization_id, args.category, args.view, args.as_of, args.country
            )
            if args.out:
                Path(args.out).write_text(content, encoding="utf-8")
                logger.info(f"Exported {args.category} rankings to {args.out}")
            else:
                print(content, end="")

        elif args.mode == "expiring":
            for entry in service.get_expiring_points(organization_id, args.as_of):
                print(
                    f"{entry.next_expiry_date}  {entry.player_name:<24} {entry.category.value:<22} "
                    f"{entry.expiring_points:>6} pts"
                )

        elif args.mode == "points":
            _print_json(service.get_points_table())

        elif args.mode == "import":
            if not args.file:
                parser.error("--file is required for import")
            csv_text = Path(args.file).read_text(encoding="utf-8")
            file_name = Path(args.file).name

            if args.commit:
                resolutions = None
                if args.resolutions:
                    resolutions = json.loads(Path(args.resolutions).read_text(encoding="utf-8"))
                result = service.commit_bulk_import(
                    organization_id, csv_text, file_name, resolutions, args.operator
                )
            else:
                result = service.preview_bulk_import(organization_id, csv_text, file_name)
            _print_json(result)

        elif args.mode in ("merge-preview", "merge"):
            if not args.primary or not args.duplicate:
                parser.error("--primary and --duplicate are required")
            if args.mode == "merge":
                _print_json(service.merge_players(organization_id, args.primary, args.duplicate))
            else:
                _print_json(service.preview_merge(organization_id, args.primary, args.duplicate).to_dict())

    except RankingError as e:
        logger.error(str(e))
        sys.exit(1)

    if args.snapshot and args.mode in ("import", "merge") and (args.commit or args.mode == "merge"):
        store.save_json(args.snapshot)


if __name__ == "__main__":
    main()
