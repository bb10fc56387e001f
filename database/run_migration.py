"""
Supabase migration helper

The Python client cannot run DDL, so this checks which tables exist and
prints the SQL to paste into the Supabase SQL editor.
"""
import sys
from pathlib import Path
from typing import Dict

from loguru import logger

from .supabase_client import get_supabase_client


MIGRATIONS_DIR = Path(__file__).parent / "migrations"

REQUIRED_TABLES = ("players", "events", "event_results", "player_accounts", "import_history")


def check_tables(client=None) -> Dict[str, bool]:
    """table name -> exists"""
    client = client or get_supabase_client()
    status = {}
    for table in REQUIRED_TABLES:
        try:
            client.table(table).select("id").limit(1).execute()
            status[table] = True
        except Exception as e:
            if "does not exist" in str(e) or "relation" in str(e).lower():
                status[table] = False
            else:
                raise
    return status


def run_migration(client=None) -> bool:
    """Returns True when every table already exists"""
    status = check_tables(client)
    missing = [table for table, exists in status.items() if not exists]
    if not missing:
        logger.info("All ranking tables exist")
        return True

    logger.info(f"Missing tables: {', '.join(missing)}")
    logger.info("=" * 60)
    logger.info("Run the SQL below in the Supabase Dashboard (SQL Editor):")
    logger.info("=" * 60)
    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        print(f"\n-- {migration_file.name}\n")
        print(migration_file.read_text(encoding="utf-8"))
    return False


if __name__ == "__main__":
    logger.remove()
    logger.add(sys.stdout, format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")
    sys.exit(0 if run_migration() else 1)
