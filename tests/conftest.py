"""
Pytest configuration and fixtures for the rankings tests
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import Settings
from database.memory_store import MemoryStore
from ranking.models import Category, FinishingPosition, Gender, ResultRecord, Tier


ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"


def make_record(player_id, points, event_date, category=Category.MENS_SINGLES, name=None, country="USA"):
    """ResultRecord shortcut for aggregator tests"""
    return ResultRecord(
        player_id=player_id,
        category=category,
        points=points,
        event_date=event_date,
        player_name=name or player_id.upper(),
        country=country,
    )


@pytest.fixture(scope="session")
def org_id():
    return ORG_ID


@pytest.fixture
def settings(tmp_path):
    """Settings independent of the local .env"""
    return Settings(
        _env_file=None,
        default_organization_id=ORG_ID,
        rolling_window_days=365,
        expiring_within_days=30,
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def store():
    """Empty in-memory store"""
    return MemoryStore()


@pytest.fixture
def seeded_store():
    """
    Store with four players and a handful of results

    alice / bob: male, USA; carol: female, Canada; dave: male, no results
    """
    store = MemoryStore()
    store.create_player(ORG_ID, {
        "id": "alice", "name": "Alice Adams", "country": "USA", "gender": Gender.MALE,
        "player_code": "NPL000000001", "email": "alice@example.com",
    })
    store.create_player(ORG_ID, {
        "id": "bob", "name": "Bob Brown", "country": "USA", "gender": Gender.MALE,
        "player_code": "NPL000000002",
    })
    store.create_player(ORG_ID, {
        "id": "carol", "name": "Carol Chen", "country": "Canada", "gender": Gender.FEMALE,
        "player_code": "NPL000000003", "external_rating_id": "DUPR-3",
    })
    store.create_player(ORG_ID, {
        "id": "dave", "name": "Dave Davis", "country": "Australia", "gender": Gender.MALE,
        "player_code": "NPL000000004",
    })

    spring, _ = store.get_or_create_event(
        ORG_ID, "Spring Open", date(2025, 3, 1), Category.MENS_SINGLES, Tier.TIER2
    )
    store.add_result(spring.id, "alice", FinishingPosition.WINNER, 500)
    store.add_result(spring.id, "bob", FinishingPosition.SECOND, 300)

    old, _ = store.get_or_create_event(
        ORG_ID, "Old Masters", date(2023, 5, 1), Category.MENS_SINGLES, Tier.TIER1
    )
    store.add_result(old.id, "bob", FinishingPosition.WINNER, 1000)

    womens, _ = store.get_or_create_event(
        ORG_ID, "Spring Open", date(2025, 3, 1), Category.WOMENS_SINGLES, Tier.TIER2
    )
    store.add_result(womens.id, "carol", FinishingPosition.WINNER, 500)
    return store
