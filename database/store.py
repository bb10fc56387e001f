"""
Ranking store contract

Every call is scoped by organization id. Implementations:
- SupabaseStore (database/supabase_client.py)
- MemoryStore (database/memory_store.py), tests and local snapshots
"""
import random
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from ranking.models import Category, FinishingPosition, ResultRecord, Tier

from .models import Event, EventResult, ImportBatch, MergePlan, Player


# Identity fields usable for an exact-match player lookup
LOOKUP_FIELDS = ("player_code", "external_rating_id", "email")

DEFAULT_CODE_PREFIX = "NPL"


class RankingStore(ABC):
    """Persistence for players, events, results and import history"""

    # ==================== Players ====================

    @abstractmethod
    def get_player(self, organization_id: str, player_id: str) -> Optional[Player]:
        ...

    @abstractmethod
    def list_players(self, organization_id: str) -> List[Player]:
        ...

    @abstractmethod
    def find_players(self, organization_id: str, field: str, value: str) -> List[Player]:
        """Exact match on one of LOOKUP_FIELDS"""

    @abstractmethod
    def find_players_by_name(self, organization_id: str, name: str) -> List[Player]:
        """Case-insensitive match on display name or alternate names"""

    @abstractmethod
    def create_player(self, organization_id: str, data: Dict[str, Any]) -> Player:
        ...

    @abstractmethod
    def update_player(self, organization_id: str, player_id: str, fields: Dict[str, Any]) -> Player:
        ...

    @abstractmethod
    def player_code_exists(self, player_code: str) -> bool:
        """Player codes are unique across all organizations"""

    def generate_player_code(self, prefix: str = DEFAULT_CODE_PREFIX) -> str:
        """Unused `<prefix><9 digits>` code"""
        while True:
            code = f"{prefix}{random.randint(0, 999_999_999):09d}"
            if not self.player_code_exists(code):
                return code

    @abstractmethod
    def has_linked_account(self, organization_id: str, player_id: str) -> bool:
        ...

    # ==================== Events / results ====================

    @abstractmethod
    def find_event(
        self,
        organization_id: str,
        tournament_name: str,
        event_date: date,
        category: Category,
    ) -> Optional[Event]:
        """Event by its natural key, or None"""

    @abstractmethod
    def get_or_create_event(
        self,
        organization_id: str,
        tournament_name: str,
        event_date: date,
        category: Category,
        tier: Tier,
        is_public: bool = True,
        import_batch_id: Optional[str] = None,
    ) -> Tuple[Event, bool]:
        """
        Returns (event, created)

        Keyed by (organization, tournament name, date, category); two
        concurrent callers always end up with the same event.
        """

    @abstractmethod
    def result_exists(self, event_id: str, player_id: str) -> bool:
        ...

    @abstractmethod
    def add_result(
        self,
        event_id: str,
        player_id: str,
        finishing_position: FinishingPosition,
        points_awarded: int,
    ) -> EventResult:
        ...

    @abstractmethod
    def list_results(
        self,
        organization_id: str,
        category: Optional[Category] = None,
        player_id: Optional[str] = None,
        public_only: bool = True,
    ) -> List[ResultRecord]:
        """Results joined with their event and player"""

    # ==================== Import history ====================

    @abstractmethod
    def record_import_batch(self, batch: ImportBatch) -> ImportBatch:
        ...

    # ==================== Merge ====================

    @abstractmethod
    def apply_merge(self, plan: MergePlan) -> Dict[str, int]:
        """
        Apply a merge plan atomically

        Moves results and account links from the duplicate to the primary,
        applies field updates and alternate names, deletes the duplicate.
        Either every step is applied or none is.

        Returns:
            {"events_transferred": n, "points_transferred": p}
        """
