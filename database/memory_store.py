"""
In-process ranking store

Used by the test suite and by the CLI for offline runs over a JSON snapshot
(`--snapshot data.json`). A single lock serializes writes; merges run on a
snapshot of the state and roll back on any failure.
"""
import copy
import json
import threading
import uuid
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ranking.exceptions import BothLinkedToAccounts, PlayerNotFound
from ranking.models import Category, FinishingPosition, ResultRecord, Tier

from .models import Event, EventResult, ImportBatch, MergePlan, Player
from .store import LOOKUP_FIELDS, RankingStore


def _new_id() -> str:
    return str(uuid.uuid4())


class MemoryStore(RankingStore):
    """Dict-backed store with the same semantics as the Supabase one"""

    def __init__(self):
        self._lock = threading.RLock()
        self.players: Dict[str, Player] = {}
        self.events: Dict[str, Event] = {}
        self.results: Dict[str, EventResult] = {}
        self.accounts: Dict[str, str] = {}  # player_id -> user_id
        self.import_batches: List[ImportBatch] = []

    # ==================== Snapshot I/O ====================

    @classmethod
    def from_json(cls, path: str) -> "MemoryStore":
        """Load players/events/results/accounts from a JSON file"""
        store = cls()
        file_path = Path(path)
        if not file_path.exists():
            logger.warning(f"Snapshot {path} not found, starting empty")
            return store

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        for item in data.get("players", []):
            player = Player.model_validate(item)
            store.players[player.id] = player
        for item in data.get("events", []):
            event = Event.model_validate(item)
            store.events[event.id] = event
        for item in data.get("results", []):
            result = EventResult.model_validate(item)
            store.results[result.id] = result
        for item in data.get("accounts", []):
            store.accounts[item["player_id"]] = item["user_id"]
        for item in data.get("import_batches", []):
            store.import_batches.append(ImportBatch.model_validate(item))

        logger.info(
            f"Snapshot loaded: {len(store.players)} players, {len(store.events)} events, "
            f"{len(store.results)} results"
        )
        return store

    def save_json(self, path: str) -> None:
        """Write the full state back to a JSON file"""
        with self._lock:
            data = {
                "players": [p.model_dump(mode="json") for p in self.players.values()],
                "events": [e.model_dump(mode="json") for e in self.events.values()],
                "results": [r.model_dump(mode="json") for r in self.results.values()],
                "accounts": [
                    {"player_id": pid, "user_id": uid} for pid, uid in self.accounts.items()
                ],
                "import_batches": [b.model_dump(mode="json") for b in self.import_batches],
            }

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info(f"Snapshot saved: {path}")

    @contextmanager
    def transaction(self):
        """All-or-nothing block over the whole state"""
        with self._lock:
            saved = copy.deepcopy((self.players, self.events, self.results, self.accounts))
            try:
                yield
            except Exception:
                self.players, self.events, self.results, self.accounts = saved
                raise

    # ==================== Players ====================

    def get_player(self, organization_id: str, player_id: str) -> Optional[Player]:
        player = self.players.get(player_id)
        if player is None or player.organization_id != organization_id:
            return None
        return player

    def list_players(self, organization_id: str) -> List[Player]:
        return [p for p in self.players.values() if p.organization_id == organization_id]

    def find_players(self, organization_id: str, field: str, value: str) -> List[Player]:
        if field not in LOOKUP_FIELDS:
            raise ValueError(f"Unsupported lookup field: {field}")
        if not value:
            return []
        return [p for p in self.list_players(organization_id) if getattr(p, field) == value]

    def find_players_by_name(self, organization_id: str, name: str) -> List[Player]:
        wanted = (name or "").strip().casefold()
        if not wanted:
            return []
        return [p for p in self.list_players(organization_id) if wanted in p.known_names()]

    def create_player(self, organization_id: str, data: Dict[str, Any]) -> Player:
        with self._lock:
            player = Player.model_validate({
                **data,
                "id": data.get("id") or _new_id(),
                "organization_id": organization_id,
            })
            if self.player_code_exists(player.player_code):
                raise ValueError(f"player_code {player.player_code} already exists")
            self.players[player.id] = player
            return player

    def update_player(self, organization_id: str, player_id: str, fields: Dict[str, Any]) -> Player:
        with self._lock:
            player = self.get_player(organization_id, player_id)
            if player is None:
                raise PlayerNotFound(player_id)
            fields = {k: v for k, v in fields.items() if k not in ("id", "organization_id", "player_code")}
            updated = Player.model_validate({**player.model_dump(), **fields})
            self.players[player_id] = updated
            return updated

    def player_code_exists(self, player_code: str) -> bool:
        return any(p.player_code == player_code for p in self.players.values())

    def has_linked_account(self, organization_id: str, player_id: str) -> bool:
        return self.get_player(organization_id, player_id) is not None and player_id in self.accounts

    def link_account(self, player_id: str, user_id: str) -> None:
        """Attach a user login to a player (self-service claim)"""
        with self._lock:
            self.accounts[player_id] = user_id

    # ==================== Events / results ====================

    def find_event(
        self,
        organization_id: str,
        tournament_name: str,
        event_date: date,
        category: Category,
    ) -> Optional[Event]:
        key = (organization_id, tournament_name, event_date, Category(category))
        with self._lock:
            for event in self.events.values():
                if event.key == key:
                    return event
        return None

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
        with self._lock:
            existing = self.find_event(organization_id, tournament_name, event_date, category)
            if existing:
                return existing, False

            event = Event(
                id=_new_id(),
                organization_id=organization_id,
                tournament_name=tournament_name,
                event_date=event_date,
                tier=tier,
                category=category,
                is_public=is_public,
                import_batch_id=import_batch_id,
            )
            self.events[event.id] = event
            return event, True

    def result_exists(self, event_id: str, player_id: str) -> bool:
        return any(
            r.event_id == event_id and r.player_id == player_id for r in self.results.values()
        )

    def add_result(
        self,
        event_id: str,
        player_id: str,
        finishing_position: FinishingPosition,
        points_awarded: int,
    ) -> EventResult:
        with self._lock:
            if event_id not in self.events:
                raise ValueError(f"Event {event_id} does not exist")
            if player_id not in self.players:
                raise PlayerNotFound(player_id)
            result = EventResult(
                id=_new_id(),
                event_id=event_id,
                player_id=player_id,
                finishing_position=finishing_position,
                points_awarded=points_awarded,
            )
            self.results[result.id] = result
            return result

    def list_results(
        self,
        organization_id: str,
        category: Optional[Category] = None,
        player_id: Optional[str] = None,
        public_only: bool = True,
    ) -> List[ResultRecord]:
        records = []
        for result in self.results.values():
            event = self.events.get(result.event_id)
            if event is None or event.organization_id != organization_id:
                continue
            if public_only and not event.is_public:
                continue
            if category is not None and event.category != category:
                continue
            if player_id is not None and result.player_id != player_id:
                continue

            player = self.players.get(result.player_id)
            records.append(ResultRecord(
                player_id=result.player_id,
                category=event.category,
                points=result.points_awarded,
                event_date=event.event_date,
                player_name=player.name if player else "",
                country=player.country if player else "",
                event_id=event.id,
                tournament_name=event.tournament_name,
                finishing_position=result.finishing_position,
                tier=event.tier,
            ))
        return records

    # ==================== Import history ====================

    def record_import_batch(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            self.import_batches.append(batch)
            return batch

    # ==================== Merge ====================

    def apply_merge(self, plan: MergePlan) -> Dict[str, int]:
        org = plan.organization_id
        with self.transaction():
            primary = self.get_player(org, plan.primary_id)
            duplicate = self.get_player(org, plan.duplicate_id)
            if primary is None:
                raise PlayerNotFound(plan.primary_id)
            if duplicate is None:
                raise PlayerNotFound(plan.duplicate_id)
            if plan.primary_id in self.accounts and plan.duplicate_id in self.accounts:
                raise BothLinkedToAccounts(plan.primary_id, plan.duplicate_id)

            events_transferred = 0
            points_transferred = 0
            for result in self.results.values():
                if result.player_id == plan.duplicate_id:
                    result.player_id = plan.primary_id
                    events_transferred += 1
                    points_transferred += result.points_awarded

            self.update_player(org, plan.primary_id, {
                **plan.field_updates,
                "alternate_names": plan.alternate_names,
            })

            if plan.transfer_account and plan.duplicate_id in self.accounts:
                self.accounts[plan.primary_id] = self.accounts.pop(plan.duplicate_id)

            del self.players[plan.duplicate_id]

        return {
            "events_transferred": events_transferred,
            "points_transferred": points_transferred,
        }
