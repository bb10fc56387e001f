"""
Supabase ranking store
"""
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from supabase import Client, create_client

from app.config import get_settings
from ranking.exceptions import BothLinkedToAccounts, PlayerNotFound
from ranking.models import Category, FinishingPosition, ResultRecord, Tier

from .models import Event, EventResult, ImportBatch, MergePlan, Player
from .store import LOOKUP_FIELDS, RankingStore


# PostgREST returns at most this many rows per request
PAGE_SIZE = 1000

# Unique key used for event get-or-create
EVENT_CONFLICT_KEY = "organization_id,tournament_name,event_date,category"

# Model field -> players column
PLAYER_COLUMNS = {"external_rating_id": "dupr_id"}

RESULT_SELECT = (
    "id, player_id, finishing_position, points_awarded, "
    "events!inner(id, organization_id, tournament_name, event_date, tier, category, is_public), "
    "players!inner(name, country)"
)


# Singleton client
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Supabase client instance (singleton)

    Uses the service key when configured, otherwise the anon key.
    """
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        key = settings.supabase_service_key or settings.supabase_key
        if not settings.supabase_url or not key:
            raise ValueError("Set the SUPABASE_URL and SUPABASE_KEY environment variables")
        _supabase_client = create_client(settings.supabase_url, key)
    return _supabase_client


def _player_from_row(row: Dict[str, Any]) -> Player:
    data = dict(row)
    data["external_rating_id"] = data.pop("dupr_id", None)
    return Player.model_validate(data)


def _player_to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    row = {}
    for key, value in fields.items():
        if isinstance(value, date):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        row[PLAYER_COLUMNS.get(key, key)] = value
    return row


class SupabaseStore(RankingStore):
    """Ranking store over the Supabase tables (see database/migrations)"""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client or get_supabase_client()

    def _fetch_all(self, build_query) -> List[Dict[str, Any]]:
        """Page through a query built by `build_query()`"""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            result = build_query().range(offset, offset + PAGE_SIZE - 1).execute()
            batch = result.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    # ==================== Players ====================

    def get_player(self, organization_id: str, player_id: str) -> Optional[Player]:
        try:
            result = self.client.table("players").select("*").eq(
                "organization_id", organization_id
            ).eq("id", player_id).execute()
        except Exception as e:
            logger.error(f"Player lookup error ({player_id}): {e}")
            raise

        if result.data:
            return _player_from_row(result.data[0])
        return None

    def list_players(self, organization_id: str) -> List[Player]:
        try:
            rows = self._fetch_all(
                lambda: self.client.table("players").select("*").eq(
                    "organization_id", organization_id
                ).order("id")
            )
        except Exception as e:
            logger.error(f"Player list error: {e}")
            raise
        return [_player_from_row(row) for row in rows]

    def find_players(self, organization_id: str, field: str, value: str) -> List[Player]:
        if field not in LOOKUP_FIELDS:
            raise ValueError(f"Unsupported lookup field: {field}")
        if not value:
            return []

        try:
            result = self.client.table("players").select("*").eq(
                "organization_id", organization_id
            ).eq(PLAYER_COLUMNS.get(field, field), value).execute()
        except Exception as e:
            logger.error(f"Player lookup error ({field}={value}): {e}")
            raise
        return [_player_from_row(row) for row in result.data or []]

    def find_players_by_name(self, organization_id: str, name: str) -> List[Player]:
        wanted = (name or "").strip().casefold()
        if not wanted:
            return []
        # alternate_names is a text[]; matching is done client side
        return [p for p in self.list_players(organization_id) if wanted in p.known_names()]

    def create_player(self, organization_id: str, data: Dict[str, Any]) -> Player:
        row = _player_to_row({**data, "organization_id": organization_id})
        try:
            result = self.client.table("players").insert(row).execute()
        except Exception as e:
            logger.error(f"Player create error ({data.get('name')}): {e}")
            raise

        if not result.data:
            raise RuntimeError(f"Failed to create player {data.get('name')}")
        return _player_from_row(result.data[0])

    def update_player(self, organization_id: str, player_id: str, fields: Dict[str, Any]) -> Player:
        fields = {k: v for k, v in fields.items() if k not in ("id", "organization_id", "player_code")}
        try:
            result = self.client.table("players").update(_player_to_row(fields)).eq(
                "organization_id", organization_id
            ).eq("id", player_id).execute()
        except Exception as e:
            logger.error(f"Player update error ({player_id}): {e}")
            raise

        if not result.data:
            raise PlayerNotFound(player_id)
        return _player_from_row(result.data[0])

    def player_code_exists(self, player_code: str) -> bool:
        result = self.client.table("players").select("id").eq(
            "player_code", player_code
        ).limit(1).execute()
        return bool(result.data)

    def has_linked_account(self, organization_id: str, player_id: str) -> bool:
        result = self.client.table("player_accounts").select("id").eq(
            "player_id", player_id
        ).limit(1).execute()
        return bool(result.data)

    # ==================== Events / results ====================

    def find_event(
        self,
        organization_id: str,
        tournament_name: str,
        event_date: date,
        category: Category,
    ) -> Optional[Event]:
        result = self.client.table("events").select("*").eq(
            "organization_id", organization_id
        ).eq("tournament_name", tournament_name).eq(
            "event_date", event_date.isoformat()
        ).eq("category", Category(category).value).limit(1).execute()

        if result.data:
            return Event.model_validate(result.data[0])
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
        existing = self.find_event(organization_id, tournament_name, event_date, category)
        if existing:
            return existing, False

        data = {
            "organization_id": organization_id,
            "tournament_name": tournament_name,
            "event_date": event_date.isoformat(),
            "category": Category(category).value,
            "tier": Tier(tier).value,
            "is_public": is_public,
            "import_batch_id": import_batch_id,
        }

        try:
            # A concurrent insert of the same key is ignored, then fetched
            result = self.client.table("events").upsert(
                data,
                on_conflict=EVENT_CONFLICT_KEY,
                ignore_duplicates=True,
            ).execute()
        except Exception as e:
            logger.error(f"Event save error ({tournament_name} {event_date}): {e}")
            raise

        if result.data:
            return Event.model_validate(result.data[0]), True

        event = self.find_event(organization_id, tournament_name, event_date, category)
        if event is None:
            raise RuntimeError(f"Event {tournament_name} {event_date} vanished after conflict")
        return event, False

    def result_exists(self, event_id: str, player_id: str) -> bool:
        result = self.client.table("event_results").select("id").eq(
            "event_id", event_id
        ).eq("player_id", player_id).limit(1).execute()
        return bool(result.data)

    def add_result(
        self,
        event_id: str,
        player_id: str,
        finishing_position: FinishingPosition,
        points_awarded: int,
    ) -> EventResult:
        data = {
            "event_id": event_id,
            "player_id": player_id,
            "finishing_position": FinishingPosition(finishing_position).value,
            "points_awarded": points_awarded,
        }
        try:
            result = self.client.table("event_results").insert(data).execute()
        except Exception as e:
            logger.error(f"Result save error (event={event_id}, player={player_id}): {e}")
            raise

        if not result.data:
            raise RuntimeError(f"Failed to save result for player {player_id}")
        return EventResult.model_validate(result.data[0])

    def list_results(
        self,
        organization_id: str,
        category: Optional[Category] = None,
        player_id: Optional[str] = None,
        public_only: bool = True,
    ) -> List[ResultRecord]:
        def build_query():
            query = self.client.table("event_results").select(RESULT_SELECT).eq(
                "events.organization_id", organization_id
            )
            if category is not None:
                query = query.eq("events.category", Category(category).value)
            if public_only:
                query = query.eq("events.is_public", True)
            if player_id is not None:
                query = query.eq("player_id", player_id)
            return query.order("id")

        try:
            rows = self._fetch_all(build_query)
        except Exception as e:
            logger.error(f"Result query error: {e}")
            raise

        records = []
        for row in rows:
            event = row["events"]
            player = row.get("players") or {}
            records.append(ResultRecord(
                player_id=row["player_id"],
                category=Category(event["category"]),
                points=int(row["points_awarded"]),
                event_date=date.fromisoformat(event["event_date"]),
                player_name=player.get("name") or "",
                country=player.get("country") or "",
                event_id=event["id"],
                tournament_name=event["tournament_name"],
                finishing_position=FinishingPosition(row["finishing_position"]),
                tier=Tier(event["tier"]),
            ))
        return records

    # ==================== Import history ====================

    def record_import_batch(self, batch: ImportBatch) -> ImportBatch:
        data = batch.model_dump(mode="json", exclude={"created_at"})
        data["error_log"] = data["error_log"] or None
        try:
            self.client.table("import_history").insert(data).execute()
        except Exception as e:
            logger.error(f"Import history save error ({batch.file_name}): {e}")
            raise
        return batch

    # ==================== Merge ====================

    def apply_merge(self, plan: MergePlan) -> Dict[str, int]:
        """Runs the merge_players SQL function (single transaction)"""
        params = {
            "p_organization_id": plan.organization_id,
            "p_primary_id": plan.primary_id,
            "p_duplicate_id": plan.duplicate_id,
            "p_field_updates": _player_to_row(plan.field_updates),
            "p_alternate_names": plan.alternate_names,
            "p_transfer_account": plan.transfer_account,
        }
        try:
            result = self.client.rpc("merge_players", params).execute()
        except Exception as e:
            message = str(e)
            if "BOTH_LINKED_TO_ACCOUNTS" in message:
                raise BothLinkedToAccounts(plan.primary_id, plan.duplicate_id) from e
            if "PLAYER_NOT_FOUND" in message:
                missing = plan.duplicate_id if plan.duplicate_id in message else plan.primary_id
                raise PlayerNotFound(missing) from e
            logger.error(f"Merge error ({plan.duplicate_id} -> {plan.primary_id}): {e}")
            raise

        data = result.data
        if isinstance(data, list):
            data = data[0] if data else {}
        data = data or {}
        return {
            "events_transferred": int(data.get("events_transferred", 0)),
            "points_transferred": int(data.get("points_transferred", 0)),
        }
