"""
Player merge

Folds a duplicate player into a primary one:
- results move to the primary
- the duplicate's names become alternate names of the primary
- empty primary fields (email, rating id, date of birth) are filled
- a linked account moves when only the duplicate has one
- the duplicate is deleted

preview() computes all of this without writing; merge() applies it as one
atomic store operation.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from database.models import FILLABLE_PLAYER_FIELDS, MergePlan, Player
from database.store import RankingStore
from ranking.exceptions import BothLinkedToAccounts, InvalidMerge, PlayerNotFound


@dataclass
class MergePreview:
    """What a merge would change"""
    primary_id: str
    duplicate_id: str
    primary_name: str
    duplicate_name: str
    events_transferred: int = 0
    points_transferred: int = 0
    by_category: Dict[str, Dict[str, int]] = field(default_factory=dict)
    field_updates: Dict[str, Any] = field(default_factory=dict)
    alternate_names_added: List[str] = field(default_factory=list)
    transfers_account: bool = False
    blocked: bool = False
    block_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_id": self.primary_id,
            "duplicate_id": self.duplicate_id,
            "primary_name": self.primary_name,
            "duplicate_name": self.duplicate_name,
            "events_transferred": self.events_transferred,
            "points_transferred": self.points_transferred,
            "by_category": self.by_category,
            "field_updates": {
                k: (v.isoformat() if hasattr(v, "isoformat") else v)
                for k, v in self.field_updates.items()
            },
            "alternate_names_added": self.alternate_names_added,
            "transfers_account": self.transfers_account,
            "blocked": self.blocked,
            "block_reason": self.block_reason,
        }


class MergeResolver:
    """Merge duplicate players within one organization"""

    def __init__(self, store: RankingStore, organization_id: str):
        self.store = store
        self.organization_id = organization_id

    def _load(self, primary_id: str, duplicate_id: str):
        if not primary_id or not duplicate_id:
            raise InvalidMerge("Both primary and duplicate player ids are required", field="player_id")
        if primary_id == duplicate_id:
            raise InvalidMerge(
                "Cannot merge a player into itself", field="duplicate_id", value=duplicate_id
            )

        primary = self.store.get_player(self.organization_id, primary_id)
        if primary is None:
            raise PlayerNotFound(primary_id)
        duplicate = self.store.get_player(self.organization_id, duplicate_id)
        if duplicate is None:
            raise PlayerNotFound(duplicate_id)
        return primary, duplicate

    @staticmethod
    def _field_updates(primary: Player, duplicate: Player) -> Dict[str, Any]:
        """Duplicate values for fields the primary leaves empty; never overwrites"""
        updates = {}
        for name in FILLABLE_PLAYER_FIELDS:
            if not getattr(primary, name) and getattr(duplicate, name):
                updates[name] = getattr(duplicate, name)
        return updates

    @staticmethod
    def _new_alternate_names(primary: Player, duplicate: Player) -> List[str]:
        known = set(primary.known_names())
        added = []
        for name in [duplicate.name, *duplicate.alternate_names]:
            if name and name.casefold() not in known:
                known.add(name.casefold())
                added.append(name)
        return added

    def preview(self, primary_id: str, duplicate_id: str) -> MergePreview:
        """Counts and diffs of a merge; writes nothing"""
        primary, duplicate = self._load(primary_id, duplicate_id)

        preview = MergePreview(
            primary_id=primary.id,
            duplicate_id=duplicate.id,
            primary_name=primary.name,
            duplicate_name=duplicate.name,
        )

        for record in self.store.list_results(self.organization_id, player_id=duplicate.id, public_only=False):
            preview.events_transferred += 1
            preview.points_transferred += record.points
            bucket = preview.by_category.setdefault(record.category.value, {"events": 0, "points": 0})
            bucket["events"] += 1
            bucket["points"] += record.points

        preview.field_updates = self._field_updates(primary, duplicate)
        preview.alternate_names_added = self._new_alternate_names(primary, duplicate)

        primary_linked = self.store.has_linked_account(self.organization_id, primary.id)
        duplicate_linked = self.store.has_linked_account(self.organization_id, duplicate.id)
        if primary_linked and duplicate_linked:
            preview.blocked = True
            preview.block_reason = "Both players have linked user accounts"
        preview.transfers_account = duplicate_linked and not primary_linked

        return preview

    def merge(self, primary_id: str, duplicate_id: str) -> Dict[str, int]:
        """
        Merge duplicate into primary

        Returns:
            {"events_transferred": n, "points_transferred": p}

        Raises:
            InvalidMerge: same id twice / missing id
            PlayerNotFound: unknown id in this organization
            BothLinkedToAccounts: both players own a login; nothing is changed
        """
        preview = self.preview(primary_id, duplicate_id)
        if preview.blocked:
            raise BothLinkedToAccounts(primary_id, duplicate_id)

        primary = self.store.get_player(self.organization_id, primary_id)
        plan = MergePlan(
            organization_id=self.organization_id,
            primary_id=primary_id,
            duplicate_id=duplicate_id,
            field_updates=preview.field_updates,
            alternate_names=[*primary.alternate_names, *preview.alternate_names_added],
            transfer_account=preview.transfers_account,
        )

        outcome = self.store.apply_merge(plan)
        logger.info(
            f"Merged {preview.duplicate_name} ({duplicate_id}) into {preview.primary_name} ({primary_id}): "
            f"{outcome['events_transferred']} events, {outcome['points_transferred']} points"
        )
        return outcome
