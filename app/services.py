"""
Ranking service

Logical operations consumed by the API and the CLI. Every method takes the
organization id explicitly; nothing is read from ambient state.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from data_pipeline.csv_format import export_rankings_csv
from data_pipeline.reconciler import BulkImportReconciler, ResolutionInput
from database.store import RankingStore
from ranking.calculator import (
    compute_rankings,
    expiring_points,
    national_rankings,
    parse_category,
    player_ranking_summary,
    ranking_changes,
)
from ranking.combined import combined_categories, compute_combined
from ranking.exceptions import ConflictError, PlayerNotFound, ValidationFailed
from ranking.models import (
    Category,
    CombinedRankingRow,
    ExpiringPoints,
    FinishingPosition,
    PlayerRankingSummary,
    RankingChange,
    RankingRow,
    RankingView,
    Tier,
)
from ranking.points import compute_points, parse_position, parse_tier, points_table

from .config import Settings, get_settings
from .player_merge import MergePreview, MergeResolver


class EventIdentity(BaseModel):
    """Event a single result is recorded against (created when missing)"""
    tournament_name: str = Field(..., min_length=1)
    event_date: date
    category: Category
    tier: Tier
    is_public: bool = True


class RankingService:
    """Rankings, results, imports and merges over one store"""

    def __init__(self, store: RankingStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def _org(self, organization_id: Optional[str]) -> str:
        org = organization_id or self.settings.default_organization_id
        if not org:
            raise ValidationFailed("organization_id is required", field="organization_id")
        return org

    # ==================== Rankings ====================

    def _rankings(
        self,
        organization_id: str,
        category: Union[str, Category],
        as_of: Optional[date],
        window_days: Optional[int],
    ) -> List[RankingRow]:
        org = self._org(organization_id)
        category = parse_category(category)
        results = self.store.list_results(org, category=category)
        return compute_rankings(results, category, as_of or date.today(), window_days)

    def get_current_rankings(
        self,
        organization_id: str,
        category: Union[str, Category],
        as_of: Optional[date] = None,
        country: Optional[str] = None,
    ) -> List[RankingRow]:
        """Rolling-window ranking"""
        rows = self._rankings(organization_id, category, as_of, self.settings.rolling_window_days)
        return national_rankings(rows, country)

    def get_lifetime_rankings(
        self,
        organization_id: str,
        category: Union[str, Category],
        country: Optional[str] = None,
    ) -> List[RankingRow]:
        """All-time ranking"""
        rows = self._rankings(organization_id, category, None, None)
        return national_rankings(rows, country)

    def get_combined_doubles_rankings(
        self,
        organization_id: str,
        gender: str,
        as_of: Optional[date] = None,
        view: Union[str, RankingView] = RankingView.CURRENT,
    ) -> List[CombinedRankingRow]:
        """Gendered doubles + mixed doubles of one gender"""
        doubles, mixed = combined_categories(gender)
        if RankingView(view) == RankingView.LIFETIME:
            return compute_combined(
                self.get_lifetime_rankings(organization_id, doubles),
                self.get_lifetime_rankings(organization_id, mixed),
            )
        return compute_combined(
            self.get_current_rankings(organization_id, doubles, as_of),
            self.get_current_rankings(organization_id, mixed, as_of),
        )

    def get_player_summary(
        self,
        organization_id: str,
        player_id: str,
        category: Union[str, Category],
        as_of: Optional[date] = None,
    ) -> PlayerRankingSummary:
        org = self._org(organization_id)
        if self.store.get_player(org, player_id) is None:
            raise PlayerNotFound(player_id)
        category = parse_category(category)
        return player_ranking_summary(
            self.store.list_results(org, category=category),
            player_id,
            category,
            as_of or date.today(),
            self.settings.rolling_window_days,
            self.settings.expiring_within_days,
        )

    def get_ranking_changes(
        self,
        organization_id: str,
        category: Union[str, Category],
        previous_as_of: date,
        as_of: Optional[date] = None,
        view: Union[str, RankingView] = RankingView.CURRENT,
    ) -> List[RankingChange]:
        """Rank movement since `previous_as_of`, recomputed on both dates"""
        org = self._org(organization_id)
        category = parse_category(category)
        window = None if RankingView(view) == RankingView.LIFETIME else self.settings.rolling_window_days
        return ranking_changes(
            self.store.list_results(org, category=category),
            category,
            previous_as_of,
            as_of or date.today(),
            window,
        )

    def get_expiring_points(
        self,
        organization_id: str,
        as_of: Optional[date] = None,
        player_id: Optional[str] = None,
    ) -> List[ExpiringPoints]:
        org = self._org(organization_id)
        return expiring_points(
            self.store.list_results(org, player_id=player_id),
            as_of or date.today(),
            self.settings.expiring_within_days,
            self.settings.rolling_window_days,
            player_id,
        )

    def export_rankings_csv(
        self,
        organization_id: str,
        category: Union[str, Category],
        view: Union[str, RankingView] = RankingView.CURRENT,
        as_of: Optional[date] = None,
        country: Optional[str] = None,
    ) -> str:
        try:
            view = RankingView(view)
        except ValueError:
            raise ValidationFailed(f"Unknown ranking view {view!r}", field="view", value=view) from None

        if view == RankingView.LIFETIME:
            rows = self.get_lifetime_rankings(organization_id, category, country)
        else:
            rows = self.get_current_rankings(organization_id, category, as_of, country)
        return export_rankings_csv(rows)

    @staticmethod
    def get_points_table() -> Dict[str, Dict[str, int]]:
        return points_table()

    # ==================== Results ====================

    def record_result(
        self,
        organization_id: str,
        event: Union[EventIdentity, Dict[str, Any]],
        player_id: str,
        finishing_position: Union[str, FinishingPosition],
        points: Optional[Any] = None,
    ) -> int:
        """
        Record one result (admin single entry)

        Returns:
            points awarded, stored with the result
        """
        org = self._org(organization_id)
        if isinstance(event, dict):
            category = parse_category(event.get("category"))
            tier = parse_tier(event.get("tier"))
            try:
                event = EventIdentity(
                    tournament_name=event.get("tournament_name") or "",
                    event_date=event.get("event_date"),
                    category=category,
                    tier=tier,
                    is_public=event.get("is_public", True),
                )
            except PydanticValidationError as e:
                raise ValidationFailed(f"Invalid event: {e}", field="event") from None
        position = parse_position(finishing_position)

        player = self.store.get_player(org, player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        if player.gender is not None and event.category.gender != player.gender:
            raise ValidationFailed(
                f"Category {event.category.value} does not accept {player.gender.value} players",
                field="category",
                value=event.category.value,
            )

        # compute before any write so a bad tier/position creates nothing
        points_awarded = compute_points(event.tier, position, points)

        stored_event, created = self.store.get_or_create_event(
            org,
            event.tournament_name,
            event.event_date,
            event.category,
            event.tier,
            is_public=event.is_public,
        )
        if not created and stored_event.tier != event.tier:
            raise ValidationFailed(
                f"Event '{stored_event.tournament_name}' is {stored_event.tier.value}, not {event.tier.value}",
                field="tier",
                value=event.tier.value,
            )
        if self.store.result_exists(stored_event.id, player.id):
            raise ConflictError(
                f"{player.name} already has a result in {stored_event.tournament_name}",
                "This player already has a result for this event.",
            )

        self.store.add_result(stored_event.id, player.id, position, points_awarded)
        logger.info(
            f"Result recorded: {player.name} {position.value} at {stored_event.tournament_name} "
            f"({stored_event.category.value}) = {points_awarded} pts"
        )
        return points_awarded

    # ==================== Bulk import ====================

    def _reconciler(self, organization_id: str) -> BulkImportReconciler:
        return BulkImportReconciler(
            self.store, self._org(organization_id), self.settings.player_code_prefix
        )

    def start_bulk_import(
        self,
        organization_id: str,
        csv_text: str,
        file_name: str,
        operator: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Dry run; commits straight away when no row needs a decision

        Returns the preview (needs_resolution=True) or the commit summary.
        """
        reconciler = self._reconciler(organization_id)
        rows = reconciler.load_rows(csv_text, file_name)
        preview = reconciler.preview(rows, file_name)
        if preview.needs_resolution:
            return preview.to_dict()

        report = reconciler.commit(rows, file_name, None, operator)
        return {"needs_resolution": False, **report.to_response(self.settings.import_error_preview_limit)}

    def preview_bulk_import(self, organization_id: str, csv_text: str, file_name: str) -> Dict[str, Any]:
        """Dry run only"""
        reconciler = self._reconciler(organization_id)
        rows = reconciler.load_rows(csv_text, file_name)
        return reconciler.preview(rows, file_name).to_dict()

    def commit_bulk_import(
        self,
        organization_id: str,
        csv_text: str,
        file_name: str,
        resolutions: Optional[Dict[str, ResolutionInput]] = None,
        operator: Optional[str] = None,
    ) -> Dict[str, Any]:
        reconciler = self._reconciler(organization_id)
        rows = reconciler.load_rows(csv_text, file_name)
        report = reconciler.commit(rows, file_name, resolutions, operator)
        return report.to_response(self.settings.import_error_preview_limit)

    # ==================== Merge ====================

    def preview_merge(self, organization_id: str, primary_id: str, duplicate_id: str) -> MergePreview:
        return MergeResolver(self.store, self._org(organization_id)).preview(primary_id, duplicate_id)

    def merge_players(self, organization_id: str, primary_id: str, duplicate_id: str) -> Dict[str, int]:
        return MergeResolver(self.store, self._org(organization_id)).merge(primary_id, duplicate_id)
