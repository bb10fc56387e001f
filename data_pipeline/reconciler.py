"""
Bulk import reconciler

Two phases over the same CSV rows:
1. preview() - classify every row against existing players, write nothing
2. commit()  - with a resolution for every flagged row, write players,
               events and results row by row

Row states: matched / new / incomplete / duplicate / invalid
Matching order: player_code -> external rating id -> email; when none of
them matches, players sharing the name (or an alternate name) become
duplicate candidates.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from loguru import logger

from database.models import FILLABLE_PLAYER_FIELDS, Event, ImportBatch, Player
from database.store import DEFAULT_CODE_PREFIX, LOOKUP_FIELDS, RankingStore
from ranking.exceptions import (
    RankingError,
    ResolutionRequired,
    StaleResolution,
    ValidationFailed,
)
from ranking.models import Gender
from ranking.points import compute_points

from .csv_format import parse_import_csv
from .normalizer import MIXED_DOUBLES, normalize_category, normalize_date, normalize_gender, normalize_row
from .schemas import (
    CandidatePlayer,
    DuplicateMatch,
    ImportPreview,
    ImportReport,
    ImportRow,
    IncompletePlayer,
    ResolutionAction,
    RowError,
    RowResolution,
    RowState,
)


# Row field -> Player field, compared when suggesting resolutions
COMPARED_FIELDS = {
    "player_name": "name",
    "country": "country",
    "gender": "gender",
    "player_code": "player_code",
    "email": "email",
    "external_rating_id": "external_rating_id",
    "date_of_birth": "date_of_birth",
}


ResolutionInput = Union[RowResolution, Dict[str, Any], str]


@dataclass
class RowClassification:
    row: ImportRow
    state: RowState
    candidates: List[Player] = field(default_factory=list)
    matched_on: Optional[str] = None


@dataclass
class RowPlan:
    """What a commit row will write, worked out before the first write"""
    row: ImportRow
    player: Optional[Player] = None  # None: create from the row
    merge: bool = False
    event: Optional[Event] = None  # None: create
    points: int = 0


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        return a.strip().casefold() == b.strip().casefold()
    return a == b


def compare_with_player(row: ImportRow, player: Player) -> Tuple[List[str], List[str]]:
    """
    (conflicts, fills) between a CSV row and an existing player

    conflicts: both sides set, values differ
    fills: CSV sets a value the player does not have
    """
    conflicts, fills = [], []
    for row_field, player_field in COMPARED_FIELDS.items():
        csv_value = getattr(row, row_field)
        stored = getattr(player, player_field)
        if csv_value in (None, ""):
            continue
        if stored in (None, ""):
            fills.append(player_field)
        elif not _same(csv_value, stored):
            if player_field == "name" and csv_value.casefold() in player.known_names():
                continue
            conflicts.append(player_field)
    return conflicts, fills


def suggest_resolution(row: ImportRow, candidates: List[Player]) -> Optional[RowResolution]:
    """
    Default choice offered to the operator

    - exactly one candidate identical to the row -> use_existing
    - a single candidate that only lacks values the row supplies -> merge
    - no candidates -> new
    """
    if not candidates:
        return RowResolution(action=ResolutionAction.NEW)

    identical = []
    compatible = []
    for player in candidates:
        conflicts, fills = compare_with_player(row, player)
        if conflicts:
            continue
        compatible.append(player)
        if not fills:
            identical.append(player)

    if len(identical) == 1:
        return RowResolution(action=ResolutionAction.USE_EXISTING, player_id=identical[0].id)
    if len(candidates) == 1 and compatible:
        return RowResolution(action=ResolutionAction.MERGE, player_id=compatible[0].id)
    return None


def with_mixed_category(row: ImportRow, gender: Optional[Gender]) -> ImportRow:
    """Settle a plain mixed doubles row on the men's or women's mixed category"""
    if not row.mixed_category:
        return row
    return row.model_copy(update={
        "category": normalize_category(MIXED_DOUBLES, gender),
        "mixed_category": False,
    })


def _tier_conflict(row: ImportRow, event: Event) -> ValidationFailed:
    return ValidationFailed(
        f"Tier {row.tier.value} conflicts with existing event "
        f"'{event.tournament_name}' ({event.tier.value})",
        field="tier",
        value=row.tier.value,
    )


def _candidate(player: Player) -> CandidatePlayer:
    return CandidatePlayer(
        id=player.id,
        name=player.name,
        player_code=player.player_code,
        country=player.country,
        email=player.email,
        gender=player.gender,
    )


def _row_error(row: ImportRow, message: str) -> RowError:
    return RowError(
        row_key=row.row_key,
        csv_row=row.csv_row,
        player_name=row.player_name,
        player_code=row.player_code,
        error=message,
    )


class BulkImportReconciler:
    """Dry-run / commit import of tournament results for one organization"""

    def __init__(
        self,
        store: RankingStore,
        organization_id: str,
        player_code_prefix: str = DEFAULT_CODE_PREFIX,
    ):
        self.store = store
        self.organization_id = organization_id
        self.player_code_prefix = player_code_prefix

    # =====================================================
    # Parsing / classification
    # =====================================================

    @staticmethod
    def load_rows(csv_text: str, file_name: str) -> List[ImportRow]:
        """CSV text -> normalized rows"""
        return [
            normalize_row(raw, index, file_name)
            for index, raw in enumerate(parse_import_csv(csv_text))
        ]

    def classify(self, row: ImportRow) -> RowClassification:
        """Match one row against existing players"""
        if not row.is_valid:
            return RowClassification(row, RowState.INVALID)

        for lookup in LOOKUP_FIELDS:
            value = getattr(row, lookup)
            if not value:
                continue
            hits = self.store.find_players(self.organization_id, lookup, value)
            if len(hits) == 1:
                return self._matched(row, hits[0], lookup)
            if len(hits) > 1:
                return RowClassification(row, RowState.DUPLICATE, hits, lookup)

        if row.player_name:
            hits = self.store.find_players_by_name(self.organization_id, row.player_name)
            if hits:
                return RowClassification(row, RowState.DUPLICATE, hits, "name")

        if row.missing_player_fields():
            return RowClassification(row, RowState.INCOMPLETE)
        return RowClassification(row, RowState.NEW)

    @staticmethod
    def _matched(row: ImportRow, player: Player, lookup: str) -> RowClassification:
        """A plain mixed doubles row takes the matched player's gender"""
        try:
            row = with_mixed_category(row, player.gender)
        except ValidationFailed as e:
            row = row.model_copy(update={"errors": [str(e)]})
            return RowClassification(row, RowState.INVALID, [player], lookup)
        return RowClassification(row, RowState.MATCHED, [player], lookup)

    def _classify_all(self, rows: List[ImportRow]) -> List[RowClassification]:
        return [self.classify(row) for row in rows]

    # =====================================================
    # Phase 1: dry run
    # =====================================================

    def preview(self, rows: List[ImportRow], file_name: str) -> ImportPreview:
        """Classify every row; never writes"""
        return self._build_preview(self._classify_all(rows), file_name)

    def _build_preview(self, classified: List[RowClassification], file_name: str) -> ImportPreview:
        preview = ImportPreview(file_name=file_name, total_rows=len(classified))

        for item in classified:
            row = item.row
            if item.state == RowState.INVALID:
                preview.errors.extend(_row_error(row, e) for e in row.errors)
            elif item.state == RowState.MATCHED:
                preview.matched += 1
            elif item.state == RowState.NEW:
                preview.new_players += 1
                preview.suggested_resolutions[row.row_key] = RowResolution(action=ResolutionAction.NEW)
            elif item.state == RowState.INCOMPLETE:
                preview.incomplete.append(IncompletePlayer(
                    row_key=row.row_key,
                    csv_row=row.csv_row,
                    player_name=row.player_name,
                    player_code=row.player_code,
                    country=row.country,
                    gender=row.gender,
                    missing_fields=row.missing_player_fields(),
                ))
            elif item.state == RowState.DUPLICATE:
                preview.duplicates.append(DuplicateMatch(
                    row_key=row.row_key,
                    csv_row=row.csv_row,
                    csv_name=row.player_name,
                    matched_on=item.matched_on,
                    existing_players=[_candidate(p) for p in item.candidates],
                ))
                suggestion = suggest_resolution(row, item.candidates)
                if suggestion:
                    preview.suggested_resolutions[row.row_key] = suggestion

        logger.info(
            f"Import preview {file_name}: {preview.total_rows} rows, {preview.matched} matched, "
            f"{preview.new_players} new, {len(preview.duplicates)} duplicates, "
            f"{len(preview.incomplete)} incomplete, {len(preview.errors)} errors"
        )
        return preview

    # =====================================================
    # Phase 2: commit
    # =====================================================

    def commit(
        self,
        rows: List[ImportRow],
        file_name: str,
        resolutions: Optional[Dict[str, ResolutionInput]] = None,
        operator: Optional[str] = None,
    ) -> ImportReport:
        """
        Write the import

        Raises:
            ResolutionRequired: a duplicate/incomplete row has no resolution
            StaleResolution: a resolution names a player that no longer exists
            ValidationFailed: a resolution is malformed
        """
        try:
            parsed = {key: RowResolution.parse(value) for key, value in (resolutions or {}).items()}
        except ValueError as e:
            raise ValidationFailed(f"Invalid resolution: {e}", field="resolutions") from None

        classified = self._classify_all(rows)
        flagged = [
            c.row.row_key for c in classified
            if c.state in (RowState.DUPLICATE, RowState.INCOMPLETE)
        ]
        pending = [key for key in flagged if key not in parsed]
        if pending:
            raise ResolutionRequired(pending)

        stale = {
            key: res.player_id for key, res in parsed.items()
            if res.player_id and self.store.get_player(self.organization_id, res.player_id) is None
        }
        if stale:
            raise StaleResolution(stale)

        report = ImportReport(batch_id=str(uuid.uuid4()), file_name=file_name, total=len(rows))
        created_players: Dict[str, Player] = {}

        for item in classified:
            row = item.row
            if item.state == RowState.INVALID:
                report.failed += 1
                report.errors.append(_row_error(row, "; ".join(row.errors)))
                continue

            try:
                inserted = self._commit_row(item, parsed.get(row.row_key), created_players, report)
            except Exception as e:
                log = logger.warning if isinstance(e, RankingError) else logger.error
                log(f"Import {row.row_key} ({row.player_name}) failed: {e}")
                report.failed += 1
                report.errors.append(_row_error(row, str(e)))
                continue

            if inserted:
                report.succeeded += 1
            else:
                report.skipped += 1

        self.store.record_import_batch(ImportBatch(
            id=report.batch_id,
            organization_id=self.organization_id,
            file_name=file_name,
            imported_by=operator,
            total_rows=report.total,
            successful_rows=report.succeeded,
            failed_rows=report.failed,
            error_log=[e.model_dump(mode="json") for e in report.errors],
        ))

        logger.info(
            f"Import {file_name} committed: {report.succeeded} ok, {report.failed} failed, "
            f"{report.skipped} skipped, {report.players_created} new players"
        )
        return report

    def _commit_row(
        self,
        item: RowClassification,
        resolution: Optional[RowResolution],
        created_players: Dict[str, Player],
        report: ImportReport,
    ) -> bool:
        """
        Write one row; returns False when the player already has a result
        in the event

        All checks run in _plan_row, so a row failing a check leaves nothing behind.
        """
        plan = self._plan_row(item, resolution, created_players)
        row = plan.row

        if plan.player and plan.event and self.store.result_exists(plan.event.id, plan.player.id):
            logger.debug(f"{row.row_key}: {plan.player.name} already has a result in {plan.event.tournament_name}")
            return False

        event = plan.event
        if event is None:
            event, created = self.store.get_or_create_event(
                self.organization_id,
                row.tournament_name,
                row.event_date,
                row.category,
                row.tier,
                import_batch_id=report.batch_id,
            )
            if created:
                report.events_created += 1
            elif event.tier != row.tier:
                # another writer created it first
                raise _tier_conflict(row, event)

        if plan.player is None:
            player = self._create_player(row, created_players, report)
        elif plan.merge:
            player = self._merge_into(plan.player, row)
        else:
            player = plan.player

        self.store.add_result(event.id, player.id, row.finishing_position, plan.points)
        return True

    def _plan_row(
        self,
        item: RowClassification,
        resolution: Optional[RowResolution],
        created_players: Dict[str, Player],
    ) -> RowPlan:
        """Resolve player, category, event and points without writing"""
        row, player, merge = self._plan_player(item, resolution, created_players)

        gender = (player.gender if player else None) or row.gender
        row = with_mixed_category(row, gender)
        if gender is not None and row.category.gender != gender:
            name = player.name if player else row.player_name
            raise ValidationFailed(
                f"Category {row.category.value} does not accept {gender.value} player {name}",
                field="category",
                value=row.category.value,
            )

        event = self.store.find_event(self.organization_id, row.tournament_name, row.event_date, row.category)
        if event is not None and event.tier != row.tier:
            raise _tier_conflict(row, event)

        points = compute_points(row.tier, row.finishing_position, row.points)
        return RowPlan(row=row, player=player, merge=merge, event=event, points=points)

    # =====================================================
    # Player resolution
    # =====================================================

    def _plan_player(
        self,
        item: RowClassification,
        resolution: Optional[RowResolution],
        created_players: Dict[str, Player],
    ) -> Tuple[ImportRow, Optional[Player], bool]:
        """
        (row after completions, player to use, fill the player from the row)

        A None player means the row creates one. Players created earlier in
        the batch are reused.
        """
        row = item.row

        if resolution is None:
            if item.state == RowState.MATCHED:
                return row, item.candidates[0], False
            return row, created_players.get(self._batch_key(row)), False

        if resolution.action == ResolutionAction.NEW:
            if resolution.completions:
                row = self._apply_completions(row, resolution.completions)
            missing = row.missing_player_fields()
            if missing:
                raise ValidationFailed(
                    f"New player is missing {', '.join(missing)}", field=missing[0]
                )
            return row, created_players.get(self._batch_key(row)), False

        player = self.store.get_player(self.organization_id, resolution.player_id)
        if player is None:
            raise StaleResolution({row.row_key: resolution.player_id})

        if resolution.action == ResolutionAction.MERGE:
            if resolution.completions:
                row = self._apply_completions(row, resolution.completions)
            return row, player, True
        return row, player, False


    @staticmethod
    def _apply_completions(row: ImportRow, completions: Dict[str, Any]) -> ImportRow:
        updates = {}
        for key, value in completions.items():
            if key == "gender":
                value = normalize_gender(value)
            elif key == "date_of_birth":
                value = normalize_date(value, "date_of_birth")
            elif isinstance(value, str):
                value = value.strip()
            updates[key] = value
        return row.model_copy(update=updates)

    def _batch_key(self, row: ImportRow) -> str:
        if row.player_code:
            return f"code:{row.player_code}"
        return f"name:{row.player_name.casefold()}"

    def _create_player(
        self,
        row: ImportRow,
        created_players: Dict[str, Player],
        report: ImportReport,
    ) -> Player:
        key = self._batch_key(row)
        if key in created_players:
            return created_players[key]

        data = row.player_fields()
        if not data["player_code"]:
            data["player_code"] = self.store.generate_player_code(self.player_code_prefix)

        player = self.store.create_player(self.organization_id, data)
        created_players[key] = player
        report.players_created += 1
        logger.info(f"Created player {player.name} ({player.player_code})")
        return player

    def _merge_into(self, player: Player, row: ImportRow) -> Player:
        """Fill the player's empty fields from the row and remember the CSV name"""
        updates: Dict[str, Any] = {}
        for player_field in FILLABLE_PLAYER_FIELDS:
            value = getattr(row, player_field)
            if value and not getattr(player, player_field):
                updates[player_field] = value

        if row.player_name and row.player_name.casefold() not in player.known_names():
            updates["alternate_names"] = [*player.alternate_names, row.player_name]

        if not updates:
            return player
        return self.store.update_player(self.organization_id, player.id, updates)
