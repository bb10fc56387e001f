"""
Rankings API Router

Rankings, result entry, bulk import and player merge endpoints.
Organization comes from the X-Organization-Id header.
"""
from datetime import date
from typing import Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from loguru import logger
from pydantic import BaseModel, Field

from data_pipeline.csv_format import historic_template, results_template
from data_pipeline.schemas import RowResolution
from ranking.exceptions import (
    ConflictError,
    PlayerNotFound,
    RankingError,
    ResolutionRequired,
    ValidationFailed,
)
from ranking.models import Category, FinishingPosition, Gender, RankingView

from .dependencies import get_operator_id, get_organization_id, get_ranking_service
from .services import EventIdentity, RankingService

router = APIRouter(tags=["Rankings"])


# =============================================
# Request models
# =============================================

class RecordResultRequest(BaseModel):
    event: EventIdentity
    player_id: str
    finishing_position: FinishingPosition
    points: Optional[int] = Field(None, ge=0, description="Historic tier only")


class ImportRequest(BaseModel):
    csv_text: str = Field(..., min_length=1)
    file_name: str = "upload.csv"


class CommitImportRequest(ImportRequest):
    resolutions: Dict[str, Union[RowResolution, str]] = Field(default_factory=dict)


class MergeRequest(BaseModel):
    primary_id: str
    duplicate_id: str


def http_error(e: RankingError) -> HTTPException:
    """Map core errors to HTTP status codes"""
    if isinstance(e, ResolutionRequired):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.user_message, "pending_rows": e.row_keys},
        )
    if isinstance(e, ValidationFailed):
        return HTTPException(
            status_code=422,
            detail={"message": str(e), "field": e.field},
        )
    if isinstance(e, PlayerNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.user_message)
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.user_message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.user_message)


# =============================================
# Rankings
# =============================================

@router.get("/rankings/{category}")
async def get_rankings(
    category: Category,
    view: RankingView = Query(RankingView.CURRENT, description="current (rolling window) / lifetime"),
    as_of: Optional[date] = Query(None, description="Reference date, default today"),
    country: Optional[str] = Query(None, description="Restrict to one country (national ranks)"),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Category ranking; rank ties share a rank"""
    try:
        if view == RankingView.LIFETIME:
            rows = service.get_lifetime_rankings(organization_id, category, country)
        else:
            rows = service.get_current_rankings(organization_id, category, as_of, country)
    except RankingError as e:
        raise http_error(e)

    return {
        "category": category.value,
        "view": view.value,
        "as_of": (as_of or date.today()).isoformat(),
        "rankings": [r.to_dict() for r in rows],
    }


@router.get("/rankings/{category}/export", response_class=PlainTextResponse)
async def export_rankings(
    category: Category,
    view: RankingView = Query(RankingView.CURRENT),
    as_of: Optional[date] = Query(None),
    country: Optional[str] = Query(None),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """CSV export: rank,name,country,points"""
    try:
        content = service.export_rankings_csv(organization_id, category, view, as_of, country)
    except RankingError as e:
        raise http_error(e)

    file_name = f"rankings_{category.value}_{view.value}_{(as_of or date.today()).isoformat()}.csv"
    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/combined-doubles/{gender}")
async def get_combined_doubles(
    gender: Gender,
    view: RankingView = Query(RankingView.CURRENT),
    as_of: Optional[date] = Query(None),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Gendered doubles + mixed doubles ranking of one gender"""
    try:
        rows = service.get_combined_doubles_rankings(organization_id, gender, as_of, view)
    except RankingError as e:
        raise http_error(e)
    return {"gender": gender.value, "view": view.value, "rankings": [r.to_dict() for r in rows]}


@router.get("/rankings/{category}/changes")
async def get_ranking_changes(
    category: Category,
    since: date = Query(..., description="Earlier reference date"),
    as_of: Optional[date] = Query(None, description="Later reference date, default today"),
    view: RankingView = Query(RankingView.CURRENT),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Rank and points movement between two dates"""
    try:
        changes = service.get_ranking_changes(organization_id, category, since, as_of, view)
    except RankingError as e:
        raise http_error(e)

    return {
        "category": category.value,
        "view": view.value,
        "since": since.isoformat(),
        "as_of": (as_of or date.today()).isoformat(),
        "changes": [c.to_dict() for c in changes],
    }


@router.get("/players/{player_id}/summary")
async def get_player_summary(
    player_id: str,
    category: Category = Query(...),
    as_of: Optional[date] = Query(None),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Active / lifetime points and ranks of a player, plus points expiring soon"""
    try:
        summary = service.get_player_summary(organization_id, player_id, category, as_of)
    except RankingError as e:
        raise http_error(e)

    return {
        "player_id": summary.player_id,
        "category": summary.category.value,
        "active_points": summary.active_points,
        "active_rank": summary.active_rank,
        "lifetime_points": summary.lifetime_points,
        "lifetime_rank": summary.lifetime_rank,
        "expiring_points": summary.expiring_points,
        "next_expiry_date": summary.next_expiry_date.isoformat() if summary.next_expiry_date else None,
    }


@router.get("/expiring-points")
async def get_expiring_points(
    as_of: Optional[date] = Query(None),
    player_id: Optional[str] = Query(None),
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Points leaving the current window soon"""
    try:
        entries = service.get_expiring_points(organization_id, as_of, player_id)
    except RankingError as e:
        raise http_error(e)

    return [
        {
            "player_id": e.player_id,
            "name": e.player_name,
            "country": e.country,
            "category": e.category.value,
            "expiring_points": e.expiring_points,
            "next_expiry_date": e.next_expiry_date.isoformat(),
            "days_until_expiry": e.days_until_expiry,
        }
        for e in entries
    ]


@router.get("/points-table")
async def get_points_table():
    """Tier x finishing position points grid"""
    return RankingService.get_points_table()


# =============================================
# Results
# =============================================

@router.post("/results", status_code=status.HTTP_201_CREATED)
async def record_result(
    request: RecordResultRequest,
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Record one result; the event is created when it does not exist yet"""
    try:
        points = service.record_result(
            organization_id,
            request.event,
            request.player_id,
            request.finishing_position,
            request.points,
        )
    except RankingError as e:
        raise http_error(e)
    return {"points_awarded": points}


# =============================================
# Bulk import
# =============================================

@router.get("/import/templates/{kind}", response_class=PlainTextResponse)
async def get_import_template(kind: str):
    """results / historic CSV template"""
    templates = {"results": results_template, "historic": historic_template}
    if kind not in templates:
        raise HTTPException(status_code=404, detail=f"Unknown template '{kind}'")
    return PlainTextResponse(
        templates[kind](),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{kind}_import_template.csv"'},
    )


@router.post("/import/preview")
async def preview_import(
    request: ImportRequest,
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Dry run: classification, duplicates, incomplete rows, suggestions"""
    try:
        return service.preview_bulk_import(organization_id, request.csv_text, request.file_name)
    except RankingError as e:
        raise http_error(e)


@router.post("/import/start")
async def start_import(
    request: ImportRequest,
    organization_id: str = Depends(get_organization_id),
    operator_id: Optional[str] = Depends(get_operator_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Dry run, committed immediately when no row needs a decision"""
    try:
        return service.start_bulk_import(
            organization_id, request.csv_text, request.file_name, operator_id
        )
    except RankingError as e:
        raise http_error(e)


@router.post("/import/commit")
async def commit_import(
    request: CommitImportRequest,
    organization_id: str = Depends(get_organization_id),
    operator_id: Optional[str] = Depends(get_operator_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Commit with operator resolutions keyed by row (row_<n>)"""
    try:
        result = service.commit_bulk_import(
            organization_id,
            request.csv_text,
            request.file_name,
            request.resolutions,
            operator_id,
        )
    except RankingError as e:
        raise http_error(e)

    logger.info(f"Import {request.file_name} by {operator_id or 'unknown'}: {result['succeeded']}/{result['total']}")
    return result


# =============================================
# Player merge
# =============================================

@router.post("/players/merge/preview")
async def preview_merge(
    request: MergeRequest,
    organization_id: str = Depends(get_organization_id),
    service: RankingService = Depends(get_ranking_service),
):
    """Counts and diffs of a merge, nothing written"""
    try:
        preview = service.preview_merge(organization_id, request.primary_id, request.duplicate_id)
    except RankingError as e:
        raise http_error(e)
    return preview.to_dict()


@router.post("/players/merge")
async def merge_players(
    request: MergeRequest,
    organization_id: str = Depends(get_organization_id),
    operator_id: Optional[str] = Depends(get_operator_id),
    service: RankingService = Depends(get_ranking_service),
):
    """
    Merge duplicate into primary (irreversible)

    409 when both players have linked accounts.
    """
    try:
        outcome = service.merge_players(organization_id, request.primary_id, request.duplicate_id)
    except RankingError as e:
        raise http_error(e)

    logger.info(f"Merge {request.duplicate_id} -> {request.primary_id} by {operator_id or 'unknown'}")
    return outcome
