"""
API dependencies

Store/service injection and request context (organization, operator)
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from database.store import RankingStore
from database.supabase_client import SupabaseStore

from .config import get_settings
from .services import RankingService


# Shared store (Supabase); tests override get_store
_store: Optional[RankingStore] = None


def get_store() -> RankingStore:
    global _store
    if _store is None:
        _store = SupabaseStore()
    return _store


def get_ranking_service(store: RankingStore = Depends(get_store)) -> RankingService:
    return RankingService(store, get_settings())


async def get_organization_id(
    x_organization_id: Optional[str] = Header(None, description="Organization (tenant) id"),
) -> str:
    """Organization from the X-Organization-Id header, else the configured default"""
    organization_id = x_organization_id or get_settings().default_organization_id
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-Id header is required",
        )
    return organization_id


async def get_operator_id(
    x_operator_id: Optional[str] = Header(None, description="Admin performing the operation"),
) -> Optional[str]:
    return x_operator_id
