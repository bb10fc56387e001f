"""
Stored entity models (Pydantic)
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ranking.models import Category, FinishingPosition, Gender, Tier


# Player fields that a merge or an import "merge" may fill when empty
FILLABLE_PLAYER_FIELDS = ("email", "external_rating_id", "date_of_birth")


class Player(BaseModel):
    """Competitor"""
    id: str = Field(..., description="Player DB ID")
    organization_id: str = Field(..., description="Owning organization")
    name: str = Field(..., description="Display name")
    country: str = Field(default="", description="Country")
    gender: Optional[Gender] = Field(None, description="male/female")
    player_code: str = Field(..., description="Short unique code, immutable")
    email: Optional[str] = Field(None, description="Contact email")
    date_of_birth: Optional[date] = Field(None, description="Date of birth")
    external_rating_id: Optional[str] = Field(None, description="External rating id (DUPR)")
    alternate_names: List[str] = Field(default_factory=list, description="Previously used names")
    avatar_url: Optional[str] = Field(None, description="Avatar reference")

    @field_validator("alternate_names", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []

    def known_names(self) -> List[str]:
        """Display name plus alternates, case-folded"""
        return [n.casefold() for n in [self.name, *self.alternate_names] if n]


class Event(BaseModel):
    """Tournament instance in one category"""
    id: str = Field(..., description="Event DB ID")
    organization_id: str
    tournament_name: str
    event_date: date
    tier: Tier
    category: Category
    is_public: bool = True
    import_batch_id: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.organization_id, self.tournament_name, self.event_date, self.category)


class EventResult(BaseModel):
    """One player's outcome in one event"""
    id: str
    event_id: str
    player_id: str
    finishing_position: FinishingPosition
    points_awarded: int = Field(..., ge=0, description="Snapshot taken at creation")


class ImportBatch(BaseModel):
    """Record of one bulk import"""
    id: str
    organization_id: str
    file_name: str
    imported_by: Optional[str] = None
    total_rows: int = 0
    successful_rows: int = 0
    failed_rows: int = 0
    error_log: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


class MergePlan(BaseModel):
    """Everything a merge will change, computed before anything is written"""
    organization_id: str
    primary_id: str
    duplicate_id: str
    field_updates: Dict[str, Any] = Field(default_factory=dict)
    alternate_names: List[str] = Field(default_factory=list)
    transfer_account: bool = False
