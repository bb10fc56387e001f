"""
Bulk import schemas

Pydantic models for normalized CSV rows, the transient duplicate/incomplete
records of a dry run, operator resolutions and the commit report.
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ranking.models import Category, FinishingPosition, Gender, Tier


# Fields a new player must have
REQUIRED_PLAYER_FIELDS = ("player_name", "country", "gender")

# Fields an operator may supply for an incomplete row
COMPLETABLE_FIELDS = ("player_name", "country", "gender", "email", "date_of_birth", "external_rating_id")


class RowState(str, Enum):
    """Classification of one CSV row during a dry run"""
    MATCHED = "matched"            # single existing player
    NEW = "new"                    # no candidate, all required fields present
    INCOMPLETE = "incomplete"      # no candidate, required fields missing
    DUPLICATE = "duplicate"        # several candidates
    INVALID = "invalid"            # validation errors


class ImportRow(BaseModel):
    """One CSV row after normalization"""
    row_key: str = Field(..., description="row_<n>, 0-based data row")
    csv_row: int = Field(..., description="Line number in the file (header = 1)")
    player_name: str = ""
    player_code: Optional[str] = None
    country: str = ""
    gender: Optional[Gender] = None
    category: Optional[Category] = None
    finishing_position: FinishingPosition = FinishingPosition.POINTS_AWARDED
    points: Optional[str] = Field(None, description="Raw points literal, historic tier only")
    event_date: Optional[date] = None
    tournament_name: str = ""
    tier: Tier = Tier.TIER4
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    external_rating_id: Optional[str] = None
    mixed_category: bool = Field(False, description="Plain mixed doubles, category set once the gender is known")
    external_rating_id: Optional[str] = None
    errors: List[str] = Field(default_factory=list, description="Validation errors")

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def missing_player_fields(self) -> List[str]:
        return [f for f in REQUIRED_PLAYER_FIELDS if not getattr(self, f)]

    def player_fields(self) -> Dict[str, Any]:
        """Fields used when this row creates a player"""
        return {
            "name": self.player_name,
            "country": self.country,
            "gender": self.gender,
            "player_code": self.player_code,
            "email": self.email,
            "date_of_birth": self.date_of_birth,
            "external_rating_id": self.external_rating_id,
        }


class CandidatePlayer(BaseModel):
    """Existing player offered as a match"""
    id: str
    name: str
    player_code: str
    country: str = ""
    email: Optional[str] = None
    gender: Optional[Gender] = None


class ResolutionAction(str, Enum):
    NEW = "new"
    USE_EXISTING = "use_existing"
    MERGE = "merge"  # use existing, fill its empty fields, keep the CSV name as alternate


class RowResolution(BaseModel):
    """Operator decision for a flagged row"""
    action: ResolutionAction
    player_id: Optional[str] = None
    completions: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_player_id(self):
        if self.action != ResolutionAction.NEW and not self.player_id:
            raise ValueError(f"'{self.action.value}' resolution needs a player_id")
        return self

    @field_validator("completions")
    @classmethod
    def _check_completions(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(v) - set(COMPLETABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown completion fields: {', '.join(sorted(unknown))}")
        return v

    @classmethod
    def parse(cls, value: Union["RowResolution", Dict[str, Any], str]) -> "RowResolution":
        """
        Accepts a model, a dict, or the short string form:
        "new", "merge_<player_id>", "<player_id>"
        """
        if isinstance(value, RowResolution):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)

        text = str(value).strip()
        if text == ResolutionAction.NEW.value:
            return cls(action=ResolutionAction.NEW)
        if text.startswith("merge_"):
            return cls(action=ResolutionAction.MERGE, player_id=text[len("merge_"):])
        return cls(action=ResolutionAction.USE_EXISTING, player_id=text)


class RowError(BaseModel):
    """Per-row failure, kept in the batch error log"""
    row_key: str
    csv_row: int
    player_name: str = ""
    player_code: Optional[str] = None
    error: str


class DuplicateMatch(BaseModel):
    """Row whose player matches several existing players"""
    row_key: str
    csv_row: int
    csv_name: str
    matched_on: str = Field(..., description="player_code / external_rating_id / email / name")
    existing_players: List[CandidatePlayer]


class IncompletePlayer(BaseModel):
    """New player row missing required fields"""
    row_key: str
    csv_row: int
    player_name: str = ""
    player_code: Optional[str] = None
    country: str = ""
    gender: Optional[Gender] = None
    missing_fields: List[str]


class ImportPreview(BaseModel):
    """Dry-run result; nothing has been written"""
    file_name: str
    total_rows: int
    matched: int = 0
    new_players: int = 0
    duplicates: List[DuplicateMatch] = Field(default_factory=list)
    incomplete: List[IncompletePlayer] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    suggested_resolutions: Dict[str, RowResolution] = Field(default_factory=dict)

    @property
    def needs_resolution(self) -> bool:
        return bool(self.duplicates or self.incomplete)

    @property
    def flagged_rows(self) -> List[str]:
        return [d.row_key for d in self.duplicates] + [i.row_key for i in self.incomplete]

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["needs_resolution"] = self.needs_resolution
        return data


class ImportReport(BaseModel):
    """Commit result"""
    batch_id: str
    file_name: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    players_created: int = 0
    events_created: int = 0
    errors: List[RowError] = Field(default_factory=list)
    finished_at: datetime = Field(default_factory=datetime.now)

    def to_response(self, error_limit: int = 10) -> Dict[str, Any]:
        """Summary with the first `error_limit` errors"""
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "players_created": self.players_created,
            "events_created": self.events_created,
            "errors": [e.model_dump(mode="json") for e in self.errors[:error_limit]],
        }
