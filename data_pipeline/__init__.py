"""
Bulk import pipeline

CSV -> normalized rows -> dry run (classification) -> commit:
- csv_format: import/export column contracts
- normalizer: value normalization and per-row validation
- reconciler: player matching, resolutions, writes
"""

from .schemas import (
    ImportRow,
    RowState,
    CandidatePlayer,
    ResolutionAction,
    RowResolution,
    RowError,
    DuplicateMatch,
    IncompletePlayer,
    ImportPreview,
    ImportReport,
)
from .csv_format import (
    IMPORT_COLUMNS,
    EXPORT_COLUMNS,
    parse_import_csv,
    results_template,
    historic_template,
    export_rankings_csv,
)
from .reconciler import BulkImportReconciler, suggest_resolution

__all__ = [
    # Schemas
    "ImportRow",
    "RowState",
    "CandidatePlayer",
    "ResolutionAction",
    "RowResolution",
    "RowError",
    "DuplicateMatch",
    "IncompletePlayer",
    "ImportPreview",
    "ImportReport",
    # CSV
    "IMPORT_COLUMNS",
    "EXPORT_COLUMNS",
    "parse_import_csv",
    "results_template",
    "historic_template",
    "export_rankings_csv",
    # Reconciler
    "BulkImportReconciler",
    "suggest_resolution",
]
