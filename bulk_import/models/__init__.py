"""Domain models for the bulk import pipeline.

Everything here is a plain frozen dataclass or enum; behavior lives in
bulk_import.services and bulk_import.formats.
"""

from .commit_result import BatchStatsAccumulator, CommitResult, ImportOutcome, RowCommitFailure
from .config_models import DatabaseConfig, ImportConfig, TableConfig
from .error_record import ErrorRecord
from .field_spec import FieldMap, FieldSpec, RequiredGroup
from .raw_table import FileKind, RawTable
from .reconciliation import DecisionKind, ReconciliationDecision
from .rows import (
    BostaInventoryRow,
    BostaShipmentRow,
    NormalizedRow,
    ShipbluTrackingRow,
    ShopifyOrderRow,
    ShopifyProductRow,
    TemplateInventoryRow,
)
from .session_state import InvalidTransition, SessionState
from .statistics import ImportStatistics, RowValidationFailure

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "TableConfig",
    # Input models
    "FileKind",
    "RawTable",
    "FieldSpec",
    "RequiredGroup",
    "FieldMap",
    # Rows
    "NormalizedRow",
    "BostaShipmentRow",
    "BostaInventoryRow",
    "ShopifyProductRow",
    "ShopifyOrderRow",
    "ShipbluTrackingRow",
    "TemplateInventoryRow",
    # Results
    "ImportStatistics",
    "RowValidationFailure",
    "DecisionKind",
    "ReconciliationDecision",
    "CommitResult",
    "RowCommitFailure",
    "ImportOutcome",
    "BatchStatsAccumulator",
    "ErrorRecord",
    "SessionState",
    "InvalidTransition",
]
