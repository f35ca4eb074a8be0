"""Domain models for the slab stock import/export tool."""

from .config_models import (
    AppConfig,
    DatabaseConfig,
    ExportSettings,
    ImportSettings,
    MatchingSettings,
    StatisticsSettings,
)
from .import_progress import ImportPhase, ImportProgress
from .material import Material, MaterialType
from .match_result import DimensionMatch, MatchCriteria, SlabMatchResult
from .parsed_row import ParsedSlabRow, ParseResult, ParseStats, RowError
from .processing_result import ImportResult
from .slab import Slab, SlabInsert, SlabStatus

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "ExportSettings",
    "ImportSettings",
    "MatchingSettings",
    "StatisticsSettings",
    # Stock models
    "Material",
    "MaterialType",
    "Slab",
    "SlabInsert",
    "SlabStatus",
    # Import models
    "ImportPhase",
    "ImportProgress",
    "ImportResult",
    "ParsedSlabRow",
    "ParseResult",
    "ParseStats",
    "RowError",
    # Matching models
    "DimensionMatch",
    "MatchCriteria",
    "SlabMatchResult",
]
