from __future__ import annotations

from dataclasses import dataclass, field

"""Configuration dataclasses.

Built by ``slabstock.config.loader`` from ``config/slabstock.yml``. Every
section has defaults so a missing file or section yields a usable config.
Environment variables take precedence over the database section.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback used when no env variable is set."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    batch_size: int = 200  # units per insert call (unit of retry)
    max_attempts: int = 3  # attempts per batch, first one included
    retry_base_delay: float = 1.0  # seconds; attempt n waits base * n
    page_size: int = 1000  # range-read page size
    progress_clear_delay: float = 2.0  # seconds after done


@dataclass(frozen=True)
class MatchingSettings:
    default_tolerance: float = 5
    max_tolerance: float = 20


@dataclass(frozen=True)
class StatisticsSettings:
    old_slab_days: int = 180


@dataclass(frozen=True)
class ExportSettings:
    output_directory: str = "."


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    statistics: StatisticsSettings = field(default_factory=StatisticsSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    user_id: str | None = None
