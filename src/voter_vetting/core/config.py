"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
Components never read settings directly; they receive the frozen config objects
built by the properties below.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voter_vetting.lib.contact import DuplicateScanConfig, PhoneConfig
from voter_vetting.lib.matcher import MatcherConfig
from voter_vetting.lib.roll_importer import ImportConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="PostgreSQL async connection string",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Roll import
    import_batch_size: int = Field(
        default=5000,
        description="Rows per import chunk",
        gt=0,
    )
    import_error_log_limit: int = Field(
        default=50,
        description="Maximum row-level errors kept on an import record",
        ge=0,
    )
    dob_day_first: bool = Field(
        default=False,
        description="Parse slash-separated dates as day/month/year instead of month/day/year",
    )

    # Phone normalization
    phone_country_code: str = Field(
        default="1",
        description="Country calling code stripped from local numbers",
        pattern=r"^\d{1,3}$",
    )
    phone_area_code: str = Field(
        default="671",
        description="Local area code that identifies numbers eligible for country-code stripping",
        pattern=r"^\d{1,5}$",
    )

    # Matching
    match_fuzzy_threshold: float = Field(
        default=0.4,
        description="Minimum trigram similarity on both first and last name for fuzzy matches",
        gt=0,
        lt=1,
    )
    match_fuzzy_limit: int = Field(
        default=5,
        description="Maximum candidates returned by the fuzzy name strategy",
        gt=0,
    )

    # Bulk operations
    revet_chunk_size: int = Field(
        default=500,
        description="Supporters per re-vetting chunk",
        gt=0,
    )
    duplicate_scan_chunk_size: int = Field(
        default=1000,
        description="Supporters updated per duplicate-scan chunk",
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins for the operator UI",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum roll file upload size in megabytes",
        gt=0,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def import_config(self) -> ImportConfig:
        """Build the import processor configuration."""
        return ImportConfig(
            batch_size=self.import_batch_size,
            day_first=self.dob_day_first,
            error_log_limit=self.import_error_log_limit,
        )

    @property
    def matcher_config(self) -> MatcherConfig:
        """Build the matcher configuration."""
        return MatcherConfig(
            fuzzy_threshold=self.match_fuzzy_threshold,
            fuzzy_limit=self.match_fuzzy_limit,
        )

    @property
    def phone_config(self) -> PhoneConfig:
        """Build the phone normalization configuration."""
        return PhoneConfig(
            country_code=self.phone_country_code,
            area_code=self.phone_area_code,
        )

    @property
    def duplicate_scan_config(self) -> DuplicateScanConfig:
        """Build the bulk duplicate-scan configuration."""
        return DuplicateScanConfig(chunk_size=self.duplicate_scan_chunk_size)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
