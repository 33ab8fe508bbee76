"""
Configuration management with environment variable support and validation.

Design principles:
- Validation at startup (fail fast)
- Type safety with Pydantic
- Engine settings travel through constructors; get_config() is only a
  convenience for process entry points
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from herd_health.domain.models import VaccineCategory

# Load environment variables from .env file
load_dotenv()


class VaccineProfile(BaseModel):
    """Catalog entry for a vaccine the ranch administers."""

    vaccine_id: str
    name: str
    interval_days: int = Field(gt=0, description="Days until the next dose is due")
    category: VaccineCategory = VaccineCategory.CORE
    cost: float = Field(default=0.0, ge=0.0)


def _default_catalog() -> dict[str, VaccineProfile]:
    profiles = [
        VaccineProfile(
            vaccine_id="vacc_001",
            name="Triple bovine",
            interval_days=365,
            category=VaccineCategory.CORE,
            cost=85.0,
        ),
        VaccineProfile(
            vaccine_id="vacc_002",
            name="Brucellosis",
            interval_days=730,
            category=VaccineCategory.CORE,
            cost=120.0,
        ),
        VaccineProfile(
            vaccine_id="vacc_003",
            name="Clostridial booster",
            interval_days=180,
            category=VaccineCategory.NON_CORE,
            cost=40.0,
        ),
    ]
    return {profile.vaccine_id: profile for profile in profiles}


class EngineConfig(BaseModel):
    """Rules of the health record engine."""

    duplicate_window_days: int = Field(
        default=30, ge=0, description="Lookback window for duplicate vaccinations"
    )
    default_vaccine_interval_days: int = Field(
        default=365, gt=0, description="Interval used for vaccines missing from the catalog"
    )
    vaccine_catalog: dict[str, VaccineProfile] = Field(default_factory=_default_catalog)
    default_checkup_days: int = Field(
        default=7, gt=0, description="Follow-up window for plans without an explicit checkup"
    )
    urgent_due_days: int = Field(
        default=3, ge=0, description="Scheduled doses due this soon are promoted to urgent"
    )
    vaccine_doses_per_administration: int = Field(default=1, gt=0)
    collaborator_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Upper bound for any single collaborator call"
    )

    @field_validator("vaccine_catalog")
    def catalog_keys_match_ids(
        cls, v: dict[str, VaccineProfile]
    ) -> dict[str, VaccineProfile]:
        for key, profile in v.items():
            if key != profile.vaccine_id:
                raise ValueError(f"catalog key {key!r} does not match {profile.vaccine_id!r}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
    v = val.strip().upper()
    return cast(
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
    )


def parse_vaccine_intervals(raw: str | None) -> dict[str, int]:
    """Parse ``"vacc_001=365,vacc_009=90"`` into a mapping of interval overrides."""
    if not raw:
        return {}

    intervals: dict[str, int] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        vaccine_id, sep, days = chunk.partition("=")
        if not sep or not vaccine_id.strip():
            raise ValueError(f"Invalid vaccine interval entry: {chunk!r}")
        intervals[vaccine_id.strip()] = int(days)
    return intervals


def _catalog_with_overrides(overrides: dict[str, int]) -> dict[str, VaccineProfile]:
    catalog = _default_catalog()
    for vaccine_id, days in overrides.items():
        if vaccine_id in catalog:
            catalog[vaccine_id] = catalog[vaccine_id].model_copy(update={"interval_days": days})
        else:
            catalog[vaccine_id] = VaccineProfile(
                vaccine_id=vaccine_id, name=vaccine_id, interval_days=days
            )
    # Round-trip through validation so bad override values fail at startup
    return {k: VaccineProfile.model_validate(v.model_dump()) for k, v in catalog.items()}


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    engine_config = EngineConfig(
        duplicate_window_days=int(os.getenv("HEALTH_DUPLICATE_WINDOW_DAYS", "30")),
        default_vaccine_interval_days=int(os.getenv("HEALTH_DEFAULT_VACCINE_INTERVAL_DAYS", "365")),
        vaccine_catalog=_catalog_with_overrides(
            parse_vaccine_intervals(os.getenv("HEALTH_VACCINE_INTERVALS"))
        ),
        default_checkup_days=int(os.getenv("HEALTH_DEFAULT_CHECKUP_DAYS", "7")),
        urgent_due_days=int(os.getenv("HEALTH_URGENT_DUE_DAYS", "3")),
        collaborator_timeout_seconds=float(
            os.getenv("HEALTH_COLLABORATOR_TIMEOUT_SECONDS", "10.0")
        ),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        engine=engine_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
