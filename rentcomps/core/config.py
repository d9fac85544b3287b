"""Configuration models, YAML loader, and environment credentials."""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from rentcomps.core.errors import ConfigurationError
from rentcomps.mls import get_schema

DEFAULT_USER_AGENT = "RentComps/1.0"
DEFAULT_RETS_VERSION = "RETS/1.8"

_REQUIRED_ENV = ("RETS_LOGIN_URL", "RETS_USERNAME", "RETS_PASSWORD")


class RetsCredentials(BaseModel):
    """Login endpoint and HTTP Basic credentials for one MLS."""

    login_url: str
    username: str
    password: str
    user_agent: str = DEFAULT_USER_AGENT
    rets_version: str = DEFAULT_RETS_VERSION

    @field_validator("login_url")
    @classmethod
    def login_url_absolute(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            msg = f"login_url must be an absolute http(s) URL, got '{v}'"
            raise ValueError(msg)
        return v

    @classmethod
    def from_env(cls) -> "RetsCredentials":
        """Read credentials from RETS_* environment variables.

        Raises:
            ConfigurationError: If any of the login URL, username or password is unset.
        """
        missing = [name for name in _REQUIRED_ENV if not os.environ.get(name)]
        if missing:
            msg = (
                "RETS credentials not configured. "
                f"Set {', '.join(missing)} in the environment"
            )
            raise ConfigurationError(msg)
        try:
            return cls(
                login_url=os.environ["RETS_LOGIN_URL"],
                username=os.environ["RETS_USERNAME"],
                password=os.environ["RETS_PASSWORD"],
                user_agent=os.environ.get("RETS_USER_AGENT") or DEFAULT_USER_AGENT,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


def has_rets_config() -> bool:
    """Return True if every required RETS_* variable is set."""
    return all(os.environ.get(name) for name in _REQUIRED_ENV)


class SessionPolicy(str, Enum):
    """Session lifetime policy.

    ephemeral: login and logout around every request chain.
    cached: one session shared by the manager until its TTL runs out.
    """

    EPHEMERAL = "ephemeral"
    CACHED = "cached"


class SessionConfig(BaseModel):
    """Session lifetime and request timeout."""

    policy: SessionPolicy = SessionPolicy.EPHEMERAL
    ttl_minutes: float = Field(default=25.0, ge=1.0)
    timeout_s: float = Field(default=30.0, gt=0.0)


class SearchConstraints(BaseModel):
    """Query-side constraints applied around the subject property."""

    include_active: bool = True
    bed_variance: int = Field(default=1, ge=0)
    bath_variance: float = Field(default=1.0, ge=0.0)
    sqft_variance_percent: float = Field(default=20.0, ge=0.0, le=100.0)
    date_range_months: int = Field(default=12, ge=1, le=120)
    property_type_match: bool = False
    location_code: str | None = None
    require_sqft: bool = True
    limit: int = Field(default=200, ge=1, le=10000)


class ScoringConfig(BaseModel):
    """Weights and bands for similarity scoring and ranking."""

    sqft_tolerance: float = Field(default=0.20, gt=0.0, le=1.0)
    distance_radius_miles: float = Field(default=5.0, gt=0.0)
    unknown_distance_credit: float = Field(default=10.0, ge=0.0, le=20.0)
    recency_window_days: int = Field(default=365, ge=1)
    max_distance_miles: float = Field(default=5.0, gt=0.0)
    result_cap: int = Field(default=25, ge=1, le=500)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    mls_system: str = "reso"
    session: SessionConfig = Field(default_factory=SessionConfig)
    constraints: SearchConstraints = Field(default_factory=SearchConstraints)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    use_select: bool = True

    @field_validator("mls_system")
    @classmethod
    def known_mls_system(cls, v: str) -> str:
        # Loading the schema validates its field tables at startup.
        return get_schema(v).name

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
