"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _split_csv(value: Any) -> Any:
    """Accept ``"a,b"`` (ENV style) as well as a list."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class ResolutionConfig(BaseModel):
    """Coordinator, cache and fallback chain settings (YAML section: resolution.*)."""

    cache_ttl_seconds: int = Field(
        default=3600,
        description="Lifetime of a resolved stream URL (seconds).",
    )
    cache_max_entries: int = Field(
        default=10_000,
        description="Upper bound of cached resolutions; oldest evicted first.",
    )
    sweep_interval: int = Field(
        default=1000,
        description="Sweep expired entries every N cache lookups.",
    )
    resolve_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Bound on each provider/resolver attempt. None = HTTP timeout only.",
    )
    provider_order: list[str] = Field(
        default_factory=list,
        description="Providers tried first, in this order. Others follow.",
    )

    @field_validator("provider_order", mode="before")
    @classmethod
    def _split_order(cls, v: Any) -> Any:
        return _split_csv(v)

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v

    @field_validator("cache_max_entries", "sweep_interval")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("resolve_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("resolve_timeout_seconds must be > 0")
        return v


class MatchingConfig(BaseModel):
    """Title matching between a query and provider listings."""

    title_match_threshold: float = Field(
        default=0.7,
        description="Minimum fuzzy similarity for a non-exact listing match.",
    )
    year_tolerance: int = Field(
        default=1,
        description="Allowed year difference (±N years) counted as agreement.",
    )
    sequel_penalty: float = Field(
        default=0.35,
        description="Similarity penalty when only one side carries a sequel number.",
    )

    @field_validator("title_match_threshold", "sequel_penalty")
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be within [0, 1]")
        return v

    @field_validator("year_tolerance")
    @classmethod
    def _validate_tolerance(cls, v: int) -> int:
        if v < 0:
            raise ValueError("year_tolerance must be >= 0")
        return v


class VoeConfig(BaseModel):
    """VOE hoster resolver."""

    max_redirects: int = Field(
        default=5,
        description="JavaScript redirect pages followed before giving up.",
    )
    markers: list[str] = Field(
        default=["@#", "^^", "~@", "%?", "*~", "!!", "#&"],
        description="Junk markers stripped from the payload when the page has none.",
    )
    extra_domains: list[str] = Field(
        default_factory=list,
        description="Mirror domains without 'voe' in the host name.",
    )

    @field_validator("markers", "extra_domains", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> Any:
        return _split_csv(v)

    @field_validator("markers")
    @classmethod
    def _validate_markers(cls, v: list[str]) -> list[str]:
        if any(not marker for marker in v):
            raise ValueError("markers must not be empty strings")
        return v

    @field_validator("max_redirects")
    @classmethod
    def _validate_redirects(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_redirects must be >= 0")
        return v


class FilmpalastConfig(BaseModel):
    """filmpalast.to provider."""

    domains: list[str] = Field(
        default=["filmpalast.to"],
        description="Primary domain first, then mirrors.",
    )
    preferred_hosters: list[str] = Field(
        default=["voe"],
        description="Hoster links picked first from a detail page, in order.",
    )

    @field_validator("domains", "preferred_hosters", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> Any:
        return _split_csv(v)

    @field_validator("domains")
    @classmethod
    def _validate_domains(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one domain is required")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/resolution/matching/voe/filmpalast).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="playarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Per-request timeout for provider and hoster pages.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default="Playarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing requests that do not send browser headers.",
    )
    http_retry_max_attempts: int = Field(
        default=2,
        validation_alias=AliasChoices(
            "http_retry_max_attempts",
            AliasPath("http", "retry_max_attempts"),
        ),
        description="Retries after a 429/503 or connection failure.",
    )
    http_retry_backoff_base: float = Field(
        default=0.5,
        validation_alias=AliasChoices(
            "http_retry_backoff_base",
            AliasPath("http", "retry_backoff_base"),
        ),
        description="First retry delay (seconds); doubled per attempt.",
    )
    http_retry_max_backoff: float = Field(
        default=10.0,
        validation_alias=AliasChoices(
            "http_retry_max_backoff",
            AliasPath("http", "retry_max_backoff"),
        ),
        description="Upper bound for a single retry delay (seconds).",
    )
    http_rate_limit_rps: float = Field(
        default=5.0,
        validation_alias=AliasChoices(
            "http_rate_limit_rps",
            AliasPath("http", "rate_limit_rps"),
        ),
        description="Requests per second per domain. 0 disables rate limiting.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    voe: VoeConfig = Field(default_factory=VoeConfig)
    filmpalast: FilmpalastConfig = Field(default_factory=FilmpalastConfig)

    @field_validator("http_timeout_seconds", "http_retry_max_backoff")
    @classmethod
    def _validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("http_retry_max_attempts")
    @classmethod
    def _validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_retry_max_attempts must be >= 0")
        return v

    @field_validator("http_retry_backoff_base", "http_rate_limit_rps")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
                "retry_max_attempts": self.http_retry_max_attempts,
                "retry_backoff_base": self.http_retry_backoff_base,
                "retry_max_backoff": self.http_retry_max_backoff,
                "rate_limit_rps": self.http_rate_limit_rps,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "resolution": self.resolution.model_dump(),
            "matching": self.matching.model_dump(),
            "voe": self.voe.model_dump(),
            "filmpalast": self.filmpalast.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read PLAYARR_* variables, converts
    them to a dict of set values and merges that over YAML/defaults
    before validating AppConfig.

    Supported env var examples (flat, explicit):
    - PLAYARR_HTTP_TIMEOUT_SECONDS
    - PLAYARR_LOG_LEVEL
    - PLAYARR_CACHE_TTL_SECONDS
    - PLAYARR_PROVIDER_ORDER=filmpalast
    - PLAYARR_FILMPALAST_DOMAINS=filmpalast.to,filmpalast.sx
    """

    model_config = SettingsConfigDict(
        env_prefix="PLAYARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None
    http_retry_max_attempts: Optional[int] = None
    http_rate_limit_rps: Optional[float] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_ttl_seconds: Optional[int] = None
    cache_max_entries: Optional[int] = None
    resolve_timeout_seconds: Optional[float] = None
    # Comma separated; parsed by the section models
    provider_order: Optional[str] = None

    title_match_threshold: Optional[float] = None

    voe_max_redirects: Optional[int] = None
    filmpalast_domains: Optional[str] = None
    filmpalast_preferred_hosters: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
