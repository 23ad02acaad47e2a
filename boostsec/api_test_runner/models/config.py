"""Configuration models for a test run."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

PluginSettings = dict[str, object]


class HttpConfig(BaseModel):
    """Configuration for the HTTP exchange client."""

    base_url: str = Field(default="", description="Prefix for relative URLs")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout (s)")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request"
    )


class GovernanceConfig(BaseModel):
    """Configuration for the governance engine."""

    enabled: bool = Field(default=False, description="Opt-in switch")
    rules: dict[str, PluginSettings] = Field(
        default_factory=dict, description="Rule name to rule settings"
    )


class SecurityConfig(BaseModel):
    """Configuration for the security scanner."""

    enabled: bool = Field(default=False, description="Opt-in switch")
    checks: dict[str, PluginSettings] = Field(
        default_factory=dict, description="Check name to check settings"
    )


class DatabaseConfig(BaseModel):
    """Configuration for result persistence."""

    enabled: bool = Field(default=False, description="Opt-in switch")
    url: str = Field(
        default="sqlite+aiosqlite:///api-test-results.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Log emitted SQL")
    create_schema: bool = Field(
        default=True, description="Create missing tables before reporting"
    )


class ThresholdsConfig(BaseModel):
    """Limits that fail a run even when every test passed."""

    governance_errors: int | None = Field(default=None, ge=0)
    governance_warnings: int | None = Field(default=None, ge=0)
    critical_findings: int | None = Field(default=None, ge=0)
    high_findings: int | None = Field(default=None, ge=0)
    pass_rate: float | None = Field(default=None, ge=0, le=100)


class RunnerConfig(BaseModel):
    """Complete configuration of a test run."""

    test_match: list[str] = Field(
        default_factory=lambda: ["tests/api/**/*.py"],
        description="Glob patterns of test modules",
    )
    timeout: float = Field(default=30.0, gt=0, description="Default test timeout (s)")
    retries: int = Field(default=0, ge=0, description="Default retries per test")
    bail: bool = Field(default=False, description="Stop after the first failure")
    parallel: bool = Field(
        default=False, description="Accepted for compatibility; tests run sequentially"
    )
    environment: str = Field(default="development")
    http: HttpConfig = Field(default_factory=HttpConfig)
    governance: GovernanceConfig = Field(default_factory=GovernanceConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    reporters: list[Literal["console", "json", "database"]] = Field(
        default_factory=lambda: ["console"]
    )
    json_output: Path = Field(default=Path("api-test-results.json"))
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
