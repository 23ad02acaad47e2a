"""Models for governance violations and security findings."""

from typing import Literal

from pydantic import BaseModel, Field

GovernanceSeverity = Literal["error", "warning", "info"]
SecuritySeverity = Literal["critical", "high", "medium", "low", "info"]


class InspectionContext(BaseModel):
    """Identifies the test whose exchange is being inspected."""

    suite: str = Field(default="Unknown Suite")
    test: str = Field(default="Unknown Test")


class RuleViolation(BaseModel):
    """Raw violation reported by a governance rule."""

    category: str | None = None
    severity: GovernanceSeverity | None = None
    message: str | None = None
    location: str | None = None
    remediation: str | None = None


class CheckFinding(BaseModel):
    """Raw finding reported by a security check."""

    type: str | None = None
    severity: SecuritySeverity | None = None
    title: str | None = None
    description: str | None = None
    location: str | None = None
    evidence: str | None = None
    cwe: str | None = None
    remediation: str | None = None


class GovernanceViolation(BaseModel):
    """Normalized governance violation."""

    rule: str = Field(..., description="Name of the rule that reported it")
    category: str = Field(default="unknown")
    severity: GovernanceSeverity = Field(default="warning")
    message: str = Field(default="Governance violation detected")
    location: str = Field(default="response")
    remediation: str = Field(default="Review and fix the violation")
    endpoint: str | None = None
    method: str | None = None
    suite: str | None = None
    test: str | None = None


class SecurityFinding(BaseModel):
    """Normalized security finding."""

    check: str = Field(..., description="Name of the check that reported it")
    category: str | None = Field(default=None, description="Finding type")
    severity: SecuritySeverity = Field(default="medium")
    title: str = Field(default="Security finding")
    message: str = Field(default="Security issue detected")
    location: str = Field(default="response")
    evidence: str | None = None
    cwe: str | None = None
    remediation: str = Field(default="Review and address the security finding")
    endpoint: str | None = None
    method: str | None = None
    suite: str | None = None
    test: str | None = None
