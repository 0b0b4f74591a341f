"""Scenario Planning Models - Scenario registry and version trail."""
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime, timezone
import secrets
import enum

from fpa.database import Base

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_id(prefix: str) -> str:
    """Generate a unique ID with a prefix."""
    return f"{prefix}_{secrets.token_hex(6)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScenarioType(str, enum.Enum):
    """Scenario types for financial planning."""
    BUDGET = "budget"
    FORECAST = "forecast"
    WHAT_IF = "what_if"
    SENSITIVITY = "sensitivity"


class ScenarioStatus(str, enum.Enum):
    """Scenario lifecycle status."""
    DRAFT = "draft"          # Being built
    ACTIVE = "active"        # Scored, ready for review
    APPROVED = "approved"    # Signed off, immutable
    ARCHIVED = "archived"    # Terminal


class Scenario(Base):
    """A named set of financial assumptions plus its lifecycle status."""
    __tablename__ = "scenarios"

    id = Column(String, primary_key=True, default=lambda: generate_id("scn"))

    # Scenario identification
    name = Column(String, nullable=False)
    description = Column(String, default="")
    scenario_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=ScenarioStatus.DRAFT.value, index=True)

    # Assumptions (JSON list, one entry per variable)
    # e.g., [{"variable": "revenue_growth", "base_value": 15, "unit": "%", "category": "revenue"}]
    assumptions = Column(JSONType, nullable=False, default=list)
    time_horizon = Column(Integer, nullable=False, default=12)  # months

    # Cached scoring projection
    # e.g., {"projected_revenue": ..., "projected_costs": ..., "projected_ebitda": ..., "ebitda_margin": ...}
    results = Column(JSONType, nullable=True)

    # Approval tracking
    approved_by = Column(String)
    approved_at = Column(DateTime(timezone=True))
    approval_comments = Column(Text)
    is_baseline = Column(Boolean, nullable=False, default=False)

    # Metadata
    created_by = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class ScenarioVersion(Base):
    """Append-only audit entry for a substantive scenario edit."""
    __tablename__ = "scenario_versions"

    id = Column(String, primary_key=True, default=lambda: generate_id("scver"))
    scenario_id = Column(String, nullable=False, index=True)  # no FK: entries outlive deleted scenarios
    version = Column(Integer, nullable=False)

    # What changed?
    changes = Column(JSONType, nullable=False, default=list)    # human-readable lines
    variables = Column(JSONType, nullable=False, default=list)  # assumption variables touched

    # Who and when?
    updated_by = Column(String)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_scenario_versions_scenario_version", "scenario_id", "version", unique=True),
    )
