"""Pydantic schemas for scenario planning."""
from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional, List, Dict, Tuple
from datetime import datetime, timezone

from fpa.scenarios.models import ScenarioType, ScenarioStatus


# ============================================================================
# ASSUMPTION SCHEMAS
# ============================================================================

class Assumption(BaseModel):
    """A single uncertain input variable."""
    variable: str = Field(..., min_length=1)  # e.g., "revenue_growth"
    base_value: float
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    unit: Optional[str] = None  # display only
    category: Optional[str] = None

    def bounds(self, default_range: float) -> Tuple[float, float]:
        """Sampling range, falling back to +/- default_range of base_value."""
        low = self.min_value if self.min_value is not None else self.base_value * (1 - default_range)
        high = self.max_value if self.max_value is not None else self.base_value * (1 + default_range)
        return low, high


def _reject_duplicate_variables(assumptions: Optional[List[Assumption]]) -> Optional[List[Assumption]]:
    if assumptions is None:
        return assumptions
    seen = set()
    for assumption in assumptions:
        if assumption.variable in seen:
            raise ValueError(f"Duplicate assumption for variable '{assumption.variable}'")
        seen.add(assumption.variable)
    return assumptions


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# SCENARIO SCHEMAS
# ============================================================================

class ScenarioCreate(BaseModel):
    """Schema for creating a scenario."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: ScenarioType
    base_scenario_id: Optional[str] = None  # copy assumptions from this scenario
    assumptions: Optional[List[Assumption]] = None
    time_horizon: int = Field(12, ge=1, le=60)  # months

    @field_validator("assumptions")
    @classmethod
    def unique_variables(cls, value):
        return _reject_duplicate_variables(value)


class ScenarioUpdate(BaseModel):
    """Schema for updating a scenario. Type and id cannot be changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ScenarioStatus] = None
    assumptions: Optional[List[Assumption]] = None
    time_horizon: Optional[int] = Field(None, ge=1, le=60)

    model_config = {"extra": "forbid"}

    @field_validator("assumptions")
    @classmethod
    def unique_variables(cls, value):
        return _reject_duplicate_variables(value)


class ScenarioResults(BaseModel):
    """Cached scoring projection of a scenario."""
    projected_revenue: float = 0
    projected_costs: float = 0
    projected_ebitda: float = 0
    ebitda_margin: float = 0  # percent


class ScenarioResponse(BaseModel):
    """Schema for scenario response."""
    id: str
    name: str
    description: Optional[str]
    type: ScenarioType = Field(validation_alias=AliasChoices("scenario_type", "type"))
    status: ScenarioStatus
    assumptions: List[Assumption]
    time_horizon: int
    created_by: str
    created_at: datetime
    updated_at: datetime
    results: Optional[ScenarioResults] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_comments: Optional[str] = None
    is_baseline: bool = False

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", "approved_at")
    @classmethod
    def utc_timestamps(cls, value):
        return _as_utc(value)

    def assumption_for(self, variable: str) -> Optional[Assumption]:
        for assumption in self.assumptions:
            if assumption.variable == variable:
                return assumption
        return None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ScenarioListResponse(BaseModel):
    """A page of scenarios, most recently updated first."""
    data: List[ScenarioResponse]
    pagination: Pagination


class ApproveScenarioRequest(BaseModel):
    """Schema for approving a scenario."""
    comments: str
    set_as_baseline: bool = False


class CloneScenarioRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class VersionEntry(BaseModel):
    """One entry of a scenario's edit history."""
    version: int
    updated_by: Optional[str]
    updated_at: datetime
    changes: List[str]
    variables: List[str]

    @field_validator("updated_at")
    @classmethod
    def utc_timestamp(cls, value):
        return _as_utc(value)

    model_config = {"from_attributes": True}


# ============================================================================
# SIMULATION SCHEMAS
# ============================================================================

class SimulationRequest(BaseModel):
    """Schema for running a Monte Carlo simulation."""
    scenario_id: str
    iterations: int = Field(1000, ge=100, le=10000)
    confidence_level: float = Field(0.95, ge=0.5, le=0.99)
    seed: Optional[int] = None


class SimulationSummary(BaseModel):
    mean_revenue: float
    mean_costs: float
    mean_ebitda: float
    std_revenue: float
    std_costs: float
    std_ebitda: float


class ConfidenceInterval(BaseModel):
    lower: float
    upper: float
    confidence: float


class ConfidenceIntervals(BaseModel):
    revenue: ConfidenceInterval
    ebitda: ConfidenceInterval


class DistributionBucket(BaseModel):
    """One histogram bucket of the EBITDA distribution."""
    bucket: str  # e.g., "23.1M - 23.6M"
    lower: float
    upper: float
    count: int
    percentage: float


class SimulationResult(BaseModel):
    scenario_id: str
    iterations: int
    seed: Optional[int] = None
    results: SimulationSummary
    confidence_intervals: ConfidenceIntervals
    distribution: List[DistributionBucket]


# ============================================================================
# SENSITIVITY SCHEMAS
# ============================================================================

class SensitivityRequest(BaseModel):
    """Schema for running a sensitivity analysis."""
    scenario_id: str
    variables: List[str] = Field(..., min_length=1)
    range_percent: float = Field(20, ge=1, le=100)
    steps: int = Field(10, ge=3, le=50)


class SensitivityPoint(BaseModel):
    input_value: float
    output_revenue: float
    output_ebitda: float


class ValueRange(BaseModel):
    min: float
    max: float


class VariableSensitivity(BaseModel):
    variable: str
    base_value: float
    range: ValueRange
    sensitivity_data: List[SensitivityPoint]


class TornadoEntry(BaseModel):
    """EBITDA swing of one variable relative to its base value."""
    variable: str
    low_input: float
    high_input: float
    low_impact: float
    high_impact: float
    range: float


class SensitivityResult(BaseModel):
    scenario_id: str
    variables: List[str]  # echo of the request
    skipped_variables: List[str]  # requested but not on the scenario
    range_percent: float
    steps: int
    results: List[VariableSensitivity]
    tornado_chart: List[TornadoEntry]


# ============================================================================
# COMPARISON SCHEMAS
# ============================================================================

class CompareScenariosRequest(BaseModel):
    """Schema for comparing scenarios. The first id is the baseline."""
    scenario_ids: List[str]
    metrics: Optional[List[str]] = None


class MetricValue(BaseModel):
    scenario_id: str
    scenario_name: str
    value: float


class MetricVariance(BaseModel):
    metric: str
    base_value: float
    compare_value: float
    variance: float
    variance_percent: float


class ScenarioVariance(BaseModel):
    scenario_id: str
    scenario_name: str
    vs_baseline: str
    variances: List[MetricVariance]


class ScenarioSummary(BaseModel):
    id: str
    name: str
    type: ScenarioType
    status: ScenarioStatus
    results: Optional[ScenarioResults] = None


class ComparisonResult(BaseModel):
    baseline_id: str
    scenarios: List[ScenarioSummary]
    comparison: Dict[str, List[MetricValue]]
    variance_analysis: List[ScenarioVariance]
