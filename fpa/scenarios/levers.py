"""
Financial levers - the deterministic impact model behind scenario analysis.

A scenario assumption moves one lever of a fixed financial baseline:
revenue growth, cost inflation, headcount growth or marketing spend.
Any other variable is accepted and has no effect.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fpa.config import Settings, settings as default_settings


@dataclass(frozen=True)
class FinancialModel:
    """Undisturbed scenario figures shared by simulation, scoring and sensitivity."""
    base_revenue: float
    base_costs: float
    revenue_growth: float  # fraction, e.g. 0.15
    cost_inflation: float  # fraction, e.g. 0.03
    labor_cost_share: float
    marketing_reference_spend: float
    marketing_roi: float
    default_range: float  # +/- fraction of base_value when an assumption has no bounds

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "FinancialModel":
        config = config or default_settings
        return cls(
            base_revenue=config.BASE_REVENUE,
            base_costs=config.BASE_COSTS,
            revenue_growth=config.BASELINE_REVENUE_GROWTH,
            cost_inflation=config.BASELINE_COST_INFLATION,
            labor_cost_share=config.LABOR_COST_SHARE,
            marketing_reference_spend=config.MARKETING_REFERENCE_SPEND,
            marketing_roi=config.MARKETING_ROI,
            default_range=config.DEFAULT_ASSUMPTION_RANGE,
        )

    @property
    def baseline_revenue(self) -> float:
        return self.base_revenue * (1 + self.revenue_growth)

    @property
    def baseline_costs(self) -> float:
        return self.base_costs * (1 + self.cost_inflation)


class Lever(str, Enum):
    """Recognized assumption variables."""
    REVENUE_GROWTH = "revenue_growth"
    COST_INFLATION = "cost_inflation"
    HEADCOUNT_GROWTH = "headcount_growth"
    MARKETING_SPEND = "marketing_spend"
    UNKNOWN = "unknown"

    @classmethod
    def from_variable(cls, variable: str) -> "Lever":
        try:
            lever = cls(variable)
        except ValueError:
            return cls.UNKNOWN
        return lever


@dataclass(frozen=True)
class Impact:
    revenue: float
    costs: float

    @property
    def ebitda(self) -> float:
        return self.revenue - self.costs


def calculate_impact(lever: Lever, value: float, model: FinancialModel) -> Impact:
    """
    Revenue and costs with one lever set to ``value``.

    Percent levers (growth, inflation) take ``value`` in percent units. The
    line a lever does not move stays at its baseline rate.
    """
    if lever == Lever.MARKETING_SPEND:
        # Spend above the reference is a direct cost that returns ROI x in revenue
        additional_spend = value - model.marketing_reference_spend
        revenue = model.baseline_revenue + additional_spend * model.marketing_roi
        return Impact(revenue=revenue, costs=model.baseline_costs + additional_spend)

    revenue = model.baseline_revenue
    costs = model.baseline_costs

    if lever == Lever.REVENUE_GROWTH:
        revenue = model.base_revenue * (1 + value / 100)
    elif lever == Lever.COST_INFLATION:
        costs = model.base_costs * (1 + value / 100)
    elif lever == Lever.HEADCOUNT_GROWTH:
        costs = model.base_costs * (1 + (value / 100) * model.labor_cost_share)

    return Impact(revenue=revenue, costs=costs)
