"""
Demo scenario set for development.

Builds the reference scenarios through the public store operations so every
lifecycle rule applies:
- FY Base Budget (budget, approved baseline)
- Aggressive Growth Scenario (what_if, active)
- Conservative Outlook (forecast, draft)
- Market Sensitivity Analysis (sensitivity, active)
"""
import logging
from typing import Any, Dict

from fpa.scenarios.models import ScenarioType
from fpa.scenarios.schemas import Assumption, ScenarioCreate
from fpa.scenarios.scoring import score_scenario
from fpa.scenarios.store import ScenarioStore

logger = logging.getLogger(__name__)

DEMO_USER_ID = "user_001"
DEMO_ANALYST_ID = "user_002"


def _assumption(variable: str, base_value: float, unit: str, category: str, **bounds) -> Assumption:
    return Assumption(variable=variable, base_value=base_value, unit=unit, category=category, **bounds)


async def seed_demo_scenarios(store: ScenarioStore) -> Dict[str, Any]:
    """Create the demo scenarios and return their ids by key."""
    budget = await store.create(ScenarioCreate(
        name="FY Base Budget",
        description="Baseline budget scenario for the fiscal year",
        type=ScenarioType.BUDGET,
        assumptions=[
            _assumption("revenue_growth", 15, "%", "revenue"),
            _assumption("cost_inflation", 3, "%", "cost"),
            _assumption("headcount_growth", 10, "%", "hr"),
            _assumption("marketing_spend", 2_500_000, "USD", "cost"),
        ],
    ), actor=DEMO_USER_ID)
    await score_scenario(store, budget.id, persist=True, actor=DEMO_USER_ID)
    await store.approve(
        budget.id,
        comments="Board-approved operating budget",
        set_as_baseline=True,
        actor=DEMO_USER_ID,
    )

    growth = await store.create(ScenarioCreate(
        name="Aggressive Growth Scenario",
        description="What-if scenario with aggressive growth assumptions",
        type=ScenarioType.WHAT_IF,
        assumptions=[
            _assumption("revenue_growth", 25, "%", "revenue", min_value=20, max_value=30),
            _assumption("cost_inflation", 4, "%", "cost"),
            _assumption("headcount_growth", 20, "%", "hr"),
            _assumption("marketing_spend", 4_000_000, "USD", "cost"),
        ],
    ), actor=DEMO_USER_ID)
    await score_scenario(store, growth.id, persist=True, actor=DEMO_USER_ID)

    conservative = await store.create(ScenarioCreate(
        name="Conservative Outlook",
        description="Conservative scenario with lower growth expectations",
        type=ScenarioType.FORECAST,
        assumptions=[
            _assumption("revenue_growth", 8, "%", "revenue", min_value=5, max_value=12),
            _assumption("cost_inflation", 2.5, "%", "cost"),
            _assumption("headcount_growth", 5, "%", "hr"),
            _assumption("marketing_spend", 2_000_000, "USD", "cost"),
        ],
    ), actor=DEMO_ANALYST_ID)

    market = await store.create(ScenarioCreate(
        name="Market Sensitivity Analysis",
        description="Sensitivity analysis on key market variables",
        type=ScenarioType.SENSITIVITY,
        time_horizon=24,
        assumptions=[
            _assumption("market_share", 15, "%", "market", min_value=10, max_value=20),
            _assumption("price_elasticity", -1.2, "", "market", min_value=-1.5, max_value=-0.8),
            _assumption("customer_churn", 5, "%", "customer", min_value=3, max_value=8),
        ],
    ), actor=DEMO_USER_ID)
    await score_scenario(store, market.id, persist=True, actor=DEMO_USER_ID)

    result = {
        "budget": budget.id,
        "aggressive_growth": growth.id,
        "conservative": conservative.id,
        "market_sensitivity": market.id,
    }
    logger.info(f"Demo scenarios seeded successfully: {result}")
    return result
