"""Shared test fixtures and configuration for FPA backend tests."""
import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from fpa.database import build_engine, build_session_factory, init_models
from fpa.scenarios.levers import FinancialModel
from fpa.scenarios.models import ScenarioType
from fpa.scenarios.schemas import Assumption, ScenarioCreate
from fpa.scenarios.scoring import score_scenario
from fpa.scenarios.store import ScenarioStore


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine):
    """Scenario store backed by the in-memory database."""
    return ScenarioStore(build_session_factory(db_engine))


@pytest.fixture
def financial_model():
    """The default financial baseline: 100M revenue, 75M costs, 15% / 3%."""
    return FinancialModel(
        base_revenue=100_000_000,
        base_costs=75_000_000,
        revenue_growth=0.15,
        cost_inflation=0.03,
        labor_cost_share=0.6,
        marketing_reference_spend=2_500_000,
        marketing_roi=5.0,
        default_range=0.2,
    )


@pytest.fixture
def budget_assumptions():
    return [
        Assumption(variable="revenue_growth", base_value=15, unit="%", category="revenue"),
        Assumption(variable="cost_inflation", base_value=3, unit="%", category="cost"),
        Assumption(variable="headcount_growth", base_value=10, unit="%", category="hr"),
        Assumption(variable="marketing_spend", base_value=2_500_000, unit="USD", category="cost"),
    ]


@pytest.fixture
def make_scenario(store):
    """Factory creating a scenario; ``active=True`` scores it so it becomes active."""

    async def _make(
        name="Test Scenario",
        scenario_type=ScenarioType.BUDGET,
        assumptions=None,
        actor="user_001",
        active=False,
        **kwargs,
    ):
        scenario = await store.create(
            ScenarioCreate(name=name, type=scenario_type, assumptions=assumptions, **kwargs),
            actor=actor,
        )
        if active:
            await score_scenario(store, scenario.id, persist=True, actor=actor)
            scenario = await store.get(scenario.id)
        return scenario

    return _make
