"""Seed data routes for demo/development."""
from fastapi import APIRouter, Depends

from fpa.scenarios.routes import get_store
from fpa.scenarios.store import ScenarioStore
from fpa.seed.demo import seed_demo_scenarios

router = APIRouter()


@router.post("/seed/demo")
async def seed_demo(
    store: ScenarioStore = Depends(get_store),
):
    """
    Seed the store with the demo scenario set.

    Creates:
    - FY Base Budget, approved as the budget baseline
    - Aggressive Growth Scenario, scored (active)
    - Conservative Outlook, draft
    - Market Sensitivity Analysis, scored (active)

    Returns the created scenario ids by key.
    """
    return await seed_demo_scenarios(store)
