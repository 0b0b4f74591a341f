"""Scenario Planning API routes."""
from fastapi import APIRouter, Depends, Header, Query
from typing import List, Optional

from fpa.database import AsyncSessionLocal
from fpa.scenarios import schemas
from fpa.scenarios.comparison import ComparisonAnalyzer
from fpa.scenarios.models import ScenarioType, ScenarioStatus
from fpa.scenarios.scoring import score_scenario
from fpa.scenarios.sensitivity import SensitivityAnalyzer
from fpa.scenarios.simulation import SimulationEngine
from fpa.scenarios.store import ScenarioStore

router = APIRouter()

_store = ScenarioStore(AsyncSessionLocal)


def get_store() -> ScenarioStore:
    """Scenario store dependency."""
    return _store


async def get_actor_id(x_user_id: str = Header("anonymous")) -> str:
    """Acting user as supplied by the upstream identity provider."""
    return x_user_id


# ============================================================================
# ANALYSIS ROUTES
# ============================================================================

@router.post("/simulate", response_model=schemas.SimulationResult)
async def run_simulation(
    data: schemas.SimulationRequest,
    store: ScenarioStore = Depends(get_store),
):
    """Run a Monte Carlo simulation on a scenario."""
    return await SimulationEngine(store).simulate(
        data.scenario_id,
        iterations=data.iterations,
        confidence_level=data.confidence_level,
        seed=data.seed,
    )


@router.post("/compare", response_model=schemas.ComparisonResult)
async def compare_scenarios(
    data: schemas.CompareScenariosRequest,
    store: ScenarioStore = Depends(get_store),
):
    """Compare scenarios against the first one as baseline."""
    return await ComparisonAnalyzer(store).compare(data.scenario_ids, data.metrics)


@router.post("/sensitivity", response_model=schemas.SensitivityResult)
async def run_sensitivity_analysis(
    data: schemas.SensitivityRequest,
    store: ScenarioStore = Depends(get_store),
):
    """Run a sensitivity (tornado) analysis on a scenario."""
    return await SensitivityAnalyzer(store).analyze(
        data.scenario_id,
        data.variables,
        range_percent=data.range_percent,
        steps=data.steps,
    )


# ============================================================================
# SCENARIO ROUTES
# ============================================================================

@router.get("", response_model=schemas.ScenarioListResponse)
async def get_scenarios(
    scenario_type: Optional[ScenarioType] = Query(None, alias="type"),
    status: Optional[ScenarioStatus] = None,
    created_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    store: ScenarioStore = Depends(get_store),
):
    """List scenarios, most recently updated first."""
    return await store.list(
        scenario_type=scenario_type,
        status=status,
        created_by=created_by,
        page=page,
        limit=limit,
    )


@router.post("", response_model=schemas.ScenarioResponse)
async def create_scenario(
    data: schemas.ScenarioCreate,
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Create a new draft scenario."""
    return await store.create(data, actor=actor_id)


@router.get("/{scenario_id}", response_model=schemas.ScenarioResponse)
async def get_scenario(
    scenario_id: str,
    store: ScenarioStore = Depends(get_store),
):
    """Get a scenario by ID."""
    return await store.get(scenario_id)


@router.put("/{scenario_id}", response_model=schemas.ScenarioResponse)
async def update_scenario(
    scenario_id: str,
    data: schemas.ScenarioUpdate,
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Update a scenario. Approved scenarios can only be archived."""
    return await store.update(scenario_id, data, actor=actor_id)


@router.delete("/{scenario_id}")
async def delete_scenario(
    scenario_id: str,
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Delete a scenario that is not approved."""
    await store.delete(scenario_id, actor=actor_id)
    return {"message": "Scenario deleted successfully"}


@router.post("/{scenario_id}/score", response_model=schemas.ScenarioResults)
async def score(
    scenario_id: str,
    persist: bool = Query(False, description="Cache the projection on the scenario"),
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Compute the deterministic projection of a scenario."""
    return await score_scenario(store, scenario_id, persist=persist, actor=actor_id)


@router.post("/{scenario_id}/approve", response_model=schemas.ScenarioResponse)
async def approve_scenario(
    scenario_id: str,
    data: schemas.ApproveScenarioRequest,
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Approve an active scenario, optionally as the baseline for its type."""
    return await store.approve(
        scenario_id,
        comments=data.comments,
        set_as_baseline=data.set_as_baseline,
        actor=actor_id,
    )


@router.get("/{scenario_id}/versions", response_model=List[schemas.VersionEntry])
async def get_scenario_versions(
    scenario_id: str,
    store: ScenarioStore = Depends(get_store),
):
    """Get the edit history of a scenario, most recent first."""
    return await store.versions(scenario_id)


@router.post("/{scenario_id}/clone", response_model=schemas.ScenarioResponse)
async def clone_scenario(
    scenario_id: str,
    data: schemas.CloneScenarioRequest,
    store: ScenarioStore = Depends(get_store),
    actor_id: str = Depends(get_actor_id),
):
    """Clone a scenario into a new draft."""
    return await store.clone(scenario_id, data.name, actor=actor_id)
