"""Scenario scoring - the deterministic projection cached on a scenario."""
import logging
from typing import Optional

from fpa.scenarios.levers import FinancialModel, Lever
from fpa.scenarios.schemas import ScenarioResponse, ScenarioResults
from fpa.scenarios.store import ScenarioStore

logger = logging.getLogger(__name__)


def project_results(scenario: ScenarioResponse, model: FinancialModel) -> ScenarioResults:
    """
    Undisturbed point of the simulation model.

    Revenue growth and cost inflation come from the scenario's base values,
    falling back to the baseline rates.
    """
    revenue_growth = model.revenue_growth
    cost_inflation = model.cost_inflation
    for assumption in scenario.assumptions:
        lever = Lever.from_variable(assumption.variable)
        if lever == Lever.REVENUE_GROWTH:
            revenue_growth = assumption.base_value / 100
        elif lever == Lever.COST_INFLATION:
            cost_inflation = assumption.base_value / 100

    revenue = model.base_revenue * (1 + revenue_growth)
    costs = model.base_costs * (1 + cost_inflation)
    ebitda = revenue - costs
    return ScenarioResults(
        projected_revenue=revenue,
        projected_costs=costs,
        projected_ebitda=ebitda,
        ebitda_margin=(ebitda / revenue) * 100 if revenue else 0,
    )


async def score_scenario(
    store: ScenarioStore,
    scenario_id: str,
    persist: bool = False,
    actor: Optional[str] = None,
    model: Optional[FinancialModel] = None,
) -> ScenarioResults:
    """
    Score a scenario and optionally cache the projection on it.

    Persisting moves a draft scenario to active.
    """
    scenario = await store.get(scenario_id)
    results = project_results(scenario, model or FinancialModel.from_settings())

    if persist:
        await store.record_results(scenario_id, results, actor=actor)
    logger.info(f"Scored {scenario_id}: EBITDA {results.projected_ebitda:,.0f} (persisted={persist})")
    return results
