"""Sensitivity Analyzer - One-at-a-time sweeps and tornado ranking."""
import logging
from typing import List, Optional, Sequence, Tuple

from fpa.scenarios.levers import FinancialModel, Lever, calculate_impact
from fpa.scenarios.schemas import (
    Assumption,
    SensitivityPoint,
    SensitivityResult,
    TornadoEntry,
    ValueRange,
    VariableSensitivity,
)
from fpa.scenarios.store import ScenarioStore

logger = logging.getLogger(__name__)


def sweep_assumption(
    assumption: Assumption,
    range_percent: float,
    steps: int,
    model: FinancialModel,
) -> Tuple[VariableSensitivity, TornadoEntry]:
    """
    Vary one assumption across +/- range_percent of its base value.

    Returns the steps + 1 evaluated points and the variable's tornado entry.
    """
    lever = Lever.from_variable(assumption.variable)
    base_value = assumption.base_value
    min_value = base_value * (1 - range_percent / 100)
    max_value = base_value * (1 + range_percent / 100)
    step_size = (max_value - min_value) / steps

    points = []
    for i in range(steps + 1):
        test_value = min_value + i * step_size
        impact = calculate_impact(lever, test_value, model)
        points.append(SensitivityPoint(
            input_value=test_value,
            output_revenue=impact.revenue,
            output_ebitda=impact.ebitda,
        ))

    low = calculate_impact(lever, min_value, model)
    high = calculate_impact(lever, max_value, model)
    base = calculate_impact(lever, base_value, model)

    sensitivity = VariableSensitivity(
        variable=assumption.variable,
        base_value=base_value,
        range=ValueRange(min=min_value, max=max_value),
        sensitivity_data=points,
    )
    tornado = TornadoEntry(
        variable=assumption.variable,
        low_input=min_value,
        high_input=max_value,
        low_impact=low.ebitda - base.ebitda,
        high_impact=high.ebitda - base.ebitda,
        range=high.ebitda - low.ebitda,
    )
    return sensitivity, tornado


def rank_tornado(entries: List[TornadoEntry]) -> List[TornadoEntry]:
    """Largest absolute EBITDA swing first."""
    return sorted(entries, key=lambda entry: abs(entry.range), reverse=True)


class SensitivityAnalyzer:
    """
    Sensitivity analysis over stored scenarios.

    Variables the scenario has no assumption for are skipped, not rejected;
    they are listed in ``skipped_variables`` of the result.
    """

    def __init__(self, store: ScenarioStore, model: Optional[FinancialModel] = None):
        self.store = store
        self.model = model or FinancialModel.from_settings()

    async def analyze(
        self,
        scenario_id: str,
        variables: Sequence[str],
        range_percent: float = 20,
        steps: int = 10,
    ) -> SensitivityResult:
        """Sweep each requested variable and rank them by impact."""
        scenario = await self.store.get(scenario_id)

        results = []
        tornado = []
        skipped = []
        for variable in variables:
            assumption = scenario.assumption_for(variable)
            if assumption is None:
                skipped.append(variable)
                continue
            sensitivity, entry = sweep_assumption(assumption, range_percent, steps, self.model)
            results.append(sensitivity)
            tornado.append(entry)

        if skipped:
            logger.debug(f"Sensitivity on {scenario_id} skipped variables without assumptions: {skipped}")
        logger.info(f"Sensitivity on {scenario_id}: {len(results)} variables, {steps} steps")

        return SensitivityResult(
            scenario_id=scenario_id,
            variables=list(variables),
            skipped_variables=skipped,
            range_percent=range_percent,
            steps=steps,
            results=results,
            tornado_chart=rank_tornado(tornado),
        )
