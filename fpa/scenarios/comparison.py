"""Comparison Analyzer - Variance of scenarios against a baseline."""
import logging
from typing import List, Optional, Sequence

from fpa.scenarios.errors import InsufficientScenariosError
from fpa.scenarios.schemas import (
    ComparisonResult,
    MetricValue,
    MetricVariance,
    ScenarioResponse,
    ScenarioSummary,
    ScenarioVariance,
)
from fpa.scenarios.store import ScenarioStore

logger = logging.getLogger(__name__)

DEFAULT_METRICS = ["projected_revenue", "projected_costs", "projected_ebitda", "ebitda_margin"]


def metric_value(scenario: ScenarioResponse, metric: str) -> float:
    """Cached result for a metric; unscored scenarios and unknown metrics count as 0."""
    if scenario.results is None:
        return 0
    return scenario.results.model_dump().get(metric) or 0


def metric_variance(metric: str, base_value: float, compare_value: float) -> MetricVariance:
    variance = compare_value - base_value
    variance_percent = (variance / base_value) * 100 if base_value != 0 else 0
    return MetricVariance(
        metric=metric,
        base_value=base_value,
        compare_value=compare_value,
        variance=variance,
        variance_percent=variance_percent,
    )


def compare_scenarios(scenarios: List[ScenarioResponse], metrics: Sequence[str]) -> ComparisonResult:
    """The first scenario is the baseline for every variance."""
    comparison = {
        metric: [
            MetricValue(scenario_id=s.id, scenario_name=s.name, value=metric_value(s, metric))
            for s in scenarios
        ]
        for metric in metrics
    }

    baseline = scenarios[0]
    variance_analysis = [
        ScenarioVariance(
            scenario_id=scenario.id,
            scenario_name=scenario.name,
            vs_baseline=baseline.name,
            variances=[
                metric_variance(metric, metric_value(baseline, metric), metric_value(scenario, metric))
                for metric in metrics
            ],
        )
        for scenario in scenarios[1:]
    ]

    return ComparisonResult(
        baseline_id=baseline.id,
        scenarios=[
            ScenarioSummary(id=s.id, name=s.name, type=s.type, status=s.status, results=s.results)
            for s in scenarios
        ],
        comparison=comparison,
        variance_analysis=variance_analysis,
    )


class ComparisonAnalyzer:
    """Side-by-side comparison of cached scenario results."""

    def __init__(self, store: ScenarioStore):
        self.store = store

    async def compare(
        self,
        scenario_ids: Sequence[str],
        metrics: Optional[Sequence[str]] = None,
    ) -> ComparisonResult:
        """
        Compare scenarios against the first one.

        Raises:
            InsufficientScenariosError: fewer than two ids
            ScenarioNotFoundError: any id is unknown
        """
        if len(scenario_ids) < 2:
            raise InsufficientScenariosError(len(scenario_ids))

        scenarios = [await self.store.get(scenario_id) for scenario_id in scenario_ids]
        unscored = [s.id for s in scenarios if s.results is None]
        if unscored:
            logger.debug(f"Comparing scenarios without results (treated as 0): {unscored}")

        result = compare_scenarios(scenarios, list(metrics or DEFAULT_METRICS))
        logger.info(f"Compared {len(scenarios)} scenarios against baseline {result.baseline_id}")
        return result
