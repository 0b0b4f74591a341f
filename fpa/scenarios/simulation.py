"""
Simulation Engine - Monte Carlo outcome distributions for a scenario.

Each trial starts from the baseline growth and inflation rates. A
revenue_growth or cost_inflation assumption replaces its rate with a
uniform draw inside the assumption's bounds (percent units). Trials are
aggregated only once the full set has run.
"""
import logging
import math
import random
import statistics
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fpa.config import settings
from fpa.scenarios.levers import FinancialModel, Lever
from fpa.scenarios.schemas import (
    ConfidenceInterval,
    ConfidenceIntervals,
    DistributionBucket,
    ScenarioResponse,
    SimulationResult,
    SimulationSummary,
)
from fpa.scenarios.store import ScenarioStore

logger = logging.getLogger(__name__)


@dataclass
class TrialSet:
    """Per-trial projections, index-aligned."""
    revenue: List[float] = field(default_factory=list)
    costs: List[float] = field(default_factory=list)
    ebitda: List[float] = field(default_factory=list)


def run_trials(
    scenario: ScenarioResponse,
    iterations: int,
    rng: random.Random,
    model: FinancialModel,
) -> TrialSet:
    """Run ``iterations`` trials of the parametric model."""
    samplers = []
    for assumption in scenario.assumptions:
        lever = Lever.from_variable(assumption.variable)
        if lever in (Lever.REVENUE_GROWTH, Lever.COST_INFLATION):
            samplers.append((lever, assumption.bounds(model.default_range)))

    trials = TrialSet()
    for _ in range(iterations):
        revenue_growth = model.revenue_growth
        cost_growth = model.cost_inflation

        for lever, (low, high) in samplers:
            sample = rng.uniform(low, high) / 100
            if lever == Lever.REVENUE_GROWTH:
                revenue_growth = sample
            else:
                cost_growth = sample

        projected_revenue = model.base_revenue * (1 + revenue_growth)
        projected_costs = model.base_costs * (1 + cost_growth)

        trials.revenue.append(projected_revenue)
        trials.costs.append(projected_costs)
        trials.ebitda.append(projected_revenue - projected_costs)

    return trials


def confidence_interval(values: Sequence[float], confidence_level: float) -> ConfidenceInterval:
    """
    Percentile interval on the sorted trials.

    The upper index is clamped to the last trial; at high confidence with few
    iterations floor((1 + cl) / 2 * n) can equal n.
    """
    ordered = sorted(values)
    n = len(ordered)
    lower_index = math.floor((1 - confidence_level) / 2 * n)
    upper_index = min(math.floor((1 + confidence_level) / 2 * n), n - 1)
    return ConfidenceInterval(
        lower=ordered[lower_index],
        upper=ordered[upper_index],
        confidence=confidence_level,
    )


def _format_millions(value: float) -> str:
    return f"{value / 1_000_000:.1f}M"


def build_histogram(values: Sequence[float], bins: int) -> List[DistributionBucket]:
    """Equal-width histogram; every value lands in exactly one bucket."""
    low = min(values)
    high = max(values)
    bin_size = (high - low) / bins

    counts = [0] * bins
    for value in values:
        if bin_size == 0:
            # Degenerate distribution (no sampled levers): all trials share one value
            index = 0
        else:
            index = min(math.floor((value - low) / bin_size), bins - 1)
        counts[index] += 1

    total = len(values)
    buckets = []
    for index, count in enumerate(counts):
        bucket_low = low + index * bin_size
        bucket_high = low + (index + 1) * bin_size
        buckets.append(DistributionBucket(
            bucket=f"{_format_millions(bucket_low)} - {_format_millions(bucket_high)}",
            lower=bucket_low,
            upper=bucket_high,
            count=count,
            percentage=count / total * 100,
        ))
    return buckets


def summarize(
    scenario_id: str,
    trials: TrialSet,
    confidence_level: float,
    bins: int,
    seed: Optional[int] = None,
) -> SimulationResult:
    """Aggregate a complete trial set into the simulation result."""
    return SimulationResult(
        scenario_id=scenario_id,
        iterations=len(trials.revenue),
        seed=seed,
        results=SimulationSummary(
            mean_revenue=statistics.fmean(trials.revenue),
            mean_costs=statistics.fmean(trials.costs),
            mean_ebitda=statistics.fmean(trials.ebitda),
            std_revenue=statistics.pstdev(trials.revenue),
            std_costs=statistics.pstdev(trials.costs),
            std_ebitda=statistics.pstdev(trials.ebitda),
        ),
        confidence_intervals=ConfidenceIntervals(
            revenue=confidence_interval(trials.revenue, confidence_level),
            ebitda=confidence_interval(trials.ebitda, confidence_level),
        ),
        distribution=build_histogram(trials.ebitda, bins),
    )


class SimulationEngine:
    """
    Monte Carlo runs over stored scenarios.

    Usage:
        engine = SimulationEngine(store)
        result = await engine.simulate("scn_001", iterations=1000, seed=42)
    """

    def __init__(
        self,
        store: ScenarioStore,
        model: Optional[FinancialModel] = None,
        bins: int = settings.HISTOGRAM_BINS,
        default_seed: Optional[int] = settings.SIMULATION_SEED,
    ):
        self.store = store
        self.model = model or FinancialModel.from_settings()
        self.bins = bins
        self.default_seed = default_seed

    async def simulate(
        self,
        scenario_id: str,
        iterations: int = 1000,
        confidence_level: float = 0.95,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> SimulationResult:
        """
        Simulate a scenario's outcome distribution.

        Args:
            scenario_id: Scenario to simulate (read only)
            iterations: Number of trials (100-10000, validated upstream)
            confidence_level: Interval coverage (0.50-0.99, validated upstream)
            seed: Seed for a fresh Random; defaults to the configured seed
            rng: Explicit random source, takes precedence over seed

        Raises:
            ScenarioNotFoundError: unknown scenario id
        """
        scenario = await self.store.get(scenario_id)

        if rng is None:
            seed = seed if seed is not None else self.default_seed
            rng = random.Random(seed)
        else:
            # The caller's source drove the run, not a seed
            seed = None

        trials = run_trials(scenario, iterations, rng, self.model)
        result = summarize(scenario_id, trials, confidence_level, self.bins, seed=seed)

        logger.info(
            f"Simulated {scenario_id}: {iterations} iterations, "
            f"mean EBITDA {result.results.mean_ebitda:,.0f}"
        )
        return result
