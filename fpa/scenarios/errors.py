"""Errors raised by the scenario store and analyzers."""


class ScenarioError(Exception):
    """Base class for scenario planning errors."""


class ScenarioNotFoundError(ScenarioError):
    def __init__(self, scenario_id: str):
        self.scenario_id = scenario_id
        super().__init__(f"Scenario with ID {scenario_id} not found")


class InvalidStateError(ScenarioError):
    """A status transition outside the scenario lifecycle was requested."""


class AlreadyApprovedError(ScenarioError):
    def __init__(self, scenario_id: str):
        self.scenario_id = scenario_id
        super().__init__(f"Scenario {scenario_id} is already approved")


class ImmutableApprovedError(ScenarioError):
    """An approved scenario can only be archived."""


class InsufficientScenariosError(ScenarioError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"At least 2 scenarios required for comparison, got {count}")
