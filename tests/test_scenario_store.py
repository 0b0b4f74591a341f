"""
Unit Tests for the Scenario Store.

Tests cover:
1. Create / get / list with filters and pagination
2. Update rules, including the approved-scenario lock
3. Lifecycle: scoring activates, approve, baseline archival
4. Delete, clone and the version trail
"""

import asyncio
from datetime import timedelta

import pytest
from pydantic import ValidationError

from fpa.scenarios.errors import (
    AlreadyApprovedError,
    ImmutableApprovedError,
    InvalidStateError,
    ScenarioNotFoundError,
)
from fpa.scenarios.models import ScenarioStatus, ScenarioType
from fpa.scenarios.schemas import (
    Assumption,
    ScenarioCreate,
    ScenarioResults,
    ScenarioUpdate,
)
from fpa.scenarios.store import describe_assumption_changes


# =============================================================================
# TEST: CREATE AND READ
# =============================================================================

class TestCreateAndGet:
    """Tests for create and get."""

    @pytest.mark.asyncio
    async def test_create_starts_in_draft(self, store, budget_assumptions):
        scenario = await store.create(
            ScenarioCreate(name="FY Budget", type=ScenarioType.BUDGET, assumptions=budget_assumptions),
            actor="user_001",
        )

        assert scenario.id.startswith("scn_")
        assert scenario.status == ScenarioStatus.DRAFT
        assert scenario.type == ScenarioType.BUDGET
        assert scenario.created_by == "user_001"
        assert scenario.time_horizon == 12
        assert scenario.results is None
        assert [a.variable for a in scenario.assumptions] == [
            "revenue_growth", "cost_inflation", "headcount_growth", "marketing_spend",
        ]

    @pytest.mark.asyncio
    async def test_get_returns_stored_scenario(self, store, make_scenario):
        created = await make_scenario(name="Lookup")

        fetched = await store.get(created.id)

        assert fetched.id == created.id
        assert fetched.name == "Lookup"

    @pytest.mark.asyncio
    async def test_read_timestamps_are_utc_aware(self, store, make_scenario):
        created = await make_scenario(name="Timestamps", active=True)
        await store.approve(created.id, comments="ok")

        fetched = await store.get(created.id)
        listed = (await store.list()).data[0]
        version = (await store.versions(created.id))[0]

        for timestamp in (fetched.created_at, fetched.updated_at, fetched.approved_at,
                          listed.updated_at, version.updated_at):
            assert timestamp.utcoffset() == timedelta(0)
        assert fetched.created_at == created.created_at
        assert fetched.updated_at >= created.updated_at

    @pytest.mark.asyncio
    async def test_get_unknown_id_raises_not_found(self, store):
        with pytest.raises(ScenarioNotFoundError):
            await store.get("scn_missing")

    @pytest.mark.asyncio
    async def test_create_copies_assumptions_from_base(self, store, make_scenario, budget_assumptions):
        base = await make_scenario(assumptions=budget_assumptions)

        derived = await store.create(
            ScenarioCreate(name="Derived", type=ScenarioType.WHAT_IF, base_scenario_id=base.id),
            actor="user_002",
        )

        assert derived.assumptions == base.assumptions
        assert derived.type == ScenarioType.WHAT_IF

    @pytest.mark.asyncio
    async def test_explicit_assumptions_win_over_base(self, store, make_scenario, budget_assumptions):
        base = await make_scenario(assumptions=budget_assumptions)

        derived = await store.create(
            ScenarioCreate(
                name="Derived",
                type=ScenarioType.WHAT_IF,
                base_scenario_id=base.id,
                assumptions=[],
            ),
            actor="user_002",
        )

        assert derived.assumptions == []

    @pytest.mark.asyncio
    async def test_create_with_missing_base_raises_not_found(self, store):
        with pytest.raises(ScenarioNotFoundError):
            await store.create(
                ScenarioCreate(name="Orphan", type=ScenarioType.BUDGET, base_scenario_id="scn_nope"),
                actor="user_001",
            )

    def test_duplicate_variables_are_rejected(self):
        with pytest.raises(ValidationError):
            ScenarioCreate(
                name="Dupes",
                type=ScenarioType.BUDGET,
                assumptions=[
                    Assumption(variable="revenue_growth", base_value=10),
                    Assumption(variable="revenue_growth", base_value=12),
                ],
            )

    def test_time_horizon_bounds(self):
        with pytest.raises(ValidationError):
            ScenarioCreate(name="Too long", type=ScenarioType.FORECAST, time_horizon=61)


# =============================================================================
# TEST: LIST
# =============================================================================

class TestList:
    """Tests for filtering, ordering and pagination."""

    @pytest.mark.asyncio
    async def test_sorted_by_updated_at_desc(self, store, make_scenario):
        first = await make_scenario(name="First")
        second = await make_scenario(name="Second")
        await store.update(first.id, ScenarioUpdate(description="touched"))

        page = await store.list()

        assert [s.name for s in page.data] == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_filters(self, store, make_scenario):
        await make_scenario(name="Budget A", scenario_type=ScenarioType.BUDGET, actor="alice")
        await make_scenario(name="Forecast B", scenario_type=ScenarioType.FORECAST, actor="bob")
        await make_scenario(name="Budget C", scenario_type=ScenarioType.BUDGET, actor="bob", active=True)

        budgets = await store.list(scenario_type=ScenarioType.BUDGET)
        by_bob = await store.list(created_by="bob")
        active = await store.list(status=ScenarioStatus.ACTIVE)

        assert {s.name for s in budgets.data} == {"Budget A", "Budget C"}
        assert {s.name for s in by_bob.data} == {"Forecast B", "Budget C"}
        assert [s.name for s in active.data] == ["Budget C"]

    @pytest.mark.asyncio
    async def test_pagination(self, store, make_scenario):
        for i in range(5):
            await make_scenario(name=f"Scenario {i}")

        page = await store.list(page=2, limit=2)

        assert len(page.data) == 2
        assert page.pagination.page == 2
        assert page.pagination.limit == 2
        assert page.pagination.total == 5
        assert page.pagination.pages == 3

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, store, make_scenario):
        await make_scenario()

        page = await store.list(limit=500)

        assert page.pagination.limit == 100


# =============================================================================
# TEST: UPDATE
# =============================================================================

class TestUpdate:
    """Tests for update and the approved-scenario lock."""

    @pytest.mark.asyncio
    async def test_update_fields(self, store, make_scenario):
        scenario = await make_scenario(name="Before")

        updated = await store.update(
            scenario.id, ScenarioUpdate(name="After", time_horizon=24), actor="user_001"
        )

        assert updated.name == "After"
        assert updated.time_horizon == 24
        assert updated.updated_at >= scenario.updated_at

    @pytest.mark.asyncio
    async def test_update_unknown_id_raises_not_found(self, store):
        with pytest.raises(ScenarioNotFoundError):
            await store.update("scn_missing", ScenarioUpdate(name="x"))

    def test_type_cannot_be_patched(self):
        with pytest.raises(ValidationError):
            ScenarioUpdate(type="forecast")

    @pytest.mark.asyncio
    async def test_status_patch_other_than_archived_is_rejected(self, store, make_scenario):
        scenario = await make_scenario()

        with pytest.raises(InvalidStateError):
            await store.update(scenario.id, ScenarioUpdate(status=ScenarioStatus.APPROVED))

        assert (await store.get(scenario.id)).status == ScenarioStatus.DRAFT

    @pytest.mark.asyncio
    async def test_any_state_can_be_archived(self, store, make_scenario):
        scenario = await make_scenario()

        archived = await store.update(scenario.id, ScenarioUpdate(status=ScenarioStatus.ARCHIVED))

        assert archived.status == ScenarioStatus.ARCHIVED

    @pytest.mark.asyncio
    async def test_approved_scenario_is_immutable(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.approve(scenario.id, comments="ok", actor="cfo")

        with pytest.raises(ImmutableApprovedError):
            await store.update(scenario.id, ScenarioUpdate(name="Renamed"))

        with pytest.raises(ImmutableApprovedError):
            await store.update(
                scenario.id,
                ScenarioUpdate(name="Renamed", status=ScenarioStatus.ARCHIVED),
            )

        current = await store.get(scenario.id)
        assert current.status == ScenarioStatus.APPROVED
        assert current.name == scenario.name

    @pytest.mark.asyncio
    async def test_approved_scenario_can_be_archived(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.approve(scenario.id, comments="ok", actor="cfo")

        archived = await store.update(scenario.id, ScenarioUpdate(status=ScenarioStatus.ARCHIVED))

        assert archived.status == ScenarioStatus.ARCHIVED


# =============================================================================
# TEST: LIFECYCLE
# =============================================================================

class TestLifecycle:
    """Tests for scoring activation, approval and baselines."""

    @pytest.mark.asyncio
    async def test_recording_results_activates_draft(self, store, make_scenario):
        scenario = await make_scenario()

        updated = await store.record_results(
            scenario.id, ScenarioResults(projected_revenue=1, projected_costs=1)
        )

        assert updated.status == ScenarioStatus.ACTIVE
        assert updated.results.projected_revenue == 1

    @pytest.mark.asyncio
    async def test_approve_active(self, store, make_scenario):
        scenario = await make_scenario(active=True)

        approved = await store.approve(scenario.id, comments="Looks right", actor="cfo")

        assert approved.status == ScenarioStatus.APPROVED
        assert approved.approved_by == "cfo"
        assert approved.approval_comments == "Looks right"

    @pytest.mark.asyncio
    async def test_approve_draft_raises_invalid_state(self, store, make_scenario):
        scenario = await make_scenario()

        with pytest.raises(InvalidStateError):
            await store.approve(scenario.id, comments="too early")

        assert (await store.get(scenario.id)).status == ScenarioStatus.DRAFT

    @pytest.mark.asyncio
    async def test_approve_twice_raises_already_approved(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.approve(scenario.id, comments="ok")

        with pytest.raises(AlreadyApprovedError):
            await store.approve(scenario.id, comments="again")

    @pytest.mark.asyncio
    async def test_archived_cannot_be_approved(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.update(scenario.id, ScenarioUpdate(status=ScenarioStatus.ARCHIVED))

        with pytest.raises(InvalidStateError):
            await store.approve(scenario.id, comments="revive")

    @pytest.mark.asyncio
    async def test_record_results_on_approved_raises(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.approve(scenario.id, comments="ok")

        with pytest.raises(ImmutableApprovedError):
            await store.record_results(scenario.id, ScenarioResults())

    @pytest.mark.asyncio
    async def test_baseline_archives_other_approved_of_same_type(self, store, make_scenario):
        old_budget = await make_scenario(name="Old budget", active=True)
        other_type = await make_scenario(name="Forecast", scenario_type=ScenarioType.FORECAST, active=True)
        await store.approve(old_budget.id, comments="ok", set_as_baseline=True)
        await store.approve(other_type.id, comments="ok")

        new_budget = await make_scenario(name="New budget", active=True)
        approved = await store.approve(new_budget.id, comments="new baseline", set_as_baseline=True)

        assert approved.is_baseline is True
        assert (await store.get(old_budget.id)).status == ScenarioStatus.ARCHIVED
        assert (await store.get(other_type.id)).status == ScenarioStatus.APPROVED
        approved_budgets = await store.list(
            scenario_type=ScenarioType.BUDGET, status=ScenarioStatus.APPROVED
        )
        assert [s.id for s in approved_budgets.data] == [new_budget.id]

    @pytest.mark.asyncio
    async def test_concurrent_baseline_approvals_leave_one_approved(self, store, make_scenario):
        first = await make_scenario(name="A", active=True)
        second = await make_scenario(name="B", active=True)

        await asyncio.gather(
            store.approve(first.id, comments="a", set_as_baseline=True),
            store.approve(second.id, comments="b", set_as_baseline=True),
        )

        approved = await store.list(scenario_type=ScenarioType.BUDGET, status=ScenarioStatus.APPROVED)
        assert approved.pagination.total == 1


# =============================================================================
# TEST: DELETE, CLONE, VERSIONS
# =============================================================================

class TestDeleteCloneVersions:
    """Tests for delete, clone and the version trail."""

    @pytest.mark.asyncio
    async def test_delete(self, store, make_scenario):
        scenario = await make_scenario()

        await store.delete(scenario.id)

        with pytest.raises(ScenarioNotFoundError):
            await store.get(scenario.id)

    @pytest.mark.asyncio
    async def test_delete_approved_raises(self, store, make_scenario):
        scenario = await make_scenario(active=True)
        await store.approve(scenario.id, comments="ok")

        with pytest.raises(ImmutableApprovedError):
            await store.delete(scenario.id)

        assert (await store.get(scenario.id)).status == ScenarioStatus.APPROVED

    @pytest.mark.asyncio
    async def test_clone_resets_lifecycle(self, store, make_scenario, budget_assumptions):
        original = await make_scenario(assumptions=budget_assumptions, active=True)
        await store.approve(original.id, comments="ok")

        cloned = await store.clone(original.id, "Copy", actor="user_002")

        assert cloned.id != original.id
        assert cloned.name == "Copy"
        assert cloned.status == ScenarioStatus.DRAFT
        assert cloned.created_by == "user_002"
        assert cloned.results is None
        assert cloned.assumptions == original.assumptions
        assert cloned.type == original.type

    @pytest.mark.asyncio
    async def test_clone_unknown_raises_not_found(self, store):
        with pytest.raises(ScenarioNotFoundError):
            await store.clone("scn_missing", "Copy", actor="user_001")

    @pytest.mark.asyncio
    async def test_assumption_updates_append_versions(self, store, make_scenario, budget_assumptions):
        scenario = await make_scenario(assumptions=budget_assumptions[:2])

        await store.update(
            scenario.id,
            ScenarioUpdate(assumptions=[
                Assumption(variable="revenue_growth", base_value=20, unit="%"),
                budget_assumptions[1],
                budget_assumptions[2],
            ]),
            actor="user_003",
        )
        await store.update(scenario.id, ScenarioUpdate(name="Renamed"), actor="user_003")

        versions = await store.versions(scenario.id)

        assert [v.version for v in versions] == [2, 1]
        latest = versions[0]
        assert latest.updated_by == "user_003"
        assert latest.variables == ["revenue_growth", "headcount_growth"]
        assert "Added headcount_growth assumption" in latest.changes
        assert versions[-1].changes == ["Initial creation"]

    @pytest.mark.asyncio
    async def test_versions_unknown_raises_not_found(self, store):
        with pytest.raises(ScenarioNotFoundError):
            await store.versions("scn_missing")


def test_describe_assumption_changes():
    old = [{"variable": "a", "base_value": 1.0}, {"variable": "b", "base_value": 2.0}]
    new = [{"variable": "a", "base_value": 1.5}, {"variable": "c", "base_value": 3.0}]

    changes, variables = describe_assumption_changes(old, new)

    assert changes == [
        "Updated a assumption",
        "Added c assumption",
        "Removed b assumption",
    ]
    assert variables == ["a", "c", "b"]
