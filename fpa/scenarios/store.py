"""
Scenario Store - Registry of scenarios and their lifecycle.

Lifecycle:
    draft -> active      when scored results are recorded
    active -> approved   via approve() only
    approved -> archived the only change an approved scenario accepts
    any -> archived      via an explicit status update (terminal)

Every write runs in a single database transaction under a per-scenario lock.
Callers get detached pydantic snapshots, never the ORM rows.
"""
import asyncio
import contextlib
import logging
import math
from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fpa.config import Settings, settings as default_settings
from fpa.scenarios import models
from fpa.scenarios.errors import (
    AlreadyApprovedError,
    ImmutableApprovedError,
    InvalidStateError,
    ScenarioNotFoundError,
)
from fpa.scenarios.models import ScenarioStatus, ScenarioType, generate_id, utcnow
from fpa.scenarios.schemas import (
    Assumption,
    Pagination,
    ScenarioCreate,
    ScenarioListResponse,
    ScenarioResponse,
    ScenarioResults,
    ScenarioUpdate,
    VersionEntry,
)

logger = logging.getLogger(__name__)


def _dump_assumptions(assumptions: List[Assumption]) -> List[Dict[str, Any]]:
    return [assumption.model_dump(exclude_none=True) for assumption in assumptions]


def describe_assumption_changes(
    old: List[Dict[str, Any]],
    new: List[Dict[str, Any]],
) -> Tuple[List[str], List[str]]:
    """
    Summarize how an assumptions list changed.

    Returns:
        (human-readable change lines, variables touched)
    """
    old_by_variable = {a["variable"]: a for a in old}
    new_by_variable = {a["variable"]: a for a in new}

    changes = []
    variables = []
    for variable, assumption in new_by_variable.items():
        if variable not in old_by_variable:
            changes.append(f"Added {variable} assumption")
            variables.append(variable)
        elif old_by_variable[variable] != assumption:
            changes.append(f"Updated {variable} assumption")
            variables.append(variable)
    for variable in old_by_variable:
        if variable not in new_by_variable:
            changes.append(f"Removed {variable} assumption")
            variables.append(variable)

    if not changes and old != new:
        changes.append("Reordered assumptions")
    return changes, variables


class ScenarioStore:
    """
    Owned repository of scenarios.

    Usage:
        store = ScenarioStore(AsyncSessionLocal)
        scenario = await store.create(ScenarioCreate(...), actor="user_001")
        await store.approve(scenario.id, comments="Signed off", actor="cfo")
    """

    def __init__(self, session_factory: async_sessionmaker, config: Settings = default_settings):
        self._session_factory = session_factory
        self._default_limit = config.DEFAULT_PAGE_LIMIT
        self._max_limit = config.MAX_PAGE_LIMIT
        self._locks: Dict[str, asyncio.Lock] = {}
        # Held while an approval archives sibling baselines
        self._baseline_lock = asyncio.Lock()

    def _lock_for(self, scenario_id: str) -> asyncio.Lock:
        lock = self._locks.get(scenario_id)
        if lock is None:
            lock = self._locks[scenario_id] = asyncio.Lock()
        return lock

    # ==========================================================================
    # Internal helpers
    # ==========================================================================

    async def _load(self, db: AsyncSession, scenario_id: str) -> models.Scenario:
        scenario = await db.get(models.Scenario, scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)
        return scenario

    async def _new_id(self, db: AsyncSession) -> str:
        """Draw an id never used by a live scenario or a version trail."""
        while True:
            candidate = generate_id("scn")
            reserved = await db.scalar(
                select(func.count())
                .select_from(models.ScenarioVersion)
                .where(models.ScenarioVersion.scenario_id == candidate)
            )
            if not reserved and await db.get(models.Scenario, candidate) is None:
                return candidate

    async def _append_version(
        self,
        db: AsyncSession,
        scenario_id: str,
        actor: Optional[str],
        changes: List[str],
        variables: Optional[List[str]] = None,
        at=None,
    ) -> None:
        latest = await db.scalar(
            select(func.max(models.ScenarioVersion.version)).where(
                models.ScenarioVersion.scenario_id == scenario_id
            )
        )
        db.add(models.ScenarioVersion(
            scenario_id=scenario_id,
            version=(latest or 0) + 1,
            changes=changes,
            variables=variables or [],
            updated_by=actor,
            updated_at=at or utcnow(),
        ))

    # ==========================================================================
    # Read operations
    # ==========================================================================

    async def get(self, scenario_id: str) -> ScenarioResponse:
        """Get a scenario by id."""
        async with self._session_factory() as db:
            scenario = await self._load(db, scenario_id)
            return ScenarioResponse.model_validate(scenario)

    async def list(
        self,
        scenario_type: Optional[ScenarioType] = None,
        status: Optional[ScenarioStatus] = None,
        created_by: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> ScenarioListResponse:
        """List scenarios, most recently updated first, 1-indexed pages."""
        page = max(page, 1)
        limit = min(max(limit or self._default_limit, 1), self._max_limit)

        conditions = []
        if scenario_type:
            conditions.append(models.Scenario.scenario_type == ScenarioType(scenario_type).value)
        if status:
            conditions.append(models.Scenario.status == ScenarioStatus(status).value)
        if created_by:
            conditions.append(models.Scenario.created_by == created_by)

        async with self._session_factory() as db:
            total = await db.scalar(
                select(func.count()).select_from(models.Scenario).where(*conditions)
            )
            result = await db.execute(
                select(models.Scenario)
                .where(*conditions)
                .order_by(
                    models.Scenario.updated_at.desc(),
                    models.Scenario.created_at.desc(),
                    models.Scenario.id,
                )
                .offset((page - 1) * limit)
                .limit(limit)
            )
            data = [ScenarioResponse.model_validate(s) for s in result.scalars().all()]

        return ScenarioListResponse(
            data=data,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    async def versions(self, scenario_id: str) -> List[VersionEntry]:
        """Edit history of a scenario, most recent first."""
        async with self._session_factory() as db:
            await self._load(db, scenario_id)
            result = await db.execute(
                select(models.ScenarioVersion)
                .where(models.ScenarioVersion.scenario_id == scenario_id)
                .order_by(models.ScenarioVersion.version.desc())
            )
            return [VersionEntry.model_validate(v) for v in result.scalars().all()]

    # ==========================================================================
    # Write operations
    # ==========================================================================

    async def create(self, data: ScenarioCreate, actor: str) -> ScenarioResponse:
        """
        Create a draft scenario.

        With base_scenario_id and no explicit assumptions, the base scenario's
        assumptions are copied. An explicit (even empty) list wins.
        """
        async with self._session_factory() as db, db.begin():
            if data.assumptions is not None:
                assumptions = _dump_assumptions(data.assumptions)
            else:
                assumptions = []
            if data.base_scenario_id:
                base = await self._load(db, data.base_scenario_id)
                if data.assumptions is None:
                    assumptions = deepcopy(base.assumptions)

            scenario_id = await self._new_id(db)
            now = utcnow()
            scenario = models.Scenario(
                id=scenario_id,
                name=data.name,
                description=data.description or "",
                scenario_type=data.type.value,
                status=ScenarioStatus.DRAFT.value,
                assumptions=assumptions,
                time_horizon=data.time_horizon,
                created_by=actor,
                created_at=now,
                updated_at=now,
                is_baseline=False,
            )
            db.add(scenario)

            changes = ["Initial creation"]
            if data.base_scenario_id:
                changes.append(f"Based on {data.base_scenario_id}")
            await self._append_version(
                db, scenario_id, actor, changes,
                variables=[a["variable"] for a in assumptions], at=now,
            )
            response = ScenarioResponse.model_validate(scenario)

        logger.info(f"Created scenario {scenario_id} ({response.type.value}) for {actor}")
        return response

    async def update(
        self,
        scenario_id: str,
        patch: ScenarioUpdate,
        actor: Optional[str] = None,
    ) -> ScenarioResponse:
        """
        Apply a partial update.

        Approved scenarios only accept status=archived. The only status a
        patch may set is archived; other transitions have dedicated operations.
        """
        async with self._lock_for(scenario_id):
            async with self._session_factory() as db, db.begin():
                scenario = await self._load(db, scenario_id)

                values = patch.model_dump(exclude_unset=True, exclude_none=True)
                if "assumptions" in values:
                    values["assumptions"] = _dump_assumptions(patch.assumptions)
                if "status" in values:
                    values["status"] = patch.status.value
                changed = {
                    field: value for field, value in values.items()
                    if getattr(scenario, field) != value
                }

                current = ScenarioStatus(scenario.status)
                new_status = changed.get("status")
                if current == ScenarioStatus.APPROVED:
                    if set(changed) != {"status"} or new_status != ScenarioStatus.ARCHIVED.value:
                        logger.warning(f"Rejected update of approved scenario {scenario_id}: {sorted(changed)}")
                        raise ImmutableApprovedError(
                            f"Cannot modify approved scenario {scenario_id} except to archive"
                        )
                elif new_status is not None and new_status != ScenarioStatus.ARCHIVED.value:
                    logger.warning(f"Rejected transition {current.value} -> {new_status} for {scenario_id}")
                    raise InvalidStateError(
                        f"Cannot move scenario {scenario_id} from {current.value} to {new_status}"
                    )

                if not changed:
                    return ScenarioResponse.model_validate(scenario)

                now = utcnow()
                version_lines: List[str] = []
                version_variables: List[str] = []
                if "assumptions" in changed:
                    version_lines, version_variables = describe_assumption_changes(
                        scenario.assumptions, changed["assumptions"]
                    )
                if new_status is not None:
                    version_lines.append("Archived")
                    scenario.is_baseline = False

                for field, value in changed.items():
                    setattr(scenario, field, value)
                scenario.updated_at = now

                if version_lines:
                    await self._append_version(
                        db, scenario_id, actor, version_lines, version_variables, at=now
                    )
                response = ScenarioResponse.model_validate(scenario)

        logger.info(f"Updated scenario {scenario_id}: {sorted(changed)}")
        return response

    async def delete(self, scenario_id: str, actor: Optional[str] = None) -> None:
        """Delete a scenario. Its id stays reserved through the version trail."""
        async with self._lock_for(scenario_id):
            async with self._session_factory() as db, db.begin():
                scenario = await self._load(db, scenario_id)
                if scenario.status == ScenarioStatus.APPROVED.value:
                    raise ImmutableApprovedError("Cannot delete approved scenarios")
                await self._append_version(db, scenario_id, actor, ["Deleted"])
                await db.delete(scenario)
        self._locks.pop(scenario_id, None)
        logger.info(f"Deleted scenario {scenario_id}")

    async def approve(
        self,
        scenario_id: str,
        comments: str,
        set_as_baseline: bool = False,
        actor: Optional[str] = None,
    ) -> ScenarioResponse:
        """
        Approve an active scenario.

        With set_as_baseline, every other approved scenario of the same type
        is archived in the same transaction, so at most one approved baseline
        exists per type.
        """
        baseline_guard = self._baseline_lock if set_as_baseline else contextlib.nullcontext()
        async with self._lock_for(scenario_id), baseline_guard:
            async with self._session_factory() as db, db.begin():
                scenario = await self._load(db, scenario_id)
                current = ScenarioStatus(scenario.status)
                if current == ScenarioStatus.APPROVED:
                    raise AlreadyApprovedError(scenario_id)
                if current != ScenarioStatus.ACTIVE:
                    logger.warning(f"Rejected approval of {scenario_id} in status {current.value}")
                    raise InvalidStateError(
                        f"Only active scenarios can be approved; {scenario_id} is {current.value}"
                    )

                now = utcnow()
                scenario.status = ScenarioStatus.APPROVED.value
                scenario.approved_by = actor
                scenario.approved_at = now
                scenario.approval_comments = comments
                scenario.is_baseline = set_as_baseline
                scenario.updated_at = now
                await self._append_version(db, scenario_id, actor, ["Approved"], at=now)

                archived = []
                if set_as_baseline:
                    result = await db.execute(
                        select(models.Scenario).where(
                            models.Scenario.scenario_type == scenario.scenario_type,
                            models.Scenario.status == ScenarioStatus.APPROVED.value,
                            models.Scenario.id != scenario_id,
                        )
                    )
                    for sibling in result.scalars().all():
                        sibling.status = ScenarioStatus.ARCHIVED.value
                        sibling.is_baseline = False
                        sibling.updated_at = now
                        await self._append_version(
                            db, sibling.id, actor,
                            [f"Archived: superseded by baseline {scenario_id}"], at=now,
                        )
                        archived.append(sibling.id)
                response = ScenarioResponse.model_validate(scenario)

        logger.info(f"Approved scenario {scenario_id} by {actor}")
        if archived:
            logger.info(f"Archived previous {response.type.value} baselines: {archived}")
        return response

    async def clone(self, scenario_id: str, new_name: str, actor: str) -> ScenarioResponse:
        """Copy a scenario's assumptions into a fresh draft without results."""
        async with self._session_factory() as db, db.begin():
            original = await self._load(db, scenario_id)
            clone_id = await self._new_id(db)
            now = utcnow()
            cloned = models.Scenario(
                id=clone_id,
                name=new_name,
                description=original.description,
                scenario_type=original.scenario_type,
                status=ScenarioStatus.DRAFT.value,
                assumptions=deepcopy(original.assumptions),
                time_horizon=original.time_horizon,
                results=None,
                created_by=actor,
                created_at=now,
                updated_at=now,
                is_baseline=False,
            )
            db.add(cloned)
            await self._append_version(
                db, clone_id, actor, [f"Cloned from {scenario_id}"],
                variables=[a["variable"] for a in cloned.assumptions], at=now,
            )
            response = ScenarioResponse.model_validate(cloned)

        logger.info(f"Cloned scenario {scenario_id} -> {clone_id} for {actor}")
        return response

    async def record_results(
        self,
        scenario_id: str,
        results: ScenarioResults,
        actor: Optional[str] = None,
    ) -> ScenarioResponse:
        """Cache a scored projection; a draft scenario becomes active."""
        async with self._lock_for(scenario_id):
            async with self._session_factory() as db, db.begin():
                scenario = await self._load(db, scenario_id)
                if scenario.status == ScenarioStatus.APPROVED.value:
                    raise ImmutableApprovedError(
                        f"Cannot modify approved scenario {scenario_id} except to archive"
                    )
                scenario.results = results.model_dump()
                if scenario.status == ScenarioStatus.DRAFT.value:
                    scenario.status = ScenarioStatus.ACTIVE.value
                    logger.info(f"Scenario {scenario_id} is now active")
                scenario.updated_at = utcnow()
                response = ScenarioResponse.model_validate(scenario)

        logger.debug(f"Recorded results for {scenario_id} by {actor}: {response.results}")
        return response
