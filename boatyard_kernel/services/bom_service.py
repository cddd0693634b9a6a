"""
BOMService -- bill of materials snapshots.

Responsibility:
    Builds a costed BOM from the project's latest configuration snapshot
    and appends it to the project's BOM history.

Architecture position:
    Kernel > Services -- the concrete ``BOMGenerator``.  ProjectService
    does not call ``generate_bom`` during ORDER_CONFIRMED; it uses the
    same ``build_bom_snapshot`` planner against the snapshot it has just
    prepared, so the milestone is written in one transaction.

Invariants enforced:
    - Output depends only on the latest snapshot and the estimation ratio.
    - Each call appends a new snapshot numbered ``count + 1``.

Failure modes (returned as failed GovernanceResult):
    - PROJECT_NOT_FOUND
    - SNAPSHOT_NOT_FOUND when the configuration was never frozen
"""

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.bom import (
    DEFAULT_COST_ESTIMATION_RATIO,
    BOMSnapshot,
    build_bom_snapshot,
)
from boatyard_kernel.domain.configuration import SnapshotTrigger
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.exceptions import SnapshotNotFoundError
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction
from boatyard_kernel.services.base import GovernanceService, OperationScope

logger = get_logger("services.bom")


class BOMService(GovernanceService):
    def __init__(
        self,
        session: Session,
        estimation_ratio: Decimal = DEFAULT_COST_ESTIMATION_RATIO,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self._estimation_ratio = Decimal(estimation_ratio)

    @property
    def estimation_ratio(self) -> Decimal:
        return self._estimation_ratio

    def generate_bom(
        self,
        project_id: UUID,
        trigger: SnapshotTrigger | str,
        context: AuditContext,
    ) -> GovernanceResult[BOMSnapshot]:
        def body(scope: OperationScope) -> BOMSnapshot:
            project = self._load(project_id)
            snapshot = project.latest_snapshot
            if snapshot is None:
                raise SnapshotNotFoundError(str(project_id))

            bom = build_bom_snapshot(
                project,
                snapshot,
                SnapshotTrigger(trigger),
                self._estimation_ratio,
                context.actor_id,
                self._clock.now(),
            )
            self._repository.save(
                replace(project, bom_snapshots=project.bom_snapshots + (bom,)),
                actor_id=context.actor_id,
            )
            scope.audit(
                AuditAction.BOM_GENERATED,
                "BOMSnapshot",
                bom.id,
                f"BOM #{bom.snapshot_number} generated from configuration "
                f"snapshot #{snapshot.snapshot_number}",
                metadata={
                    "project_id": project_id,
                    "total_cost_excl_vat": bom.total_cost_excl_vat,
                    "estimated_cost_count": bom.estimated_cost_count,
                },
            )
            logger.info(
                "bom_generated",
                extra={
                    "bom_snapshot_id": str(bom.id),
                    "snapshot_number": bom.snapshot_number,
                    "line_count": len(bom.items),
                    "total_cost": str(bom.total_cost_excl_vat),
                },
            )
            return bom

        return self._run("generate_bom", project_id, context, body)

    def get_bom_snapshots(self, project_id: UUID) -> tuple[BOMSnapshot, ...]:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return ()
        return project.bom_snapshots

    def get_latest_bom(self, project_id: UUID) -> BOMSnapshot | None:
        snapshots = self.get_bom_snapshots(project_id)
        return snapshots[-1] if snapshots else None
