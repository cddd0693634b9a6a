"""
AmendmentService -- the sanctioned change path for frozen configurations.

Responsibility:
    Loads the project, checks lifecycle and approver authority, runs the
    pure amendment planner and writes the amended aggregate (two
    snapshots, one amendment, new configuration) in one repository write.

Architecture position:
    Kernel > Services -- imperative shell over ``domain/amendment.py``.

Invariants enforced:
    - Precondition order: project exists, status frozen, status not
      locked, approver authorized.  All are checked before any snapshot
      is built.
    - Atomicity: snapshots +2, amendments +1 and the new configuration
      land in the same write or not at all.

Failure modes (returned as failed GovernanceResult):
    - PROJECT_NOT_FOUND, NOT_FROZEN, PROJECT_LOCKED, UNAUTHORIZED
    - VALIDATION_FAILED, NO_OP_AMENDMENT, ITEM_NOT_FOUND

Audit relevance:
    Each amendment produces one AMENDMENT_CREATED entry with its type,
    reason and price impact.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext, User
from boatyard_kernel.domain.amendment import (
    AmendmentChanges,
    AmendmentType,
    ProjectAmendment,
    amendment_block_reason,
    check_amendable,
    plan_amendment,
)
from boatyard_kernel.domain.collaborators import AmendmentAuthority
from boatyard_kernel.domain.pricing import ZERO
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.exceptions import UnauthorizedError
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction
from boatyard_kernel.services.authorization import Permission
from boatyard_kernel.services.base import GovernanceService, OperationScope

logger = get_logger("services.amendment")


class AmendmentService(GovernanceService):
    """Post-freeze configuration changes with before/after evidence."""

    def __init__(self, session: Session, authority: AmendmentAuthority, **kwargs):
        super().__init__(session, **kwargs)
        self._authority = authority

    def request_amendment(
        self,
        project_id: UUID,
        amendment_type: AmendmentType | str,
        reason: str,
        changes: AmendmentChanges,
        context: AuditContext,
        approver: User,
    ) -> GovernanceResult[ProjectAmendment]:
        """
        Apply an approved amendment.

        ``context`` identifies the requester; ``approver`` must hold the
        amendment approval permission.
        """

        def body(scope: OperationScope) -> ProjectAmendment:
            project = self._load(project_id)
            check_amendable(project)
            if not self._authority.can_approve_amendment(approver):
                raise UnauthorizedError(
                    str(approver.id),
                    Permission.AMENDMENT_APPROVE.value,
                    "User is not authorized to approve amendments",
                )

            plan = plan_amendment(
                project,
                AmendmentType(amendment_type),
                reason,
                changes,
                requested_by=context.actor_id,
                approved_by=approver.id,
                at=self._clock.now(),
            )
            self._repository.save(plan.project, actor_id=context.actor_id)

            amendment = plan.amendment
            scope.audit(
                AuditAction.AMENDMENT_CREATED,
                "ProjectAmendment",
                amendment.id,
                f"Amendment #{amendment.amendment_number} "
                f"({amendment.amendment_type.value}): {reason}",
                before={"snapshot_id": plan.before_snapshot.id,
                        "total_excl_vat": project.configuration.total_excl_vat},
                after={"snapshot_id": plan.after_snapshot.id,
                       "total_excl_vat": plan.project.configuration.total_excl_vat},
                metadata={
                    "project_id": project_id,
                    "approved_by": approver.id,
                    "price_impact_excl_vat": amendment.price_impact_excl_vat,
                    "affected_items": list(amendment.affected_items),
                },
            )
            logger.info(
                "amendment_created",
                extra={
                    "amendment_id": str(amendment.id),
                    "amendment_number": amendment.amendment_number,
                    "amendment_type": amendment.amendment_type.value,
                    "price_impact": str(amendment.price_impact_excl_vat),
                },
            )
            return amendment

        return self._run("request_amendment", project_id, context, body)

    def get_amendments(self, project_id: UUID) -> tuple[ProjectAmendment, ...]:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return ()
        return project.amendments

    def get_amendment_by_id(
        self,
        project_id: UUID,
        amendment_id: UUID,
    ) -> ProjectAmendment | None:
        for amendment in self.get_amendments(project_id):
            if amendment.id == amendment_id:
                return amendment
        return None

    def get_total_price_impact(self, project_id: UUID) -> Decimal:
        return sum(
            (a.price_impact_excl_vat for a in self.get_amendments(project_id)),
            ZERO,
        )

    def can_amend(self, project_id: UUID) -> tuple[bool, str | None]:
        """Whether the project's status allows amendments, and why not."""
        project = self._repository.get_by_id(project_id)
        if project is None:
            return False, "Project not found"
        error = amendment_block_reason(project)
        if error is not None:
            return False, str(error)
        return True, None
