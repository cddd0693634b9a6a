"""
ProductionService -- production stage initialization.

Stages are created NOT_STARTED from the configured stage definitions when
a project enters production.  Initialization is idempotent: a project
that already has stages is left unchanged.  Task and progress mechanics
belong to the production planning subsystem.
"""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.milestones import plan_production_stages
from boatyard_kernel.domain.project import (
    DEFAULT_STAGE_DEFINITIONS,
    ProductionStage,
    Project,
    StageDefinition,
)
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction
from boatyard_kernel.services.base import GovernanceService, OperationScope

logger = get_logger("services.production")


class ProductionService(GovernanceService):
    def __init__(
        self,
        session: Session,
        stage_definitions: Sequence[StageDefinition] = DEFAULT_STAGE_DEFINITIONS,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self._stage_definitions = tuple(stage_definitions)

    def plan(self, project: Project, at: datetime) -> Project:
        return plan_production_stages(project, self._stage_definitions, at)

    def initialize_production(
        self,
        project_id: UUID,
        context: AuditContext,
    ) -> GovernanceResult[tuple[ProductionStage, ...]]:
        def body(scope: OperationScope) -> tuple[ProductionStage, ...]:
            project = self._load(project_id)
            planned = self.plan(project, self._clock.now())
            if planned is project:
                logger.info("production_already_initialized")
                return project.production_stages
            saved = self._repository.save(planned, actor_id=context.actor_id)
            scope.audit(
                AuditAction.PRODUCTION_INITIALIZED,
                "Project",
                project_id,
                f"Production initialized with {len(saved.production_stages)} stages",
                metadata={"stages": [s.code for s in saved.production_stages]},
            )
            return saved.production_stages

        return self._run("initialize_production", project_id, context, body)

    def get_stages(self, project_id: UUID) -> tuple[ProductionStage, ...]:
        project = self._repository.get_by_id(project_id)
        return project.production_stages if project is not None else ()
