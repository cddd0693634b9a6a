"""
ProjectService -- the lifecycle orchestrator.

Responsibility:
    Creates projects, moves them through the status machine and executes
    the milestone effects of each target status.  Also owns the
    administrative escapes (archive, emergency unlock) and the project
    summary read model.

Architecture position:
    Kernel > Services -- imperative shell over ``domain/status_machine.py``.
    It asks the quote collaborator for the facts the transition rules need,
    plans every milestone effect against the loaded aggregate, and writes
    the result once.

Invariants enforced:
    - A transition that fails validation writes nothing unless ``force``
      is set.
    - Milestone effects are prepared in declaration order against an
      in-memory copy of the aggregate: freeze, then BOM from the snapshot
      just captured, then library pins.  If any effect cannot be
      prepared, the transition fails and nothing is written.
    - Effects, status change and history land in one repository write
      guarded by the aggregate version.
    - Audit entries follow the same order: effects first, then the status
      transition.

Failure modes (returned as failed GovernanceResult):
    - PROJECT_NOT_FOUND, CLIENT_NOT_FOUND
    - INVALID_TRANSITION, PREREQUISITE_NOT_MET
    - MILESTONE_EFFECT_FAILED wrapping the effect's own error code
    - ARCHIVE_NOT_ALLOWED, NOT_FROZEN, UNAUTHORIZED
    - OPTIMISTIC_LOCK_CONFLICT after the retry budget is spent

Audit relevance:
    Emergency unlock bypasses the freeze rule.  It is permission checked,
    audited with CRITICAL severity and logged at CRITICAL level.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext, User
from boatyard_kernel.domain.bom import DEFAULT_COST_ESTIMATION_RATIO, build_bom_snapshot
from boatyard_kernel.domain.collaborators import (
    AmendmentAuthority,
    ClientDirectory,
    QuoteStatusProvider,
)
from boatyard_kernel.domain.configuration import (
    ConfigurationState,
    SnapshotTrigger,
    plan_freeze,
    reprice,
)
from boatyard_kernel.domain.pricing import DEFAULT_VAT_RATE, vat_rate_for_country
from boatyard_kernel.domain.project import NewProject, Project, ProjectType
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.domain.status_machine import (
    MilestoneEffect,
    MilestoneEffectType,
    ProjectStatus,
    StatusInfo,
    TransitionContext,
    TransitionValidation,
    can_archive,
    can_transition,
    get_milestone_effects,
    get_status_info,
    is_editable,
    is_frozen,
    is_locked,
    validate_transition,
)
from boatyard_kernel.exceptions import (
    ArchiveNotAllowedError,
    BoatyardKernelError,
    ClientNotFoundError,
    InvalidTransitionError,
    MilestoneEffectError,
    NotFrozenError,
    PrerequisiteNotMetError,
    ProjectTypeLockedError,
    SnapshotNotFoundError,
    UnauthorizedError,
)
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction, AuditSeverity
from boatyard_kernel.services.authorization import Permission
from boatyard_kernel.services.base import GovernanceService, OperationScope
from boatyard_kernel.services.library_pinning_service import LibraryPinningService
from boatyard_kernel.services.production_service import ProductionService

logger = get_logger("services.project")

PROJECT_ENTITY = "Project"
DEFAULT_PROJECT_NUMBER_PREFIX = "PRJ"
DEFAULT_PROPULSION_TYPE = "Electric"
ORDER_CONFIRMED_REASON = "Order confirmed by client"


@dataclass(frozen=True)
class ProjectSummary:
    """Read model for a project header."""

    project: Project
    client_name: str
    status_info: StatusInfo
    is_editable: bool
    is_frozen: bool
    is_locked: bool


class ProjectService(GovernanceService):
    """
    Lifecycle orchestration for projects.

    Contract:
        Commands return ``GovernanceResult``; ``get_by_id``,
        ``list_active``, ``preview_transition`` and ``get_project_summary``
        return plain values.

    Guarantees:
        - ``transition_status`` either commits the status together with all
          of its milestone effects or commits nothing.
        - Library pins are never silently replaced; a second pinning
          attempt fails the transition.

    Non-goals:
        - Quote documents, PDF rendering and document finalization belong
          to other subsystems; their milestone effects are no-ops here.
    """

    def __init__(
        self,
        session: Session,
        quote_provider: QuoteStatusProvider,
        client_directory: ClientDirectory,
        authority: AmendmentAuthority,
        pinning: LibraryPinningService,
        production: ProductionService,
        estimation_ratio: Decimal = DEFAULT_COST_ESTIMATION_RATIO,
        default_vat_rate: Decimal = DEFAULT_VAT_RATE,
        project_number_prefix: str = DEFAULT_PROJECT_NUMBER_PREFIX,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self._quotes = quote_provider
        self._clients = client_directory
        self._authority = authority
        self._pinning = pinning
        self._production = production
        self._estimation_ratio = Decimal(estimation_ratio)
        self._default_vat_rate = Decimal(default_vat_rate)
        self._number_prefix = project_number_prefix

    # =====================================================================
    # Creation and reads
    # =====================================================================

    def create_project(
        self,
        new_project: NewProject,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        """
        Create a DRAFT project for an existing client.

        The boat model version given here is pinned for the life of the
        project; later configuration updates may not change it.
        """

        def body(scope: OperationScope) -> Project:
            if not self._clients.exists(new_project.client_id):
                raise ClientNotFoundError(str(new_project.client_id))

            now = self._clock.now()
            configuration = reprice(
                ConfigurationState(
                    vat_rate=self._initial_vat_rate(new_project),
                    boat_model_version_id=new_project.boat_model_version_id,
                    propulsion_type=new_project.propulsion_type or DEFAULT_PROPULSION_TYPE,
                    last_modified_at=now,
                    last_modified_by=context.actor_id,
                )
            )
            project = self._repository.create(
                Project(
                    id=uuid4(),
                    project_number=new_project.project_number or self._next_number(now),
                    title=new_project.title,
                    client_id=new_project.client_id,
                    created_by=context.actor_id,
                    created_at=now,
                    project_type=ProjectType(new_project.project_type),
                    configuration=configuration,
                )
            )
            scope.audit(
                AuditAction.PROJECT_CREATED,
                PROJECT_ENTITY,
                project.id,
                f"Created project {project.project_number}: {project.title}",
                after={
                    "project_number": project.project_number,
                    "title": project.title,
                    "client_id": project.client_id,
                    "project_type": project.project_type,
                    "boat_model_version_id": configuration.boat_model_version_id,
                    "vat_rate": configuration.vat_rate,
                },
            )
            logger.info(
                "project_created",
                extra={
                    "project_id": str(project.id),
                    "project_number": project.project_number,
                },
            )
            return project

        return self._run("create_project", None, context, body)

    def _initial_vat_rate(self, new_project: NewProject) -> Decimal:
        """Explicit rate first, then the rate of the delivery country, then the default."""
        if new_project.vat_rate is not None:
            return Decimal(new_project.vat_rate)
        if new_project.vat_country:
            return vat_rate_for_country(new_project.vat_country)
        return self._default_vat_rate

    def get_by_id(self, project_id: UUID) -> Project | None:
        return self._repository.get_by_id(project_id)

    def list_active(self) -> list[Project]:
        return self._repository.list_active()

    def _next_number(self, at: datetime) -> str:
        sequence = self._repository.count_projects() + 1
        return f"{self._number_prefix}-{at.year}-{sequence:04d}"

    # =====================================================================
    # Status transitions
    # =====================================================================

    def preview_transition(
        self,
        project_id: UUID,
        new_status: ProjectStatus | str,
    ) -> TransitionValidation | None:
        """Validation outcome for a transition without performing it."""
        project = self._repository.get_by_id(project_id)
        if project is None:
            return None
        return validate_transition(
            project.status, new_status, self._transition_context(project)
        )

    def transition_status(
        self,
        project_id: UUID,
        new_status: ProjectStatus | str,
        context: AuditContext,
        force: bool = False,
        reason: str | None = None,
    ) -> GovernanceResult[Project]:
        """
        Move a project to ``new_status`` and run the milestone effects.

        Validation warnings (an incomplete delivery checklist, an empty
        configuration at order confirmation) are returned on the result.
        ``force`` overrides validation errors; it is logged and recorded
        in the transition's audit entry.
        """

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            old_status = project.status
            target = self._parse_status(old_status, new_status)

            validation = validate_transition(
                old_status, target, self._transition_context(project)
            )
            for warning in validation.warnings:
                scope.warn(warning)
            if not validation.is_valid:
                if not force:
                    if can_transition(old_status, target):
                        raise PrerequisiteNotMetError(target.value, validation.errors)
                    raise InvalidTransitionError(old_status.value, target.value)
                logger.warning(
                    "status_transition_forced",
                    extra={
                        "from_status": old_status.value,
                        "to_status": target.value,
                        "errors": list(validation.errors),
                    },
                )

            effects = get_milestone_effects(target)
            planned = self._prepare_effects(project, effects, context, scope)
            saved = self._repository.save(
                replace(planned, status=target), actor_id=context.actor_id
            )

            scope.audit(
                AuditAction.STATUS_TRANSITION,
                PROJECT_ENTITY,
                project_id,
                f"Status changed from {old_status.value} to {target.value}",
                before={"status": old_status},
                after={"status": target},
                metadata={
                    "reason": reason,
                    "forced": force and not validation.is_valid,
                    "effects": [e.effect_type for e in effects],
                },
            )
            logger.info(
                "status_transition_committed",
                extra={
                    "from_status": old_status.value,
                    "to_status": target.value,
                    "effect_count": len(effects),
                    "version": saved.version,
                },
            )
            return saved

        return self._run("transition_status", project_id, context, body)

    def _transition_context(self, project: Project) -> TransitionContext:
        return TransitionContext(
            has_quote_draft=self._quotes.has_draft_quote(project.id),
            has_quote_sent=self._quotes.has_sent_quote(project.id),
            has_quote_accepted=self._quotes.has_accepted_quote(project.id),
            delivery_checklist_complete=self._quotes.is_delivery_checklist_complete(
                project.id
            ),
            configuration_item_count=len(project.configuration.items),
        )

    @staticmethod
    def _parse_status(
        old_status: ProjectStatus,
        new_status: ProjectStatus | str,
    ) -> ProjectStatus:
        try:
            return ProjectStatus(new_status)
        except ValueError:
            raise InvalidTransitionError(old_status.value, str(new_status)) from None

    def _prepare_effects(
        self,
        project: Project,
        effects: tuple[MilestoneEffect, ...],
        context: AuditContext,
        scope: OperationScope,
    ) -> Project:
        for effect in effects:
            try:
                project = self._prepare_effect(effect.effect_type, project, context, scope)
            except BoatyardKernelError as exc:
                logger.warning(
                    "milestone_effect_failed",
                    extra={"effect": effect.effect_type.value, "error_code": exc.code},
                )
                raise MilestoneEffectError(effect.effect_type.value, exc) from exc
        return project

    def _prepare_effect(
        self,
        effect_type: MilestoneEffectType,
        project: Project,
        context: AuditContext,
        scope: OperationScope,
    ) -> Project:
        at = self._clock.now()

        if effect_type is MilestoneEffectType.FREEZE_CONFIGURATION:
            plan = plan_freeze(
                project,
                SnapshotTrigger.ORDER_CONFIRMED,
                context.actor_id,
                at,
                trigger_reason=ORDER_CONFIRMED_REASON,
            )
            scope.audit(
                AuditAction.CONFIGURATION_FROZEN,
                "ProjectConfiguration",
                project.id,
                f"Configuration frozen (snapshot #{plan.snapshot.snapshot_number})",
                metadata={
                    "snapshot_id": plan.snapshot.id,
                    "trigger": plan.snapshot.trigger,
                    "content_hash": plan.snapshot.content_hash,
                },
            )
            return plan.project

        if effect_type is MilestoneEffectType.GENERATE_BOM:
            snapshot = project.latest_snapshot
            if snapshot is None:
                raise SnapshotNotFoundError(str(project.id))
            bom = build_bom_snapshot(
                project,
                snapshot,
                SnapshotTrigger.ORDER_CONFIRMED,
                self._estimation_ratio,
                context.actor_id,
                at,
            )
            scope.audit(
                AuditAction.BOM_GENERATED,
                "BOMSnapshot",
                bom.id,
                f"BOM #{bom.snapshot_number} generated from configuration "
                f"snapshot #{snapshot.snapshot_number}",
                metadata={
                    "project_id": project.id,
                    "total_cost_excl_vat": bom.total_cost_excl_vat,
                    "estimated_cost_count": bom.estimated_cost_count,
                },
            )
            return replace(project, bom_snapshots=project.bom_snapshots + (bom,))

        if effect_type is MilestoneEffectType.PIN_LIBRARY_VERSIONS:
            pinned = self._pinning.plan(project, context.actor_id, at)
            scope.audit(
                AuditAction.LIBRARY_VERSIONS_PINNED,
                PROJECT_ENTITY,
                project.id,
                "Library versions pinned",
                after=pinned.library_pins.to_payload(),
            )
            return pinned

        if effect_type is MilestoneEffectType.INITIALIZE_PRODUCTION:
            initialized = self._production.plan(project, at)
            if initialized is not project:
                scope.audit(
                    AuditAction.PRODUCTION_INITIALIZED,
                    PROJECT_ENTITY,
                    project.id,
                    f"Production initialized with "
                    f"{len(initialized.production_stages)} stages",
                    metadata={"stages": [s.code for s in initialized.production_stages]},
                )
            return initialized

        # LOCK_QUOTE and FINALIZE_DOCUMENTS are owned by the quote and
        # document subsystems.
        logger.debug("milestone_effect_skipped", extra={"effect": effect_type.value})
        return project

    # =====================================================================
    # Administrative escapes
    # =====================================================================

    def archive(
        self,
        project_id: UUID,
        reason: str,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        """Archive a DRAFT or CLOSED project.  Archiving twice is a no-op."""

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            if not can_archive(project.status):
                raise ArchiveNotAllowedError(str(project_id), project.status.value)
            if project.is_archived:
                return project

            saved = self._repository.save(
                replace(
                    project,
                    is_archived=True,
                    archived_at=self._clock.now(),
                    archived_by=context.actor_id,
                    archive_reason=reason,
                ),
                actor_id=context.actor_id,
            )
            scope.audit(
                AuditAction.PROJECT_ARCHIVED,
                PROJECT_ENTITY,
                project_id,
                f"Project archived: {reason}",
                metadata={"status": project.status, "reason": reason},
            )
            return saved

        return self._run("archive", project_id, context, body)

    def emergency_unlock(
        self,
        project_id: UUID,
        reason: str,
        user: User,
    ) -> GovernanceResult[Project]:
        """
        Clear the frozen flag of a project's configuration.

        The status and all history are left untouched; only ``is_frozen``,
        ``frozen_at`` and ``frozen_by`` are reset.
        """
        context = user.audit_context()

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            if not self._authority.can_emergency_unlock(user):
                raise UnauthorizedError(
                    str(user.id),
                    Permission.EMERGENCY_UNLOCK.value,
                    "User is not authorized to perform an emergency unlock",
                )
            configuration = project.configuration
            if not configuration.is_frozen:
                raise NotFrozenError(
                    str(project_id), "Project configuration is not frozen"
                )

            saved = self._repository.save(
                replace(
                    project,
                    configuration=replace(
                        configuration,
                        is_frozen=False,
                        frozen_at=None,
                        frozen_by=None,
                    ),
                ),
                actor_id=user.id,
            )
            scope.audit(
                AuditAction.EMERGENCY_UNLOCK,
                PROJECT_ENTITY,
                project_id,
                f"EMERGENCY UNLOCK: {reason}",
                before={
                    "is_frozen": True,
                    "frozen_at": configuration.frozen_at,
                    "frozen_by": configuration.frozen_by,
                },
                after={"is_frozen": False},
                metadata={"reason": reason, "status": project.status, "role": user.role},
                severity=AuditSeverity.CRITICAL,
            )
            logger.critical(
                "emergency_unlock_performed",
                extra={
                    "status": project.status.value,
                    "reason": reason,
                    "role": user.role,
                },
            )
            return saved

        return self._run("emergency_unlock", project_id, context, body)

    def update_project_type(
        self,
        project_id: UUID,
        project_type: ProjectType | str,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            if project.status is ProjectStatus.CLOSED:
                raise ProjectTypeLockedError(str(project_id))
            new_type = ProjectType(project_type)
            old_type = project.project_type
            if new_type is old_type:
                return project

            saved = self._repository.save(
                replace(project, project_type=new_type), actor_id=context.actor_id
            )
            scope.audit(
                AuditAction.PROJECT_TYPE_CHANGED,
                PROJECT_ENTITY,
                project_id,
                f"Changed project type from {old_type.value} to {new_type.value}",
                before={"project_type": old_type},
                after={"project_type": new_type},
            )
            return saved

        return self._run("update_project_type", project_id, context, body)

    # =====================================================================
    # Read model
    # =====================================================================

    def get_project_summary(self, project_id: UUID) -> ProjectSummary | None:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return None
        return ProjectSummary(
            project=project,
            client_name=self._clients.name_of(project.client_id) or "Unknown",
            status_info=get_status_info(project.status),
            is_editable=is_editable(project.status),
            is_frozen=is_frozen(project.status),
            is_locked=is_locked(project.status),
        )
