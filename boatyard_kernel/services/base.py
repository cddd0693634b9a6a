"""
GovernanceService -- shared command runner for governance services.

Responsibility:
    Every governance command follows the same shell: bind log context,
    load the aggregate, plan the change with pure domain functions, write
    it through the repository under optimistic retry, commit, then append
    audit entries.  This base class owns that shell so concrete services
    contain only their planning logic.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: commit on success, rollback on failure
      (when ``auto_commit=True``).
    - Audit after commit: entries are queued during the command and
      written only once the domain change is durable.  A retried attempt
      discards the entries queued by the attempt it replaces.
    - Expected domain violations (``BoatyardKernelError``) become failed
      ``GovernanceResult`` values; anything else is rolled back and
      re-raised.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.clock import Clock, SystemClock
from boatyard_kernel.domain.collaborators import ProjectRepository
from boatyard_kernel.domain.project import Project
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.exceptions import (
    BoatyardKernelError,
    ConcurrencyError,
    IntegrityError,
    ProjectNotFoundError,
)
from boatyard_kernel.logging_config import LogContext, get_logger
from boatyard_kernel.models.audit_entry import AuditAction, AuditSeverity
from boatyard_kernel.services.auditor_service import AuditorService
from boatyard_kernel.services.concurrency import (
    DEFAULT_RETRY_ATTEMPTS,
    run_with_optimistic_retry,
)
from boatyard_kernel.services.repository import SqlProjectRepository

logger = get_logger("services.governance")

T = TypeVar("T")


@dataclass
class OperationScope:
    """Per-attempt collector for audit entries and warnings."""

    context: AuditContext
    audit_records: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def audit(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        description: str,
        before: Any = None,
        after: Any = None,
        metadata: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> None:
        self.audit_records.append(
            {
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "description": description,
                "before": before,
                "after": after,
                "metadata": metadata,
                "severity": severity,
            }
        )

    def warn(self, message: str) -> None:
        self.warnings.append(message)


class GovernanceService:
    """
    Base class for services that change a project aggregate.

    Contract:
        Subclasses call ``_run`` with a body that receives an
        ``OperationScope``; the body loads what it needs, writes through
        ``self._repository`` and returns the operation's value.

    Guarantees:
        - The body may run more than once; only the last attempt's audit
          entries and warnings survive.
        - The audit trail never records a change that was rolled back.
    """

    def __init__(
        self,
        session: Session,
        repository: ProjectRepository | None = None,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._repository = repository or SqlProjectRepository(session)
        self._auditor = auditor or AuditorService(session, self._clock, auto_commit)
        self._retry_attempts = retry_attempts
        self._auto_commit = auto_commit

    def _load(self, project_id: UUID) -> Project:
        project = self._repository.get_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _run(
        self,
        operation: str,
        project_id: UUID | None,
        context: AuditContext,
        body: Callable[[OperationScope], T],
    ) -> GovernanceResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(context.actor_id),
            project_id=str(project_id) if project_id else None,
            operation=operation,
        ):
            scope = OperationScope(context)

            def attempt() -> T:
                nonlocal scope
                scope = OperationScope(context)
                return body(scope)

            try:
                value = run_with_optimistic_retry(
                    self._session, attempt, self._retry_attempts, operation
                )
                if self._auto_commit:
                    self._session.commit()
            except BoatyardKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                if isinstance(exc, (IntegrityError, ConcurrencyError)):
                    logger.error(
                        "governance_operation_aborted",
                        extra={"error_code": exc.code},
                        exc_info=True,
                    )
                else:
                    logger.info(
                        "governance_operation_rejected",
                        extra={"error_code": exc.code, "reason": str(exc)},
                    )
                return GovernanceResult.from_error(exc, scope.warnings)
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error("governance_operation_failed", exc_info=True)
                raise

            for record in scope.audit_records:
                self._auditor.log(context, **record)

            logger.info(
                "governance_operation_completed",
                extra={"audit_entries": len(scope.audit_records)},
            )
            return GovernanceResult.success(value, scope.warnings)
