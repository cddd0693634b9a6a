"""
ConfigurationService -- direct edits, freezing and snapshots.

Responsibility:
    The I/O shell around ``domain/configuration.py``.  Each command loads
    the project, applies the edit guard, plans the new configuration with
    pure functions and writes it in one repository call.

Architecture position:
    Kernel > Services -- imperative shell.  Called by API handlers and by
    ProjectService (the freeze planner is shared with the ORDER_CONFIRMED
    milestone).

Invariants enforced:
    - Every direct edit is rejected while the configuration is frozen
      (CONFIG_FROZEN) and, independently, outside the editable statuses
      (STATUS_NOT_EDITABLE).
    - Totals are recomputed on every mutation.
    - Freezing appends exactly one snapshot and sets the frozen flag in
      the same write.

Failure modes (returned as failed GovernanceResult):
    - PROJECT_NOT_FOUND, ITEM_NOT_FOUND
    - CONFIG_FROZEN, STATUS_NOT_EDITABLE, ALREADY_FROZEN
    - VALIDATION_FAILED
    - OPTIMISTIC_LOCK_CONFLICT after the retry budget is spent

Audit relevance:
    Item edits and discount changes are audited as CONFIGURATION_UPDATED;
    freezes as CONFIGURATION_FROZEN with the snapshot id.
"""

from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.configuration import (
    ConfigurationItem,
    ConfigurationSnapshot,
    MoveDirection,
    NewConfigurationItem,
    SnapshotTrigger,
    apply_item_updates,
    build_item,
    can_change_boat_model as _can_change_boat_model,
    check_editable,
    find_item,
    move,
    plan_freeze,
    reorder,
    reprice,
    validate_configuration_update as _validate_configuration_update,
    validate_discount,
    with_items,
)
from boatyard_kernel.domain.project import Project
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.exceptions import BoatModelPinnedError, ProjectNotFoundError
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction
from boatyard_kernel.services.base import GovernanceService, OperationScope

logger = get_logger("services.configuration")

CONFIGURATION_ENTITY = "ProjectConfiguration"


class ConfigurationService(GovernanceService):
    """
    Configuration commands for one project at a time.

    Contract:
        Commands return ``GovernanceResult``; queries return plain values.

    Guarantees:
        - A rejected command writes nothing.
    """

    # =====================================================================
    # Item edits
    # =====================================================================

    def add_item(
        self,
        project_id: UUID,
        new_item: NewConfigurationItem,
        context: AuditContext,
    ) -> GovernanceResult[ConfigurationItem]:
        """Append a priced line at the end of the configuration."""

        def body(scope: OperationScope) -> ConfigurationItem:
            project = self._load(project_id)
            check_editable(project)
            item = build_item(new_item, sort_order=len(project.configuration.items))
            self._write_items(project, project.configuration.items + (item,), context)
            scope.audit(
                AuditAction.CONFIGURATION_UPDATED,
                CONFIGURATION_ENTITY,
                project_id,
                f"Added item: {item.name}",
                after={"item_id": item.id, "name": item.name, "quantity": item.quantity},
            )
            logger.info(
                "configuration_item_added",
                extra={"item_id": str(item.id), "line_total": str(item.line_total_excl_vat)},
            )
            return item

        return self._run("add_item", project_id, context, body)

    def update_item(
        self,
        project_id: UUID,
        item_id: UUID,
        updates: Mapping[str, Any],
        context: AuditContext,
    ) -> GovernanceResult[ConfigurationItem]:
        """Change fields of one line; its line total is recomputed."""

        def body(scope: OperationScope) -> ConfigurationItem:
            project = self._load(project_id)
            check_editable(project)
            items = list(project.configuration.items)
            index, item = find_item(items, project_id, item_id)
            updated = apply_item_updates(item, updates)
            items[index] = updated
            self._write_items(project, items, context)
            scope.audit(
                AuditAction.CONFIGURATION_UPDATED,
                CONFIGURATION_ENTITY,
                project_id,
                f"Updated item: {updated.name}",
                before={"item_id": item.id, **{k: getattr(item, k) for k in updates}},
                after={"item_id": item.id, **{k: getattr(updated, k) for k in updates}},
            )
            return updated

        return self._run("update_item", project_id, context, body)

    def remove_item(
        self,
        project_id: UUID,
        item_id: UUID,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            check_editable(project)
            _, item = find_item(project.configuration.items, project_id, item_id)
            remaining = [i for i in project.configuration.items if i.id != item_id]
            saved = self._write_items(project, remaining, context)
            scope.audit(
                AuditAction.CONFIGURATION_UPDATED,
                CONFIGURATION_ENTITY,
                project_id,
                f"Removed item: {item.name}",
                before={"item_id": item.id, "name": item.name},
            )
            return saved

        return self._run("remove_item", project_id, context, body)

    def set_discount(
        self,
        project_id: UUID,
        discount_percent: Decimal | int | str,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        """Set the discount percentage (0 to 100 inclusive)."""

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            check_editable(project)
            discount = validate_discount(discount_percent)
            configuration = reprice(
                replace(
                    project.configuration,
                    discount_percent=discount,
                    last_modified_at=self._clock.now(),
                    last_modified_by=context.actor_id,
                )
            )
            saved = self._repository.save(replace(project, configuration=configuration))
            scope.audit(
                AuditAction.CONFIGURATION_UPDATED,
                CONFIGURATION_ENTITY,
                project_id,
                f"Set discount to {discount}%",
                before={"discount_percent": project.configuration.discount_percent},
                after={"discount_percent": discount},
            )
            return saved

        return self._run("set_discount", project_id, context, body)

    def reorder_items(
        self,
        project_id: UUID,
        ordered_item_ids: Sequence[UUID],
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            check_editable(project)
            return self._write_items(
                project, reorder(project.configuration.items, ordered_item_ids), context
            )

        return self._run("reorder_items", project_id, context, body)

    def move_item(
        self,
        project_id: UUID,
        item_id: UUID,
        direction: MoveDirection | str,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        """
        Swap an item with its neighbour.

        Moving the first item up or the last item down succeeds without
        writing anything.
        """

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            check_editable(project)
            moved = move(project.configuration.items, project_id, item_id, direction)
            if moved is None:
                return project
            return self._write_items(project, moved, context)

        return self._run("move_item", project_id, context, body)

    def recalculate_totals(
        self,
        project_id: UUID,
        context: AuditContext,
    ) -> GovernanceResult[Project]:
        """
        Recompute line totals and aggregates from items, discount and VAT rate.

        Not guarded by the edit rules: the result is a pure function of
        the stored scope.  Nothing is written when the stored figures are
        already correct.
        """

        def body(scope: OperationScope) -> Project:
            project = self._load(project_id)
            repriced = reprice(project.configuration)
            if repriced == project.configuration:
                return project
            logger.warning("configuration_totals_corrected")
            return self._repository.save(
                replace(
                    project,
                    configuration=replace(
                        repriced,
                        last_modified_at=self._clock.now(),
                        last_modified_by=context.actor_id,
                    ),
                )
            )

        return self._run("recalculate_totals", project_id, context, body)

    # =====================================================================
    # Freezing and snapshots
    # =====================================================================

    def freeze(
        self,
        project_id: UUID,
        trigger: SnapshotTrigger | str,
        context: AuditContext,
        trigger_reason: str | None = None,
    ) -> GovernanceResult[ConfigurationSnapshot]:
        """
        Capture a snapshot and mark the configuration frozen.

        ORDER_CONFIRMED and MANUAL triggers fail with ALREADY_FROZEN on a
        frozen configuration; AMENDMENT always proceeds.
        """

        def body(scope: OperationScope) -> ConfigurationSnapshot:
            project = self._load(project_id)
            plan = plan_freeze(
                project,
                SnapshotTrigger(trigger),
                context.actor_id,
                self._clock.now(),
                trigger_reason=trigger_reason,
            )
            self._repository.save(plan.project)
            scope.audit(
                AuditAction.CONFIGURATION_FROZEN,
                CONFIGURATION_ENTITY,
                project_id,
                f"Configuration frozen (snapshot #{plan.snapshot.snapshot_number})",
                metadata={
                    "snapshot_id": plan.snapshot.id,
                    "trigger": plan.snapshot.trigger,
                    "content_hash": plan.snapshot.content_hash,
                },
            )
            logger.info(
                "configuration_frozen",
                extra={
                    "snapshot_id": str(plan.snapshot.id),
                    "snapshot_number": plan.snapshot.snapshot_number,
                    "trigger": plan.snapshot.trigger.value,
                },
            )
            return plan.snapshot

        return self._run("freeze", project_id, context, body)

    def get_current_snapshot(self, project_id: UUID) -> ConfigurationSnapshot | None:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return None
        return project.latest_snapshot

    def get_snapshots(self, project_id: UUID) -> tuple[ConfigurationSnapshot, ...]:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return ()
        return project.configuration_snapshots

    # =====================================================================
    # Boat model pin
    # =====================================================================

    def can_change_boat_model(self, project_id: UUID) -> tuple[bool, str | None]:
        project = self._repository.get_by_id(project_id)
        if project is None:
            return False, "Project not found"
        return _can_change_boat_model(project)

    def validate_configuration_update(
        self,
        project_id: UUID,
        updates: Mapping[str, Any],
    ) -> GovernanceResult[None]:
        """Check a proposed configuration change against the boat model pin."""
        project = self._repository.get_by_id(project_id)
        if project is None:
            return GovernanceResult.from_error(ProjectNotFoundError(str(project_id)))
        try:
            _validate_configuration_update(project_id, project.configuration, updates)
        except BoatModelPinnedError as exc:
            return GovernanceResult.from_error(exc)
        return GovernanceResult.success()

    # =====================================================================
    # Internal
    # =====================================================================

    def _write_items(
        self,
        project: Project,
        items: Sequence[ConfigurationItem],
        context: AuditContext,
    ) -> Project:
        configuration = with_items(
            project.configuration, items, context.actor_id, self._clock.now()
        )
        return self._repository.save(replace(project, configuration=configuration))
