"""
ORM-level immutability enforcement for governance history.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  Listeners registered here intercept those events and raise
``ImmutabilityViolationError`` for rows that are append-only:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------

Entity                  | When immutable          | Notes
------------------------|-------------------------|--------------------------------
ConfigurationSnapshot   | Always                  | Content hash covers the data
ProjectAmendment        | Always                  | Commercial record of a change
BOMSnapshot             | Always                  | Costed parts list at a point in time
AuditEntry              | Always                  | Hash chained
Project.library_pins    | Once set                | Write-once pin of library versions
Project                 | Never deleted           | Archive instead

Model imports are inline because models import from db.

Usage::

    from boatyard_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()   # called by create_tables()

To temporarily disable (TESTS ONLY)::

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from boatyard_kernel.exceptions import ImmutabilityViolationError
from boatyard_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# Append-only history rows
# =============================================================================


def _check_snapshot_immutability(mapper, connection, target):
    _block(
        "ConfigurationSnapshot",
        target,
        "UPDATE",
        "Configuration snapshots are immutable and cannot be modified",
    )


def _check_snapshot_delete(mapper, connection, target):
    _block(
        "ConfigurationSnapshot",
        target,
        "DELETE",
        "Configuration snapshots cannot be deleted",
    )


def _check_amendment_immutability(mapper, connection, target):
    _block(
        "ProjectAmendment",
        target,
        "UPDATE",
        "Amendments are immutable and cannot be modified",
    )


def _check_amendment_delete(mapper, connection, target):
    _block("ProjectAmendment", target, "DELETE", "Amendments cannot be deleted")


def _check_bom_snapshot_immutability(mapper, connection, target):
    _block(
        "BOMSnapshot",
        target,
        "UPDATE",
        "BOM snapshots are immutable and cannot be modified",
    )


def _check_bom_snapshot_delete(mapper, connection, target):
    _block("BOMSnapshot", target, "DELETE", "BOM snapshots cannot be deleted")


def _check_audit_entry_immutability(mapper, connection, target):
    _block(
        "AuditEntry",
        target,
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    _block("AuditEntry", target, "DELETE", "Audit entries cannot be deleted")


# =============================================================================
# Project
# =============================================================================


def _check_project_immutability(mapper, connection, target):
    """
    Library pins are write-once.

    Setting them from NULL is the pinning itself and is allowed; any
    change after that is blocked.
    """
    history = get_history(target, "library_pins")
    if not history.has_changes():
        return
    previous = history.deleted[0] if history.deleted else None
    if previous is not None:
        _block(
            "Project",
            target,
            "UPDATE",
            "Library pins are write-once and cannot be replaced",
        )


def _check_project_delete(mapper, connection, target):
    _block("Project", target, "DELETE", "Projects cannot be deleted; archive instead")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from boatyard_kernel.models.audit_entry import AuditEntryModel
    from boatyard_kernel.models.project import (
        BOMSnapshotModel,
        ConfigurationSnapshotModel,
        ProjectAmendmentModel,
        ProjectModel,
    )

    return (
        (ConfigurationSnapshotModel, "before_update", _check_snapshot_immutability),
        (ConfigurationSnapshotModel, "before_delete", _check_snapshot_delete),
        (ProjectAmendmentModel, "before_update", _check_amendment_immutability),
        (ProjectAmendmentModel, "before_delete", _check_amendment_delete),
        (BOMSnapshotModel, "before_update", _check_bom_snapshot_immutability),
        (BOMSnapshotModel, "before_delete", _check_bom_snapshot_delete),
        (AuditEntryModel, "before_update", _check_audit_entry_immutability),
        (AuditEntryModel, "before_delete", _check_audit_entry_delete),
        (ProjectModel, "before_update", _check_project_immutability),
        (ProjectModel, "before_delete", _check_project_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent.  Call after all models are imported but before any
    database operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this for testing purposes.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
