"""ORM models for the boatyard kernel."""

from boatyard_kernel.models.audit_entry import AuditAction, AuditEntryModel, AuditSeverity
from boatyard_kernel.models.project import (
    BOMSnapshotModel,
    ConfigurationSnapshotModel,
    ProjectAmendmentModel,
    ProjectModel,
)

__all__ = [
    "AuditAction",
    "AuditEntryModel",
    "AuditSeverity",
    "BOMSnapshotModel",
    "ConfigurationSnapshotModel",
    "ProjectAmendmentModel",
    "ProjectModel",
]
