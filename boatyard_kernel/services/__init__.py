"""Services for the boatyard kernel (write side)."""

from boatyard_kernel.services.amendment_service import AmendmentService
from boatyard_kernel.services.auditor_service import AuditorService, AuditTrace
from boatyard_kernel.services.authorization import Permission, RolePermissionAuthority
from boatyard_kernel.services.bom_service import BOMService
from boatyard_kernel.services.concurrency import run_with_optimistic_retry
from boatyard_kernel.services.configuration_service import ConfigurationService
from boatyard_kernel.services.library_pinning_service import (
    LibraryPinningService,
    StaticLibraryCatalog,
)
from boatyard_kernel.services.production_service import ProductionService
from boatyard_kernel.services.project_service import ProjectService, ProjectSummary
from boatyard_kernel.services.repository import SqlProjectRepository

__all__ = [
    "AmendmentService",
    "AuditTrace",
    "AuditorService",
    "BOMService",
    "ConfigurationService",
    "LibraryPinningService",
    "Permission",
    "ProductionService",
    "ProjectService",
    "ProjectSummary",
    "RolePermissionAuthority",
    "SqlProjectRepository",
    "StaticLibraryCatalog",
    "run_with_optimistic_retry",
]
