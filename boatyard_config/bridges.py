"""
Config -> Kernel Bridges.

Functions that convert ``GovernanceSettings`` into kernel inputs.  They
live in boatyard_config (the producer) because the kernel must NEVER
import boatyard_config.

Usage:
    from boatyard_config import get_active_settings
    from boatyard_config.bridges import build_governance_services

    settings = get_active_settings()
    services = build_governance_services(session, settings, quotes, clients)
    services.projects.transition_status(project_id, "QUOTED", context)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from boatyard_config.schema import GovernanceSettings
from boatyard_kernel.domain.clock import Clock, SystemClock
from boatyard_kernel.domain.collaborators import ClientDirectory, QuoteStatusProvider
from boatyard_kernel.domain.project import StageDefinition
from boatyard_kernel.services.amendment_service import AmendmentService
from boatyard_kernel.services.auditor_service import AuditorService
from boatyard_kernel.services.authorization import RolePermissionAuthority
from boatyard_kernel.services.bom_service import BOMService
from boatyard_kernel.services.configuration_service import ConfigurationService
from boatyard_kernel.services.library_pinning_service import (
    LibraryPinningService,
    StaticLibraryCatalog,
)
from boatyard_kernel.services.production_service import ProductionService
from boatyard_kernel.services.project_service import ProjectService
from boatyard_kernel.services.repository import SqlProjectRepository


def build_stage_definitions(settings: GovernanceSettings) -> tuple[StageDefinition, ...]:
    return tuple(
        StageDefinition(
            code=stage.code,
            name=stage.name,
            order=stage.order,
            estimated_days=stage.estimated_days,
        )
        for stage in settings.production_stages
    )


def build_authority(settings: GovernanceSettings) -> RolePermissionAuthority:
    return RolePermissionAuthority(settings.role_permissions)


def build_library_catalog(settings: GovernanceSettings) -> StaticLibraryCatalog:
    return StaticLibraryCatalog(
        template_versions=dict(settings.library.template_versions),
        procedure_versions=settings.library.procedure_versions,
        catalog_version=settings.library.catalog_version,
    )


@dataclass(frozen=True)
class GovernanceServices:
    """The wired service graph for one session."""

    projects: ProjectService
    configuration: ConfigurationService
    amendments: AmendmentService
    bom: BOMService
    pinning: LibraryPinningService
    production: ProductionService
    auditor: AuditorService
    authority: RolePermissionAuthority


def build_governance_services(
    session: Session,
    settings: GovernanceSettings,
    quote_provider: QuoteStatusProvider,
    client_directory: ClientDirectory,
    clock: Clock | None = None,
    auto_commit: bool = True,
) -> GovernanceServices:
    """Wire every governance service over one session, repository and auditor."""
    clock = clock or SystemClock()
    repository = SqlProjectRepository(session)
    auditor = AuditorService(session, clock, auto_commit)
    authority = build_authority(settings)
    shared = {
        "repository": repository,
        "auditor": auditor,
        "clock": clock,
        "retry_attempts": settings.optimistic_retry_attempts,
        "auto_commit": auto_commit,
    }

    pinning = LibraryPinningService(
        session,
        build_library_catalog(settings),
        catalog_prefix=settings.catalog_version_prefix,
        **shared,
    )
    production = ProductionService(
        session, stage_definitions=build_stage_definitions(settings), **shared
    )
    return GovernanceServices(
        projects=ProjectService(
            session,
            quote_provider=quote_provider,
            client_directory=client_directory,
            authority=authority,
            pinning=pinning,
            production=production,
            estimation_ratio=settings.cost_estimation_ratio,
            default_vat_rate=settings.default_vat_rate,
            project_number_prefix=settings.project_number_prefix,
            **shared,
        ),
        configuration=ConfigurationService(session, **shared),
        amendments=AmendmentService(session, authority, **shared),
        bom=BOMService(session, estimation_ratio=settings.cost_estimation_ratio, **shared),
        pinning=pinning,
        production=production,
        auditor=auditor,
        authority=authority,
    )
