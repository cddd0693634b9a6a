"""
Milestone planners for library pinning and production start.

Both planners are pure: they take the loaded ``Project`` plus the facts
they need and return a new ``Project``.  The configuration freeze and BOM
planners live in ``domain/configuration.py`` and ``domain/bom.py``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from datetime import datetime
from uuid import UUID, uuid4

from boatyard_kernel.domain.project import (
    LibraryPins,
    ProductionStage,
    Project,
    StageDefinition,
)
from boatyard_kernel.exceptions import LibraryPinsAlreadySetError


def default_catalog_version_id(prefix: str, at: datetime) -> str:
    """Equipment is versioned per item; the catalog pin is a yearly tag."""
    return f"{prefix}-{at.year}"


def plan_library_pins(
    project: Project,
    template_version_ids: Mapping[str, str],
    procedure_version_ids: Iterable[str],
    catalog_version_id: str,
    actor_id: UUID,
    at: datetime,
) -> Project:
    """
    Pin the given library versions onto the project.

    Raises:
        LibraryPinsAlreadySetError: Pins exist; they are never replaced.
    """
    if project.library_pins is not None:
        raise LibraryPinsAlreadySetError(str(project.id))

    pins = LibraryPins(
        boat_model_version_id=project.configuration.boat_model_version_id or "",
        catalog_version_id=catalog_version_id,
        template_version_ids=dict(template_version_ids),
        procedure_version_ids=tuple(procedure_version_ids),
        pinned_at=at,
        pinned_by=actor_id,
    )
    return replace(project, library_pins=pins)


def plan_production_stages(
    project: Project,
    definitions: Iterable[StageDefinition],
    at: datetime,
    id_factory: Callable[[], UUID] = uuid4,
) -> Project:
    """Create NOT_STARTED stages; a project that already has stages is returned unchanged."""
    if project.production_stages:
        return project

    stages = tuple(
        ProductionStage(
            id=id_factory(),
            project_id=project.id,
            code=definition.code,
            name=definition.name,
            order=definition.order,
            estimated_days=definition.estimated_days,
            created_at=at,
        )
        for definition in sorted(definitions, key=lambda d: d.order)
    )
    return replace(project, production_stages=stages)
