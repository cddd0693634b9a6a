"""
Pure domain layer.

Immutable values and pure functions for project lifecycle governance,
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through the ``Clock`` passed in by services.
"""

from boatyard_kernel.domain.actors import AuditContext, User
from boatyard_kernel.domain.amendment import (
    AmendmentChanges,
    AmendmentType,
    ItemUpdate,
    ProjectAmendment,
)
from boatyard_kernel.domain.bom import BOMItem, BOMSnapshot, BOMStatus
from boatyard_kernel.domain.clock import Clock, DeterministicClock, SystemClock, TickingClock
from boatyard_kernel.domain.configuration import (
    ConfigurationItem,
    ConfigurationItemType,
    ConfigurationSnapshot,
    ConfigurationState,
    MoveDirection,
    NewConfigurationItem,
    SnapshotTrigger,
)
from boatyard_kernel.domain.project import (
    LibraryPins,
    NewProject,
    ProductionStage,
    ProductionStageStatus,
    Project,
    ProjectType,
    StageDefinition,
)
from boatyard_kernel.domain.results import GovernanceResult, ResultStatus
from boatyard_kernel.domain.status_machine import (
    MilestoneEffect,
    MilestoneEffectType,
    ProjectStatus,
    StatusCapability,
    TransitionContext,
    TransitionValidation,
)

__all__ = [
    "AmendmentChanges",
    "AmendmentType",
    "AuditContext",
    "BOMItem",
    "BOMSnapshot",
    "BOMStatus",
    "Clock",
    "ConfigurationItem",
    "ConfigurationItemType",
    "ConfigurationSnapshot",
    "ConfigurationState",
    "DeterministicClock",
    "GovernanceResult",
    "ItemUpdate",
    "LibraryPins",
    "MilestoneEffect",
    "MilestoneEffectType",
    "MoveDirection",
    "NewConfigurationItem",
    "NewProject",
    "ProductionStage",
    "ProductionStageStatus",
    "Project",
    "ProjectAmendment",
    "ProjectStatus",
    "ProjectType",
    "ResultStatus",
    "SnapshotTrigger",
    "StageDefinition",
    "StatusCapability",
    "SystemClock",
    "TickingClock",
    "TransitionContext",
    "TransitionValidation",
    "User",
]
