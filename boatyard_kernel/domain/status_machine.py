"""
Project status machine (``boatyard_kernel.domain.status_machine``).

Responsibility
--------------
Pure rules for the project lifecycle: which status may follow which,
what each target status requires, which side effects (milestones) a
target status triggers, and which capabilities a status grants.

Architecture position
---------------------
**Kernel domain layer** -- pure values and functions.  ZERO I/O.  The
orchestrator in ``services/project_service.py`` gathers the context flags
and executes the milestone effects; this module only decides.

Invariants enforced
-------------------
* ``VALID_TRANSITIONS`` is the only source of legal edges.  ``CLOSED`` is
  terminal.
* ``STATUS_CAPABILITIES`` is the only source of the editable / frozen /
  locked partitions.  ``is_editable``, ``is_frozen`` and ``is_locked`` are
  derived from it, so they cannot disagree with each other.
* Milestone effects of a status are returned in a fixed declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =========================================================================
# Statuses and transitions
# =========================================================================


class ProjectStatus(str, Enum):
    """Project lifecycle states."""

    DRAFT = "DRAFT"
    QUOTED = "QUOTED"
    OFFER_SENT = "OFFER_SENT"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    IN_PRODUCTION = "IN_PRODUCTION"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"


VALID_TRANSITIONS: dict[ProjectStatus, tuple[ProjectStatus, ...]] = {
    ProjectStatus.DRAFT: (ProjectStatus.QUOTED,),
    # Back to QUOTED when the client rejects the offer.
    ProjectStatus.QUOTED: (ProjectStatus.DRAFT, ProjectStatus.OFFER_SENT),
    ProjectStatus.OFFER_SENT: (ProjectStatus.QUOTED, ProjectStatus.ORDER_CONFIRMED),
    ProjectStatus.ORDER_CONFIRMED: (ProjectStatus.IN_PRODUCTION,),
    ProjectStatus.IN_PRODUCTION: (ProjectStatus.READY_FOR_DELIVERY,),
    # Back to IN_PRODUCTION when issues are found at handover.
    ProjectStatus.READY_FOR_DELIVERY: (
        ProjectStatus.IN_PRODUCTION,
        ProjectStatus.DELIVERED,
    ),
    ProjectStatus.DELIVERED: (ProjectStatus.CLOSED,),
    ProjectStatus.CLOSED: (),
}


# =========================================================================
# Capabilities
# =========================================================================


class StatusCapability(str, Enum):
    """What a project in a given status is allowed to do."""

    EDIT_CONFIGURATION = "edit_configuration"
    AMEND_CONFIGURATION = "amend_configuration"
    ARCHIVE = "archive"
    # Partition markers
    FROZEN_SCOPE = "frozen_scope"
    LOCKED = "locked"


_C = StatusCapability

STATUS_CAPABILITIES: dict[ProjectStatus, frozenset[StatusCapability]] = {
    ProjectStatus.DRAFT: frozenset({_C.EDIT_CONFIGURATION, _C.ARCHIVE}),
    ProjectStatus.QUOTED: frozenset({_C.EDIT_CONFIGURATION}),
    ProjectStatus.OFFER_SENT: frozenset({_C.EDIT_CONFIGURATION}),
    ProjectStatus.ORDER_CONFIRMED: frozenset({_C.FROZEN_SCOPE, _C.AMEND_CONFIGURATION}),
    ProjectStatus.IN_PRODUCTION: frozenset({_C.FROZEN_SCOPE, _C.AMEND_CONFIGURATION}),
    ProjectStatus.READY_FOR_DELIVERY: frozenset(
        {_C.FROZEN_SCOPE, _C.AMEND_CONFIGURATION}
    ),
    ProjectStatus.DELIVERED: frozenset({_C.FROZEN_SCOPE, _C.LOCKED}),
    ProjectStatus.CLOSED: frozenset({_C.FROZEN_SCOPE, _C.LOCKED, _C.ARCHIVE}),
}

del _C


def capabilities_of(status: ProjectStatus) -> frozenset[StatusCapability]:
    """Return the capability set granted by ``status``."""
    return STATUS_CAPABILITIES[ProjectStatus(status)]


def has_capability(status: ProjectStatus, capability: StatusCapability) -> bool:
    return capability in capabilities_of(status)


def is_editable(status: ProjectStatus) -> bool:
    """True for DRAFT, QUOTED and OFFER_SENT."""
    return has_capability(status, StatusCapability.EDIT_CONFIGURATION)


def is_frozen(status: ProjectStatus) -> bool:
    """True from ORDER_CONFIRMED onwards."""
    return has_capability(status, StatusCapability.FROZEN_SCOPE)


def is_locked(status: ProjectStatus) -> bool:
    """True for DELIVERED and CLOSED."""
    return has_capability(status, StatusCapability.LOCKED)


def can_archive(status: ProjectStatus) -> bool:
    return has_capability(status, StatusCapability.ARCHIVE)


# =========================================================================
# Milestones
# =========================================================================


class MilestoneEffectType(str, Enum):
    """Side effects triggered by entering a milestone status."""

    LOCK_QUOTE = "LOCK_QUOTE"
    FREEZE_CONFIGURATION = "FREEZE_CONFIGURATION"
    GENERATE_BOM = "GENERATE_BOM"
    PIN_LIBRARY_VERSIONS = "PIN_LIBRARY_VERSIONS"
    INITIALIZE_PRODUCTION = "INITIALIZE_PRODUCTION"
    FINALIZE_DOCUMENTS = "FINALIZE_DOCUMENTS"


@dataclass(frozen=True)
class MilestoneEffect:
    """A declared side effect of entering a status. Not persisted."""

    effect_type: MilestoneEffectType
    description: str


MILESTONE_EFFECTS: dict[ProjectStatus, tuple[MilestoneEffect, ...]] = {
    ProjectStatus.OFFER_SENT: (
        MilestoneEffect(
            MilestoneEffectType.LOCK_QUOTE,
            "Quote will be locked and PDF snapshot created",
        ),
    ),
    ProjectStatus.ORDER_CONFIRMED: (
        MilestoneEffect(
            MilestoneEffectType.FREEZE_CONFIGURATION,
            "Configuration will be frozen as snapshot",
        ),
        MilestoneEffect(
            MilestoneEffectType.GENERATE_BOM,
            "Bill of Materials baseline will be generated",
        ),
        MilestoneEffect(
            MilestoneEffectType.PIN_LIBRARY_VERSIONS,
            "Library versions will be pinned to project",
        ),
    ),
    ProjectStatus.IN_PRODUCTION: (
        MilestoneEffect(
            MilestoneEffectType.INITIALIZE_PRODUCTION,
            "Production stages will be initialized",
        ),
    ),
    ProjectStatus.DELIVERED: (
        MilestoneEffect(
            MilestoneEffectType.FINALIZE_DOCUMENTS,
            "All documents will be finalized",
        ),
    ),
}


def is_milestone(status: ProjectStatus) -> bool:
    return ProjectStatus(status) in MILESTONE_EFFECTS


def get_milestone_effects(to_status: ProjectStatus) -> tuple[MilestoneEffect, ...]:
    """Effects of entering ``to_status``, in execution order."""
    return MILESTONE_EFFECTS.get(ProjectStatus(to_status), ())


# =========================================================================
# Transition validation
# =========================================================================


class Prerequisite(str, Enum):
    HAS_QUOTE_DRAFT = "has_quote_draft"
    HAS_QUOTE_SENT = "has_quote_sent"
    HAS_QUOTE_ACCEPTED = "has_quote_accepted"
    DELIVERY_CHECKLIST_COMPLETE = "delivery_checklist_complete"


STATUS_PREREQUISITES: dict[ProjectStatus, tuple[Prerequisite, ...]] = {
    ProjectStatus.QUOTED: (Prerequisite.HAS_QUOTE_DRAFT,),
    ProjectStatus.OFFER_SENT: (Prerequisite.HAS_QUOTE_SENT,),
    ProjectStatus.ORDER_CONFIRMED: (Prerequisite.HAS_QUOTE_ACCEPTED,),
    ProjectStatus.DELIVERED: (Prerequisite.DELIVERY_CHECKLIST_COMPLETE,),
}

# Statuses that always need an explicit user confirmation.
CONFIRMATION_STATUSES: frozenset[ProjectStatus] = frozenset({
    ProjectStatus.ORDER_CONFIRMED,
    ProjectStatus.DELIVERED,
})


@dataclass(frozen=True)
class TransitionContext:
    """Facts about the project gathered by the orchestrator before validation."""

    has_quote_draft: bool = False
    has_quote_sent: bool = False
    has_quote_accepted: bool = False
    delivery_checklist_complete: bool = False
    configuration_item_count: int = 0


@dataclass(frozen=True)
class TransitionValidation:
    """Outcome of ``validate_transition``."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    requires_confirmation: bool = False
    milestone_effects: tuple[MilestoneEffect, ...] = ()


def can_transition(from_status: ProjectStatus, to_status: ProjectStatus) -> bool:
    """Table lookup; unknown statuses are never legal."""
    try:
        allowed = VALID_TRANSITIONS[ProjectStatus(from_status)]
        return ProjectStatus(to_status) in allowed
    except ValueError:
        return False


def get_valid_next_statuses(status: ProjectStatus) -> tuple[ProjectStatus, ...]:
    return VALID_TRANSITIONS.get(ProjectStatus(status), ())


def validate_transition(
    from_status: ProjectStatus,
    to_status: ProjectStatus,
    context: TransitionContext | None = None,
) -> TransitionValidation:
    """
    Validate a transition with full checks.

    An illegal edge yields exactly one error and nothing else.  Missing
    quote prerequisites are errors; an incomplete delivery checklist is a
    warning that requires confirmation.  ORDER_CONFIRMED, DELIVERED and
    every status with milestone effects require confirmation.
    """
    context = context or TransitionContext()

    if not can_transition(from_status, to_status):
        return TransitionValidation(
            is_valid=False,
            errors=(_transition_error(from_status, to_status),),
        )

    to_status = ProjectStatus(to_status)
    errors: list[str] = []
    warnings: list[str] = []
    requires_confirmation = False

    for prereq in STATUS_PREREQUISITES.get(to_status, ()):
        if prereq is Prerequisite.HAS_QUOTE_DRAFT and not context.has_quote_draft:
            errors.append("A quote draft is required before marking as Quoted")
        elif prereq is Prerequisite.HAS_QUOTE_SENT and not context.has_quote_sent:
            errors.append("Quote must be marked as sent before proceeding")
        elif (
            prereq is Prerequisite.HAS_QUOTE_ACCEPTED
            and not context.has_quote_accepted
        ):
            errors.append("Quote must be accepted by client before confirming order")
        elif (
            prereq is Prerequisite.DELIVERY_CHECKLIST_COMPLETE
            and not context.delivery_checklist_complete
        ):
            warnings.append("Delivery checklist is not complete")
            requires_confirmation = True

    if to_status in CONFIRMATION_STATUSES:
        requires_confirmation = True
    if to_status is ProjectStatus.ORDER_CONFIRMED and context.configuration_item_count <= 0:
        warnings.append("Configuration has no items - BOM will be empty")

    effects = get_milestone_effects(to_status)

    return TransitionValidation(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        requires_confirmation=requires_confirmation or bool(effects),
        milestone_effects=effects,
    )


def _transition_error(from_status: ProjectStatus | str, to_status: ProjectStatus | str) -> str:
    from_name = from_status.value if isinstance(from_status, Enum) else from_status
    to_name = to_status.value if isinstance(to_status, Enum) else to_status
    return f"Cannot transition from {from_name} to {to_name}"


# =========================================================================
# Display info
# =========================================================================


@dataclass(frozen=True)
class StatusInfo:
    label: str
    description: str


STATUS_INFO: dict[ProjectStatus, StatusInfo] = {
    ProjectStatus.DRAFT: StatusInfo("Draft", "Project is being configured"),
    ProjectStatus.QUOTED: StatusInfo("Quoted", "Quote has been generated"),
    ProjectStatus.OFFER_SENT: StatusInfo(
        "Offer Sent", "Quote sent to client, awaiting response"
    ),
    ProjectStatus.ORDER_CONFIRMED: StatusInfo(
        "Order Confirmed", "Client has accepted, configuration frozen"
    ),
    ProjectStatus.IN_PRODUCTION: StatusInfo("In Production", "Boat is being built"),
    ProjectStatus.READY_FOR_DELIVERY: StatusInfo(
        "Ready for Delivery", "Production complete, awaiting handover"
    ),
    ProjectStatus.DELIVERED: StatusInfo("Delivered", "Boat delivered to client"),
    ProjectStatus.CLOSED: StatusInfo("Closed", "Project completed and archived"),
}


def get_status_info(status: ProjectStatus) -> StatusInfo:
    return STATUS_INFO[ProjectStatus(status)]
