"""
Typed Exception Hierarchy for the Boatyard Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Lifecycle governance decides whether a customer's priced scope may still
change.  Callers must be able to tell "the configuration is frozen" from
"the status does not allow edits" from "someone else saved first" without
parsing message strings.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (project id, statuses, offending fields)

The message of each exception is the user-facing sentence; service
boundaries copy it verbatim into ``GovernanceResult.errors``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BoatyardKernelError:

    BoatyardKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- ItemNotFoundError
    |   +-- SnapshotNotFoundError
    |   +-- ClientNotFoundError
    |
    +-- TransitionError
    |   +-- InvalidTransitionError
    |   +-- PrerequisiteNotMetError
    |
    +-- LifecycleGuardError
    |   +-- ConfigFrozenError
    |   +-- StatusNotEditableError
    |   +-- AlreadyFrozenError
    |   +-- NotFrozenError
    |   +-- LockedError
    |   +-- ArchiveNotAllowedError
    |   +-- BoatModelPinnedError
    |   +-- LibraryPinsAlreadySetError
    |   +-- ProjectTypeLockedError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |
    +-- ValidationError
    |   +-- ValidationFailedError
    |   +-- NoOpAmendmentError
    |
    +-- IntegrityError
    |   +-- ImmutabilityViolationError
    |   +-- SnapshotTamperedError
    |   +-- AuditChainBrokenError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- MilestoneEffectError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
NotFound        | PROJECT_NOT_FOUND           | Project ID doesn't exist
                | ITEM_NOT_FOUND              | Configuration item ID doesn't exist
                | SNAPSHOT_NOT_FOUND          | No configuration snapshot to work from
                | CLIENT_NOT_FOUND            | Client reference doesn't resolve
----------------|-----------------------------|-----------------------------------------
Transition      | INVALID_TRANSITION          | Edge not in the transition table
                | PREREQUISITE_NOT_MET        | Hard prerequisite missing (quote etc.)
----------------|-----------------------------|-----------------------------------------
Lifecycle       | CONFIG_FROZEN               | Direct edit of a frozen configuration
                | STATUS_NOT_EDITABLE         | Direct edit outside editable statuses
                | ALREADY_FROZEN              | Second freeze (non-amendment trigger)
                | NOT_FROZEN                  | Amendment before order confirmation
                | PROJECT_LOCKED              | Amendment after delivery
                | ARCHIVE_NOT_ALLOWED         | Archive outside DRAFT/CLOSED
                | BOAT_MODEL_PINNED           | Changing the pinned boat model version
                | LIBRARY_PINS_ALREADY_SET    | Second library pinning attempt
                | PROJECT_TYPE_LOCKED         | Project type change on a closed project
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED                | Role lacks the required permission
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_FAILED           | Input rejected (carries error list)
                | NO_OP_AMENDMENT             | Amendment changes nothing
----------------|-----------------------------|-----------------------------------------
Integrity       | IMMUTABILITY_VIOLATION      | Modifying an append-only record
                | SNAPSHOT_TAMPERED           | Stored snapshot hash mismatch
                | AUDIT_CHAIN_BROKEN          | Audit hash chain does not verify
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Aggregate written by someone else
----------------|-----------------------------|-----------------------------------------
Effects         | MILESTONE_EFFECT_FAILED     | A milestone effect could not be prepared

===============================================================================
HANDLING PATTERNS
===============================================================================

1. SERVICE BOUNDARIES CONVERT, CALLERS INSPECT CODES:

    result = configuration_service.add_item(project_id, item, context)
    if not result.is_success and result.error_code == ConfigFrozenError.code:
        offer_amendment_flow()

2. CONCURRENCY ERRORS ARE RETRIED, NOT SURFACED:

    OptimisticLockError is raised by the repository and consumed by
    run_with_optimistic_retry; callers only see it when every attempt
    lost the race.

3. INTEGRITY ERRORS ARE ALERTS:

    SnapshotTamperedError and ImmutabilityViolationError mean stored
    history no longer matches what was written.  Investigate, never retry.

===============================================================================
"""

from __future__ import annotations

from collections.abc import Sequence


class BoatyardKernelError(Exception):
    """
    Base exception for all boatyard kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BOATYARD_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(BoatyardKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    """Project with given ID was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Project not found")


class ItemNotFoundError(NotFoundError):
    """Configuration item with given ID was not found on the project."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, project_id: str, item_id: str):
        self.project_id = project_id
        self.item_id = item_id
        super().__init__("Item not found")


class SnapshotNotFoundError(NotFoundError):
    """The project has no configuration snapshot to work from."""

    code: str = "SNAPSHOT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("No configuration snapshot found")


class ClientNotFoundError(NotFoundError):
    """Client referenced by a new project does not exist."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__("Client not found")


# Transition exceptions


class TransitionError(BoatyardKernelError):
    """Base exception for status transition errors."""

    code: str = "TRANSITION_ERROR"


class InvalidTransitionError(TransitionError):
    """The requested edge is not in the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot transition from {from_status} to {to_status}")


class PrerequisiteNotMetError(TransitionError):
    """
    One or more hard prerequisites of the target status are missing.

    ``errors`` holds every failed prerequisite message in declaration order.
    """

    code: str = "PREREQUISITE_NOT_MET"

    def __init__(self, to_status: str, errors: Sequence[str]):
        self.to_status = to_status
        self.errors = list(errors)
        super().__init__(". ".join(self.errors))


# Lifecycle guard exceptions


class LifecycleGuardError(BoatyardKernelError):
    """Base exception for operations the project lifecycle forbids."""

    code: str = "LIFECYCLE_GUARD"


class ConfigFrozenError(LifecycleGuardError):
    """Direct edit attempted on a frozen configuration."""

    code: str = "CONFIG_FROZEN"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Configuration is frozen. Use amendments to make changes.")


class StatusNotEditableError(LifecycleGuardError):
    """Direct edit attempted while the project status forbids editing."""

    code: str = "STATUS_NOT_EDITABLE"

    def __init__(self, project_id: str, status: str):
        self.project_id = project_id
        self.status = status
        super().__init__(f"Cannot edit configuration in {status} status")


class AlreadyFrozenError(LifecycleGuardError):
    """Freeze requested on a configuration that is already frozen."""

    code: str = "ALREADY_FROZEN"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Configuration is already frozen")


class NotFrozenError(LifecycleGuardError):
    """Amendment requested before the scope was frozen."""

    code: str = "NOT_FROZEN"

    def __init__(self, project_id: str, message: str | None = None):
        self.project_id = project_id
        super().__init__(
            message or "Project is not frozen. Edit configuration directly."
        )


class LockedError(LifecycleGuardError):
    """Change requested on a delivered or closed project."""

    code: str = "PROJECT_LOCKED"

    def __init__(self, project_id: str, status: str):
        self.project_id = project_id
        self.status = status
        super().__init__("Project is locked. Cannot make amendments after delivery.")


class ArchiveNotAllowedError(LifecycleGuardError):
    """Archive requested for an in-flight project."""

    code: str = "ARCHIVE_NOT_ALLOWED"

    def __init__(self, project_id: str, status: str):
        self.project_id = project_id
        self.status = status
        super().__init__(
            f"Cannot archive project in {status} status. "
            "Only DRAFT or CLOSED projects can be archived."
        )


class BoatModelPinnedError(LifecycleGuardError):
    """Update would change the pinned boat model version."""

    code: str = "BOAT_MODEL_PINNED"

    def __init__(self, project_id: str, pinned_version_id: str):
        self.project_id = project_id
        self.pinned_version_id = pinned_version_id
        super().__init__(
            "Boat model version cannot be changed after project creation. "
            "Use an Amendment instead."
        )


class LibraryPinsAlreadySetError(LifecycleGuardError):
    """Library versions were already pinned for the project."""

    code: str = "LIBRARY_PINS_ALREADY_SET"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Library versions are already pinned for this project")


class ProjectTypeLockedError(LifecycleGuardError):
    """Project type change requested on a closed project."""

    code: str = "PROJECT_TYPE_LOCKED"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Cannot change project type when project is closed")


# Authorization exceptions


class AuthorizationError(BoatyardKernelError):
    """Base exception for permission failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """The acting user's role lacks the required permission."""

    code: str = "UNAUTHORIZED"

    def __init__(self, user_id: str, permission: str, message: str | None = None):
        self.user_id = user_id
        self.permission = permission
        super().__init__(message or f"User lacks permission {permission}")


# Validation exceptions


class ValidationError(BoatyardKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class ValidationFailedError(ValidationError):
    """
    Input failed validation.

    ``errors`` carries every message, not just the first.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(". ".join(self.errors))


class NoOpAmendmentError(ValidationFailedError):
    """Amendment leaves the item list and discount unchanged."""

    code: str = "NO_OP_AMENDMENT"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(["Amendment contains no effective changes"])


# Integrity exceptions


class IntegrityError(BoatyardKernelError):
    """Base exception for stored history that must never change."""

    code: str = "INTEGRITY_ERROR"


class ImmutabilityViolationError(IntegrityError):
    """
    Attempted to modify or delete an immutable record.

    Configuration snapshots, amendments, BOM snapshots, library pins and
    audit entries are immutable after creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class SnapshotTamperedError(IntegrityError):
    """Stored snapshot content no longer matches its recorded hash."""

    code: str = "SNAPSHOT_TAMPERED"

    def __init__(self, snapshot_id: str, expected_hash: str, actual_hash: str):
        self.snapshot_id = snapshot_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Configuration snapshot {snapshot_id} failed hash verification: "
            f"expected {expected_hash}, computed {actual_hash}"
        )


class AuditChainBrokenError(IntegrityError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Concurrency exceptions


class ConcurrencyError(BoatyardKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Milestone effect exceptions


class MilestoneEffectError(BoatyardKernelError):
    """A milestone effect could not be prepared; nothing was written."""

    code: str = "MILESTONE_EFFECT_FAILED"

    def __init__(self, effect_type: str, cause: BoatyardKernelError):
        self.effect_type = effect_type
        self.cause_code = cause.code
        super().__init__(f"{effect_type} failed: {cause}")
