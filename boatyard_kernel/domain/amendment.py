"""
Amendment planning (``boatyard_kernel.domain.amendment``).

Responsibility
--------------
Pure planning for the only sanctioned way to change a frozen
configuration: capture a *before* snapshot, apply removals, then updates,
then additions to a working copy, reprice, capture an *after* snapshot and
record an amendment with its price impact.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ``services/amendment_service.py`` loads
the project, checks authorization, calls ``plan_amendment`` and persists
the returned aggregate in one repository write.

Invariants enforced
-------------------
* Preconditions are checked before any snapshot is built: status frozen,
  not locked.
* A successful plan extends ``configuration_snapshots`` by exactly two
  and ``amendments`` by exactly one, numbered ``count + 1`` (and
  ``count + 2`` for the after snapshot).
* ``price_impact_excl_vat`` equals the sum of line-total deltas computed
  with the same ``r2(quantity * unit_price)`` rule as direct edits.
* Changes that leave items and discount identical are rejected.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from boatyard_kernel.domain import status_machine
from boatyard_kernel.domain.configuration import (
    ConfigurationItem,
    ConfigurationSnapshot,
    NewConfigurationItem,
    SnapshotTrigger,
    apply_item_updates,
    build_item,
    capture_snapshot,
    find_item,
    reprice,
    validate_discount,
)
from boatyard_kernel.domain.pricing import ZERO
from boatyard_kernel.exceptions import (
    LockedError,
    NoOpAmendmentError,
    NotFrozenError,
    ValidationFailedError,
)

if TYPE_CHECKING:
    from boatyard_kernel.domain.project import Project


class AmendmentType(str, Enum):
    EQUIPMENT_ADD = "EQUIPMENT_ADD"
    EQUIPMENT_REMOVE = "EQUIPMENT_REMOVE"
    EQUIPMENT_CHANGE = "EQUIPMENT_CHANGE"
    SCOPE_CHANGE = "SCOPE_CHANGE"
    PRICE_ADJUSTMENT = "PRICE_ADJUSTMENT"
    SPECIFICATION_CHANGE = "SPECIFICATION_CHANGE"


@dataclass(frozen=True)
class ItemUpdate:
    """Field changes for one existing configuration line."""

    item_id: UUID
    changes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AmendmentChanges:
    """
    Requested changes, applied in the order removals, updates, additions.

    ``discount_percent`` is only changed when given; otherwise the current
    discount carries over.
    """

    items_to_add: tuple[NewConfigurationItem, ...] = ()
    items_to_remove: tuple[UUID, ...] = ()
    items_to_update: tuple[ItemUpdate, ...] = ()
    discount_percent: Decimal | None = None


@dataclass(frozen=True)
class ProjectAmendment:
    """Immutable record of an approved post-freeze change."""

    id: UUID
    project_id: UUID
    amendment_number: int
    amendment_type: AmendmentType
    reason: str
    before_snapshot_id: UUID
    after_snapshot_id: UUID
    price_impact_excl_vat: Decimal
    affected_items: tuple[str, ...]
    requested_by: UUID
    requested_at: datetime
    approved_by: UUID
    approved_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class AmendmentPlan:
    project: Project
    amendment: ProjectAmendment
    before_snapshot: ConfigurationSnapshot
    after_snapshot: ConfigurationSnapshot


def amendment_block_reason(project: Project) -> Exception | None:
    """
    The lifecycle error that forbids amending ``project``, or None.

    Frozen-but-not-locked statuses are the only amendable ones.
    """
    if not status_machine.is_frozen(project.status):
        return NotFrozenError(str(project.id))
    if status_machine.is_locked(project.status):
        return LockedError(str(project.id), project.status.value)
    return None


def check_amendable(project: Project) -> None:
    error = amendment_block_reason(project)
    if error is not None:
        raise error


@dataclass(frozen=True)
class _AppliedChanges:
    items: tuple[ConfigurationItem, ...]
    price_impact: Decimal
    affected_items: tuple[str, ...]


def apply_changes(
    project: Project,
    changes: AmendmentChanges,
    id_factory: Callable[[], UUID] = uuid4,
) -> _AppliedChanges:
    """
    Apply removals, updates and additions to the current item list.

    Raises:
        ItemNotFoundError: A removal or update names an item that was never
            in the configuration.  Updates to items removed in the same
            call are skipped.
        ValidationFailedError: An update or addition has invalid values.
    """
    items = list(project.configuration.items)
    affected: list[str] = []
    impact = ZERO

    removed: set[UUID] = set()
    for item_id in changes.items_to_remove:
        index, item = find_item(items, project.id, item_id)
        impact -= item.line_total_excl_vat
        affected.append(item.name)
        removed.add(item.id)
        del items[index]

    for update in changes.items_to_update:
        # An item removed in the same amendment takes no further updates.
        if update.item_id in removed:
            continue
        index, item = find_item(items, project.id, update.item_id)
        updated = apply_item_updates(item, update.changes)
        impact += updated.line_total_excl_vat - item.line_total_excl_vat
        affected.append(item.name)
        items[index] = updated

    errors: list[str] = []
    for new_item in changes.items_to_add:
        try:
            added = build_item(new_item, sort_order=len(items), item_id=id_factory())
        except ValidationFailedError as exc:
            errors.extend(exc.errors)
            continue
        impact += added.line_total_excl_vat
        affected.append(added.name)
        items.append(added)
    if errors:
        raise ValidationFailedError(errors)

    return _AppliedChanges(tuple(items), impact, tuple(affected))


def plan_amendment(
    project: Project,
    amendment_type: AmendmentType,
    reason: str,
    changes: AmendmentChanges,
    requested_by: UUID,
    approved_by: UUID,
    at: datetime,
    id_factory: Callable[[], UUID] = uuid4,
) -> AmendmentPlan:
    """
    Build the amended aggregate: two snapshots, one amendment record.

    Raises:
        NotFrozenError / LockedError: Status does not allow amendments.
        ValidationFailedError: Empty reason, invalid item values or discount.
        NoOpAmendmentError: Nothing would change.
    """
    check_amendable(project)
    if not reason or not reason.strip():
        raise ValidationFailedError(["Amendment reason is required"])

    current = project.configuration
    applied = apply_changes(project, changes, id_factory)
    discount = current.discount_percent
    if changes.discount_percent is not None:
        discount = validate_discount(changes.discount_percent)

    if applied.items == current.items and discount == current.discount_percent:
        raise NoOpAmendmentError(str(project.id))

    count = len(project.configuration_snapshots)
    before = capture_snapshot(
        project.id,
        current,
        count + 1,
        SnapshotTrigger.AMENDMENT,
        requested_by,
        at,
        trigger_reason=f"Before amendment: {reason}",
        snapshot_id=id_factory(),
    )

    amended = reprice(
        replace(
            current,
            items=applied.items,
            discount_percent=discount,
            is_frozen=True,
            frozen_at=current.frozen_at or at,
            frozen_by=current.frozen_by or requested_by,
            last_modified_at=at,
            last_modified_by=requested_by,
        )
    )

    after = capture_snapshot(
        project.id,
        amended,
        count + 2,
        SnapshotTrigger.AMENDMENT,
        requested_by,
        at,
        trigger_reason=f"After amendment: {reason}",
        snapshot_id=id_factory(),
    )

    amendment = ProjectAmendment(
        id=id_factory(),
        project_id=project.id,
        amendment_number=len(project.amendments) + 1,
        amendment_type=AmendmentType(amendment_type),
        reason=reason,
        before_snapshot_id=before.id,
        after_snapshot_id=after.id,
        price_impact_excl_vat=applied.price_impact,
        affected_items=applied.affected_items,
        requested_by=requested_by,
        requested_at=at,
        approved_by=approved_by,
        approved_at=at,
        created_at=at,
    )

    return AmendmentPlan(
        project=replace(
            project,
            configuration=amended,
            configuration_snapshots=project.configuration_snapshots + (before, after),
            amendments=project.amendments + (amendment,),
        ),
        amendment=amendment,
        before_snapshot=before,
        after_snapshot=after,
    )
