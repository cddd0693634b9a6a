"""
Configuration domain (``boatyard_kernel.domain.configuration``).

Responsibility
--------------
Value objects for a project's priced scope (items, totals, freeze flag)
and the pure planning functions behind every configuration operation:
item construction and validation, repricing, reordering, edit guards,
snapshot capture and freeze planning.

Architecture position
---------------------
**Kernel domain layer** -- pure values and functions.  ZERO I/O.  May
import only from ``domain/`` siblings, ``exceptions`` and ``utils``.
``services/configuration_service.py`` loads the aggregate, calls these
functions, and persists the result.

Invariants enforced
-------------------
* Aggregates (subtotal, discount, totals, VAT) are recomputed from items,
  discount and VAT rate on every mutation via ``reprice``.
* ``check_editable`` rejects edits when the configuration is frozen and,
  independently, when the status is not editable.
* A ``ConfigurationSnapshot`` is immutable and carries a SHA-256
  ``content_hash`` of its canonical data; ``verify_snapshot`` recomputes it.
* The boat model version pin never changes once set.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from boatyard_kernel.domain import status_machine
from boatyard_kernel.domain.pricing import (
    DEFAULT_VAT_RATE,
    HUNDRED,
    ZERO,
    line_total,
    price_lines,
)
from boatyard_kernel.exceptions import (
    AlreadyFrozenError,
    BoatModelPinnedError,
    ConfigFrozenError,
    ItemNotFoundError,
    StatusNotEditableError,
    ValidationFailedError,
)
from boatyard_kernel.utils.hashing import hash_payload

if TYPE_CHECKING:
    from boatyard_kernel.domain.project import Project


# =========================================================================
# Enums
# =========================================================================


class ConfigurationItemType(str, Enum):
    """Where a configuration line comes from."""

    ARTICLE = "ARTICLE"
    KIT = "KIT"
    CUSTOM = "CUSTOM"
    LEGACY = "LEGACY"


class SnapshotTrigger(str, Enum):
    """Why a configuration snapshot was captured."""

    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    AMENDMENT = "AMENDMENT"
    MANUAL = "MANUAL"


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


# =========================================================================
# Payload helpers
# =========================================================================


def _dec(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


def _iso_or_none(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


# =========================================================================
# Items
# =========================================================================


@dataclass(frozen=True)
class ConfigurationItem:
    """One priced line of a configuration."""

    id: UUID
    name: str
    category: str
    quantity: Decimal
    unit_price_excl_vat: Decimal
    line_total_excl_vat: Decimal
    unit: str = "pcs"
    item_type: ConfigurationItemType = ConfigurationItemType.CUSTOM
    is_included: bool = True
    ce_relevant: bool = False
    safety_critical: bool = False
    sort_order: int = 0
    subcategory: str | None = None
    article_number: str | None = None
    description: str | None = None
    article_id: str | None = None
    article_version_id: str | None = None
    cost_price: Decimal | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "category": self.category,
            "quantity": str(self.quantity),
            "unit_price_excl_vat": str(self.unit_price_excl_vat),
            "line_total_excl_vat": str(self.line_total_excl_vat),
            "unit": self.unit,
            "item_type": self.item_type.value,
            "is_included": self.is_included,
            "ce_relevant": self.ce_relevant,
            "safety_critical": self.safety_critical,
            "sort_order": self.sort_order,
            "subcategory": self.subcategory,
            "article_number": self.article_number,
            "description": self.description,
            "article_id": self.article_id,
            "article_version_id": self.article_version_id,
            "cost_price": _str_or_none(self.cost_price),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ConfigurationItem:
        return cls(
            id=UUID(str(data["id"])),
            name=data["name"],
            category=data["category"],
            quantity=Decimal(str(data["quantity"])),
            unit_price_excl_vat=Decimal(str(data["unit_price_excl_vat"])),
            line_total_excl_vat=Decimal(str(data["line_total_excl_vat"])),
            unit=data.get("unit", "pcs"),
            item_type=ConfigurationItemType(data.get("item_type", "CUSTOM")),
            is_included=bool(data.get("is_included", True)),
            ce_relevant=bool(data.get("ce_relevant", False)),
            safety_critical=bool(data.get("safety_critical", False)),
            sort_order=int(data.get("sort_order", 0)),
            subcategory=data.get("subcategory"),
            article_number=data.get("article_number"),
            description=data.get("description"),
            article_id=data.get("article_id"),
            article_version_id=data.get("article_version_id"),
            cost_price=_dec(data.get("cost_price")),
        )


@dataclass(frozen=True)
class NewConfigurationItem:
    """Input for adding a line to a configuration."""

    name: str
    category: str
    quantity: Decimal
    unit_price_excl_vat: Decimal
    unit: str = "pcs"
    item_type: ConfigurationItemType = ConfigurationItemType.CUSTOM
    ce_relevant: bool = False
    safety_critical: bool = False
    subcategory: str | None = None
    article_number: str | None = None
    description: str | None = None
    article_id: str | None = None
    article_version_id: str | None = None
    cost_price: Decimal | None = None


# Fields a caller may change through update_item / amendment updates.
UPDATABLE_ITEM_FIELDS: frozenset[str] = frozenset({
    "name",
    "category",
    "subcategory",
    "article_number",
    "description",
    "quantity",
    "unit",
    "unit_price_excl_vat",
    "is_included",
    "ce_relevant",
    "safety_critical",
    "cost_price",
})


def _finite(value: Any) -> Decimal | None:
    """``value`` as a finite Decimal, or None when it is not a plain number."""
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def validate_item_values(
    name: str | None,
    category: str | None,
    quantity: Any,
    unit_price: Any,
    cost_price: Any = None,
) -> list[str]:
    """Return every validation message for the given item values."""
    errors: list[str] = []
    if not name or not str(name).strip():
        errors.append("Item name is required")
    if not category or not str(category).strip():
        errors.append("Item category is required")

    parsed_quantity = _finite(quantity)
    if parsed_quantity is None:
        errors.append("Quantity must be a number")
    elif parsed_quantity <= 0:
        errors.append("Quantity must be greater than 0")

    parsed_price = _finite(unit_price)
    if parsed_price is None:
        errors.append("Unit price must be a number")
    elif parsed_price < 0:
        errors.append("Unit price cannot be negative")

    if cost_price is not None:
        parsed_cost = _finite(cost_price)
        if parsed_cost is None:
            errors.append("Cost price must be a number")
        elif parsed_cost < 0:
            errors.append("Cost price cannot be negative")
    return errors


def build_item(
    new_item: NewConfigurationItem,
    sort_order: int,
    item_id: UUID | None = None,
) -> ConfigurationItem:
    """Validate input and construct a priced configuration line."""
    errors = validate_item_values(
        new_item.name,
        new_item.category,
        new_item.quantity,
        new_item.unit_price_excl_vat,
        new_item.cost_price,
    )
    if errors:
        raise ValidationFailedError(errors)

    quantity = Decimal(str(new_item.quantity))
    unit_price = Decimal(str(new_item.unit_price_excl_vat))
    return ConfigurationItem(
        id=item_id or uuid4(),
        name=new_item.name.strip(),
        category=new_item.category.strip(),
        quantity=quantity,
        unit_price_excl_vat=unit_price,
        line_total_excl_vat=line_total(quantity, unit_price),
        unit=new_item.unit,
        item_type=new_item.item_type,
        is_included=True,
        ce_relevant=new_item.ce_relevant,
        safety_critical=new_item.safety_critical,
        sort_order=sort_order,
        subcategory=new_item.subcategory,
        article_number=new_item.article_number,
        description=new_item.description,
        article_id=new_item.article_id,
        article_version_id=new_item.article_version_id,
        cost_price=_dec(new_item.cost_price),
    )


def apply_item_updates(
    item: ConfigurationItem,
    updates: Mapping[str, Any],
) -> ConfigurationItem:
    """
    Return ``item`` with ``updates`` applied and its line total recomputed.

    Raises:
        ValidationFailedError: Unknown field, or resulting values invalid.
    """
    unknown = sorted(set(updates) - UPDATABLE_ITEM_FIELDS)
    if unknown:
        raise ValidationFailedError(
            [f"Field cannot be updated: {name}" for name in unknown]
        )

    errors = validate_item_values(
        updates.get("name", item.name),
        updates.get("category", item.category),
        updates.get("quantity", item.quantity),
        updates.get("unit_price_excl_vat", item.unit_price_excl_vat),
        updates.get("cost_price", item.cost_price),
    )
    if errors:
        raise ValidationFailedError(errors)

    changes = dict(updates)
    for money_field in ("quantity", "unit_price_excl_vat", "cost_price"):
        if money_field in changes:
            changes[money_field] = _dec(changes[money_field])

    updated = replace(item, **changes)
    return replace(
        updated,
        line_total_excl_vat=line_total(updated.quantity, updated.unit_price_excl_vat),
    )


def find_item(
    items: Sequence[ConfigurationItem],
    project_id: UUID,
    item_id: UUID,
) -> tuple[int, ConfigurationItem]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index, item
    raise ItemNotFoundError(str(project_id), str(item_id))


def reorder(
    items: Sequence[ConfigurationItem],
    ordered_ids: Sequence[UUID],
) -> tuple[ConfigurationItem, ...]:
    """
    Put items in the given order and renumber ``sort_order`` from 0.

    Unknown ids are ignored; items missing from ``ordered_ids`` keep their
    relative order and go to the end.
    """
    by_id = {item.id: item for item in items}
    result: list[ConfigurationItem] = []
    placed: set[UUID] = set()
    for item_id in ordered_ids:
        item = by_id.get(item_id)
        if item is not None and item_id not in placed:
            result.append(replace(item, sort_order=len(result)))
            placed.add(item_id)
    for item in items:
        if item.id not in placed:
            result.append(replace(item, sort_order=len(result)))
    return tuple(result)


def move(
    items: Sequence[ConfigurationItem],
    project_id: UUID,
    item_id: UUID,
    direction: MoveDirection | str,
) -> tuple[ConfigurationItem, ...] | None:
    """
    Swap an item with its neighbour.

    Returns None when the move would leave the list (no change needed).
    """
    ordered = sorted(items, key=lambda i: i.sort_order)
    index, _ = find_item(ordered, project_id, item_id)
    offset = -1 if MoveDirection(direction) is MoveDirection.UP else 1
    target = index + offset
    if target < 0 or target >= len(ordered):
        return None
    ordered[index], ordered[target] = ordered[target], ordered[index]
    return reorder(ordered, [i.id for i in ordered])


# =========================================================================
# Configuration state
# =========================================================================


@dataclass(frozen=True)
class ConfigurationState:
    """A project's priced scope plus its freeze flag."""

    items: tuple[ConfigurationItem, ...] = ()
    discount_percent: Decimal | None = None
    vat_rate: Decimal = DEFAULT_VAT_RATE
    subtotal_excl_vat: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_excl_vat: Decimal = ZERO
    vat_amount: Decimal = ZERO
    total_incl_vat: Decimal = ZERO
    boat_model_version_id: str | None = None
    propulsion_type: str | None = None
    is_frozen: bool = False
    frozen_at: datetime | None = None
    frozen_by: UUID | None = None
    last_modified_at: datetime | None = None
    last_modified_by: UUID | None = None

    @property
    def included_items(self) -> tuple[ConfigurationItem, ...]:
        return tuple(item for item in self.items if item.is_included)

    def to_payload(self) -> dict[str, Any]:
        return {
            "items": [item.to_payload() for item in self.items],
            "discount_percent": _str_or_none(self.discount_percent),
            "vat_rate": str(self.vat_rate),
            "subtotal_excl_vat": str(self.subtotal_excl_vat),
            "discount_amount": str(self.discount_amount),
            "total_excl_vat": str(self.total_excl_vat),
            "vat_amount": str(self.vat_amount),
            "total_incl_vat": str(self.total_incl_vat),
            "boat_model_version_id": self.boat_model_version_id,
            "propulsion_type": self.propulsion_type,
            "is_frozen": self.is_frozen,
            "frozen_at": _iso_or_none(self.frozen_at),
            "frozen_by": _str_or_none(self.frozen_by),
            "last_modified_at": _iso_or_none(self.last_modified_at),
            "last_modified_by": _str_or_none(self.last_modified_by),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ConfigurationState:
        return cls(
            items=tuple(ConfigurationItem.from_payload(i) for i in data.get("items", ())),
            discount_percent=_dec(data.get("discount_percent")),
            vat_rate=Decimal(str(data.get("vat_rate", DEFAULT_VAT_RATE))),
            subtotal_excl_vat=Decimal(str(data.get("subtotal_excl_vat", ZERO))),
            discount_amount=Decimal(str(data.get("discount_amount", ZERO))),
            total_excl_vat=Decimal(str(data.get("total_excl_vat", ZERO))),
            vat_amount=Decimal(str(data.get("vat_amount", ZERO))),
            total_incl_vat=Decimal(str(data.get("total_incl_vat", ZERO))),
            boat_model_version_id=data.get("boat_model_version_id"),
            propulsion_type=data.get("propulsion_type"),
            is_frozen=bool(data.get("is_frozen", False)),
            frozen_at=_dt(data.get("frozen_at")),
            frozen_by=_uuid(data.get("frozen_by")),
            last_modified_at=_dt(data.get("last_modified_at")),
            last_modified_by=_uuid(data.get("last_modified_by")),
        )


def reprice(configuration: ConfigurationState) -> ConfigurationState:
    """Recompute every line total and every aggregate."""
    items = tuple(
        replace(item, line_total_excl_vat=line_total(item.quantity, item.unit_price_excl_vat))
        for item in configuration.items
    )
    pricing = price_lines(items, configuration.discount_percent, configuration.vat_rate)
    return replace(
        configuration,
        items=items,
        subtotal_excl_vat=pricing.subtotal_excl_vat,
        discount_amount=pricing.discount_amount,
        total_excl_vat=pricing.total_excl_vat,
        vat_amount=pricing.vat_amount,
        total_incl_vat=pricing.total_incl_vat,
    )


def with_items(
    configuration: ConfigurationState,
    items: Iterable[ConfigurationItem],
    actor_id: UUID,
    at: datetime,
) -> ConfigurationState:
    """Replace the item list, reprice and stamp the modification."""
    return reprice(
        replace(
            configuration,
            items=tuple(items),
            last_modified_at=at,
            last_modified_by=actor_id,
        )
    )


def validate_discount(discount_percent: Any) -> Decimal:
    """Return the discount as Decimal or raise if outside 0..100."""
    value = _finite(discount_percent)
    if value is None:
        raise ValidationFailedError(["Discount must be a number"])
    if value < 0 or value > HUNDRED:
        raise ValidationFailedError(["Discount must be between 0 and 100"])
    return value


# =========================================================================
# Guards
# =========================================================================


def check_editable(project: Project) -> None:
    """
    Raise unless the configuration may be edited directly.

    The frozen flag and the status are checked independently: an
    emergency-unlocked configuration in a non-editable status is still
    rejected.
    """
    if project.configuration.is_frozen:
        raise ConfigFrozenError(str(project.id))
    if not status_machine.is_editable(project.status):
        raise StatusNotEditableError(str(project.id), project.status.value)


def can_change_boat_model(project: Project) -> tuple[bool, str | None]:
    """The boat model version is pinned from project creation onwards."""
    if project.configuration.boat_model_version_id:
        return (
            False,
            "Boat model version is pinned at project creation. "
            "Use an Amendment to change the model.",
        )
    return True, None


def validate_configuration_update(
    project_id: UUID,
    existing: ConfigurationState,
    updates: Mapping[str, Any],
) -> None:
    """
    Reject updates that would change the pinned boat model version.

    Applies regardless of the frozen flag.
    """
    if (
        existing.boat_model_version_id
        and "boat_model_version_id" in updates
        and updates["boat_model_version_id"] != existing.boat_model_version_id
    ):
        raise BoatModelPinnedError(str(project_id), existing.boat_model_version_id)


# =========================================================================
# Snapshots and freezing
# =========================================================================


@dataclass(frozen=True)
class ConfigurationSnapshot:
    """
    Immutable copy of a configuration at a point in time.

    ``data`` always has ``is_frozen=True``.  ``content_hash`` is computed
    from ``data`` at capture time and verified on every load.
    """

    id: UUID
    project_id: UUID
    snapshot_number: int
    data: ConfigurationState
    trigger: SnapshotTrigger
    created_at: datetime
    created_by: UUID
    trigger_reason: str | None = None
    content_hash: str = field(default="")


def compute_content_hash(data: ConfigurationState) -> str:
    return hash_payload(data.to_payload())


def verify_snapshot(snapshot: ConfigurationSnapshot) -> bool:
    return compute_content_hash(snapshot.data) == snapshot.content_hash


def capture_snapshot(
    project_id: UUID,
    configuration: ConfigurationState,
    snapshot_number: int,
    trigger: SnapshotTrigger,
    actor_id: UUID,
    at: datetime,
    trigger_reason: str | None = None,
    snapshot_id: UUID | None = None,
) -> ConfigurationSnapshot:
    data = replace(configuration, is_frozen=True)
    return ConfigurationSnapshot(
        id=snapshot_id or uuid4(),
        project_id=project_id,
        snapshot_number=snapshot_number,
        data=data,
        trigger=SnapshotTrigger(trigger),
        trigger_reason=trigger_reason,
        created_at=at,
        created_by=actor_id,
        content_hash=compute_content_hash(data),
    )


@dataclass(frozen=True)
class FreezePlan:
    """The project after freezing, and the snapshot that records it."""

    project: Project
    snapshot: ConfigurationSnapshot


def plan_freeze(
    project: Project,
    trigger: SnapshotTrigger,
    actor_id: UUID,
    at: datetime,
    trigger_reason: str | None = None,
) -> FreezePlan:
    """
    Capture the next snapshot and mark the configuration frozen.

    Raises:
        AlreadyFrozenError: Configuration already frozen and the trigger is
            not AMENDMENT.
    """
    trigger = SnapshotTrigger(trigger)
    if project.configuration.is_frozen and trigger is not SnapshotTrigger.AMENDMENT:
        raise AlreadyFrozenError(str(project.id))

    snapshot = capture_snapshot(
        project.id,
        project.configuration,
        len(project.configuration_snapshots) + 1,
        trigger,
        actor_id,
        at,
        trigger_reason=trigger_reason,
    )
    frozen = replace(
        project.configuration,
        is_frozen=True,
        frozen_at=at,
        frozen_by=actor_id,
    )
    return FreezePlan(
        project=replace(
            project,
            configuration=frozen,
            configuration_snapshots=project.configuration_snapshots + (snapshot,),
        ),
        snapshot=snapshot,
    )
