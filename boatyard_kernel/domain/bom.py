"""
Bill of materials (``boatyard_kernel.domain.bom``).

Responsibility
--------------
Derive a costed parts list from a configuration snapshot.  Lines with a
known cost price are costed at that price; all others are estimated as
``round(sell_price * estimation_ratio)`` in whole currency units.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ``services/bom_service.py`` persists
the result; the project orchestrator uses ``build_bom_snapshot`` directly
while preparing the ORDER_CONFIRMED milestone.

Invariants enforced
-------------------
* Output depends only on the snapshot's included items and the ratio.
* Lines sharing an article version are aggregated into one BOM line.
* BOM lines are sorted by category, then name.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from boatyard_kernel.domain.configuration import (
    ConfigurationItem,
    ConfigurationItemType,
    ConfigurationSnapshot,
    SnapshotTrigger,
)
from boatyard_kernel.domain.pricing import ZERO, round2, round_whole

if TYPE_CHECKING:
    from boatyard_kernel.domain.project import Project

DEFAULT_COST_ESTIMATION_RATIO = Decimal("0.6")


class BOMStatus(str, Enum):
    BASELINE = "BASELINE"
    REVISED = "REVISED"


@dataclass(frozen=True)
class BOMItem:
    id: UUID
    category: str
    name: str
    quantity: Decimal
    unit: str
    unit_cost: Decimal
    total_cost: Decimal
    is_estimated: bool
    article_number: str | None = None
    description: str | None = None
    estimation_ratio: Decimal | None = None
    sell_price: Decimal | None = None
    article_id: str | None = None
    article_version_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "category": self.category,
            "name": self.name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "unit_cost": str(self.unit_cost),
            "total_cost": str(self.total_cost),
            "is_estimated": self.is_estimated,
            "article_number": self.article_number,
            "description": self.description,
            "estimation_ratio": None if self.estimation_ratio is None else str(self.estimation_ratio),
            "sell_price": None if self.sell_price is None else str(self.sell_price),
            "article_id": self.article_id,
            "article_version_id": self.article_version_id,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> BOMItem:
        ratio = data.get("estimation_ratio")
        sell = data.get("sell_price")
        return cls(
            id=UUID(str(data["id"])),
            category=data["category"],
            name=data["name"],
            quantity=Decimal(str(data["quantity"])),
            unit=data["unit"],
            unit_cost=Decimal(str(data["unit_cost"])),
            total_cost=Decimal(str(data["total_cost"])),
            is_estimated=bool(data["is_estimated"]),
            article_number=data.get("article_number"),
            description=data.get("description"),
            estimation_ratio=None if ratio is None else Decimal(str(ratio)),
            sell_price=None if sell is None else Decimal(str(sell)),
            article_id=data.get("article_id"),
            article_version_id=data.get("article_version_id"),
        )


@dataclass(frozen=True)
class BOMSnapshot:
    id: UUID
    project_id: UUID
    snapshot_number: int
    configuration_snapshot_id: UUID
    items: tuple[BOMItem, ...]
    total_parts: Decimal
    total_cost_excl_vat: Decimal
    estimated_cost_count: int
    estimated_cost_total: Decimal
    actual_cost_total: Decimal
    cost_estimation_ratio: Decimal
    status: BOMStatus
    trigger: SnapshotTrigger
    created_at: datetime
    created_by: UUID


def _aggregation_key(item: ConfigurationItem) -> str:
    if item.item_type is ConfigurationItemType.ARTICLE and item.article_version_id:
        return item.article_version_id
    return f"custom-{item.id}"


def expand_to_bom_items(
    items: Iterable[ConfigurationItem],
    estimation_ratio: Decimal,
    id_factory: Callable[[], UUID] = uuid4,
) -> tuple[BOMItem, ...]:
    """Cost every included item and aggregate by article version."""
    ratio = Decimal(estimation_ratio)
    lines: dict[str, BOMItem] = {}

    for item in items:
        if not item.is_included:
            continue
        has_actual_cost = item.cost_price is not None and item.cost_price > 0
        if has_actual_cost:
            unit_cost = round2(item.cost_price)
        else:
            unit_cost = round_whole(item.unit_price_excl_vat * ratio)
        total_cost = round2(item.quantity * unit_cost)

        key = _aggregation_key(item)
        existing = lines.get(key)
        if existing is not None:
            lines[key] = replace(
                existing,
                quantity=existing.quantity + item.quantity,
                total_cost=existing.total_cost + total_cost,
            )
            continue

        lines[key] = BOMItem(
            id=id_factory(),
            category=item.category,
            name=item.name,
            quantity=item.quantity,
            unit=item.unit,
            unit_cost=unit_cost,
            total_cost=total_cost,
            is_estimated=not has_actual_cost,
            article_number=item.article_number,
            description=item.description,
            estimation_ratio=None if has_actual_cost else ratio,
            sell_price=None if has_actual_cost else item.unit_price_excl_vat,
            article_id=item.article_id,
            article_version_id=item.article_version_id,
        )

    return tuple(sorted(lines.values(), key=lambda line: (line.category, line.name)))


def build_bom_snapshot(
    project: Project,
    configuration_snapshot: ConfigurationSnapshot,
    trigger: SnapshotTrigger,
    estimation_ratio: Decimal,
    actor_id: UUID,
    at: datetime,
    id_factory: Callable[[], UUID] = uuid4,
) -> BOMSnapshot:
    """
    Build the next BOM snapshot from ``configuration_snapshot``.

    The first BOM of a project is the BASELINE; later ones are REVISED.
    """
    items = expand_to_bom_items(
        configuration_snapshot.data.items, estimation_ratio, id_factory
    )
    total_cost = sum((line.total_cost for line in items), ZERO)
    estimated = [line for line in items if line.is_estimated]
    estimated_total = sum((line.total_cost for line in estimated), ZERO)

    return BOMSnapshot(
        id=id_factory(),
        project_id=project.id,
        snapshot_number=len(project.bom_snapshots) + 1,
        configuration_snapshot_id=configuration_snapshot.id,
        items=items,
        total_parts=sum((line.quantity for line in items), Decimal("0")),
        total_cost_excl_vat=total_cost,
        estimated_cost_count=len(estimated),
        estimated_cost_total=estimated_total,
        actual_cost_total=total_cost - estimated_total,
        cost_estimation_ratio=Decimal(estimation_ratio),
        status=BOMStatus.REVISED if project.bom_snapshots else BOMStatus.BASELINE,
        trigger=SnapshotTrigger(trigger),
        created_at=at,
        created_by=actor_id,
    )
