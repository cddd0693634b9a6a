"""Shared builders and collaborator fakes for the test suite."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from boatyard_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from boatyard_kernel.domain.actors import User
from boatyard_kernel.domain.configuration import (
    ConfigurationState,
    NewConfigurationItem,
    build_item,
    reprice,
)
from boatyard_kernel.domain.project import Project
from boatyard_kernel.domain.status_machine import ProjectStatus

FIXED_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

# Lifecycle path from DRAFT to CLOSED
LIFECYCLE_ORDER = (
    ProjectStatus.DRAFT,
    ProjectStatus.QUOTED,
    ProjectStatus.OFFER_SENT,
    ProjectStatus.ORDER_CONFIRMED,
    ProjectStatus.IN_PRODUCTION,
    ProjectStatus.READY_FOR_DELIVERY,
    ProjectStatus.DELIVERED,
    ProjectStatus.CLOSED,
)


def make_user(role: str, name: str | None = None) -> User:
    return User(id=uuid4(), name=name or f"{role.title()} User", role=role)


def item(
    name: str = "Hull package",
    unit_price: str = "10000",
    quantity: str = "1",
    category: str = "Hull",
    **kwargs,
) -> NewConfigurationItem:
    return NewConfigurationItem(
        name=name,
        category=category,
        quantity=Decimal(quantity),
        unit_price_excl_vat=Decimal(unit_price),
        **kwargs,
    )


@dataclass
class FakeQuoteProvider:
    """Quote facts keyed by project id; everything is False until set."""

    drafts: set[UUID] = field(default_factory=set)
    sent: set[UUID] = field(default_factory=set)
    accepted: set[UUID] = field(default_factory=set)
    checklists: set[UUID] = field(default_factory=set)

    def has_draft_quote(self, project_id: UUID) -> bool:
        return project_id in self.drafts

    def has_sent_quote(self, project_id: UUID) -> bool:
        return project_id in self.sent

    def has_accepted_quote(self, project_id: UUID) -> bool:
        return project_id in self.accepted

    def is_delivery_checklist_complete(self, project_id: UUID) -> bool:
        return project_id in self.checklists

    def satisfy_all(self, project_id: UUID) -> None:
        for facts in (self.drafts, self.sent, self.accepted, self.checklists):
            facts.add(project_id)


@dataclass
class FakeClientDirectory:
    clients: dict[UUID, str] = field(default_factory=dict)

    def exists(self, client_id: UUID) -> bool:
        return client_id in self.clients

    def name_of(self, client_id: UUID) -> str | None:
        return self.clients.get(client_id)

    def add(self, name: str) -> UUID:
        client_id = uuid4()
        self.clients[client_id] = name
        return client_id


def make_project(
    items=(),
    status: ProjectStatus = ProjectStatus.DRAFT,
    boat_model_version_id: str | None = "eagle-28-v3",
    at: datetime = FIXED_TIME,
    **kwargs,
) -> Project:
    """An in-memory project with priced items, for pure domain tests."""
    built = tuple(build_item(new_item, sort_order=i) for i, new_item in enumerate(items))
    configuration = reprice(
        ConfigurationState(
            items=built,
            boat_model_version_id=boat_model_version_id,
            propulsion_type="Electric",
        )
    )
    return Project(
        id=uuid4(),
        project_number="PRJ-2025-0001",
        title="Eagle 28 electric",
        client_id=uuid4(),
        created_by=uuid4(),
        created_at=at,
        status=status,
        configuration=configuration,
        **kwargs,
    )


@contextmanager
def immutability_disabled():
    """Lift the ORM append-only guards so a test can simulate tampering."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()
