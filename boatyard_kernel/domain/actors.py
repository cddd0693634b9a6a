"""
Actor identity carried through governance operations.

``AuditContext`` says who performed an operation and is stamped on
snapshots, amendments and audit entries.  ``User`` adds the role needed
for permission checks (amendment approval, emergency unlock).
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class AuditContext:
    """Who is acting."""

    actor_id: UUID
    actor_name: str = "system"


@dataclass(frozen=True)
class User:
    """An authenticated user with a single role."""

    id: UUID
    name: str
    role: str

    def audit_context(self) -> AuditContext:
        return AuditContext(actor_id=self.id, actor_name=self.name)
