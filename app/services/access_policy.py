"""Role and ownership rules for document and user-administration operations.

The rules are kept as a plain table keyed by ``(role, operation)`` so the whole
policy can be read (and tested) at a glance. Each cell is one of:

* ``ALLOW`` - permitted regardless of who owns the resource,
* ``OWN``   - permitted only on resources the actor owns; for collection
  operations (list, stats) it narrows the query to the actor's own records,
* ``DENY``  - refused for the role outright.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass

from app.errors import ForbiddenError
from app.models.user import UserRole

logger = logging.getLogger(__name__)


class Operation(enum.Enum):
    create = "create"
    list = "list"
    stats = "stats"
    read = "read"
    download = "download"
    update = "update"
    delete = "delete"
    manage_users = "manage_users"


class Rule(enum.Enum):
    ALLOW = "allow"
    OWN = "own"
    DENY = "deny"


class DenyKind(enum.Enum):
    role = "role"
    ownership = "ownership"


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: UserRole


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None
    kind: DenyKind | None = None


_A, _O, _D = Rule.ALLOW, Rule.OWN, Rule.DENY

POLICY: dict[UserRole, dict[Operation, Rule]] = {
    UserRole.admin: {op: _A for op in Operation},
    UserRole.editor: {
        Operation.create: _A,
        Operation.list: _O,
        Operation.stats: _O,
        Operation.read: _A,
        Operation.download: _A,
        Operation.update: _O,
        Operation.delete: _O,
        Operation.manage_users: _D,
    },
    UserRole.viewer: {
        Operation.create: _A,
        Operation.list: _O,
        Operation.stats: _O,
        Operation.read: _O,
        Operation.download: _O,
        Operation.update: _D,
        Operation.delete: _D,
        Operation.manage_users: _D,
    },
}

_ROLE_DENIALS = {
    Operation.update: "{role}s cannot update documents",
    Operation.delete: "{role}s cannot delete documents",
    Operation.manage_users: "Only administrators can manage users",
}

_OWNERSHIP_DENIALS = {
    Operation.read: "You can only access your own documents",
    Operation.download: "You can only access your own documents",
    Operation.update: "{role}s can only update their own documents",
    Operation.delete: "{role}s can only delete their own documents",
}


def _reason(templates: dict, operation: Operation, role: UserRole) -> str:
    template = templates.get(operation, "Operation not permitted")
    return template.format(role=role.value.capitalize())


def decide(
    actor_role: UserRole,
    actor_id,
    resource_owner_id,
    operation: Operation,
) -> Decision:
    rule = POLICY[actor_role][operation]
    if rule is Rule.ALLOW:
        return Decision(True)
    if rule is Rule.DENY:
        return Decision(
            False, _reason(_ROLE_DENIALS, operation, actor_role), DenyKind.role
        )
    if resource_owner_id is None or str(resource_owner_id) == str(actor_id):
        return Decision(True)
    return Decision(
        False,
        _reason(_OWNERSHIP_DENIALS, operation, actor_role),
        DenyKind.ownership,
    )


def authorize(actor: Actor, operation: Operation, resource_owner_id=None) -> None:
    decision = decide(actor.role, actor.id, resource_owner_id, operation)
    if decision.allowed:
        return
    logger.warning(
        "Denied %s for %s %s (%s): %s",
        operation.value,
        actor.role.value,
        actor.id,
        decision.kind.value,
        decision.reason,
    )
    raise ForbiddenError(decision.reason, details={"reason": decision.kind.value})


def list_scope(actor: Actor, operation: Operation) -> uuid.UUID | None:
    """Owner id a collection query must be narrowed to, or None for all."""
    rule = POLICY[actor.role][operation]
    if rule is Rule.DENY:
        authorize(actor, operation)
    if rule is Rule.OWN:
        return actor.id
    return None
