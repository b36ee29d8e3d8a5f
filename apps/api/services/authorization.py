"""Authorization guard.

One declarative table maps each role to the actions it may take and the
scope in which it may take them. ``authorize`` is the only function that
reads the table; routers and services never branch on role strings to make
a permission decision.

Decision order:
    1. No principal → NOT_AUTHENTICATED.
    2. Principal's tenant unresolved → TenantNotFound (404), whatever the
       role or action.
    3. Target in another tenant → CROSS_TENANT, before anything about the
       target or the role table is consulted.
    4. Action absent from the role's row → WRONG_ROLE.
    5. Scope narrowing: coached team, authored curriculum, supervised
       player → NOT_OWNER_OF_RECORD when the principal is not the
       recorded coach/author/supervisor.

``authorize`` is pure: callers fetch the rows and describe them as a
``Target``. ``ensure_allowed`` turns a denial into the API error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from uuid import UUID

from core.exceptions import AuthenticationError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    coach = "coach"
    parent = "parent"
    player = "player"


class Action(str, Enum):
    view_company = "view-company"
    edit_company = "edit-company"
    list_admins = "list-admins"
    view_members = "view-members"
    manage_members = "manage-members"
    edit_owner = "edit-owner"
    transfer_ownership = "transfer-ownership"
    view_teams = "view-teams"
    manage_teams = "manage-teams"
    edit_teams = "edit-teams"
    view_players = "view-players"
    edit_player = "edit-player"
    view_evaluations = "view-evaluations"
    view_curriculums = "view-curriculums"
    manage_curriculum = "manage-curriculum"
    delete_own_account = "delete-own-account"
    edit_own_profile = "edit-own-profile"


class Scope(str, Enum):
    tenant = "tenant"          # any row in the principal's company
    coached = "coached"        # teams where coach_id == principal
    authored = "authored"      # curriculums where created_by == principal
    supervised = "supervised"  # players where parent_user_id == principal
    account = "account"        # the principal's own account


class DenyReason(str, Enum):
    not_authenticated = "NOT_AUTHENTICATED"
    wrong_role = "WRONG_ROLE"
    cross_tenant = "CROSS_TENANT"
    not_owner_of_record = "NOT_OWNER_OF_RECORD"


class TenantNotFound(NotFoundError):
    """The principal resolves to no company. A data-integrity fault."""

    def __init__(self, user_id: Optional[UUID] = None):
        super().__init__("Company", error_code="COMPANY_NOT_FOUND", identifier=user_id)


@dataclass(frozen=True)
class Principal:
    """The acting user, re-read from the store on every request."""
    user_id: UUID
    email: str
    name: str
    role: Role
    company_id: Optional[UUID]
    email_verified: bool
    onboarded: bool


@dataclass(frozen=True)
class Target:
    """Tenant and owner attribution of the entity an action touches.

    Unset fields mean "not applicable"; a target with no company is only
    checked against the role table and the record-owner fields.
    """
    company_id: Optional[UUID] = None
    coach_id: Optional[UUID] = None
    author_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    member_role: Optional[Role] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def _deny(reason: DenyReason) -> Decision:
    return Decision(False, reason)


_OWNER: Dict[Action, Scope] = {
    Action.view_company: Scope.tenant,
    Action.edit_company: Scope.tenant,
    Action.list_admins: Scope.tenant,
    Action.view_members: Scope.tenant,
    Action.manage_members: Scope.tenant,
    Action.edit_owner: Scope.tenant,
    Action.transfer_ownership: Scope.tenant,
    Action.view_teams: Scope.tenant,
    Action.manage_teams: Scope.tenant,
    Action.edit_teams: Scope.tenant,
    Action.view_players: Scope.tenant,
    Action.edit_player: Scope.tenant,
    Action.view_evaluations: Scope.tenant,
    Action.view_curriculums: Scope.tenant,
    Action.manage_curriculum: Scope.tenant,
    Action.edit_own_profile: Scope.account,
    # no delete_own_account: ownership must be transferred first
}

_ADMIN: Dict[Action, Scope] = {
    Action.view_company: Scope.tenant,
    Action.view_members: Scope.tenant,
    Action.manage_members: Scope.tenant,
    Action.view_teams: Scope.tenant,
    Action.manage_teams: Scope.tenant,
    Action.edit_teams: Scope.tenant,
    Action.view_players: Scope.tenant,
    Action.edit_player: Scope.tenant,
    Action.view_evaluations: Scope.tenant,
    Action.view_curriculums: Scope.tenant,
    Action.manage_curriculum: Scope.tenant,
    Action.delete_own_account: Scope.account,
    Action.edit_own_profile: Scope.account,
}

_COACH: Dict[Action, Scope] = {
    Action.view_company: Scope.tenant,
    Action.view_teams: Scope.coached,
    Action.manage_teams: Scope.coached,
    Action.view_players: Scope.coached,
    Action.edit_player: Scope.coached,
    Action.view_evaluations: Scope.coached,
    Action.view_curriculums: Scope.authored,
    Action.manage_curriculum: Scope.authored,
    Action.delete_own_account: Scope.account,
    Action.edit_own_profile: Scope.account,
}

_SUPERVISOR: Dict[Action, Scope] = {
    Action.view_company: Scope.tenant,
    Action.view_players: Scope.supervised,
    Action.edit_player: Scope.supervised,
    Action.view_evaluations: Scope.supervised,
    Action.delete_own_account: Scope.account,
    Action.edit_own_profile: Scope.account,
}

PERMISSIONS: Dict[Role, Dict[Action, Scope]] = {
    Role.owner: _OWNER,
    Role.admin: _ADMIN,
    Role.coach: _COACH,
    Role.parent: _SUPERVISOR,
    Role.player: _SUPERVISOR,
}


def authorize(
    principal: Optional[Principal],
    action: Action,
    target: Optional[Target] = None,
) -> Decision:
    if principal is None:
        return _deny(DenyReason.not_authenticated)
    if principal.company_id is None:
        raise TenantNotFound(principal.user_id)

    target = target or Target()
    if target.company_id is not None and target.company_id != principal.company_id:
        return _deny(DenyReason.cross_tenant)

    # Touching an owner's account is its own, narrower permission.
    if action is Action.manage_members and target.member_role is Role.owner:
        action = Action.edit_owner

    scope = PERMISSIONS.get(principal.role, {}).get(action)
    if scope is None:
        return _deny(DenyReason.wrong_role)

    if scope is Scope.coached and target.coach_id != principal.user_id:
        return _deny(DenyReason.not_owner_of_record)
    if scope is Scope.authored and target.author_id != principal.user_id:
        return _deny(DenyReason.not_owner_of_record)
    if scope is Scope.supervised and target.supervisor_id != principal.user_id:
        return _deny(DenyReason.not_owner_of_record)

    return ALLOW


def scope_for(principal: Principal, action: Action) -> Optional[Scope]:
    """The scope a role holds for an action, or None if it holds none."""
    return PERMISSIONS.get(principal.role, {}).get(action)


def ensure_allowed(
    principal: Optional[Principal],
    action: Action,
    target: Optional[Target] = None,
    error_code: Optional[str] = None,
) -> None:
    """Raise the API error for a denial; return silently when allowed.

    ``error_code`` replaces the generic reason code for call sites with a
    documented, endpoint-specific code (``NOT_OWNER``, ``ACCESS_DENIED``...).
    The reason code is always reported in ``details.reason``.
    """
    decision = authorize(principal, action, target)
    if decision:
        return

    reason = decision.reason.value
    if decision.reason is DenyReason.not_authenticated:
        raise AuthenticationError()

    logger.warning(
        f"Denied {action.value} for user {principal.user_id}: {reason}",
        extra={
            "extra_fields": {
                "event": "authorization_denied",
                "action": action.value,
                "reason": reason,
                "role": principal.role.value,
                "user_id": str(principal.user_id),
            }
        },
    )
    raise AuthorizationError(error_code=error_code or reason, reason=reason)
