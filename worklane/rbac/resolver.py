"""Authorization resolver.

Answers "may user U do P on resource R?" for organizations, projects and tasks.

Precedence for a project:

1. an override row for exactly P on the user's project membership decides;
2. otherwise the project role's permission set decides;
3. with no project membership, the organization role is checked for the same P.

Task creators are always allowed on their own tasks; everyone else is checked
against the task's project. Missing memberships or resources resolve to
``False``. Storage failures surface as ``AuthorizationCheckFailed`` so callers
can fail closed without confusing an outage with a denial.

The decision rules (``decide_*``) are pure functions over ``Grant`` snapshots;
the loaders around them are the only code that touches the session.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from worklane.models.enums import ResourceKind
from worklane.models.membership import OrganizationMember, ProjectMember
from worklane.models.project import Project
from worklane.models.task import Task
from worklane.rbac.errors import AuthorizationCheckFailed, InvalidResourceError
from worklane.rbac.perms import permission_name

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Grant:
    role_name: str
    permissions: frozenset[str]
    overrides: Mapping[str, bool] = field(default_factory=dict)

# pure decisions

def decide_org(grant: Grant | None, permission: str) -> bool:
    if grant is None:
        return False
    return permission in grant.permissions

def decide_project(project_grant: Grant | None, org_grant: Grant | None, permission: str) -> bool:
    if project_grant is None:
        return decide_org(org_grant, permission)
    if permission in project_grant.overrides:
        return project_grant.overrides[permission]
    return permission in project_grant.permissions

def effective_permissions(org_grant: Grant | None, project_grant: Grant | None) -> set[str]:
    perms: set[str] = set()
    if org_grant is not None:
        perms |= org_grant.permissions
    if project_grant is not None:
        perms |= project_grant.permissions
        for name, granted in project_grant.overrides.items():
            if granted:
                perms.add(name)
            else:
                perms.discard(name)
    return perms

# loaders

def _as_uuid(value: uuid.UUID | str, what: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidResourceError(f"malformed {what} id: {value!r}") from None

def _as_kind(kind: ResourceKind | str) -> ResourceKind:
    try:
        return ResourceKind(kind.value if isinstance(kind, Enum) else str(kind).lower())
    except ValueError:
        raise InvalidResourceError(f"unknown resource kind: {kind!r}") from None

def _org_grant(db: Session, user_id: uuid.UUID, org_id: uuid.UUID) -> Grant | None:
    m = db.get(OrganizationMember, {"user_id": user_id, "org_id": org_id})
    if m is None:
        return None
    return Grant(role_name=m.role.name, permissions=frozenset(p.name for p in m.role.permissions))

def _project_grant(db: Session, user_id: uuid.UUID, project_id: uuid.UUID) -> Grant | None:
    q = select(ProjectMember).where(ProjectMember.user_id == user_id, ProjectMember.project_id == project_id)
    pm = db.scalar(q)
    if pm is None:
        return None
    return Grant(
        role_name=pm.role.name,
        permissions=frozenset(p.name for p in pm.role.permissions),
        overrides=pm.override_map,
    )

def _project_org_id(db: Session, project_id: uuid.UUID) -> uuid.UUID | None:
    return db.scalar(select(Project.org_id).where(Project.id == project_id))

def _check_project(db: Session, user_id: uuid.UUID, project_id: uuid.UUID, permission: str) -> bool:
    grant = _project_grant(db, user_id, project_id)
    if grant is not None:
        return decide_project(grant, None, permission)

    org_id = _project_org_id(db, project_id)
    if org_id is None:
        return False
    return decide_org(_org_grant(db, user_id, org_id), permission)

def _check_task(db: Session, user_id: uuid.UUID, task_id: uuid.UUID, permission: str) -> bool:
    row = db.execute(select(Task.created_by, Task.project_id).where(Task.id == task_id)).first()
    if row is None:
        return False
    created_by, project_id = row
    if created_by == user_id:
        return True
    return _check_project(db, user_id, project_id, permission)

_CHECKS = {
    ResourceKind.organization: lambda db, u, r, p: decide_org(_org_grant(db, u, r), p),
    ResourceKind.project: _check_project,
    ResourceKind.task: _check_task,
}

# public entry points

def resolve(
    db: Session,
    user_id: uuid.UUID | str,
    resource_kind: ResourceKind | str,
    resource_id: uuid.UUID | str,
    permission: str | Enum,
) -> bool:
    kind = _as_kind(resource_kind)
    uid = _as_uuid(user_id, "user")
    rid = _as_uuid(resource_id, kind.value)
    name = permission_name(permission)

    try:
        allowed = _CHECKS[kind](db, uid, rid, name)
    except SQLAlchemyError as e:
        logger.exception("permission check failed: %s %s %s %s", uid, kind.value, rid, name)
        raise AuthorizationCheckFailed() from e

    logger.debug("resolve %s %s:%s %s -> %s", uid, kind.value, rid, name, allowed)
    return allowed

def resolve_any(
    db: Session,
    user_id: uuid.UUID | str,
    resource_kind: ResourceKind | str,
    resource_id: uuid.UUID | str,
    permissions: Iterable[str | Enum],
) -> bool:
    return any(resolve(db, user_id, resource_kind, resource_id, p) for p in permissions)

def has_org_permission(db: Session, user_id, org_id, permission) -> bool:
    return resolve(db, user_id, ResourceKind.organization, org_id, permission)

def has_project_permission(db: Session, user_id, project_id, permission) -> bool:
    return resolve(db, user_id, ResourceKind.project, project_id, permission)

def has_task_permission(db: Session, user_id, task_id, permission) -> bool:
    return resolve(db, user_id, ResourceKind.task, task_id, permission)

def is_org_member(db: Session, user_id: uuid.UUID, org_id: uuid.UUID) -> bool:
    try:
        return db.get(OrganizationMember, {"user_id": user_id, "org_id": org_id}) is not None
    except SQLAlchemyError as e:
        logger.exception("membership check failed")
        raise AuthorizationCheckFailed() from e

def is_project_member(db: Session, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
    try:
        q = select(ProjectMember.id).where(
            ProjectMember.user_id == user_id, ProjectMember.project_id == project_id
        )
        return db.scalar(q) is not None
    except SQLAlchemyError as e:
        logger.exception("membership check failed")
        raise AuthorizationCheckFailed() from e

def get_effective_permissions(
    db: Session,
    user_id: uuid.UUID | str,
    org_id: uuid.UUID | str | None = None,
    project_id: uuid.UUID | str | None = None,
) -> set[str]:
    """Union of role permissions at the given scopes, with project overrides applied last."""
    uid = _as_uuid(user_id, "user")
    try:
        org_grant = _org_grant(db, uid, _as_uuid(org_id, "org")) if org_id is not None else None
        project_grant = (
            _project_grant(db, uid, _as_uuid(project_id, "project")) if project_id is not None else None
        )
    except SQLAlchemyError as e:
        logger.exception("effective permission lookup failed for %s", uid)
        raise AuthorizationCheckFailed() from e
    return effective_permissions(org_grant, project_grant)

def get_role_name(
    db: Session,
    user_id: uuid.UUID | str,
    org_id: uuid.UUID | str | None = None,
    project_id: uuid.UUID | str | None = None,
) -> str | None:
    """Role held at the project when ``project_id`` is given, else at the org."""
    if org_id is None and project_id is None:
        raise InvalidResourceError("either org_id or project_id is required")

    uid = _as_uuid(user_id, "user")
    try:
        if project_id is not None:
            grant = _project_grant(db, uid, _as_uuid(project_id, "project"))
        else:
            grant = _org_grant(db, uid, _as_uuid(org_id, "org"))
    except SQLAlchemyError as e:
        logger.exception("role lookup failed for %s", uid)
        raise AuthorizationCheckFailed() from e
    return grant.role_name if grant is not None else None
