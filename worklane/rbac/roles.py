"""Role model: global system templates and organization-owned roles.

Templates (``org_id`` null, ``is_system`` true) are seeded once and never edited
through this module's update/delete paths. Every organization receives clones of
them at provisioning time; clones and custom roles are ordinary mutable
organization roles.
"""

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from worklane.models.enums import RoleKind
from worklane.models.membership import OrganizationMember, ProjectMember
from worklane.models.role import Role
from worklane.rbac.catalog import ensure_default_catalog, resolve_permission_names
from worklane.rbac.errors import (
    DuplicateRoleNameError,
    NotFoundError,
    RoleInUseError,
    SystemRoleImmutableError,
)
from worklane.rbac.perms import DEFAULT_ROLE_PERMISSIONS, ROLE_DESCRIPTIONS

logger = logging.getLogger(__name__)

def get_role(db: Session, role_id: uuid.UUID) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("role", role_id)
    return role

def get_org_role(db: Session, org_id: uuid.UUID, role_id: uuid.UUID) -> Role:
    role = db.get(Role, role_id)
    if role is None or role.org_id != org_id:
        raise NotFoundError("role", role_id)
    return role

def get_org_role_by_name(db: Session, org_id: uuid.UUID, name: str) -> Role | None:
    return db.scalar(select(Role).where(Role.org_id == org_id, Role.name == name))

def list_roles(db: Session, org_id: uuid.UUID) -> list[Role]:
    q = select(Role).where(Role.org_id == org_id).order_by(Role.created_at.asc(), Role.name.asc())
    return list(db.scalars(q).all())

def list_system_roles(db: Session) -> list[Role]:
    q = select(Role).where(Role.org_id.is_(None), Role.is_system.is_(True)).order_by(Role.name.asc())
    return list(db.scalars(q).all())

def count_role_members(db: Session, role_id: uuid.UUID) -> int:
    org_n = db.scalar(
        select(func.count()).select_from(OrganizationMember).where(OrganizationMember.role_id == role_id)
    ) or 0
    project_n = db.scalar(
        select(func.count()).select_from(ProjectMember).where(ProjectMember.role_id == role_id)
    ) or 0
    return int(org_n) + int(project_n)

def _ensure_name_available(
    db: Session,
    org_id: uuid.UUID | None,
    name: str,
    exclude_role_id: uuid.UUID | None = None,
) -> None:
    # template names are reserved everywhere
    q = select(Role.id).where(Role.org_id.is_(None), Role.name == name)
    if exclude_role_id is not None:
        q = q.where(Role.id != exclude_role_id)
    if db.scalar(q) is not None:
        raise DuplicateRoleNameError(name)

    if org_id is None:
        return

    q = select(Role.id).where(Role.org_id == org_id, Role.name == name)
    if exclude_role_id is not None:
        q = q.where(Role.id != exclude_role_id)
    if db.scalar(q) is not None:
        raise DuplicateRoleNameError(name)

def _commit_role(db: Session, name: str) -> None:
    # unique constraints back the name checks under concurrent writers
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateRoleNameError(name) from None

def _lock_role(db: Session, role_id: uuid.UUID) -> Role:
    role = db.scalar(select(Role).where(Role.id == role_id).with_for_update())
    if role is None:
        raise NotFoundError("role", role_id)
    return role

def create_system_role(
    db: Session,
    name: str,
    description: str | None,
    permission_names: Iterable[str],
) -> Role:
    name = name.strip()
    permissions = resolve_permission_names(db, permission_names)
    _ensure_name_available(db, None, name)

    role = Role(org_id=None, name=name, description=description, is_system=True, permissions=permissions)
    db.add(role)
    _commit_role(db, name)
    logger.info("created system role %s with %d permissions", name, len(permissions))
    return role

def ensure_system_roles(db: Session) -> list[Role]:
    """Upsert the built-in templates, replacing their permission sets."""
    existing = {r.name: r for r in list_system_roles(db)}
    roles: list[Role] = []

    for system_role, perms in DEFAULT_ROLE_PERMISSIONS.items():
        permissions = resolve_permission_names(db, perms)
        role = existing.get(system_role.value)
        if role is None:
            role = Role(
                org_id=None,
                name=system_role.value,
                description=ROLE_DESCRIPTIONS[system_role],
                is_system=True,
            )
            db.add(role)
        else:
            role.description = ROLE_DESCRIPTIONS[system_role]
        role.permissions = permissions
        roles.append(role)

    db.commit()
    return roles

def stage_system_role_clones(db: Session, org_id: uuid.UUID) -> list[Role]:
    """Copy every template into ``org_id``, matching existing clones by name.

    Flushes without committing so callers can fold it into a larger transaction.
    """
    clones: list[Role] = []
    for template in list_system_roles(db):
        role = get_org_role_by_name(db, org_id, template.name)
        if role is None:
            role = Role(org_id=org_id, name=template.name, is_system=False)
            db.add(role)
        role.description = template.description
        role.permissions = list(template.permissions)
        clones.append(role)
    db.flush()
    return clones

def clone_system_roles_into_organization(db: Session, org_id: uuid.UUID) -> list[Role]:
    """Re-running converges on the same roles and permission links."""
    clones = stage_system_role_clones(db, org_id)
    db.commit()
    logger.info("cloned %d system roles into org %s", len(clones), org_id)
    return clones

def create_custom_role(
    db: Session,
    org_id: uuid.UUID,
    name: str,
    description: str | None,
    permission_names: Iterable[str],
) -> Role:
    name = name.strip()
    _ensure_name_available(db, org_id, name)
    permissions = resolve_permission_names(db, permission_names)

    role = Role(org_id=org_id, name=name, description=description, is_system=False, permissions=permissions)
    db.add(role)
    _commit_role(db, name)
    logger.info("created role %s in org %s", name, org_id)
    return role

def update_role(db: Session, role_id: uuid.UUID, patch: dict) -> Role:
    """Apply ``patch`` (any of ``name``, ``description``, ``permissions``).

    A supplied permission list replaces the whole set inside one transaction,
    so concurrent readers see either the old set or the new one.
    """
    role = _lock_role(db, role_id)
    if role.kind is RoleKind.system_template:
        raise SystemRoleImmutableError(role.name)

    # validate everything before touching the row
    name = patch.get("name")
    if name is not None:
        name = name.strip()
        if name != role.name:
            _ensure_name_available(db, role.org_id, name, exclude_role_id=role.id)

    permissions = None
    if patch.get("permissions") is not None:
        permissions = resolve_permission_names(db, patch["permissions"])

    if name is not None:
        role.name = name
    if "description" in patch:
        role.description = patch["description"]
    if permissions is not None:
        role.permissions = permissions

    _commit_role(db, role.name)
    logger.info("updated role %s (%s)", role.id, ", ".join(sorted(patch)) or "no changes")
    return role

def rename_role(db: Session, role_id: uuid.UUID, name: str) -> Role:
    return update_role(db, role_id, {"name": name})

def delete_role(db: Session, role_id: uuid.UUID) -> None:
    role = _lock_role(db, role_id)
    if role.kind is RoleKind.system_template:
        raise SystemRoleImmutableError(role.name)

    name = role.name
    n = count_role_members(db, role_id)
    if n > 0:
        db.rollback()
        raise RoleInUseError(name, n)

    db.delete(role)
    try:
        db.commit()
    except IntegrityError:
        # a member was assigned between the count and the delete
        db.rollback()
        raise RoleInUseError(name, count_role_members(db, role_id)) from None
    logger.info("deleted role %s (%s)", role_id, name)

def bootstrap_defaults(db: Session) -> list[Role]:
    """Seed the permission catalog and the system templates."""
    ensure_default_catalog(db)
    return ensure_system_roles(db)
