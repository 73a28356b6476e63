"""Organization and project membership, including per-member overrides."""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from worklane.config import settings
from worklane.models.membership import OrganizationMember, ProjectMember, ProjectMemberPermission
from worklane.models.org import Org
from worklane.models.project import Project
from worklane.models.role import Role
from worklane.models.user import User
from worklane.rbac.catalog import resolve_permission_names
from worklane.rbac.errors import (
    AlreadyMemberError,
    AlreadyProjectMemberError,
    NotFoundError,
    NotOrganizationMemberError,
    RoleNotInOrganizationError,
    SelfRemovalError,
    WorklaneError,
)
from worklane.rbac.perms import permission_name
from worklane.rbac.roles import get_org_role_by_name, stage_system_role_clones

logger = logging.getLogger(__name__)

OverrideInput = Mapping[str, bool] | Iterable[tuple[str, bool]]

@dataclass(frozen=True)
class RemovedMember:
    user_id: uuid.UUID
    org_id: uuid.UUID
    role_name: str
    project_memberships_removed: int

def get_org(db: Session, org_id: uuid.UUID) -> Org:
    org = db.get(Org, org_id)
    if org is None:
        raise NotFoundError("org", org_id)
    return org

def get_project(db: Session, project_id: uuid.UUID) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError("project", project_id)
    return project

def _get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return user

def _role_in_org(db: Session, role_id: uuid.UUID, org_id: uuid.UUID) -> Role:
    role = db.get(Role, role_id)
    if role is None or role.org_id != org_id:
        raise RoleNotInOrganizationError()
    return role

def _lock_org_member(
    db: Session,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    shared: bool = False,
) -> OrganizationMember | None:
    # shared for project adds, exclusive for removals; a removal never interleaves an add
    q = (
        select(OrganizationMember)
        .where(OrganizationMember.org_id == org_id, OrganizationMember.user_id == user_id)
        .with_for_update(read=shared, of=OrganizationMember)
        .execution_options(populate_existing=True)
    )
    return db.scalar(q)

# organizations

def provision_organization(
    db: Session,
    name: str,
    creator_id: uuid.UUID,
    description: str | None = None,
) -> Org:
    """Create an org, clone every system role into it and add the creator.

    Runs as one transaction; a failure leaves nothing behind.
    """
    org = Org(name=name, description=description)
    db.add(org)
    db.flush()
    stage_system_role_clones(db, org.id)

    creator_role = get_org_role_by_name(db, org.id, settings.creator_role_name)
    if creator_role is None:
        db.rollback()
        raise NotFoundError("role", settings.creator_role_name)

    db.add(OrganizationMember(user_id=creator_id, org_id=org.id, role_id=creator_role.id))
    db.commit()
    logger.info("provisioned org %s for user %s", org.id, creator_id)
    return org

def get_organization_member(db: Session, org_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationMember | None:
    return db.get(OrganizationMember, {"user_id": user_id, "org_id": org_id})

def list_organization_members(db: Session, org_id: uuid.UUID) -> list[OrganizationMember]:
    q = (
        select(OrganizationMember)
        .where(OrganizationMember.org_id == org_id)
        .order_by(OrganizationMember.joined_at.asc())
    )
    return list(db.scalars(q).all())

def list_user_organizations(db: Session, user_id: uuid.UUID) -> list[tuple[Org, OrganizationMember]]:
    q = (
        select(Org, OrganizationMember)
        .join(OrganizationMember, OrganizationMember.org_id == Org.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Org.created_at.desc())
    )
    return [(o, m) for o, m in db.execute(q).all()]

def add_organization_member(
    db: Session,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role_id: uuid.UUID,
) -> OrganizationMember:
    get_org(db, org_id)
    _get_user(db, user_id)

    if get_organization_member(db, org_id, user_id) is not None:
        raise AlreadyMemberError()
    _role_in_org(db, role_id, org_id)

    m = OrganizationMember(user_id=user_id, org_id=org_id, role_id=role_id)
    db.add(m)
    try:
        db.commit()
    except IntegrityError:
        # lost an add race on the (user, org) key
        db.rollback()
        raise AlreadyMemberError() from None
    logger.info("added user %s to org %s", user_id, org_id)
    return m

def update_organization_member_role(
    db: Session,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    new_role_id: uuid.UUID,
) -> OrganizationMember:
    m = _lock_org_member(db, org_id, user_id)
    if m is None:
        db.rollback()
        raise NotFoundError("member", user_id)
    try:
        _role_in_org(db, new_role_id, org_id)
    except RoleNotInOrganizationError:
        db.rollback()
        raise

    if m.role_id != new_role_id:
        m.role_id = new_role_id
        db.commit()
        db.refresh(m)
        logger.info("changed role of user %s in org %s", user_id, org_id)
    return m

def remove_organization_member(
    db: Session,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    acting_user_id: uuid.UUID | None = None,
) -> RemovedMember:
    """Remove the member and every project membership they hold in the org."""
    if acting_user_id is not None and acting_user_id == user_id:
        raise SelfRemovalError()

    m = _lock_org_member(db, org_id, user_id)
    if m is None:
        db.rollback()
        raise NotFoundError("member", user_id)
    role_name = m.role.name

    q = (
        select(ProjectMember)
        .join(Project, Project.id == ProjectMember.project_id)
        .where(Project.org_id == org_id, ProjectMember.user_id == user_id)
    )
    project_members = db.scalars(q).all()
    for pm in project_members:
        db.delete(pm)
    db.delete(m)
    db.commit()

    logger.info(
        "removed user %s from org %s (%d project memberships)", user_id, org_id, len(project_members)
    )
    return RemovedMember(
        user_id=user_id,
        org_id=org_id,
        role_name=role_name,
        project_memberships_removed=len(project_members),
    )

# projects

def get_project_member(db: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectMember | None:
    q = select(ProjectMember).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
    return db.scalar(q)

def list_project_members(db: Session, project_id: uuid.UUID) -> list[ProjectMember]:
    q = select(ProjectMember).where(ProjectMember.project_id == project_id).order_by(ProjectMember.joined_at.asc())
    return list(db.scalars(q).all())

def list_user_projects(db: Session, user_id: uuid.UUID, org_id: uuid.UUID) -> list[tuple[Project, ProjectMember]]:
    q = (
        select(Project, ProjectMember)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user_id, Project.org_id == org_id)
        .order_by(Project.created_at.desc())
    )
    return [(p, pm) for p, pm in db.execute(q).all()]

def _build_overrides(db: Session, overrides: OverrideInput | None) -> list[ProjectMemberPermission]:
    if not overrides:
        return []
    items = overrides.items() if isinstance(overrides, Mapping) else overrides

    # one row per permission; later entries win
    wanted: dict[str, bool] = {}
    for name, granted in items:
        wanted[permission_name(name)] = bool(granted)

    permissions = resolve_permission_names(db, wanted)
    return [ProjectMemberPermission(permission=p, granted=wanted[p.name]) for p in permissions]

def _lock_project_member(db: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectMember:
    q = (
        select(ProjectMember)
        .where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .with_for_update(of=ProjectMember)
    )
    pm = db.scalar(q)
    if pm is None:
        raise NotFoundError("project member", user_id)
    return pm

def add_project_member(
    db: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    role_id: uuid.UUID,
    overrides: OverrideInput | None = None,
) -> ProjectMember:
    project = get_project(db, project_id)

    # held until commit so a concurrent removal cannot strand this row
    if _lock_org_member(db, project.org_id, user_id, shared=True) is None:
        db.rollback()
        raise NotOrganizationMemberError()
    try:
        if get_project_member(db, project_id, user_id) is not None:
            raise AlreadyProjectMemberError()
        _role_in_org(db, role_id, project.org_id)
        rows = _build_overrides(db, overrides)
    except WorklaneError:
        db.rollback()
        raise

    pm = ProjectMember(user_id=user_id, project_id=project_id, role_id=role_id, overrides=rows)
    db.add(pm)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyProjectMemberError() from None
    logger.info("added user %s to project %s with %d overrides", user_id, project_id, len(rows))
    return pm

def update_project_member(
    db: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    role_id: uuid.UUID | None = None,
    overrides: OverrideInput | None = None,
) -> ProjectMember:
    """Change the member's role and/or replace their whole override set."""
    project = get_project(db, project_id)
    if role_id is not None:
        _role_in_org(db, role_id, project.org_id)
    rows = _build_overrides(db, overrides) if overrides is not None else None

    pm = _lock_project_member(db, project_id, user_id)
    if role_id is not None:
        pm.role_id = role_id
    if rows is not None:
        pm.overrides.clear()
        db.flush()
        pm.overrides.extend(rows)

    db.commit()
    db.refresh(pm)
    logger.info("updated project member %s in project %s", user_id, project_id)
    return pm

def replace_project_member_overrides(
    db: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    overrides: OverrideInput,
) -> ProjectMember:
    return update_project_member(db, project_id, user_id, overrides=overrides)

def set_project_member_override(
    db: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    permission: str,
    granted: bool,
) -> ProjectMemberPermission:
    (p,) = resolve_permission_names(db, [permission])
    pm = _lock_project_member(db, project_id, user_id)

    row = next((o for o in pm.overrides if o.permission_id == p.id), None)
    if row is None:
        row = ProjectMemberPermission(permission=p, granted=granted)
        pm.overrides.append(row)
    else:
        row.granted = granted

    db.commit()
    logger.info("override %s=%s for user %s on project %s", p.name, granted, user_id, project_id)
    return row

def clear_project_member_override(
    db: Session,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    permission: str,
) -> bool:
    name = permission_name(permission)
    pm = _lock_project_member(db, project_id, user_id)

    row = next((o for o in pm.overrides if o.permission.name == name), None)
    if row is None:
        db.rollback()
        return False

    pm.overrides.remove(row)
    db.commit()
    return True

def remove_project_member(db: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> None:
    pm = get_project_member(db, project_id, user_id)
    if pm is None:
        raise NotFoundError("project member", user_id)
    # overrides go with it (delete-orphan)
    db.delete(pm)
    db.commit()
    logger.info("removed user %s from project %s", user_id, project_id)
