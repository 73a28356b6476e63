import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from worklane.db import get_db
from worklane.models.enums import AuditAction, AuditResourceType
from worklane.models.membership import ProjectMember
from worklane.models.project import Project
from worklane.rbac import members
from worklane.rbac.audit import AuditEvent, AuditSink, get_audit_sink
from worklane.rbac.deps import OrgContext, ProjectContext, require_org_perm, require_project_perm
from worklane.rbac.errors import NotFoundError
from worklane.rbac.perms import Perm, permission_name
from worklane.schemas.projects import (
    GrantIn,
    ProjectCreateIn,
    ProjectMemberIn,
    ProjectMemberOut,
    ProjectMemberUpdateIn,
    ProjectOut,
    ProjectUpdateIn,
)

router = APIRouter(tags=["projects"])

def _project_out(p: Project) -> ProjectOut:
    return ProjectOut(id=p.id, org_id=p.org_id, name=p.name)

def _member_out(pm: ProjectMember) -> ProjectMemberOut:
    return ProjectMemberOut(
        id=pm.id,
        user_id=pm.user_id,
        project_id=pm.project_id,
        role_id=pm.role_id,
        role=pm.role.name,
        overrides=pm.override_map,
        joined_at=pm.joined_at,
    )

def _project_member_event(
    ctx: ProjectContext,
    action: AuditAction,
    user_id: uuid.UUID,
    metadata: dict,
) -> AuditEvent:
    return AuditEvent(
        actor_id=ctx.user.id,
        org_id=ctx.project.org_id,
        action=action,
        resource_type=AuditResourceType.PROJECT_MEMBER,
        resource_id=str(user_id),
        metadata={"project_id": str(ctx.project.id), "project_name": ctx.project.name, **metadata},
    )

@router.post("/orgs/{org_id}/projects", response_model=ProjectOut)
def create_project(
    org_id: uuid.UUID,
    payload: ProjectCreateIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.CREATE_PROJECT)),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = Project(org_id=org_id, name=payload.name)
    db.add(p)
    db.commit()
    db.refresh(p)
    return _project_out(p)

@router.get("/orgs/{org_id}/projects", response_model=list[ProjectOut])
def list_projects(
    org_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.VIEW_PROJECT)),
    db: Session = Depends(get_db),
) -> list[ProjectOut]:
    q = select(Project).where(Project.org_id == org_id).order_by(Project.created_at.desc())
    return [_project_out(r) for r in db.scalars(q).all()]

@router.get("/projects/{project_id}", response_model=ProjectOut)
def get_project(ctx: ProjectContext = Depends(require_project_perm(Perm.VIEW_PROJECT))) -> ProjectOut:
    return _project_out(ctx.project)

@router.patch("/projects/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdateIn,
    ctx: ProjectContext = Depends(require_project_perm(Perm.EDIT_PROJECT)),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = ctx.project
    p.name = payload.name
    db.add(p)
    db.commit()
    db.refresh(p)
    return _project_out(p)

@router.delete("/projects/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_project_perm(Perm.DELETE_PROJECT)),
    db: Session = Depends(get_db),
) -> dict:
    db.delete(ctx.project)
    db.commit()
    return {"deleted": True}

# members

@router.get("/projects/{project_id}/members", response_model=list[ProjectMemberOut])
def list_project_members(
    project_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_project_perm(Perm.VIEW_PROJECT)),
    db: Session = Depends(get_db),
) -> list[ProjectMemberOut]:
    return [_member_out(pm) for pm in members.list_project_members(db, project_id)]

@router.post("/projects/{project_id}/members", response_model=ProjectMemberOut)
def add_project_member(
    project_id: uuid.UUID,
    payload: ProjectMemberIn,
    ctx: ProjectContext = Depends(require_project_perm(Perm.MANAGE_PROJECT_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> ProjectMemberOut:
    pm = members.add_project_member(
        db,
        project_id,
        payload.user_id,
        payload.role_id,
        overrides=[(o.permission, o.granted) for o in payload.overrides],
    )
    out = _member_out(pm)
    audit.emit(
        _project_member_event(
            ctx,
            AuditAction.PROJECT_MEMBER_ADDED,
            payload.user_id,
            {"role_name": out.role, "overrides": out.overrides},
        )
    )
    return out

@router.get("/projects/{project_id}/members/{user_id}", response_model=ProjectMemberOut)
def get_project_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_project_perm(Perm.VIEW_PROJECT)),
    db: Session = Depends(get_db),
) -> ProjectMemberOut:
    pm = members.get_project_member(db, project_id, user_id)
    if pm is None:
        raise NotFoundError("project member", user_id)
    return _member_out(pm)

@router.put("/projects/{project_id}/members/{user_id}", response_model=ProjectMemberOut)
def update_project_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: ProjectMemberUpdateIn,
    ctx: ProjectContext = Depends(require_project_perm(Perm.MANAGE_PROJECT_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> ProjectMemberOut:
    current = members.get_project_member(db, project_id, user_id)
    if current is None:
        raise NotFoundError("project member", user_id)
    before = _member_out(current)

    overrides = None
    if payload.overrides is not None:
        overrides = [(o.permission, o.granted) for o in payload.overrides]
    pm = members.update_project_member(db, project_id, user_id, role_id=payload.role_id, overrides=overrides)
    after = _member_out(pm)

    audit.emit(
        _project_member_event(
            ctx,
            AuditAction.PROJECT_MEMBER_UPDATED,
            user_id,
            {
                "role": {"from": before.role, "to": after.role},
                "overrides": {"from": before.overrides, "to": after.overrides},
            },
        )
    )
    return after

@router.delete("/projects/{project_id}/members/{user_id}")
def remove_project_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_project_perm(Perm.MANAGE_PROJECT_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> dict:
    members.remove_project_member(db, project_id, user_id)
    audit.emit(_project_member_event(ctx, AuditAction.PROJECT_MEMBER_REMOVED, user_id, {}))
    return {"deleted": True}

@router.put("/projects/{project_id}/members/{user_id}/overrides/{permission}", response_model=ProjectMemberOut)
def set_override(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    permission: str,
    payload: GrantIn,
    ctx: ProjectContext = Depends(require_project_perm(Perm.MANAGE_PROJECT_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> ProjectMemberOut:
    members.set_project_member_override(db, project_id, user_id, permission, payload.granted)
    audit.emit(
        _project_member_event(
            ctx,
            AuditAction.PERMISSION_OVERRIDE,
            user_id,
            {"permission": permission_name(permission), "granted": payload.granted},
        )
    )
    return _member_out(members.get_project_member(db, project_id, user_id))

@router.delete("/projects/{project_id}/members/{user_id}/overrides/{permission}", response_model=ProjectMemberOut)
def clear_override(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    permission: str,
    ctx: ProjectContext = Depends(require_project_perm(Perm.MANAGE_PROJECT_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> ProjectMemberOut:
    if members.clear_project_member_override(db, project_id, user_id, permission):
        audit.emit(
            _project_member_event(
                ctx,
                AuditAction.PERMISSION_OVERRIDE,
                user_id,
                {"permission": permission_name(permission), "granted": None},
            )
        )
    return _member_out(members.get_project_member(db, project_id, user_id))
