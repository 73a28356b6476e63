import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from worklane.auth.deps import get_current_user
from worklane.db import get_db
from worklane.models.audit_log import AuditLog
from worklane.models.enums import AuditAction, AuditResourceType
from worklane.models.membership import OrganizationMember
from worklane.models.user import User
from worklane.rbac import members
from worklane.rbac.audit import AuditEvent, AuditSink, get_audit_sink
from worklane.rbac.deps import OrgContext, get_org_context, require_org_perm
from worklane.rbac.errors import NotFoundError
from worklane.rbac.perms import Perm
from worklane.schemas.audit import AuditLogOut
from worklane.schemas.orgs import InviteIn, MemberOut, MemberRoleIn, OrgCreateIn, OrgOut

router = APIRouter(prefix="/orgs", tags=["orgs"])

def _member_out(db: Session, m: OrganizationMember) -> MemberOut:
    user = db.get(User, m.user_id)
    return MemberOut(
        user_id=m.user_id,
        org_id=m.org_id,
        email=user.email if user else None,
        role_id=m.role_id,
        role=m.role.name,
        joined_at=m.joined_at,
    )

@router.post("", response_model=OrgOut)
def create_org(
    payload: OrgCreateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> OrgOut:
    org = members.provision_organization(db, payload.name, user.id, payload.description)
    audit.emit(
        AuditEvent(
            actor_id=user.id,
            org_id=org.id,
            action=AuditAction.ORGANIZATION_CREATED,
            resource_type=AuditResourceType.ORGANIZATION,
            resource_id=str(org.id),
            metadata={"name": org.name},
        )
    )
    m = members.get_organization_member(db, org.id, user.id)
    return OrgOut(id=org.id, name=org.name, description=org.description, role=m.role.name if m else None)

@router.get("", response_model=list[OrgOut])
def list_orgs(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[OrgOut]:
    rows = members.list_user_organizations(db, user.id)
    return [OrgOut(id=o.id, name=o.name, description=o.description, role=m.role.name) for o, m in rows]

@router.get("/{org_id}", response_model=OrgOut)
def get_org(ctx: OrgContext = Depends(get_org_context)) -> OrgOut:
    return OrgOut(
        id=ctx.org.id,
        name=ctx.org.name,
        description=ctx.org.description,
        role=ctx.membership.role.name,
    )

@router.get("/{org_id}/members", response_model=list[MemberOut])
def list_members(
    org_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> list[MemberOut]:
    return [_member_out(db, m) for m in members.list_organization_members(db, org_id)]

@router.post("/{org_id}/members", response_model=MemberOut)
def invite_member(
    org_id: uuid.UUID,
    payload: InviteIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.INVITE_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> MemberOut:
    email = payload.email.lower().strip()
    invited = db.scalar(select(User).where(User.email == email))
    if invited is None:
        # users register with the identity provider first
        raise NotFoundError("user", email)

    m = members.add_organization_member(db, org_id, invited.id, payload.role_id)
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.MEMBER_INVITED,
            resource_type=AuditResourceType.ORGANIZATION_MEMBER,
            resource_id=str(invited.id),
            metadata={"email": email, "role_name": m.role.name},
        )
    )
    return _member_out(db, m)

@router.get("/{org_id}/members/{user_id}", response_model=MemberOut)
def get_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> MemberOut:
    m = members.get_organization_member(db, org_id, user_id)
    if m is None:
        raise NotFoundError("member", user_id)
    return _member_out(db, m)

@router.put("/{org_id}/members/{user_id}", response_model=MemberOut)
def update_member_role(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: MemberRoleIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_USERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> MemberOut:
    current = members.get_organization_member(db, org_id, user_id)
    if current is None:
        raise NotFoundError("member", user_id)
    from_role, from_role_id = current.role.name, current.role_id

    m = members.update_organization_member_role(db, org_id, user_id, payload.role_id)
    if from_role_id != m.role_id:
        audit.emit(
            AuditEvent(
                actor_id=ctx.user.id,
                org_id=org_id,
                action=AuditAction.MEMBER_ROLE_UPDATED,
                resource_type=AuditResourceType.ORGANIZATION_MEMBER,
                resource_id=str(user_id),
                metadata={"from_role": from_role, "to_role": m.role.name},
            )
        )
    return _member_out(db, m)

@router.delete("/{org_id}/members/{user_id}")
def remove_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.REMOVE_MEMBERS)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> dict:
    removed = members.remove_organization_member(db, org_id, user_id, acting_user_id=ctx.user.id)
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.MEMBER_REMOVED,
            resource_type=AuditResourceType.ORGANIZATION_MEMBER,
            resource_id=str(user_id),
            metadata={
                "role_name": removed.role_name,
                "project_memberships_removed": removed.project_memberships_removed,
            },
        )
    )
    return {"deleted": True}

@router.get("/{org_id}/audit-logs", response_model=list[AuditLogOut])
def list_audit_logs(
    org_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=500),
    ctx: OrgContext = Depends(require_org_perm(Perm.VIEW_AUDIT_LOG)),
    db: Session = Depends(get_db),
) -> list[AuditLogOut]:
    q = (
        select(AuditLog)
        .where(AuditLog.org_id == org_id)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
    )
    return [
        AuditLogOut(
            id=r.id,
            actor_id=r.actor_id,
            action=r.action,
            resource_type=r.resource_type,
            resource_id=r.resource_id,
            details=r.details,
            created_at=r.created_at,
        )
        for r in db.scalars(q).all()
    ]
