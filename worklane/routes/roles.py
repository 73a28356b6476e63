import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from worklane.db import get_db
from worklane.models.enums import AuditAction, AuditResourceType
from worklane.models.role import Role
from worklane.rbac import roles
from worklane.rbac.audit import AuditEvent, AuditSink, get_audit_sink
from worklane.rbac.deps import OrgContext, require_org_perm
from worklane.rbac.perms import Perm
from worklane.schemas.roles import RoleCreateIn, RoleOut, RoleUpdateIn

router = APIRouter(prefix="/orgs/{org_id}/roles", tags=["roles"])

def _role_out(role: Role, member_count: int | None = None) -> RoleOut:
    return RoleOut(
        id=role.id,
        org_id=role.org_id,
        name=role.name,
        description=role.description,
        is_system=role.is_system,
        permissions=role.permission_names,
        member_count=member_count,
    )

@router.get("", response_model=list[RoleOut])
def list_roles(
    org_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ROLES)),
    db: Session = Depends(get_db),
) -> list[RoleOut]:
    return [_role_out(r, roles.count_role_members(db, r.id)) for r in roles.list_roles(db, org_id)]

@router.post("", response_model=RoleOut)
def create_role(
    org_id: uuid.UUID,
    payload: RoleCreateIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ROLES)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> RoleOut:
    role = roles.create_custom_role(db, org_id, payload.name, payload.description, payload.permissions)
    out = _role_out(role, 0)
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.ROLE_CREATED,
            resource_type=AuditResourceType.ROLE,
            resource_id=str(out.id),
            metadata={"role_name": out.name, "permissions": out.permissions},
        )
    )
    return out

@router.get("/{role_id}", response_model=RoleOut)
def get_role(
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ROLES)),
    db: Session = Depends(get_db),
) -> RoleOut:
    role = roles.get_org_role(db, org_id, role_id)
    return _role_out(role, roles.count_role_members(db, role.id))

@router.patch("/{role_id}", response_model=RoleOut)
def update_role(
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    payload: RoleUpdateIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ROLES)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> RoleOut:
    before = _role_out(roles.get_org_role(db, org_id, role_id))

    role = roles.update_role(db, role_id, payload.model_dump(exclude_unset=True))
    after = _role_out(role)

    changes = {
        key: {"from": getattr(before, key), "to": getattr(after, key)}
        for key in ("name", "description", "permissions")
        if getattr(before, key) != getattr(after, key)
    }
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.ROLE_UPDATED,
            resource_type=AuditResourceType.ROLE,
            resource_id=str(role_id),
            metadata={"role_name": after.name, "changes": changes},
        )
    )
    return after

@router.delete("/{role_id}")
def delete_role(
    org_id: uuid.UUID,
    role_id: uuid.UUID,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ROLES)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> dict:
    name = roles.get_org_role(db, org_id, role_id).name

    roles.delete_role(db, role_id)
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.ROLE_DELETED,
            resource_type=AuditResourceType.ROLE,
            resource_id=str(role_id),
            metadata={"role_name": name},
        )
    )
    return {"deleted": True}
