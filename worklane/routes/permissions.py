import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from worklane.auth.deps import get_current_user
from worklane.config import settings
from worklane.db import get_db
from worklane.models.enums import AuditAction, AuditResourceType, PermissionCategory, ResourceKind
from worklane.models.permission import Permission
from worklane.models.user import User
from worklane.rbac import catalog
from worklane.rbac.audit import AuditEvent, AuditSink, get_audit_sink
from worklane.rbac.deps import OrgContext, require_org_perm
from worklane.rbac.errors import PermissionDeniedError
from worklane.rbac.perms import Perm
from worklane.rbac.resolver import get_effective_permissions, get_role_name, resolve
from worklane.schemas.permissions import (
    AccessCheckOut,
    EffectivePermissionsOut,
    PermissionCreateIn,
    PermissionOut,
    RoleNameOut,
)

router = APIRouter(tags=["permissions"])

def _permission_out(p: Permission) -> PermissionOut:
    return PermissionOut(id=p.id, name=p.name, description=p.description, category=p.category)

@router.get("/permissions", response_model=list[PermissionOut])
def list_permissions(
    category: PermissionCategory | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[PermissionOut]:
    rows = catalog.list_by_category(db, category) if category else catalog.list_permissions(db)
    return [_permission_out(p) for p in rows]

@router.post("/orgs/{org_id}/permissions", response_model=PermissionOut)
def define_permission(
    org_id: uuid.UUID,
    payload: PermissionCreateIn,
    ctx: OrgContext = Depends(require_org_perm(Perm.MANAGE_ORGANIZATION)),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> PermissionOut:
    # catalog names are shared by every tenant
    admins = {e.lower() for e in settings.catalog_admin_emails}
    if ctx.user.email.lower() not in admins:
        raise PermissionDeniedError("extending the permission catalog needs a platform admin")

    p = catalog.define_permission(db, payload.name, payload.description, payload.category)
    out = _permission_out(p)
    audit.emit(
        AuditEvent(
            actor_id=ctx.user.id,
            org_id=org_id,
            action=AuditAction.PERMISSION_DEFINED,
            resource_type=AuditResourceType.PERMISSION,
            resource_id=str(out.id),
            metadata={"name": out.name, "category": out.category.value},
        )
    )
    return out

@router.get("/permissions/check", response_model=AccessCheckOut)
def check_access(
    resource_kind: ResourceKind,
    resource_id: str,
    permission: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AccessCheckOut:
    allowed = resolve(db, user.id, resource_kind, resource_id, permission)
    return AccessCheckOut(
        resource_kind=resource_kind,
        resource_id=resource_id,
        permission=permission,
        allowed=allowed,
    )

@router.get("/permissions/effective", response_model=EffectivePermissionsOut)
def effective_permissions(
    org_id: uuid.UUID | None = Query(default=None),
    project_id: uuid.UUID | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EffectivePermissionsOut:
    perms = get_effective_permissions(db, user.id, org_id=org_id, project_id=project_id)
    return EffectivePermissionsOut(permissions=sorted(perms))

@router.get("/permissions/role", response_model=RoleNameOut)
def role_name(
    org_id: uuid.UUID | None = Query(default=None),
    project_id: uuid.UUID | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RoleNameOut:
    return RoleNameOut(role=get_role_name(db, user.id, org_id=org_id, project_id=project_id))
