import uuid

from fastapi import Depends
from sqlalchemy.orm import Session

from worklane.auth.deps import get_current_user
from worklane.db import get_db
from worklane.models.enums import ResourceKind
from worklane.models.membership import OrganizationMember
from worklane.models.org import Org
from worklane.models.project import Project
from worklane.models.task import Task
from worklane.models.user import User
from worklane.rbac.errors import NotFoundError, PermissionDeniedError
from worklane.rbac.perms import Perm, permission_name
from worklane.rbac.resolver import resolve

class OrgContext:
    def __init__(self, org: Org, user: User, membership: OrganizationMember | None = None):
        self.org = org
        self.user = user
        self.membership = membership

class ProjectContext:
    def __init__(self, project: Project, user: User):
        self.project = project
        self.user = user

class TaskContext:
    def __init__(self, task: Task, user: User):
        self.task = task
        self.user = user

def _known(permission: Perm | str) -> str:
    name = permission_name(permission)
    if name not in Perm.__members__:
        raise RuntimeError(f"unknown permission: {name}")
    return name

def get_org_context(
    org_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> OrgContext:
    org = db.get(Org, org_id)
    if org is None:
        raise NotFoundError("org", org_id)

    membership = db.get(OrganizationMember, {"user_id": user.id, "org_id": org_id})
    if membership is None:
        raise PermissionDeniedError("not a member of this org")

    return OrgContext(org=org, user=user, membership=membership)

def require_org_perm(permission: Perm | str):
    name = _known(permission)

    def _checker(
        org_id: uuid.UUID,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> OrgContext:
        org = db.get(Org, org_id)
        if org is None:
            raise NotFoundError("org", org_id)
        if not resolve(db, user.id, ResourceKind.organization, org_id, name):
            raise PermissionDeniedError()
        return OrgContext(org=org, user=user)

    return _checker

def require_project_perm(permission: Perm | str):
    name = _known(permission)

    def _checker(
        project_id: uuid.UUID,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> ProjectContext:
        project = db.get(Project, project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        if not resolve(db, user.id, ResourceKind.project, project_id, name):
            raise PermissionDeniedError()
        return ProjectContext(project=project, user=user)

    return _checker

def require_task_perm(permission: Perm | str):
    name = _known(permission)

    def _checker(
        task_id: uuid.UUID,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> TaskContext:
        task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        if not resolve(db, user.id, ResourceKind.task, task_id, name):
            raise PermissionDeniedError()
        return TaskContext(task=task, user=user)

    return _checker
