import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from worklane.db import get_db
from worklane.models.enums import ResourceKind
from worklane.models.task import Task
from worklane.rbac.deps import ProjectContext, TaskContext, require_project_perm, require_task_perm
from worklane.rbac.errors import PermissionDeniedError
from worklane.rbac.perms import Perm
from worklane.rbac.resolver import resolve
from worklane.schemas.tasks import TaskCreateIn, TaskOut, TaskUpdateIn

router = APIRouter(tags=["tasks"])

def _task_out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        org_id=t.org_id,
        project_id=t.project_id,
        title=t.title,
        status=t.status,
        created_by=t.created_by,
        assigned_to=t.assigned_to,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )

@router.post("/projects/{project_id}/tasks", response_model=TaskOut)
def create_task(
    project_id: uuid.UUID,
    payload: TaskCreateIn,
    ctx: ProjectContext = Depends(require_project_perm(Perm.CREATE_TASK)),
    db: Session = Depends(get_db),
) -> TaskOut:
    if payload.assigned_to is not None and not resolve(
        db, ctx.user.id, ResourceKind.project, project_id, Perm.ASSIGN_TASK
    ):
        raise PermissionDeniedError("missing permission: ASSIGN_TASK")

    t = Task(
        org_id=ctx.project.org_id,
        project_id=project_id,
        title=payload.title,
        created_by=ctx.user.id,
        assigned_to=payload.assigned_to,
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    return _task_out(t)

@router.get("/projects/{project_id}/tasks", response_model=list[TaskOut])
def list_tasks(
    project_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_project_perm(Perm.VIEW_TASK)),
    db: Session = Depends(get_db),
) -> list[TaskOut]:
    q = select(Task).where(Task.project_id == project_id).order_by(Task.created_at.desc())
    return [_task_out(r) for r in db.scalars(q).all()]

@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(ctx: TaskContext = Depends(require_task_perm(Perm.VIEW_TASK))) -> TaskOut:
    return _task_out(ctx.task)

@router.patch("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    ctx: TaskContext = Depends(require_task_perm(Perm.EDIT_TASK)),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = ctx.task

    # status and assignment carry their own permissions
    extra: list[Perm] = []
    if payload.status is not None and payload.status != t.status:
        extra.append(Perm.CHANGE_TASK_STATUS)
    if "assigned_to" in payload.model_fields_set and payload.assigned_to != t.assigned_to:
        extra.append(Perm.ASSIGN_TASK)
    for perm in extra:
        if not resolve(db, ctx.user.id, ResourceKind.task, task_id, perm):
            raise PermissionDeniedError(f"missing permission: {perm.value}")

    if payload.title is not None:
        t.title = payload.title
    if payload.status is not None:
        t.status = payload.status

    # allow explicit unassign by sending null
    if "assigned_to" in payload.model_fields_set:
        t.assigned_to = payload.assigned_to

    db.add(t)
    db.commit()
    db.refresh(t)
    return _task_out(t)

@router.delete("/tasks/{task_id}")
def delete_task(
    ctx: TaskContext = Depends(require_task_perm(Perm.DELETE_TASK)),
    db: Session = Depends(get_db),
) -> dict:
    db.delete(ctx.task)
    db.commit()
    return {"deleted": True}
