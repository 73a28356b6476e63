import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from worklane.db import SessionLocal
from worklane.models.enums import TaskStatus
from worklane.models.org import Org
from worklane.models.project import Project
from worklane.models.task import Task
from worklane.models.user import User
from worklane.rbac import members
from worklane.rbac.perms import Perm, SystemRole
from worklane.rbac.roles import bootstrap_defaults, get_org_role_by_name

logger = logging.getLogger("worklane.seed")

@dataclass
class SeedResult:
    owner_email: str
    manager_email: str
    member_email: str
    viewer_email: str
    org_id: uuid.UUID
    project_id: uuid.UUID
    task_id: uuid.UUID

def get_or_create_user(db: Session, email: str, name: str | None = None) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, name=name)
        db.add(u)
        db.commit()
    return u

def get_or_create_org(db: Session, name: str, owner: User) -> Org:
    o = db.scalar(select(Org).where(Org.name == name))
    if o is None:
        o = members.provision_organization(db, name, owner.id, "demo organization")
    return o

def ensure_org_member(db: Session, org_id: uuid.UUID, user_id: uuid.UUID, role: SystemRole) -> None:
    r = get_org_role_by_name(db, org_id, role.value)
    if members.get_organization_member(db, org_id, user_id) is None:
        members.add_organization_member(db, org_id, user_id, r.id)
    else:
        members.update_organization_member_role(db, org_id, user_id, r.id)

def get_or_create_project(db: Session, org_id: uuid.UUID, name: str) -> Project:
    p = db.scalar(select(Project).where(Project.org_id == org_id, Project.name == name))
    if p is None:
        p = Project(org_id=org_id, name=name)
        db.add(p)
        db.commit()
    return p

def ensure_project_member(
    db: Session,
    project_id: uuid.UUID,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: SystemRole,
    overrides: dict[str, bool] | None = None,
) -> None:
    r = get_org_role_by_name(db, org_id, role.value)
    if members.get_project_member(db, project_id, user_id) is None:
        members.add_project_member(db, project_id, user_id, r.id, overrides=overrides)
    else:
        members.update_project_member(db, project_id, user_id, role_id=r.id, overrides=overrides or {})

def get_or_create_task(
    db: Session,
    project: Project,
    title: str,
    created_by: uuid.UUID,
    assigned_to: uuid.UUID | None,
) -> Task:
    t = db.scalar(select(Task).where(Task.project_id == project.id, Task.title == title))
    if t is None:
        t = Task(
            org_id=project.org_id,
            project_id=project.id,
            title=title,
            status=TaskStatus.todo,
            created_by=created_by,
            assigned_to=assigned_to,
        )
        db.add(t)
    else:
        # keep it stable if you re-run seed
        t.assigned_to = assigned_to
    db.commit()
    return t

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        bootstrap_defaults(db)

        owner = get_or_create_user(db, "owner@example.com", "owner")
        manager = get_or_create_user(db, "manager@example.com", "manager")
        member = get_or_create_user(db, "member@example.com", "member")
        viewer = get_or_create_user(db, "viewer@example.com", "viewer")

        org = get_or_create_org(db, "seeded org", owner)

        ensure_org_member(db, org.id, manager.id, SystemRole.PROJECT_MANAGER)
        ensure_org_member(db, org.id, member.id, SystemRole.MEMBER)
        ensure_org_member(db, org.id, viewer.id, SystemRole.VIEWER)

        project = get_or_create_project(db, org.id, "seeded project")
        ensure_project_member(db, project.id, org.id, manager.id, SystemRole.PROJECT_MANAGER)
        # a viewer that may still comment on this one project
        ensure_project_member(
            db, project.id, org.id, viewer.id, SystemRole.VIEWER, overrides={Perm.COMMENT_TASK.value: True}
        )

        task = get_or_create_task(db, project, "seeded task", created_by=owner.id, assigned_to=member.id)

        return SeedResult(
            owner_email=owner.email,
            manager_email=manager.email,
            member_email=member.email,
            viewer_email=viewer.email,
            org_id=org.id,
            project_id=project.id,
            task_id=task.id,
        )
    finally:
        db.close()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    r = seed()
    print("seed complete")
    print(f"org_id={r.org_id}")
    print(f"project_id={r.project_id}")
    print(f"task_id={r.task_id}")
    print("users:")
    print(f"  owner:   {r.owner_email}")
    print(f"  manager: {r.manager_email}")
    print(f"  member:  {r.member_email}")
    print(f"  viewer:  {r.viewer_email}")
