import uuid

import pytest
from sqlalchemy import event, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from worklane.models.membership import ProjectMember, ProjectMemberPermission
from worklane.models.org import Org
from worklane.models.project import Project
from worklane.rbac import members, roles
from worklane.rbac.errors import (
    AlreadyMemberError,
    AlreadyProjectMemberError,
    NotFoundError,
    NotOrganizationMemberError,
    RoleNotInOrganizationError,
    SelfRemovalError,
    UnknownPermissionError,
)
from worklane.rbac.perms import SystemRole

def role_id(db: Session, org: Org, role: SystemRole) -> uuid.UUID:
    return roles.get_org_role_by_name(db, org.id, role.value).id

def add_project(db: Session, org: Org, name: str = "p1") -> Project:
    p = Project(org_id=org.id, name=name)
    db.add(p)
    db.commit()
    return p

def record_row_locks(db: Session) -> list[str]:
    """Collect every locking SELECT the session runs, rendered for PostgreSQL."""
    seen: list[str] = []

    @event.listens_for(db, "do_orm_execute")
    def _capture(state):
        if state.is_select:
            sql = str(state.statement.compile(dialect=postgresql.dialect()))
            if " FOR " in sql:
                seen.append(sql)

    return seen

def test_provision_adds_creator_with_top_role(seeded_db: Session, seeded_org: Org, owner):
    m = members.get_organization_member(seeded_db, seeded_org.id, owner.id)
    assert m is not None
    assert m.role.name == SystemRole.SUPER_ADMIN.value
    assert m.role.org_id == seeded_org.id

    orgs = members.list_user_organizations(seeded_db, owner.id)
    assert [o.id for o, _ in orgs] == [seeded_org.id]

def test_add_organization_member(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    m = members.add_organization_member(seeded_db, seeded_org.id, bob.id, role_id(seeded_db, seeded_org, SystemRole.MEMBER))
    assert m.role.name == SystemRole.MEMBER.value
    assert len(members.list_organization_members(seeded_db, seeded_org.id)) == 2

    with pytest.raises(AlreadyMemberError):
        members.add_organization_member(seeded_db, seeded_org.id, bob.id, role_id(seeded_db, seeded_org, SystemRole.VIEWER))

def test_add_organization_member_missing_rows(seeded_db: Session, seeded_org: Org, make_user):
    member_role = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    with pytest.raises(NotFoundError):
        members.add_organization_member(seeded_db, seeded_org.id, uuid.uuid4(), member_role)
    with pytest.raises(NotFoundError):
        members.add_organization_member(seeded_db, uuid.uuid4(), make_user().id, member_role)

def test_role_must_belong_to_the_org(seeded_db: Session, seeded_org: Org, make_user):
    other = members.provision_organization(seeded_db, "other", make_user().id)
    foreign = role_id(seeded_db, other, SystemRole.MEMBER)

    with pytest.raises(RoleNotInOrganizationError):
        members.add_organization_member(seeded_db, seeded_org.id, make_user().id, foreign)

    # templates are not assignable either
    template = next(r for r in roles.list_system_roles(seeded_db) if r.name == SystemRole.MEMBER.value)
    with pytest.raises(RoleNotInOrganizationError):
        members.add_organization_member(seeded_db, seeded_org.id, make_user().id, template.id)

def test_update_organization_member_role(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, role_id(seeded_db, seeded_org, SystemRole.VIEWER))

    m = members.update_organization_member_role(
        seeded_db, seeded_org.id, bob.id, role_id(seeded_db, seeded_org, SystemRole.TEAM_LEAD)
    )
    assert m.role.name == SystemRole.TEAM_LEAD.value

    with pytest.raises(NotFoundError):
        members.update_organization_member_role(
            seeded_db, seeded_org.id, uuid.uuid4(), role_id(seeded_db, seeded_org, SystemRole.VIEWER)
        )

def test_remove_member_drops_project_memberships(seeded_db: Session, seeded_org: Org, owner, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p1 = add_project(seeded_db, seeded_org, "p1")
    p2 = add_project(seeded_db, seeded_org, "p2")
    members.add_project_member(seeded_db, p1.id, bob.id, member, overrides={"EDIT_PROJECT": True})
    members.add_project_member(seeded_db, p2.id, bob.id, member)

    removed = members.remove_organization_member(seeded_db, seeded_org.id, bob.id, acting_user_id=owner.id)
    assert removed.project_memberships_removed == 2
    assert removed.role_name == SystemRole.MEMBER.value

    assert members.get_organization_member(seeded_db, seeded_org.id, bob.id) is None
    assert seeded_db.scalars(select(ProjectMember).where(ProjectMember.user_id == bob.id)).all() == []
    assert seeded_db.scalars(select(ProjectMemberPermission)).all() == []

def test_remove_member_leaves_other_orgs_alone(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    other = members.provision_organization(seeded_db, "other", make_user().id)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, role_id(seeded_db, seeded_org, SystemRole.MEMBER))
    members.add_organization_member(seeded_db, other.id, bob.id, role_id(seeded_db, other, SystemRole.MEMBER))
    p = add_project(seeded_db, other)
    members.add_project_member(seeded_db, p.id, bob.id, role_id(seeded_db, other, SystemRole.MEMBER))

    removed = members.remove_organization_member(seeded_db, seeded_org.id, bob.id)
    assert removed.project_memberships_removed == 0
    assert members.get_project_member(seeded_db, p.id, bob.id) is not None

def test_cannot_remove_yourself(seeded_db: Session, seeded_org: Org, owner):
    with pytest.raises(SelfRemovalError):
        members.remove_organization_member(seeded_db, seeded_org.id, owner.id, acting_user_id=owner.id)
    assert members.get_organization_member(seeded_db, seeded_org.id, owner.id) is not None

def test_project_add_and_member_removal_lock_the_org_membership(
    seeded_db: Session, seeded_org: Org, owner, make_user
):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)

    locks = record_row_locks(seeded_db)
    members.add_project_member(seeded_db, p.id, bob.id, member)
    assert any("FOR SHARE OF organization_members" in sql for sql in locks)

    locks.clear()
    members.remove_organization_member(seeded_db, seeded_org.id, bob.id, acting_user_id=owner.id)
    assert any("FOR UPDATE OF organization_members" in sql for sql in locks)
    assert members.get_project_member(seeded_db, p.id, bob.id) is None

def test_update_role_of_missing_member_is_not_found(seeded_db: Session, seeded_org: Org, make_user):
    other = members.provision_organization(seeded_db, "other", make_user().id)
    with pytest.raises(NotFoundError):
        members.update_organization_member_role(
            seeded_db, seeded_org.id, uuid.uuid4(), role_id(seeded_db, other, SystemRole.VIEWER)
        )

def test_project_member_requires_org_membership(seeded_db: Session, seeded_org: Org, make_user):
    p = add_project(seeded_db, seeded_org)
    with pytest.raises(NotOrganizationMemberError):
        members.add_project_member(seeded_db, p.id, make_user().id, role_id(seeded_db, seeded_org, SystemRole.MEMBER))

def test_project_member_preconditions(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)

    with pytest.raises(NotFoundError):
        members.add_project_member(seeded_db, uuid.uuid4(), bob.id, member)

    other = members.provision_organization(seeded_db, "other", make_user().id)
    with pytest.raises(RoleNotInOrganizationError):
        members.add_project_member(seeded_db, p.id, bob.id, role_id(seeded_db, other, SystemRole.MEMBER))

    members.add_project_member(seeded_db, p.id, bob.id, member)
    with pytest.raises(AlreadyProjectMemberError):
        members.add_project_member(seeded_db, p.id, bob.id, member)

    add_project(seeded_db, seeded_org, "p2")
    assert [proj.id for proj, _ in members.list_user_projects(seeded_db, bob.id, seeded_org.id)] == [p.id]
    assert members.list_user_projects(seeded_db, bob.id, other.id) == []

def test_initial_overrides_are_all_or_nothing(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)

    with pytest.raises(UnknownPermissionError):
        members.add_project_member(seeded_db, p.id, bob.id, member, overrides={"EDIT_PROJECT": True, "TELEPORT": True})
    assert members.get_project_member(seeded_db, p.id, bob.id) is None

    pm = members.add_project_member(
        seeded_db, p.id, bob.id, member, overrides=[("EDIT_PROJECT", True), ("VIEW_TASK", False), ("EDIT_PROJECT", False)]
    )
    # later entries win
    assert pm.override_map == {"EDIT_PROJECT": False, "VIEW_TASK": False}

def test_update_project_member_replaces_overrides(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)
    members.add_project_member(seeded_db, p.id, bob.id, member, overrides={"EDIT_PROJECT": True, "VIEW_TASK": False})

    pm = members.update_project_member(seeded_db, p.id, bob.id, overrides={"DELETE_TASK": True})
    assert pm.override_map == {"DELETE_TASK": True}

    pm = members.update_project_member(seeded_db, p.id, bob.id, role_id=role_id(seeded_db, seeded_org, SystemRole.VIEWER))
    assert pm.role.name == SystemRole.VIEWER.value
    assert pm.override_map == {"DELETE_TASK": True}

    pm = members.replace_project_member_overrides(seeded_db, p.id, bob.id, {})
    assert pm.override_map == {}

def test_set_and_clear_single_override(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)
    members.add_project_member(seeded_db, p.id, bob.id, member)

    members.set_project_member_override(seeded_db, p.id, bob.id, "EDIT_PROJECT", True)
    members.set_project_member_override(seeded_db, p.id, bob.id, "VIEW_TASK", False)
    members.set_project_member_override(seeded_db, p.id, bob.id, "EDIT_PROJECT", False)
    assert members.get_project_member(seeded_db, p.id, bob.id).override_map == {
        "EDIT_PROJECT": False,
        "VIEW_TASK": False,
    }

    assert members.clear_project_member_override(seeded_db, p.id, bob.id, "EDIT_PROJECT") is True
    assert members.clear_project_member_override(seeded_db, p.id, bob.id, "EDIT_PROJECT") is False
    assert members.get_project_member(seeded_db, p.id, bob.id).override_map == {"VIEW_TASK": False}

def test_remove_project_member(seeded_db: Session, seeded_org: Org, make_user):
    bob = make_user("bob")
    member = role_id(seeded_db, seeded_org, SystemRole.MEMBER)
    members.add_organization_member(seeded_db, seeded_org.id, bob.id, member)
    p = add_project(seeded_db, seeded_org)
    members.add_project_member(seeded_db, p.id, bob.id, member, overrides={"EDIT_PROJECT": True})

    members.remove_project_member(seeded_db, p.id, bob.id)
    assert members.get_project_member(seeded_db, p.id, bob.id) is None
    assert seeded_db.scalars(select(ProjectMemberPermission)).all() == []
    # org membership is untouched
    assert members.get_organization_member(seeded_db, seeded_org.id, bob.id) is not None

    with pytest.raises(NotFoundError):
        members.remove_project_member(seeded_db, p.id, bob.id)

def test_update_to_same_role_is_a_no_op(seeded_db: Session, seeded_org: Org, owner):
    current = members.get_organization_member(seeded_db, seeded_org.id, owner.id).role_id
    m = members.update_organization_member_role(seeded_db, seeded_org.id, owner.id, current)
    assert m.role_id == current
