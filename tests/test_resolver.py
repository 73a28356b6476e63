import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from worklane.models.enums import ResourceKind
from worklane.models.org import Org
from worklane.models.project import Project
from worklane.models.task import Task
from worklane.rbac import members, roles
from worklane.rbac.errors import AuthorizationCheckFailed, InvalidResourceError
from worklane.rbac.perms import Perm, SystemRole
from worklane.rbac.resolver import (
    Grant,
    decide_org,
    decide_project,
    effective_permissions,
    get_effective_permissions,
    get_role_name,
    has_org_permission,
    has_project_permission,
    has_task_permission,
    is_org_member,
    is_project_member,
    resolve,
    resolve_any,
)

ORG = ResourceKind.organization
PROJECT = ResourceKind.project
TASK = ResourceKind.task

@pytest.fixture()
def alice(make_user):
    return make_user("alice")

@pytest.fixture()
def acme(seeded_db: Session, alice) -> Org:
    return members.provision_organization(seeded_db, "acme", alice.id)

@pytest.fixture()
def p1(seeded_db: Session, acme: Org) -> Project:
    p = Project(org_id=acme.id, name="P1")
    seeded_db.add(p)
    seeded_db.commit()
    return p

@pytest.fixture()
def viewer_role(seeded_db: Session, acme: Org):
    return roles.create_custom_role(seeded_db, acme.id, "Viewer", None, ["VIEW_PROJECT"])

@pytest.fixture()
def bob(seeded_db: Session, acme: Org, viewer_role, make_user):
    u = make_user("bob")
    members.add_organization_member(seeded_db, acme.id, u.id, viewer_role.id)
    return u

def system_role_id(db: Session, org: Org, role: SystemRole) -> uuid.UUID:
    return roles.get_org_role_by_name(db, org.id, role.value).id

# scenarios

def test_org_fallback_without_project_membership(seeded_db: Session, p1: Project, bob):
    assert resolve(seeded_db, bob.id, PROJECT, p1.id, "VIEW_PROJECT") is True
    assert resolve(seeded_db, bob.id, PROJECT, p1.id, "EDIT_PROJECT") is False

def test_granting_override_on_project_membership(seeded_db: Session, p1: Project, bob, viewer_role):
    members.add_project_member(seeded_db, p1.id, bob.id, viewer_role.id, overrides={"EDIT_PROJECT": True})

    assert resolve(seeded_db, bob.id, PROJECT, p1.id, "EDIT_PROJECT") is True
    assert resolve(seeded_db, bob.id, PROJECT, p1.id, "VIEW_PROJECT") is True

def test_denying_override_beats_role(seeded_db: Session, p1: Project, bob, viewer_role):
    members.add_project_member(seeded_db, p1.id, bob.id, viewer_role.id, overrides={"VIEW_PROJECT": False})
    assert resolve(seeded_db, bob.id, PROJECT, p1.id, "VIEW_PROJECT") is False

# properties

def test_no_membership_means_no_access(seeded_db: Session, acme: Org, p1: Project, alice, make_user):
    stranger = make_user("stranger")
    t = Task(org_id=acme.id, project_id=p1.id, title="t", created_by=alice.id)
    seeded_db.add(t)
    seeded_db.commit()

    for perm in Perm:
        assert resolve(seeded_db, stranger.id, ORG, acme.id, perm) is False
        assert resolve(seeded_db, stranger.id, PROJECT, p1.id, perm) is False
        assert resolve(seeded_db, stranger.id, TASK, t.id, perm) is False

def test_missing_resources_resolve_false(seeded_db: Session, bob):
    for kind in (ORG, PROJECT, TASK):
        assert resolve(seeded_db, bob.id, kind, uuid.uuid4(), "VIEW_PROJECT") is False

def test_override_only_affects_its_own_permission(seeded_db: Session, acme: Org, p1: Project, make_user):
    carol = make_user("carol")
    lead = system_role_id(seeded_db, acme, SystemRole.TEAM_LEAD)
    members.add_organization_member(seeded_db, acme.id, carol.id, lead)
    members.add_project_member(seeded_db, p1.id, carol.id, lead, overrides={"EDIT_PROJECT": False})

    assert resolve(seeded_db, carol.id, PROJECT, p1.id, "EDIT_PROJECT") is False
    assert resolve(seeded_db, carol.id, PROJECT, p1.id, "VIEW_PROJECT") is True
    assert resolve(seeded_db, carol.id, PROJECT, p1.id, "ASSIGN_TASK") is True
    # org-level checks never see project overrides
    assert resolve(seeded_db, carol.id, ORG, acme.id, "EDIT_PROJECT") is True

def test_override_wins_regardless_of_role(seeded_db: Session, acme: Org, p1: Project, make_user):
    dave = make_user("dave")
    admin = system_role_id(seeded_db, acme, SystemRole.SUPER_ADMIN)
    members.add_organization_member(seeded_db, acme.id, dave.id, admin)
    members.add_project_member(seeded_db, p1.id, dave.id, admin, overrides={"DELETE_PROJECT": False})

    assert resolve(seeded_db, dave.id, PROJECT, p1.id, "DELETE_PROJECT") is False

    members.set_project_member_override(seeded_db, p1.id, dave.id, "DELETE_PROJECT", True)
    assert resolve(seeded_db, dave.id, PROJECT, p1.id, "DELETE_PROJECT") is True

def test_project_role_decides_when_no_override(seeded_db: Session, acme: Org, p1: Project, make_user):
    erin = make_user("erin")
    custom = roles.create_custom_role(seeded_db, acme.id, "Builder", None, ["VIEW_PROJECT", "CREATE_TASK"])
    members.add_organization_member(seeded_db, acme.id, erin.id, system_role_id(seeded_db, acme, SystemRole.VIEWER))
    members.add_project_member(seeded_db, p1.id, erin.id, custom.id)

    assert resolve(seeded_db, erin.id, PROJECT, p1.id, "CREATE_TASK") is True

    roles.update_role(seeded_db, custom.id, {"permissions": ["VIEW_PROJECT"]})
    assert resolve(seeded_db, erin.id, PROJECT, p1.id, "CREATE_TASK") is False

def test_project_membership_replaces_org_role(seeded_db: Session, acme: Org, p1: Project, make_user):
    # a project role narrower than the org role is what counts inside the project
    frank = make_user("frank")
    members.add_organization_member(seeded_db, acme.id, frank.id, system_role_id(seeded_db, acme, SystemRole.ORG_ADMIN))
    members.add_project_member(seeded_db, p1.id, frank.id, system_role_id(seeded_db, acme, SystemRole.VIEWER))

    assert resolve(seeded_db, frank.id, PROJECT, p1.id, "DELETE_PROJECT") is False
    assert resolve(seeded_db, frank.id, ORG, acme.id, "DELETE_PROJECT") is True

def test_org_fallback_matches_org_check(seeded_db: Session, acme: Org, p1: Project, make_user):
    gina = make_user("gina")
    members.add_organization_member(seeded_db, acme.id, gina.id, system_role_id(seeded_db, acme, SystemRole.MEMBER))

    for perm in Perm:
        assert resolve(seeded_db, gina.id, PROJECT, p1.id, perm) == resolve(seeded_db, gina.id, ORG, acme.id, perm)

def test_task_creator_always_allowed(seeded_db: Session, acme: Org, p1: Project, make_user):
    creator = make_user("creator")
    t = Task(org_id=acme.id, project_id=p1.id, title="mine", created_by=creator.id)
    seeded_db.add(t)
    seeded_db.commit()

    assert is_project_member(seeded_db, creator.id, p1.id) is False
    for perm in Perm:
        assert resolve(seeded_db, creator.id, TASK, t.id, perm) is True

def test_task_checks_delegate_to_project(seeded_db: Session, acme: Org, p1: Project, alice, bob, viewer_role):
    t = Task(org_id=acme.id, project_id=p1.id, title="theirs", created_by=alice.id)
    seeded_db.add(t)
    seeded_db.commit()

    members.add_project_member(seeded_db, p1.id, bob.id, viewer_role.id, overrides={"VIEW_TASK": True})
    assert resolve(seeded_db, bob.id, TASK, t.id, "VIEW_TASK") is True
    assert resolve(seeded_db, bob.id, TASK, t.id, "DELETE_TASK") is False

def test_resolve_accepts_strings(seeded_db: Session, p1: Project, bob):
    assert resolve(seeded_db, str(bob.id), "project", str(p1.id), Perm.VIEW_PROJECT) is True
    assert resolve(seeded_db, bob.id, "PROJECT", p1.id, "VIEW_PROJECT") is True

def test_resolve_rejects_bad_input(seeded_db: Session, p1: Project, bob):
    with pytest.raises(InvalidResourceError):
        resolve(seeded_db, bob.id, "workspace", p1.id, "VIEW_PROJECT")
    with pytest.raises(InvalidResourceError):
        resolve(seeded_db, bob.id, PROJECT, "not-a-uuid", "VIEW_PROJECT")

def test_helpers(seeded_db: Session, acme: Org, p1: Project, bob, viewer_role):
    assert has_org_permission(seeded_db, bob.id, acme.id, "VIEW_PROJECT") is True
    assert has_project_permission(seeded_db, bob.id, p1.id, "EDIT_PROJECT") is False
    assert resolve_any(seeded_db, bob.id, PROJECT, p1.id, ["EDIT_PROJECT", "VIEW_PROJECT"]) is True
    assert resolve_any(seeded_db, bob.id, PROJECT, p1.id, []) is False
    assert has_task_permission(seeded_db, bob.id, uuid.uuid4(), "VIEW_TASK") is False

    assert is_org_member(seeded_db, bob.id, acme.id) is True
    assert is_project_member(seeded_db, bob.id, p1.id) is False
    members.add_project_member(seeded_db, p1.id, bob.id, viewer_role.id)
    assert is_project_member(seeded_db, bob.id, p1.id) is True

def test_storage_failure_fails_closed():
    db = MagicMock(spec=Session)
    boom = OperationalError("SELECT 1", {}, Exception("connection refused"))
    db.get.side_effect = boom
    db.scalar.side_effect = boom
    db.execute.side_effect = boom

    for kind in (ORG, PROJECT, TASK):
        with pytest.raises(AuthorizationCheckFailed):
            resolve(db, uuid.uuid4(), kind, uuid.uuid4(), "VIEW_PROJECT")
    with pytest.raises(AuthorizationCheckFailed):
        get_effective_permissions(db, uuid.uuid4(), org_id=uuid.uuid4())
    with pytest.raises(AuthorizationCheckFailed):
        is_org_member(db, uuid.uuid4(), uuid.uuid4())

# effective permissions and role names

def test_effective_permissions(seeded_db: Session, acme: Org, p1: Project, make_user):
    hank = make_user("hank")
    members.add_organization_member(seeded_db, acme.id, hank.id, system_role_id(seeded_db, acme, SystemRole.MEMBER))
    members.add_project_member(
        seeded_db,
        p1.id,
        hank.id,
        system_role_id(seeded_db, acme, SystemRole.VIEWER),
        overrides={"CREATE_TASK": True, "VIEW_TASK": False},
    )

    assert get_effective_permissions(seeded_db, hank.id, project_id=p1.id) == {
        "VIEW_PROJECT",
        "COMMENT_TASK",
        "CREATE_TASK",
    }
    assert get_effective_permissions(seeded_db, hank.id, org_id=acme.id, project_id=p1.id) == {
        "VIEW_PROJECT",
        "CREATE_TASK",
        "EDIT_TASK",
        "CHANGE_TASK_STATUS",
        "COMMENT_TASK",
    }
    assert get_effective_permissions(seeded_db, hank.id) == set()
    assert get_effective_permissions(seeded_db, make_user().id, org_id=acme.id) == set()

def test_get_role_name(seeded_db: Session, acme: Org, p1: Project, bob, viewer_role, make_user):
    assert get_role_name(seeded_db, bob.id, org_id=acme.id) == "Viewer"
    assert get_role_name(seeded_db, bob.id, project_id=p1.id) is None

    lead = system_role_id(seeded_db, acme, SystemRole.TEAM_LEAD)
    members.add_project_member(seeded_db, p1.id, bob.id, lead)
    assert get_role_name(seeded_db, bob.id, org_id=acme.id, project_id=p1.id) == SystemRole.TEAM_LEAD.value
    assert get_role_name(seeded_db, make_user().id, org_id=acme.id) is None

    with pytest.raises(InvalidResourceError):
        get_role_name(seeded_db, bob.id)

# pure rules

def test_decide_rules():
    member = Grant(role_name="MEMBER", permissions=frozenset({"VIEW_TASK", "EDIT_TASK"}))
    overridden = Grant(
        role_name="MEMBER",
        permissions=frozenset({"VIEW_TASK", "EDIT_TASK"}),
        overrides={"EDIT_TASK": False, "DELETE_TASK": True},
    )

    assert decide_org(None, "VIEW_TASK") is False
    assert decide_org(member, "VIEW_TASK") is True

    assert decide_project(None, None, "VIEW_TASK") is False
    assert decide_project(None, member, "EDIT_TASK") is True
    assert decide_project(overridden, None, "EDIT_TASK") is False
    assert decide_project(overridden, None, "DELETE_TASK") is True
    assert decide_project(overridden, None, "VIEW_TASK") is True
    # a project membership never falls back to the org role
    assert decide_project(Grant("VIEWER", frozenset()), member, "VIEW_TASK") is False

    assert effective_permissions(member, overridden) == {"VIEW_TASK", "DELETE_TASK"}
    assert effective_permissions(None, None) == set()