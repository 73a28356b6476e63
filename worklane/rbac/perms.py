from enum import Enum

from worklane.models.enums import PermissionCategory

class Perm(str, Enum):
    # organization
    MANAGE_ORGANIZATION = "MANAGE_ORGANIZATION"
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_BILLING = "MANAGE_BILLING"
    MANAGE_ROLES = "MANAGE_ROLES"
    VIEW_AUDIT_LOG = "VIEW_AUDIT_LOG"
    INVITE_MEMBERS = "INVITE_MEMBERS"
    REMOVE_MEMBERS = "REMOVE_MEMBERS"

    # project
    CREATE_PROJECT = "CREATE_PROJECT"
    EDIT_PROJECT = "EDIT_PROJECT"
    DELETE_PROJECT = "DELETE_PROJECT"
    VIEW_PROJECT = "VIEW_PROJECT"
    MANAGE_PROJECT_MEMBERS = "MANAGE_PROJECT_MEMBERS"
    ARCHIVE_PROJECT = "ARCHIVE_PROJECT"

    # task
    CREATE_TASK = "CREATE_TASK"
    EDIT_TASK = "EDIT_TASK"
    DELETE_TASK = "DELETE_TASK"
    VIEW_TASK = "VIEW_TASK"
    ASSIGN_TASK = "ASSIGN_TASK"
    CHANGE_TASK_STATUS = "CHANGE_TASK_STATUS"
    COMMENT_TASK = "COMMENT_TASK"
    EDIT_TASK_PRIORITY = "EDIT_TASK_PRIORITY"

class SystemRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ORG_ADMIN = "ORG_ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    TEAM_LEAD = "TEAM_LEAD"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"

# name -> (category, description)
PERMISSION_DEFINITIONS: dict[Perm, tuple[PermissionCategory, str]] = {
    Perm.MANAGE_ORGANIZATION: (PermissionCategory.ORGANIZATION, "Edit organization settings and configuration"),
    Perm.MANAGE_USERS: (PermissionCategory.ORGANIZATION, "Manage organization users and their roles"),
    Perm.MANAGE_BILLING: (PermissionCategory.ORGANIZATION, "Access and manage billing information"),
    Perm.MANAGE_ROLES: (PermissionCategory.ORGANIZATION, "Create, edit, and delete custom roles"),
    Perm.VIEW_AUDIT_LOG: (PermissionCategory.ORGANIZATION, "View organization audit logs"),
    Perm.INVITE_MEMBERS: (PermissionCategory.ORGANIZATION, "Invite new members to the organization"),
    Perm.REMOVE_MEMBERS: (PermissionCategory.ORGANIZATION, "Remove members from the organization"),

    Perm.CREATE_PROJECT: (PermissionCategory.PROJECT, "Create new projects"),
    Perm.EDIT_PROJECT: (PermissionCategory.PROJECT, "Edit project details and settings"),
    Perm.DELETE_PROJECT: (PermissionCategory.PROJECT, "Delete projects permanently"),
    Perm.VIEW_PROJECT: (PermissionCategory.PROJECT, "View project details"),
    Perm.MANAGE_PROJECT_MEMBERS: (PermissionCategory.PROJECT, "Add, remove, and manage project members"),
    Perm.ARCHIVE_PROJECT: (PermissionCategory.PROJECT, "Archive or unarchive projects"),

    Perm.CREATE_TASK: (PermissionCategory.TASK, "Create new tasks"),
    Perm.EDIT_TASK: (PermissionCategory.TASK, "Edit task details"),
    Perm.DELETE_TASK: (PermissionCategory.TASK, "Delete tasks"),
    Perm.VIEW_TASK: (PermissionCategory.TASK, "View task details"),
    Perm.ASSIGN_TASK: (PermissionCategory.TASK, "Assign tasks to team members"),
    Perm.CHANGE_TASK_STATUS: (PermissionCategory.TASK, "Change task status"),
    Perm.COMMENT_TASK: (PermissionCategory.TASK, "Add comments to tasks"),
    Perm.EDIT_TASK_PRIORITY: (PermissionCategory.TASK, "Change task priority"),
}

def perms_in(category: PermissionCategory) -> list[Perm]:
    return [p for p, (cat, _) in PERMISSION_DEFINITIONS.items() if cat == category]

_PROJECT = perms_in(PermissionCategory.PROJECT)
_TASK = perms_in(PermissionCategory.TASK)

DEFAULT_ROLE_PERMISSIONS: dict[SystemRole, list[Perm]] = {
    SystemRole.SUPER_ADMIN: list(Perm),
    SystemRole.ORG_ADMIN: [
        Perm.MANAGE_USERS,
        Perm.MANAGE_BILLING,
        Perm.MANAGE_ROLES,
        Perm.VIEW_AUDIT_LOG,
        Perm.INVITE_MEMBERS,
        Perm.REMOVE_MEMBERS,
        *_PROJECT,
        *_TASK,
    ],
    SystemRole.PROJECT_MANAGER: [
        Perm.CREATE_PROJECT,
        Perm.EDIT_PROJECT,
        Perm.VIEW_PROJECT,
        Perm.MANAGE_PROJECT_MEMBERS,
        Perm.ARCHIVE_PROJECT,
        *_TASK,
    ],
    SystemRole.TEAM_LEAD: [
        Perm.VIEW_PROJECT,
        Perm.EDIT_PROJECT,
        Perm.CREATE_TASK,
        Perm.EDIT_TASK,
        Perm.VIEW_TASK,
        Perm.ASSIGN_TASK,
        Perm.CHANGE_TASK_STATUS,
        Perm.COMMENT_TASK,
        Perm.EDIT_TASK_PRIORITY,
    ],
    SystemRole.MEMBER: [
        Perm.VIEW_PROJECT,
        Perm.CREATE_TASK,
        Perm.EDIT_TASK,
        Perm.VIEW_TASK,
        Perm.CHANGE_TASK_STATUS,
        Perm.COMMENT_TASK,
    ],
    SystemRole.VIEWER: [
        Perm.VIEW_PROJECT,
        Perm.VIEW_TASK,
        Perm.COMMENT_TASK,
    ],
}

ROLE_DESCRIPTIONS: dict[SystemRole, str] = {
    SystemRole.SUPER_ADMIN: "Full access including organization settings",
    SystemRole.ORG_ADMIN: "Organization administrator with full access except organization settings",
    SystemRole.PROJECT_MANAGER: "Manages projects with customizable permissions per project",
    SystemRole.TEAM_LEAD: "Leads teams within projects with task management capabilities",
    SystemRole.MEMBER: "Regular team member with basic task and project access",
    SystemRole.VIEWER: "Read-only access to projects and tasks",
}

def permission_name(permission: str | Enum) -> str:
    if isinstance(permission, Enum):
        return str(permission.value)
    return permission
