from enum import Enum

class PermissionCategory(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    PROJECT = "PROJECT"
    TASK = "TASK"

class ResourceKind(str, Enum):
    organization = "organization"
    project = "project"
    task = "task"

class RoleKind(str, Enum):
    system_template = "system_template"
    organization = "organization"

class TaskStatus(str, Enum):
    todo = "todo"
    doing = "doing"
    done = "done"

class AuditAction(str, Enum):
    ORGANIZATION_CREATED = "ORGANIZATION_CREATED"
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"
    MEMBER_INVITED = "MEMBER_INVITED"
    MEMBER_ROLE_UPDATED = "MEMBER_ROLE_UPDATED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    PROJECT_MEMBER_ADDED = "PROJECT_MEMBER_ADDED"
    PROJECT_MEMBER_UPDATED = "PROJECT_MEMBER_UPDATED"
    PROJECT_MEMBER_REMOVED = "PROJECT_MEMBER_REMOVED"
    PERMISSION_OVERRIDE = "PERMISSION_OVERRIDE"
    PERMISSION_DEFINED = "PERMISSION_DEFINED"

class AuditResourceType(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    ORGANIZATION_MEMBER = "ORGANIZATION_MEMBER"
    PROJECT_MEMBER = "PROJECT_MEMBER"
    ROLE = "ROLE"
    PERMISSION = "PERMISSION"
