from worklane.models.audit_log import AuditLog
from worklane.models.membership import OrganizationMember, ProjectMember, ProjectMemberPermission
from worklane.models.org import Org
from worklane.models.permission import Permission
from worklane.models.project import Project
from worklane.models.role import Role, role_permissions
from worklane.models.task import Task
from worklane.models.user import User

__all__ = [
    "AuditLog",
    "Org",
    "OrganizationMember",
    "Permission",
    "Project",
    "ProjectMember",
    "ProjectMemberPermission",
    "Role",
    "Task",
    "User",
    "role_permissions",
]
