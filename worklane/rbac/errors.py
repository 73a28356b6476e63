"""Error kinds raised by the authorization model.

Each error carries the HTTP status and a stable code so route handlers can
surface it without translating. ``AuthorizationCheckFailed`` is the only kind
that means "something broke" rather than "not allowed"; callers must deny.
"""

from collections.abc import Iterable

class WorklaneError(Exception):
    status_code: int = 400
    error_code: str = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def details(self) -> dict:
        return {}

class NotFoundError(WorklaneError):
    status_code = 404
    error_code = "not_found"

    def __init__(self, resource: str, identifier: object):
        self.resource = resource
        self.identifier = str(identifier)
        super().__init__(f"{resource} not found")

class DuplicateNameError(WorklaneError):
    status_code = 409
    error_code = "duplicate_name"

    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"permission {name!r} already exists")

class DuplicateRoleNameError(DuplicateNameError):
    error_code = "duplicate_role_name"

    def __init__(self, name: str):
        super().__init__(name, f"a role named {name!r} already exists in this organization")

class InvalidCategoryError(WorklaneError):
    error_code = "invalid_category"

    def __init__(self, category: object):
        self.category = category
        super().__init__(f"invalid permission category: {category!r}")

class UnknownPermissionError(WorklaneError):
    error_code = "unknown_permission"

    def __init__(self, names: Iterable[str]):
        self.names = sorted(set(names))
        super().__init__(f"unknown permission(s): {', '.join(self.names)}")

    def details(self) -> dict:
        return {"names": self.names}

class SystemRoleImmutableError(WorklaneError):
    error_code = "system_role_immutable"

    def __init__(self, name: str):
        super().__init__(f"system role {name!r} cannot be modified or deleted")

class RoleInUseError(WorklaneError):
    status_code = 409
    error_code = "role_in_use"

    def __init__(self, name: str, member_count: int):
        self.member_count = member_count
        super().__init__(
            f"role {name!r} is assigned to {member_count} member(s); reassign them first"
        )

    def details(self) -> dict:
        return {"member_count": self.member_count}

class RoleNotInOrganizationError(WorklaneError):
    error_code = "role_not_in_organization"

    def __init__(self) -> None:
        super().__init__("role does not belong to this organization")

class AlreadyMemberError(WorklaneError):
    status_code = 409
    error_code = "already_member"

    def __init__(self) -> None:
        super().__init__("user is already a member of this organization")

class AlreadyProjectMemberError(WorklaneError):
    status_code = 409
    error_code = "already_project_member"

    def __init__(self) -> None:
        super().__init__("user is already a member of this project")

class NotOrganizationMemberError(WorklaneError):
    error_code = "not_organization_member"

    def __init__(self) -> None:
        super().__init__("user is not a member of the organization")

class SelfRemovalError(WorklaneError):
    error_code = "self_removal"

    def __init__(self) -> None:
        super().__init__("cannot remove yourself from the organization")

class InvalidResourceError(WorklaneError):
    error_code = "invalid_resource"

class PermissionDeniedError(WorklaneError):
    status_code = 403
    error_code = "forbidden"

    def __init__(self, message: str = "forbidden"):
        super().__init__(message)

class AuthorizationCheckFailed(WorklaneError):
    status_code = 503
    error_code = "authorization_check_failed"

    def __init__(self, message: str = "permission check unavailable"):
        super().__init__(message)
