import enum
from typing import FrozenSet, Mapping


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    MODERATOR = "moderator"
    STUDENT = "student"


class Capability(str, enum.Enum):
    TAKE_EXAMS = "take_exams"
    VIEW_DASHBOARD = "view_dashboard"
    MANAGE_EXAMS = "manage_exams"
    VIEW_ALL_RESULTS = "view_all_results"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES: Mapping[UserRole, FrozenSet[Capability]] = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.TEACHER: frozenset({
        Capability.TAKE_EXAMS,
        Capability.VIEW_DASHBOARD,
        Capability.MANAGE_EXAMS,
        Capability.VIEW_ALL_RESULTS,
    }),
    UserRole.MODERATOR: frozenset({
        Capability.TAKE_EXAMS,
        Capability.VIEW_DASHBOARD,
        Capability.VIEW_ALL_RESULTS,
    }),
    UserRole.STUDENT: frozenset({Capability.TAKE_EXAMS}),
}


def capabilities_for(role) -> FrozenSet[Capability]:
    """Resolve the capability set of a role. Unknown roles get nothing."""
    if role is None:
        return frozenset()
    try:
        role = UserRole(role)
    except ValueError:
        return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())
