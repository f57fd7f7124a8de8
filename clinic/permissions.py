"""
Role based permission classes.

Every endpoint pairs ``IsAuthenticated`` (missing or invalid
credentials answer 401) with one of the role classes below (an
authenticated user outside the allow-list answers 403). DRF evaluates
permissions in ``APIView.initial`` before the view body runs, so no
mutation can happen for a rejected caller.
"""
from rest_framework.permissions import BasePermission

from .models import User

ADMIN = User.ROLE_ADMIN
DOCTOR = User.ROLE_DOCTOR
NURSE = User.ROLE_NURSE
FRONTDESK = User.ROLE_FRONTDESK
THEATER_TECHNICIAN = User.ROLE_THEATER_TECHNICIAN
CASHIER = User.ROLE_CASHIER
LAB_TECHNICIAN = User.ROLE_LAB_TECHNICIAN

STAFF_ROLES = frozenset({ADMIN, DOCTOR, NURSE, FRONTDESK, THEATER_TECHNICIAN, CASHIER, LAB_TECHNICIAN})
CLINICAL_ROLES = frozenset({ADMIN, DOCTOR, NURSE})


class RolePermission(BasePermission):
    """Allow access only to users whose role is in ``allowed_roles``."""
    allowed_roles: frozenset = frozenset()
    message = 'Your role is not allowed to perform this action.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in self.allowed_roles)


def allow_roles(*roles: str) -> type[RolePermission]:
    """Build a permission class for an explicit allow-list of roles."""
    name = 'Allow' + ''.join(r.title().replace('_', '') for r in roles)
    return type(name, (RolePermission,), {'allowed_roles': frozenset(roles)})


class IsAdminRole(RolePermission):
    """Clinic administrators only."""
    allowed_roles = frozenset({ADMIN})


class IsDoctor(RolePermission):
    allowed_roles = frozenset({DOCTOR})


class IsStaff(RolePermission):
    """Any staff role (everyone except patients)."""
    allowed_roles = STAFF_ROLES


class IsClinical(RolePermission):
    allowed_roles = CLINICAL_ROLES
