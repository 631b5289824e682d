"""
Module User - Utilisateurs et rôles personnalisés.
"""

from app.models.user.role import Role
from app.models.user.user import User, STAFF_ROLES, TUTOR_ROLES

__all__ = [
    "Role",
    "User",
    "STAFF_ROLES",
    "TUTOR_ROLES",
]
