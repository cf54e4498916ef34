"""Permission utilities for role-based access control."""

from flask import current_app, has_app_context

from painel.workflow.state_machine import DEFAULT_APPROVER_ROLES


def is_user_admin(user) -> bool:
    """Check if a user has admin privileges.

    Args:
        user: User object with a 'role' attribute

    Returns:
        bool: True if user is an admin, False otherwise
    """
    if not user:
        return False
    return getattr(user, "role", None) == "admin"


def approver_roles() -> frozenset:
    """Roles allowed to approve or reject tasks (``APPROVER_ROLES``)."""
    if has_app_context():
        return frozenset(current_app.config.get("APPROVER_ROLES", DEFAULT_APPROVER_ROLES))
    return DEFAULT_APPROVER_ROLES


def is_approver(user) -> bool:
    if not user:
        return False
    return getattr(user, "role", None) in approver_roles()


def can_manage_project(user, project) -> bool:
    """Admins and the project's managers may edit the project and its tasks."""
    if is_user_admin(user):
        return True
    return bool(user) and user.id in (project.managers or [])
