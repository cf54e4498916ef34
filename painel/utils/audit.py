"""Activity feed and audit trail for workflow and account actions."""

import logging
from typing import Any, Dict, Optional

from flask import g, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

# Get dedicated user actions logger
user_actions_logger = logging.getLogger("user_actions")


def log_activity(
    activity_type: str,
    *,
    user=None,
    project=None,
    task=None,
    new_status: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    commit: bool = False,
):
    """Record an activity in the database and in the user actions log.

    The entry is added to the current session; it is persisted by the caller's
    commit unless ``commit`` is True.

    Args:
        activity_type: One of the ``ACTIVITY_*`` constants
        user: Acting user (None for system actions)
        project: Project the activity belongs to
        task: Task affected, if any
        new_status: Resulting task status for status changes
        details: Optional extra payload stored as JSON
        commit: Commit immediately (used outside service transactions)
    """
    from painel import db
    from painel.models.tables import ActivityLog

    if project is None and task is not None:
        project = task.project

    entry = ActivityLog(
        user_id=getattr(user, "id", None),
        user_name=getattr(user, "name", None),
        type=activity_type,
        project_id=getattr(project, "id", None) or getattr(task, "project_id", None),
        task_id=getattr(task, "id", None),
        project_name=getattr(project, "name", None),
        task_name=getattr(task, "title", None),
        new_status=new_status,
        details=details,
    )
    db.session.add(entry)

    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            user_actions_logger.error("Failed to save activity log to database: %s", e)

    ip_address = request.remote_addr if has_request_context() else None
    request_id = getattr(g, "request_id", None) if has_request_context() else None
    user_label = getattr(user, "email", None) or "system"
    user_actions_logger.info(
        "[%s] %s project=%s task=%s status=%s - IP: %s",
        user_label,
        activity_type.upper(),
        entry.project_id,
        entry.task_id,
        new_status,
        ip_address,
        extra={
            "request_id": request_id,
            "user_id": entry.user_id,
            "action": activity_type,
            "resource_type": "task" if task is not None else "project",
            "resource_id": entry.task_id or entry.project_id,
            "details": details,
        },
    )
    return entry
