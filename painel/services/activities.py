"""
Leitura do historico de atividades (``ActivityLog``).

A gravacao fica em ``painel.utils.audit.log_activity``; este modulo apenas
consulta o feed. Usuarios que nao sao administradores so enxergam as
atividades dos projetos que gerenciam ou em que tem tarefas.
"""

from __future__ import annotations

from painel.errors import PermissionDenied, ValidationFailure
from painel.models.tables import ActivityLog
from painel.services.projects import can_view_project, get_project_by_id, list_projects
from painel.utils.permissions import is_user_admin

DEFAULT_ACTIVITY_LIMIT = 9
MAX_ACTIVITY_LIMIT = 100


def get_recent_activities(
    limit: int = DEFAULT_ACTIVITY_LIMIT, *, project_id: int | None = None, user=None
) -> list[ActivityLog]:
    """
    Atividades mais recentes primeiro.

    Args:
        limit: Quantidade maxima (1 a ``MAX_ACTIVITY_LIMIT``).
        project_id: Restringe ao projeto informado.
        user: Usuario que consulta; None dispensa o filtro de visibilidade.

    Returns:
        list[ActivityLog]: Entradas ordenadas por ``created_at`` decrescente.

    Raises:
        ValidationFailure: limite fora da faixa.
        NotFoundError: projeto inexistente.
        PermissionDenied: usuario sem acesso ao projeto.
    """
    if not 1 <= limit <= MAX_ACTIVITY_LIMIT:
        raise ValidationFailure(
            f"O limite deve estar entre 1 e {MAX_ACTIVITY_LIMIT}.", field="limit"
        )

    query = ActivityLog.query
    if project_id is not None:
        project = get_project_by_id(project_id)
        if user is not None and not can_view_project(user, project):
            raise PermissionDenied("Você não tem acesso a este projeto.")
        query = query.filter(ActivityLog.project_id == project_id)
    elif user is not None and not is_user_admin(user):
        visible = [project.id for project in list_projects(user=user)]
        query = query.filter(ActivityLog.project_id.in_(visible))

    return (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )


def serialize_activity(entry: ActivityLog) -> dict:
    return {
        "id": entry.id,
        "type": entry.type,
        "user_id": entry.user_id,
        "user_name": entry.user_name,
        "project_id": entry.project_id,
        "project_name": entry.project_name,
        "task_id": entry.task_id,
        "task_name": entry.task_name,
        "new_status": entry.new_status,
        "details": dict(entry.details) if entry.details else None,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
