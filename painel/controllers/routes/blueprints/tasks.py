"""
Blueprint de tarefas e do fluxo de aprovacao.

Rotas:
    - POST /api/v1/tasks: Cria tarefa
    - GET/PATCH/DELETE /api/v1/tasks/<id>
    - GET /api/v1/tasks/<id>/steps: Acoes agrupadas por etapa
    - POST /api/v1/tasks/<id>/actions/<action_id>/complete: Conclui acao
      (JSON ou multipart com ``payload`` + ``files``)
    - POST /api/v1/tasks/<id>/actions/<action_id>/progress: Salva rascunho
    - POST /api/v1/tasks/<id>/actions/<action_id>/uncomplete: Reabre acao
    - POST /api/v1/tasks/<id>/submit | approve | reject
    - POST /api/v1/tasks/<id>/comments

Dependencias:
    - painel.services.tasks (regras de persistencia e efeitos colaterais)
    - painel.workflow (regras puras)
"""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from painel import csrf, limiter
from painel.controllers.routes._base import (
    json_body,
    pending_files_from_request,
    request_payload,
)
from painel.controllers.routes._decorators import approver_required
from painel.controllers.routes._validators import ensure_safe_uploads
from painel.forms import CommentForm, TaskForm, validate_or_raise
from painel.services import tasks as task_service
from painel.services.tasks import serialize_task


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1/tasks")
csrf.exempt(tasks_bp)


def _action_request():
    """Edits and pending files of an action request (JSON or multipart)."""
    payload = request_payload()
    edits = payload.get("edits", payload)
    pending_files = pending_files_from_request("files")
    ensure_safe_uploads(pending_files)
    return edits, pending_files


# =============================================================================
# CRUD
# =============================================================================

@tasks_bp.route("", methods=["POST"])
@login_required
def create_task_route():
    body = json_body()
    form = validate_or_raise(TaskForm())
    data = {
        "project_id": form.project_id.data,
        "title": form.title.data,
        "description": form.description.data,
        "priority": form.priority.data or None,
        "assigned_to": form.assigned_to.data,
        "start_date": form.start_date.data,
        "due_date": form.due_date.data,
        "actions": body.get("actions") or [],
    }
    if form.difficulty_level.data is not None:
        data["difficulty_level"] = form.difficulty_level.data
    task = task_service.create_task(data, created_by=current_user)
    return jsonify(serialize_task(task)), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@login_required
def get_task_route(task_id):
    task = task_service.get_task_by_id(task_id)
    return jsonify(serialize_task(task, include_history=True))


@tasks_bp.route("/<int:task_id>", methods=["PATCH"])
@login_required
def update_task_route(task_id):
    task = task_service.update_task(task_id, json_body(), acting_user=current_user)
    return jsonify(serialize_task(task))


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task_route(task_id):
    task_service.delete_task(task_id, acting_user=current_user)
    return "", 204


@tasks_bp.route("/<int:task_id>/steps", methods=["GET"])
@login_required
def task_steps(task_id):
    task = task_service.get_task_by_id(task_id)
    steps = task_service.get_task_steps(task)
    return jsonify(
        {
            "total_steps": len(steps),
            "steps": [
                {"step": step, "actions": [action.to_dict() for action in actions]}
                for step, actions in steps.items()
            ],
        }
    )


# =============================================================================
# ACOES
# =============================================================================

@tasks_bp.route("/<int:task_id>/actions/<action_id>/complete", methods=["POST"])
@login_required
@limiter.limit("30 per minute", methods=["POST"])
def complete_action(task_id, action_id):
    """
    Conclui uma acao da tarefa.

    Returns:
        200: Acao concluida
        400: Regra de conclusao violada (mensagem unica)
        409: Tarefa aguardando aprovacao ou concluida
        502: Falha no envio dos arquivos
    """
    edits, pending_files = _action_request()
    action = task_service.complete_task_action(
        task_id, action_id, user=current_user, edits=edits, pending_files=pending_files
    )
    current_app.logger.info(
        "Action %s of task %s completed by %s", action_id, task_id, current_user.email
    )
    return jsonify(action.to_dict())


@tasks_bp.route("/<int:task_id>/actions/<action_id>/progress", methods=["POST"])
@login_required
def save_action_progress_route(task_id, action_id):
    edits, pending_files = _action_request()
    action = task_service.save_task_action_progress(
        task_id, action_id, user=current_user, edits=edits, pending_files=pending_files
    )
    return jsonify(action.to_dict())


@tasks_bp.route("/<int:task_id>/actions/<action_id>/uncomplete", methods=["POST"])
@login_required
def uncomplete_action(task_id, action_id):
    action = task_service.uncomplete_task_action(task_id, action_id, user=current_user)
    return jsonify(action.to_dict())


# =============================================================================
# FLUXO DE APROVACAO
# =============================================================================

@tasks_bp.route("/<int:task_id>/submit", methods=["POST"])
@login_required
def submit_task(task_id):
    task = task_service.submit_for_approval(task_id, user=current_user)
    return jsonify(serialize_task(task))


@tasks_bp.route("/<int:task_id>/approve", methods=["POST"])
@approver_required
def approve_task_route(task_id):
    task = task_service.approve_task(task_id, user=current_user)
    return jsonify(serialize_task(task))


@tasks_bp.route("/<int:task_id>/reject", methods=["POST"])
@approver_required
def reject_task_route(task_id):
    body = json_body()
    task = task_service.reject_task(task_id, user=current_user, reason=body.get("reason"))
    return jsonify(serialize_task(task))


@tasks_bp.route("/<int:task_id>/move-files", methods=["POST"])
@approver_required
def move_task_files(task_id):
    """Retry the transfer of a completed task's files into the project."""
    created = task_service.move_files_to_project_after_approval(task_id)
    return jsonify({"moved": len(created)})


# =============================================================================
# COMENTARIOS
# =============================================================================

@tasks_bp.route("/<int:task_id>/comments", methods=["POST"])
@login_required
def add_comment_route(task_id):
    form = validate_or_raise(CommentForm())
    comment = task_service.add_comment(task_id, user=current_user, text=form.text.data)
    return jsonify(comment), 201

