"""
Blueprint de projetos.

Rotas:
    - GET/POST /api/v1/projects
    - GET/PATCH/DELETE /api/v1/projects/<id>
    - POST /api/v1/projects/<id>/archive, /unarchive
    - GET/POST /api/v1/projects/<id>/messages: Chat do projeto
    - GET/POST /api/v1/projects/<id>/files: Arquivos do projeto
    - DELETE /api/v1/projects/<id>/files/<file_id>
    - GET /api/v1/projects/<id>/tasks: Tarefas do projeto
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from painel import csrf, limiter
from painel.controllers.routes._base import json_body, pending_files_from_request
from painel.controllers.routes._decorators import admin_required
from painel.controllers.routes._validators import ensure_safe_uploads
from painel.forms import ProjectForm, validate_or_raise
from painel.services.projects import (
    add_files_to_project,
    add_project_message,
    archive_project,
    create_project,
    delete_project,
    delete_project_file,
    get_project_by_id,
    get_project_files,
    get_project_messages,
    list_projects,
    serialize_message,
    serialize_project,
    serialize_project_file,
    unarchive_project,
    update_project,
)
from painel.services.tasks import list_tasks, serialize_task


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")
csrf.exempt(projects_bp)


# =============================================================================
# PROJETOS
# =============================================================================

@projects_bp.route("", methods=["GET"])
@login_required
def list_projects_route():
    projects = list_projects(
        status=request.args.get("status"),
        exclude_status=request.args.get("exclude_status"),
        user=current_user,
    )
    return jsonify([serialize_project(project) for project in projects])


@projects_bp.route("", methods=["POST"])
@admin_required
def create_project_route():
    body = json_body()
    form = validate_or_raise(ProjectForm())
    project = create_project(
        {
            "name": form.name.data,
            "description": form.description.data,
            "status": form.status.data or None,
            "start_date": form.start_date.data,
            "end_date": form.end_date.data,
            "managers": body.get("managers") or [],
        },
        created_by=current_user,
    )
    return jsonify(serialize_project(project)), 201


@projects_bp.route("/<int:project_id>", methods=["GET"])
@login_required
def get_project_route(project_id):
    return jsonify(serialize_project(get_project_by_id(project_id), include_tasks=True))


@projects_bp.route("/<int:project_id>", methods=["PATCH"])
@login_required
def update_project_route(project_id):
    project = update_project(project_id, json_body(), acting_user=current_user)
    return jsonify(serialize_project(project))


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@admin_required
def delete_project_route(project_id):
    delete_project(project_id, acting_user=current_user)
    return "", 204


@projects_bp.route("/<int:project_id>/archive", methods=["POST"])
@login_required
def archive_project_route(project_id):
    return jsonify(serialize_project(archive_project(project_id, acting_user=current_user)))


@projects_bp.route("/<int:project_id>/unarchive", methods=["POST"])
@login_required
def unarchive_project_route(project_id):
    return jsonify(serialize_project(unarchive_project(project_id, acting_user=current_user)))


# =============================================================================
# CHAT E ARQUIVOS
# =============================================================================

@projects_bp.route("/<int:project_id>/messages", methods=["GET"])
@login_required
def project_messages(project_id):
    return jsonify([serialize_message(message) for message in get_project_messages(project_id)])


@projects_bp.route("/<int:project_id>/messages", methods=["POST"])
@login_required
def post_project_message(project_id):
    body = json_body()
    message = add_project_message(project_id, user=current_user, content=body.get("content"))
    return jsonify(serialize_message(message)), 201


@projects_bp.route("/<int:project_id>/files", methods=["GET"])
@login_required
def project_files(project_id):
    return jsonify([serialize_project_file(item) for item in get_project_files(project_id)])


@projects_bp.route("/<int:project_id>/files", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def upload_project_files(project_id):
    pending_files = pending_files_from_request("files")
    ensure_safe_uploads(pending_files)
    created = add_files_to_project(project_id, pending_files, user=current_user)
    return jsonify([serialize_project_file(item) for item in created]), 201


@projects_bp.route("/<int:project_id>/files/<int:file_id>", methods=["DELETE"])
@login_required
def delete_project_file_route(project_id, file_id):
    delete_project_file(project_id, file_id, acting_user=current_user)
    return "", 204


@projects_bp.route("/<int:project_id>/tasks", methods=["GET"])
@login_required
def project_tasks(project_id):
    get_project_by_id(project_id)
    tasks = list_tasks(project_id=project_id, status=request.args.get("status"))
    return jsonify([serialize_task(task) for task in tasks])
