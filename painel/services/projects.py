"""
Projetos, chat do projeto e arquivos do projeto.

Mensagens de sistema (``post_system_message``) sao "dispare e esqueca":
falhas sao registradas em log e nunca interrompem o fluxo que as gerou.

Arquivos do projeto vivem em ``projects/<id>/files``; a exclusao de um
projeto remove o registro primeiro e limpa o armazenamento depois, apenas
registrando em log os objetos que nao puderam ser removidos.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from painel import db
from painel.constants import (
    ACTIVITY_PROJECT_CREATED,
    ACTIVITY_PROJECT_DELETED,
    ACTIVITY_PROJECT_FILE_ADDED,
    ACTIVITY_PROJECT_FILE_DELETED,
    ACTIVITY_PROJECT_UPDATED,
    MESSAGE_TYPE_GENERAL,
    MESSAGE_TYPE_TASK_SUBMISSION,
    MESSAGE_TYPES,
    PROJECT_STATUSES,
    SYSTEM_USER_NAME,
)
from painel.errors import NotFoundError, PermissionDenied, StorageError, ValidationFailure
from painel.models.tables import Project, ProjectFile, ProjectMessage, Reward
from painel.services.storage import ObjectStorage, build_object_path, get_storage
from painel.utils.audit import log_activity
from painel.utils.permissions import can_manage_project, is_user_admin
from painel.utils.validation import is_valid_file_size, is_valid_file_type, sanitize_input
from painel.workflow.completion import PendingFile

logger = logging.getLogger(__name__)

ARCHIVED_STATUS = "archived"
UNARCHIVED_STATUS = "planning"
_EDITABLE_FIELDS = frozenset({"name", "description", "status", "start_date", "end_date", "managers"})


# =============================================================================
# PROJETOS
# =============================================================================

def get_project_by_id(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Projeto não encontrado")
    return project


def can_view_project(user, project: Project) -> bool:
    """Managers, admins and anyone with a task in the project."""
    if can_manage_project(user, project):
        return True
    return bool(user) and any(task.assigned_to == user.id for task in project.tasks)


def list_projects(
    *, status: str | None = None, exclude_status: str | None = None, user=None
) -> list[Project]:
    """Projects ordered by name; non-admins only see projects they manage or have tasks in."""
    query = Project.query
    if status:
        query = query.filter(Project.status == status)
    if exclude_status:
        query = query.filter(Project.status != exclude_status)
    projects = query.order_by(Project.name.asc()).all()
    if user is None or is_user_admin(user):
        return projects
    return [project for project in projects if can_view_project(user, project)]


def create_project(data: Mapping[str, Any], *, created_by) -> Project:
    """
    Cria um projeto.

    Raises:
        ValidationFailure: nome ausente, situacao invalida ou datas invertidas.
    """
    name = _clean_name(data.get("name"))
    status = _check_status(data.get("status") or "planning")
    start_date = _parse_optional_date(data.get("start_date"), "start_date")
    end_date = _parse_optional_date(data.get("end_date"), "end_date")
    _check_date_order(start_date, end_date)

    project = Project(
        name=name,
        description=(data.get("description") or "").strip(),
        start_date=start_date,
        end_date=end_date,
        status=status,
        managers=_parse_managers(data.get("managers")),
        created_by=created_by.id,
    )
    db.session.add(project)
    db.session.flush()
    log_activity(ACTIVITY_PROJECT_CREATED, user=created_by, project=project)
    db.session.commit()
    return project


def update_project(project_id: int, updates: Mapping[str, Any], *, acting_user) -> Project:
    """
    Atualiza os campos informados de um projeto.

    Apenas as chaves presentes em ``updates`` sao alteradas; as datas sao
    validadas contra o valor final das duas pontas.

    Args:
        project_id: Id do projeto.
        updates: ``name``, ``description``, ``status``, ``start_date``,
            ``end_date`` e ``managers``.
        acting_user: Usuario que edita.

    Returns:
        Project: O projeto atualizado.

    Raises:
        NotFoundError: projeto inexistente.
        PermissionDenied: usuario nao gerencia o projeto, ou tenta alterar
            os gestores sem ser administrador.
        ValidationFailure: campo invalido.
    """
    project = get_project_by_id(project_id)
    if not can_manage_project(acting_user, project):
        raise PermissionDenied("Apenas gestores do projeto podem editá-lo.")
    if "managers" in updates and not is_user_admin(acting_user):
        raise PermissionDenied("Apenas administradores podem alterar os gestores.")

    if "name" in updates:
        project.name = _clean_name(updates["name"])
    if "description" in updates:
        project.description = (updates["description"] or "").strip()
    if "status" in updates:
        project.status = _check_status(updates["status"])
    if "start_date" in updates:
        project.start_date = _parse_optional_date(updates["start_date"], "start_date")
    if "end_date" in updates:
        project.end_date = _parse_optional_date(updates["end_date"], "end_date")
    _check_date_order(project.start_date, project.end_date)
    if "managers" in updates:
        project.managers = _parse_managers(updates["managers"])

    log_activity(
        ACTIVITY_PROJECT_UPDATED,
        user=acting_user,
        project=project,
        details={"fields": sorted(key for key in updates if key in _EDITABLE_FIELDS)},
    )
    db.session.commit()
    return project


def archive_project(project_id: int, *, acting_user) -> Project:
    return update_project(project_id, {"status": ARCHIVED_STATUS}, acting_user=acting_user)


def unarchive_project(project_id: int, *, acting_user) -> Project:
    """Bring an archived project back to planning."""
    project = get_project_by_id(project_id)
    if project.status != ARCHIVED_STATUS:
        raise ValidationFailure("O projeto não está arquivado.", field="status")
    return update_project(project_id, {"status": UNARCHIVED_STATUS}, acting_user=acting_user)


def delete_project(project_id: int, *, acting_user, storage: ObjectStorage | None = None) -> None:
    """
    Exclui o projeto com suas tarefas, mensagens e arquivos.

    Recompensas ja pagas sao mantidas, sem o vinculo com o projeto.

    Raises:
        NotFoundError: projeto inexistente.
        PermissionDenied: usuario nao e administrador.
    """
    project = get_project_by_id(project_id)
    if not is_user_admin(acting_user):
        raise PermissionDenied("Apenas administradores podem excluir projetos.")

    prefixes = [build_object_path("projects", project.id)]
    prefixes.extend(build_object_path("tasks", task.id) for task in project.tasks)
    Reward.query.filter_by(project_id=project.id).update(
        {Reward.project_id: None, Reward.task_id: None}, synchronize_session=False
    )
    log_activity(ACTIVITY_PROJECT_DELETED, user=acting_user, project=project)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project %s deleted by %s", project_id, acting_user.email)

    _purge_stored_objects(storage or get_storage(), prefixes)


def _purge_stored_objects(storage: ObjectStorage, prefixes: Iterable[str]) -> None:
    for prefix in prefixes:
        try:
            for handle in storage.list(prefix):
                storage.delete(handle)
        except StorageError as exc:
            logger.error("Could not clean up stored files under %s: %s", prefix, exc)


def _clean_name(raw) -> str:
    name = (raw or "").strip()
    if not name:
        raise ValidationFailure("O nome do projeto é obrigatório.", field="name")
    return name


def _check_status(status) -> str:
    if status not in PROJECT_STATUSES:
        raise ValidationFailure("Situação de projeto inválida.", field="status")
    return status


def _check_date_order(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationFailure("A data final deve ser posterior à inicial.", field="end_date")


def _parse_managers(raw) -> list[int]:
    try:
        return [int(item) for item in raw or []]
    except (TypeError, ValueError):
        raise ValidationFailure("Lista de gestores inválida.", field="managers") from None


def _parse_optional_date(raw, field: str) -> date | None:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise ValidationFailure("Data inválida; use AAAA-MM-DD.", field=field) from None


def serialize_project(project: Project, *, include_tasks: bool = False) -> dict:
    payload = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "start_date": project.start_date.isoformat() if project.start_date else None,
        "end_date": project.end_date.isoformat() if project.end_date else None,
        "managers": list(project.managers or []),
        "created_by": project.created_by,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }
    if include_tasks:
        payload["tasks"] = [
            {"id": task.id, "title": task.title, "status": task.status.value}
            for task in project.tasks
        ]
    return payload


# =============================================================================
# CHAT
# =============================================================================

def get_project_messages(project_id: int) -> list[ProjectMessage]:
    get_project_by_id(project_id)
    return (
        ProjectMessage.query.filter_by(project_id=project_id)
        .order_by(ProjectMessage.created_at.asc(), ProjectMessage.id.asc())
        .all()
    )


def add_project_message(project_id: int, *, user, content: str, attachments=None) -> ProjectMessage:
    """Post a user message to the project chat."""
    get_project_by_id(project_id)
    content = sanitize_input(content)
    if not content:
        raise ValidationFailure("A mensagem não pode ficar vazia.", field="content")
    message = ProjectMessage(
        project_id=project_id,
        user_id=user.id,
        user_name=user.name,
        content=content,
        message_type=MESSAGE_TYPE_GENERAL,
        attachments=list(attachments or []),
    )
    db.session.add(message)
    db.session.commit()
    return message


def post_system_message(project_id: int, message: Mapping[str, Any]) -> ProjectMessage | None:
    """
    Publica uma mensagem de sistema no chat do projeto.

    Com ``original_message_id`` presente, o conteudo da mensagem original e
    substituido (anotacao de aprovacao); caso contrario uma nova mensagem e
    criada. Erros sao registrados e engolidos: o chamador nunca e bloqueado.

    Args:
        project_id: Projeto de destino.
        message: ``content``, ``message_type`` e opcionalmente ``user_id``,
            ``user_name``, ``original_message_id``, ``quoted_user_name``,
            ``quoted_content``.

    Returns:
        ProjectMessage | None: Mensagem gravada, ou None em caso de falha.
    """
    try:
        message_type = message.get("message_type", MESSAGE_TYPE_GENERAL)
        if message_type not in MESSAGE_TYPES:
            raise ValidationFailure(f"Tipo de mensagem inválido: {message_type}")

        original_id = message.get("original_message_id")
        original = db.session.get(ProjectMessage, original_id) if original_id else None
        if original is not None and original.project_id == project_id:
            original.content = message["content"]
            record = original
        else:
            record = ProjectMessage(
                project_id=project_id,
                user_id=message.get("user_id"),
                user_name=message.get("user_name") or SYSTEM_USER_NAME,
                content=message["content"],
                message_type=message_type,
                original_message_id=original_id,
                quoted_user_name=message.get("quoted_user_name"),
                quoted_content=message.get("quoted_content"),
                attachments=list(message.get("attachments") or []),
            )
            db.session.add(record)
        db.session.commit()
        return record
    except (SQLAlchemyError, ValidationFailure, KeyError) as exc:
        db.session.rollback()
        logger.error("Failed to post system message to project %s: %s", project_id, exc)
        return None


def find_task_submission_message(project_id: int, task_id: int) -> ProjectMessage | None:
    """Latest ``task_submission`` message whose quote links to ``/tasks/<task_id>``."""
    reference = f"/tasks/{task_id})"
    candidates = (
        ProjectMessage.query.filter_by(
            project_id=project_id, message_type=MESSAGE_TYPE_TASK_SUBMISSION
        )
        .order_by(ProjectMessage.id.desc())
        .all()
    )
    for message in candidates:
        if message.quoted_content and reference in message.quoted_content:
            return message
    return None


def serialize_message(message: ProjectMessage) -> dict:
    return {
        "id": message.id,
        "project_id": message.project_id,
        "user_id": message.user_id,
        "user_name": message.user_name,
        "content": message.content,
        "message_type": message.message_type,
        "original_message_id": message.original_message_id,
        "quoted_message": (
            {"user_name": message.quoted_user_name, "content": message.quoted_content}
            if message.quoted_content
            else None
        ),
        "attachments": list(message.attachments or []),
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


# =============================================================================
# ARQUIVOS
# =============================================================================

def get_project_files(project_id: int) -> list[ProjectFile]:
    get_project_by_id(project_id)
    return ProjectFile.query.filter_by(project_id=project_id).order_by(ProjectFile.id.asc()).all()


def check_pending_files(pending_files: Iterable[PendingFile]) -> None:
    """Enforce ``ATTACHMENT_ALLOWED_MIME_TYPES`` and ``ATTACHMENT_MAX_SIZE_MB``."""
    max_mb = current_app.config.get("ATTACHMENT_MAX_SIZE_MB", 25)
    allowed = current_app.config.get("ATTACHMENT_ALLOWED_MIME_TYPES") or ()
    for pending in pending_files:
        if allowed and not is_valid_file_type(pending, allowed):
            raise ValidationFailure(
                f"Tipo de arquivo não permitido: {pending.name}", field="files"
            )
        if not is_valid_file_size(pending, max_mb):
            raise ValidationFailure(
                f"O arquivo {pending.name} excede {max_mb} MB.", field="files"
            )


def add_files_to_project(
    project_id: int,
    pending_files: Sequence[PendingFile],
    *,
    user,
    storage: ObjectStorage | None = None,
) -> list[ProjectFile]:
    """
    Envia arquivos avulsos para ``projects/<id>/files`` e os registra.

    Se um envio falhar, os objetos ja enviados nesta chamada sao removidos
    e nenhum registro e gravado.

    Args:
        project_id: Id do projeto.
        pending_files: Arquivos recebidos na requisicao.
        user: Usuario que envia; precisa enxergar o projeto.
        storage: Backend de armazenamento (padrao: o da aplicacao).

    Returns:
        list[ProjectFile]: Registros criados, na ordem recebida.

    Raises:
        PermissionDenied: usuario sem acesso ao projeto.
        ValidationFailure: nenhum arquivo, tipo ou tamanho invalido.
        StorageError: falha no envio.
    """
    project = get_project_by_id(project_id)
    if not can_view_project(user, project):
        raise PermissionDenied("Você não tem acesso a este projeto.")
    if not pending_files:
        raise ValidationFailure("Nenhum arquivo enviado.", field="files")
    check_pending_files(pending_files)

    storage = storage or get_storage()
    uploaded: list[str] = []
    created = []
    try:
        for pending in pending_files:
            path = build_object_path("projects", project.id, "files", filename=pending.name)
            storage.upload(path, pending.data, pending.content_type)
            uploaded.append(path)
            created.append(
                ProjectFile(
                    project_id=project.id,
                    name=pending.name,
                    url=storage.get_download_url(path),
                    path=path,
                    content_type=pending.content_type,
                    size=pending.size,
                    added_from_task=False,
                )
            )
    except StorageError:
        _purge_handles(storage, uploaded)
        raise

    db.session.add_all(created)
    log_activity(
        ACTIVITY_PROJECT_FILE_ADDED,
        user=user,
        project=project,
        details={"files": [item.name for item in created]},
    )
    db.session.commit()
    return created


def delete_project_file(
    project_id: int, file_id: int, *, acting_user, storage: ObjectStorage | None = None
) -> None:
    """
    Remove um arquivo do projeto: primeiro do armazenamento, depois o registro.

    Raises:
        NotFoundError: projeto ou arquivo inexistente.
        PermissionDenied: usuario nao gerencia o projeto.
        StorageError: falha ao remover o objeto (o registro e mantido).
    """
    project = get_project_by_id(project_id)
    project_file = db.session.get(ProjectFile, file_id)
    if project_file is None or project_file.project_id != project.id:
        raise NotFoundError("Arquivo não encontrado")
    if not can_manage_project(acting_user, project):
        raise PermissionDenied("Apenas gestores do projeto podem remover arquivos.")

    (storage or get_storage()).delete(project_file.path)
    log_activity(
        ACTIVITY_PROJECT_FILE_DELETED,
        user=acting_user,
        project=project,
        details={"file": project_file.name},
    )
    db.session.delete(project_file)
    db.session.commit()


def _purge_handles(storage: ObjectStorage, handles: Iterable[str]) -> None:
    for handle in handles:
        try:
            storage.delete(handle)
        except StorageError as exc:
            logger.error("Could not remove %s after a failed upload: %s", handle, exc)



def serialize_project_file(project_file: ProjectFile) -> dict:
    return {
        "id": project_file.id,
        "name": project_file.name,
        "url": project_file.url,
        "content_type": project_file.content_type,
        "size": project_file.size,
        "task_id": project_file.task_id,
        "added_from_task": project_file.added_from_task,
        "created_at": project_file.created_at.isoformat() if project_file.created_at else None,
    }
