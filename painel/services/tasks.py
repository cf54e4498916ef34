"""
Servico de tarefas.

Reune a persistencia das tarefas e os efeitos colaterais do fluxo de
aprovacao. As regras puras ficam em ``painel.workflow``; aqui elas sao
aplicadas sobre o banco, o storage e o chat do projeto.

Funcoes principais:
    - create_task / update_task / delete_task / get_task_by_id
    - complete_task_action / save_task_action_progress / uncomplete_task_action
    - submit_for_approval / approve_task / reject_task
    - move_files_to_project_after_approval
    - add_comment / serialize_task

Observacoes:
    - ``update_task`` recusa ``status``: o status so muda pelo fluxo.
    - Mensagens no chat nao bloqueiam o fluxo (falhas apenas logadas).
    - Falhas de storage depois do commit do status sobem ao chamador sem
      desfazer o status.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from dataclasses import replace
from datetime import date
from typing import Any, Mapping, Sequence
from uuid import uuid4

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from painel import db
from painel.constants import (
    ACTIVITY_ACTION_COMPLETED,
    ACTIVITY_ACTION_REOPENED,
    ACTIVITY_COMMENT_ADDED,
    ACTIVITY_TASK_CREATED,
    ACTIVITY_TASK_DELETED,
    ACTIVITY_TASK_STATUS_CHANGED,
    ACTIVITY_TASK_UPDATED,
    DEFAULT_DIFFICULTY,
    MESSAGE_TYPE_TASK_APPROVAL,
    MESSAGE_TYPE_TASK_SUBMISSION,
    SYSTEM_USER_NAME,
    UNKNOWN_USER_NAME,
)
from painel.errors import (
    NotFoundError,
    PainelError,
    PermissionDenied,
    TransitionNotAllowed,
    ValidationFailure,
)
from painel.models.tables import ProjectFile, Task, TaskStatusHistory, User
from painel.services.projects import (
    check_pending_files,
    find_task_submission_message,
    get_project_by_id,
    post_system_message,
)
from painel.services.rewards import create_task_completion_reward
from painel.services.settings import calculate_task_reward
from painel.services.storage import ObjectStorage, build_object_path, get_storage
from painel.utils.audit import log_activity
from painel.utils.datetime_utils import format_datetime_br, utcnow, utcnow_aware
from painel.utils.permissions import approver_roles, can_manage_project
from painel.utils.validation import sanitize_input
from painel.workflow.actions import Action, InfoData
from painel.workflow.completion import (
    PendingFile,
    prepare_completion,
    save_action_progress,
)
from painel.workflow.state_machine import (
    TaskPriority,
    TaskStatus,
    WorkflowEvent,
    next_status,
)
from painel.workflow.steps import normalize_actions, organize_into_steps

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "title",
    "description",
    "priority",
    "assigned_to",
    "start_date",
    "due_date",
    "difficulty_level",
    "actions",
}

# Status em que as acoes da tarefa ficam congeladas
_LOCKED_STATUSES = {TaskStatus.WAITING_APPROVAL, TaskStatus.COMPLETED}

# Campos da acao controlados apenas pelo fluxo de conclusao
_COMPLETION_KEYS = frozenset({"completed", "completed_at", "completed_by", "attachments"})


# =============================================================================
# CONSULTAS
# =============================================================================

def get_task_by_id(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Tarefa não encontrada")
    return task


def list_tasks(
    *,
    project_id: int | None = None,
    assigned_to: int | None = None,
    status: TaskStatus | str | None = None,
) -> list[Task]:
    query = Task.query
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if assigned_to is not None:
        query = query.filter(Task.assigned_to == assigned_to)
    if status:
        query = query.filter(Task.status == _parse_status(status))
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task_steps(task: Task) -> dict[int, list[Action]]:
    """Actions of ``task`` grouped by step number."""
    return organize_into_steps(task.get_actions())


# =============================================================================
# HELPERS
# =============================================================================

def _parse_status(raw) -> TaskStatus:
    try:
        return TaskStatus(raw)
    except ValueError:
        raise ValidationFailure(f"Status inválido: {raw}", field="status") from None


def _parse_priority(raw) -> TaskPriority:
    try:
        return TaskPriority(raw)
    except ValueError:
        raise ValidationFailure(f"Prioridade inválida: {raw}", field="priority") from None


def _parse_date(raw, field: str) -> date | None:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise ValidationFailure("Data inválida; use AAAA-MM-DD.", field=field) from None


def _parse_difficulty(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("Dificuldade inválida.", field="difficulty_level") from None


def _resolve_assignee(raw) -> int | None:
    if raw in (None, ""):
        return None
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure("Responsável inválido.", field="assigned_to") from None
    if db.session.get(User, user_id) is None:
        raise ValidationFailure("Responsável não encontrado.", field="assigned_to")
    return user_id


def _completion_state_from(action: Action, stored: Action | None) -> Action:
    """
    Keep the completion state of ``stored`` on the edited ``action``.

    Conclusao, anexos e ``file_urls`` so mudam pelo fluxo de conclusao; o que
    o cliente envia nesses campos e ignorado. Acoes novas, ou que mudaram de
    tipo, comecam sem conclusao.
    """
    if stored is None or stored.type != action.type:
        data = action.data
        if isinstance(data, InfoData):
            data = replace(data, file_urls=())
        return replace(
            action, data=data, completed=False, completed_at=None, completed_by=None, attachments=()
        )
    data = action.data
    if isinstance(data, InfoData):
        data = replace(data, file_urls=stored.data.file_urls)
    return replace(
        action,
        data=data,
        completed=stored.completed,
        completed_at=stored.completed_at,
        completed_by=stored.completed_by,
        attachments=stored.attachments,
    )


def _build_actions(payloads, stored: Sequence[Action] = ()) -> list[Action]:
    """Parse, check and renumber the actions sent by the client."""
    if payloads is None:
        return []
    if not isinstance(payloads, (list, tuple)):
        raise ValidationFailure("As ações devem ser uma lista.", field="actions")
    stored_by_id = {action.id: action for action in stored}
    actions = []
    for payload in payloads:
        if isinstance(payload, Action):
            action = payload
        elif isinstance(payload, Mapping):
            action = Action.from_dict(
                {key: value for key, value in payload.items() if key not in _COMPLETION_KEYS}
            )
        else:
            action = Action.from_dict(payload)
        if not action.title.strip():
            raise ValidationFailure("O título da ação é obrigatório.", field="actions")
        if action.type not in Action.DESCRIPTION_OPTIONAL and not action.description.strip():
            raise ValidationFailure(
                f"A descrição da ação '{action.title}' é obrigatória.", field="actions"
            )
        actions.append(_completion_state_from(action, stored_by_id.get(action.id)))
    ids = [action.id for action in actions]
    if len(ids) != len(set(ids)):
        raise ValidationFailure("Ações com identificador repetido.", field="actions")
    return normalize_actions(actions)


def _find_action(actions: Sequence[Action], action_id: str) -> int:
    for index, action in enumerate(actions):
        if action.id == action_id:
            return index
    raise NotFoundError("Ação não encontrada")


def _can_work_on(user, task: Task) -> bool:
    if user is None:
        return False
    if task.assigned_to == user.id or task.created_by == user.id:
        return True
    return can_manage_project(user, task.project)


def _ensure_can_work_on(user, task: Task) -> None:
    if not _can_work_on(user, task):
        raise PermissionDenied("Você não tem permissão para alterar esta tarefa.")


def _ensure_actions_editable(task: Task) -> None:
    if task.status in _LOCKED_STATUSES:
        raise TransitionNotAllowed(
            f"As ações não podem ser alteradas com a tarefa em '{task.status.label}'."
        )


def _record_transition(task: Task, target: TaskStatus, user) -> None:
    """Change the status and add the history row and activity entry."""
    previous = task.status
    task.status = target
    db.session.add(
        TaskStatusHistory(
            task=task,
            from_status=previous,
            to_status=target,
            changed_by=getattr(user, "id", None),
        )
    )
    log_activity(
        ACTIVITY_TASK_STATUS_CHANGED,
        user=user,
        task=task,
        new_status=target.value,
        details={"from": previous.value if previous else None},
    )


# =============================================================================
# CRUD
# =============================================================================

def create_task(data: Mapping[str, Any], *, created_by) -> Task:
    """
    Cria uma tarefa no status ``pending``.

    A recompensa e calculada a partir da dificuldade e das configuracoes
    atuais; as acoes sao renumeradas em etapas contiguas.

    Raises:
        ValidationFailure: dados invalidos.
        NotFoundError: projeto inexistente.
        PermissionDenied: usuario nao gerencia o projeto.
    """
    if not data.get("project_id"):
        raise ValidationFailure("O projeto da tarefa é obrigatório.", field="project_id")
    project = get_project_by_id(data["project_id"])
    if not can_manage_project(created_by, project):
        raise PermissionDenied("Apenas gestores do projeto podem criar tarefas.")

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailure("O título da tarefa é obrigatório.", field="title")
    difficulty = _parse_difficulty(data.get("difficulty_level", DEFAULT_DIFFICULTY))
    start_date = _parse_date(data.get("start_date"), "start_date")
    due_date = _parse_date(data.get("due_date"), "due_date")
    if start_date and due_date and due_date < start_date:
        raise ValidationFailure("O prazo deve ser posterior ao início.", field="due_date")

    task = Task(
        project_id=project.id,
        title=title,
        description=(data.get("description") or "").strip(),
        status=TaskStatus.PENDING,
        priority=_parse_priority(data.get("priority") or TaskPriority.MEDIUM),
        assigned_to=_resolve_assignee(data.get("assigned_to")),
        created_by=created_by.id,
        start_date=start_date,
        due_date=due_date,
        difficulty_level=difficulty,
        coins_reward=calculate_task_reward(difficulty),
        comments=[],
    )
    task.set_actions(_build_actions(data.get("actions")))
    db.session.add(task)
    db.session.flush()
    db.session.add(
        TaskStatusHistory(task=task, from_status=None, to_status=TaskStatus.PENDING, changed_by=created_by.id)
    )
    log_activity(ACTIVITY_TASK_CREATED, user=created_by, project=project, task=task)
    db.session.commit()
    logger.info("Task %s created in project %s by %s", task.id, project.id, created_by.email)
    return task


def update_task(task_id: int, updates: Mapping[str, Any], *, acting_user) -> Task:
    """
    Atualiza campos da tarefa (nunca o status).

    Raises:
        ValidationFailure: ``status`` presente, campo desconhecido ou valor invalido.
        NotFoundError: tarefa inexistente.
        PermissionDenied: usuario sem acesso a tarefa.
    """
    task = get_task_by_id(task_id)
    _ensure_can_work_on(acting_user, task)
    if "status" in updates:
        raise ValidationFailure(
            "O status só pode ser alterado pelo fluxo de aprovação.", field="status"
        )
    unknown = sorted(set(updates) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailure(f"Campo não pode ser alterado: {unknown[0]}", field=unknown[0])

    if "title" in updates:
        title = (updates["title"] or "").strip()
        if not title:
            raise ValidationFailure("O título da tarefa é obrigatório.", field="title")
        task.title = title
    if "description" in updates:
        task.description = (updates["description"] or "").strip()
    if "priority" in updates:
        task.priority = _parse_priority(updates["priority"])
    if "assigned_to" in updates:
        task.assigned_to = _resolve_assignee(updates["assigned_to"])
    if "start_date" in updates:
        task.start_date = _parse_date(updates["start_date"], "start_date")
    if "due_date" in updates:
        task.due_date = _parse_date(updates["due_date"], "due_date")
    if task.start_date and task.due_date and task.due_date < task.start_date:
        raise ValidationFailure("O prazo deve ser posterior ao início.", field="due_date")
    if "difficulty_level" in updates:
        difficulty = _parse_difficulty(updates["difficulty_level"])
        task.coins_reward = calculate_task_reward(difficulty)
        task.difficulty_level = difficulty
    if "actions" in updates:
        _ensure_actions_editable(task)
        task.set_actions(_build_actions(updates["actions"], stored=task.get_actions()))

    log_activity(
        ACTIVITY_TASK_UPDATED, user=acting_user, task=task, details={"fields": sorted(updates)}
    )
    db.session.commit()
    return task


def delete_task(task_id: int, *, acting_user) -> None:
    task = get_task_by_id(task_id)
    if not can_manage_project(acting_user, task.project):
        raise PermissionDenied("Apenas gestores do projeto podem excluir tarefas.")
    log_activity(ACTIVITY_TASK_DELETED, user=acting_user, task=task)
    db.session.delete(task)
    db.session.commit()
    logger.info("Task %s deleted by %s", task_id, acting_user.email)


# =============================================================================
# ACOES
# =============================================================================

def complete_task_action(
    task_id: int,
    action_id: str,
    *,
    user,
    edits: Mapping[str, Any] | None = None,
    pending_files: Sequence[PendingFile] = (),
    storage: ObjectStorage | None = None,
) -> Action:
    """
    Conclui uma acao da tarefa.

    Aplica as edicoes, valida, envia os arquivos e grava a acao com
    ``completed_at``/``completed_by``.

    Args:
        task_id: Id da tarefa.
        action_id: Id da acao.
        user: Usuario que conclui a acao.
        edits: Edicoes de titulo, descricao e dados da acao.
        pending_files: Arquivos recebidos na requisicao.
        storage: Backend de armazenamento (padrao: o da aplicacao).

    Returns:
        Action: A acao concluida, como gravada.

    Raises:
        ValidationFailure: primeira regra de conclusao violada.
        StorageError: falha no envio dos arquivos (nada e gravado).
        TransitionNotAllowed: tarefa aguardando aprovacao ou concluida.
    """
    task = get_task_by_id(task_id)
    _ensure_can_work_on(user, task)
    _ensure_actions_editable(task)
    actions = task.get_actions()
    index = _find_action(actions, action_id)
    check_pending_files(pending_files)

    prepared = prepare_completion(
        actions[index],
        edits,
        pending_files,
        storage=storage or get_storage(),
        task_id=task.id,
        max_workers=current_app.config.get("UPLOAD_MAX_WORKERS", 4),
    )
    completed = prepared.complete(user.id, utcnow_aware())
    actions[index] = completed
    task.set_actions(actions)
    log_activity(
        ACTIVITY_ACTION_COMPLETED,
        user=user,
        task=task,
        details={"action_id": completed.id, "attachments": len(pending_files)},
    )
    db.session.commit()
    return completed


def save_task_action_progress(
    task_id: int,
    action_id: str,
    *,
    user,
    edits: Mapping[str, Any] | None = None,
    pending_files: Sequence[PendingFile] = (),
    storage: ObjectStorage | None = None,
) -> Action:
    """Store a draft of the action without completing it."""
    task = get_task_by_id(task_id)
    _ensure_can_work_on(user, task)
    _ensure_actions_editable(task)
    actions = task.get_actions()
    index = _find_action(actions, action_id)
    check_pending_files(pending_files)

    saved = save_action_progress(
        actions[index],
        edits,
        pending_files,
        storage=storage or get_storage(),
        task_id=task.id,
        max_workers=current_app.config.get("UPLOAD_MAX_WORKERS", 4),
    )
    actions[index] = saved
    task.set_actions(actions)
    db.session.commit()
    return saved


def uncomplete_task_action(task_id: int, action_id: str, *, user) -> Action:
    """Reopen an action; its completion stamps are cleared together."""
    task = get_task_by_id(task_id)
    _ensure_can_work_on(user, task)
    _ensure_actions_editable(task)
    actions = task.get_actions()
    index = _find_action(actions, action_id)
    reopened = actions[index].uncomplete()
    actions[index] = reopened
    task.set_actions(actions)
    log_activity(ACTIVITY_ACTION_REOPENED, user=user, task=task, details={"action_id": action_id})
    db.session.commit()
    return reopened


# =============================================================================
# FLUXO DE APROVACAO
# =============================================================================

def _task_link(task: Task) -> str:
    return f"Tarefa: {task.title} - [Ver Tarefa](/tasks/{task.id})"


def submit_for_approval(task_id: int, *, user) -> Task:
    """
    Envia a tarefa para aprovacao (``pending`` -> ``waiting_approval``).

    Exige ao menos uma acao e todas concluidas. Depois do commit publica
    uma mensagem ``task_submission`` no chat do projeto.

    Raises:
        TransitionNotAllowed: status diferente de pendente ou acoes em aberto.
        PermissionDenied: usuario sem acesso a tarefa.
    """
    task = get_task_by_id(task_id)
    _ensure_can_work_on(user, task)
    target = next_status(
        task.status, WorkflowEvent.SUBMIT, actions=task.get_actions(), role=user.role
    )
    _record_transition(task, target, user)
    db.session.commit()
    logger.info("Task %s submitted for approval by %s", task.id, user.email)

    post_system_message(
        task.project_id,
        {
            "content": f'A tarefa "{task.title}" foi enviada para aprovação por {user.name}.',
            "message_type": MESSAGE_TYPE_TASK_SUBMISSION,
            "user_name": SYSTEM_USER_NAME,
            "quoted_user_name": user.name,
            "quoted_content": _task_link(task),
        },
    )
    return task


def _submission_entry(task: Task) -> TaskStatusHistory | None:
    entries = [
        entry for entry in task.status_history if entry.to_status == TaskStatus.WAITING_APPROVAL
    ]
    return entries[-1] if entries else None


def _post_approval_message(task: Task, approver) -> None:
    submission = _submission_entry(task)
    submitter = UNKNOWN_USER_NAME
    submitted_at = None
    if submission is not None:
        submitted_at = submission.changed_at
        if submission.user is not None:
            submitter = submission.user.name

    content = (
        f'A tarefa "{task.title}" foi enviada para aprovação por {submitter} '
        f"no dia {format_datetime_br(submitted_at)}, e aprovada por {approver.name} "
        f"no dia {format_datetime_br(task.completed_at)}."
    )
    original = find_task_submission_message(task.project_id, task.id)
    if original is None:
        logger.warning(
            "Submission message for task %s not found in project %s; posting a new one",
            task.id, task.project_id,
        )
    post_system_message(
        task.project_id,
        {
            "content": content,
            "message_type": MESSAGE_TYPE_TASK_APPROVAL,
            "user_name": SYSTEM_USER_NAME,
            "original_message_id": original.id if original is not None else None,
            "quoted_user_name": submitter,
            "quoted_content": _task_link(task),
        },
    )


def _credit_completion_reward(task: Task) -> None:
    """Pay the assignee; failures are logged so the rest of the approval still runs."""
    if not task.assigned_to or task.coins_reward <= 0:
        return
    try:
        create_task_completion_reward(task.assigned_to, task.id, task.project_id, task.coins_reward)
    except (PainelError, SQLAlchemyError) as exc:
        db.session.rollback()
        logger.error(
            "Reward of %s coins for task %s could not be credited to user %s: %s",
            task.coins_reward, task.id, task.assigned_to, exc,
        )


def approve_task(task_id: int, *, user, storage: ObjectStorage | None = None) -> Task:
    """
    Aprova a tarefa (``waiting_approval`` -> ``completed``).

    Depois do commit do status: anota a mensagem de envio no chat, credita
    a recompensa ao responsavel e move os arquivos da tarefa para o projeto.
    Falhas na mensagem ou na recompensa sao apenas registradas no log.

    Raises:
        TransitionNotAllowed: tarefa nao esta aguardando aprovacao.
        PermissionDenied: usuario sem papel de aprovador.
        StorageError: falha ao mover arquivos (o status permanece ``completed``).
    """
    task = get_task_by_id(task_id)
    target = next_status(
        task.status, WorkflowEvent.APPROVE, role=user.role, approver_roles=approver_roles()
    )
    _record_transition(task, target, user)
    task.completed_at = utcnow()
    db.session.commit()
    logger.info("Task %s approved by %s", task.id, user.email)

    _post_approval_message(task, user)

    _credit_completion_reward(task)

    move_files_to_project_after_approval(task.id, storage=storage)
    return task


def reject_task(task_id: int, *, user, reason: str | None = None) -> Task:
    """Send the task back to ``pending``; an optional reason is stored as a comment."""
    task = get_task_by_id(task_id)
    target = next_status(
        task.status, WorkflowEvent.REJECT, role=user.role, approver_roles=approver_roles()
    )
    _record_transition(task, target, user)
    reason = sanitize_input(reason)
    if reason:
        task.comments.append(_comment_payload(user, f"Reprovada: {reason}"))
    db.session.commit()
    logger.info("Task %s rejected by %s", task.id, user.email)
    return task


# =============================================================================
# ARQUIVOS
# =============================================================================

def _relocate_attachments(actions: list[Action], moved: Mapping[str, tuple[str, str]]) -> list[Action]:
    """Point attachments (and info ``file_urls``) at their new handles."""
    result = []
    for action in actions:
        old_urls = {}
        attachments = []
        for attachment in action.attachments:
            if attachment.path in moved:
                handle, url = moved[attachment.path]
                old_urls[attachment.url] = url
                attachment = replace(attachment, path=handle, url=url)
            attachments.append(attachment)
        data = action.data
        if isinstance(data, InfoData) and old_urls:
            data = replace(data, file_urls=tuple(old_urls.get(url, url) for url in data.file_urls))
        result.append(replace(action, data=data, attachments=tuple(attachments)))
    return result


def move_files_to_project_after_approval(task_id: int, *, storage: ObjectStorage | None = None) -> list[ProjectFile]:
    """
    Move os arquivos de ``tasks/<id>/`` para ``projects/<project_id>/files/``.

    Cada arquivo vira um ``ProjectFile`` e os anexos das acoes passam a
    apontar para o novo local. Se um movimento falhar, o que ja foi movido
    e gravado e o erro sobe; ``files_moved_to_project`` so e marcado quando
    todos forem movidos.

    Raises:
        TransitionNotAllowed: tarefa nao concluida.
        StorageError: falha no storage.
    """
    task = get_task_by_id(task_id)
    if task.status != TaskStatus.COMPLETED:
        raise TransitionNotAllowed("A tarefa deve estar concluída para mover os arquivos")
    if task.files_moved_to_project:
        return []

    storage = storage or get_storage()
    actions = task.get_actions()
    by_path = {item.path: item for action in actions for item in action.attachments if item.path}
    moved: dict[str, tuple[str, str]] = {}
    created: list[ProjectFile] = []
    try:
        for handle in storage.list(f"tasks/{task.id}"):
            file_name = posixpath.basename(handle)
            destination = storage.move(
                handle,
                build_object_path(
                    "projects", task.project_id, "files", filename=file_name, timestamped=False
                ),
            )
            url = storage.get_download_url(destination)
            moved[handle] = (destination, url)
            attachment = by_path.get(handle)
            project_file = ProjectFile(
                project_id=task.project_id,
                name=attachment.name if attachment else file_name,
                url=url,
                path=destination,
                content_type=(
                    attachment.type if attachment and "/" in attachment.type
                    else mimetypes.guess_type(file_name)[0]
                ),
                size=attachment.size if attachment else None,
                task_id=task.id,
                added_from_task=True,
            )
            db.session.add(project_file)
            created.append(project_file)
        task.files_moved_to_project = True
    finally:
        if moved:
            task.set_actions(_relocate_attachments(actions, moved))
        db.session.commit()

    logger.info("Moved %s file(s) of task %s to project %s", len(created), task.id, task.project_id)
    return created


# =============================================================================
# COMENTARIOS
# =============================================================================

def _comment_payload(user, text: str) -> dict:
    return {
        "id": uuid4().hex,
        "user_id": user.id,
        "user_name": user.name,
        "text": text,
        "created_at": utcnow_aware().isoformat(),
    }


def add_comment(task_id: int, *, user, text: str) -> dict:
    task = get_task_by_id(task_id)
    _ensure_can_work_on(user, task)
    text = sanitize_input(text)
    if not text:
        raise ValidationFailure("O comentário não pode ficar vazio.", field="text")
    comment = _comment_payload(user, text)
    task.comments.append(comment)
    log_activity(ACTIVITY_COMMENT_ADDED, user=user, task=task)
    db.session.commit()
    return comment


# =============================================================================
# SERIALIZACAO
# =============================================================================

def serialize_task(task: Task, *, include_history: bool = False) -> dict:
    payload = {
        "id": task.id,
        "project_id": task.project_id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "status_label": task.status.label,
        "priority": task.priority.value,
        "assigned_to": task.assigned_to,
        "created_by": task.created_by,
        "start_date": task.start_date.isoformat() if task.start_date else None,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "difficulty_level": task.difficulty_level,
        "coins_reward": task.coins_reward,
        "comments": list(task.comments or []),
        "actions": list(task.actions or []),
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
        "files_moved_to_project": task.files_moved_to_project,
        "created_at": task.created_at.isoformat() if task.created_at else None,
        "updated_at": task.updated_at.isoformat() if task.updated_at else None,
    }
    if include_history:
        payload["status_history"] = [
            {
                "from_status": entry.from_status.value if entry.from_status else None,
                "to_status": entry.to_status.value,
                "changed_by": entry.changed_by,
                "changed_at": entry.changed_at.isoformat() if entry.changed_at else None,
            }
            for entry in task.status_history
        ]
    return payload
