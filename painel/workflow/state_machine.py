"""
Maquina de estados do fluxo de aprovacao de tarefas.

Transicoes validas:

    submit   pending          -> waiting_approval  (todas as acoes concluidas)
    approve  waiting_approval -> completed         (apenas aprovadores)
    reject   waiting_approval -> pending           (apenas aprovadores)

As funcoes aqui sao puras; gravacao, historico e mensagens ficam em
``painel.services.tasks``.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from painel.errors import PermissionDenied, TransitionNotAllowed
from painel.workflow.actions import Action


class TaskStatus(str, Enum):
    """Enumeration of possible task states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    WAITING_APPROVAL = "waiting_approval"
    COMPLETED = "completed"
    BLOCKED = "blocked"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    TaskStatus.PENDING: "Pendente",
    TaskStatus.IN_PROGRESS: "Em andamento",
    TaskStatus.WAITING_APPROVAL: "Aguardando aprovação",
    TaskStatus.COMPLETED: "Concluída",
    TaskStatus.BLOCKED: "Bloqueada",
}


class TaskPriority(str, Enum):
    """Enumeration of task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WorkflowEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


DEFAULT_APPROVER_ROLES = frozenset({"admin"})

_TRANSITIONS: dict[WorkflowEvent, tuple[TaskStatus, TaskStatus]] = {
    WorkflowEvent.SUBMIT: (TaskStatus.PENDING, TaskStatus.WAITING_APPROVAL),
    WorkflowEvent.APPROVE: (TaskStatus.WAITING_APPROVAL, TaskStatus.COMPLETED),
    WorkflowEvent.REJECT: (TaskStatus.WAITING_APPROVAL, TaskStatus.PENDING),
}


def all_actions_completed(actions: Iterable[Action]) -> bool:
    """True when there is at least one action and every action is completed."""
    actions = list(actions)
    return bool(actions) and all(action.completed for action in actions)


def is_approver(role: str | None, approver_roles: Iterable[str] = DEFAULT_APPROVER_ROLES) -> bool:
    return role is not None and role in set(approver_roles)


def can_submit_for_approval(status: TaskStatus, actions: Iterable[Action]) -> bool:
    return status == TaskStatus.PENDING and all_actions_completed(actions)


def can_approve(
    status: TaskStatus,
    role: str | None,
    approver_roles: Iterable[str] = DEFAULT_APPROVER_ROLES,
) -> bool:
    return status == TaskStatus.WAITING_APPROVAL and is_approver(role, approver_roles)


def can_reject(
    status: TaskStatus,
    role: str | None,
    approver_roles: Iterable[str] = DEFAULT_APPROVER_ROLES,
) -> bool:
    return status == TaskStatus.WAITING_APPROVAL and is_approver(role, approver_roles)


def next_status(
    status: TaskStatus,
    event: WorkflowEvent | str,
    *,
    actions: Iterable[Action] = (),
    role: str | None = None,
    approver_roles: Iterable[str] = DEFAULT_APPROVER_ROLES,
) -> TaskStatus:
    """
    Calcula o status resultante de ``event`` aplicado a ``status``.

    Args:
        status: Status atual da tarefa.
        event: Evento do fluxo (submit, approve, reject).
        actions: Acoes da tarefa (usadas no submit).
        role: Papel do usuario que dispara o evento.
        approver_roles: Papeis autorizados a aprovar/rejeitar.

    Returns:
        TaskStatus: Novo status.

    Raises:
        TransitionNotAllowed: evento invalido para o status atual ou acoes pendentes.
        PermissionDenied: usuario sem papel de aprovador.
    """
    try:
        event = WorkflowEvent(event)
    except ValueError:
        raise TransitionNotAllowed(f"Evento desconhecido: {event}") from None

    source, target = _TRANSITIONS[event]
    if status != source:
        raise TransitionNotAllowed(
            f"Não é possível executar '{event.value}' em uma tarefa com status "
            f"'{TaskStatus(status).label}'."
        )

    if event == WorkflowEvent.SUBMIT:
        if not all_actions_completed(actions):
            raise TransitionNotAllowed(
                "Todas as ações precisam estar concluídas antes de enviar para aprovação."
            )
    elif not is_approver(role, approver_roles):
        raise PermissionDenied("Apenas aprovadores podem aprovar ou rejeitar tarefas.")

    return target
