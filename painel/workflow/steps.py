"""
Organizacao das acoes de uma tarefa em etapas numeradas.

A lista plana de acoes e a forma persistida; o agrupamento por etapa e
derivado dela a cada leitura e achatado de volta na gravacao. As etapas
sao sempre contiguas (1..N) e toda funcao deste modulo devolve estruturas
novas, sem alterar as recebidas.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Sequence

from painel.errors import ValidationFailure
from painel.workflow.actions import Action, ActionType


def organize_into_steps(
    actions: Iterable[Action],
    boundary_types: Iterable[ActionType | str] = (),
) -> dict[int, list[Action]]:
    """
    Agrupa acoes por etapa, preservando a ordem relativa.

    A etapa de cada acao e o seu ``step_number``; acoes sem numero caem no
    contador corrente, que comeca em 1 e avanca depois de cada acao cujo
    tipo esteja em ``boundary_types``.

    Args:
        actions: Acoes na ordem persistida.
        boundary_types: Tipos que encerram a etapa corrente.

    Returns:
        dict[int, list[Action]]: Etapas em ordem crescente de chave.
    """
    boundaries = {ActionType(kind) for kind in boundary_types}
    steps: dict[int, list[Action]] = {}
    current = 1
    for action in actions:
        step = action.step_number or current
        steps.setdefault(step, []).append(action)
        if action.type in boundaries:
            current += 1
    return dict(sorted(steps.items()))


def flatten(
    step_map: Mapping[int, Sequence[Action]],
    step_order: Sequence[int] | None = None,
) -> list[Action]:
    """
    Concatena as etapas em uma lista plana.

    Cada acao recebe como ``step_number`` a posicao (1-based) da sua etapa
    em ``step_order``; por padrao as chaves em ordem crescente.
    """
    order = list(step_order) if step_order is not None else sorted(step_map)
    flat: list[Action] = []
    for index, key in enumerate(order, start=1):
        flat.extend(action.with_step(index) for action in step_map.get(key, ()))
    return flat


# =============================================================================
# EDITOR DE ETAPAS
# =============================================================================

@dataclass(frozen=True)
class StepEditorState:
    """Estado da edicao de etapas: baldes de acoes e etapa selecionada."""

    steps: Mapping[int, tuple[Action, ...]]
    current: int = 1

    @classmethod
    def initial(cls) -> "StepEditorState":
        return cls(steps={1: ()}, current=1)

    @classmethod
    def from_actions(cls, actions: Iterable[Action]) -> "StepEditorState":
        """Build a contiguous editor state from a persisted action list."""
        grouped = organize_into_steps(actions)
        if not grouped:
            return cls.initial()
        steps = {
            index: tuple(action.with_step(index) for action in grouped[key])
            for index, key in enumerate(grouped, start=1)
        }
        return cls(steps=steps, current=1)

    @property
    def total(self) -> int:
        return len(self.steps)

    def actions_for(self, step: int | None = None) -> tuple[Action, ...]:
        return self.steps.get(step or self.current, ())

    def to_actions(self) -> list[Action]:
        return flatten(self.steps)


def add_step(state: StepEditorState) -> StepEditorState:
    """Append an empty step and select it."""
    new_step = state.total + 1
    steps = dict(state.steps)
    steps[new_step] = ()
    return StepEditorState(steps=steps, current=new_step)


def remove_step(state: StepEditorState, step: int) -> StepEditorState:
    """
    Remove a etapa ``step`` e renumera as posteriores.

    As etapas acima de ``step`` descem uma posicao e suas acoes recebem o
    novo ``step_number``. A etapa selecionada recua uma posicao (minimo 1)
    se estava em ``step`` ou depois dela.

    Raises:
        ValidationFailure: se restar apenas uma etapa ou ``step`` nao existir.
    """
    if state.total <= 1:
        raise ValidationFailure("Não é possível remover a única etapa da tarefa.", field="step")
    if step not in state.steps:
        raise ValidationFailure(f"Etapa {step} não existe.", field="step")

    steps: dict[int, tuple[Action, ...]] = {}
    for index in range(1, state.total + 1):
        if index == step:
            continue
        target = index if index < step else index - 1
        steps[target] = tuple(action.with_step(target) for action in state.steps[index])

    current = state.current
    if current >= step:
        current = max(1, current - 1)
    return StepEditorState(steps=steps, current=current)


def select_step(state: StepEditorState, step: int) -> StepEditorState:
    if step not in state.steps:
        raise ValidationFailure(f"Etapa {step} não existe.", field="step")
    return replace(state, current=step)


def add_action(state: StepEditorState, action: Action, step: int | None = None) -> StepEditorState:
    """Append ``action`` to ``step`` (default: the selected step), stamping its step number."""
    target = step or state.current
    if target not in state.steps:
        raise ValidationFailure(f"Etapa {target} não existe.", field="step")
    steps = dict(state.steps)
    steps[target] = steps[target] + (action.with_step(target),)
    return replace(state, steps=steps)


def remove_action(state: StepEditorState, action_id: str) -> StepEditorState:
    steps = {
        key: tuple(action for action in bucket if action.id != action_id)
        for key, bucket in state.steps.items()
    }
    if steps == dict(state.steps):
        raise ValidationFailure("Ação não encontrada.", field="action_id")
    return replace(state, steps=steps)


def normalize_actions(actions: Iterable[Action]) -> list[Action]:
    """Regroup and flatten so persisted step numbers are contiguous."""
    return StepEditorState.from_actions(actions).to_actions()
