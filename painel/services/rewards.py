"""Coin rewards: balance update, ledger entry and notification in one commit."""

from __future__ import annotations

import logging

from painel import db
from painel.constants import REWARD_TYPES
from painel.errors import NotFoundError, ValidationFailure
from painel.models.tables import CoinTransaction, Reward, User
from painel.services.notifications import create_notification

logger = logging.getLogger(__name__)


def create_reward(
    user_id: int,
    *,
    type: str,
    amount: int,
    description: str,
    project_id: int | None = None,
    task_id: int | None = None,
    commit: bool = True,
) -> Reward:
    """
    Credita moedas a um usuario.

    Atualiza o saldo, registra a transacao e cria a notificacao
    ``reward_earned``.

    Raises:
        ValidationFailure: tipo invalido ou valor nao positivo.
        NotFoundError: usuario inexistente.
    """
    if type not in REWARD_TYPES:
        raise ValidationFailure(f"Tipo de recompensa inválido: {type}", field="type")
    if amount <= 0:
        raise ValidationFailure("O valor da recompensa deve ser positivo.", field="amount")
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Usuário não encontrado")

    reward = Reward(
        user_id=user_id,
        type=type,
        amount=amount,
        description=description,
        project_id=project_id,
        task_id=task_id,
    )
    db.session.add(reward)
    user.coins = (user.coins or 0) + amount
    db.session.add(CoinTransaction(user_id=user_id, amount=amount, description=description))
    create_notification(
        user_id,
        type="reward_earned",
        title="Recompensa Recebida",
        message=f"Você ganhou {amount} moedas!",
        related_entity_id=task_id,
    )
    if commit:
        db.session.commit()
    logger.info("Reward %s of %s coins credited to user %s", type, amount, user_id)
    return reward


def create_task_completion_reward(user_id: int, task_id: int, project_id: int, coins_reward: int) -> Reward:
    return create_reward(
        user_id,
        type="task_completion",
        amount=coins_reward,
        description="Recompensa por conclusão de tarefa",
        project_id=project_id,
        task_id=task_id,
    )


def create_monthly_bonus(user_id: int, bonus_amount: int) -> Reward:
    return create_reward(
        user_id,
        type="monthly_bonus",
        amount=bonus_amount,
        description="Bônus mensal de desempenho",
    )


def get_user_rewards(user_id: int, *, limit: int | None = None, type: str | None = None) -> list[Reward]:
    query = Reward.query.filter_by(user_id=user_id)
    if type:
        query = query.filter_by(type=type)
    query = query.order_by(Reward.created_at.desc(), Reward.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()
