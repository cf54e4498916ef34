"""
Configuracoes globais do sistema (recompensas e seguranca).

A linha unica de ``SystemSettings`` e criada com os valores padrao na
primeira leitura e mantida em cache (Flask-Caching) ate a proxima
alteracao.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from painel import db
from painel.constants import (
    CACHE_KEY_SYSTEM_SETTINGS,
    DEFAULT_SYSTEM_SETTINGS,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
)
from painel.errors import ValidationFailure
from painel.extensions.cache import cache, get_cache_timeout, invalidate
from painel.models.tables import SystemSettings

logger = logging.getLogger(__name__)

_BOOLEAN_SETTINGS = {"two_factor_auth", "email_notifications", "push_notifications", "weekly_reports"}


def round_half_up(value) -> int:
    """Arredonda ``.5`` para cima, como ``Math.round`` para valores positivos."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _get_or_create_row() -> SystemSettings:
    row = db.session.query(SystemSettings).order_by(SystemSettings.id).first()
    if row is None:
        row = SystemSettings(**DEFAULT_SYSTEM_SETTINGS)
        db.session.add(row)
        db.session.commit()
        logger.info("System settings initialized with defaults")
    return row


def get_system_settings() -> dict:
    """Return the settings document (cached)."""
    settings = cache.get(CACHE_KEY_SYSTEM_SETTINGS)
    if settings is None:
        settings = _get_or_create_row().to_dict()
        cache.set(
            CACHE_KEY_SYSTEM_SETTINGS,
            settings,
            timeout=get_cache_timeout("SETTINGS_CACHE_TIMEOUT", 300),
        )
    return dict(settings)


def validate_reward_settings(base_reward, complexity_multiplier) -> None:
    """
    Valida as regras de recompensa.

    Raises:
        ValidationFailure: base nao positiva ou multiplicador menor que 1.
    """
    if base_reward is None or base_reward <= 0:
        raise ValidationFailure("Recompensa base deve ser positiva", field="task_completion_base")
    if complexity_multiplier is None or complexity_multiplier < 1:
        raise ValidationFailure(
            "Multiplicador de complexidade deve ser maior ou igual a 1",
            field="complexity_multiplier",
        )


def update_system_settings(changes: Mapping[str, Any], *, acting_user=None) -> dict:
    """
    Mescla ``changes`` nas configuracoes atuais e invalida o cache.

    Raises:
        ValidationFailure: chave desconhecida ou regras de recompensa violadas.
    """
    unknown = sorted(set(changes) - set(DEFAULT_SYSTEM_SETTINGS))
    if unknown:
        raise ValidationFailure(f"Configuração desconhecida: {unknown[0]}", field=unknown[0])

    row = _get_or_create_row()
    merged = row.to_dict()
    merged.update(changes)
    try:
        merged["task_completion_base"] = int(merged["task_completion_base"])
        merged["complexity_multiplier"] = float(merged["complexity_multiplier"])
        merged["monthly_bonus"] = int(merged["monthly_bonus"])
        merged["password_reset_frequency"] = int(merged["password_reset_frequency"])
    except (TypeError, ValueError):
        raise ValidationFailure("Valores numéricos inválidos nas configurações.") from None
    validate_reward_settings(merged["task_completion_base"], merged["complexity_multiplier"])
    if merged["monthly_bonus"] < 0:
        raise ValidationFailure("Bônus mensal não pode ser negativo", field="monthly_bonus")

    for key, value in merged.items():
        setattr(row, key, bool(value) if key in _BOOLEAN_SETTINGS else value)
    row.updated_by = getattr(acting_user, "id", None)
    db.session.commit()
    invalidate(CACHE_KEY_SYSTEM_SETTINGS)

    logger.info(
        "System settings updated by %s: %s",
        getattr(acting_user, "email", "system"),
        sorted(changes),
    )
    return row.to_dict()


def calculate_task_reward(difficulty_level: int, settings: Mapping[str, Any] | None = None) -> int:
    """
    Calcula as moedas de uma tarefa: base x dificuldade x multiplicador.

    Args:
        difficulty_level: Dificuldade entre 2 e 9.
        settings: Configuracoes a usar; padrao e a configuracao atual.

    Returns:
        int: Recompensa arredondada (meio para cima).
    """
    if (
        isinstance(difficulty_level, bool)
        or not isinstance(difficulty_level, int)
        or not DIFFICULTY_MIN <= difficulty_level <= DIFFICULTY_MAX
    ):
        raise ValidationFailure(
            f"Dificuldade deve estar entre {DIFFICULTY_MIN} e {DIFFICULTY_MAX}.",
            field="difficulty_level",
        )
    settings = settings or get_system_settings()
    return round_half_up(
        Decimal(str(settings["task_completion_base"]))
        * difficulty_level
        * Decimal(str(settings["complexity_multiplier"]))
    )
