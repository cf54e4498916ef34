"""
Blueprint de configuracoes do sistema.

Rotas:
    - GET /api/v1/settings
    - PATCH /api/v1/settings (admin)
    - GET /api/v1/settings/reward?difficulty=N: Simula a recompensa
"""

from flask import Blueprint, jsonify

from flask_login import current_user, login_required

from painel import csrf
from painel.controllers.routes._base import arg_int, json_body
from painel.controllers.routes._decorators import admin_required
from painel.errors import ValidationFailure
from painel.forms import SettingsForm, validate_or_raise
from painel.services.settings import (
    calculate_task_reward,
    get_system_settings,
    update_system_settings,
)


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")
csrf.exempt(settings_bp)


# =============================================================================
# ROTAS
# =============================================================================

@settings_bp.route("", methods=["GET"])
@login_required
def get_settings():
    return jsonify(get_system_settings())


@settings_bp.route("", methods=["PATCH"])
@admin_required
def patch_settings():
    """
    Altera apenas as chaves enviadas.

    Returns:
        200: Configuracoes resultantes
        400: Chave desconhecida ou regra de recompensa violada
    """
    body = json_body()
    form = validate_or_raise(SettingsForm())
    changes = {key: form[key].data if key in form else value for key, value in body.items()}
    return jsonify(update_system_settings(changes, acting_user=current_user))


@settings_bp.route("/reward", methods=["GET"])
@login_required
def reward_preview():
    difficulty = arg_int("difficulty")
    if difficulty is None:
        raise ValidationFailure("Informe a dificuldade.", field="difficulty")
    return jsonify({"difficulty_level": difficulty, "coins_reward": calculate_task_reward(difficulty)})
