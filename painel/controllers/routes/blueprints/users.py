"""
Blueprint de gestao de usuarios.

Rotas:
    - GET /api/v1/users: Listagem paginada (filtros role, status, search)
    - POST /api/v1/users: Cadastro (admin)
    - GET /api/v1/users/<id>: Detalhe
    - PATCH /api/v1/users/<id>: Atualizacao (admin ou o proprio usuario)
    - DELETE /api/v1/users/<id>: Exclusao (admin)
    - GET /api/v1/users/<id>/rewards: Recompensas recebidas
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from werkzeug.datastructures import MultiDict

from painel import csrf
from painel.controllers.routes._base import arg_int, pending_files_from_request, request_payload
from painel.controllers.routes._decorators import admin_required
from painel.controllers.routes._validators import ensure_safe_image
from painel.errors import PermissionDenied, ValidationFailure
from painel.forms import UserForm, UserUpdateForm, validate_or_raise
from painel.services.rewards import get_user_rewards
from painel.services.users import (
    create_user,
    delete_user,
    fetch_users,
    get_user_by_id,
    serialize_user,
    update_user,
)
from painel.utils.permissions import is_user_admin


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

users_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")
csrf.exempt(users_bp)

# Campos que apenas administradores podem alterar
_ADMIN_ONLY_FIELDS = {"role", "status"}


# =============================================================================
# ROTAS
# =============================================================================

@users_bp.route("", methods=["GET"])
@login_required
def list_users():
    """
    Lista usuarios com paginacao.

    Query string:
        role, status, search, page, limit, ids (lista separada por virgula)
    """
    raw_ids = request.args.get("ids")
    user_ids = None
    if raw_ids:
        try:
            user_ids = [int(item) for item in raw_ids.split(",") if item.strip()]
        except ValueError:
            raise ValidationFailure("Parâmetro ids inválido.", field="ids") from None
    result = fetch_users(
        role=request.args.get("role"),
        status=request.args.get("status"),
        limit=arg_int("limit", current_app.config.get("USERS_PAGE_SIZE", 10)),
        page=arg_int("page", 1),
        search_term=request.args.get("search"),
        user_ids=user_ids,
    )
    return jsonify(
        {
            "data": [serialize_user(user) for user in result["data"]],
            "total_pages": result["total_pages"],
            "total_users": result["total_users"],
        }
    )


@users_bp.route("", methods=["POST"])
@admin_required
def create_user_route():
    form = validate_or_raise(UserForm())
    user = create_user(
        {
            "name": form.name.data,
            "email": form.email.data,
            "role": form.role.data or None,
            "bio": form.bio.data or None,
        },
        form.password.data,
    )
    return jsonify(serialize_user(user)), 201


@users_bp.route("/<int:user_id>", methods=["GET"])
@login_required
def get_user_route(user_id):
    return jsonify(serialize_user(get_user_by_id(user_id)))


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@login_required
def update_user_route(user_id):
    """
    Atualiza um usuario.

    Aceita JSON ou multipart (``payload`` + arquivo ``profile_image``).
    Usuarios comuns so alteram o proprio cadastro e nunca papel/situacao.
    """
    admin = is_user_admin(current_user)
    if not admin and current_user.id != user_id:
        raise PermissionDenied("Você só pode alterar o seu próprio cadastro.")

    payload = request_payload()
    if not admin and _ADMIN_ONLY_FIELDS & set(payload):
        raise PermissionDenied("Apenas administradores alteram papel ou situação.")
    validate_or_raise(UserUpdateForm(formdata=MultiDict(payload)))

    images = pending_files_from_request("profile_image")
    profile_image = images[0] if images else None
    if profile_image is not None:
        ensure_safe_image(profile_image)

    user = update_user(user_id, payload, profile_image)
    return jsonify(serialize_user(user))


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user_route(user_id):
    if current_user.id == user_id:
        raise ValidationFailure("Você não pode excluir o próprio usuário.")
    delete_user(user_id)
    return "", 204


@users_bp.route("/<int:user_id>/rewards", methods=["GET"])
@login_required
def user_rewards(user_id):
    if not is_user_admin(current_user) and current_user.id != user_id:
        raise PermissionDenied("Você só pode consultar as suas recompensas.")
    get_user_by_id(user_id)
    rewards = get_user_rewards(user_id, limit=arg_int("limit"), type=request.args.get("type"))
    return jsonify(
        [
            {
                "id": reward.id,
                "type": reward.type,
                "amount": reward.amount,
                "description": reward.description,
                "project_id": reward.project_id,
                "task_id": reward.task_id,
                "created_at": reward.created_at.isoformat() if reward.created_at else None,
            }
            for reward in rewards
        ]
    )
