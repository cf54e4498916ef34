"""
Gestao de usuarios.

Funcoes:
    - fetch_users: listagem paginada com filtros e busca por nome/e-mail
    - get_user_by_id
    - create_user: valida e cria conta ativa com saldo zero
    - update_user: atualiza dados e, opcionalmente, a foto de perfil
    - delete_user
    - serialize_user
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from painel import db
from painel.constants import PROFILE_IMAGE_MIME_TYPES, USER_ROLES, USER_STATUSES
from painel.errors import NotFoundError, ValidationFailure
from painel.models.tables import (
    ActionTemplate,
    ActivityLog,
    CoinTransaction,
    Notification,
    Project,
    ProjectMessage,
    Reward,
    SystemSettings,
    Task,
    TaskStatusHistory,
    User,
)
from painel.services.storage import ObjectStorage, build_object_path, get_storage
from painel.utils.validation import (
    is_strong_password,
    is_valid_email,
    is_valid_file_size,
    is_valid_file_type,
    is_valid_name,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "email", "role", "status", "bio", "cover_image"}


def get_user_by_id(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Usuário não encontrado")
    return user


def fetch_users(
    *,
    role: str | None = None,
    status: str | None = None,
    limit: int = 10,
    page: int = 1,
    search_term: str | None = None,
    user_ids: Iterable[int] | None = None,
) -> dict:
    """
    Lista usuarios ordenados por nome, com paginacao.

    Args:
        role: Filtra pelo papel.
        status: Filtra pela situacao da conta.
        limit: Itens por pagina.
        page: Pagina (1-based).
        search_term: Trecho do nome ou e-mail (sem diferenciar caixa).
        user_ids: Restringe a estes ids.

    Returns:
        dict: ``{"data": [...], "total_pages": int, "total_users": int}``.
    """
    limit = max(1, int(limit or 10))
    page = max(1, int(page or 1))

    query = User.query
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    if user_ids:
        query = query.filter(User.id.in_(list(user_ids)))
    if search_term:
        pattern = f"%{search_term.lower()}%"
        query = query.filter(
            or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern))
        )

    total_users = query.count()
    users = (
        query.order_by(User.name.asc(), User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": users,
        "total_pages": math.ceil(total_users / limit),
        "total_users": total_users,
    }


def _validate_user_fields(fields: Mapping[str, Any]) -> None:
    if "name" in fields and not is_valid_name(fields["name"]):
        raise ValidationFailure("Informe nome e sobrenome válidos.", field="name")
    if "email" in fields and not is_valid_email(fields["email"]):
        raise ValidationFailure("E-mail inválido.", field="email")
    if "role" in fields and fields["role"] not in USER_ROLES:
        raise ValidationFailure("Papel de usuário inválido.", field="role")
    if "status" in fields and fields["status"] not in USER_STATUSES:
        raise ValidationFailure("Situação de usuário inválida.", field="status")


def _ensure_email_available(email: str, exclude_id: int | None = None) -> None:
    query = User.query.filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if db.session.query(query.exists()).scalar():
        raise ValidationFailure("Já existe um usuário com este e-mail.", field="email")


def create_user(user_data: Mapping[str, Any], password: str) -> User:
    """
    Cria um usuario ativo com saldo zero.

    Raises:
        ValidationFailure: dados invalidos, senha fraca ou e-mail repetido.
    """
    if not password:
        raise ValidationFailure("A senha é obrigatória.", field="password")
    if not is_strong_password(password):
        raise ValidationFailure(
            "A senha deve ter ao menos 8 caracteres, com maiúscula, minúscula, número e símbolo.",
            field="password",
        )
    data = {key: user_data.get(key) for key in ("name", "email", "role", "bio") if user_data.get(key) is not None}
    data.setdefault("role", "employee")
    for required in ("name", "email"):
        if not data.get(required):
            raise ValidationFailure(f"O campo {required} é obrigatório.", field=required)
    _validate_user_fields(data)
    data["email"] = data["email"].strip().lower()
    _ensure_email_available(data["email"])

    user = User(**data, coins=0, status="active")
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailure("Já existe um usuário com este e-mail.", field="email") from None
    logger.info("User %s created with role %s", user.email, user.role)
    return user


def update_user(
    user_id: int,
    updates: Mapping[str, Any],
    profile_image=None,
    *,
    storage: ObjectStorage | None = None,
) -> User:
    """
    Atualiza um usuario.

    Args:
        user_id: Id do usuario.
        updates: Campos a alterar (``password`` e aceito e validado).
        profile_image: ``PendingFile`` opcional; gravado em
            ``users/<id>/profile_image``.
        storage: Backend de armazenamento (padrao: o da aplicacao).

    Raises:
        ValidationFailure: campo invalido ou imagem recusada.
        NotFoundError: usuario inexistente.
        StorageError: falha ao gravar a imagem.
    """
    user = get_user_by_id(user_id)
    updates = dict(updates)
    password = updates.pop("password", None)
    unknown = sorted(set(updates) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailure(f"Campo não pode ser alterado: {unknown[0]}", field=unknown[0])
    _validate_user_fields(updates)
    if "email" in updates:
        updates["email"] = updates["email"].strip().lower()
        _ensure_email_available(updates["email"], exclude_id=user.id)
    if password is not None and not is_strong_password(password):
        raise ValidationFailure("Senha fraca.", field="password")

    if profile_image is not None:
        if not is_valid_file_type(profile_image, PROFILE_IMAGE_MIME_TYPES):
            raise ValidationFailure("Envie uma imagem PNG, JPG, GIF ou WEBP.", field="profile_image")
        max_mb = current_app.config.get("PROFILE_IMAGE_MAX_SIZE_MB", 5)
        if not is_valid_file_size(profile_image, max_mb):
            raise ValidationFailure(f"Imagem excede {max_mb} MB.", field="profile_image")
        storage = storage or get_storage()
        handle = storage.upload(
            build_object_path("users", user.id, filename="profile_image", timestamped=False),
            profile_image.data,
            profile_image.content_type,
        )
        user.profile_image = storage.get_download_url(handle)

    for key, value in updates.items():
        setattr(user, key, value)
    if password is not None:
        user.set_password(password)
    db.session.commit()
    logger.info("User %s updated (%s)", user.id, ", ".join(sorted(updates)) or "profile image")
    return user


def delete_user(user_id: int) -> None:
    """
    Exclui o usuario e desfaz as referencias a ele.

    Tarefas atribuidas ficam sem responsavel e o usuario sai da lista de
    gestores dos projetos. Notificacoes, recompensas e transacoes dele sao
    apagadas; registros historicos (chat, historico de status, atividades)
    mantem o nome gravado e perdem apenas o vinculo.

    Raises:
        NotFoundError: usuario inexistente.
        ValidationFailure: usuario criou tarefas (deve ser desativado).
    """
    user = get_user_by_id(user_id)
    if Task.query.filter_by(created_by=user_id).count():
        raise ValidationFailure(
            "Usuário criou tarefas e não pode ser excluído; desative a conta.", field="status"
        )

    unassigned = Task.query.filter_by(assigned_to=user_id).update(
        {Task.assigned_to: None}, synchronize_session="fetch"
    )
    for project in Project.query.all():
        if user_id in (project.managers or []):
            project.managers = [item for item in project.managers if item != user_id]
    Project.query.filter_by(created_by=user_id).update({Project.created_by: None}, synchronize_session="fetch")
    for model in (Notification, Reward, CoinTransaction):
        model.query.filter_by(user_id=user_id).delete(synchronize_session="fetch")
    for model, column in (
        (ProjectMessage, ProjectMessage.user_id),
        (ActivityLog, ActivityLog.user_id),
        (TaskStatusHistory, TaskStatusHistory.changed_by),
        (ActionTemplate, ActionTemplate.created_by),
        (SystemSettings, SystemSettings.updated_by),
    ):
        model.query.filter(column == user_id).update({column: None}, synchronize_session="fetch")

    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted (%s task(s) left without assignee)", user_id, unassigned)


def serialize_user(user: User) -> dict:
    """Return a user payload without credentials."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "coins": user.coins,
        "profile_image": user.profile_image,
        "cover_image": user.cover_image,
        "bio": user.bio,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
