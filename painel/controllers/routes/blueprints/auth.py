"""
Blueprint de autenticacao.

Rotas:
    - POST /api/v1/auth/login: Login por e-mail e senha (sessao Flask-Login)
    - POST /api/v1/auth/logout: Encerra a sessao
    - GET /api/v1/auth/me: Usuario autenticado
"""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy import func

from painel import csrf, db, limiter
from painel.controllers.routes._error_handlers import api_error_response
from painel.forms import LoginForm, validate_or_raise
from painel.models.tables import User
from painel.services.users import serialize_user
from painel.utils.datetime_utils import utcnow


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
csrf.exempt(auth_bp)


def _login_rate_limit() -> str:
    return current_app.config.get("RATELIMIT_LOGIN", "5 per minute")


# =============================================================================
# ROTAS
# =============================================================================

@auth_bp.route("/login", methods=["POST"])
@limiter.limit(_login_rate_limit, methods=["POST"])
def login():
    """
    Autentica o usuario e abre a sessao.

    Returns:
        200: Dados do usuario
        400: Payload invalido
        401: Credenciais invalidas ou conta inativa
    """
    form = validate_or_raise(LoginForm())
    email = form.email.data.strip().lower()
    user = User.query.filter(func.lower(User.email) == email).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning("Failed login for %s", email)
        return api_error_response("invalid_credentials", 401, "E-mail ou senha inválidos.")
    if not user.is_active:
        current_app.logger.warning("Login attempt for inactive account %s", email)
        return api_error_response("inactive_account", 401, "Conta inativa ou suspensa.")

    login_user(user, remember=bool(form.remember_me.data))
    user.last_login = utcnow()
    db.session.commit()
    current_app.logger.info("User %s logged in", user.email)
    return jsonify(serialize_user(user))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    current_app.logger.info("User %s logged out", current_user.email)
    logout_user()
    return "", 204


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(serialize_user(current_user))
