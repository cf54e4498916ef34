"""
Decorators de autenticacao e autorizacao para rotas.

Decorators Disponiveis:
    - admin_required: Restringe acesso a usuarios admin
    - approver_required: Restringe acesso aos papeis de ``APPROVER_ROLES``
"""

from functools import wraps

from flask import abort
from flask_login import current_user, login_required

from painel.utils.permissions import is_approver, is_user_admin


def admin_required(f):
    """
    Restringe acesso a usuarios com role 'admin'.

    Combina ``login_required`` com verificacao de papel; usuarios
    autenticados sem permissao recebem 403.

    Exemplo:
        @users_bp.route("/users", methods=["POST"])
        @admin_required
        def create_user_route():
            ...
    """
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not is_user_admin(current_user):
            abort(403)
        return f(*args, **kwargs)
    return decorated_function


def approver_required(f):
    """Like ``admin_required`` but for the configured approver roles."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not is_approver(current_user):
            abort(403)
        return f(*args, **kwargs)
    return decorated_function
