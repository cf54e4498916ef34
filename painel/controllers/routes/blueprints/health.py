"""
Blueprint para health checks e arquivos do storage local.

Rotas:
    - GET /api/v1/ping: Verificacao de saude (aplicacao e banco)
    - GET /files/<handle>: Download de arquivos do ``LocalObjectStorage``
"""

import os

from flask import Blueprint, abort, current_app, jsonify, send_from_directory
from flask_login import login_required
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from painel import db, limiter
from painel.services.storage import LocalObjectStorage, get_storage


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

health_bp = Blueprint("health", __name__)


# =============================================================================
# ROTAS
# =============================================================================

@health_bp.route("/api/v1/ping")
@limiter.exempt  # Health check - nao aplica rate limit para evitar falsos positivos
def ping():
    """
    Endpoint leve de verificacao de saude.

    Returns:
        200: Aplicacao e banco respondendo
        503: Banco indisponivel
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Health check failed: %s", exc)
        return jsonify({"status": "degraded", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"})


@health_bp.route("/files/<path:handle>")
@login_required
def serve_file(handle):
    """Serve a stored object; only available for the local backend."""
    storage = get_storage()
    if not isinstance(storage, LocalObjectStorage):
        abort(404)
    full_path = storage.local_path(handle)
    directory, filename = os.path.split(full_path)
    return send_from_directory(directory, filename)
