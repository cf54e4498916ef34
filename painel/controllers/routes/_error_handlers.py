"""
Traducao de erros para respostas JSON da API.

Formato de toda resposta de erro::

    {"error": <tipo>, "status": <codigo>, "message": <texto>, "field": <campo>?}

Mapeamentos:
    - PainelError e subclasses: ``status_code``/``error`` da propria excecao
    - CSRFError: 400 ``csrf_failed`` (apenas rotas fora da API JSON)
    - RequestEntityTooLarge: 413 com o limite de upload configurado
    - SQLAlchemyError: 500 ``database_error`` com rollback
    - Demais HTTPException: tabela ``HTTP_ERRORS``
    - Excecao nao tratada: 500 ``internal_error``
"""

from flask import Flask, Response, current_app, jsonify, request
from flask_wtf.csrf import CSRFError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from painel import db
from painel.errors import PainelError
from painel.utils.logging_config import log_exception

HTTP_ERRORS = {
    400: ("bad_request", None),
    401: ("unauthorized", "Autenticação necessária."),
    403: ("forbidden", "Você não tem permissão para acessar este recurso."),
    404: ("not_found", "Recurso não encontrado."),
    405: ("method_not_allowed", "Método não permitido."),
    429: ("rate_limited", "Muitas requisições. Aguarde antes de tentar novamente."),
}


def api_error_response(error: str, status_code: int, message: str | None = None) -> tuple[Response, int]:
    """Build the standard JSON error body."""
    payload = {"error": error, "status": status_code}
    if message:
        payload["message"] = message
    return jsonify(payload), status_code


def _upload_limit_message() -> str:
    max_len = current_app.config.get("MAX_CONTENT_LENGTH")
    if not max_len:
        return "Arquivo excede o tamanho permitido."
    return f"Arquivo excede o tamanho permitido ({max_len / (1024 * 1024):.0f} MB)."


def register_error_handlers(app: Flask) -> None:
    """
    Registra os handlers de erro na aplicacao.

    Erros de dominio 4xx sao registrados como aviso; 5xx, erros de banco e
    excecoes inesperadas com stack trace via ``log_exception``.
    """

    @app.errorhandler(PainelError)
    def handle_domain_error(e):
        db.session.rollback()
        if e.status_code >= 500:
            log_exception(e, request)
        else:
            current_app.logger.warning(
                "%s on %s %s: %s", e.error, request.method, request.path, e.message
            )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return api_error_response("csrf_failed", 400, e.description)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_upload(e):
        current_app.logger.warning("Upload rejected on %s: body too large", request.path)
        return api_error_response("payload_too_large", 413, _upload_limit_message())

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        log_exception(e, request)
        return api_error_response("database_error", 500, "Erro de banco de dados. Tente novamente.")

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        error, message = HTTP_ERRORS.get(e.code, (e.name.lower().replace(" ", "_"), None))
        if e.code == 429:
            current_app.logger.warning("Rate limit hit on %s %s", request.method, request.path)
        return api_error_response(error, e.code, message or e.description)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        log_exception(e, request)
        return api_error_response(
            "internal_error",
            500,
            "Ocorreu um erro inesperado. Tente novamente mais tarde.",
        )
