"""
Configuracao de logs do painel.

Arquivos gerados em ``APP_LOG_DIR`` (padrao ``logs/`` ao lado do pacote):
    - app.log / app.jsonl: Logs gerais da aplicacao e dos servicos
    - error.log: Somente erros
    - slow_requests.log: Requisicoes acima de ``SLOW_REQUEST_MS``
    - user_actions.log / user_actions.jsonl: Trilha de auditoria do fluxo
      de tarefas (logger ``user_actions``, usado por ``log_activity``)

Rotacao diaria; a retencao de cada arquivo esta em ``LOG_FILES``.
"""

import json
import logging
import os
import tempfile
import traceback
from logging.handlers import TimedRotatingFileHandler

SENSITIVE_KEYS = ("password", "senha", "token", "secret")
SLOW_REQUEST_MS = 2000
AUDIT_LOGGER_NAME = "user_actions"

TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s (%(funcName)s:%(lineno)d): %(message)s"

# (arquivo, nivel, formato, dias de retencao, logger)
LOG_FILES = (
    ("app.log", logging.INFO, "text", 60, "app"),
    ("app.jsonl", logging.INFO, "json", 60, "app"),
    ("error.log", logging.ERROR, "text", 90, "app"),
    ("slow_requests.log", logging.WARNING, "text", 30, "slow"),
    ("user_actions.log", logging.INFO, "text", 180, AUDIT_LOGGER_NAME),
    ("user_actions.jsonl", logging.INFO, "json", 180, AUDIT_LOGGER_NAME),
)


class SlowRequestFilter(logging.Filter):
    """Only pass records flagged with ``slow_request``."""

    def filter(self, record: logging.LogRecord) -> bool:
        return bool(getattr(record, "slow_request", False))


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the audit and request fields."""

    EXTRA_FIELDS = (
        "request_id",
        "user_id",
        "action",
        "resource_type",
        "resource_id",
        "duration_ms",
        "details",
    )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self.EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def resolve_log_dir(app) -> str:
    """``APP_LOG_DIR`` if writable, otherwise a folder under the system temp dir."""
    log_dir = os.getenv("APP_LOG_DIR") or os.path.join(os.path.dirname(app.root_path), "logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
        if not os.access(log_dir, os.W_OK):
            raise PermissionError(log_dir)
        return log_dir
    except OSError:
        fallback_dir = os.path.join(tempfile.gettempdir(), "painel-logs")
        os.makedirs(fallback_dir, exist_ok=True)
        return fallback_dir


def _file_handler(path: str, level: int, formatter: logging.Formatter, backup_count: int):
    handler = TimedRotatingFileHandler(
        path,
        when="midnight",
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger) -> logging.Logger:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def setup_logging(app, log_dir: str | None = None):
    """
    Configura os handlers de arquivo (e console em debug).

    Args:
        app: Aplicacao Flask; seu logger (``painel``) recebe tambem os
            registros dos servicos (``painel.services.*``).
        log_dir: Diretorio de destino; padrao ``resolve_log_dir(app)``.

    Returns:
        logging.Logger: O logger da aplicacao.
    """
    log_dir = log_dir or resolve_log_dir(app)
    formatters = {
        "text": logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"),
        "json": JsonFormatter(),
    }

    app_logger = _reset(app.logger)
    app_logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    audit_logger = _reset(logging.getLogger(AUDIT_LOGGER_NAME))
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False

    for filename, level, formatter_name, backup_count, target in LOG_FILES:
        handler = _file_handler(
            os.path.join(log_dir, filename), level, formatters[formatter_name], backup_count
        )
        if target == "slow":
            handler.addFilter(SlowRequestFilter())
        (audit_logger if target == AUDIT_LOGGER_NAME else app_logger).addHandler(handler)

    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatters["text"])
        app_logger.addHandler(console_handler)

    app_logger.info("Logging configured - directory: %s", log_dir)
    return app_logger


def log_request_info(request, response, duration_ms, request_id=None):
    """
    Registra requisicoes lentas, erros 5xx e bloqueios de rate limit.

    Args:
        request: Requisicao Flask
        response: Resposta Flask
        duration_ms: Duracao da requisicao em milissegundos
        request_id: Identificador de correlacao (``X-Request-ID``)
    """
    from flask import current_app

    extra = {"request_id": request_id, "duration_ms": round(duration_ms)}
    summary = f"[req_id={request_id or 'na'}] {request.method} {request.path} -> {response.status_code}"

    if duration_ms > SLOW_REQUEST_MS:
        current_app.logger.warning(
            "%s SLOW REQUEST (%.0f ms)", summary, duration_ms, extra={**extra, "slow_request": True}
        )
    elif response.status_code >= 500:
        current_app.logger.error("%s ERROR RESPONSE from %s", summary, request.remote_addr, extra=extra)
    elif response.status_code == 429:
        current_app.logger.warning("%s RATE LIMIT HIT from %s", summary, request.remote_addr, extra=extra)


def redact(payload):
    """Drop password/token-like keys from a mapping before logging it."""
    if not isinstance(payload, dict):
        return payload
    return {
        key: value
        for key, value in payload.items()
        if not any(marker in str(key).lower() for marker in SENSITIVE_KEYS)
    }


def log_exception(error, request=None):
    """
    Registra uma excecao com o contexto da requisicao e o stack trace.

    Campos de formulario multipart (``payload`` das acoes) e corpos JSON
    passam por ``redact`` antes de serem gravados.
    """
    from flask import current_app, g

    lines = [f"EXCEPTION: {type(error).__name__}: {error}"]
    request_id = None
    if request is not None:
        request_id = getattr(g, "request_id", None)
        lines.append(f"Request: {request.method} {request.path} from {request.remote_addr}")
        if request.files:
            lines.append(f"Files: {[item.filename for item in request.files.getlist('files')]}")
        body = request.get_json(silent=True) if request.is_json else request.form.to_dict()
        if body:
            lines.append(f"Body: {redact(body)}")
    lines.append("Stack trace:")
    lines.append(traceback.format_exc())

    current_app.logger.error("\n".join(lines), extra={"request_id": request_id})
