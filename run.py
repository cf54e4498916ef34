"""
Ponto de entrada de producao: serve ``painel.app`` com Waitress.

Variaveis de ambiente:
    - WAITRESS_HOST / WAITRESS_PORT: Endereco de escuta
    - WAITRESS_THREADS: Workers; cada conclusao de acao ainda abre seu
      proprio pool de uploads (``UPLOAD_MAX_WORKERS``)
    - WAITRESS_CONNECTION_LIMIT / WAITRESS_CHANNEL_TIMEOUT
    - WAITRESS_INBUF_OVERFLOW: Buffer em disco para corpos multipart
    - WAITRESS_LOG_LEVEL / WAITRESS_EXPOSE_TRACEBACKS
"""
import logging
import os

from waitress import serve

from painel import app

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


def waitress_options(flask_app) -> dict:
    """Keyword arguments for ``waitress.serve`` built from the environment."""
    return {
        "host": os.getenv("WAITRESS_HOST", "127.0.0.1"),
        "port": _int_from_env("WAITRESS_PORT", 5000),
        "threads": _int_from_env("WAITRESS_THREADS", 16),
        "connection_limit": _int_from_env("WAITRESS_CONNECTION_LIMIT", 128),
        "channel_timeout": _int_from_env("WAITRESS_CHANNEL_TIMEOUT", 60),
        "inbuf_overflow": _int_from_env("WAITRESS_INBUF_OVERFLOW", 32 * 1024 * 1024),
        "max_request_body_size": flask_app.config["MAX_CONTENT_LENGTH"],
        "clear_untrusted_proxy_headers": True,
        "expose_tracebacks": flask_app.debug or os.getenv("WAITRESS_EXPOSE_TRACEBACKS") == "1",
    }


if __name__ == "__main__":
    logging.getLogger("waitress").setLevel(os.getenv("WAITRESS_LOG_LEVEL", "info").upper())

    options = waitress_options(app)
    logger.info(
        "Serving painel on %s:%s (threads=%s, storage=%s)",
        options["host"],
        options["port"],
        options["threads"],
        app.config["STORAGE_ROOT"],
    )
    serve(app, **options)
