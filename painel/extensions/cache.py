"""
Cache compartilhado da aplicacao (Flask-Caching).

Hoje guarda apenas o documento de configuracoes do sistema. Com
``REDIS_URL`` definido usa Redis, de forma que todos os workers do
Waitress enxerguem a mesma invalidacao; sem ele, cada processo mantem seu
proprio ``SimpleCache``.
"""

from __future__ import annotations

import logging

from flask import current_app, has_app_context
from flask_caching import Cache

logger = logging.getLogger(__name__)

cache = Cache()


def _backend_config(app) -> dict:
    redis_url = app.config.get("REDIS_URL")
    if redis_url:
        return {
            "CACHE_TYPE": "RedisCache",
            "CACHE_REDIS_URL": redis_url,
            "CACHE_IGNORE_ERRORS": True,
        }
    return {"CACHE_TYPE": "SimpleCache"}


def init_cache(app) -> None:
    """
    Registra o cache na aplicacao.

    Valores ja presentes em ``app.config`` (ex.: ``CACHE_TYPE`` em testes)
    tem precedencia sobre os escolhidos aqui.
    """
    app.config.setdefault("CACHE_DEFAULT_TIMEOUT", 120)
    app.config.setdefault("CACHE_KEY_PREFIX", "painel:")
    for key, value in _backend_config(app).items():
        app.config.setdefault(key, value)

    cache.init_app(app)
    logger.debug("Cache backend: %s", app.config["CACHE_TYPE"])


def get_cache_timeout(config_key: str, default: int) -> int:
    """TTL configured under ``config_key``, or ``default`` outside an app context."""
    if not has_app_context():
        return default
    return int(current_app.config.get(config_key, default))


def invalidate(*keys: str) -> None:
    """Drop ``keys`` from the cache."""
    for key in keys:
        cache.delete(key)
