"""
Rotas da API do painel de projetos.

ARQUIVOS AUXILIARES:
    - _base.py: Leitura de payload JSON/multipart e query string
    - _decorators.py: Decorators de autorizacao
    - _error_handlers.py: Tratamento centralizado de erros
    - _validators.py: Validacoes de upload
    - blueprints/: Rotas agrupadas por dominio
"""

from flask import Flask


def register_blueprints(flask_app: Flask) -> None:
    """
    Registra todos os blueprints da aplicacao.

    Args:
        flask_app: Instancia da aplicacao Flask.
    """
    from painel.controllers.routes.blueprints import register_all_blueprints
    register_all_blueprints(flask_app)
