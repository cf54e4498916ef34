"""
Registro centralizado de blueprints da API.

Blueprints Disponiveis:
    - health_bp: Health check e download de arquivos locais
    - auth_bp: Autenticacao
    - users_bp: Gestao de usuarios
    - projects_bp: Projetos, chat e arquivos
    - tasks_bp: Tarefas e fluxo de aprovacao
    - action_templates_bp: Modelos de acao
    - settings_bp: Configuracoes do sistema
    - notifications_bp: Notificacoes
    - activities_bp: Historico de atividades

Uso:
    from painel.controllers.routes.blueprints import register_all_blueprints
    register_all_blueprints(app)
"""

from flask import Flask


def register_all_blueprints(app: Flask) -> None:
    """
    Registra todos os blueprints na aplicacao Flask.

    Args:
        app: Instancia da aplicacao Flask.
    """
    # Health - /api/v1/ping, /files/<handle>
    from painel.controllers.routes.blueprints.health import health_bp
    app.register_blueprint(health_bp)

    # Auth - /api/v1/auth/login, /logout, /me
    from painel.controllers.routes.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp)

    # Usuarios - /api/v1/users/*
    from painel.controllers.routes.blueprints.users import users_bp
    app.register_blueprint(users_bp)

    # Projetos - /api/v1/projects/*
    from painel.controllers.routes.blueprints.projects import projects_bp
    app.register_blueprint(projects_bp)

    # Tarefas - /api/v1/tasks/*
    from painel.controllers.routes.blueprints.tasks import tasks_bp
    app.register_blueprint(tasks_bp)

    # Modelos de acao - /api/v1/action-templates/*
    from painel.controllers.routes.blueprints.action_templates import action_templates_bp
    app.register_blueprint(action_templates_bp)

    # Configuracoes - /api/v1/settings/*
    from painel.controllers.routes.blueprints.settings import settings_bp
    app.register_blueprint(settings_bp)

    # Notificacoes - /api/v1/notifications/*
    from painel.controllers.routes.blueprints.notifications import notifications_bp
    app.register_blueprint(notifications_bp)

    # Atividades - /api/v1/activities
    from painel.controllers.routes.blueprints.activities import activities_bp
    app.register_blueprint(activities_bp)
