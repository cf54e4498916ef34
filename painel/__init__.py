"""Flask application and shared extensions."""

import logging
import os
import time
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, g, request
from flask_compress import Compress
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

from painel.config import Config
from painel.extensions.cache import init_cache

load_dotenv()

app = Flask(__name__)
app.logger.name = "painel"

logger = logging.getLogger(__name__)

app.config.from_object(Config)
app.config['SQLALCHEMY_DATABASE_URI'] = Config.database_uri(app.instance_path)
app.config['SQLALCHEMY_ENGINE_OPTIONS'] = Config.engine_options(app.config['SQLALCHEMY_DATABASE_URI'])
app.config['SECRET_KEY'] = Config.secret_key()
app.config['STORAGE_ROOT'] = Config.STORAGE_ROOT or os.path.join(app.instance_path, 'storage')
app.config['COMPRESS_MIMETYPES'] = ['application/json']
app.config['COMPRESS_MIN_SIZE'] = 500

csrf = CSRFProtect(app)
db = SQLAlchemy(app)
migrate = Migrate(app, db)
login_manager = LoginManager(app)

init_cache(app)

limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=app.config['RATELIMIT_DEFAULT_LIMITS'] or None,
    storage_uri=app.config['RATELIMIT_STORAGE_URI'],
    strategy="fixed-window",
    headers_enabled=True,
)

compress = Compress(app)


@app.before_request
def _start_request():
    """Tag the request with an id and store its start time."""
    g.request_id = request.headers.get('X-Request-ID') or uuid4().hex[:12]
    g.request_started_at = time.perf_counter()


@app.after_request
def _finish_request(response):
    """Log the request and apply the security headers."""
    from painel.utils.logging_config import log_request_info

    started_at = getattr(g, 'request_started_at', None)
    duration_ms = (time.perf_counter() - started_at) * 1000 if started_at is not None else 0.0
    log_request_info(request, response, duration_ms, getattr(g, 'request_id', None))
    response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
    response.headers.setdefault('X-Content-Type-Options', 'nosniff')
    response.headers.setdefault('X-Frame-Options', 'DENY')
    response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
    return response


# Importa rotas e modelos depois da criação do db
from painel.models import tables  # noqa: E402
from painel.controllers import routes  # noqa: E402
from painel.controllers.routes._error_handlers import register_error_handlers  # noqa: E402

routes.register_blueprints(app)
register_error_handlers(app)


@login_manager.user_loader
def load_user(user_id):
    """Load a :class:`User` instance for Flask-Login."""
    return db.session.get(tables.User, int(user_id))


@login_manager.unauthorized_handler
def _unauthorized():
    from painel.controllers.routes._error_handlers import api_error_response

    return api_error_response("unauthorized", 401, "Autenticação necessária.")


with app.app_context():
    db.create_all()

if not app.config['TESTING']:
    from painel.utils.logging_config import setup_logging

    setup_logging(app)
    Config.validate()
