# campus_voting/__init__.py

import logging

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from werkzeug.middleware.proxy_fix import ProxyFix

from campus_voting.config import Config

# Extensions are created unbound and attached to the app in create_app()
db = SQLAlchemy()  # Database ORM
migrate = Migrate()  # DB migrations
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address, default_limits=["10000/hour"])
socketio = SocketIO()


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    CORS(app, supports_credentials=True, origins=app.config["CORS_ORIGINS"])

    # Handlers must be registered before init_app so every app instance gets them
    from campus_voting.realtime import socket_handlers  # noqa: F401
    socketio.init_app(app, cors_allowed_origins=app.config['CORS_ORIGINS'], async_mode="threading")

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    from campus_voting.database import models  # noqa: F401
    from campus_voting.errors import register_error_handlers
    from campus_voting.routes import register_blueprints
    from campus_voting.cli import register_commands

    register_error_handlers(app)
    register_blueprints(app)
    register_commands(app)

    if app.config['AUTO_CREATE_TABLES']:
        with app.app_context():
            db.create_all()

    return app
