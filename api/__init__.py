import logging

from flask import Flask, request
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from models.db_storage import DBStorage
from services.session import SessionService
from utils.decorators import current_identity, jwt_optional
from utils.tokens import TokenCodec

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Auth API",
        "version": "1.0.0",
        "description": "Registration, login and token-based session management.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, storage: DBStorage | None = None,
               codec: TokenCodec | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    The credential store and token codec are passed in (or built from config)
    and hung on app.extensions; nothing reads them from module globals.
    When the factory builds the store itself, the caller is still
    responsible for calling storage.dispose() at shutdown.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    validate_config(app.config)

    if storage is None:
        storage = DBStorage(
            app.config["DATABASE_URL"],
            timeout=app.config["DB_TIMEOUT_SECONDS"],
            echo=app.config["SQL_ECHO"],
        )
        storage.reload()
    codec = codec or TokenCodec.from_config(app.config)

    app.extensions["storage"] = storage
    app.extensions["token_codec"] = codec
    app.extensions["session_service"] = SessionService(storage, codec, bcrypt_rounds=app.config["BCRYPT_ROUNDS"])

    # Cookies carry the tokens, so CORS must allow credentials from known origins only
    CORS(
        app,
        resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cookie"],
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")

    if app.config["LOG_REQUESTS"]:
        @app.before_request
        def log_request():
            logger.debug("%s %s (Content-Type: %s)", request.method, request.path, request.content_type)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    @jwt_optional()
    def root():
        return {
            "message": "Authentication API Server",
            "version": "1.0.0",
            "authenticated": current_identity() is not None,
            "endpoints": {"auth": "/api/auth", "health": "/health", "docs": "/apidocs/"},
        }, 200

    return app
