import os
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from dotenv import load_dotenv
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from .extensions import db, migrate, login_manager, csrf, limiter
from .config import Config
from .errors import error_body
from .logging_config import configure_logging


def create_app(overrides=None):
    load_dotenv()
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    if app.config.get("STORAGE_BACKEND") == "filesystem":
        os.makedirs(app.config.get("UPLOADS_DIR", "./uploads"), exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # Stores and clients are built once per process and injected into the pipeline
    from .services.blob_store import init_blob_store
    from .services.import_service import init_import_service

    blob_store = init_blob_store(app)
    init_import_service(app, blob_store)

    from .routes.api import api_bp
    from .routes.health import health_bp
    from .routes.storage import storage_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(storage_bp)

    from .cli import register_commands

    register_commands(app)

    # Auto-create tables only for local SQLite dev if schema missing
    uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", "") or "")
    if uri.startswith("sqlite:") and app.config.get("ENV") != "production":
        try:
            with app.app_context():
                insp = inspect(db.engine)
                if not insp.has_table("workspaces"):
                    db.create_all()
        except SQLAlchemyError as exc:
            # Migrations (flask db upgrade) can still create the schema
            app.logger.warning("could not auto-create SQLite schema: %s", exc)

    @app.shell_context_processor
    def make_shell_context():
        from . import models
        return {"db": db, **{name: getattr(models, name) for name in dir(models) if name[0].isupper()}}

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        return jsonify(error_body("invalid-argument", error.description)), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify(error_body("not-found", "Not found")), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify(error_body("invalid-argument", "Method not allowed")), 405

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify(error_body("resource-exhausted", f"Rate limit exceeded: {error.description}")), 429

    @app.errorhandler(500)
    def server_error(error):
        return jsonify(error_body("internal", "Internal server error")), 500

    return app
