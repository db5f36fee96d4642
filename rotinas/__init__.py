from __future__ import annotations

import os
from flask import Flask, jsonify
from dotenv import load_dotenv

from .config import Config
from .extensions import db, login_manager, csrf, changes


def create_app(config_object=None) -> Flask:
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config())

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # instance/ e pasta de anexos
    os.makedirs(app.instance_path, exist_ok=True)
    upload_folder = app.config.get("UPLOAD_FOLDER") or os.path.join(app.instance_path, "uploads")
    app.config["UPLOAD_FOLDER"] = upload_folder
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # init extensions
    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)

    from .realtime import init_realtime
    init_realtime(app, changes, db)

    # user loader
    from .models.user import User

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Não autenticado"}), 401

    from .errors import register_error_handlers
    register_error_handlers(app)

    # register blueprints
    from .blueprints.auth.routes import bp as auth_bp
    from .blueprints.sectors.routes import bp as sectors_bp
    from .blueprints.units.routes import bp as units_bp
    from .blueprints.routines.routes import bp as routines_bp
    from .blueprints.checkins.routes import bp as checkins_bp
    from .blueprints.tasks.routes import bp as tasks_bp
    from .blueprints.dashboard.routes import bp as dashboard_bp
    from .blueprints.notes.routes import bp as notes_bp
    from .blueprints.changes.routes import bp as changes_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(sectors_bp)
    app.register_blueprint(units_bp)
    app.register_blueprint(routines_bp)
    app.register_blueprint(checkins_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(notes_bp)
    app.register_blueprint(changes_bp)

    # create db tables
    with app.app_context():
        # garante que todos os models sejam importados/registrados no metadata
        from . import models  # noqa: F401
        db.create_all()

    # CLI commands
    from .seed import register_seed_command, register_diagnostic_commands, register_recurring_command
    register_seed_command(app)
    register_diagnostic_commands(app)
    register_recurring_command(app)

    return app
