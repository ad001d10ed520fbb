from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
import os

from .metrics import MetricsConfig

# Shared SQLAlchemy handle, bound to the app inside create_app().
db = SQLAlchemy()

def _default_database_uri():
    """
    Builds the SQLite URI inside a writable, per-user data folder.
    On Windows this is %APPDATA%\\RebanhoDigital, elsewhere ~/.RebanhoDigital.
    """
    app_data_path = os.environ.get('APPDATA')
    if app_data_path:
        data_folder = os.path.join(app_data_path, 'RebanhoDigital')
    else:
        data_folder = os.path.join(os.path.expanduser("~"), '.RebanhoDigital')

    os.makedirs(data_folder, exist_ok=True)
    return f"sqlite:///{os.path.join(data_folder, 'database.db')}"

def create_app(test_config=None):
    """Application factory function."""
    app = Flask(__name__, instance_relative_config=False)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    app.config.from_mapping(
        SECRET_KEY=os.environ.get('REBANHO_SECRET_KEY', 'dev'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        # Overrides for the dashboard constants (see metrics.MetricsConfig).
        HERD_METRICS={},
    )

    if test_config is not None:
        app.config.update(test_config)

    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = (
            os.environ.get('REBANHO_DATABASE_URI') or _default_database_uri()
        )

    # Fail at start-up rather than on the first dashboard request.
    MetricsConfig.from_mapping(app.config.get('HERD_METRICS'))

    db.init_app(app)

    with app.app_context():
        from .routes import api
        app.register_blueprint(api, url_prefix='/api')

        # Create database tables for our models
        db.create_all()

    app.logger.info("Rebanho Digital API ready (database: %s)", app.config['SQLALCHEMY_DATABASE_URI'])
    return app
