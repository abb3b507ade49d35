import logging

from dotenv import load_dotenv
load_dotenv()
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from config import config_dict, CurrentConfig
from models import db
from routes.progress import progress_bp

migrate = Migrate()


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app(config_name=None):
    app = Flask(__name__)
    config_class = config_dict.get(config_name, CurrentConfig)
    app.config.from_object(config_class)

    configure_logging(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True}})

    db.init_app(app)
    migrate.init_app(app, db)

    @app.route('/')
    def home():
        return "Progression engine is running."

    app.register_blueprint(progress_bp, url_prefix='/api/progress')

    app.logger.info(f"App created with {config_class.__name__}")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config.get('DEBUG', False))
