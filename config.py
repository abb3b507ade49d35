import os
from sqlalchemy.pool import QueuePool
from urllib.parse import urlparse
import pymysql
pymysql.install_as_MySQLdb()

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change_this_secret_key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": QueuePool,
        "pool_size": 5,
        "max_overflow": 2,
        "pool_timeout": 10
    }

    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Progression engine
    ENROLMENT_CONCURRENCY = int(os.getenv("ENROLMENT_CONCURRENCY", 5))
    WEEKLY_UNLOCK_INTERVAL_DAYS = int(os.getenv("WEEKLY_UNLOCK_INTERVAL_DAYS", 7))
    ALLOW_MULTIPLE_ROADMAP_ENROLMENTS = os.getenv("ALLOW_MULTIPLE_ROADMAP_ENROLMENTS", "False").lower() in ("true", "1", "yes")

    # Reward collaborator
    REWARD_SERVICE_URL = os.getenv("REWARD_SERVICE_URL")
    REWARD_SERVICE_TIMEOUT = float(os.getenv("REWARD_SERVICE_TIMEOUT", 3))

class DevConfig(Config):
    """Development Configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'mysql+pymysql://root:@localhost/progress_db')

class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REWARD_SERVICE_URL = None

class ProdConfig(Config):
    """Production Configuration"""
    DEBUG = False

    raw_db_url = os.getenv('DATABASE_URL')

    if raw_db_url:
        if raw_db_url.startswith("mysql://"):
            raw_db_url = raw_db_url.replace("mysql://", "mysql+pymysql://", 1)

        parsed_url = urlparse(raw_db_url)
        SQLALCHEMY_DATABASE_URI = f"{parsed_url.scheme}://{parsed_url.netloc}{parsed_url.path}"
    else:
        SQLALCHEMY_DATABASE_URI = os.getenv('JAWSDB_URL', 'sqlite:///:memory:')

ENV = os.getenv('FLASK_ENV', 'production').lower()

config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig
}

CurrentConfig = config_dict.get(ENV, ProdConfig)
