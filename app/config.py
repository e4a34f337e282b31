import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'smartmarks.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    TOKEN_TTL_HOURS = int(os.environ.get("TOKEN_TTL_HOURS", "720"))
    CHANGE_RETENTION_DAYS = int(os.environ.get("CHANGE_RETENTION_DAYS", "7"))
    CHANGE_PRUNE_INTERVAL_MINUTES = int(
        os.environ.get("CHANGE_PRUNE_INTERVAL_MINUTES", "60")
    )
    CHANGES_PAGE_LIMIT = int(os.environ.get("CHANGES_PAGE_LIMIT", "200"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False


class ClientConfig:
    API_URL = os.environ.get("BOOKMARKS_API_URL", "http://127.0.0.1:8072/api/v1")
    REQUEST_TIMEOUT = float(os.environ.get("BOOKMARKS_REQUEST_TIMEOUT", "10"))
    FEED_INTERVAL = float(os.environ.get("BOOKMARKS_FEED_INTERVAL", "1.0"))
