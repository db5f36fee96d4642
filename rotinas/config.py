import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")

    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BASE_DIR, "instance")

    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER") or os.path.join(INSTANCE_DIR, "uploads")

    DB_PATH = os.path.join(INSTANCE_DIR, "rotinas.db")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///" + DB_PATH.replace("\\", "/"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # anexos de anotações
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(20 * 1024 * 1024)))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # grade do quadro de anotações (card 220x200 + gap 20)
    NOTES_GRID_W = int(os.getenv("NOTES_GRID_W", "240"))
    NOTES_GRID_H = int(os.getenv("NOTES_GRID_H", "220"))

    # quantos eventos de alteração ficam disponíveis para /api/changes
    REALTIME_BACKLOG = int(os.getenv("REALTIME_BACKLOG", "500"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"
