from __future__ import annotations

from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge


class ServiceError(Exception):
    """Falha de regra de negócio que deve voltar ao cliente como JSON."""

    status = 400

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"error": self.message}


class NotFound(ServiceError):
    status = 404


class Conflict(ServiceError):
    status = 409


class Forbidden(ServiceError):
    status = 403


class ValidationFailed(ServiceError):
    def __init__(self, fields: dict, message: str = "Dados inválidos"):
        super().__init__(message, 400)
        self.fields = fields

    def to_dict(self) -> dict:
        return {"error": self.message, "fields": self.fields}


def register_error_handlers(app: Flask) -> None:
    from .extensions import db

    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        app.logger.info("%s %s -> %s: %s", request.method, request.path, e.status, e.message)
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        app.logger.exception("Erro de banco em %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify({"error": "Erro no banco de dados"}), 500

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_file(e):
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len:
            message = f"Arquivo excede o tamanho permitido ({max_len / (1024 * 1024):.0f} MB)."
        else:
            message = "Arquivo excede o tamanho permitido."
        return jsonify({"error": message}), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        if request.path.startswith("/api/"):
            return jsonify({"error": e.description or e.name}), e.code
        return e
