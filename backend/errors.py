# errors.py - API error types and their JSON rendering

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    status = 400

    def __init__(self, message, status=None, errors=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.errors = errors or {}

    def to_dict(self):
        return {"message": self.message, "errors": self.errors}


class Unauthorized(APIError):
    status = 401


class Forbidden(APIError):
    status = 403


class NotFound(APIError):
    status = 404


class Conflict(APIError):
    status = 409


class AIGenerationError(Exception):
    """The generative service returned nothing usable."""


def flatten_validation_error(exc: ValidationError, messages=None):
    """Group pydantic errors by top-level field, like zod's ``flatten().fieldErrors``."""
    messages = messages or {}
    field_errors = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "_form"
        msg = messages.get(field) or err.get("msg", "Invalid value.")
        bucket = field_errors.setdefault(field, [])
        if msg not in bucket:
            bucket.append(msg)
    return field_errors


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"message": e.description or e.name, "errors": {}}), e.code

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.exception("An internal server error occurred: %s", e)
        return jsonify({"message": "Internal Server Error", "errors": {}}), 500
