# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations

from flask import jsonify


class PosError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError):
    """400-level input problem."""
    status_code = 400


class AuthenticationError(PosError):
    status_code = 401


class AuthorizationError(PosError):
    status_code = 403


class NotFoundError(PosError):
    status_code = 404


class ConflictError(PosError):
    """409-level business rule conflict (e.g., duplicate category name)."""
    status_code = 409


class InsufficientStockError(PosError):
    status_code = 400

    def __init__(self, message: str = "Insufficient stock", details: dict | None = None):
        super().__init__(message, details)


class PersistenceError(PosError):
    """Any other transaction or database failure."""
    status_code = 500


def error_response(exc: PosError):
    body = {"success": False, "error": exc.message}
    if exc.details:
        body["details"] = exc.details
    return jsonify(body), exc.status_code


def ok(data, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status
