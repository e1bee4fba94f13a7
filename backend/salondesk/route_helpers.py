# Overview: Shared glue between blueprints and the WorkflowCoordinator.

from __future__ import annotations

from flask import current_app, jsonify

from .services.errors import WorkflowError
from .services.workflow_service import WorkflowCoordinator


def get_coordinator() -> WorkflowCoordinator:
    """The app-wide coordinator (created in create_app)."""
    return current_app.extensions["workflow_coordinator"]


def failure_response(error: WorkflowError):
    return jsonify(error.to_dict()), error.http_status


def invalid_input_response(message: str):
    return jsonify({"error": message, "code": "INVALID_INPUT", "details": {}}), 400


def internal_error_response(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
