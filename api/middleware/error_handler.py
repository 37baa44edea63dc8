# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy and error handling middleware.

Business exceptions raised by the voting engine carry a reason code and the
voting item they refer to, so callers can render a precise message. Flask
handlers turn them into problem documents.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Any, Dict, List, Optional, Tuple
from opentelemetry import trace
import logging

from models.enums import VotingErrorCode
from models.responses import ErrorResponse

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://civic-voting.example/problems"


class VotingException(Exception):
    """Base class for voting engine exceptions."""

    status_code = 500
    error_type = "application-error"
    title = "Application Error"

    def __init__(self, message: str, error_code: Optional[VotingErrorCode] = None,
                 item_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.item_id = item_id

    @property
    def code(self) -> Optional[str]:
        if self.error_code is None:
            return None
        return VotingErrorCode(self.error_code).value

    def to_problem(self, instance: Optional[str] = None) -> Dict[str, Any]:
        """Build the problem document for this exception."""
        return ErrorResponse(
            type=f"{PROBLEM_BASE_URI}/{self.error_type}",
            title=self.title,
            status=self.status_code,
            detail=self.message,
            code=self.code,
            item_id=self.item_id,
            instance=instance
        ).to_payload()


class ValidationException(VotingException):
    """Malformed item spec or invalid option."""

    status_code = 400
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, message: str, error_code: VotingErrorCode = VotingErrorCode.INVALID_ITEM,
                 item_id: Optional[str] = None, validation_errors: Optional[List[str]] = None):
        super().__init__(message, error_code, item_id)
        self.validation_errors = validation_errors or []

    def to_problem(self, instance: Optional[str] = None) -> Dict[str, Any]:
        problem = super().to_problem(instance)
        problem["validationErrors"] = list(self.validation_errors)
        return problem


class NotFoundException(VotingException):
    """Unknown item or bill."""

    status_code = 404
    error_type = "resource-not-found"
    title = "Resource Not Found"


class AuthorizationException(VotingException):
    """Ineligible voter or non-privileged caller."""

    status_code = 403
    error_type = "insufficient-permissions"
    title = "Insufficient Permissions"


class ConflictException(VotingException):
    """Duplicate vote."""

    status_code = 409
    error_type = "resource-conflict"
    title = "Resource Conflict"


class StateException(VotingException):
    """Voting not yet open or already closed."""

    status_code = 409
    error_type = "invalid-state"
    title = "Voting Not Open"


class InfrastructureException(VotingException):
    """Persistence or other infrastructure failure, distinct from rule violations."""

    status_code = 503
    error_type = "service-unavailable"
    title = "Service Unavailable"

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message, VotingErrorCode.STORE_UNAVAILABLE, item_id)


class ErrorHandlerMiddleware:
    """Centralized handling of HTTP-level errors with problem-document responses."""

    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(400)
        def handle_bad_request(error):
            return self.handle_client_error(error, "bad-request", "Bad Request")

        @self.app.errorhandler(404)
        def handle_not_found(error):
            return self.handle_client_error(error, "resource-not-found", "Resource Not Found")

        @self.app.errorhandler(405)
        def handle_method_not_allowed(error):
            return self.handle_client_error(error, "method-not-allowed", "Method Not Allowed")

        @self.app.errorhandler(500)
        def handle_internal_server_error(error):
            return self.handle_unexpected_error(error)

    def _problem(self, error_type: str, title: str, status: int, detail: str) -> Dict[str, Any]:
        return ErrorResponse(
            type=f"{PROBLEM_BASE_URI}/{error_type}",
            title=title,
            status=status,
            detail=detail,
            instance=request.path
        ).to_payload()

    def handle_client_error(
        self,
        error: HTTPException,
        error_type: str,
        title: str
    ) -> Tuple[Any, int]:
        """
        Handle client errors (4xx status codes).

        Args:
            error: HTTP exception
            error_type: Error type identifier
            title: Error title

        Returns:
            Tuple of (error response, status code)
        """
        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.warning(
                f"Client error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "path": request.path,
                    "method": request.method
                }
            )

            return jsonify(self._problem(error_type, title, error.code, detail)), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception (Flask wraps it in InternalServerError)

        Returns:
            Tuple of (error response, status code)
        """
        original = getattr(error, "original_exception", None) or error

        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": original.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(original)

            logger.error(
                f"Unexpected error: {original.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": original.__class__.__name__,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=original
            )

            # Don't expose internal error details in production
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{original.__class__.__name__}: {str(original)}"

            return jsonify(self._problem("internal-server-error", "Internal Server Error", 500, detail)), 500


def register_custom_error_handlers(app: Flask):
    """
    Register handlers for voting engine exceptions.

    Args:
        app: Flask application
    """

    @app.errorhandler(VotingException)
    def handle_voting_exception(error: VotingException):
        with tracer.start_as_current_span("error_handler.voting_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "error.code": error.code or "",
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if isinstance(error, InfrastructureException) else logger.warning
            log(
                f"Voting exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "error_code": error.code,
                    "item_id": error.item_id,
                    "status_code": error.status_code,
                    "error_message": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            return jsonify(error.to_problem(request.path)), error.status_code
