# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for identity token validation and user context extraction.

The voting engine trusts the identity carried by a verified session token; it
never asks the caller which voter they are. Privileged operations additionally
require the voting administration permission.
"""

from functools import wraps
from flask import request, jsonify, g
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from middleware.error_handler import PROBLEM_BASE_URI
from models.entities import UserContext
from models.enums import VotingErrorCode
from services.auth import AuthService, TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    Token authentication for Flask routes.

    Handles token extraction, validation and user context building for
    protected endpoints.
    """

    def __init__(self, auth_service: AuthService):
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract the bearer token from request headers.

        Returns:
            Token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if auth_header.startswith('Bearer '):
            return auth_header[7:] or None

        return None

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from a validated token payload.

        Args:
            token_payload: Decoded token claims
            request_info: Request metadata (IP, user agent)
        """
        permissions = token_payload.get("permissions") or []
        if isinstance(permissions, str):
            permissions = permissions.split()

        return UserContext(
            user_id=str(token_payload["sub"]),
            email=token_payload.get("email"),
            name=token_payload.get("name"),
            permissions=list(permissions),
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self) -> UserContext:
        """
        Authenticate the current request.

        Raises:
            TokenValidationError: If the token is missing or invalid
        """
        token = self.extract_token_from_request()
        if not token:
            raise TokenValidationError("Missing authorization token")

        token_payload = self.auth_service.validate_token(token)
        return self.build_user_context(token_payload, self.get_request_info())


def _unauthorized(title: str, detail: str):
    return jsonify({
        "type": f"{PROBLEM_BASE_URI}/authentication-required",
        "title": title,
        "status": 401,
        "detail": detail,
        "instance": request.path
    }), 401


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require an authenticated voter for Flask routes.

    The route receives the UserContext as its first positional argument.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                if not auth_middleware.extract_token_from_request():
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    return _unauthorized("Authentication Required", "Missing authorization token")

                try:
                    user_context = auth_middleware.authenticate()
                except TokenValidationError as e:
                    span.set_attribute("auth.result", "invalid_token")
                    logger.warning(f"Authentication failed: {str(e)}")
                    return _unauthorized("Invalid Token", str(e))

                g.user_context = user_context

                span.set_attributes({
                    "auth.result": "success",
                    "user.id": user_context.user_id
                })
                logger.debug(
                    "Authentication successful",
                    extra={"user_id": user_context.user_id, "ip_address": user_context.ip_address}
                )

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_permission(permission: str, auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require a specific permission for Flask routes.

    Args:
        permission: Required permission string
        auth_middleware: Configured AuthMiddleware instance
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth(auth_middleware)
        def decorated_function(user_context: UserContext, *args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.check_permission") as span:
                span.set_attributes({
                    "auth.operation": "check_permission",
                    "auth.required_permission": permission,
                    "user.id": user_context.user_id
                })

                if not user_context.has_permission(permission):
                    span.set_attribute("auth.permission_result", "denied")
                    logger.warning(
                        f"Authorization failed: missing permission '{permission}'",
                        extra={
                            "user_id": user_context.user_id,
                            "required_permission": permission,
                            "user_permissions": user_context.permissions
                        }
                    )
                    return jsonify({
                        "type": f"{PROBLEM_BASE_URI}/insufficient-permissions",
                        "title": "Insufficient Permissions",
                        "status": 403,
                        "detail": f"Missing required permission: {permission}",
                        "code": VotingErrorCode.NOT_PRIVILEGED.value,
                        "instance": request.path
                    }), 403

                span.set_attribute("auth.permission_result", "granted")

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator for optional authentication.

    Anonymous requests pass None as the user context; a present but invalid
    token is still rejected.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = None

            if auth_middleware.extract_token_from_request():
                try:
                    user_context = auth_middleware.authenticate()
                except TokenValidationError as e:
                    logger.warning(f"Authentication failed: {str(e)}")
                    return _unauthorized("Invalid Token", str(e))
                g.user_context = user_context

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator
