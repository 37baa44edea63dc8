# SPDX-License-Identifier: Apache-2.0

"""
Identity token service.

Voter identities and privileges are issued by the external session service as
signed JWTs. This module only verifies them and extracts the claims the
voting engine needs; it never authenticates users itself.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT verification for identities issued by the session collaborator.

    The signing key and algorithm come from configuration so the engine can
    follow whatever the identity provider uses (shared secret or public key).
    """

    def __init__(self, verification_key: Optional[str] = None, algorithm: Optional[str] = None,
                 audience: Optional[str] = None):
        """
        Initialize the token service.

        Args:
            verification_key: Shared secret (HS*) or PEM public key (RS*/ES*)
            algorithm: JWT algorithm expected on incoming tokens
            audience: Expected audience claim, if the provider sets one
        """
        self.verification_key = verification_key or os.getenv("JWT_SECRET", "dev-secret-key")
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "HS256")
        self.audience = audience or os.getenv("JWT_AUDIENCE") or None

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode an identity token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid, expired or has no subject
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.verification_key,
                    algorithms=[self.algorithm],
                    audience=self.audience,
                    options={"verify_exp": True, "verify_aud": self.audience is not None}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if not payload.get("sub"):
                span.set_attribute("auth.validation_result", "missing_subject")
                raise TokenValidationError("Token has no subject")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload["sub"]
            })
            return payload

    def issue_token(self, user_id: str, permissions: Optional[List[str]] = None,
                    expires_in: timedelta = timedelta(minutes=15), **claims: Any) -> str:
        """
        Sign a token with the configured key (development and test tooling).

        Only meaningful for symmetric algorithms, where the verification key
        is also the signing key.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "permissions": list(permissions or []),
            "iat": now,
            "exp": now + expires_in,
            **claims
        }
        if self.audience:
            payload.setdefault("aud", self.audience)
        return jwt.encode(payload, self.verification_key, algorithm=self.algorithm)
