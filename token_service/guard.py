import json
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import Response, g, request

from .claims import Claims
from .validator import ValidationFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    status: int
    claims: Optional[Claims] = None
    failure: Optional[ValidationFailure] = None
    required_scope: Optional[str] = None

    @property
    def allowed(self):
        return self.status == 200


def extract_bearer_token(authorization):
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


class ResourceGuard:
    """
    Authenticates bearer tokens, then authorizes them against a required scope.

    An invalid or missing token is a 401, a valid token without the scope is a
    403. The reason a token was rejected is logged but never sent back.
    """

    def __init__(self, validator, realm):
        self.validator = validator
        self.realm = realm

    def check(self, authorization, required_scope=None):
        token = extract_bearer_token(authorization)
        if token is None:
            logger.info("Rejected request without a bearer token")
            return AccessDecision(401, required_scope=required_scope)

        result = self.validator.validate(token)
        if isinstance(result, ValidationFailure):
            logger.info(f"Rejected bearer token: {result.value}")
            return AccessDecision(401, failure=result, required_scope=required_scope)

        if required_scope and not result.has_scope(required_scope):
            logger.info(
                f"Client {result.client_id} lacks scope {required_scope!r} (has {result.scope!r})"
            )
            return AccessDecision(403, claims=result, required_scope=required_scope)

        logger.debug(f"Token validated for client: {result.client_id}")
        return AccessDecision(200, claims=result, required_scope=required_scope)

    def challenge(self, decision):
        """Build the 401/403 response for a refused ``decision``."""
        if decision.status == 403:
            error = "insufficient_scope"
            header = (
                f'Bearer realm="{self.realm}", error="{error}", '
                f'scope="{decision.required_scope}"'
            )
            body = {"error": error, "scope": decision.required_scope}
        elif decision.failure is None:
            header = f'Bearer realm="{self.realm}"'
            body = {"error": "unauthorized"}
        else:
            header = f'Bearer realm="{self.realm}", error="invalid_token"'
            body = {"error": "invalid_token"}
        return Response(
            json.dumps(body),
            decision.status,
            {"WWW-Authenticate": header},
            mimetype="application/json",
        )

    def require_scope(self, scope=None):
        """Flask view decorator. The validated claims are available as ``g.claims``."""

        def decorator(f):
            @wraps(f)
            def decorated_function(*args, **kwargs):
                decision = self.check(request.headers.get("Authorization"), scope)
                if not decision.allowed:
                    return self.challenge(decision)
                g.claims = decision.claims
                return f(*args, **kwargs)

            return decorated_function

        return decorator
