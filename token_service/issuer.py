"""
Client-credentials token issuance.

The issuer authenticates a machine client against the registry, negotiates
the granted scope against the fixed allowed set and signs the resulting
claims.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import unquote_plus

from .claims import Claims, utcnow
from .settings import ConfigurationError


logger = logging.getLogger(__name__)

CLIENT_CREDENTIALS = "client_credentials"
TOKEN_TYPE = "Bearer"

UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
INVALID_REQUEST = "invalid_request"
INVALID_CLIENT = "invalid_client"


class TokenRequestError(Exception):
    """A token request that must be refused. ``error`` is the OAuth2 error code."""

    def __init__(self, error, status_code=400):
        super().__init__(error)
        self.error = error
        self.status_code = status_code

    def to_dict(self):
        return {"error": self.error}


@dataclass(frozen=True)
class TokenRequest:
    grant_type: Optional[str]
    client_id: Optional[str]
    client_secret: Optional[str]
    scope: Optional[str] = None

    @classmethod
    def from_form(cls, form, basic_auth=None):
        """
        Read the request fields from a form (or JSON) mapping.

        Credentials from an HTTP Basic header take precedence over the body,
        as allowed for confidential clients by RFC 6749 section 2.3.1. They
        arrive form-urlencoded and are decoded here.
        """
        client_id = form.get("client_id")
        client_secret = form.get("client_secret")
        if basic_auth is not None and basic_auth.get("username"):
            client_id = unquote_plus(basic_auth["username"])
            client_secret = basic_auth.get("password")
            if client_secret is not None:
                client_secret = unquote_plus(client_secret)
        return cls(
            grant_type=form.get("grant_type"),
            client_id=client_id,
            client_secret=client_secret,
            scope=form.get("scope"),
        )


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    claims: Claims
    expires_in: int
    token_type: str = TOKEN_TYPE

    @property
    def scope(self):
        return self.claims.scope

    def to_response(self):
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
        }


def negotiate_scope(requested, allowed_scopes, default_scope):
    """
    Intersect the requested scopes with the allowed set.

    An empty request falls back to ``default_scope``. The result follows the
    order of ``allowed_scopes`` and may be empty when nothing overlaps.
    """
    wanted = set((requested or "").split())
    if not wanted:
        wanted = set((default_scope or "").split())
    return " ".join(scope for scope in allowed_scopes if scope in wanted)


class TokenIssuer:
    def __init__(self, registry, signer, issuer, audience, allowed_scopes,
                 default_scope, token_ttl, clock=utcnow):
        self.registry = registry
        self.signer = signer
        self.issuer = issuer
        self.audience = audience
        self.allowed_scopes = tuple(allowed_scopes)
        self.default_scope = default_scope
        self.token_ttl = int(token_ttl)
        if self.token_ttl <= 0:
            raise ConfigurationError("TOKEN_TTL must be a positive number of seconds")
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, registry, signer, clock=utcnow):
        return cls(
            registry,
            signer,
            issuer=settings.issuer,
            audience=settings.audience,
            allowed_scopes=settings.allowed_scopes,
            default_scope=settings.default_scope,
            token_ttl=settings.token_ttl,
            clock=clock,
        )

    def authenticate(self, request):
        if request.grant_type != CLIENT_CREDENTIALS:
            raise TokenRequestError(UNSUPPORTED_GRANT_TYPE)
        # JSON bodies can carry any type; only strings are acceptable.
        for value in (request.client_id, request.client_secret, request.scope):
            if value is not None and not isinstance(value, str):
                raise TokenRequestError(INVALID_REQUEST)
        if not request.client_id or not request.client_secret:
            raise TokenRequestError(INVALID_REQUEST)
        if not self.registry.authenticate(request.client_id, request.client_secret):
            # Unknown id and wrong secret look the same to the caller.
            logger.warning(f"Rejected client credentials for client_id={request.client_id!r}")
            raise TokenRequestError(INVALID_CLIENT, status_code=401)

    def issue(self, request):
        """Authenticate ``request`` and return a signed ``IssuedToken``."""
        self.authenticate(request)

        issued_at = self.clock().replace(microsecond=0)
        claims = Claims(
            client_id=request.client_id,
            scope=negotiate_scope(request.scope, self.allowed_scopes, self.default_scope),
            jti=str(uuid.uuid4()),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self.token_ttl),
            issuer=self.issuer,
            audience=self.audience,
            not_before=issued_at,
        )
        access_token = self.signer.sign(claims.to_payload())

        logger.info(
            f"Issued token jti={claims.jti} client_id={claims.client_id} scope={claims.scope!r}"
        )
        return IssuedToken(access_token=access_token, claims=claims, expires_in=self.token_ttl)
