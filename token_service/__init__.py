"""OAuth2 client credentials token service: issuance, validation and introspection."""

from .claims import Claims
from .clients import ClientRegistry
from .guard import AccessDecision, ResourceGuard, extract_bearer_token
from .introspection import Introspector
from .issuer import IssuedToken, TokenIssuer, TokenRequest, TokenRequestError, negotiate_scope
from .settings import ConfigurationError, Settings
from .signing import SigningKey, TokenSigner
from .validator import TokenValidator, ValidationFailure, validate_token

__all__ = [
    "AccessDecision",
    "Claims",
    "ClientRegistry",
    "ConfigurationError",
    "Introspector",
    "IssuedToken",
    "ResourceGuard",
    "Settings",
    "SigningKey",
    "TokenIssuer",
    "TokenRequest",
    "TokenRequestError",
    "TokenSigner",
    "TokenValidator",
    "ValidationFailure",
    "extract_bearer_token",
    "negotiate_scope",
    "validate_token",
]
