"""
Shared fixtures for the token service tests.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from token_service.clients import ClientRegistry
from token_service.issuer import TokenIssuer, TokenRequest
from token_service.settings import Settings
from token_service.signing import SigningKey, TokenSigner
from token_service.validator import TokenValidator


NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def hmac_key(settings):
    return SigningKey.symmetric(settings.signing_secret)


@pytest.fixture(scope="session")
def rsa_key():
    return SigningKey.generate_rsa()


@pytest.fixture
def registry(settings):
    return ClientRegistry(settings.clients)


@pytest.fixture
def issuer(settings, registry, hmac_key, clock):
    return TokenIssuer.from_settings(settings, registry, TokenSigner(hmac_key), clock=clock)


@pytest.fixture
def validator(settings, hmac_key, clock):
    return TokenValidator.from_settings(settings, hmac_key, clock=clock)


@pytest.fixture
def make_request():
    """Factory for token requests, valid by default."""

    def _make(client_id="service-client-1", client_secret="secret123", scope=None,
              grant_type="client_credentials"):
        return TokenRequest(
            grant_type=grant_type,
            client_id=client_id,
            client_secret=client_secret,
            scope=scope,
        )

    return _make


@pytest.fixture
def claims_payload(settings):
    """Factory for a raw payload as the issuer would produce it at NOW."""

    def _make(**overrides):
        issued_at = int(NOW.timestamp())
        payload = {
            "iss": settings.issuer,
            "sub": "service-client-1",
            "aud": settings.audience,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + 3600,
            "jti": "0b6f3c1e-5d0f-4a53-9a0a-1f2d3c4b5a69",
            "client_id": "service-client-1",
            "scope": "read:data",
        }
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not None}

    return _make


@pytest.fixture
def sign_payload(hmac_key):
    """Sign an arbitrary payload with the test HMAC secret."""

    def _sign(payload, key=None, algorithm=None):
        key = key or hmac_key
        return jwt.encode(payload, key.private, algorithm=algorithm or key.algorithm)

    return _sign
