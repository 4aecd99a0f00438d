"""
Signing keys and the JWS sign/verify boundary.

Two algorithm families are supported: HS256 with a shared secret of at least
32 bytes, and RS256 with an RSA key pair of at least 2048 bits. Only the
issuer holds the RSA private key; verifiers get the public half.
"""

import dataclasses
import json
from typing import Any

import jwt
from jwt.algorithms import RSAAlgorithm
from jwt.utils import base64url_decode, base64url_encode
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .settings import ConfigurationError


SYMMETRIC_ALGORITHM = "HS256"
ASYMMETRIC_ALGORITHM = "RS256"
MIN_SECRET_BYTES = 32
MIN_RSA_KEY_BITS = 2048

_jws = jwt.PyJWS()


def _as_bytes(value):
    return value.encode("utf-8") if isinstance(value, str) else value


@dataclasses.dataclass(frozen=True)
class SigningKey:
    algorithm: str
    private: Any
    public: Any

    @property
    def is_symmetric(self):
        return self.algorithm == SYMMETRIC_ALGORITHM

    @property
    def can_sign(self):
        return self.private is not None

    @classmethod
    def symmetric(cls, secret):
        secret = _as_bytes(secret)
        if not secret or len(secret) < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"HS256 secret must be at least {MIN_SECRET_BYTES} bytes long"
            )
        return cls(SYMMETRIC_ALGORITHM, secret, secret)

    @classmethod
    def from_rsa_pem(cls, private_pem=None, public_pem=None):
        """Load an RS256 key from PEM text. With only ``public_pem`` the key can verify but not sign."""
        if private_pem is None and public_pem is None:
            raise ConfigurationError("An RSA private or public key is required")
        private_key = None
        try:
            if private_pem is not None:
                private_key = serialization.load_pem_private_key(
                    _as_bytes(private_pem), password=None
                )
                public_key = private_key.public_key()
            else:
                public_key = serialization.load_pem_public_key(_as_bytes(public_pem))
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(f"Unable to load RSA key: {e}") from e
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise ConfigurationError("Key is not an RSA key")
        return cls._rsa(private_key, public_key)

    @classmethod
    def generate_rsa(cls, key_size=MIN_RSA_KEY_BITS):
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        return cls._rsa(private_key, private_key.public_key())

    @classmethod
    def _rsa(cls, private_key, public_key):
        if public_key.key_size < MIN_RSA_KEY_BITS:
            raise ConfigurationError(
                f"RSA keys must be at least {MIN_RSA_KEY_BITS} bits, got {public_key.key_size}"
            )
        return cls(ASYMMETRIC_ALGORITHM, private_key, public_key)

    def verifying_only(self):
        """Drop the private half. Symmetric keys sign and verify with the same secret."""
        if self.is_symmetric:
            return self
        return dataclasses.replace(self, private=None)

    def private_pem(self):
        if self.is_symmetric or self.private is None:
            raise ConfigurationError("No RSA private key to export")
        return self.private.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")

    def public_pem(self):
        if self.is_symmetric:
            raise ConfigurationError("Symmetric keys have no public half")
        return self.public.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")

    def public_jwk(self):
        """Public key as a JWK dict, or None for symmetric keys (never published)."""
        if self.is_symmetric:
            return None
        jwk = json.loads(RSAAlgorithm.to_jwk(self.public))
        jwk.update({"use": "sig", "alg": self.algorithm})
        return jwk


class TokenSigner:
    """Produces and checks compact JWS tokens for one key."""

    def __init__(self, key):
        self.key = key

    @property
    def algorithm(self):
        return self.key.algorithm

    def sign(self, payload):
        if not self.key.can_sign:
            raise ConfigurationError("This key can only verify tokens")
        # The algorithm ends up in the protected header ("alg").
        return jwt.encode(payload, self.key.private, algorithm=self.key.algorithm)

    def verify(self, token, allowed_algorithms=None):
        """
        Check the signature of ``token``.

        Returns False instead of raising for a wrong key, tampered segments,
        malformed input, or a header algorithm that is outside the allow-list
        or not the key's own algorithm.
        """
        if allowed_algorithms is None:
            allowed_algorithms = (self.key.algorithm,)
        algorithms = [alg for alg in allowed_algorithms if alg == self.key.algorithm]
        if not algorithms:
            return False
        try:
            signature = token.rpartition(".")[2]
            # Reject non-canonical encodings that decode to the same bytes.
            if base64url_encode(base64url_decode(signature)).decode("ascii") != signature:
                return False
            _jws.decode_complete(token, self.key.public, algorithms=algorithms)
        except (jwt.PyJWTError, AttributeError, TypeError, ValueError):
            return False
        return True


def _read_pem(path):
    try:
        with open(path, "r") as f:
            return f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read key file {path}: {e}") from e


def load_signing_key(settings):
    """Key used by the authorization server to sign tokens."""
    if settings.algorithm == SYMMETRIC_ALGORITHM:
        if not settings.signing_secret:
            raise ConfigurationError("SIGNING_SECRET is required for HS256")
        return SigningKey.symmetric(settings.signing_secret)
    return SigningKey.from_rsa_pem(private_pem=_read_pem(settings.private_key_path))


def load_verification_key(settings):
    """Key used by resource servers, which only ever see the RSA public key."""
    if settings.algorithm == SYMMETRIC_ALGORITHM:
        return load_signing_key(settings)
    return SigningKey.from_rsa_pem(public_pem=_read_pem(settings.public_key_path))
