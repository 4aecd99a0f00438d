"""
Stateless validation of access tokens.

``validate_token`` never raises for a bad token. It returns either the
token's ``Claims`` or a ``ValidationFailure`` naming the first check that
failed, in this order: structure, algorithm allow-list, signature, issuer,
audience, lifetime.
"""

import enum
import re
from numbers import Real

import jwt

from .claims import Claims, from_timestamp, to_timestamp, utcnow
from .signing import TokenSigner


_SEGMENT = re.compile(r"^[A-Za-z0-9_-]*$")


class ValidationFailure(str, enum.Enum):
    MALFORMED = "malformed"
    INVALID_ALGORITHM = "invalid_algorithm"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_ISSUER = "invalid_issuer"
    INVALID_AUDIENCE = "invalid_audience"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"


def _is_numeric_date(value):
    if not isinstance(value, Real) or isinstance(value, bool):
        return False
    # Must also fit in a datetime; rules out NaN, infinities and huge values.
    try:
        from_timestamp(value)
    except (OverflowError, OSError, ValueError):
        return False
    return True


def read_header(token):
    """
    Decode the header of a compact token, or return None if it is not one.

    The token needs exactly three base64url segments with a non-empty header
    and payload. An empty signature segment is let through so that unsigned
    ``alg: none`` tokens are reported by the algorithm check.
    """
    if not isinstance(token, str):
        return None
    segments = token.split(".")
    if len(segments) != 3 or not segments[0] or not segments[1]:
        return None
    if not all(_SEGMENT.match(segment) for segment in segments):
        return None
    try:
        header = jwt.get_unverified_header(token)
    except (jwt.PyJWTError, TypeError, ValueError):
        return None
    if not isinstance(header.get("alg"), str):
        return None
    return header


def read_payload(token):
    """Decode the claims of an already verified token, or None if they are unusable."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except (jwt.PyJWTError, TypeError, ValueError):
        return None
    for name in ("client_id", "jti"):
        if not isinstance(payload.get(name), str) or not payload[name]:
            return None
    for name in ("iat", "exp"):
        if not _is_numeric_date(payload.get(name)):
            return None
    if "nbf" in payload and not _is_numeric_date(payload["nbf"]):
        return None
    if not isinstance(payload.get("scope", ""), str):
        return None
    return payload


def _audience_matches(audience, expected):
    if isinstance(audience, str):
        return audience == expected
    if isinstance(audience, list):
        return expected in audience
    return False


def validate_token(token, expected_issuer, expected_audience, allowed_algorithms,
                   key, clock_skew=0, now=None):
    """Return the token's ``Claims`` or the first ``ValidationFailure``."""
    header = read_header(token)
    if header is None:
        return ValidationFailure.MALFORMED

    if header["alg"] not in allowed_algorithms:
        return ValidationFailure.INVALID_ALGORITHM

    if not TokenSigner(key).verify(token, allowed_algorithms):
        return ValidationFailure.INVALID_SIGNATURE

    # Only a correctly signed token with a broken claim set gets here.
    payload = read_payload(token)
    if payload is None:
        return ValidationFailure.MALFORMED

    if payload.get("iss") != expected_issuer:
        return ValidationFailure.INVALID_ISSUER

    if not _audience_matches(payload.get("aud"), expected_audience):
        return ValidationFailure.INVALID_AUDIENCE

    current = to_timestamp(now if now is not None else utcnow())
    if current > payload["exp"] + clock_skew:
        return ValidationFailure.EXPIRED
    if "nbf" in payload and current < payload["nbf"] - clock_skew:
        return ValidationFailure.NOT_YET_VALID

    return Claims.from_payload(payload)


class TokenValidator:
    """``validate_token`` bound to one issuer, audience, allow-list and key."""

    def __init__(self, key, issuer, audience, allowed_algorithms=None, clock_skew=0, clock=utcnow):
        self.key = key
        self.issuer = issuer
        self.audience = audience
        self.allowed_algorithms = tuple(allowed_algorithms or (key.algorithm,))
        self.clock_skew = clock_skew
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, key, clock=utcnow):
        return cls(
            key,
            issuer=settings.issuer,
            audience=settings.audience,
            allowed_algorithms=settings.allowed_algorithms,
            clock_skew=settings.clock_skew,
            clock=clock,
        )

    def validate(self, token):
        return validate_token(
            token,
            expected_issuer=self.issuer,
            expected_audience=self.audience,
            allowed_algorithms=self.allowed_algorithms,
            key=self.key,
            clock_skew=self.clock_skew,
            now=self.clock(),
        )
