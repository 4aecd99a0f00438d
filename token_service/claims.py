from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple, Union


REGISTERED_CLAIMS = ("iss", "sub", "aud", "exp", "nbf", "iat", "jti", "client_id", "scope")


def utcnow():
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_timestamp(value):
    return int(value.timestamp())


def from_timestamp(value):
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass(frozen=True)
class Claims:
    """Facts carried by an access token. Never changed once issued."""

    client_id: str
    scope: str
    jti: str
    issued_at: datetime
    expires_at: datetime
    issuer: Optional[str]
    audience: Union[str, Tuple[str, ...], None]
    not_before: Optional[datetime] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def scopes(self):
        return tuple(self.scope.split())

    def has_scope(self, scope):
        return scope in self.scopes

    def to_payload(self):
        payload = dict(self.extra)
        payload.update(
            {
                "iss": self.issuer,
                "sub": self.client_id,
                "aud": list(self.audience) if isinstance(self.audience, tuple) else self.audience,
                "iat": to_timestamp(self.issued_at),
                "exp": to_timestamp(self.expires_at),
                "jti": self.jti,
                "client_id": self.client_id,
                "scope": self.scope,
            }
        )
        if self.not_before is not None:
            payload["nbf"] = to_timestamp(self.not_before)
        return payload

    @classmethod
    def from_payload(cls, payload):
        """
        Rebuild claims from a decoded token payload.

        The payload must already have passed the structural checks in
        ``validator.read_payload``; unknown claims are kept in ``extra``.
        """
        audience = payload.get("aud")
        if isinstance(audience, list):
            audience = tuple(audience)
        nbf = payload.get("nbf")
        return cls(
            client_id=payload["client_id"],
            scope=payload.get("scope") or "",
            jti=payload["jti"],
            issued_at=from_timestamp(payload["iat"]),
            expires_at=from_timestamp(payload["exp"]),
            issuer=payload.get("iss"),
            audience=audience,
            not_before=from_timestamp(nbf) if nbf is not None else None,
            extra={k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS},
        )
