from .claims import to_timestamp
from .validator import ValidationFailure


INACTIVE = {"active": False}


class Introspector:
    """RFC 7662 style introspection on top of the token validator."""

    def __init__(self, validator):
        self.validator = validator

    def introspect(self, token):
        # Every failure collapses to the same answer so callers cannot tell why.
        if not isinstance(token, str) or not token:
            return dict(INACTIVE)
        result = self.validator.validate(token)
        if isinstance(result, ValidationFailure):
            return dict(INACTIVE)
        return {
            "active": True,
            "client_id": result.client_id,
            "scope": result.scope,
            "exp": to_timestamp(result.expires_at),
        }
