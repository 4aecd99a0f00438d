import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

ENV_PREFIX = "TOKEN_SERVICE"

SUPPORTED_ALGORITHMS = ("HS256", "RS256")

# Development defaults. Real deployments override them through the environment.
DEMO_SIGNING_SECRET = "ThisIsA32CharacterLongSecretKey!"
DEMO_CLIENTS = {
    "service-client-1": "secret123",
    "batch-processor": "batchSecret456",
    "reporting-service": "reportSecret789",
}


class ConfigurationError(ValueError):
    """Raised at startup when the service settings cannot be used."""


def _as_words(value):
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class Settings:
    issuer: str = "https://localhost:5001"
    audience: str = "api-server"
    token_ttl: int = 3600
    clock_skew: int = 60
    algorithm: str = "HS256"
    allowed_algorithms: Tuple[str, ...] = ()
    allowed_scopes: Tuple[str, ...] = ("read:data", "write:data")
    default_scope: str = "read:data"
    clients: Mapping[str, str] = field(default_factory=lambda: dict(DEMO_CLIENTS))
    signing_secret: Optional[str] = DEMO_SIGNING_SECRET
    private_key_path: str = "jwtRS256.key"
    public_key_path: str = "jwtRS256.key.pub"

    def __post_init__(self):
        if not self.allowed_algorithms:
            object.__setattr__(self, "allowed_algorithms", (self.algorithm,))
        self.check()

    def check(self):
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(f"Unsupported signing algorithm: {self.algorithm}")
        unknown = set(self.allowed_algorithms) - set(SUPPORTED_ALGORITHMS)
        if unknown:
            raise ConfigurationError(
                f"Unsupported algorithms in allow-list: {', '.join(sorted(unknown))}"
            )
        if self.token_ttl <= 0:
            raise ConfigurationError("TOKEN_TTL must be a positive number of seconds")
        if self.clock_skew < 0:
            raise ConfigurationError("CLOCK_SKEW must not be negative")
        if not self.issuer or not self.audience:
            raise ConfigurationError("ISSUER and AUDIENCE are required")
        if self.default_scope and self.default_scope not in self.allowed_scopes:
            raise ConfigurationError(
                f"DEFAULT_SCOPE {self.default_scope!r} is not in ALLOWED_SCOPES"
            )

    @property
    def uses_demo_secret(self):
        return self.algorithm == "HS256" and self.signing_secret == DEMO_SIGNING_SECRET

    @classmethod
    def from_mapping(cls, config):
        """Build settings from a mapping of upper-case keys (e.g. ``app.config``)."""
        kwargs = {}
        for key in ("ISSUER", "AUDIENCE", "ALGORITHM", "DEFAULT_SCOPE",
                    "SIGNING_SECRET", "PRIVATE_KEY_PATH", "PUBLIC_KEY_PATH"):
            if config.get(key) is not None:
                kwargs[key.lower()] = str(config[key])
        for key in ("TOKEN_TTL", "CLOCK_SKEW"):
            if config.get(key) is not None:
                try:
                    kwargs[key.lower()] = int(config[key])
                except (TypeError, ValueError):
                    raise ConfigurationError(f"{key} must be an integer") from None
        for key in ("ALLOWED_ALGORITHMS", "ALLOWED_SCOPES"):
            if config.get(key) is not None:
                kwargs[key.lower()] = _as_words(config[key])
        clients = config.get("CLIENTS")
        if clients is not None:
            if not isinstance(clients, Mapping):
                raise ConfigurationError("CLIENTS must be a JSON object of client_id -> secret")
            kwargs["clients"] = {str(k): str(v) for k, v in clients.items()}
        return cls(**kwargs)


def load_settings(app):
    """Read ``TOKEN_SERVICE_*`` environment variables into the Flask config."""
    app.config.from_prefixed_env(ENV_PREFIX)
    settings = Settings.from_mapping(app.config)
    if settings.uses_demo_secret:
        logger.warning("Using the built-in demo signing secret; set TOKEN_SERVICE_SIGNING_SECRET")
    return settings
