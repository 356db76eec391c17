"""Client configuration and environment resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from digiventures.models.errors import ConfigurationError

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_MAX_RETRIES = 3


class Environment(str, Enum):
    QA = "qa"
    STAGING = "staging"
    PRODUCTION = "production"


_BASE_URLS: dict[Environment, str] = {
    Environment.QA: "https://api.qa.digiventures.la",
    Environment.STAGING: "https://api.staging.digiventures.la",
    Environment.PRODUCTION: "https://api.production.digiventures.la",
}


def resolve_base_url(environment: Environment | str) -> str:
    """Map an environment name to its API origin.

    Raises:
        ConfigurationError: If the environment is not recognized
    """
    try:
        return _BASE_URLS[Environment(environment)]
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment: {environment}") from e


@dataclass(frozen=True)
class Credentials:
    """Immutable client credentials and transport settings.

    The environment is validated on construction so a bad value fails before
    any request is attempted.
    """

    application_id: str
    secret: str
    environment: Environment | str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_url: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        base_url = resolve_base_url(self.environment)
        # Frozen dataclass: assign derived fields through object.__setattr__
        object.__setattr__(self, "environment", Environment(self.environment))
        object.__setattr__(self, "base_url", base_url)

        if self.timeout_ms <= 0:
            raise ConfigurationError(
                f"timeout_ms must be positive, got {self.timeout_ms}"
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must not be negative, got {self.max_retries}"
            )

    @property
    def timeout(self) -> float:
        """Per-attempt HTTP timeout in seconds."""
        return self.timeout_ms / 1000

    def __repr__(self) -> str:
        return (
            f"Credentials(application_id={self.application_id!r}, secret='***', "
            f"environment={self.environment.value!r}, timeout_ms={self.timeout_ms}, "
            f"max_retries={self.max_retries})"
        )
