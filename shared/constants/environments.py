from enum import Enum


class Environment(str, Enum):
    """Deployment environments recognised by ``app_environment``."""

    PRODUCTION = "production"
    STAGING = "staging"
    TESTING = "testing"
    DEVELOPMENT = "development"

    @classmethod
    def is_ephemeral(cls, env: str) -> bool:
        """Environments where in-memory storage is an acceptable backend."""
        return env.lower() in (cls.DEVELOPMENT.value, cls.TESTING.value)
