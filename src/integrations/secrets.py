"""Secret lookup. Secret names come from configuration, values from the provider."""

import os
from typing import Optional, Protocol


class SecretProvider(Protocol):
    def get(self, name: str) -> Optional[str]: ...


class EnvSecretProvider:
    """Reads secrets from the process environment (``.env`` is loaded by config)."""

    def get(self, name: str) -> Optional[str]:
        value = os.getenv(name)
        return value.strip() if value and value.strip() else None


class StaticSecretProvider:
    """Fixed mapping of secrets, for tests and local wiring."""

    def __init__(self, secrets: Optional[dict[str, str]] = None):
        self._secrets = dict(secrets or {})

    def get(self, name: str) -> Optional[str]:
        return self._secrets.get(name)
