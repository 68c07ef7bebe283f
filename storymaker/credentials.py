"""Secure credential storage helpers for the Storymaker CLI.

Responsibilities:
- Persist provider API keys in an OS-backed secure credential store.
- Provide deterministic read/write/delete operations per provider slot.
- Avoid logging or exposing secret values in diagnostics.

Key types:
- `CredentialStore`: interface for provider credential persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import keyring
from keyring.backends import fail as fail_backend
from keyring.errors import KeyringError

from .config import API_KEY_SLOTS


_DEFAULT_SERVICE_NAME = "storymaker"


def account_name_for(provider: str) -> str:
    """Return the keyring account name for a provider key slot."""

    slot = provider.strip().lower()
    if slot not in API_KEY_SLOTS:
        supported = ", ".join(API_KEY_SLOTS)
        raise ValueError(f"Unsupported credential provider `{provider}`; supported: {supported}.")
    return f"{slot}_api_key"


class CredentialStore:
    """Interface for secure provider credential operations."""

    def is_available(self) -> bool:
        """Return whether secure credential operations are available."""

        raise NotImplementedError

    def get_api_key(self, provider: str) -> str | None:
        """Load a provider API key from secure storage, when available."""

        raise NotImplementedError

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Persist a provider API key in secure storage."""

        raise NotImplementedError

    def clear_api_key(self, provider: str) -> bool:
        """Delete a stored provider API key and return whether one existed."""

        raise NotImplementedError

    def load_all(self) -> dict[str, str]:
        """Return every stored key by provider slot, skipping missing ones."""

        stored: dict[str, str] = {}
        for slot in API_KEY_SLOTS:
            value = self.get_api_key(slot)
            if value is not None:
                stored[slot] = value
        return stored


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package.

    `keyring_module` defaults to the installed `keyring` package and can be
    replaced with any object exposing `get_password`, `set_password` and
    `delete_password`.
    """

    service_name: str = _DEFAULT_SERVICE_NAME
    keyring_module: Any = None

    def _backend(self) -> Any:
        return self.keyring_module if self.keyring_module is not None else keyring

    def is_available(self) -> bool:
        """Return `True` when a usable keyring backend is configured."""

        if self.keyring_module is not None:
            return True
        return not isinstance(keyring.get_keyring(), fail_backend.Keyring)

    def get_api_key(self, provider: str) -> str | None:
        """Get a normalized API key from keyring, returning `None` when missing."""

        account_name = account_name_for(provider)
        try:
            value = self._backend().get_password(self.service_name, account_name)
        except KeyringError:
            return None
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            return None
        return normalized

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Persist a normalized API key in keyring or raise when unavailable."""

        account_name = account_name_for(provider)
        normalized = api_key.strip()
        if not normalized:
            raise ValueError("API key must be a non-empty string.")
        try:
            self._backend().set_password(self.service_name, account_name, normalized)
        except KeyringError as exc:
            raise RuntimeError(
                "Secure credential storage is unavailable: no usable keyring backend is "
                "configured on this system."
            ) from exc

    def clear_api_key(self, provider: str) -> bool:
        """Remove a stored API key from keyring and report if one was present."""

        if self.get_api_key(provider) is None:
            return False
        try:
            self._backend().delete_password(self.service_name, account_name_for(provider))
        except KeyringError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
