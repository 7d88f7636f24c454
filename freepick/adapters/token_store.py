"""
Storage for the Google Calendar access token used by the CLI.

Obtaining the token (the OAuth consent flow) happens outside FreePick; this
module only keeps the token between runs, preferring the system keyring.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "freepick"
TOKEN_ENV_VAR = "FREEPICK_ACCESS_TOKEN"


class TokenStore:
    """
    Keeps an access token in the keyring, or in a 0600 file when no
    keyring backend is usable.

    Lookup order: ``FREEPICK_ACCESS_TOKEN`` environment variable, keyring,
    plaintext file.
    """

    def __init__(self, account: str = "default", cache_file: Path | None = None):
        self.account = account
        self.cache_file = cache_file or Path.home() / ".freepick_token"
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when the token falls back to plaintext storage."""
        return self._insecure_storage_warning

    def get_access_token(self) -> str:
        """
        Return the stored access token.

        Raises:
            AuthenticationError: If no token is available
        """
        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            return token.strip()

        token = self._load_from_keyring() or self._load_from_file()
        if token:
            return token

        raise AuthenticationError(
            f"No Google access token found. Set {TOKEN_ENV_VAR} or run 'freepick set-token'."
        )

    def save_token(self, token: str) -> None:
        """Persist a token to the keyring, falling back to the file cache."""
        token = token.strip()
        if not token:
            raise AuthenticationError("Refusing to store an empty access token.")

        if self._keyring_supported and self._save_to_keyring(token):
            return

        self._save_to_file(token)

    def clear(self) -> None:
        """Remove the token from every backend."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.account)
        except PasswordDeleteError:
            pass  # nothing stored
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove token from keyring: %s", exc)

    def _load_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self.account)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read().strip() or None
            except OSError as exc:
                logger.warning("Could not load token file %s: %s", self.cache_file, exc)
        return None

    def _save_to_keyring(self, token: str) -> bool:
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self.account, token)
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_to_file(self, token: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            # Mode applies on creation only; chmod tightens a pre-existing file
            fd = os.open(self.cache_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as file_handle:
                os.chmod(self.cache_file, 0o600)
                file_handle.write(token)
        except OSError as exc:
            raise AuthenticationError(f"Could not save token to {self.cache_file}: {exc}") from exc

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext file.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext file at {self.cache_file}."
            )
