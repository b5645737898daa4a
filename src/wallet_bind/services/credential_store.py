"""Persistent storage for the backend token grant."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from wallet_bind.models.auth import StoredCredentials

logger = logging.getLogger(__name__)


class CredentialStore:
    """Stores the current grant at ``{state_dir}/credentials.json``.

    A new grant replaces the previous one as a whole.
    """

    def __init__(self, state_dir: str = "./data") -> None:
        self._dir = Path(state_dir)
        self._file = self._dir / "credentials.json"

    def load(self) -> StoredCredentials | None:
        if not self._file.exists():
            return None
        try:
            with open(self._file) as f:
                return StoredCredentials(**json.load(f))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable credentials at {self._file}: {e}")
            return None

    def save(self, credentials: StoredCredentials) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        with open(self._file, "w") as f:
            json.dump(credentials.model_dump(mode="json"), f, indent=2)
        # Bearer tokens: owner read/write only
        self._file.chmod(0o600)

    def clear(self) -> bool:
        if self._file.exists():
            self._file.unlink()
            return True
        return False
