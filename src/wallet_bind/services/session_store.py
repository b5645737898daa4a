"""Persistent storage for the in-flight binding session."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from wallet_bind.models.session import BindingSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Keeps the binding session at ``{state_dir}/binding_session.json``.

    The wallet round trip can outlive the process, so the session is written
    after every transition and read back on the next start.
    """

    def __init__(self, state_dir: str = "./data") -> None:
        self._dir = Path(state_dir)
        self._file = self._dir / "binding_session.json"

    @property
    def path(self) -> Path:
        return self._file

    def load(self) -> BindingSession:
        """Load the stored session, or a fresh idle one."""
        if not self._file.exists():
            return BindingSession()
        try:
            with open(self._file) as f:
                data = json.load(f)
            return BindingSession(**data)
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable binding session at {self._file}: {e}")
            return BindingSession()

    def save(self, session: BindingSession) -> None:
        """Write the session to disk."""
        self._dir.mkdir(parents=True, exist_ok=True)
        with open(self._file, "w") as f:
            json.dump(session.model_dump(mode="json"), f, indent=2)

    def clear(self) -> bool:
        """Remove the stored session. Returns True if a file was removed."""
        if self._file.exists():
            self._file.unlink()
            return True
        return False
