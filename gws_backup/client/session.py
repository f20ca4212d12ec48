"""Bearer token holder shared by the API client and the console views."""

from __future__ import annotations

import logging
import os
from typing import Callable

logger = logging.getLogger(__name__)


class ApiSession:
    """Owns the current token. Nothing else stores or clears it."""

    def __init__(self, token_file: str = None):
        self.token_file = token_file
        self._token = None
        self._expired_callbacks: list[Callable[[], None]] = []
        if token_file and os.path.isfile(token_file):
            with open(token_file) as fh:
                self._token = fh.read().strip() or None

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def start(self, token: str):
        self._token = token
        if self.token_file:
            os.makedirs(os.path.dirname(self.token_file) or ".", exist_ok=True)
            with open(self.token_file, "w") as fh:
                fh.write(token)
            os.chmod(self.token_file, 0o600)

    def clear(self):
        self._token = None
        if self.token_file and os.path.exists(self.token_file):
            os.remove(self.token_file)

    def on_expired(self, callback: Callable[[], None]):
        self._expired_callbacks.append(callback)

    def expire(self):
        """Drop the token and tell listeners the user must log in again."""
        self.clear()
        logger.info("Session expired, login required")
        for callback in self._expired_callbacks:
            callback()
