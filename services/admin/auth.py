"""Shared-secret login for the operator console."""

import logging
import secrets
from typing import Callable, Dict, Optional

from services.admin.console import AdminConsole

LOGGER = logging.getLogger(__name__)


class AdminAuth:
    """Issue in-memory tokens for the single console password.

    There is one operator, so there is at most one console and one polling
    loop. Logging in again moves that console to the new token and revokes
    the previous one. Tokens are not persisted; a restart logs everyone out.
    """

    def __init__(self, password: str, console_factory: Callable[[], AdminConsole]) -> None:
        self.password = password
        self.console_factory = console_factory
        self._consoles: Dict[str, AdminConsole] = {}

    @property
    def enabled(self) -> bool:
        return bool(self.password)

    async def login(self, password: str) -> Optional[str]:
        """Return a new token, or None when the password does not match."""
        if not self.enabled or password != self.password:
            LOGGER.warning("Rejected console login")
            return None
        console = None
        for old_token in list(self._consoles):
            previous = self._consoles.pop(old_token)
            if console is None:
                console = previous
            else:
                previous.close()
        if console is None:
            console = self.console_factory()
        token = secrets.token_urlsafe(24)
        self._consoles[token] = console
        console.start_polling()
        LOGGER.info("Console login accepted")
        return token

    def logout(self, token: str) -> bool:
        console = self._consoles.pop(token, None)
        if console is None:
            return False
        console.close()
        return True

    def console(self, token: Optional[str]) -> Optional[AdminConsole]:
        if not token:
            return None
        return self._consoles.get(token)

    def close_all(self) -> None:
        for token in list(self._consoles):
            self.logout(token)
