"""Console implementation of the interactive login surface."""

import asyncio
import webbrowser
from typing import Callable

from instafeed.core.exceptions import AuthorizationCancelledError
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)


class ConsoleAuthSession:
    """
    Opens the login page in the system browser and asks for the redirect URL.

    After approving access, Instagram redirects to ``{server}/authenticated``,
    which hands off to the app's callback scheme. The user pastes that final
    URL back into the terminal. An empty answer counts as a cancel.
    """

    def __init__(
        self,
        opener: Callable[[str], bool] = webbrowser.open,
        reader: Callable[[str], str] = input,
    ):
        self.opener = opener
        self.reader = reader

    async def present(self, url: str, callback_scheme: str) -> str:
        loop = asyncio.get_running_loop()

        if not self.opener(url):
            print(f"\nOpen this URL to log in:\n{url}\n")

        prompt = f"Paste the {callback_scheme}:// URL you were redirected to (blank to cancel): "
        answer = await loop.run_in_executor(None, self.reader, prompt)
        answer = (answer or "").strip()

        if not answer:
            logger.info("Login cancelled by user")
            raise AuthorizationCancelledError("Login cancelled")
        return answer
