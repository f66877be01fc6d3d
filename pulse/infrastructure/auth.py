import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

import aiohttp

from pulse.domain.exceptions import AuthFailed, NoUsername
from pulse.domain.models import Credentials

logger = logging.getLogger(__name__)

GH_TOKEN_COMMAND = ("/usr/bin/env", "gh", "auth", "token")

# Resolves the login that belongs to a freshly obtained token.
LoginResolver = Callable[[aiohttp.ClientSession, str], Awaitable[str]]


class CommandTokenProvider:
    """
    Obtains a bearer token by running an external command (the gh CLI by default).
    The command receives no input; exit status 0 and UTF-8 output mean success.
    """

    def __init__(self, command: Sequence[str] = GH_TOKEN_COMMAND):
        self.command = tuple(command)

    async def get_token(self) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            output, _ = await process.communicate()
        except OSError as e:
            logger.error(f"Could not run token command {self.command[0]}: {e}")
            raise AuthFailed() from e

        if process.returncode != 0:
            logger.error(f"Token command exited with status {process.returncode}.")
            raise AuthFailed()

        try:
            text = output.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthFailed() from e

        return text.strip()


class StaticTokenProvider:
    """Hands out a token configured up front, e.g. from GITHUB_TOKEN."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> str:
        return self._token.strip()


class Authenticator:
    """
    Owns the cached credentials for the process lifetime.

    Only one authentication attempt runs at a time; callers arriving while one is in
    flight wait for it and then reuse its result. Token and username are cached
    together, so a failed login lookup leaves nothing behind and the next call starts
    over from the token provider.
    """

    def __init__(self, token_provider, resolve_login: LoginResolver):
        self.token_provider = token_provider
        self.resolve_login = resolve_login
        self._credentials: Optional[Credentials] = None
        self._lock = asyncio.Lock()

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    async def authenticate(self, session: aiohttp.ClientSession) -> Credentials:
        """
        Returns the cached credentials, obtaining them first if needed.

        Raises:
            AuthFailed: The token provider failed.
            NoUsername: The login lookup returned an empty login; nothing is cached.
            PulseException: Propagated from the login lookup.
        """
        if self._credentials is not None:
            return self._credentials

        async with self._lock:
            # Another caller may have finished while we waited for the lock.
            if self._credentials is not None:
                return self._credentials

            token = await self.token_provider.get_token()
            username = await self.resolve_login(session, token)
            if not username:
                raise NoUsername()
            self._credentials = Credentials(token=token, username=username)
            logger.info(f"Authenticated as {username}.")
            return self._credentials

    def reset(self) -> None:
        self._credentials = None
