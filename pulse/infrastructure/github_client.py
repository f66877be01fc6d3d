import aiohttp
import logging
from typing import Any, Dict, Optional, Tuple
from yarl import URL

from pulse.domain.exceptions import ApiError, AuthFailed, BadURL, NoUsername
from pulse.domain.models import Credentials, Event, Notification, PullRequest
from pulse.infrastructure.acl import GitHubTranslator
from pulse.infrastructure.auth import Authenticator, CommandTokenProvider

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=15)
EVENTS_PAGE_SIZE = 10
NOTIFICATIONS_PAGE_SIZE = 20
OPEN_PRS_PAGE_SIZE = 10
# Characters of an error body kept in the log.
ERROR_BODY_PREVIEW = 200


class GitHubRestClient:
    """
    Client for the read-only GitHub REST endpoints behind the activity, PR and
    notification feeds. Every fetch authenticates first; the session is supplied
    by the caller so one refresh cycle shares a connection pool.
    """

    def __init__(self, token_provider=None, base_url: str = API_BASE_URL):
        self.base_url = base_url.rstrip("/")
        self.authenticator = Authenticator(
            token_provider or CommandTokenProvider(),
            self.fetch_login,
        )

    # URL construction

    def user_url(self) -> str:
        return f"{self.base_url}/user"

    def events_url(self, user: str) -> str:
        return f"{self.base_url}/users/{user}/events?per_page={EVENTS_PAGE_SIZE}"

    def notifications_url(self) -> str:
        return f"{self.base_url}/notifications?per_page={NOTIFICATIONS_PAGE_SIZE}"

    def open_prs_url(self, user: str) -> str:
        query = f"author:{user}+type:pr+state:open"
        return f"{self.base_url}/search/issues?q={query}&per_page={OPEN_PRS_PAGE_SIZE}"

    @staticmethod
    def build_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "pulse",
            "X-GitHub-Api-Version": API_VERSION,
        }

    # Resources

    async def fetch_login(self, session: aiohttp.ClientSession, token: str) -> str:
        """Looks up the login that owns the given token."""
        data = await self._get(session, self.user_url(), token)
        return GitHubTranslator.to_login(data)

    async def fetch_events(self, session: aiohttp.ClientSession) -> Tuple[Event, ...]:
        """Fetches the most recent events performed by the authenticated user."""
        credentials = await self._require_username(session)
        data = await self._get(session, self.events_url(credentials.username), credentials.token)
        return GitHubTranslator.to_events(data)

    async def fetch_notifications(self, session: aiohttp.ClientSession) -> Tuple[Notification, ...]:
        credentials = await self.authenticator.authenticate(session)
        data = await self._get(session, self.notifications_url(), credentials.token)
        return GitHubTranslator.to_notifications(data)

    async def fetch_open_prs(self, session: aiohttp.ClientSession) -> Tuple[PullRequest, ...]:
        """Fetches open pull requests authored by the authenticated user via issue search."""
        credentials = await self._require_username(session)
        data = await self._get(session, self.open_prs_url(credentials.username), credentials.token)
        return GitHubTranslator.to_pull_requests(data)

    async def unread_count(self, session: aiohttp.ClientSession) -> int:
        notifications = await self.fetch_notifications(session)
        return sum(1 for notification in notifications if notification.unread)

    async def _require_username(self, session: aiohttp.ClientSession) -> Credentials:
        credentials = await self.authenticator.authenticate(session)
        if not credentials.username:
            raise NoUsername()
        return credentials

    async def _get(self, session: aiohttp.ClientSession, url: str, token: Optional[str]) -> Any:
        """
        Issues one authenticated GET and decodes the JSON body.

        Raises:
            AuthFailed: No token is available.
            BadURL: The URL is not an absolute http(s) URL.
            ApiError: GitHub answered with a non-2xx status.
        """
        if not token:
            raise AuthFailed()

        try:
            # The templates are already encoded; keep "+" and ":" in the search query as is.
            request_url = URL(url, encoded=True)
        except (TypeError, ValueError) as e:
            raise BadURL(url) from e
        if request_url.scheme not in ("http", "https") or not request_url.host:
            raise BadURL(url)

        async with session.get(request_url, headers=self.build_headers(token), timeout=REQUEST_TIMEOUT) as response:
            if not 200 <= response.status < 300:
                body = await response.text()
                logger.warning(
                    f"GET {request_url.path} failed with HTTP {response.status}: "
                    f"{body[:ERROR_BODY_PREVIEW]}"
                )
                raise ApiError(response.status, body=body)

            return await response.json()
