import unittest
from unittest.mock import AsyncMock, MagicMock

from pulse.domain.exceptions import ApiError, BadURL, NoUsername
from pulse.infrastructure.auth import StaticTokenProvider
from pulse.infrastructure.github_client import GitHubRestClient, REQUEST_TIMEOUT


def _response(status: int = 200, json_data=None, text: str = "") -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


def _session(*responses) -> AsyncMock:
    session = AsyncMock()
    session.get = MagicMock(side_effect=list(responses))
    return session


def _requested_url(session, index: int) -> str:
    return str(session.get.call_args_list[index].args[0])


class TestUrlConstruction(unittest.TestCase):
    def setUp(self) -> None:
        self.client = GitHubRestClient(token_provider=StaticTokenProvider("t"))

    def test_events_url(self) -> None:
        self.assertEqual(
            self.client.events_url("octocat"),
            "https://api.github.com/users/octocat/events?per_page=10",
        )

    def test_notifications_url(self) -> None:
        self.assertEqual(
            self.client.notifications_url(),
            "https://api.github.com/notifications?per_page=20",
        )

    def test_open_prs_url(self) -> None:
        self.assertEqual(
            self.client.open_prs_url("octocat"),
            "https://api.github.com/search/issues?q=author:octocat+type:pr+state:open&per_page=10",
        )

    def test_headers(self) -> None:
        headers = GitHubRestClient.build_headers("test-token")

        self.assertEqual(headers["Authorization"], "Bearer test-token")
        self.assertEqual(headers["Accept"], "application/vnd.github+json")
        self.assertEqual(headers["X-GitHub-Api-Version"], "2022-11-28")
        self.assertIn("User-Agent", headers)


class TestFetches(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.client = GitHubRestClient(token_provider=StaticTokenProvider("test-token"))

    async def test_fetch_events_authenticates_then_fetches(self) -> None:
        session = _session(
            _response(json_data={"login": "octocat"}),
            _response(json_data=[{
                "id": "1", "type": "WatchEvent", "repo": {"name": "cool/project"},
                "created_at": "2025-01-01T00:00:00Z", "payload": {"action": "started"},
            }]),
        )

        events = await self.client.fetch_events(session)

        self.assertEqual(events[0].summary, "Starred project")
        self.assertEqual(_requested_url(session, 0), "https://api.github.com/user")
        self.assertEqual(_requested_url(session, 1), "https://api.github.com/users/octocat/events?per_page=10")
        kwargs = session.get.call_args_list[1].kwargs
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-token")
        self.assertIs(kwargs["timeout"], REQUEST_TIMEOUT)

    async def test_fetch_open_prs_unwraps_search_items(self) -> None:
        session = _session(
            _response(json_data={"login": "octocat"}),
            _response(json_data={
                "total_count": 1,
                "items": [{"id": 100, "title": "Add feature X", "html_url": "https://github.com/org/repo/pull/42",
                           "state": "open", "created_at": "2025-01-10T08:00:00Z"}],
            }),
        )

        pull_requests = await self.client.fetch_open_prs(session)

        self.assertEqual(len(pull_requests), 1)
        self.assertEqual(pull_requests[0].repo_name, "repo")
        self.assertEqual(
            _requested_url(session, 1),
            "https://api.github.com/search/issues?q=author:octocat+type:pr+state:open&per_page=10",
        )

    async def test_credentials_are_reused_across_fetches(self) -> None:
        notification = {
            "id": "1", "unread": True, "reason": "mention",
            "subject": {"title": "t", "type": "Issue"},
            "repository": {"full_name": "a/b", "html_url": "https://github.com/a/b"},
            "updated_at": "2025-01-01T00:00:00Z",
        }
        read = dict(notification, id="2", unread=False)
        session = _session(
            _response(json_data={"login": "octocat"}),
            _response(json_data=[notification, read]),
            _response(json_data=[notification, read]),
        )

        notifications = await self.client.fetch_notifications(session)
        unread = await self.client.unread_count(session)

        self.assertEqual(len(notifications), 2)
        self.assertEqual(unread, 1)
        self.assertEqual(session.get.call_count, 3)

    async def test_non_success_status_raises_api_error(self) -> None:
        session = _session(
            _response(json_data={"login": "octocat"}),
            _response(status=404, text='{"message": "Not Found"}'),
        )

        with self.assertRaises(ApiError) as ctx:
            await self.client.fetch_notifications(session)

        self.assertEqual(ctx.exception.status_code, 404)

    async def test_failed_login_lookup_raises_api_error(self) -> None:
        session = _session(_response(status=401, text="Bad credentials"))

        with self.assertRaises(ApiError):
            await self.client.fetch_events(session)
        self.assertIsNone(self.client.authenticator.credentials)

    async def test_empty_login_raises_no_username(self) -> None:
        session = _session(_response(json_data={"login": ""}))

        with self.assertRaises(NoUsername):
            await self.client.fetch_open_prs(session)
        self.assertIsNone(self.client.authenticator.credentials)

    async def test_relative_base_url_raises_bad_url(self) -> None:
        client = GitHubRestClient(token_provider=StaticTokenProvider("t"), base_url="api.github.com")

        with self.assertRaises(BadURL):
            await client.fetch_notifications(_session())
