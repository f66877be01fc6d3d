from typing import Any, Dict, List, Tuple
from pydantic import TypeAdapter

from pulse.domain.models import Event, GitHubUser, Notification, PullRequest, SearchResults

_EVENTS = TypeAdapter(Tuple[Event, ...])
_NOTIFICATIONS = TypeAdapter(Tuple[Notification, ...])


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into domain models.
    A payload that does not fit the model raises pydantic's ValidationError (a ValueError);
    there are no partial results.
    """

    @staticmethod
    def to_events(raw: List[Dict[str, Any]]) -> Tuple[Event, ...]:
        """
        Transforms the response of the user events endpoint.

        Args:
            raw (List[Dict[str, Any]]): The decoded JSON array.

        Returns:
            Tuple[Event, ...]: Events in the order GitHub returned them.
        """
        return _EVENTS.validate_python(raw)

    @staticmethod
    def to_notifications(raw: List[Dict[str, Any]]) -> Tuple[Notification, ...]:
        return _NOTIFICATIONS.validate_python(raw)

    @staticmethod
    def to_pull_requests(raw: Dict[str, Any]) -> Tuple[PullRequest, ...]:
        """Unwraps the items of an issue search response."""
        return GitHubTranslator.to_search_results(raw).items

    @staticmethod
    def to_search_results(raw: Dict[str, Any]) -> SearchResults:
        return SearchResults.model_validate(raw)

    @staticmethod
    def to_login(raw: Dict[str, Any]) -> str:
        return GitHubUser.model_validate(raw).login
