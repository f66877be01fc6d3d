from datetime import datetime, timezone
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

# Timestamp layouts accepted by GitHub, tried in order.
TIMESTAMP_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")

EVENT_ICONS = {
    "PushEvent": "arrow.up.circle.fill",
    "PullRequestEvent": "arrow.triangle.merge",
    "IssuesEvent": "exclamationmark.circle.fill",
    "WatchEvent": "star.fill",
    "CreateEvent": "plus.circle.fill",
    "DeleteEvent": "minus.circle.fill",
    "ForkEvent": "tuningfork",
    "IssueCommentEvent": "text.bubble.fill",
    "PullRequestReviewEvent": "eye.fill",
}
DEFAULT_EVENT_ICON = "circle.fill"

NOTIFICATION_ICONS = {
    "PullRequest": "arrow.triangle.merge",
    "Issue": "exclamationmark.circle.fill",
    "Release": "tag.fill",
    "Discussion": "bubble.left.and.bubble.right.fill",
}
DEFAULT_NOTIFICATION_ICON = "bell.fill"


def _last_segment(name: str) -> str:
    parts = [part for part in name.split("/") if part]
    return parts[-1] if parts else name


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parses an ISO-8601 timestamp with or without fractional seconds."""
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def relative_time(timestamp: str, now: Optional[datetime] = None) -> str:
    """
    Describes the age of a timestamp as "just now", "Nm ago", "Nh ago" or "Nd ago".

    Args:
        timestamp (str): ISO-8601 timestamp as returned by GitHub.
        now (Optional[datetime]): The evaluation instant, defaults to the current UTC time.

    Returns:
        str: The bucketed age, or an empty string if the timestamp cannot be parsed.
    """
    moment = parse_timestamp(timestamp)
    if moment is None:
        return ""

    now = now or datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


class _Model(BaseModel):
    # Enforces immutability: parsed once per fetch, replaced wholesale on the next one.
    model_config = ConfigDict(frozen=True)


class EventRepo(_Model):
    name: str = Field(..., description="Full repository name, owner/name")


class EventPayloadPullRequest(_Model):
    title: Optional[str] = None


class EventPayload(_Model):
    """Type-dependent extras of an event; every field may be absent."""
    action: Optional[str] = None
    ref: Optional[str] = None
    ref_type: Optional[str] = None
    size: Optional[int] = Field(None, description="Number of commits in a push")
    pull_request: Optional[EventPayloadPullRequest] = None


class Event(_Model):
    """
    One item of a user's GitHub activity feed.
    Display fields are derived on every read and never stored.
    """
    id: str = Field(..., description="Opaque event identifier")
    type: str = Field(..., description="GitHub event kind, e.g. PushEvent")
    repo: EventRepo
    created_at: str
    payload: Optional[EventPayload] = None

    @property
    def repo_name(self) -> str:
        return self.repo.name

    @property
    def icon(self) -> str:
        return EVENT_ICONS.get(self.type, DEFAULT_EVENT_ICON)

    @property
    def summary(self) -> str:
        repo = _last_segment(self.repo.name)
        payload = self.payload or EventPayload()

        if self.type == "PushEvent":
            count = payload.size if payload.size is not None else 0
            return f"Pushed {count} commit{'' if count == 1 else 's'} to {repo}"
        if self.type == "PullRequestEvent":
            action = payload.action or "updated"
            title = payload.pull_request.title if payload.pull_request else None
            if title is None:
                title = "PR"
            return f"{action.capitalize()} PR: {title}"
        if self.type == "IssuesEvent":
            action = payload.action.capitalize() if payload.action else "Updated"
            return f"{action} issue in {repo}"
        if self.type == "WatchEvent":
            return f"Starred {repo}"
        if self.type == "CreateEvent":
            return f"Created {payload.ref_type or 'repo'} in {repo}"
        if self.type == "ForkEvent":
            return f"Forked {repo}"
        if self.type == "IssueCommentEvent":
            return f"Commented in {repo}"
        if self.type == "PullRequestReviewEvent":
            return f"Reviewed PR in {repo}"
        return f"{self.type.replace('Event', '')} in {repo}"

    @property
    def relative_time(self) -> str:
        return relative_time(self.created_at)


class NotificationSubject(_Model):
    title: str
    type: str = Field(..., description="PullRequest, Issue, Release, Discussion, ...")


class NotificationRepository(_Model):
    full_name: str
    html_url: str


class Notification(_Model):
    """A GitHub inbox item."""
    id: str
    unread: bool
    reason: str = Field(..., description="Why the user was notified, e.g. mention")
    subject: NotificationSubject
    repository: NotificationRepository
    updated_at: str

    @property
    def icon(self) -> str:
        return NOTIFICATION_ICONS.get(self.subject.type, DEFAULT_NOTIFICATION_ICON)

    @property
    def short_repo(self) -> str:
        return _last_segment(self.repository.full_name)


class PullRequest(_Model):
    """An open pull request authored by the user, as found by the search API."""
    id: int
    title: str
    html_url: str
    state: str
    created_at: str

    @property
    def repo_name(self) -> str:
        # html_url looks like https://github.com/<owner>/<repo>/pull/<number>
        parts = [part for part in self.html_url.split("/") if part]
        if len(parts) >= 5:
            return parts[-3]
        return ""


class SearchResults(_Model):
    total_count: int = Field(..., ge=0)
    items: Tuple[PullRequest, ...] = ()


class GitHubUser(_Model):
    login: str


class Credentials(_Model):
    """Bearer token and login of the authenticated user. Lives for the process lifetime."""
    token: str = Field(..., repr=False)
    username: str


class PulseSnapshot(_Model):
    """
    Everything the presentation layer displays, replaced as a whole on every change.
    On a failed refresh only is_loading and last_error move; the collections keep
    their last good values.
    """
    events: Tuple[Event, ...] = ()
    pull_requests: Tuple[PullRequest, ...] = ()
    notifications: Tuple[Notification, ...] = ()
    unread_count: int = Field(0, ge=0)
    is_loading: bool = False
    last_error: Optional[str] = None
    last_updated: Optional[datetime] = None
