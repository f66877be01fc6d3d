from typing import Optional


class PulseException(Exception):
    """Base exception for all errors raised while fetching GitHub data."""
    pass

class AuthFailed(PulseException):
    """Raised when the token provider fails or yields unreadable output."""
    def __init__(self, message: str = "Failed to authenticate with gh CLI"):
        super().__init__(message)

class NoUsername(PulseException):
    """Raised when authentication succeeded without resolving a login."""
    def __init__(self, message: str = "Could not determine GitHub username"):
        super().__init__(message)

class BadURL(PulseException):
    """Raised when an endpoint URL cannot be built."""
    def __init__(self, url: str, message: str = "Invalid URL"):
        self.url = url
        super().__init__(f"{message}: {url}")

class ApiError(PulseException):
    """Raised when GitHub answers with a non-success HTTP status."""
    def __init__(self, status_code: int, message: str = "GitHub API error", body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{message} (HTTP {status_code})")
