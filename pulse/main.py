import asyncio
import os
import sys
import logging
from typing import List
from dotenv import load_dotenv

from pulse.application.pulse_service import POLL_INTERVAL, PulseService
from pulse.domain.models import PulseSnapshot
from pulse.infrastructure.auth import CommandTokenProvider, StaticTokenProvider
from pulse.infrastructure.github_client import GitHubRestClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def render_snapshot(snapshot: PulseSnapshot) -> str:
    """Renders a snapshot as plain text, one section per feed."""
    lines: List[str] = []
    if snapshot.last_error:
        lines.append(f"Error: {snapshot.last_error}")

    def section(title: str, count: int, empty_text: str, rows: List[str]) -> None:
        lines.append(f"== {title} ({count})")
        if snapshot.is_loading and not rows:
            lines.append("  Loading...")
        elif not rows:
            lines.append(f"  {empty_text}")
        else:
            lines.extend(rows)

    section(
        "Recent Activity", len(snapshot.events), "No recent activity",
        [f"  [{e.icon}] {e.summary} ~ {e.relative_time}" for e in snapshot.events],
    )
    section(
        "Open PRs", len(snapshot.pull_requests), "No open pull requests",
        [f"  {pr.title} ~ {pr.repo_name}" for pr in snapshot.pull_requests],
    )
    section(
        "Notifications", snapshot.unread_count, "No unread notifications",
        [
            f"  {'*' if n.unread else ' '}[{n.icon}] {n.subject.title} ~ {n.short_repo} ~ {n.reason}"
            for n in snapshot.notifications
        ],
    )
    return "\n".join(lines)


def log_snapshot(snapshot: PulseSnapshot) -> None:
    # Intermediate "loading" snapshots carry nothing new.
    if snapshot.is_loading:
        return
    logger.info("\n" + render_snapshot(snapshot))


async def main():
    # Load environment variables from .env file
    load_dotenv()

    logging.getLogger().setLevel(os.getenv("PULSE_LOG_LEVEL", "INFO").upper())

    try:
        poll_interval = float(os.getenv("PULSE_POLL_INTERVAL", POLL_INTERVAL))
        if poll_interval <= 0:
            raise ValueError(poll_interval)
    except ValueError:
        logger.error("PULSE_POLL_INTERVAL must be a positive number of seconds.")
        sys.exit(1)

    # A token from the environment wins over asking the gh CLI.
    github_token = os.getenv("GITHUB_TOKEN")
    token_provider = StaticTokenProvider(github_token) if github_token else CommandTokenProvider()

    github_client = GitHubRestClient(token_provider=token_provider)
    service = PulseService(github_client=github_client, poll_interval=poll_interval)
    service.subscribe(log_snapshot)

    service.start_polling()
    try:
        await service.wait_stopped()
    finally:
        service.stop_polling()

def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully.")

if __name__ == "__main__":
    run()
