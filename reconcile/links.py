"""
External link reconciler: keeps the issue's remote links to pull requests in step with the
pull request lifecycle and decides whether every linked pull request has merged.
"""
import re
import logging
from typing import List, Optional, Set, Tuple
from normalize.models import ExternalLink, PullRef, GITHUB_ICON

logger = logging.getLogger(__name__)

PULL_URL_PATTERN = re.compile(r"^https?://github\.com/([^/]+)/([^/]+)/pull/(\d+)(?:[/?#].*)?$")


def parse_pull_url(url: str) -> Optional[PullRef]:
    """Return the pull request a URL points into (including /files, /commits/... sub pages)."""
    m = PULL_URL_PATTERN.match(url or "")
    if not m:
        return None
    return PullRef(m.group(1), m.group(2), int(m.group(3)))


def pull_request_link(event) -> ExternalLink:
    """The link an issue should carry for the event's pull request."""
    return ExternalLink(event.pr_url, f"{event.org}/{event.repo}#{event.number}: {event.title}", dict(GITHUB_ICON))


def get_links(jira, key: str) -> List[ExternalLink]:
    return [ExternalLink.from_remote_link(raw) for raw in jira.get_remote_links(key)]


def ensure_link(jira, key: str, link: ExternalLink) -> bool:
    """Add `link` to the issue unless a link with the same URL exists. Returns True if one was added."""
    if any(existing.url == link.url for existing in get_links(jira, key)):
        logger.debug("%s already links to %s", key, link.url)
        return False
    jira.add_remote_link(key, link.to_remote_link())
    return True


def remove_links(jira, key: str, url: str) -> List[ExternalLink]:
    """Remove every link on the issue whose URL is `url`; other links are left alone."""
    removed: List[ExternalLink] = []
    for existing in get_links(jira, key):
        if existing.url == url:
            jira.delete_remote_link(key, existing.link_id)
            removed.append(existing)
    return removed


class MergeStatus:
    """Partition of the pull requests linked to an issue."""

    def __init__(self):
        self.merged: List[PullRef] = []
        self.unmerged: List[Tuple[PullRef, str]] = []

    @property
    def complete(self) -> bool:
        """Every recognized linked pull request has merged, and there is at least one."""
        return bool(self.merged) and not self.unmerged


def check_merge_completion(jira, gh, key: str, recognized_repos: Set[str]) -> MergeStatus:
    """
    Look up every pull request linked from the issue in a recognized repository, once each.
    Links to other repositories, and links that are not pull requests, are ignored.
    """
    status = MergeStatus()
    seen: Set[PullRef] = set()
    for link in get_links(jira, key):
        ref = parse_pull_url(link.url)
        if ref is None or ref in seen:
            continue
        seen.add(ref)
        if ref.repo_name not in recognized_repos:
            logger.debug("Ignoring link to unrecognized repository %s", ref.repo_name)
            continue
        pr = gh.get_pull_request(ref.org, ref.repo, ref.number)
        if pr.get("merged"):
            status.merged.append(ref)
        else:
            status.unmerged.append((ref, pr.get("state") or "open"))
    return status


__all__ = ["parse_pull_url", "pull_request_link", "get_links", "ensure_link", "remove_links", "MergeStatus", "check_merge_completion"]
