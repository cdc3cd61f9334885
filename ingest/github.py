"""
Minimal GitHub REST client for the pull request side of the reconciliation.
"""

import logging
from typing import List, Dict, Any, Optional
from urllib.parse import quote
from ingest.errors import GitHubError
from ingest.http import send_request

logger = logging.getLogger(__name__)


class GitHubClient:
    """GitHub client covering pull requests, labels, comments and user lookup."""

    def __init__(self, token: str, base_url: str = None, bot_login: Optional[str] = None):
        self.token = token
        self.base_url = (base_url or "https://api.github.com").rstrip("/")
        self.bot_login = bot_login
        self.headers = {
            "Authorization": f"Bearer {self.token}" if self.token else "",
            "Accept": "application/vnd.github+json",
        }

    def _request(self, method: str, path: str, allow_not_found: bool = False, **kwargs):
        return send_request(method, f"{self.base_url}{path}", self.headers, error_cls=GitHubError, allow_not_found=allow_not_found, **kwargs)

    def get_pull_request(self, org: str, repo: str, number: int) -> Dict[str, Any]:
        resp = self._request("GET", f"/repos/{org}/{repo}/pulls/{number}", allow_not_found=True)
        if resp is None:
            raise GitHubError(f"pull request number {number} does not exist")
        return resp.json()

    def get_issue_labels(self, org: str, repo: str, number: int) -> List[str]:
        resp = self._request("GET", f"/repos/{org}/{repo}/issues/{number}/labels", params={"per_page": 100})
        return [label.get("name") for label in resp.json()]

    def add_label(self, org: str, repo: str, number: int, label: str):
        self._request("POST", f"/repos/{org}/{repo}/issues/{number}/labels", json={"labels": [label]})
        logger.info("Added label %s to %s/%s#%d", label, org, repo, number)

    def remove_label(self, org: str, repo: str, number: int, label: str):
        # removing a label that is already gone is not a failure
        self._request("DELETE", f"/repos/{org}/{repo}/issues/{number}/labels/{quote(label, safe='')}", allow_not_found=True)
        logger.info("Removed label %s from %s/%s#%d", label, org, repo, number)

    def create_comment(self, org: str, repo: str, number: int, body: str):
        self._request("POST", f"/repos/{org}/{repo}/issues/{number}/comments", json={"body": body})
        logger.info("Commented on %s/%s#%d", org, repo, number)

    def edit_comment(self, org: str, repo: str, comment_id: int, body: str):
        self._request("PATCH", f"/repos/{org}/{repo}/issues/comments/{comment_id}", json={"body": body})
        logger.info("Edited comment %s on %s/%s", comment_id, org, repo)

    def update_pull_request(self, org: str, repo: str, number: int, body: str):
        self._request("PATCH", f"/repos/{org}/{repo}/pulls/{number}", json={"body": body})
        logger.info("Updated description of %s/%s#%d", org, repo, number)

    def was_label_added_by_human(self, org: str, repo: str, number: int, label: str) -> bool:
        """Return True if the most recent 'labeled' event for `label` was performed by a non-bot account."""
        resp = self._request("GET", f"/repos/{org}/{repo}/issues/{number}/events", params={"per_page": 100})
        actor = None
        for ev in resp.json():
            if ev.get("event") == "labeled" and (ev.get("label") or {}).get("name") == label:
                actor = ev.get("actor") or {}
        if actor is None:
            return False
        if actor.get("type") == "Bot":
            return False
        return not (self.bot_login and actor.get("login") == self.bot_login)

    def find_logins_by_email(self, email: str) -> List[str]:
        resp = self._request("GET", "/search/users", params={"q": f"{email} in:email"})
        return [item.get("login") for item in resp.json().get("items", [])]


__all__ = ["GitHubClient"]
