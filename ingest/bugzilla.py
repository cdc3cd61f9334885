"""
Bugzilla REST client, used to bridge legacy bugs into Jira.
"""

import logging
from typing import List, Dict, Any, Optional
from ingest.errors import BugzillaError
from ingest.http import send_request

logger = logging.getLogger(__name__)


class BugzillaClient:
    """Read-only Bugzilla client: bugs, comments and sub-components."""

    def __init__(self, api_key: str, endpoint: str):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def bug_url(self, bug_id: int) -> str:
        return f"{self.endpoint}/show_bug.cgi?id={bug_id}"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None):
        return send_request("GET", f"{self.endpoint}/rest{path}", self.headers, error_cls=BugzillaError, allow_not_found=True, params=params)

    def get_bug(self, bug_id: int) -> Optional[Dict[str, Any]]:
        resp = self._get(f"/bug/{bug_id}")
        if resp is None:
            return None
        bugs = resp.json().get("bugs") or []
        return bugs[0] if bugs else None

    def get_comments(self, bug_id: int) -> List[Dict[str, Any]]:
        resp = self._get(f"/bug/{bug_id}/comment")
        if resp is None:
            return []
        bugs = resp.json().get("bugs") or {}
        return (bugs.get(str(bug_id)) or {}).get("comments", [])

    def get_subcomponents(self, bug_id: int) -> Dict[str, List[str]]:
        """Return the component -> sub-components mapping set on a bug."""
        resp = self._get(f"/bug/{bug_id}", params={"include_fields": "sub_components"})
        if resp is None:
            return {}
        bugs = resp.json().get("bugs") or []
        return (bugs[0].get("sub_components") or {}) if bugs else {}


__all__ = ["BugzillaClient"]
