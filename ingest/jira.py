"""
Jira REST client used by the reconciliation engine.
Issues are handled as the raw JSON dicts returned by the REST API (v2); normalize.util knows how
to read the fields the engine cares about.
"""

import logging
from typing import List, Dict, Any, Optional
from ingest.errors import JiraError
from ingest.http import send_request

logger = logging.getLogger(__name__)


class JiraClient:
    """Minimal Jira client covering issue reads/updates, transitions, comments and links.

    Parameters:
        token: personal access token, sent as a bearer token.
        base_url: web root of the Jira server (e.g. https://issues.example.com).
    """

    def __init__(self, token: str, base_url: str):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/rest/api/2"
        self.headers = {
            "Authorization": f"Bearer {self.token}" if self.token else "",
            "Accept": "application/json",
        }

    def browse_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    def _request(self, method: str, path: str, allow_not_found: bool = False, **kwargs):
        return send_request(method, f"{self.api_url}{path}", self.headers, error_cls=JiraError, allow_not_found=allow_not_found, **kwargs)

    def get_issue(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the issue dict, or None if no issue with that key exists."""
        resp = self._request("GET", f"/issue/{key}", allow_not_found=True)
        if resp is None:
            return None
        return resp.json()

    def create_issue(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create an issue and return it as read back from the server."""
        resp = self._request("POST", "/issue", json={"fields": fields})
        key = resp.json().get("key")
        logger.info("Created Jira issue %s", key)
        created = self.get_issue(key)
        if created is None:
            raise JiraError(f"issue {key} was created but could not be read back")
        return created

    def update_issue(self, key: str, fields: Dict[str, Any]):
        self._request("PUT", f"/issue/{key}", json={"fields": fields})
        logger.info("Updated fields %s on Jira issue %s", sorted(fields), key)

    def get_transitions(self, key: str) -> List[Dict[str, Any]]:
        resp = self._request("GET", f"/issue/{key}/transitions")
        return resp.json().get("transitions", [])

    def do_transition(self, key: str, transition_id: str):
        self._request("POST", f"/issue/{key}/transitions", json={"transition": {"id": transition_id}})
        logger.info("Applied transition %s to Jira issue %s", transition_id, key)

    def add_comment(self, key: str, body: str, visibility: Optional[Dict[str, str]] = None):
        payload: Dict[str, Any] = {"body": body}
        if visibility:
            payload["visibility"] = visibility
        self._request("POST", f"/issue/{key}/comment", json=payload)

    def get_remote_links(self, key: str) -> List[Dict[str, Any]]:
        resp = self._request("GET", f"/issue/{key}/remotelink")
        return resp.json()

    def add_remote_link(self, key: str, link: Dict[str, Any]):
        self._request("POST", f"/issue/{key}/remotelink", json=link)
        logger.info("Added remote link %s to Jira issue %s", link.get("object", {}).get("url"), key)

    def delete_remote_link(self, key: str, link_id: Any):
        self._request("DELETE", f"/issue/{key}/remotelink/{link_id}")
        logger.info("Deleted remote link %s from Jira issue %s", link_id, key)

    def create_issue_link(self, link_type: str, from_key: str, to_key: str):
        """Link two issues so that `from_key` carries the outward description of `link_type` towards `to_key`.

        For example ("Blocks", A, B) reads "A blocks B" and ("Cloners", A, B) reads "A clones B".
        """
        payload = {
            "type": {"name": link_type},
            "inwardIssue": {"key": from_key},
            "outwardIssue": {"key": to_key},
        }
        self._request("POST", "/issueLink", json=payload)
        logger.info("Linked %s -[%s]-> %s", from_key, link_type, to_key)

    def find_issues_by_field(self, field_id: str, value: str) -> List[Dict[str, Any]]:
        """Return issues whose custom field `field_id` (customfield_NNN) equals `value`."""
        number = field_id.rsplit("_", 1)[-1]
        escaped = value.replace('"', '\\"')
        params = {"jql": f'cf[{number}] = "{escaped}"', "maxResults": 50}
        resp = self._request("GET", "/search", params=params)
        return resp.json().get("issues", [])


__all__ = ["JiraClient"]
