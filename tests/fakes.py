"""
In-memory stand-ins for the Jira, GitHub and Bugzilla clients. They keep just enough state to let
the reconciliation flows run end to end and record every mutating call for assertions.
"""
import copy
from typing import Dict, Any, List, Optional
from ingest.errors import JiraError, GitHubError

JIRA_URL = "https://issues.example.com"
BUGZILLA_URL = "https://bugzilla.example.com"

DEFAULT_TRANSITIONS = ["New", "ASSIGNED", "POST", "MODIFIED", "ON_QA", "VERIFIED", "CLOSED"]


def make_issue(key: str, status: str = "NEW", resolution: Optional[str] = None, target_version: Optional[str] = None, **fields) -> Dict[str, Any]:
    """Build a raw issue dict the way the Jira REST API returns it."""
    body: Dict[str, Any] = {
        "project": {"key": key.rsplit("-", 1)[0]},
        "summary": fields.pop("summary", f"summary of {key}"),
        "status": {"name": status},
        "resolution": {"name": resolution} if resolution else None,
        "issuelinks": fields.pop("issuelinks", []),
        "labels": fields.pop("labels", []),
    }
    if target_version:
        body["customfield_12319940"] = [{"name": target_version}]
    body.update(fields)
    return {"key": key, "fields": body}


class FakeJira:
    def __init__(self, issues: Optional[List[Dict[str, Any]]] = None, transitions: Optional[List[str]] = None):
        self.base_url = JIRA_URL
        self.issues: Dict[str, Dict[str, Any]] = {i["key"]: i for i in issues or []}
        self.remote_links: Dict[str, List[Dict[str, Any]]] = {}
        self.transition_names = transitions if transitions is not None else list(DEFAULT_TRANSITIONS)
        self.comments: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail: Dict[str, Exception] = {}
        self._next_id = 1000
        self._next_link_id = 1

    # helper: raise a configured failure for an operation
    def _maybe_fail(self, op: str):
        if op in self.fail:
            raise self.fail[op]

    @property
    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if not c[0].startswith(("get_", "find_"))]

    def get_issue(self, key):
        self.calls.append(("get_issue", key))
        self._maybe_fail("get_issue")
        issue = self.issues.get(key)
        return copy.deepcopy(issue) if issue is not None else None

    def create_issue(self, fields):
        self.calls.append(("create_issue", fields))
        self._maybe_fail("create_issue")
        project = (fields.get("project") or {}).get("key", "OCPBUGS")
        self._next_id += 1
        key = f"{project}-{self._next_id}"
        stored = copy.deepcopy(fields)
        stored.setdefault("status", {"name": "NEW"})
        stored.setdefault("issuelinks", [])
        self.issues[key] = {"key": key, "fields": stored}
        return copy.deepcopy(self.issues[key])

    def update_issue(self, key, fields):
        self.calls.append(("update_issue", key, fields))
        self._maybe_fail("update_issue")
        self.issues[key]["fields"].update(copy.deepcopy(fields))

    def get_transitions(self, key):
        self.calls.append(("get_transitions", key))
        return [{"id": str(i), "to": {"name": name}} for i, name in enumerate(self.transition_names)]

    def do_transition(self, key, transition_id):
        self.calls.append(("do_transition", key, transition_id))
        self._maybe_fail("do_transition")
        name = self.transition_names[int(transition_id)]
        self.issues[key]["fields"]["status"] = {"name": name}

    def add_comment(self, key, body, visibility=None):
        self.calls.append(("add_comment", key, body, visibility))
        self._maybe_fail("add_comment")
        self.comments.setdefault(key, []).append({"body": body, "visibility": visibility})

    def get_remote_links(self, key):
        self.calls.append(("get_remote_links", key))
        self._maybe_fail("get_remote_links")
        return copy.deepcopy(self.remote_links.get(key, []))

    def add_remote_link(self, key, link):
        self.calls.append(("add_remote_link", key, link))
        self._maybe_fail("add_remote_link")
        stored = copy.deepcopy(link)
        stored["id"] = self._next_link_id
        self._next_link_id += 1
        self.remote_links.setdefault(key, []).append(stored)

    def delete_remote_link(self, key, link_id):
        self.calls.append(("delete_remote_link", key, link_id))
        self._maybe_fail("delete_remote_link")
        self.remote_links[key] = [l for l in self.remote_links.get(key, []) if l.get("id") != link_id]

    def create_issue_link(self, link_type, from_key, to_key):
        self.calls.append(("create_issue_link", link_type, from_key, to_key))
        self._maybe_fail("create_issue_link")
        self.issues[from_key]["fields"].setdefault("issuelinks", []).append({"type": {"name": link_type}, "outwardIssue": {"key": to_key}})
        self.issues[to_key]["fields"].setdefault("issuelinks", []).append({"type": {"name": link_type}, "inwardIssue": {"key": from_key}})

    def find_issues_by_field(self, field_id, value):
        self.calls.append(("find_issues_by_field", field_id, value))
        return [copy.deepcopy(i) for i in self.issues.values() if i["fields"].get(field_id) == value]

    def link_pr(self, key: str, url: str, title: str = ""):
        """Test setup: attach a pull request link to an issue without recording a call."""
        self.remote_links.setdefault(key, []).append({"id": self._next_link_id, "object": {"url": url, "title": title}})
        self._next_link_id += 1


class FakeGitHub:
    def __init__(self, pulls: Optional[Dict[tuple, Dict[str, Any]]] = None, labels: Optional[List[str]] = None):
        self.pulls = pulls or {}
        self.labels = list(labels or [])
        self.label_events: List[Dict[str, Any]] = []
        self.users_by_email: Dict[str, List[str]] = {}
        self.comments: List[tuple] = []
        self.calls: List[tuple] = []

    def get_pull_request(self, org, repo, number):
        self.calls.append(("get_pull_request", org, repo, number))
        pr = self.pulls.get((org, repo, number))
        if pr is None:
            raise GitHubError(f"pull request number {number} does not exist")
        return copy.deepcopy(pr)

    def get_issue_labels(self, org, repo, number):
        return list(self.labels)

    def add_label(self, org, repo, number, label):
        self.calls.append(("add_label", label))
        if label not in self.labels:
            self.labels.append(label)

    def remove_label(self, org, repo, number, label):
        self.calls.append(("remove_label", label))
        if label in self.labels:
            self.labels.remove(label)

    def create_comment(self, org, repo, number, body):
        self.comments.append((org, repo, number, body))

    def edit_comment(self, org, repo, comment_id, body):
        self.calls.append(("edit_comment", comment_id, body))

    def update_pull_request(self, org, repo, number, body):
        self.calls.append(("update_pull_request", number, body))

    def was_label_added_by_human(self, org, repo, number, label):
        actor = None
        for ev in self.label_events:
            if ev.get("label") == label:
                actor = ev
        return bool(actor) and not actor.get("bot", False)

    def find_logins_by_email(self, email):
        return list(self.users_by_email.get(email, []))


class FakeBugzilla:
    def __init__(self, bugs: Optional[List[Dict[str, Any]]] = None):
        self.endpoint = BUGZILLA_URL
        self.bugs: Dict[int, Dict[str, Any]] = {b["id"]: b for b in bugs or []}
        self.comments: Dict[int, List[Dict[str, Any]]] = {}
        self.subcomponents: Dict[int, Dict[str, List[str]]] = {}

    def bug_url(self, bug_id):
        return f"{self.endpoint}/show_bug.cgi?id={bug_id}"

    def get_bug(self, bug_id):
        bug = self.bugs.get(int(bug_id))
        return copy.deepcopy(bug) if bug is not None else None

    def get_comments(self, bug_id):
        return list(self.comments.get(bug_id, []))

    def get_subcomponents(self, bug_id):
        return dict(self.subcomponents.get(bug_id, {}))


def jira_failure(message: str = "boom") -> JiraError:
    return JiraError(message)
