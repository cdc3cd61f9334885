"""
Value types shared by the validity engine and the reconcilers.
"""

from typing import List, Optional, Dict, Any

# tracker-of-origin markers for dependents
ORIGIN_JIRA = "jira"
ORIGIN_BUGZILLA = "bugzilla"


def _fold(value: Optional[str]) -> str:
    return (value or "").lower()


class BugState:
    """
    A (status, optional resolution) pair.

    Equality is case-insensitive; an unset status or resolution on either side is a wildcard.
    `matches` is the stricter, one-sided check used for configured states: only the configured
    side's unset parts are wildcards.
    """
    def __init__(self, status: Optional[str] = None, resolution: Optional[str] = None):
        self.status = status or ""
        self.resolution = resolution or ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BugState":
        return cls(raw.get("status"), raw.get("resolution"))

    def to_dict(self) -> Dict[str, str]:
        out = {}
        if self.status:
            out["status"] = self.status
        if self.resolution:
            out["resolution"] = self.resolution
        return out

    def matches(self, actual: "BugState") -> bool:
        """Return True if `actual` satisfies this (configured) state."""
        if self.status and _fold(self.status) != _fold(actual.status):
            return False
        if self.resolution and _fold(self.resolution) != _fold(actual.resolution):
            return False
        return True

    def same_as(self, other: "BugState") -> bool:
        """Exact case-insensitive comparison, used to de-duplicate configured state lists."""
        return _fold(self.status) == _fold(other.status) and _fold(self.resolution) == _fold(other.resolution)

    def __eq__(self, other):
        if not isinstance(other, BugState):
            return NotImplemented
        if self.status and other.status and _fold(self.status) != _fold(other.status):
            return False
        if self.resolution and other.resolution and _fold(self.resolution) != _fold(other.resolution):
            return False
        return True

    def __hash__(self):
        # wildcard equality cannot hash on anything finer than a constant
        return 0

    def __str__(self):
        if self.status and self.resolution:
            return f"{self.status} ({self.resolution})"
        if self.status:
            return self.status
        if self.resolution:
            return f"any status with resolution {self.resolution}"
        return ""

    def __repr__(self):
        return f"BugState({self.status!r}, {self.resolution!r})"


def pretty_states(states: List[BugState]) -> str:
    return ", ".join(str(s) for s in states)


def unique_states(states: List[BugState]) -> List[BugState]:
    """De-duplicate states case-insensitively, keeping first occurrences in order."""
    out: List[BugState] = []
    for state in states:
        if not any(state.same_as(seen) for seen in out):
            out.append(state)
    return out


class Dependent:
    """
    Normalized view of a linked ticket, whichever tracker it lives in.
    """
    def __init__(self, key: str, state: BugState, target_version: Optional[str] = None, origin: str = ORIGIN_JIRA):
        self.key = key
        self.state = state
        self.target_version = target_version
        self.origin = origin

    def link(self, jira_url: str, bugzilla_url: str) -> str:
        """Markdown link to the dependent in its own tracker."""
        if self.origin == ORIGIN_BUGZILLA:
            return bugzilla_link(self.key, bugzilla_url)
        return issue_link(self.key, jira_url)

    def __repr__(self):
        return f"Dependent({self.key!r}, {self.state!r}, {self.target_version!r}, {self.origin!r})"


def issue_link(key: str, jira_url: str) -> str:
    return f"[Jira Issue {key}]({jira_url.rstrip('/')}/browse/{key})"


def bugzilla_link(bug_id: Any, bugzilla_url: str) -> str:
    return f"[Bugzilla Bug {bug_id}]({bugzilla_url.rstrip('/')}/show_bug.cgi?id={bug_id})"


class ValidationResult:
    """
    Outcome of one validity evaluation. Valid iff no reasons were recorded.
    """
    def __init__(self):
        self.invalid_dependent_project = False
        self.validations: List[str] = []
        self.reasons: List[str] = []

    @property
    def valid(self) -> bool:
        return not self.reasons

    def as_tuple(self):
        return self.valid, self.invalid_dependent_project, list(self.validations), list(self.reasons)


GITHUB_ICON = {"url16x16": "https://github.com/favicon.ico", "title": "GitHub"}


class ExternalLink:
    """
    A tracker-side reference to a pull request. Identity is the URL.
    """
    def __init__(self, url: str, title: str = "", icon: Optional[Dict[str, str]] = None, link_id: Any = None):
        self.url = url
        self.title = title
        self.icon = icon if icon is not None else dict(GITHUB_ICON)
        self.link_id = link_id

    @classmethod
    def from_remote_link(cls, raw: Dict[str, Any]) -> "ExternalLink":
        obj = raw.get("object") or {}
        return cls(obj.get("url", ""), obj.get("title", ""), obj.get("icon") or {}, raw.get("id"))

    def to_remote_link(self) -> Dict[str, Any]:
        return {"object": {"url": self.url, "title": self.title, "icon": dict(self.icon)}}

    def __eq__(self, other):
        if not isinstance(other, ExternalLink):
            return NotImplemented
        return self.url == other.url

    def __hash__(self):
        return hash(self.url)

    def __repr__(self):
        return f"ExternalLink({self.url!r}, {self.title!r})"


class PullRef:
    """Reference to a pull request parsed from a link URL."""
    def __init__(self, org: str, repo: str, number: int):
        self.org = org
        self.repo = repo
        self.number = number

    @property
    def repo_name(self) -> str:
        return f"{self.org}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.org}/{self.repo}/pull/{self.number}"

    def __str__(self):
        return f"{self.org}/{self.repo}#{self.number}"

    def __eq__(self, other):
        if not isinstance(other, PullRef):
            return NotImplemented
        return (self.org, self.repo, self.number) == (other.org, other.repo, other.number)

    def __hash__(self):
        return hash((self.org, self.repo, self.number))

    def __repr__(self):
        return f"PullRef({self.org!r}, {self.repo!r}, {self.number!r})"
