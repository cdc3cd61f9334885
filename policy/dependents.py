"""
Dependency resolver: walks an issue's links and the legacy-bug cross reference to build the list
of dependents the validity engine checks.

An issue depends on
- the issue that blocks it ("Blocks" link seen from the inward side: "is blocked by"),
- the issue it was cloned from ("Cloners" link seen from the outward side: "clones"),
- the legacy bug recorded in its "blocked by bugzilla bug" field.
"""
import logging
from typing import List, Dict, Any, Optional
from ingest.errors import TrackerError
from normalize.models import Dependent
from normalize.util import issue_fields, issue_legacy_url, legacy_bug_id_from_url, jira_dependent, bugzilla_dependent

logger = logging.getLogger(__name__)

BLOCKS_LINK = "Blocks"
CLONE_LINK = "Cloners"


class DependentLookupError(TrackerError):
    """A dependent could not be read. `key` names the dependent, `parent` the issue being evaluated."""

    def __init__(self, key: str, parent: str, message: str):
        super().__init__(message)
        self.key = key
        self.parent = parent


class DependentNotFound(DependentLookupError):
    pass


# helper: key of the endpoint a link makes this issue depend on, or None
def _dependency_endpoint(link: Dict[str, Any]) -> Optional[str]:
    link_type = (link.get("type") or {}).get("name")
    if link_type == BLOCKS_LINK and link.get("inwardIssue"):
        return link["inwardIssue"].get("key")
    if link_type == CLONE_LINK and link.get("outwardIssue"):
        return link["outwardIssue"].get("key")
    return None


def dependent_keys(issue: Dict[str, Any]) -> List[str]:
    """Keys of the Jira issues `issue` depends on, in link order, without duplicates or self references."""
    own_key = issue.get("key")
    keys: List[str] = []
    for link in issue_fields(issue).get("issuelinks") or []:
        key = _dependency_endpoint(link)
        if key and key != own_key and key not in keys:
            keys.append(key)
    return keys


def get_dependents(issue: Dict[str, Any], jira, bugzilla=None) -> List[Dependent]:
    """
    Resolve every dependent of `issue` into a normalized Dependent.

    Raises:
        DependentNotFound: a linked issue or legacy bug does not exist.
        DependentLookupError: reading a dependent failed.
    """
    parent = issue.get("key")
    dependents: List[Dependent] = []
    for key in dependent_keys(issue):
        try:
            dep = jira.get_issue(key)
        except TrackerError as exc:
            raise DependentLookupError(key, parent, str(exc)) from exc
        if dep is None:
            raise DependentNotFound(key, parent, f"dependent issue {key} does not exist")
        dependents.append(jira_dependent(dep))

    legacy_url = issue_legacy_url(issue)
    bug_id = legacy_bug_id_from_url(legacy_url) if legacy_url else None
    if bug_id is not None and bugzilla is not None:
        try:
            bug = bugzilla.get_bug(bug_id)
        except TrackerError as exc:
            raise DependentLookupError(str(bug_id), parent, str(exc)) from exc
        if bug is None:
            raise DependentNotFound(str(bug_id), parent, f"dependent bugzilla bug {bug_id} does not exist")
        dependents.append(bugzilla_dependent(bug))
    elif bug_id is not None:
        logger.warning("%s references bugzilla bug %s but no bugzilla client is configured", parent, bug_id)

    logger.debug("Resolved %d dependent(s) for %s", len(dependents), parent)
    return dependents


__all__ = ["BLOCKS_LINK", "CLONE_LINK", "DependentLookupError", "DependentNotFound", "dependent_keys", "get_dependents"]
