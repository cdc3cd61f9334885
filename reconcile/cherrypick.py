"""
Cherry-pick cloner: gives a backport pull request its own issue, either by reusing an existing
clone that already targets the branch's version or by cloning the original issue. Legacy
Bugzilla bugs are first translated into a native issue.
"""
import logging
from typing import Dict, Any, List, Optional
from ingest.errors import TrackerError
from normalize.util import (
    BLOCKED_BY_BUGZILLA_FIELD,
    SEVERITY_FIELD,
    TARGET_VERSION_FIELD,
    issue_fields,
    issue_target_versions,
    legacy_security_labels,
    translate_legacy_bug,
)
from policy.dependents import BLOCKS_LINK, CLONE_LINK

logger = logging.getLogger(__name__)

CLONE_DESCRIPTION_PREFIX = "This is a clone of issue {key}. The following is the description of the original issue: \n---\n"

# fields carried over verbatim to a clone; target version is set separately
COPIED_FIELDS = ("project", "issuetype", "summary", "labels", "components", "priority", "security", SEVERITY_FIELD)

SECURITY_TRACKING_KEYWORD = "SecurityTracking"


class CloneResult:
    """
    Parameters:
        issue: the clone (new or reused).
        created: a new issue was created by this call.
        target_version_error: text of a failed target version update on a new clone.
    """
    def __init__(self, issue: Dict[str, Any], created: bool, target_version_error: Optional[str] = None):
        self.issue = issue
        self.created = created
        self.target_version_error = target_version_error

    @property
    def key(self) -> str:
        return self.issue.get("key")


def _targets_exactly(issue: Dict[str, Any], target_version: str) -> bool:
    return issue_target_versions(issue) == [target_version]


def find_existing_clone(jira, issue: Dict[str, Any], target_version: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return a clone of `issue` whose only target version is `target_version`."""
    if not target_version:
        return None
    for link in issue_fields(issue).get("issuelinks") or []:
        if (link.get("type") or {}).get("name") != CLONE_LINK or not link.get("inwardIssue"):
            continue
        clone = jira.get_issue(link["inwardIssue"].get("key"))
        if clone is not None and _targets_exactly(clone, target_version):
            return clone
    return None


def build_clone_fields(issue: Dict[str, Any]) -> Dict[str, Any]:
    fields = issue_fields(issue)
    out = {name: fields[name] for name in COPIED_FIELDS if fields.get(name) is not None}
    out["description"] = CLONE_DESCRIPTION_PREFIX.format(key=issue.get("key")) + (fields.get("description") or "")
    return out


def _set_target_version(jira, key: str, target_version: str) -> Optional[str]:
    try:
        jira.update_issue(key, {TARGET_VERSION_FIELD: [{"name": target_version}]})
    except TrackerError as exc:
        logger.warning("Failed to set target version %s on clone %s: %s", target_version, key, exc)
        return str(exc)
    return None


def clone_issue(jira, issue: Dict[str, Any], target_version: str) -> CloneResult:
    """
    Reuse or create the clone of `issue` for a branch targeting `target_version`.

    A new clone copies summary, description (prefixed), comments, project and labels, and is linked
    back as "clones" the original and "is blocked by" the original. Reuse is keyed on the target
    version, so one is required.
    """
    if not target_version:
        raise ValueError(f"cannot clone {issue.get('key')} without a target version")
    existing = find_existing_clone(jira, issue, target_version)
    if existing is not None:
        logger.info("Reusing clone %s of %s for %s", existing.get("key"), issue.get("key"), target_version)
        return CloneResult(existing, created=False)

    original_key = issue.get("key")
    clone = jira.create_issue(build_clone_fields(issue))
    clone_key = clone.get("key")
    for comment in (issue_fields(issue).get("comment") or {}).get("comments") or []:
        jira.add_comment(clone_key, comment.get("body", ""), comment.get("visibility"))
    jira.create_issue_link(CLONE_LINK, clone_key, original_key)
    jira.create_issue_link(BLOCKS_LINK, original_key, clone_key)
    logger.info("Cloned %s as %s", original_key, clone_key)
    return CloneResult(clone, created=True, target_version_error=_set_target_version(jira, clone_key, target_version))


def _blocking_flaws(bugzilla, bug: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flaw bugs blocked by a security tracker bug; other bugs carry no flaw references."""
    if SECURITY_TRACKING_KEYWORD not in (bug.get("keywords") or []):
        return []
    flaws = (bugzilla.get_bug(bug_id) for bug_id in bug.get("blocks") or [])
    return [flaw for flaw in flaws if flaw is not None]


def legacy_labels(bugzilla, bug: Dict[str, Any]) -> List[str]:
    """Security labels for a legacy bug."""
    return legacy_security_labels(bug, _blocking_flaws(bugzilla, bug))


def find_existing_legacy_clone(jira, bug_url: str, target_version: Optional[str]) -> Optional[Dict[str, Any]]:
    if not target_version:
        return None
    for candidate in jira.find_issues_by_field(BLOCKED_BY_BUGZILLA_FIELD, bug_url):
        if _targets_exactly(candidate, target_version):
            return candidate
    return None


def clone_legacy_bug(jira, bugzilla, bug_id: int, target_version: str) -> Optional[CloneResult]:
    """
    Reuse or create the Jira issue bridging legacy bug `bug_id` to a branch.

    Returns:
        None when the legacy bug does not exist.
    """
    if not target_version:
        raise ValueError(f"cannot clone bugzilla bug {bug_id} without a target version")
    bug = bugzilla.get_bug(bug_id)
    if bug is None:
        return None
    bug_url = bugzilla.bug_url(bug_id)
    existing = find_existing_legacy_clone(jira, bug_url, target_version)
    if existing is not None:
        logger.info("Reusing %s as the clone of bugzilla bug %s", existing.get("key"), bug_id)
        return CloneResult(existing, created=False)

    native = translate_legacy_bug(
        bug,
        bugzilla.get_comments(bug_id),
        bugzilla.get_subcomponents(bug_id),
        _blocking_flaws(bugzilla, bug),
        bugzilla.endpoint,
        target_version,
    )
    clone = jira.create_issue(native["fields"])
    logger.info("Created %s from bugzilla bug %s", clone.get("key"), bug_id)
    return CloneResult(clone, created=True, target_version_error=_set_target_version(jira, clone.get("key"), target_version))


def retitle(title: str, old_reference: str, new_key: str) -> str:
    """Swap the first `old_reference` in `title` for `new_key`, or prefix the key if absent."""
    if old_reference and old_reference in title:
        return title.replace(old_reference, new_key, 1).strip()
    return f"{new_key}: {title}".strip()


__all__ = [
    "CloneResult",
    "find_existing_clone",
    "build_clone_fields",
    "clone_issue",
    "legacy_labels",
    "find_existing_legacy_clone",
    "clone_legacy_bug",
    "retitle",
]
