"""
Helpers to read engine-relevant fields out of raw tracker JSON, and the adapter that
translates a legacy Bugzilla bug into the same shapes used for native Jira issues.
"""
import re
from typing import List, Dict, Any, Optional
from normalize.models import BugState, Dependent, ORIGIN_JIRA, ORIGIN_BUGZILLA, bugzilla_link

# project holding defects; only its keys are bugs, and dependents must live in it
DEFECT_PROJECT = "OCPBUGS"

TARGET_VERSION_FIELD = "customfield_12319940"
SEVERITY_FIELD = "customfield_12316142"
QA_CONTACT_FIELD = "customfield_12316243"
BLOCKED_BY_BUGZILLA_FIELD = "customfield_12322152"

DEFAULT_SECURITY_LEVEL = "default"

SECURITY_KEYWORDS = ("Security", "SecurityTracking")
CVE_PATTERN = re.compile(r"^CVE-\d{4}-\d+$")
LEGACY_BUG_URL_PATTERN = re.compile(r"show_bug\.cgi\?id=(\d+)")

LEGACY_CLONE_DESCRIPTION = (
    "This bug is a backport clone of {link}. The following is the description of the original bug:\n---\n{text}"
)

# bugzilla uses "---" for an unset target release
_UNSET_RELEASE = "---"


def issue_fields(issue: Dict[str, Any]) -> Dict[str, Any]:
    return (issue or {}).get("fields") or {}


def issue_project(issue: Dict[str, Any]) -> str:
    project = issue_fields(issue).get("project") or {}
    if project.get("key"):
        return project["key"]
    return (issue.get("key") or "").rsplit("-", 1)[0]


def issue_state(issue: Dict[str, Any]) -> BugState:
    fields = issue_fields(issue)
    status = (fields.get("status") or {}).get("name")
    resolution = (fields.get("resolution") or {}).get("name")
    return BugState(status, resolution)


def issue_target_versions(issue: Dict[str, Any]) -> List[str]:
    raw = issue_fields(issue).get(TARGET_VERSION_FIELD) or []
    if isinstance(raw, dict):
        raw = [raw]
    return [v.get("name") for v in raw if isinstance(v, dict) and v.get("name")]


def issue_target_version(issue: Dict[str, Any]) -> Optional[str]:
    versions = issue_target_versions(issue)
    return versions[0] if versions else None


def issue_security_level(issue: Dict[str, Any]) -> Optional[str]:
    return (issue_fields(issue).get("security") or {}).get("name")


def issue_severity(issue: Dict[str, Any]) -> Optional[str]:
    raw = issue_fields(issue).get(SEVERITY_FIELD)
    if isinstance(raw, dict):
        return raw.get("value")
    return raw or None


def issue_qa_contact_email(issue: Dict[str, Any]) -> Optional[str]:
    contact = issue_fields(issue).get(QA_CONTACT_FIELD) or {}
    return contact.get("emailAddress") or None


def issue_labels(issue: Dict[str, Any]) -> List[str]:
    return list(issue_fields(issue).get("labels") or [])


def issue_legacy_url(issue: Dict[str, Any]) -> Optional[str]:
    return issue_fields(issue).get(BLOCKED_BY_BUGZILLA_FIELD) or None


def is_issue_allowed(issue: Dict[str, Any], allowed_levels: Optional[List[str]]) -> bool:
    """An issue is allowed when no levels are configured or its level (or 'default') is listed."""
    if not allowed_levels:
        return True
    level = issue_security_level(issue) or DEFAULT_SECURITY_LEVEL
    return level in allowed_levels


def legacy_bug_id_from_url(url: str) -> Optional[int]:
    m = LEGACY_BUG_URL_PATTERN.search(url or "")
    return int(m.group(1)) if m else None


def jira_dependent(issue: Dict[str, Any]) -> Dependent:
    return Dependent(issue.get("key"), issue_state(issue), issue_target_version(issue), origin=ORIGIN_JIRA)


def bugzilla_state(bug: Dict[str, Any]) -> BugState:
    return BugState(bug.get("status"), bug.get("resolution"))


def bugzilla_target_version(bug: Dict[str, Any]) -> Optional[str]:
    releases = [r for r in (bug.get("target_release") or []) if r and r != _UNSET_RELEASE]
    return releases[0] if releases else None


def bugzilla_dependent(bug: Dict[str, Any]) -> Dependent:
    return Dependent(str(bug.get("id")), bugzilla_state(bug), bugzilla_target_version(bug), origin=ORIGIN_BUGZILLA)


def legacy_components(bug: Dict[str, Any], subcomponents: Dict[str, List[str]]) -> List[str]:
    components: List[str] = []
    for comp in bug.get("component") or []:
        subs = (subcomponents or {}).get(comp) or []
        if subs:
            components.extend(f"{comp} / {sub}" for sub in subs)
        else:
            components.append(comp)
    return components


def legacy_security_labels(bug: Dict[str, Any], blocking_bugs: Optional[List[Dict[str, Any]]] = None) -> List[str]:
    """
    Labels carried over from a legacy bug: security keywords, whiteboard component tags, and for each
    blocked flaw bug with a CVE alias the alias itself plus a flaw cross-reference.
    """
    keywords = bug.get("keywords") or []
    labels = [k for k in keywords if k in SECURITY_KEYWORDS]
    labels.extend(tok for tok in (bug.get("whiteboard") or "").split() if tok.startswith("component:"))
    for flaw in blocking_bugs or []:
        aliases = [a for a in (flaw.get("alias") or []) if CVE_PATTERN.match(a)]
        if not aliases:
            continue
        labels.extend(aliases)
        labels.append(f"flaw:bz#{flaw.get('id')}")
    return labels


def translate_legacy_bug(
    bug: Dict[str, Any],
    comments: List[Dict[str, Any]],
    subcomponents: Dict[str, List[str]],
    blocking_bugs: List[Dict[str, Any]],
    bugzilla_url: str,
    target_version: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Synthesize a native (not yet created) Jira issue from a legacy bug.

    Returns:
        an issue dict without a key; its 'fields' can be passed straight to create_issue.
    """
    bug_id = bug.get("id")
    first_comment = comments[0].get("text", "") if comments else ""
    fields: Dict[str, Any] = {
        "project": {"key": DEFECT_PROJECT},
        "issuetype": {"name": "Bug"},
        "summary": bug.get("summary", ""),
        "description": LEGACY_CLONE_DESCRIPTION.format(link=bugzilla_link(bug_id, bugzilla_url), text=first_comment),
        "components": [{"name": c} for c in legacy_components(bug, subcomponents)],
        "labels": legacy_security_labels(bug, blocking_bugs),
        BLOCKED_BY_BUGZILLA_FIELD: f"{bugzilla_url.rstrip('/')}/show_bug.cgi?id={bug_id}",
    }
    if target_version:
        fields["versions"] = [{"name": target_version}]
    return {"key": None, "fields": fields}
