"""
Parsers mapping free text (PR titles, PR bodies, comments) to issue references.
- issue keys: `PROJECT-123:` with the colon directly after the number, first match wins
- explicit opt-out: a leading `NO-ISSUE:` / `NO-JIRA:`
- legacy bugs: `Bug 123:`
- backport markers left by the cherry-pick tooling in PR bodies
"""
import re
from typing import Optional, Tuple
from normalize.util import DEFECT_PROJECT

# sentinel key for a PR that explicitly references no issue
NO_ISSUE_KEY = "NO-JIRA"

# a reference may open the text or follow whitespace, a bracketed prefix or a quote (Revert: "...")
_REF_PREFIX = r"(?:^|(?<=[\s\[\]\"'(]))"

ISSUE_KEY_PATTERN = re.compile(_REF_PREFIX + r"([A-Z][A-Z0-9]+-\d+):")
LEGACY_BUG_PATTERN = re.compile(_REF_PREFIX + r"Bug (\d+):")
NO_ISSUE_PATTERN = re.compile(r"^\s*(?:no-jira|no-issue)\b", re.IGNORECASE)

BACKPORT_MARKER_PATTERN = re.compile(
    r"This is an? (?:automated cherry-pick|manually created cherry-?pick) of #(\S*?)\.?(?:\s|$)"
)

REFRESH_COMMAND = re.compile(r"(?mi)^/jira refresh\s*$")
QA_REVIEW_COMMAND = re.compile(r"(?mi)^/jira cc-qa\s*$")
CHERRYPICK_COMMAND = re.compile(r"(?mi)^/jira cherry-?pick\s+([A-Z][A-Z0-9]+-\d+)\s*$")


def jira_key_from_title(title: str) -> Tuple[str, bool, bool]:
    """
    Return (key, not_found, is_bug) for the first issue reference in `title`.

    A leading NO-ISSUE/NO-JIRA marker yields NO_ISSUE_KEY regardless of later references.
    """
    if not title:
        return "", True, False
    if NO_ISSUE_PATTERN.match(title):
        return NO_ISSUE_KEY, False, False
    m = ISSUE_KEY_PATTERN.search(title)
    if not m:
        return "", True, False
    key = m.group(1)
    return key, False, key.split("-", 1)[0] == DEFECT_PROJECT


def bz_id_from_title(title: str) -> Tuple[int, bool]:
    """Return (bug_id, not_found) for the first `Bug NNN:` reference in `title`."""
    m = LEGACY_BUG_PATTERN.search(title or "")
    if not m:
        return 0, True
    return int(m.group(1)), False


def backport_source(body: str) -> Tuple[bool, Optional[str]]:
    """
    Look for a backport marker in a PR body.

    Returns:
        (found, raw source number text). The caller decides whether the text is a usable number.
    """
    m = BACKPORT_MARKER_PATTERN.search(body or "")
    if not m:
        return False, None
    return True, m.group(1)


def project_of(key: str) -> str:
    return (key or "").rsplit("-", 1)[0]


__all__ = [
    "NO_ISSUE_KEY",
    "jira_key_from_title",
    "bz_id_from_title",
    "backport_source",
    "project_of",
    "REFRESH_COMMAND",
    "QA_REVIEW_COMMAND",
    "CHERRYPICK_COMMAND",
]
