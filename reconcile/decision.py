"""
Structured outcome of one reconciliation pass.

The engine records what it decided (labels, report sections, transitions, link changes, clones,
warnings, the triggering text with issue keys linked); report.renderer turns the sections into
markdown and reconcile.handler.apply_decision pushes labels, edits and the comment to GitHub.
"""
import re
from typing import List, Optional, Dict, Any
from normalize.models import BugState, ExternalLink

JIRA_VALID_REF = "jira/valid-reference"
JIRA_VALID_BUG = "jira/valid-bug"
JIRA_INVALID_BUG = "jira/invalid-bug"
BUGZILLA_VALID_BUG = "bugzilla/valid-bug"

SEVERITY_CRITICAL = "jira/severity-critical"
SEVERITY_IMPORTANT = "jira/severity-important"
SEVERITY_MODERATE = "jira/severity-moderate"
SEVERITY_LOW = "jira/severity-low"
SEVERITY_INFORMATIONAL = "jira/severity-informational"

SEVERITY_LABELS = {
    "critical": SEVERITY_CRITICAL,
    "important": SEVERITY_IMPORTANT,
    "moderate": SEVERITY_MODERATE,
    "low": SEVERITY_LOW,
    "informational": SEVERITY_INFORMATIONAL,
}

_HTML_TAG = re.compile(r"<[^>]*>")

# every label this engine owns on a pull request
MANAGED_LABELS = [JIRA_VALID_REF, JIRA_VALID_BUG, BUGZILLA_VALID_BUG, JIRA_INVALID_BUG] + list(SEVERITY_LABELS.values())


def severity_label(severity: Optional[str]) -> Optional[str]:
    """
    Map a Jira severity value to its label. Jira prefixes the name with an icon, e.g.
    '<img alt="" src="/images/icons/priorities/critical.svg"> Critical'; the name is the last word.
    """
    if not severity:
        return None
    words = _HTML_TAG.sub(" ", severity).split()
    return SEVERITY_LABELS.get(words[-1].lower()) if words else None


class Section:
    """One block of the user-facing report: a template name plus its values."""

    def __init__(self, kind: str, **context: Any):
        self.kind = kind
        self.context = context

    def __repr__(self):
        return f"Section({self.kind!r}, {self.context!r})"


class Decision:
    """
    Parameters:
        event: the Event being reconciled.
        current_labels: labels on the pull request when the pass started.
    """
    def __init__(self, event, current_labels: Optional[List[str]] = None):
        self.event = event
        self.current_labels: List[str] = list(current_labels or [])
        self.labels_to_add: List[str] = []
        self.labels_to_remove: List[str] = []
        self.sections: List[Section] = []
        self.warnings: List[Section] = []
        self.transition: Optional[BugState] = None
        self.links_added: List[ExternalLink] = []
        self.links_removed: List[ExternalLink] = []
        self.clone_key: Optional[str] = None
        self.retitle: Optional[str] = None
        self.linked_body: Optional[str] = None

    def has_label(self, label: str) -> bool:
        return label in self.current_labels

    def ensure_label(self, label: str):
        if label in self.labels_to_remove:
            self.labels_to_remove.remove(label)
        if label not in self.current_labels and label not in self.labels_to_add:
            self.labels_to_add.append(label)

    def drop_label(self, label: str):
        if label in self.labels_to_add:
            self.labels_to_add.remove(label)
        if label in self.current_labels and label not in self.labels_to_remove:
            self.labels_to_remove.append(label)

    def add_section(self, kind: str, **context: Any) -> Section:
        section = Section(kind, **context)
        self.sections.append(section)
        return section

    def add_warning(self, kind: str, **context: Any) -> Section:
        section = Section(kind, **context)
        self.warnings.append(section)
        return section

    @property
    def final_labels(self) -> List[str]:
        labels = [l for l in self.current_labels if l not in self.labels_to_remove]
        return labels + [l for l in self.labels_to_add if l not in labels]

    @property
    def has_report(self) -> bool:
        return bool(self.sections or self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pull_request": f"{self.event.org}/{self.event.repo}#{self.event.number}",
            "key": self.event.key,
            "labels_added": list(self.labels_to_add),
            "labels_removed": list(self.labels_to_remove),
            "sections": [s.kind for s in self.sections],
            "warnings": [w.kind for w in self.warnings],
            "transition": str(self.transition) if self.transition else None,
            "links_added": [l.url for l in self.links_added],
            "links_removed": [l.url for l in self.links_removed],
            "clone": self.clone_key,
            "retitle": self.retitle,
            "body_linked": self.linked_body is not None,
        }


__all__ = [
    "JIRA_VALID_REF",
    "JIRA_VALID_BUG",
    "JIRA_INVALID_BUG",
    "BUGZILLA_VALID_BUG",
    "SEVERITY_LABELS",
    "MANAGED_LABELS",
    "severity_label",
    "Section",
    "Decision",
]
