"""
State transition executor: moves an issue to a desired (status, resolution) pair, doing nothing
when the issue is already there.
"""
import logging
from typing import Dict, Any, Optional, List
from normalize.models import BugState
from normalize.util import issue_state, is_issue_allowed

logger = logging.getLogger(__name__)


class StateChange:
    """
    Result of apply_state.

    changed: an update was written.
    skipped: the issue was missing or outside the allowed security levels; nothing was attempted.
    error: the desired status is not reachable from the current one (issue left untouched).
    """
    def __init__(self, target: BugState, changed: bool = False, skipped: bool = False, error: Optional[str] = None):
        self.target = target
        self.changed = changed
        self.skipped = skipped
        self.error = error

    def __repr__(self):
        return f"StateChange({self.target!r}, changed={self.changed}, skipped={self.skipped}, error={self.error!r})"


def _find_transition(transitions: List[Dict[str, Any]], status: str) -> Optional[Dict[str, Any]]:
    for t in transitions:
        if ((t.get("to") or {}).get("name") or "").lower() == status.lower():
            return t
    return None


def apply_state(jira, issue: Optional[Dict[str, Any]], desired: BugState, allowed_levels: Optional[List[str]] = None) -> StateChange:
    """
    Move `issue` to `desired`.

    The status is changed through the workflow transition whose target status matches
    case-insensitively; the resolution, when one is desired and differs, is written afterwards.
    Remote failures propagate as TrackerError.
    """
    if issue is None or not is_issue_allowed(issue, allowed_levels):
        return StateChange(desired, skipped=True)

    key = issue.get("key")
    current = issue_state(issue)
    if desired.matches(current):
        logger.debug("%s is already in state %s", key, current)
        return StateChange(desired)

    status_differs = bool(desired.status) and desired.status.lower() != current.status.lower()
    resolution_differs = bool(desired.resolution) and desired.resolution.lower() != current.resolution.lower()

    if status_differs:
        transitions = jira.get_transitions(key)
        transition = _find_transition(transitions, desired.status)
        if transition is None:
            names = [(t.get("to") or {}).get("name") for t in transitions]
            return StateChange(
                desired,
                error=f"No transition status with name {desired.status} could be found. Please select from the following list: {', '.join(n for n in names if n)}",
            )
        jira.do_transition(key, transition.get("id"))
    if resolution_differs:
        jira.update_issue(key, {"resolution": {"name": desired.resolution}})

    logger.info("Moved %s from %s to %s", key, current, desired)
    return StateChange(desired, changed=True)


__all__ = ["StateChange", "apply_state"]
