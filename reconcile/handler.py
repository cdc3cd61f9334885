"""
One reconciliation pass: routes an Event to the cherry-pick, merge, close, QA review or validation
flow, performs the Jira side effects and records everything the pull request should show in a
Decision. apply_decision then pushes labels and the rendered comment to GitHub.
"""
import logging
from typing import Dict, Any, Optional, Set, List
from correlate.digest import DigestError
from correlate.linker import jira_key_from_title, bz_id_from_title, project_of, NO_ISSUE_KEY
from correlate.models import Event
from ingest.errors import TrackerError, GitHubError
from normalize.models import issue_link, bugzilla_link, unique_states
from normalize.util import (
    DEFECT_PROJECT,
    is_issue_allowed,
    issue_state,
    issue_severity,
    issue_labels,
    issue_legacy_url,
    issue_qa_contact_email,
    legacy_bug_id_from_url,
)
from policy.dependents import get_dependents, DependentNotFound, DependentLookupError
from policy.options import BranchOptions
from policy.validation import validate_bug
from reconcile.cherrypick import clone_issue, clone_legacy_bug, legacy_labels, retitle
from reconcile.decision import (
    Decision,
    Section,
    MANAGED_LABELS,
    SEVERITY_LABELS,
    JIRA_VALID_REF,
    JIRA_VALID_BUG,
    JIRA_INVALID_BUG,
    BUGZILLA_VALID_BUG,
    severity_label,
)
from reconcile.links import pull_request_link, ensure_link, remove_links, get_links, check_merge_completion
from reconcile.transitions import apply_state
from report.autolink import insert_links_into_comment, issue_keys_in
from report.renderer import render_decision

logger = logging.getLogger(__name__)

# visibility for comments the engine leaves on Jira issues
PRIVATE_COMMENT_VISIBILITY = {"type": "group", "value": "Red Hat Employee"}


class _Abort(Exception):
    """Ends the pass; the reason has already been recorded on the decision."""


class _Pass:
    """State shared by the flows of one reconciliation pass."""

    def __init__(self, event: Event, options: BranchOptions, jira, gh, bugzilla, recognized_repos: Set[str]):
        self.event = event
        self.options = options
        self.jira = jira
        self.gh = gh
        self.bugzilla = bugzilla
        self.recognized_repos = recognized_repos
        self.decision = Decision(event)

    @property
    def bugzilla_url(self) -> str:
        return self.bugzilla.endpoint if self.bugzilla is not None else ""

    def link(self, key: str) -> str:
        return issue_link(key, self.jira.base_url)

    def remote_error(self, action: str, key: str, exc: Exception):
        logger.warning("Error %s for %s: %s", action, key, exc)
        self.decision.add_section("remote_error", action=action, key=key, endpoint=self.jira.base_url, error=str(exc))
        raise _Abort()

    def fetch_issue(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            issue = self.jira.get_issue(key)
        except TrackerError as exc:
            self.remote_error("searching", key, exc)
        if issue is None:
            self.decision.add_section("not_found", key=key, jira_url=self.jira.base_url)
        return issue

    def allowed(self, issue: Dict[str, Any], announce: bool) -> bool:
        levels = self.options.allowed_security_levels
        if is_issue_allowed(issue, levels):
            return True
        logger.info("%s is outside the allowed security levels for %s", issue.get("key"), self.event.repo_name)
        if announce:
            self.decision.add_section("security_restricted", issue_link=self.link(issue.get("key")), levels=list(levels))
        return False

    def move(self, issue: Dict[str, Any], target):
        """Apply `target` to `issue`; returns the StateChange, recording remote failures."""
        try:
            change = apply_state(self.jira, issue, target, self.options.allowed_security_levels)
        except TrackerError as exc:
            self.remote_error(f"updating to the {target} state", issue.get("key"), exc)
        if change.error:
            self.decision.add_section("transition_error", issue_link=self.link(issue.get("key")), target=str(target), error=change.error)
        elif change.changed:
            self.decision.transition = target
        return change


def _current_labels(gh, event: Event) -> List[str]:
    try:
        return gh.get_issue_labels(event.org, event.repo, event.number)
    except GitHubError as exc:
        # labels are re-evaluated on the next pass; reporting matters more than the label check
        logger.warning("Could not read labels of %s#%s: %s", event.repo_name, event.number, exc)
        return []


def _handle_validation(p: _Pass):
    event, d = p.event, p.decision
    d.current_labels = _current_labels(p.gh, event)

    if event.missing:
        had_labels = any(d.has_label(l) for l in MANAGED_LABELS)
        for label in MANAGED_LABELS:
            d.drop_label(label)
        if had_labels or event.refresh:
            d.add_section("no_reference")
        return

    if event.no_issue:
        for label in MANAGED_LABELS:
            d.drop_label(label)
        d.ensure_label(JIRA_VALID_REF)
        d.add_section("no_issue")
        return

    issue = p.fetch_issue(event.key)
    if issue is None:
        for label in MANAGED_LABELS:
            d.drop_label(label)
        return
    if not p.allowed(issue, announce=event.opened or event.refresh):
        return

    d.ensure_label(JIRA_VALID_REF)
    if not event.is_bug:
        for label in MANAGED_LABELS:
            if label != JIRA_VALID_REF:
                d.drop_label(label)
        d.add_section("valid_issue", issue_link=p.link(event.key))
        return

    _apply_severity_label(d, issue)
    if p.bugzilla is not None:
        _refresh_legacy_labels(p, issue)

    dependents = []
    if p.options.expects_dependents:
        try:
            dependents = get_dependents(issue, p.jira, p.bugzilla)
        except DependentNotFound as exc:
            d.add_section("not_found", key=exc.key, jira_url=p.jira.base_url)
            return
        except DependentLookupError as exc:
            p.remote_error(f"searching for dependent bug {exc.key}", exc.parent, exc)

    result = validate_bug(issue, dependents, p.options, p.jira.base_url, p.bugzilla_url)
    if result.valid:
        _handle_valid_bug(p, issue, result)
    else:
        _handle_invalid_bug(p, result)


def _handle_valid_bug(p: _Pass, issue: Dict[str, Any], result):
    event, d = p.event, p.decision
    d.ensure_label(JIRA_VALID_BUG)
    d.ensure_label(BUGZILLA_VALID_BUG)
    d.drop_label(JIRA_INVALID_BUG)

    start = len(d.sections)
    moved_to = None
    target = p.options.state_after_validation
    if target is not None:
        change = p.move(issue, target)
        if change.changed:
            moved_to = str(target)

    link_added = False
    if p.options.add_external_link:
        link = pull_request_link(event)
        try:
            link_added = ensure_link(p.jira, event.key, link)
        except TrackerError as exc:
            p.remote_error("adding this pull request to the external tracker bugs", event.key, exc)
        if link_added:
            d.links_added.append(link)

    # the valid report leads any transition failure recorded above
    d.sections.insert(start, Section("bug_valid", issue_link=p.link(event.key), moved_to=moved_to, validations=list(result.validations), link_added=link_added))


def _handle_invalid_bug(p: _Pass, result):
    event, d = p.event, p.decision
    retained = d.has_label(JIRA_VALID_BUG) and p.gh.was_label_added_by_human(event.org, event.repo, event.number, JIRA_VALID_BUG)
    listed = list(result.validations) + list(result.reasons) if result.invalid_dependent_project else list(result.reasons)
    d.add_section("bug_invalid", issue_link=p.link(event.key), listed=listed, invalid_dependent_project=result.invalid_dependent_project)
    if retained:
        logger.info("Keeping manually added %s on %s#%s", JIRA_VALID_BUG, event.repo_name, event.number)
        d.add_section("label_retained", label=JIRA_VALID_BUG)
        return
    d.drop_label(JIRA_VALID_BUG)
    d.drop_label(BUGZILLA_VALID_BUG)
    d.ensure_label(JIRA_INVALID_BUG)


def _apply_severity_label(d: Decision, issue: Dict[str, Any]):
    wanted = severity_label(issue_severity(issue))
    for label in SEVERITY_LABELS.values():
        if label != wanted:
            d.drop_label(label)
    if wanted:
        d.ensure_label(wanted)


def _refresh_legacy_labels(p: _Pass, issue: Dict[str, Any]):
    """Bring security labels on a bridged issue up to date with its legacy bug."""
    bug_id = legacy_bug_id_from_url(issue_legacy_url(issue) or "")
    if bug_id is None:
        return
    key = issue.get("key")
    try:
        bug = p.bugzilla.get_bug(bug_id)
        if bug is None:
            return
        wanted = legacy_labels(p.bugzilla, bug)
        current = issue_labels(issue)
        if all(label in current for label in wanted):
            return
        labels = sorted(set(current) | set(wanted))
        p.jira.update_issue(key, {"labels": labels})
    except TrackerError as exc:
        p.remote_error("updating labels from the linked bugzilla bug", key, exc)
    issue.setdefault("fields", {})["labels"] = labels
    logger.info("Updated labels on %s from bugzilla bug %s", key, bug_id)


def _handle_merge(p: _Pass):
    event, d, options = p.event, p.decision, p.options
    target = options.state_after_merge
    if target is None or event.missing or event.no_issue or not event.is_bug:
        return
    issue = p.fetch_issue(event.key)
    if issue is None or not p.allowed(issue, announce=False):
        return

    current = issue_state(issue)
    if target.matches(current):
        logger.debug("%s is already in the post-merge state %s", event.key, target)
        return
    if options.valid_states is not None or options.state_after_validation is not None:
        expected = list(options.valid_states or [])
        if options.state_after_validation is not None:
            expected.append(options.state_after_validation)
        if not any(s.matches(current) for s in unique_states(expected)):
            d.add_section("merge_unrecognized_state", issue_link=p.link(event.key), state=str(current), target=str(target))
            return

    try:
        status = check_merge_completion(p.jira, p.gh, event.key, p.recognized_repos)
    except TrackerError as exc:
        p.remote_error("checking the state of linked pull requests", event.key, exc)

    if status.unmerged:
        d.add_section("merge_progress", issue_link=p.link(event.key), merged=status.merged, unmerged=status.unmerged, target=str(target), moved=False)
        return
    if not status.merged:
        logger.debug("No merged pull requests are linked to %s", event.key)
        return
    if p.move(issue, target).changed:
        d.add_section("merge_progress", issue_link=p.link(event.key), merged=status.merged, unmerged=[], target=str(target), moved=True)


def _handle_close(p: _Pass):
    event, d, options = p.event, p.decision, p.options
    if event.missing or event.no_issue or not options.add_external_link:
        return
    try:
        issue = p.jira.get_issue(event.key)
    except TrackerError as exc:
        p.remote_error("searching", event.key, exc)
    if issue is None or not p.allowed(issue, announce=False):
        return

    try:
        removed = remove_links(p.jira, event.key, event.pr_url)
    except TrackerError as exc:
        p.remote_error("removing this pull request from the external tracker bugs", event.key, exc)
    if not removed:
        logger.debug("%s has no link to %s", event.key, event.pr_url)
        return
    d.links_removed.extend(removed)
    section = d.add_section("link_removed", issue_link=p.link(event.key), moved_to=None)

    target = options.state_after_close
    if target is None or not event.is_bug:
        return
    try:
        remaining = get_links(p.jira, event.key)
    except TrackerError as exc:
        p.remote_error("searching", event.key, exc)
    if remaining:
        return
    change = p.move(issue, target)
    if not change.changed:
        return
    section.context["moved_to"] = str(target)
    try:
        p.jira.add_comment(
            event.key,
            f"Bug status changed to {target.status} as previous linked PR {event.pr_url} has been closed",
            PRIVATE_COMMENT_VISIBILITY,
        )
    except TrackerError as exc:
        p.remote_error("commenting", event.key, exc)


def _handle_qa_review(p: _Pass):
    event, d = p.event, p.decision
    if event.missing:
        d.add_section("no_reference")
        return
    if event.no_issue:
        d.add_section("no_issue")
        return
    issue = p.fetch_issue(event.key)
    if issue is None or not p.allowed(issue, announce=True):
        return
    email = issue_qa_contact_email(issue)
    if not email:
        d.add_section("no_qa_contact", issue_link=p.link(event.key))
        return
    logins = p.gh.find_logins_by_email(email)
    d.add_section("qa_review", email=email, logins=logins)


def _record_clone(p: _Pass, result, original_link: str, old_reference: str):
    d = p.decision
    title = retitle(p.event.title, old_reference, result.key)
    d.clone_key = result.key
    d.retitle = title
    if not result.created:
        d.add_section("clone_reused", original_link=original_link, title=title)
        return
    d.add_section("clone_created", original_link=original_link, clone_link=p.link(result.key), title=title)
    if result.target_version_error:
        d.add_warning("clone_target_version_warning", error=result.target_version_error)


def _has_target_version(p: _Pass, original_link: str, key: str = "") -> bool:
    """Clones are matched on the branch's target version; without one there is nothing to match."""
    if p.options.target_version:
        return True
    logger.info("No target version is configured for %s, not cloning %s", p.event.base_ref, original_link)
    p.decision.add_section("clone_no_target_version", original_link=original_link, key=key)
    return False


def _handle_legacy_cherrypick(p: _Pass, bug_id: int):
    if p.bugzilla is None:
        logger.warning("Cherry-picked pull request references bugzilla bug %s but no bugzilla client is configured", bug_id)
        return
    if not _has_target_version(p, bugzilla_link(bug_id, p.bugzilla.endpoint)):
        return
    try:
        result = clone_legacy_bug(p.jira, p.bugzilla, bug_id, p.options.target_version)
    except TrackerError as exc:
        p.remote_error("creating a Jira clone", str(bug_id), exc)
    if result is None:
        p.decision.add_section("legacy_not_found", bug_id=bug_id, bugzilla_url=p.bugzilla.endpoint)
        return
    _record_clone(p, result, bugzilla_link(bug_id, p.bugzilla.endpoint), f"Bug {bug_id}")


def _handle_cherrypick(p: _Pass):
    event, d = p.event, p.decision
    if event.cherrypick_cmd:
        key = event.key
    else:
        if event.cherrypick_from is None:
            raise DigestError(f"{event.repo_name}#{event.number} is a cherry-pick without a source pull request number")
        try:
            parent = p.gh.get_pull_request(event.org, event.repo, event.cherrypick_from)
        except GitHubError as exc:
            logger.warning("Could not read cherry-picked pull request %s: %s", event.cherrypick_from, exc)
            d.add_section(
                "cherrypick_parent_error",
                url=f"https://github.com/{event.org}/{event.repo}/pull/{event.cherrypick_from}",
                error=str(exc),
            )
            return
        parent_title = parent.get("title") or ""
        key, missing, is_bug = jira_key_from_title(parent_title)
        if missing or key == NO_ISSUE_KEY or not is_bug:
            bug_id, not_found = bz_id_from_title(parent_title)
            if not_found:
                logger.debug("Pull request %s references no bug, not cloning", event.cherrypick_from)
                return
            _handle_legacy_cherrypick(p, bug_id)
            return

    issue = p.fetch_issue(key)
    if issue is None or not p.allowed(issue, announce=event.opened or event.refresh or event.cherrypick_cmd):
        return
    if not _has_target_version(p, p.link(key), key):
        return
    try:
        result = clone_issue(p.jira, issue, p.options.target_version)
    except TrackerError as exc:
        p.remote_error("cloning bug for cherrypick", key, exc)
    _record_clone(p, result, p.link(key), key)


def _link_issue_references(p: _Pass):
    """Link bare keys of the referenced issue's project and the defect project in the triggering text."""
    event = p.event
    if event.closed or not event.body:
        return
    projects = {DEFECT_PROJECT}
    if event.key and not event.no_issue:
        projects.add(project_of(event.key))
    keys = [key for key in issue_keys_in(event.body) if project_of(key) in projects]
    linked = insert_links_into_comment(event.body, keys, p.jira.base_url)
    if linked != event.body:
        p.decision.linked_body = linked


def handle_event(
    event: Event,
    options: BranchOptions,
    jira,
    gh,
    bugzilla=None,
    recognized_repos: Optional[Set[str]] = None,
    disabled_projects: Optional[List[str]] = None,
) -> Decision:
    """
    Run one reconciliation pass for `event`.

    Parameters:
        event: digested event.
        options: resolved options for the event's branch.
        jira, gh, bugzilla: collaborators (bugzilla optional).
        recognized_repos: "org/repo" names whose pull requests count for merge completion.
        disabled_projects: Jira projects this deployment ignores.

    Returns:
        the Decision; Jira side effects have already been applied.
    """
    p = _Pass(event, options, jira, gh, bugzilla, set(recognized_repos or {event.repo_name}))
    if event.key and event.key.rsplit("-", 1)[0] in (disabled_projects or []):
        logger.debug("Project of %s is disabled, ignoring", event.key)
        return p.decision

    _link_issue_references(p)
    if event.cherrypick:
        flow = _handle_cherrypick
    elif event.merged:
        flow = _handle_merge
    elif event.closed:
        flow = _handle_close
    elif event.cc:
        flow = _handle_qa_review
    else:
        flow = _handle_validation
    logger.info("Reconciling %s#%s (%s) with %s", event.repo_name, event.number, event.key or "no issue", flow.__name__.lstrip("_"))
    try:
        flow(p)
    except _Abort:
        logger.debug("Reconciliation of %s#%s stopped after a reported failure", event.repo_name, event.number)
    return p.decision


def apply_decision(decision: Decision, gh):
    """Push the linked text, label changes and the rendered report to the pull request."""
    event = decision.event
    if decision.linked_body is not None:
        if event.comment_id is not None:
            gh.edit_comment(event.org, event.repo, event.comment_id, decision.linked_body)
        else:
            gh.update_pull_request(event.org, event.repo, event.number, decision.linked_body)
    for label in decision.labels_to_remove:
        gh.remove_label(event.org, event.repo, event.number, label)
    for label in decision.labels_to_add:
        gh.add_label(event.org, event.repo, event.number, label)
    comment = render_decision(decision)
    if comment:
        gh.create_comment(event.org, event.repo, event.number, comment)


def reconcile(event: Event, options: BranchOptions, jira, gh, bugzilla=None, recognized_repos: Optional[Set[str]] = None, disabled_projects: Optional[List[str]] = None) -> Decision:
    """handle_event followed by apply_decision."""
    decision = handle_event(event, options, jira, gh, bugzilla, recognized_repos, disabled_projects)
    apply_decision(decision, gh)
    return decision


__all__ = ["handle_event", "apply_decision", "reconcile", "PRIVATE_COMMENT_VISIBILITY"]
