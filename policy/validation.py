"""
Validity engine.

Each configured predicate is an independent check over a shared read-only context that appends
either a satisfied description or a failure reason to the result. All checks always run, in a
fixed order, so a single report lists every problem at once. Checks over dependents iterate
predicate-major, dependent-minor.
"""
from typing import List, Dict, Any, Callable
from normalize.models import BugState, Dependent, ValidationResult, ORIGIN_JIRA, issue_link, pretty_states, unique_states
from normalize.util import DEFECT_PROJECT, issue_state, issue_target_version
from policy.options import BranchOptions

CLOSED_STATUS = "closed"


class ValidationContext:
    """Read-only inputs shared by every check."""

    def __init__(self, issue: Dict[str, Any], dependents: List[Dependent], options: BranchOptions, jira_url: str, bugzilla_url: str):
        self.issue = issue
        self.dependents = dependents
        self.options = options
        self.jira_url = jira_url
        self.bugzilla_url = bugzilla_url
        self.state = issue_state(issue)
        self.target_version = issue_target_version(issue)
        self.issue_link = issue_link(issue.get("key"), jira_url)

    def dep_link(self, dep: Dependent) -> str:
        return dep.link(self.jira_url, self.bugzilla_url)

    @property
    def in_project_dependents(self) -> List[Dependent]:
        return [d for d in self.dependents if _in_required_project(d)]


def _in_required_project(dep: Dependent) -> bool:
    return dep.origin != ORIGIN_JIRA or dep.key.startswith(f"{DEFECT_PROJECT}-")


def _matches_any(states: List[BugState], actual: BugState) -> bool:
    return any(s.matches(actual) for s in states)


def check_open(ctx: ValidationContext, result: ValidationResult):
    if ctx.options.is_open is None:
        return
    is_open = ctx.state.status.lower() != CLOSED_STATUS
    if ctx.options.is_open and is_open:
        result.validations.append("bug is open, matching expected state (open)")
    elif not ctx.options.is_open and not is_open:
        result.validations.append("bug isn't open, matching expected state (not open)")
    elif ctx.options.is_open:
        result.reasons.append("expected the bug to be open, but it isn't")
    else:
        result.reasons.append("expected the bug to not be open, but it is")


def check_target_version(ctx: ValidationContext, result: ValidationResult):
    wanted = ctx.options.target_version
    if wanted is None:
        return
    if ctx.target_version is None:
        result.reasons.append(f'expected the bug to target the "{wanted}" version, but no target version was set')
    elif ctx.target_version != wanted:
        result.reasons.append(f'expected the bug to target the "{wanted}" version, but it targets "{ctx.target_version}" instead')
    else:
        result.validations.append(f"bug target version ({ctx.target_version}) matches configured target version for branch ({wanted})")


def check_valid_states(ctx: ValidationContext, result: ValidationResult):
    if ctx.options.valid_states is None:
        return
    allowed = list(ctx.options.valid_states)
    if ctx.options.state_after_validation is not None:
        allowed.append(ctx.options.state_after_validation)
    allowed = unique_states(allowed)
    if _matches_any(allowed, ctx.state):
        result.validations.append(f"bug is in the state {ctx.state}, which is one of the valid states ({pretty_states(allowed)})")
    else:
        result.reasons.append(f"expected the bug to be in one of the following states: {pretty_states(allowed)}, but it is {ctx.state} instead")


def check_dependent_states(ctx: ValidationContext, result: ValidationResult):
    states = ctx.options.dependent_bug_states
    if states is None:
        return
    for dep in ctx.in_project_dependents:
        if _matches_any(states, dep.state):
            result.validations.append(f"dependent bug {ctx.dep_link(dep)} is in the state {dep.state}, which is one of the valid states ({pretty_states(states)})")
        else:
            result.reasons.append(f"expected dependent {ctx.dep_link(dep)} to be in one of the following states: {pretty_states(states)}, but it is {dep.state} instead")


def check_dependent_target_versions(ctx: ValidationContext, result: ValidationResult):
    versions = ctx.options.dependent_bug_target_versions
    if versions is None:
        return
    listed = ", ".join(versions)
    for dep in ctx.in_project_dependents:
        if dep.target_version is None:
            result.reasons.append(f"expected dependent {ctx.dep_link(dep)} to target a version in {listed}, but no target version was set")
        elif dep.target_version in versions:
            result.validations.append(f'dependent {ctx.dep_link(dep)} targets the "{dep.target_version}" version, which is one of the valid target versions: {listed}')
        else:
            result.reasons.append(f'expected dependent {ctx.dep_link(dep)} to target a version in {listed}, but it targets "{dep.target_version}" instead')


def check_dependent_projects(ctx: ValidationContext, result: ValidationResult):
    for dep in ctx.dependents:
        if not _in_required_project(dep):
            result.invalid_dependent_project = True
            result.reasons.append(f"dependent bug {dep.key} is not in the required `{DEFECT_PROJECT}` project")


def check_has_dependents(ctx: ValidationContext, result: ValidationResult):
    opts = ctx.options
    if not opts.expects_dependents:
        return
    # dependents outside the required project still count here
    if ctx.dependents:
        result.validations.append("bug has dependents")
        return
    if opts.dependent_bug_states is not None and opts.dependent_bug_target_versions is not None:
        expectation = (
            f"a bug targeting a version in {', '.join(opts.dependent_bug_target_versions)} "
            f"and in one of the following states: {pretty_states(opts.dependent_bug_states)}"
        )
    elif opts.dependent_bug_states is not None:
        expectation = f"a bug in one of the following states: {pretty_states(opts.dependent_bug_states)}"
    else:
        expectation = f"a bug targeting a version in {', '.join(opts.dependent_bug_target_versions)}"
    result.reasons.append(f"expected {ctx.issue_link} to depend on {expectation}, but no dependents were found")


CHECKS: List[Callable[[ValidationContext, ValidationResult], None]] = [
    check_open,
    check_target_version,
    check_valid_states,
    check_dependent_states,
    check_dependent_target_versions,
    check_dependent_projects,
    check_has_dependents,
]


def validate_bug(issue: Dict[str, Any], dependents: List[Dependent], options: BranchOptions, jira_url: str, bugzilla_url: str = "") -> ValidationResult:
    """
    Evaluate every configured predicate against `issue` and its dependents.

    Parameters:
        issue: raw Jira issue dict.
        dependents: normalized dependents (see policy.dependents.get_dependents).
        options: resolved branch options; unset predicates are skipped.
        jira_url, bugzilla_url: tracker web roots used to link issues in messages.

    Returns:
        a fresh ValidationResult; `valid` is True iff no reasons were recorded.
    """
    ctx = ValidationContext(issue, dependents or [], options, jira_url, bugzilla_url)
    result = ValidationResult()
    for check in CHECKS:
        check(ctx, result)
    return result


__all__ = ["CHECKS", "ValidationContext", "validate_bug"]
