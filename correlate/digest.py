"""
Event digester: turns raw GitHub webhook payloads into canonical Events, or None when the
payload does not call for a reconciliation pass.
"""
import json
import logging
from typing import Dict, Any, Optional
from correlate.linker import (
    jira_key_from_title,
    backport_source,
    project_of,
    REFRESH_COMMAND,
    QA_REVIEW_COMMAND,
    CHERRYPICK_COMMAND,
)
from correlate.models import Event
from normalize.util import DEFECT_PROJECT
from report.renderer import render_section, render_response

logger = logging.getLogger(__name__)

PR_ACTIONS = ("opened", "edited", "closed")


class DigestError(ValueError):
    """A payload is structurally unusable (bad backport marker, unreadable change description)."""


# helper: repository owner/name from a payload
def _repo_coordinates(payload: Dict[str, Any], pr: Dict[str, Any]):
    repo = payload.get("repository") or ((pr.get("base") or {}).get("repo")) or {}
    return (repo.get("owner") or {}).get("login", ""), repo.get("name", "")


# helper: previous title carried in an edit's change description, None when absent
def _previous_title(payload: Dict[str, Any]) -> Optional[str]:
    changes = payload.get("changes")
    if not changes:
        return None
    if isinstance(changes, (str, bytes)):
        try:
            changes = json.loads(changes)
        except ValueError as exc:
            raise DigestError(f"could not parse change description: {exc}") from exc
    if not isinstance(changes, dict):
        raise DigestError("change description is not an object")
    return ((changes.get("title") or {}).get("from")) or ""


def _backport_number(body: str) -> Optional[int]:
    found, raw = backport_source(body)
    if not found:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise DigestError(f"backport marker does not name a pull request number: {raw!r}") from exc


def digest_pr(payload: Dict[str, Any], validate_by_default: bool = False) -> Optional[Event]:
    """
    Digest a pull_request webhook.

    Parameters:
        payload: decoded webhook body.
        validate_by_default: emit events for PRs whose title references no issue.

    Returns:
        an Event, or None when nothing needs reconciling.
    """
    action = payload.get("action")
    if action not in PR_ACTIONS:
        logger.debug("Ignoring pull request action %r", action)
        return None

    pr = payload.get("pull_request") or {}
    org, repo = _repo_coordinates(payload, pr)
    title = pr.get("title") or ""
    event = Event(
        org=org,
        repo=repo,
        number=pr.get("number") or payload.get("number"),
        base_ref=(pr.get("base") or {}).get("ref", ""),
        opened=action == "opened",
        closed=action == "closed",
        merged=action == "closed" and bool(pr.get("merged")),
        state=pr.get("state") or "",
        body=pr.get("body") or "",
        title=title,
        html_url=pr.get("html_url") or "",
        login=(pr.get("user") or {}).get("login", ""),
    )

    if action == "opened":
        source = _backport_number(event.body)
        if source is not None:
            event.cherrypick = True
            event.cherrypick_from = source

    event.key, event.missing, event.is_bug = jira_key_from_title(title)
    previous = _previous_title(payload)

    if event.missing:
        # a title that used to reference an issue and no longer does still needs its labels cleaned up
        if previous is not None:
            if jira_key_from_title(previous)[1]:
                return None
            return event
        if not validate_by_default and not event.cherrypick:
            logger.debug("%s#%s references no issue, ignoring", event.repo_name, event.number)
            return None
        return event

    if previous is not None and jira_key_from_title(previous)[0] == event.key:
        logger.debug("Title edit on %s#%s keeps reference %s, ignoring", event.repo_name, event.number, event.key)
        return None
    return event


def digest_comment(gh, payload: Dict[str, Any]) -> Optional[Event]:
    """
    Digest an issue_comment webhook carrying a /jira command.

    Commands on plain issues are answered directly and produce no event. The pull request is
    fetched from `gh` for its title, base branch and merge state.
    """
    if payload.get("action") != "created":
        return None
    comment = payload.get("comment") or {}
    body = comment.get("body") or ""

    refresh = cc = False
    cherrypick_match = None
    if REFRESH_COMMAND.search(body):
        refresh = True
    elif QA_REVIEW_COMMAND.search(body):
        cc = True
    else:
        cherrypick_match = CHERRYPICK_COMMAND.search(body)
        if not cherrypick_match:
            return None

    issue = payload.get("issue") or {}
    org, repo = _repo_coordinates(payload, {})
    event = Event(
        org=org,
        repo=repo,
        number=issue.get("number"),
        body=body,
        html_url=comment.get("html_url") or "",
        login=(comment.get("user") or {}).get("login", ""),
        comment_id=comment.get("id"),
        refresh=refresh,
        cc=cc,
        cherrypick_cmd=cherrypick_match is not None,
    )

    if not issue.get("pull_request"):
        gh.create_comment(org, repo, event.number, render_response(render_section("not_pull_request"), event))
        return None

    pr = gh.get_pull_request(org, repo, event.number)
    event.title = pr.get("title") or ""
    event.base_ref = (pr.get("base") or {}).get("ref", "")
    event.merged = bool(pr.get("merged"))
    event.state = pr.get("state") or ""
    event.key, event.missing, event.is_bug = jira_key_from_title(event.title)

    if cherrypick_match:
        event.cherrypick = True
        event.key = cherrypick_match.group(1)
        event.missing = False
        event.is_bug = project_of(event.key) == DEFECT_PROJECT
    return event


__all__ = ["DigestError", "digest_pr", "digest_comment"]
