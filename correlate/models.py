"""
Canonical event model produced by the digester and consumed by one reconciliation pass.
"""
from typing import Optional
from correlate.linker import NO_ISSUE_KEY


class Event:
    """
    Canonical intent derived from a pull request or comment webhook.

    Parameters:
        org, repo, base_ref, number: where the pull request lives.
        key: referenced issue key ('' when missing, NO_ISSUE_KEY when explicitly none).
        is_bug: the key belongs to the defect project.
        missing: no parseable reference was found.
        opened/closed/merged/state: pull request lifecycle facts.
        refresh/cc/cherrypick_cmd: comment commands.
        cherrypick/cherrypick_from: the PR is a backport of PR number `cherrypick_from`.
        body/title/html_url/login: triggering text, PR title, URL of the triggering object, author.
        comment_id: id of the triggering comment; None when the text is the pull request body.
    """
    def __init__(
        self,
        org: str,
        repo: str,
        number: int,
        base_ref: str = "",
        key: str = "",
        is_bug: bool = False,
        missing: bool = False,
        opened: bool = False,
        closed: bool = False,
        merged: bool = False,
        state: str = "",
        refresh: bool = False,
        cc: bool = False,
        cherrypick: bool = False,
        cherrypick_cmd: bool = False,
        cherrypick_from: Optional[int] = None,
        body: str = "",
        title: str = "",
        html_url: str = "",
        login: str = "",
        comment_id: Optional[int] = None,
    ):
        self.org = org
        self.repo = repo
        self.number = number
        self.base_ref = base_ref
        self.key = key
        self.is_bug = is_bug
        self.missing = missing
        self.opened = opened
        self.closed = closed
        self.merged = merged
        self.state = state
        self.refresh = refresh
        self.cc = cc
        self.cherrypick = cherrypick
        self.cherrypick_cmd = cherrypick_cmd
        self.cherrypick_from = cherrypick_from
        self.body = body
        self.title = title
        self.html_url = html_url
        self.login = login
        self.comment_id = comment_id

    @property
    def no_issue(self) -> bool:
        """The PR explicitly references no issue."""
        return self.key == NO_ISSUE_KEY

    @property
    def repo_name(self) -> str:
        return f"{self.org}/{self.repo}"

    @property
    def pr_url(self) -> str:
        """URL of the pull request itself (comment URLs carry an #issuecomment fragment)."""
        if self.html_url and "/pull/" in self.html_url:
            return self.html_url.split("#", 1)[0]
        return f"https://github.com/{self.org}/{self.repo}/pull/{self.number}"

    def __eq__(self, other):
        if not isinstance(other, Event):
            return NotImplemented
        return self.__dict__ == other.__dict__

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items() if v not in ("", False, None))
        return f"Event({fields})"
