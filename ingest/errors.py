"""
Error hierarchy shared by the tracker and source-control clients.
"""


class TrackerError(RuntimeError):
    """Base class for failures talking to a remote collaborator."""


class JiraError(TrackerError):
    pass


class GitHubError(TrackerError):
    pass


class BugzillaError(TrackerError):
    pass
