"""
Ingest package: REST clients for Jira, GitHub and Bugzilla.
"""

from .errors import TrackerError, JiraError, GitHubError, BugzillaError

__all__ = ["TrackerError", "JiraError", "GitHubError", "BugzillaError"]
