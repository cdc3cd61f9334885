"""
CLI entry point for ticket_lifecycle. Runs one reconciliation pass for a webhook payload:
digest -> resolve branch options -> reconcile -> print the decision
"""

import argparse
import json
import logging
import os
import sys
from typing import Optional, List
from correlate.digest import digest_pr, digest_comment, DigestError
from ingest.errors import TrackerError
from ingest.http import configure_timeout
from ingest.jira import JiraClient
from ingest.github import GitHubClient
from ingest.bugzilla import BugzillaClient
from policy.options import LifecycleConfig, load_config
from reconcile.handler import reconcile

logger = logging.getLogger(__name__)

EVENT_TYPES = ("pull_request", "issue_comment")


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _load_json_file(path: str, description: str):
    """Load a JSON file and return the parsed object, or None (after printing why) on failure."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}", file=sys.stderr)
        return None


def _resolve_settings(args, parser):
    """Resolve endpoints and credentials from CLI flags or environment variables and attach them to args.
    Calls parser.error() if a required value is missing.
    """
    args.jira_url = args.jira_url or os.getenv('JIRA_URL')
    args.jira_token = args.jira_token or os.getenv('JIRA_TOKEN')
    args.github_token = args.github_token or os.getenv('GITHUB_TOKEN')
    args.github_api_url = args.github_api_url or os.getenv('GITHUB_API_URL')
    args.bugzilla_url = args.bugzilla_url or os.getenv('BUGZILLA_URL')
    args.bugzilla_api_key = args.bugzilla_api_key or os.getenv('BUGZILLA_API_KEY')

    missing = []
    if not args.jira_url:
        missing.append('jira_url (CLI flag --jira-url or env JIRA_URL)')
    if not args.jira_token:
        missing.append('jira_token (CLI flag --jira-token or env JIRA_TOKEN)')
    if not args.github_token:
        missing.append('github_token (CLI flag --github-token or env GITHUB_TOKEN)')
    if missing:
        parser.error('Missing required settings: ' + ', '.join(missing))


# helper: (org, repo, base branch) of a pull_request payload
def _pr_coordinates(payload):
    repo = payload.get('repository') or {}
    base = (payload.get('pull_request') or {}).get('base') or {}
    return (repo.get('owner') or {}).get('login', ''), repo.get('name', ''), base.get('ref', '')


def run_pass(args, payload, config: LifecycleConfig, jira, gh, bugzilla=None) -> Optional[dict]:
    """Digest the payload and reconcile it. Returns the decision as a dict, or None when nothing was due."""
    if args.event == 'pull_request':
        org, repo, branch = _pr_coordinates(payload)
        options = config.options_for_branch(org, repo, branch)
        event = digest_pr(payload, bool(options.validate_by_default))
    else:
        event = digest_comment(gh, payload)
        options = config.options_for_branch(event.org, event.repo, event.base_ref) if event else None

    if event is None:
        logger.info("Payload needs no reconciliation")
        return None
    if config.is_project_disabled(event.key):
        logger.info("Project of %s is disabled", event.key)
        return None

    recognized = config.recognized_repos() | set(args.repo or []) | {event.repo_name}
    decision = reconcile(event, options, jira, gh, bugzilla, recognized, config.disabled_projects)
    return decision.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Pull request / Jira lifecycle reconciliation")
    parser.add_argument("--event", type=str, required=True, choices=EVENT_TYPES, help="GitHub webhook event type of the payload")
    parser.add_argument("--payload", type=str, required=True, help="Path to the JSON webhook payload")
    parser.add_argument("--config", type=str, default="", help="Path to the YAML branch policy file (optional)")
    parser.add_argument("--repo", action="append", help="Extra org/repo whose pull requests count for merge completion (repeatable)")
    parser.add_argument("--jira-url", type=str, help="Jira web root (overrides JIRA_URL env)")
    parser.add_argument("--jira-token", type=str)
    parser.add_argument("--github-token", type=str)
    parser.add_argument("--github-api-url", type=str, help="GitHub API root (overrides GITHUB_API_URL env)")
    parser.add_argument("--bot-login", type=str, default=None, help="Login of the account running this tool, used to tell bot-applied labels apart")
    parser.add_argument("--bugzilla-url", type=str, help="Bugzilla web root; legacy bug support is off without it")
    parser.add_argument("--bugzilla-api-key", type=str)
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds (overrides LIFECYCLE_HTTP_TIMEOUT env)")
    parser.add_argument("--log-level", type=str, default="INFO", choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    configure_timeout(args.timeout)
    _resolve_settings(args, parser)

    payload = _load_json_file(args.payload, 'payload file')
    if payload is None:
        return 1
    try:
        config = load_config(args.config) if args.config else LifecycleConfig()
    except (OSError, ValueError) as e:
        print(f"Failed to read config file {args.config}: {e}", file=sys.stderr)
        return 1

    jira = JiraClient(args.jira_token, args.jira_url)
    gh = GitHubClient(args.github_token, args.github_api_url, bot_login=args.bot_login)
    bugzilla = BugzillaClient(args.bugzilla_api_key, args.bugzilla_url) if args.bugzilla_url else None

    try:
        result = run_pass(args, payload, config, jira, gh, bugzilla)
    except (DigestError, TrackerError) as e:
        logger.error("Reconciliation failed: %s", e)
        return 1
    _print_json(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
