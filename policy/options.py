"""
Branch options and their resolution from the YAML policy file.

Policy file layout:

    disabled_jira_projects: [PROJ]
    default:
      "*": {...}
      release-4.12: {...}
    orgs:
      my-org:
        default: {"*": {...}, <branch>: {...}}
        repos:
          my-repo:
            branches: {"*": {...}, <branch>: {...}}

Options for (org, repo, branch) are merged in order global "*", global branch, org "*", org branch,
repo "*", repo branch; a key set at a later level replaces the earlier value.
"""
import logging
from typing import Dict, Any, List, Optional, Set
import yaml
from normalize.models import BugState

logger = logging.getLogger(__name__)

WILDCARD = "*"

_STATE_KEYS = ("state_after_validation", "state_after_merge", "state_after_close")
_STATE_LIST_KEYS = ("valid_states", "dependent_bug_states")
_PLAIN_KEYS = (
    "is_open",
    "target_version",
    "dependent_bug_target_versions",
    "add_external_link",
    "allowed_security_levels",
    "validate_by_default",
)
OPTION_KEYS = _PLAIN_KEYS + _STATE_KEYS + _STATE_LIST_KEYS


class BranchOptions:
    """
    Resolved policy for one branch. Every predicate is optional: None means "not configured".
    """
    def __init__(
        self,
        is_open: Optional[bool] = None,
        target_version: Optional[str] = None,
        valid_states: Optional[List[BugState]] = None,
        dependent_bug_states: Optional[List[BugState]] = None,
        dependent_bug_target_versions: Optional[List[str]] = None,
        state_after_validation: Optional[BugState] = None,
        state_after_merge: Optional[BugState] = None,
        state_after_close: Optional[BugState] = None,
        add_external_link: Optional[bool] = None,
        allowed_security_levels: Optional[List[str]] = None,
        validate_by_default: Optional[bool] = None,
    ):
        self.is_open = is_open
        self.target_version = target_version
        self.valid_states = valid_states
        self.dependent_bug_states = dependent_bug_states
        self.dependent_bug_target_versions = dependent_bug_target_versions
        self.state_after_validation = state_after_validation
        self.state_after_merge = state_after_merge
        self.state_after_close = state_after_close
        self.add_external_link = add_external_link
        self.allowed_security_levels = allowed_security_levels
        self.validate_by_default = validate_by_default

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BranchOptions":
        raw = raw or {}
        unknown = set(raw) - set(OPTION_KEYS)
        if unknown:
            raise ValueError(f"unknown branch option(s): {', '.join(sorted(unknown))}")
        kwargs: Dict[str, Any] = {k: raw[k] for k in _PLAIN_KEYS if k in raw}
        for k in _STATE_KEYS:
            if raw.get(k) is not None:
                kwargs[k] = BugState.from_dict(raw[k])
        for k in _STATE_LIST_KEYS:
            if raw.get(k) is not None:
                kwargs[k] = [BugState.from_dict(s) for s in raw[k]]
        return cls(**kwargs)

    def merged_with(self, child: "BranchOptions") -> "BranchOptions":
        """Return a copy where every option set on `child` overrides this one."""
        values = {k: getattr(self, k) for k in OPTION_KEYS}
        values.update({k: getattr(child, k) for k in OPTION_KEYS if getattr(child, k) is not None})
        return BranchOptions(**values)

    @property
    def expects_dependents(self) -> bool:
        return self.dependent_bug_states is not None or self.dependent_bug_target_versions is not None

    def __repr__(self):
        set_keys = {k: getattr(self, k) for k in OPTION_KEYS if getattr(self, k) is not None}
        return f"BranchOptions({set_keys!r})"


class LifecycleConfig:
    """Parsed policy file."""

    def __init__(self, raw: Optional[Dict[str, Any]] = None):
        raw = raw or {}
        self.raw = raw
        self.disabled_projects: List[str] = list(raw.get("disabled_jira_projects") or [])

    def _levels(self, org: str, repo: str) -> List[Dict[str, Any]]:
        org_cfg = (self.raw.get("orgs") or {}).get(org) or {}
        repo_cfg = (org_cfg.get("repos") or {}).get(repo) or {}
        return [self.raw.get("default") or {}, org_cfg.get("default") or {}, repo_cfg.get("branches") or {}]

    def options_for_branch(self, org: str, repo: str, branch: str) -> BranchOptions:
        resolved = BranchOptions()
        for level in self._levels(org, repo):
            for name in (WILDCARD, branch):
                if name in level:
                    resolved = resolved.merged_with(BranchOptions.from_dict(level[name]))
        logger.debug("Resolved options for %s/%s@%s: %r", org, repo, branch, resolved)
        return resolved

    def recognized_repos(self) -> Set[str]:
        repos: Set[str] = set()
        for org, org_cfg in (self.raw.get("orgs") or {}).items():
            for repo in ((org_cfg or {}).get("repos") or {}):
                repos.add(f"{org}/{repo}")
        return repos

    def is_project_disabled(self, key: str) -> bool:
        return bool(key) and key.rsplit("-", 1)[0] in self.disabled_projects


def load_config(path: str) -> LifecycleConfig:
    """Load the YAML policy file at `path`."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"policy file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"policy file {path} must contain a mapping")
    return LifecycleConfig(data)


__all__ = ["BranchOptions", "LifecycleConfig", "load_config", "OPTION_KEYS"]
