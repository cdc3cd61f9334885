import pytest
from ingest.errors import JiraError
from normalize.models import ORIGIN_BUGZILLA
from policy.dependents import dependent_keys, get_dependents, DependentNotFound, DependentLookupError
from fakes import FakeJira, FakeBugzilla, make_issue, BUGZILLA_URL


def blocked_by(key):
    return {"type": {"name": "Blocks"}, "inwardIssue": {"key": key}}


def blocks(key):
    return {"type": {"name": "Blocks"}, "outwardIssue": {"key": key}}


def clones(key):
    return {"type": {"name": "Cloners"}, "outwardIssue": {"key": key}}


def cloned_by(key):
    return {"type": {"name": "Cloners"}, "inwardIssue": {"key": key}}


def test_dependent_keys_follow_link_direction():
    issue = make_issue("OCPBUGS-1", issuelinks=[blocked_by("OCPBUGS-2"), blocks("OCPBUGS-3"), clones("OCPBUGS-4"), cloned_by("OCPBUGS-5")])
    assert dependent_keys(issue) == ["OCPBUGS-2", "OCPBUGS-4"]


def test_dependent_keys_deduplicate_and_skip_self():
    issue = make_issue("OCPBUGS-1", issuelinks=[blocked_by("OCPBUGS-2"), clones("OCPBUGS-2"), blocked_by("OCPBUGS-1")])
    assert dependent_keys(issue) == ["OCPBUGS-2"]


def test_get_dependents_reads_state_and_target_version():
    jira = FakeJira([make_issue("OCPBUGS-2", "VERIFIED", target_version="4.13.0")])
    issue = make_issue("OCPBUGS-1", issuelinks=[blocked_by("OCPBUGS-2")])
    deps = get_dependents(issue, jira)
    assert len(deps) == 1
    assert deps[0].key == "OCPBUGS-2"
    assert deps[0].state.status == "VERIFIED"
    assert deps[0].target_version == "4.13.0"


def test_missing_dependent_raises_not_found():
    issue = make_issue("OCPBUGS-1", issuelinks=[blocked_by("OCPBUGS-9")])
    with pytest.raises(DependentNotFound) as info:
        get_dependents(issue, FakeJira())
    assert info.value.key == "OCPBUGS-9" and info.value.parent == "OCPBUGS-1"


def test_lookup_failure_is_wrapped():
    jira = FakeJira()
    jira.fail["get_issue"] = JiraError("server exploded")
    issue = make_issue("OCPBUGS-1", issuelinks=[blocked_by("OCPBUGS-2")])
    with pytest.raises(DependentLookupError) as info:
        get_dependents(issue, jira)
    assert not isinstance(info.value, DependentNotFound)
    assert "server exploded" in str(info.value)


def test_legacy_bug_dependent():
    bz = FakeBugzilla([{"id": 77, "status": "VERIFIED", "resolution": "", "target_release": ["4.13.0"]}])
    issue = make_issue("OCPBUGS-1", customfield_12322152=f"{BUGZILLA_URL}/show_bug.cgi?id=77")
    deps = get_dependents(issue, FakeJira(), bz)
    assert [(d.key, d.origin, d.target_version) for d in deps] == [("77", ORIGIN_BUGZILLA, "4.13.0")]


def test_legacy_bug_unset_release():
    bz = FakeBugzilla([{"id": 77, "status": "NEW", "target_release": ["---"]}])
    issue = make_issue("OCPBUGS-1", customfield_12322152=f"{BUGZILLA_URL}/show_bug.cgi?id=77")
    assert get_dependents(issue, FakeJira(), bz)[0].target_version is None


def test_missing_legacy_bug():
    issue = make_issue("OCPBUGS-1", customfield_12322152=f"{BUGZILLA_URL}/show_bug.cgi?id=78")
    with pytest.raises(DependentNotFound):
        get_dependents(issue, FakeJira(), FakeBugzilla())


def test_legacy_reference_without_client_is_skipped():
    issue = make_issue("OCPBUGS-1", customfield_12322152=f"{BUGZILLA_URL}/show_bug.cgi?id=78")
    assert get_dependents(issue, FakeJira()) == []
