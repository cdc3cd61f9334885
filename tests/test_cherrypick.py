import unittest
from ingest.errors import JiraError
from normalize.util import TARGET_VERSION_FIELD, BLOCKED_BY_BUGZILLA_FIELD, issue_target_versions
from policy.dependents import dependent_keys
from reconcile.cherrypick import clone_issue, clone_legacy_bug, find_existing_clone, legacy_labels, retitle
from fakes import FakeJira, FakeBugzilla, make_issue, BUGZILLA_URL


class TestCloneIssue(unittest.TestCase):
    def setUp(self):
        original = make_issue(
            "OCPBUGS-1",
            "MODIFIED",
            target_version="4.13.0",
            summary="crash on start",
            description="it crashes",
            labels=["Security"],
            comment={"comments": [{"body": "first"}, {"body": "second"}]},
        )
        self.jira = FakeJira([original])

    def test_creates_clone_with_links_and_target_version(self):
        result = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.12.z")
        self.assertTrue(result.created)
        self.assertIsNone(result.target_version_error)
        clone = self.jira.issues[result.key]["fields"]
        self.assertEqual(clone["summary"], "crash on start")
        self.assertEqual(clone["labels"], ["Security"])
        self.assertTrue(clone["description"].startswith("This is a clone of issue OCPBUGS-1."))
        self.assertTrue(clone["description"].endswith("it crashes"))
        self.assertEqual(clone[TARGET_VERSION_FIELD], [{"name": "4.12.z"}])
        self.assertEqual([c["body"] for c in self.jira.comments[result.key]], ["first", "second"])
        # the clone depends on the original
        self.assertEqual(dependent_keys(self.jira.get_issue(result.key)), ["OCPBUGS-1"])

    def test_reuses_existing_clone(self):
        first = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.12.z")
        before = len(self.jira.mutations)
        second = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.12.z")
        self.assertFalse(second.created)
        self.assertEqual(second.key, first.key)
        self.assertEqual(len(self.jira.mutations), before)

    def test_clone_for_other_version_is_not_reused(self):
        first = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.12.z")
        self.assertIsNone(find_existing_clone(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.11.z"))
        other = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.11.z")
        self.assertNotEqual(other.key, first.key)

    def test_target_version_failure_is_a_warning(self):
        self.jira.fail["update_issue"] = JiraError("field not on screen")
        result = clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), "4.12.z")
        self.assertTrue(result.created)
        self.assertIn("field not on screen", result.target_version_error)

    def test_target_version_is_required(self):
        for _ in range(2):
            with self.assertRaises(ValueError):
                clone_issue(self.jira, self.jira.get_issue("OCPBUGS-1"), None)
        self.assertEqual(self.jira.mutations, [])


class TestCloneLegacyBug(unittest.TestCase):
    def setUp(self):
        self.bz = FakeBugzilla([
            {
                "id": 100,
                "summary": "legacy crash",
                "component": ["Networking"],
                "keywords": ["SecurityTracking"],
                "whiteboard": "component:sdn extra",
                "blocks": [200],
            },
            {"id": 200, "alias": ["CVE-2023-1234", "other-alias"]},
        ])
        self.bz.comments[100] = [{"text": "original description"}, {"text": "later"}]
        self.bz.subcomponents[100] = {"Networking": ["ovn-kubernetes"]}
        self.jira = FakeJira()

    def test_translates_and_creates(self):
        result = clone_legacy_bug(self.jira, self.bz, 100, "4.12.z")
        self.assertTrue(result.created)
        fields = self.jira.issues[result.key]["fields"]
        self.assertEqual(fields["project"], {"key": "OCPBUGS"})
        self.assertEqual(fields["summary"], "legacy crash")
        self.assertEqual(fields["components"], [{"name": "Networking / ovn-kubernetes"}])
        self.assertEqual(fields["labels"], ["SecurityTracking", "component:sdn", "CVE-2023-1234", "flaw:bz#200"])
        self.assertEqual(fields[BLOCKED_BY_BUGZILLA_FIELD], f"{BUGZILLA_URL}/show_bug.cgi?id=100")
        self.assertIn("original description", fields["description"])
        self.assertEqual(issue_target_versions(self.jira.issues[result.key]), ["4.12.z"])

    def test_reuses_bridged_issue(self):
        first = clone_legacy_bug(self.jira, self.bz, 100, "4.12.z")
        second = clone_legacy_bug(self.jira, self.bz, 100, "4.12.z")
        self.assertFalse(second.created)
        self.assertEqual(second.key, first.key)

    def test_missing_bug(self):
        self.assertIsNone(clone_legacy_bug(self.jira, self.bz, 999, "4.12.z"))

    def test_labels_without_tracking_keyword(self):
        self.assertEqual(legacy_labels(self.bz, {"id": 5, "keywords": ["Security"], "blocks": [200]}), ["Security"])


class TestRetitle(unittest.TestCase):
    def test_replaces_reference(self):
        self.assertEqual(retitle("[release-4.12] OCPBUGS-1: fix", "OCPBUGS-1", "OCPBUGS-9"), "[release-4.12] OCPBUGS-9: fix")
        self.assertEqual(retitle("[release-4.12] Bug 100: fix", "Bug 100", "OCPBUGS-9"), "[release-4.12] OCPBUGS-9: fix")

    def test_prefixes_when_absent(self):
        self.assertEqual(retitle("fix", "OCPBUGS-1", "OCPBUGS-9"), "OCPBUGS-9: fix")


if __name__ == '__main__':
    unittest.main()
