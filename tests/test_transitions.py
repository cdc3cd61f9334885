import unittest
from normalize.models import BugState
from reconcile.transitions import apply_state
from fakes import FakeJira, make_issue


class TestApplyState(unittest.TestCase):
    def setUp(self):
        self.jira = FakeJira([make_issue("OCPBUGS-1", "POST")])

    def issue(self):
        return self.jira.get_issue("OCPBUGS-1")

    def test_moves_through_matching_transition(self):
        change = apply_state(self.jira, self.issue(), BugState("modified"))
        self.assertTrue(change.changed)
        self.assertEqual(self.jira.issues["OCPBUGS-1"]["fields"]["status"]["name"], "MODIFIED")

    def test_no_op_when_already_in_state(self):
        apply_state(self.jira, self.issue(), BugState("MODIFIED"))
        before = len(self.jira.mutations)
        change = apply_state(self.jira, self.issue(), BugState("MODIFIED"))
        self.assertFalse(change.changed)
        self.assertEqual(len(self.jira.mutations), before)

    def test_sets_resolution_after_status(self):
        change = apply_state(self.jira, self.issue(), BugState("CLOSED", "ERRATA"))
        self.assertTrue(change.changed)
        fields = self.jira.issues["OCPBUGS-1"]["fields"]
        self.assertEqual((fields["status"]["name"], fields["resolution"]["name"]), ("CLOSED", "ERRATA"))
        self.assertEqual([c[0] for c in self.jira.mutations], ["do_transition", "update_issue"])

    def test_unreachable_status_reports_available_transitions(self):
        change = apply_state(self.jira, self.issue(), BugState("RELEASE_PENDING"))
        self.assertFalse(change.changed)
        self.assertIn("No transition status with name RELEASE_PENDING could be found", change.error)
        self.assertIn("MODIFIED", change.error)
        self.assertEqual(self.jira.mutations, [])

    def test_missing_issue_is_skipped(self):
        self.assertTrue(apply_state(self.jira, None, BugState("MODIFIED")).skipped)

    def test_disallowed_security_level_is_skipped(self):
        self.jira.issues["OCPBUGS-1"]["fields"]["security"] = {"name": "Embargoed"}
        change = apply_state(self.jira, self.issue(), BugState("MODIFIED"), ["default"])
        self.assertTrue(change.skipped)
        self.assertEqual(self.jira.mutations, [])


if __name__ == '__main__':
    unittest.main()
