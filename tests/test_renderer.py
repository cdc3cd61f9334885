import unittest
from correlate.models import Event
from normalize.models import PullRef
from reconcile.decision import Decision
from report.renderer import render_section, render_response, render_decision


class TestRenderSections(unittest.TestCase):
    def test_valid_without_validations(self):
        text = render_section("bug_valid", issue_link="[Jira Issue X-1](u)", moved_to=None, validations=[], link_added=False)
        self.assertEqual(
            text,
            "This pull request references [Jira Issue X-1](u), which is valid.\n\n"
            "<details><summary>No validations were run on this bug</summary></details>",
        )

    def test_valid_lists_validations(self):
        text = render_section("bug_valid", issue_link="L", moved_to="POST", validations=["a", "b"], link_added=False)
        self.assertIn("which is valid. The bug has been moved to the POST state.", text)
        self.assertIn("<details><summary>2 validation(s) were run on this bug</summary>\n\n* a\n* b\n</details>", text)

    def test_invalid_without_project_note(self):
        text = render_section("bug_invalid", issue_link="L", listed=["r1", "r2"], invalid_dependent_project=False)
        self.assertTrue(text.startswith("This pull request references L, which is invalid:\n - r1\n - r2\n\nComment <code>/jira refresh</code>"))
        self.assertNotIn("OCPBUGSM", text)

    def test_merge_progress_all_merged(self):
        text = render_section("merge_progress", issue_link="L", merged=[PullRef("o", "r", 1)], unmerged=[], target="MODIFIED", moved=True)
        self.assertEqual(
            text,
            "All pull requests linked via external trackers have merged:\n * [o/r#1](https://github.com/o/r/pull/1)\n\nL has been moved to the MODIFIED state.",
        )

    def test_text_is_not_html_escaped(self):
        text = render_section("transition_error", issue_link="L", target="CLOSED (ERRATA)", error='bad "status" <x>')
        self.assertIn('bad "status" <x>', text)


class TestRenderResponse(unittest.TestCase):
    def setUp(self):
        self.event = Event("org", "repo", 1, body="/jira refresh\nplease", html_url="https://github.com/org/repo/pull/1#issuecomment-9", login="someone")

    def test_quotes_triggering_text(self):
        text = render_response("hello", self.event)
        self.assertTrue(text.startswith("@someone: hello\n\n<details>"))
        self.assertIn("In response to [this](https://github.com/org/repo/pull/1#issuecomment-9):\n\n>/jira refresh\n>please", text)
        self.assertTrue(text.endswith("</details>"))

    def test_empty_decision_renders_nothing(self):
        self.assertEqual(render_decision(Decision(self.event)), "")

    def test_sections_then_warnings(self):
        decision = Decision(self.event)
        decision.add_warning("clone_target_version_warning", error="oops")
        decision.add_section("no_issue")
        text = render_decision(decision)
        self.assertLess(text.index("explicitly references no jira issue"), text.index("WARNING"))


if __name__ == '__main__':
    unittest.main()
