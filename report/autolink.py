"""
Turns bare issue keys in a pull request body or comment into markdown links to the tracker.

Keys are left alone when they are already linked, part of a pasted URL, or inside code: fenced
blocks, blocks indented by four spaces or a tab, and inline code spans. Slash command lines are
left as typed so the command text stays readable.
"""

import re
from typing import Iterable, List

BARE_KEY_PATTERN = re.compile(r"(?<![\w\[/-])([A-Z][A-Z0-9]+-\d+)(?![\w\]-])")
CODE_SPAN_PATTERN = re.compile(r"(`+).*?\1")
FENCE_PATTERN = re.compile(r"^ {0,3}(```|~~~)")


def issue_keys_in(text: str) -> List[str]:
    """Distinct bare issue keys in `text`, in order of first appearance."""
    keys = []
    for key in BARE_KEY_PATTERN.findall(text or ""):
        if key not in keys:
            keys.append(key)
    return keys


def _key_link(key: str, jira_url: str) -> str:
    return f"[{key}]({jira_url.rstrip('/')}/browse/{key})"


# helper: link keys in prose that contains no code spans
def _link_prose(text: str, keys: List[str], jira_url: str) -> str:
    def replace(m):
        key = m.group(1)
        return _key_link(key, jira_url) if key in keys else key
    return BARE_KEY_PATTERN.sub(replace, text)


def _link_line(line: str, keys: List[str], jira_url: str) -> str:
    out = []
    pos = 0
    for span in CODE_SPAN_PATTERN.finditer(line):
        out.append(_link_prose(line[pos:span.start()], keys, jira_url))
        out.append(span.group(0))
        pos = span.end()
    out.append(_link_prose(line[pos:], keys, jira_url))
    return "".join(out)


def insert_links_into_comment(body: str, keys: Iterable[str], jira_url: str) -> str:
    """
    Link every bare occurrence of `keys` in `body`.

    Parameters:
        body: markdown text; line endings (\\n or \\r\\n) are preserved.
        keys: issue keys to link, e.g. ['OCPBUGS-123'].
        jira_url: tracker root; links point at <jira_url>/browse/<key>.

    Returns:
        the rewritten body, identical to `body` when nothing needed linking.
    """
    keys = list(keys)
    if not body or not keys:
        return body
    out = []
    in_fence = False
    for line in body.splitlines(keepends=True):
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
            out.append(line)
        elif in_fence or line.startswith(("    ", "\t", "/")):
            out.append(line)
        else:
            out.append(_link_line(line, keys, jira_url))
    return "".join(out)


__all__ = ["BARE_KEY_PATTERN", "issue_keys_in", "insert_links_into_comment"]
