"""
Report renderer: turns the structured sections of a Decision into the markdown comment posted on
the pull request. Each section kind has a template under report/templates/sections/.
"""

import os
from typing import List, Any
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(['html', 'xml']),
)


def render_section(kind: str, **context: Any) -> str:
    """Render one section template; surrounding blank lines are trimmed."""
    return _env.get_template(f'sections/{kind}.md.j2').render(**context).strip()


def render_sections(sections: List[Any]) -> str:
    """Render Section objects (kind + context) separated by blank lines."""
    return '\n\n'.join(render_section(s.kind, **s.context) for s in sections)


def _quote(text: str) -> str:
    return '\n'.join(f'>{line}' for line in (text or '').splitlines()) or '>'


def render_response(text: str, event: Any) -> str:
    """Wrap a report addressed to the event's author, quoting the text that triggered it."""
    return _env.get_template('response.md.j2').render(
        login=event.login,
        text=text,
        url=event.html_url,
        quoted=_quote(event.body),
    ).strip()


def render_decision(decision: Any) -> str:
    """Full comment for a decision, or '' when it carries nothing to report."""
    if not decision.has_report:
        return ''
    return render_response(render_sections(list(decision.sections) + list(decision.warnings)), decision.event)


__all__ = ['TEMPLATES_DIR', 'render_section', 'render_sections', 'render_response', 'render_decision']
