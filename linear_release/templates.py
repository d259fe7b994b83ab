"""Placeholder rendering for release issue titles, descriptions and comments.

Templates use ``{{Field}}`` placeholders. ``{{.Field}}`` and ``{{ Field }}``
are accepted as the same placeholder. Available fields:

    Version, TagName, Branch, ReleaseType, ReleaseNotes, Date, CommitSHA

``Date`` is today's date as ``YYYY-MM-DD``, taken when the template is rendered.
"""

import re
from datetime import date

from linear_release.errors import TemplateError
from linear_release.models import ReleaseContext

DEFAULT_COMMENT_TEMPLATE = "Released in {{Version}}"
DEFAULT_TITLE_TEMPLATE = "Release {{Version}}"
DEFAULT_DESCRIPTION_TEMPLATE = """\
## Release {{Version}}

**Released:** {{Date}}
**Tag:** {{TagName}}
**Type:** {{ReleaseType}}

### Changes
{{ReleaseNotes}}"""

_PLACEHOLDER = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_FIELD_NAME = re.compile(r"^\s*\.?([A-Za-z_][A-Za-z0-9_]*)\s*$")


def template_fields(release: ReleaseContext, today: date | None = None) -> dict[str, str]:
    return {
        "Version": release.version,
        "TagName": release.tag_name,
        "Branch": release.branch,
        "ReleaseType": release.release_type,
        "ReleaseNotes": release.release_notes,
        "Date": (today or date.today()).isoformat(),
        "CommitSHA": release.commit_sha,
    }


def render_template(template: str, release: ReleaseContext, *, today: date | None = None) -> str:
    """Render ``template`` against the release context.

    Raises TemplateError for unknown fields and for malformed placeholders,
    including unbalanced braces.
    """
    fields = template_fields(release, today)
    parts: list[str] = []
    pos = 0

    for match in _PLACEHOLDER.finditer(template):
        parts.append(_literal(template[pos : match.start()]))
        name_match = _FIELD_NAME.match(match.group(1))
        if not name_match:
            raise TemplateError(f"malformed placeholder {match.group(0)!r}")
        name = name_match.group(1)
        if name not in fields:
            raise TemplateError(f"unknown field {name!r} (available: {', '.join(fields)})")
        parts.append(fields[name])
        pos = match.end()

    parts.append(_literal(template[pos:]))
    return "".join(parts)


def _literal(text: str) -> str:
    if "{{" in text or "}}" in text:
        raise TemplateError(f"unbalanced braces in {text.strip()!r}")
    return text
