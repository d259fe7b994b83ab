"""Linear issue identifier extraction from commit messages."""

import re
from collections.abc import Iterable

from linear_release.models import ReleaseContext

# ENG-123, TEAM-4. ASCII digits only. Lowercase tokens (eng-123) never match, whatever the prefix filter.
ISSUE_PATTERN = re.compile(r"\b([A-Z]{2,10})-(\d+)\b", re.ASCII)


def collect_commit_messages(release: ReleaseContext) -> list[str]:
    """Return commit descriptions in features, fixes, breaking, other order."""
    changes = release.changes
    if changes is None:
        return []
    commits = [*changes.features, *changes.fixes, *changes.breaking, *changes.other]
    return [c.description for c in commits]


def extract_issue_ids(messages: Iterable[str], prefix: str = "") -> list[str]:
    """Return distinct identifiers in order of first appearance.

    ``prefix`` filters on the letter part of the identifier and is compared
    case-insensitively; the identifier keeps the casing it had in the message.
    """
    wanted = prefix.casefold()
    seen: set[str] = set()
    issues: list[str] = []

    for message in messages:
        for match in ISSUE_PATTERN.finditer(message):
            if wanted and match.group(1).casefold() != wanted:
                continue
            identifier = match.group(0)
            if identifier not in seen:
                seen.add(identifier)
                issues.append(identifier)
    return issues
