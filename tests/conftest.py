"""Shared test fixtures."""

import logging
from unittest.mock import MagicMock

import pytest
import structlog

from linear_release.models import (
    CategorizedChanges,
    Commit,
    Issue,
    ReleaseContext,
    Team,
    WorkflowState,
)
from linear_release.providers.base import IssueTrackerClient


@pytest.fixture(autouse=True)
def clear_linear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's LINEAR_* env vars out of config parsing."""
    monkeypatch.delenv("LINEAR_API_KEY", raising=False)
    monkeypatch.delenv("LINEAR_TEAM_ID", raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so one CLI test's handlers don't leak into the next."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for handler in [h for h in root.handlers if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)]:
        root.removeHandler(handler)
    structlog.reset_defaults()


@pytest.fixture
def release_context() -> ReleaseContext:
    return ReleaseContext(
        version="1.2.3",
        tag_name="v1.2.3",
        branch="main",
        release_type="minor",
        release_notes="Bug fixes and improvements",
        commit_sha="abc1234",
        changes=CategorizedChanges(
            features=[Commit(hash="a1", type="feat", description="feat: add X ENG-123")],
            fixes=[Commit(hash="b2", type="fix", description="fix: Y ENG-456")],
        ),
    )


@pytest.fixture
def sample_team() -> Team:
    return Team(
        id="team_xyz",
        key="ENG",
        name="Engineering",
        states=[
            WorkflowState(id="state_backlog", name="Backlog", type="backlog"),
            WorkflowState(id="state_progress", name="In Progress", type="started"),
            WorkflowState(id="state_done", name="Done", type="completed"),
        ],
    )


@pytest.fixture
def release_issue() -> Issue:
    return Issue(
        id="issue_release",
        identifier="ENG-900",
        title="Release 1.2.3",
        url="https://linear.app/team/issue/ENG-900",
    )


def make_issue(identifier: str) -> Issue:
    return Issue(
        id=f"id_{identifier}",
        identifier=identifier,
        title=f"Issue {identifier}",
        url=f"https://linear.app/team/issue/{identifier}",
        state=WorkflowState(id="state_progress", name="In Progress", type="started"),
    )


@pytest.fixture
def mock_client(sample_team: Team, release_issue: Issue) -> MagicMock:
    client = MagicMock(spec=IssueTrackerClient)
    client.get_team.return_value = sample_team
    client.create_issue.return_value = release_issue
    client.get_issue_by_identifier.side_effect = lambda identifier, **_: make_issue(identifier)
    return client
