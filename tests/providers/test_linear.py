"""Tests for LinearClient using pytest-httpx."""

import json
import time

import httpx
import pytest
from pytest_httpx import HTTPXMock

from linear_release.errors import (
    ConfigError,
    CreateFailed,
    MutationFailed,
    NetworkError,
    NotFound,
    RemoteRejected,
)
from linear_release.models import Issue, Team, Viewer
from linear_release.providers.base import Deadline
from linear_release.providers.linear import ENDPOINT, LinearClient

_STATES = {
    "nodes": [
        {"id": "state-1", "name": "Backlog", "type": "backlog"},
        {"id": "state-2", "name": "In Progress", "type": "started"},
        {"id": "state-3", "name": "Done", "type": "completed"},
    ]
}

_TEAM_NODE = {"id": "team-123", "key": "ENG", "name": "Engineering", "states": _STATES}

_ISSUE_NODE = {
    "id": "issue-123",
    "identifier": "ENG-123",
    "title": "Fix null check",
    "url": "https://linear.app/team/issue/ENG-123",
    "state": {"id": "state-2", "name": "In Progress", "type": "started"},
}


def _client() -> LinearClient:
    return LinearClient("lin_api_test")


def _sent_json(httpx_mock: HTTPXMock) -> dict:
    request = httpx_mock.get_requests()[-1]
    return json.loads(request.content)


class TestRequest:
    def test_headers(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"viewer": {"id": "u", "name": "n", "email": ""}}})
        _client().get_viewer()
        request = httpx_mock.get_requests()[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "lin_api_test"
        assert request.headers["Content-Type"] == "application/json"

    def test_missing_key_raises(self) -> None:
        with pytest.raises(ConfigError):
            LinearClient("")


class TestGetViewer:
    def test_returns_viewer(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=ENDPOINT,
            json={"data": {"viewer": {"id": "user-123", "name": "Test User", "email": "test@example.com"}}},
        )
        viewer = _client().get_viewer()
        assert isinstance(viewer, Viewer)
        assert viewer.id == "user-123"
        assert viewer.name == "Test User"

    def test_unauthorized_is_network_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, status_code=401, text="unauthorized")
        with pytest.raises(NetworkError, match="status 401"):
            _client().get_viewer()


class TestGetTeam:
    def test_by_id(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"team": _TEAM_NODE}})
        team = _client().get_team(team_id="team-123")
        assert isinstance(team, Team)
        assert team.key == "ENG"
        assert [s.name for s in team.states] == ["Backlog", "In Progress", "Done"]
        assert _sent_json(httpx_mock)["variables"] == {"id": "team-123"}

    def test_by_key(self, httpx_mock: HTTPXMock) -> None:
        other = {"id": "team-9", "key": "OPS", "name": "Ops", "states": {"nodes": []}}
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"teams": {"nodes": [other, _TEAM_NODE]}}})
        team = _client().get_team(team_key="ENG")
        assert team.id == "team-123"
        assert len(team.states) == 3

    def test_key_match_is_exact(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"teams": {"nodes": [_TEAM_NODE]}}})
        with pytest.raises(NotFound, match="team with key 'eng' not found"):
            _client().get_team(team_key="eng")

    def test_id_wins_over_key(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"team": _TEAM_NODE}})
        _client().get_team(team_id="team-123", team_key="OPS")
        assert "team(id: $id)" in _sent_json(httpx_mock)["query"]

    def test_requires_id_or_key(self) -> None:
        with pytest.raises(ConfigError):
            _client().get_team()


class TestGetIssueByIdentifier:
    def test_returns_issue(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issue": _ISSUE_NODE}})
        issue = _client().get_issue_by_identifier("ENG-123")
        assert isinstance(issue, Issue)
        assert issue.id == "issue-123"
        assert issue.state is not None
        assert issue.state.name == "In Progress"

    def test_null_issue_is_not_found(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issue": None}})
        with pytest.raises(NotFound, match="ENG-999"):
            _client().get_issue_by_identifier("ENG-999")

    def test_entity_not_found_error_is_not_found(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=ENDPOINT,
            json={"errors": [{"message": "Entity not found: Issue", "extensions": {"code": "INVALID_INPUT"}}]},
        )
        with pytest.raises(NotFound) as exc_info:
            _client().get_issue_by_identifier("ENG-999")
        assert exc_info.value.errors[0].code == "INVALID_INPUT"


class TestCreateIssue:
    def test_creates_and_returns(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=ENDPOINT,
            json={
                "data": {
                    "issueCreate": {
                        "success": True,
                        "issue": {**_ISSUE_NODE, "identifier": "ENG-100", "title": "Release v1.0.0"},
                    }
                }
            },
        )
        issue = _client().create_issue("team-123", "Release v1.0.0", "Release description", 2, project_id="proj-1")
        assert issue.identifier == "ENG-100"
        assert _sent_json(httpx_mock)["variables"]["input"] == {
            "teamId": "team-123",
            "title": "Release v1.0.0",
            "description": "Release description",
            "priority": 2,
            "projectId": "proj-1",
        }

    def test_omits_empty_fields(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=ENDPOINT,
            json={"data": {"issueCreate": {"success": True, "issue": _ISSUE_NODE}}},
        )
        _client().create_issue("team-123", "Title", "", 0, assignee_id="user-1")
        assert _sent_json(httpx_mock)["variables"]["input"] == {
            "teamId": "team-123",
            "title": "Title",
            "assigneeId": "user-1",
        }

    def test_failure_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issueCreate": {"success": False, "issue": None}}})
        with pytest.raises(CreateFailed, match="success=false"):
            _client().create_issue("team-123", "Fail", "", 4)


class TestMutations:
    def test_update_issue_state(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issueUpdate": {"success": True}}})
        _client().update_issue_state("issue-123", "state-done")
        assert _sent_json(httpx_mock)["variables"] == {"id": "issue-123", "input": {"stateId": "state-done"}}

    def test_update_issue_state_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issueUpdate": {"success": False}}})
        with pytest.raises(MutationFailed):
            _client().update_issue_state("issue-123", "state-done")

    def test_add_comment(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"commentCreate": {"success": True}}})
        _client().add_comment("issue-123", "Released in v1.0.0")
        assert _sent_json(httpx_mock)["variables"] == {
            "input": {"issueId": "issue-123", "body": "Released in v1.0.0"}
        }

    def test_add_comment_failure(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"commentCreate": {"success": False}}})
        with pytest.raises(MutationFailed):
            _client().add_comment("issue-123", "body")


class TestErrors:
    def test_api_error_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=ENDPOINT,
            json={"errors": [{"message": "Unauthorized", "path": ["viewer"], "extensions": {"code": "AUTH"}}]},
        )
        with pytest.raises(RemoteRejected, match="Linear API error: Unauthorized") as exc_info:
            _client().get_viewer()
        assert exc_info.value.errors[0].path == ["viewer"]
        assert exc_info.value.errors[0].code == "AUTH"

    def test_server_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, status_code=500, text="boom")
        with pytest.raises(NetworkError, match="status 500"):
            _client().get_issue_by_identifier("ENG-1")

    def test_connection_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))
        with pytest.raises(NetworkError, match="connection refused"):
            _client().get_viewer()

    def test_timeout(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("too slow"))
        with pytest.raises(NetworkError, match="timed out"):
            _client().get_viewer()

    def test_invalid_json(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, text="<html>")
        with pytest.raises(NetworkError, match="decode"):
            _client().get_viewer()


class TestMalformedPayloads:
    def test_null_data_for_team_key_is_not_found(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": None})
        with pytest.raises(NotFound, match="team with key 'ENG' not found"):
            _client().get_team(team_key="ENG")

    def test_null_states_gives_team_without_states(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"team": {**_TEAM_NODE, "states": None}}})
        team = _client().get_team(team_id="team-123")
        assert team.states == []

    def test_team_node_missing_key(self, httpx_mock: HTTPXMock) -> None:
        node = {"id": "team-123", "name": "Engineering"}
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"teams": {"nodes": [node]}}})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().get_team(team_key="ENG")

    def test_issue_node_missing_field(self, httpx_mock: HTTPXMock) -> None:
        node = {k: v for k, v in _ISSUE_NODE.items() if k != "url"}
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issue": node}})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().get_issue_by_identifier("ENG-123")

    def test_viewer_wrong_type(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"viewer": {"id": None, "name": "n"}}})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().get_viewer()

    def test_data_not_an_object(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": ["viewer"]})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().get_viewer()

    def test_body_not_an_object(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json=[1, 2])
        with pytest.raises(NetworkError, match="decode"):
            _client().get_viewer()

    def test_malformed_errors_list(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"errors": ["boom"]})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().get_viewer()

    def test_mutation_result_wrong_type(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"issueUpdate": "ok"}})
        with pytest.raises(RemoteRejected, match="unexpected response shape"):
            _client().update_issue_state("issue-1", "state-3")


class TestDeadline:
    def test_expired_deadline_fails_without_request(self, httpx_mock: HTTPXMock) -> None:
        expired = Deadline(time.monotonic() - 1)
        with pytest.raises(NetworkError, match="deadline"):
            _client().get_viewer(deadline=expired)
        assert httpx_mock.get_requests() == []

    def test_live_deadline_sends_request(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ENDPOINT, json={"data": {"viewer": {"id": "u", "name": "n"}}})
        assert _client().get_viewer(deadline=Deadline.after(10)).id == "u"

    def test_remaining(self) -> None:
        deadline = Deadline.after(60)
        assert 0 < deadline.remaining() <= 60
        assert not deadline.expired
