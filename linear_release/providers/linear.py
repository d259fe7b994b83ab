"""Linear GraphQL API client."""

import ssl
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
import structlog
from pydantic import ValidationError

from linear_release.errors import (
    ConfigError,
    CreateFailed,
    GraphQLError,
    MutationFailed,
    NetworkError,
    NotFound,
    RemoteRejected,
)
from linear_release.models import Issue, Team, Viewer, WorkflowState
from linear_release.providers.base import Deadline, IssueTrackerClient

logger = structlog.get_logger()

ENDPOINT = "https://api.linear.app/graphql"
DEFAULT_TIMEOUT = 30.0

_GET_VIEWER = """
query GetViewer {
  viewer { id name email }
}
"""

_TEAM_FIELDS = """
  id
  key
  name
  states { nodes { id name type } }
"""

_GET_TEAM = f"""
query GetTeam($id: String!) {{
  team(id: $id) {{{_TEAM_FIELDS}}}
}}
"""

_LIST_TEAMS = f"""
query ListTeams {{
  teams {{
    nodes {{{_TEAM_FIELDS}}}
  }}
}}
"""

_GET_ISSUE = """
query GetIssue($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    url
    state { id name type }
  }
}
"""

_CREATE_ISSUE = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue {
      id
      identifier
      title
      url
      state { id name type }
    }
  }
}
"""

_UPDATE_ISSUE_STATE = """
mutation UpdateIssueState($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
  }
}
"""

_ADD_COMMENT = """
mutation AddComment($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
  }
}
"""


def _tls_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


@contextmanager
def _decoding(what: str) -> Iterator[None]:
    """Turn a payload that doesn't match the queried shape into RemoteRejected."""
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        raise RemoteRejected(f"unexpected response shape for {what}: {exc!r}") from exc


class LinearClient(IssueTrackerClient):
    def __init__(self, api_key: str, endpoint: str = ENDPOINT, timeout: float = DEFAULT_TIMEOUT) -> None:
        if not api_key:
            raise ConfigError("api_key is required")
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout
        self._tls = _tls_context()

    def _gql(self, query: str, variables: dict | None = None, deadline: Deadline | None = None) -> dict:
        timeout = self._timeout
        if deadline is not None:
            if deadline.expired:
                raise NetworkError("deadline exceeded before request was sent")
            timeout = min(timeout, deadline.remaining())

        try:
            response = httpx.post(
                self._endpoint,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self._api_key,
                    "Content-Type": "application/json",
                },
                timeout=timeout,
                verify=self._tls,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"failed to execute request: {exc}") from exc

        if not response.is_success:
            raise NetworkError(f"API error: {response.text} (status {response.status_code})")
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(f"failed to decode response: {exc}") from exc

        if not isinstance(data, dict):
            raise NetworkError(f"failed to decode response: expected an object, got {type(data).__name__}")
        if data.get("errors"):
            with _decoding("errors"):
                errors = [GraphQLError.from_payload(e) for e in data["errors"]]
            raise RemoteRejected(f"Linear API error: {errors[0].message}", errors)
        payload = data.get("data") or {}
        if not isinstance(payload, dict):
            raise RemoteRejected(f"unexpected response shape: data is {type(payload).__name__}")
        return payload

    def _team_from_node(self, node: dict) -> Team:
        return Team(
            id=node["id"],
            key=node["key"],
            name=node["name"],
            states=[WorkflowState(**s) for s in (node.get("states") or {}).get("nodes") or []],
        )

    def _issue_from_node(self, node: dict) -> Issue:
        state = node.get("state")
        return Issue(
            id=node["id"],
            identifier=node["identifier"],
            title=node["title"],
            url=node["url"],
            state=WorkflowState(**state) if state else None,
        )

    def get_viewer(self, *, deadline: Deadline | None = None) -> Viewer:
        data = self._gql(_GET_VIEWER, deadline=deadline)
        with _decoding("viewer"):
            return Viewer(**data["viewer"])

    def get_team(
        self,
        *,
        team_id: str | None = None,
        team_key: str | None = None,
        deadline: Deadline | None = None,
    ) -> Team:
        if team_id:
            data = self._gql(_GET_TEAM, {"id": team_id}, deadline)
            node = data.get("team")
            if not node:
                raise NotFound(f"team '{team_id}' not found")
            with _decoding("team"):
                return self._team_from_node(node)

        if not team_key:
            raise ConfigError("either team_id or team_key is required")

        # No lookup-by-key query in the API; scan and match the key exactly.
        data = self._gql(_LIST_TEAMS, deadline=deadline)
        with _decoding("teams"):
            for node in (data.get("teams") or {}).get("nodes") or []:
                if node["key"] == team_key:
                    return self._team_from_node(node)
        raise NotFound(f"team with key '{team_key}' not found")

    def get_issue_by_identifier(self, identifier: str, *, deadline: Deadline | None = None) -> Issue:
        try:
            data = self._gql(_GET_ISSUE, {"id": identifier}, deadline)
        except RemoteRejected as exc:
            # Unknown identifiers come back as an "Entity not found" error rather than null.
            if any("not found" in e.message.lower() for e in exc.errors):
                raise NotFound(f"issue {identifier} not found", exc.errors) from exc
            raise
        node = data.get("issue")
        if not node:
            raise NotFound(f"issue {identifier} not found")
        with _decoding("issue"):
            return self._issue_from_node(node)

    def create_issue(
        self,
        team_id: str,
        title: str,
        description: str,
        priority: int,
        project_id: str | None = None,
        assignee_id: str | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> Issue:
        issue_input: dict = {"teamId": team_id, "title": title}
        if description:
            issue_input["description"] = description
        if priority > 0:
            issue_input["priority"] = priority
        if project_id:
            issue_input["projectId"] = project_id
        if assignee_id:
            issue_input["assigneeId"] = assignee_id

        data = self._gql(_CREATE_ISSUE, {"input": issue_input}, deadline)
        with _decoding("issueCreate"):
            result = data.get("issueCreate") or {}
            if not result.get("success") or not result.get("issue"):
                raise CreateFailed("Linear issueCreate returned success=false")
            created = self._issue_from_node(result["issue"])
        logger.debug("issue_created", identifier=created.identifier, team_id=team_id)
        return created

    def update_issue_state(self, issue_id: str, state_id: str, *, deadline: Deadline | None = None) -> None:
        data = self._gql(
            _UPDATE_ISSUE_STATE,
            {"id": issue_id, "input": {"stateId": state_id}},
            deadline,
        )
        with _decoding("issueUpdate"):
            ok = (data.get("issueUpdate") or {}).get("success")
        if not ok:
            raise MutationFailed("Linear issueUpdate returned success=false")

    def add_comment(self, issue_id: str, body: str, *, deadline: Deadline | None = None) -> None:
        data = self._gql(
            _ADD_COMMENT,
            {"input": {"issueId": issue_id, "body": body}},
            deadline,
        )
        with _decoding("commentCreate"):
            ok = (data.get("commentCreate") or {}).get("success")
        if not ok:
            raise MutationFailed("Linear commentCreate returned success=false")
