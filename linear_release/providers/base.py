"""Abstract issue-tracker client and the per-call deadline it honours."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from linear_release.models import Issue, Team, Viewer


@dataclass(frozen=True)
class Deadline:
    expires_at: float  # time.monotonic() value

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


class IssueTrackerClient(ABC):
    @abstractmethod
    def get_viewer(self, *, deadline: Deadline | None = None) -> Viewer: ...

    @abstractmethod
    def get_team(
        self,
        *,
        team_id: str | None = None,
        team_key: str | None = None,
        deadline: Deadline | None = None,
    ) -> Team: ...

    @abstractmethod
    def get_issue_by_identifier(self, identifier: str, *, deadline: Deadline | None = None) -> Issue: ...

    @abstractmethod
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
    ) -> Issue: ...

    @abstractmethod
    def update_issue_state(self, issue_id: str, state_id: str, *, deadline: Deadline | None = None) -> None: ...

    @abstractmethod
    def add_comment(self, issue_id: str, body: str, *, deadline: Deadline | None = None) -> None: ...
