"""Shared pydantic models passed between the host, the reconciler and providers."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Commit(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str = ""
    type: str = ""
    scope: str = ""
    description: str
    breaking: bool = False


class CategorizedChanges(BaseModel):
    model_config = ConfigDict(frozen=True)

    features: list[Commit] = []
    fixes: list[Commit] = []
    breaking: list[Commit] = []
    other: list[Commit] = []


class ReleaseContext(BaseModel):
    """Release data handed over by the host for a single hook invocation."""

    model_config = ConfigDict(frozen=True)

    version: str = ""
    tag_name: str = ""
    branch: str = ""
    release_type: str = ""
    release_notes: str = ""
    commit_sha: str = ""
    changes: CategorizedChanges | None = None


class WorkflowState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = ""  # backlog | unstarted | started | completed | canceled


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: str  # ENG
    name: str
    states: list[WorkflowState] = []

    def find_state(self, name: str) -> WorkflowState | None:
        """Return the first state whose name matches case-insensitively."""
        wanted = name.casefold()
        for state in self.states:
            if state.name.casefold() == wanted:
                return state
        return None


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # Linear internal ID, required by mutations
    identifier: str  # ENG-123
    title: str
    url: str
    state: WorkflowState | None = None


class Viewer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str = ""


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    hook: str
    config: dict[str, Any] = {}
    context: ReleaseContext = Field(default_factory=ReleaseContext)
    dry_run: bool = False


class ExecuteResponse(BaseModel):
    """Returned to the host for every hook invocation, failures included."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str = ""
    error: str | None = None
    outputs: dict[str, Any] = {}


class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ValidateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    errors: list[ValidationIssue] = []

    @property
    def valid(self) -> bool:
        return not self.errors


class PluginInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    description: str
    author: str
    hooks: list[str]
