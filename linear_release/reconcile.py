"""Release reconciliation: release issue creation and linked-issue updates.

A run resolves the team, optionally creates the release issue, then walks every
issue referenced in the release commits. Failures in the setup steps raise
FatalRunError. Failures for a single linked issue are recorded as warnings and
the run moves on to the next identifier.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from linear_release.errors import FatalRunError, GatewayError, LinearReleaseError, TemplateError
from linear_release.extract import collect_commit_messages, extract_issue_ids
from linear_release.models import Issue, ReleaseContext, Team
from linear_release.providers.base import Deadline, IssueTrackerClient
from linear_release.settings import PluginConfig
from linear_release.templates import render_template

logger = structlog.get_logger()


class WarningKind(str, Enum):
    STATE_NOT_FOUND = "state_not_found"
    COMMENT_TEMPLATE = "comment_template"
    ISSUE_FETCH = "issue_fetch"
    STATE_UPDATE = "state_update"
    COMMENT = "comment"


@dataclass(frozen=True)
class ReconcileWarning:
    kind: WarningKind
    identifier: str | None
    cause: str

    @property
    def message(self) -> str:
        match self.kind:
            case WarningKind.STATE_NOT_FOUND:
                return f"State '{self.cause}' not found in team workflow"
            case WarningKind.COMMENT_TEMPLATE:
                return f"Failed to render comment template: {self.cause}"
            case WarningKind.ISSUE_FETCH:
                return f"Issue {self.identifier} not found: {self.cause}"
            case WarningKind.STATE_UPDATE:
                return f"Failed to update {self.identifier}: {self.cause}"
            case WarningKind.COMMENT:
                return f"Failed to add comment to {self.identifier}: {self.cause}"
        return self.cause


@dataclass
class ReconciliationOutcome:
    updated: int = 0
    commented: int = 0
    warnings: list[ReconcileWarning] = field(default_factory=list)

    def warn(self, kind: WarningKind, identifier: str | None, cause: str) -> None:
        warning = ReconcileWarning(kind=kind, identifier=identifier, cause=cause)
        self.warnings.append(warning)
        logger.warning("reconcile_warning", kind=kind.value, identifier=identifier, cause=cause)


@dataclass
class ReleaseReport:
    """Everything a post-publish run did, in the order it happened."""

    released_state: str
    release_issue: Issue | None = None
    linked_issues: list[str] = field(default_factory=list)
    outcome: ReconciliationOutcome = field(default_factory=ReconciliationOutcome)

    def summary(self) -> str:
        results: list[str] = []
        if self.release_issue is not None:
            results.append(f"Created release issue: {self.release_issue.identifier} ({self.release_issue.url})")
        if self.outcome.updated:
            results.append(f"Updated {self.outcome.updated} issue(s) to '{self.released_state}'")
        if self.outcome.commented:
            results.append(f"Added release comment to {self.outcome.commented} issue(s)")
        results += [f"Warning: {w.message}" for w in self.outcome.warnings]
        return "; ".join(results) or "No actions taken"

    def outputs(self) -> dict[str, Any]:
        release_issue = None
        if self.release_issue is not None:
            release_issue = {"identifier": self.release_issue.identifier, "url": self.release_issue.url}
        return {
            "release_issue": release_issue,
            "linked_issues": list(self.linked_issues),
            "updated": self.outcome.updated,
            "commented": self.outcome.commented,
            "warnings": [
                {"kind": w.kind.value, "identifier": w.identifier, "message": w.message} for w in self.outcome.warnings
            ],
        }


@dataclass
class ReleasePreview:
    lines: list[str] = field(default_factory=list)
    linked_issues: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return "; ".join(self.lines) or "No actions taken"

    def outputs(self) -> dict[str, Any]:
        return {"linked_issues": list(self.linked_issues)}


class ReleaseReconciler:
    def __init__(
        self,
        client: IssueTrackerClient | None,
        config: PluginConfig,
        *,
        deadline: Deadline | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._deadline = deadline

    @property
    def client(self) -> IssueTrackerClient:
        if self._client is None:
            raise FatalRunError("no issue tracker client configured")
        return self._client

    def linked_issues(self, release: ReleaseContext) -> list[str]:
        return extract_issue_ids(collect_commit_messages(release), self._config.issue_prefix)

    def run(self, release: ReleaseContext) -> ReleaseReport:
        cfg = self._config
        report = ReleaseReport(released_state=cfg.released_state)
        log = logger.bind(version=release.version)

        team = self._resolve_team()
        log = log.bind(team=team.key)

        if cfg.create_release_issue:
            report.release_issue = self._create_release_issue(release, team)
            log.info("release_issue_created", identifier=report.release_issue.identifier)

        if cfg.update_linked_issues or cfg.add_release_comment:
            report.linked_issues = self.linked_issues(release)
            log.info("linked_issues_extracted", count=len(report.linked_issues))
            if report.linked_issues:
                self._process_linked_issues(release, team, report.linked_issues, report.outcome)

        log.info(
            "release_reconciled",
            updated=report.outcome.updated,
            commented=report.outcome.commented,
            warnings=len(report.outcome.warnings),
        )
        return report

    def preview(self, release: ReleaseContext) -> ReleasePreview:
        """Render templates and describe the run without calling the tracker."""
        cfg = self._config
        preview = ReleasePreview()

        if cfg.create_release_issue:
            title, _ = self._render_release_issue(release)
            preview.lines.append(f"Would create release issue: {title}")
        if cfg.update_linked_issues or cfg.add_release_comment:
            preview.linked_issues = self.linked_issues(release)
        if cfg.update_linked_issues:
            preview.lines.append(f"Would update linked issues to state: {cfg.released_state}")
        if cfg.add_release_comment:
            try:
                comment = render_template(cfg.comment_template, release)
            except TemplateError as exc:
                preview.lines.append(f"Warning: Failed to render comment template: {exc}")
            else:
                preview.lines.append(f"Would add comment to linked issues: {comment}")

        logger.info("release_previewed", version=release.version, linked=len(preview.linked_issues))
        return preview

    def _resolve_team(self) -> Team:
        cfg = self._config
        try:
            return self.client.get_team(
                team_id=cfg.team_id or None,
                team_key=cfg.team_key or None,
                deadline=self._deadline,
            )
        except LinearReleaseError as exc:
            raise FatalRunError(f"Failed to get team: {exc}") from exc

    def _render_release_issue(self, release: ReleaseContext) -> tuple[str, str]:
        spec = self._config.release_issue
        try:
            title = render_template(spec.title, release)
        except TemplateError as exc:
            raise FatalRunError(f"Failed to create release issue: failed to render title template: {exc}") from exc
        try:
            description = render_template(spec.description, release)
        except TemplateError as exc:
            raise FatalRunError(
                f"Failed to create release issue: failed to render description template: {exc}"
            ) from exc
        return title, description

    def _create_release_issue(self, release: ReleaseContext, team: Team) -> Issue:
        cfg = self._config
        title, description = self._render_release_issue(release)
        try:
            return self.client.create_issue(
                team.id,
                title,
                description,
                cfg.release_issue.priority,
                project_id=cfg.project_id or None,
                assignee_id=cfg.release_issue.assignee or None,
                deadline=self._deadline,
            )
        except GatewayError as exc:
            raise FatalRunError(f"Failed to create release issue: {exc}") from exc

    def _process_linked_issues(
        self,
        release: ReleaseContext,
        team: Team,
        identifiers: list[str],
        outcome: ReconciliationOutcome,
    ) -> None:
        cfg = self._config

        # Resolved once per run; None disables the matching step for every issue.
        state_id: str | None = None
        if cfg.update_linked_issues and cfg.released_state:
            state = team.find_state(cfg.released_state)
            if state is None:
                outcome.warn(WarningKind.STATE_NOT_FOUND, None, cfg.released_state)
            else:
                state_id = state.id

        comment: str | None = None
        if cfg.add_release_comment:
            try:
                comment = render_template(cfg.comment_template, release) or None
            except TemplateError as exc:
                outcome.warn(WarningKind.COMMENT_TEMPLATE, None, str(exc))

        for identifier in identifiers:
            log = logger.bind(identifier=identifier)
            try:
                issue = self.client.get_issue_by_identifier(identifier, deadline=self._deadline)
            except GatewayError as exc:
                outcome.warn(WarningKind.ISSUE_FETCH, identifier, str(exc))
                continue

            if state_id is not None:
                try:
                    self.client.update_issue_state(issue.id, state_id, deadline=self._deadline)
                except GatewayError as exc:
                    outcome.warn(WarningKind.STATE_UPDATE, identifier, str(exc))
                else:
                    outcome.updated += 1
                    log.info("linked_issue_updated", state=cfg.released_state)

            if comment is not None:
                try:
                    self.client.add_comment(issue.id, comment, deadline=self._deadline)
                except GatewayError as exc:
                    outcome.warn(WarningKind.COMMENT, identifier, str(exc))
                else:
                    outcome.commented += 1
                    log.info("linked_issue_commented")
